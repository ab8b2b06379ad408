from pydantic import BaseModel, Field, validator
from typing import List, Optional, Set


class ScoringWeights(BaseModel):
    """Category weights for the skill match score"""
    skills: float = Field(default=0.50, ge=0.0, le=1.0, description="Weight for required-skill coverage")
    experience: float = Field(default=0.30, ge=0.0, le=1.0, description="Weight for experience level")
    certifications: float = Field(default=0.20, ge=0.0, le=1.0, description="Weight for certifications")

    # always=True so a body that omits certifications is still checked against the total
    @validator('certifications', always=True)
    def validate_total_weights(cls, v, values):
        total = v + values.get('skills', 0) + values.get('experience', 0)
        if abs(total - 1.0) > 0.01:  # Allow small floating point errors
            raise ValueError('Scoring weights must sum to 1.0')
        return v


class CandidateProfile(BaseModel):
    skills: Set[str] = Field(default_factory=set)
    skill_level: str = "beginner"
    study_hours: float = 0.0
    completed_topic_count: int = 0
    certifications: Set[str] = Field(default_factory=set)


class SkillsBreakdown(BaseModel):
    score: int
    weight: float
    contribution: int
    matched: List[str] = []
    missing: List[str] = []
    total: int = 0


class ExperienceBreakdown(BaseModel):
    score: int
    weight: float
    contribution: int
    user_level: str
    effective_level: int
    required_level: int
    study_hours: int = 0
    completed_topics: int = 0


class CertificationsBreakdown(BaseModel):
    score: int
    weight: float
    contribution: int
    matched: List[str] = []
    total: int = 0


class MatchBreakdown(BaseModel):
    skills: SkillsBreakdown
    experience: ExperienceBreakdown
    certifications: CertificationsBreakdown


class Recommendation(BaseModel):
    skill: str
    type: str = "skill_gap"
    suggestion: str
    action: str


class MatchResult(BaseModel):
    overall: int = Field(ge=0, le=100)
    breakdown: MatchBreakdown
    skill_gaps: List[str] = []
    recommendations: List[Recommendation] = []


class RankedCandidate(BaseModel):
    user_id: str
    user_name: Optional[str] = None
    email: Optional[str] = None
    score: MatchResult
