from pydantic import BaseModel, Field, validator
from typing import List, Optional, Literal
from datetime import datetime

RoundStatus = Literal["pending", "scheduled", "in-progress", "completed", "passed", "failed"]
ApplicationStatus = Literal[
    "submitted", "under-review", "shortlisted", "interview-scheduled",
    "offer-sent", "rejected", "accepted", "withdrawn"
]
JobStatus = Literal["draft", "active", "closed", "filled"]
RecruiterStatus = Literal["pending", "active", "suspended"]


def _none_to_list(v):
    return v or []


# -------- Users (learning record, stored populated) --------
class TopicRef(BaseModel):
    title: Optional[str] = None

class CompletedTopic(BaseModel):
    topic: Optional[TopicRef] = None
    completed_at: Optional[datetime] = None

class RoadmapRef(BaseModel):
    title: Optional[str] = None
    role: Optional[str] = None

class RoadmapEnrollment(BaseModel):
    roadmap: Optional[RoadmapRef] = None
    completed_topics: List[CompletedTopic] = []

    @validator("completed_topics", pre=True)
    def default_lists(cls, v):
        return _none_to_list(v)

class LanguageRef(BaseModel):
    name: Optional[str] = None

class LanguageEnrollment(BaseModel):
    language: Optional[LanguageRef] = None
    completed_topics: List[CompletedTopic] = []

    @validator("completed_topics", pre=True)
    def default_lists(cls, v):
        return _none_to_list(v)

class BadgeRef(BaseModel):
    name: Optional[str] = None

class EarnedBadge(BaseModel):
    badge: Optional[BadgeRef] = None
    earned_at: Optional[datetime] = None

class StudyTimeEntry(BaseModel):
    date: Optional[datetime] = None
    minutes: Optional[float] = 0

class Preferences(BaseModel):
    skill_level: Optional[str] = "beginner"

class UserModel(BaseModel):
    user_id: str
    name: Optional[str] = None
    email: Optional[str] = None
    preferences: Preferences = Field(default_factory=Preferences)
    enrolled_roadmaps: List[RoadmapEnrollment] = []
    language_learning: List[LanguageEnrollment] = []
    badges: List[EarnedBadge] = []
    study_time: List[StudyTimeEntry] = []

    @validator("preferences", pre=True)
    def default_preferences(cls, v):
        return v or {}

    @validator("enrolled_roadmaps", "language_learning", "badges", "study_time", pre=True)
    def default_lists(cls, v):
        return _none_to_list(v)


# -------- Recruiters --------
class RecruiterStats(BaseModel):
    total_jobs_posted: int = 0
    total_applications: int = 0

class RecruiterModel(BaseModel):
    recruiter_id: str
    user_id: str
    company: Optional[str] = None
    status: RecruiterStatus = "pending"
    stats: RecruiterStats = Field(default_factory=RecruiterStats)


# -------- Job Postings --------
class JobRequirements(BaseModel):
    skills: List[str] = []
    experience: Optional[str] = ""
    education: Optional[str] = None
    certifications: List[str] = []

    @validator("skills", "certifications", pre=True)
    def default_lists(cls, v):
        return _none_to_list(v)

class HiringRound(BaseModel):
    name: str
    type: Literal["screening", "test", "technical", "hr", "assignment", "presentation", "other"] = "technical"
    duration: Optional[str] = None
    passing_score: Optional[float] = None
    evaluation_criteria: Optional[str] = None
    capacity: Optional[int] = None  # max active applicants in this round

class EmailTrigger(BaseModel):
    stage: str  # application_received, round_upgraded, round_update, rejected
    template: Optional[str] = None
    subject: Optional[str] = None
    delay: int = 0  # hours
    active: bool = True

class EmailConfig(BaseModel):
    triggers: List[EmailTrigger] = []

class JobStats(BaseModel):
    views: int = 0
    applications: int = 0
    shortlisted: int = 0

class JobPostingModel(BaseModel):
    job_id: str
    recruiter_id: str
    title: str
    company: Optional[str] = None
    description: Optional[str] = None
    requirements: JobRequirements = Field(default_factory=JobRequirements)
    status: JobStatus = "draft"
    rounds: List[HiringRound] = []
    max_applicants: int = 0  # 0 = unlimited
    max_applicants_per_round: int = 0  # fallback when a round has no capacity
    email_config: EmailConfig = Field(default_factory=EmailConfig)
    applications: List[str] = []
    stats: JobStats = Field(default_factory=JobStats)
    posted_at: datetime = Field(default_factory=datetime.utcnow)

    @validator("requirements", "email_config", "stats", pre=True)
    def default_nested(cls, v):
        return v or {}

    @validator("rounds", "applications", pre=True)
    def default_lists(cls, v):
        return _none_to_list(v)


# -------- Job Applications --------
class TimelineEntry(BaseModel):
    status: str
    date: datetime = Field(default_factory=datetime.utcnow)
    note: Optional[str] = None

class Answer(BaseModel):
    question: str
    answer: Optional[str] = None

class Resume(BaseModel):
    url: Optional[str] = None
    uploaded_at: Optional[datetime] = None

class CurrentRound(BaseModel):
    round_index: int = 0
    status: RoundStatus = "pending"
    scheduled_at: Optional[datetime] = None
    meeting_link: Optional[str] = None
    score: Optional[float] = None
    feedback: Optional[str] = None

class RoundHistoryEntry(BaseModel):
    round_index: int
    name: Optional[str] = None
    score: float = 0
    feedback: str = ""
    completed_at: datetime = Field(default_factory=datetime.utcnow)
    status: str = "completed"
    interviewer: Optional[str] = None

class JobApplicationModel(BaseModel):
    application_id: str
    job_id: str
    applicant_id: str
    resume: Optional[Resume] = None
    cover_letter: Optional[str] = None
    answers: List[Answer] = []
    status: ApplicationStatus = "submitted"
    timeline: List[TimelineEntry] = []
    match_score: Optional[int] = Field(default=None, ge=0, le=100)
    skill_analysis: Optional[dict] = None
    recruiter_notes: Optional[str] = None
    current_round: Optional[CurrentRound] = None
    round_history: List[RoundHistoryEntry] = []
    applied_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @validator("answers", "timeline", "round_history", pre=True)
    def default_lists(cls, v):
        return _none_to_list(v)
