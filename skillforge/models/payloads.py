from pydantic import BaseModel, Field
from typing import List, Optional, Literal
from datetime import datetime

from skillforge.models.models import ScoringWeights
from skillforge.models.schemas import Answer, ApplicationStatus, Resume

# Request bodies accepted by the jobs API

# Round statuses plus the two decisions that close an application
MoveRoundStatus = Literal[
    "pending", "scheduled", "in-progress", "completed", "passed", "failed",
    "rejected", "accepted"
]


class ApplyPayload(BaseModel):
    """Candidate's application to a job"""
    resume: Optional[Resume] = None
    cover_letter: Optional[str] = None
    answers: List[Answer] = []


class MoveRoundPayload(BaseModel):
    """Move an application to a round, or update its current round when round_index is omitted"""
    round_index: Optional[int] = None
    status: Optional[MoveRoundStatus] = None
    feedback: Optional[str] = None
    score: Optional[float] = None
    scheduled_at: Optional[datetime] = None
    meeting_link: Optional[str] = None


class BulkActionData(BaseModel):
    round_index: Optional[int] = None  # move: target round, defaults to the next one
    status: Optional[str] = None
    feedback: Optional[str] = None


class BulkActionPayload(BaseModel):
    """Same action applied to several applications"""
    application_ids: List[str]
    action: Literal["move", "reject"]
    data: BulkActionData = Field(default_factory=BulkActionData)


class StatusUpdatePayload(BaseModel):
    status: ApplicationStatus
    note: Optional[str] = None


class BatchScorePayload(BaseModel):
    user_ids: List[str]
    weights: ScoringWeights = Field(default_factory=ScoringWeights)
