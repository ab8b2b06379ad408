from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional

from skillforge.models.models import MatchResult
from skillforge.models.schemas import JobApplicationModel


class ApplicationSubmitted(BaseModel):
    success: bool = True
    data: JobApplicationModel
    match_analysis: MatchResult


class BulkItemResult(BaseModel):
    application_id: str
    success: bool
    error: Optional[str] = None


class BulkActionResponse(BaseModel):
    success: bool = True
    updated: int
    results: List[BulkItemResult] = []


class PipelineCounts(BaseModel):
    applied: int = 0
    shortlisted: int = 0
    interview: int = 0
    offer: int = 0
    hired: int = 0
    rejected: int = 0


class DashboardOverview(BaseModel):
    total_jobs: int = 0
    active_jobs: int = 0
    closed_jobs: int = 0
    total_applications: int = 0
    hired: int = 0


class DashboardStats(BaseModel):
    overview: DashboardOverview
    pipeline: PipelineCounts
    recent_activity: List[Dict[str, Any]] = Field(default_factory=list)
