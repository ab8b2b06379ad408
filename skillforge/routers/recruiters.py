from fastapi import APIRouter, Depends, Request

from skillforge.models.response import DashboardStats
from skillforge.routers.deps import get_current_user_id, load_recruiter
from skillforge.services.recruiter_stats import get_dashboard_stats
from skillforge.utils.logging_config import get_logger

router = APIRouter()
logger = get_logger(__name__)


@router.get("/dashboard-stats", response_model=DashboardStats)
async def dashboard_stats(request: Request, user_id: str = Depends(get_current_user_id)):
    """Hiring pipeline overview across all of the recruiter's jobs"""
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.info(f"Dashboard stats requested by user {user_id}", extra={"request_id": request_id})

    recruiter = await load_recruiter(user_id)
    return await get_dashboard_stats(recruiter)
