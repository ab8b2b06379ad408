from fastapi import APIRouter, Depends, Request
from typing import List

from skillforge.models.models import MatchResult, RankedCandidate
from skillforge.models.payloads import (
    ApplyPayload, BatchScorePayload, BulkActionPayload, MoveRoundPayload, StatusUpdatePayload
)
from skillforge.models.response import ApplicationSubmitted, BulkActionResponse
from skillforge.models.schemas import JobApplicationModel
from skillforge.routers.deps import get_current_user_id, load_current_user, load_recruiter
from skillforge.services.db import applications_coll
from skillforge.services.hiring_pipeline import HiringPipeline
from skillforge.services.skill_matcher import batch_calculate_scores, calculate_match_score, load_job

# Import logging and exceptions
from skillforge.utils.logging_config import get_logger, PerformanceMonitor
from skillforge.utils.exceptions import AuthorizationError, ExceptionContext

router = APIRouter()
logger = get_logger(__name__)


@router.get("/my/applications", response_model=List[JobApplicationModel])
async def list_my_applications(request: Request, user_id: str = Depends(get_current_user_id)):
    """Applications submitted by the current user, newest first"""
    request_id = getattr(request.state, 'request_id', 'unknown')

    with ExceptionContext("list_my_applications", logger, request_id=request_id, user_id=user_id):
        cursor = applications_coll.find({"applicant_id": user_id}).sort("applied_at", -1)
        applications = await cursor.to_list(length=None)

    logger.info(
        f"Fetched {len(applications)} applications for user {user_id}",
        extra={"request_id": request_id}
    )
    return [JobApplicationModel(**a) for a in applications]


@router.get("/{job_id}/match-preview", response_model=MatchResult)
async def preview_match(job_id: str, request: Request, user_id: str = Depends(get_current_user_id)):
    """How well the current user matches a job, before applying"""
    request_id = getattr(request.state, 'request_id', 'unknown')

    job = await load_job(job_id)
    user = await load_current_user(user_id)
    result = calculate_match_score(user, job)

    logger.info(
        f"Match preview for user {user_id} on job {job_id}: {result.overall}%",
        extra={"request_id": request_id, "job_id": job_id}
    )
    return result


@router.post("/{job_id}/apply", response_model=ApplicationSubmitted, status_code=201)
async def apply_to_job(
    job_id: str,
    payload: ApplyPayload,
    request: Request,
    user_id: str = Depends(get_current_user_id)
):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.info(f"User {user_id} applying to job {job_id}", extra={"request_id": request_id})

    user = await load_current_user(user_id)
    application, match = await HiringPipeline.submit_application(job_id, user, payload)
    return ApplicationSubmitted(data=application, match_analysis=match)


@router.post("/{job_id}/match-batch", response_model=List[RankedCandidate])
async def match_batch(
    job_id: str,
    payload: BatchScorePayload,
    request: Request,
    user_id: str = Depends(get_current_user_id)
):
    """Rank several candidates against a job owned by the current recruiter"""
    request_id = getattr(request.state, 'request_id', 'unknown')

    recruiter = await load_recruiter(user_id)
    job = await load_job(job_id)
    if job.recruiter_id != recruiter.recruiter_id:
        raise AuthorizationError("Unauthorized", resource=f"job:{job_id}")

    ranked = await batch_calculate_scores(payload.user_ids, job_id, payload.weights)
    logger.info(
        f"Ranked {len(ranked)}/{len(payload.user_ids)} candidates for job {job_id}",
        extra={"request_id": request_id}
    )
    return ranked


@router.get("/{job_id}/applications", response_model=List[JobApplicationModel])
async def list_job_applications(job_id: str, request: Request, user_id: str = Depends(get_current_user_id)):
    """Applications for one of the recruiter's jobs, best match first"""
    request_id = getattr(request.state, 'request_id', 'unknown')

    recruiter = await load_recruiter(user_id)
    job = await load_job(job_id)
    if job.recruiter_id != recruiter.recruiter_id:
        raise AuthorizationError("Unauthorized", resource=f"job:{job_id}")

    with PerformanceMonitor("list_job_applications", logger):
        with ExceptionContext("list_job_applications", logger, request_id=request_id, job_id=job_id):
            cursor = applications_coll.find({"job_id": job_id}).sort([("match_score", -1), ("applied_at", -1)])
            applications = await cursor.to_list(length=None)

    logger.info(
        f"Fetched {len(applications)} applications for job {job_id}",
        extra={"request_id": request_id, "application_count": len(applications)}
    )
    return [JobApplicationModel(**a) for a in applications]


@router.put("/applications/{application_id}/status", response_model=JobApplicationModel)
async def update_application_status(
    application_id: str,
    payload: StatusUpdatePayload,
    user_id: str = Depends(get_current_user_id)
):
    recruiter = await load_recruiter(user_id)
    return await HiringPipeline.update_status(application_id, recruiter, payload.status, payload.note)


@router.put("/applications/{application_id}/move-round", response_model=JobApplicationModel)
async def move_application_round(
    application_id: str,
    payload: MoveRoundPayload,
    request: Request,
    user_id: str = Depends(get_current_user_id)
):
    """Move an application to a hiring round or update its current round"""
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.info(
        f"Move-round requested for application {application_id}",
        extra={"request_id": request_id, "round_index": payload.round_index, "status": payload.status}
    )

    recruiter = await load_recruiter(user_id)
    return await HiringPipeline.move_round(application_id, recruiter, payload)


@router.post("/applications/bulk-action", response_model=BulkActionResponse)
async def bulk_application_action(payload: BulkActionPayload, user_id: str = Depends(get_current_user_id)):
    recruiter = await load_recruiter(user_id)
    return await HiringPipeline.bulk_action(payload.application_ids, recruiter, payload.action, payload.data)
