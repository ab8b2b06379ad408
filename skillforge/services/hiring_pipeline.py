"""
Hiring pipeline: application submission, round transitions, status updates and bulk actions
"""
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from pymongo.errors import DuplicateKeyError

from skillforge.models.models import ScoringWeights
from skillforge.models.payloads import ApplyPayload, BulkActionData, MoveRoundPayload
from skillforge.models.response import BulkActionResponse, BulkItemResult
from skillforge.models.schemas import (
    CurrentRound, JobApplicationModel, JobPostingModel, RecruiterModel,
    RoundHistoryEntry, TimelineEntry, UserModel
)
from skillforge.services.db import applications_coll, jobs_coll, recruiters_coll, users_coll
from skillforge.services.email_service import send_hiring_update
from skillforge.services.round_lock import round_lock
from skillforge.services.skill_matcher import DEFAULT_WEIGHTS, calculate_match_score
from skillforge.utils.exceptions import (
    AuthorizationError, BusinessLogicError, CapacityError, ExceptionContext,
    ResourceNotFoundError, SkillForgeBaseException, ValidationError
)
from skillforge.utils.logging_config import PerformanceMonitor, get_logger

logger = get_logger(__name__)


class HiringPipeline:
    """Moves job applications through a job's hiring rounds"""

    # Round status constants
    ROUND_PENDING = "pending"
    ROUND_IN_PROGRESS = "in-progress"
    ROUND_COMPLETED = "completed"
    ROUND_PASSED = "passed"
    ROUND_FAILED = "failed"

    # Application status constants
    STATUS_SUBMITTED = "submitted"
    STATUS_SHORTLISTED = "shortlisted"
    STATUS_INTERVIEW_SCHEDULED = "interview-scheduled"
    STATUS_REJECTED = "rejected"
    STATUS_ACCEPTED = "accepted"
    STATUS_WITHDRAWN = "withdrawn"
    INACTIVE_STATUSES = [STATUS_REJECTED, STATUS_WITHDRAWN]

    # Email trigger stages
    STAGE_APPLICATION_RECEIVED = "application_received"
    STAGE_REJECTED = "rejected"
    STAGE_ROUND_UPGRADED = "round_upgraded"
    STAGE_ROUND_UPDATE = "round_update"

    # ---------- pure transition rules ----------

    @staticmethod
    def round_capacity(job: JobPostingModel, round_index: int) -> int:
        """Capacity of a round, falling back to the job-wide per-round limit. 0 = unlimited."""
        configured = job.rounds[round_index].capacity
        if configured:
            return configured
        return job.max_applicants_per_round or 0

    @staticmethod
    def validate_round_index(job: JobPostingModel, round_index: int) -> None:
        if round_index < 0 or round_index >= len(job.rounds):
            raise ValidationError(
                "Invalid round index",
                field="round_index",
                value=round_index,
                details={"rounds": len(job.rounds)}
            )

    @staticmethod
    def needs_capacity_check(
        job: JobPostingModel,
        application: JobApplicationModel,
        round_index: Optional[int],
        status: Optional[str]
    ) -> bool:
        if round_index is None or status == HiringPipeline.STATUS_REJECTED:
            return False
        if HiringPipeline.round_capacity(job, round_index) <= 0:
            return False
        # Someone already sitting in the round does not take a new seat
        current = application.current_round
        return not (current and current.round_index == round_index)

    @staticmethod
    def transition_stage(status: Optional[str], round_index: Optional[int], previous_index: int) -> str:
        if status == HiringPipeline.STATUS_REJECTED:
            return HiringPipeline.STAGE_REJECTED
        if round_index is not None and round_index > previous_index:
            return HiringPipeline.STAGE_ROUND_UPGRADED
        return HiringPipeline.STAGE_ROUND_UPDATE

    @staticmethod
    def apply_round_move(
        application: JobApplicationModel,
        job: JobPostingModel,
        payload: MoveRoundPayload,
        now: datetime = None
    ) -> Tuple[JobApplicationModel, List[RoundHistoryEntry], List[TimelineEntry]]:
        """
        Compute the application after a round transition without touching storage.

        Returns the updated copy together with the history and timeline
        entries appended by this transition.
        """
        now = now or datetime.utcnow()
        updated = application.copy(deep=True)
        current = updated.current_round
        previous_index = current.round_index if current else -1
        round_index = payload.round_index
        status = payload.status

        if round_index is not None:
            HiringPipeline.validate_round_index(job, round_index)

        new_history: List[RoundHistoryEntry] = []
        if (
            round_index is not None
            and round_index != previous_index
            and 0 <= previous_index < len(job.rounds)
        ):
            new_history.append(RoundHistoryEntry(
                round_index=previous_index,
                name=job.rounds[previous_index].name,
                score=current.score or 0,
                feedback=current.feedback or "",
                completed_at=now,
                status=HiringPipeline.ROUND_COMPLETED
            ))
            updated.round_history.extend(new_history)

        # Application-level decisions are stored on the round as its outcome
        if status == HiringPipeline.STATUS_REJECTED:
            round_status = HiringPipeline.ROUND_FAILED
        elif status == HiringPipeline.STATUS_ACCEPTED:
            round_status = HiringPipeline.ROUND_PASSED
        else:
            round_status = status

        if round_index is not None:
            if not round_status:
                round_status = (
                    HiringPipeline.ROUND_PENDING if round_index > previous_index
                    else HiringPipeline.ROUND_IN_PROGRESS
                )
            updated.current_round = CurrentRound(
                round_index=round_index,
                status=round_status,
                scheduled_at=payload.scheduled_at,
                meeting_link=payload.meeting_link,
                score=payload.score,
                feedback=payload.feedback
            )
        elif current is None:
            # A decision can be taken before any round starts; anything else needs a round
            if status not in (HiringPipeline.STATUS_REJECTED, HiringPipeline.STATUS_ACCEPTED):
                raise ValidationError(
                    "Application is not in a round yet, round_index is required",
                    field="round_index"
                )
        else:
            if round_status:
                current.status = round_status
            if payload.scheduled_at:
                current.scheduled_at = payload.scheduled_at
            if payload.meeting_link:
                current.meeting_link = payload.meeting_link
            if payload.score is not None:
                current.score = payload.score
            if payload.feedback:
                current.feedback = payload.feedback

        effective_index = updated.current_round.round_index if updated.current_round else -1
        new_status = updated.status
        if status == HiringPipeline.STATUS_REJECTED:
            new_status = HiringPipeline.STATUS_REJECTED
        elif status == HiringPipeline.STATUS_ACCEPTED:
            new_status = HiringPipeline.STATUS_ACCEPTED
        elif status == HiringPipeline.ROUND_PASSED and effective_index == len(job.rounds) - 1:
            new_status = HiringPipeline.STATUS_INTERVIEW_SCHEDULED

        new_timeline: List[TimelineEntry] = []
        if new_status != updated.status:
            updated.status = new_status
            new_timeline.append(TimelineEntry(status=new_status, date=now, note=payload.feedback))
            updated.timeline.extend(new_timeline)

        updated.updated_at = now
        return updated, new_history, new_timeline

    @staticmethod
    def apply_rejection(
        application: JobApplicationModel,
        note: Optional[str] = None,
        now: datetime = None
    ) -> Tuple[JobApplicationModel, List[TimelineEntry]]:
        now = now or datetime.utcnow()
        updated = application.copy(deep=True)
        new_timeline = []
        if updated.status != HiringPipeline.STATUS_REJECTED:
            new_timeline.append(TimelineEntry(status=HiringPipeline.STATUS_REJECTED, date=now, note=note))
            updated.timeline.extend(new_timeline)
        updated.status = HiringPipeline.STATUS_REJECTED
        if updated.current_round:
            updated.current_round.status = HiringPipeline.ROUND_FAILED
        updated.updated_at = now
        return updated, new_timeline

    # ---------- storage ----------

    @staticmethod
    async def get_application(application_id: str) -> JobApplicationModel:
        with ExceptionContext("get_application", logger, application_id=application_id):
            doc = await applications_coll.find_one({"application_id": application_id})
        if not doc:
            raise ResourceNotFoundError("Application not found", resource="application", resource_id=application_id)
        return JobApplicationModel(**doc)

    @staticmethod
    async def get_job(job_id: str) -> JobPostingModel:
        with ExceptionContext("get_job", logger, job_id=job_id):
            doc = await jobs_coll.find_one({"job_id": job_id})
        if not doc:
            raise ResourceNotFoundError("Job not found", resource="job", resource_id=job_id)
        return JobPostingModel(**doc)

    @staticmethod
    async def get_owned_application(
        application_id: str,
        recruiter: RecruiterModel
    ) -> Tuple[JobApplicationModel, JobPostingModel]:
        application = await HiringPipeline.get_application(application_id)
        job = await HiringPipeline.get_job(application.job_id)
        if job.recruiter_id != recruiter.recruiter_id:
            raise AuthorizationError("Unauthorized", resource=f"application:{application_id}")
        return application, job

    @staticmethod
    async def ensure_round_capacity(job: JobPostingModel, application: JobApplicationModel, round_index: int) -> None:
        capacity = HiringPipeline.round_capacity(job, round_index)
        with ExceptionContext("count_round_occupants", logger, job_id=job.job_id, round_index=round_index):
            occupants = await applications_coll.count_documents({
                "job_id": job.job_id,
                "application_id": {"$ne": application.application_id},
                "current_round.round_index": round_index,
                "status": {"$nin": HiringPipeline.INACTIVE_STATUSES}
            })
        if occupants >= capacity:
            raise CapacityError(
                f"Round capacity ({capacity}) reached",
                round_index=round_index,
                capacity=capacity
            )

    @staticmethod
    async def save_transition(
        application: JobApplicationModel,
        new_history: List[RoundHistoryEntry],
        new_timeline: List[TimelineEntry]
    ) -> None:
        """Single write; history and timeline are only ever pushed to."""
        update: Dict[str, Any] = {
            "$set": {
                "status": application.status,
                "current_round": application.current_round.dict() if application.current_round else None,
                "updated_at": application.updated_at
            }
        }
        pushes = {}
        if new_history:
            pushes["round_history"] = {"$each": [h.dict() for h in new_history]}
        if new_timeline:
            pushes["timeline"] = {"$each": [t.dict() for t in new_timeline]}
        if pushes:
            update["$push"] = pushes

        with ExceptionContext("save_transition", logger, application_id=application.application_id):
            await applications_coll.update_one({"application_id": application.application_id}, update)

    @staticmethod
    async def transition(
        application: JobApplicationModel,
        job: JobPostingModel,
        payload: MoveRoundPayload
    ) -> JobApplicationModel:
        """Validate, check capacity and persist one round transition."""
        if payload.round_index is not None:
            HiringPipeline.validate_round_index(job, payload.round_index)

        if HiringPipeline.needs_capacity_check(job, application, payload.round_index, payload.status):
            async with round_lock(job.job_id, payload.round_index):
                await HiringPipeline.ensure_round_capacity(job, application, payload.round_index)
                updated, history, timeline = HiringPipeline.apply_round_move(application, job, payload)
                await HiringPipeline.save_transition(updated, history, timeline)
        else:
            updated, history, timeline = HiringPipeline.apply_round_move(application, job, payload)
            await HiringPipeline.save_transition(updated, history, timeline)
        return updated

    # ---------- notifications ----------

    @staticmethod
    async def notify(
        job: JobPostingModel,
        application: JobApplicationModel,
        stage: str,
        round_index: Optional[int] = None
    ) -> bool:
        """Send the job's email for a stage if one is configured. Never raises."""
        trigger = next((t for t in job.email_config.triggers if t.stage == stage and t.active), None)
        if not trigger:
            return False

        try:
            applicant = await users_coll.find_one({"user_id": application.applicant_id}) or {}
            if round_index is not None and 0 <= round_index < len(job.rounds):
                round_name = job.rounds[round_index].name
            else:
                round_name = "Update"
            return await send_hiring_update(
                to=applicant.get("email"),
                subject=trigger.subject,
                template=trigger.template,
                data={
                    "candidate_name": applicant.get("name"),
                    "job_title": job.title,
                    "company_name": job.company,
                    "round_name": round_name
                }
            )
        except SkillForgeBaseException as e:
            logger.error(
                f"Hiring update '{stage}' for application {application.application_id} failed: {e.message}",
                extra={"details": e.details}
            )
        except Exception as e:
            logger.error(
                f"Hiring update '{stage}' for application {application.application_id} failed: {e}",
                exc_info=True
            )
        return False

    # ---------- operations ----------

    @staticmethod
    async def submit_application(
        job_id: str,
        user: UserModel,
        payload: ApplyPayload,
        weights: ScoringWeights = DEFAULT_WEIGHTS
    ):
        """Score the candidate and store a new application. Returns (application, match_result)."""
        job = await HiringPipeline.get_job(job_id)

        if job.status != "active":
            raise BusinessLogicError("Job is not accepting applications", rule="job_active")

        if job.max_applicants > 0:
            current = await applications_coll.count_documents({"job_id": job.job_id})
            if current >= job.max_applicants:
                raise BusinessLogicError(
                    "This job has reached its maximum application limit",
                    rule="max_applicants",
                    details={"max_applicants": job.max_applicants}
                )

        existing = await applications_coll.find_one({"job_id": job.job_id, "applicant_id": user.user_id})
        if existing:
            raise BusinessLogicError("You have already applied to this job", rule="single_application")

        match = calculate_match_score(user, job, weights)
        now = datetime.utcnow()
        application = JobApplicationModel(
            application_id=str(uuid.uuid4()),
            job_id=job.job_id,
            applicant_id=user.user_id,
            resume=payload.resume,
            cover_letter=payload.cover_letter,
            answers=payload.answers,
            status=HiringPipeline.STATUS_SUBMITTED,
            timeline=[TimelineEntry(
                status=HiringPipeline.STATUS_SUBMITTED,
                date=now,
                note=f"Application submitted with {match.overall}% match score"
            )],
            match_score=match.overall,
            skill_analysis={
                "breakdown": match.breakdown.dict(),
                "skill_gaps": match.skill_gaps,
                "recommendations": [r.dict() for r in match.recommendations]
            },
            current_round=CurrentRound(round_index=0, status=HiringPipeline.ROUND_PENDING) if job.rounds else None,
            applied_at=now,
            updated_at=now
        )

        with ExceptionContext("submit_application", logger, job_id=job.job_id, user_id=user.user_id):
            try:
                await applications_coll.insert_one(application.dict())
            except DuplicateKeyError as e:
                # Lost the race against a concurrent submit; the unique index has the final say
                raise BusinessLogicError(
                    "You have already applied to this job",
                    rule="single_application",
                    cause=e
                ) from e
            await jobs_coll.update_one(
                {"job_id": job.job_id},
                {"$push": {"applications": application.application_id}, "$inc": {"stats.applications": 1}}
            )
            await recruiters_coll.update_one(
                {"recruiter_id": job.recruiter_id},
                {"$inc": {"stats.total_applications": 1}}
            )

        logger.info(
            f"Application {application.application_id} submitted to job {job.job_id} "
            f"with {match.overall}% match score"
        )
        await HiringPipeline.notify(job, application, HiringPipeline.STAGE_APPLICATION_RECEIVED)
        return application, match

    @staticmethod
    async def move_round(
        application_id: str,
        recruiter: RecruiterModel,
        payload: MoveRoundPayload
    ) -> JobApplicationModel:
        """Move an application to a round, or update its current round."""
        application, job = await HiringPipeline.get_owned_application(application_id, recruiter)
        previous_index = application.current_round.round_index if application.current_round else -1

        updated = await HiringPipeline.transition(application, job, payload)

        current = updated.current_round
        logger.info(
            f"Application {application_id} round {previous_index} -> "
            f"{current.round_index if current else -1} ({current.status if current else 'none'}), "
            f"status {updated.status}"
        )

        stage = HiringPipeline.transition_stage(payload.status, payload.round_index, previous_index)
        await HiringPipeline.notify(job, updated, stage, payload.round_index)
        return updated

    @staticmethod
    async def update_status(
        application_id: str,
        recruiter: RecruiterModel,
        status: str,
        note: Optional[str] = None
    ) -> JobApplicationModel:
        application, job = await HiringPipeline.get_owned_application(application_id, recruiter)

        now = datetime.utcnow()
        entry = TimelineEntry(status=status, date=now, note=note)
        application.status = status
        application.timeline.append(entry)
        application.updated_at = now

        with ExceptionContext("update_status", logger, application_id=application_id):
            await applications_coll.update_one(
                {"application_id": application_id},
                {"$set": {"status": status, "updated_at": now}, "$push": {"timeline": entry.dict()}}
            )
            if status == HiringPipeline.STATUS_SHORTLISTED:
                await jobs_coll.update_one({"job_id": job.job_id}, {"$inc": {"stats.shortlisted": 1}})

        logger.info(f"Application {application_id} status set to {status}")
        return application

    @staticmethod
    async def _bulk_item(application_id: str, recruiter: RecruiterModel, action: str, data: BulkActionData) -> None:
        application, job = await HiringPipeline.get_owned_application(application_id, recruiter)

        if action == "move":
            current_index = application.current_round.round_index if application.current_round else -1
            target = data.round_index if data.round_index is not None else current_index + 1
            await HiringPipeline.transition(
                application, job,
                MoveRoundPayload(round_index=target, status=HiringPipeline.ROUND_PENDING)
            )
        elif action == "reject":
            updated, timeline = HiringPipeline.apply_rejection(application, note=data.feedback)
            await HiringPipeline.save_transition(updated, [], timeline)
        else:
            raise ValidationError(f"Unsupported bulk action: {action}", field="action", value=action)

    @staticmethod
    async def bulk_action(
        application_ids: List[str],
        recruiter: RecruiterModel,
        action: str,
        data: BulkActionData
    ) -> BulkActionResponse:
        """
        Apply one action to several applications, one at a time.

        A failing item is logged and reported in the results; the remaining
        items are still processed.
        """
        if not application_ids:
            raise ValidationError("No applications selected", field="application_ids")

        results: List[BulkItemResult] = []
        with PerformanceMonitor(f"bulk_action[{action} x{len(application_ids)}]", logger):
            for application_id in application_ids:
                try:
                    await HiringPipeline._bulk_item(application_id, recruiter, action, data)
                    results.append(BulkItemResult(application_id=application_id, success=True))
                except SkillForgeBaseException as e:
                    logger.warning(f"Bulk {action} skipped application {application_id}: {e.message}")
                    results.append(BulkItemResult(application_id=application_id, success=False, error=e.message))
                except Exception as e:
                    logger.error(f"Failed to update {application_id}: {e}", exc_info=True)
                    results.append(BulkItemResult(application_id=application_id, success=False, error="Unexpected error"))

        updated = sum(1 for r in results if r.success)
        logger.info(f"Bulk {action} by recruiter {recruiter.recruiter_id}: {updated}/{len(application_ids)} updated")
        return BulkActionResponse(updated=updated, results=results)

