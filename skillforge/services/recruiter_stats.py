from typing import Any, Dict, List

from skillforge.models.response import DashboardOverview, DashboardStats, PipelineCounts
from skillforge.models.schemas import RecruiterModel
from skillforge.services.db import applications_coll, jobs_coll, to_dict, users_coll
from skillforge.utils.exceptions import ExceptionContext
from skillforge.utils.logging_config import PerformanceMonitor, get_logger

logger = get_logger(__name__)

# Application status -> dashboard pipeline bucket
PIPELINE_BUCKETS = {
    "submitted": "applied",
    "under-review": "applied",
    "shortlisted": "shortlisted",
    "interview-scheduled": "interview",
    "offer-sent": "offer",
    "accepted": "hired",
    "rejected": "rejected",
}

RECENT_ACTIVITY_LIMIT = 5


def build_pipeline(status_counts: List[Dict[str, Any]]):
    """Fold `{_id: status, count}` aggregation rows into pipeline buckets. Returns (pipeline, total)."""
    pipeline = PipelineCounts()
    total = 0
    for row in status_counts:
        count = row.get("count", 0)
        total += count
        bucket = PIPELINE_BUCKETS.get(row.get("_id"))
        if bucket:
            setattr(pipeline, bucket, getattr(pipeline, bucket) + count)
    return pipeline, total


async def get_dashboard_stats(recruiter: RecruiterModel) -> DashboardStats:
    with PerformanceMonitor("dashboard_stats", logger):
        with ExceptionContext("dashboard_stats", logger, recruiter_id=recruiter.recruiter_id):
            jobs = await jobs_coll.find(
                {"recruiter_id": recruiter.recruiter_id},
                {"_id": 0, "job_id": 1, "status": 1, "title": 1}
            ).to_list(length=None)
            job_ids = [j["job_id"] for j in jobs]

            status_counts = await applications_coll.aggregate([
                {"$match": {"job_id": {"$in": job_ids}}},
                {"$group": {"_id": "$status", "count": {"$sum": 1}}}
            ]).to_list(length=None)

            recent = await applications_coll.find(
                {"job_id": {"$in": job_ids}}
            ).sort("updated_at", -1).limit(RECENT_ACTIVITY_LIMIT).to_list(length=RECENT_ACTIVITY_LIMIT)

            applicant_ids = list({a["applicant_id"] for a in recent})
            applicants = await users_coll.find(
                {"user_id": {"$in": applicant_ids}},
                {"_id": 0, "user_id": 1, "name": 1}
            ).to_list(length=None)

    pipeline, total_applications = build_pipeline(status_counts)

    titles = {j["job_id"]: j.get("title") for j in jobs}
    names = {u["user_id"]: u.get("name") for u in applicants}
    recent_activity = []
    for app in recent:
        app = to_dict(app)
        recent_activity.append({
            "application_id": app["application_id"],
            "job_id": app["job_id"],
            "job_title": titles.get(app["job_id"]),
            "applicant_id": app["applicant_id"],
            "applicant_name": names.get(app["applicant_id"]),
            "status": app.get("status"),
            "match_score": app.get("match_score"),
            "updated_at": app.get("updated_at"),
        })

    overview = DashboardOverview(
        total_jobs=len(jobs),
        active_jobs=sum(1 for j in jobs if j.get("status") == "active"),
        closed_jobs=sum(1 for j in jobs if j.get("status") in ("closed", "filled")),
        total_applications=total_applications,
        hired=pipeline.hired
    )
    logger.info(
        f"Dashboard stats for recruiter {recruiter.recruiter_id}: "
        f"{overview.total_jobs} jobs, {total_applications} applications"
    )
    return DashboardStats(overview=overview, pipeline=pipeline, recent_activity=recent_activity)
