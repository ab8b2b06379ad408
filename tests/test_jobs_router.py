import pytest
from types import SimpleNamespace
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock, MagicMock, patch

from skillforge.models.models import MatchResult
from skillforge.models.response import BulkActionResponse, BulkItemResult
from skillforge.models.schemas import JobApplicationModel
from skillforge.services.hiring_pipeline import HiringPipeline
from skillforge.utils.exceptions import BusinessLogicError, CapacityError, ConflictError

USER = {"user_id": "user-1", "name": "Ada", "email": "ada@example.com",
        "language_learning": [{"language": {"name": "python"}}]}
RECRUITER = {"recruiter_id": "rec-1", "user_id": "user-rec", "company": "Acme", "status": "active"}
JOB = {
    "job_id": "job-1",
    "recruiter_id": "rec-1",
    "title": "Backend Engineer",
    "company": "Acme",
    "status": "active",
    "requirements": {"skills": ["Python", "Go"], "experience": "entry"},
    "rounds": [{"name": "Screening"}, {"name": "Technical", "capacity": 1}],
}
APPLICATION = {"application_id": "app-1", "job_id": "job-1", "applicant_id": "user-1", "match_score": 60}


@pytest.fixture
def test_app():
    from fastapi import FastAPI
    from skillforge.routers import jobs
    from skillforge.middleware.error_handlers import ExceptionHandlerMiddleware

    app = FastAPI()
    app.add_middleware(ExceptionHandlerMiddleware)
    app.include_router(jobs.router, prefix="/api/jobs")
    return app


@pytest.fixture
def client(test_app):
    return TestClient(test_app)


@pytest.fixture
def db():
    with patch('skillforge.routers.deps.users_coll') as users_coll, \
         patch('skillforge.routers.deps.recruiters_coll') as recruiters_coll, \
         patch('skillforge.routers.jobs.applications_coll') as applications_coll, \
         patch('skillforge.services.skill_matcher.jobs_coll') as jobs_coll:
        users_coll.find_one = AsyncMock(return_value=USER)
        recruiters_coll.find_one = AsyncMock(return_value=RECRUITER)
        jobs_coll.find_one = AsyncMock(return_value=JOB)
        yield SimpleNamespace(users=users_coll, recruiters=recruiters_coll, applications=applications_coll, jobs=jobs_coll)


def cursor_of(docs):
    cursor = MagicMock()
    cursor.sort.return_value = cursor
    cursor.to_list = AsyncMock(return_value=docs)
    return cursor


class TestJobsRouter:
    """Test cases for jobs router"""

    def test_missing_user_header(self, client, db):
        response = client.get("/api/jobs/job-1/match-preview")

        assert response.status_code == 401
        body = response.json()
        assert body["success"] is False
        assert body["status_code"] == 401
        assert "X-Request-ID" in response.headers

    def test_match_preview(self, client, db):
        response = client.get("/api/jobs/job-1/match-preview", headers={"X-User-Id": "user-1"})

        assert response.status_code == 200
        data = response.json()
        assert data["breakdown"]["skills"]["matched"] == ["Python"]
        assert data["skill_gaps"] == ["Go"]
        # 50 * 0.5 + 70 * 0.3 + 100 * 0.2
        assert data["overall"] == 66

    def test_match_preview_unknown_job(self, client, db):
        db.jobs.find_one = AsyncMock(return_value=None)

        response = client.get("/api/jobs/missing/match-preview", headers={"X-User-Id": "user-1"})

        assert response.status_code == 404
        assert response.json()["message"] == "Job not found"

    def test_apply(self, client, db):
        application = JobApplicationModel(**APPLICATION)
        match = MatchResult(**{
            "overall": 60,
            "breakdown": {
                "skills": {"score": 50, "weight": 0.5, "contribution": 25},
                "experience": {"score": 70, "weight": 0.3, "contribution": 21, "user_level": "beginner",
                               "effective_level": 0, "required_level": 1},
                "certifications": {"score": 100, "weight": 0.2, "contribution": 20},
            },
        })

        with patch.object(HiringPipeline, "submit_application", new=AsyncMock(return_value=(application, match))) as submit:
            response = client.post(
                "/api/jobs/job-1/apply",
                json={"cover_letter": "Hello", "answers": [{"question": "Why?", "answer": "Because"}]},
                headers={"X-User-Id": "user-1"}
            )

        assert response.status_code == 201
        data = response.json()
        assert data["success"] is True
        assert data["data"]["application_id"] == "app-1"
        assert data["match_analysis"]["overall"] == 60
        job_id, user, payload = submit.call_args[0]
        assert job_id == "job-1"
        assert user.user_id == "user-1"
        assert payload.cover_letter == "Hello"

    def test_apply_twice(self, client, db):
        error = BusinessLogicError("You have already applied to this job", rule="single_application")
        with patch.object(HiringPipeline, "submit_application", new=AsyncMock(side_effect=error)):
            response = client.post("/api/jobs/job-1/apply", json={}, headers={"X-User-Id": "user-1"})

        assert response.status_code == 400
        assert response.json()["message"] == "You have already applied to this job"

    def test_my_applications_route_is_not_a_job_id(self, client, db):
        db.applications.find = MagicMock(return_value=cursor_of([APPLICATION]))

        response = client.get("/api/jobs/my/applications", headers={"X-User-Id": "user-1"})

        assert response.status_code == 200
        assert response.json()[0]["application_id"] == "app-1"
        db.applications.find.assert_called_once_with({"applicant_id": "user-1"})

    def test_job_applications_sorted_for_owner(self, client, db):
        cursor = cursor_of([APPLICATION])
        db.applications.find = MagicMock(return_value=cursor)

        response = client.get("/api/jobs/job-1/applications", headers={"X-User-Id": "user-rec"})

        assert response.status_code == 200
        cursor.sort.assert_called_once_with([("match_score", -1), ("applied_at", -1)])

    def test_job_applications_requires_recruiter(self, client, db):
        db.recruiters.find_one = AsyncMock(return_value=None)

        response = client.get("/api/jobs/job-1/applications", headers={"X-User-Id": "user-1"})

        assert response.status_code == 403
        assert response.json()["message"] == "Recruiter account required"

    def test_job_applications_of_other_recruiter(self, client, db):
        db.recruiters.find_one = AsyncMock(return_value={**RECRUITER, "recruiter_id": "rec-2"})

        response = client.get("/api/jobs/job-1/applications", headers={"X-User-Id": "user-rec"})

        assert response.status_code == 403

    def test_match_batch(self, client, db):
        with patch('skillforge.services.skill_matcher.users_coll') as matcher_users:
            matcher_users.find_one = AsyncMock(side_effect=lambda q: None if q["user_id"] == "ghost" else {**USER, "user_id": q["user_id"]})
            response = client.post(
                "/api/jobs/job-1/match-batch",
                json={"user_ids": ["u-1", "ghost", "u-2"]},
                headers={"X-User-Id": "user-rec"}
            )

        assert response.status_code == 200
        assert [r["user_id"] for r in response.json()] == ["u-1", "u-2"]

    def test_match_batch_rejects_bad_weights(self, client, db):
        response = client.post(
            "/api/jobs/job-1/match-batch",
            json={"user_ids": ["u-1"], "weights": {"skills": 0.9, "experience": 0.9, "certifications": 0.9}},
            headers={"X-User-Id": "user-rec"}
        )

        assert response.status_code == 422

    def test_match_batch_rejects_partial_weights(self, client, db):
        response = client.post(
            "/api/jobs/job-1/match-batch",
            json={"user_ids": ["u-1"], "weights": {"skills": 0.9, "experience": 0.9}},
            headers={"X-User-Id": "user-rec"}
        )

        assert response.status_code == 422

    def test_move_round_capacity(self, client, db):
        error = CapacityError("Round capacity (1) reached", round_index=1, capacity=1)
        with patch.object(HiringPipeline, "move_round", new=AsyncMock(side_effect=error)):
            response = client.put(
                "/api/jobs/applications/app-1/move-round",
                json={"round_index": 1},
                headers={"X-User-Id": "user-rec"}
            )

        assert response.status_code == 400
        body = response.json()
        assert body["error"]["error_code"] == "CAPACITY_EXCEEDED"
        assert body["error"]["details"]["capacity"] == 1

    def test_move_round_lock_conflict(self, client, db):
        error = ConflictError("Round 1 is being updated by another request, please retry", resource="job-1:1")
        with patch.object(HiringPipeline, "move_round", new=AsyncMock(side_effect=error)):
            response = client.put(
                "/api/jobs/applications/app-1/move-round",
                json={"round_index": 1},
                headers={"X-User-Id": "user-rec"}
            )

        assert response.status_code == 409

    def test_move_round_unknown_status(self, client, db):
        response = client.put(
            "/api/jobs/applications/app-1/move-round",
            json={"status": "hired-on-the-spot"},
            headers={"X-User-Id": "user-rec"}
        )

        assert response.status_code == 422

    def test_update_status(self, client, db):
        updated = JobApplicationModel(**{**APPLICATION, "status": "shortlisted"})
        with patch.object(HiringPipeline, "update_status", new=AsyncMock(return_value=updated)) as update:
            response = client.put(
                "/api/jobs/applications/app-1/status",
                json={"status": "shortlisted", "note": "strong"},
                headers={"X-User-Id": "user-rec"}
            )

        assert response.status_code == 200
        assert response.json()["status"] == "shortlisted"
        assert update.call_args[0][2:] == ("shortlisted", "strong")

    def test_bulk_action(self, client, db):
        result = BulkActionResponse(updated=1, results=[
            BulkItemResult(application_id="app-1", success=True),
            BulkItemResult(application_id="app-2", success=False, error="Unauthorized"),
        ])
        with patch.object(HiringPipeline, "bulk_action", new=AsyncMock(return_value=result)) as bulk:
            response = client.post(
                "/api/jobs/applications/bulk-action",
                json={"application_ids": ["app-1", "app-2"], "action": "move", "data": {"round_index": 0}},
                headers={"X-User-Id": "user-rec"}
            )

        assert response.status_code == 200
        data = response.json()
        assert data["updated"] == 1
        assert data["results"][1]["error"] == "Unauthorized"
        assert bulk.call_args[0][3].round_index == 0

    def test_bulk_action_unknown_action(self, client, db):
        response = client.post(
            "/api/jobs/applications/bulk-action",
            json={"application_ids": ["app-1"], "action": "archive"},
            headers={"X-User-Id": "user-rec"}
        )

        assert response.status_code == 422
