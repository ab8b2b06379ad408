import pytest
from datetime import datetime
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock, MagicMock, patch

from skillforge.services.recruiter_stats import build_pipeline


@pytest.fixture
def test_app():
    from fastapi import FastAPI
    from skillforge.routers import recruiters
    from skillforge.middleware.error_handlers import ExceptionHandlerMiddleware

    app = FastAPI()
    app.add_middleware(ExceptionHandlerMiddleware)
    app.include_router(recruiters.router, prefix="/api/recruiters")
    return app


@pytest.fixture
def client(test_app):
    return TestClient(test_app)


def cursor_of(docs):
    cursor = MagicMock()
    cursor.sort.return_value = cursor
    cursor.limit.return_value = cursor
    cursor.to_list = AsyncMock(return_value=docs)
    return cursor


def test_pipeline_buckets():
    pipeline, total = build_pipeline([
        {"_id": "submitted", "count": 3},
        {"_id": "under-review", "count": 2},
        {"_id": "interview-scheduled", "count": 1},
        {"_id": "accepted", "count": 1},
        {"_id": "withdrawn", "count": 4},
    ])

    assert pipeline.applied == 5
    assert pipeline.interview == 1
    assert pipeline.hired == 1
    assert pipeline.rejected == 0
    # Withdrawn applications count in the total only
    assert total == 11


class TestRecruitersRouter:

    @patch('skillforge.services.recruiter_stats.users_coll')
    @patch('skillforge.services.recruiter_stats.applications_coll')
    @patch('skillforge.services.recruiter_stats.jobs_coll')
    @patch('skillforge.routers.deps.recruiters_coll')
    def test_dashboard_stats(self, mock_recruiters_coll, mock_jobs_coll, mock_applications_coll, mock_users_coll, client):
        mock_recruiters_coll.find_one = AsyncMock(return_value={"recruiter_id": "rec-1", "user_id": "user-rec"})
        mock_jobs_coll.find = MagicMock(return_value=cursor_of([
            {"job_id": "job-1", "status": "active", "title": "Backend Engineer"},
            {"job_id": "job-2", "status": "filled", "title": "Data Engineer"},
            {"job_id": "job-3", "status": "draft", "title": "Designer"},
        ]))
        mock_applications_coll.aggregate = MagicMock(return_value=cursor_of([
            {"_id": "submitted", "count": 2},
            {"_id": "rejected", "count": 1},
            {"_id": "accepted", "count": 1},
        ]))
        recent_cursor = cursor_of([{
            "_id": "mongo-id",
            "application_id": "app-1",
            "job_id": "job-1",
            "applicant_id": "user-1",
            "status": "accepted",
            "match_score": 88,
            "updated_at": datetime(2025, 5, 1, 12, 0),
        }])
        mock_applications_coll.find = MagicMock(return_value=recent_cursor)
        mock_users_coll.find = MagicMock(return_value=cursor_of([{"user_id": "user-1", "name": "Ada"}]))

        response = client.get("/api/recruiters/dashboard-stats", headers={"X-User-Id": "user-rec"})

        assert response.status_code == 200
        data = response.json()
        assert data["overview"] == {
            "total_jobs": 3, "active_jobs": 1, "closed_jobs": 1, "total_applications": 4, "hired": 1
        }
        assert data["pipeline"]["applied"] == 2
        assert data["pipeline"]["rejected"] == 1
        activity = data["recent_activity"][0]
        assert activity["job_title"] == "Backend Engineer"
        assert activity["applicant_name"] == "Ada"
        assert "_id" not in activity

        match_stage = mock_applications_coll.aggregate.call_args[0][0][0]
        assert match_stage == {"$match": {"job_id": {"$in": ["job-1", "job-2", "job-3"]}}}
        recent_cursor.sort.assert_called_once_with("updated_at", -1)
        recent_cursor.limit.assert_called_once_with(5)

    @patch('skillforge.routers.deps.recruiters_coll')
    def test_dashboard_requires_recruiter(self, mock_recruiters_coll, client):
        mock_recruiters_coll.find_one = AsyncMock(return_value=None)

        response = client.get("/api/recruiters/dashboard-stats", headers={"X-User-Id": "user-1"})

        assert response.status_code == 403
