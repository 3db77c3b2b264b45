"""
Tests for the HTTP API: status, jobs, history, stats and queue.
"""

from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from crawler.config import config
from crawler.database import NewQueueItem

T0 = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def source_id(test_db):
    return test_db.add_source("Example", "rss", "https://news.example.com/feed.xml")


def stage(test_db, source_id: int, url: str, priority: int = 5) -> int:
    result = test_db.enqueue(
        NewQueueItem(source_id=source_id, original_url=url, extracted_url=url, title="T", priority=priority),
        T0,
    )
    return result.item_id


class TestStatus:
    """Tests for the health endpoint."""

    def test_status(self, client, test_db, source_id):
        stage(test_db, source_id, "https://a.example.com/1")

        response = client.get("/status")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["scheduler_running"] is False
        assert data["queue"] == {"pending": 1, "processed": 0, "failed": 0, "duplicate": 0}


class TestJobRoutes:
    """Tests for job listing and manual triggers."""

    def test_list_and_get_jobs(self, client, test_db, source_id):
        job_id = test_db.create_job(source_id, T0)
        test_db.fail_job(job_id, "boom", T0)

        listed = client.get("/jobs", params={"source_id": source_id})
        single = client.get(f"/jobs/{job_id}")

        assert listed.status_code == 200
        assert [j["id"] for j in listed.json()] == [job_id]
        assert single.json()["status"] == "failed"
        assert single.json()["error_message"] == "boom"

    def test_filter_by_status(self, client, test_db, source_id):
        test_db.create_job(source_id, T0)

        assert client.get("/jobs", params={"status": "completed"}).json() == []
        assert len(client.get("/jobs", params={"status": "pending"}).json()) == 1
        assert client.get("/jobs", params={"status": "bogus"}).status_code == 422

    def test_missing_job(self, client):
        response = client.get("/jobs/999")
        assert response.status_code == 404
        assert response.json()["detail"] == "Job not found"

    def test_trigger_unknown_source(self, client):
        assert client.post("/crawl/999").status_code == 404

    def test_trigger_busy_source(self, client, test_db, source_id):
        job_id = test_db.create_job(source_id, T0)
        test_db.start_job(job_id, T0)

        assert client.post(f"/crawl/{source_id}").status_code == 409

    def test_trigger_accepted(self, client, fake_http, source_id):
        fake_http.add(
            "https://news.example.com/feed.xml",
            '<rss version="2.0"><channel><title>x</title></channel></rss>',
        )

        response = client.post(f"/crawl/{source_id}")

        assert response.status_code == 202
        assert response.json() == {"source_id": source_id, "status": "started"}


class TestHistoryAndStats:
    """Tests for history and statistics endpoints."""

    def test_history(self, client, test_db, source_id):
        job_id = test_db.create_job(source_id, T0)
        test_db.record_history(source_id, job_id, "https://a.example.com/1", "One", True, T0)

        response = client.get(f"/history/{source_id}")

        assert response.status_code == 200
        assert response.json()[0]["url"] == "https://a.example.com/1"
        assert response.json()[0]["submitted"] is True

    def test_history_unknown_source(self, client):
        assert client.get("/history/999").status_code == 404

    def test_stats(self, client, test_db, source_id):
        job_id = test_db.create_job(source_id, T0)
        test_db.start_job(job_id, T0)
        test_db.complete_job(job_id, 0, 0, T0)

        data = client.get("/stats").json()

        assert data[0]["source_name"] == "Example"
        assert data[0]["completed_crawls"] == 1
        assert data[0]["success_rate"] == 1.0


class TestQueueRoutes:
    """Tests for the submission queue endpoints."""

    def test_pending_in_priority_order(self, client, test_db, source_id):
        stage(test_db, source_id, "https://a.example.com/low", priority=5)
        stage(test_db, source_id, "https://a.example.com/high", priority=8)

        data = client.get("/queue").json()

        assert [item["extracted_url"] for item in data] == [
            "https://a.example.com/high",
            "https://a.example.com/low",
        ]

    def test_mark_processed(self, client, test_db, source_id):
        item_id = stage(test_db, source_id, "https://a.example.com/1")

        response = client.patch(f"/queue/{item_id}", json={"status": "processed"})

        assert response.status_code == 200
        assert response.json()["status"] == "processed"
        assert client.get("/queue").json() == []

    def test_failed_requires_message(self, client, test_db, source_id):
        item_id = stage(test_db, source_id, "https://a.example.com/1")

        assert client.patch(f"/queue/{item_id}", json={"status": "failed"}).status_code == 400
        ok = client.patch(f"/queue/{item_id}", json={"status": "failed", "error_message": "spam"})
        assert ok.json()["error_message"] == "spam"

    def test_terminal_row_conflict(self, client, test_db, source_id):
        item_id = stage(test_db, source_id, "https://a.example.com/1")
        client.patch(f"/queue/{item_id}", json={"status": "duplicate"})

        assert client.patch(f"/queue/{item_id}", json={"status": "processed"}).status_code == 409

    def test_cannot_return_to_pending(self, client, test_db, source_id):
        item_id = stage(test_db, source_id, "https://a.example.com/1")
        assert client.patch(f"/queue/{item_id}", json={"status": "pending"}).status_code == 422

    def test_unknown_item(self, client):
        assert client.get("/queue/999").status_code == 404
        assert client.patch("/queue/999", json={"status": "processed"}).status_code == 404


class TestAuth:
    """Tests for optional API key authentication."""

    def test_open_when_no_key_configured(self, client):
        assert client.get("/stats").status_code == 200

    def test_requires_key_when_configured(self, client):
        with patch.object(config, "AUTH_API_KEY", "secret"):
            assert client.get("/stats").status_code == 401
            assert client.get("/stats", headers={"X-API-Key": "wrong"}).status_code == 401
            assert client.get("/stats", headers={"X-API-Key": "secret"}).status_code == 200
            # Health check stays public
            assert client.get("/status").status_code == 200

    def test_queue_and_job_routes_are_guarded(self, client):
        with patch.object(config, "AUTH_API_KEY", "secret"):
            assert client.get("/queue").status_code == 401
            assert client.patch("/queue/1", json={"status": "processed"}).status_code == 401
            assert client.get("/jobs").status_code == 401
            assert client.get("/jobs", headers={"X-API-Key": "secret"}).status_code == 200
