"""Tests for project-level views and configuration."""

from django.urls import reverse

from parc.views import ratelimited_view


class TestHealthCheck:
    def test_healthy(self, client, db):
        response = client.get(reverse("health_check"))
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "db": True, "cache": True}

    def test_cache_failure_is_degraded(self, client, db, monkeypatch):
        def broken_set(*args, **kwargs):
            raise ConnectionError("redis down")

        monkeypatch.setattr("parc.views.cache.set", broken_set)
        response = client.get(reverse("health_check"))
        assert response.status_code == 200
        assert response.json()["status"] == "degraded"


class TestRateLimitedView:
    def test_returns_429_json(self, rf):
        response = ratelimited_view(rf.get("/public/asset/1"))
        assert response.status_code == 429
        assert response["Retry-After"] == "60"
        assert b"RATE_LIMITED" in response.content
