"""
Integration tests for the business review service.
"""

import asyncio
import json
import threading
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import AsyncMock, patch

import pytest
from dagster import build_op_context

from business_reviews import ReviewService
from business_reviews.orchestration.dagster_pipeline import review_refresh_pipeline, validate_reviews
from business_reviews.strategies import StrategyDescriptor
from business_reviews.web import ReviewsApp
from business_reviews.web.loop import BackgroundLoop


class SlowStrategy:
    """Strategy stand-in that returns a fixed batch after a short delay."""

    def __init__(self, reviews, delay=0.0):
        self.reviews = reviews
        self.delay = delay
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        await asyncio.sleep(self.delay)
        return list(self.reviews)


@pytest.fixture
def strategy(review_factory):
    return SlowStrategy([review_factory(0), review_factory(1)])


@pytest.fixture
def service(sample_config, clock, strategy):
    return ReviewService(
        sample_config,
        strategies=[StrategyDescriptor("google_places_api", 5, strategy)],
        clock=clock,
        env={},
    )


@pytest.fixture
def api(service):
    reviews_app = ReviewsApp(service=service)
    yield reviews_app
    reviews_app.loop.stop()


class TestReviewService:
    """Integration tests for the service context."""

    def test_default_strategy_chain(self, sample_config):
        service = ReviewService(sample_config, env={})

        assert [s.name for s in service.executor.strategies] == [
            "google_places_api",
            "apify_dataset",
            "html_direct",
            "html_alternate_urls",
        ]
        assert service.config["quota"]["daily_limit"] == 10
        assert service.config["business"]["language"] == "ar"

    def test_strategy_order_from_config(self, sample_config):
        sample_config["strategies"] = {"order": ["html_direct", "not_a_strategy"]}

        service = ReviewService(sample_config, env={})

        assert [s.name for s in service.executor.strategies] == ["html_direct"]

    @pytest.mark.asyncio
    async def test_health_check(self, sample_config):
        service = ReviewService(sample_config, env={"GOOGLE_MAPS_API_KEY": "key"})

        health_status = await service.health_check()

        assert health_status["state_store"] is True
        assert health_status["static_dataset"] is True
        assert health_status["strategy_google_places_api"] is True
        assert health_status["strategy_apify_dataset"] is False

    @pytest.mark.asyncio
    async def test_apify_session_gets_chain_timeout(self, sample_config):
        service = ReviewService(sample_config, env={"APIFY_TOKEN": "token"})
        apify = next(s for s in service.strategy_objects if s.name == "apify_dataset")
        descriptor = next(d for d in service.executor.strategies if d.name == "apify_dataset")
        seen = []

        async def record_timeout():
            seen.append(apify.session.timeout.total)
            return []

        with patch.object(apify, "fetch_reviews", AsyncMock(side_effect=record_timeout)):
            await descriptor.invoke()

        assert descriptor.timeout == 120
        assert seen == [descriptor.timeout]

    @pytest.mark.asyncio
    async def test_live_fetch_persists_state(self, service, state_path):
        reviews = await service.get_reviews()

        assert len(reviews) == 2
        assert all(r.source == "google_places_api" for r in reviews)

        data = json.loads(state_path.read_text(encoding="utf-8"))
        assert data["count"] == 2
        assert data["source"] == "google_places_api"
        assert data["dailyCount"] == {"date": "2025-03-14", "count": 1}
        assert data["monthlyCount"] == {"month": "2025-03", "count": 1}

    @pytest.mark.asyncio
    async def test_status_after_fetch(self, service):
        await service.get_reviews()

        status = service.get_status()

        assert status["has_cache"] is True
        assert status["is_valid"] is True
        assert status["cached_count"] == 2
        assert status["counters"]["daily"]["count"] == 1
        assert status["last_resolution"] == "live"
        assert status["last_attempts"][0]["outcome"] == "success"
        assert status["fetch_in_flight"] is False

    @pytest.mark.asyncio
    async def test_restart_uses_persisted_cache(self, service, sample_config, clock, review_factory):
        await service.get_reviews()

        replacement = SlowStrategy([review_factory(9)])
        restarted = ReviewService(
            sample_config,
            strategies=[StrategyDescriptor("google_places_api", 5, replacement)],
            clock=clock,
            env={},
        )
        reviews = await restarted.get_reviews()

        assert [r.id for r in reviews] == ["test_0", "test_1"]
        assert replacement.calls == 0

    @pytest.mark.asyncio
    async def test_static_fallback_without_strategies(self, sample_config, clock):
        service = ReviewService(sample_config, strategies=[], clock=clock, env={})

        reviews = await service.get_reviews(force_refresh=True)

        assert reviews
        assert all(r.source == "static_dataset" and not r.is_live for r in reviews)

    @pytest.mark.asyncio
    async def test_export_reviews(self, service, tmp_path):
        reviews = await service.get_reviews()
        output = tmp_path / "export.json"

        count = service.export_reviews(reviews, str(output))

        assert count == 2
        assert json.loads(output.read_text(encoding="utf-8"))[0]["isLive"] is True


class TestReviewsApi:
    """Integration tests for the HTTP layer."""

    def test_index(self, api):
        response = api.app.test_client().get("/")

        assert response.status_code == 200
        assert response.get_json()["endpoints"]["reviews"] == "/api/reviews"

    def test_get_reviews(self, api):
        response = api.app.test_client().get("/api/reviews")

        assert response.status_code == 200
        assert response.headers["Cache-Control"] == "public, max-age=300"
        body = response.get_json()
        assert body["success"] is True
        assert body["count"] == 2
        assert body["data"][0]["source"] == "google_places_api"
        assert {"profileImage", "scrapedAt", "isLive"} <= set(body["data"][0])

    def test_cached_reviews_skip_strategy(self, api, strategy):
        client = api.app.test_client()

        client.get("/api/reviews")
        client.get("/api/reviews")
        client.get("/api/reviews?forceRefresh=true")

        assert strategy.calls == 2

    def test_concurrent_forced_requests_share_fetch(self, api, strategy):
        strategy.delay = 0.3

        def request_reviews(_):
            return api.app.test_client().get("/api/reviews?forceRefresh=true")

        with ThreadPoolExecutor(max_workers=5) as pool:
            responses = list(pool.map(request_reviews, range(5)))

        assert all(r.status_code == 200 for r in responses)
        assert strategy.calls == 1
        assert api.service.quota.get_counters().daily.count == 1

    def test_resolution_failure_returns_error(self, api):
        async def broken(force_refresh=False):
            raise RuntimeError("event loop gone")

        api.service.get_reviews = broken

        response = api.app.test_client().get("/api/reviews")

        assert response.status_code == 500
        body = response.get_json()
        assert body["success"] is False
        assert body["error"] == "Failed to fetch reviews"

    def test_status_endpoint(self, api):
        response = api.app.test_client().get("/api/reviews/status")

        assert response.status_code == 200
        body = response.get_json()
        assert body["limits"] == {"daily": 10, "monthly": 300}
        assert body["can_fetch"] is True

    def test_clear_cache_endpoint(self, api):
        client = api.app.test_client()
        client.get("/api/reviews")

        response = client.post("/api/reviews/cache/clear")

        assert response.get_json()["success"] is True
        assert api.service.cache.get() is None

    def test_health_endpoint(self, api):
        response = api.app.test_client().get("/api/health")

        assert response.status_code == 200
        assert response.get_json()["state_store"] is True


class TestBackgroundLoop:
    """Integration tests for the shared request event loop."""

    def test_concurrent_start_creates_one_loop(self):
        for _ in range(20):
            background = BackgroundLoop()
            barrier = threading.Barrier(8)
            seen = []

            def start():
                barrier.wait()
                background.start()
                seen.append(id(background.loop))

            threads = [threading.Thread(target=start) for _ in range(8)]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()

            try:
                assert len(set(seen)) == 1
            finally:
                background.stop()

    def test_first_requests_share_one_fetch(self, sample_config, clock, review_factory):
        strategy = SlowStrategy([review_factory(0)], delay=0.2)
        service = ReviewService(
            sample_config,
            strategies=[StrategyDescriptor("google_places_api", 5, strategy)],
            clock=clock,
            env={},
        )
        api = ReviewsApp(service=service)
        barrier = threading.Barrier(6)

        def request_reviews(_):
            client = api.app.test_client()
            barrier.wait()
            return client.get("/api/reviews?forceRefresh=true")

        try:
            with ThreadPoolExecutor(max_workers=6) as pool:
                responses = list(pool.map(request_reviews, range(6)))
        finally:
            api.loop.stop()

        assert all(r.status_code == 200 for r in responses)
        assert strategy.calls == 1
        assert service.quota.get_counters().daily.count == 1


class TestRefreshPipeline:
    """Integration tests for the scheduled refresh job."""

    def test_validate_reviews(self, review_factory):
        reviews = [
            review_factory(0).to_dict(),
            review_factory(0).to_dict(),
            review_factory(1, text="").to_dict(),
            review_factory(2, is_live=False).to_dict(),
        ]

        results = validate_reviews(build_op_context(), reviews)

        assert results["total_records"] == 4
        assert results["duplicate_ids"] == 1
        assert results["missing_text"] == 1
        assert results["static_records"] == 1
        assert results["quality_score"] == pytest.approx(0.5)
        assert results["passed"] is False

    def test_validate_empty_batch(self):
        results = validate_reviews(build_op_context(), [])

        assert results["quality_score"] == 0.0
        assert results["passed"] is False

    def test_pipeline_execution(self, service, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        result = review_refresh_pipeline.execute_in_process(resources={"review_service": service})

        assert result.success
        assert len(result.output_for_node("refresh_reviews")) == 2
        assert result.output_for_node("validate_reviews")["passed"] is True
        assert list((tmp_path / "exports").glob("reviews_snapshot_*.json"))
