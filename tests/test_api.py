"""Tests for the HTTP surface."""

import pytest
from fastapi.testclient import TestClient

from alchemist.api import create_app
from alchemist.services.dispatcher import Backend, FailoverDispatcher
from alchemist.services.errors import ErrorKind
from alchemist.services.merge_service import MergeService
from alchemist.services.policy import DispatchPolicy
from alchemist.services.rate_limiter import CallerRateLimiter
from alchemist.settings import load_settings
from fakes import FakeClock, SleepRecorder, StubAdapter, make_pool


def build_client(adapter, window: float = 0.0, clock=None, env=None) -> TestClient:
    dispatcher = FailoverDispatcher(
        Backend("stub", make_pool(adapter, size=2), ("m1",)),
        policy=DispatchPolicy(),
        sleep=SleepRecorder(),
    )
    service = MergeService(
        dispatcher,
        rate_limiter=CallerRateLimiter(window=window, clock=clock or FakeClock()),
    )
    app = create_app(load_settings(env or {}), service)
    return TestClient(app)


class TestMergeEndpoint:
    def test_fire_and_water(self) -> None:
        adapter = StubAdapter("Steam 🌫️")

        with build_client(adapter) as client:
            first = client.post("/merge", json={"element1": "Fire", "element2": "Water"})
            second = client.post("/merge", json={"element1": "Water", "element2": "Fire"})

        assert first.status_code == 200
        assert first.json() == {"result": "Steam 🌫️"}
        assert second.json() == {"result": "Steam 🌫️"}
        assert len(adapter.calls) == 1

    def test_none_maps_to_null(self) -> None:
        adapter = StubAdapter("None")

        with build_client(adapter) as client:
            first = client.post("/merge", json={"element1": "Fire", "element2": "Fire"})
            second = client.post("/merge", json={"element1": "Fire", "element2": "Fire"})

        assert first.json() == {"result": None}
        assert second.json() == {"result": None}
        assert len(adapter.calls) == 1

    @pytest.mark.parametrize(
        "body",
        [{"element1": "Fire"}, {"element2": "Water"}, {"element1": "", "element2": "Water"}, {}],
    )
    def test_missing_elements(self, body: dict) -> None:
        adapter = StubAdapter("Steam")

        with build_client(adapter) as client:
            response = client.post("/merge", json=body)

        assert response.status_code == 400
        assert response.json()["error"] == "element1 and element2 are required"
        assert adapter.calls == []

    def test_malformed_body(self) -> None:
        with build_client(StubAdapter("Steam")) as client:
            response = client.post(
                "/merge", content=b"not json", headers={"content-type": "application/json"}
            )

        assert response.status_code == 400
        assert set(response.json()) == {"error", "details"}

    def test_rate_limited(self) -> None:
        clock = FakeClock(now=0.0)

        with build_client(StubAdapter("Steam"), window=0.8, clock=clock) as client:
            accepted = client.post("/merge", json={"element1": "Fire", "element2": "Water"})
            rejected = client.post("/merge", json={"element1": "Fire", "element2": "Water"})
            clock.now = 0.8
            later = client.post("/merge", json={"element1": "Fire", "element2": "Water"})

        assert accepted.status_code == 200
        assert rejected.status_code == 429
        assert rejected.headers["retry-after"] == "1"
        assert rejected.json()["error"] == "Too many requests"
        assert later.status_code == 200

    def test_forwarded_caller_when_trusted(self) -> None:
        clock = FakeClock(now=0.0)
        env = {"TRUST_PROXY_HEADERS": "true"}

        with build_client(StubAdapter("Steam"), window=0.8, clock=clock, env=env) as client:
            body = {"element1": "Fire", "element2": "Water"}
            a = client.post("/merge", json=body, headers={"X-Forwarded-For": "198.51.100.1"})
            b = client.post("/merge", json=body, headers={"X-Forwarded-For": "198.51.100.2"})

        assert a.status_code == 200
        assert b.status_code == 200

    def test_backend_unavailable(self) -> None:
        with build_client(StubAdapter(ErrorKind.SERVER)) as client:
            response = client.post("/merge", json={"element1": "Fire", "element2": "Water"})

        assert response.status_code == 503
        body = response.json()
        assert body["error"] == "All providers failed"
        assert body["details"].startswith("server:")

    def test_unconfigured_app_reports_unavailable(self) -> None:
        app = create_app(load_settings({}))

        with TestClient(app) as client:
            response = client.post("/merge", json={"element1": "Fire", "element2": "Water"})

        assert response.status_code == 503

    def test_injected_service_is_used(self) -> None:
        adapter = StubAdapter("Steam")
        service = MergeService(
            FailoverDispatcher(Backend("stub", make_pool(adapter, size=1), ("m1",))),
            rate_limiter=CallerRateLimiter(window=0.0, clock=FakeClock()),
        )
        app = create_app(load_settings({}), service)

        with TestClient(app) as client:
            response = client.post("/merge", json={"element1": "Fire", "element2": "Water"})
            assert app.state.merge_service is service

        assert response.json() == {"result": "Steam"}
        assert adapter.closed


class TestHealthEndpoint:
    def test_health(self) -> None:
        with build_client(StubAdapter("Steam")) as client:
            client.post("/merge", json={"element1": "Fire", "element2": "Water"})
            response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["stats"]["dispatcher"]["succeeded"] == 1
        assert body["stats"]["primary"]["size"] == 2
