"""Tests for the HTTP and WebSocket API."""

import pytest
from fastapi.testclient import TestClient

from fake_engines import make_config
from readycheck.config import get_settings
from readycheck.main import app
from readycheck.models.results import AggregateResult
from readycheck.services.rate_limiter import rate_limiter


# ─── Fixtures ─────────────────────────────────────────────────────────────────


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


def start_run(client: TestClient, **body) -> dict:
    payload = {
        "enabled_phases": ["static_analysis", "security_audit"],
        "engines": {
            "static_analysis": "fake_engines:FakeEngine",
            "security_audit": "fake_engines:FailingEngine",
        },
        "log_level": "DEBUG",
        **body,
    }
    response = client.post("/api/v1/runs", json=payload)
    assert response.status_code == 202, response.text
    return response.json()


# ─── Tests: Service endpoints ─────────────────────────────────────────────────


class TestService:
    def test_root(self, client):
        assert client.get("/").json()["name"] == "readycheck"

    def test_health_without_engines(self, client):
        body = client.get("/api/v1/health").json()
        assert body["status"] == "healthy"
        assert body["dependencies"] == {}

    def test_health_reports_unloadable_engine(self, client, monkeypatch):
        monkeypatch.setenv("ENGINES", '{"static_analysis": "fake_engines:FakeEngine", "security_audit": "nope:Engine"}')
        get_settings.cache_clear()

        body = client.get("/api/v1/health").json()

        assert body["status"] == "degraded"
        assert body["dependencies"]["engine:static_analysis"]["status"] == "healthy"
        assert body["dependencies"]["engine:security_audit"]["status"] == "unhealthy"

    def test_phases_in_execution_order(self, client):
        phases = client.get("/api/v1/phases").json()
        assert [p["id"] for p in phases] == [
            "static_analysis",
            "database_simulation",
            "security_audit",
            "performance_analysis",
            "configuration_audit",
        ]
        assert phases[1]["dependencies"] == ["static_analysis"]
        assert phases[0]["steps"][0]["id"] == "analyze_ios_modules"


# ─── Tests: Runs ──────────────────────────────────────────────────────────────


class TestRuns:
    def test_run_lifecycle(self, client):
        created = start_run(client)
        run_id = created["run_id"]
        assert created["websocket_url"] == f"/ws/runs/{run_id}"
        assert created["engines"] == ["static_analysis", "security_audit"]

        status = client.get(f"/api/v1/runs/{run_id}").json()
        assert status["status"] == "complete"
        assert status["verdict"]["overall_status"] == "FAIL"
        assert status["verdict"]["production_readiness"] == "NOT_READY"
        assert status["verdict"]["critical_issues"] == 1
        assert status["progress"]["percent_complete"] == 100

        progress = client.get(f"/api/v1/runs/{run_id}/progress").json()
        assert progress["completed_steps"] == progress["total_steps"]

    def test_result_formats(self, client):
        run_id = start_run(client)["run_id"]

        as_json = client.get(f"/api/v1/runs/{run_id}/result")
        assert as_json.headers["content-type"].startswith("application/json")
        restored = AggregateResult.model_validate_json(as_json.text)
        assert restored.execution_id == run_id
        assert restored.issues_by_severity["CRITICAL"] == 1

        markdown = client.get(f"/api/v1/runs/{run_id}/result", params={"format": "markdown"})
        assert markdown.headers["content-type"].startswith("text/markdown")
        assert markdown.text.startswith("# System Validation Report")

        as_csv = client.get(f"/api/v1/runs/{run_id}/result", params={"format": "CSV"})
        assert as_csv.text.splitlines()[0].startswith("id,name,status")

    def test_unknown_result_format(self, client):
        run_id = start_run(client)["run_id"]
        response = client.get(f"/api/v1/runs/{run_id}/result", params={"format": "pdf"})
        assert response.status_code == 422

    def test_logs_with_level_filter(self, client):
        run_id = start_run(client)["run_id"]

        logs = client.get(f"/api/v1/runs/{run_id}/logs").json()
        assert any(entry["category"] == "VALIDATION_START" for entry in logs)

        warnings = client.get(f"/api/v1/runs/{run_id}/logs", params={"level": "warn"}).json()
        assert all(entry["level"] == "WARN" for entry in warnings)

    def test_list_runs_newest_first(self, client):
        first = start_run(client)["run_id"]
        second = start_run(client)["run_id"]

        runs = client.get("/api/v1/runs", params={"limit": 2}).json()
        assert [r["run_id"] for r in runs] == [second, first]

    def test_default_engines_from_settings(self, client, monkeypatch):
        monkeypatch.setenv("ENGINES", '{"configuration_audit": "fake_engines:FakeEngine"}')
        get_settings.cache_clear()

        created = client.post("/api/v1/runs", json={"enabled_phases": ["configuration_audit"]}).json()

        assert created["engines"] == ["configuration_audit"]
        verdict = client.get(f"/api/v1/runs/{created['run_id']}").json()["verdict"]
        assert verdict["production_readiness"] == "PRODUCTION_READY"


class TestErrors:
    def test_unknown_run(self, client):
        response = client.get("/api/v1/runs/run_missing")
        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    def test_unknown_phase(self, client):
        response = client.post("/api/v1/runs", json={"enabled_phases": ["bluetooth_audit"], "engines": {}})
        assert response.status_code == 422

    def test_unloadable_engine(self, client):
        response = client.post("/api/v1/runs", json={"engines": {"static_analysis": "nope:Engine"}})
        assert response.status_code == 422
        assert response.json()["error"] == "engine_load_error"

    def test_result_before_run_finishes(self, client):
        record = client.app.state.run_manager.create_run(make_config(), {})

        response = client.get(f"/api/v1/runs/{record.run_id}/result")

        assert response.status_code == 409
        assert response.json()["error"] == "no_result"

    def test_rate_limited(self, client, monkeypatch):
        monkeypatch.setattr(rate_limiter, "max_tokens", 1)
        start_run(client)

        response = client.post("/api/v1/runs", json={"engines": {}})

        assert response.status_code == 429
        assert response.json()["detail"]["error"] == "Rate limit exceeded"


# ─── Tests: WebSocket ─────────────────────────────────────────────────────────


class TestWebSocket:
    def test_replays_history_and_answers_commands(self, client):
        run_id = start_run(client)["run_id"]

        with client.websocket_connect(f"/ws/runs/{run_id}") as ws:
            history = ws.receive_json()
            assert history["type"] == "event_history"
            types = [e["type"] for e in history["events"]]
            assert types[0] == "run_started"
            assert types[-1] == "run_completed"

            ws.send_json({"type": "ping"})
            assert ws.receive_json() == {"type": "pong"}

            ws.send_json({"type": "progress"})
            snapshot = ws.receive_json()
            assert snapshot["type"] == "progress_snapshot"
            assert snapshot["percent_complete"] == 100

            ws.send_text("not json")
            assert ws.receive_json() == {"type": "error", "message": "Invalid JSON"}
