"""Tests for the readycheck command line."""

import json
from pathlib import Path

import typer.testing

from readycheck.cli import app
from readycheck.models.results import AggregateResult


def invoke(*args: str):
    runner = typer.testing.CliRunner()
    return runner.invoke(app, list(args))


def test_phases_lists_catalog_in_order() -> None:
    result = invoke("phases")
    assert result.exit_code == 0, result.output
    lines = result.output.strip().splitlines()
    assert lines[0].startswith("static_analysis")
    assert lines[-1].startswith("configuration_audit")


def test_phases_as_json() -> None:
    result = invoke("phases", "--json")
    payload = json.loads(result.output)
    assert [p["id"] for p in payload][2] == "security_audit"
    assert payload[2]["steps"] == ["audit_token_security", "audit_database_security", "audit_payload_security"]


def test_run_ready_exits_zero_and_writes_files(tmp_path: Path) -> None:
    result = invoke(
        "run",
        "--engine", "static_analysis=fake_engines:FakeEngine",
        "--engine", "configuration_audit=fake_engines:FakeEngine",
        "--phase", "static_analysis",
        "--phase", "configuration_audit",
        "--output-dir", str(tmp_path),
    )

    assert result.exit_code == 0, result.output
    assert "Production Readiness: PRODUCTION_READY" in result.output

    result_files = list(tmp_path.glob("validation-result-*.json"))
    log_files = list(tmp_path.glob("validation-logs-*.json"))
    assert len(result_files) == 1
    assert len(log_files) == 1

    restored = AggregateResult.model_validate_json(result_files[0].read_text(encoding="utf-8"))
    assert restored.overall_status == "PASS"
    assert json.loads(log_files[0].read_text(encoding="utf-8"))


def test_run_not_ready_exits_one(tmp_path: Path) -> None:
    result = invoke(
        "run",
        "--engine", "security_audit=fake_engines:FailingEngine",
        "--phase", "security_audit",
        "--format", "markdown",
        "--output-dir", str(tmp_path),
    )

    assert result.exit_code == 1, result.output
    assert "Production Readiness: NOT_READY" in result.output
    assert "Critical issues:" in result.output
    report = next(tmp_path.glob("validation-result-*.md")).read_text(encoding="utf-8")
    assert report.startswith("# System Validation Report")


def test_missing_engines_are_not_ready(tmp_path: Path) -> None:
    result = invoke("run", "--phase", "security_audit", "--output-dir", str(tmp_path))

    assert result.exit_code == 1
    assert "NO_ENGINE" in result.output


def test_malformed_engine_spec() -> None:
    result = invoke("run", "--engine", "static_analysis")
    assert result.exit_code == 2


def test_unloadable_engine() -> None:
    result = invoke("run", "--engine", "static_analysis=nope:Engine")
    assert result.exit_code == 2
    assert "Cannot import" in result.output


def test_unknown_phase() -> None:
    result = invoke("run", "--phase", "bluetooth_audit")
    assert result.exit_code == 2
