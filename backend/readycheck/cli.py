"""Command line entry point: list phases or run a validation with engines loaded by path."""

import asyncio
import json
from pathlib import Path
from typing import List, Optional

import typer

from readycheck.config import get_settings
from readycheck.engines.loader import load_engines
from readycheck.errors import EngineLoadError, UnknownPhaseError
from readycheck.logging_setup import configure_logging
from readycheck.models.execution import ExecutionConfig, OutputFormat
from readycheck.models.results import AggregateResult, ProductionReadiness
from readycheck.orchestration.controller import ValidationController
from readycheck.orchestration.phases import PHASE_CATALOG

app = typer.Typer(add_completion=False, help="Production-readiness validation runner.")

FILE_EXTENSIONS = {
    OutputFormat.JSON: "json",
    OutputFormat.MARKDOWN: "md",
    OutputFormat.HTML: "html",
    OutputFormat.CSV: "csv",
}


def _parse_engine_specs(specs: List[str]) -> dict[str, str]:
    mapping = {}
    for spec in specs:
        role, sep, path = spec.partition("=")
        if not sep or not role.strip() or not path.strip():
            raise typer.BadParameter(f"Expected ROLE=module:Class, got '{spec}'", param_hint="--engine")
        mapping[role.strip()] = path.strip()
    return mapping


async def _execute(controller: ValidationController) -> AggregateResult:
    try:
        return await controller.execute_validation()
    finally:
        await controller.cleanup()


def _print_summary(result: AggregateResult, controller: ValidationController) -> None:
    typer.echo("")
    typer.echo("=" * 60)
    typer.echo(f"Execution ID:         {result.execution_id}")
    typer.echo(f"Overall Status:       {result.overall_status}")
    typer.echo(f"Production Readiness: {result.production_readiness}")
    typer.echo(f"Confidence Level:     {result.confidence_level}")
    typer.echo(f"Health Score:         {result.health_score:.0f} ({result.health_rating})")
    typer.echo(f"Execution Time:       {result.total_execution_time_ms / 1000:.1f}s")
    typer.echo(f"Total Issues:         {result.total_issues_found}")
    typer.echo(f"Critical Issues:      {len(result.critical_issues)}")
    typer.echo("")
    for phase in PHASE_CATALOG:
        outcome = result.phase_outcomes.get(phase.id.value, "-")
        phase_result = result.get_phase(phase.id)
        status = phase_result.status if phase_result else "-"
        typer.echo(f"  {phase.name:<24} {outcome:<10} {status}")

    if result.critical_issues:
        typer.echo("")
        typer.echo("Critical issues:")
        for issue in result.critical_issues[:10]:
            typer.echo(f"  - {issue.name}: {issue.message}")

    progress = controller.get_progress()
    for warning in progress.warnings:
        typer.echo(f"warning: {warning}", err=True)
    typer.echo("=" * 60)


# ─── Commands ───


@app.command()
def phases(as_json: bool = typer.Option(False, "--json", help="Print the catalog as JSON")) -> None:
    """List phases in execution order."""
    if as_json:
        payload = [
            {
                "id": p.id.value,
                "name": p.name,
                "category": p.category.value,
                "estimated_duration_ms": p.estimated_duration_ms,
                "steps": [s.id for s in p.steps],
            }
            for p in PHASE_CATALOG
        ]
        typer.echo(json.dumps(payload, indent=2))
        return

    for p in PHASE_CATALOG:
        typer.echo(f"{p.id.value:<24} {p.name:<24} {len(p.steps)} steps, ~{p.estimated_duration_ms // 1000}s")


@app.command()
def run(
    engine: Optional[List[str]] = typer.Option(
        None, "--engine", "-e", help="ROLE=package.module:Class; repeatable. Defaults to the ENGINES setting"
    ),
    phase: Optional[List[str]] = typer.Option(
        None, "--phase", "-p", help="Phase id to enable; repeatable. Defaults to all phases"
    ),
    output_format: Optional[str] = typer.Option(None, "--format", "-f", help="JSON, MARKDOWN, HTML or CSV"),
    output_dir: Optional[Path] = typer.Option(None, "--output-dir", "-o", help="Where result and log files go"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Run log threshold (DEBUG..CRITICAL)"),
    max_users: Optional[int] = typer.Option(None, "--max-users", min=1, help="Load for the database simulation"),
    timeout_ms: Optional[int] = typer.Option(None, "--timeout-ms", min=1, help="Overall run budget"),
    phase_timeout_ms: Optional[int] = typer.Option(None, "--phase-timeout-ms", min=1, help="Per-phase cap"),
    init_attempts: Optional[int] = typer.Option(None, "--init-attempts", min=1, max=10),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show process logs"),
) -> None:
    """Run a validation; exits 1 when the verdict is NOT_READY."""
    settings = get_settings()
    configure_logging(debug=True, level="debug" if verbose else "warning")

    try:
        config = ExecutionConfig.from_settings(
            enabled_phases=phase or None,
            output_format=output_format,
            log_level=log_level,
            max_concurrent_users=max_users,
            timeout_ms=timeout_ms,
            phase_timeout_ms=phase_timeout_ms,
            init_attempts=init_attempts,
        )
    except ValueError as e:
        raise typer.BadParameter(str(e)) from e

    engine_paths = _parse_engine_specs(engine) if engine else settings.ENGINES
    try:
        engines = load_engines(engine_paths)
    except (EngineLoadError, UnknownPhaseError) as e:
        typer.echo(f"error: {e}", err=True)
        raise typer.Exit(code=2)

    controller = ValidationController(config)
    for role, instance in engines.items():
        controller.register_engine(role, instance)

    typer.echo(f"Starting validation {controller.execution_id}")
    result = asyncio.run(_execute(controller))

    output_dir = output_dir or Path(settings.RESULTS_DIR)
    output_dir.mkdir(parents=True, exist_ok=True)
    fmt = OutputFormat(config.output_format)
    result_path = output_dir / f"validation-result-{controller.execution_id}.{FILE_EXTENSIONS[fmt]}"
    logs_path = output_dir / f"validation-logs-{controller.execution_id}.json"
    result_path.write_text(controller.export_results(fmt), encoding="utf-8")
    logs_path.write_text(controller.export_logs(), encoding="utf-8")

    _print_summary(result, controller)
    typer.echo(f"Results written to {result_path}")
    typer.echo(f"Logs written to {logs_path}")

    if result.production_readiness == ProductionReadiness.NOT_READY.value:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
