"""Result serializer — stateless rendering of results into JSON, Markdown, HTML or CSV.

JSON is lossless for AggregateResult (with default options it round-trips
through AggregateResult.model_validate_json). Markdown and HTML are lossy,
human-oriented renderings.
"""

import csv
import io
import json
from html import escape
from typing import Optional, Union

from pydantic import BaseModel

from readycheck.models.execution import OutputFormat
from readycheck.models.findings import Finding, PhaseResult
from readycheck.models.results import AggregateResult, ProgressSnapshot
from readycheck.orchestration.phases import PHASE_CATALOG

CSV_HEADERS = ["id", "name", "status", "severity", "category", "message", "timestamp", "execution_time_ms"]

_TIMESTAMP_FIELDS = {"timestamp", "execution_timestamp", "start_time", "end_time"}


class SerializationOptions(BaseModel):
    include_details: bool = True
    include_evidence: bool = True
    include_timestamps: bool = True
    prettify: bool = True

    model_config = {"frozen": True}


def _strip(data, options: SerializationOptions):
    """Recursively drop fields the options exclude."""
    if isinstance(data, list):
        return [_strip(item, options) for item in data]
    if not isinstance(data, dict):
        return data
    cleaned = {}
    for key, value in data.items():
        if not options.include_timestamps and key in _TIMESTAMP_FIELDS:
            continue
        if not options.include_details and key == "details":
            continue
        if not options.include_evidence and key == "evidence":
            continue
        cleaned[key] = _strip(value, options)
    return cleaned


class ResultSerializer:
    """Pure transforms from result models to an external representation."""

    def __init__(self, options: Optional[SerializationOptions] = None):
        self.options = options or SerializationOptions()

    # ── Entry points ──

    def serialize_result(self, result: AggregateResult, fmt: Union[OutputFormat, str] = OutputFormat.JSON) -> str:
        fmt = OutputFormat(fmt.upper() if isinstance(fmt, str) else fmt)
        if fmt == OutputFormat.MARKDOWN:
            return self._result_markdown(result)
        if fmt == OutputFormat.HTML:
            return self._result_html(result)
        if fmt == OutputFormat.CSV:
            findings = [f for phase in result.present_phases() for f in phase.results]
            return self._findings_csv(findings)
        return self._json(result)

    def serialize_phase(self, phase: PhaseResult, fmt: Union[OutputFormat, str] = OutputFormat.JSON) -> str:
        fmt = OutputFormat(fmt.upper() if isinstance(fmt, str) else fmt)
        if fmt == OutputFormat.MARKDOWN:
            return self._phase_markdown(phase, include_all=self.options.include_details)
        if fmt == OutputFormat.HTML:
            return self._phase_html(phase)
        if fmt == OutputFormat.CSV:
            return self._findings_csv(phase.results)
        return self._json(phase)

    def serialize_finding(self, finding: Finding, fmt: Union[OutputFormat, str] = OutputFormat.JSON) -> str:
        fmt = OutputFormat(fmt.upper() if isinstance(fmt, str) else fmt)
        if fmt == OutputFormat.MARKDOWN:
            return self._finding_markdown(finding)
        if fmt == OutputFormat.HTML:
            return self._finding_html(finding)
        if fmt == OutputFormat.CSV:
            return self._findings_csv([finding])
        return self._json(finding)

    def serialize_progress(self, progress: ProgressSnapshot, fmt: Union[OutputFormat, str] = OutputFormat.JSON) -> str:
        fmt = OutputFormat(fmt.upper() if isinstance(fmt, str) else fmt)
        if fmt == OutputFormat.MARKDOWN:
            return self._progress_markdown(progress)
        return self._json(progress)

    # ── JSON ──

    def _json(self, model: BaseModel) -> str:
        data = _strip(model.model_dump(mode="json"), self.options)
        if self.options.prettify:
            return json.dumps(data, indent=2)
        return json.dumps(data, separators=(",", ":"))

    # ── Markdown ──

    def _finding_markdown(self, finding: Finding) -> str:
        lines = [
            f"## {finding.name}",
            "",
            f"**Status:** {finding.status}",
            f"**Severity:** {finding.severity}",
            f"**Category:** {finding.category}",
        ]
        if self.options.include_timestamps:
            lines.append(f"**Timestamp:** {finding.timestamp.isoformat()}")
        lines += ["", f"**Message:** {finding.message}"]

        if self.options.include_details and finding.details:
            details = finding.details if isinstance(finding.details, str) else json.dumps(finding.details, indent=2)
            lines += ["", "**Details:**", details]

        if finding.recommendations:
            lines += ["", "**Recommendations:**"]
            lines += [f"- {rec}" for rec in finding.recommendations]

        if self.options.include_evidence and finding.evidence:
            lines += ["", "**Evidence:**"]
            for ev in finding.evidence:
                lines.append(f"- **{ev.type}** ({ev.severity}): {ev.details}")
                if ev.location:
                    location = f"{ev.location}:{ev.line_number}" if ev.line_number else ev.location
                    lines.append(f"  - Location: {location}")

        return "\n".join(lines) + "\n"

    def _phase_markdown(self, phase: PhaseResult, include_all: bool) -> str:
        lines = [
            f"# {phase.phase_name}",
            "",
            f"**Status:** {phase.status}",
            f"**Duration:** {phase.duration_ms or 0}ms",
            f"**Results Count:** {len(phase.results)}",
            f"**Critical Issues:** {len(phase.critical_issues)}",
            "",
            "## Summary",
            phase.summary,
            "",
        ]
        parts = ["\n".join(lines)]

        if phase.critical_issues:
            parts.append("## Critical Issues\n")
            for issue in phase.critical_issues:
                parts.append(self._finding_markdown(issue) + "\n---\n")

        if phase.recommendations:
            parts.append("## Recommendations\n" + "".join(f"- {r}\n" for r in phase.recommendations))

        if include_all and phase.results:
            parts.append("## All Results\n")
            for finding in phase.results:
                parts.append(self._finding_markdown(finding) + "\n---\n")

        return "\n".join(parts)

    def _result_markdown(self, result: AggregateResult) -> str:
        parts = [
            "# System Validation Report\n",
            f"**Execution ID:** {result.execution_id}",
            f"**Timestamp:** {result.execution_timestamp.isoformat()}",
            f"**Version:** {result.validation_version}",
            f"**Overall Status:** {result.overall_status}",
            f"**Production Readiness:** {result.production_readiness}",
            f"**Confidence Level:** {result.confidence_level}",
            f"**Health Score:** {result.health_score:.0f}/100 ({result.health_rating})",
            f"**Total Execution Time:** {result.total_execution_time_ms:.0f}ms",
            f"**Total Issues Found:** {result.total_issues_found}\n",
            "## Executive Summary\n",
            (
                f"Validation completed with an overall status of **{result.overall_status}**. "
                f"The system is assessed as **{result.production_readiness}** for production "
                f"deployment with **{result.confidence_level}** confidence.\n"
            ),
            "### Issues by Category",
        ]
        parts += [f"- **{k}:** {v} issues" for k, v in result.issues_by_category.items() if v > 0]
        parts += ["", "### Issues by Severity"]
        parts += [f"- **{k}:** {v} issues" for k, v in result.issues_by_severity.items() if v > 0]
        parts.append("")

        if result.phase_outcomes:
            parts.append("### Phase Outcomes")
            parts += [f"- **{k}:** {v}" for k, v in result.phase_outcomes.items()]
            parts.append("")

        if result.critical_issues:
            parts.append("## Critical Issues Requiring Immediate Attention\n")
            for index, issue in enumerate(result.critical_issues, start=1):
                parts.append(f"### {index}. {issue.name}")
                parts.append(self._finding_markdown(issue))

        for definition in PHASE_CATALOG:
            phase = result.get_phase(definition.id)
            if phase is not None:
                parts.append(f"## {definition.name} Phase\n")
                parts.append(self._phase_markdown(phase, include_all=False))

        if result.all_recommendations:
            parts.append("## Overall Recommendations\n")
            parts += [f"{i}. {rec}" for i, rec in enumerate(result.all_recommendations, start=1)]

        return "\n".join(parts) + "\n"

    def _progress_markdown(self, progress: ProgressSnapshot) -> str:
        lines = [
            "# Validation Progress",
            "",
            f"**Current Phase:** {progress.current_phase}",
            f"**Current Step:** {progress.current_step}",
            f"**Progress:** {progress.completed_steps}/{progress.total_steps} ({progress.percent_complete:.1f}%)",
        ]
        if progress.estimated_time_remaining_ms:
            minutes = -(-progress.estimated_time_remaining_ms // 60_000)
            lines.append(f"**Estimated Time Remaining:** {minutes:.0f} minutes")
        if progress.errors:
            lines += ["", f"## Errors ({len(progress.errors)})"] + [f"- {e}" for e in progress.errors]
        if progress.warnings:
            lines += ["", f"## Warnings ({len(progress.warnings)})"] + [f"- {w}" for w in progress.warnings]
        return "\n".join(lines) + "\n"

    # ── HTML ──

    def _finding_html(self, finding: Finding) -> str:
        html = [
            f'<div class="validation-result {finding.status.lower()} {finding.severity.lower()}">',
            f"<h3>{escape(finding.name)}</h3>",
            '<div class="result-meta">',
            f'<span class="status">{finding.status}</span>',
            f'<span class="severity">{finding.severity}</span>',
            f'<span class="category">{finding.category}</span>',
        ]
        if self.options.include_timestamps:
            html.append(f'<span class="timestamp">{finding.timestamp.isoformat()}</span>')
        html.append("</div>")
        html.append(f'<p class="message">{escape(finding.message)}</p>')

        if self.options.include_details and finding.details:
            details = finding.details if isinstance(finding.details, str) else json.dumps(finding.details, indent=2)
            html.append(f'<div class="details"><pre>{escape(details)}</pre></div>')

        if finding.recommendations:
            html.append('<div class="recommendations"><h4>Recommendations:</h4><ul>')
            html += [f"<li>{escape(rec)}</li>" for rec in finding.recommendations]
            html.append("</ul></div>")

        html.append("</div>")
        return "".join(html)

    def _phase_html(self, phase: PhaseResult) -> str:
        html = [
            f'<div class="phase-result {phase.status.lower()}">',
            f"<h2>{escape(phase.phase_name)}</h2>",
            '<div class="phase-meta">',
            f'<span class="status">{phase.status}</span>',
            f'<span class="duration">{phase.duration_ms or 0}ms</span>',
            f'<span class="result-count">{len(phase.results)} results</span>',
            "</div>",
            f'<p class="summary">{escape(phase.summary)}</p>',
        ]
        if phase.critical_issues:
            html.append('<div class="critical-issues"><h3>Critical Issues</h3>')
            html += [self._finding_html(issue) for issue in phase.critical_issues]
            html.append("</div>")
        html.append("</div>")
        return "".join(html)

    def _result_html(self, result: AggregateResult) -> str:
        readiness_class = result.production_readiness.lower().replace("_", "-")
        html = [
            f'<div class="system-validation-result {result.overall_status.lower()} {readiness_class}">',
            "<h1>System Validation Report</h1>",
            '<div class="executive-summary">',
            "<h2>Executive Summary</h2>",
            '<div class="summary-grid">',
            f'<div class="summary-item"><label>Status:</label><span class="status">{result.overall_status}</span></div>',
            f'<div class="summary-item"><label>Production Readiness:</label><span class="readiness">{result.production_readiness}</span></div>',
            f'<div class="summary-item"><label>Confidence:</label><span class="confidence">{result.confidence_level}</span></div>',
            f'<div class="summary-item"><label>Total Issues:</label><span class="issue-count">{result.total_issues_found}</span></div>',
            "</div></div>",
        ]
        if result.critical_issues:
            html.append('<div class="critical-issues-section">')
            html.append(f"<h2>Critical Issues ({len(result.critical_issues)})</h2>")
            html += [self._finding_html(issue) for issue in result.critical_issues]
            html.append("</div>")

        phases = result.present_phases()
        if phases:
            html.append('<div class="phases">')
            html += [self._phase_html(phase) for phase in phases]
            html.append("</div>")

        html.append("</div>")
        return "".join(html)

    # ── CSV ──

    def _findings_csv(self, findings: list[Finding]) -> str:
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(CSV_HEADERS)
        for f in findings:
            writer.writerow([
                f.id,
                f.name,
                f.status,
                f.severity,
                f.category,
                f.message,
                f.timestamp.isoformat() if self.options.include_timestamps else "",
                "" if f.execution_time_ms is None else f.execution_time_ms,
            ])
        return buffer.getvalue()


default_serializer = ResultSerializer()
