"""Tests for the progress tracker."""

import threading

from readycheck.models.execution import PhaseId
from readycheck.orchestration.phases import all_steps, get_phase
from readycheck.orchestration.progress import ProgressTracker

TOTAL_STEPS = len(all_steps())


def run_phase(tracker: ProgressTracker, phase_id: PhaseId, report_steps: bool = True) -> None:
    tracker.start_phase(phase_id)
    if report_steps:
        for step in get_phase(phase_id).steps:
            tracker.start_step(step.id)
            tracker.complete_step(step.id)
    tracker.complete_phase(phase_id)


class TestSnapshot:
    def test_before_start(self):
        snapshot = ProgressTracker().get_progress()
        assert snapshot.current_phase == "Not Started"
        assert snapshot.current_step == "Not Started"
        assert snapshot.completed_steps == 0
        assert snapshot.total_steps == TOTAL_STEPS
        assert snapshot.percent_complete == 0
        assert snapshot.estimated_time_remaining_ms is None

    def test_current_phase_and_step_names(self):
        tracker = ProgressTracker()
        tracker.start_execution()
        tracker.start_phase(PhaseId.SECURITY_AUDIT)
        tracker.start_step("audit_token_security")

        snapshot = tracker.get_progress()
        assert snapshot.current_phase == "Security Audit"
        assert snapshot.current_step == "Audit Token Security"

    def test_failed_step_does_not_count_as_completed(self):
        tracker = ProgressTracker()
        tracker.start_execution([PhaseId.SECURITY_AUDIT])
        tracker.start_phase(PhaseId.SECURITY_AUDIT)
        tracker.start_step("audit_token_security")
        tracker.complete_step("audit_token_security", success=False)

        assert tracker.get_progress().completed_steps == 0

    def test_errors_and_warnings_are_copied(self):
        tracker = ProgressTracker()
        tracker.add_error("boom")
        tracker.add_warning("careful")
        snapshot = tracker.get_progress()
        snapshot.errors.append("mutated")

        assert tracker.get_progress().errors == ["boom"]
        assert tracker.get_progress().warnings == ["careful"]


class TestScopedCompletion:
    def test_scoped_to_enabled_phases(self):
        tracker = ProgressTracker()
        tracker.start_execution([PhaseId.SECURITY_AUDIT])
        assert tracker.get_progress().total_steps == len(get_phase(PhaseId.SECURITY_AUDIT).steps)

    def test_finished_run_reaches_100_with_skipped_and_silent_phases(self):
        tracker = ProgressTracker()
        tracker.start_execution([PhaseId.STATIC_ANALYSIS, PhaseId.SECURITY_AUDIT, PhaseId.CONFIGURATION_AUDIT])

        run_phase(tracker, PhaseId.STATIC_ANALYSIS)
        tracker.skip_phase(PhaseId.SECURITY_AUDIT)
        run_phase(tracker, PhaseId.CONFIGURATION_AUDIT, report_steps=False)

        snapshot = tracker.get_progress()
        assert snapshot.percent_complete == 100
        assert snapshot.estimated_time_remaining_ms == 0

    def test_percent_is_monotonic(self):
        tracker = ProgressTracker()
        tracker.start_execution()
        seen = []
        for phase_id in PhaseId:
            tracker.start_phase(phase_id)
            for step in get_phase(phase_id).steps:
                tracker.start_step(step.id)
                tracker.complete_step(step.id)
                seen.append(tracker.get_progress().percent_complete)
            tracker.complete_phase(phase_id)
            seen.append(tracker.get_progress().percent_complete)

        assert seen == sorted(seen)
        assert seen[-1] == 100

    def test_start_execution_resets(self):
        tracker = ProgressTracker()
        tracker.start_execution()
        run_phase(tracker, PhaseId.STATIC_ANALYSIS)
        tracker.add_error("old")

        tracker.start_execution()
        snapshot = tracker.get_progress()
        assert snapshot.completed_steps == 0
        assert snapshot.errors == []


class TestEstimates:
    def test_eta_counts_down_from_catalog_estimate(self):
        tracker = ProgressTracker()
        tracker.start_execution([PhaseId.CONFIGURATION_AUDIT])
        initial = tracker.get_progress().estimated_time_remaining_ms
        assert initial == get_phase(PhaseId.CONFIGURATION_AUDIT).estimated_duration_ms

        tracker.start_phase(PhaseId.CONFIGURATION_AUDIT)
        tracker.start_step("audit_app_config")
        tracker.complete_step("audit_app_config")

        remaining = tracker.get_progress().estimated_time_remaining_ms
        # Actual duration of the done step replaces its 30s estimate
        assert initial - 30_000 < remaining <= initial
        assert tracker.get_progress().completed_steps == 1

    def test_phase_progress_and_summary(self):
        tracker = ProgressTracker()
        tracker.start_execution([PhaseId.STATIC_ANALYSIS])
        run_phase(tracker, PhaseId.STATIC_ANALYSIS)

        phase_progress = tracker.get_phase_progress(PhaseId.STATIC_ANALYSIS)
        assert phase_progress.percent_complete == 100
        assert phase_progress.duration_ms is not None

        summary = tracker.get_execution_summary()
        by_id = {s.phase_id: s for s in summary.phase_summaries}
        assert by_id[PhaseId.STATIC_ANALYSIS].completed is True
        assert by_id[PhaseId.STATIC_ANALYSIS].enabled is True
        assert by_id[PhaseId.SECURITY_AUDIT].enabled is False
        assert by_id[PhaseId.SECURITY_AUDIT].completed is False
        assert summary.total_duration_ms is not None


def test_snapshots_are_safe_across_threads():
    tracker = ProgressTracker()
    tracker.start_execution()
    errors = []

    def reader():
        try:
            for _ in range(200):
                snapshot = tracker.get_progress()
                assert 0 <= snapshot.percent_complete <= 100
        except AssertionError as e:
            errors.append(e)

    thread = threading.Thread(target=reader)
    thread.start()
    for phase_id in PhaseId:
        run_phase(tracker, phase_id)
    thread.join()

    assert errors == []
