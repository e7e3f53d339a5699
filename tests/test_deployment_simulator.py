"""Tests for deployment_simulator.py - Supervised progress tasks."""
import pytest
import sys
import time
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from collaborators import InMemoryBuildSystem
from deployment_simulator import ProgressOutcome
from models import BuildStatus


@pytest.mark.unit
class TestDeploymentSupervisor:
    """Test the progress task lifecycle."""

    def test_runs_to_completion(self, fast_supervisor):
        progress, completed = [], []
        future = fast_supervisor.start("API-1", lambda _, p: progress.append(p), completed.append)

        assert fast_supervisor.wait(future, timeout=5) == ProgressOutcome.COMPLETED
        assert progress[0] == 0
        assert progress[-1] == 100
        assert progress == sorted(progress)
        assert completed == ["API-1"]
        assert not fast_supervisor.is_active("API-1")

    def test_cancel_stops_task(self, slow_supervisor):
        completed = []
        future = slow_supervisor.start("API-2", lambda *_: None, completed.append)

        assert slow_supervisor.cancel("API-2")
        assert slow_supervisor.wait(future, timeout=5) == ProgressOutcome.CANCELLED
        assert completed == []

    def test_cancel_unknown_build(self, fast_supervisor):
        assert not fast_supervisor.cancel("API-404")

    def test_wait_timeout(self, slow_supervisor):
        future = slow_supervisor.start("API-3", lambda *_: None, lambda _: None)
        assert slow_supervisor.wait(future, timeout=0.01) is None
        slow_supervisor.cancel("API-3")
        assert slow_supervisor.wait(future, timeout=5) == ProgressOutcome.CANCELLED

    def test_restart_replaces_previous_task(self, slow_supervisor):
        first = slow_supervisor.start("API-4", lambda *_: None, lambda _: None)
        second = slow_supervisor.start("API-4", lambda *_: None, lambda _: None)

        assert slow_supervisor.wait(first, timeout=5) == ProgressOutcome.CANCELLED
        assert slow_supervisor.future_for("API-4") is second
        slow_supervisor.cancel("API-4")

    def test_callback_error_fails_task(self, fast_supervisor):
        def explode(build_id, progress):
            raise RuntimeError("progress store down")

        future = fast_supervisor.start("API-5", explode, lambda _: None)
        assert fast_supervisor.wait(future, timeout=5) == ProgressOutcome.FAILED

    def test_many_tasks_advance_together(self, slow_supervisor):
        latest = {}
        build_ids = [f"API-{n}" for n in range(10, 18)]
        for build_id in build_ids:
            slow_supervisor.start(build_id, latest.__setitem__, lambda _: None)

        time.sleep(0.9)

        assert slow_supervisor.active_count() == len(build_ids)
        assert all(latest.get(build_id, 0) > 0 for build_id in build_ids), latest
        for build_id in build_ids:
            assert slow_supervisor.cancel(build_id)
        assert slow_supervisor.active_count() == 0

    def test_shutdown_cancels_running_tasks(self, slow_supervisor):
        futures = [slow_supervisor.start(f"API-{n}", lambda *_: None, lambda _: None) for n in range(20, 23)]
        slow_supervisor.shutdown()
        assert [f.result(timeout=1) for f in futures] == [ProgressOutcome.CANCELLED] * 3


@pytest.mark.slow
@pytest.mark.integration
class TestApiDeploymentProgress:
    """Test progress tracking wired through the build system."""

    def test_api_deployment_completes(self, fast_supervisor):
        build_system = InMemoryBuildSystem(fast_supervisor)
        build = build_system.deploy_api("payments", "main", "admin")
        assert build.build_id.startswith("API-")

        future = fast_supervisor.future_for(build.build_id)
        if future is not None:
            fast_supervisor.wait(future, timeout=5)

        assert build.status == BuildStatus.SUCCESS
        assert build.deployment_progress == 100
        assert build.duration_seconds is not None

    def test_abort_cancels_progress(self, slow_supervisor):
        build_system = InMemoryBuildSystem(slow_supervisor)
        build = build_system.deploy_api("payments", "main", "admin")
        future = slow_supervisor.future_for(build.build_id)

        build_system.abort_build(build.build_id, "admin")

        assert slow_supervisor.wait(future, timeout=5) == ProgressOutcome.CANCELLED
        assert build.status == BuildStatus.ABORTED
        assert build.deployment_progress < 100

    def test_concurrent_api_deployments_all_progress(self, slow_supervisor):
        build_system = InMemoryBuildSystem(slow_supervisor)
        builds = [build_system.deploy_api(f"service{n}", "main", "admin") for n in range(6)]

        time.sleep(0.9)

        assert [b.deployment_progress > 0 for b in builds] == [True] * 6
        assert all(b.status == BuildStatus.RUNNING for b in builds)
