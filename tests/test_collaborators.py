"""Tests for collaborators.py - In-memory build system, source control and directory."""
import pytest
import sys
from datetime import datetime, timedelta
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from collaborators import seed_sample_data
from errors import (
    CallerNotFound,
    CollaboratorUnavailable,
    InvalidStateTransition,
    RequiredParameterMissing,
    RoleNotGranted,
    TargetEntityNotFound,
)
from models import BuildStatus, PullRequestStatus, Role


@pytest.mark.unit
class TestUserDirectory:
    """Test caller lookup."""

    def test_find_seeded_user(self, seeded):
        directory, _, _ = seeded
        assert directory.find_user("admin").role == Role.ADMIN
        assert directory.find_user(" developer ").role == Role.USER

    def test_unknown_user(self, seeded):
        directory, _, _ = seeded
        with pytest.raises(CallerNotFound, match="User not found: ghost"):
            directory.find_user("ghost")

    def test_resolve_caller_checks_claimed_role(self, seeded):
        directory, _, _ = seeded
        assert directory.resolve_caller("developer").role == Role.USER
        assert directory.resolve_caller("admin", Role.ADMIN).username == "admin"
        with pytest.raises(RoleNotGranted, match="Role ADMIN not granted to user developer"):
            directory.resolve_caller("developer", Role.ADMIN)


@pytest.mark.unit
class TestSeedSampleData:
    """Test sample data seeding."""

    def test_seed_counts(self, seeded):
        directory, build_system, source_control = seeded
        assert len(directory) == 5
        assert len(build_system.all_builds()) == 9
        assert len(source_control.list_user_pull_requests("developer")) == 1

    def test_seed_is_idempotent(self, seeded):
        directory, build_system, source_control = seeded
        seed_sample_data(directory, build_system, source_control)
        assert len(directory) == 5
        assert len(build_system.all_builds()) == 9
        assert len(source_control.list_open_pull_requests("main")) == 1


@pytest.mark.unit
class TestInMemoryBuildSystem:
    """Test build lifecycle operations."""

    def test_build_numbers_continue_after_seed(self, seeded):
        _, build_system, _ = seeded
        assert build_system.trigger_build("feature-x", "developer").build_id == "BUILD-1003"
        assert build_system.deploy_to_staging("feature-x", "developer").build_id == "STAGE-1004"

    def test_trigger_requires_branch(self, seeded):
        _, build_system, _ = seeded
        with pytest.raises(RequiredParameterMissing, match="Branch not specified"):
            build_system.trigger_build("", "developer")

    def test_lookup_is_case_insensitive(self, seeded):
        _, build_system, _ = seeded
        assert build_system.get_build_status("prod-1001").build_id == "PROD-1001"

    def test_bare_number_resolves_when_unique(self, seeded):
        _, build_system, _ = seeded
        assert build_system.get_build_status("998").build_id == "BUILD-998"

    def test_bare_number_ambiguous(self, seeded):
        _, build_system, _ = seeded
        with pytest.raises(TargetEntityNotFound, match="ambiguous"):
            build_system.get_build_status("1001")

    def test_missing_build(self, seeded):
        _, build_system, _ = seeded
        with pytest.raises(TargetEntityNotFound, match="Build not found: NOPE-1"):
            build_system.get_build_status("NOPE-1")

    def test_production_deploy_awaits_approval(self, seeded):
        _, build_system, _ = seeded
        build = build_system.deploy_to_production("release-3.0", "admin")
        assert build.build_id.startswith("PROD-")
        assert build.status == BuildStatus.PENDING_APPROVAL
        assert build in build_system.list_pending_approvals()

    def test_approve_moves_to_running(self, seeded):
        _, build_system, _ = seeded
        build = build_system.approve_build("PROD-1002", "manager")
        assert build.status == BuildStatus.RUNNING
        assert build.approved_by == "manager"
        assert build.approved_at is not None

    def test_approve_requires_pending(self, seeded):
        _, build_system, _ = seeded
        with pytest.raises(InvalidStateTransition, match="not pending approval"):
            build_system.approve_build("BUILD-1001", "admin")

    def test_abort_running_build(self, seeded):
        _, build_system, _ = seeded
        build = build_system.abort_build("STAGE-1001", "admin")
        assert build.status == BuildStatus.ABORTED
        assert build.completed_at is not None

    def test_abort_finished_build(self, seeded):
        _, build_system, _ = seeded
        with pytest.raises(InvalidStateTransition, match="not running or queued"):
            build_system.abort_build("BUILD-1000", "admin")

    def test_list_user_builds_limit(self, seeded):
        _, build_system, _ = seeded
        assert len(build_system.list_user_builds("developer")) == 5
        assert len(build_system.list_user_builds("developer", limit=2)) == 2
        assert build_system.list_user_builds("senior") == []

    def test_build_statistics(self, seeded):
        _, build_system, _ = seeded
        stats = build_system.build_statistics(datetime.now() - timedelta(days=7))
        assert stats["TOTAL"] == 9
        assert stats["SUCCESS"] == 4
        assert stats["FAILED"] == 1
        assert stats["RUNNING"] == 2
        assert stats["PENDING_APPROVAL"] == 2

    def test_unavailable(self, seeded):
        _, build_system, _ = seeded
        build_system.available = False
        with pytest.raises(CollaboratorUnavailable):
            build_system.list_pending_approvals()


@pytest.mark.unit
class TestInMemorySourceControl:
    """Test pull requests and commit history."""

    def test_create_pull_request(self, seeded):
        _, _, source_control = seeded
        pr = source_control.create_pull_request("payments", "developer")
        assert pr.pr_id == "PR-104"
        assert pr.target_branch == "develop"
        assert pr.status == PullRequestStatus.OPEN

    def test_merge_pull_request(self, seeded):
        _, _, source_control = seeded
        pr = source_control.merge_pull_request("pr-101", "admin")
        assert pr.status == PullRequestStatus.MERGED
        assert pr.merged_by == "admin"
        with pytest.raises(InvalidStateTransition):
            source_control.merge_pull_request("PR-101", "admin")

    def test_merge_unknown(self, seeded):
        _, _, source_control = seeded
        with pytest.raises(TargetEntityNotFound):
            source_control.merge_pull_request("PR-999", "admin")

    def test_branch_status(self, seeded):
        _, _, source_control = seeded
        assert [pr.pr_id for pr in source_control.get_branch_status("feature-auth")] == ["PR-101"]

    def test_open_pull_requests_into_or_out_of_branch(self, seeded):
        _, _, source_control = seeded
        assert [pr.pr_id for pr in source_control.list_open_pull_requests("main")] == ["PR-102"]
        assert [pr.pr_id for pr in source_control.list_open_pull_requests("develop")] == ["PR-101"]

    def test_recent_commits_window(self, seeded):
        _, _, source_control = seeded
        commits = source_control.list_recent_commits("main")
        assert len(commits) == 3
        assert commits[0].committed_at >= commits[-1].committed_at
        assert source_control.list_recent_commits("feature-branch") == []
