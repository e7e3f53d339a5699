"""Tests for pattern_registry.py - Ordered command catalogs."""
import re
import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pattern_registry
from models import Action, Role


@pytest.mark.unit
class TestCatalogs:
    """Test catalog contents and ordering."""

    def test_admin_catalog_order(self):
        assert pattern_registry.actions_for(Role.ADMIN) == [
            Action.APPROVE_BUILD,
            Action.DEPLOY_PRODUCTION,
            Action.DEPLOY_API,
            Action.DEPLOY_REWARDS_DETAILS,
            Action.ABORT_BUILD,
            Action.SHOW_APPROVALS,
            Action.GENERATE_REPORT,
            Action.DEPLOYMENT_ORCHESTRATION,
            Action.DEPLOYMENT_ANALYSIS,
        ]

    def test_user_catalog_order(self):
        assert pattern_registry.actions_for(Role.USER) == [
            Action.BUILD_BRANCH,
            Action.CREATE_PR,
            Action.DEPLOY_STAGING,
            Action.SHOW_BUILDS,
            Action.CHECK_STATUS,
        ]

    def test_every_action_belongs_to_exactly_one_role(self):
        admin = set(pattern_registry.actions_for(Role.ADMIN))
        user = set(pattern_registry.actions_for(Role.USER))
        assert not admin & user
        assert admin | user == set(Action)

    def test_all_patterns_compile(self):
        for role in Role:
            for _, source in pattern_registry.iter_patterns(role):
                assert isinstance(pattern_registry.compiled(source), re.Pattern)

    def test_iter_patterns_keeps_pattern_order(self):
        approve = [source for action, source in pattern_registry.iter_patterns(Role.ADMIN) if action == Action.APPROVE_BUILD]
        assert approve[0] == r"approve.*build.*(\d+)"
        assert approve[-1] == r"approve.*build"


@pytest.mark.unit
class TestHelpers:
    """Test lookup helpers."""

    def test_first_capturing_pattern(self):
        assert pattern_registry.first_capturing_pattern(Role.USER, Action.BUILD_BRANCH) == r"build.*my.*(\w+).*branch"

    def test_first_capturing_pattern_without_groups(self):
        assert pattern_registry.first_capturing_pattern(Role.ADMIN, Action.SHOW_APPROVALS) == r"show.*pending.*approvals"

    def test_first_capturing_pattern_wrong_role(self):
        assert pattern_registry.first_capturing_pattern(Role.USER, Action.APPROVE_BUILD) is None

    def test_catalog_summary(self):
        summary = pattern_registry.catalog_summary(Role.USER)
        assert list(summary) == ["BUILD_BRANCH", "CREATE_PR", "DEPLOY_STAGING", "SHOW_BUILDS", "CHECK_STATUS"]
        assert summary["CREATE_PR"] == "Create pull request"
