"""Tests for safety_analyzer.py - Deployment readiness scoring."""
import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from models import SafetyBand
from safety_analyzer import assess, band_for, render_assessment


@pytest.mark.unit
class TestAssess:
    """Test scoring and banding."""

    def test_protected_branch_with_activity(self):
        result = assess("main", [], ["c1"])
        assert result.score == 90
        assert result.band == SafetyBand.SAFE
        assert result.branch_protected

    def test_feature_branch_with_open_prs_and_no_commits(self):
        result = assess("feature-x", ["pr"] * 4, [])
        assert result.score == 65
        assert result.band == SafetyBand.CAUTION
        assert not result.branch_protected

    def test_main_with_many_prs_is_risk(self):
        result = assess("main", ["pr"] * 10, [])
        assert result.score == 25
        assert result.band == SafetyBand.RISK

    def test_score_is_clamped_at_zero(self):
        assert assess("master", ["pr"] * 30, []).score == 0

    def test_inputs_are_not_mutated(self):
        prs, commits = ["a", "b"], ["c"]
        assess("develop", prs, commits)
        assert prs == ["a", "b"]
        assert commits == ["c"]

    def test_deterministic(self):
        assert assess("main", ["a"], []) == assess("main", ["a"], [])

    @pytest.mark.parametrize(
        "score,band",
        [(100, SafetyBand.SAFE), (80, SafetyBand.SAFE), (79, SafetyBand.CAUTION), (60, SafetyBand.CAUTION), (59, SafetyBand.RISK)],
    )
    def test_band_boundaries(self, score, band):
        assert band_for(score) == band


@pytest.mark.unit
class TestRenderAssessment:
    """Test the narrative lines."""

    def test_safe_narrative(self):
        text = render_assessment(assess("main", [], ["c1", "c2"]))
        assert text.startswith("Deployment Readiness Analysis:")
        assert "Protected (requires PR approval)" in text
        assert "Pending Pull Requests: None" in text
        assert "2 recent commits" in text
        assert "Safety Score: 90/100" in text
        assert "Safe for deployment" in text

    def test_risk_narrative(self):
        text = render_assessment(assess("feature-x", ["p"] * 9, []))
        assert "9 open PRs" in text
        assert "No recent commits" in text
        assert "High risk" in text
