"""Deployment readiness scoring."""
from __future__ import annotations

from typing import List, Sequence

from models import PROTECTED_BRANCHES, SafetyAssessment, SafetyBand

BASE_SCORE = 100
PROTECTED_BRANCH_PENALTY = 10
OPEN_PR_PENALTY = 5
NO_RECENT_COMMITS_PENALTY = 15
SAFE_THRESHOLD = 80
CAUTION_THRESHOLD = 60


def band_for(score: int) -> SafetyBand:
    if score >= SAFE_THRESHOLD:
        return SafetyBand.SAFE
    if score >= CAUTION_THRESHOLD:
        return SafetyBand.CAUTION
    return SafetyBand.RISK


def assess(branch: str, open_prs: Sequence[object], recent_commits: Sequence[object]) -> SafetyAssessment:
    """
    Score how safe it is to deploy `branch` right now.

    Deploying a protected branch, open pull requests and a quiet branch all
    lower the score; the result is clamped to [0, 100]. Only the sizes of
    the sequences are read.
    """
    protected = branch in PROTECTED_BRANCHES
    score = BASE_SCORE
    if protected:
        score -= PROTECTED_BRANCH_PENALTY
    score -= OPEN_PR_PENALTY * len(open_prs)
    if not recent_commits:
        score -= NO_RECENT_COMMITS_PENALTY
    score = max(0, min(100, score))

    return SafetyAssessment(
        branch=branch,
        branch_protected=protected,
        open_pr_count=len(open_prs),
        recent_commit_count=len(recent_commits),
        score=score,
        band=band_for(score),
    )


STATUS_LINES = {
    SafetyBand.SAFE: "Safe for deployment",
    SafetyBand.CAUTION: "Proceed with caution",
    SafetyBand.RISK: "High risk - review required",
}


def render_assessment(assessment: SafetyAssessment) -> str:
    lines: List[str] = ["Deployment Readiness Analysis:"]
    if assessment.branch_protected:
        lines.append("• Branch Protection: Protected (requires PR approval)")
    else:
        lines.append("• Branch Protection: Feature branch (review recommended)")

    if assessment.open_pr_count:
        lines.append(f"• Pending Pull Requests: {assessment.open_pr_count} open PRs (review recommended)")
    else:
        lines.append("• Pending Pull Requests: None (safe to deploy)")

    if assessment.recent_commit_count:
        lines.append(f"• Recent Activity: {assessment.recent_commit_count} recent commits")
    else:
        lines.append("• Recent Activity: No recent commits")

    lines.append(f"• Safety Score: {assessment.score}/100")
    lines.append(f"• Status: {STATUS_LINES[assessment.band]}")
    return "\n".join(lines)
