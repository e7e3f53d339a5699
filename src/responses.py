"""Spoken response texts shared by the dispatcher and the orchestration planner."""
from __future__ import annotations

from typing import Dict, List

from models import Build, PullRequest


def build_triggered(build: Build) -> str:
    return f"Build triggered for branch {build.branch}. Build ID: {build.build_id}"


def staging_deployment(build: Build) -> str:
    return f"Staging deployment triggered for branch {build.branch}. Build ID: {build.build_id}"


def production_deployment(build: Build) -> str:
    return (
        f"Production deployment triggered for branch {build.branch}. "
        f"Build ID: {build.build_id}. Awaiting approval."
    )


def api_deployment(build: Build) -> str:
    return (
        f"{build.api_name} deployment started successfully. Build ID: {build.build_id}. "
        "Progress tracking enabled."
    )


def build_approved(build: Build) -> str:
    return f"Build {build.build_id} approved successfully. Build is now running."


def build_aborted(build: Build) -> str:
    return f"Build {build.build_id} aborted successfully."


def build_status(build: Build) -> str:
    text = (
        f"Build {build.build_id} status: {build.status.value} "
        f"(Branch: {build.branch}, Environment: {build.environment})"
    )
    if build.api_name:
        text += f", progress {build.deployment_progress}%"
    return text


def pull_request_created(pr: PullRequest) -> str:
    return f"Pull request created successfully! PR ID: {pr.pr_id} - Branch: {pr.source_branch} → {pr.target_branch}"


def pending_approvals(builds: List[Build]) -> str:
    if not builds:
        return "No pending approvals found."
    lines = ["Pending approvals:"]
    for build in builds:
        lines.append(f"• Build {build.build_id} - {build.branch} (triggered by {build.triggered_by})")
    return "\n".join(lines)


def user_builds(builds: List[Build]) -> str:
    if not builds:
        return "No builds found for your account."
    lines = ["Your recent builds:"]
    for build in builds:
        lines.append(f"• {build.build_id} - {build.branch} ({build.status.value})")
    return "\n".join(lines)


def deployment_report(stats: Dict[str, int], days: int) -> str:
    successful = stats.get("SUCCESS", 0)
    failed = stats.get("FAILED", 0)
    finished = successful + failed
    rate = f"{(successful / finished) * 100:.0f}%" if finished else "n/a"
    return "\n".join(
        [
            f"Deployment report for the last {days} days:",
            f"• Total builds: {stats.get('TOTAL', 0)}",
            f"• Successful: {successful}",
            f"• Failed: {failed}",
            f"• Running: {stats.get('RUNNING', 0)}",
            f"• Awaiting approval: {stats.get('PENDING_APPROVAL', 0)}",
            f"• Aborted: {stats.get('ABORTED', 0)}",
            f"• Success rate: {rate}",
        ]
    )
