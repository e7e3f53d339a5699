"""Build, test, deploy and verify a branch against one target environment."""
from __future__ import annotations

from typing import Callable, Dict, List, Optional

import responses
import safety_analyzer
from collaborators import CommandContext
from errors import UnknownTargetEnvironment, VoiceDevOpsError
from logging_utils import logger
from models import Build, CommandResult, OrchestrationPlan, PlanStep, SafetyAssessment

DEFAULT_TARGET = "production"
DEFAULT_BRANCH = "main"

STEP_TITLES: Dict[str, str] = {
    "build": "Building branch '{branch}'...",
    "test": "Running automated tests...",
    "deploy": "Deploying to '{target}'...",
    "verify": "Verifying deployment...",
}


def _run_step(call: Callable[[], Build], describe: Callable[[Build], str]) -> CommandResult:
    try:
        return CommandResult(describe(call()), True)
    except VoiceDevOpsError as exc:
        return CommandResult(str(exc), False)
    except Exception as exc:
        logger.exception("Orchestration step failed")
        return CommandResult(f"Step failed: {exc}", False)


def _deploy(target: str, branch: str, context: CommandContext) -> CommandResult:
    username = context.user.username
    environment = target.lower()
    if environment == "production":
        return _run_step(
            lambda: context.build_system.deploy_to_production(branch, username), responses.production_deployment
        )
    if environment == "staging":
        return _run_step(
            lambda: context.build_system.deploy_to_staging(branch, username), responses.staging_deployment
        )
    return CommandResult(str(UnknownTargetEnvironment(f"Unknown target: {target}")), False)


def analyze(branch: str, context: CommandContext) -> SafetyAssessment:
    """Score the branch from live source-control data. Collaborator errors propagate."""
    open_prs = context.source_control.list_open_pull_requests(branch)
    recent_commits = context.source_control.list_recent_commits(branch)
    return safety_analyzer.assess(branch, open_prs, recent_commits)


def plan(target: Optional[str], branch: Optional[str], context: CommandContext) -> OrchestrationPlan:
    """
    Run the four-step deployment plan.

    Tests and verification are placeholders that always pass. A failed
    deploy ends the plan after the deploy step; earlier step results stay in
    the plan either way.
    """
    target = target or DEFAULT_TARGET
    branch = branch or DEFAULT_BRANCH
    result = OrchestrationPlan(target=target, branch=branch)

    try:
        result.assessment = analyze(branch, context)
    except VoiceDevOpsError as exc:
        logger.warning("Deployment readiness analysis unavailable", extra={"extra": {"branch": branch, "error": str(exc)}})

    username = context.user.username
    result.steps.append(
        PlanStep("build", _run_step(lambda: context.build_system.trigger_build(branch, username), responses.build_triggered))
    )
    # No test runner is wired in; the step is a placeholder
    result.steps.append(PlanStep("test", CommandResult("Tests passed", True)))

    deploy = _deploy(target, branch, context)
    result.steps.append(PlanStep("deploy", deploy))
    if not deploy.success:
        logger.warning(
            "Orchestration stopped at deploy step",
            extra={"extra": {"target": target, "branch": branch, "reason": deploy.message}},
        )
        return result

    result.steps.append(PlanStep("verify", CommandResult("Deployment successful", True)))

    logger.info(
        "Orchestration plan finished",
        extra={"extra": {"target": target, "branch": branch, "success": result.success}},
    )
    return result


def render_plan(result: OrchestrationPlan) -> str:
    """Narrative version of a plan, suitable for reading back."""
    header = "Deployment Orchestration Complete!" if result.success else "Deployment Orchestration Failed"
    lines: List[str] = [header, "", f"Target: {result.target}", f"Branch: {result.branch}", "", "Analysis:"]
    if result.assessment:
        lines.append(safety_analyzer.render_assessment(result.assessment))
    else:
        lines.append("• Error: Unable to complete analysis")

    lines += ["", "Deployment Result:", "Executing Deployment Plan:"]
    for number, step in enumerate(result.steps, start=1):
        title = STEP_TITLES[step.name].format(branch=result.branch, target=result.target)
        lines.append(f"{number}. {title}")
        lines.append(f"   Result: {step.result.message}")

    lines.append("")
    lines.append("Deployment completed successfully!" if result.success else "Deployment failed.")
    return "\n".join(lines)
