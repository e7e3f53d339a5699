"""Role-based dispatch of recognized intents to command handlers."""
from __future__ import annotations

import functools
from datetime import datetime, timedelta
from typing import Callable, Dict, List

import orchestration_planner
import pattern_registry
import responses
import safety_analyzer
from collaborators import CommandContext
from errors import RequiredParameterMissing, VoiceDevOpsError
from logging_utils import logger
from models import Action, CommandResult, Intent, Role

Handler = Callable[[Dict[str, str], CommandContext], CommandResult]

REPORT_WINDOW_DAYS = 7
REWARDS_API_NAME = "Rewards Details API"
REWARDS_API_BRANCH = "rewards-api-v1"
DEFAULT_API_BRANCH = "main"


def handler_boundary(failure_prefix: str) -> Callable[[Handler], Handler]:
    """Turn every exception a handler raises into a failed CommandResult."""

    def decorate(func: Handler) -> Handler:
        @functools.wraps(func)
        def wrapper(parameters: Dict[str, str], context: CommandContext) -> CommandResult:
            try:
                return func(parameters, context)
            except VoiceDevOpsError as exc:
                logger.warning(
                    "Command handler rejected request",
                    extra={"extra": {"handler": func.__name__, "error": str(exc), "user": context.user.username}},
                )
                return CommandResult(str(exc), False)
            except Exception as exc:
                logger.exception("Command handler failed", extra={"extra": {"handler": func.__name__}})
                return CommandResult(f"{failure_prefix}: {exc}", False)

        return wrapper

    return decorate


def _require(parameters: Dict[str, str], key: str, message: str) -> str:
    value = parameters.get(key)
    if not value:
        raise RequiredParameterMissing(message)
    return value


# ---------------------------------------------------------------------------
# ADMIN handlers
# ---------------------------------------------------------------------------


@handler_boundary("Error approving build")
def approve_build(parameters: Dict[str, str], context: CommandContext) -> CommandResult:
    build_id = _require(parameters, "buildId", "Build ID not specified")
    build = context.build_system.approve_build(build_id, context.user.username)
    return CommandResult(responses.build_approved(build), True)


@handler_boundary("Error deploying to production")
def deploy_production(parameters: Dict[str, str], context: CommandContext) -> CommandResult:
    branch = _require(parameters, "branch", "Branch not specified")
    build = context.build_system.deploy_to_production(branch, context.user.username)
    return CommandResult(responses.production_deployment(build), True)


@handler_boundary("Error deploying API")
def deploy_api(parameters: Dict[str, str], context: CommandContext) -> CommandResult:
    api_name = _require(parameters, "apiName", "API name not specified")
    branch = parameters.get("branch") or DEFAULT_API_BRANCH
    build = context.build_system.deploy_api(api_name, branch, context.user.username)
    return CommandResult(responses.api_deployment(build), True)


@handler_boundary("Error deploying Rewards Details API")
def deploy_rewards_details(parameters: Dict[str, str], context: CommandContext) -> CommandResult:
    build = context.build_system.deploy_api(REWARDS_API_NAME, REWARDS_API_BRANCH, context.user.username)
    return CommandResult(responses.api_deployment(build), True)


@handler_boundary("Error aborting build")
def abort_build(parameters: Dict[str, str], context: CommandContext) -> CommandResult:
    build_id = _require(parameters, "buildId", "Build ID not specified")
    build = context.build_system.abort_build(build_id, context.user.username)
    return CommandResult(responses.build_aborted(build), True)


@handler_boundary("Error getting pending approvals")
def show_approvals(parameters: Dict[str, str], context: CommandContext) -> CommandResult:
    return CommandResult(responses.pending_approvals(context.build_system.list_pending_approvals()), True)


@handler_boundary("Error generating report")
def generate_report(parameters: Dict[str, str], context: CommandContext) -> CommandResult:
    since = datetime.now() - timedelta(days=REPORT_WINDOW_DAYS)
    stats = context.build_system.build_statistics(since)
    return CommandResult(responses.deployment_report(stats, REPORT_WINDOW_DAYS), True)


@handler_boundary("Deployment orchestration failed")
def orchestrate_deployment(parameters: Dict[str, str], context: CommandContext) -> CommandResult:
    logger.info(
        "Deployment orchestration requested",
        extra={"extra": {"user": context.user.username, "parameters": parameters}},
    )
    plan = orchestration_planner.plan(parameters.get("target"), parameters.get("branch"), context)
    return CommandResult(orchestration_planner.render_plan(plan), plan.success)


@handler_boundary("Deployment analysis failed")
def analyze_deployment(parameters: Dict[str, str], context: CommandContext) -> CommandResult:
    target = parameters.get("target") or orchestration_planner.DEFAULT_TARGET
    branch = parameters.get("branch") or orchestration_planner.DEFAULT_BRANCH
    assessment = orchestration_planner.analyze(branch, context)

    recommendations: List[str] = ["Run full test suite"]
    if assessment.branch_protected:
        recommendations.append("Verify branch protection rules")
    if assessment.open_pr_count:
        recommendations.append("Review pending pull requests")
    if not assessment.recent_commit_count:
        recommendations.append("Confirm the branch is up to date")

    lines = [
        "Deployment Analysis Results:",
        f"• Target: {target}",
        f"• Branch: {branch}",
        safety_analyzer.render_assessment(assessment),
        "• Recommendations:",
    ]
    lines += [f"  - {item}" for item in recommendations]
    return CommandResult("\n".join(lines), True)


# ---------------------------------------------------------------------------
# USER handlers
# ---------------------------------------------------------------------------


@handler_boundary("Error building branch")
def build_branch(parameters: Dict[str, str], context: CommandContext) -> CommandResult:
    branch = _require(parameters, "branch", "Branch not specified")
    build = context.build_system.trigger_build(branch, context.user.username)
    return CommandResult(responses.build_triggered(build), True)


@handler_boundary("Error creating pull request")
def create_pull_request(parameters: Dict[str, str], context: CommandContext) -> CommandResult:
    branch = _require(parameters, "branch", "Branch not specified")
    pr = context.source_control.create_pull_request(branch, context.user.username)
    return CommandResult(responses.pull_request_created(pr), True)


@handler_boundary("Error deploying to staging")
def deploy_staging(parameters: Dict[str, str], context: CommandContext) -> CommandResult:
    branch = _require(parameters, "branch", "Branch not specified")
    build = context.build_system.deploy_to_staging(branch, context.user.username)
    return CommandResult(responses.staging_deployment(build), True)


@handler_boundary("Error getting builds")
def show_builds(parameters: Dict[str, str], context: CommandContext) -> CommandResult:
    builds = context.build_system.list_user_builds(context.user.username)
    return CommandResult(responses.user_builds(builds), True)


@handler_boundary("Error getting build status")
def check_status(parameters: Dict[str, str], context: CommandContext) -> CommandResult:
    build_id = parameters.get("buildId")
    if build_id:
        build = context.build_system.get_build_status(build_id)
    else:
        builds = context.build_system.list_user_builds(context.user.username, limit=1)
        if not builds:
            raise RequiredParameterMissing("Build ID not specified")
        build = builds[0]
    return CommandResult(responses.build_status(build), True)


ADMIN_HANDLERS: Dict[Action, Handler] = {
    Action.APPROVE_BUILD: approve_build,
    Action.DEPLOY_PRODUCTION: deploy_production,
    Action.DEPLOY_API: deploy_api,
    Action.DEPLOY_REWARDS_DETAILS: deploy_rewards_details,
    Action.ABORT_BUILD: abort_build,
    Action.SHOW_APPROVALS: show_approvals,
    Action.GENERATE_REPORT: generate_report,
    Action.DEPLOYMENT_ORCHESTRATION: orchestrate_deployment,
    Action.DEPLOYMENT_ANALYSIS: analyze_deployment,
}

USER_HANDLERS: Dict[Action, Handler] = {
    Action.BUILD_BRANCH: build_branch,
    Action.CREATE_PR: create_pull_request,
    Action.DEPLOY_STAGING: deploy_staging,
    Action.SHOW_BUILDS: show_builds,
    Action.CHECK_STATUS: check_status,
}

DISPATCH_TABLES: Dict[Role, Dict[Action, Handler]] = {
    Role.ADMIN: ADMIN_HANDLERS,
    Role.USER: USER_HANDLERS,
}


def verify_dispatch_tables() -> None:
    """Every catalog action has exactly one handler and no handler is orphaned."""
    for role, table in DISPATCH_TABLES.items():
        catalog = set(pattern_registry.actions_for(role))
        missing = catalog - set(table)
        extra = set(table) - catalog
        if missing or extra:
            raise RuntimeError(
                f"{role.value} dispatch table out of sync: missing={sorted(a.value for a in missing)} "
                f"extra={sorted(a.value for a in extra)}"
            )


verify_dispatch_tables()


def dispatch(intent: Intent, role: Role, context: CommandContext) -> CommandResult:
    """
    Run the handler registered for the intent's action in the role's table.

    Never raises: an action the role does not own, or a name that is not an
    action at all, comes back as a failed result naming it.
    """
    name = intent.action.value if isinstance(intent.action, Action) else str(intent.action)
    table = DISPATCH_TABLES[role]
    try:
        handler = table.get(Action(name))
    except ValueError:
        handler = None

    if handler is None:
        logger.warning("Unknown command for role", extra={"extra": {"action": name, "role": role.value}})
        return CommandResult(f"Unknown {role.value.lower()} command: {name}", False)

    logger.info(
        f"Processing as {role.value} command",
        extra={"extra": {"action": name, "user": context.user.username, "parameters": intent.parameters}},
    )
    return handler(dict(intent.parameters), context)
