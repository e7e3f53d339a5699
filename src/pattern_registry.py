"""Ordered command catalogs for each role.

Catalogs are tuples, not dicts keyed by action: iteration order is the
matching order, and first match wins. Looser patterns sit after the specific
ones of the same action, and an action declared earlier beats every later
action whose patterns could also match.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Tuple

from models import Action, Role

DIGIT_GROUP = r"(\d+)"
WORD_GROUP = r"(\w+)"


@dataclass(frozen=True)
class PatternEntry:
    action: Action
    patterns: Tuple[str, ...]
    description: str = ""


ADMIN_CATALOG: Tuple[PatternEntry, ...] = (
    PatternEntry(
        Action.APPROVE_BUILD,
        (
            r"approve.*build.*(\d+)",
            r"approve.*build.*(\w+)",
            r"approve.*production.*build",
            r"approve.*build.*for.*(\w+)",
            r"approve.*(\d+)",
            r"approve.*(\w+)",
            r"approve.*build",
        ),
        "Approve production build",
    ),
    PatternEntry(
        Action.DEPLOY_PRODUCTION,
        (
            r"deploy.*(\w+).*to.*production",
            r"deploy.*production.*(\w+)",
            r"release.*(\w+).*to.*production",
            r"deploy.*(\w+)",
            r"production.*deploy.*(\w+)",
        ),
        "Deploy branch to production",
    ),
    PatternEntry(
        Action.DEPLOY_API,
        (
            r"deploy.*api.*(\w+)",
            r"deploy.*(\w+).*api",
            r"api.*deploy.*(\w+)",
            r"deploy.*api",
        ),
        "Deploy an API to production",
    ),
    PatternEntry(
        Action.DEPLOY_REWARDS_DETAILS,
        (
            r"deploy.*rewards.*details",
            r"deploy.*rewards.*api",
            r"deploy.*rewards.*service",
            r"rewards.*deploy",
            r"deploy.*rewards",
        ),
        "Deploy the Rewards Details API",
    ),
    PatternEntry(
        Action.ABORT_BUILD,
        (
            r"abort.*build.*(\d+)",
            r"stop.*build.*(\d+)",
            r"cancel.*build.*(\d+)",
            r"abort.*(\d+)",
            r"stop.*build",
            r"cancel.*build",
        ),
        "Abort running build",
    ),
    PatternEntry(
        Action.SHOW_APPROVALS,
        (
            r"show.*pending.*approvals",
            r"show.*approvals",
            r"list.*approvals",
            r"pending.*approvals",
            r"approvals",
        ),
        "Show pending approvals",
    ),
    PatternEntry(
        Action.GENERATE_REPORT,
        (
            r"generate.*report",
            r"create.*report",
            r"show.*deployment.*report",
            r"deployment.*report",
            r"report",
        ),
        "Generate deployment report",
    ),
    PatternEntry(
        Action.DEPLOYMENT_ORCHESTRATION,
        (
            r"orchestrate.*deployment.*(\w+)",
            r"smart.*deploy.*(\w+)",
            r"intelligent.*deploy.*(\w+)",
            r"analyze.*and.*deploy.*(\w+)",
            r"orchestrate.*(\w+)",
            r"smart.*deploy",
            r"intelligent.*deploy",
        ),
        "Build, test, deploy and verify in one plan",
    ),
    PatternEntry(
        Action.DEPLOYMENT_ANALYSIS,
        (
            r"analyze.*deployment.*(\w+)",
            r"check.*deployment.*readiness.*(\w+)",
            r"deployment.*safety.*check.*(\w+)",
            r"analyze.*(\w+)",
            r"deployment.*analysis",
            r"safety.*check",
        ),
        "Score deployment readiness",
    ),
)

USER_CATALOG: Tuple[PatternEntry, ...] = (
    PatternEntry(
        Action.BUILD_BRANCH,
        (
            r"build.*my.*(\w+).*branch",
            r"build.*branch.*(\w+)",
            r"trigger.*build.*(\w+)",
            r"build.*(\w+)",
            r"build.*branch",
        ),
        "Build feature branch",
    ),
    PatternEntry(
        Action.CREATE_PR,
        (
            r"create.*pull.*request.*(\w+)",
            r"create.*pr.*(\w+)",
            r"open.*pull.*request.*(\w+)",
            r"create.*pr",
            r"pull.*request",
        ),
        "Create pull request",
    ),
    PatternEntry(
        Action.DEPLOY_STAGING,
        (
            r"deploy.*(\w+).*to.*staging",
            r"deploy.*staging.*(\w+)",
            r"push.*(\w+).*to.*staging",
            r"deploy.*(\w+)",
            r"staging.*deploy",
        ),
        "Deploy to staging",
    ),
    PatternEntry(
        Action.SHOW_BUILDS,
        (
            r"show.*my.*builds",
            r"show.*recent.*builds",
            r"list.*my.*builds",
            r"my.*builds",
            r"builds",
        ),
        "Show my builds",
    ),
    PatternEntry(
        Action.CHECK_STATUS,
        (
            r"check.*build.*status",
            r"show.*build.*status",
            r"what.*is.*build.*status",
            r"build.*status",
            r"status",
        ),
        "Check build status",
    ),
)

CATALOGS: Dict[Role, Tuple[PatternEntry, ...]] = {
    Role.ADMIN: ADMIN_CATALOG,
    Role.USER: USER_CATALOG,
}

_COMPILED: Dict[str, re.Pattern[str]] = {
    source: re.compile(source)
    for catalog in CATALOGS.values()
    for entry in catalog
    for source in entry.patterns
}


def catalog_for(role: Role) -> Tuple[PatternEntry, ...]:
    return CATALOGS[role]


def actions_for(role: Role) -> List[Action]:
    """Actions of a role's catalog, in declaration order."""
    return [entry.action for entry in catalog_for(role)]


def iter_patterns(role: Role) -> Iterator[Tuple[Action, str]]:
    """Yield (action, pattern) pairs in matching order."""
    for entry in catalog_for(role):
        for source in entry.patterns:
            yield entry.action, source


def compiled(source: str) -> re.Pattern[str]:
    pattern = _COMPILED.get(source)
    if pattern is None:
        pattern = _COMPILED.setdefault(source, re.compile(source))
    return pattern


def first_capturing_pattern(role: Role, action: Action) -> Optional[str]:
    """The action's first pattern with a capture group, else its first pattern."""
    for entry in catalog_for(role):
        if entry.action != action:
            continue
        for source in entry.patterns:
            if DIGIT_GROUP in source or WORD_GROUP in source:
                return source
        return entry.patterns[0] if entry.patterns else None
    return None


def catalog_summary(role: Role) -> Dict[str, str]:
    """Action name to description, for CLIs and UIs."""
    return {entry.action.value: entry.description for entry in catalog_for(role)}
