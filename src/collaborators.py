"""Build system, source control and user directory collaborators.

The dispatcher only sees the abstract interfaces. The in-memory
implementations stand in for the CI server and the source-control host and
are what the CLI and the tests run against.
"""
from __future__ import annotations

import hashlib
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional

from config import SourceControlConfig, config
from deployment_simulator import DeploymentSupervisor
from errors import (
    CallerNotFound,
    CollaboratorUnavailable,
    InvalidStateTransition,
    RequiredParameterMissing,
    RoleNotGranted,
    TargetEntityNotFound,
)
from logging_utils import logger
from models import Build, BuildStatus, Commit, PullRequest, PullRequestStatus, Role, User

BUILD_URL = "http://mock-jenkins.company.com/job/{job}/{number}"
PR_URL = "http://mock-github.company.com/pull/{pr_id}"
FIRST_BUILD_NUMBER = 1001
FIRST_PR_NUMBER = 101


class BuildSystem(ABC):
    """Operations the dispatcher needs from a CI server."""

    @abstractmethod
    def trigger_build(self, branch: str, username: str) -> Build:
        pass

    @abstractmethod
    def approve_build(self, build_id: str, username: str) -> Build:
        pass

    @abstractmethod
    def abort_build(self, build_id: str, username: str) -> Build:
        pass

    @abstractmethod
    def deploy_to_staging(self, branch: str, username: str) -> Build:
        pass

    @abstractmethod
    def deploy_to_production(self, branch: str, username: str) -> Build:
        pass

    @abstractmethod
    def deploy_api(self, api_name: str, branch: str, username: str) -> Build:
        pass

    @abstractmethod
    def get_build_status(self, build_id: str) -> Build:
        pass

    @abstractmethod
    def list_user_builds(self, username: str, limit: int = 5) -> List[Build]:
        pass

    @abstractmethod
    def list_pending_approvals(self) -> List[Build]:
        pass

    @abstractmethod
    def build_statistics(self, since: datetime) -> Dict[str, int]:
        pass


class SourceControl(ABC):
    """Operations the dispatcher needs from a source-control host."""

    @abstractmethod
    def create_pull_request(self, branch: str, username: str, target_branch: str = "develop") -> PullRequest:
        pass

    @abstractmethod
    def list_user_pull_requests(self, username: str, limit: int = 5) -> List[PullRequest]:
        pass

    @abstractmethod
    def merge_pull_request(self, pr_id: str, username: str) -> PullRequest:
        pass

    @abstractmethod
    def get_branch_status(self, branch: str) -> List[PullRequest]:
        pass

    @abstractmethod
    def list_open_pull_requests(self, branch: str) -> List[PullRequest]:
        pass

    @abstractmethod
    def list_recent_commits(self, branch: str) -> List[Commit]:
        pass


class UserDirectory:
    """Username to User lookup."""

    def __init__(self, users: Iterable[User] = ()) -> None:
        self._users: Dict[str, User] = {user.username: user for user in users}

    def add(self, user: User) -> None:
        self._users[user.username] = user

    def find_user(self, username: str) -> User:
        user = self._users.get((username or "").strip())
        if user is None or not user.active:
            raise CallerNotFound(f"User not found: {username}")
        return user

    def resolve_caller(self, username: str, role: Optional[Role] = None) -> User:
        """Look the caller up and check a claimed role against the directory."""
        user = self.find_user(username)
        if role is not None and Role(role) != user.role:
            raise RoleNotGranted(f"Role {Role(role).value} not granted to user {user.username}")
        return user

    def __len__(self) -> int:
        return len(self._users)


@dataclass
class CommandContext:
    """Who is asking and which collaborators a handler may call."""

    user: User
    build_system: BuildSystem
    source_control: SourceControl


class InMemoryBuildSystem(BuildSystem):
    """Build store with a Jenkins-like surface. Build numbers come from a per-instance sequence."""

    def __init__(self, supervisor: DeploymentSupervisor | None = None) -> None:
        self.supervisor = supervisor or DeploymentSupervisor()
        self.available = True
        self._builds: Dict[str, Build] = {}
        self._next_number = FIRST_BUILD_NUMBER
        self._lock = threading.RLock()

    def _ensure_available(self) -> None:
        if not self.available:
            raise CollaboratorUnavailable("Build system is unavailable")

    def add_build(self, build: Build) -> Build:
        with self._lock:
            self._builds[build.build_id.upper()] = build
            self._next_number = max(self._next_number, build.build_number + 1)
        return build

    def all_builds(self) -> List[Build]:
        with self._lock:
            return list(self._builds.values())

    def _create(
        self,
        prefix: str,
        job_name: str,
        branch: str,
        status: BuildStatus,
        environment: str,
        username: str,
        requires_approval: bool = False,
        api_name: str | None = None,
    ) -> Build:
        if not branch:
            raise RequiredParameterMissing("Branch not specified")
        with self._lock:
            number = self._next_number
            self._next_number += 1
            build = Build(
                build_id=f"{prefix}-{number}",
                job_name=job_name,
                branch=branch,
                build_number=number,
                status=status,
                environment=environment,
                triggered_by=username,
                requires_approval=requires_approval,
                build_url=BUILD_URL.format(job=job_name, number=number),
                api_name=api_name,
            )
            self._builds[build.build_id] = build
        return build

    def find_build(self, build_id: str) -> Build:
        """Exact id match (case-insensitive), or a bare build number that is unambiguous."""
        if not build_id:
            raise RequiredParameterMissing("Build ID not specified")
        with self._lock:
            build = self._builds.get(build_id.upper())
            if build:
                return build
            if build_id.isdigit():
                candidates = [b for b in self._builds.values() if b.build_number == int(build_id)]
                if len(candidates) == 1:
                    return candidates[0]
                if candidates:
                    names = ", ".join(sorted(b.build_id for b in candidates))
                    raise TargetEntityNotFound(f"Build ID {build_id} is ambiguous: {names}")
        raise TargetEntityNotFound(f"Build not found: {build_id}")

    def trigger_build(self, branch: str, username: str) -> Build:
        self._ensure_available()
        build = self._create("BUILD", "feature-build", branch, BuildStatus.RUNNING, "development", username)
        logger.info("Build triggered", extra={"extra": {"build_id": build.build_id, "branch": branch, "user": username}})
        return build

    def approve_build(self, build_id: str, username: str) -> Build:
        self._ensure_available()
        with self._lock:
            build = self.find_build(build_id)
            if build.status != BuildStatus.PENDING_APPROVAL:
                raise InvalidStateTransition("Build is not pending approval")
            build.status = BuildStatus.RUNNING
            build.approved_by = username
            build.approved_at = datetime.now()
        logger.info("Build approved", extra={"extra": {"build_id": build.build_id, "user": username}})
        return build

    def abort_build(self, build_id: str, username: str) -> Build:
        self._ensure_available()
        with self._lock:
            build = self.find_build(build_id)
            if build.status not in (BuildStatus.RUNNING, BuildStatus.QUEUED):
                raise InvalidStateTransition("Build is not running or queued")
            build.status = BuildStatus.ABORTED
            build.completed_at = datetime.now()
        cancelled = self.supervisor.cancel(build.build_id)
        logger.info(
            "Build aborted",
            extra={"extra": {"build_id": build.build_id, "user": username, "progress_task_cancelled": cancelled}},
        )
        return build

    def deploy_to_staging(self, branch: str, username: str) -> Build:
        self._ensure_available()
        build = self._create("STAGE", "staging-deploy", branch, BuildStatus.RUNNING, "staging", username)
        logger.info("Staging deployment triggered", extra={"extra": {"build_id": build.build_id, "branch": branch, "user": username}})
        return build

    def deploy_to_production(self, branch: str, username: str) -> Build:
        self._ensure_available()
        build = self._create(
            "PROD", "production-deploy", branch, BuildStatus.PENDING_APPROVAL, "production", username, requires_approval=True
        )
        logger.info("Production deployment triggered", extra={"extra": {"build_id": build.build_id, "branch": branch, "user": username}})
        return build

    def deploy_api(self, api_name: str, branch: str, username: str) -> Build:
        self._ensure_available()
        if not api_name:
            raise RequiredParameterMissing("API name not specified")
        build = self._create(
            "API", "api-deploy", branch, BuildStatus.RUNNING, "production", username, api_name=api_name
        )
        self.supervisor.start(build.build_id, self.update_progress, self.complete_deployment)
        logger.info("API deployment triggered", extra={"extra": {"build_id": build.build_id, "api_name": api_name, "user": username}})
        return build

    def update_progress(self, build_id: str, progress: int) -> None:
        with self._lock:
            build = self._builds.get(build_id)
            if build:
                build.deployment_progress = progress

    def complete_deployment(self, build_id: str) -> None:
        with self._lock:
            build = self._builds.get(build_id)
            if not build or build.status != BuildStatus.RUNNING:
                return
            build.status = BuildStatus.SUCCESS
            build.deployment_progress = 100
            build.completed_at = datetime.now()
            build.duration_seconds = int((build.completed_at - build.started_at).total_seconds())

    def get_build_status(self, build_id: str) -> Build:
        self._ensure_available()
        return self.find_build(build_id)

    def list_user_builds(self, username: str, limit: int = 5) -> List[Build]:
        self._ensure_available()
        with self._lock:
            builds = [b for b in self._builds.values() if b.triggered_by == username]
        builds.sort(key=lambda b: b.started_at, reverse=True)
        return builds[:limit]

    def list_pending_approvals(self) -> List[Build]:
        self._ensure_available()
        with self._lock:
            return [b for b in self._builds.values() if b.requires_approval and b.status == BuildStatus.PENDING_APPROVAL]

    def build_statistics(self, since: datetime) -> Dict[str, int]:
        self._ensure_available()
        with self._lock:
            recent = [b for b in self._builds.values() if b.started_at >= since]
        stats = {status.value: 0 for status in BuildStatus}
        for build in recent:
            stats[build.status.value] += 1
        stats["TOTAL"] = len(recent)
        return stats


class InMemorySourceControl(SourceControl):
    """Pull requests and commits with a GitHub-like surface."""

    def __init__(self, settings: SourceControlConfig | None = None) -> None:
        self.settings = settings or config.source_control
        self.available = True
        self._pull_requests: Dict[str, PullRequest] = {}
        self._commits: List[Commit] = []
        self._next_number = FIRST_PR_NUMBER
        self._lock = threading.RLock()

    def _ensure_available(self) -> None:
        if not self.available:
            raise CollaboratorUnavailable("Source control is unavailable")

    def add_pull_request(self, pr: PullRequest) -> PullRequest:
        with self._lock:
            self._pull_requests[pr.pr_id.upper()] = pr
            number = int(pr.pr_id.split("-")[-1]) if pr.pr_id.split("-")[-1].isdigit() else 0
            self._next_number = max(self._next_number, number + 1)
        return pr

    def add_commit(self, branch: str, author: str, message: str, committed_at: datetime | None = None) -> Commit:
        committed_at = committed_at or datetime.now()
        sha = hashlib.sha1(f"{branch}:{author}:{message}:{committed_at.isoformat()}".encode("utf-8")).hexdigest()
        commit = Commit(sha=sha, branch=branch, author=author, message=message, committed_at=committed_at)
        with self._lock:
            self._commits.append(commit)
        return commit

    def create_pull_request(self, branch: str, username: str, target_branch: str = "develop") -> PullRequest:
        self._ensure_available()
        if not branch:
            raise RequiredParameterMissing("Branch not specified")
        with self._lock:
            pr_id = f"PR-{self._next_number}"
            self._next_number += 1
            pr = PullRequest(
                pr_id=pr_id,
                title=f"Feature: {branch} branch",
                source_branch=branch,
                target_branch=target_branch,
                author=username,
                url=PR_URL.format(pr_id=pr_id),
                description=f"Pull request created via voice command for branch: {branch}",
            )
            self._pull_requests[pr_id] = pr
        logger.info("Pull request created", extra={"extra": {"pr_id": pr_id, "branch": branch, "user": username}})
        return pr

    def list_user_pull_requests(self, username: str, limit: int = 5) -> List[PullRequest]:
        self._ensure_available()
        with self._lock:
            prs = [pr for pr in self._pull_requests.values() if pr.author == username]
        prs.sort(key=lambda pr: pr.created_at, reverse=True)
        return prs[:limit]

    def merge_pull_request(self, pr_id: str, username: str) -> PullRequest:
        self._ensure_available()
        if not pr_id:
            raise RequiredParameterMissing("Pull request ID not specified")
        with self._lock:
            pr = self._pull_requests.get(pr_id.upper())
            if pr is None:
                raise TargetEntityNotFound(f"Pull request not found: {pr_id}")
            if pr.status != PullRequestStatus.OPEN:
                raise InvalidStateTransition("Pull request is not open for merging")
            pr.status = PullRequestStatus.MERGED
            pr.merged_at = datetime.now()
            pr.merged_by = username
        logger.info("Pull request merged", extra={"extra": {"pr_id": pr.pr_id, "user": username}})
        return pr

    def get_branch_status(self, branch: str) -> List[PullRequest]:
        self._ensure_available()
        if not branch:
            raise RequiredParameterMissing("Branch not specified")
        with self._lock:
            return [pr for pr in self._pull_requests.values() if pr.source_branch == branch]

    def list_open_pull_requests(self, branch: str) -> List[PullRequest]:
        """Open pull requests into or out of the branch."""
        self._ensure_available()
        with self._lock:
            prs = [
                pr
                for pr in self._pull_requests.values()
                if pr.status == PullRequestStatus.OPEN and branch in (pr.source_branch, pr.target_branch)
            ]
        return prs[: self.settings.open_pr_limit]

    def list_recent_commits(self, branch: str) -> List[Commit]:
        self._ensure_available()
        cutoff = datetime.now() - timedelta(days=self.settings.recent_commit_days)
        with self._lock:
            commits = [c for c in self._commits if c.branch == branch and c.committed_at >= cutoff]
        commits.sort(key=lambda c: c.committed_at, reverse=True)
        return commits[: self.settings.recent_commit_limit]


SAMPLE_USERS = (
    ("admin", "admin@company.com", "Admin User", Role.ADMIN),
    ("manager", "manager@company.com", "Tech Manager", Role.ADMIN),
    ("developer", "developer@company.com", "John Developer", Role.USER),
    ("developer2", "developer2@company.com", "Jane Developer", Role.USER),
    ("senior", "senior@company.com", "Senior Developer", Role.USER),
)

# (build id, job, branch, status, environment, requires approval, triggered by)
SAMPLE_BUILDS = (
    ("PROD-1001", "production-deploy", "release-2.1.0", BuildStatus.PENDING_APPROVAL, "production", True, "admin"),
    ("PROD-1002", "production-deploy", "release-2.0.5", BuildStatus.PENDING_APPROVAL, "production", True, "admin"),
    ("BUILD-1001", "feature-build", "feature-branch", BuildStatus.RUNNING, "development", False, "developer"),
    ("STAGE-1001", "staging-deploy", "feature-branch", BuildStatus.RUNNING, "staging", False, "developer"),
    ("BUILD-1000", "feature-build", "bugfix-123", BuildStatus.SUCCESS, "development", False, "developer"),
    ("BUILD-999", "feature-build", "feature-auth", BuildStatus.SUCCESS, "development", False, "developer"),
    ("BUILD-998", "feature-build", "feature-payment", BuildStatus.FAILED, "development", False, "developer"),
    ("STAGE-1000", "staging-deploy", "release-2.1.0", BuildStatus.SUCCESS, "staging", False, "admin"),
    ("STAGE-999", "staging-deploy", "release-2.0.5", BuildStatus.SUCCESS, "staging", False, "admin"),
)

# (pr id, source, target, author, status)
SAMPLE_PULL_REQUESTS = (
    ("PR-101", "feature-auth", "develop", "developer", PullRequestStatus.OPEN),
    ("PR-102", "release-2.1.0", "main", "admin", PullRequestStatus.OPEN),
    ("PR-103", "bugfix-123", "develop", "developer2", PullRequestStatus.MERGED),
)

# (branch, author, message, age in days)
SAMPLE_COMMITS = (
    ("main", "admin", "Merge release-2.0.5", 1),
    ("main", "manager", "Bump dependencies", 2),
    ("main", "admin", "Fix health endpoint", 3),
    ("develop", "developer", "Add auth middleware", 1),
    ("develop", "developer2", "Refactor payment client", 4),
    ("release-2.1.0", "admin", "Prepare 2.1.0 release notes", 2),
    ("feature-branch", "developer", "Initial feature scaffold", 20),
)


def seed_sample_data(
    directory: UserDirectory,
    builds: InMemoryBuildSystem,
    scm: InMemorySourceControl,
    now: Optional[datetime] = None,
) -> None:
    """Populate empty collaborators with demo users, builds, pull requests and commits."""
    now = now or datetime.now()

    if len(directory) == 0:
        for username, email, full_name, role in SAMPLE_USERS:
            directory.add(User(username=username, email=email, full_name=full_name, role=role))
        logger.info("Created sample users", extra={"extra": {"count": len(SAMPLE_USERS)}})
    else:
        logger.info("Users already exist, skipping user creation")

    if not builds.all_builds():
        for build_id, job, branch, status, environment, requires_approval, triggered_by in SAMPLE_BUILDS:
            number = int(build_id.split("-")[1])
            build = Build(
                build_id=build_id,
                job_name=job,
                branch=branch,
                build_number=number,
                status=status,
                environment=environment,
                triggered_by=triggered_by,
                requires_approval=requires_approval,
                build_url=BUILD_URL.format(job=job, number=number),
                started_at=now - timedelta(minutes=30),
            )
            if status in (BuildStatus.SUCCESS, BuildStatus.FAILED):
                build.completed_at = now - timedelta(minutes=5)
                build.duration_seconds = 300
            builds.add_build(build)
        logger.info("Created sample builds", extra={"extra": {"count": len(SAMPLE_BUILDS)}})
    else:
        logger.info("Builds already exist, skipping build creation")

    if not scm.list_user_pull_requests("developer") and not scm.list_user_pull_requests("admin"):
        for pr_id, source, target, author, status in SAMPLE_PULL_REQUESTS:
            scm.add_pull_request(
                PullRequest(
                    pr_id=pr_id,
                    title=f"Feature: {source} branch",
                    source_branch=source,
                    target_branch=target,
                    author=author,
                    status=status,
                    url=PR_URL.format(pr_id=pr_id),
                    created_at=now - timedelta(hours=6),
                )
            )
        for branch, author, message, age_days in SAMPLE_COMMITS:
            scm.add_commit(branch, author, message, committed_at=now - timedelta(days=age_days))
