"""Data models and constants for the voice_devops agent."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional

from errors import AuditRecordImmutable, InvalidStateTransition

PROTECTED_BRANCHES: set[str] = {"main", "master"}


class Role(str, Enum):
    ADMIN = "ADMIN"
    USER = "USER"


class Action(str, Enum):
    """Every action either role's catalog can recognize."""

    # ADMIN catalog
    APPROVE_BUILD = "APPROVE_BUILD"
    DEPLOY_PRODUCTION = "DEPLOY_PRODUCTION"
    DEPLOY_API = "DEPLOY_API"
    DEPLOY_REWARDS_DETAILS = "DEPLOY_REWARDS_DETAILS"
    ABORT_BUILD = "ABORT_BUILD"
    SHOW_APPROVALS = "SHOW_APPROVALS"
    GENERATE_REPORT = "GENERATE_REPORT"
    DEPLOYMENT_ORCHESTRATION = "DEPLOYMENT_ORCHESTRATION"
    DEPLOYMENT_ANALYSIS = "DEPLOYMENT_ANALYSIS"
    # USER catalog
    BUILD_BRANCH = "BUILD_BRANCH"
    CREATE_PR = "CREATE_PR"
    DEPLOY_STAGING = "DEPLOY_STAGING"
    SHOW_BUILDS = "SHOW_BUILDS"
    CHECK_STATUS = "CHECK_STATUS"


# Audit sentinels, never dispatched
UNRECOGNIZED_ACTION = "UNRECOGNIZED"
INVALID_ACTION = "INVALID"


class BuildStatus(str, Enum):
    QUEUED = "QUEUED"
    RUNNING = "RUNNING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    ABORTED = "ABORTED"
    PENDING_APPROVAL = "PENDING_APPROVAL"


class PullRequestStatus(str, Enum):
    OPEN = "OPEN"
    MERGED = "MERGED"
    CLOSED = "CLOSED"


class SafetyBand(str, Enum):
    SAFE = "SAFE"
    CAUTION = "CAUTION"
    RISK = "RISK"


class AuditStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    INVALID = "INVALID"
    FAILED = "FAILED"


@dataclass
class User:
    username: str
    email: str
    full_name: str
    role: Role
    active: bool = True


@dataclass
class Intent:
    """Recognized action plus the parameters pulled out of the text."""

    action: Action
    parameters: Dict[str, str] = field(default_factory=dict)
    pattern: Optional[str] = None
    confidence: float = 0.9


@dataclass(frozen=True)
class CommandResult:
    """Spoken-back outcome of a command: text and a success flag, nothing else."""

    message: str
    success: bool

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message, "success": self.success}


@dataclass
class Build:
    build_id: str
    job_name: str
    branch: str
    build_number: int
    status: BuildStatus
    environment: str
    triggered_by: str
    requires_approval: bool = False
    build_url: Optional[str] = None
    api_name: Optional[str] = None
    deployment_progress: int = 0
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    started_at: datetime = field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None
    duration_seconds: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "buildId": self.build_id,
            "jobName": self.job_name,
            "branchName": self.branch,
            "buildNumber": self.build_number,
            "status": self.status.value,
            "environment": self.environment,
            "triggeredBy": self.triggered_by,
            "requiresApproval": self.requires_approval,
            "buildUrl": self.build_url,
            "apiName": self.api_name,
            "deploymentProgress": self.deployment_progress,
            "approvedBy": self.approved_by,
            "approvedAt": self.approved_at.isoformat() if self.approved_at else None,
            "startedAt": self.started_at.isoformat(),
            "completedAt": self.completed_at.isoformat() if self.completed_at else None,
            "durationSeconds": self.duration_seconds,
        }


@dataclass
class PullRequest:
    pr_id: str
    title: str
    source_branch: str
    target_branch: str
    author: str
    status: PullRequestStatus = PullRequestStatus.OPEN
    url: Optional[str] = None
    description: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)
    merged_at: Optional[datetime] = None
    merged_by: Optional[str] = None


@dataclass
class Commit:
    sha: str
    branch: str
    author: str
    message: str
    committed_at: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class SafetyAssessment:
    branch: str
    branch_protected: bool
    open_pr_count: int
    recent_commit_count: int
    score: int
    band: SafetyBand


@dataclass
class PlanStep:
    name: str
    result: CommandResult


@dataclass
class OrchestrationPlan:
    target: str
    branch: str
    steps: List[PlanStep] = field(default_factory=list)
    assessment: Optional[SafetyAssessment] = None

    def step(self, name: str) -> Optional[PlanStep]:
        return next((s for s in self.steps if s.name == name), None)

    @property
    def success(self) -> bool:
        """Build and deploy decide the outcome; test and verify are placeholders."""
        build = self.step("build")
        deploy = self.step("deploy")
        return bool(build and build.result.success and deploy and deploy.result.success)


_AUDIT_TRANSITIONS: Dict[AuditStatus, set[AuditStatus]] = {
    AuditStatus.PENDING: {AuditStatus.PROCESSING},
    AuditStatus.PROCESSING: {AuditStatus.COMPLETED, AuditStatus.INVALID, AuditStatus.FAILED},
}
TERMINAL_AUDIT_STATUSES: set[AuditStatus] = {AuditStatus.COMPLETED, AuditStatus.INVALID, AuditStatus.FAILED}


@dataclass
class AuditRecord:
    """One processed command. Frozen once it reaches a terminal status."""

    record_id: str
    username: str
    original_text: str
    status: AuditStatus = AuditStatus.PENDING
    action: Optional[str] = None
    processed_text: Optional[str] = None
    parameters: Mapping[str, str] = field(default_factory=dict)
    response: Optional[str] = None
    success: Optional[bool] = None
    execution_time_ms: Optional[int] = None
    confidence: Optional[float] = None
    created_at: datetime = field(default_factory=datetime.now)
    processed_at: Optional[datetime] = None

    def __setattr__(self, name: str, value: Any) -> None:
        if self.__dict__.get("_sealed"):
            raise AuditRecordImmutable(f"Audit record {self.record_id} is finalized")
        super().__setattr__(name, value)

    @property
    def finalized(self) -> bool:
        return bool(self.__dict__.get("_sealed"))

    def transition(self, new_status: AuditStatus) -> None:
        if self.finalized:
            raise AuditRecordImmutable(f"Audit record {self.record_id} is finalized")
        if new_status not in _AUDIT_TRANSITIONS.get(self.status, set()):
            raise InvalidStateTransition(
                f"Audit record cannot move from {self.status.value} to {new_status.value}"
            )
        self.status = new_status

    def seal(self) -> None:
        if self.status not in TERMINAL_AUDIT_STATUSES:
            raise InvalidStateTransition(f"Audit record {self.record_id} is still {self.status.value}")
        # Parameters are frozen along with the attributes
        self.__dict__["parameters"] = MappingProxyType(dict(self.parameters))
        self.__dict__["_sealed"] = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.record_id,
            "user": self.username,
            "originalText": self.original_text,
            "processedText": self.processed_text,
            "commandType": self.action,
            "parameters": dict(self.parameters),
            "status": self.status.value,
            "response": self.response,
            "success": self.success,
            "executionTimeMs": self.execution_time_ms,
            "confidenceScore": self.confidence,
            "createdAt": self.created_at.isoformat(),
            "processedAt": self.processed_at.isoformat() if self.processed_at else None,
        }


@dataclass
class CommandRequest:
    """One entry of a batch input file."""

    id: str
    username: str
    command: str
    role: Optional[Role] = None
