"""Error taxonomy for the voice_devops agent.

Every error here is caught at the boundary of the component that detects it
and turned into a failed CommandResult; the message is what gets spoken back.
"""
from __future__ import annotations


class VoiceDevOpsError(Exception):
    """Base class for all expected command failures."""


class CallerNotFound(VoiceDevOpsError):
    pass


class CommandNotRecognized(VoiceDevOpsError):
    pass


class RequiredParameterMissing(VoiceDevOpsError):
    pass


class TargetEntityNotFound(VoiceDevOpsError):
    pass


class InvalidStateTransition(VoiceDevOpsError):
    pass


class UnknownTargetEnvironment(VoiceDevOpsError):
    pass


class CollaboratorUnavailable(VoiceDevOpsError):
    """Network or storage failure reported by an external system."""


class AuditRecordImmutable(VoiceDevOpsError):
    pass


class RoleNotGranted(VoiceDevOpsError):
    """Caller asked to act under a role the user directory does not give them."""
