"""End-to-end voice command pipeline: caller lookup, recognize, dispatch, audit."""
from __future__ import annotations

import time
from typing import Any, Dict, List, Optional

import dispatcher
import intent_parser
from audit import AuditRecorder, AuditSink, InMemoryAuditSink, JsonlAuditSink
from collaborators import (
    BuildSystem,
    CommandContext,
    InMemoryBuildSystem,
    InMemorySourceControl,
    SourceControl,
    UserDirectory,
    seed_sample_data,
)
from config import AppConfig, LLMConfig, config
from deployment_simulator import DeploymentSupervisor
from errors import CommandNotRecognized, VoiceDevOpsError
from logging_utils import logger
from metrics import CommandMetrics
from models import CommandRequest, CommandResult, Role

NOT_RECOGNIZED_MESSAGE = "Command not recognized. Please try again."


class VoiceCommandProcessor:
    def __init__(
        self,
        directory: UserDirectory,
        build_system: BuildSystem,
        source_control: SourceControl,
        audit_sink: AuditSink,
        llm_config: LLMConfig | None = None,
    ) -> None:
        self.directory = directory
        self.build_system = build_system
        self.source_control = source_control
        self.recorder = AuditRecorder(audit_sink)
        self.llm_config = llm_config or config.llm

    def process_command(
        self,
        command_text: str,
        username: str,
        role: Optional[Role] = None,
        metrics: CommandMetrics | None = None,
    ) -> CommandResult:
        """
        Process one voice command for a caller.

        Always returns a CommandResult and always leaves exactly one audit
        record behind, whatever fails along the way. The directory decides the
        caller's role; a `role` that disagrees with it is refused.
        """
        metrics = metrics or CommandMetrics()
        start = time.time()
        logger.info(
            "Voice command processing start",
            extra={"extra": {"correlation_id": metrics.correlation_id, "user": username, "text": command_text}},
        )
        record = self.recorder.begin(username, command_text)

        def elapsed_ms() -> int:
            return int((time.time() - start) * 1000)

        try:
            user = self.directory.resolve_caller(username, role)
        except VoiceDevOpsError as exc:
            result = CommandResult(str(exc), False)
            self.recorder.mark_rejected(record, result, elapsed_ms())
            self._log_final(metrics, result)
            return result

        try:
            intent = intent_parser.recognize(command_text, user.role, metrics, self.llm_config)
            if intent is None:
                raise CommandNotRecognized(NOT_RECOGNIZED_MESSAGE)

            metrics.action = intent.action.value
            dispatch_start = time.time()
            context = CommandContext(user=user, build_system=self.build_system, source_control=self.source_control)
            result = dispatcher.dispatch(intent, user.role, context)
            metrics.dispatch_latency_ms = int((time.time() - dispatch_start) * 1000)
            self.recorder.complete(record, intent, result, elapsed_ms())
        except CommandNotRecognized as exc:
            result = CommandResult(str(exc), False)
            self.recorder.mark_unrecognized(record, result, elapsed_ms())
        except Exception as exc:
            logger.exception(
                "Error processing voice command",
                extra={"extra": {"correlation_id": metrics.correlation_id, "text": command_text}},
            )
            result = CommandResult(f"Error processing command: {exc}", False)
            if not record.finalized:
                self.recorder.mark_rejected(record, result, elapsed_ms())

        self._log_final(metrics, result)
        return result

    def _log_final(self, metrics: CommandMetrics, result: CommandResult) -> None:
        metrics.success = result.success
        logger.info(
            "Voice command processing complete",
            extra={
                "extra": {
                    "correlation_id": metrics.correlation_id,
                    "success": result.success,
                    "response": result.message,
                    "metrics": metrics.finalize(),
                }
            },
        )

    def process_batch(self, requests: List[CommandRequest]) -> List[Dict[str, Any]]:
        results = []
        for request in requests:
            metrics = CommandMetrics()
            result = self.process_command(request.command, request.username, request.role, metrics)
            results.append(
                {
                    "request_id": request.id,
                    "username": request.username,
                    "command": request.command,
                    "result": result.to_dict(),
                    "metrics": metrics.finalize(),
                }
            )
        return results


def build_default_processor(app_config: AppConfig | None = None, seed: bool = True) -> VoiceCommandProcessor:
    """Wire in-memory collaborators from configuration, optionally seeded with sample data."""
    app_config = app_config or config
    directory = UserDirectory()
    build_system = InMemoryBuildSystem(DeploymentSupervisor(app_config.simulator))
    source_control = InMemorySourceControl(app_config.source_control)
    if seed:
        seed_sample_data(directory, build_system, source_control)

    sink: AuditSink
    if app_config.audit.log_path:
        sink = JsonlAuditSink(app_config.audit.log_path)
    else:
        sink = InMemoryAuditSink()

    return VoiceCommandProcessor(directory, build_system, source_control, sink, app_config.llm)
