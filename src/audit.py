"""Command audit trail: one immutable record per processed command."""
from __future__ import annotations

import json
import threading
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from errors import CollaboratorUnavailable
from logging_utils import logger
from models import (
    INVALID_ACTION,
    UNRECOGNIZED_ACTION,
    AuditRecord,
    AuditStatus,
    CommandResult,
    Intent,
)


class AuditSink(ABC):
    """Storage for finalized audit records."""

    @abstractmethod
    def record_command(self, record: AuditRecord) -> None:
        pass

    @abstractmethod
    def find_by_action(self, action: str) -> List[AuditRecord]:
        pass

    @abstractmethod
    def find_by_status(self, status: AuditStatus) -> List[AuditRecord]:
        pass

    @abstractmethod
    def find_by_user(self, username: str) -> List[AuditRecord]:
        pass

    @abstractmethod
    def recent(self, since: datetime) -> List[AuditRecord]:
        pass

    def count_since(self, status: AuditStatus, since: datetime) -> int:
        return sum(1 for record in self.recent(since) if record.status == status)


class InMemoryAuditSink(AuditSink):
    def __init__(self) -> None:
        self._records: List[AuditRecord] = []
        self._lock = threading.Lock()

    def record_command(self, record: AuditRecord) -> None:
        with self._lock:
            self._records.append(record)

    def all(self) -> List[AuditRecord]:
        with self._lock:
            return list(self._records)

    def find_by_action(self, action: str) -> List[AuditRecord]:
        return [r for r in self.all() if r.action == action]

    def find_by_status(self, status: AuditStatus) -> List[AuditRecord]:
        return [r for r in self.all() if r.status == status]

    def find_by_user(self, username: str) -> List[AuditRecord]:
        records = [r for r in self.all() if r.username == username]
        return sorted(records, key=lambda r: r.created_at, reverse=True)

    def recent(self, since: datetime) -> List[AuditRecord]:
        return [r for r in self.all() if r.created_at >= since]


class JsonlAuditSink(InMemoryAuditSink):
    """Keeps records queryable in memory and appends each one to a JSON-lines file."""

    def __init__(self, path: Path) -> None:
        super().__init__()
        self.path = path
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def record_command(self, record: AuditRecord) -> None:
        try:
            with self.path.open("a", encoding="utf-8") as handle:
                handle.write(json.dumps(record.to_dict()) + "\n")
        except OSError as exc:
            raise CollaboratorUnavailable(f"Audit log unavailable: {exc}") from exc
        super().record_command(record)


class AuditRecorder:
    """Drives each record through PENDING -> PROCESSING -> terminal and hands it to the sink once."""

    def __init__(self, sink: AuditSink) -> None:
        self.sink = sink

    def begin(self, username: str, original_text: str) -> AuditRecord:
        record = AuditRecord(record_id=str(uuid.uuid4()), username=username, original_text=original_text)
        record.transition(AuditStatus.PROCESSING)
        return record

    def complete(self, record: AuditRecord, intent: Intent, result: CommandResult, execution_time_ms: int) -> AuditRecord:
        record.action = intent.action.value
        record.processed_text = intent.action.value
        record.parameters = dict(intent.parameters)
        record.confidence = intent.confidence
        return self._finalize(
            record,
            AuditStatus.COMPLETED if result.success else AuditStatus.FAILED,
            result,
            execution_time_ms,
        )

    def mark_unrecognized(self, record: AuditRecord, result: CommandResult, execution_time_ms: int) -> AuditRecord:
        record.action = UNRECOGNIZED_ACTION
        return self._finalize(record, AuditStatus.INVALID, result, execution_time_ms)

    def mark_rejected(self, record: AuditRecord, result: CommandResult, execution_time_ms: int) -> AuditRecord:
        """Request refused before recognition (unknown caller or a role the caller does not hold)."""
        record.action = INVALID_ACTION
        return self._finalize(record, AuditStatus.FAILED, result, execution_time_ms)

    def _finalize(
        self, record: AuditRecord, status: AuditStatus, result: CommandResult, execution_time_ms: int
    ) -> AuditRecord:
        record.response = result.message
        record.success = result.success
        record.execution_time_ms = execution_time_ms
        record.processed_at = datetime.now()
        record.transition(status)
        record.seal()
        try:
            self.sink.record_command(record)
        except CollaboratorUnavailable as exc:
            logger.error("Audit record not stored", extra={"extra": {"record_id": record.record_id, "error": str(exc)}})
        except Exception:
            # The command already ran; a broken sink must not change its result
            logger.exception("Audit sink failed", extra={"extra": {"record_id": record.record_id}})
        return record

    def find(self, record_id: str) -> Optional[AuditRecord]:
        for record in self.sink.recent(datetime.min):
            if record.record_id == record_id:
                return record
        return None
