"""Health checks for the voice command agent."""
from __future__ import annotations

import os
import re
import shutil
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple

from config import config
from logging_utils import logger

Probe = Callable[[], Tuple[bool, str, Dict[str, Any]]]

MIN_FREE_GB = 1.0
MIN_FREE_PERCENT = 10


@dataclass
class HealthCheck:
    """Individual health check result."""

    name: str
    healthy: bool
    message: str
    latency_ms: Optional[int] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class HealthStatus:
    """Overall health status of the system."""

    healthy: bool
    checks: Dict[str, HealthCheck]
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "healthy": self.healthy,
            "timestamp": self.timestamp,
            "checks": {
                name: {
                    "healthy": check.healthy,
                    "message": check.message,
                    "latency_ms": check.latency_ms,
                    "metadata": check.metadata,
                }
                for name, check in self.checks.items()
            },
        }


def _run_check(name: str, probe: Probe, error_label: str) -> HealthCheck:
    start = time.time()
    try:
        healthy, message, metadata = probe()
    except Exception as e:
        healthy, message, metadata = False, f"{error_label}: {str(e)[:100]}", {}
    return HealthCheck(
        name=name,
        healthy=healthy,
        message=message,
        latency_ms=int((time.time() - start) * 1000),
        metadata=metadata,
    )


def _probe_pattern_registry() -> Tuple[bool, str, Dict[str, Any]]:
    import dispatcher
    import pattern_registry

    counts = {}
    for role in pattern_registry.CATALOGS:
        sources = [source for _, source in pattern_registry.iter_patterns(role)]
        for source in sources:
            re.compile(source)
        counts[role.value] = len(sources)

    dispatcher.verify_dispatch_tables()
    return True, "Command catalogs loaded successfully", {
        "roles_count": len(counts),
        "patterns_count": sum(counts.values()),
        "patterns_per_role": counts,
    }


def check_pattern_registry() -> HealthCheck:
    """Every catalog pattern compiles and every catalog action has a handler."""
    return _run_check("pattern_registry", _probe_pattern_registry, "Error loading command catalogs")


def _probe_logging() -> Tuple[bool, str, Dict[str, Any]]:
    logger.info("Health check test log", extra={"extra": {"test": True}})
    return True, "Logging system is functional", {"log_path": str(config.logging.log_path)}


def check_logging() -> HealthCheck:
    return _run_check("logging", _probe_logging, "Logging error")


def _probe_audit_log() -> Tuple[bool, str, Dict[str, Any]]:
    path = config.audit.log_path
    if path is None:
        return True, "Audit records kept in memory", {"sink": "memory"}

    directory = path.parent if path.parent != Path("") else Path(".")
    if directory.exists() and not os.access(directory, os.W_OK):
        return False, f"Audit log directory not writable: {directory}", {"sink": "jsonl"}
    return True, f"Audit records appended to {path}", {"sink": "jsonl"}


def check_audit_log() -> HealthCheck:
    return _run_check("audit_log", _probe_audit_log, "Audit log check error")


def _probe_disk_space() -> Tuple[bool, str, Dict[str, Any]]:
    stat = shutil.disk_usage(config.logging.log_path.parent)
    free_gb = stat.free / (1024**3)
    percent_free = (stat.free / stat.total) * 100
    metadata = {"free_gb": round(free_gb, 2), "total_gb": round(stat.total / (1024**3), 2)}

    if free_gb < MIN_FREE_GB or percent_free < MIN_FREE_PERCENT:
        return False, f"Low disk space: {free_gb:.2f}GB free ({percent_free:.1f}%)", metadata
    return True, f"Sufficient disk space: {free_gb:.2f}GB free", metadata


def check_disk_space() -> HealthCheck:
    """Disk space for the log directory."""
    return _run_check("disk_space", _probe_disk_space, "Disk space check error")


def _probe_llm() -> Tuple[bool, str, Dict[str, Any]]:
    import openai

    response = openai.chat.completions.create(
        model=config.llm.model, messages=[{"role": "user", "content": "ping"}], max_tokens=1, temperature=0
    )
    metadata = {"model": config.llm.model, "fallback_enabled": config.llm.enabled}
    if not response or not response.choices:
        return False, "LLM API returned invalid response", metadata
    return True, "LLM API is reachable", metadata


def check_llm_connection() -> HealthCheck:
    """Minimal call against the model used by the recognition fallback."""
    return _run_check("llm_connection", _probe_llm, "LLM API error")


def get_health_status(include_llm_check: bool = False) -> HealthStatus:
    """
    Get overall system health status.

    Args:
        include_llm_check: Whether to include LLM connectivity check (slower)

    Returns:
        HealthStatus with all check results
    """
    checks: Dict[str, HealthCheck] = {
        "pattern_registry": check_pattern_registry(),
        "logging": check_logging(),
        "audit_log": check_audit_log(),
        "disk_space": check_disk_space(),
    }

    # Costs a model call
    if include_llm_check:
        checks["llm_connection"] = check_llm_connection()

    return HealthStatus(healthy=all(check.healthy for check in checks.values()), checks=checks)
