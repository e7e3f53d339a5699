"""Centralized configuration management for voice_devops."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


@dataclass
class LLMConfig:
    """Configuration for the optional LLM recognition fallback."""

    enabled: bool = False
    model: str = "gpt-4o-mini"
    temperature: float = 0.0
    timeout: int = 30
    min_confidence: float = 0.5

    @classmethod
    def from_env(cls) -> LLMConfig:
        """Load LLM configuration from environment variables."""
        return cls(
            enabled=os.getenv("VOICE_LLM_FALLBACK", "false").lower() == "true",
            model=os.getenv("LLM_MODEL", "gpt-4o-mini"),
            temperature=float(os.getenv("LLM_TEMPERATURE", "0.0")),
            timeout=int(os.getenv("LLM_TIMEOUT", "30")),
            min_confidence=float(os.getenv("LLM_MIN_CONFIDENCE", "0.5")),
        )


@dataclass
class SimulatorConfig:
    """Configuration for the deployment progress simulator."""

    interval_seconds: float = 0.25
    step: int = 5

    @classmethod
    def from_env(cls) -> SimulatorConfig:
        return cls(
            interval_seconds=float(os.getenv("DEPLOY_PROGRESS_INTERVAL", "0.25")),
            step=int(os.getenv("DEPLOY_PROGRESS_STEP", "5")),
        )


@dataclass
class SourceControlConfig:
    """Limits applied when reading pull requests and commits."""

    recent_commit_days: int = 7
    recent_commit_limit: int = 5
    open_pr_limit: int = 10

    @classmethod
    def from_env(cls) -> SourceControlConfig:
        return cls(
            recent_commit_days=int(os.getenv("RECENT_COMMIT_DAYS", "7")),
            recent_commit_limit=int(os.getenv("RECENT_COMMIT_LIMIT", "5")),
            open_pr_limit=int(os.getenv("OPEN_PR_LIMIT", "10")),
        )


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    log_level: str = "INFO"
    log_path: Path = field(default_factory=lambda: Path("logs/voice_devops.log"))

    @classmethod
    def from_env(cls) -> LoggingConfig:
        """Load logging configuration from environment variables."""
        base_dir = Path(__file__).resolve().parent.parent
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_path=Path(os.getenv("LOG_PATH", base_dir / "logs" / "voice_devops.log")),
        )


@dataclass
class AuditConfig:
    """Where finalized audit records are appended, if anywhere."""

    log_path: Optional[Path] = None

    @classmethod
    def from_env(cls) -> AuditConfig:
        raw = os.getenv("AUDIT_LOG_PATH")
        return cls(log_path=Path(raw) if raw else None)


@dataclass
class AppConfig:
    """Main application configuration."""

    llm: LLMConfig
    simulator: SimulatorConfig
    source_control: SourceControlConfig
    logging: LoggingConfig
    audit: AuditConfig
    environment: str = "development"

    @classmethod
    def from_env(cls) -> AppConfig:
        """Load complete configuration from environment variables."""
        return cls(
            llm=LLMConfig.from_env(),
            simulator=SimulatorConfig.from_env(),
            source_control=SourceControlConfig.from_env(),
            logging=LoggingConfig.from_env(),
            audit=AuditConfig.from_env(),
            environment=os.getenv("ENVIRONMENT", "development"),
        )

    def validate(self) -> None:
        """Validate configuration values."""
        if not 0 <= self.llm.temperature <= 2:
            raise ValueError(f"Invalid LLM temperature: {self.llm.temperature}")

        if not 0 <= self.llm.min_confidence <= 1:
            raise ValueError(f"Invalid min_confidence: {self.llm.min_confidence}")

        if self.simulator.interval_seconds < 0:
            raise ValueError(f"Invalid progress interval: {self.simulator.interval_seconds}")

        if not 0 < self.simulator.step <= 100:
            raise ValueError(f"Invalid progress step: {self.simulator.step}")

        if self.source_control.recent_commit_days <= 0:
            raise ValueError(f"Invalid recent_commit_days: {self.source_control.recent_commit_days}")


# Global configuration instance
config = AppConfig.from_env()
