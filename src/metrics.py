"""Per-command metrics for voice_devops."""
from __future__ import annotations

import time
import uuid
from typing import Any, Dict


class CommandMetrics:
    def __init__(self) -> None:
        self.correlation_id = str(uuid.uuid4())
        self.start_time = time.time()

        # Recognition metrics
        self.recognition_latency_ms: int = 0
        self.matched_pattern: str | None = None
        self.recognized: bool = False

        # LLM fallback metrics
        self.llm_fallback_used: bool = False
        self.llm_calls: int = 0
        self.tokens_prompt: int = 0
        self.tokens_completion: int = 0
        self.suspicious_input: bool = False

        # Dispatch metrics
        self.action: str | None = None
        self.dispatch_latency_ms: int = 0
        self.success: bool | None = None

        # End-to-end metrics
        self.total_latency_ms: int = 0

    @property
    def tokens_total(self) -> int:
        """Calculate total tokens as sum of prompt and completion tokens."""
        return self.tokens_prompt + self.tokens_completion

    def finalize(self) -> Dict[str, Any]:
        """Finalize metrics and return as dictionary with computed fields."""
        self.total_latency_ms = int((time.time() - self.start_time) * 1000)
        result = self.__dict__.copy()
        result["tokens_total"] = self.tokens_total
        return result
