"""Supervised progress simulation for API deployments.

Each deployment gets one cancellable task that advances the build's
progress on a fixed interval until it reaches 100. The supervisor owns the
tasks: aborting a build cancels its task, and callers can wait on the
outcome instead of polling the build record.

A task holds no thread while it waits. Every tick runs on its own
short-lived timer thread, which arms the next tick before it exits, so
any number of deployments advance side by side.
"""
from __future__ import annotations

import threading
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Optional

from config import SimulatorConfig, config
from logging_utils import logger

ProgressCallback = Callable[[str, int], None]
CompletionCallback = Callable[[str], None]


class ProgressOutcome(str, Enum):
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    FAILED = "FAILED"


@dataclass
class _ProgressTask:
    build_id: str
    on_progress: ProgressCallback
    on_complete: CompletionCallback
    progress: int = 0
    cancel_event: threading.Event = field(default_factory=threading.Event)
    future: Future = field(default_factory=Future)
    timer: Optional[threading.Timer] = None
    outcome: Optional[ProgressOutcome] = None


class DeploymentSupervisor:
    """Owns one progress task per deploying build."""

    def __init__(self, settings: SimulatorConfig | None = None) -> None:
        self.settings = settings or config.simulator
        self._tasks: Dict[str, _ProgressTask] = {}
        self._lock = threading.Lock()

    def start(
        self,
        build_id: str,
        on_progress: ProgressCallback,
        on_complete: CompletionCallback,
    ) -> Future:
        """Schedule progress simulation for a build, replacing any previous task for it."""
        task = _ProgressTask(build_id=build_id, on_progress=on_progress, on_complete=on_complete)
        with self._lock:
            previous = self._tasks.get(build_id)
            self._tasks[build_id] = task
        if previous:
            self._stop(previous)
        self._arm(task)

        logger.info(
            "Deployment progress task started",
            extra={"extra": {"build_id": build_id, "interval_seconds": self.settings.interval_seconds}},
        )
        return task.future

    def _arm(self, task: _ProgressTask) -> None:
        timer = threading.Timer(self.settings.interval_seconds, self._tick, args=(task,))
        timer.daemon = True
        timer.name = f"deploy-progress-{task.build_id}"
        task.timer = timer
        timer.start()

    def _tick(self, task: _ProgressTask) -> None:
        if task.cancel_event.is_set():
            return
        try:
            task.on_progress(task.build_id, min(task.progress, 100))
            if task.progress < 100:
                task.progress += self.settings.step
                if not task.cancel_event.is_set():
                    self._arm(task)
                return

            # Re-check so an abort that raced the last tick wins
            if task.cancel_event.is_set():
                return
            task.on_complete(task.build_id)
        except Exception:
            logger.exception("Deployment progress task failed", extra={"extra": {"build_id": task.build_id}})
            self._finish(task, ProgressOutcome.FAILED)
            return

        if self._finish(task, ProgressOutcome.COMPLETED):
            logger.info("Deployment progress task completed", extra={"extra": {"build_id": task.build_id}})

    def _finish(self, task: _ProgressTask, outcome: ProgressOutcome) -> bool:
        """Resolve the task's future once; later outcomes for the same task are dropped."""
        with self._lock:
            if self._tasks.get(task.build_id) is task:
                del self._tasks[task.build_id]
            if task.outcome is not None:
                return False
            task.outcome = outcome
        task.future.set_result(outcome)
        return True

    def _stop(self, task: _ProgressTask) -> None:
        task.cancel_event.set()
        if task.timer is not None:
            task.timer.cancel()
        if self._finish(task, ProgressOutcome.CANCELLED):
            logger.info(
                "Deployment progress task cancelled",
                extra={"extra": {"build_id": task.build_id, "progress": min(task.progress, 100)}},
            )

    def cancel(self, build_id: str) -> bool:
        """Stop the build's task. Returns False when nothing is running."""
        with self._lock:
            task = self._tasks.get(build_id)
        if not task:
            return False
        self._stop(task)
        return True

    def is_active(self, build_id: str) -> bool:
        with self._lock:
            return build_id in self._tasks

    def active_count(self) -> int:
        with self._lock:
            return len(self._tasks)

    def future_for(self, build_id: str) -> Optional[Future]:
        with self._lock:
            task = self._tasks.get(build_id)
        return task.future if task else None

    def wait(self, future: Future, timeout: float | None = None) -> Optional[ProgressOutcome]:
        """Block until the task behind `future` ends; None on timeout."""
        try:
            return future.result(timeout=timeout)
        except FutureTimeout:
            return None

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            tasks = list(self._tasks.values())
        for task in tasks:
            self._stop(task)
        if not wait:
            return
        for task in tasks:
            timer = task.timer
            if timer is not None and timer is not threading.current_thread():
                timer.join()
