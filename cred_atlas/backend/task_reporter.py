"""
cred_atlas/backend/task_reporter.py — Start/finish notifications for long tasks.

Reporters are purely observational: nothing in the pipeline branches on what
a reporter does. Mirror stages run in worker threads, so reporters must be
safe to call concurrently.
"""

import logging
import threading
import time
from typing import Protocol

logger = logging.getLogger(__name__)


class TaskReporter(Protocol):
    def start(self, task_id: str) -> None:
        ...

    def finish(self, task_id: str) -> None:
        ...


class LoggingTaskReporter:
    """Logs 'GO <task>' on start and 'DONE <task> (<ms>ms)' on finish."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log or logger
        self._started: dict[str, float] = {}
        self._lock = threading.Lock()

    def start(self, task_id: str) -> None:
        with self._lock:
            if task_id in self._started:
                raise ValueError(f"Task {task_id!r} already active")
            self._started[task_id] = time.monotonic()
        self._log.info("GO   %s", task_id)

    def finish(self, task_id: str) -> None:
        with self._lock:
            if task_id not in self._started:
                raise ValueError(f"Task {task_id!r} not active")
            elapsed_ms = (time.monotonic() - self._started.pop(task_id)) * 1000
        self._log.info("DONE %s (%.0fms)", task_id, elapsed_ms)

    def active_tasks(self) -> list[str]:
        with self._lock:
            return sorted(self._started)


class SilentTaskReporter:
    """Records start/finish events without logging them."""

    def __init__(self) -> None:
        self.events: list[tuple[str, str]] = []
        self._lock = threading.Lock()

    def start(self, task_id: str) -> None:
        with self._lock:
            self.events.append(("start", task_id))

    def finish(self, task_id: str) -> None:
        with self._lock:
            self.events.append(("finish", task_id))
