"""
services/outbox.py

In-process outbox for side effects (notification emails, archival pushes).

The primary mutation is persisted first; the service then enqueues named
jobs here. The HTTP layer drains the outbox from a FastAPI background task
after the response is sent, and the app drains it once more on shutdown.
Each job runs with its own error handling: a failing job is logged and the
rest still run.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass
from typing import Awaitable, Callable, Deque

logger = logging.getLogger(__name__)

JobFactory = Callable[[], Awaitable[object]]


@dataclass
class OutboxJob:
    name: str
    factory: JobFactory


@dataclass
class DrainResult:
    succeeded: int = 0
    failed: int = 0


class Outbox:
    def __init__(self) -> None:
        self._jobs: Deque[OutboxJob] = deque()
        self._lock = threading.Lock()

    def enqueue(self, name: str, factory: JobFactory) -> None:
        with self._lock:
            self._jobs.append(OutboxJob(name=name, factory=factory))
        logger.debug("Outbox: queued %s", name)

    def pending(self) -> int:
        with self._lock:
            return len(self._jobs)

    def pending_names(self) -> list[str]:
        with self._lock:
            return [job.name for job in self._jobs]

    def _pop(self) -> OutboxJob | None:
        with self._lock:
            return self._jobs.popleft() if self._jobs else None

    async def drain(self) -> DrainResult:
        result = DrainResult()
        while True:
            job = self._pop()
            if job is None:
                break
            try:
                await job.factory()
                result.succeeded += 1
            except Exception:
                result.failed += 1
                logger.exception("Outbox job %s failed", job.name)
        if result.succeeded or result.failed:
            logger.info("Outbox drained: %d succeeded, %d failed", result.succeeded, result.failed)
        return result
