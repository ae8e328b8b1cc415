"""
Pencils-Down Deadline

One deadline bounds every backend call of a resolution. Calls race the
remaining time with ``asyncio.wait``; a call that loses the race is abandoned.
Abandoned tasks are cancelled by default. With ``cancel_on_deadline=False``
they keep running and their eventual result or exception is discarded.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Dict, Mapping, Optional, Set, Tuple

LOGGER = logging.getLogger(__name__)


class DeadlineExceeded(Exception):
    """An awaited call was still pending when the deadline passed."""


def _discard_outcome(task: "asyncio.Future[Any]") -> None:
    # Retrieve the exception so asyncio does not report it as unhandled.
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        LOGGER.debug(f"Abandoned call finished late with {exc!r}")


class Deadline:
    """Request-wide deadline measured on the running event loop's clock."""

    def __init__(self, seconds: float, *, cancel_on_deadline: bool = True) -> None:
        if seconds <= 0:
            raise ValueError("Deadline must be > 0 seconds")
        self.seconds = seconds
        self.cancel_on_deadline = cancel_on_deadline
        self._expires_at: Optional[float] = None

    def start(self) -> "Deadline":
        self._expires_at = asyncio.get_running_loop().time() + self.seconds
        return self

    def remaining(self) -> float:
        if self._expires_at is None:
            return self.seconds
        return max(0.0, self._expires_at - asyncio.get_running_loop().time())

    def abandon(self, task: "asyncio.Future[Any]") -> None:
        if self.cancel_on_deadline:
            task.cancel()
        else:
            task.add_done_callback(_discard_outcome)

    async def run(self, awaitable: Awaitable[Any]) -> Any:
        """Await ``awaitable`` within the remaining time.

        Raises:
            DeadlineExceeded: The call did not finish in time
        """
        task = asyncio.ensure_future(awaitable)
        done, _ = await asyncio.wait({task}, timeout=self.remaining())
        if task not in done:
            self.abandon(task)
            raise DeadlineExceeded(f"Call still pending after {self.seconds}s")
        return task.result()

    async def settle(
        self, calls: Mapping[str, Awaitable[Any]]
    ) -> Tuple[Dict[str, "asyncio.Future[Any]"], Set[str]]:
        """Run ``calls`` concurrently until all finish or the deadline passes.

        Returns:
            Finished tasks by name, and the names of abandoned calls
        """
        tasks = {name: asyncio.ensure_future(call) for name, call in calls.items()}
        if not tasks:
            return {}, set()
        await asyncio.wait(set(tasks.values()), timeout=self.remaining())

        finished: Dict[str, "asyncio.Future[Any]"] = {}
        abandoned: Set[str] = set()
        for name, task in tasks.items():
            if task.done():
                finished[name] = task
            else:
                self.abandon(task)
                abandoned.add(name)
                LOGGER.info(f"Pencils down: abandoning pending call for '{name}'")
        return finished, abandoned


__all__ = ["Deadline", "DeadlineExceeded"]
