"""Bounded-parallelism executor for provider calls."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Literal, Sequence

from ..errors import InvalidConfigurationError

DEFAULT_MAX_CONCURRENT = 6

logger = logging.getLogger(__name__)

TaskFactory = Callable[[], Awaitable[Any]]


@dataclass(slots=True)
class TaskOutcome:
    """Terminal state of one submitted task."""

    status: Literal["fulfilled", "rejected"]
    value: Any = None
    reason: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.status == "fulfilled"


class ConcurrencyController:
    """Run task factories with at most ``max_concurrent`` in flight.

    Tasks beyond the ceiling wait in a FIFO queue and start in submission
    order whenever a running task finishes. A failing task never prevents the
    queued ones from running. The queue is shared between overlapping
    ``execute`` calls on the same controller, so the ceiling holds across them.
    """

    def __init__(self, max_concurrent: int = DEFAULT_MAX_CONCURRENT) -> None:
        if isinstance(max_concurrent, bool) or not isinstance(max_concurrent, int) or max_concurrent <= 0:
            raise InvalidConfigurationError(
                f"max_concurrent must be a positive integer, got {max_concurrent!r}."
            )
        self._max_concurrent = max_concurrent
        self._running = 0
        self._queue: deque[tuple[TaskFactory, asyncio.Future]] = deque()
        self._tasks: set[asyncio.Task] = set()

    @property
    def max_concurrent(self) -> int:
        return self._max_concurrent

    @property
    def running_count(self) -> int:
        return self._running

    @property
    def queued_count(self) -> int:
        return len(self._queue)

    async def execute(self, tasks: Sequence[TaskFactory]) -> list[TaskOutcome]:
        """Run every task and return one outcome per task, in input order."""
        tasks = list(tasks)
        if not tasks:
            return []

        loop = asyncio.get_running_loop()
        futures: list[asyncio.Future] = []
        for factory in tasks:
            future = loop.create_future()
            self._queue.append((factory, future))
            futures.append(future)

        logger.debug(
            "Scheduling %d task(s) (running=%d, queued=%d, max=%d)",
            len(tasks),
            self._running,
            len(self._queue),
            self._max_concurrent,
        )
        self._start_queued()
        return list(await asyncio.gather(*futures))

    def _start_queued(self) -> None:
        while self._running < self._max_concurrent and self._queue:
            factory, future = self._queue.popleft()
            if future.done():
                # The caller went away (cancelled) before this task started.
                continue
            self._running += 1
            task = asyncio.ensure_future(self._run(factory, future))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _run(self, factory: TaskFactory, future: asyncio.Future) -> None:
        try:
            result = factory()
            if inspect.isawaitable(result):
                result = await result
        except asyncio.CancelledError:
            if not future.done():
                future.cancel()
            raise
        except Exception as exc:
            logger.debug("Task rejected: %s", exc)
            if not future.done():
                future.set_result(TaskOutcome(status="rejected", reason=exc))
        else:
            if not future.done():
                future.set_result(TaskOutcome(status="fulfilled", value=result))
        finally:
            self._running -= 1
            self._start_queued()
