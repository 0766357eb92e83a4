"""
Best-effort side effects.

Services never call e-mail, payment-link or capacity recalculation inline.
They enqueue named tasks on a SideEffectQueue; the endpoint hands the queue to
FastAPI BackgroundTasks so the tasks run after the response, each in its own
database session. A failing task is logged and dropped.
"""
import logging
from typing import Any, Awaitable, Callable, List, Tuple

from fastapi import BackgroundTasks

from fulfillment.core.exceptions import BestEffortFailure


logger = logging.getLogger(__name__)

SideEffect = Callable[..., Awaitable[Any]]


async def run_best_effort(name: str, func: SideEffect, *args: Any, **kwargs: Any) -> bool:
    """Run one side effect, swallowing and logging any failure."""
    try:
        await func(*args, **kwargs)
        return True
    except Exception as e:
        failure = BestEffortFailure(name, e)
        logger.warning(f"Best-effort task {failure}", exc_info=True)
        return False


class SideEffectQueue:
    """Collects fire-and-forget tasks produced during one request."""

    def __init__(self):
        self._tasks: List[Tuple[str, SideEffect, tuple, dict]] = []

    def enqueue(self, name: str, func: SideEffect, *args: Any, **kwargs: Any) -> None:
        self._tasks.append((name, func, args, kwargs))

    @property
    def names(self) -> List[str]:
        return [name for name, _, _, _ in self._tasks]

    def __len__(self) -> int:
        return len(self._tasks)

    def schedule(self, background_tasks: BackgroundTasks) -> None:
        """Hand every queued task to FastAPI to run after the response."""
        for name, func, args, kwargs in self._tasks:
            background_tasks.add_task(run_best_effort, name, func, *args, **kwargs)
        self._tasks.clear()

    async def drain(self) -> None:
        """Run every queued task now (jobs and scripts without a response cycle)."""
        tasks, self._tasks = self._tasks, []
        for name, func, args, kwargs in tasks:
            await run_best_effort(name, func, *args, **kwargs)
