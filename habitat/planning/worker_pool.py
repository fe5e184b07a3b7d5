"""Parallel worker pool for inference calls at the network boundary."""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from habitat.core.context import PlanningContext
    from habitat.core.models import AgentPlan

logger = logging.getLogger(__name__)


class WorkerPool:
    """Fans a batch of planning contexts out to a ThreadPoolExecutor.

    Every request resolves to either an AgentPlan or the exception that
    made it fail; one failing call never affects its batch siblings.
    Calls still running when the timeout expires are reported as
    TimeoutError and their futures cancelled.
    """

    __slots__ = ("_executor", "_timeout", "_max_workers")

    def __init__(self, max_workers: int, timeout_seconds: float) -> None:
        self._max_workers = max(1, max_workers)
        self._timeout = timeout_seconds
        self._executor = ThreadPoolExecutor(
            max_workers=self._max_workers,
            thread_name_prefix="inference",
        )

    @property
    def max_workers(self) -> int:
        return self._max_workers

    def dispatch(
        self,
        batch: list[tuple[str, PlanningContext]],
        call: Callable[[PlanningContext], AgentPlan],
    ) -> dict[str, AgentPlan | BaseException]:
        """Run *call* for every (request id, context) in *batch* concurrently.

        Blocks until every call finishes or the pool timeout expires.
        """
        if not batch:
            return {}

        futures: dict[Future[AgentPlan], str] = {}
        for request_id, context in batch:
            futures[self._executor.submit(call, context)] = request_id

        done, not_done = wait(futures, timeout=self._timeout)

        results: dict[str, AgentPlan | BaseException] = {}
        for future in done:
            request_id = futures[future]
            exc = future.exception()
            if exc is not None:
                results[request_id] = exc
            else:
                results[request_id] = future.result()
        for future in not_done:
            request_id = futures[future]
            future.cancel()
            logger.warning("Inference request %s exceeded %.1fs, abandoning", request_id, self._timeout)
            results[request_id] = TimeoutError(f"request {request_id} timed out")
        return results

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)
