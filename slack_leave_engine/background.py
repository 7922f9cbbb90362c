"""Utilities for running fire-and-forget background tasks."""

from contextvars import copy_context
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable

import structlog
from structlog.contextvars import bind_contextvars, get_contextvars


_executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="leave-worker")


def run_async(
    func: Callable[..., Any],
    /,
    *args: Any,
    trace_id: str | None = None,
    **kwargs: Any,
) -> Future:
    """Submit *func* to the shared thread pool and return a Future.

    Errors raised by *func* are logged and stop at the task boundary; the
    returned Future then resolves to ``None``.
    """

    context = copy_context()

    if trace_id is not None:
        existing_trace = context.run(lambda: get_contextvars().get("trace_id"))

        if existing_trace != trace_id:
            context.run(lambda: bind_contextvars(trace_id=trace_id))

    def guarded() -> Any:
        try:
            return func(*args, **kwargs)
        except Exception as exc:
            structlog.get_logger().exception(
                "background_task_failed",
                task=getattr(func, "__qualname__", repr(func)),
                error=str(exc),
            )
            return None

    def runner() -> Any:
        return context.run(guarded)

    return _executor.submit(runner)
