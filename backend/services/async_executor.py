"""
Async executor for blocking work and detached background tasks.

- run_blocking(): runs synchronous library calls (QR rendering, pywebpush)
  in a thread pool so the event loop keeps serving other requests.
- spawn_detached(): starts a coroutine that no request ever awaits. The task
  is referenced here until it finishes; its failure is logged, never raised.
"""
import asyncio
import functools
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Coroutine, TypeVar

logger = logging.getLogger(__name__)

# Shared executor for blocking operations
_executor: ThreadPoolExecutor | None = None
_max_workers = 4

# Strong references to in-flight detached tasks
_detached: set[asyncio.Task] = set()


def configure(max_workers: int) -> None:
    """Set the pool size; takes effect on the next lazy initialization."""
    global _max_workers
    _max_workers = max_workers


def get_executor() -> ThreadPoolExecutor:
    """Lazy-initialize thread pool executor."""
    global _executor
    if _executor is None:
        _executor = ThreadPoolExecutor(max_workers=_max_workers, thread_name_prefix="store_")
        logger.info(f"Thread pool executor initialized (max_workers={_max_workers})")
    return _executor


T = TypeVar("T")


async def run_blocking(func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Run a blocking (synchronous) function in the thread pool."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(
        get_executor(),
        functools.partial(func, *args, **kwargs),
    )


def _on_detached_done(task: asyncio.Task) -> None:
    _detached.discard(task)
    if task.cancelled():
        logger.warning(f"Detached task {task.get_name()} cancelled")
        return
    exc = task.exception()
    if exc is not None:
        logger.error(f"Detached task {task.get_name()} failed: {exc}", exc_info=exc)


def spawn_detached(coro: Coroutine[Any, Any, Any], *, name: str | None = None) -> asyncio.Task:
    """
    Start `coro` as a fire-and-forget task on the running loop.

    Callers must not await the returned task on a request path.
    """
    task = asyncio.get_running_loop().create_task(coro, name=name)
    _detached.add(task)
    task.add_done_callback(_on_detached_done)
    return task


def pending_detached() -> int:
    return len(_detached)


async def drain_detached(timeout: float = 10.0) -> None:
    """Wait for in-flight detached tasks (shutdown and tests); cancel stragglers."""
    if not _detached:
        return
    tasks = list(_detached)
    done, pending = await asyncio.wait(tasks, timeout=timeout)
    for task in pending:
        task.cancel()
    if pending:
        logger.warning(f"Cancelled {len(pending)} detached task(s) still running at drain")


def shutdown_executor() -> None:
    """Shutdown the thread pool on app lifecycle end."""
    global _executor
    if _executor:
        _executor.shutdown(wait=True)
        _executor = None
        logger.info("Thread pool executor shutdown")
