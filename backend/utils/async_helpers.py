"""
Async utility functions for running step executors.

Synchronous StepExecutors are pushed onto a shared thread pool so that
several runs sharing one event loop keep making progress while a node
blocks on I/O.
"""

import asyncio
import contextvars
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Coroutine

from config import STEP_WORKERS

logger = logging.getLogger(__name__)

_step_thread_pool = None
_pool_lock = threading.Lock()


def get_step_thread_pool() -> ThreadPoolExecutor:
    """
    Get or create the global step worker pool.

    Returns:
        ThreadPoolExecutor used for blocking step executors
    """
    global _step_thread_pool
    with _pool_lock:
        if _step_thread_pool is None:
            _step_thread_pool = ThreadPoolExecutor(
                max_workers=STEP_WORKERS,
                thread_name_prefix="step_worker"
            )
            logger.info("Initialized step thread pool with %d workers", STEP_WORKERS)
        return _step_thread_pool


async def run_in_thread(func: Callable, *args, **kwargs) -> Any:
    """
    Run a blocking function in the step thread pool.

    Args:
        func: Blocking function to execute
        *args: Positional arguments for the function
        **kwargs: Keyword arguments for the function

    Returns:
        Result from the function execution
    """
    loop = asyncio.get_running_loop()
    # Carry context variables (the run id used in log lines) into the worker
    ctx = contextvars.copy_context()
    return await loop.run_in_executor(
        get_step_thread_pool(),
        lambda: ctx.run(func, *args, **kwargs)
    )


def run_coroutine_in_thread(coro_factory: Callable[[], Coroutine], name: str = "run") -> threading.Thread:
    """
    Drive a coroutine to completion on its own event loop in a daemon thread.

    Used by the HTTP layer, which is synchronous, to start a run and stream
    its events while the run progresses.
    """
    def target():
        asyncio.run(coro_factory())

    thread = threading.Thread(target=target, name=name, daemon=True)
    thread.start()
    return thread


def shutdown_thread_pools():
    """
    Shutdown all thread pools gracefully.

    Should be called on application shutdown.
    """
    global _step_thread_pool
    with _pool_lock:
        if _step_thread_pool:
            logger.info("Shutting down step thread pool...")
            _step_thread_pool.shutdown(wait=True)
            _step_thread_pool = None
