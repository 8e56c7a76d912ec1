"""
Run Service
Starts canvas runs in the background and bridges their events to HTTP streams.
"""
import logging
import queue
import threading
from typing import Any, Dict, Iterator, Optional

from config import SSE_KEEPALIVE_SECONDS
from graph_executor import RunOrchestrator
from graph_engine.schema import CanvasGraph
from utils.async_helpers import run_coroutine_in_thread

logger = logging.getLogger(__name__)

# Marks the end of a run's event queue
_STREAM_CLOSED = object()

KEEPALIVE_COMMENT = ": keep-alive\n\n"


class RunService:
    """
    Owns the orchestrator used by the HTTP layer and tracks runs in flight.

    Each streamed run gets its own queue; the orchestrator pushes events into
    it from a worker thread and the response generator drains it.
    """

    def __init__(self, orchestrator: RunOrchestrator, keepalive_seconds: Optional[float] = None):
        self.orchestrator = orchestrator
        self.keepalive_seconds = keepalive_seconds or SSE_KEEPALIVE_SECONDS
        self._active = 0
        self._lock = threading.Lock()

    @property
    def active_runs(self) -> int:
        with self._lock:
            return self._active

    def stream_run(self, graph: CanvasGraph, run_input: Dict[str, Any],
                   canvas_id: Optional[str] = None) -> Iterator[str]:
        """
        Start a run and yield its events as SSE frames until it finishes.

        The run is started eagerly, so it completes (and is traced) even if
        the client stops reading the stream.
        """
        events: "queue.Queue[Any]" = queue.Queue()

        async def drive():
            with self._lock:
                self._active += 1
            try:
                await self.orchestrator.execute(graph, run_input, canvas_id=canvas_id, on_event=events.put)
            finally:
                with self._lock:
                    self._active -= 1
                events.put(_STREAM_CLOSED)

        run_coroutine_in_thread(drive, name=f"run-{canvas_id or graph.id or 'canvas'}")
        return self._drain(events)

    def _drain(self, events: "queue.Queue[Any]") -> Iterator[str]:
        while True:
            try:
                item = events.get(timeout=self.keepalive_seconds)
            except queue.Empty:
                yield KEEPALIVE_COMMENT
                continue
            if item is _STREAM_CLOSED:
                return
            yield item.to_sse()
