"""
Wire-tap tracer: a bounded, queryable history of recent runs.

The tracer is a pure observer of the run event stream. It rebuilds Run and
StepRecord snapshots from events alone, so removing it changes nothing
about how runs execute.
"""

from __future__ import annotations

import copy
import dataclasses
import logging
import threading
from collections import OrderedDict
from typing import Dict, List, Optional

from .events import EventType, RunEvent
from .state import Run, RunStatus, StepRecord, StepStatus, new_id

logger = logging.getLogger(__name__)


class EventTracer:
    """
    Keeps the ``max_runs`` most recently started runs with their steps.

    Admitting a run past capacity evicts the oldest run together with all
    of its step records. Writes and reads are serialized by one lock;
    queries return deep copies so callers never observe a half-applied
    event.
    """

    def __init__(self, max_runs: int = 100):
        if max_runs < 1:
            raise ValueError("max_runs must be at least 1")
        self.max_runs = max_runs
        self._runs: "OrderedDict[str, Run]" = OrderedDict()
        self._steps: Dict[str, StepRecord] = {}
        self._lock = threading.Lock()

    # Event intake

    def on_event(self, event: RunEvent) -> None:
        handler = self._handlers.get(event.type)
        if handler is None:
            # step:progress and anything newer carry nothing to record
            return
        # Payloads reference the orchestrator's live records; keep our own copy
        event = dataclasses.replace(event, data=copy.deepcopy(event.data))
        with self._lock:
            handler(self, event)

    __call__ = on_event

    def _on_run_started(self, event: RunEvent) -> None:
        data = event.data
        run = Run(
            id=event.run_id,
            canvas_id=data.get('canvasId', ''),
            input=data.get('input') or {},
            status=RunStatus.RUNNING,
            started_at=event.timestamp,
        )

        while len(self._runs) >= self.max_runs:
            evicted_id, evicted = self._runs.popitem(last=False)
            for step in evicted.steps:
                self._steps.pop(step.id, None)
            logger.debug("Evicted run %s from tracer cache", evicted_id)

        self._runs[run.id] = run

    def _on_run_completed(self, event: RunEvent) -> None:
        run = self._runs.get(event.run_id)
        if run is None:
            return
        run.status = RunStatus.COMPLETED
        run.output = event.data.get('output')
        run.total_latency_ms = event.data.get('totalLatencyMs')
        run.completed_at = event.timestamp

    def _on_run_failed(self, event: RunEvent) -> None:
        run = self._runs.get(event.run_id)
        if run is None:
            return
        run.status = RunStatus.FAILED
        run.error = event.data.get('error')
        run.completed_at = event.timestamp

    def _on_step_started(self, event: RunEvent) -> None:
        run = self._runs.get(event.run_id)
        if run is None:
            return
        data = event.data
        step = StepRecord(
            id=data.get('stepId') or new_id(),
            run_id=event.run_id,
            node_id=data['nodeId'],
            node_type=data.get('nodeType', ''),
            label=data.get('label', ''),
            input=data.get('input') or {},
            status=StepStatus.RUNNING,
            started_at=event.timestamp,
        )
        run.steps.append(step)
        self._steps[step.id] = step

    def _on_step_completed(self, event: RunEvent) -> None:
        step = self._running_step(event)
        if step is None:
            return
        step.status = StepStatus.COMPLETED
        step.output = event.data.get('output')
        step.latency_ms = event.data.get('latencyMs')
        step.completed_at = event.timestamp

    def _on_step_failed(self, event: RunEvent) -> None:
        step = self._running_step(event)
        if step is None:
            return
        step.status = StepStatus.FAILED
        step.error = event.data.get('error')
        step.completed_at = event.timestamp

    def _running_step(self, event: RunEvent) -> Optional[StepRecord]:
        run = self._runs.get(event.run_id)
        if run is None:
            return None
        node_id = event.data.get('nodeId')
        return next(
            (s for s in run.steps if s.node_id == node_id and s.status == StepStatus.RUNNING),
            None,
        )

    _handlers = {
        EventType.RUN_STARTED: _on_run_started,
        EventType.RUN_COMPLETED: _on_run_completed,
        EventType.RUN_FAILED: _on_run_failed,
        EventType.STEP_STARTED: _on_step_started,
        EventType.STEP_COMPLETED: _on_step_completed,
        EventType.STEP_FAILED: _on_step_failed,
    }

    # Queries

    def get_run(self, run_id: str) -> Optional[Run]:
        with self._lock:
            run = self._runs.get(run_id)
            return copy.deepcopy(run) if run is not None else None

    def get_runs_by_canvas(self, canvas_id: str) -> List[Run]:
        """Runs of one canvas, newest start first."""
        with self._lock:
            # Reversed admission order breaks timestamp ties newest-first
            runs = [copy.deepcopy(r) for r in reversed(self._runs.values()) if r.canvas_id == canvas_id]
        return sorted(runs, key=lambda r: r.started_at, reverse=True)

    def get_run_steps(self, run_id: str) -> List[StepRecord]:
        with self._lock:
            run = self._runs.get(run_id)
            return copy.deepcopy(run.steps) if run is not None else []

    def get_step_output(self, run_id: str, node_id: str) -> Optional[StepRecord]:
        with self._lock:
            run = self._runs.get(run_id)
            if run is None:
                return None
            step = run.find_step(node_id)
            return copy.deepcopy(step) if step is not None else None

    def get_step(self, step_id: str) -> Optional[StepRecord]:
        with self._lock:
            step = self._steps.get(step_id)
            return copy.deepcopy(step) if step is not None else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._runs)

    def __contains__(self, run_id: str) -> bool:
        with self._lock:
            return run_id in self._runs

    # Maintenance

    def clear(self) -> None:
        with self._lock:
            self._runs.clear()
            self._steps.clear()

    def clear_canvas(self, canvas_id: str) -> int:
        with self._lock:
            doomed = [run_id for run_id, run in self._runs.items() if run.canvas_id == canvas_id]
            for run_id in doomed:
                run = self._runs.pop(run_id)
                for step in run.steps:
                    self._steps.pop(step.id, None)
        return len(doomed)
