"""
Run and step lifecycle records.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class RunStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class StepStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({"completed", "failed"})


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec='microseconds')


def new_id() -> str:
    return str(uuid.uuid4())


@dataclass
class StepRecord:
    """
    Lifecycle and result of one node's execution within a run.

    Created when the node is dispatched and finalized exactly once, either
    by ``complete`` or by ``fail``.
    """

    run_id: str
    node_id: str
    node_type: str
    label: str
    input: Dict[str, Any]
    status: StepStatus = StepStatus.RUNNING
    output: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    latency_ms: Optional[int] = None
    started_at: str = field(default_factory=utc_now)
    completed_at: Optional[str] = None
    id: str = field(default_factory=new_id)

    @property
    def finished(self) -> bool:
        return self.status.value in TERMINAL_STATUSES

    def complete(self, output: Dict[str, Any], latency_ms: int, completed_at: Optional[str] = None) -> None:
        self._ensure_open()
        self.status = StepStatus.COMPLETED
        self.output = output
        self.latency_ms = latency_ms
        self.completed_at = completed_at or utc_now()

    def fail(self, error: str, completed_at: Optional[str] = None) -> None:
        self._ensure_open()
        self.status = StepStatus.FAILED
        self.error = error
        self.completed_at = completed_at or utc_now()

    def _ensure_open(self) -> None:
        if self.finished:
            raise RuntimeError(f"Step {self.id} for node {self.node_id} is already {self.status.value}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'runId': self.run_id,
            'nodeId': self.node_id,
            'nodeType': self.node_type,
            'label': self.label,
            'status': self.status.value,
            'input': self.input,
            'output': self.output,
            'error': self.error,
            'latencyMs': self.latency_ms,
            'startedAt': self.started_at,
            'completedAt': self.completed_at,
        }


@dataclass
class Run:
    """One execution attempt of a compiled plan against a given input."""

    canvas_id: str
    input: Dict[str, Any]
    status: RunStatus = RunStatus.PENDING
    output: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    total_latency_ms: Optional[int] = None
    started_at: str = field(default_factory=utc_now)
    completed_at: Optional[str] = None
    id: str = field(default_factory=new_id)
    steps: List[StepRecord] = field(default_factory=list)

    @property
    def finished(self) -> bool:
        return self.status.value in TERMINAL_STATUSES

    def start(self, started_at: Optional[str] = None) -> None:
        self.status = RunStatus.RUNNING
        self.started_at = started_at or utc_now()

    def complete(self, output: Dict[str, Any], total_latency_ms: int, completed_at: Optional[str] = None) -> None:
        self._ensure_open()
        self.status = RunStatus.COMPLETED
        self.output = output
        self.total_latency_ms = total_latency_ms
        self.completed_at = completed_at or utc_now()

    def fail(self, error: str, total_latency_ms: Optional[int] = None, completed_at: Optional[str] = None) -> None:
        self._ensure_open()
        self.status = RunStatus.FAILED
        self.error = error
        self.total_latency_ms = total_latency_ms
        self.completed_at = completed_at or utc_now()

    def _ensure_open(self) -> None:
        if self.finished:
            raise RuntimeError(f"Run {self.id} is already {self.status.value}")

    def find_step(self, node_id: str) -> Optional[StepRecord]:
        return next((s for s in self.steps if s.node_id == node_id), None)

    def to_dict(self, include_steps: bool = True) -> Dict[str, Any]:
        payload = {
            'id': self.id,
            'canvasId': self.canvas_id,
            'status': self.status.value,
            'input': self.input,
            'output': self.output,
            'error': self.error,
            'totalLatencyMs': self.total_latency_ms,
            'startedAt': self.started_at,
            'completedAt': self.completed_at,
        }
        if include_steps:
            payload['steps'] = [step.to_dict() for step in self.steps]
        return payload
