"""
Run lifecycle events streamed to the wire tap and any other sink.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from .planner import ExecutionStep
from .state import StepRecord, utc_now


class EventType(str, Enum):
    RUN_STARTED = "run:started"
    RUN_COMPLETED = "run:completed"
    RUN_FAILED = "run:failed"
    STEP_STARTED = "step:started"
    STEP_COMPLETED = "step:completed"
    STEP_FAILED = "step:failed"
    # Reserved for incremental output; never emitted by the orchestrator
    STEP_PROGRESS = "step:progress"


RUN_TERMINAL_EVENTS = frozenset({EventType.RUN_COMPLETED, EventType.RUN_FAILED})


@dataclass(frozen=True)
class RunEvent:
    type: EventType
    run_id: str
    data: Dict[str, Any]
    timestamp: str = field(default_factory=utc_now)

    @property
    def is_terminal(self) -> bool:
        return self.type in RUN_TERMINAL_EVENTS

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.type.value,
            'timestamp': self.timestamp,
            'runId': self.run_id,
            'data': self.data,
        }

    def to_sse(self) -> str:
        return f"data: {json.dumps(self.to_dict(), default=str)}\n\n"


def run_started(run_id: str, canvas_id: str, run_input: Dict[str, Any], total_steps: int) -> RunEvent:
    return RunEvent(EventType.RUN_STARTED, run_id, {
        'canvasId': canvas_id,
        'input': run_input,
        'totalSteps': total_steps,
    })


def run_completed(run_id: str, output: Dict[str, Any], total_latency_ms: int) -> RunEvent:
    return RunEvent(EventType.RUN_COMPLETED, run_id, {
        'output': output,
        'totalLatencyMs': total_latency_ms,
    })


def run_failed(run_id: str, error: str, failed_node_id: Optional[str] = None) -> RunEvent:
    data = {'error': error}
    if failed_node_id is not None:
        data['failedNodeId'] = failed_node_id
    return RunEvent(EventType.RUN_FAILED, run_id, data)


def _step_data(record: StepRecord, step: ExecutionStep, index: int) -> Dict[str, Any]:
    return {
        'stepId': record.id,
        'nodeId': step.node_id,
        'nodeType': step.node_type.value,
        'label': step.label,
        'index': index,
    }


def step_started(record: StepRecord, step: ExecutionStep, index: int) -> RunEvent:
    data = _step_data(record, step, index)
    data['input'] = record.input
    return RunEvent(EventType.STEP_STARTED, record.run_id, data, timestamp=record.started_at)


def step_completed(record: StepRecord, step: ExecutionStep, index: int) -> RunEvent:
    data = _step_data(record, step, index)
    data['output'] = record.output
    data['latencyMs'] = record.latency_ms
    return RunEvent(EventType.STEP_COMPLETED, record.run_id, data, timestamp=record.completed_at)


def step_failed(record: StepRecord, step: ExecutionStep, index: int) -> RunEvent:
    data = _step_data(record, step, index)
    data['error'] = record.error
    return RunEvent(EventType.STEP_FAILED, record.run_id, data, timestamp=record.completed_at)
