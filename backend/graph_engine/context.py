"""
Per-run execution context passed through the orchestrator.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict

from .data_store import GraphDataStore
from .planner import ExecutionPlan, ExecutionStep
from .state import Run


@dataclass
class RunExecutionContext:
    run: Run
    plan: ExecutionPlan
    original_input: Dict[str, Any]
    runtime_config: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.outputs = GraphDataStore()
        self.started = time.perf_counter()
        self.last_output: Dict[str, Any] = {}

    def config_for(self, step: ExecutionStep) -> Dict[str, Any]:
        """Run-level config with the node's own config layered on top."""
        merged = dict(self.runtime_config)
        merged.update(step.config)
        return merged

    def record_output(self, step: ExecutionStep, output: Dict[str, Any]) -> None:
        self.outputs.set_output(step.node_id, step.node_type, output)
        self.last_output = output

    def elapsed_ms(self) -> int:
        return elapsed_ms(self.started)


def elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)
