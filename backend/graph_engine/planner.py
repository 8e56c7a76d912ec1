"""
Build execution plans for validated canvas graphs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .constants import NodeType
from .errors import PlanningError
from .schema import CanvasEdge, CanvasGraph, CanvasNode, GraphValidator
from .topology import TopologicalSorter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExecutionStep:
    node_id: str
    node_type: NodeType
    label: str
    config: Mapping[str, Any]
    inputs: Tuple[str, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'nodeId': self.node_id,
            'nodeType': self.node_type.value,
            'label': self.label,
            'config': dict(self.config),
            'inputs': list(self.inputs),
        }


@dataclass(frozen=True)
class ExecutionPlan:
    steps: Tuple[ExecutionStep, ...]
    input_mapping: Mapping[str, Tuple[str, ...]]
    warnings: Tuple[str, ...] = field(default=())

    @property
    def execution_order(self) -> List[str]:
        return [step.node_id for step in self.steps]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'steps': [step.to_dict() for step in self.steps],
            'inputMapping': {node_id: list(sources) for node_id, sources in self.input_mapping.items()},
            'warnings': list(self.warnings),
        }


class PlanBuilder:
    """Turns a canvas graph into an immutable, topologically ordered plan."""

    def __init__(self, validator: Optional[GraphValidator] = None):
        self.validator = validator or GraphValidator()

    def build(self, nodes: Sequence[CanvasNode], edges: Sequence[CanvasEdge]) -> ExecutionPlan:
        validation = self.validator.validate(nodes, edges)
        validation.raise_for_errors()

        ordered_ids = TopologicalSorter(nodes, edges).sort()
        nodes_by_id = {node.id: node for node in nodes}

        # Immediate predecessors only; multi-hop fan-in is resolved at dispatch
        sources: Dict[str, List[str]] = {node.id: [] for node in nodes}
        for edge in edges:
            sources[edge.target].append(edge.source)
        input_mapping = {node_id: tuple(ids) for node_id, ids in sources.items()}

        steps = tuple(
            ExecutionStep(
                node_id=node_id,
                node_type=nodes_by_id[node_id].type,
                label=nodes_by_id[node_id].label,
                config=nodes_by_id[node_id].config,
                inputs=input_mapping[node_id],
            )
            for node_id in ordered_ids
        )

        logger.debug("Built execution plan with %d steps", len(steps))
        return ExecutionPlan(
            steps=steps,
            input_mapping=MappingProxyType(input_mapping),
            warnings=tuple(w.message for w in validation.warnings),
        )

    def build_for_graph(self, graph: CanvasGraph) -> ExecutionPlan:
        return self.build(graph.nodes, graph.edges)


def create_execution_plan(graph: CanvasGraph) -> ExecutionPlan:
    return PlanBuilder().build_for_graph(graph)


@dataclass
class CompilationResult:
    success: bool
    execution_order: Optional[List[str]] = None
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            'success': self.success,
            'errors': self.errors,
            'warnings': self.warnings,
        }
        if self.execution_order is not None:
            payload['executionOrder'] = self.execution_order
        return payload


def compile_graph(graph: CanvasGraph, validator: Optional[GraphValidator] = None) -> CompilationResult:
    """
    Report whether a graph compiles, without raising.

    Used by the editor to show blocking errors and advisory warnings
    side by side while the canvas is still being drawn.
    """
    validation = (validator or GraphValidator()).validate_graph(graph)
    warnings = [w.message for w in validation.warnings]
    if not validation.valid:
        return CompilationResult(
            success=False,
            errors=[e.message for e in validation.errors],
            warnings=warnings,
        )

    try:
        order = TopologicalSorter(graph.nodes, graph.edges).sort()
    except PlanningError as e:
        return CompilationResult(success=False, errors=[str(e)], warnings=warnings)

    return CompilationResult(success=True, execution_order=order, warnings=warnings)

