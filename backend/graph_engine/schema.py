"""
Canvas graph definitions and validation helpers.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .constants import (
    DEFAULT_NODE_LABELS,
    ENTRY_NODE_TYPE,
    REQUIRED_UPSTREAM,
    TERMINAL_NODE_TYPES,
    VALID_CONNECTIONS,
    IssueCode,
    NodeType,
)
from .errors import StructuralError
from .topology import GraphTopology, detect_cycle

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CanvasNode:
    id: str
    type: NodeType
    label: str = ""
    config: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, 'type', NodeType(self.type))
        if not self.label:
            object.__setattr__(self, 'label', DEFAULT_NODE_LABELS[self.type])
        # Nodes are shared with the caller; freeze the config view
        object.__setattr__(self, 'config', MappingProxyType(dict(self.config)))

    @classmethod
    def from_dict(cls, raw: Dict) -> "CanvasNode":
        """
        Build a node from either the flat shape or the canvas editor shape.

        The editor nests label/config under ``data``; flat payloads carry
        them at the top level.
        """
        data = raw.get('data') or {}
        type_name = raw.get('type') or data.get('type')
        try:
            node_type = NodeType(type_name)
        except ValueError:
            issue = ValidationIssue.error(
                IssueCode.UNKNOWN_NODE_TYPE,
                f"Unsupported node type: {type_name}",
                node_id=raw.get('id'),
            )
            raise StructuralError(issue.message, [issue]) from None

        label = raw.get('label') or data.get('label') or ''
        config = raw.get('config')
        if config is None:
            config = data.get('config')
        if not raw.get('id'):
            raise StructuralError(f"Node of type {node_type.value} is missing an id")
        return cls(id=raw['id'], type=node_type, label=label, config=config or {})

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'type': self.type.value,
            'label': self.label,
            'config': dict(self.config),
        }


@dataclass(frozen=True)
class CanvasEdge:
    id: str
    source: str
    target: str

    @classmethod
    def from_dict(cls, raw: Dict, index: int = 0) -> "CanvasEdge":
        source = raw.get('source')
        target = raw.get('target')
        edge_id = raw.get('id') or f"e{index}-{source}-{target}"
        return cls(id=edge_id, source=source, target=target)

    def to_dict(self) -> Dict[str, str]:
        return {'id': self.id, 'source': self.source, 'target': self.target}


@dataclass(frozen=True)
class CanvasGraph:
    nodes: Sequence[CanvasNode]
    edges: Sequence[CanvasEdge]
    id: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, 'nodes', tuple(self.nodes))
        object.__setattr__(self, 'edges', tuple(self.edges))

    @classmethod
    def from_dict(cls, raw: Dict) -> "CanvasGraph":
        nodes = [CanvasNode.from_dict(node) for node in raw.get('nodes') or []]
        edges = [CanvasEdge.from_dict(edge, i) for i, edge in enumerate(raw.get('edges') or [])]
        return cls(nodes=nodes, edges=edges, id=raw.get('id'))

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            'nodes': [node.to_dict() for node in self.nodes],
            'edges': [edge.to_dict() for edge in self.edges],
        }
        if self.id is not None:
            payload['id'] = self.id
        return payload


def get_entry_point(graph: CanvasGraph) -> Optional[CanvasNode]:
    return next((n for n in graph.nodes if n.type == ENTRY_NODE_TYPE), None)


def get_terminal_nodes(graph: CanvasGraph) -> List[CanvasNode]:
    return [n for n in graph.nodes if n.type in TERMINAL_NODE_TYPES]


@dataclass(frozen=True)
class ValidationIssue:
    severity: str
    code: str
    message: str
    node_id: Optional[str] = None
    edge_id: Optional[str] = None

    @classmethod
    def error(cls, code: str, message: str, **kwargs) -> "ValidationIssue":
        return cls('error', code, message, **kwargs)

    @classmethod
    def warning(cls, code: str, message: str, **kwargs) -> "ValidationIssue":
        return cls('warning', code, message, **kwargs)

    def to_dict(self) -> Dict[str, str]:
        payload = {'type': self.severity, 'code': self.code, 'message': self.message}
        if self.node_id is not None:
            payload['nodeId'] = self.node_id
        if self.edge_id is not None:
            payload['edgeId'] = self.edge_id
        return payload


@dataclass
class ValidationResult:
    errors: List[ValidationIssue] = field(default_factory=list)
    warnings: List[ValidationIssue] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors

    def raise_for_errors(self) -> None:
        if self.errors:
            message = "Invalid canvas: " + ", ".join(e.message for e in self.errors)
            raise StructuralError(message, self.errors)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'valid': self.valid,
            'errors': [e.to_dict() for e in self.errors],
            'warnings': [w.to_dict() for w in self.warnings],
        }


class GraphValidator:
    """
    Validates canvas graphs before compilation.

    Only structural unsoundness is blocking (missing entry/terminal node,
    dangling edges, disallowed connections, cycles). Disconnected nodes
    and missing "typical" upstream types are reported as warnings so a
    half-drawn canvas can still be inspected.
    """

    def __init__(self, connections: Optional[Mapping[NodeType, Sequence[NodeType]]] = None,
                 required_upstream: Optional[Mapping[NodeType, Sequence[NodeType]]] = None):
        self.connections = connections or VALID_CONNECTIONS
        self.required_upstream = required_upstream or REQUIRED_UPSTREAM

    def validate(self, nodes: Sequence[CanvasNode], edges: Sequence[CanvasEdge]) -> ValidationResult:
        result = ValidationResult()
        nodes_by_id = {node.id: node for node in nodes}
        topology = GraphTopology(nodes, edges)

        self._check_unique_ids(nodes, result)
        self._check_entry_and_terminal(nodes, result)
        self._check_edges(edges, nodes_by_id, result)
        self._check_cycles(nodes_by_id, edges, result)
        self._check_connectivity(nodes, topology, result)
        self._check_required_upstream(nodes, nodes_by_id, topology, result)

        if result.errors:
            logger.debug("Graph validation failed: %s", [e.code for e in result.errors])
        return result

    def validate_graph(self, graph: CanvasGraph) -> ValidationResult:
        return self.validate(graph.nodes, graph.edges)

    @staticmethod
    def _check_unique_ids(nodes: Sequence[CanvasNode], result: ValidationResult) -> None:
        seen = set()
        for node in nodes:
            if node.id in seen:
                result.errors.append(ValidationIssue.error(
                    IssueCode.DUPLICATE_NODE_ID,
                    f"Duplicate node id: {node.id}",
                    node_id=node.id,
                ))
            seen.add(node.id)

    @staticmethod
    def _check_entry_and_terminal(nodes: Sequence[CanvasNode], result: ValidationResult) -> None:
        entry_nodes = [n for n in nodes if n.type == ENTRY_NODE_TYPE]
        if not entry_nodes:
            result.errors.append(ValidationIssue.error(
                IssueCode.NO_QUERY_NODE,
                "Canvas must have at least one Query node as entry point",
            ))
        elif len(entry_nodes) > 1:
            result.warnings.append(ValidationIssue.warning(
                IssueCode.MULTIPLE_QUERY_NODES,
                "Multiple Query nodes found - only the first will be used as entry point",
            ))

        if not any(n.type in TERMINAL_NODE_TYPES for n in nodes):
            result.errors.append(ValidationIssue.error(
                IssueCode.NO_TERMINAL_NODE,
                "Canvas must have at least one Generate or Agent node as output",
            ))

    def _check_edges(self, edges: Sequence[CanvasEdge], nodes_by_id: Dict[str, CanvasNode],
                     result: ValidationResult) -> None:
        for edge in edges:
            source = nodes_by_id.get(edge.source)
            target = nodes_by_id.get(edge.target)

            if source is None:
                result.errors.append(ValidationIssue.error(
                    IssueCode.INVALID_SOURCE,
                    f"Edge references non-existent source node: {edge.source}",
                    edge_id=edge.id,
                ))
                continue
            if target is None:
                result.errors.append(ValidationIssue.error(
                    IssueCode.INVALID_TARGET,
                    f"Edge references non-existent target node: {edge.target}",
                    edge_id=edge.id,
                ))
                continue

            if target.type not in self.connections.get(source.type, ()):
                result.errors.append(ValidationIssue.error(
                    IssueCode.INVALID_CONNECTION,
                    f"Invalid connection: {source.type.value} cannot connect to {target.type.value}",
                    edge_id=edge.id,
                ))

    @staticmethod
    def _check_cycles(nodes_by_id: Dict[str, CanvasNode], edges: Sequence[CanvasEdge],
                      result: ValidationResult) -> None:
        adjacency: Dict[str, List[str]] = {node_id: [] for node_id in nodes_by_id}
        for edge in edges:
            if edge.source in nodes_by_id and edge.target in nodes_by_id:
                adjacency[edge.source].append(edge.target)

        if detect_cycle(nodes_by_id, adjacency):
            result.errors.append(ValidationIssue.error(
                IssueCode.CYCLE_DETECTED,
                "Canvas contains a cycle - pipelines must be acyclic (DAG)",
            ))

    @staticmethod
    def _check_connectivity(nodes: Sequence[CanvasNode], topology: GraphTopology,
                            result: ValidationResult) -> None:
        for node in nodes:
            if node.type != ENTRY_NODE_TYPE and not topology.get_upstream_nodes(node.id):
                result.warnings.append(ValidationIssue.warning(
                    IssueCode.NO_INCOMING,
                    f'Node "{node.label}" has no incoming connections',
                    node_id=node.id,
                ))
            if node.type not in TERMINAL_NODE_TYPES and not topology.get_downstream_nodes(node.id):
                result.warnings.append(ValidationIssue.warning(
                    IssueCode.NO_OUTGOING,
                    f'Node "{node.label}" has no outgoing connections',
                    node_id=node.id,
                ))

    def _check_required_upstream(self, nodes: Sequence[CanvasNode], nodes_by_id: Dict[str, CanvasNode],
                                 topology: GraphTopology, result: ValidationResult) -> None:
        for node in nodes:
            required = self.required_upstream.get(node.type)
            if not required:
                continue

            ancestor_types = {
                nodes_by_id[ancestor_id].type
                for ancestor_id in topology.ancestors(node.id)
                if ancestor_id in nodes_by_id
            }
            for required_type in required:
                if required_type not in ancestor_types:
                    result.warnings.append(ValidationIssue.warning(
                        IssueCode.MISSING_UPSTREAM,
                        f'Node "{node.label}" ({node.type.value}) typically requires '
                        f'a {required_type.value} node upstream',
                        node_id=node.id,
                    ))
