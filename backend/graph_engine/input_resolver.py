"""
Declarative input wiring for node executors.

Each node type lists the fields it needs and, per field, the upstream node
kinds (and their output fields) to take it from in priority order. When no
upstream node of a wanted kind has produced the field, the resolver falls
back to the run's original input, so graphs that omit optional nodes
(HyDE, rerank, judge, ...) still run.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple

from .constants import NodeType
from .data_store import GraphDataStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UpstreamSource:
    node_type: NodeType
    field: str


@dataclass(frozen=True)
class InputField:
    name: str
    sources: Tuple[UpstreamSource, ...] = ()
    fallback: Optional[str] = None
    default: Any = None


def _from(*pairs: Tuple[NodeType, str]) -> Tuple[UpstreamSource, ...]:
    return tuple(UpstreamSource(node_type, field) for node_type, field in pairs)


_QUERY = InputField('query', _from((NodeType.QUERY, 'query')), fallback='query')

# Most processed documents first: judged, then reranked, then raw retrieval
_BEST_DOCUMENTS = InputField(
    'documents',
    _from(
        (NodeType.JUDGE, 'relevantDocuments'),
        (NodeType.RERANK, 'rankedDocuments'),
        (NodeType.RETRIEVE, 'documents'),
    ),
)

INPUT_RESOLUTION: Dict[NodeType, Tuple[InputField, ...]] = {
    NodeType.QUERY: (
        InputField('query', fallback='query'),
    ),
    NodeType.HYDE: (
        _QUERY,
    ),
    NodeType.EMBED: (
        InputField(
            'text',
            _from((NodeType.HYDE, 'hypotheticalDocument'), (NodeType.QUERY, 'query')),
            fallback='query',
        ),
    ),
    NodeType.RETRIEVE: (
        InputField('embedding', _from((NodeType.EMBED, 'embedding')), default=[]),
        InputField(
            'query',
            _from((NodeType.QUERY, 'query'), (NodeType.EMBED, 'text')),
            fallback='query',
        ),
    ),
    NodeType.RERANK: (
        InputField('documents', _from((NodeType.RETRIEVE, 'documents')), default=[]),
        InputField(
            'query',
            _from((NodeType.QUERY, 'query'), (NodeType.RETRIEVE, 'query')),
            fallback='query',
        ),
    ),
    NodeType.JUDGE: (
        InputField(
            'documents',
            _from((NodeType.RERANK, 'rankedDocuments'), (NodeType.RETRIEVE, 'documents')),
            default=[],
        ),
        InputField(
            'query',
            _from((NodeType.QUERY, 'query'), (NodeType.RERANK, 'query'), (NodeType.RETRIEVE, 'query')),
            fallback='query',
        ),
    ),
    NodeType.GENERATE: (
        _QUERY,
        _BEST_DOCUMENTS,
    ),
    NodeType.AGENT: (
        _QUERY,
        _BEST_DOCUMENTS,
    ),
}


class InputResolver:
    """
    Builds the concrete input record for a node from upstream outputs.

    Every upstream output produced so far in the run is eligible, not just
    immediate predecessors. Among several nodes of the same kind, the most
    recently completed one wins.
    """

    def __init__(self, table: Optional[Mapping[NodeType, Tuple[InputField, ...]]] = None):
        self.table = table if table is not None else INPUT_RESOLUTION

    def __call__(self, node_type: NodeType, outputs: GraphDataStore,
                 original_input: Mapping[str, Any]) -> Dict[str, Any]:
        return self.resolve(node_type, outputs, original_input)

    def resolve(self, node_type: NodeType, outputs: GraphDataStore,
                original_input: Mapping[str, Any]) -> Dict[str, Any]:
        fields = self.table.get(node_type)
        if fields is None:
            logger.debug("No input policy for %s; passing the original input through", node_type)
            return dict(original_input)

        resolved: Dict[str, Any] = {}
        for input_field in fields:
            value = self._resolve_field(input_field, outputs, original_input)
            if value is not None:
                resolved[input_field.name] = value
        return resolved

    @staticmethod
    def _resolve_field(input_field: InputField, outputs: GraphDataStore,
                       original_input: Mapping[str, Any]) -> Any:
        for source in input_field.sources:
            for values in outputs.outputs_of_type(source.node_type):
                value = values.get(source.field)
                if value is not None:
                    return value

        if input_field.fallback is not None and original_input.get(input_field.fallback) is not None:
            return original_input[input_field.fallback]

        return copy.deepcopy(input_field.default)
