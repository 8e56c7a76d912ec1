"""
Simple in-memory store for node outputs during a single run.
"""

from typing import Any, Dict, Iterator, List, Optional, Tuple

from .constants import NodeType


class GraphDataStore:
    """
    Stores node outputs keyed by node id, in the order they were produced.

    Each run owns its own store; nothing in here is shared between runs.
    """

    def __init__(self):
        self._outputs: Dict[str, Dict[str, Any]] = {}
        self._types: Dict[str, NodeType] = {}

    def set_output(self, node_id: str, node_type: NodeType, values: Dict[str, Any]) -> None:
        self._outputs[node_id] = values
        self._types[node_id] = node_type

    def get_output(self, node_id: str) -> Optional[Dict[str, Any]]:
        return self._outputs.get(node_id)

    def __contains__(self, node_id: str) -> bool:
        return node_id in self._outputs

    def __len__(self) -> int:
        return len(self._outputs)

    def items(self) -> Iterator[Tuple[str, NodeType, Dict[str, Any]]]:
        for node_id, values in self._outputs.items():
            yield node_id, self._types[node_id], values

    def outputs_of_type(self, node_type: NodeType) -> List[Dict[str, Any]]:
        """Outputs of every node of ``node_type``, most recent first."""
        return [values for _, kind, values in reversed(list(self.items())) if kind == node_type]
