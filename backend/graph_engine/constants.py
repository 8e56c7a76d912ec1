"""
Constants shared across the graph compiler and run orchestrator.
"""

from enum import Enum
from typing import Dict, FrozenSet, Tuple


class NodeType(str, Enum):
    """Closed set of processing kinds a canvas node can have."""

    QUERY = "query"
    EMBED = "embed"
    RETRIEVE = "retrieve"
    RERANK = "rerank"
    JUDGE = "judge"
    GENERATE = "generate"
    HYDE = "hyde"
    AGENT = "agent"


ENTRY_NODE_TYPE = NodeType.QUERY
TERMINAL_NODE_TYPES: FrozenSet[NodeType] = frozenset({NodeType.GENERATE, NodeType.AGENT})

# Which node types each node type may feed into
VALID_CONNECTIONS: Dict[NodeType, Tuple[NodeType, ...]] = {
    NodeType.QUERY: (NodeType.EMBED, NodeType.HYDE, NodeType.GENERATE, NodeType.AGENT),
    NodeType.HYDE: (NodeType.EMBED,),
    NodeType.EMBED: (NodeType.RETRIEVE,),
    NodeType.RETRIEVE: (NodeType.RERANK, NodeType.JUDGE, NodeType.GENERATE, NodeType.AGENT),
    NodeType.RERANK: (NodeType.JUDGE, NodeType.GENERATE, NodeType.AGENT),
    NodeType.JUDGE: (NodeType.GENERATE, NodeType.AGENT, NodeType.RETRIEVE),
    NodeType.GENERATE: (),
    NodeType.AGENT: (),
}

# Ancestor types a node "typically" needs; only ever reported as warnings
REQUIRED_UPSTREAM: Dict[NodeType, Tuple[NodeType, ...]] = {
    NodeType.RETRIEVE: (NodeType.EMBED,),
    NodeType.RERANK: (NodeType.RETRIEVE,),
    NodeType.JUDGE: (NodeType.RETRIEVE,),
}

DEFAULT_NODE_LABELS: Dict[NodeType, str] = {
    NodeType.QUERY: 'Query',
    NodeType.EMBED: 'Embed',
    NodeType.RETRIEVE: 'Retrieve',
    NodeType.RERANK: 'Rerank',
    NodeType.JUDGE: 'Judge',
    NodeType.GENERATE: 'Generate',
    NodeType.HYDE: 'HyDE',
    NodeType.AGENT: 'Agent',
}


class IssueCode:
    """
    Codes attached to validation issues.

    The codes are part of the wire contract with the canvas editor, which
    uses them to highlight offending nodes and edges.
    """

    NO_QUERY_NODE = "NO_QUERY_NODE"
    MULTIPLE_QUERY_NODES = "MULTIPLE_QUERY_NODES"
    NO_TERMINAL_NODE = "NO_TERMINAL_NODE"
    INVALID_SOURCE = "INVALID_SOURCE"
    INVALID_TARGET = "INVALID_TARGET"
    INVALID_CONNECTION = "INVALID_CONNECTION"
    CYCLE_DETECTED = "CYCLE_DETECTED"
    NO_INCOMING = "NO_INCOMING"
    NO_OUTGOING = "NO_OUTGOING"
    MISSING_UPSTREAM = "MISSING_UPSTREAM"
    UNKNOWN_NODE_TYPE = "UNKNOWN_NODE_TYPE"
    DUPLICATE_NODE_ID = "DUPLICATE_NODE_ID"
