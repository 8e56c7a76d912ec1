"""Shared fixtures: canvas builders, echo registries and an event recorder."""
import pytest

from flow_control import FlowControlHub
from graph_engine.constants import NodeType
from graph_engine.node_executors import NodeExecutorRegistry
from graph_engine.schema import CanvasEdge, CanvasGraph, CanvasNode


def make_graph(nodes, edges, graph_id=None):
    """
    Build a CanvasGraph from terse specs.

    ``nodes`` is a list of ``(id, type)`` pairs, ``edges`` a list of
    ``(source, target)`` pairs.
    """
    return CanvasGraph(
        nodes=[CanvasNode(id=node_id, type=NodeType(node_type)) for node_id, node_type in nodes],
        edges=[CanvasEdge(id=f"e{i}", source=s, target=t) for i, (s, t) in enumerate(edges)],
        id=graph_id,
    )


def echo(input, runtime_config):
    return dict(input)


class EventRecorder:
    """Event sink that keeps everything it is handed, in order."""

    def __init__(self):
        self.events = []

    def __call__(self, event):
        self.events.append(event)

    @property
    def types(self):
        return [e.type.value for e in self.events]

    def of_type(self, event_type):
        return [e for e in self.events if e.type.value == event_type]


@pytest.fixture
def chain_graph():
    return make_graph(
        [("query", "query"), ("embed", "embed"), ("retrieve", "retrieve"), ("generate", "generate")],
        [("query", "embed"), ("embed", "retrieve"), ("retrieve", "generate")],
        graph_id="canvas-chain",
    )


@pytest.fixture
def short_graph():
    return make_graph(
        [("query", "query"), ("generate", "generate")],
        [("query", "generate")],
        graph_id="canvas-short",
    )


@pytest.fixture
def echo_registry():
    return NodeExecutorRegistry({node_type: echo for node_type in NodeType})


@pytest.fixture
def recorder():
    return EventRecorder()


@pytest.fixture
def flow_hub():
    return FlowControlHub()
