"""Tests for canvas schemas and GraphValidator."""
import pytest

from conftest import make_graph
from graph_engine.constants import IssueCode, NodeType
from graph_engine.errors import StructuralError
from graph_engine.schema import (
    CanvasEdge,
    CanvasGraph,
    CanvasNode,
    GraphValidator,
    get_entry_point,
    get_terminal_nodes,
)


def _validate(graph):
    return GraphValidator().validate_graph(graph)


def _codes(issues):
    return [issue.code for issue in issues]


# ==================== Schemas ====================

class TestCanvasSchema:
    def test_node_from_editor_shape(self):
        node = CanvasNode.from_dict({
            "id": "n1",
            "type": "query",
            "position": {"x": 0, "y": 0},
            "data": {"label": "Ask", "config": {"topK": 3}},
        })
        assert node.type is NodeType.QUERY
        assert node.label == "Ask"
        assert node.config["topK"] == 3

    def test_node_from_flat_shape_uses_default_label(self):
        node = CanvasNode.from_dict({"id": "n2", "type": "hyde"})
        assert node.label == "HyDE"
        assert dict(node.config) == {}

    def test_unknown_node_type_is_structural(self):
        with pytest.raises(StructuralError) as exc:
            CanvasNode.from_dict({"id": "n3", "type": "summarize"})
        assert exc.value.codes == [IssueCode.UNKNOWN_NODE_TYPE]
        assert exc.value.issues[0].node_id == "n3"

    def test_node_without_id_is_structural(self):
        with pytest.raises(StructuralError):
            CanvasNode.from_dict({"type": "query"})

    def test_node_config_is_read_only(self):
        node = CanvasNode(id="n", type=NodeType.EMBED, config={"model": "small"})
        with pytest.raises(TypeError):
            node.config["model"] = "large"

    def test_edge_id_derived_when_missing(self):
        edge = CanvasEdge.from_dict({"source": "a", "target": "b"}, 4)
        assert edge.id == "e4-a-b"

    def test_graph_round_trips_through_dict(self, chain_graph):
        rebuilt = CanvasGraph.from_dict(chain_graph.to_dict())
        assert rebuilt == chain_graph

    def test_entry_and_terminal_lookup(self, chain_graph):
        assert get_entry_point(chain_graph).id == "query"
        assert [n.id for n in get_terminal_nodes(chain_graph)] == ["generate"]


# ==================== Blocking errors ====================

class TestValidatorErrors:
    def test_valid_chain(self, chain_graph):
        result = _validate(chain_graph)
        assert result.valid
        assert result.errors == []
        assert result.warnings == []

    def test_missing_query_node(self):
        result = _validate(make_graph([("generate", "generate")], []))
        assert IssueCode.NO_QUERY_NODE in _codes(result.errors)

    def test_missing_terminal_node(self):
        result = _validate(make_graph([("q", "query"), ("e", "embed")], [("q", "e")]))
        assert _codes(result.errors) == [IssueCode.NO_TERMINAL_NODE]
        assert result.errors[0].message == "Canvas must have at least one Generate or Agent node as output"

    def test_disallowed_connection(self):
        graph = make_graph([("q", "query"), ("r", "retrieve"), ("g", "generate")],
                           [("q", "r"), ("r", "g")])
        result = _validate(graph)
        assert _codes(result.errors) == [IssueCode.INVALID_CONNECTION]
        assert result.errors[0].edge_id == "e0"
        assert result.errors[0].message == "Invalid connection: query cannot connect to retrieve"

    def test_cycle_back_to_query(self, chain_graph):
        graph = CanvasGraph(
            nodes=chain_graph.nodes,
            edges=list(chain_graph.edges) + [CanvasEdge("back", "generate", "query")],
        )
        result = _validate(graph)
        assert not result.valid
        assert IssueCode.CYCLE_DETECTED in _codes(result.errors)

    def test_judge_retrieve_loop_is_only_a_cycle(self):
        # judge -> retrieve is an allowed connection, so the loop itself is the only problem
        graph = make_graph(
            [("q", "query"), ("e", "embed"), ("r", "retrieve"), ("j", "judge"), ("g", "generate")],
            [("q", "e"), ("e", "r"), ("r", "j"), ("j", "r"), ("j", "g")],
        )
        assert _codes(_validate(graph).errors) == [IssueCode.CYCLE_DETECTED]

    def test_edge_to_missing_target(self, chain_graph):
        graph = CanvasGraph(
            nodes=chain_graph.nodes,
            edges=list(chain_graph.edges) + [CanvasEdge("ghost-edge", "retrieve", "ghost")],
        )
        result = _validate(graph)
        assert _codes(result.errors) == [IssueCode.INVALID_TARGET]
        assert result.errors[0].edge_id == "ghost-edge"

    def test_edge_from_missing_source(self, chain_graph):
        graph = CanvasGraph(
            nodes=chain_graph.nodes,
            edges=list(chain_graph.edges) + [CanvasEdge("ghost-edge", "ghost", "generate")],
        )
        assert _codes(_validate(graph).errors) == [IssueCode.INVALID_SOURCE]

    def test_duplicate_node_ids(self):
        graph = make_graph([("q", "query"), ("g", "embed"), ("g", "generate")], [("q", "g")])
        result = _validate(graph)

        assert result.errors[0].code == IssueCode.DUPLICATE_NODE_ID
        assert result.errors[0].node_id == "g"
        assert result.errors[0].message == "Duplicate node id: g"
        assert IssueCode.CYCLE_DETECTED not in _codes(result.errors)

    def test_raise_for_errors_lists_every_message(self):
        result = _validate(make_graph([("e", "embed")], []))
        with pytest.raises(StructuralError) as exc:
            result.raise_for_errors()
        assert str(exc.value).startswith("Invalid canvas: ")
        assert set(exc.value.codes) == {IssueCode.NO_QUERY_NODE, IssueCode.NO_TERMINAL_NODE}


# ==================== Advisory warnings ====================

class TestValidatorWarnings:
    def test_multiple_query_nodes(self):
        graph = make_graph([("q1", "query"), ("q2", "query"), ("g", "generate")],
                           [("q1", "g"), ("q2", "g")])
        result = _validate(graph)
        assert result.valid
        assert _codes(result.warnings) == [IssueCode.MULTIPLE_QUERY_NODES]

    def test_disconnected_nodes(self):
        graph = make_graph([("q", "query"), ("h", "hyde"), ("g", "generate")], [("q", "g")])
        warnings = _validate(graph).warnings
        assert {(w.code, w.node_id) for w in warnings} == {
            (IssueCode.NO_INCOMING, "h"),
            (IssueCode.NO_OUTGOING, "h"),
        }

    def test_missing_upstream_is_not_blocking(self):
        graph = make_graph([("q", "query"), ("r", "retrieve"), ("g", "generate")],
                           [("q", "g"), ("r", "g")])
        result = _validate(graph)
        assert result.valid
        missing = [w for w in result.warnings if w.code == IssueCode.MISSING_UPSTREAM]
        assert [w.node_id for w in missing] == ["r"]
        assert missing[0].message == 'Node "Retrieve" (retrieve) typically requires a embed node upstream'

    def test_upstream_requirement_counts_indirect_ancestors(self):
        graph = make_graph(
            [("q", "query"), ("e", "embed"), ("r", "retrieve"), ("k", "rerank"), ("j", "judge"), ("g", "generate")],
            [("q", "e"), ("e", "r"), ("r", "k"), ("k", "j"), ("j", "g")],
        )
        assert _validate(graph).warnings == []

    def test_issue_wire_format(self):
        graph = make_graph([("q", "query"), ("h", "hyde"), ("g", "generate")], [("q", "g")])
        payload = _validate(graph).to_dict()
        assert payload["valid"] is True
        assert payload["errors"] == []
        assert payload["warnings"][0] == {
            "type": "warning",
            "code": IssueCode.NO_INCOMING,
            "message": 'Node "HyDE" has no incoming connections',
            "nodeId": "h",
        }
