"""Tests for the EventTracer wire tap."""
import asyncio
from concurrent.futures import ThreadPoolExecutor

import pytest

from conftest import echo, make_graph
from flow_control import FlowControlHub
from graph_engine import events
from graph_engine.constants import NodeType
from graph_engine.node_executors import NodeExecutorRegistry
from graph_engine.schema import CanvasEdge, CanvasGraph
from graph_engine.state import RunStatus, StepStatus
from graph_engine.tracer import EventTracer
from graph_executor import RunOrchestrator


@pytest.fixture
def tracer():
    return EventTracer(max_runs=3)


@pytest.fixture
def orchestrator(echo_registry, tracer):
    hub = FlowControlHub()
    hub.subscribe("tracer", tracer.on_event)
    return RunOrchestrator(echo_registry, flow_hub=hub)


def _run(orchestrator, graph, query="what is rag?", canvas_id=None):
    return asyncio.run(orchestrator.execute(graph, {"query": query}, canvas_id=canvas_id))


class TestTracerQueries:
    def test_snapshot_matches_returned_run(self, orchestrator, tracer, chain_graph):
        run = _run(orchestrator, chain_graph)
        traced = tracer.get_run(run.id)

        assert traced.status is RunStatus.COMPLETED
        assert traced.canvas_id == "canvas-chain"
        assert traced.output == run.output
        assert traced.total_latency_ms == run.total_latency_ms
        assert [s.id for s in traced.steps] == [s.id for s in run.steps]
        assert all(s.status is StepStatus.COMPLETED for s in traced.steps)

    def test_step_lookups(self, orchestrator, tracer, chain_graph):
        run = _run(orchestrator, chain_graph)

        assert len(tracer.get_run_steps(run.id)) == 4
        embed = tracer.get_step_output(run.id, "embed")
        assert embed.output == {"text": "what is rag?"}
        assert tracer.get_step(embed.id).node_id == "embed"
        assert tracer.get_step_output(run.id, "missing") is None
        assert tracer.get_run_steps("no-such-run") == []

    def test_failed_run_is_traced(self, tracer, short_graph):
        def generate(input, runtime_config):
            raise RuntimeError("quota exceeded")

        registry = NodeExecutorRegistry({**{t: echo for t in NodeType}, NodeType.GENERATE: generate})
        hub = FlowControlHub()
        hub.subscribe("tracer", tracer)
        run = _run(RunOrchestrator(registry, flow_hub=hub), short_graph)

        traced = tracer.get_run(run.id)
        assert traced.status is RunStatus.FAILED
        assert traced.error == "quota exceeded"
        assert tracer.get_step_output(run.id, "generate").error == "quota exceeded"

    def test_rejected_runs_are_not_traced(self, orchestrator, tracer, chain_graph):
        graph = CanvasGraph(
            nodes=chain_graph.nodes,
            edges=list(chain_graph.edges) + [CanvasEdge("back", "generate", "query")],
        )
        run = _run(orchestrator, graph)
        assert run.id not in tracer
        assert len(tracer) == 0

    def test_runs_by_canvas_newest_first(self, orchestrator, tracer, short_graph):
        first = _run(orchestrator, short_graph, canvas_id="c1")
        second = _run(orchestrator, short_graph, canvas_id="c1")
        _run(orchestrator, short_graph, canvas_id="c2")

        assert [r.id for r in tracer.get_runs_by_canvas("c1")] == [second.id, first.id]
        assert tracer.get_runs_by_canvas("nope") == []

    def test_queries_return_copies(self, orchestrator, tracer, short_graph):
        run = _run(orchestrator, short_graph)
        tracer.get_run(run.id).steps.clear()
        assert len(tracer.get_run(run.id).steps) == 2


class TestTracerCapacity:
    def test_oldest_run_evicted_with_its_steps(self, orchestrator, tracer, short_graph):
        runs = [_run(orchestrator, short_graph, query=f"q{i}") for i in range(4)]
        oldest = runs[0]

        assert len(tracer) == 3
        assert oldest.id not in tracer
        assert all(tracer.get_step(s.id) is None for s in oldest.steps)
        assert all(r.id in tracer for r in runs[1:])

    def test_clear_canvas(self, orchestrator, tracer, short_graph):
        doomed = _run(orchestrator, short_graph, canvas_id="c1")
        _run(orchestrator, short_graph, canvas_id="c1")
        kept = _run(orchestrator, short_graph, canvas_id="c2")

        assert tracer.clear_canvas("c1") == 2
        assert tracer.get_step(doomed.steps[0].id) is None
        assert [r.id for r in tracer.get_runs_by_canvas("c2")] == [kept.id]

    def test_clear(self, orchestrator, tracer, short_graph):
        _run(orchestrator, short_graph)
        tracer.clear()
        assert len(tracer) == 0

    def test_capacity_must_be_positive(self):
        with pytest.raises(ValueError):
            EventTracer(max_runs=0)


class TestTracerIntake:
    def test_events_for_unknown_runs_are_ignored(self, tracer):
        tracer.on_event(events.run_completed("ghost", {"answer": "x"}, 5))
        assert "ghost" not in tracer

    def test_progress_events_carry_nothing(self, tracer):
        tracer.on_event(events.run_started("r1", "c1", {"query": "q"}, 1))
        tracer.on_event(events.RunEvent(events.EventType.STEP_PROGRESS, "r1", {"nodeId": "g"}))
        assert tracer.get_run("r1").steps == []
        assert tracer.get_run("r1").status is RunStatus.RUNNING

    def test_tracer_is_optional(self, echo_registry):
        graph = make_graph([("q", "query"), ("g", "generate")], [("q", "g")])
        run = asyncio.run(RunOrchestrator(echo_registry).execute(graph, {"query": "q"}))
        assert run.status is RunStatus.COMPLETED

    def test_intake_keeps_its_own_copy_of_payloads(self, tracer):
        run_input = {"query": "q", "filters": ["a"]}
        step_input = {"documents": [{"id": "d1"}, {"id": "d2"}]}
        tracer.on_event(events.run_started("r1", "c1", run_input, 1))
        tracer.on_event(events.RunEvent(events.EventType.STEP_STARTED, "r1", _step_payload("r1", step_input)))

        run_input["filters"].append("b")
        step_input["documents"].pop()

        assert tracer.get_run("r1").input == {"query": "q", "filters": ["a"]}
        assert tracer.get_step("r1-s").input == {"documents": [{"id": "d1"}, {"id": "d2"}]}

    def test_mutating_a_query_result_leaves_the_trace_alone(self, orchestrator, tracer, chain_graph):
        run = _run(orchestrator, chain_graph)

        tracer.get_step_output(run.id, "embed").output["text"] = "changed"

        assert tracer.get_step_output(run.id, "embed").output == {"text": "what is rag?"}


def _step_payload(run_id, step_input=None):
    return {
        "stepId": f"{run_id}-s",
        "nodeId": "q",
        "nodeType": "query",
        "label": "Query",
        "index": 0,
        "input": step_input or {},
    }


class TestTracerConcurrency:
    def test_concurrent_intake_respects_capacity(self):
        tracer = EventTracer(max_runs=5)
        run_ids = [f"run-{i}" for i in range(200)]

        def feed(run_id):
            tracer.on_event(events.run_started(run_id, "c1", {"query": run_id}, 1))
            tracer.on_event(events.RunEvent(events.EventType.STEP_STARTED, run_id, _step_payload(run_id)))

        with ThreadPoolExecutor(max_workers=16) as pool:
            list(pool.map(feed, run_ids))

        retained = [r for r in run_ids if r in tracer]
        assert len(tracer) == 5
        assert len(retained) == 5
        for run_id in run_ids:
            step = tracer.get_step(f"{run_id}-s")
            if run_id in retained:
                assert step.run_id == run_id
                assert len(tracer.get_run_steps(run_id)) == 1
            else:
                assert step is None
