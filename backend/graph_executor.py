"""
Run Orchestrator - executes compiled canvas graphs step by step.

Architecture:
- PlanBuilder: validates the canvas and fixes a topological step order
- InputResolver: derives each node's input from everything computed so far
- NodeExecutorRegistry: one StepExecutor per node type, injected by the host
- FlowControlHub: receives every lifecycle event, in order, for the wire tap

Execution is strictly sequential within a run. Runs share nothing but the
hub, so any number of them may be awaited concurrently.
"""

import copy
import logging
import time
from typing import Any, Callable, Dict, Optional

from flow_control import FlowControlHub
from graph_engine import events
from graph_engine.context import RunExecutionContext, elapsed_ms
from graph_engine.errors import PlanningError, StructuralError, UnknownStepTypeError
from graph_engine.events import RunEvent
from graph_engine.input_resolver import InputResolver
from graph_engine.node_executors import NodeExecutorRegistry
from graph_engine.planner import ExecutionStep, PlanBuilder
from graph_engine.schema import CanvasGraph
from graph_engine.state import Run, StepRecord
from utils.logging_utils import compact_json, run_log_context

logger = logging.getLogger(__name__)

InputResolverFunc = Callable[..., Dict[str, Any]]


def describe_error(error: BaseException) -> str:
    """Opaque, human-readable message recorded for a failed step or run."""
    message = str(error)
    return message if message else type(error).__name__


class RunOrchestrator:
    """
    Walks an execution plan and manages the Run/StepRecord lifecycle.

    Execution flow:
    1. Build the plan (validation + topological order); failures end the run
    2. Emit run:started
    3. For each step: resolve input, emit step:started, dispatch, record
       the result and emit step:completed or step:failed
    4. The first failing step aborts the run; nothing is retried
    5. Emit run:completed with the last step's output, or run:failed

    Failures are reported only through events and the returned Run; the
    caller of ``execute`` never sees an exception for a failed run.
    """

    def __init__(
        self,
        registry: NodeExecutorRegistry,
        flow_hub: Optional[FlowControlHub] = None,
        input_resolver: Optional[InputResolverFunc] = None,
        runtime_config: Optional[Dict[str, Any]] = None,
        plan_builder: Optional[PlanBuilder] = None,
    ):
        self.registry = registry
        self.flow_hub = flow_hub or FlowControlHub()
        self.input_resolver = input_resolver or InputResolver()
        self.runtime_config = dict(runtime_config or {})
        self.plan_builder = plan_builder or PlanBuilder()

    async def execute(
        self,
        graph: CanvasGraph,
        run_input: Dict[str, Any],
        canvas_id: Optional[str] = None,
        on_event: Optional[Callable[[RunEvent], None]] = None,
    ) -> Run:
        """Execute ``graph`` against ``run_input`` and return the finalized Run."""
        run = Run(canvas_id=canvas_id or graph.id or '', input=dict(run_input))
        if not run.canvas_id:
            run.canvas_id = run.id

        subscription = None
        if on_event is not None:
            subscription = f"run:{run.id}"
            self.flow_hub.subscribe(subscription, on_event, run_id=run.id)

        try:
            with run_log_context(run.id):
                await self._execute_run(graph, run)
        finally:
            if subscription:
                self.flow_hub.unsubscribe(subscription)
        return run

    async def _execute_run(self, graph: CanvasGraph, run: Run) -> None:
        started = time.perf_counter()

        try:
            plan = self.plan_builder.build_for_graph(graph)
        except (StructuralError, PlanningError) as e:
            logger.warning("Run %s rejected before execution: %s", run.id, e)
            run.fail(describe_error(e), total_latency_ms=elapsed_ms(started))
            self._emit(events.run_failed(run.id, run.error))
            return

        run.start()
        ctx = RunExecutionContext(
            run=run,
            plan=plan,
            original_input=run.input,
            runtime_config=self.runtime_config,
        )
        ctx.started = started
        logger.info("Run %s started: %d steps (canvas %s)", run.id, len(plan.steps), run.canvas_id)
        self._emit(events.run_started(run.id, run.canvas_id, run.input, len(plan.steps)))

        for index, step in enumerate(plan.steps):
            error = await self._execute_step(ctx, step, index)
            if error is not None:
                run.fail(error, total_latency_ms=ctx.elapsed_ms())
                logger.warning("Run %s failed at node %s: %s", run.id, step.node_id, error)
                self._emit(events.run_failed(run.id, error, failed_node_id=step.node_id))
                return

        run.complete(ctx.last_output, total_latency_ms=ctx.elapsed_ms())
        logger.info("Run %s completed in %d ms", run.id, run.total_latency_ms)
        self._emit(events.run_completed(run.id, run.output, run.total_latency_ms))

    async def _execute_step(self, ctx: RunExecutionContext, step: ExecutionStep, index: int) -> Optional[str]:
        """Dispatch one step; returns the error message when it failed."""
        run = ctx.run

        try:
            step_input = self.input_resolver(step.node_type, ctx.outputs, ctx.original_input)
        except Exception as e:
            logger.exception("Input resolution failed for node %s in run %s", step.node_id, run.id)
            return describe_error(e)

        record = StepRecord(
            run_id=run.id,
            node_id=step.node_id,
            node_type=step.node_type.value,
            label=step.label,
            input=step_input,
        )
        run.steps.append(record)
        self._emit(events.step_started(record, step, index))
        step_started = time.perf_counter()

        try:
            executor = self.registry.get(step.node_type)
            # Executors get private copies; recorded inputs and outputs stay as they were
            output = await executor.run(copy.deepcopy(step_input), ctx.config_for(step))
        except UnknownStepTypeError as e:
            record.fail(describe_error(e))
            logger.error("Run %s cannot dispatch node %s: %s", run.id, step.node_id, e)
            self._emit(events.step_failed(record, step, index))
            return record.error
        except Exception as e:
            record.fail(describe_error(e))
            logger.warning("Step %s (%s) failed in run %s: %s",
                           step.node_id, step.node_type.value, run.id, record.error)
            self._emit(events.step_failed(record, step, index))
            return record.error

        output = copy.deepcopy(output)
        ctx.record_output(step, copy.deepcopy(output))
        record.complete(output, latency_ms=elapsed_ms(step_started))
        logger.debug("Step %s (%s) completed in %d ms: %s", step.node_id, step.node_type.value,
                     record.latency_ms, compact_json(output))
        self._emit(events.step_completed(record, step, index))
        return None

    def _emit(self, event: RunEvent) -> None:
        self.flow_hub.publish(event)
