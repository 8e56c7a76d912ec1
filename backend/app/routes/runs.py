"""
Run execution and inspection routes.
"""
import logging
from flask import Blueprint, Response, stream_with_context
from app.services.run_service import RunService
from app.utils.request_validators import (
    RequestField, extract_json_fields, extract_query_params, is_dict, non_empty_string, parse_graph,
)
from app.utils.route_decorators import handle_route_errors, not_found, success_response
from graph_engine.tracer import EventTracer

logger = logging.getLogger(__name__)


def init_routes(run_service: RunService, tracer: EventTracer, node_types):
    """Initialize routes with dependencies."""
    bp = Blueprint('runs', __name__)

    @bp.route('/health', methods=['GET'])
    @handle_route_errors("health check")
    def health_check():
        return {
            "status": "ok",
            "activeRuns": run_service.active_runs,
            "tracedRuns": len(tracer),
            "nodeTypes": [t.value for t in node_types],
        }

    @bp.route('/runs/execute', methods=['POST'])
    @handle_route_errors("executing run")
    def execute_run():
        """Start a run and stream its lifecycle events as Server-Sent Events."""
        data = extract_json_fields(
            RequestField('graph', required=True, validator=is_dict, error_message="Missing graph"),
            RequestField('input', default={}, validator=is_dict),
            RequestField('canvasId', validator=non_empty_string),
        )
        graph = parse_graph(data['graph'], canvas_id=data['canvasId'])

        logger.info("Starting run for canvas %s (%d nodes)", graph.id or '<unsaved>', len(graph.nodes))
        stream = run_service.stream_run(graph, data['input'], canvas_id=data['canvasId'])

        return Response(
            stream_with_context(stream),
            mimetype='text/event-stream',
            headers={
                'Cache-Control': 'no-cache',
                'X-Accel-Buffering': 'no'
            }
        )

    @bp.route('/runs', methods=['GET'])
    @handle_route_errors("listing runs")
    def list_runs():
        params = extract_query_params(
            RequestField('canvasId', required=True, error_message="canvasId query parameter is required")
        )
        runs = tracer.get_runs_by_canvas(params['canvasId'])
        return {"runs": [run.to_dict(include_steps=False) for run in runs]}

    @bp.route('/runs', methods=['DELETE'])
    @handle_route_errors("clearing runs")
    def clear_runs():
        params = extract_query_params(RequestField('canvasId'))
        if params['canvasId']:
            cleared = tracer.clear_canvas(params['canvasId'])
        else:
            cleared = len(tracer)
            tracer.clear()
        logger.info("Cleared %d traced runs", cleared)
        return success_response(cleared=cleared)

    @bp.route('/runs/<run_id>', methods=['GET'])
    @handle_route_errors("getting run")
    def get_run(run_id):
        run = tracer.get_run(run_id)
        if run is None:
            return not_found(f"Run not found: {run_id}")
        return run.to_dict()

    @bp.route('/runs/<run_id>/steps', methods=['GET'])
    @handle_route_errors("getting run steps")
    def get_run_steps(run_id):
        if run_id not in tracer:
            return not_found(f"Run not found: {run_id}")
        return {"steps": [step.to_dict() for step in tracer.get_run_steps(run_id)]}

    @bp.route('/runs/<run_id>/steps/<node_id>', methods=['GET'])
    @handle_route_errors("getting step output")
    def get_step_output(run_id, node_id):
        step = tracer.get_step_output(run_id, node_id)
        if step is None:
            return not_found(f"No step for node {node_id} in run {run_id}")
        return step.to_dict()

    @bp.route('/steps/<step_id>', methods=['GET'])
    @handle_route_errors("getting step")
    def get_step(step_id):
        step = tracer.get_step(step_id)
        if step is None:
            return not_found(f"Step not found: {step_id}")
        return step.to_dict()

    return bp
