"""
Graph compilation routes used by the canvas editor.
"""
import logging
from flask import Blueprint
from graph_engine.errors import StructuralError
from graph_engine.planner import PlanBuilder, compile_graph
from app.utils.request_validators import RequestField, extract_json_fields, is_dict, parse_graph
from app.utils.route_decorators import handle_route_errors

logger = logging.getLogger(__name__)


def _graph_from_request():
    data = extract_json_fields(
        RequestField('graph', required=True, validator=is_dict, error_message="Missing graph")
    )
    return parse_graph(data['graph'])


def init_routes(plan_builder: PlanBuilder):
    """Initialize routes with dependencies."""
    bp = Blueprint('graph', __name__)

    @bp.route('/graph/validate', methods=['POST'])
    @handle_route_errors("validating graph")
    def validate_graph():
        """Full validation report; an invalid canvas is still a 200."""
        try:
            graph = _graph_from_request()
        except StructuralError as e:
            return {"valid": False, "errors": [i.to_dict() for i in e.issues], "warnings": []}
        return plan_builder.validator.validate_graph(graph).to_dict()

    @bp.route('/graph/plan', methods=['POST'])
    @handle_route_errors("planning graph")
    def plan_graph():
        plan = plan_builder.build_for_graph(_graph_from_request())
        return {"success": True, "plan": plan.to_dict()}

    @bp.route('/graph/compile', methods=['POST'])
    @handle_route_errors("compiling graph")
    def compile_canvas():
        try:
            graph = _graph_from_request()
        except StructuralError as e:
            return {"success": False, "errors": [str(e)], "warnings": []}
        result = compile_graph(graph, plan_builder.validator)
        if not result.success:
            logger.info("Graph failed to compile: %s", "; ".join(result.errors))
        return result.to_dict()

    return bp
