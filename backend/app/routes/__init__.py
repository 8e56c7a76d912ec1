"""
Route blueprints registration.
"""
from . import graph, runs


def register_blueprints(app, plan_builder, run_service, tracer, node_types):
    """Register all route blueprints with the Flask app."""

    # Compilation endpoints for the editor
    graph_bp = graph.init_routes(plan_builder)
    app.register_blueprint(graph_bp)

    # Execution, wire-tap queries and health
    runs_bp = runs.init_routes(run_service, tracer, node_types)
    app.register_blueprint(runs_bp)
