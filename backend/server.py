import atexit
import logging
from typing import Any, Dict, Optional

from flask import Flask
from flask_cors import CORS

from app.middleware import register_error_handlers
from app.routes import register_blueprints
from app.services import RunService
from config import SERVER_DEBUG, SERVER_HOST, SERVER_PORT, TRACER_MAX_RUNS, build_runtime_config
from flow_control import FlowControlHub
from graph_engine.node_executors import NodeExecutorRegistry
from graph_engine.planner import PlanBuilder
from graph_engine.tracer import EventTracer
from graph_executor import RunOrchestrator
from utils.async_helpers import shutdown_thread_pools
from utils.logging_utils import setup_logging

setup_logging()
logger = logging.getLogger(__name__)

TRACER_SUBSCRIPTION = "tracer"


def create_app(registry: Optional[NodeExecutorRegistry] = None,
               tracer: Optional[EventTracer] = None,
               flow_hub: Optional[FlowControlHub] = None,
               runtime_config: Optional[Dict[str, Any]] = None,
               keepalive_seconds: Optional[float] = None) -> Flask:
    """
    Wire the orchestrator, wire tap and HTTP routes into a Flask app.

    Without a registry every node type echoes its input, which is enough to
    exercise canvases end to end before real node bodies are plugged in.
    """
    if registry is None:
        logger.warning("No executor registry supplied; all node types will echo their input")
        registry = NodeExecutorRegistry.passthrough()

    tracer = tracer or EventTracer(max_runs=TRACER_MAX_RUNS)
    flow_hub = flow_hub or FlowControlHub()
    flow_hub.subscribe(TRACER_SUBSCRIPTION, tracer.on_event)

    plan_builder = PlanBuilder()
    orchestrator = RunOrchestrator(
        registry,
        flow_hub=flow_hub,
        runtime_config=runtime_config if runtime_config is not None else build_runtime_config(),
        plan_builder=plan_builder,
    )
    run_service = RunService(orchestrator, keepalive_seconds=keepalive_seconds)

    app = Flask(__name__)
    CORS(app)

    register_error_handlers(app)
    register_blueprints(app, plan_builder, run_service, tracer, registry.types())

    # Exposed for embedding hosts and tests
    app.extensions['canvas_runs'] = {
        'tracer': tracer,
        'flow_hub': flow_hub,
        'orchestrator': orchestrator,
        'run_service': run_service,
    }
    return app


if __name__ == '__main__':
    app = create_app()
    atexit.register(shutdown_thread_pools)
    logger.info("Canvas run server listening on %s:%d", SERVER_HOST, SERVER_PORT)
    app.run(debug=SERVER_DEBUG, host=SERVER_HOST, port=SERVER_PORT, threaded=True)
