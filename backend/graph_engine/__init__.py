"""
Graph execution package
=======================

Provides the core building blocks for compiling and running canvas graphs:

- Canvas graph schemas and structural validation
- Topological ordering and reachability queries
- Execution planning utilities
- Declarative input resolution and the StepExecutor registry
- Run/step lifecycle records, events and the wire-tap tracer
"""

from .constants import NodeType  # noqa: F401
from .errors import (  # noqa: F401
    GraphEngineError,
    PlanningError,
    StepExecutionError,
    StructuralError,
    UnknownStepTypeError,
)
from .schema import CanvasEdge, CanvasGraph, CanvasNode, GraphValidator  # noqa: F401
from .planner import ExecutionPlan, PlanBuilder, compile_graph, create_execution_plan  # noqa: F401
from .topology import TopologicalSorter  # noqa: F401
from .tracer import EventTracer  # noqa: F401
