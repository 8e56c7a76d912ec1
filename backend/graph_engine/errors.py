"""
Error taxonomy for graph compilation and run execution.
"""

from typing import List, Optional


class GraphEngineError(Exception):
    """Base class for every error raised by the graph engine."""


class StructuralError(GraphEngineError, ValueError):
    """
    Raised when a canvas graph is structurally unsound.

    Carries the blocking validation issues so callers can surface every
    problem at once rather than the first one found.
    """

    def __init__(self, message: str, issues: Optional[List["ValidationIssue"]] = None):
        super().__init__(message)
        self.issues = list(issues or [])

    @property
    def codes(self) -> List[str]:
        return [issue.code for issue in self.issues]


class PlanningError(GraphEngineError, ValueError):
    """Raised when no execution order can be derived from a graph."""


class UnknownStepTypeError(GraphEngineError, LookupError):
    """Raised when no StepExecutor is registered for a node type."""

    def __init__(self, message: str, node_types: Optional[List[str]] = None):
        super().__init__(message)
        self.node_types = list(node_types or [])


class StepExecutionError(GraphEngineError):
    """Raised by StepExecutors when a node fails to produce its output."""

    def __init__(self, message: str, node_id: Optional[str] = None):
        super().__init__(message)
        self.node_id = node_id
