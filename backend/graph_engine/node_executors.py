"""
StepExecutor contract and the per-process executor registry.

The orchestrator never knows what a node does. It looks up one executor
per node type and calls ``execute(input, runtime_config)``; the concrete
bodies (embedding, retrieval, generation, ...) are supplied by the host.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Union

from utils.async_helpers import run_in_thread

from .constants import NodeType
from .errors import StepExecutionError, UnknownStepTypeError

logger = logging.getLogger(__name__)

StepFunction = Callable[[Dict[str, Any], Dict[str, Any]], Union[Dict[str, Any], Awaitable[Dict[str, Any]]]]


class StepExecutor:
    """
    Base class for node executors.

    Subclasses implement ``execute`` either as a plain method or as a
    coroutine. Plain methods are run on the shared worker pool so a slow
    executor never blocks other runs sharing the event loop.
    """

    node_type: Optional[NodeType] = None

    def execute(self, input: Dict[str, Any], runtime_config: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    async def run(self, input: Dict[str, Any], runtime_config: Dict[str, Any]) -> Dict[str, Any]:
        if inspect.iscoroutinefunction(self.execute):
            result = await self.execute(input, runtime_config)
        else:
            result = await run_in_thread(self.execute, input, runtime_config)
            if inspect.isawaitable(result):
                result = await result

        if not isinstance(result, Mapping):
            raise StepExecutionError(
                f"{type(self).__name__} returned {type(result).__name__}, expected a mapping"
            )
        return dict(result)


class FunctionStepExecutor(StepExecutor):
    """Adapts a plain (sync or async) function to the executor contract."""

    def __init__(self, func: StepFunction, node_type: Optional[NodeType] = None):
        self.func = func
        self.node_type = node_type
        if inspect.iscoroutinefunction(func):
            self.execute = self._execute_async

    def execute(self, input: Dict[str, Any], runtime_config: Dict[str, Any]) -> Dict[str, Any]:
        return self.func(input, runtime_config)

    async def _execute_async(self, input: Dict[str, Any], runtime_config: Dict[str, Any]) -> Dict[str, Any]:
        return await self.func(input, runtime_config)

    def __repr__(self) -> str:
        return f"FunctionStepExecutor({getattr(self.func, '__name__', self.func)!r})"


class PassthroughStepExecutor(StepExecutor):
    """Echoes its resolved input; stands in for real node bodies in development."""

    def __init__(self, node_type: Optional[NodeType] = None):
        self.node_type = node_type

    async def execute(self, input: Dict[str, Any], runtime_config: Dict[str, Any]) -> Dict[str, Any]:
        return dict(input)


ExecutorLike = Union[StepExecutor, StepFunction]


class NodeExecutorRegistry:
    """
    Fixed map from node type to StepExecutor, built once and injected.

    With ``require_complete`` (the default) every ``NodeType`` must be
    covered at construction time, so an unregistered type can never surface
    in the middle of a run. Partial registries are still allowed for tests
    and embedded use; lookups then raise ``UnknownStepTypeError``.
    """

    def __init__(self, executors: Mapping[Union[NodeType, str], ExecutorLike], require_complete: bool = True):
        self._executors: Dict[NodeType, StepExecutor] = {}
        for key, executor in executors.items():
            node_type = NodeType(key)
            if not isinstance(executor, StepExecutor):
                if not callable(executor):
                    raise TypeError(f"Executor for {node_type.value} is not callable: {executor!r}")
                executor = FunctionStepExecutor(executor, node_type)
            self._executors[node_type] = executor

        missing = self.missing_types()
        if require_complete and missing:
            names = [t.value for t in missing]
            raise UnknownStepTypeError(
                f"No executor registered for node types: {', '.join(names)}",
                node_types=names,
            )

    @classmethod
    def passthrough(cls) -> "NodeExecutorRegistry":
        return cls({node_type: PassthroughStepExecutor(node_type) for node_type in NodeType})

    def missing_types(self) -> List[NodeType]:
        return [node_type for node_type in NodeType if node_type not in self._executors]

    def get(self, node_type: Union[NodeType, str]) -> StepExecutor:
        try:
            return self._executors[NodeType(node_type)]
        except (KeyError, ValueError):
            value = getattr(node_type, 'value', node_type)
            raise UnknownStepTypeError(
                f"No executor registered for node type: {value}",
                node_types=[value],
            ) from None

    def __contains__(self, node_type: Union[NodeType, str]) -> bool:
        try:
            return NodeType(node_type) in self._executors
        except ValueError:
            return False

    def types(self) -> Iterable[NodeType]:
        return list(self._executors)
