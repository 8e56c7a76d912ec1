"""Tests for StepExecutor adapters and NodeExecutorRegistry."""
import asyncio
import threading

import pytest

from conftest import echo
from graph_engine.constants import NodeType
from graph_engine.errors import StepExecutionError, UnknownStepTypeError
from graph_engine.node_executors import (
    FunctionStepExecutor,
    NodeExecutorRegistry,
    PassthroughStepExecutor,
    StepExecutor,
)


class BlockingEmbed(StepExecutor):
    node_type = NodeType.EMBED

    def execute(self, input, runtime_config):
        return {"embedding": [len(input["text"])], "thread": threading.current_thread().name}


class TestStepExecutors:
    def test_sync_executor_runs_on_worker_pool(self):
        output = asyncio.run(BlockingEmbed().run({"text": "abc"}, {}))
        assert output["embedding"] == [3]
        assert output["thread"].startswith("step_worker")

    def test_async_function_executor(self):
        async def generate(input, runtime_config):
            await asyncio.sleep(0)
            return {"answer": input["query"].upper(), "model": runtime_config["model"]}

        executor = FunctionStepExecutor(generate, NodeType.GENERATE)
        output = asyncio.run(executor.run({"query": "hi"}, {"model": "small"}))
        assert output == {"answer": "HI", "model": "small"}

    def test_non_mapping_result_is_an_error(self):
        executor = FunctionStepExecutor(lambda input, config: ["not", "a", "dict"])
        with pytest.raises(StepExecutionError, match="expected a mapping"):
            asyncio.run(executor.run({}, {}))

    def test_passthrough_echoes_input(self):
        assert asyncio.run(PassthroughStepExecutor().run({"query": "q"}, {})) == {"query": "q"}


class TestNodeExecutorRegistry:
    def test_incomplete_registry_rejected(self):
        with pytest.raises(UnknownStepTypeError) as exc:
            NodeExecutorRegistry({NodeType.QUERY: echo, NodeType.GENERATE: echo})
        assert "embed" in exc.value.node_types
        assert "query" not in exc.value.node_types

    def test_partial_registry_allowed_on_request(self):
        registry = NodeExecutorRegistry({"query": echo}, require_complete=False)
        assert NodeType.QUERY in registry
        assert "generate" not in registry
        assert NodeType.GENERATE in registry.missing_types()
        with pytest.raises(UnknownStepTypeError, match="generate"):
            registry.get(NodeType.GENERATE)

    def test_callables_are_wrapped(self, echo_registry):
        executor = echo_registry.get("retrieve")
        assert isinstance(executor, FunctionStepExecutor)
        assert executor.node_type is NodeType.RETRIEVE

    def test_executor_instances_kept(self):
        embed = BlockingEmbed()
        registry = NodeExecutorRegistry({NodeType.EMBED: embed}, require_complete=False)
        assert registry.get(NodeType.EMBED) is embed

    def test_non_callable_rejected(self):
        with pytest.raises(TypeError):
            NodeExecutorRegistry({NodeType.QUERY: "echo"}, require_complete=False)

    def test_unknown_type_name_lookup(self, echo_registry):
        assert "summarize" not in echo_registry
        with pytest.raises(UnknownStepTypeError):
            echo_registry.get("summarize")

    def test_passthrough_registry_is_complete(self):
        registry = NodeExecutorRegistry.passthrough()
        assert registry.missing_types() == []
        assert set(registry.types()) == set(NodeType)
