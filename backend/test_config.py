"""Tests for runtime configuration and logging helpers."""
import asyncio
import logging

from config import build_runtime_config
from utils.async_helpers import run_in_thread
from utils.logging_utils import (
    OneLineFormatter,
    RunContextFilter,
    compact_json,
    current_run_id,
    run_log_context,
)


def test_runtime_config_reads_provider_keys(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
    monkeypatch.delenv("PINECONE_API_KEY", raising=False)

    config = build_runtime_config(documents=["doc"])

    assert config["openaiApiKey"] == "sk-env"
    assert config["pineconeApiKey"] is None
    assert config["documents"] == ["doc"]


def test_runtime_config_documents_not_shared():
    build_runtime_config()["documents"].append("leak")
    assert build_runtime_config()["documents"] == []


def test_compact_json():
    assert compact_json({"a": [1, 2], "b": "é"}) == '{"a":[1,2],"b":"é"}'
    assert compact_json({"when": object}).startswith('{"when":"<class')


def test_one_line_formatter_truncates():
    formatter = OneLineFormatter(fmt="%(message)s", max_len=10)
    record = logging.LogRecord("test", logging.INFO, __file__, 1, "line one\n   line two", None, None)
    assert formatter.format(record) == "line one l …(truncated)"


def _record(message="hello"):
    return logging.LogRecord("canvas", logging.INFO, __file__, 1, message, None, None)


def test_run_filter_marks_lines_outside_a_run():
    record = _record()
    RunContextFilter().filter(record)
    assert record.run_id == "-"


def test_run_filter_stamps_the_active_run():
    formatter = OneLineFormatter(fmt="run=%(run_id)s %(message)s")
    with run_log_context("run-42"):
        record = _record()
        RunContextFilter().filter(record)
    assert formatter.format(record) == "run=run-42 hello"
    assert current_run_id() == "-"


def test_run_filter_keeps_an_explicit_run_id():
    record = _record()
    record.run_id = "explicit"
    with run_log_context("run-42"):
        RunContextFilter().filter(record)
    assert record.run_id == "explicit"


def test_run_id_follows_work_into_the_step_pool():
    async def main():
        with run_log_context("run-7"):
            return await run_in_thread(current_run_id)

    assert asyncio.run(main()) == "run-7"
