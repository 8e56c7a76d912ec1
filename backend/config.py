import os


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, default))
    except ValueError:
        return default


def _env_flag(name: str, default: str = "0") -> bool:
    return os.environ.get(name, default) == "1"


# Tracer cache: number of most recently started runs kept for inspection
TRACER_MAX_RUNS = max(1, _env_int("CANVAS_TRACER_MAX_RUNS", 100))

# Worker threads for synchronous step executors
STEP_WORKERS = max(1, _env_int("CANVAS_STEP_WORKERS", 4))

SERVER_HOST = os.environ.get("CANVAS_HOST", "0.0.0.0")
SERVER_PORT = _env_int("CANVAS_PORT", 5000)
SERVER_DEBUG = _env_flag("FLASK_DEBUG")

# Seconds an SSE response waits for the next event before sending a keep-alive comment
SSE_KEEPALIVE_SECONDS = _env_int("CANVAS_SSE_KEEPALIVE", 15)

DEFAULT_VECTOR_STORE = os.environ.get("CANVAS_VECTOR_STORE", "memory")


def build_runtime_config(**overrides) -> dict:
    """
    Run-level configuration handed to every StepExecutor.

    Provider credentials come from the environment; each node's own config
    is layered on top of this record at dispatch time.
    """
    runtime_config = {
        'openaiApiKey': os.environ.get("OPENAI_API_KEY"),
        'anthropicApiKey': os.environ.get("ANTHROPIC_API_KEY"),
        'pineconeApiKey': os.environ.get("PINECONE_API_KEY"),
        'pineconeIndexHost': os.environ.get("PINECONE_INDEX_HOST"),
        'databaseUrl': os.environ.get("DATABASE_URL"),
        'vectorStoreType': DEFAULT_VECTOR_STORE,
        'documents': [],
    }
    runtime_config.update(overrides)
    return runtime_config
