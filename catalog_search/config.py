"""Application configuration and constants."""
from __future__ import annotations

import os
from dataclasses import dataclass


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name)
    return value if value is not None else default


def _get_optional_float(name: str) -> float | None:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return float(value)


@dataclass(frozen=True)
class Settings:
    """Simple settings container with environment variable overrides."""

    es_host: str = _get_env("ES_HOST", "http://localhost:9200")
    es_index: str = _get_env("ES_INDEX", "products")
    es_request_timeout: float = float(_get_env("ES_REQUEST_TIMEOUT", "30"))
    ensure_index_on_startup: bool = _get_env("ENSURE_INDEX_ON_STARTUP", "true").lower() in {"1", "true", "yes"}
    redis_host: str = _get_env("REDIS_HOST", "localhost")
    redis_port: int = int(_get_env("REDIS_PORT", "6379"))
    cache_ttl_seconds: int = int(_get_env("CACHE_TTL_SECONDS", "60"))
    benchmark_concurrency: int = int(_get_env("BENCHMARK_CONCURRENCY", "1"))
    benchmark_timeout_seconds: float | None = _get_optional_float("BENCHMARK_TIMEOUT_SECONDS")
    benchmark_max_iterations: int = int(_get_env("BENCHMARK_MAX_ITERATIONS", "1000"))
    benchmark_max_concurrency: int = int(_get_env("BENCHMARK_MAX_CONCURRENCY", "64"))
    seed_count: int = int(_get_env("SEED_COUNT", "1000"))
    log_level: str = _get_env("LOG_LEVEL", "INFO")


settings = Settings()
