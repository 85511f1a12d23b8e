"""Optional MLflow tracing for tool calls and Gemini requests.

Each tool entrypoint becomes a ``TOOL`` span, and ``mlflow.gemini.autolog()``
records the ``generate_content`` calls made beneath it. Without the
``mlflow-tracing`` package, or with tracing switched off, the decorator hands
functions back untouched.

Env vars (all optional):
    MLFLOW_TRACKING_URI: Trace destination. Empty keeps tracing off.
    MLFLOW_EXPERIMENT_NAME: Experiment name (default ``visublocks-mcp``).
    GEMINI_TRACING_ENABLED: ``"false"`` disables tracing even with a URI.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

try:
    import mlflow
    import mlflow.gemini

    _HAS_MLFLOW = True
except ImportError:
    _HAS_MLFLOW = False


def _identity(func: Callable) -> Callable:
    return func


def _tracing_config():
    """Config when tracing should run, else None."""
    if not _HAS_MLFLOW:
        return None
    from .config import get_config

    cfg = get_config()
    return cfg if cfg.tracing_enabled else None


def is_enabled() -> bool:
    return _tracing_config() is not None


def trace(
    func: Callable | None = None,
    *,
    name: str | None = None,
    span_type: str | None = None,
    attributes: dict[str, Any] | None = None,
) -> Callable:
    """Wrap a tool in an MLflow span; usable bare or with arguments.

    Usage::

        @trace(name="generate_project", span_type="TOOL")
        async def generate_project(...): ...
    """
    if not is_enabled():
        return _identity if func is None else func
    return mlflow.trace(func, name=name, span_type=span_type, attributes=attributes)


def setup() -> None:
    """Point MLflow at the tracking server and turn on Gemini autologging.

    A failing tracking server is logged and otherwise ignored.
    """
    cfg = _tracing_config()
    if cfg is None:
        return
    try:
        mlflow.set_tracking_uri(cfg.mlflow_tracking_uri)
        mlflow.set_experiment(cfg.mlflow_experiment_name)
        mlflow.gemini.autolog()
    except Exception:
        logger.warning("Could not start MLflow tracing; tools run untraced", exc_info=True)
        return
    logger.info("Tracing to %s (experiment %s)", cfg.mlflow_tracking_uri, cfg.mlflow_experiment_name)


def shutdown() -> None:
    """Flush traces still queued for export."""
    if not is_enabled():
        return
    try:
        mlflow.flush_trace_async_logging()
    except Exception:
        logger.warning("Could not flush MLflow traces", exc_info=True)
