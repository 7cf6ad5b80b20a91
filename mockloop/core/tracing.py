"""
Langfuse client setup.

Tracing is optional at runtime: without keys every helper returns None and
callers skip their spans.
"""

import logging

from langfuse import Langfuse

from mockloop.config.settings import Settings, get_settings

logger = logging.getLogger(__name__)

_langfuse: Langfuse | None = None
_initialized = False


def get_langfuse(settings: Settings | None = None) -> Langfuse | None:
    """Get the shared Langfuse client, or None when tracing is disabled."""
    global _langfuse, _initialized

    if _initialized:
        return _langfuse

    settings = settings or get_settings()
    _initialized = True

    if not settings.langfuse_enabled:
        return None

    if not (settings.langfuse_secret_key and settings.langfuse_public_key):
        logger.info("Langfuse keys not configured, tracing disabled")
        return None

    try:
        _langfuse = Langfuse(
            secret_key=settings.langfuse_secret_key,
            public_key=settings.langfuse_public_key,
            host=settings.langfuse_base_url,
        )
        logger.info("Langfuse initialized for LLM observability")
    except Exception as e:
        logger.warning(f"Failed to initialize Langfuse: {e}")
        _langfuse = None

    return _langfuse


def flush_langfuse() -> None:
    """Flush pending events; safe to call when tracing is disabled."""
    if _langfuse is None:
        return
    try:
        _langfuse.flush()
    except Exception as e:
        logger.warning(f"Failed to flush Langfuse: {e}")


def start_span(langfuse: Langfuse | None, name: str, metadata: dict | None = None):
    """Start a span, returning None if tracing is off or the call fails."""
    if langfuse is None:
        return None
    try:
        return langfuse.start_span(name=name, metadata=metadata or {})
    except Exception as lf_err:
        logger.warning(f"Langfuse span start failed: {lf_err}")
        return None


def end_span(span, output: dict | None = None) -> None:
    if span is None:
        return
    try:
        if output is not None:
            span.update(output=output)
        span.end()
    except Exception as lf_err:
        logger.warning(f"Langfuse span end failed: {lf_err}")
