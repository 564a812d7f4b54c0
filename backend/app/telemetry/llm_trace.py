"""
Langfuse LLM Observability
==========================

Tracing for the OpenAI calls made by the AI insight generators, plus an
event whenever a generator falls back to its rule-based output.

Related files:
- app/services/ai_insights.py: Every chat completion and fallback is logged here
- app/main.py: Initializes Langfuse on startup, flushes on shutdown

Environment Variables:
- LANGFUSE_PUBLIC_KEY: Langfuse project public key
- LANGFUSE_SECRET_KEY: Langfuse project secret key
- LANGFUSE_HOST: Langfuse host (default: https://cloud.langfuse.com)

Every function is a no-op until init_langfuse() succeeds, so tests and
local runs without keys need no setup.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional

from langfuse import Langfuse

logger = logging.getLogger(__name__)

DEFAULT_HOST = "https://cloud.langfuse.com"

_client: Optional[Langfuse] = None


def init_langfuse() -> bool:
    """Create the client from LANGFUSE_* variables. False when keys are missing."""
    global _client

    public_key = os.environ.get("LANGFUSE_PUBLIC_KEY")
    secret_key = os.environ.get("LANGFUSE_SECRET_KEY")
    if not public_key or not secret_key:
        return False

    host = os.environ.get("LANGFUSE_HOST", DEFAULT_HOST)
    try:
        _client = Langfuse(public_key=public_key, secret_key=secret_key, host=host)
    except Exception as e:
        logger.error("[LANGFUSE] Failed to initialize: %s", e)
        _client = None
        return False

    logger.info("[LANGFUSE] Initialized (host: %s)", host)
    return True


def log_generation(
    name: str,
    model: str,
    input_messages: Any,
    output: Any,
    usage: Optional[Dict[str, int]] = None,
    latency_ms: Optional[int] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Record one chat completion.

    Args:
        name: Generator name (e.g. "analyze_campaigns")
        model: Model used (e.g. "gpt-4o-mini")
        input_messages: Messages sent to the model
        output: Raw text returned by the model
        usage: Token usage with "input", "output", "total" keys
        latency_ms: Response latency in milliseconds
        metadata: Additional metadata
    """
    if _client is None:
        return

    details = dict(metadata or {})
    if latency_ms is not None:
        details["latency_ms"] = latency_ms

    try:
        generation = _client.start_generation(name=name, model=model, input=input_messages, metadata=details)
        generation.update(output=output, usage_details=usage)
        generation.end()
    except Exception as e:
        logger.error("[LANGFUSE] Failed to log generation %s: %s", name, e)


def log_fallback(name: str, reason: str) -> None:
    """Record that a generator answered with rule-based output instead of the model's."""
    if _client is None:
        return
    try:
        _client.create_event(name=f"{name}.fallback", level="WARNING", status_message=reason)
    except Exception as e:
        logger.error("[LANGFUSE] Failed to log fallback for %s: %s", name, e)


def shutdown() -> None:
    """Flush pending events and drop the client."""
    global _client

    if _client is None:
        return
    try:
        _client.flush()
        _client.shutdown()
        logger.info("[LANGFUSE] Shutdown complete")
    except Exception as e:
        logger.error("[LANGFUSE] Shutdown error: %s", e)
    finally:
        _client = None
