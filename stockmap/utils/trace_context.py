"""
Trace context for correlating logs across a single render pass.

Provides:
- Unique render IDs (6-char hex) for each render pass
- Context propagation via contextvars (async-safe, so batched paints that
  resume after a yield still log under their own render ID)

Usage:
    with new_render_pass() as render_id:
        await renderer.paint(...)

    # In any module
    from stockmap.utils.trace_context import get_render_id
    logger.info(f"[{get_render_id()}] Painting batch...")
"""

from __future__ import annotations

import secrets
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Generator, Optional

_render_id: ContextVar[Optional[str]] = ContextVar("render_id", default=None)

# Render passes started in this session
_render_counter: int = 0


def generate_render_id() -> str:
    """
    Generate a new render ID.

    Returns:
        6-character hex string (e.g., "a7f3b2").
    """
    return secrets.token_hex(3)


def get_render_id() -> str:
    """
    Get the current render ID.

    Returns:
        Current render ID, or "------" outside a render pass.
    """
    render_id = _render_id.get()
    return render_id if render_id else "------"


@contextmanager
def new_render_pass() -> Generator[str, None, None]:
    """
    Context manager that scopes a fresh render ID.

    Yields:
        The new render ID.
    """
    global _render_counter
    _render_counter += 1

    render_id = generate_render_id()
    token = _render_id.set(render_id)
    try:
        yield render_id
    finally:
        _render_id.reset(token)


def get_render_counter() -> int:
    """Total render passes started in this session."""
    return _render_counter


def reset_render_counter() -> None:
    """Reset the render counter (for testing)."""
    global _render_counter
    _render_counter = 0
