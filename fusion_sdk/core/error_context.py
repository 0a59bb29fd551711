# fusion_sdk/core/error_context.py
# SPDX-License-Identifier: Apache-2.0
"""
Call context attached to exceptions leaving the model call pipeline.

The pipeline does not wrap errors; instead it records where they came
from as an attribute on the exception itself, so the original type and
message propagate unchanged:

    try:
        text = await generate_text(model, prompt)
    except ModelCallError as exc:
        ctx = get_context(exc)
        logger.error(
            "model call failed",
            extra={"call_type": ctx.get("call_type"), "model": ctx.get("model_name")},
        )

Context from several layers merges; keys set first are kept for
`component`, later keys overwrite everything else.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping

logger = logging.getLogger(__name__)

_ATTR = "__fusion_context__"


def attach_context(exc: BaseException, component: str, **context: Any) -> None:
    """
    Attach call context to `exc` under `__fusion_context__`.

    Best-effort: a failure to attach is logged at DEBUG and never masks
    the original exception.
    """
    try:
        merged: Dict[str, Any] = {}
        existing = getattr(exc, _ATTR, None)
        if isinstance(existing, Mapping):
            merged.update(existing)
        merged.setdefault("component", component)
        merged.update({k: v for k, v in context.items() if v is not None})
        setattr(exc, _ATTR, merged)
    except Exception as attachment_error:  # noqa: BLE001
        logger.debug(
            "Failed to attach error context to %s: %s",
            type(exc).__name__,
            attachment_error,
            extra={"component": component},
        )


def get_context(exc: BaseException) -> Mapping[str, Any]:
    """Attached context, or an empty mapping."""
    ctx = getattr(exc, _ATTR, None)
    if isinstance(ctx, Mapping):
        return ctx
    return {}


def has_context(exc: BaseException) -> bool:
    return len(get_context(exc)) > 0


__all__ = ["attach_context", "get_context", "has_context"]
