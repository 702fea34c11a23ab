"""Shared response envelope for RetailCRM tool implementations."""

from __future__ import annotations

import json
import logging
from typing import Any

logger = logging.getLogger(__name__)


def build_response(tool_name: str, data: dict[str, Any]) -> str:
    payload = {
        "_raw": True,
        "_tool": tool_name,
        "_meta": {"schema_version": 1},
        "data": data,
    }
    return json.dumps(payload, indent=2, ensure_ascii=False, default=str)


def format_error(
    *,
    tool_name: str,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> str:
    payload: dict[str, Any] = {
        "error": True,
        "code": code,
        "message": message,
    }
    if details:
        payload["details"] = details
    return build_response(tool_name, payload)


def log_and_return_tool_error(*, tool_name: str, exc: Exception, user_message: str) -> str:
    """Log an unexpected tool failure with traceback and hand back a safe message."""
    logger.exception("Tool %s failed: %s", tool_name, exc)
    return format_error(
        tool_name=tool_name,
        code="INTERNAL_ERROR",
        message=user_message,
    )
