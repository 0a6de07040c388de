"""Request body decoding shared by the JSON-speaking adapters."""

from __future__ import annotations

__all__ = ["read_json_body"]

import json
from typing import Any

from fastapi import Request

from mcp_gateway.exceptions import InvalidRequestError


async def read_json_body(request: Request) -> Any:
    """Decode the request body as JSON.

    An empty body decodes to an empty object.

    Raises:
        InvalidRequestError: If the body is not valid UTF-8 JSON.
    """
    raw = await request.body()
    if not raw.strip():
        return {}
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise InvalidRequestError(f"Request body is not valid JSON: {e}") from e
