# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_authorizer

"""
Bounded JSON transport over httpx.
"""

import json
from collections.abc import Mapping
from typing import Any

import httpx

from coreason_authorizer.exceptions import InvalidResponseError, OversizedResponseError


async def fetch_json(
    client: httpx.AsyncClient,
    url: str,
    *,
    method: str = "POST",
    body: Any = None,
    headers: Mapping[str, str] | None = None,
    max_bytes: int = 1_000_000,
) -> tuple[int, Any]:
    """
    Sends one request and reads the JSON response without buffering more than `max_bytes`.

    Unlike `raise_for_status` style helpers, 4xx/5xx bodies are returned to the
    caller: both GraphQL and OAuth endpoints explain failures in the body.

    Args:
        client: The async HTTP client.
        url: Target URL.
        method: HTTP method.
        body: JSON-serialisable request body.
        headers: Request headers.
        max_bytes: Upper bound for the response body.

    Returns:
        tuple[int, Any]: The status code and the decoded body (None when empty).

    Raises:
        OversizedResponseError: If the body exceeds `max_bytes`.
        InvalidResponseError: If the body is not valid JSON.
        httpx.HTTPError: On network failures.
    """
    async with client.stream(method, url, json=body, headers=headers) as response:
        content_length = response.headers.get("Content-Length")
        if content_length and content_length.isdigit() and int(content_length) > max_bytes:
            raise OversizedResponseError(f"Response size {content_length} exceeds limit of {max_bytes} bytes")

        content = bytearray()
        async for chunk in response.aiter_bytes():
            content.extend(chunk)
            if len(content) > max_bytes:
                raise OversizedResponseError(f"Response exceeds limit of {max_bytes} bytes")

        status_code = response.status_code

    if not content.strip():
        return status_code, None

    try:
        return status_code, json.loads(content)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise InvalidResponseError(f"Invalid JSON response from {url} (HTTP {status_code})") from e
