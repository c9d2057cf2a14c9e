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
Tests for the bounded JSON transport.
"""

import json
from collections.abc import AsyncIterator

import httpx
import pytest

from coreason_authorizer.exceptions import InvalidResponseError, OversizedResponseError
from coreason_authorizer.transport import fetch_json


class ChunkedStream(httpx.AsyncByteStream):
    def __init__(self, chunks: list[bytes]) -> None:
        self.chunks = chunks
        self.served = 0

    async def __aiter__(self) -> AsyncIterator[bytes]:
        for chunk in self.chunks:
            self.served += 1
            yield chunk


def client_for(handler: httpx.MockTransport) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=handler)


@pytest.mark.asyncio
async def test_fetch_json_posts_body_and_headers() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"ok": True})

    async with client_for(httpx.MockTransport(handler)) as client:
        status, body = await fetch_json(
            client, "https://auth.example.com/graphql", body={"query": "{ meta }"}, headers={"x-test": "1"}
        )

    assert status == 200
    assert body == {"ok": True}
    assert seen[0].method == "POST"
    assert json.loads(seen[0].content) == {"query": "{ meta }"}
    assert seen[0].headers["x-test"] == "1"


@pytest.mark.asyncio
async def test_fetch_json_returns_error_bodies() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": "invalid_grant"})

    async with client_for(httpx.MockTransport(handler)) as client:
        status, body = await fetch_json(client, "https://auth.example.com/oauth/token", body={})

    assert status == 400
    assert body == {"error": "invalid_grant"}


@pytest.mark.asyncio
async def test_fetch_json_empty_body() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(204)

    async with client_for(httpx.MockTransport(handler)) as client:
        assert await fetch_json(client, "https://auth.example.com/oauth/revoke", body={}) == (204, None)


@pytest.mark.asyncio
async def test_fetch_json_invalid_json() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, content=b"<html>Bad Gateway</html>")

    async with client_for(httpx.MockTransport(handler)) as client:
        with pytest.raises(InvalidResponseError, match="HTTP 502"):
            await fetch_json(client, "https://auth.example.com/graphql", body={})


@pytest.mark.asyncio
async def test_fetch_json_rejects_large_content_length() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"x" * 200)

    async with client_for(httpx.MockTransport(handler)) as client:
        with pytest.raises(OversizedResponseError, match="exceeds limit of 100 bytes"):
            await fetch_json(client, "https://auth.example.com/graphql", body={}, max_bytes=100)


@pytest.mark.asyncio
async def test_fetch_json_stops_streaming_past_limit() -> None:
    stream = ChunkedStream([b"[" + b"1," * 30, b"1," * 30, b"1," * 30, b"1]"])

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, stream=stream)

    async with client_for(httpx.MockTransport(handler)) as client:
        with pytest.raises(OversizedResponseError):
            await fetch_json(client, "https://auth.example.com/graphql", body={}, max_bytes=100)

    assert stream.served < len(stream.chunks)


@pytest.mark.asyncio
async def test_fetch_json_propagates_network_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with client_for(httpx.MockTransport(handler)) as client:
        with pytest.raises(httpx.ConnectError):
            await fetch_json(client, "https://auth.example.com/graphql", body={})
