# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_authorizer

import json
from collections.abc import Callable
from typing import Any
from unittest.mock import patch

import httpx
import pytest
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import StatusCode, Tracer

from coreason_authorizer.config import AuthorizerConfig
from coreason_authorizer.executor import HTTP_ERROR, TRANSPORT_ERROR, RequestExecutor, operation_name


@pytest.fixture
def telemetry_setup() -> tuple[InMemorySpanExporter, Tracer]:
    exporter = InMemorySpanExporter()
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(exporter))
    return exporter, provider.get_tracer("test_tracer")


def executor_with(
    config: AuthorizerConfig, handler: Callable[[httpx.Request], httpx.Response]
) -> tuple[RequestExecutor, list[httpx.Request]]:
    seen: list[httpx.Request] = []

    def record(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(record))
    return RequestExecutor(config, client), seen


def json_response(payload: Any, status: int = 200) -> Callable[[httpx.Request], httpx.Response]:
    return lambda request: httpx.Response(status, json=payload)


@pytest.mark.parametrize(
    "query, expected",
    [
        ("query meta { meta { version } }", "meta"),
        ("  mutation login($data: LoginInput!) { login(params: $data) { message } }", "login"),
        ("{ profile { id } }", "profile"),
        ("", "anonymous"),
    ],
)
def test_operation_name(query: str, expected: str) -> None:
    assert operation_name(query) == expected


def test_build_headers_precedence(config: AuthorizerConfig) -> None:
    config = config.model_copy(
        update={"extra_headers": {"X-Tenant": "acme", "content-type": "text/plain", "X-Authorizer-URL": "spoofed"}}
    )
    executor = RequestExecutor(config)

    headers = executor.build_headers({"Authorization": "Bearer at", "x-tenant": "override"})

    assert headers["content-type"] == "application/json"
    assert headers["x-authorizer-url"] == "https://auth.example.com"
    assert headers["x-authorizer-admin-secret"] == "admin-secret"
    assert headers["authorization"] == "Bearer at"
    assert headers.get_list("x-tenant") == ["override"]


def test_build_headers_call_headers_win(config: AuthorizerConfig) -> None:
    executor = RequestExecutor(config)
    headers = executor.build_headers({"X-Authorizer-Admin-Secret": "other"})
    assert headers.get_list("x-authorizer-admin-secret") == ["other"]


def test_build_headers_without_admin(config: AuthorizerConfig) -> None:
    executor = RequestExecutor(config)
    assert "x-authorizer-admin-secret" not in executor.build_headers(admin=False)

    no_secret = RequestExecutor(config.model_copy(update={"admin_secret": None}))
    assert "x-authorizer-admin-secret" not in no_secret.build_headers()


@pytest.mark.asyncio
async def test_graphql_success(config: AuthorizerConfig) -> None:
    executor, seen = executor_with(config, json_response({"data": {"meta": {"version": "1"}}}))

    res = await executor.graphql("query meta { meta { version } }", {"a": 1}, {"Authorization": "Bearer x"})

    assert res.ok
    assert res.data == {"meta": {"version": "1"}}
    request = seen[0]
    assert str(request.url) == "https://auth.example.com/graphql"
    assert json.loads(request.content) == {"query": "query meta { meta { version } }", "variables": {"a": 1}}
    assert request.headers["authorization"] == "Bearer x"


@pytest.mark.asyncio
async def test_graphql_errors_are_returned(config: AuthorizerConfig) -> None:
    payload = {"errors": [{"message": "bad user credentials", "path": ["login"]}], "data": None}
    executor, _ = executor_with(config, json_response(payload))

    res = await executor.graphql("mutation login { login { message } }")

    assert not res.ok
    assert res.data is None
    assert res.errors[0].message == "bad user credentials"
    assert res.errors[0].path == ["login"]


@pytest.mark.asyncio
async def test_graphql_errors_with_partial_data(config: AuthorizerConfig) -> None:
    payload = {"errors": [{"message": "unauthorized"}], "data": {"profile": None}}
    executor, _ = executor_with(config, json_response(payload))

    res = await executor.graphql("query profile { profile { id } }")

    assert res.data is None
    assert [e.message for e in res.errors] == ["unauthorized"]


@pytest.mark.asyncio
async def test_graphql_null_data(config: AuthorizerConfig) -> None:
    executor, _ = executor_with(config, json_response({"data": None}))

    res = await executor.graphql("query meta { meta { version } }")

    assert res.errors[0].extensions == {"code": HTTP_ERROR, "status": 200}


@pytest.mark.asyncio
async def test_graphql_non_json_body(config: AuthorizerConfig) -> None:
    executor, _ = executor_with(config, lambda request: httpx.Response(502, content=b"Bad Gateway"))

    res = await executor.graphql("query meta { meta { version } }")

    assert not res.ok
    assert res.errors[0].extensions == {"code": TRANSPORT_ERROR}


@pytest.mark.asyncio
async def test_graphql_unexpected_json(config: AuthorizerConfig) -> None:
    executor, _ = executor_with(config, json_response(["not", "an", "object"], status=500))

    res = await executor.graphql("query meta { meta { version } }")

    assert res.errors[0].extensions == {"code": HTTP_ERROR, "status": 500}


@pytest.mark.asyncio
async def test_graphql_network_failure_becomes_envelope(config: AuthorizerConfig) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    executor, _ = executor_with(config, handler)

    res = await executor.graphql("query meta { meta { version } }")

    assert res.data is None
    assert res.errors[0].message == "connection refused"
    assert res.errors[0].extensions == {"code": TRANSPORT_ERROR}


@pytest.mark.asyncio
async def test_graphql_oversized_response_becomes_envelope(config: AuthorizerConfig) -> None:
    config = config.model_copy(update={"max_response_bytes": 10})
    executor, _ = executor_with(config, json_response({"data": {"meta": {"version": "1.0.0"}}}))

    res = await executor.graphql("query meta { meta { version } }")

    assert "exceeds limit" in res.errors[0].message
    assert res.errors[0].extensions == {"code": TRANSPORT_ERROR}


@pytest.mark.asyncio
async def test_post_success_never_sends_admin_secret(config: AuthorizerConfig) -> None:
    executor, seen = executor_with(config, json_response({"access_token": "at"}))

    res = await executor.post("/oauth/token", {"grant_type": "refresh_token"})

    assert res.data == {"access_token": "at"}
    assert str(seen[0].url) == "https://auth.example.com/oauth/token"
    assert "x-authorizer-admin-secret" not in seen[0].headers
    assert seen[0].headers["x-authorizer-url"] == "https://auth.example.com"


@pytest.mark.asyncio
async def test_post_http_error_uses_error_description(config: AuthorizerConfig) -> None:
    executor, _ = executor_with(
        config, json_response({"error": "invalid_grant", "error_description": "Code expired"}, status=400)
    )

    res = await executor.post("/oauth/token", {})

    assert res.errors[0].message == "Code expired"
    assert res.errors[0].extensions == {"code": HTTP_ERROR, "status": 400, "error": "invalid_grant"}


@pytest.mark.asyncio
async def test_post_http_error_without_body(config: AuthorizerConfig) -> None:
    executor, _ = executor_with(config, lambda request: httpx.Response(503))

    res = await executor.post("/oauth/revoke", {})

    assert res.errors[0].message == "HTTP 503 from /oauth/revoke"


@pytest.mark.asyncio
async def test_post_non_object_body(config: AuthorizerConfig) -> None:
    executor, _ = executor_with(config, json_response("ok"))

    res = await executor.post("/oauth/revoke", {})

    assert res.errors[0].extensions == {"code": HTTP_ERROR, "status": 200}


@pytest.mark.asyncio
async def test_internal_client_keeps_cookies_across_close(config: AuthorizerConfig) -> None:
    executor = RequestExecutor(config)
    first = executor.client
    first.cookies.set("cookie_token", "abc", domain="auth.example.com")

    await executor.aclose()

    assert first.is_closed
    second = executor.client
    assert second is not first
    assert second.cookies.get("cookie_token") == "abc"
    await executor.aclose()


@pytest.mark.asyncio
async def test_injected_client_is_not_closed(config: AuthorizerConfig) -> None:
    client = httpx.AsyncClient()
    executor = RequestExecutor(config, client)

    await executor.aclose()

    assert not client.is_closed
    assert executor.client is client
    await client.aclose()


@pytest.mark.asyncio
async def test_graphql_span(config: AuthorizerConfig, telemetry_setup: tuple[InMemorySpanExporter, Tracer]) -> None:
    exporter, tracer = telemetry_setup
    executor, _ = executor_with(config, json_response({"data": {"meta": {"version": "1"}}}))

    with patch("coreason_authorizer.executor.tracer", tracer):
        await executor.graphql("query meta { meta { version } }")

    spans = [s for s in exporter.get_finished_spans() if s.name == "authorizer.graphql"]
    assert len(spans) == 1
    assert spans[0].attributes is not None
    assert spans[0].attributes["graphql.operation.name"] == "meta"
    assert spans[0].attributes["http.response.status_code"] == 200
    assert spans[0].status.status_code == StatusCode.OK


@pytest.mark.asyncio
async def test_rest_span_records_failure(
    config: AuthorizerConfig, telemetry_setup: tuple[InMemorySpanExporter, Tracer]
) -> None:
    exporter, tracer = telemetry_setup

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    executor, _ = executor_with(config, handler)

    with patch("coreason_authorizer.executor.tracer", tracer):
        res = await executor.post("/oauth/token", {})

    assert res.errors[0].extensions == {"code": TRANSPORT_ERROR}
    spans = [s for s in exporter.get_finished_spans() if s.name == "authorizer.rest"]
    assert spans[0].status.status_code == StatusCode.ERROR
    assert spans[0].attributes is not None
    assert spans[0].attributes["url.path"] == "/oauth/token"
