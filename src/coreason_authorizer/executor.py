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
RequestExecutor component: the two transport primitives every operation funnels through.
"""

import re
from collections.abc import Mapping
from typing import Any

import httpx
from opentelemetry import trace
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.trace import Status, StatusCode
from pydantic import ValidationError

from coreason_authorizer.config import AuthorizerConfig
from coreason_authorizer.exceptions import CoreasonAuthorizerError
from coreason_authorizer.models import ApiError, ApiResponse
from coreason_authorizer.models_internal import GraphQLPayload, GraphQLRequest
from coreason_authorizer.transport import fetch_json
from coreason_authorizer.utils.logger import logger, redact_headers

tracer = trace.get_tracer(__name__)

TRANSPORT_ERROR = "TRANSPORT_ERROR"
HTTP_ERROR = "HTTP_ERROR"

_OPERATION_NAME = re.compile(r"^\s*(?:query|mutation)\s+([A-Za-z_]\w*)")
_FIRST_FIELD = re.compile(r"\{\s*([A-Za-z_]\w*)")

JsonResponse = ApiResponse[dict[str, Any]]


def operation_name(query: str) -> str:
    """
    Best-effort name of a GraphQL document, for spans and logs.

    Uses the declared operation name, or the first selected field for anonymous documents.
    """
    match = _OPERATION_NAME.match(query) or _FIRST_FIELD.search(query)
    return match.group(1) if match else "anonymous"


class RequestExecutor:
    """
    Sends GraphQL documents and OAuth REST calls to one Authorizer instance.

    The executor never raises for server or network failures; both become error envelopes.
    It owns a cookie jar that survives closing and re-creating its internal client.

    Attributes:
        config (AuthorizerConfig): The immutable client configuration.
    """

    def __init__(self, config: AuthorizerConfig, client: httpx.AsyncClient | None = None) -> None:
        """
        Initialize the RequestExecutor.

        Args:
            config: The client configuration.
            client: External async client (optional). It is instrumented but never closed here.
        """
        self.config = config
        self._external_client = client
        self._client: httpx.AsyncClient | None = client
        self._cookies = httpx.Cookies()
        if client is not None:
            HTTPXClientInstrumentor().instrument_client(client)

    @property
    def client(self) -> httpx.AsyncClient:
        """The HTTP client, created on first use when none was injected."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.config.http_timeout, cookies=self._cookies)
            HTTPXClientInstrumentor().instrument_client(self._client)
        return self._client

    async def aclose(self) -> None:
        """
        Closes the internal client. Cookies are kept for the next client.
        """
        if self._client is None or self._client is self._external_client:
            return
        client, self._client = self._client, None
        self._cookies = httpx.Cookies(client.cookies)
        await client.aclose()

    def build_headers(self, headers: Mapping[str, str] | None = None, *, admin: bool = True) -> httpx.Headers:
        """
        Derives the headers of one call.

        Precedence, lowest first: configured extra headers, content type and
        origin headers, the admin secret (when `admin` and configured), call headers.
        Names are compared case-insensitively.

        Args:
            headers: Call-specific headers, e.g. `Authorization: Bearer ...`.
            admin: Whether the admin secret may be attached.

        Returns:
            httpx.Headers: The merged headers.
        """
        merged = httpx.Headers(self.config.extra_headers)
        merged["Content-Type"] = "application/json"
        merged["x-authorizer-url"] = self.config.authorizer_url
        if admin and self.config.admin_secret is not None:
            merged["x-authorizer-admin-secret"] = self.config.admin_secret.get_secret_value()
        if headers:
            merged.update(headers)
        return merged

    async def graphql(
        self,
        query: str,
        variables: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> JsonResponse:
        """
        POSTs a GraphQL document to `{authorizer_url}/graphql`.

        Emits an OpenTelemetry span `authorizer.graphql`.

        Args:
            query: The query or mutation document.
            variables: Variables of the document.
            headers: Call-specific headers.

        Returns:
            ApiResponse[dict[str, Any]]: The `data` mapping, or the reported errors.
        """
        request = GraphQLRequest(query=query, variables=dict(variables or {}))
        operation = operation_name(query)
        url = f"{self.config.authorizer_url}/graphql"
        merged = self.build_headers(headers)

        with tracer.start_as_current_span("authorizer.graphql") as span:
            span.set_attribute("graphql.operation.name", operation)
            logger.debug(f"GraphQL {operation} -> {url} headers={redact_headers(merged)}")

            try:
                status_code, body = await fetch_json(
                    self.client,
                    url,
                    body=request.model_dump(),
                    headers=merged,
                    max_bytes=self.config.max_response_bytes,
                )
            except (httpx.HTTPError, CoreasonAuthorizerError) as e:
                logger.error(f"GraphQL {operation} failed: {e!r}")
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, str(e)))
                return JsonResponse.from_message(str(e) or type(e).__name__, code=TRANSPORT_ERROR)

            span.set_attribute("http.response.status_code", status_code)

            try:
                payload = GraphQLPayload.model_validate(body)
            except ValidationError as e:
                logger.error(f"GraphQL {operation} returned an unexpected body (HTTP {status_code})")
                span.set_status(Status(StatusCode.ERROR, "invalid body"))
                return JsonResponse.from_message(
                    f"Invalid GraphQL response (HTTP {status_code}): {e.error_count()} validation error(s)",
                    code=HTTP_ERROR,
                    status=status_code,
                )

            if payload.errors:
                logger.error(f"GraphQL {operation} returned errors: {[err.message for err in payload.errors]}")
                span.set_status(Status(StatusCode.ERROR, payload.errors[0].message))
                return JsonResponse.failure(list(payload.errors))

            if payload.data is None:
                span.set_status(Status(StatusCode.ERROR, "empty data"))
                return JsonResponse.from_message(
                    f"Empty GraphQL response (HTTP {status_code})", code=HTTP_ERROR, status=status_code
                )

            span.set_status(Status(StatusCode.OK))
            return JsonResponse.success(payload.data)

    async def post(
        self,
        path: str,
        body: Mapping[str, Any],
        headers: Mapping[str, str] | None = None,
    ) -> JsonResponse:
        """
        POSTs a flat JSON body to a REST endpoint such as `/oauth/token`.

        The admin secret is never attached to REST calls.

        Args:
            path: Path below `authorizer_url`, starting with a slash.
            body: The JSON body.
            headers: Call-specific headers.

        Returns:
            ApiResponse[dict[str, Any]]: The decoded body, or an error built from it.
        """
        url = f"{self.config.authorizer_url}{path}"
        merged = self.build_headers(headers, admin=False)

        with tracer.start_as_current_span("authorizer.rest") as span:
            span.set_attribute("url.path", path)
            logger.debug(f"POST {url} headers={redact_headers(merged)}")

            try:
                status_code, data = await fetch_json(
                    self.client,
                    url,
                    body=dict(body),
                    headers=merged,
                    max_bytes=self.config.max_response_bytes,
                )
            except (httpx.HTTPError, CoreasonAuthorizerError) as e:
                logger.error(f"POST {path} failed: {e!r}")
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, str(e)))
                return JsonResponse.from_message(str(e) or type(e).__name__, code=TRANSPORT_ERROR)

            span.set_attribute("http.response.status_code", status_code)

            if status_code >= 400:
                detail = data if isinstance(data, dict) else {}
                message = (
                    detail.get("error_description")
                    or detail.get("error")
                    or detail.get("message")
                    or f"HTTP {status_code} from {path}"
                )
                logger.error(f"POST {path} returned HTTP {status_code}: {message}")
                span.set_status(Status(StatusCode.ERROR, str(message)))
                return JsonResponse.failure(
                    [
                        ApiError(
                            message=str(message),
                            extensions={"code": HTTP_ERROR, "status": status_code, "error": detail.get("error")},
                        )
                    ]
                )

            if not isinstance(data, dict):
                span.set_status(Status(StatusCode.ERROR, "invalid body"))
                return JsonResponse.from_message(
                    f"Invalid response from {path} (HTTP {status_code})", code=HTTP_ERROR, status=status_code
                )

            span.set_status(Status(StatusCode.OK))
            return JsonResponse.success(data)
