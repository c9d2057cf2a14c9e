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
Custom exceptions for the coreason-authorizer package.

Only programmer-error preconditions are raised from public coroutines.
Server and transport failures are returned as error envelopes instead.
"""

from typing import Any


class CoreasonAuthorizerError(Exception):
    """Base exception for all coreason-authorizer errors."""


class BrowserCapabilityError(CoreasonAuthorizerError):
    """Raised when a browser-only operation runs without a browser platform."""


class AuthorizerValidationError(CoreasonAuthorizerError, ValueError):
    """Raised when call arguments fail a presence check before any network access."""


class InvalidRefreshTokenError(AuthorizerValidationError):
    """Raised when a refresh token is required but missing or blank."""


class MissingCodeVerifierError(AuthorizerValidationError):
    """
    Raised when an authorization code is exchanged without a pending authorization,
    or when the pending authorization's code verifier was already consumed.
    """


class UnsupportedProviderError(AuthorizerValidationError):
    """Raised when an OAuth login is requested for an unknown provider."""


class InvalidEnvFieldError(AuthorizerValidationError):
    """Raised when an unknown server configuration field is requested."""


class AuthorizationError(CoreasonAuthorizerError):
    """
    Raised when the hosted authorize page answers with an error payload.

    Attributes:
        response (dict[str, Any]): The raw `response` payload posted by the page.
    """

    def __init__(self, message: str, response: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.response = response or {}


class AuthorizationTimeoutError(CoreasonAuthorizerError):
    """Raised when no authorize response arrives before the configured timeout."""


class OversizedResponseError(CoreasonAuthorizerError):
    """Raised when an HTTP response is too large."""


class InvalidResponseError(CoreasonAuthorizerError):
    """Raised when a response body is not the JSON document the endpoint promises."""
