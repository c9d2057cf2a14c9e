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
Client SDK for the Authorizer authentication service: GraphQL operations, OAuth token endpoints and PKCE login flows.
"""

__version__ = "0.1.0"
__author__ = "Gowtham A Rao"
__email__ = "gowtham.rao@coreason.ai"

from .browser import BrowserPlatform, MessageEvent, SystemBrowserPlatform
from .client import Authorizer, AuthorizeResult, AuthorizerSync
from .config import AuthorizerConfig
from .exceptions import (
    AuthorizationError,
    AuthorizationTimeoutError,
    AuthorizerValidationError,
    BrowserCapabilityError,
    CoreasonAuthorizerError,
    InvalidEnvFieldError,
    InvalidRefreshTokenError,
    MissingCodeVerifierError,
    UnsupportedProviderError,
)
from .models import (
    ApiError,
    ApiResponse,
    AuthorizeInput,
    AuthToken,
    GetTokenInput,
    GetTokenResponse,
    GrantType,
    LoginInput,
    MetaData,
    OAuthProvider,
    PendingAuthorization,
    ResponseMode,
    ResponseType,
    SignupInput,
    User,
)

__all__ = [
    "ApiError",
    "ApiResponse",
    "AuthToken",
    "AuthorizationError",
    "AuthorizationTimeoutError",
    "AuthorizeInput",
    "AuthorizeResult",
    "Authorizer",
    "AuthorizerConfig",
    "AuthorizerSync",
    "AuthorizerValidationError",
    "BrowserCapabilityError",
    "BrowserPlatform",
    "CoreasonAuthorizerError",
    "GetTokenInput",
    "GetTokenResponse",
    "GrantType",
    "InvalidEnvFieldError",
    "InvalidRefreshTokenError",
    "LoginInput",
    "MessageEvent",
    "MetaData",
    "MissingCodeVerifierError",
    "OAuthProvider",
    "PendingAuthorization",
    "ResponseMode",
    "ResponseType",
    "SignupInput",
    "SystemBrowserPlatform",
    "UnsupportedProviderError",
    "User",
]
