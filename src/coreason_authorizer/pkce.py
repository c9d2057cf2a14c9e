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
PKCE (RFC 7636) helpers and authorize URL construction.

Verifiers and challenges are never logged.
"""

import base64
import json
from collections.abc import Mapping
from typing import Any

from authlib.common.security import generate_token
from authlib.common.urls import add_params_to_uri
from authlib.oauth2.rfc7636 import create_s256_code_challenge

from coreason_authorizer.config import AuthorizerConfig
from coreason_authorizer.models import AuthorizeInput, PendingAuthorization, ResponseType

# Unreserved URI characters, RFC 7636 section 4.1
RANDOM_CHARSET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz-_~."
VERIFIER_LENGTH = 43

BASE_SCOPES = ("openid", "profile", "email")
OFFLINE_SCOPE = "offline_access"


def create_random_string(length: int = VERIFIER_LENGTH) -> str:
    """
    Returns a random string drawn from the system CSPRNG over `RANDOM_CHARSET`.
    """
    return generate_token(length, RANDOM_CHARSET)


def encode(value: str) -> str:
    """Standard base64 of the UTF-8 bytes of `value`."""
    return base64.b64encode(value.encode("utf-8")).decode("ascii")


def decode(value: str) -> str:
    return base64.b64decode(value.encode("ascii")).decode("utf-8")


def create_code_challenge(code_verifier: str) -> str:
    """
    Computes the S256 challenge: base64url(SHA-256(verifier)) without padding.
    """
    return create_s256_code_challenge(code_verifier)


def build_scopes(use_refresh_token: bool) -> str:
    scopes = list(BASE_SCOPES)
    if use_refresh_token:
        scopes.append(OFFLINE_SCOPE)
    return " ".join(scopes)


def build_url(base: str, params: Mapping[str, Any]) -> str:
    """
    Appends the non-None `params` to `base` as an encoded query string.
    """
    return add_params_to_uri(base, [(k, str(v)) for k, v in params.items() if v is not None])


def begin_authorization(config: AuthorizerConfig, data: AuthorizeInput) -> PendingAuthorization:
    """
    Generates state, nonce and (for the code flow) the PKCE pair, and builds the authorize URL.

    Args:
        config: The client configuration.
        data: The authorize parameters.

    Returns:
        PendingAuthorization: The per-call state, including the authorize URL.
    """
    state = encode(create_random_string())
    nonce = encode(create_random_string())

    code_verifier: str | None = None
    code_challenge: str | None = None
    if data.response_type == ResponseType.CODE:
        code_verifier = create_random_string()
        code_challenge = create_code_challenge(code_verifier)

    authorize_url = build_url(
        f"{config.authorizer_url}/authorize",
        {
            "redirect_uri": config.redirect_url,
            "response_mode": data.response_mode.value,
            "state": state,
            "nonce": nonce,
            "response_type": data.response_type.value,
            "scope": build_scopes(data.use_refresh_token),
            "client_id": config.client_id,
            "code_challenge": code_challenge,
        },
    )

    return PendingAuthorization(
        response_type=data.response_type,
        state=state,
        nonce=nonce,
        code_verifier=code_verifier,
        code_challenge=code_challenge,
        authorize_url=authorize_url,
    )


def hosted_login_url(config: AuthorizerConfig) -> str:
    """
    URL of the hosted login page, carrying the public client configuration as state.

    Only the URLs and client id are carried; the admin secret and extra headers are not.
    """
    public_state = json.dumps(
        {
            "authorizerURL": config.authorizer_url,
            "redirectURL": config.redirect_url,
            "clientID": config.client_id,
        },
        separators=(",", ":"),
    )
    return build_url(
        f"{config.authorizer_url}/app",
        {"state": encode(public_state), "redirect_uri": config.redirect_url},
    )
