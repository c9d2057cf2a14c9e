# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_authorizer

import base64
import hashlib
import json
from urllib.parse import parse_qs, urlsplit

from coreason_authorizer.config import AuthorizerConfig
from coreason_authorizer.models import AuthorizeInput, ResponseMode, ResponseType
from coreason_authorizer.pkce import (
    RANDOM_CHARSET,
    VERIFIER_LENGTH,
    begin_authorization,
    build_scopes,
    build_url,
    create_code_challenge,
    create_random_string,
    decode,
    encode,
    hosted_login_url,
)


def query_of(url: str) -> dict[str, str]:
    return {k: v[0] for k, v in parse_qs(urlsplit(url).query).items()}


def test_random_string_charset_and_length() -> None:
    value = create_random_string()
    assert len(value) == VERIFIER_LENGTH
    assert set(value) <= set(RANDOM_CHARSET)
    assert len(create_random_string(64)) == 64


def test_random_strings_differ() -> None:
    assert len({create_random_string() for _ in range(50)}) == 50


def test_encode_decode() -> None:
    assert encode("hello") == "aGVsbG8="
    assert decode(encode("état ✓")) == "état ✓"


def test_code_challenge_rfc7636_vector() -> None:
    # RFC 7636 Appendix B
    verifier = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"
    assert create_code_challenge(verifier) == "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"


def test_code_challenge_is_unpadded_base64url() -> None:
    verifier = create_random_string()
    challenge = create_code_challenge(verifier)
    expected = base64.urlsafe_b64encode(hashlib.sha256(verifier.encode()).digest()).rstrip(b"=").decode()
    assert challenge == expected
    assert "=" not in challenge


def test_build_scopes() -> None:
    assert build_scopes(False) == "openid profile email"
    assert build_scopes(True) == "openid profile email offline_access"


def test_build_url_skips_none() -> None:
    url = build_url("https://auth.example.com/authorize", {"a": "1 2", "b": None, "c": "x&y"})
    assert query_of(url) == {"a": "1 2", "c": "x&y"}
    assert "b=" not in url


def test_begin_authorization_code_flow(config: AuthorizerConfig) -> None:
    pending = begin_authorization(config, AuthorizeInput(response_type=ResponseType.CODE, use_refresh_token=True))

    assert pending.authorize_url.startswith("https://auth.example.com/authorize?")
    params = query_of(pending.authorize_url)
    assert params == {
        "redirect_uri": "https://app.example.com/callback",
        "response_mode": "web_message",
        "state": pending.state,
        "nonce": pending.nonce,
        "response_type": "code",
        "scope": "openid profile email offline_access",
        "client_id": "client-123",
        "code_challenge": pending.code_challenge,
    }
    assert pending.code_verifier is not None
    assert create_code_challenge(pending.code_verifier.get_secret_value()) == pending.code_challenge
    assert len(decode(pending.state)) == VERIFIER_LENGTH
    assert pending.state != pending.nonce


def test_begin_authorization_token_flow_has_no_pkce(config: AuthorizerConfig) -> None:
    pending = begin_authorization(
        config, AuthorizeInput(response_type=ResponseType.TOKEN, response_mode=ResponseMode.QUERY)
    )
    params = query_of(pending.authorize_url)

    assert pending.code_verifier is None
    assert pending.code_challenge is None
    assert "code_challenge" not in params
    assert params["response_mode"] == "query"
    assert params["scope"] == "openid profile email"


def test_verifier_never_in_url(config: AuthorizerConfig) -> None:
    pending = begin_authorization(config, AuthorizeInput(response_type=ResponseType.CODE))
    assert pending.code_verifier is not None
    assert pending.code_verifier.get_secret_value() not in pending.authorize_url
    assert pending.code_verifier.get_secret_value() not in repr(pending)


def test_hosted_login_url_carries_public_config_only(config: AuthorizerConfig) -> None:
    url = hosted_login_url(config)
    assert url.startswith("https://auth.example.com/app?")

    params = query_of(url)
    assert params["redirect_uri"] == "https://app.example.com/callback"
    state = json.loads(decode(params["state"]))
    assert state == {
        "authorizerURL": "https://auth.example.com",
        "redirectURL": "https://app.example.com/callback",
        "clientID": "client-123",
    }
    assert "admin-secret" not in decode(params["state"])
