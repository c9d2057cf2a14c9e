# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_authorizer

from collections.abc import AsyncGenerator, Generator

import httpx
import pytest
import pytest_asyncio
from fakes import FakeAuthorizerServer, FakePlatform

from coreason_authorizer.client import Authorizer
from coreason_authorizer.config import AuthorizerConfig

AUTHORIZER_URL = "https://auth.example.com"
REDIRECT_URL = "https://app.example.com/callback"


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """
    Keeps settings from the developer's shell out of the tests.
    """
    for name in (
        "COREASON_AUTHORIZER_AUTHORIZER_URL",
        "COREASON_AUTHORIZER_REDIRECT_URL",
        "COREASON_AUTHORIZER_CLIENT_ID",
        "COREASON_AUTHORIZER_ADMIN_SECRET",
        "COREASON_AUTHORIZER_EXTRA_HEADERS",
        "COREASON_AUTHORIZER_LOG_FILE",
    ):
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture
def config() -> AuthorizerConfig:
    return AuthorizerConfig(
        authorizer_url=f"{AUTHORIZER_URL}/",
        redirect_url=REDIRECT_URL,
        client_id="client-123",
        admin_secret="admin-secret",
        authorize_timeout=1.0,
        iframe_cleanup_delay=0,
    )


@pytest.fixture
def server() -> FakeAuthorizerServer:
    return FakeAuthorizerServer()


@pytest.fixture
def platform(server: FakeAuthorizerServer) -> FakePlatform:
    return FakePlatform(origin=AUTHORIZER_URL, responder=server.respond_to_authorize)


@pytest_asyncio.fixture
async def http_client(server: FakeAuthorizerServer) -> AsyncGenerator[httpx.AsyncClient, None]:
    async with httpx.AsyncClient(transport=server.transport()) as client:
        yield client


@pytest.fixture
def authorizer(config: AuthorizerConfig, http_client: httpx.AsyncClient, platform: FakePlatform) -> Authorizer:
    return Authorizer(config, client=http_client, platform=platform)
