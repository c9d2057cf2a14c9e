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
Configuration for the coreason-authorizer package.
"""

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def trim_url(url: str) -> str:
    """
    Strips surrounding whitespace and exactly one trailing slash.

    Args:
        url: The raw URL string.

    Returns:
        The trimmed URL.
    """
    trimmed = url.strip()
    if trimmed.endswith("/"):
        trimmed = trimmed[:-1]
    return trimmed


class AuthorizerConfig(BaseSettings):
    """
    Connection settings for an Authorizer instance.

    The model is frozen: per-call headers are derived from it, never written into it.

    Attributes:
        authorizer_url (str): Base URL of the Authorizer service, without trailing slash.
        redirect_url (str): Default redirect URL for hosted flows, without trailing slash.
        client_id (str): The client identifier registered with the service.
        admin_secret (SecretStr | None): Admin secret sent with privileged queries.
        extra_headers (dict[str, str]): Headers merged into every request.
        http_timeout (float): Timeout in seconds for every network call.
        authorize_timeout (float): Seconds to wait for the hidden iframe to answer.
        iframe_cleanup_delay (float): Seconds the iframe stays mounted after it answered.
        max_response_bytes (int): Upper bound for any response body.
    """

    model_config = SettingsConfigDict(
        env_prefix="COREASON_AUTHORIZER_",
        case_sensitive=False,
        frozen=True,
    )

    authorizer_url: str
    redirect_url: str
    client_id: str = ""
    admin_secret: SecretStr | None = None
    extra_headers: dict[str, str] = Field(default_factory=dict)
    http_timeout: float = Field(default=10.0, gt=0, description="Timeout in seconds for all network operations.")
    authorize_timeout: float = Field(default=60.0, gt=0)
    iframe_cleanup_delay: float = Field(default=2.0, ge=0)
    max_response_bytes: int = Field(default=1_000_000, gt=0)

    @field_validator("authorizer_url", "redirect_url")
    @classmethod
    def normalize_url(cls, v: str) -> str:
        """
        Trims the URL and rejects values that are empty afterwards.

        Raises:
            ValueError: If nothing is left after trimming.
        """
        v = trim_url(v)
        if not v:
            raise ValueError("URL must not be empty")
        return v

    @field_validator("client_id")
    @classmethod
    def strip_client_id(cls, v: str) -> str:
        return v.strip()
