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
Internal wire models for the coreason-authorizer package.
These are not exposed in the public API.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from coreason_authorizer.models import ApiError


class GraphQLRequest(BaseModel):
    """
    JSON body POSTed to the GraphQL endpoint.
    """

    model_config = ConfigDict(frozen=True)

    query: str = Field(..., min_length=1)
    variables: dict[str, Any] = Field(default_factory=dict)


class GraphQLPayload(BaseModel):
    """
    JSON body returned by the GraphQL endpoint.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    data: dict[str, Any] | None = None
    errors: list[ApiError] | None = None


class TokenRequest(BaseModel):
    """
    JSON body POSTed to `/oauth/token`. Every key is always present, empty when unused.
    """

    model_config = ConfigDict(frozen=True)

    client_id: str
    code: str = ""
    code_verifier: str = ""
    grant_type: str
    refresh_token: str = ""


class RevokeRequest(BaseModel):
    """
    JSON body POSTed to `/oauth/revoke`.
    """

    model_config = ConfigDict(frozen=True)

    refresh_token: str
    client_id: str
