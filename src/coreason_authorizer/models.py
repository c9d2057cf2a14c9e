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
Data models for the coreason-authorizer package.

Response models ignore unknown fields so that newer servers keep working.
Input models forbid unknown fields and are serialised without `None` values.
"""

from enum import StrEnum
from typing import Any, Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, EmailStr, Field, PrivateAttr, SecretStr, model_validator

from coreason_authorizer.exceptions import MissingCodeVerifierError

T = TypeVar("T")


class OAuthProvider(StrEnum):
    APPLE = "apple"
    GITHUB = "github"
    GOOGLE = "google"
    FACEBOOK = "facebook"
    LINKEDIN = "linkedin"
    TWITTER = "twitter"
    MICROSOFT = "microsoft"


class ResponseType(StrEnum):
    CODE = "code"
    TOKEN = "token"


class ResponseMode(StrEnum):
    WEB_MESSAGE = "web_message"
    QUERY = "query"
    FRAGMENT = "fragment"
    FORM_POST = "form_post"


class GrantType(StrEnum):
    AUTHORIZATION_CODE = "authorization_code"
    REFRESH_TOKEN = "refresh_token"


class TokenType(StrEnum):
    ACCESS_TOKEN = "access_token"
    ID_TOKEN = "id_token"
    REFRESH_TOKEN = "refresh_token"


# --------------------------------------------------------------------------- envelope


class ApiError(BaseModel):
    """
    A single error entry, shaped like a GraphQL error.

    Attributes:
        message (str): Human readable message, as reported by the server when available.
        path (list[str | int] | None): GraphQL path of the failing field.
        extensions (dict[str, Any] | None): Extra data; transport failures carry `code`.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    message: str
    path: list[str | int] | None = None
    extensions: dict[str, Any] | None = None


class ApiResponse(BaseModel, Generic[T]):
    """
    Uniform outcome of every public operation.

    Either `data` is set and `errors` is empty, or `data` is None and `errors`
    holds at least one entry. Callers branch on `ok` (or `len(errors)`).
    """

    model_config = ConfigDict(frozen=True)

    data: T | None = None
    errors: list[ApiError] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_exclusive(self) -> "ApiResponse[T]":
        if self.data is None and not self.errors:
            raise ValueError("An ApiResponse needs either data or at least one error")
        if self.data is not None and self.errors:
            raise ValueError("An ApiResponse cannot carry both data and errors")
        return self

    @property
    def ok(self) -> bool:
        return not self.errors

    @classmethod
    def success(cls, data: T) -> "ApiResponse[T]":
        return cls(data=data, errors=[])

    @classmethod
    def failure(cls, errors: list[ApiError]) -> "ApiResponse[T]":
        return cls(data=None, errors=errors)

    @classmethod
    def from_message(cls, message: str, **extensions: Any) -> "ApiResponse[T]":
        return cls(data=None, errors=[ApiError(message=message, extensions=extensions or None)])


# --------------------------------------------------------------------------- responses


class User(BaseModel):
    """
    Snapshot of a user profile as returned by the server at call time.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    email: str | None = None
    email_verified: bool = False
    preferred_username: str | None = None
    signup_methods: str = ""
    given_name: str | None = None
    family_name: str | None = None
    middle_name: str | None = None
    nickname: str | None = None
    picture: str | None = None
    gender: str | None = None
    birthdate: str | None = None
    phone_number: str | None = None
    phone_number_verified: bool | None = None
    roles: list[str] = Field(default_factory=list)
    created_at: int | None = None
    updated_at: int | None = None
    is_multi_factor_auth_enabled: bool | None = None
    app_data: dict[str, Any] | None = None

    def __repr__(self) -> str:
        # Contact details are PII
        return (
            f"User(id={self.id!r}, email='<REDACTED>', phone_number='<REDACTED>', "
            f"email_verified={self.email_verified!r}, roles={self.roles!r})"
        )

    def __str__(self) -> str:
        return self.__repr__()


class AuthToken(BaseModel):
    """
    Session returned by login, signup, verification and session queries.

    `access_token` is empty when the server still expects a verification step
    (e.g. signup with email verification enabled); `message` then explains why.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    message: str | None = None
    access_token: str | None = None
    expires_in: int | None = None
    id_token: str | None = None
    refresh_token: str | None = None
    user: User | None = None
    should_show_email_otp_screen: bool | None = None
    should_show_mobile_otp_screen: bool | None = None

    def __repr__(self) -> str:
        def mask(value: str | None) -> str:
            return "None" if value is None else "'<REDACTED>'"

        return (
            f"AuthToken(message={self.message!r}, access_token={mask(self.access_token)}, "
            f"id_token={mask(self.id_token)}, refresh_token={mask(self.refresh_token)}, "
            f"expires_in={self.expires_in!r}, user={self.user!r})"
        )

    def __str__(self) -> str:
        return self.__repr__()


class GenericResponse(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    message: str


class MetaData(BaseModel):
    """
    Public capabilities of an Authorizer instance.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    version: str
    client_id: str | None = None
    is_google_login_enabled: bool = False
    is_facebook_login_enabled: bool = False
    is_github_login_enabled: bool = False
    is_linkedin_login_enabled: bool = False
    is_apple_login_enabled: bool = False
    is_twitter_login_enabled: bool = False
    is_microsoft_login_enabled: bool = False
    is_email_verification_enabled: bool = False
    is_basic_authentication_enabled: bool = False
    is_magic_link_login_enabled: bool = False
    is_sign_up_enabled: bool = False
    is_strong_password_enabled: bool = False


class ValidateJWTTokenResponse(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    is_valid: bool
    claims: dict[str, Any] = Field(default_factory=dict)


class ValidateSessionResponse(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    is_valid: bool
    user: User | None = None


class GetTokenResponse(BaseModel):
    """
    Body of a successful `/oauth/token` exchange.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    access_token: str
    expires_in: int | None = None
    id_token: str | None = None
    refresh_token: str | None = None
    token_type: str | None = None

    def __repr__(self) -> str:
        return f"GetTokenResponse(access_token='<REDACTED>', expires_in={self.expires_in!r})"

    def __str__(self) -> str:
        return self.__repr__()


class AuthorizeResponse(BaseModel):
    """
    Payload posted back by the hosted authorize page.

    Code flows carry `code`; implicit (token) flows carry the tokens directly.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    state: str | None = None
    code: str | None = None
    error: str | None = None
    error_description: str | None = None
    access_token: str | None = None
    id_token: str | None = None
    refresh_token: str | None = None
    expires_in: int | None = None


class Pagination(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    offset: int = 0
    total: int = 0
    page: int = 1
    limit: int = 0


class VerificationRequest(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    token: str
    email: str
    expires: int | None = None
    identifier: str | None = None


class Webhook(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    event_name: str
    endpoint: str
    enabled: bool
    headers: dict[str, Any] | None = None
    created_at: int | str | None = None
    updated_at: int | str | None = None


class UsersPage(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    pagination: Pagination
    users: list[User] = Field(default_factory=list)


class VerificationRequestsPage(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    pagination: Pagination
    verification_requests: list[VerificationRequest] = Field(default_factory=list)


class WebhooksPage(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    pagination: Pagination
    webhooks: list[Webhook] = Field(default_factory=list)


# --------------------------------------------------------------------------- inputs


class InputModel(BaseModel):
    """Base for request parameters; unknown fields are rejected early."""

    model_config = ConfigDict(extra="forbid")

    def to_variables(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class LoginInput(InputModel):
    email: EmailStr | None = None
    phone_number: str | None = None
    password: str
    roles: list[str] | None = None
    scope: list[str] | None = None
    state: str | None = None


class SignupInput(InputModel):
    email: EmailStr | None = None
    password: str
    confirm_password: str
    given_name: str | None = None
    family_name: str | None = None
    middle_name: str | None = None
    nickname: str | None = None
    picture: str | None = None
    gender: str | None = None
    birthdate: str | None = None
    phone_number: str | None = None
    roles: list[str] | None = None
    scope: list[str] | None = None
    redirect_uri: str | None = None
    is_multi_factor_auth_enabled: bool | None = None
    state: str | None = None
    app_data: dict[str, Any] | None = None


class MagicLinkLoginInput(InputModel):
    email: EmailStr
    roles: list[str] | None = None
    scope: list[str] | None = None
    state: str | None = None
    redirect_uri: str | None = None


class VerifyEmailInput(InputModel):
    token: str
    state: str | None = None


class VerifyOtpInput(InputModel):
    email: EmailStr | None = None
    phone_number: str | None = None
    otp: str
    state: str | None = None


class ResendOtpInput(InputModel):
    email: EmailStr | None = None
    phone_number: str | None = None


class ForgotPasswordInput(InputModel):
    email: EmailStr
    state: str | None = None
    redirect_uri: str | None = None


class ResetPasswordInput(InputModel):
    token: str
    password: str
    confirm_password: str


class UpdateProfileInput(InputModel):
    old_password: str | None = None
    new_password: str | None = None
    confirm_new_password: str | None = None
    email: EmailStr | None = None
    given_name: str | None = None
    family_name: str | None = None
    middle_name: str | None = None
    nickname: str | None = None
    gender: str | None = None
    birthdate: str | None = None
    phone_number: str | None = None
    picture: str | None = None
    is_multi_factor_auth_enabled: bool | None = None
    app_data: dict[str, Any] | None = None


class SessionQueryInput(InputModel):
    roles: list[str] | None = None


class ValidateJWTTokenInput(InputModel):
    token_type: TokenType
    token: str
    roles: list[str] | None = None


class ValidateSessionInput(InputModel):
    cookie: str | None = None
    roles: list[str] | None = None


class GetTokenInput(InputModel):
    code: str | None = None
    grant_type: GrantType = GrantType.AUTHORIZATION_CODE
    refresh_token: str | None = None


class RevokeTokenInput(InputModel):
    refresh_token: str


class AuthorizeInput(InputModel):
    response_type: ResponseType
    use_refresh_token: bool = False
    response_mode: ResponseMode = ResponseMode.WEB_MESSAGE


class UserInput(InputModel):
    id: str | None = None
    email: EmailStr | None = None


class PaginatedInput(InputModel):
    page: int | None = Field(default=None, ge=1)
    limit: int | None = Field(default=None, ge=1)

    def to_variables(self) -> dict[str, Any]:
        return {"pagination": self.model_dump(mode="json", exclude_none=True)}


class WebhookInput(InputModel):
    id: str


# --------------------------------------------------------------------------- PKCE state


class PendingAuthorization(BaseModel):
    """
    State of one in-flight `authorize` call.

    The code verifier can be consumed exactly once; a second exchange with the
    same pending authorization is refused.

    Attributes:
        response_type (ResponseType): The requested response type.
        state (str): Opaque state sent to the authorize endpoint.
        nonce (str): Nonce sent to the authorize endpoint.
        code_verifier (SecretStr | None): PKCE secret, only for the code response type.
        code_challenge (str | None): S256 challenge derived from the verifier.
        authorize_url (str): The full authorize URL.
    """

    response_type: ResponseType
    state: str
    nonce: str
    code_verifier: SecretStr | None = None
    code_challenge: str | None = None
    authorize_url: str

    _consumed: bool = PrivateAttr(default=False)

    @property
    def consumed(self) -> bool:
        return self._consumed

    def consume_verifier(self) -> str:
        """
        Returns the code verifier and marks it as used.

        Raises:
            MissingCodeVerifierError: If there is no verifier or it was already used.
        """
        if self.code_verifier is None:
            raise MissingCodeVerifierError("Pending authorization has no code verifier")
        if self._consumed:
            raise MissingCodeVerifierError("Code verifier has already been used")
        self._consumed = True
        return self.code_verifier.get_secret_value()


EnvField = Literal[
    "ENV",
    "ADMIN_SECRET",
    "DATABASE_TYPE",
    "DATABASE_URL",
    "DATABASE_NAME",
    "DATABASE_PORT",
    "DATABASE_HOST",
    "DATABASE_USERNAME",
    "DATABASE_PASSWORD",
    "DATABASE_CERT",
    "DATABASE_CERT_KEY",
    "DATABASE_CA_CERT",
    "PORT",
    "AUTHORIZER_URL",
    "REDIS_URL",
    "COOKIE_NAME",
    "SMTP_HOST",
    "SMTP_PORT",
    "SMTP_USERNAME",
    "SMTP_PASSWORD",
    "SENDER_EMAIL",
    "SENDER_NAME",
    "RESET_PASSWORD_URL",
    "DISABLE_BASIC_AUTHENTICATION",
    "DISABLE_EMAIL_VERIFICATION",
    "DISABLE_MAGIC_LINK_LOGIN",
    "DISABLE_LOGIN_PAGE",
    "DISABLE_SIGN_UP",
    "DISABLE_PLAYGROUND",
    "ROLES",
    "DEFAULT_ROLES",
    "PROTECTED_ROLES",
    "JWT_ROLE_CLAIM",
    "ORGANIZATION_NAME",
    "ORGANIZATION_LOGO",
    "CUSTOM_ACCESS_TOKEN_SCRIPT",
    "ACCESS_TOKEN_EXPIRY_TIME",
    "AWS_REGION",
    "AWS_ACCESS_KEY_ID",
    "AWS_SECRET_ACCESS_KEY",
    "COUCHBASE_BUCKET",
    "COUCHBASE_BUCKET_RAM_QUOTA",
    "COUCHBASE_SCOPE",
    "GOOGLE_CLIENT_ID",
    "GOOGLE_CLIENT_SECRET",
    "GITHUB_CLIENT_ID",
    "GITHUB_CLIENT_SECRET",
    "FACEBOOK_CLIENT_ID",
    "FACEBOOK_CLIENT_SECRET",
    "LINKEDIN_CLIENT_ID",
    "LINKEDIN_CLIENT_SECRET",
    "APPLE_CLIENT_ID",
    "APPLE_CLIENT_SECRET",
    "TWITTER_CLIENT_ID",
    "TWITTER_CLIENT_SECRET",
    "MICROSOFT_CLIENT_ID",
    "MICROSOFT_CLIENT_SECRET",
    "MICROSOFT_ACTIVE_DIRECTORY_TENANT_ID",
]
