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
Authorizer component: one coroutine per remote operation of the Authorizer service.
"""

import threading
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, ParamSpec, TypeVar, get_args

import anyio
import httpx
from pydantic import TypeAdapter, ValidationError

from coreason_authorizer import queries
from coreason_authorizer.browser import BrowserPlatform, execute_iframe
from coreason_authorizer.config import AuthorizerConfig
from coreason_authorizer.exceptions import (
    AuthorizationError,
    AuthorizationTimeoutError,
    AuthorizerValidationError,
    BrowserCapabilityError,
    InvalidEnvFieldError,
    InvalidRefreshTokenError,
    MissingCodeVerifierError,
    UnsupportedProviderError,
)
from coreason_authorizer.executor import HTTP_ERROR, JsonResponse, RequestExecutor
from coreason_authorizer.models import (
    ApiError,
    ApiResponse,
    AuthorizeInput,
    AuthorizeResponse,
    AuthToken,
    EnvField,
    ForgotPasswordInput,
    GenericResponse,
    GetTokenInput,
    GetTokenResponse,
    GrantType,
    LoginInput,
    MagicLinkLoginInput,
    MetaData,
    OAuthProvider,
    PaginatedInput,
    PendingAuthorization,
    ResendOtpInput,
    ResetPasswordInput,
    ResponseMode,
    ResponseType,
    RevokeTokenInput,
    SessionQueryInput,
    SignupInput,
    UpdateProfileInput,
    User,
    UserInput,
    UsersPage,
    ValidateJWTTokenInput,
    ValidateJWTTokenResponse,
    ValidateSessionInput,
    ValidateSessionResponse,
    VerificationRequestsPage,
    VerifyEmailInput,
    VerifyOtpInput,
    Webhook,
    WebhookInput,
    WebhooksPage,
)
from coreason_authorizer.models_internal import RevokeRequest, TokenRequest
from coreason_authorizer.pkce import begin_authorization, build_url, create_random_string, encode, hosted_login_url
from coreason_authorizer.utils.logger import logger

T = TypeVar("T")
P = ParamSpec("P")

Headers = Mapping[str, str]

ENV_FIELDS = frozenset(get_args(EnvField))

AuthorizeResult = ApiResponse[GetTokenResponse] | ApiResponse[AuthorizeResponse] | ApiResponse[PendingAuthorization]


class Authorizer:
    """
    Async client for an Authorizer instance (the core).

    Every public coroutine returns an `ApiResponse`; server and network failures
    are reported in `errors` and never raised. Only precondition violations raise.

    One client runs one redirect-based PKCE flow at a time: the pending
    authorization of the latest `authorize` call is kept on the instance and
    replaced by the next call. Hidden-iframe flows carry their own state.

    Attributes:
        config (AuthorizerConfig): The immutable configuration.
        platform (BrowserPlatform | None): Browser host for redirect and iframe flows.
    """

    def __init__(
        self,
        config: AuthorizerConfig,
        client: httpx.AsyncClient | None = None,
        platform: BrowserPlatform | None = None,
    ) -> None:
        """
        Initialize the Authorizer.

        Args:
            config: The configuration object.
            client: External async client (optional). If not provided, one is created on first use.
            platform: Browser host (optional). Browser-only operations fail without it.
        """
        self.config = config
        self.platform = platform
        self._executor = RequestExecutor(config, client)
        self._pending_authorization: PendingAuthorization | None = None

    async def __aenter__(self) -> "Authorizer":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Closes the internal HTTP client; an injected client is left open."""
        await self._executor.aclose()

    @property
    def pending_authorization(self) -> PendingAuthorization | None:
        """The unconsumed authorization of the latest redirect-based `authorize` call."""
        return self._pending_authorization

    def _require_platform(self, operation: str) -> BrowserPlatform:
        if self.platform is None:
            raise BrowserCapabilityError(f"{operation} is only supported with a browser platform")
        return self.platform

    async def _query(
        self,
        result_type: Any,
        field: str,
        query: str,
        variables: Mapping[str, Any] | None = None,
        headers: Headers | None = None,
    ) -> ApiResponse[Any]:
        """
        Runs `query` and validates `data[field]` as `result_type`.
        """
        envelope: type[ApiResponse[Any]] = ApiResponse[result_type]
        res = await self._executor.graphql(query, variables, headers)
        if res.data is None:
            return envelope.failure(res.errors)

        payload = res.data.get(field)
        if payload is None:
            return envelope.from_message(f"Empty result for '{field}'", code=HTTP_ERROR)

        try:
            return envelope.success(TypeAdapter(result_type).validate_python(payload))
        except ValidationError as e:
            logger.error(f"Unexpected '{field}' payload: {e.error_count()} validation error(s)")
            return envelope.from_message(f"Invalid '{field}' payload: {e}", code=HTTP_ERROR)

    # ------------------------------------------------------------------ raw

    async def graphql_query(
        self,
        query: str,
        variables: Mapping[str, Any] | None = None,
        headers: Headers | None = None,
    ) -> JsonResponse:
        """
        Executes any GraphQL document and returns the whole `data` mapping.

        Args:
            query: The query or mutation document.
            variables: Variables of the document.
            headers: Call-specific headers.
        """
        return await self._executor.graphql(query, variables, headers)

    # ------------------------------------------------------------------ public operations

    async def get_meta_data(self) -> ApiResponse[MetaData]:
        """Fetches the public capabilities of the service."""
        return await self._query(MetaData, "meta", queries.META)

    async def signup(self, data: SignupInput) -> ApiResponse[AuthToken]:
        return await self._query(AuthToken, "signup", queries.SIGNUP, {"data": data.to_variables()})

    async def login(self, data: LoginInput) -> ApiResponse[AuthToken]:
        """
        Logs in with email (or phone number) and password.

        Wrong credentials or roles not granted to the account are reported in `errors`.
        """
        return await self._query(AuthToken, "login", queries.LOGIN, {"data": data.to_variables()})

    async def verify_email(self, data: VerifyEmailInput) -> ApiResponse[AuthToken]:
        return await self._query(AuthToken, "verify_email", queries.VERIFY_EMAIL, {"data": data.to_variables()})

    async def verify_otp(self, data: VerifyOtpInput) -> ApiResponse[AuthToken]:
        return await self._query(AuthToken, "verify_otp", queries.VERIFY_OTP, {"data": data.to_variables()})

    async def resend_otp(self, data: ResendOtpInput) -> ApiResponse[GenericResponse]:
        return await self._query(GenericResponse, "resend_otp", queries.RESEND_OTP, {"data": data.to_variables()})

    async def magic_link_login(self, data: MagicLinkLoginInput) -> ApiResponse[GenericResponse]:
        """
        Sends a magic login link. `state` and `redirect_uri` default to a fresh
        nonce and the configured redirect URL.
        """
        variables = data.to_variables()
        variables.setdefault("state", encode(create_random_string()))
        variables.setdefault("redirect_uri", self.config.redirect_url)
        return await self._query(GenericResponse, "magic_link_login", queries.MAGIC_LINK_LOGIN, {"data": variables})

    async def forgot_password(self, data: ForgotPasswordInput) -> ApiResponse[GenericResponse]:
        """
        Starts a password reset. `state` and `redirect_uri` default like `magic_link_login`.
        """
        variables = data.to_variables()
        variables.setdefault("state", encode(create_random_string()))
        variables.setdefault("redirect_uri", self.config.redirect_url)
        return await self._query(GenericResponse, "forgot_password", queries.FORGOT_PASSWORD, {"data": variables})

    async def reset_password(self, data: ResetPasswordInput) -> ApiResponse[GenericResponse]:
        return await self._query(
            GenericResponse, "reset_password", queries.RESET_PASSWORD, {"data": data.to_variables()}
        )

    async def get_profile(self, headers: Headers | None = None) -> ApiResponse[User]:
        """
        Fetches the profile of the session owner.

        Args:
            headers: e.g. `{"Authorization": "Bearer <access_token>"}`; the session cookie is used otherwise.
        """
        return await self._query(User, "profile", queries.PROFILE, headers=headers)

    async def update_profile(
        self, data: UpdateProfileInput, headers: Headers | None = None
    ) -> ApiResponse[GenericResponse]:
        return await self._query(
            GenericResponse, "update_profile", queries.UPDATE_PROFILE, {"data": data.to_variables()}, headers
        )

    async def deactivate_account(self, headers: Headers | None = None) -> ApiResponse[GenericResponse]:
        return await self._query(GenericResponse, "deactivate_account", queries.DEACTIVATE_ACCOUNT, headers=headers)

    async def get_session(
        self, headers: Headers | None = None, params: SessionQueryInput | None = None
    ) -> ApiResponse[AuthToken]:
        """
        Returns a fresh token for the current session.

        Uses the session cookie by default; server-side callers pass an `Authorization` header.
        """
        variables = {"params": params.to_variables()} if params else {}
        return await self._query(AuthToken, "session", queries.SESSION, variables, headers)

    async def validate_jwt_token(self, params: ValidateJWTTokenInput) -> ApiResponse[ValidateJWTTokenResponse]:
        return await self._query(
            ValidateJWTTokenResponse,
            "validate_jwt_token",
            queries.VALIDATE_JWT_TOKEN,
            {"params": params.to_variables()},
        )

    async def validate_session(
        self, params: ValidateSessionInput | None = None
    ) -> ApiResponse[ValidateSessionResponse]:
        variables = {"params": params.to_variables()} if params else {}
        return await self._query(ValidateSessionResponse, "validate_session", queries.VALIDATE_SESSION, variables)

    async def logout(self, headers: Headers | None = None) -> ApiResponse[GenericResponse]:
        """
        Ends the session. Failures are logged and returned like any other error.
        """
        res = await self._query(GenericResponse, "logout", queries.LOGOUT, headers=headers)
        if not res.ok:
            logger.error(f"Logout failed: {res.errors[0].message}")
        return res

    # ------------------------------------------------------------------ OAuth REST endpoints

    async def get_token(
        self, data: GetTokenInput | None = None, pending: PendingAuthorization | None = None
    ) -> ApiResponse[GetTokenResponse]:
        """
        Exchanges an authorization code, or a refresh token, at `/oauth/token`.

        For the code grant the verifier comes from `pending`, or from the
        instance's pending authorization; it is consumed and cannot be replayed.

        Args:
            data: Grant parameters. Defaults to the authorization code grant.
            pending: The authorization the code belongs to (optional).

        Raises:
            InvalidRefreshTokenError: If the refresh token grant has no refresh token.
            AuthorizerValidationError: If the code grant has no code; the verifier is left unused.
            MissingCodeVerifierError: If the code grant has no unconsumed pending authorization.
        """
        data = data or GetTokenInput()
        code_verifier = ""

        if data.grant_type == GrantType.REFRESH_TOKEN:
            if not data.refresh_token or not data.refresh_token.strip():
                raise InvalidRefreshTokenError("Invalid refresh_token")
        else:
            if not data.code or not data.code.strip():
                raise AuthorizerValidationError("Invalid code")
            pending = pending or self._pending_authorization
            if pending is None:
                raise MissingCodeVerifierError("Invalid code verifier: no pending authorization")
            code_verifier = pending.consume_verifier()
            if pending is self._pending_authorization:
                self._pending_authorization = None

        body = TokenRequest(
            client_id=self.config.client_id,
            code=data.code or "",
            code_verifier=code_verifier,
            grant_type=data.grant_type.value,
            refresh_token=data.refresh_token or "",
        )
        res = await self._executor.post("/oauth/token", body.model_dump())
        if res.data is None:
            return ApiResponse[GetTokenResponse].failure(res.errors)

        try:
            return ApiResponse[GetTokenResponse].success(GetTokenResponse.model_validate(res.data))
        except ValidationError as e:
            return ApiResponse[GetTokenResponse].from_message(f"Invalid token response: {e}", code=HTTP_ERROR)

    async def revoke_token(self, data: RevokeTokenInput) -> JsonResponse:
        """
        Revokes a refresh token at `/oauth/revoke`.

        Raises:
            InvalidRefreshTokenError: If the refresh token is blank.
        """
        if not data.refresh_token.strip():
            raise InvalidRefreshTokenError("Invalid refresh_token")

        body = RevokeRequest(refresh_token=data.refresh_token, client_id=self.config.client_id)
        return await self._executor.post("/oauth/revoke", body.model_dump())

    # ------------------------------------------------------------------ browser flows

    async def authorize(self, data: AuthorizeInput) -> AuthorizeResult:
        """
        Runs the authorize flow of the hosted login page.

        With `web_message` mode the page is loaded in a hidden iframe; a code is
        exchanged right away with this call's verifier, a token answer is returned
        as is. Any other mode navigates the page and returns the pending
        authorization in `data`; it is also kept for a later `get_token`.

        Raises:
            BrowserCapabilityError: Without a platform, or when it cannot host iframes.
        """
        platform = self._require_platform("authorize")
        if data.response_mode == ResponseMode.WEB_MESSAGE and not platform.supports_web_message:
            raise BrowserCapabilityError("The browser platform cannot run web_message authorization")

        pending = begin_authorization(self.config, data)

        if data.response_mode != ResponseMode.WEB_MESSAGE:
            self._pending_authorization = pending
            platform.replace_location(pending.authorize_url)
            return ApiResponse[PendingAuthorization].success(pending)

        try:
            answer = await execute_iframe(
                platform,
                pending.authorize_url,
                self.config.authorizer_url,
                timeout=self.config.authorize_timeout,
                cleanup_delay=self.config.iframe_cleanup_delay,
            )
        except AuthorizationTimeoutError as e:
            return ApiResponse[AuthorizeResponse].from_message(str(e), code="AUTHORIZE_TIMEOUT")
        except AuthorizationError as e:
            logger.warning(f"Authorize page returned an error, redirecting to the hosted login page: {e}")
            platform.replace_location(hosted_login_url(self.config))
            return ApiResponse[AuthorizeResponse].failure(
                [ApiError(message=str(e), extensions={**e.response, "code": "AUTHORIZE_ERROR"})]
            )

        if data.response_type == ResponseType.CODE:
            if not answer.code:
                return ApiResponse[GetTokenResponse].from_message("Authorize response carries no code", code=HTTP_ERROR)
            return await self.get_token(GetTokenInput(code=answer.code), pending=pending)

        return ApiResponse[AuthorizeResponse].success(answer)

    async def browser_login(self) -> ApiResponse[AuthToken]:
        """
        Returns the current session, or navigates to the hosted login page when there is none.

        Raises:
            BrowserCapabilityError: If there is no session and no browser platform.
        """
        res = await self.get_session()
        if res.ok:
            return res

        platform = self._require_platform("browser_login")
        platform.replace_location(hosted_login_url(self.config))
        return res

    async def oauth_login(
        self,
        provider: OAuthProvider | str,
        roles: list[str] | None = None,
        redirect_uri: str | None = None,
        state: str | None = None,
    ) -> None:
        """
        Navigates to the social login of `provider`.

        Raises:
            UnsupportedProviderError: If `provider` is unknown.
            BrowserCapabilityError: Without a browser platform.
        """
        try:
            provider = OAuthProvider(provider)
        except ValueError as e:
            supported = ", ".join(p.value for p in OAuthProvider)
            raise UnsupportedProviderError(f"Only the following OAuth providers are supported: {supported}") from e

        platform = self._require_platform("oauth_login")
        url = build_url(
            f"{self.config.authorizer_url}/oauth_login/{provider.value}",
            {
                "redirect_uri": redirect_uri or self.config.redirect_url,
                "state": state or encode(create_random_string()),
                "roles": ",".join(roles) if roles else None,
            },
        )
        platform.replace_location(url)

    # ------------------------------------------------------------------ admin operations

    async def get_user(self, data: UserInput, headers: Headers | None = None) -> ApiResponse[User]:
        return await self._query(User, "_user", queries.ADMIN_USER, {"data": data.to_variables()}, headers)

    async def list_users(
        self, data: PaginatedInput | None = None, headers: Headers | None = None
    ) -> ApiResponse[UsersPage]:
        data = data or PaginatedInput()
        return await self._query(UsersPage, "_users", queries.ADMIN_USERS, {"data": data.to_variables()}, headers)

    async def list_verification_requests(
        self, data: PaginatedInput | None = None, headers: Headers | None = None
    ) -> ApiResponse[VerificationRequestsPage]:
        """Lists pending email verification and magic link requests."""
        data = data or PaginatedInput()
        return await self._query(
            VerificationRequestsPage,
            "_verification_requests",
            queries.ADMIN_VERIFICATION_REQUESTS,
            {"data": data.to_variables()},
            headers,
        )

    async def admin_session(self, headers: Headers | None = None) -> ApiResponse[GenericResponse]:
        return await self._query(GenericResponse, "_admin_session", queries.ADMIN_SESSION, headers=headers)

    async def get_env(self, fields: list[str], headers: Headers | None = None) -> ApiResponse[dict[str, Any]]:
        """
        Reads server configuration values.

        Raises:
            InvalidEnvFieldError: If `fields` is empty or names an unknown field.
        """
        unknown = [f for f in fields if f not in ENV_FIELDS]
        if not fields or unknown:
            raise InvalidEnvFieldError(f"Unknown server configuration fields: {unknown or 'none requested'}")
        return await self._query(dict[str, Any], "_env", queries.admin_env(fields), headers=headers)

    async def get_webhook(self, data: WebhookInput, headers: Headers | None = None) -> ApiResponse[Webhook]:
        return await self._query(Webhook, "_webhook", queries.ADMIN_WEBHOOK, {"data": data.to_variables()}, headers)

    async def list_webhooks(
        self, data: PaginatedInput | None = None, headers: Headers | None = None
    ) -> ApiResponse[WebhooksPage]:
        data = data or PaginatedInput()
        return await self._query(
            WebhooksPage, "_webhooks", queries.ADMIN_WEBHOOKS, {"data": data.to_variables()}, headers
        )


class AuthorizerSync:
    """
    Blocking facade over `Authorizer` for scripts and threaded servers.

    Each call runs on its own event loop via `anyio.run`; calls are serialised and
    the HTTP client is released after each one, so no connection outlives its loop.
    Session cookies are kept between calls.
    """

    def __init__(
        self,
        config: AuthorizerConfig,
        platform: BrowserPlatform | None = None,
    ) -> None:
        self._async = Authorizer(config, platform=platform)
        self._lock = threading.Lock()

    def __enter__(self) -> "AuthorizerSync":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    @property
    def config(self) -> AuthorizerConfig:
        return self._async.config

    @property
    def pending_authorization(self) -> PendingAuthorization | None:
        return self._async.pending_authorization

    def _run(self, func: Callable[P, Awaitable[T]], *args: P.args, **kwargs: P.kwargs) -> T:
        async def _call() -> T:
            try:
                return await func(*args, **kwargs)
            finally:
                await self._async.aclose()

        with self._lock:
            return anyio.run(_call)

    def close(self) -> None:
        with self._lock:
            anyio.run(self._async.__aexit__, None, None, None)

    def graphql_query(
        self, query: str, variables: Mapping[str, Any] | None = None, headers: Headers | None = None
    ) -> JsonResponse:
        return self._run(self._async.graphql_query, query, variables, headers)

    def get_meta_data(self) -> ApiResponse[MetaData]:
        return self._run(self._async.get_meta_data)

    def signup(self, data: SignupInput) -> ApiResponse[AuthToken]:
        return self._run(self._async.signup, data)

    def login(self, data: LoginInput) -> ApiResponse[AuthToken]:
        return self._run(self._async.login, data)

    def verify_email(self, data: VerifyEmailInput) -> ApiResponse[AuthToken]:
        return self._run(self._async.verify_email, data)

    def verify_otp(self, data: VerifyOtpInput) -> ApiResponse[AuthToken]:
        return self._run(self._async.verify_otp, data)

    def resend_otp(self, data: ResendOtpInput) -> ApiResponse[GenericResponse]:
        return self._run(self._async.resend_otp, data)

    def magic_link_login(self, data: MagicLinkLoginInput) -> ApiResponse[GenericResponse]:
        return self._run(self._async.magic_link_login, data)

    def forgot_password(self, data: ForgotPasswordInput) -> ApiResponse[GenericResponse]:
        return self._run(self._async.forgot_password, data)

    def reset_password(self, data: ResetPasswordInput) -> ApiResponse[GenericResponse]:
        return self._run(self._async.reset_password, data)

    def get_profile(self, headers: Headers | None = None) -> ApiResponse[User]:
        return self._run(self._async.get_profile, headers)

    def update_profile(self, data: UpdateProfileInput, headers: Headers | None = None) -> ApiResponse[GenericResponse]:
        return self._run(self._async.update_profile, data, headers)

    def deactivate_account(self, headers: Headers | None = None) -> ApiResponse[GenericResponse]:
        return self._run(self._async.deactivate_account, headers)

    def get_session(
        self, headers: Headers | None = None, params: SessionQueryInput | None = None
    ) -> ApiResponse[AuthToken]:
        return self._run(self._async.get_session, headers, params)

    def validate_jwt_token(self, params: ValidateJWTTokenInput) -> ApiResponse[ValidateJWTTokenResponse]:
        return self._run(self._async.validate_jwt_token, params)

    def validate_session(self, params: ValidateSessionInput | None = None) -> ApiResponse[ValidateSessionResponse]:
        return self._run(self._async.validate_session, params)

    def logout(self, headers: Headers | None = None) -> ApiResponse[GenericResponse]:
        return self._run(self._async.logout, headers)

    def get_token(
        self, data: GetTokenInput | None = None, pending: PendingAuthorization | None = None
    ) -> ApiResponse[GetTokenResponse]:
        return self._run(self._async.get_token, data, pending)

    def revoke_token(self, data: RevokeTokenInput) -> JsonResponse:
        return self._run(self._async.revoke_token, data)

    def authorize(self, data: AuthorizeInput) -> AuthorizeResult:
        return self._run(self._async.authorize, data)

    def browser_login(self) -> ApiResponse[AuthToken]:
        return self._run(self._async.browser_login)

    def oauth_login(
        self,
        provider: OAuthProvider | str,
        roles: list[str] | None = None,
        redirect_uri: str | None = None,
        state: str | None = None,
    ) -> None:
        return self._run(self._async.oauth_login, provider, roles, redirect_uri, state)

    def get_user(self, data: UserInput, headers: Headers | None = None) -> ApiResponse[User]:
        return self._run(self._async.get_user, data, headers)

    def list_users(self, data: PaginatedInput | None = None, headers: Headers | None = None) -> ApiResponse[UsersPage]:
        return self._run(self._async.list_users, data, headers)

    def list_verification_requests(
        self, data: PaginatedInput | None = None, headers: Headers | None = None
    ) -> ApiResponse[VerificationRequestsPage]:
        return self._run(self._async.list_verification_requests, data, headers)

    def admin_session(self, headers: Headers | None = None) -> ApiResponse[GenericResponse]:
        return self._run(self._async.admin_session, headers)

    def get_env(self, fields: list[str], headers: Headers | None = None) -> ApiResponse[dict[str, Any]]:
        return self._run(self._async.get_env, fields, headers)

    def get_webhook(self, data: WebhookInput, headers: Headers | None = None) -> ApiResponse[Webhook]:
        return self._run(self._async.get_webhook, data, headers)

    def list_webhooks(
        self, data: PaginatedInput | None = None, headers: Headers | None = None
    ) -> ApiResponse[WebhooksPage]:
        return self._run(self._async.list_webhooks, data, headers)
