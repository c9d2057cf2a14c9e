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
GraphQL documents sent to the Authorizer service.
"""

USER_FRAGMENT = (
    "id email email_verified given_name family_name middle_name nickname preferred_username picture "
    "signup_methods gender birthdate phone_number phone_number_verified roles created_at updated_at "
    "is_multi_factor_auth_enabled app_data"
)

AUTH_TOKEN_FRAGMENT = (
    "message access_token expires_in refresh_token id_token "
    "should_show_email_otp_screen should_show_mobile_otp_screen "
    f"user {{ {USER_FRAGMENT} }}"
)

PAGINATION_FRAGMENT = "pagination { offset total page limit }"

WEBHOOK_FRAGMENT = "id event_name endpoint enabled headers created_at updated_at"

VERIFICATION_REQUEST_FRAGMENT = "id token email expires identifier"

META = (
    "query meta { meta { version client_id is_google_login_enabled is_facebook_login_enabled "
    "is_github_login_enabled is_linkedin_login_enabled is_apple_login_enabled is_twitter_login_enabled "
    "is_microsoft_login_enabled is_email_verification_enabled is_basic_authentication_enabled "
    "is_magic_link_login_enabled is_sign_up_enabled is_strong_password_enabled } }"
)

SIGNUP = f"mutation signup($data: SignUpInput!) {{ signup(params: $data) {{ {AUTH_TOKEN_FRAGMENT} }} }}"

LOGIN = f"mutation login($data: LoginInput!) {{ login(params: $data) {{ {AUTH_TOKEN_FRAGMENT} }} }}"

VERIFY_EMAIL = (
    f"mutation verifyEmail($data: VerifyEmailInput!) {{ verify_email(params: $data) {{ {AUTH_TOKEN_FRAGMENT} }} }}"
)

VERIFY_OTP = f"mutation verifyOtp($data: VerifyOTPRequest!) {{ verify_otp(params: $data) {{ {AUTH_TOKEN_FRAGMENT} }} }}"

RESEND_OTP = "mutation resendOtp($data: ResendOTPRequest!) { resend_otp(params: $data) { message } }"

MAGIC_LINK_LOGIN = (
    "mutation magicLinkLogin($data: MagicLinkLoginInput!) { magic_link_login(params: $data) { message } }"
)

FORGOT_PASSWORD = (
    "mutation forgotPassword($data: ForgotPasswordInput!) { forgot_password(params: $data) { message } }"
)

RESET_PASSWORD = "mutation resetPassword($data: ResetPasswordInput!) { reset_password(params: $data) { message } }"

PROFILE = f"query profile {{ profile {{ {USER_FRAGMENT} }} }}"

UPDATE_PROFILE = (
    "mutation updateProfile($data: UpdateProfileInput!) { update_profile(params: $data) { message } }"
)

DEACTIVATE_ACCOUNT = "mutation deactivateAccount { deactivate_account { message } }"

SESSION = f"query getSession($params: SessionQueryInput) {{ session(params: $params) {{ {AUTH_TOKEN_FRAGMENT} }} }}"

VALIDATE_JWT_TOKEN = (
    "query validateJWTToken($params: ValidateJWTTokenInput!) { validate_jwt_token(params: $params) { is_valid claims } }"
)

VALIDATE_SESSION = (
    "query validateSession($params: ValidateSessionInput) "
    f"{{ validate_session(params: $params) {{ is_valid user {{ {USER_FRAGMENT} }} }} }}"
)

LOGOUT = "mutation logout { logout { message } }"

# Admin queries; they need the admin secret header.

ADMIN_USER = f"query user($data: GetUserRequest!) {{ _user(params: $data) {{ {USER_FRAGMENT} }} }}"

ADMIN_USERS = (
    f"query users($data: PaginatedInput) {{ _users(params: $data) {{ {PAGINATION_FRAGMENT} users {{ {USER_FRAGMENT} }} }} }}"
)

ADMIN_VERIFICATION_REQUESTS = (
    "query verificationRequests($data: PaginatedInput) { _verification_requests(params: $data) "
    f"{{ {PAGINATION_FRAGMENT} verification_requests {{ {VERIFICATION_REQUEST_FRAGMENT} }} }} }}"
)

ADMIN_SESSION = "query adminSession { _admin_session { message } }"

ADMIN_WEBHOOK = f"query webhook($data: WebhookRequest!) {{ _webhook(params: $data) {{ {WEBHOOK_FRAGMENT} }} }}"

ADMIN_WEBHOOKS = (
    "query webhooks($data: PaginatedInput) { _webhooks(params: $data) "
    f"{{ {PAGINATION_FRAGMENT} webhooks {{ {WEBHOOK_FRAGMENT} }} }} }}"
)


def admin_env(fields: list[str]) -> str:
    """Selects the given server configuration fields."""
    return f"query env {{ _env {{ {' '.join(fields)} }} }}"
