import contextlib
import os
import sys

# Add src to path for running directly
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "../src")))

import anyio

from coreason_authorizer import (
    AuthorizeInput,
    Authorizer,
    AuthorizerConfig,
    LoginInput,
    PendingAuthorization,
    ResponseMode,
    ResponseType,
    SystemBrowserPlatform,
)


async def main() -> None:
    """
    Demonstrates the Authorizer client against a local instance.
    Includes:
    - Capability discovery (meta)
    - Password login and profile fetch with the returned access token
    - Redirect-mode PKCE authorize in the system browser
    """
    print(">>> Starting Authorizer Example")

    config = AuthorizerConfig(
        authorizer_url=os.getenv("AUTHORIZER_URL", "http://localhost:8080"),
        redirect_url=os.getenv("REDIRECT_URL", "http://localhost:3000"),
        client_id=os.getenv("AUTHORIZER_CLIENT_ID", ""),
        http_timeout=5.0,
    )

    async with Authorizer(config, platform=SystemBrowserPlatform()) as auth:
        meta = await auth.get_meta_data()
        if not meta.ok:
            # Without a running server this reports the connection error
            print(f">>> Meta failed: {meta.errors[0].message}")
            return
        print(f">>> Connected to Authorizer {meta.data.version if meta.data else '?'}")

        email = os.getenv("AUTHORIZER_EMAIL")
        password = os.getenv("AUTHORIZER_PASSWORD")
        if email and password:
            login = await auth.login(LoginInput(email=email, password=password))
            if login.data and login.data.access_token:
                profile = await auth.get_profile({"Authorization": f"Bearer {login.data.access_token}"})
                print(f">>> Logged in as {profile.data!r}")
            else:
                print(f">>> Login failed: {login.errors[0].message}")

        res = await auth.authorize(AuthorizeInput(response_type=ResponseType.CODE, response_mode=ResponseMode.QUERY))
        if not res.ok:
            print(f">>> Authorize failed: {res.errors[0].message}")
            return
        print(f">>> Browser opened; after login call get_token with the code sent to {config.redirect_url}")
        if isinstance(res.data, PendingAuthorization):
            print(f">>> Pending authorization state: {res.data.state}")


if __name__ == "__main__":
    with contextlib.suppress(KeyboardInterrupt):
        anyio.run(main)
