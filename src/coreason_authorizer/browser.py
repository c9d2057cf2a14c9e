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
Browser capabilities used by the redirect and hidden-iframe authorization flows.

The SDK never probes for a browser. Hosts that can navigate, mount iframes and
deliver `message` events (an embedded webview, a Pyodide page, a test double)
implement `BrowserPlatform` and pass it to the client.
"""

import webbrowser
from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

import anyio
from pydantic import BaseModel, ConfigDict, ValidationError

from coreason_authorizer.exceptions import (
    AuthorizationError,
    AuthorizationTimeoutError,
    BrowserCapabilityError,
)
from coreason_authorizer.models import AuthorizeResponse
from coreason_authorizer.utils.logger import logger


class MessageEvent(BaseModel):
    """
    A `postMessage` event as delivered to a window listener.

    Attributes:
        origin (str): Origin of the sender, e.g. `https://auth.example.com`.
        data (Any): The posted data.
        source (Any): The sending window, closed once its answer was taken.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    origin: str
    data: Any = None
    source: Any = None


MessageListener = Callable[[MessageEvent], None]


@runtime_checkable
class BrowserPlatform(Protocol):
    """
    Window operations of a browser host.

    Listeners are invoked on the event loop thread that awaits the flow.
    """

    supports_web_message: bool

    def replace_location(self, url: str) -> None:
        """Navigates the whole page to `url`."""
        ...

    def mount_iframe(self, src: str) -> Any:
        """Appends a hidden, zero-sized iframe loading `src` and returns a handle to it."""
        ...

    def remove_iframe(self, frame: Any, delay: float = 0.0) -> None:
        """
        Removes a previously mounted iframe after `delay` seconds; a no-op when it is already gone.

        Returns at once: a delayed removal is scheduled by the host (as with
        `setTimeout`), never awaited by the caller.
        """
        ...

    def add_message_listener(self, listener: MessageListener) -> None: ...

    def remove_message_listener(self, listener: MessageListener) -> None: ...


class SystemBrowserPlatform:
    """
    Opens navigations in the user's default browser via `webbrowser`.

    Suitable for redirect flows from scripts and CLIs; it cannot host hidden
    iframes, so `web_message` authorization is refused.
    """

    supports_web_message = False

    def replace_location(self, url: str) -> None:
        if not webbrowser.open(url):
            raise BrowserCapabilityError("No runnable browser found to open the login page")

    def mount_iframe(self, src: str) -> Any:
        raise BrowserCapabilityError("Hidden iframes require an embedding browser")

    def remove_iframe(self, frame: Any, delay: float = 0.0) -> None:
        return None

    def add_message_listener(self, listener: MessageListener) -> None:
        raise BrowserCapabilityError("Window messages require an embedding browser")

    def remove_message_listener(self, listener: MessageListener) -> None:
        return None


def _close_source(source: Any) -> None:
    close = getattr(source, "close", None)
    if callable(close):
        try:
            close()
        except Exception as e:
            logger.debug(f"Closing the message source failed: {e!r}")


async def execute_iframe(
    platform: BrowserPlatform,
    authorize_url: str,
    event_origin: str,
    timeout: float,
    cleanup_delay: float = 2.0,
) -> AuthorizeResponse:
    """
    Loads `authorize_url` in a hidden iframe and waits for the page to post its answer.

    Only messages from `event_origin` whose data carries a `response` mapping are
    accepted; the first one wins. The listener is removed as soon as the wait
    ends and the answer is returned at once. After an answer the platform drops
    the iframe `cleanup_delay` seconds later so its final script can run; after
    a timeout or failure the iframe is removed immediately.

    Args:
        platform: The browser host.
        authorize_url: The full authorize URL.
        event_origin: Expected origin of the answer (the service base URL).
        timeout: Seconds to wait for the answer.
        cleanup_delay: Seconds the platform keeps the iframe mounted after it answered.

    Returns:
        AuthorizeResponse: The posted response.

    Raises:
        AuthorizationTimeoutError: If no answer arrives in time.
        AuthorizationError: If the answer carries an `error`, or cannot be parsed.
    """
    received: list[dict[str, Any]] = []
    answered = anyio.Event()

    def on_message(event: MessageEvent) -> None:
        if answered.is_set() or event.origin != event_origin:
            return
        data = event.data
        if not isinstance(data, dict) or not isinstance(data.get("response"), dict):
            return
        _close_source(event.source)
        received.append(data["response"])
        answered.set()

    platform.add_message_listener(on_message)
    frame: Any = None
    try:
        frame = platform.mount_iframe(authorize_url)
        try:
            with anyio.fail_after(timeout):
                await answered.wait()
        except TimeoutError as e:
            logger.warning(f"No authorize response from {event_origin} within {timeout}s")
            raise AuthorizationTimeoutError(f"Authorization timed out after {timeout} seconds") from e
    finally:
        platform.remove_message_listener(on_message)
        if frame is not None:
            platform.remove_iframe(frame, delay=cleanup_delay if received else 0.0)

    payload = received[0]
    if payload.get("error"):
        raise AuthorizationError(str(payload.get("error_description") or payload["error"]), response=payload)

    try:
        return AuthorizeResponse.model_validate(payload)
    except ValidationError as e:
        raise AuthorizationError(f"Invalid authorize response: {e}", response=payload) from e


__all__ = [
    "BrowserPlatform",
    "MessageEvent",
    "MessageListener",
    "SystemBrowserPlatform",
    "execute_iframe",
]
