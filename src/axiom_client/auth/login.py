# src/axiom_client/auth/login.py
"""Interactive OAuth2 login with PKCE through a loopback callback server.

Flow:
1. Bind a listener on localhost with an ephemeral port
2. Build the authorization URL (client id, redirect URI, state, S256
   challenge) and hand it to login_func, which shows or opens it
3. Serve the callback on the listener (Starlette app under uvicorn in a
   background thread) until the first request to "/" concludes the flow
4. Exchange the authorization code for an access token at the token endpoint
5. Redirect the user agent to the done page and shut the server down

Usage:
    import webbrowser
    from axiom_client.auth.login import login

    token = login("https://api.axiom.co", webbrowser.open, timeout=300)

Thread Safety:
    login() blocks the calling thread. The callback server, the token
    exchange (run in Starlette's threadpool) and the caller's cancel event
    race; whichever concludes first wins and the server is always stopped
    before login() returns.
"""

from __future__ import annotations

import asyncio
import hmac
import socket
import threading
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from urllib.parse import urlencode, urljoin

import httpx
import structlog
import uvicorn
from starlette.applications import Starlette
from starlette.background import BackgroundTask
from starlette.concurrency import run_in_threadpool
from starlette.requests import Request
from starlette.responses import PlainTextResponse, RedirectResponse, Response
from starlette.routing import Route

from axiom_client.auth import pkce
from axiom_client.errors import (
    LoginCancelledError,
    OAuthAuthorizationDeniedError,
    OAuthError,
    OAuthExchangeFailedError,
    OAuthMethodNotAllowedError,
    OAuthMissingCodeError,
    OAuthStateMismatchError,
)

logger = structlog.get_logger(__name__)

CLIENT_ID = "13c885a8-f46a-4424-82d2-883cf7ccfe49"

AUTHORIZE_PATH = "/oauth/authorize"
TOKEN_PATH = "/oauth/token"
DONE_PATH = "/oauth/done"

_ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
_WAIT_INTERVAL = 0.05
_STARTUP_TIMEOUT = 5.0
_SHUTDOWN_TIMEOUT = 5.0
_EXCHANGE_TIMEOUT = 30.0


@dataclass(frozen=True, slots=True)
class Endpoints:
    """OAuth endpoints of one deployment."""

    authorize: str
    token: str
    done: str

    @classmethod
    def for_base_url(cls, base_url: str) -> Endpoints:
        return cls(
            authorize=urljoin(base_url, AUTHORIZE_PATH),
            token=urljoin(base_url, TOKEN_PATH),
            done=urljoin(base_url, DONE_PATH),
        )


def authorization_url(endpoints: Endpoints, *, redirect_uri: str, state: str, code_challenge: str) -> str:
    query = urlencode(
        {
            "client_id": CLIENT_ID,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "scope": "*",
            "state": state,
            "code_challenge": code_challenge,
            "code_challenge_method": pkce.Method.S256.value,
        }
    )
    return f"{endpoints.authorize}?{query}"


def exchange_code(
    http_client: httpx.Client,
    token_url: str,
    *,
    code: str,
    redirect_uri: str,
    code_verifier: str,
) -> str:
    """Exchange an authorization code for an access token.

    Raises:
        OAuthExchangeFailedError: On a transport error, a non-2xx response or
            a response without access_token.
    """
    data = {
        "grant_type": "authorization_code",
        "code": code,
        "redirect_uri": redirect_uri,
        "client_id": CLIENT_ID,
        "code_verifier": code_verifier,
    }
    try:
        response = http_client.post(
            token_url,
            data=data,
            headers={"Accept": "application/json"},
            timeout=_EXCHANGE_TIMEOUT,
        )
    except httpx.HTTPError as e:
        raise OAuthExchangeFailedError(str(e)) from e

    try:
        body = response.json()
    except ValueError:
        body = None

    if not response.is_success:
        description = response.reason_phrase or "token request failed"
        if isinstance(body, dict):
            description = str(body.get("error_description") or body.get("error") or description)
        raise OAuthExchangeFailedError(description, status_code=response.status_code)

    token = body.get("access_token") if isinstance(body, dict) else None
    if not token:
        raise OAuthExchangeFailedError("response has no access_token", status_code=response.status_code)
    return str(token)


class _CallbackServer:
    """Starlette app that accepts exactly one OAuth callback."""

    def __init__(
        self,
        *,
        endpoints: Endpoints,
        redirect_uri: str,
        state: str,
        verifier: str,
        http_client: httpx.Client,
    ) -> None:
        self._endpoints = endpoints
        self._redirect_uri = redirect_uri
        self._state = state
        self._verifier = verifier
        self._http_client = http_client

        self._claimed = False
        self._concluded = threading.Event()
        self._token: str | None = None
        self._error: OAuthError | None = None

        self.app = Starlette(debug=False, routes=[Route("/", self._callback_endpoint, methods=_ALL_METHODS)])

    def _conclude(self, token: str | None = None, error: OAuthError | None = None) -> None:
        self._token = token
        self._error = error
        self._concluded.set()

    def _respond(self, response: Response, *, token: str | None = None, error: OAuthError | None = None) -> Response:
        # Conclude after the response is written so the user agent sees it
        # before the server is torn down.
        response.background = BackgroundTask(self._conclude, token, error)
        return response

    def _done_redirect(self, **params: str) -> RedirectResponse:
        url = self._endpoints.done
        if params:
            url = f"{url}?{urlencode(params)}"
        return RedirectResponse(url, status_code=302)

    async def _callback_endpoint(self, request: Request) -> Response:
        # Runs on the single event loop thread, so the flag needs no lock.
        if self._claimed:
            return PlainTextResponse("login already handled", status_code=409)
        self._claimed = True

        if request.method != "GET":
            return self._respond(
                PlainTextResponse("method not allowed", status_code=405),
                error=OAuthMethodNotAllowedError(request.method),
            )

        query = request.query_params
        if not hmac.compare_digest(query.get("state", "").encode("utf-8"), self._state.encode("utf-8")):
            return self._respond(PlainTextResponse("invalid state", status_code=400), error=OAuthStateMismatchError())

        error = query.get("error")
        if error:
            description = query.get("error_description", "")
            return self._respond(
                self._done_redirect(error=error, error_description=description),
                error=OAuthAuthorizationDeniedError(error, description),
            )

        code = query.get("code")
        if not code:
            return self._respond(PlainTextResponse("missing code", status_code=400), error=OAuthMissingCodeError())

        try:
            token = await run_in_threadpool(
                exchange_code,
                self._http_client,
                self._endpoints.token,
                code=code,
                redirect_uri=self._redirect_uri,
                code_verifier=self._verifier,
            )
        except OAuthExchangeFailedError as e:
            return self._respond(
                self._done_redirect(error="server_error", error_description=e.description),
                error=e,
            )
        return self._respond(self._done_redirect(), token=token)

    def wait(
        self,
        server_thread: threading.Thread,
        server_errors: list[BaseException],
        *,
        cancel: threading.Event | None,
        timeout: float | None,
    ) -> str:
        """Block until the callback concludes, the caller cancels or the server dies."""
        deadline = None if timeout is None else time.monotonic() + timeout
        while not self._concluded.wait(_WAIT_INTERVAL):
            if cancel is not None and cancel.is_set():
                raise LoginCancelledError("login cancelled")
            if deadline is not None and time.monotonic() >= deadline:
                raise LoginCancelledError(f"login timed out after {timeout}s")
            if not server_thread.is_alive():
                cause = server_errors[0] if server_errors else None
                raise OAuthError("callback server stopped before the login completed") from cause

        if self._error is not None:
            raise self._error
        if self._token is None:
            raise OAuthError("login concluded without a token")
        return self._token


def _wait_started(server: uvicorn.Server, server_thread: threading.Thread, errors: list[BaseException]) -> None:
    """Block until uvicorn accepts connections on the callback socket."""
    deadline = time.monotonic() + _STARTUP_TIMEOUT
    while not server.started:
        if not server_thread.is_alive():
            cause = errors[0] if errors else None
            raise OAuthError("callback server failed to start") from cause
        if time.monotonic() >= deadline:
            raise OAuthError(f"callback server did not start within {_STARTUP_TIMEOUT}s")
        time.sleep(_WAIT_INTERVAL)


def _serve(server: uvicorn.Server, sock: socket.socket, errors: list[BaseException]) -> None:
    """Run uvicorn on a pre-bound socket in the current (non-main) thread."""
    try:
        asyncio.run(server.serve(sockets=[sock]))
    except Exception as e:
        logger.error("Login callback server failed", error=str(e))
        errors.append(e)


def login(
    base_url: str,
    login_func: Callable[[str], object],
    *,
    cancel: threading.Event | None = None,
    timeout: float | None = None,
    http_client: httpx.Client | None = None,
) -> str:
    """Run the interactive login and return the access token.

    Args:
        base_url: Deployment URL the OAuth endpoints are resolved against
        login_func: Called once with the authorization URL; an exception
            aborts the login and propagates
        cancel: Event that aborts the wait when set
        timeout: Seconds to wait for the callback, None waits indefinitely
        http_client: Client for the token exchange (owned by the caller)

    Returns:
        The access token.

    Raises:
        OAuthAuthorizationDeniedError: The authorization server returned an error.
        OAuthExchangeFailedError: The code could not be exchanged.
        OAuthCallbackError: The callback request was malformed.
        LoginCancelledError: cancel was set or timeout elapsed.
        OAuthError: The callback server stopped unexpectedly.
    """
    endpoints = Endpoints.for_base_url(base_url)

    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    sock.bind(("localhost", 0))
    host, port = sock.getsockname()[:2]
    redirect_uri = f"http://{host}:{port}"

    verifier = pkce.new_verifier()
    state = str(uuid.uuid4())

    owns_http_client = http_client is None
    exchange_client = http_client or httpx.Client()
    callback = _CallbackServer(
        endpoints=endpoints,
        redirect_uri=redirect_uri,
        state=state,
        verifier=verifier,
        http_client=exchange_client,
    )

    config = uvicorn.Config(app=callback.app, log_config=None, log_level="warning", access_log=False, lifespan="off")
    server = uvicorn.Server(config)
    server_errors: list[BaseException] = []
    server_thread = threading.Thread(
        target=_serve,
        args=(server, sock, server_errors),
        name="axiom-login-callback",
        daemon=True,
    )
    server_thread.start()

    try:
        _wait_started(server, server_thread, server_errors)
        url = authorization_url(
            endpoints,
            redirect_uri=redirect_uri,
            state=state,
            code_challenge=pkce.challenge(verifier, pkce.Method.S256),
        )
        logger.info("Waiting for login callback", redirect_uri=redirect_uri)
        login_func(url)
        return callback.wait(server_thread, server_errors, cancel=cancel, timeout=timeout)
    finally:
        server.should_exit = True
        server_thread.join(timeout=_SHUTDOWN_TIMEOUT)
        if server_thread.is_alive():
            logger.error("Login callback server did not stop within timeout")
        sock.close()
        if owns_http_client:
            exchange_client.close()
