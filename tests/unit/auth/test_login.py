# tests/unit/auth/test_login.py
"""Tests for the interactive OAuth2 login.

The callback server is real (uvicorn on a loopback port). A FakeBrowser plays
the user agent: it receives the authorization URL and requests the redirect
URI from a separate thread, as a browser returning from the authorization
server would. The token endpoint is faked with respx.
"""

import threading
from typing import Any
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest
import respx

from axiom_client.auth import pkce
from axiom_client.auth.login import CLIENT_ID, Endpoints, authorization_url, exchange_code, login
from axiom_client.errors import (
    LoginCancelledError,
    OAuthAuthorizationDeniedError,
    OAuthExchangeFailedError,
    OAuthMethodNotAllowedError,
    OAuthMissingCodeError,
    OAuthStateMismatchError,
)
from tests.conftest import BASE_URL

TOKEN_URL = f"{BASE_URL}/oauth/token"
DONE_URL = f"{BASE_URL}/oauth/done"


class FakeBrowser:
    """login_func that answers the authorization URL with one callback request.

    Keyword arguments become callback query parameters; the state from the
    authorization URL is sent unless overridden.
    """

    def __init__(self, method: str = "GET", **params: str) -> None:
        self.method = method
        self.params = params
        self.url: str | None = None
        self.response: httpx.Response | None = None
        self._thread: threading.Thread | None = None

    @property
    def query(self) -> dict[str, str]:
        assert self.url is not None
        return {key: values[0] for key, values in parse_qs(urlsplit(self.url).query).items()}

    def __call__(self, url: str) -> None:
        self.url = url
        params = {"state": self.query["state"], **self.params}
        self._thread = threading.Thread(target=self._visit, args=(self.query["redirect_uri"], params))
        self._thread.start()

    def _visit(self, redirect_uri: str, params: dict[str, str]) -> None:
        with httpx.Client(trust_env=False, follow_redirects=False) as agent:
            self.response = agent.request(self.method, redirect_uri, params=params)

    def finish(self) -> httpx.Response:
        assert self._thread is not None
        self._thread.join(timeout=5)
        assert self.response is not None
        return self.response


def _login(browser: Any, mock_http: httpx.Client, **kwargs: Any) -> str:
    return login(BASE_URL, browser, http_client=mock_http, timeout=kwargs.pop("timeout", 10.0), **kwargs)


class TestAuthorizationUrl:
    def test_endpoints(self) -> None:
        endpoints = Endpoints.for_base_url("https://axiom.example.com/")

        assert endpoints.authorize == "https://axiom.example.com/oauth/authorize"
        assert endpoints.token == "https://axiom.example.com/oauth/token"
        assert endpoints.done == "https://axiom.example.com/oauth/done"

    def test_query(self) -> None:
        url = authorization_url(
            Endpoints.for_base_url(BASE_URL),
            redirect_uri="http://127.0.0.1:5000",
            state="s",
            code_challenge="c",
        )

        parts = urlsplit(url)
        assert f"{parts.scheme}://{parts.netloc}{parts.path}" == f"{BASE_URL}/oauth/authorize"
        assert parse_qs(parts.query) == {
            "client_id": [CLIENT_ID],
            "redirect_uri": ["http://127.0.0.1:5000"],
            "response_type": ["code"],
            "scope": ["*"],
            "state": ["s"],
            "code_challenge": ["c"],
            "code_challenge_method": ["S256"],
        }


class TestExchangeCode:
    def _exchange(self, mock_http: httpx.Client) -> str:
        return exchange_code(mock_http, TOKEN_URL, code="abc", redirect_uri="http://127.0.0.1:1", code_verifier="v")

    def test_form_body(self, router: respx.Router, mock_http: httpx.Client) -> None:
        route = router.post("/oauth/token").mock(return_value=httpx.Response(200, json={"access_token": "tok"}))

        assert self._exchange(mock_http) == "tok"
        form = parse_qs(route.calls.last.request.content.decode())
        assert form == {
            "grant_type": ["authorization_code"],
            "code": ["abc"],
            "redirect_uri": ["http://127.0.0.1:1"],
            "client_id": [CLIENT_ID],
            "code_verifier": ["v"],
        }

    def test_error_response(self, router: respx.Router, mock_http: httpx.Client) -> None:
        router.post("/oauth/token").mock(
            return_value=httpx.Response(400, json={"error": "invalid_grant", "error_description": "code expired"})
        )

        with pytest.raises(OAuthExchangeFailedError) as exc_info:
            self._exchange(mock_http)

        assert exc_info.value.status_code == 400
        assert exc_info.value.description == "code expired"

    def test_missing_access_token(self, router: respx.Router, mock_http: httpx.Client) -> None:
        router.post("/oauth/token").mock(return_value=httpx.Response(200, json={"token_type": "bearer"}))

        with pytest.raises(OAuthExchangeFailedError, match="no access_token"):
            self._exchange(mock_http)

    def test_transport_error(self, router: respx.Router, mock_http: httpx.Client) -> None:
        router.post("/oauth/token").mock(side_effect=httpx.ConnectError)

        with pytest.raises(OAuthExchangeFailedError) as exc_info:
            self._exchange(mock_http)

        assert exc_info.value.status_code is None


@pytest.mark.slow
class TestLogin:
    def test_success(self, router: respx.Router, mock_http: httpx.Client) -> None:
        token_route = router.post("/oauth/token").mock(return_value=httpx.Response(200, json={"access_token": "tok"}))
        browser = FakeBrowser(code="abc")

        token = _login(browser, mock_http)

        assert token == "tok"
        response = browser.finish()
        assert response.status_code == 302
        assert response.headers["Location"] == DONE_URL

        query = browser.query
        assert query["client_id"] == CLIENT_ID
        assert query["code_challenge_method"] == "S256"
        assert query["redirect_uri"].startswith("http://127.0.0.1:")

        form = parse_qs(token_route.calls.last.request.content.decode())
        assert form["code"] == ["abc"]
        assert form["redirect_uri"] == [query["redirect_uri"]]
        assert pkce.verify(query["code_challenge"], form["code_verifier"][0], pkce.Method.S256)

    def test_authorization_denied(self, router: respx.Router, mock_http: httpx.Client) -> None:
        token_route = router.post("/oauth/token").mock(return_value=httpx.Response(200, json={"access_token": "tok"}))
        browser = FakeBrowser(error="access_denied", error_description="user declined")

        with pytest.raises(OAuthAuthorizationDeniedError) as exc_info:
            _login(browser, mock_http)

        assert exc_info.value.error == "access_denied"
        assert exc_info.value.description == "user declined"
        assert not token_route.called
        location = browser.finish().headers["Location"]
        assert location.startswith(DONE_URL)
        assert parse_qs(urlsplit(location).query)["error"] == ["access_denied"]

    def test_exchange_failure(self, router: respx.Router, mock_http: httpx.Client) -> None:
        router.post("/oauth/token").mock(
            return_value=httpx.Response(500, json={"error": "server_error", "error_description": "db down"})
        )
        browser = FakeBrowser(code="abc")

        with pytest.raises(OAuthExchangeFailedError) as exc_info:
            _login(browser, mock_http)

        assert exc_info.value.status_code == 500
        location = browser.finish().headers["Location"]
        assert parse_qs(urlsplit(location).query) == {"error": ["server_error"], "error_description": ["db down"]}

    def test_state_mismatch(self, router: respx.Router, mock_http: httpx.Client) -> None:
        token_route = router.post("/oauth/token").mock(return_value=httpx.Response(200, json={"access_token": "tok"}))
        browser = FakeBrowser(state="forged", code="abc")

        with pytest.raises(OAuthStateMismatchError):
            _login(browser, mock_http)

        assert browser.finish().status_code == 400
        assert not token_route.called

    def test_missing_code(self, mock_http: httpx.Client) -> None:
        browser = FakeBrowser()

        with pytest.raises(OAuthMissingCodeError):
            _login(browser, mock_http)

        assert browser.finish().status_code == 400

    def test_method_not_allowed(self, mock_http: httpx.Client) -> None:
        browser = FakeBrowser(method="POST", code="abc")

        with pytest.raises(OAuthMethodNotAllowedError):
            _login(browser, mock_http)

        assert browser.finish().status_code == 405

    def test_timeout(self, mock_http: httpx.Client) -> None:
        with pytest.raises(LoginCancelledError, match="timed out"):
            _login(lambda url: None, mock_http, timeout=0.2)

    def test_cancel(self, mock_http: httpx.Client) -> None:
        cancel = threading.Event()
        timer = threading.Timer(0.1, cancel.set)
        timer.start()
        try:
            with pytest.raises(LoginCancelledError, match="cancelled"):
                _login(lambda url: None, mock_http, cancel=cancel)
        finally:
            timer.cancel()

    def test_login_func_error_propagates(self, mock_http: httpx.Client) -> None:
        def broken_browser(url: str) -> None:
            raise RuntimeError("no browser available")

        with pytest.raises(RuntimeError, match="no browser available"):
            _login(broken_browser, mock_http)

    def test_port_released_after_login(self, mock_http: httpx.Client) -> None:
        seen: list[str] = []

        with pytest.raises(LoginCancelledError):
            _login(seen.append, mock_http, timeout=0.1)

        redirect_uri = parse_qs(urlsplit(seen[0]).query)["redirect_uri"][0]
        with httpx.Client(trust_env=False) as agent, pytest.raises(httpx.ConnectError):
            agent.get(redirect_uri)
