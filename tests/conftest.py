# tests/conftest.py
"""Shared test fixtures.

The backend is faked with a respx router mounted into httpx through
httpx.MockTransport, so no test touches the network. Only the login tests
open a real (loopback) socket.

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/property/
"""

from __future__ import annotations

import os
from collections.abc import Callable, Iterator
from typing import Any

import httpx
import pytest
import respx
from hypothesis import Phase, Verbosity, settings

from axiom_client.client import Client
from axiom_client.core.config import ClientSettings

API_TOKEN = "xaat-00000000-0000-0000-0000-000000000000"
PERSONAL_TOKEN = "xapt-00000000-0000-0000-0000-000000000000"
ORG_ID = "axiom-test"
BASE_URL = "https://api.axiom.co"

# =============================================================================
# Hypothesis Profiles
# =============================================================================

settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,  # Disable deadline for CI (timing varies)
)

settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def _clean_axiom_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep a developer's AXIOM_* variables out of every test."""
    for name in list(os.environ):
        if name.startswith("AXIOM_"):
            monkeypatch.delenv(name)


@pytest.fixture
def router() -> respx.Router:
    """Fake backend; does not patch httpx globally. Unmatched requests fail the test."""
    return respx.Router(base_url=BASE_URL, assert_all_called=False)


@pytest.fixture
def mock_http(router: respx.Router) -> Iterator[httpx.Client]:
    """httpx client whose requests are answered by router."""
    with httpx.Client(transport=httpx.MockTransport(router.handler)) as http_client:
        yield http_client


@pytest.fixture
def api_settings() -> ClientSettings:
    return ClientSettings(token=API_TOKEN, url=BASE_URL, dataset="logs")


@pytest.fixture
def make_client(mock_http: httpx.Client) -> Iterator[Callable[..., Client]]:
    """Factory for clients bound to the fake backend.

    Keyword arguments become ClientSettings fields on top of an API token
    for the cloud URL.
    """
    created: list[Client] = []

    def _make(**overrides: Any) -> Client:
        fields: dict[str, Any] = {"token": API_TOKEN, "url": BASE_URL, "dataset": "logs"}
        fields.update(overrides)
        client = Client(ClientSettings(**fields), http_client=mock_http)
        created.append(client)
        return client

    yield _make

    for client in created:
        client.close()


def ingest_response(ingested: int = 1, failed: int = 0, **extra: Any) -> httpx.Response:
    """A successful ingest status response."""
    body: dict[str, Any] = {
        "ingested": ingested,
        "failed": failed,
        "failures": extra.pop("failures", []),
        "processedBytes": extra.pop("processed_bytes", 10 * ingested),
        "blocksCreated": 0,
        "walLength": ingested,
    }
    body.update(extra)
    return httpx.Response(200, json=body)
