# tests/unit/test_client.py
"""Tests for the high-level Client: ingest, query and ingester wiring."""

import gzip
import json
from collections.abc import Callable, Iterator
from datetime import UTC, datetime

import httpx
import pytest
import respx

from axiom_client.apl import Query
from axiom_client.client import Client
from axiom_client.core.config import ClientSettings
from axiom_client.errors import (
    ConfigInvalidError,
    CredentialMissingError,
    NotFoundError,
    OrgIdMissingError,
    PayloadEncodeError,
    ResponseDecodeError,
)
from axiom_client.ingest.options import ContentType, IngestOptions
from axiom_client.sas import Params, create_signature
from tests.conftest import API_TOKEN, BASE_URL, PERSONAL_TOKEN, ingest_response

SIGNING_KEY = "aeyGXNKLbqpPhBHqjHnVr4FS+eJ1d3LsheK1M8k6054="


@pytest.fixture
def client(make_client: Callable[..., Client]) -> Client:
    return make_client()


@pytest.fixture
def edge_router() -> respx.Router:
    """Fake backend for absolute edge URLs."""
    return respx.Router(assert_all_called=False)


@pytest.fixture
def edge_http(edge_router: respx.Router) -> Iterator[httpx.Client]:
    with httpx.Client(transport=httpx.MockTransport(edge_router.handler)) as http_client:
        yield http_client


class TestConstruction:
    def test_missing_token(self) -> None:
        with pytest.raises(CredentialMissingError):
            Client(ClientSettings())

    def test_personal_token_needs_org_on_cloud(self) -> None:
        with pytest.raises(OrgIdMissingError):
            Client(ClientSettings(token=PERSONAL_TOKEN))

    def test_overrides_loaded_with_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("AXIOM_TOKEN", API_TOKEN)
        monkeypatch.setenv("AXIOM_DATASET", "from-env")

        with Client(dataset="from-override") as client:
            assert client.settings.token == API_TOKEN
            assert client.settings.dataset == "from-override"


class TestIngest:
    def test_raw_payload(self, client: Client, router: respx.Router) -> None:
        route = router.post("/v1/datasets/logs/ingest").mock(return_value=ingest_response(ingested=2))

        status = client.ingest("logs", b'[{"a":1},{"a":2}]', options=IngestOptions(timestamp_field="ts"))

        request = route.calls.last.request
        assert request.content == b'[{"a":1},{"a":2}]'
        assert request.headers["Content-Type"] == ContentType.JSON
        assert "Content-Encoding" not in request.headers
        assert request.url.params["timestamp-field"] == "ts"
        assert status.ingested == 2

    def test_dataset_name_quoted(self, client: Client, router: respx.Router) -> None:
        route = router.route(method="POST").mock(return_value=ingest_response())

        client.ingest("my logs/x", b"{}")

        assert route.calls.last.request.url.raw_path == b"/v1/datasets/my%20logs%2Fx/ingest"

    def test_empty_dataset(self, client: Client) -> None:
        with pytest.raises(ConfigInvalidError, match="dataset"):
            client.ingest("", b"{}")

    def test_http_error_raised(self, client: Client, router: respx.Router) -> None:
        router.post("/v1/datasets/missing/ingest").mock(
            return_value=httpx.Response(404, json={"message": "dataset not found"})
        )

        with pytest.raises(NotFoundError, match="dataset not found"):
            client.ingest("missing", b"{}")

    def test_strict_decoding(self, make_client: Callable[..., Client], router: respx.Router) -> None:
        router.post("/v1/datasets/logs/ingest").mock(return_value=ingest_response(surprise=True))

        assert make_client().ingest("logs", b"{}").ingested == 1
        with pytest.raises(ResponseDecodeError, match="surprise"):
            make_client(strict_decoding=True).ingest("logs", b"{}")

    def test_edge_url(self, edge_router: respx.Router, edge_http: httpx.Client) -> None:
        route = edge_router.post("https://eu.edge.example.com/v1/ingest/logs").mock(return_value=ingest_response())
        settings = ClientSettings(token=API_TOKEN, edge_url="https://eu.edge.example.com")

        Client(settings, http_client=edge_http).ingest("logs", b"{}")

        assert route.called


class TestIngestEvents:
    def test_gzipped_ndjson(self, client: Client, router: respx.Router) -> None:
        route = router.post("/v1/datasets/logs/ingest").mock(return_value=ingest_response(ingested=2))
        when = datetime(2024, 5, 1, 8, 0, tzinfo=UTC)

        status = client.ingest_events("logs", [{"_time": when, "message": "a"}, {"message": "b"}])

        request = route.calls.last.request
        assert request.headers["Content-Type"] == "application/x-ndjson"
        assert request.headers["Content-Encoding"] == "gzip"
        lines = gzip.decompress(request.content).splitlines()
        assert [json.loads(line) for line in lines] == [
            {"_time": "2024-05-01T08:00:00.000000000Z", "message": "a"},
            {"message": "b"},
        ]
        assert status.ingested == 2

    def test_no_events_no_request(self, client: Client, router: respx.Router) -> None:
        route = router.post("/v1/datasets/logs/ingest").mock(return_value=ingest_response())

        status = client.ingest_events("logs", [])

        assert not route.called
        assert status.ingested == 0

    def test_bad_event_sends_nothing(self, client: Client, router: respx.Router) -> None:
        route = router.post("/v1/datasets/logs/ingest").mock(return_value=ingest_response())

        with pytest.raises(PayloadEncodeError):
            client.ingest_events("logs", [{"ok": 1}, {"bad": object()}])

        assert not route.called

    def test_partial_failure_returned(self, client: Client, router: respx.Router) -> None:
        router.post("/v1/datasets/logs/ingest").mock(
            return_value=ingest_response(ingested=1, failed=1, failures=[{"timestamp": "t", "error": "bad"}])
        )

        status = client.ingest_events("logs", [{"n": 1}, {"n": 2}])

        assert status.partial_failure is not None
        assert status.partial_failure.first is not None
        assert status.partial_failure.first.error == "bad"


class TestQuery:
    def test_apl_body(self, client: Client, router: respx.Router) -> None:
        route = router.post("/v1/datasets/_apl").mock(return_value=httpx.Response(200, json={"matches": []}))

        result = client.query(
            "['logs'] | count",
            start_time=datetime(2024, 1, 1, tzinfo=UTC),
            end_time="now",
        )

        request = route.calls.last.request
        assert request.url.params["format"] == "legacy"
        assert json.loads(request.content) == {
            "apl": "['logs'] | count",
            "startTime": "2024-01-01T00:00:00.000000000Z",
            "endTime": "now",
        }
        assert result == {"matches": []}

    def test_query_builder(self, client: Client, router: respx.Router) -> None:
        route = router.post("/v1/datasets/_apl").mock(return_value=httpx.Response(200, json={}))

        client.query(Query("logs").where_eq("level", '"error"').count())

        assert json.loads(route.calls.last.request.content) == {
            "apl": "logs\n| where level == \"error\"\n| count",
        }

    def test_non_object_result(self, client: Client, router: respx.Router) -> None:
        router.post("/v1/datasets/_apl").mock(return_value=httpx.Response(200, json=[1, 2]))

        with pytest.raises(ResponseDecodeError):
            client.query("['logs']")

    def test_edge_region(self, edge_router: respx.Router, edge_http: httpx.Client) -> None:
        route = edge_router.post("https://eu-central-1.aws.edge.axiom.co/v1/query/_apl").mock(
            return_value=httpx.Response(200, json={})
        )
        settings = ClientSettings(token=API_TOKEN, edge_region="eu-central-1.aws.edge.axiom.co")

        Client(settings, http_client=edge_http).query("['logs']")

        assert route.calls.last.request.url.params["format"] == "legacy"

    def test_shared_access_signature_as_bearer(self, make_client: Callable[..., Client], router: respx.Router) -> None:
        signature = create_signature(
            SIGNING_KEY,
            Params("axiom", "logs", 'customer == "vercel"', "ago(1h)", "now", "endofday(now())"),
        )
        route = router.post("/v1/datasets/_apl").mock(return_value=httpx.Response(200, json={}))

        make_client(token=signature).query("['logs']")

        assert route.calls.last.request.headers["Authorization"] == f"Bearer {signature}"


class TestIngester:
    def test_default_dataset(self, client: Client) -> None:
        with client.ingester(flush_interval=60) as ingester:
            assert ingester.dataset == "logs"

    def test_explicit_dataset(self, client: Client) -> None:
        with client.ingester("traces") as ingester:
            assert ingester.dataset == "traces"

    def test_no_dataset(self, make_client: Callable[..., Client]) -> None:
        with pytest.raises(ConfigInvalidError):
            make_client(dataset=None).ingester()

    def test_settings_url(self, client: Client) -> None:
        assert client.settings.url == BASE_URL
