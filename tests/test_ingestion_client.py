"""Tests for crawl_connector.ingestion_client."""

from __future__ import annotations

import base64
import io
import json

import httpx
import pytest
import respx

from crawl_connector.config import IngestionAPIConfig
from crawl_connector.ingestion_client import HttpIngestionSink
from crawl_connector.models import RepositoryDocument


@pytest.fixture
def api_config() -> IngestionAPIConfig:
    return IngestionAPIConfig(base_url="http://test-ingestion:8000", timeout_seconds=5.0)


@pytest.fixture
def sink(api_config: IngestionAPIConfig) -> HttpIngestionSink:
    return HttpIngestionSink(api_config)


@pytest.fixture
def document() -> RepositoryDocument:
    document = RepositoryDocument()
    document.set_binary(io.BytesIO(b"Subject: Invoice\r\n\r\nPay"), 23)
    document.add_field("subject", "Invoice")
    return document


class TestHttpIngestionSink:
    def test_start_creates_httpx_client(self, sink: HttpIngestionSink):
        sink.start()
        assert sink._client is not None
        sink.stop()

    def test_stop_when_not_started(self, sink: HttpIngestionSink):
        sink.stop()  # should not raise

    @respx.mock
    def test_ingest_success(self, api_config: IngestionAPIConfig, document: RepositoryDocument):
        route = respx.post("http://test-ingestion:8000/v1/ingest").respond(200, json={"ok": True})

        with HttpIngestionSink(api_config) as sink:
            sink.ingest("<b@x>", "1.0", "Invoice<b@x>", document)

        assert route.called
        request = route.calls[0].request
        body = json.loads(request.content)
        assert body["identifier"] == "<b@x>"
        assert body["version"] == "1.0"
        assert body["uri"] == "Invoice<b@x>"
        assert body["fields"] == {"subject": ["Invoice"]}
        assert body["content_length"] == 23
        assert base64.b64decode(body["content_b64"]) == b"Subject: Invoice\r\n\r\nPay"
        assert request.headers["content-type"] == "application/json"

    @pytest.mark.parametrize("status", [422, 500])
    @respx.mock
    def test_ingest_raises_on_error_status(
        self, api_config: IngestionAPIConfig, document: RepositoryDocument, status: int
    ):
        respx.post("http://test-ingestion:8000/v1/ingest").respond(status)

        with HttpIngestionSink(api_config) as sink:
            with pytest.raises(httpx.HTTPStatusError):
                sink.ingest("<b@x>", "1.0", "<b@x>", document)

    def test_ingest_not_started_raises(
        self, sink: HttpIngestionSink, document: RepositoryDocument
    ):
        with pytest.raises(AssertionError, match="Sink not started"):
            sink.ingest("<b@x>", "1.0", "<b@x>", document)

    def test_disabled_mode_empty_base_url(self, document: RepositoryDocument):
        """When base_url is empty, no client is created and ingest is a no-op."""
        with HttpIngestionSink(IngestionAPIConfig(base_url="")) as sink:
            assert sink._client is None
            sink.ingest("<b@x>", "1.0", "<b@x>", document)
