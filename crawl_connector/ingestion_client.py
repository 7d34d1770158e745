"""HTTP ingestion sink: delivers finished documents to the ingestion API."""

from __future__ import annotations

from types import TracebackType

import httpx
import structlog

from .config import IngestionAPIConfig
from .interface import IngestSink
from .models import IngestRequest, RepositoryDocument

logger = structlog.get_logger()


class HttpIngestionSink(IngestSink):
    """Delivers :class:`RepositoryDocument` payloads to the ingestion API.

    Use as a context manager so the underlying client is closed::

        with HttpIngestionSink(config.ingestion_api) as sink:
            connector.process_documents(ids, versions, spec, sink)

    An empty ``base_url`` disables delivery; :meth:`ingest` then only logs.
    """

    def __init__(self, config: IngestionAPIConfig) -> None:
        self._config = config
        self._client: httpx.Client | None = None
        self._started = False

    def start(self) -> None:
        self._started = True

        if not self._config.base_url:
            logger.info("ingestion_sink_disabled", reason="empty_base_url")
            return

        self._client = httpx.Client(
            base_url=self._config.base_url,
            timeout=httpx.Timeout(self._config.timeout_seconds),
            verify=self._config.verify_tls,
        )
        logger.info("ingestion_sink_started", base_url=self._config.base_url)

    def stop(self) -> None:
        if self._client is not None:
            self._client.close()
            logger.info("ingestion_sink_stopped")

    def __enter__(self) -> HttpIngestionSink:
        self.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.stop()

    def ingest(
        self,
        identifier: str,
        version: str,
        uri: str,
        document: RepositoryDocument,
    ) -> None:
        """POST one document to the ingestion API.

        Raises :class:`httpx.HTTPStatusError` on non-2xx responses.
        """
        if not self._started:
            raise AssertionError("Sink not started")

        if self._client is None:
            logger.debug("document_dropped", identifier=identifier, reason="sink_disabled")
            return

        body = IngestRequest.from_document(identifier, version, uri, document)
        response = self._client.post(
            "/v1/ingest",
            content=body.model_dump_json(),
            headers={"Content-Type": "application/json"},
        )
        response.raise_for_status()
        logger.debug(
            "document_ingested",
            identifier=identifier,
            status_code=response.status_code,
        )
