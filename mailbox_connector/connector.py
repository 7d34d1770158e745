"""MailboxConnector: the repository connector the scheduler drives.

Discovery and extraction run as two separate passes over the same folder:
:meth:`add_seed_documents` yields Message-IDs, :meth:`process_documents`
later re-locates each one and ingests it.  Both share one lazily
connected, TTL-bounded store session.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping, Sequence
from datetime import datetime

import structlog

from crawl_connector import (
    ConnectorModel,
    IngestSink,
    JobSpecification,
    RepositoryConnector,
    RepositoryError,
)

from .config import MailboxConfig, Protocol
from .discovery import discover_seeds
from .extractor import extract_documents
from .fields import ACTIVITY_FETCH, EMAIL_VERSION, MAX_DOCUMENT_REQUEST, RELATIONSHIP_CHILD
from .folders import list_folder_names
from .session import DEFAULT_SESSION_TTL_SECONDS, STORE_PROVIDERS, SessionManager
from .store import MailStore

logger = structlog.get_logger()


def versions_of(identifiers: Sequence[str]) -> list[str]:
    """Version token for each identifier.

    Deliberately degenerate: mail stores offer no change detection, so every
    message always reports :data:`EMAIL_VERSION` and is always reprocessed.
    An empty request still returns one token as the baseline version.
    """
    if not identifiers:
        return [EMAIL_VERSION]
    return [EMAIL_VERSION] * len(identifiers)


class MailboxConnector(RepositoryConnector):
    """Crawls one POP3/IMAP account.

    Not thread-safe; the scheduler pools instances per configuration and
    never shares one between concurrent callers.
    """

    connector_model = ConnectorModel.ADD
    max_document_request = MAX_DOCUMENT_REQUEST

    def __init__(
        self,
        session_ttl_seconds: float = DEFAULT_SESSION_TTL_SECONDS,
        *,
        clock: Callable[[], float] = time.monotonic,
        providers: Mapping[Protocol, Callable[[MailboxConfig], MailStore]] = STORE_PROVIDERS,
    ) -> None:
        self._config: MailboxConfig | None = None
        self._sessions = SessionManager(session_ttl_seconds, clock=clock, providers=providers)

    @property
    def config(self) -> MailboxConfig | None:
        return self._config

    @property
    def sessions(self) -> SessionManager:
        return self._sessions

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def connect(self, config: MailboxConfig) -> None:
        if self._config is not None and self._config != config:
            self._sessions.teardown()
        self._config = config
        logger.info(
            "mailbox_connector_configured",
            server=config.server,
            protocol=config.protocol.value,
            properties=len(config.properties),
        )

    def disconnect(self) -> None:
        self._sessions.teardown()
        self._config = None
        logger.info("mailbox_connector_disconnected")

    def poll(self) -> None:
        self._sessions.expire_if_idle()

    def check(self) -> str:
        return self._sessions.check_health(self._require_config())

    # ------------------------------------------------------------------
    # Crawl passes
    # ------------------------------------------------------------------

    def add_seed_documents(
        self,
        spec: JobSpecification,
        start_time: datetime | None = None,
        end_time: datetime | None = None,
    ) -> list[str]:
        config = self._require_config()
        store = self._sessions.ensure_session(config)
        return discover_seeds(store, config.protocol, spec, start_time, end_time)

    def get_document_versions(
        self,
        identifiers: Sequence[str],
        spec: JobSpecification | None = None,
    ) -> list[str]:
        return versions_of(identifiers)

    def process_documents(
        self,
        identifiers: Sequence[str],
        versions: Sequence[str],
        spec: JobSpecification,
        sink: IngestSink,
    ) -> None:
        config = self._require_config()
        store = self._sessions.ensure_session(config)
        extract_documents(store, config.protocol, identifiers, versions, spec, sink)

    def list_folders(self) -> list[str]:
        store = self._sessions.ensure_session(self._require_config())
        return list_folder_names(store)

    # ------------------------------------------------------------------
    # Scheduler metadata
    # ------------------------------------------------------------------

    @property
    def activities(self) -> list[str]:
        return [ACTIVITY_FETCH]

    @property
    def relationship_types(self) -> list[str]:
        return [RELATIONSHIP_CHILD]

    def bin_names(self, identifier: str) -> list[str]:
        return [self._require_config().server]

    def _require_config(self) -> MailboxConfig:
        if self._config is None:
            raise RepositoryError("Mailbox connector is not connected")
        return self._config
