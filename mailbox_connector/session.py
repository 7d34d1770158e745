"""Store session lifecycle: lazy connect, TTL-bounded reuse, idempotent teardown."""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from types import MappingProxyType

import structlog

from crawl_connector import CancellationSignal, RepositoryError, ServiceInterruption

from .config import MailboxConfig, Protocol
from .imap_client import ImapStore
from .pop3_client import Pop3Store
from .store import MailStore, StoreError

logger = structlog.get_logger()

DEFAULT_SESSION_TTL_SECONDS = 300.0

STORE_PROVIDERS: Mapping[Protocol, Callable[[MailboxConfig], MailStore]] = MappingProxyType(
    {
        Protocol.POP3: Pop3Store,
        Protocol.POP3S: Pop3Store,
        Protocol.IMAP: ImapStore,
        Protocol.IMAPS: ImapStore,
    }
)

STATUS_OK = "Connection working"


@dataclass
class MailSession:
    """A connected store and the moment it stops being reusable."""

    store: MailStore
    expires_at: float

    def expired(self, now: float) -> bool:
        return now >= self.expires_at


class SessionManager:
    """Owns at most one live :class:`MailSession`.

    Every :meth:`ensure_session` call pushes the expiration out by the TTL;
    a session left idle past it is torn down and replaced on next use.
    Not thread-safe: a connector instance is used by one thread at a time.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_SESSION_TTL_SECONDS,
        *,
        clock: Callable[[], float] = time.monotonic,
        providers: Mapping[Protocol, Callable[[MailboxConfig], MailStore]] = STORE_PROVIDERS,
    ) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._providers = providers
        self._session: MailSession | None = None

    @property
    def session(self) -> MailSession | None:
        return self._session

    def ensure_session(self, config: MailboxConfig) -> MailStore:
        """Return a connected store, connecting first if needed.

        Raises :class:`ServiceInterruption` when the server cannot be
        reached or rejects the credentials.
        """
        now = self._clock()
        if self._session is not None and self._session.expired(now):
            logger.info("mail_session_expired")
            self.teardown()

        if self._session is None:
            store = self._providers[config.protocol](config)
            try:
                store.connect()
            except InterruptedError as exc:
                raise CancellationSignal(f"Email connection interrupted: {exc}") from exc
            except StoreError as exc:
                logger.error(
                    "mail_session_connect_failed",
                    host=config.server,
                    protocol=config.protocol.value,
                    error=str(exc),
                )
                raise ServiceInterruption(f"Email connection error: {exc}") from exc
            self._session = MailSession(store=store, expires_at=now + self._ttl)
            logger.debug("mail_session_opened", host=config.server)
        else:
            self._session.expires_at = now + self._ttl

        return self._session.store

    def teardown(self) -> None:
        """Close the store if there is one.  Safe to call repeatedly."""
        if self._session is None:
            return
        session, self._session = self._session, None
        try:
            session.store.close()
        except (StoreError, OSError) as exc:
            logger.warning("mail_session_close_failed", error=str(exc))

    def expire_if_idle(self) -> bool:
        """Tear the session down if its TTL has passed.  Returns whether it did."""
        if self._session is not None and self._session.expired(self._clock()):
            logger.info("mail_session_expired")
            self.teardown()
            return True
        return False

    def check_health(self, config: MailboxConfig) -> str:
        """Reconnect from scratch and verify the root folder is reachable.

        Returns a short status line; transient failures are reported as
        "temporarily failed", everything else as "failed".
        """
        self.teardown()
        try:
            store = self.ensure_session(config)
            try:
                reachable = store.has_default_folder()
            except InterruptedError as exc:
                raise CancellationSignal(f"Connection check interrupted: {exc}") from exc
            except StoreError as exc:
                logger.warning("mail_connection_check_failed", error=str(exc))
                raise RepositoryError(f"Error checking the connection: {exc}") from exc
            if not reachable:
                raise RepositoryError("Error checking the connection: No default folder.")
        except ServiceInterruption as exc:
            return f"Connection temporarily failed: {exc}"
        except (RepositoryError, CancellationSignal) as exc:
            return f"Connection failed: {exc}"
        return STATUS_OK
