"""Mail store abstraction over the protocol clients.

A :class:`MailStore` is one authenticated connection to a mail server; a
:class:`MailFolder` is a folder opened read-only on it.  Protocol clients
translate their library's errors into :class:`StoreError`, except
``InterruptedError`` which is left alone so callers can tell a cancelled
read from a broken server.
"""

from __future__ import annotations

import abc
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from types import TracebackType

import structlog

from .query import SearchTerm

logger = structlog.get_logger()


class StoreError(Exception):
    """A protocol-level failure reported by the mail store."""


class MessageGone(StoreError):
    """The message disappeared between being found and being fetched."""


@contextmanager
def store_errors(action: str, *protocol_errors: type[Exception]) -> Iterator[None]:
    """Re-raise *protocol_errors* and socket errors as :class:`StoreError`."""
    try:
        yield
    except InterruptedError:
        raise
    except StoreError:
        raise
    except (*protocol_errors, OSError) as exc:
        raise StoreError(f"{action}: {exc}") from exc


@dataclass(frozen=True)
class FolderInfo:
    """A folder as listed by the store."""

    name: str
    flags: frozenset[str] = field(default_factory=frozenset)

    @property
    def holds_messages(self) -> bool:
        lowered = {flag.lower() for flag in self.flags}
        return "\\noselect" not in lowered and "\\nonexistent" not in lowered


@dataclass(frozen=True)
class StoredMessage:
    """Reference to a message inside an open folder.

    *key* is the store's handle (IMAP UID, POP3 message number); it is only
    meaningful while the folder stays open.  *message_id* is the stable
    identifier, ``None`` when the message carries no Message-ID header.
    """

    key: str
    message_id: str | None


@dataclass
class FetchedMessage:
    """Raw RFC 822 bytes of a message and the size the store declared."""

    key: str
    raw_bytes: bytes
    size: int


class MailFolder(abc.ABC):
    """A folder opened read-only.  Close it on every exit path."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @abc.abstractmethod
    def messages(self) -> list[StoredMessage]:
        """Every message in the folder, in store order."""

    @abc.abstractmethod
    def search(self, term: SearchTerm) -> list[StoredMessage]:
        """Messages matching *term*, in store order."""

    @abc.abstractmethod
    def fetch(self, message: StoredMessage) -> FetchedMessage:
        """Download the full message."""

    @abc.abstractmethod
    def _close(self) -> None: ...

    def close(self) -> None:
        """Close the folder; later calls are no-ops.

        Close-time failures are logged and swallowed.
        """
        if self._closed:
            return
        self._closed = True
        try:
            self._close()
        except (StoreError, OSError) as exc:
            logger.warning("folder_close_failed", folder=self.name, error=str(exc))

    def __enter__(self) -> MailFolder:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


class MailStore(abc.ABC):
    """One connection to a mail server."""

    @abc.abstractmethod
    def connect(self) -> None:
        """Open the connection and authenticate."""

    @abc.abstractmethod
    def close(self) -> None:
        """Log out and drop the connection."""

    @abc.abstractmethod
    def has_default_folder(self) -> bool:
        """Whether the store's root folder is reachable."""

    @abc.abstractmethod
    def list_folders(self) -> list[FolderInfo]:
        """Every folder below the root, recursively."""

    @abc.abstractmethod
    def open_folder(self, name: str) -> MailFolder:
        """Open *name* read-only."""
