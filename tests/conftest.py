"""Shared test fixtures for the mailbox connector test suite."""

from __future__ import annotations

import email
import email.policy
from email import encoders
from email.mime.base import MIMEBase
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

import pytest
import structlog
from pydantic import SecretStr

from crawl_connector import IngestSink, RepositoryDocument
from mailbox_connector.config import MailboxConfig, Protocol
from mailbox_connector.query import SearchTerm
from mailbox_connector.store import (
    FetchedMessage,
    FolderInfo,
    MailFolder,
    MailStore,
    MessageGone,
    StoredMessage,
    StoreError,
)


@pytest.fixture
def imap_config() -> MailboxConfig:
    return MailboxConfig(
        server="imap.test.com",
        protocol=Protocol.IMAPS,
        username="testuser",
        password=SecretStr("testpass"),
    )


@pytest.fixture
def pop3_config() -> MailboxConfig:
    return MailboxConfig(
        server="pop.test.com",
        protocol=Protocol.POP3,
        username="testuser",
        password=SecretStr("testpass"),
    )


# ------------------------------------------------------------------
# Sample EML builders
# ------------------------------------------------------------------


def _build_plain_email(
    *,
    subject: str = "Test Subject",
    from_addr: str = "sender@example.com",
    to_addr: str = "recipient@example.com",
    body: str = "Hello, World!",
    message_id: str | None = "<test-001@example.com>",
    date: str | None = "Sun, 01 Jun 2025 12:00:00 +0000",
) -> bytes:
    """Build a simple plain-text email as raw bytes."""
    msg = MIMEText(body, "plain")
    msg["Subject"] = subject
    msg["From"] = from_addr
    msg["To"] = to_addr
    if message_id is not None:
        msg["Message-ID"] = message_id
    if date is not None:
        msg["Date"] = date
    return msg.as_bytes()


def _build_html_email(*, body_html: str = "<p>Hello</p>") -> bytes:
    msg = MIMEText(body_html, "html")
    msg["Subject"] = "HTML Email"
    msg["From"] = "sender@example.com"
    msg["To"] = "recipient@example.com"
    msg["Message-ID"] = "<html-001@example.com>"
    msg["Date"] = "Sun, 01 Jun 2025 12:00:00 +0000"
    return msg.as_bytes()


def _build_multipart_email(
    *,
    body_text: str = "Plain body",
    body_html: str = "<p>HTML body</p>",
    attachments: list[tuple[str, str, bytes]] | None = None,
    message_id: str = "<multi-001@example.com>",
) -> bytes:
    """Build a multipart email with text, HTML, and optional attachments."""
    msg = MIMEMultipart("mixed")
    msg["Subject"] = "Multipart Email"
    msg["From"] = "sender@example.com"
    msg["To"] = "recipient@example.com"
    msg["Message-ID"] = message_id
    msg["Date"] = "Sun, 01 Jun 2025 12:00:00 +0000"

    # Text + HTML alternative
    alt = MIMEMultipart("alternative")
    alt.attach(MIMEText(body_text, "plain"))
    alt.attach(MIMEText(body_html, "html"))
    msg.attach(alt)

    for filename, content_type, payload in attachments or []:
        maintype, subtype = content_type.split("/", 1)
        part = MIMEBase(maintype, subtype)
        part.set_payload(payload)
        encoders.encode_base64(part)
        part.add_header("Content-Disposition", "attachment", filename=filename)
        msg.attach(part)

    return msg.as_bytes()


@pytest.fixture
def plain_eml_bytes() -> bytes:
    return _build_plain_email()


@pytest.fixture
def html_eml_bytes() -> bytes:
    return _build_html_email()


@pytest.fixture
def multipart_eml_bytes() -> bytes:
    return _build_multipart_email(
        attachments=[
            ("report.pdf", "application/pdf", b"%PDF-1.4 fake pdf content"),
            ("data.csv", "text/csv", b"col1,col2\na,b\n"),
        ],
    )


@pytest.fixture
def inbox_messages() -> list[bytes]:
    """Three messages, only the second of which is about an invoice."""
    return [
        _build_plain_email(subject="Lunch", message_id="<a@x>", body="Pizza?"),
        _build_plain_email(subject="Invoice 42", message_id="<b@x>", body="Please pay."),
        _build_plain_email(subject="Hello", message_id="<c@x>", body="Hi there"),
    ]


# ------------------------------------------------------------------
# In-memory mail store
# ------------------------------------------------------------------


class FakeFolder(MailFolder):
    def __init__(self, store: FakeStore, name: str) -> None:
        super().__init__(name)
        self._store = store

    def _raw(self) -> list[bytes]:
        return self._store.folders[self.name]

    def _ref(self, index: int, raw: bytes) -> StoredMessage:
        message = email.message_from_bytes(raw, policy=email.policy.default)
        value = message.get("Message-ID")
        return StoredMessage(key=str(index), message_id=str(value).strip() if value else None)

    def messages(self) -> list[StoredMessage]:
        self._store.raise_pending("messages")
        return [self._ref(i, raw) for i, raw in enumerate(self._raw())]

    def search(self, term: SearchTerm) -> list[StoredMessage]:
        self._store.raise_pending("search")
        self._store.searches.append(term)
        return [
            self._ref(i, raw)
            for i, raw in enumerate(self._raw())
            if term.matches(email.message_from_bytes(raw, policy=email.policy.default))
        ]

    def fetch(self, message: StoredMessage) -> FetchedMessage:
        self._store.raise_pending("fetch")
        if message.key in self._store.vanished:
            raise MessageGone(f"message {message.key} expunged")
        raw = self._raw()[int(message.key)]
        return FetchedMessage(key=message.key, raw_bytes=raw, size=len(raw))

    def _close(self) -> None:
        self._store.closed_folders.append(self.name)


class FakeStore(MailStore):
    """A mail store held entirely in memory.

    ``failures`` maps an operation name (``open``, ``messages``, ``search``,
    ``fetch``, ``list``, ``connect``) to the exception it should raise.
    """

    def __init__(self, folders: dict[str, list[bytes]] | None = None) -> None:
        self.folders: dict[str, list[bytes]] = folders or {"INBOX": []}
        self.failures: dict[str, BaseException] = {}
        self.vanished: set[str] = set()
        self.searches: list[SearchTerm] = []
        self.opened: list[str] = []
        self.closed_folders: list[str] = []
        self.flags: dict[str, frozenset[str]] = {}
        self.connects = 0
        self.closes = 0
        self.root_ok = True

    def raise_pending(self, operation: str) -> None:
        failure = self.failures.get(operation)
        if failure is not None:
            raise failure

    def connect(self) -> None:
        self.raise_pending("connect")
        self.connects += 1

    def close(self) -> None:
        self.closes += 1

    def has_default_folder(self) -> bool:
        self.raise_pending("root")
        return self.root_ok

    def list_folders(self) -> list[FolderInfo]:
        self.raise_pending("list")
        return [FolderInfo(name, self.flags.get(name, frozenset())) for name in self.folders]

    def open_folder(self, name: str) -> FakeFolder:
        self.raise_pending("open")
        if name not in self.folders:
            raise StoreError(f"folder {name!r} not found")
        self.opened.append(name)
        return FakeFolder(self, name)


class RecordingSink(IngestSink):
    """Keeps every ingested document in memory."""

    def __init__(self) -> None:
        self.documents: list[tuple[str, str, str, RepositoryDocument]] = []

    def ingest(self, identifier: str, version: str, uri: str, document: RepositoryDocument) -> None:
        self.documents.append((identifier, version, uri, document))

    @property
    def identifiers(self) -> list[str]:
        return [identifier for identifier, _, _, _ in self.documents]


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_store(inbox_messages: list[bytes]) -> FakeStore:
    return FakeStore({"INBOX": list(inbox_messages), "Archive": []})


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(autouse=True)
def _reset_structlog():
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()
