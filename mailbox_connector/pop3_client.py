"""POP3/POP3S mail store on top of stdlib poplib.

POP3 has a single mailbox and no server-side search, so every folder name
resolves to the inbox and predicates are evaluated locally.  Each opened
folder is its own POP3 transaction (login ... QUIT); the maildrop lock is
released when the folder is closed.
"""

from __future__ import annotations

import email
import email.parser
import email.policy
import poplib

import structlog

from .config import MailboxConfig, Protocol
from .fields import FOLDER_INBOX
from .query import MATCH_ALL, MessageIdTerm, SearchTerm
from .store import (
    FetchedMessage,
    FolderInfo,
    MailFolder,
    MailStore,
    MessageGone,
    StoredMessage,
    StoreError,
    store_errors,
)

logger = structlog.get_logger()


def _join_lines(lines: list[bytes]) -> bytes:
    return b"\r\n".join(lines) + b"\r\n"


def _message_id(headers: email.message.Message) -> str | None:
    value = headers.get("Message-ID")
    return str(value).strip() if value else None


class Pop3Folder(MailFolder):
    """The POP3 maildrop, addressed by message number."""

    def __init__(self, conn: poplib.POP3) -> None:
        super().__init__(FOLDER_INBOX)
        self._conn = conn
        self._sizes: dict[str, int] | None = None
        self._refs: list[StoredMessage] | None = None

    def messages(self) -> list[StoredMessage]:
        if self._refs is not None:
            return list(self._refs)

        refs: list[StoredMessage] = []
        for number in self._listing():
            with store_errors(f"POP3 TOP {number} failed", poplib.error_proto):
                _, lines, _ = self._conn.top(int(number), 0)
            headers = email.parser.BytesHeaderParser(policy=email.policy.default).parsebytes(
                _join_lines(lines)
            )
            refs.append(StoredMessage(key=number, message_id=_message_id(headers)))
        self._refs = refs
        return list(refs)

    def search(self, term: SearchTerm) -> list[StoredMessage]:
        if term is MATCH_ALL:
            return self.messages()
        if isinstance(term, MessageIdTerm):
            # Headers from TOP are enough; avoid downloading every message.
            wanted = term.message_id.strip()
            return [ref for ref in self.messages() if ref.message_id == wanted]

        refs: list[StoredMessage] = []
        for number in self._listing():
            fetched = self._retrieve(number)
            message = email.message_from_bytes(fetched.raw_bytes, policy=email.policy.default)
            if term.matches(message):
                refs.append(StoredMessage(key=number, message_id=_message_id(message)))
        return refs

    def fetch(self, message: StoredMessage) -> FetchedMessage:
        if message.key not in self._listing():
            raise MessageGone(f"POP3 message {message.key} no longer exists")
        return self._retrieve(message.key)

    def _listing(self) -> dict[str, int]:
        """Message number -> declared size, read once per open folder."""
        if self._sizes is None:
            with store_errors("POP3 LIST failed", poplib.error_proto):
                _, lines, _ = self._conn.list()
            sizes: dict[str, int] = {}
            for line in lines:
                number, _, octets = line.decode("ascii").partition(" ")
                sizes[number] = int(octets or 0)
            self._sizes = sizes
        return self._sizes

    def _retrieve(self, number: str) -> FetchedMessage:
        with store_errors(f"POP3 RETR {number} failed", poplib.error_proto):
            _, lines, octets = self._conn.retr(int(number))
        raw_bytes = _join_lines(lines)
        size = self._listing().get(number) or octets
        return FetchedMessage(key=number, raw_bytes=raw_bytes, size=size)

    def _close(self) -> None:
        with store_errors("POP3 QUIT failed", poplib.error_proto):
            self._conn.quit()


class Pop3Store(MailStore):
    """POP3 account credentials plus the means to open the maildrop.

    ``connect`` performs a full login to validate the account, then ends
    that transaction again so the maildrop is not held locked while idle.
    """

    def __init__(self, config: MailboxConfig) -> None:
        self._config = config
        self._connected = False

    @property
    def connected(self) -> bool:
        return self._connected

    def connect(self) -> None:
        conn = self._login()
        try:
            with store_errors("POP3 QUIT failed", poplib.error_proto):
                conn.quit()
        except StoreError:
            conn.close()
            raise
        self._connected = True
        logger.info(
            "pop3_connected",
            host=self._config.server,
            port=self._config.effective_port,
        )

    def close(self) -> None:
        if self._connected:
            self._connected = False
            logger.info("pop3_disconnected")

    def has_default_folder(self) -> bool:
        return self._connected

    def list_folders(self) -> list[FolderInfo]:
        self._require()
        return [FolderInfo(name=FOLDER_INBOX)]

    def open_folder(self, name: str) -> Pop3Folder:
        self._require()
        if name != FOLDER_INBOX:
            logger.debug("pop3_folder_name_ignored", requested=name)
        return Pop3Folder(self._login())

    def _login(self) -> poplib.POP3:
        host, port = self._config.server, self._config.effective_port
        kwargs = {"timeout": self._config.timeout} if self._config.timeout else {}
        with store_errors(f"POP3 connect to {host}:{port} failed", poplib.error_proto):
            if self._config.protocol is Protocol.POP3S:
                conn = poplib.POP3_SSL(host, port, **kwargs)
            else:
                conn = poplib.POP3(host, port, **kwargs)
            try:
                conn.user(self._config.username)
                conn.pass_(self._config.password.get_secret_value())
            except BaseException:
                conn.close()
                raise
        return conn

    def _require(self) -> None:
        if not self._connected:
            raise StoreError("POP3 store is not connected")
