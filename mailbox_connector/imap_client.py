"""IMAP/IMAPS mail store on top of stdlib imaplib."""

from __future__ import annotations

import base64
import binascii
import email
import email.parser
import email.policy
import imaplib
import re

import structlog

from .config import MailboxConfig, Protocol
from .query import MessageIdTerm, SearchTerm
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

_LIST_LINE = re.compile(r'^\((?P<flags>[^)]*)\)\s+(?P<delim>"[^"]*"|NIL)\s+(?P<name>.+)$')
_UID = re.compile(rb"UID (\d+)")
_SIZE = re.compile(rb"RFC822\.SIZE (\d+)")

_MESSAGE_ID_FETCH = "(UID BODY.PEEK[HEADER.FIELDS (MESSAGE-ID)])"
_FULL_FETCH = "(UID RFC822.SIZE BODY.PEEK[])"

# UIDs per header FETCH command.
_HEADER_BATCH = 500

_SHIFTED = re.compile(r"&([^-]*)-")


def encode_mailbox(name: str) -> str:
    """Encode a folder name as IMAP modified UTF-7 (RFC 3501 section 5.1.3)."""
    out: list[str] = []
    pending: list[str] = []

    def flush() -> None:
        if pending:
            raw = "".join(pending).encode("utf-16-be")
            encoded = base64.b64encode(raw).decode("ascii").rstrip("=").replace("/", ",")
            out.append(f"&{encoded}-")
            pending.clear()

    for char in name:
        if 0x20 <= ord(char) <= 0x7E:
            flush()
            out.append("&-" if char == "&" else char)
        else:
            pending.append(char)
    flush()
    return "".join(out)


def decode_mailbox(name: str) -> str:
    """Decode a modified UTF-7 folder name; malformed names are returned as-is."""

    def replace(match: re.Match[str]) -> str:
        chunk = match.group(1)
        if not chunk:
            return "&"
        padded = chunk.replace(",", "/") + "=" * (-len(chunk) % 4)
        return base64.b64decode(padded, validate=True).decode("utf-16-be")

    try:
        return _SHIFTED.sub(replace, name)
    except (binascii.Error, UnicodeDecodeError):
        return name


def _quote(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def quote_mailbox(name: str) -> str:
    """Quoted, modified UTF-7 form of *name* for use in a command."""
    return _quote(encode_mailbox(name))


def parse_list_line(line: bytes | tuple[bytes, bytes]) -> FolderInfo | None:
    """Parse one untagged ``LIST`` response into a :class:`FolderInfo`."""
    if isinstance(line, tuple):
        # Literal mailbox name: (b'(\\HasNoChildren) "/" {5}', b'Inbox')
        head, literal = line
        text = head.decode("utf-8", errors="replace")
        text = re.sub(r"\{\d+\}$", "", text).rstrip() + " " + _quote_literal(literal)
    else:
        text = line.decode("utf-8", errors="replace")

    match = _LIST_LINE.match(text.strip())
    if not match:
        return None

    flags = frozenset(token for token in match.group("flags").split() if token)
    raw_name = match.group("name").strip()
    if raw_name.startswith('"') and raw_name.endswith('"'):
        name = raw_name[1:-1].replace('\\"', '"').replace("\\\\", "\\")
    else:
        name = raw_name
    return FolderInfo(name=decode_mailbox(name), flags=flags)


def _quote_literal(literal: bytes) -> str:
    return _quote(literal.decode("utf-8", errors="replace"))


def _response_parts(data: list) -> list[tuple[bytes, bytes]]:
    """Keep the ``(envelope, payload)`` tuples of a FETCH response."""
    return [item for item in data if isinstance(item, tuple)]


def _message_id_of(header_bytes: bytes) -> str | None:
    headers = email.parser.BytesHeaderParser(policy=email.policy.default).parsebytes(
        header_bytes
    )
    value = headers.get("Message-ID")
    return str(value).strip() if value else None


class ImapFolder(MailFolder):
    """A mailbox selected with ``EXAMINE``.  Messages are addressed by UID."""

    def __init__(self, conn: imaplib.IMAP4, name: str) -> None:
        super().__init__(name)
        self._conn = conn

    def messages(self) -> list[StoredMessage]:
        return self._references(self._search_uids("ALL"))

    def search(self, term: SearchTerm) -> list[StoredMessage]:
        criteria = term.to_imap()
        if not criteria.isascii():
            # imaplib only sends ASCII commands; evaluate locally instead.
            logger.debug("imap_search_client_side", folder=self.name)
            return [
                ref
                for ref in self.messages()
                if term.matches(self._parse(self.fetch(ref).raw_bytes))
            ]

        refs = self._references(self._search_uids(criteria))
        if isinstance(term, MessageIdTerm):
            # HEADER search is a substring match; keep exact hits only.
            refs = [ref for ref in refs if ref.message_id == term.message_id.strip()]
        return refs

    def fetch(self, message: StoredMessage) -> FetchedMessage:
        with store_errors(f"IMAP fetch of UID {message.key} failed", imaplib.IMAP4.error):
            status, data = self._conn.uid("FETCH", message.key, _FULL_FETCH)
        if status != "OK":
            raise StoreError(f"IMAP fetch of UID {message.key} failed: {data}")

        parts = _response_parts(data or [])
        if not parts:
            raise MessageGone(f"UID {message.key} no longer exists in {self.name!r}")

        envelope, raw_bytes = parts[0]
        size_match = _SIZE.search(envelope)
        size = int(size_match.group(1)) if size_match else len(raw_bytes)
        return FetchedMessage(key=message.key, raw_bytes=raw_bytes, size=size)

    def _search_uids(self, criteria: str) -> list[str]:
        with store_errors(f"IMAP search in {self.name!r} failed", imaplib.IMAP4.error):
            status, data = self._conn.uid("SEARCH", None, criteria)
        if status != "OK":
            raise StoreError(f"IMAP search in {self.name!r} failed: {data}")
        if not data or not data[0]:
            return []
        return [uid.decode() for uid in data[0].split()]

    def _references(self, uids: list[str]) -> list[StoredMessage]:
        """Read the Message-ID of every UID, batching the header FETCH."""
        message_ids: dict[str, str | None] = {}
        for start in range(0, len(uids), _HEADER_BATCH):
            uid_set = ",".join(uids[start : start + _HEADER_BATCH])
            with store_errors("IMAP header fetch failed", imaplib.IMAP4.error):
                status, data = self._conn.uid("FETCH", uid_set, _MESSAGE_ID_FETCH)
            if status != "OK":
                raise StoreError(f"IMAP header fetch failed: {data}")

            for envelope, header in _response_parts(data or []):
                uid_match = _UID.search(envelope)
                if uid_match:
                    message_ids[uid_match.group(1).decode()] = _message_id_of(header)

        return [StoredMessage(key=uid, message_id=message_ids.get(uid)) for uid in uids]

    @staticmethod
    def _parse(raw_bytes: bytes) -> email.message.EmailMessage:
        return email.message_from_bytes(raw_bytes, policy=email.policy.default)

    def _close(self) -> None:
        with store_errors(f"IMAP close of {self.name!r} failed", imaplib.IMAP4.error):
            self._conn.close()


class ImapStore(MailStore):
    """An authenticated IMAP connection (``imaps`` wraps it in TLS)."""

    def __init__(self, config: MailboxConfig) -> None:
        self._config = config
        self._conn: imaplib.IMAP4 | None = None

    @property
    def connected(self) -> bool:
        return self._conn is not None

    def connect(self) -> None:
        host, port = self._config.server, self._config.effective_port
        with store_errors(f"IMAP connect to {host}:{port} failed", imaplib.IMAP4.error):
            if self._config.protocol is Protocol.IMAPS:
                conn = imaplib.IMAP4_SSL(host, port, timeout=self._config.timeout)
            else:
                conn = imaplib.IMAP4(host, port, timeout=self._config.timeout)
            try:
                conn.login(self._config.username, self._config.password.get_secret_value())
            except BaseException:
                conn.shutdown()
                raise
        self._conn = conn
        logger.info("imap_connected", host=host, port=port)

    def close(self) -> None:
        if self._conn is None:
            return
        conn, self._conn = self._conn, None
        with store_errors("IMAP logout failed", imaplib.IMAP4.error):
            conn.logout()
        logger.info("imap_disconnected")

    def has_default_folder(self) -> bool:
        conn = self._require()
        with store_errors("IMAP root listing failed", imaplib.IMAP4.error):
            status, _ = conn.list('""', '""')
        return status == "OK"

    def list_folders(self) -> list[FolderInfo]:
        conn = self._require()
        with store_errors("IMAP folder listing failed", imaplib.IMAP4.error):
            status, data = conn.list('""', "*")
        if status != "OK":
            raise StoreError(f"IMAP folder listing failed: {data}")

        folders: list[FolderInfo] = []
        for line in data or []:
            if not line:
                continue
            folder = parse_list_line(line)
            if folder is not None:
                folders.append(folder)
        return folders

    def open_folder(self, name: str) -> ImapFolder:
        conn = self._require()
        with store_errors(f"IMAP examine of {name!r} failed", imaplib.IMAP4.error):
            status, data = conn.select(quote_mailbox(name), readonly=True)
        if status != "OK":
            raise StoreError(f"Cannot open folder {name!r}: {data}")
        logger.debug("imap_folder_opened", folder=name)
        return ImapFolder(conn, name)

    def _require(self) -> imaplib.IMAP4:
        if self._conn is None:
            raise StoreError("IMAP store is not connected")
        return self._conn
