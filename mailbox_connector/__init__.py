"""Mailbox Connector — crawls POP3/IMAP mailboxes into repository documents."""

from .config import MailboxConfig, MailboxConnectorConfig, Protocol
from .connector import MailboxConnector, versions_of
from .discovery import discover_seeds
from .envelope import address_strings, sent_date, subject_of
from .extractor import build_document, extract_documents
from .fields import EMAIL_VERSION, MetadataField
from .folders import list_folder_names
from .imap_client import ImapStore
from .pop3_client import Pop3Store
from .query import MATCH_ALL, SearchTerm, compile_filters
from .runner import run_crawl
from .session import SessionManager
from .store import FolderInfo, MailFolder, MailStore, StoreError

__all__ = [
    "EMAIL_VERSION",
    "MATCH_ALL",
    "FolderInfo",
    "ImapStore",
    "MailFolder",
    "MailStore",
    "MailboxConfig",
    "MailboxConnector",
    "MailboxConnectorConfig",
    "MetadataField",
    "Pop3Store",
    "Protocol",
    "SearchTerm",
    "SessionManager",
    "StoreError",
    "address_strings",
    "build_document",
    "compile_filters",
    "discover_seeds",
    "extract_documents",
    "list_folder_names",
    "run_crawl",
    "sent_date",
    "subject_of",
    "versions_of",
]
