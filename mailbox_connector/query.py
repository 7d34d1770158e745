"""Search predicates and the compiler that builds them from job filters.

A predicate is a small immutable tree.  Every node can render itself as
IMAP ``SEARCH`` criteria for server-side evaluation, and can also be
evaluated locally against a parsed message for stores (POP3) or criteria
(non-ASCII) the server cannot handle.
"""

from __future__ import annotations

import abc
from collections.abc import Iterable
from dataclasses import dataclass
from email.message import EmailMessage
from types import MappingProxyType

import structlog

from crawl_connector import FilterEntry

from .parts import text_content

logger = structlog.get_logger()


def _imap_quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _contains(haystack: str | None, needle: str) -> bool:
    return haystack is not None and needle.casefold() in haystack.casefold()


class SearchTerm(abc.ABC):
    """A node of a search predicate tree."""

    @abc.abstractmethod
    def to_imap(self) -> str:
        """Render as IMAP SEARCH criteria."""

    @abc.abstractmethod
    def matches(self, message: EmailMessage) -> bool:
        """Evaluate against a message parsed with ``email.policy.default``."""

    def leaves(self) -> list[SearchTerm]:
        return [self]


class _MatchAll(SearchTerm):
    def to_imap(self) -> str:
        return "ALL"

    def matches(self, message: EmailMessage) -> bool:
        return True

    def leaves(self) -> list[SearchTerm]:
        return []

    def __repr__(self) -> str:
        return "MATCH_ALL"


MATCH_ALL: SearchTerm = _MatchAll()


@dataclass(frozen=True)
class SubjectTerm(SearchTerm):
    pattern: str

    def to_imap(self) -> str:
        return f"SUBJECT {_imap_quote(self.pattern)}"

    def matches(self, message: EmailMessage) -> bool:
        return _contains(message.get("Subject"), self.pattern)


@dataclass(frozen=True)
class FromTerm(SearchTerm):
    pattern: str

    def to_imap(self) -> str:
        return f"FROM {_imap_quote(self.pattern)}"

    def matches(self, message: EmailMessage) -> bool:
        return _contains(message.get("From"), self.pattern)


@dataclass(frozen=True)
class ToTerm(SearchTerm):
    pattern: str

    def to_imap(self) -> str:
        return f"TO {_imap_quote(self.pattern)}"

    def matches(self, message: EmailMessage) -> bool:
        return any(_contains(value, self.pattern) for value in message.get_all("To", []))


@dataclass(frozen=True)
class BodyTerm(SearchTerm):
    pattern: str

    def to_imap(self) -> str:
        return f"BODY {_imap_quote(self.pattern)}"

    def matches(self, message: EmailMessage) -> bool:
        return any(_contains(text_content(part), self.pattern) for part in message.walk())


@dataclass(frozen=True)
class MessageIdTerm(SearchTerm):
    """Exact match on the Message-ID header.

    IMAP ``HEADER`` search is a substring match, so stores re-check server
    hits with :meth:`matches`.
    """

    message_id: str

    def to_imap(self) -> str:
        return f"HEADER Message-ID {_imap_quote(self.message_id)}"

    def matches(self, message: EmailMessage) -> bool:
        value = message.get("Message-ID")
        return value is not None and str(value).strip() == self.message_id.strip()


@dataclass(frozen=True)
class AndTerm(SearchTerm):
    left: SearchTerm
    right: SearchTerm

    def to_imap(self) -> str:
        # IMAP ANDs juxtaposed search keys.
        return f"{self.left.to_imap()} {self.right.to_imap()}"

    def matches(self, message: EmailMessage) -> bool:
        return self.left.matches(message) and self.right.matches(message)

    def leaves(self) -> list[SearchTerm]:
        return self.left.leaves() + self.right.leaves()


LEAF_TERMS: MappingProxyType[str, type[SearchTerm]] = MappingProxyType(
    {
        "subject": SubjectTerm,
        "from": FromTerm,
        "to": ToTerm,
        "body": BodyTerm,
    }
)


def compile_filters(entries: Iterable[FilterEntry]) -> SearchTerm:
    """Compile filter entries into a single conjunctive predicate.

    Field names are matched case-insensitively.  Unknown names are logged
    and dropped; a filter set with no usable entries compiles to
    :data:`MATCH_ALL`.  Terms are ANDed left to right in input order.
    """
    term: SearchTerm | None = None
    for entry in entries:
        name = entry.name.lower()
        leaf_type = LEAF_TERMS.get(name)
        if leaf_type is None:
            logger.warning("unknown_filter_field", field=entry.name)
            continue

        logger.debug("filter_term_compiled", field=name, value=entry.value)
        leaf = leaf_type(entry.value)
        term = leaf if term is None else AndTerm(term, leaf)

    return term if term is not None else MATCH_ALL
