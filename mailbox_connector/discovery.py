"""Seed discovery: find the Message-IDs a crawl job should process."""

from __future__ import annotations

from datetime import datetime

import structlog

from crawl_connector import CancellationSignal, FilterEntry, JobSpecification, RepositoryError

from .config import Protocol
from .fields import FOLDER_FILTER, FOLDER_INBOX
from .query import MATCH_ALL, compile_filters
from .store import MailFolder, MailStore, StoreError

logger = structlog.get_logger()


def folder_name_of(spec: JobSpecification) -> str | None:
    """The folder selected by the job's ``folder`` filter (last one wins)."""
    folder: str | None = None
    for entry in spec.filters:
        if entry.name == FOLDER_FILTER:
            folder = entry.value
    return folder


def search_entries(spec: JobSpecification) -> list[FilterEntry]:
    """Filter entries that describe search predicates, in job order."""
    return [entry for entry in spec.filters if entry.name != FOLDER_FILTER]


def open_folder(store: MailStore, protocol: Protocol, name: str) -> MailFolder:
    """Open *name* read-only; POP3 stores always open the inbox."""
    return store.open_folder(name if protocol.has_folders else FOLDER_INBOX)


def discover_seeds(
    store: MailStore,
    protocol: Protocol,
    spec: JobSpecification,
    start_time: datetime | None = None,
    end_time: datetime | None = None,
) -> list[str]:
    """Return the Message-ID of every message matching the job's filters.

    The time window is accepted for symmetry with the scheduler but not
    applied; the store search has no time criterion.  Without a folder
    filter nothing is discovered.  Store failures are not retried here:
    a bad folder name is a configuration problem.
    """
    folder_name = folder_name_of(spec)
    if folder_name is None:
        logger.info("seed_discovery_skipped", reason="no_folder_filter")
        return []

    logger.debug(
        "seed_discovery_started",
        folder=folder_name,
        start_time=start_time.isoformat() if start_time else None,
        end_time=end_time.isoformat() if end_time else None,
    )
    term = compile_filters(search_entries(spec))

    try:
        with open_folder(store, protocol, folder_name) as folder:
            found = folder.messages() if term is MATCH_ALL else folder.search(term)
    except InterruptedError as exc:
        raise CancellationSignal(f"Seed discovery interrupted: {exc}") from exc
    except StoreError as exc:
        logger.error("seed_discovery_failed", folder=folder_name, error=str(exc))
        raise RepositoryError(f"Error finding emails: {exc}") from exc

    seeds: list[str] = []
    for message in found:
        if message.message_id is None:
            logger.warning("message_without_id_skipped", folder=folder_name, key=message.key)
            continue
        seeds.append(message.message_id)

    logger.info("seeds_discovered", folder=folder_name, count=len(seeds))
    return seeds
