"""Folder enumeration for configuration screens."""

from __future__ import annotations

import structlog

from crawl_connector import CancellationSignal, RepositoryError

from .store import MailStore, StoreError

logger = structlog.get_logger()


def list_folder_names(store: MailStore) -> list[str]:
    """Names of every folder that can hold messages, sorted."""
    try:
        folders = store.list_folders()
    except InterruptedError as exc:
        raise CancellationSignal(f"Folder listing interrupted: {exc}") from exc
    except StoreError as exc:
        logger.error("folder_listing_failed", error=str(exc))
        raise RepositoryError(f"Can't get folder list: {exc}") from exc

    return sorted(folder.name for folder in folders if folder.holds_messages)
