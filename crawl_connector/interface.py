"""RepositoryConnector — the ABC that every repository connector implements."""

from __future__ import annotations

import abc
from collections.abc import Sequence
from datetime import datetime
from typing import Any

from .models import ConnectorModel, JobSpecification, RepositoryDocument


class IngestSink(abc.ABC):
    """Receives finished documents from a connector."""

    @abc.abstractmethod
    def ingest(
        self,
        identifier: str,
        version: str,
        uri: str,
        document: RepositoryDocument,
    ) -> None:
        """Take ownership of *document*."""


class RepositoryConnector(abc.ABC):
    """Abstract interface for a pull-model repository connector.

    The scheduler drives a connector in two passes: :meth:`add_seed_documents`
    discovers identifiers, then :meth:`process_documents` is called with
    batches of those identifiers (at most :attr:`max_document_request` at a
    time).  An instance is only ever used by one thread at a time; pooling
    and lifecycle belong to the scheduler.
    """

    connector_model: ConnectorModel = ConnectorModel.ADD_CHANGE_DELETE
    max_document_request: int = 1

    @abc.abstractmethod
    def connect(self, config: Any) -> None:
        """Remember *config*; does not necessarily touch the repository."""

    @abc.abstractmethod
    def disconnect(self) -> None:
        """Release every resource held for the current configuration."""

    def poll(self) -> None:
        """Periodic idle hook.  Override to expire idle sessions."""

    @abc.abstractmethod
    def check(self) -> str:
        """Return a short human-readable connection status."""

    @abc.abstractmethod
    def add_seed_documents(
        self,
        spec: JobSpecification,
        start_time: datetime | None,
        end_time: datetime | None,
    ) -> list[str]:
        """Return the identifiers the job should process."""

    @abc.abstractmethod
    def get_document_versions(
        self,
        identifiers: Sequence[str],
        spec: JobSpecification,
    ) -> list[str]:
        """Return one version token per identifier."""

    @abc.abstractmethod
    def process_documents(
        self,
        identifiers: Sequence[str],
        versions: Sequence[str],
        spec: JobSpecification,
        sink: IngestSink,
    ) -> None:
        """Fetch each identifier and hand the resulting documents to *sink*."""

    @property
    def activities(self) -> list[str]:
        """Activity names this connector records in the history log."""
        return []

    @property
    def relationship_types(self) -> list[str]:
        return []

    def bin_names(self, identifier: str) -> list[str]:
        """Throttling bins the document identified by *identifier* belongs to."""
        return [""]
