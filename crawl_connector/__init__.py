"""Crawl Connector Framework.

Public API re-exported here for convenience::

    from crawl_connector import RepositoryConnector, IngestSink, RepositoryDocument
"""

from .config import ConnectorConfig, IngestionAPIConfig, RetryConfig
from .errors import CancellationSignal, ConnectorError, RepositoryError, ServiceInterruption
from .ingestion_client import HttpIngestionSink
from .interface import IngestSink, RepositoryConnector
from .logging import setup_logging, setup_logging_from
from .models import (
    ConnectorModel,
    FilterEntry,
    IngestRequest,
    JobSpecification,
    RepositoryDocument,
)
from .retry import with_retry

__all__ = [
    "CancellationSignal",
    "ConnectorConfig",
    "ConnectorError",
    "ConnectorModel",
    "FilterEntry",
    "HttpIngestionSink",
    "IngestRequest",
    "IngestSink",
    "IngestionAPIConfig",
    "JobSpecification",
    "RepositoryConnector",
    "RepositoryDocument",
    "RepositoryError",
    "RetryConfig",
    "ServiceInterruption",
    "setup_logging",
    "setup_logging_from",
    "with_retry",
]
