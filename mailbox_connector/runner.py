"""One-shot crawl: discovery pass, then extraction in scheduler-sized batches.

This is what the external scheduler does on each job run, reduced to a
single process: each pass is retried on transient failures only.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence

import structlog

from crawl_connector import IngestSink, JobSpecification, RetryConfig, with_retry

from .connector import MailboxConnector

logger = structlog.get_logger()


def batched(items: Sequence[str], size: int) -> Iterator[Sequence[str]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


def run_crawl(
    connector: MailboxConnector,
    spec: JobSpecification,
    sink: IngestSink,
    retry: RetryConfig,
) -> int:
    """Discover and process every seed; return the number of seeds."""
    retrying = with_retry(retry)

    seeds = retrying(connector.add_seed_documents)(spec)
    logger.info("crawl_seeded", seeds=len(seeds))

    for batch in batched(seeds, connector.max_document_request):
        versions = connector.get_document_versions(batch, spec)
        retrying(connector.process_documents)(batch, versions, spec, sink)
        connector.poll()

    logger.info("crawl_complete", seeds=len(seeds))
    return len(seeds)
