"""Entry point for the mailbox connector package.

Usage::

    python -m mailbox_connector check            # test the connection
    python -m mailbox_connector folders          # list crawlable folders
    python -m mailbox_connector seeds JOB.json   # print discovered Message-IDs
    python -m mailbox_connector crawl JOB.json   # discover + extract + ingest

Connection settings come from ``MAILBOX_*`` environment variables; the job
file is a JSON :class:`~crawl_connector.JobSpecification`.
"""

from __future__ import annotations

import sys
from pathlib import Path

from crawl_connector import (
    HttpIngestionSink,
    JobSpecification,
    setup_logging_from,
    with_retry,
)

from .config import MailboxConnectorConfig
from .connector import MailboxConnector
from .runner import run_crawl
from .session import STATUS_OK

_USAGE = "Usage: python -m mailbox_connector <check|folders|seeds JOB|crawl JOB>"
_MODES = ("check", "folders", "seeds", "crawl")


def _load_job(path: str) -> JobSpecification:
    return JobSpecification.model_validate_json(Path(path).read_text(encoding="utf-8"))


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    if not args or args[0] not in _MODES or (args[0] in ("seeds", "crawl") and len(args) < 2):
        print(_USAGE, file=sys.stderr)
        return 1

    mode = args[0]
    config = MailboxConnectorConfig(name="mailbox")
    setup_logging_from(config)

    connector = MailboxConnector(config.session_ttl_seconds)
    connector.connect(config.mailbox)
    retrying = with_retry(config.retry)

    try:
        if mode == "check":
            status = connector.check()
            print(status)
            return 0 if status == STATUS_OK else 2

        if mode == "folders":
            for name in retrying(connector.list_folders)():
                print(name)
            return 0

        spec = _load_job(args[1])
        if mode == "seeds":
            for identifier in retrying(connector.add_seed_documents)(spec):
                print(identifier)
            return 0

        with HttpIngestionSink(config.ingestion_api) as sink:
            run_crawl(connector, spec, sink, config.retry)
        return 0
    finally:
        connector.disconnect()


if __name__ == "__main__":
    sys.exit(main())
