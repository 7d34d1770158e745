"""Extraction pipeline: turn seeded Message-IDs into repository documents."""

from __future__ import annotations

import email
import email.policy
import io
from collections.abc import Iterable, Sequence

import structlog

from crawl_connector import (
    CancellationSignal,
    IngestSink,
    JobSpecification,
    RepositoryDocument,
    RepositoryError,
)

from .config import Protocol
from .discovery import folder_name_of, open_folder
from .envelope import address_strings, sent_date, subject_of
from .fields import MetadataField
from .parts import HarvestKind, Harvested, build_part_tree, harvest
from .query import MessageIdTerm
from .store import FetchedMessage, MailStore, MessageGone, StoreError

logger = structlog.get_logger()

_HARVEST_FOR = {
    MetadataField.BODY: HarvestKind.BODY,
    MetadataField.ATTACHMENT_ENCODING: HarvestKind.ATTACHMENT_ENCODING,
    MetadataField.ATTACHMENT_MIMETYPE: HarvestKind.ATTACHMENT_MIMETYPE,
}


def requested_fields(names: Iterable[str]) -> list[MetadataField]:
    """Resolve requested metadata names, keeping first-seen order."""
    fields: list[MetadataField] = []
    for name in names:
        field = MetadataField.lookup(name)
        if field is None:
            logger.warning("unknown_metadata_field", field=name)
        elif field not in fields:
            fields.append(field)
    return fields


def build_document(
    identifier: str,
    fetched: FetchedMessage,
    requested: Sequence[MetadataField],
) -> tuple[str, RepositoryDocument]:
    """Assemble the document for one fetched message.

    Returns ``(uri, document)``; the URI is the subject (when requested)
    followed by the identifier.
    """
    message = email.message_from_bytes(fetched.raw_bytes, policy=email.policy.default)

    document = RepositoryDocument(file_name=message.get_filename())
    document.set_binary(io.BytesIO(fetched.raw_bytes), fetched.size)

    subject = ""
    harvested: list[Harvested] | None = None

    for field in requested:
        key = field.document_key
        if field is MetadataField.TO:
            values = address_strings(message, "To")
        elif field is MetadataField.FROM:
            values = address_strings(message, "From")
        elif field is MetadataField.SUBJECT:
            subject = subject_of(message)
            values = [subject]
        elif field is MetadataField.DATE:
            date = sent_date(message)
            values = [date] if date is not None else []
        else:
            if harvested is None:
                harvested = harvest(build_part_tree(message))
            kind = _HARVEST_FOR[field]
            values = [item.value for item in harvested if item.kind is kind]

        if values:
            document.add_field(key, values)

    return subject + identifier, document


def extract_documents(
    store: MailStore,
    protocol: Protocol,
    identifiers: Sequence[str],
    versions: Sequence[str],
    spec: JobSpecification,
    sink: IngestSink,
) -> int:
    """Locate, extract and ingest each identifier; return how many were ingested.

    The folder stays open for the whole batch.  Identifiers that no longer
    match a message are skipped.  A document is only handed to *sink* once
    its message has been read completely.
    """
    folder_name = folder_name_of(spec)
    if folder_name is None:
        logger.info("extraction_skipped", reason="no_folder_filter")
        return 0

    requested = requested_fields(spec.metadata)
    ingested = 0

    try:
        with open_folder(store, protocol, folder_name) as folder:
            for identifier, version in zip(identifiers, versions, strict=True):
                logger.debug("processing_document", identifier=identifier)
                matches = folder.search(MessageIdTerm(identifier))
                if not matches:
                    logger.debug("message_not_found", identifier=identifier, folder=folder_name)
                    continue

                for stored in matches:
                    try:
                        fetched = folder.fetch(stored)
                    except MessageGone:
                        logger.debug("message_vanished", identifier=identifier, key=stored.key)
                        continue

                    uri, document = build_document(identifier, fetched, requested)
                    sink.ingest(identifier, version, uri, document)
                    ingested += 1
    except InterruptedError as exc:
        logger.info("extraction_cancelled", folder=folder_name)
        raise CancellationSignal(f"Email read interrupted: {exc}") from exc
    except StoreError as exc:
        logger.error("extraction_failed", folder=folder_name, error=str(exc))
        raise RepositoryError(f"Email exception: {exc}") from exc

    logger.info("documents_extracted", folder=folder_name, ingested=ingested)
    return ingested
