"""Data models for the connector plugin framework."""

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from enum import Enum
from typing import BinaryIO

from pydantic import BaseModel, Field


class ConnectorModel(str, Enum):
    """What kind of change reporting a repository connector supports."""

    ADD = "add"
    ADD_CHANGE = "add_change"
    ADD_CHANGE_DELETE = "add_change_delete"


class FilterEntry(BaseModel):
    """A single ``(name, value)`` filter row of a job specification."""

    model_config = {"frozen": True}

    name: str = Field(description="Filter field name")
    value: str = Field(default="", description="Filter value")


class JobSpecification(BaseModel):
    """Job-level document specification handed to a connector by the scheduler.

    Both lists are ordered exactly as the job was configured; duplicates
    are preserved.
    """

    filters: list[FilterEntry] = Field(
        default_factory=list,
        description="Repeated (name, value) filter entries",
    )
    metadata: list[str] = Field(
        default_factory=list,
        description="Metadata field names requested for extraction",
    )


@dataclass
class RepositoryDocument:
    """A document assembled by a connector and handed to the ingestion sink.

    The connector does not keep a reference once :meth:`IngestSink.ingest`
    returns.
    """

    binary: BinaryIO | None = None
    binary_length: int = 0
    file_name: str | None = None
    fields: dict[str, list[str]] = field(default_factory=dict)

    def set_binary(self, stream: BinaryIO, length: int) -> None:
        self.binary = stream
        self.binary_length = length

    def add_field(self, name: str, values: str | list[str]) -> None:
        """Append one value, or several, to the field *name*."""
        if isinstance(values, str):
            values = [values]
        self.fields.setdefault(name, []).extend(values)


class IngestRequest(BaseModel):
    """Wire body POSTed to the ingestion API for one document."""

    identifier: str = Field(description="Repository-unique document identifier")
    version: str = Field(description="Version token reported for the document")
    uri: str = Field(description="Synthetic document URI")
    file_name: str | None = Field(default=None, description="Declared file name, if any")
    fields: dict[str, list[str]] = Field(
        default_factory=dict,
        description="Extracted metadata, each field holding one or more values",
    )
    content_length: int = Field(description="Declared length of the binary payload")
    content_b64: str = Field(description="Base64-encoded binary payload")

    @classmethod
    def from_document(
        cls,
        identifier: str,
        version: str,
        uri: str,
        document: RepositoryDocument,
    ) -> IngestRequest:
        content = document.binary.read() if document.binary is not None else b""
        return cls(
            identifier=identifier,
            version=version,
            uri=uri,
            file_name=document.file_name,
            fields=document.fields,
            content_length=document.binary_length,
            content_b64=base64.b64encode(content).decode("ascii"),
        )
