"""Field vocabulary shared by the filter, metadata and extraction code."""

from __future__ import annotations

from enum import Enum

# Reserved filter name selecting the folder to crawl rather than a predicate.
FOLDER_FILTER = "folder"

# Every message reports the same version: the store offers no change detection.
EMAIL_VERSION = "1.0"

FOLDER_INBOX = "INBOX"

ACTIVITY_FETCH = "fetch"
RELATIONSHIP_CHILD = "child"

MAX_DOCUMENT_REQUEST = 50


class MetadataField(str, Enum):
    """Metadata a job may request, by the name used in job specifications."""

    TO = "to"
    FROM = "from"
    SUBJECT = "subject"
    BODY = "body"
    DATE = "date"
    ATTACHMENT_ENCODING = "attachmentencoding"
    ATTACHMENT_MIMETYPE = "attachmentmimetype"

    @classmethod
    def lookup(cls, name: str) -> MetadataField | None:
        """Case-insensitive lookup; ``None`` for names outside the vocabulary."""
        try:
            return cls(name.lower())
        except ValueError:
            return None

    @property
    def document_key(self) -> str:
        """Key the extracted values are stored under on the document."""
        return _DOCUMENT_KEYS.get(self, self.value)


_DOCUMENT_KEYS = {
    MetadataField.ATTACHMENT_ENCODING: "encoding",
    MetadataField.ATTACHMENT_MIMETYPE: "mimetype",
}

BASIC_METADATA: tuple[str, ...] = tuple(f.value for f in MetadataField)

SEARCHABLE_ATTRIBUTES: tuple[str, ...] = (
    MetadataField.SUBJECT.value,
    MetadataField.FROM.value,
    MetadataField.TO.value,
    MetadataField.BODY.value,
)
