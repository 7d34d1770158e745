"""Typed MIME part tree and the walk that harvests bodies and attachments.

:func:`build_part_tree` turns a parsed message into an immutable tree of
:class:`MessagePart` nodes (multipart containers hold ordered children,
everything else is a leaf).  :func:`harvest` flattens the tree, depth-first
in document order, into ``(kind, value)`` results the extraction pipeline
picks from.
"""

from __future__ import annotations

from dataclasses import dataclass
from email.message import EmailMessage, Message
from enum import Enum

BODY_TYPES = frozenset({"text/plain", "text/html"})


class Disposition(Enum):
    """How a part is meant to be presented."""

    ATTACHMENT = "attachment"
    INLINE = "inline"
    NONE = "none"

    @classmethod
    def of(cls, part: Message) -> Disposition:
        value = part.get_content_disposition()
        if value == "attachment":
            return cls.ATTACHMENT
        if value == "inline":
            return cls.INLINE
        return cls.NONE


@dataclass(frozen=True)
class MessagePart:
    content_type: str
    disposition: Disposition
    filename: str | None = None
    declared_filename: str | None = None
    content: str | bytes | None = None
    children: tuple[MessagePart, ...] = ()

    @property
    def is_container(self) -> bool:
        return self.content_type.startswith("multipart/")


class HarvestKind(Enum):
    BODY = "body"
    ATTACHMENT_ENCODING = "attachment_encoding"
    ATTACHMENT_MIMETYPE = "attachment_mimetype"


@dataclass(frozen=True)
class Harvested:
    kind: HarvestKind
    value: str


def declared_filename(part: Message) -> str | None:
    """The part's filename exactly as sent, without RFC 2047 decoding.

    ``email.policy.default`` decodes encoded-word filenames; the raw header
    values are re-read through a compat32 message, which does not.
    """
    raw = Message()
    for name, value in part.raw_items():
        if name.lower() in ("content-disposition", "content-type"):
            raw[name] = value
    return raw.get_filename()


def encoding_suffix(filename: str | None) -> str:
    """Second ``?``-separated segment of a declared attachment filename.

    For an encoded-word filename such as ``=?utf-8?B?cmVwb3J0LnBkZg==?=``
    this is the charset.  It is a narrow heuristic, not a content-encoding
    detector: plain filenames yield ``""``.
    """
    if not filename:
        return ""
    segments = filename.split("?")
    return segments[1] if len(segments) > 1 else ""


def text_content(part: EmailMessage) -> str | None:
    """Decoded text of a text/* leaf; ``None`` for anything else."""
    if part.get_content_maintype() != "text":
        return None
    try:
        content = part.get_content()
    except LookupError:
        # Unknown charset label.
        payload = part.get_payload(decode=True) or b""
        return payload.decode("utf-8", errors="replace")
    return content if isinstance(content, str) else None


def _leaf_content(part: EmailMessage) -> str | bytes | None:
    if part.get_content_maintype() == "text":
        return text_content(part)
    return part.get_payload(decode=True)


def build_part_tree(part: EmailMessage) -> MessagePart:
    """Build the part tree rooted at *part* (usually the whole message)."""
    content_type = part.get_content_type()
    disposition = Disposition.of(part)

    if part.get_content_maintype() == "multipart":
        children = tuple(build_part_tree(child) for child in part.iter_parts())
        return MessagePart(content_type=content_type, disposition=disposition, children=children)

    return MessagePart(
        content_type=content_type,
        disposition=disposition,
        filename=part.get_filename(),
        declared_filename=declared_filename(part),
        content=_leaf_content(part),
    )


def harvest(root: MessagePart) -> list[Harvested]:
    """Flatten the tree into body texts and attachment descriptors.

    * Leaves without an attachment/inline disposition whose type is
      ``text/plain`` or ``text/html`` yield their text verbatim as BODY.
    * Attachment and inline leaves yield one ATTACHMENT_MIMETYPE and one
      ATTACHMENT_ENCODING each, so the two lists stay aligned.
    """
    results: list[Harvested] = []
    stack: list[MessagePart] = [root]
    while stack:
        part = stack.pop()
        if part.is_container:
            stack.extend(reversed(part.children))
            continue

        if part.disposition in (Disposition.ATTACHMENT, Disposition.INLINE):
            results.append(Harvested(HarvestKind.ATTACHMENT_MIMETYPE, part.content_type))
            results.append(
                Harvested(
                    HarvestKind.ATTACHMENT_ENCODING,
                    encoding_suffix(part.declared_filename),
                )
            )
        elif part.content_type in BODY_TYPES and isinstance(part.content, str):
            results.append(Harvested(HarvestKind.BODY, part.content))
    return results
