"""Envelope field extraction from a parsed message.

Works on messages parsed with ``email.policy.default`` so address and date
headers arrive as structured header objects.
"""

from __future__ import annotations

from email.message import EmailMessage


def address_strings(message: EmailMessage, header: str) -> list[str]:
    """Render every address of *header* as its display string.

    ``"Jane Doe <jane@example.com>"`` when a display name is present,
    the bare address otherwise.  Missing header -> ``[]``.
    """
    value = message.get(header)
    if value is None:
        return []
    addresses = getattr(value, "addresses", None)
    if addresses is None:
        return [str(value)]
    return [str(address) for address in addresses]


def subject_of(message: EmailMessage) -> str:
    return str(message.get("Subject", ""))


def sent_date(message: EmailMessage) -> str | None:
    """The Date header as an ISO-8601 string, ``None`` if absent or unparsable."""
    value = message.get("Date")
    if value is None:
        return None
    parsed = getattr(value, "datetime", None)
    return parsed.isoformat() if parsed is not None else None
