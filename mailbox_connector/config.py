"""Mailbox connector configuration loaded from environment variables."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from enum import Enum

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings

from crawl_connector import ConnectorConfig


class Protocol(str, Enum):
    """Mail store access protocols."""

    POP3 = "pop3"
    POP3S = "pop3s"
    IMAP = "imap"
    IMAPS = "imaps"

    @property
    def default_port(self) -> int:
        return _DEFAULT_PORTS[self]

    @property
    def has_folders(self) -> bool:
        """IMAP stores expose named folders; POP3 only a single inbox."""
        return self in (Protocol.IMAP, Protocol.IMAPS)


_DEFAULT_PORTS = {
    Protocol.POP3: 110,
    Protocol.POP3S: 995,
    Protocol.IMAP: 143,
    Protocol.IMAPS: 993,
}


class MailboxConfig(BaseSettings):
    """Connection settings for the remote mail store.

    Frozen: a connector keeps the same config between ``connect`` and
    ``disconnect``.
    """

    model_config = {"env_prefix": "MAILBOX_", "frozen": True}

    server: str = Field(description="Mail server hostname")
    port: int | None = Field(
        default=None,
        description="Mail server port (protocol default when unset)",
    )
    protocol: Protocol = Field(default=Protocol.POP3, description="Store access protocol")
    username: str = Field(default="", description="Login username")
    password: SecretStr = Field(default=SecretStr(""), description="Login password")
    properties: dict[str, str] = Field(
        default_factory=dict,
        description="Opaque store properties (``timeout`` is honoured, in seconds)",
    )

    @field_validator("properties")
    @classmethod
    def check_timeout(cls, value: dict[str, str]) -> dict[str, str]:
        raw = value.get("timeout")
        if raw:
            try:
                seconds = float(raw)
            except ValueError:
                raise ValueError(f"timeout must be a number of seconds, got {raw!r}") from None
            if not 0 < seconds < float("inf"):
                raise ValueError(f"timeout must be a positive number of seconds, got {raw!r}")
        return value

    @property
    def effective_port(self) -> int:
        return self.port if self.port is not None else self.protocol.default_port

    @property
    def timeout(self) -> float | None:
        """Socket timeout taken from the ``timeout`` property, if set."""
        raw = self.properties.get("timeout")
        return float(raw) if raw else None

    @classmethod
    def from_params(
        cls,
        params: Mapping[str, str],
        properties: Iterable[tuple[str, str]] = (),
    ) -> MailboxConfig:
        """Build a config from the persisted flat parameter map.

        *params* holds ``server``, ``port``, ``protocol``, ``username`` and
        ``password``; *properties* is the repeated ``(name, value)`` list.
        Blank values fall back to the defaults.
        """
        values: dict[str, object] = {
            key: value
            for key, value in params.items()
            if key in cls.model_fields and value not in (None, "")
        }
        values["properties"] = dict(properties)
        return cls(**values)


class MailboxConnectorConfig(ConnectorConfig):
    """Mailbox crawl connector config.

    Extends ConnectorConfig (inherits retry, ingestion_api and logging).
    """

    mailbox: MailboxConfig = Field(default_factory=MailboxConfig)
    session_ttl_seconds: float = Field(
        default=300.0,
        description="Seconds an idle store session is kept before reconnecting",
    )
