"""Error taxonomy shared between repository connectors and the scheduler.

The scheduler decides what to do with a failure purely from its type:

* :class:`ServiceInterruption` — transient, retry the whole call later.
* :class:`RepositoryError` — fatal for the current batch, do not retry.
* :class:`CancellationSignal` — the job was stopped; not a fault.
"""

from __future__ import annotations


class ConnectorError(Exception):
    """Base class for all errors raised across the connector interface."""


class ServiceInterruption(ConnectorError):
    """The repository is temporarily unreachable (handshake, auth, network)."""


class RepositoryError(ConnectorError):
    """The repository rejected an operation in a way retrying will not fix."""


class CancellationSignal(ConnectorError):
    """A blocking read was interrupted by an external cancellation."""
