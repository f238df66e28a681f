"""Error taxonomy for the reconciliation engine.

Only failures that change control flow are exceptions. Unknown event types and
records missing locally are expected feed noise and are dropped where they are
found, without raising.
"""

from __future__ import annotations


class ReconciliationError(Exception):
    """Base class for errors raised by the reconciliation engine."""


class FetchError(ReconciliationError):
    """The upstream feed could not deliver a usable event list; the cycle must abort."""


class AdapterError(ReconciliationError):
    """An issuer adapter failed to produce authoritative data for a record."""


class MissingIssuerError(AdapterError):
    """The local record carries no issuer, so no adapter can be chosen."""


class UnknownIssuerError(AdapterError):
    """No adapter is registered for the record's issuer."""


class CheckpointError(ReconciliationError):
    """Raised when a watermark update would move the checkpoint backwards."""


class RecordMissingError(ReconciliationError):
    """The record disappeared between filtering and processing."""


class InvalidTransitionError(ReconciliationError):
    """The requested status change would move a credential out of a terminal state."""


class CycleAlreadyRunningError(ReconciliationError):
    """A manual run was requested while a reconciliation cycle is in flight."""
