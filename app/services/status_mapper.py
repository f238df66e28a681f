from __future__ import annotations

from collections.abc import Mapping

from app.core.logger import get_logger
from app.models.credential_record import CredentialStatus

logger = get_logger(component="StatusMapper")

EVENT_STATUS_MAP: Mapping[str, CredentialStatus] = {
    "record_anchored": CredentialStatus.ISSUED,
    "record_updated": CredentialStatus.ISSUED,
    "record_revoked": CredentialStatus.REVOKED,
    "record_deleted": CredentialStatus.DELETED,
}

TERMINAL_STATUSES = frozenset({CredentialStatus.DELETED})


def map_event_type(event_type: str) -> CredentialStatus | None:
    """Return the internal status for an upstream event type, or None when it is not mapped."""
    status = EVENT_STATUS_MAP.get(event_type)
    if status is None:
        logger.warning("Unknown event type, dropping event", event_type=event_type)
    return status


def is_transition_allowed(current: CredentialStatus, target: CredentialStatus) -> bool:
    """A deleted credential stays deleted; every other mapped transition is applied as delivered."""
    if current in TERMINAL_STATUSES:
        return current == target
    return True
