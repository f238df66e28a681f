import pytest

from app.models.credential_record import CredentialStatus
from app.services.status_mapper import is_transition_allowed, map_event_type


@pytest.mark.parametrize(
    ("event_type", "expected"),
    [
        ("record_anchored", CredentialStatus.ISSUED),
        ("record_updated", CredentialStatus.ISSUED),
        ("record_revoked", CredentialStatus.REVOKED),
        ("record_deleted", CredentialStatus.DELETED),
    ],
)
def test_known_event_types(event_type, expected):
    assert map_event_type(event_type) == expected


@pytest.mark.parametrize("event_type", ["", "bogus", "RECORD_ANCHORED", "record_anchored "])
def test_unknown_event_types_map_to_none(event_type):
    assert map_event_type(event_type) is None


def test_deleted_is_terminal():
    assert is_transition_allowed(CredentialStatus.DELETED, CredentialStatus.DELETED)
    assert not is_transition_allowed(CredentialStatus.DELETED, CredentialStatus.ISSUED)
    assert not is_transition_allowed(CredentialStatus.DELETED, CredentialStatus.REVOKED)


def test_revoked_credential_can_be_reissued():
    assert is_transition_allowed(CredentialStatus.REVOKED, CredentialStatus.ISSUED)
    assert is_transition_allowed(CredentialStatus.UNPUBLISHED, CredentialStatus.REVOKED)
    assert is_transition_allowed(CredentialStatus.ISSUED, CredentialStatus.DELETED)
