"""Nullifier ledger tests."""

import pytest

from conftest import OWNER, WRAPPER
from hash_utils import FIELD_MODULUS
from nullifier_ledger import NullifierLedger
from pool_errors import NullifierAlreadySpent, Unauthorized
from pool_events import NullifierSpent


def test_unspent_by_default(ledger):
    assert not ledger.is_spent(123)
    assert ledger.spent_count() == 0


def test_mark_spent(ledger, events):
    ledger.mark_spent(WRAPPER, 123)
    assert ledger.is_spent(123)
    assert not ledger.is_spent(124)
    assert ledger.spent_count() == 1
    [event] = events.records(NullifierSpent)
    assert event.nullifier == 123
    assert event.marker == WRAPPER


def test_double_spend_rejected(ledger, events):
    ledger.mark_spent(WRAPPER, 5)
    with pytest.raises(NullifierAlreadySpent) as exc_info:
        ledger.mark_spent(WRAPPER, 5)
    assert exc_info.value.nullifier == 5
    assert ledger.spent_count() == 1
    assert len(events.records(NullifierSpent)) == 1


def test_unauthorized_marker(ledger):
    with pytest.raises(Unauthorized):
        ledger.mark_spent("mallory", 1)
    with pytest.raises(Unauthorized):
        ledger.mark_spent(OWNER, 1)
    assert not ledger.is_spent(1)


def test_revoked_marker(ledger):
    ledger.revoke(OWNER, WRAPPER)
    with pytest.raises(Unauthorized):
        ledger.mark_spent(WRAPPER, 1)


def test_rejects_non_field_value(ledger):
    with pytest.raises(ValueError):
        ledger.mark_spent(WRAPPER, FIELD_MODULUS)


def test_snapshot_round_trip(ledger):
    for n in (3, 1, 2):
        ledger.mark_spent(WRAPPER, n)
    restored = NullifierLedger.restore(ledger.snapshot())
    assert restored.spent_count() == 3
    assert all(restored.is_spent(n) for n in (1, 2, 3))
    with pytest.raises(NullifierAlreadySpent):
        restored.mark_spent(WRAPPER, 2)
    restored.mark_spent(WRAPPER, 4)
    assert restored.spent_count() == 4
