# nullifier_ledger.py
"""
Registry of spent nullifiers.

A nullifier moves from unspent to spent exactly once. Marking an already
spent nullifier is an error rather than a no-op, so every successful
redemption corresponds to exactly one observable transition. Two racing
redemptions of the same voucher are ordered by whoever serializes calls
into this object; the second one sees `is_spent() == True` and fails.
"""

import logging
from typing import Any, Dict, Optional, Set

from access_control import AllowList
from hash_utils import from_hex, is_field_element, to_hex
from pool_errors import NullifierAlreadySpent
from pool_events import EventLog, NullifierSpent

logger = logging.getLogger(__name__)


class NullifierLedger:
    """Append-only set of spent nullifiers, writable by authorized markers."""

    def __init__(self, owner: str, events: Optional[EventLog] = None) -> None:
        self.markers = AllowList(owner, "marker")
        self.events = events if events is not None else EventLog()
        self._spent: Set[int] = set()

    @property
    def owner(self) -> str:
        return self.markers.owner

    def authorize(self, caller: str, address: str) -> None:
        self.markers.authorize(caller, address)

    def revoke(self, caller: str, address: str) -> None:
        self.markers.revoke(caller, address)

    def is_spent(self, nullifier: int) -> bool:
        return nullifier in self._spent

    def mark_spent(self, caller: str, nullifier: int) -> None:
        """
        Record `nullifier` as spent.

        Raises:
            Unauthorized: caller is not an authorized marker
            NullifierAlreadySpent: the nullifier was recorded before
        """
        self.markers.require(caller, "mark nullifier")
        if not is_field_element(nullifier):
            raise ValueError(f"Nullifier is not a reduced field element: {nullifier!r}")
        if nullifier in self._spent:
            logger.warning("Replay of nullifier %s rejected", to_hex(nullifier))
            raise NullifierAlreadySpent(nullifier)

        self._spent.add(nullifier)
        logger.info("Nullifier %s spent by %s", to_hex(nullifier), caller)
        self.events.emit(NullifierSpent(nullifier, caller))

    def spent_count(self) -> int:
        return len(self._spent)

    def snapshot(self) -> Dict[str, Any]:
        return {
            "owner": self.owner,
            "markers": self.markers.members(),
            "spent": sorted(to_hex(n) for n in self._spent),
        }

    @classmethod
    def restore(cls, state: Dict[str, Any], events: Optional[EventLog] = None) -> "NullifierLedger":
        ledger = cls(state["owner"], events=events)
        for address in state.get("markers", []):
            ledger.markers.authorize(ledger.owner, address)
        ledger._spent = {from_hex(n) for n in state["spent"]}
        return ledger
