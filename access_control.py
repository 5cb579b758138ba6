# access_control.py
"""
Owner-managed allow-lists for the privileged store operations.

The accumulator and the nullifier ledger each hold one AllowList. Callers
identify themselves explicitly (an address string) on every privileged call;
there is no ambient caller identity.
"""

import logging
from typing import Iterable, List, Set

from pool_errors import Unauthorized

logger = logging.getLogger(__name__)


class AllowList:
    """
    Capability set: `owner` may grant and revoke `role` to addresses.

    The owner is not implicitly a member.
    """

    def __init__(self, owner: str, role: str, members: Iterable[str] = ()) -> None:
        if not owner:
            raise ValueError("owner address must be non-empty")
        self.owner = owner
        self.role = role
        self._members: Set[str] = set(members)

    def authorize(self, caller: str, address: str) -> None:
        self._require_owner(caller, f"authorize {self.role}")
        if not address:
            raise ValueError("address must be non-empty")
        self._members.add(address)
        logger.info("Granted %s to %s", self.role, address)

    def revoke(self, caller: str, address: str) -> None:
        self._require_owner(caller, f"revoke {self.role}")
        self._members.discard(address)
        logger.info("Revoked %s from %s", self.role, address)

    def is_authorized(self, address: str) -> bool:
        return address in self._members

    def require(self, caller: str, operation: str) -> None:
        """Raise Unauthorized unless caller holds the role."""
        if caller not in self._members:
            logger.warning("Rejected %s by unauthorized caller %s", operation, caller)
            raise Unauthorized(caller, operation)

    def members(self) -> List[str]:
        return sorted(self._members)

    def _require_owner(self, caller: str, operation: str) -> None:
        if caller != self.owner:
            raise Unauthorized(caller, operation)
