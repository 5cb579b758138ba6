# redemption.py
"""
Shield and redeem sequencing on top of the three core stores.

RedemptionOrchestrator stands where the token wrapper would: it is the one
authorized inserter of the commitment tree and the one authorized marker of
the nullifier ledger, and it runs every redemption through the same fixed
sequence

    PENDING
      -> ROOT_UNKNOWN       root is zero or aged out of the history window
      -> NULLIFIER_SPENT    nullifier already recorded
      -> PROOF_INVALID      verifier returned False
      -> VERIFIED           all checks passed, nothing written yet
      -> COMMITTED          nullifier marked, change note inserted, value released

Nothing is written before VERIFIED, so a rejected redemption leaves no trace
in the stores. Token accounting is delegated to the optional `release`
callback, invoked after the state change with (recipient, asset_id, amount).

Voucher is the client-side note: the private values behind one commitment,
plus helpers that assemble circuit witnesses from a prover-side tree mirror.
"""

import enum
import logging
import secrets
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from circuit_model import PartialRedeemWitness, RedeemWitness
from groth16_verifier import ProofVerifier
from hash_utils import FIELD_MODULUS, commitment, from_hex, is_field_element, to_hex
from merkle_tree import CommitmentTree, MerkleTree
from nullifier_ledger import NullifierLedger
from pool_errors import (
    InvalidNullifier,
    InvalidProof,
    NullifierAlreadySpent,
    RootUnknown,
    TreeFull,
)
from pool_events import EventLog, PartialRedeemed, Redeemed, Shielded

logger = logging.getLogger(__name__)

ReleaseCallback = Callable[[int, int, int], None]


class RedemptionStatus(enum.Enum):
    PENDING = "pending"
    ROOT_UNKNOWN = "root_unknown"
    NULLIFIER_SPENT = "nullifier_spent"
    PROOF_INVALID = "proof_invalid"
    VERIFIED = "verified"
    COMMITTED = "committed"


@dataclass(frozen=True)
class RedemptionReceipt:
    status: RedemptionStatus
    nullifier: int
    recipient: int
    amount: int
    remaining_amount: int = 0
    new_commitment: int = 0
    new_leaf_index: Optional[int] = None


def _random_field_element() -> int:
    """Uniform in [1, FIELD_MODULUS)."""
    return secrets.randbelow(FIELD_MODULUS - 1) + 1


@dataclass
class Voucher:
    """
    Private note behind one commitment.

    The nullifier is an independent random field element bound into the
    commitment; revealing it at redemption links nothing back to the leaf.
    """
    secret: int
    nullifier: int
    amount: int
    asset_id: int
    leaf_index: Optional[int] = None

    @classmethod
    def create(cls, amount: int, asset_id: int) -> "Voucher":
        return cls(
            secret=_random_field_element(),
            nullifier=_random_field_element(),
            amount=amount,
            asset_id=asset_id,
        )

    @property
    def commitment(self) -> int:
        return commitment(self.secret, self.nullifier, self.amount, self.asset_id)

    def _opening(self, mirror: MerkleTree) -> Tuple[List[int], List[int]]:
        if self.leaf_index is None:
            raise ValueError("Voucher has not been inserted yet")
        if mirror.leaves[self.leaf_index] != self.commitment:
            raise ValueError(f"Leaf {self.leaf_index} of the mirror holds a different commitment")
        return mirror.opening(self.leaf_index)

    def redeem_witness(self, mirror: MerkleTree, recipient: int) -> RedeemWitness:
        """Witness for a full redemption against the mirror's current root."""
        siblings, positions = self._opening(mirror)
        return RedeemWitness(
            merkle_root=mirror.root(),
            nullifier=self.nullifier,
            amount=self.amount,
            asset_id=self.asset_id,
            recipient=recipient,
            secret=self.secret,
            path_elements=siblings,
            path_indices=positions,
        )

    def partial_redeem_witness(
        self,
        mirror: MerkleTree,
        recipient: int,
        redeem_amount: int,
    ) -> Tuple[PartialRedeemWitness, Optional["Voucher"]]:
        """
        Witness for redeeming part of the note.

        Returns the witness and the change voucher carrying the remaining
        amount (None when nothing remains). The change voucher gets its
        leaf_index once the orchestrator has inserted it.
        """
        if not 0 < redeem_amount <= self.amount:
            raise ValueError(f"redeem_amount must be in (0, {self.amount}], got {redeem_amount}")
        siblings, positions = self._opening(mirror)

        remaining = self.amount - redeem_amount
        change = Voucher.create(remaining, self.asset_id) if remaining else None
        witness = PartialRedeemWitness(
            merkle_root=mirror.root(),
            old_nullifier=self.nullifier,
            redeem_amount=redeem_amount,
            asset_id=self.asset_id,
            recipient=recipient,
            original_amount=self.amount,
            new_commitment=change.commitment if change else 0,
            secret=self.secret,
            path_elements=siblings,
            path_indices=positions,
            new_secret=change.secret if change else 0,
            new_nullifier=change.nullifier if change else 0,
        )
        return witness, change

    def to_dict(self) -> Dict[str, Any]:
        return {
            "secret": to_hex(self.secret),
            "nullifier": to_hex(self.nullifier),
            "amount": self.amount,
            "asset_id": to_hex(self.asset_id),
            "leaf_index": self.leaf_index,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Voucher":
        return cls(
            secret=from_hex(data["secret"]),
            nullifier=from_hex(data["nullifier"]),
            amount=int(data["amount"]),
            asset_id=from_hex(data["asset_id"]),
            leaf_index=data.get("leaf_index"),
        )


class RedemptionOrchestrator:
    """
    Runs shield / redeem / partial redeem against one tree, ledger and verifier.

    `address` must already be an authorized inserter of `tree` and an
    authorized marker of `ledger`; otherwise the first write raises
    Unauthorized.
    """

    def __init__(
        self,
        address: str,
        tree: CommitmentTree,
        ledger: NullifierLedger,
        verifier: ProofVerifier,
        events: Optional[EventLog] = None,
        release: Optional[ReleaseCallback] = None,
    ) -> None:
        self.address = address
        self.tree = tree
        self.ledger = ledger
        self.verifier = verifier
        self.events = events if events is not None else tree.events
        self.release = release

    # -- shield -------------------------------------------------------------

    def shield(self, amount: int, commitment: int, sender: str = "") -> int:
        """Insert a fresh commitment; returns its leaf index."""
        if amount <= 0:
            raise ValueError(f"Shielded amount must be positive, got {amount}")
        leaf_index = self.tree.insert(self.address, commitment)
        self.events.emit(Shielded(sender, amount, commitment, leaf_index))
        return leaf_index

    # -- checks shared by both redemption kinds -------------------------------

    @staticmethod
    def _check_nullifier(nullifier: int) -> None:
        if nullifier == 0 or not is_field_element(nullifier):
            raise InvalidNullifier(f"Invalid nullifier {nullifier!r}")

    def _precheck(self, nullifier: int, merkle_root: int) -> RedemptionStatus:
        self._check_nullifier(nullifier)
        if not self.tree.is_known_root(merkle_root):
            return RedemptionStatus.ROOT_UNKNOWN
        if self.ledger.is_spent(nullifier):
            return RedemptionStatus.NULLIFIER_SPENT
        return RedemptionStatus.PENDING

    # -- full redemption ------------------------------------------------------

    def check_redeem(
        self,
        amount: int,
        asset_id: int,
        recipient: int,
        nullifier: int,
        merkle_root: int,
        proof_bytes: bytes,
    ) -> RedemptionStatus:
        """Run every check without writing; VERIFIED means redeem() would succeed."""
        status = self._precheck(nullifier, merkle_root)
        if status is not RedemptionStatus.PENDING:
            return status
        inputs = [merkle_root, nullifier, amount, asset_id, recipient]
        if not self.verifier.verify_redemption_proof(proof_bytes, inputs):
            return RedemptionStatus.PROOF_INVALID
        return RedemptionStatus.VERIFIED

    def redeem(
        self,
        amount: int,
        asset_id: int,
        recipient: int,
        nullifier: int,
        merkle_root: int,
        proof_bytes: bytes,
    ) -> RedemptionReceipt:
        """
        Redeem a whole voucher to `recipient`.

        Raises:
            InvalidNullifier: zero or non-field nullifier
            RootUnknown: root is zero or not in the history window
            NullifierAlreadySpent: replay
            InvalidProofLength / InvalidPublicInputsLength: malformed request
            InvalidProof: the proof does not verify
        """
        status = self.check_redeem(amount, asset_id, recipient, nullifier, merkle_root, proof_bytes)
        _raise_for_status(status, nullifier, merkle_root)

        self.ledger.mark_spent(self.address, nullifier)
        if self.release is not None:
            self.release(recipient, asset_id, amount)
        self.events.emit(Redeemed(amount, recipient, nullifier))
        logger.info("Redeemed %d of asset %s to %s", amount, to_hex(asset_id), to_hex(recipient))
        return RedemptionReceipt(RedemptionStatus.COMMITTED, nullifier, recipient, amount)

    def attempt_redeem(self, *args: Any, **kwargs: Any) -> RedemptionStatus:
        """Like redeem(), but report rejections as a status instead of raising."""
        try:
            return self.redeem(*args, **kwargs).status
        except (RootUnknown, NullifierAlreadySpent, InvalidProof) as exc:
            return _status_for_error(exc)

    # -- partial redemption ---------------------------------------------------

    def check_partial_redeem(
        self,
        redeem_amount: int,
        original_amount: int,
        asset_id: int,
        recipient: int,
        old_nullifier: int,
        new_commitment: int,
        merkle_root: int,
        proof_bytes: bytes,
    ) -> RedemptionStatus:
        status = self._precheck(old_nullifier, merkle_root)
        if status is not RedemptionStatus.PENDING:
            return status
        inputs = [
            merkle_root,
            old_nullifier,
            redeem_amount,
            asset_id,
            recipient,
            original_amount,
            redeem_amount,
            new_commitment,
        ]
        if not self.verifier.verify_partial_redemption_proof(proof_bytes, inputs):
            return RedemptionStatus.PROOF_INVALID
        return RedemptionStatus.VERIFIED

    def partial_redeem(
        self,
        redeem_amount: int,
        original_amount: int,
        asset_id: int,
        recipient: int,
        old_nullifier: int,
        new_commitment: int,
        merkle_root: int,
        proof_bytes: bytes,
    ) -> RedemptionReceipt:
        """
        Redeem part of a voucher and re-shield the rest as `new_commitment`.

        The change commitment is inserted only when something remains. The
        tree must have room for it, checked before anything is written.

        Raises:
            the same errors as redeem(), plus TreeFull
        """
        status = self.check_partial_redeem(
            redeem_amount, original_amount, asset_id, recipient,
            old_nullifier, new_commitment, merkle_root, proof_bytes,
        )
        _raise_for_status(status, old_nullifier, merkle_root)

        remaining = original_amount - redeem_amount
        if new_commitment and self.tree.get_next_leaf_index() >= self.tree.capacity:
            raise TreeFull(self.tree.depth)

        self.ledger.mark_spent(self.address, old_nullifier)
        new_leaf_index = None
        if new_commitment:
            new_leaf_index = self.tree.insert(self.address, new_commitment)
        if self.release is not None:
            self.release(recipient, asset_id, redeem_amount)
        self.events.emit(PartialRedeemed(
            redeem_amount, remaining, recipient, old_nullifier, new_commitment, new_leaf_index,
        ))
        logger.info("Partially redeemed %d of %d to %s, %d re-shielded",
                    redeem_amount, original_amount, to_hex(recipient), remaining)
        return RedemptionReceipt(
            RedemptionStatus.COMMITTED,
            old_nullifier,
            recipient,
            redeem_amount,
            remaining_amount=remaining,
            new_commitment=new_commitment,
            new_leaf_index=new_leaf_index,
        )

    def attempt_partial_redeem(self, *args: Any, **kwargs: Any) -> RedemptionStatus:
        try:
            return self.partial_redeem(*args, **kwargs).status
        except (RootUnknown, NullifierAlreadySpent, InvalidProof) as exc:
            return _status_for_error(exc)


def _raise_for_status(status: RedemptionStatus, nullifier: int, merkle_root: int) -> None:
    if status is RedemptionStatus.VERIFIED:
        return
    logger.warning("Redemption rejected: %s", status.value)
    if status is RedemptionStatus.ROOT_UNKNOWN:
        raise RootUnknown(merkle_root)
    if status is RedemptionStatus.NULLIFIER_SPENT:
        raise NullifierAlreadySpent(nullifier)
    raise InvalidProof("Proof verification failed")


def _status_for_error(exc: Exception) -> RedemptionStatus:
    if isinstance(exc, RootUnknown):
        return RedemptionStatus.ROOT_UNKNOWN
    if isinstance(exc, NullifierAlreadySpent):
        return RedemptionStatus.NULLIFIER_SPENT
    return RedemptionStatus.PROOF_INVALID
