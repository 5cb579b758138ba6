# circuit_model.py
"""
The redeem circuits' statements, evaluated over plain field elements.

The proving circuits are an external collaborator; this module is their
executable contract on the ledger side. It recomputes every hash the
circuit computes, with the same HashEngine composition, and enforces the
same constraints. Two uses:

- a witness that fails here can never produce a verifying proof, so the
  prover side checks it before spending time on proof generation;
- the public signal builders pin down the exact order the verification
  keys were generated for, shared by prover and verifier.

Redeem statement (public: merkleRoot, nullifier, amount, assetId, recipient;
private: secret, pathElements, pathIndices):

    commitment = H2(H2(secret, nullifier), H2(amount, assetId))
    fold(hash_leaf(commitment), pathElements, pathIndices) == merkleRoot
    output: [commitment]

Partial redeem statement (public: merkleRoot, oldNullifier, redeemAmount,
assetId, recipient, originalAmount, redeemAmount, newCommitment;
private: secret, pathElements, pathIndices, newSecret, newNullifier):

    oldCommitment in the tree under merkleRoot
    redeemAmount <= originalAmount
    remaining = originalAmount - redeemAmount
    newCommitment == commitment(newSecret, newNullifier, remaining, assetId)
                     (or 0 when remaining == 0)
    output: [oldCommitment, newCommitment, remaining]

The recipient is bound only by being a public signal; the circuit places no
constraint on it.
"""

from dataclasses import dataclass
from typing import List, Sequence

from hash_utils import (
    FIELD_MODULUS,
    commitment,
    hash_leaf,
    hash_node,
    is_field_element,
    poseidon2,
    poseidon_parameters,
)
from pool_errors import CircuitConstraintError

# Amounts are range-checked to this many bits inside the circuit so that
# the subtraction for the remaining amount cannot wrap around the field.
AMOUNT_BITS = 248

# circomlibjs reference outputs for the 2-input Poseidon
POSEIDON_REFERENCE_VECTORS = {
    (1, 2): 0x115CC0F5E7D690413DF64C6B9662E9CF2A3617F2743245519E19607A4417189A,
    (0, 0): 0x2098F5FB9E239EAB3CEAC3F27B81E481DC3124D55FFED523A839EE8446B64864,
}
POSEIDON_FIRST_ROUND_CONSTANTS = (
    0x0EE9A592BA9A9518D05986D656F40C2114C4993C11BB29938D21D47304CD8E6E,
    0x00F1445235F2148C5986587169FC1BCD887B08D4D00868DF5696FFF40956E864,
    0x08DFF3487E8AC99E1F29A058D0FA80B930C728730B7AB36CE879F3890ECF73F5,
)
POSEIDON_FIRST_MDS_ROW = (
    0x109B7F411BA0E4C9B2B70CAF5C36A7B194BE7C11AD24378BFEDB68592BA8118B,
    0x16ED41E13BB9C0C66AE119424FDDBCBC9314DC9FDBDEEA55D6C64543DC4903E0,
    0x2B90BBA00FCA0589F617E7DCBFE82E0DF706AB640CEB247B791A93B74E36736D,
)


@dataclass(frozen=True)
class RedeemWitness:
    merkle_root: int
    nullifier: int
    amount: int
    asset_id: int
    recipient: int
    secret: int
    path_elements: Sequence[int]
    path_indices: Sequence[int]


@dataclass(frozen=True)
class PartialRedeemWitness:
    merkle_root: int
    old_nullifier: int
    redeem_amount: int
    asset_id: int
    recipient: int
    original_amount: int
    new_commitment: int
    secret: int
    path_elements: Sequence[int]
    path_indices: Sequence[int]
    new_secret: int
    new_nullifier: int

    @property
    def remaining_amount(self) -> int:
        return self.original_amount - self.redeem_amount


def _signal(name: str, value: int) -> int:
    if not is_field_element(value):
        raise CircuitConstraintError("field", f"{name} is not a field element")
    return value


def _amount(name: str, value: int) -> int:
    _signal(name, value)
    if value >= 2 ** AMOUNT_BITS:
        raise CircuitConstraintError("amount range", f"{name} exceeds {AMOUNT_BITS} bits")
    return value


def merkle_opening_circuit(
    leaf: int,
    siblings: Sequence[int],
    positions: Sequence[int],
    public_root: int,
) -> None:
    """
    Merkle membership constraint.

    Walks up from hash_leaf(leaf); at each level the position bit routes the
    running node left (0) or right (1) of its sibling, and the pair is
    combined with hash_node. The final node must equal public_root.

    Each position bit is constrained boolean, as the circuit does with
    bit * (bit - 1) == 0.
    """
    if len(siblings) != len(positions):
        raise CircuitConstraintError(
            "path length",
            f"{len(siblings)} siblings but {len(positions)} positions",
        )

    needle = hash_leaf(leaf)
    for h, (sibling, position_bit) in enumerate(zip(siblings, positions)):
        _signal(f"pathElements[{h}]", sibling)
        if position_bit not in (0, 1):
            raise CircuitConstraintError("path index boolean", f"pathIndices[{h}] = {position_bit}")
        if position_bit == 0:
            left, right = needle, sibling
        else:
            left, right = sibling, needle
        needle = hash_node(left, right)

    if needle != public_root:
        raise CircuitConstraintError("merkle root", "opening does not reach the public root")


def redeem_circuit(w: RedeemWitness) -> List[int]:
    """Evaluate the redeem statement; returns the circuit's output signals."""
    for name in ("merkle_root", "nullifier", "asset_id", "recipient", "secret"):
        _signal(name, getattr(w, name))
    _amount("amount", w.amount)

    leaf = commitment(w.secret, w.nullifier, w.amount, w.asset_id)
    merkle_opening_circuit(leaf, w.path_elements, w.path_indices, w.merkle_root)
    return [leaf]


def partial_redeem_circuit(w: PartialRedeemWitness) -> List[int]:
    """Evaluate the partial redeem statement; returns [old, new, remaining]."""
    for name in ("merkle_root", "old_nullifier", "asset_id", "recipient",
                 "new_commitment", "secret", "new_secret", "new_nullifier"):
        _signal(name, getattr(w, name))
    _amount("redeem_amount", w.redeem_amount)
    _amount("original_amount", w.original_amount)

    if w.redeem_amount > w.original_amount:
        raise CircuitConstraintError("amount conservation", "redeem amount exceeds original amount")
    remaining = w.remaining_amount

    old_leaf = commitment(w.secret, w.old_nullifier, w.original_amount, w.asset_id)
    merkle_opening_circuit(old_leaf, w.path_elements, w.path_indices, w.merkle_root)

    if remaining == 0:
        expected_new = 0
    else:
        expected_new = commitment(w.new_secret, w.new_nullifier, remaining, w.asset_id)
    if w.new_commitment != expected_new:
        raise CircuitConstraintError("new commitment", "does not commit to the remaining amount")

    return [old_leaf, expected_new, remaining]


def redeem_public_inputs(w: RedeemWitness) -> List[int]:
    """Caller-side inputs, in verifier order."""
    return [w.merkle_root, w.nullifier, w.amount, w.asset_id, w.recipient]


def partial_redeem_public_inputs(w: PartialRedeemWitness) -> List[int]:
    return [
        w.merkle_root,
        w.old_nullifier,
        w.redeem_amount,
        w.asset_id,
        w.recipient,
        w.original_amount,
        w.redeem_amount,
        w.new_commitment,
    ]


def redeem_public_signals(w: RedeemWitness) -> List[int]:
    """Full signal vector the redeem key was generated for."""
    return redeem_circuit(w) + redeem_public_inputs(w)


def partial_redeem_public_signals(w: PartialRedeemWitness) -> List[int]:
    return partial_redeem_circuit(w) + partial_redeem_public_inputs(w)


def check_hash_consistency() -> None:
    """
    Cross-check the Poseidon parameters and outputs against circomlib.

    A mismatch here means every root and commitment computed by this code
    differs from what the circuit computes.

    Raises:
        CircuitConstraintError: with constraint name "hash consistency"
    """
    constants, mds = poseidon_parameters()
    if tuple(constants[:3]) != POSEIDON_FIRST_ROUND_CONSTANTS:
        raise CircuitConstraintError("hash consistency", "Poseidon round constants differ from circomlib")
    if tuple(mds[0]) != POSEIDON_FIRST_MDS_ROW:
        raise CircuitConstraintError("hash consistency", "Poseidon MDS matrix differs from circomlib")
    for (a, b), expected in POSEIDON_REFERENCE_VECTORS.items():
        actual = poseidon2(a, b)
        if actual != expected:
            raise CircuitConstraintError(
                "hash consistency",
                f"poseidon2({a}, {b}) = 0x{actual:064x}, circomlib gives 0x{expected:064x}",
            )
    if FIELD_MODULUS.bit_length() != 254:
        raise CircuitConstraintError("hash consistency", "unexpected field size")
