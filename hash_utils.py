# hash_utils.py
"""
Hashing over the BN254 scalar field.

Two kinds of hashing live here:
1. POSEIDON (poseidon2 and everything built on it): the only primitive the
   redeem circuit has. Tree leaves, tree nodes, commitments and index-derived
   nullifiers are all fixed compositions of the 2-input poseidon2.
2. SHA-256 to field (sha256_to_field): plain deterministic derivation of
   field elements from arbitrary integers (seeds, labels). Never used for
   anything the circuit has to recompute.

The compositions are part of the circuit contract. The circuit only has the
2-input Poseidon, so a 3-input node hash is written as two chained calls
and the 4-input commitment as a balanced pair of pairs:

    hash_leaf(v)              = H2(0, v)
    hash_node(l, r)           = H2(H2(1, l), r)
    commitment(s, n, a, t)    = H2(H2(s, n), H2(a, t))
    nullifier_hash(s, index)  = H2(s, index)

Replacing any of these with a native n-ary Poseidon changes every root and
every commitment, and no proof produced by the circuit would verify again.
"""

import hashlib
from functools import lru_cache
from typing import Iterator, List, Tuple

# BN254 field modulus (scalar field of alt_bn128, used by circom/snarkjs)
FIELD_MODULUS = 21888242871839275222246405745257275088548364400416034343698204186575808495617

# Identifier reported to indexers, one per hash family
HASH_FUNCTION = "poseidon-t3-bn254"

WORD_SIZE = 32

# circomlib Poseidon parameters for 2 inputs (t = 3)
POSEIDON_WIDTH = 3
POSEIDON_FULL_ROUNDS = 8
POSEIDON_PARTIAL_ROUNDS = 57
_FIELD_BITS = 254

# Domain tags
LEAF_TAG = 0
NODE_TAG = 1


def field(val: int) -> int:
    """
    Convert a Python int to a field element by reducing modulo FIELD_MODULUS.
    """
    return val % FIELD_MODULUS


def is_field_element(val: int) -> bool:
    """True iff val is an int in [0, FIELD_MODULUS)."""
    return isinstance(val, int) and not isinstance(val, bool) and 0 <= val < FIELD_MODULUS


def _require_field(val: int, name: str) -> int:
    if not is_field_element(val):
        raise ValueError(f"{name} is not a reduced field element: {val!r}")
    return val


def to_word(val: int) -> bytes:
    """Encode a field element as a 32-byte big-endian word."""
    return _require_field(val, "value").to_bytes(WORD_SIZE, byteorder="big", signed=False)


def from_word(data: bytes) -> int:
    """Decode a 32-byte big-endian word (no reduction)."""
    if len(data) != WORD_SIZE:
        raise ValueError(f"Expected {WORD_SIZE} bytes, got {len(data)}")
    return int.from_bytes(data, byteorder="big")


def to_hex(val: int) -> str:
    """0x-prefixed, zero-padded 64 hex digits."""
    return "0x" + to_word(val).hex()


def from_hex(text: str) -> int:
    """Parse a hex word produced by to_hex (the 0x prefix is optional)."""
    if text.startswith(("0x", "0X")):
        text = text[2:]
    return _require_field(int(text, 16), "hex value")


def sha256_to_field(*values: int) -> int:
    """
    Hash integers using SHA-256 and map into field.

    Deterministic: same inputs always produce same output across runs.

    Args:
        *values: non-negative integers below 2^256

    Returns:
        integer in [0, FIELD_MODULUS)
    """
    h = hashlib.sha256()
    for v in values:
        # Fixed-width (32 bytes) encoding ensures deterministic hashing
        h.update(v.to_bytes(32, byteorder="big", signed=False))
    digest = h.digest()
    as_int = int.from_bytes(digest, byteorder="big")
    return as_int % FIELD_MODULUS


# ---------------------------------------------------------------------------
# Poseidon parameters
# ---------------------------------------------------------------------------

def _grain_bits(n_bits: int, width: int, full_rounds: int, partial_rounds: int) -> Iterator[int]:
    """
    Grain LFSR in self-shrinking mode, seeded the way the Poseidon reference
    parameter script seeds it (prime field, x^alpha S-box).
    """
    state = (
        [0, 1]
        + [0, 0, 0, 0]
        + [int(b) for b in format(n_bits, "012b")]
        + [int(b) for b in format(width, "012b")]
        + [int(b) for b in format(full_rounds, "010b")]
        + [int(b) for b in format(partial_rounds, "010b")]
        + [1] * 30
    )

    def step() -> int:
        new_bit = state[62] ^ state[51] ^ state[38] ^ state[23] ^ state[13] ^ state[0]
        state.pop(0)
        state.append(new_bit)
        return new_bit

    for _ in range(160):
        step()

    while True:
        bit = step()
        while bit == 0:
            step()
            bit = step()
        yield step()


def _grain_int(bits: Iterator[int], n_bits: int) -> int:
    value = 0
    for _ in range(n_bits):
        value = (value << 1) | next(bits)
    return value


@lru_cache(maxsize=None)
def poseidon_parameters() -> Tuple[Tuple[int, ...], Tuple[Tuple[int, ...], ...]]:
    """
    Round constants and MDS matrix for t = 3.

    Returns:
        (round_constants, mds) where round_constants has
        (full + partial) * t entries and mds is a t x t Cauchy matrix
        mds[i][j] = 1 / (x_i + y_j).
    """
    t = POSEIDON_WIDTH
    bits = _grain_bits(_FIELD_BITS, t, POSEIDON_FULL_ROUNDS, POSEIDON_PARTIAL_ROUNDS)

    constants: List[int] = []
    for _ in range((POSEIDON_FULL_ROUNDS + POSEIDON_PARTIAL_ROUNDS) * t):
        value = _grain_int(bits, _FIELD_BITS)
        while value >= FIELD_MODULUS:
            value = _grain_int(bits, _FIELD_BITS)
        constants.append(value)

    while True:
        samples = [field(_grain_int(bits, _FIELD_BITS)) for _ in range(2 * t)]
        while len(set(samples)) != len(samples):
            samples = [field(_grain_int(bits, _FIELD_BITS)) for _ in range(2 * t)]
        xs, ys = samples[:t], samples[t:]
        if any(field(x + y) == 0 for x in xs for y in ys):
            continue
        mds = tuple(
            tuple(pow(x + y, -1, FIELD_MODULUS) for y in ys)
            for x in xs
        )
        return tuple(constants), mds


def poseidon_permutation(state: List[int]) -> List[int]:
    """
    Full Poseidon permutation (x^5 S-box, 4 + 4 full rounds around the
    partial rounds). Mirrors circomlibjs' reference implementation.
    """
    constants, mds = poseidon_parameters()
    t = POSEIDON_WIDTH
    half_full = POSEIDON_FULL_ROUNDS // 2
    p = FIELD_MODULUS

    if len(state) != t:
        raise ValueError(f"Poseidon state must have {t} elements")

    for r in range(POSEIDON_FULL_ROUNDS + POSEIDON_PARTIAL_ROUNDS):
        state = [(s + constants[r * t + i]) % p for i, s in enumerate(state)]
        if r < half_full or r >= half_full + POSEIDON_PARTIAL_ROUNDS:
            state = [pow(s, 5, p) for s in state]
        else:
            state[0] = pow(state[0], 5, p)
        state = [sum(mds[i][j] * state[j] for j in range(t)) % p for i in range(t)]
    return state


# ---------------------------------------------------------------------------
# Hash engine
# ---------------------------------------------------------------------------

def poseidon2(a: int, b: int) -> int:
    """
    H2: the single 2-input primitive shared with the circuit.

    No domain separation is built in; callers add tags explicitly.
    """
    _require_field(a, "a")
    _require_field(b, "b")
    return poseidon_permutation([0, a, b])[0]


def hash_leaf(value: int) -> int:
    """Leaf hash, domain tag 0: H2(0, value)."""
    return poseidon2(LEAF_TAG, value)


def hash_node(left: int, right: int) -> int:
    """
    Internal node hash, domain tag 1: H2(H2(1, left), right).

    Two chained 2-input calls. This is NOT Poseidon(1, left, right).
    """
    return poseidon2(poseidon2(NODE_TAG, left), right)


def commitment(secret: int, nullifier: int, amount: int, asset_id: int) -> int:
    """
    Voucher commitment as a balanced 2-level tree of H2:
    H2(H2(secret, nullifier), H2(amount, asset_id)).
    """
    return poseidon2(poseidon2(secret, nullifier), poseidon2(amount, asset_id))


def nullifier_hash(secret: int, index: int) -> int:
    """Index-derived nullifier H2(secret, index)."""
    return poseidon2(secret, index)
