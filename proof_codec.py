# proof_codec.py
"""
Binary layout of redeem proofs.

A proof payload is a sequence of 32-byte big-endian words, the ABI encoding
of (uint256[2] a, uint256[2][2] b, uint256[2] c, uint256 out_0, ...):

    word 0..1   A.x, A.y                       (G1)
    word 2..5   B.x_im, B.x_re, B.y_im, B.y_re (G2, EIP-197 order)
    word 6..7   C.x, C.y                       (G1)
    word 8..    circuit output signals

snarkjs writes G2 coordinates as [real, imaginary]; the payload stores them
imaginary first, which is what the alt_bn128 pairing precompile expects.
The point at infinity is encoded as all-zero coordinates.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Sequence, Tuple

from hash_utils import WORD_SIZE
from pool_errors import InvalidProofLength

G1Affine = Tuple[int, int]
# ((x_re, x_im), (y_re, y_im))
G2Affine = Tuple[Tuple[int, int], Tuple[int, int]]

PROOF_POINT_WORDS = 8


@dataclass(frozen=True)
class Groth16Proof:
    """Affine coordinates of the proof points (A, B, C)."""
    a: G1Affine
    b: G2Affine
    c: G1Affine

    @classmethod
    def from_snarkjs(cls, proof: Dict[str, Any]) -> "Groth16Proof":
        """Build from a snarkjs `proof.json` mapping (projective, decimal strings)."""
        pi_a, pi_b, pi_c = proof["pi_a"], proof["pi_b"], proof["pi_c"]
        return cls(
            a=(int(pi_a[0]), int(pi_a[1])),
            b=((int(pi_b[0][0]), int(pi_b[0][1])), (int(pi_b[1][0]), int(pi_b[1][1]))),
            c=(int(pi_c[0]), int(pi_c[1])),
        )

    def to_snarkjs(self) -> Dict[str, Any]:
        (bx_re, bx_im), (by_re, by_im) = self.b
        return {
            "pi_a": [str(self.a[0]), str(self.a[1]), "1"],
            "pi_b": [[str(bx_re), str(bx_im)], [str(by_re), str(by_im)], ["1", "0"]],
            "pi_c": [str(self.c[0]), str(self.c[1]), "1"],
            "protocol": "groth16",
            "curve": "bn128",
        }


@dataclass(frozen=True)
class ProofPayload:
    proof: Groth16Proof
    outputs: Tuple[int, ...]


def _word(value: int) -> bytes:
    if not 0 <= value < 2 ** (8 * WORD_SIZE):
        raise ValueError(f"Value does not fit in a {WORD_SIZE}-byte word: {value}")
    return value.to_bytes(WORD_SIZE, byteorder="big")


def payload_size(n_outputs: int) -> int:
    """Minimum payload length in bytes for a proof with n_outputs output signals."""
    return (PROOF_POINT_WORDS + n_outputs) * WORD_SIZE


def encode_proof(proof: Groth16Proof, outputs: Sequence[int]) -> bytes:
    (bx_re, bx_im), (by_re, by_im) = proof.b
    words = [
        proof.a[0], proof.a[1],
        bx_im, bx_re, by_im, by_re,
        proof.c[0], proof.c[1],
    ]
    words.extend(outputs)
    return b"".join(_word(w) for w in words)


def decode_proof(data: bytes, n_outputs: int) -> ProofPayload:
    """
    Split a payload into proof points and output signals.

    Values are returned as-is; range and curve checks belong to the verifier.
    Bytes past the expected length are ignored, like an ABI decoder does.

    Raises:
        InvalidProofLength: payload shorter than payload_size(n_outputs)
    """
    expected = payload_size(n_outputs)
    if len(data) < expected:
        raise InvalidProofLength(expected, len(data))

    words: List[int] = [
        int.from_bytes(data[i * WORD_SIZE:(i + 1) * WORD_SIZE], byteorder="big")
        for i in range(PROOF_POINT_WORDS + n_outputs)
    ]
    proof = Groth16Proof(
        a=(words[0], words[1]),
        b=((words[3], words[2]), (words[5], words[4])),
        c=(words[6], words[7]),
    )
    return ProofPayload(proof, tuple(words[PROOF_POINT_WORDS:]))
