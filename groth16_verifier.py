# groth16_verifier.py
"""
Groth16 verification over BN254 (alt_bn128).

Given a verification key (alpha, beta, gamma, delta, IC[]) and public
signals s_1..s_n, a proof (A, B, C) is accepted iff

    vk_x = IC[0] + sum(IC[i] * s_i)
    e(-A, B) * e(alpha, beta) * e(vk_x, gamma) * e(C, delta) == 1

The four Miller loops share one final exponentiation, the same way the
alt_bn128 pairing precompile evaluates a product of pairings.

The public signal vector is rebuilt here, never taken from the prover as a
whole: the circuit's declared outputs (carried in the proof payload) are
prepended to the caller's inputs in the order the key was generated for.
A vector of the wrong size raises InvalidPublicInputsLength instead of
silently verifying against a different circuit.

Signal order:
    redeem          [commitment,
                     merkleRoot, nullifier, amount, assetId, recipient]
    partial redeem  [oldCommitment, newCommitment, remaining,
                     merkleRoot, oldNullifier, redeemAmount, assetId,
                     recipient, originalAmount, redeemAmount, newCommitment]
"""

import json
import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from py_ecc import optimized_bn128 as bn128

from hash_utils import is_field_element
from pool_errors import InvalidPublicInputsLength
from proof_codec import G1Affine, G2Affine, Groth16Proof, decode_proof

logger = logging.getLogger(__name__)

# Base field of the curve (coordinates), distinct from the scalar field
BASE_FIELD_MODULUS = bn128.field_modulus

REDEEM_OUTPUTS = 1
REDEEM_PUBLIC_INPUTS = 5
PARTIAL_REDEEM_OUTPUTS = 3
PARTIAL_REDEEM_PUBLIC_INPUTS = 8


class InvalidPoint(ValueError):
    """Coordinates out of range, off the curve, or outside the subgroup."""
    pass


def g1_point(xy: G1Affine):
    """Affine (x, y) -> py_ecc projective point. (0, 0) is infinity."""
    x, y = xy
    if not (0 <= x < BASE_FIELD_MODULUS and 0 <= y < BASE_FIELD_MODULUS):
        raise InvalidPoint("G1 coordinate out of range")
    if (x, y) == (0, 0):
        return bn128.Z1
    point = (bn128.FQ(x), bn128.FQ(y), bn128.FQ.one())
    if not bn128.is_on_curve(point, bn128.b):
        raise InvalidPoint("G1 point not on curve")
    return point


def g2_point(xy: G2Affine):
    """Affine ((x_re, x_im), (y_re, y_im)) -> py_ecc projective twist point."""
    (x_re, x_im), (y_re, y_im) = xy
    for v in (x_re, x_im, y_re, y_im):
        if not 0 <= v < BASE_FIELD_MODULUS:
            raise InvalidPoint("G2 coordinate out of range")
    if (x_re, x_im, y_re, y_im) == (0, 0, 0, 0):
        return bn128.Z2
    point = (bn128.FQ2([x_re, x_im]), bn128.FQ2([y_re, y_im]), bn128.FQ2.one())
    if not bn128.is_on_curve(point, bn128.b2):
        raise InvalidPoint("G2 point not on curve")
    if bn128.multiply(point, bn128.curve_order)[-1] != bn128.FQ2.zero():
        raise InvalidPoint("G2 point not in the prime-order subgroup")
    return point


def g1_affine(point) -> G1Affine:
    """py_ecc projective G1 point -> affine ints, infinity as (0, 0)."""
    if point[-1] == bn128.FQ.zero():
        return (0, 0)
    x, y = bn128.normalize(point)
    return (int(x), int(y))


def g2_affine(point) -> G2Affine:
    if point[-1] == bn128.FQ2.zero():
        return ((0, 0), (0, 0))
    x, y = bn128.normalize(point)
    return ((int(x.coeffs[0]), int(x.coeffs[1])), (int(y.coeffs[0]), int(y.coeffs[1])))


@dataclass(frozen=True)
class VerificationKey:
    """
    Groth16 verification key in affine coordinates.

    One key per proof type; len(ic) == number of public signals + 1.
    """
    alpha: G1Affine
    beta: G2Affine
    gamma: G2Affine
    delta: G2Affine
    ic: Tuple[G1Affine, ...]

    @property
    def n_public(self) -> int:
        return len(self.ic) - 1

    def validate(self) -> None:
        """Raise InvalidPoint unless every key point is a valid curve point."""
        _prepare_key(self)

    @classmethod
    def from_snarkjs(cls, data: Dict[str, Any]) -> "VerificationKey":
        """Build from a snarkjs `verification_key.json` mapping."""
        if data.get("protocol", "groth16") != "groth16":
            raise ValueError(f"Unsupported protocol: {data.get('protocol')}")
        if data.get("curve", "bn128") != "bn128":
            raise ValueError(f"Unsupported curve: {data.get('curve')}")

        def g1(p: Sequence[Any]) -> G1Affine:
            return (int(p[0]), int(p[1]))

        def g2(p: Sequence[Sequence[Any]]) -> G2Affine:
            return ((int(p[0][0]), int(p[0][1])), (int(p[1][0]), int(p[1][1])))

        key = cls(
            alpha=g1(data["vk_alpha_1"]),
            beta=g2(data["vk_beta_2"]),
            gamma=g2(data["vk_gamma_2"]),
            delta=g2(data["vk_delta_2"]),
            ic=tuple(g1(p) for p in data["IC"]),
        )
        n_public = data.get("nPublic")
        if n_public is not None and int(n_public) != key.n_public:
            raise ValueError(f"nPublic={n_public} but IC has {len(key.ic)} points")
        return key

    def to_snarkjs(self) -> Dict[str, Any]:
        def g1(p: G1Affine) -> List[str]:
            return [str(p[0]), str(p[1]), "1"]

        def g2(p: G2Affine) -> List[List[str]]:
            return [[str(p[0][0]), str(p[0][1])], [str(p[1][0]), str(p[1][1])], ["1", "0"]]

        return {
            "protocol": "groth16",
            "curve": "bn128",
            "nPublic": self.n_public,
            "vk_alpha_1": g1(self.alpha),
            "vk_beta_2": g2(self.beta),
            "vk_gamma_2": g2(self.gamma),
            "vk_delta_2": g2(self.delta),
            "IC": [g1(p) for p in self.ic],
        }


def load_verification_key(path: Union[str, Path]) -> VerificationKey:
    """Read and validate a snarkjs verification key file."""
    with open(path, "r", encoding="utf-8") as f:
        key = VerificationKey.from_snarkjs(json.load(f))
    key.validate()
    logger.info("Loaded verification key %s (%d public signals)", path, key.n_public)
    return key


@dataclass(frozen=True)
class _PreparedKey:
    alpha: Any
    beta: Any
    gamma: Any
    delta: Any
    ic: Tuple[Any, ...]


@lru_cache(maxsize=16)
def _prepare_key(vk: VerificationKey) -> _PreparedKey:
    return _PreparedKey(
        alpha=g1_point(vk.alpha),
        beta=g2_point(vk.beta),
        gamma=g2_point(vk.gamma),
        delta=g2_point(vk.delta),
        ic=tuple(g1_point(p) for p in vk.ic),
    )


def compute_vk_x(vk: VerificationKey, public_signals: Sequence[int]):
    """IC[0] + sum(IC[i+1] * s_i), as a projective G1 point."""
    prepared = _prepare_key(vk)
    vk_x = prepared.ic[0]
    for point, signal in zip(prepared.ic[1:], public_signals):
        vk_x = bn128.add(vk_x, bn128.multiply(point, signal))
    return vk_x


def verify_groth16(vk: VerificationKey, proof: Groth16Proof, public_signals: Sequence[int]) -> bool:
    """
    Check a Groth16 proof against a full public signal vector.

    Returns False for any cryptographic failure (signal outside the scalar
    field, malformed point, pairing mismatch).

    Raises:
        InvalidPublicInputsLength: len(public_signals) != vk.n_public
    """
    if len(public_signals) != vk.n_public:
        raise InvalidPublicInputsLength(vk.n_public, len(public_signals))

    for i, signal in enumerate(public_signals):
        if not is_field_element(signal):
            logger.warning("Public signal %d is not below the field modulus", i)
            return False

    try:
        a = g1_point(proof.a)
        b = g2_point(proof.b)
        c = g1_point(proof.c)
    except InvalidPoint as exc:
        logger.warning("Malformed proof point: %s", exc)
        return False

    prepared = _prepare_key(vk)
    vk_x = compute_vk_x(vk, public_signals)

    product = bn128.pairing(b, bn128.neg(a), final_exponentiate=False)
    product *= bn128.pairing(prepared.beta, prepared.alpha, final_exponentiate=False)
    product *= bn128.pairing(prepared.gamma, vk_x, final_exponentiate=False)
    product *= bn128.pairing(prepared.delta, c, final_exponentiate=False)
    ok = bn128.final_exponentiate(product) == bn128.FQ12.one()

    logger.debug("Pairing check over %d signals: %s", len(public_signals), ok)
    return ok


class ProofVerifier:
    """
    Verifier for the two redeem proof types, each with its own key.

    The partial redemption key is optional; without it partial proofs are
    refused.
    """

    def __init__(self, redeem_key: VerificationKey, partial_redeem_key: Optional[VerificationKey] = None) -> None:
        _check_key_shape(redeem_key, REDEEM_OUTPUTS + REDEEM_PUBLIC_INPUTS, "redeem")
        if partial_redeem_key is not None:
            _check_key_shape(
                partial_redeem_key,
                PARTIAL_REDEEM_OUTPUTS + PARTIAL_REDEEM_PUBLIC_INPUTS,
                "partial redeem",
            )
        self.redeem_key = redeem_key
        self.partial_redeem_key = partial_redeem_key

    def verify_redemption_proof(self, proof_bytes: bytes, public_inputs: Sequence[int]) -> bool:
        """
        public_inputs: [merkleRoot, nullifier, amount, assetId, recipient]

        Raises:
            InvalidPublicInputsLength: not exactly 5 inputs
            InvalidProofLength: payload shorter than 9 words
        """
        if len(public_inputs) != REDEEM_PUBLIC_INPUTS:
            raise InvalidPublicInputsLength(REDEEM_PUBLIC_INPUTS, len(public_inputs))
        payload = decode_proof(proof_bytes, REDEEM_OUTPUTS)
        signals = list(payload.outputs) + list(public_inputs)
        return verify_groth16(self.redeem_key, payload.proof, signals)

    def verify_partial_redemption_proof(self, proof_bytes: bytes, public_inputs: Sequence[int]) -> bool:
        """
        public_inputs: [merkleRoot, oldNullifier, redeemAmount, assetId,
                        recipient, originalAmount, redeemAmount, newCommitment]

        The amount relation is the circuit's to enforce; the checks below
        only make sure the declared outputs agree with what the caller
        claims, so an inconsistent request fails before any pairing work.

        Raises:
            InvalidPublicInputsLength: not exactly 8 inputs
            InvalidProofLength: payload shorter than 11 words
        """
        if self.partial_redeem_key is None:
            raise ValueError("No partial redemption verification key configured")
        if len(public_inputs) != PARTIAL_REDEEM_PUBLIC_INPUTS:
            raise InvalidPublicInputsLength(PARTIAL_REDEEM_PUBLIC_INPUTS, len(public_inputs))
        payload = decode_proof(proof_bytes, PARTIAL_REDEEM_OUTPUTS)

        old_commitment, new_commitment_out, remaining = payload.outputs
        redeem_amount, original_amount = public_inputs[2], public_inputs[5]
        redeem_amount_dup, new_commitment = public_inputs[6], public_inputs[7]

        if redeem_amount != redeem_amount_dup:
            logger.warning("Partial redemption: redeem amount copies differ")
            return False
        if redeem_amount > original_amount:
            logger.warning("Partial redemption: redeem amount exceeds original amount")
            return False
        if remaining != original_amount - redeem_amount:
            logger.warning("Partial redemption: declared remaining amount does not balance")
            return False
        if new_commitment_out != new_commitment:
            logger.warning("Partial redemption: new commitment does not match circuit output")
            return False
        if remaining == 0 and new_commitment != 0:
            logger.warning("Partial redemption: non-zero new commitment with nothing remaining")
            return False

        signals = [old_commitment, new_commitment_out, remaining] + list(public_inputs)
        return verify_groth16(self.partial_redeem_key, payload.proof, signals)


def _check_key_shape(vk: VerificationKey, n_public: int, name: str) -> None:
    if vk.n_public != n_public:
        raise InvalidPublicInputsLength(n_public, vk.n_public)
    vk.validate()
    logger.debug("%s key accepted with %d public signals", name, n_public)
