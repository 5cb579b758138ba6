# dev_trapdoor.py
"""
Development Groth16 setup with known trapdoor scalars.

A real setup throws away the scalars behind alpha, beta, gamma, delta and the
IC points. Keeping them lets anyone produce a proof that passes the pairing
check for any public signal vector they like:

    alpha = a*G1, beta = b*G2, gamma = g*G2, delta = d*G2, IC[i] = ic_i*G1
    x     = ic_0 + sum(ic_{i+1} * s_i)                (mod r)
    A = u*G1, B = v*G2, C = ((u*v - a*b - x*g) / d)*G1

so that -u*v + a*b + x*g + c*d == 0 in the exponent and the product of the
four pairings is 1.

This is a simulator: it proves nothing about the witness. DevelopmentProver
therefore evaluates the circuit statement in circuit_model first and only
simulates a proof for witnesses the real circuit would accept. Never load a
development key into anything that holds value.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from py_ecc import optimized_bn128 as bn128

from circuit_model import (
    PartialRedeemWitness,
    RedeemWitness,
    partial_redeem_circuit,
    partial_redeem_public_inputs,
    redeem_circuit,
    redeem_public_inputs,
)
from groth16_verifier import (
    PARTIAL_REDEEM_OUTPUTS,
    PARTIAL_REDEEM_PUBLIC_INPUTS,
    REDEEM_OUTPUTS,
    REDEEM_PUBLIC_INPUTS,
    VerificationKey,
    g1_affine,
    g2_affine,
)
from hash_utils import FIELD_MODULUS, is_field_element, sha256_to_field
from pool_errors import InvalidPublicInputsLength
from proof_codec import Groth16Proof, encode_proof

logger = logging.getLogger(__name__)

# Domain labels for sha256_to_field, one per derived scalar family
_TRAPDOOR_LABEL = 0x7472617064
_PROOF_LABEL = 0x70726F6F66


def _nonzero(value: int) -> int:
    return value if value else 1


@dataclass(frozen=True)
class Trapdoor:
    alpha: int
    beta: int
    gamma: int
    delta: int
    ic: Tuple[int, ...]


class DevelopmentSetup:
    """A verification key together with the scalars it was built from."""

    def __init__(self, trapdoor: Trapdoor, seed: int = 0) -> None:
        self.trapdoor = trapdoor
        self.seed = seed
        self.verification_key = VerificationKey(
            alpha=g1_affine(bn128.multiply(bn128.G1, trapdoor.alpha)),
            beta=g2_affine(bn128.multiply(bn128.G2, trapdoor.beta)),
            gamma=g2_affine(bn128.multiply(bn128.G2, trapdoor.gamma)),
            delta=g2_affine(bn128.multiply(bn128.G2, trapdoor.delta)),
            ic=tuple(g1_affine(bn128.multiply(bn128.G1, s)) for s in trapdoor.ic),
        )

    @classmethod
    def generate(cls, n_public: int, seed: int = 0) -> "DevelopmentSetup":
        """Derive every trapdoor scalar from `seed`; same seed, same key."""
        if n_public < 1:
            raise ValueError("n_public must be at least 1")

        def scalar(i: int) -> int:
            return _nonzero(sha256_to_field(_TRAPDOOR_LABEL, seed, n_public, i))

        trapdoor = Trapdoor(
            alpha=scalar(0),
            beta=scalar(1),
            gamma=scalar(2),
            delta=scalar(3),
            ic=tuple(scalar(4 + i) for i in range(n_public + 1)),
        )
        logger.info("Generated development key with %d public signals (seed %d)", n_public, seed)
        return cls(trapdoor, seed)

    @property
    def n_public(self) -> int:
        return len(self.trapdoor.ic) - 1

    def prove(self, public_signals: Sequence[int], nonce: Optional[int] = None) -> Groth16Proof:
        """
        Simulate a proof for exactly `public_signals`.

        The proof scalars are derived from the seed and the signals (plus
        `nonce` when given), so a fixed statement gets a fixed proof unless
        the caller asks for a fresh one.
        """
        if len(public_signals) != self.n_public:
            raise InvalidPublicInputsLength(self.n_public, len(public_signals))
        for i, s in enumerate(public_signals):
            if not is_field_element(s):
                raise ValueError(f"Public signal {i} is not a field element")

        t = self.trapdoor
        r = FIELD_MODULUS
        x = t.ic[0]
        for coeff, s in zip(t.ic[1:], public_signals):
            x = (x + coeff * s) % r

        extra = [] if nonce is None else [nonce % r]
        u = _nonzero(sha256_to_field(_PROOF_LABEL, self.seed, 0, *extra, *public_signals))
        v = _nonzero(sha256_to_field(_PROOF_LABEL, self.seed, 1, *extra, *public_signals))
        c = (u * v - t.alpha * t.beta - x * t.gamma) * pow(t.delta, -1, r) % r

        return Groth16Proof(
            a=g1_affine(bn128.multiply(bn128.G1, u)),
            b=g2_affine(bn128.multiply(bn128.G2, v)),
            c=g1_affine(bn128.multiply(bn128.G1, c)),
        )


class DevelopmentProver:
    """
    Prover stand-in for both redeem circuits.

    Each call checks the witness against the circuit statement (raising
    CircuitConstraintError on violation), then returns the encoded proof
    payload the verifier expects: proof points followed by the outputs.
    """

    def __init__(self, redeem_setup: DevelopmentSetup, partial_redeem_setup: Optional[DevelopmentSetup] = None) -> None:
        if redeem_setup.n_public != REDEEM_OUTPUTS + REDEEM_PUBLIC_INPUTS:
            raise ValueError("redeem setup has the wrong number of public signals")
        if partial_redeem_setup is not None and \
                partial_redeem_setup.n_public != PARTIAL_REDEEM_OUTPUTS + PARTIAL_REDEEM_PUBLIC_INPUTS:
            raise ValueError("partial redeem setup has the wrong number of public signals")
        self.redeem_setup = redeem_setup
        self.partial_redeem_setup = partial_redeem_setup

    @classmethod
    def generate(cls, seed: int = 0) -> "DevelopmentProver":
        return cls(
            DevelopmentSetup.generate(REDEEM_OUTPUTS + REDEEM_PUBLIC_INPUTS, seed),
            DevelopmentSetup.generate(PARTIAL_REDEEM_OUTPUTS + PARTIAL_REDEEM_PUBLIC_INPUTS, seed),
        )

    def prove_redeem(self, witness: RedeemWitness) -> bytes:
        outputs = redeem_circuit(witness)
        signals = outputs + redeem_public_inputs(witness)
        proof = self.redeem_setup.prove(signals)
        logger.debug("Simulated redeem proof for root %s", hex(witness.merkle_root))
        return encode_proof(proof, outputs)

    def prove_partial_redeem(self, witness: PartialRedeemWitness) -> bytes:
        if self.partial_redeem_setup is None:
            raise ValueError("No partial redemption setup configured")
        outputs: List[int] = partial_redeem_circuit(witness)
        signals = outputs + partial_redeem_public_inputs(witness)
        proof = self.partial_redeem_setup.prove(signals)
        logger.debug("Simulated partial redeem proof for root %s", hex(witness.merkle_root))
        return encode_proof(proof, outputs)
