"""Groth16 verifier tests.

Proofs come from the development trapdoor setup shared through conftest.
Every accepted or pairing-rejected proof costs four pairings, so the
number of cases that reach the pairing check is kept small.
"""

import json

import pytest
from py_ecc import optimized_bn128 as bn128

from groth16_verifier import (
    BASE_FIELD_MODULUS,
    InvalidPoint,
    ProofVerifier,
    VerificationKey,
    g1_point,
    g2_affine,
    g2_point,
    load_verification_key,
    verify_groth16,
)
from hash_utils import FIELD_MODULUS
from pool_errors import InvalidProofLength, InvalidPublicInputsLength
from proof_codec import Groth16Proof, encode_proof
from verification_keys import REDEEM_VERIFICATION_KEY, REDEEM_VERIFICATION_KEY_JSON

SIGNALS = [111, 222, 333, 444, 555, 666]


@pytest.fixture(scope="module")
def redeem_setup(dev_prover):
    return dev_prover.redeem_setup


@pytest.fixture(scope="module")
def partial_setup(dev_prover):
    return dev_prover.partial_redeem_setup


class TestShippedKey:
    def test_shape(self):
        assert REDEEM_VERIFICATION_KEY.n_public == 6
        assert len(REDEEM_VERIFICATION_KEY.ic) == 7

    def test_gamma_is_g2_generator(self):
        assert REDEEM_VERIFICATION_KEY.gamma == g2_affine(bn128.G2)

    def test_points_are_valid(self):
        REDEEM_VERIFICATION_KEY.validate()
        ProofVerifier(REDEEM_VERIFICATION_KEY)

    def test_snarkjs_round_trip(self):
        exported = REDEEM_VERIFICATION_KEY.to_snarkjs()
        assert VerificationKey.from_snarkjs(exported) == REDEEM_VERIFICATION_KEY
        assert exported["IC"] == REDEEM_VERIFICATION_KEY_JSON["IC"]

    def test_load_from_file(self, tmp_path):
        path = tmp_path / "verification_key.json"
        path.write_text(json.dumps(REDEEM_VERIFICATION_KEY_JSON))
        assert load_verification_key(path) == REDEEM_VERIFICATION_KEY

    def test_npublic_mismatch(self):
        data = dict(REDEEM_VERIFICATION_KEY_JSON, nPublic=5)
        with pytest.raises(ValueError):
            VerificationKey.from_snarkjs(data)

    def test_unsupported_curve(self):
        with pytest.raises(ValueError):
            VerificationKey.from_snarkjs(dict(REDEEM_VERIFICATION_KEY_JSON, curve="bls12381"))


class TestPoints:
    def test_infinity(self):
        assert g1_point((0, 0)) == bn128.Z1
        assert g2_point(((0, 0), (0, 0))) == bn128.Z2

    def test_off_curve(self):
        with pytest.raises(InvalidPoint):
            g1_point((1, 1))

    def test_out_of_range(self):
        with pytest.raises(InvalidPoint):
            g1_point((BASE_FIELD_MODULUS, 2))


class TestVerifyGroth16:
    def test_accepts_simulated_proof(self, redeem_setup):
        proof = redeem_setup.prove(SIGNALS)
        assert verify_groth16(redeem_setup.verification_key, proof, SIGNALS)

    def test_rejects_altered_signal(self, redeem_setup):
        proof = redeem_setup.prove(SIGNALS)
        altered = SIGNALS[:-1] + [SIGNALS[-1] + 1]
        assert not verify_groth16(redeem_setup.verification_key, proof, altered)

    def test_signal_outside_field(self, redeem_setup):
        proof = redeem_setup.prove(SIGNALS)
        signals = SIGNALS[:-1] + [SIGNALS[-1] + FIELD_MODULUS]
        assert not verify_groth16(redeem_setup.verification_key, proof, signals)

    def test_wrong_signal_count(self, redeem_setup):
        proof = redeem_setup.prove(SIGNALS)
        with pytest.raises(InvalidPublicInputsLength):
            verify_groth16(redeem_setup.verification_key, proof, SIGNALS[:-1])

    def test_malformed_points(self, redeem_setup):
        proof = redeem_setup.prove(SIGNALS)
        off_curve = Groth16Proof(a=(1, 1), b=proof.b, c=proof.c)
        assert not verify_groth16(redeem_setup.verification_key, off_curve, SIGNALS)
        too_big = Groth16Proof(a=proof.a, b=proof.b, c=(proof.c[0] + BASE_FIELD_MODULUS, proof.c[1]))
        assert not verify_groth16(redeem_setup.verification_key, too_big, SIGNALS)
        bad_twist = Groth16Proof(a=proof.a, b=((1, 0), (1, 0)), c=proof.c)
        assert not verify_groth16(redeem_setup.verification_key, bad_twist, SIGNALS)


class TestProofVerifier:
    def test_key_shape_checked(self, redeem_setup, partial_setup):
        with pytest.raises(InvalidPublicInputsLength):
            ProofVerifier(partial_setup.verification_key)
        with pytest.raises(InvalidPublicInputsLength):
            ProofVerifier(redeem_setup.verification_key, redeem_setup.verification_key)

    def test_redemption_proof(self, verifier, redeem_setup):
        commitment_out, inputs = SIGNALS[0], SIGNALS[1:]
        data = encode_proof(redeem_setup.prove(SIGNALS), [commitment_out])
        assert verifier.verify_redemption_proof(data, inputs)

    def test_redemption_input_count(self, verifier, redeem_setup):
        data = encode_proof(redeem_setup.prove(SIGNALS), [SIGNALS[0]])
        with pytest.raises(InvalidPublicInputsLength):
            verifier.verify_redemption_proof(data, SIGNALS[1:-1])
        with pytest.raises(InvalidPublicInputsLength):
            verifier.verify_redemption_proof(data, SIGNALS)

    def test_redemption_short_payload(self, verifier):
        with pytest.raises(InvalidProofLength):
            verifier.verify_redemption_proof(b"\x00" * (8 * 32), SIGNALS[1:])

    def test_partial_without_key(self):
        v = ProofVerifier(REDEEM_VERIFICATION_KEY)
        with pytest.raises(ValueError):
            v.verify_partial_redemption_proof(b"\x00" * (11 * 32), [0] * 8)

    def test_partial_short_payload(self, verifier):
        with pytest.raises(InvalidProofLength):
            verifier.verify_partial_redemption_proof(b"\x00" * (10 * 32), [0] * 8)


def _partial(partial_setup, old=1, new=2, remaining=40, root=3, nullifier=4, redeem=60,
             asset=5, recipient=6, original=100, redeem_dup=None, new_input=None):
    outputs = [old, new, remaining]
    inputs = [root, nullifier, redeem, asset, recipient, original,
              redeem if redeem_dup is None else redeem_dup,
              new if new_input is None else new_input]
    proof = partial_setup.prove(outputs + inputs)
    return encode_proof(proof, outputs), inputs


class TestPartialOutputChecks:
    """Inconsistent requests are refused before the pairing check, even with a valid proof."""

    def test_consistent_request_verifies(self, verifier, partial_setup):
        data, inputs = _partial(partial_setup)
        assert verifier.verify_partial_redemption_proof(data, inputs)

    def test_redeem_copies_differ(self, verifier, partial_setup):
        data, inputs = _partial(partial_setup, redeem_dup=61)
        assert not verifier.verify_partial_redemption_proof(data, inputs)

    def test_redeem_exceeds_original(self, verifier, partial_setup):
        data, inputs = _partial(partial_setup, redeem=120, remaining=0, new=0)
        assert not verifier.verify_partial_redemption_proof(data, inputs)

    def test_remaining_does_not_balance(self, verifier, partial_setup):
        data, inputs = _partial(partial_setup, remaining=41)
        assert not verifier.verify_partial_redemption_proof(data, inputs)

    def test_new_commitment_mismatch(self, verifier, partial_setup):
        data, inputs = _partial(partial_setup, new_input=9)
        assert not verifier.verify_partial_redemption_proof(data, inputs)

    def test_change_without_remaining(self, verifier, partial_setup):
        data, inputs = _partial(partial_setup, redeem=100, remaining=0, new=2)
        assert not verifier.verify_partial_redemption_proof(data, inputs)
