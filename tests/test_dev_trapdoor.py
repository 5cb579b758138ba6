"""Development setup tests (no pairings: only key derivation and witness checks)."""

import pytest

from circuit_model import RedeemWitness
from dev_trapdoor import DevelopmentProver, DevelopmentSetup
from pool_errors import CircuitConstraintError, InvalidPublicInputsLength


def test_same_seed_same_key(dev_prover):
    again = DevelopmentSetup.generate(6, seed=7)
    assert again.verification_key == dev_prover.redeem_setup.verification_key
    assert again.n_public == 6


def test_different_seed_different_key(dev_prover):
    other = DevelopmentSetup.generate(6, seed=8)
    assert other.verification_key != dev_prover.redeem_setup.verification_key


def test_key_size(dev_prover):
    assert len(dev_prover.redeem_setup.verification_key.ic) == 7
    assert len(dev_prover.partial_redeem_setup.verification_key.ic) == 12


def test_proof_is_deterministic_per_statement(dev_prover):
    setup = dev_prover.redeem_setup
    signals = [1, 2, 3, 4, 5, 6]
    assert setup.prove(signals) == setup.prove(signals)
    assert setup.prove(signals, nonce=1) != setup.prove(signals)


def test_wrong_signal_count(dev_prover):
    with pytest.raises(InvalidPublicInputsLength):
        dev_prover.redeem_setup.prove([1, 2, 3])


def test_prover_refuses_invalid_witness(dev_prover):
    witness = RedeemWitness(
        merkle_root=1, nullifier=2, amount=3, asset_id=4, recipient=5, secret=6,
        path_elements=[0, 0], path_indices=[0, 0],
    )
    with pytest.raises(CircuitConstraintError):
        dev_prover.prove_redeem(witness)


def test_setups_must_match_circuits(dev_prover):
    with pytest.raises(ValueError):
        DevelopmentProver(dev_prover.partial_redeem_setup)
    with pytest.raises(ValueError):
        DevelopmentProver(dev_prover.redeem_setup, dev_prover.redeem_setup)
