import pathlib
import sys

import pytest


# Ensure repo root is on sys.path for the flat top-level modules.
_REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

from dev_trapdoor import DevelopmentProver  # noqa: E402
from groth16_verifier import ProofVerifier  # noqa: E402
from merkle_tree import CommitmentTree  # noqa: E402
from nullifier_ledger import NullifierLedger  # noqa: E402
from pool_events import EventLog  # noqa: E402
from redemption import RedemptionOrchestrator  # noqa: E402

OWNER = "owner"
WRAPPER = "wrapper"
SMALL_DEPTH = 4


# ─────────────────────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def events():
    return EventLog()


@pytest.fixture
def tree(events):
    """Depth-4 accumulator (16 leaves) with WRAPPER as inserter."""
    t = CommitmentTree(OWNER, depth=SMALL_DEPTH, root_history_size=8, events=events)
    t.authorize(OWNER, WRAPPER)
    return t


@pytest.fixture
def ledger(events):
    led = NullifierLedger(OWNER, events=events)
    led.authorize(OWNER, WRAPPER)
    return led


@pytest.fixture(scope="session")
def dev_prover():
    """Development setups for both circuits; key generation is the slow part."""
    return DevelopmentProver.generate(seed=7)


@pytest.fixture(scope="session")
def verifier(dev_prover):
    return ProofVerifier(
        dev_prover.redeem_setup.verification_key,
        dev_prover.partial_redeem_setup.verification_key,
    )


@pytest.fixture
def released():
    return []


@pytest.fixture
def pool(tree, ledger, verifier, events, released):
    return RedemptionOrchestrator(
        WRAPPER, tree, ledger, verifier, events=events,
        release=lambda recipient, asset, amount: released.append((recipient, asset, amount)),
    )
