# main_redeem_flow.py
"""
Example driver that ties everything together:

- Build a commitment tree, a nullifier ledger and a development verifier.
- Shield a voucher among a few decoy commitments.
- Rebuild the prover-side mirror from the CommitmentInserted events.
- Prove and redeem the voucher (fully, or partially with change).
- Show that replaying the same redemption is rejected.

The proofs come from dev_trapdoor, so this runs without any circuit
toolchain. Never point a development setup at real value.
"""

import argparse
import logging
import secrets
import sys
from typing import List, Optional

from dev_trapdoor import DevelopmentProver
from groth16_verifier import ProofVerifier
from hash_utils import field, to_hex
from merkle_tree import CommitmentTree, MerkleTree
from nullifier_ledger import NullifierLedger
from pool_config import PoolConfig, configure_logging, load_config
from pool_errors import ConfigError, GhostPoolError
from pool_events import CommitmentInserted, EventLog
from redemption import RedemptionOrchestrator, RedemptionStatus, Voucher

logger = logging.getLogger("main_redeem_flow")

OWNER = "pool-admin"
WRAPPER = "ghost-wrapper"


def generate_random_commitments(count: int) -> List[int]:
    """
    Generate random field elements to act as decoy commitments.
    """
    return [field(secrets.randbits(253)) or 1 for _ in range(count)]


def run(config: PoolConfig, amount: int, redeem_amount: Optional[int], decoys: int, seed: int) -> int:
    events = EventLog()
    released = []

    tree = CommitmentTree(OWNER, config.tree_depth, config.root_history_size, events=events)
    ledger = NullifierLedger(OWNER, events=events)
    tree.authorize(OWNER, WRAPPER)
    ledger.authorize(OWNER, WRAPPER)

    prover = DevelopmentProver.generate(seed)
    verifier = ProofVerifier(
        prover.redeem_setup.verification_key,
        prover.partial_redeem_setup.verification_key,
    )
    pool = RedemptionOrchestrator(
        WRAPPER, tree, ledger, verifier, events=events,
        release=lambda recipient, asset, value: released.append((recipient, asset, value)),
    )

    # 1. Shield: decoys on either side of our voucher
    asset_id = field(secrets.randbits(160))
    recipient = field(secrets.randbits(160))
    voucher = Voucher.create(amount, asset_id)

    for c in generate_random_commitments(decoys // 2):
        pool.shield(1, c, sender="decoy")
    voucher.leaf_index = pool.shield(amount, voucher.commitment, sender="alice")
    for c in generate_random_commitments(decoys - decoys // 2):
        pool.shield(1, c, sender="decoy")
    logger.info("Voucher shielded at leaf %d, root %s", voucher.leaf_index, to_hex(tree.get_root()))

    # 2. Prover side: rebuild the tree from the event log
    mirror = MerkleTree.from_commitments(
        [e.commitment for e in events.records(CommitmentInserted)], depth=tree.depth,
    )
    assert mirror.root() == tree.get_root()

    # 3. Prove and redeem
    if redeem_amount is None or redeem_amount == amount:
        witness = voucher.redeem_witness(mirror, recipient)
        proof = prover.prove_redeem(witness)
        args = (amount, asset_id, recipient, voucher.nullifier, witness.merkle_root, proof)
        receipt = pool.redeem(*args)
        replay = pool.attempt_redeem(*args)
    else:
        witness, change = voucher.partial_redeem_witness(mirror, recipient, redeem_amount)
        proof = prover.prove_partial_redeem(witness)
        args = (redeem_amount, amount, asset_id, recipient, voucher.nullifier,
                witness.new_commitment, witness.merkle_root, proof)
        receipt = pool.partial_redeem(*args)
        replay = pool.attempt_partial_redeem(*args)
        if change is not None:
            change.leaf_index = receipt.new_leaf_index
            logger.info("Change voucher of %d at leaf %s", change.amount, change.leaf_index)

    logger.info("Redemption %s: %d released to %s", receipt.status.value, receipt.amount, to_hex(recipient))
    logger.info("Replay attempt: %s", replay.value)

    ok = (
        receipt.status is RedemptionStatus.COMMITTED
        and replay is RedemptionStatus.NULLIFIER_SPENT
        and released == [(recipient, asset_id, receipt.amount)]
    )
    print(f"root          {to_hex(tree.get_root())}")
    print(f"leaves        {tree.get_next_leaf_index()}")
    print(f"spent         {ledger.spent_count()}")
    print(f"redeemed      {receipt.amount}")
    print(f"remaining     {receipt.remaining_amount}")
    print(f"replay        {replay.value}")
    return 0 if ok else 1


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Shield and redeem one voucher with development proofs")
    parser.add_argument("--config", help="YAML configuration file")
    parser.add_argument("--amount", type=int, default=1000, help="voucher amount")
    parser.add_argument("--redeem", type=int, default=None,
                        help="redeem only this much and re-shield the rest")
    parser.add_argument("--decoys", type=int, default=6, help="other commitments in the tree")
    parser.add_argument("--seed", type=int, default=0, help="development setup seed")
    args = parser.parse_args(argv)
    if args.amount <= 0:
        parser.error(f"--amount must be positive, got {args.amount}")
    if args.redeem is not None and not 0 < args.redeem <= args.amount:
        parser.error(f"--redeem must be in (0, {args.amount}], got {args.redeem}")
    if args.decoys < 0:
        parser.error(f"--decoys must not be negative, got {args.decoys}")

    try:
        config = load_config(args.config)
    except ConfigError as exc:
        print(f"configuration error: {exc}", file=sys.stderr)
        return 2
    configure_logging(config.log_level)

    try:
        return run(config, args.amount, args.redeem, args.decoys, args.seed)
    except GhostPoolError as exc:
        logger.error("Redemption flow failed: %s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
