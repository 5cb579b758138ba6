# merkle_tree.py
"""
Binary Merkle trees over the domain-separated Poseidon hash chain.

Two views of the same tree:

- CommitmentTree: the authoritative, ledger-side incremental accumulator.
  It keeps only the rightmost filled subtree per level, so an insertion costs
  `depth` node hashes instead of a rebuild. It owns the root history window
  and answers "is this root one we have seen recently?".

- MerkleTree: the off-chain / prover-side mirror. It stores every non-empty
  node so a voucher holder can extract the Merkle opening (siblings,
  positions) for their leaf, exactly what the redeem circuit consumes.

Both start from the same empty-subtree hashes:

    zeros[0] = hash_leaf(0)
    zeros[i] = hash_node(zeros[i-1], zeros[i-1])

and after the same sequence of insertions both report the same root.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from access_control import AllowList
from hash_utils import hash_leaf, hash_node, is_field_element, to_hex, from_hex
from pool_errors import InvalidProofLength, TreeFull
from pool_events import CommitmentInserted, EventLog

logger = logging.getLogger(__name__)

DEFAULT_TREE_DEPTH = 20
DEFAULT_ROOT_HISTORY_SIZE = 100
MAX_TREE_DEPTH = 32


def compute_zero_values(depth: int) -> List[int]:
    """
    Empty-subtree hashes for levels 0..depth.

    zeros[depth] is the root of the empty tree.
    """
    zeros = [hash_leaf(0)]
    for _ in range(depth):
        zeros.append(hash_node(zeros[-1], zeros[-1]))
    return zeros


def _check_depth(depth: int) -> None:
    if not 1 <= depth <= MAX_TREE_DEPTH:
        raise ValueError(f"Tree depth must be in [1, {MAX_TREE_DEPTH}], got {depth}")


def _check_commitment(value: int) -> None:
    if not is_field_element(value):
        raise ValueError(f"Commitment is not a reduced field element: {value!r}")


def fold_opening(leaf: int, siblings: Sequence[int], positions: Sequence[int]) -> int:
    """
    Recompute a root from a leaf value and its opening.

    positions[h] = 0 if the running node is the LEFT child at height h,
                   1 if it is the RIGHT child.
    """
    needle = hash_leaf(leaf)
    for h, (sibling, position) in enumerate(zip(siblings, positions)):
        if position == 0:
            needle = hash_node(needle, sibling)
        elif position == 1:
            needle = hash_node(sibling, needle)
        else:
            raise ValueError(f"Invalid position at level {h}: {position}. Must be 0 or 1.")
    return needle


class CommitmentTree:
    """
    Incremental Merkle accumulator of fixed depth with a bounded root history.

    - filled_subtrees[i]: hash of the rightmost complete subtree at level i
    - roots: circular buffer of the last `root_history_size` roots
    - current_root_index: slot of the current root in `roots`

    Only authorized inserters may mutate the tree; every query is open.
    """

    def __init__(
        self,
        owner: str,
        depth: int = DEFAULT_TREE_DEPTH,
        root_history_size: int = DEFAULT_ROOT_HISTORY_SIZE,
        events: Optional[EventLog] = None,
    ) -> None:
        _check_depth(depth)
        if root_history_size < 1:
            raise ValueError("root_history_size must be at least 1")

        self.depth = depth
        self.root_history_size = root_history_size
        self.capacity = 2 ** depth
        self.inserters = AllowList(owner, "inserter")
        self.events = events if events is not None else EventLog()

        self.zeros = compute_zero_values(depth)
        self.filled_subtrees: List[int] = list(self.zeros[:depth])
        self.roots: List[int] = [0] * root_history_size
        self.current_root_index = 0
        self.next_leaf_index = 0
        self._root_counts: Dict[int, int] = {}
        self._commitments: List[int] = []

        self.roots[0] = self.zeros[depth]
        self._root_counts[self.zeros[depth]] = 1

    @property
    def owner(self) -> str:
        return self.inserters.owner

    # -- admin --------------------------------------------------------------

    def authorize(self, caller: str, address: str) -> None:
        self.inserters.authorize(caller, address)

    def revoke(self, caller: str, address: str) -> None:
        self.inserters.revoke(caller, address)

    # -- mutation -----------------------------------------------------------

    def insert(self, caller: str, commitment: int) -> int:
        """
        Append a commitment and return its leaf index.

        Walks the authenticated path of the new leaf: at an even index the
        running hash becomes the level's filled subtree and is paired with
        the empty subtree on its right; at an odd index it is paired with
        the filled subtree on its left.

        Raises:
            Unauthorized: caller is not an authorized inserter
            TreeFull: all 2^depth leaves are taken
        """
        self.inserters.require(caller, "insert commitment")
        _check_commitment(commitment)
        if self.next_leaf_index >= self.capacity:
            raise TreeFull(self.depth)

        leaf_index = self.next_leaf_index
        current_index = leaf_index
        current_hash = hash_leaf(commitment)

        for level in range(self.depth):
            if current_index % 2 == 0:
                self.filled_subtrees[level] = current_hash
                left, right = current_hash, self.zeros[level]
            else:
                left, right = self.filled_subtrees[level], current_hash
            current_hash = hash_node(left, right)
            current_index //= 2

        self._push_root(current_hash)
        self.next_leaf_index = leaf_index + 1
        self._commitments.append(commitment)

        logger.info("Inserted commitment %s at leaf %d, root %s",
                    to_hex(commitment), leaf_index, to_hex(current_hash))
        self.events.emit(CommitmentInserted(commitment, leaf_index, current_hash))
        return leaf_index

    def _push_root(self, root: int) -> None:
        slot = (self.current_root_index + 1) % self.root_history_size
        evicted = self.roots[slot]
        if evicted:
            remaining = self._root_counts[evicted] - 1
            if remaining:
                self._root_counts[evicted] = remaining
            else:
                del self._root_counts[evicted]
                logger.debug("Root %s aged out of history", to_hex(evicted))
        self.roots[slot] = root
        self._root_counts[root] = self._root_counts.get(root, 0) + 1
        self.current_root_index = slot

    # -- queries ------------------------------------------------------------

    def get_root(self) -> int:
        return self.roots[self.current_root_index]

    def get_historical_root(self, index: int) -> int:
        """Raw history slot; 0 for a slot that was never written."""
        if not 0 <= index < self.root_history_size:
            raise IndexError(f"History index {index} out of range [0, {self.root_history_size})")
        return self.roots[index]

    def is_known_root(self, root: int) -> bool:
        if root == 0:
            return False
        return root in self._root_counts

    def get_next_leaf_index(self) -> int:
        return self.next_leaf_index

    def get_zero_value(self, level: int) -> int:
        if not 0 <= level <= self.depth:
            raise IndexError(f"Level {level} out of range [0, {self.depth}]")
        return self.zeros[level]

    def get_commitment(self, index: int) -> int:
        if not 0 <= index < len(self._commitments):
            raise IndexError(f"No commitment at leaf {index}")
        return self._commitments[index]

    def get_commitment_count(self) -> int:
        return len(self._commitments)

    def commitments(self) -> List[int]:
        return list(self._commitments)

    def verify_membership(
        self,
        leaf: int,
        path_elements: Sequence[int],
        path_indices: Sequence[int],
        root: int,
    ) -> bool:
        """
        Check a Merkle opening against `root`.

        A path index other than 0 or 1 is not a valid opening of any leaf,
        so it yields False rather than an error.

        Raises:
            InvalidProofLength: a path array is not exactly `depth` long
        """
        if len(path_elements) != self.depth:
            raise InvalidProofLength(self.depth, len(path_elements), "Merkle path")
        if len(path_indices) != self.depth:
            raise InvalidProofLength(self.depth, len(path_indices), "Merkle path indices")
        if any(position not in (0, 1) for position in path_indices):
            return False
        return fold_opening(leaf, path_elements, path_indices) == root

    # -- persistence --------------------------------------------------------

    def snapshot(self) -> Dict[str, Any]:
        """JSON-compatible copy of the full persisted state."""
        return {
            "depth": self.depth,
            "root_history_size": self.root_history_size,
            "owner": self.owner,
            "inserters": self.inserters.members(),
            "next_leaf_index": self.next_leaf_index,
            "current_root_index": self.current_root_index,
            "filled_subtrees": [to_hex(v) for v in self.filled_subtrees],
            "roots": [to_hex(v) for v in self.roots],
            "commitments": [to_hex(v) for v in self._commitments],
        }

    @classmethod
    def restore(cls, state: Dict[str, Any], events: Optional[EventLog] = None) -> "CommitmentTree":
        """Rebuild a tree from `snapshot()` output. The presence index is recomputed."""
        tree = cls(
            owner=state["owner"],
            depth=state["depth"],
            root_history_size=state["root_history_size"],
            events=events,
        )
        roots = [from_hex(v) for v in state["roots"]]
        filled = [from_hex(v) for v in state["filled_subtrees"]]
        if len(roots) != tree.root_history_size or len(filled) != tree.depth:
            raise ValueError("Snapshot does not match its declared depth/history size")

        for address in state.get("inserters", []):
            tree.inserters.authorize(tree.owner, address)
        tree.roots = roots
        tree.filled_subtrees = filled
        tree.current_root_index = state["current_root_index"]
        tree.next_leaf_index = state["next_leaf_index"]
        tree._commitments = [from_hex(v) for v in state["commitments"]]
        tree._root_counts = {}
        for root in roots:
            if root:
                tree._root_counts[root] = tree._root_counts.get(root, 0) + 1
        return tree


class MerkleTree:
    """
    Sparse binary Merkle tree (arity = 2), prover side.

    - levels[0][i] = hash_leaf(leaf i)
    - levels[h][i] = hash_node(levels[h-1][2i], levels[h-1][2i+1])
    - missing nodes are the empty-subtree hashes zeros[h]
    """

    def __init__(self, depth: int = DEFAULT_TREE_DEPTH) -> None:
        _check_depth(depth)
        self.depth = depth
        self.zeros = compute_zero_values(depth)
        self.leaves: List[int] = []
        self.levels: List[Dict[int, int]] = [dict() for _ in range(depth + 1)]

    @classmethod
    def from_commitments(cls, commitments: Sequence[int], depth: int = DEFAULT_TREE_DEPTH) -> "MerkleTree":
        """Rebuild the mirror from a commitment log (e.g. CommitmentInserted events)."""
        tree = cls(depth)
        for value in commitments:
            tree.insert(value)
        return tree

    def insert(self, commitment: int) -> int:
        _check_commitment(commitment)
        if len(self.leaves) >= 2 ** self.depth:
            raise TreeFull(self.depth)

        index = len(self.leaves)
        self.leaves.append(commitment)
        node = hash_leaf(commitment)
        self.levels[0][index] = node

        idx = index
        for level in range(self.depth):
            sibling = self._node(level, idx ^ 1)
            node = hash_node(sibling, node) if idx % 2 else hash_node(node, sibling)
            idx //= 2
            self.levels[level + 1][idx] = node
        return index

    def _node(self, level: int, index: int) -> int:
        return self.levels[level].get(index, self.zeros[level])

    def root(self) -> int:
        """
        Return the root hash of the tree (a field element).
        """
        return self._node(self.depth, 0)

    def opening(self, index: int) -> Tuple[List[int], List[int]]:
        """
        Compute the Merkle opening (siblings, positions) for a given leaf index.

        Returns: (siblings, positions)
        - siblings[h] = sibling hash at height h (0 = leaf level, up to depth-1)
        - positions[h] = 0 if our node was LEFT child at that level,
                         1 if our node was RIGHT child.

        Example for a depth-2 tree with leaves [A, B, C] and opening(2):
                    root
                   /    \\
                 N1       N2
                /  \\     /  \\
               A    B   C    zeros[0]

        - positions[0] = 0, siblings[0] = zeros[0] (empty right neighbour)
        - positions[1] = 1, siblings[1] = N1

        These are the pathElements / pathIndices of the redeem circuit.
        """
        if index < 0 or index >= len(self.leaves):
            raise IndexError("Leaf index out of range")

        siblings: List[int] = []
        positions: List[int] = []

        idx = index
        for level in range(self.depth):
            # Sibling index: flip the last bit
            siblings.append(self._node(level, idx ^ 1))
            positions.append(idx % 2)
            idx //= 2

        return siblings, positions
