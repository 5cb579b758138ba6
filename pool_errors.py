# pool_errors.py
"""
Exception hierarchy for the shielded pool core.

Every failure is raised synchronously to the caller of the operation that
hit it. Nothing in the core retries; re-fetching a fresher root or building
a new proof is the caller's job.

Categories:
- Capacity:        TreeFull
- Staleness:       RootUnknown
- Replay:          NullifierAlreadySpent
- Malformed input: InvalidProofLength, InvalidPublicInputsLength, InvalidNullifier
- Cryptographic:   InvalidProof
- Authorization:   Unauthorized
- Prover side:     CircuitConstraintError
- Configuration:   ConfigError
"""


class GhostPoolError(Exception):
    """Base class for all pool errors."""
    pass


class TreeFull(GhostPoolError):
    """The accumulator has no free leaf left (next index == 2^depth)."""

    def __init__(self, depth: int) -> None:
        self.depth = depth
        super().__init__(f"Merkle tree of depth {depth} is full ({2 ** depth} leaves)")


class RootUnknown(GhostPoolError):
    """The presented root is zero or outside the retained history window."""

    def __init__(self, root: int) -> None:
        self.root = root
        super().__init__(f"Unknown Merkle root 0x{root:064x}")


class NullifierAlreadySpent(GhostPoolError):
    """The nullifier was already recorded; the redemption is a replay."""

    def __init__(self, nullifier: int) -> None:
        self.nullifier = nullifier
        super().__init__(f"Nullifier 0x{nullifier:064x} already spent")


class InvalidNullifier(GhostPoolError):
    """The zero value, or a non-field value, was offered as a nullifier."""
    pass


class InvalidProofLength(GhostPoolError):
    """A proof payload or Merkle path has the wrong size."""

    def __init__(self, expected: int, actual: int, what: str = "proof") -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"Invalid {what} length: expected {expected}, got {actual}")


class InvalidPublicInputsLength(GhostPoolError):
    """The public-input vector does not match the verification key."""

    def __init__(self, expected: int, actual: int) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"Invalid public inputs length: expected {expected}, got {actual}")


class InvalidProof(GhostPoolError):
    """The pairing check (or a verifier-side output check) failed."""
    pass


class Unauthorized(GhostPoolError):
    """The caller is not on the allow-list for a privileged operation."""

    def __init__(self, caller: str, operation: str) -> None:
        self.caller = caller
        self.operation = operation
        super().__init__(f"{caller} is not authorized to {operation}")


class CircuitConstraintError(GhostPoolError):
    """A witness violates a constraint of the redeem circuit statement."""

    def __init__(self, constraint: str, detail: str = "") -> None:
        self.constraint = constraint
        message = f"Circuit constraint '{constraint}' not satisfied"
        if detail:
            message += f": {detail}"
        super().__init__(message)


class ConfigError(GhostPoolError):
    """Configuration error."""
    pass
