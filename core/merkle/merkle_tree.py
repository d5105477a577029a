"""
Merkle Tree Implementation
Deterministic batch Merkle tree construction, proof generation, and verification.

This module provides:
- Deterministic Merkle root computation over document leaves
- Merkle proof generation for any leaf index
- Merkle proof verification
- Sorted-pair combination with an explicitly configured node hash

Canonical Commitment Rules (Hard Contracts):
1. Leaves are 32-byte document digests supplied by the caller, in
   submission order. This module never sorts the leaf list.
2. Parent hashing: parent = H(min(a, b) + max(a, b)), H chosen once per
   engine from the closed registry in core.crypto.hashing.
3. Odd node at any level: promoted unchanged to the next level, no sibling
   is recorded for it.
4. Single leaf: root = leaf, proof = [].
5. Empty leaf list: rejected.

Determinism Notes:
- No randomness. The root is a pure function of (leaves, node_algorithm).
- Because pairs are sorted, proofs carry no left/right flags and
  verification needs no leaf index.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from core.crypto.hashing import (
    DIGEST_SIZE,
    HashFunction,
    get_hash_function,
)


@dataclass(frozen=True)
class MerkleProof:
    """
    A Merkle inclusion proof for one leaf of a batch.

    Attributes:
        leaf: The leaf digest being proven
        index: The 0-based index of the leaf in submission order
        siblings: Sibling digests from bottom to top of the tree
        root: The Merkle root this proof is against
    """
    leaf: bytes
    index: int
    siblings: list[bytes] = field(default_factory=list)
    root: bytes = b""

    def __post_init__(self) -> None:
        if self.index < 0:
            raise ValueError(f"Leaf index must be non-negative, got {self.index}")


def merkle_parent(left: bytes, right: bytes, hash_fn: HashFunction) -> bytes:
    """
    Combine two child nodes into their parent.

    The pair is sorted lexicographically before hashing, so
    merkle_parent(a, b, h) == merkle_parent(b, a, h).
    """
    if left <= right:
        return hash_fn(left + right)
    return hash_fn(right + left)


class MerkleEngine:
    """
    Binary Merkle tree over a batch of document digests.

    The combine hash is fixed at construction and used for every build,
    proof and verification this engine performs.

    Example:
        >>> engine = MerkleEngine(node_algorithm="sha256")
        >>> root = engine.build_root(leaves)
        >>> proof = engine.build_proof(leaves, 1)
        >>> engine.verify(leaves[1], proof.siblings, root)
        True
    """

    def __init__(self, node_algorithm: str) -> None:
        self.node_algorithm = node_algorithm
        self._hash = get_hash_function(node_algorithm)

    def parent(self, left: bytes, right: bytes) -> bytes:
        """Parent node of two children under this engine's combine hash."""
        return merkle_parent(left, right, self._hash)

    def build_levels(self, leaves: Sequence[bytes]) -> list[list[bytes]]:
        """
        Build every level of the tree, leaves first and root last.

        Raises:
            ValueError: If leaves is empty or a leaf is not 32 bytes
        """
        if len(leaves) == 0:
            raise ValueError("Cannot build a Merkle tree from an empty leaf list")
        for i, leaf in enumerate(leaves):
            if len(leaf) != DIGEST_SIZE:
                raise ValueError(
                    f"Leaf {i} must be {DIGEST_SIZE} bytes, got {len(leaf)}"
                )

        levels: list[list[bytes]] = [list(leaves)]
        current = levels[0]
        while len(current) > 1:
            next_level: list[bytes] = []
            for i in range(0, len(current) - 1, 2):
                next_level.append(self.parent(current[i], current[i + 1]))
            if len(current) % 2 == 1:
                # Promote the unpaired node
                next_level.append(current[-1])
            levels.append(next_level)
            current = next_level
        return levels

    def build_root(self, leaves: Sequence[bytes]) -> bytes:
        """
        Compute the batch root.

        Example: [a, b, c] -> [P(a, b), c] -> [P(P(a, b), c)]
        """
        return self.build_levels(leaves)[-1][0]

    def build_proof(self, leaves: Sequence[bytes], index: int) -> MerkleProof:
        """
        Generate the inclusion proof for the leaf at ``index``.

        Raises:
            IndexError: If index is out of range
            ValueError: If leaves is empty
        """
        if len(leaves) == 0:
            raise ValueError("Cannot generate proof for empty leaf list")
        if index < 0 or index >= len(leaves):
            raise IndexError(
                f"Leaf index {index} out of range for {len(leaves)} leaves"
            )

        levels = self.build_levels(leaves)
        return self._proof_from_levels(levels, index)

    def build_all_proofs(self, leaves: Sequence[bytes]) -> list[MerkleProof]:
        """Generate one proof per leaf, in leaf order, from a single tree build."""
        levels = self.build_levels(leaves)
        return [self._proof_from_levels(levels, i) for i in range(len(leaves))]

    def _proof_from_levels(self, levels: list[list[bytes]], index: int) -> MerkleProof:
        siblings: list[bytes] = []
        position = index
        for level in levels[:-1]:
            sibling_index = position ^ 1
            if sibling_index < len(level):
                siblings.append(level[sibling_index])
            position //= 2
        return MerkleProof(
            leaf=levels[0][index],
            index=index,
            siblings=siblings,
            root=levels[-1][0],
        )

    def compute_root_from_proof(self, leaf: bytes, siblings: Sequence[bytes]) -> bytes:
        """Fold a leaf up through its siblings with the sort-then-combine rule."""
        current = leaf
        for sibling in siblings:
            current = self.parent(current, sibling)
        return current

    def verify(self, leaf: bytes, siblings: Sequence[bytes], root: bytes) -> bool:
        """
        Check that ``leaf`` is included under ``root``.

        Returns:
            True if folding the siblings reproduces the root, False otherwise
        """
        return self.compute_root_from_proof(leaf, siblings) == root

    def verify_proof(self, proof: MerkleProof) -> bool:
        """Verify a MerkleProof against its own claimed root."""
        return self.verify(proof.leaf, proof.siblings, proof.root)


def compute_tree_depth(num_leaves: int) -> int:
    """
    Number of combine levels above the leaves.

    A single leaf has depth 0, two leaves depth 1, three or four leaves
    depth 2. Proof length never exceeds this value.
    """
    if num_leaves <= 1:
        return 0
    depth = 0
    n = num_leaves
    while n > 1:
        n = (n + 1) // 2
        depth += 1
    return depth


__all__ = [
    "MerkleProof",
    "MerkleEngine",
    "merkle_parent",
    "compute_tree_depth",
]
