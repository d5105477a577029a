"""
Merkle Tree and Commitments
Deterministic batch Merkle tree construction + proof generation/verification.

This module provides:
- MerkleEngine: builds roots and proofs with an explicit combine hash
- MerkleProof: Dataclass representing a Merkle inclusion proof
- compute_tree_depth: number of combine levels for a batch size

Usage:
    from core.merkle import MerkleEngine

    engine = MerkleEngine(node_algorithm="sha256")
    root = engine.build_root(leaves)
    proof = engine.build_proof(leaves, index=2)
    assert engine.verify(leaves[2], proof.siblings, root)
"""
from .merkle_tree import (
    MerkleEngine,
    MerkleProof,
    merkle_parent,
    compute_tree_depth,
)


__all__ = [
    "MerkleEngine",
    "MerkleProof",
    "merkle_parent",
    "compute_tree_depth",
]
