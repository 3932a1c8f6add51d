"""
HACKLEDGER v1.0 — Merkle Tree Utilities.

Merkle roots seal journal checkpoints; inclusion proofs let an auditor
show that one event belongs to a sealed checkpoint without replaying
the whole range.
"""

import hashlib
from typing import List, Tuple

Proof = List[Tuple[str, str]]


def _hash_pair(left: str, right: str) -> str:
    return hashlib.sha256(f"{left}{right}".encode()).hexdigest()


def _next_level(level: List[str]) -> List[str]:
    # Odd level: the last node is paired with itself
    return [
        _hash_pair(level[i], level[i + 1] if i + 1 < len(level) else level[i])
        for i in range(0, len(level), 2)
    ]


def compute_merkle_root(hashes: List[str]) -> str:
    """
    Compute the Merkle root of a list of hashes.

    Args:
        hashes: List of SHA-256 hex strings.

    Returns:
        Hex string of the Merkle root ("" for an empty list).
    """
    return MerkleTree(hashes).root


def verify_merkle_proof(leaf_hash: str, proof: Proof, root_hash: str) -> bool:
    """
    Verify a Merkle inclusion proof.

    Args:
        leaf_hash: The hash of the item to verify.
        proof: List of (sibling_hash, position) tuples. Position is 'L' or 'R'.
        root_hash: The expected Merkle root.
    """
    current_hash = leaf_hash
    for sibling, position in proof:
        if position == "L":
            current_hash = _hash_pair(sibling, current_hash)
        else:
            current_hash = _hash_pair(current_hash, sibling)
    return current_hash == root_hash


class MerkleTree:
    """Merkle tree kept level by level, leaves first."""

    def __init__(self, items: List[str]):
        self.leaves = list(items)
        self.levels: List[List[str]] = []
        if self.leaves:
            level = self.leaves
            self.levels.append(level)
            while len(level) > 1:
                level = _next_level(level)
                self.levels.append(level)

    @property
    def root(self) -> str:
        return self.levels[-1][0] if self.levels else ""

    def get_proof(self, index: int) -> Proof:
        """(sibling_hash, position) pairs from the leaf at ``index`` up to the root."""
        if index < 0 or index >= len(self.leaves):
            return []

        proof = []
        for level in self.levels[:-1]:
            sibling = index ^ 1
            if sibling < len(level):
                proof.append((level[sibling], "R" if index % 2 == 0 else "L"))
            else:
                proof.append((level[index], "R"))
            index //= 2
        return proof
