"""Merkle inclusion proof verification for SPL account compression trees."""

from typing import Sequence

from eth_utils import keccak

from ..models.proof import FetchOutcome, VerificationOutcome


def hash_pair(left: bytes, right: bytes) -> bytes:
    """Hash two sibling nodes into their parent (keccak-256 of left || right)."""
    return keccak(left + right)


def compute_root(leaf: bytes, leaf_index: int, proof_nodes: Sequence[bytes]) -> bytes:
    """Fold a leaf up through its proof nodes.

    At depth i, bit i of leaf_index says which side the running node sits on:
    0 means it is the left child, 1 the right child.
    """
    node = leaf
    for depth, sibling in enumerate(proof_nodes):
        if (leaf_index >> depth) & 1 == 0:
            node = hash_pair(node, sibling)
        else:
            node = hash_pair(sibling, node)
    return node


def verify_proof(outcome: FetchOutcome) -> VerificationOutcome:
    """Check a fetched proof against its claimed root.

    Args:
        outcome: What the endpoint returned

    Returns:
        UNKNOWN if there was no proof to check, otherwise VALID or INVALID
    """
    if not outcome.ok:
        return VerificationOutcome.UNKNOWN

    bundle = outcome.proof
    try:
        root = compute_root(bundle.leaf, bundle.leaf_index, bundle.proof_nodes)
    except (TypeError, ValueError):
        return VerificationOutcome.INVALID

    if root == bundle.root:
        return VerificationOutcome.VALID
    return VerificationOutcome.INVALID
