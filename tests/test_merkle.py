"""Tests for proof verification."""

import pytest

from proof_parity.models.proof import FetchOutcome, ProofBundle, VerificationOutcome
from proof_parity.services.merkle import compute_root, hash_pair, verify_proof

from conftest import KeccakTree, flip_first_node


def test_hash_pair_is_order_sensitive():
    a, b = b"\x01" * 32, b"\x02" * 32
    assert hash_pair(a, b) != hash_pair(b, a)
    assert len(hash_pair(a, b)) == 32


@pytest.mark.parametrize("depth", [1, 3, 5])
def test_every_leaf_verifies(depth):
    tree = KeccakTree(depth)
    for index in range(2 ** depth):
        outcome = FetchOutcome.success(tree.bundle(index))
        assert verify_proof(outcome) is VerificationOutcome.VALID


def test_plain_leaf_index_also_verifies(keccak_tree):
    """Bits above the proof depth do not matter."""
    bundle = keccak_tree.bundle(5)
    plain = ProofBundle(bundle.root, bundle.leaf, 5, bundle.proof_nodes)
    assert compute_root(plain.leaf, plain.leaf_index, plain.proof_nodes) == keccak_tree.root
    assert verify_proof(FetchOutcome.success(plain)) is VerificationOutcome.VALID


def test_corrupted_proof_node_is_invalid(keccak_tree):
    bundle = flip_first_node(keccak_tree.bundle(2))
    assert verify_proof(FetchOutcome.success(bundle)) is VerificationOutcome.INVALID


def test_corrupted_last_node_is_invalid(keccak_tree):
    bundle = keccak_tree.bundle(6)
    nodes = list(bundle.proof_nodes)
    nodes[-1] = bytes(32)
    corrupted = ProofBundle(bundle.root, bundle.leaf, bundle.leaf_index, tuple(nodes))
    assert verify_proof(FetchOutcome.success(corrupted)) is VerificationOutcome.INVALID


def test_corrupted_root_is_invalid(keccak_tree):
    bundle = keccak_tree.bundle(0)
    wrong_root = ProofBundle(b"\xff" * 32, bundle.leaf, bundle.leaf_index, bundle.proof_nodes)
    assert verify_proof(FetchOutcome.success(wrong_root)) is VerificationOutcome.INVALID


def test_wrong_index_is_invalid(keccak_tree):
    bundle = keccak_tree.bundle(3)
    moved = ProofBundle(bundle.root, bundle.leaf, 4, bundle.proof_nodes)
    assert verify_proof(FetchOutcome.success(moved)) is VerificationOutcome.INVALID


def test_failed_fetch_is_unknown():
    assert verify_proof(FetchOutcome.failure("connection refused")) is VerificationOutcome.UNKNOWN


def test_empty_proof_compares_leaf_to_root():
    leaf = b"\x07" * 32
    assert verify_proof(FetchOutcome.success(ProofBundle(leaf, leaf, 0))) is VerificationOutcome.VALID
    assert verify_proof(FetchOutcome.success(ProofBundle(b"\x00" * 32, leaf, 0))) is VerificationOutcome.INVALID


def test_malformed_bundle_does_not_raise():
    bundle = ProofBundle(root=b"\x00" * 32, leaf=b"\x01" * 32, leaf_index=0, proof_nodes=(None,))
    assert verify_proof(FetchOutcome.success(bundle)) is VerificationOutcome.INVALID


def test_fetch_outcome_requires_exactly_one_side(keccak_tree):
    with pytest.raises(ValueError):
        FetchOutcome()
    with pytest.raises(ValueError):
        FetchOutcome(proof=keccak_tree.bundle(0), error="boom")
