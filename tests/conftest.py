"""Shared test fixtures for the proof parity checker."""

import asyncio
from typing import Callable, Dict, List

import pytest
from eth_utils import keccak

from proof_parity.models.proof import FetchOutcome, ProofBundle
from proof_parity.models.tree import Endpoint, TreeReference
from proof_parity.services.merkle import hash_pair

TREE_ID = "11111111111111111111111111111111"


class KeccakTree:
    """Small complete Merkle tree built the way SPL account compression hashes."""

    def __init__(self, depth: int):
        self.depth = depth
        leaves = [keccak(f"leaf-{i}".encode()) for i in range(2 ** depth)]
        self.layers: List[List[bytes]] = [leaves]
        while len(self.layers[-1]) > 1:
            below = self.layers[-1]
            self.layers.append([
                hash_pair(below[i], below[i + 1]) for i in range(0, len(below), 2)
            ])

    @property
    def root(self) -> bytes:
        return self.layers[-1][0]

    def proof(self, index: int) -> List[bytes]:
        nodes = []
        for layer in self.layers[:-1]:
            nodes.append(layer[index ^ 1])
            index //= 2
        return nodes

    def bundle(self, index: int) -> ProofBundle:
        # DAS endpoints report node_index, which carries an extra high bit
        return ProofBundle(
            root=self.root,
            leaf=self.layers[0][index],
            leaf_index=index + 2 ** self.depth,
            proof_nodes=tuple(self.proof(index)),
            tree_id=TREE_ID,
        )


def flip_first_node(bundle: ProofBundle) -> ProofBundle:
    first = bundle.proof_nodes[0]
    corrupted = bytes([first[0] ^ 0x01]) + first[1:]
    return ProofBundle(
        root=bundle.root,
        leaf=bundle.leaf,
        leaf_index=bundle.leaf_index,
        proof_nodes=(corrupted,) + bundle.proof_nodes[1:],
        tree_id=bundle.tree_id,
    )


def fake_asset_id(tree_id: str, leaf_index: int, program_id: str) -> str:
    return f"asset-{leaf_index}"


class FakeFetcher:
    """Serves outcomes from a function of the asset id and records calls."""

    def __init__(self, label: str, respond: Callable[[str], FetchOutcome], delay: float = 0):
        self.label = label
        self.respond = respond
        self.delay = delay
        self.calls: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def fetch(self, asset_id: str) -> FetchOutcome:
        self.calls.append(asset_id)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            return self.respond(asset_id)
        finally:
            self.in_flight -= 1


def leaf_of(asset_id: str) -> int:
    return int(asset_id.split('-')[1])


@pytest.fixture
def keccak_tree():
    return KeccakTree(depth=3)


@pytest.fixture
def endpoints():
    return [
        Endpoint(label="A", url="https://a.example.com"),
        Endpoint(label="B", url="https://b.example.com"),
    ]


@pytest.fixture
def tree_ref():
    return TreeReference(tree_id=TREE_ID, num_leaves=3)


@pytest.fixture
def honest_fetcher(keccak_tree) -> Callable[[str], FakeFetcher]:
    def make(label: str, delay: float = 0) -> FakeFetcher:
        return FakeFetcher(
            label,
            lambda asset_id: FetchOutcome.success(keccak_tree.bundle(leaf_of(asset_id))),
            delay=delay,
        )
    return make
