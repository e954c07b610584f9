"""Leaf asset identifier derivation."""

from functools import lru_cache

from solders.pubkey import Pubkey

from ..config import ASSET_SEED, BUBBLEGUM_PROGRAM_ID


@lru_cache(maxsize=8)
def _program(program_id: str) -> Pubkey:
    return Pubkey.from_string(program_id)


def derive_asset_id(tree_id: str,
                    leaf_index: int,
                    program_id: str = BUBBLEGUM_PROGRAM_ID) -> str:
    """Derive the asset id of a compressed leaf.

    The asset id is the PDA of ["asset", tree, leaf_index as u64 LE] under
    the Bubblegum program. It depends only on the tree and the index, so one
    derivation serves every endpoint.

    Args:
        tree_id: Base58 Merkle tree address
        leaf_index: Leaf position in the tree
        program_id: Program whose conventions define the PDA

    Returns:
        Base58 asset id
    """
    if leaf_index < 0:
        raise ValueError(f"leaf_index must be non-negative, got {leaf_index}")
    seeds = [
        ASSET_SEED,
        bytes(Pubkey.from_string(tree_id)),
        leaf_index.to_bytes(8, 'little'),
    ]
    address, _bump = Pubkey.find_program_address(seeds, _program(program_id))
    return str(address)


def find_tree_config(tree_id: str, program_id: str = BUBBLEGUM_PROGRAM_ID) -> str:
    """Address of the Bubblegum tree config account for a tree."""
    address, _bump = Pubkey.find_program_address(
        [bytes(Pubkey.from_string(tree_id))],
        _program(program_id),
    )
    return str(address)
