"""Application configuration and constants."""

import os
from dataclasses import dataclass, field
from typing import FrozenSet


# Bubblegum program that owns compressed NFT trees and leaf asset PDAs
BUBBLEGUM_PROGRAM_ID: str = "BGUMAp9Gq7iTEuizy4pqaxsTyUCBK68MDfK752saRPUY"

# Seed prefix of the leaf asset PDA: ["asset", tree, leaf_index (u64 LE)]
ASSET_SEED: bytes = b"asset"

# Byte offset of num_minted in the tree config account
# (8 discriminator + 32 creator + 32 delegate + 8 total_mint_capacity)
TREE_CONFIG_NUM_MINTED_OFFSET: int = 80

DEFAULT_OUTPUT_FOLDER: str = "invalid-proofs"

# Keys an endpoint label may not take because the artifact already uses them
RESERVED_LABELS: FrozenSet[str] = frozenset({'assetId'})


@dataclass(frozen=True)
class ValidatorConfig:
    """Configuration for a proof validation run."""
    rate_limit: int = 1  # requests per second, per endpoint
    max_in_flight: int = 64  # outstanding leaf units
    request_timeout: int = 30
    commitment: str = 'confirmed'
    user_agent: str = "proof-parity-checker/1.0"


@dataclass(frozen=True)
class AppConfig:
    """Application-wide configuration."""
    # Progress update frequency
    progress_update_frequency: int = 10
    progress_update_first_n: int = 100  # Send every update for first N leaves
    # Folders named by web clients must resolve inside this directory
    output_root: str = field(default_factory=os.getcwd)


# Default configuration instances
DEFAULT_VALIDATOR_CONFIG = ValidatorConfig()
DEFAULT_APP_CONFIG = AppConfig()
