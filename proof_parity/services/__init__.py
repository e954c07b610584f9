"""Services for the Proof Parity Checker."""

from .merkle import hash_pair, compute_root, verify_proof
from .rate_limiter import TokenBucket, build_limiters
from .fetcher import ProofFetcher, create_session
from .asset_id import derive_asset_id, find_tree_config
from .tree import TreeMetadataClient
from .recorder import MismatchRecorder, prepare_output_dir, load_records
from .orchestrator import ProofParityValidator, validate_tree, run_validation

__all__ = [
    'hash_pair',
    'compute_root',
    'verify_proof',
    'TokenBucket',
    'build_limiters',
    'ProofFetcher',
    'create_session',
    'derive_asset_id',
    'find_tree_config',
    'TreeMetadataClient',
    'MismatchRecorder',
    'prepare_output_dir',
    'load_records',
    'ProofParityValidator',
    'validate_tree',
    'run_validation',
]
