"""Proof bundle and outcome models."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from solders.pubkey import Pubkey


def _decode_hash(value: str) -> bytes:
    """Decode a base58 32-byte hash as returned by DAS endpoints."""
    return bytes(Pubkey.from_string(value))


def _encode_hash(value: bytes) -> str:
    return str(Pubkey(value))


@dataclass(frozen=True)
class ProofBundle:
    """A Merkle inclusion proof for one leaf."""
    root: bytes
    leaf: bytes
    leaf_index: int  # node_index as reported by the endpoint
    proof_nodes: Tuple[bytes, ...] = ()
    tree_id: Optional[str] = None

    @classmethod
    def from_rpc(cls, result: Dict[str, Any]) -> 'ProofBundle':
        """Build a bundle from a ``getAssetProof`` result.

        Raises:
            KeyError: a required field is missing
            ValueError: a hash is not valid base58 or not 32 bytes
            TypeError: a field has the wrong JSON type
        """
        node_index = result['node_index']
        if isinstance(node_index, bool) or not isinstance(node_index, int):
            raise TypeError(f"node_index must be an integer, got {node_index!r}")
        if node_index < 0:
            raise ValueError(f"node_index must be non-negative, got {node_index}")

        proof = result['proof']
        if not isinstance(proof, list):
            raise TypeError("proof must be a list")

        return cls(
            root=_decode_hash(result['root']),
            leaf=_decode_hash(result['leaf']),
            leaf_index=node_index,
            proof_nodes=tuple(_decode_hash(node) for node in proof),
            tree_id=result.get('tree_id'),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'root': _encode_hash(self.root),
            'leaf': _encode_hash(self.leaf),
            'node_index': self.leaf_index,
            'proof': [_encode_hash(node) for node in self.proof_nodes],
            'tree_id': self.tree_id,
        }


@dataclass(frozen=True)
class FetchOutcome:
    """Result of fetching a proof: either a bundle or an error message."""
    proof: Optional[ProofBundle] = None
    error: Optional[str] = None

    def __post_init__(self) -> None:
        if (self.proof is None) == (self.error is None):
            raise ValueError("exactly one of proof or error must be set")

    @classmethod
    def success(cls, proof: ProofBundle) -> 'FetchOutcome':
        return cls(proof=proof)

    @classmethod
    def failure(cls, message: str) -> 'FetchOutcome':
        return cls(error=message or 'unknown error')

    @property
    def ok(self) -> bool:
        return self.proof is not None

    def to_dict(self) -> Dict[str, Any]:
        if self.proof is not None:
            return {'ok': True, 'proof': self.proof.to_dict()}
        return {'ok': False, 'error': self.error}


class VerificationOutcome(str, Enum):
    """Tri-state verification result.

    UNKNOWN means the proof could not be checked at all (fetch failed),
    which is different from a proof that was checked and found INVALID.
    """
    VALID = 'valid'
    INVALID = 'invalid'
    UNKNOWN = 'unknown'


@dataclass(frozen=True)
class EndpointResult:
    """What one endpoint returned for one leaf, and how it verified."""
    fetch_outcome: FetchOutcome
    verification: VerificationOutcome = field(default=VerificationOutcome.UNKNOWN)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'fetchOutcome': self.fetch_outcome.to_dict(),
            'verificationOutcome': self.verification.value,
        }
