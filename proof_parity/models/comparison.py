"""Comparison result models."""

from dataclasses import dataclass, field
from typing import Any, Dict, List

from .proof import EndpointResult, VerificationOutcome


@dataclass
class ComparisonRecord:
    """Per-endpoint results for one leaf."""
    leaf_index: int
    asset_id: str
    results: Dict[str, EndpointResult] = field(default_factory=dict)

    @property
    def all_valid(self) -> bool:
        """True only when every endpoint returned a proof that verified."""
        return all(
            result.verification is VerificationOutcome.VALID
            for result in self.results.values()
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the on-disk artifact layout."""
        payload: Dict[str, Any] = {'assetId': self.asset_id}
        for label, result in self.results.items():
            payload[label] = result.to_dict()
        return payload


@dataclass
class EndpointSummary:
    """Validity counts for one endpoint."""
    label: str
    valid: int = 0
    checked: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {'label': self.label, 'valid': self.valid, 'checked': self.checked}


@dataclass
class RunSummary:
    """Outcome of a whole validation run."""
    tree_id: str
    total_leaves: int
    completed_leaves: int = 0
    mismatched_leaves: int = 0
    failed_leaves: int = 0
    elapsed_seconds: float = 0.0
    endpoints: List[EndpointSummary] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'tree_id': self.tree_id,
            'total_leaves': self.total_leaves,
            'completed_leaves': self.completed_leaves,
            'mismatched_leaves': self.mismatched_leaves,
            'failed_leaves': self.failed_leaves,
            'elapsed_seconds': round(self.elapsed_seconds, 1),
            'endpoints': [endpoint.to_dict() for endpoint in self.endpoints],
        }
