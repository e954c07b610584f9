"""Data models for the Proof Parity Checker."""

from .progress import ProgressState, ProgressSnapshot, EndpointProgress
from .comparison import ComparisonRecord, EndpointSummary, RunSummary
from .proof import ProofBundle, FetchOutcome, VerificationOutcome, EndpointResult
from .tree import TreeReference, Endpoint

__all__ = [
    'ProgressState',
    'ProgressSnapshot',
    'EndpointProgress',
    'ComparisonRecord',
    'EndpointSummary',
    'RunSummary',
    'ProofBundle',
    'FetchOutcome',
    'VerificationOutcome',
    'EndpointResult',
    'TreeReference',
    'Endpoint',
]
