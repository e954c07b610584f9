"""Exceptions raised by the proof parity checker."""


class ProofParityError(Exception):
    """Base class for all checker errors."""


class SetupError(ProofParityError):
    """Raised when a run cannot start (tree metadata, output folder, endpoints)."""


class FetchError(ProofParityError):
    """Raised inside a fetcher when an endpoint cannot produce a usable proof.

    Never leaves the fetcher: it is converted into a failed FetchOutcome.
    """


class PersistenceError(ProofParityError):
    """Raised when a comparison record cannot be written."""

    def __init__(self, leaf_index: int, message: str):
        self.leaf_index = leaf_index
        super().__init__(f"Failed to persist leaf {leaf_index}: {message}")
