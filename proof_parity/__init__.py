"""
Proof parity checker for compressed Merkle trees.

Fetches the inclusion proof of every leaf from several DAS endpoints,
verifies each proof against its claimed root, and records the leaves where
the endpoints do not unanimously return a valid proof.
"""

from .cli import run_cli

__all__ = ["run_cli"]
