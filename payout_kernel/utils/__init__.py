"""Utility functions for the payout kernel."""

from payout_kernel.utils.hashing import canonicalize_json, hash_payload, hash_sensitive

__all__ = [
    "canonicalize_json",
    "hash_payload",
    "hash_sensitive",
]
