"""Parquet storage of constituent snapshots.

Immutable, composite-isolated daily snapshots of constituent records.
"""

from basalt.cache.constituent_store import ConstituentStore

__all__ = ["ConstituentStore"]
