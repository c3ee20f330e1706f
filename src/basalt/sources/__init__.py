"""Constituent data sources.

- InMemoryConstituentSource: snapshots held in memory
- ParquetConstituentSource: snapshots replayed from the Parquet store
- FMPConstituentSource: live holdings from Financial Modeling Prep
"""

from basalt.sources.base import ConstituentDataSource
from basalt.sources.fmp import FMPConstituentSource, parse_holdings
from basalt.sources.memory import InMemoryConstituentSource
from basalt.sources.parquet import ParquetConstituentSource

__all__ = [
    "ConstituentDataSource",
    "FMPConstituentSource",
    "InMemoryConstituentSource",
    "ParquetConstituentSource",
    "parse_holdings",
]
