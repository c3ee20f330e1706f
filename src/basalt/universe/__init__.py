"""Constituents universe — membership driven by a composite's holdings.

On each evaluation the composite's constituent snapshot is run through a
selection filter and diffed against the previous membership; the diff goes to
a lifecycle manager, additions before removals. The universe keeps one
identity across composite renames and is torn down when the composite
delists.
"""

from basalt.universe.delisting import CompositeStatus, DelistingMonitor
from basalt.universe.engine import ConstituentsUniverseEngine
from basalt.universe.errors import (
    CausalityViolation,
    DuplicateConstituentError,
    SelectionError,
)
from basalt.universe.filters import (
    FilterResult,
    compose,
    min_weight,
    require_constituent,
    select_all,
    top_by_weight,
)
from basalt.universe.lifecycle import InMemoryLifecycleManager, SecurityLifecycleManager
from basalt.universe.manager import ConstituentsUniverse, UniverseManager
from basalt.universe.records import ConstituentRecord, SelectionChanges, SelectionEvaluation
from basalt.universe.symbols import (
    CompositeIdentity,
    CompositeSymbolResolver,
    SecurityType,
    UniverseIdentity,
    resolve_universe_identity,
)

__all__ = [
    "CausalityViolation",
    "CompositeIdentity",
    "CompositeStatus",
    "CompositeSymbolResolver",
    "ConstituentRecord",
    "ConstituentsUniverse",
    "ConstituentsUniverseEngine",
    "DelistingMonitor",
    "DuplicateConstituentError",
    "FilterResult",
    "InMemoryLifecycleManager",
    "SecurityLifecycleManager",
    "SecurityType",
    "SelectionChanges",
    "SelectionError",
    "SelectionEvaluation",
    "UniverseIdentity",
    "UniverseManager",
    "compose",
    "min_weight",
    "require_constituent",
    "resolve_universe_identity",
    "select_all",
    "top_by_weight",
]
