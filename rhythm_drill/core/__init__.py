"""
Core Module - Shared domain models.

Components:
- catalog: Rhythm items, duration kinds, time signatures, default library
- records: Persisted mastery and confusion records

All other packages import these types from rhythm_drill.core rather than
redefining them.
"""

from rhythm_drill.core.catalog import (
    DurationKind,
    Item,
    ItemCatalog,
    Tier,
    TimeSignature,
    default_catalog,
)
from rhythm_drill.core.records import ConfusionRecord, MasteryRecord, pair_key

__all__ = [
    # Catalog
    "DurationKind",
    "Item",
    "ItemCatalog",
    "Tier",
    "TimeSignature",
    "default_catalog",
    # Records
    "ConfusionRecord",
    "MasteryRecord",
    "pair_key",
]
