"""
Adaptive Module - pool construction, selection and tempo adaptation.

Components:
- PoolBuilder: level filter + weighting into WeightedEntry lists
- select_item: cumulative-weight sampling
- TempoAdapter: trailing-window tempo nudging
"""

from rhythm_drill.adaptive.pool_builder import (
    LEVEL_FILTERS,
    MAX_LEVEL,
    MIN_LEVEL,
    PoolBuilder,
    WeightConfig,
    WeightedEntry,
    clamp_level,
    filter_items,
    item_weight,
    require_item,
    select_item,
)
from rhythm_drill.adaptive.tempo_adapter import TempoAdapter, TempoConfig, TempoDecision

__all__ = [
    # Pool
    "LEVEL_FILTERS",
    "MAX_LEVEL",
    "MIN_LEVEL",
    "PoolBuilder",
    "WeightConfig",
    "WeightedEntry",
    "clamp_level",
    "filter_items",
    "item_weight",
    "require_item",
    "select_item",
    # Tempo
    "TempoAdapter",
    "TempoConfig",
    "TempoDecision",
]
