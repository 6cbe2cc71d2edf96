"""
Rhythm Drill: adaptive rhythm dictation engine.

Presents rhythm patterns, collects the learner's transcription, evaluates
it, and adapts item selection, tempo and rewards from performance.
"""

from rhythm_drill.core.catalog import DurationKind, Item, ItemCatalog, TimeSignature, default_catalog
from rhythm_drill.drill.session import RhythmDrillSession

__version__ = "1.0.0"

__all__ = [
    "DurationKind",
    "Item",
    "ItemCatalog",
    "RhythmDrillSession",
    "TimeSignature",
    "default_catalog",
]
