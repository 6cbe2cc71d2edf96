"""
Persisted drill records.

Two records are stored per module:
- MasteryRecord: ids of mastered items (grows monotonically)
- ConfusionRecord: miss counts per item and per expected:given pair

Both serialize through pydantic so a save/load round trip is lossless.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from rhythm_drill.core.catalog import DurationKind


def pair_key(expected: DurationKind | str, given: DurationKind | str) -> str:
    """Key for a confusion pair, e.g. 'eighth:quarter'."""
    expected_value = expected.value if isinstance(expected, DurationKind) else expected
    given_value = given.value if isinstance(given, DurationKind) else given
    return f"{expected_value}:{given_value}"


class MasteryRecord(BaseModel):
    """Mastered item ids, in the order they were mastered."""

    items: list[str] = Field(default_factory=list)


class ConfusionRecord(BaseModel):
    """Per-item and per-pair miss counters."""

    by_item: dict[str, int] = Field(default_factory=dict)
    by_pair: dict[str, int] = Field(default_factory=dict)

    def count_for(self, item_id: str) -> int:
        return self.by_item.get(item_id, 0)

    def top_pairs(self, limit: int = 5) -> list[tuple[str, int]]:
        """Most frequent confusion pairs, highest first."""
        return sorted(self.by_pair.items(), key=lambda kv: (-kv[1], kv[0]))[:limit]
