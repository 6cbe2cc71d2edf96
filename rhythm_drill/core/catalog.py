"""
Rhythm Item Catalog.

Immutable reference data for the drill:
- DurationKind: how a single beat is subdivided (quarter, eighth pair, sixteenths)
- TimeSignature: beats per bar over the beat unit
- Tier: difficulty tier of an item
- Item: one drillable rhythm pattern
- ItemCatalog: ordered collection with lookup and JSON loading

Each beat event fills exactly one beat, so the number of answer slots for an
item is its event count, never a sum of fractional beat values.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from rhythm_drill.exceptions import CatalogError


class DurationKind(str, Enum):
    """Subdivision of one beat."""

    QUARTER = "quarter"  # one note on the beat
    EIGHTH = "eighth"  # two eighths
    SIXTEENTH = "sixteenth"  # four sixteenths

    @property
    def subdivisions(self) -> int:
        """Number of sub-ticks sounded inside the beat."""
        return {
            DurationKind.QUARTER: 1,
            DurationKind.EIGHTH: 2,
            DurationKind.SIXTEENTH: 4,
        }[self]

    @property
    def symbol(self) -> str:
        """Notation glyph for CLI display."""
        return {
            DurationKind.QUARTER: "♩",
            DurationKind.EIGHTH: "♫",
            DurationKind.SIXTEENTH: "♬",
        }[self]

    @classmethod
    def parse(cls, value: str | DurationKind) -> DurationKind:
        """Accept the enum, its value, or its first letter (q/e/s)."""
        if isinstance(value, DurationKind):
            return value
        text = str(value).strip().lower()
        for kind in cls:
            if text in (kind.value, kind.value[0]):
                return kind
        raise CatalogError(f"Unknown duration kind: {value!r}")


class Tier(str, Enum):
    """Difficulty tier of a catalog item."""

    EASY = "easy"
    MEDIUM = "medium"
    COMPLEX = "complex"


@dataclass(frozen=True)
class TimeSignature:
    """A meter such as 3/4 or 6/8."""

    beats: int
    unit: int = 4

    def __post_init__(self):
        if self.beats <= 0 or self.unit <= 0:
            raise CatalogError(f"Invalid time signature {self.beats}/{self.unit}")

    @property
    def beats_per_bar(self) -> int:
        return self.beats

    @classmethod
    def parse(cls, value: str | TimeSignature) -> TimeSignature:
        """Parse '4/4' style strings."""
        if isinstance(value, TimeSignature):
            return value
        try:
            beats, unit = str(value).split("/")
            return cls(int(beats), int(unit))
        except ValueError as e:
            raise CatalogError(f"Malformed time signature: {value!r}") from e

    def __str__(self) -> str:
        return f"{self.beats}/{self.unit}"


@dataclass(frozen=True)
class Item:
    """A drillable rhythm pattern."""

    id: str
    beat_events: tuple[DurationKind, ...]
    time_signature: TimeSignature
    tier: Tier = Tier.EASY
    syncopated: bool = False
    description: str = ""

    def __post_init__(self):
        if not self.id:
            raise CatalogError("Item id must not be empty")
        if not self.beat_events:
            raise CatalogError(f"Item {self.id} has no beat events")

    @property
    def slot_count(self) -> int:
        return len(self.beat_events)

    @property
    def pattern(self) -> str:
        """Notation string, e.g. '♩ ♩ ♫ ♫'."""
        return " ".join(kind.symbol for kind in self.beat_events)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Item:
        """Build an item from catalog JSON."""
        try:
            return cls(
                id=data["id"],
                beat_events=tuple(DurationKind.parse(b) for b in data["beats"]),
                time_signature=TimeSignature.parse(data.get("time_signature", "4/4")),
                tier=Tier(data.get("tier", "easy")),
                syncopated=bool(data.get("syncopated", False)),
                description=data.get("description", ""),
            )
        except KeyError as e:
            raise CatalogError(f"Catalog entry missing field {e}") from e
        except ValueError as e:
            raise CatalogError(str(e)) from e


@dataclass
class ItemCatalog:
    """Ordered set of catalog items with id lookup."""

    items: list[Item] = field(default_factory=list)

    def __post_init__(self):
        self._by_id: dict[str, Item] = {}
        for item in self.items:
            if item.id in self._by_id:
                raise CatalogError(f"Duplicate item id: {item.id}")
            self._by_id[item.id] = item

    def __iter__(self) -> Iterator[Item]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._by_id

    def get(self, item_id: str) -> Item | None:
        return self._by_id.get(item_id)

    def for_time_signature(self, time_signature: TimeSignature | str) -> list[Item]:
        ts = TimeSignature.parse(time_signature)
        return [item for item in self.items if item.time_signature == ts]

    def time_signatures(self) -> list[TimeSignature]:
        """Distinct signatures in catalog order."""
        seen: list[TimeSignature] = []
        for item in self.items:
            if item.time_signature not in seen:
                seen.append(item.time_signature)
        return seen

    @classmethod
    def from_dicts(cls, entries: Iterable[dict[str, Any]]) -> ItemCatalog:
        return cls([Item.from_dict(entry) for entry in entries])

    @classmethod
    def from_json(cls, path: Path) -> ItemCatalog:
        """
        Load a catalog file.

        Accepts either a bare list of entries or {"items": [...]}.
        """
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise CatalogError(f"Cannot read catalog {path}: {e}") from e

        entries = data.get("items", []) if isinstance(data, dict) else data
        return cls.from_dicts(entries)


# =============================================================================
# Default rhythm library
# =============================================================================

_Q, _E, _S = DurationKind.QUARTER, DurationKind.EIGHTH, DurationKind.SIXTEENTH

_DEFAULT_ENTRIES: list[tuple[str, tuple[DurationKind, ...], str, Tier, bool, str]] = [
    # 4/4
    ("quarters", (_Q, _Q, _Q, _Q), "4/4", Tier.EASY, False, "Four quarter notes"),
    ("quarter-eighths", (_Q, _Q, _E, _E), "4/4", Tier.EASY, False, "Quarters then eighth pairs"),
    ("eighths", (_E, _E, _E, _E), "4/4", Tier.EASY, False, "Eighth note pairs"),
    ("eighths-quarters", (_E, _E, _Q, _Q), "4/4", Tier.EASY, False, "Eighth pairs then quarters"),
    ("offbeat-eighths", (_Q, _E, _Q, _E), "4/4", Tier.EASY, True, "Eighths on the weak beats"),
    ("sixteenths", (_S, _S, _S, _S), "4/4", Tier.MEDIUM, False, "Four sixteenths per beat"),
    ("eighth-sixteenths", (_E, _S, _E, _S), "4/4", Tier.MEDIUM, False, "Eighths and sixteenths"),
    ("pushed-beat", (_E, _Q, _E, _Q), "4/4", Tier.MEDIUM, True, "Off-beat syncopation"),
    ("running-mix", (_S, _Q, _S, _E), "4/4", Tier.COMPLEX, False, "Sixteenth runs between longer beats"),
    ("virtuoso-push", (_S, _E, _S, _Q), "4/4", Tier.COMPLEX, True, "Syncopated sixteenth figure"),
    # 3/4
    ("waltz", (_Q, _Q, _Q), "3/4", Tier.EASY, False, "Three quarter notes"),
    ("waltz-eighths", (_Q, _E, _E), "3/4", Tier.EASY, False, "Quarter and two eighth pairs"),
    ("minuet", (_E, _E, _Q), "3/4", Tier.EASY, False, "Eighth pairs into a quarter"),
    ("waltz-sixteenths", (_S, _E, _Q), "3/4", Tier.MEDIUM, False, "Sixteenths leading the bar"),
    ("hemiola", (_E, _S, _E), "3/4", Tier.COMPLEX, True, "Cross-accented figure"),
    # 2/4
    ("march", (_Q, _Q), "2/4", Tier.EASY, False, "Two quarter notes"),
    ("march-eighths", (_E, _E), "2/4", Tier.EASY, False, "Two eighth pairs"),
    ("polka", (_E, _S), "2/4", Tier.MEDIUM, False, "Eighths then sixteenths"),
    ("polka-push", (_S, _E), "2/4", Tier.MEDIUM, True, "Sixteenths pushing into eighths"),
    # 6/8
    ("compound", (_Q, _Q, _Q, _Q, _Q, _Q), "6/8", Tier.EASY, False, "Steady compound pulse"),
    ("compound-eighths", (_Q, _Q, _E, _Q, _Q, _E), "6/8", Tier.MEDIUM, False, "Compound pulse with pairs"),
    ("jig-push", (_E, _Q, _E, _Q, _E, _Q), "6/8", Tier.COMPLEX, True, "Syncopated jig figure"),
]


def default_catalog() -> ItemCatalog:
    """Built-in rhythm library."""
    return ItemCatalog(
        [
            Item(
                id=item_id,
                beat_events=events,
                time_signature=TimeSignature.parse(ts),
                tier=tier,
                syncopated=syncopated,
                description=description,
            )
            for item_id, events, ts, tier, syncopated, description in _DEFAULT_ENTRIES
        ]
    )
