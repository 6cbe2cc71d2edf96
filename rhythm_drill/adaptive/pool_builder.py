"""
Weighted Item Pool and Selection.

Implements:
- Level filter table (1-6), relaxing from easy non-syncopated items to the
  whole catalog for a time signature
- Multiplicative weighting from mastery, confusion, due, tempo and level signals
- Cumulative-weight random selection with an injectable random source

Weight formula (base 1.0):
    mastered                       x 0.3
    confusion count c > 0          x (1 + 0.5 * c)
    due for review                 x 2.0
    tempo above fast threshold     x 1.2
    syncopated and level >= 4      x 1.15
"""

from __future__ import annotations

import random
from collections.abc import Callable, Collection, Iterable, Mapping
from dataclasses import dataclass

from loguru import logger

from rhythm_drill.core.catalog import Item, Tier, TimeSignature
from rhythm_drill.exceptions import EmptyPoolError

MIN_LEVEL = 1
MAX_LEVEL = 6

# =============================================================================
# Level Filter Table
# =============================================================================

LevelPredicate = Callable[[Item], bool]

LEVEL_FILTERS: dict[int, LevelPredicate] = {
    1: lambda item: item.tier == Tier.EASY and not item.syncopated,
    2: lambda item: item.tier == Tier.EASY,
    3: lambda item: item.tier == Tier.EASY or (item.tier == Tier.MEDIUM and not item.syncopated),
    4: lambda item: item.tier in (Tier.EASY, Tier.MEDIUM),
    5: lambda item: item.tier != Tier.COMPLEX or not item.syncopated,
    6: lambda item: True,
}


def clamp_level(level: int) -> int:
    """Clamp a level into the 1-6 range."""
    return max(MIN_LEVEL, min(MAX_LEVEL, int(level)))


def filter_items(
    items: Iterable[Item],
    level: int,
    time_signature: TimeSignature | str,
) -> list[Item]:
    """Items eligible at this level for this time signature."""
    ts = TimeSignature.parse(time_signature)
    predicate = LEVEL_FILTERS[clamp_level(level)]
    return [item for item in items if item.time_signature == ts and predicate(item)]


# =============================================================================
# Weighting
# =============================================================================


@dataclass
class WeightConfig:
    """Multipliers applied to the base weight of 1.0."""

    mastered_factor: float = 0.3
    confusion_step: float = 0.5
    due_factor: float = 2.0
    fast_tempo_factor: float = 1.2
    fast_tempo_threshold: int = 100
    syncopation_factor: float = 1.15
    syncopation_min_level: int = 4


@dataclass(frozen=True)
class WeightedEntry:
    """An eligible item paired with its selection weight."""

    item: Item
    weight: float


def item_weight(
    item: Item,
    *,
    level: int,
    mastered: Collection[str],
    confusion_by_item: Mapping[str, int],
    due_ids: Collection[str],
    tempo: int,
    config: WeightConfig | None = None,
) -> float:
    """Compute the selection weight of one item."""
    config = config or WeightConfig()
    weight = 1.0

    if item.id in mastered:
        weight *= config.mastered_factor

    confusion = confusion_by_item.get(item.id, 0)
    if confusion > 0:
        weight *= 1 + config.confusion_step * confusion

    if item.id in due_ids:
        weight *= config.due_factor

    if tempo > config.fast_tempo_threshold:
        weight *= config.fast_tempo_factor

    if item.syncopated and level >= config.syncopation_min_level:
        weight *= config.syncopation_factor

    return weight


class PoolBuilder:
    """
    Builds the weighted pool for one level and time signature.

    The pool fails closed: any error while weighting yields an empty pool,
    which the session treats as the stalled condition.
    """

    def __init__(self, items: Iterable[Item], config: WeightConfig | None = None):
        """
        Initialize the builder.

        Args:
            items: Catalog items to draw from
            config: Weight multipliers (uses defaults if None)
        """
        self.items = list(items)
        self.config = config or WeightConfig()

    def build(
        self,
        *,
        level: int,
        time_signature: TimeSignature | str,
        mastered: Collection[str] = (),
        confusion_by_item: Mapping[str, int] | None = None,
        due_ids: Collection[str] = (),
        tempo: int,
    ) -> list[WeightedEntry]:
        """
        Build weighted entries for the current signals.

        Returns:
            Entries with weight > 0, in catalog order
        """
        level = clamp_level(level)
        confusion_by_item = confusion_by_item or {}

        try:
            eligible = filter_items(self.items, level, time_signature)
            pool = []
            for item in eligible:
                weight = item_weight(
                    item,
                    level=level,
                    mastered=mastered,
                    confusion_by_item=confusion_by_item,
                    due_ids=due_ids,
                    tempo=tempo,
                    config=self.config,
                )
                if weight > 0:
                    pool.append(WeightedEntry(item=item, weight=weight))
        except Exception as e:
            logger.warning(f"Pool build failed for level {level} / {time_signature}: {e}")
            return []

        logger.debug(
            f"Built pool: {len(pool)} items (level={level}, ts={time_signature}, tempo={tempo})"
        )
        return pool


# =============================================================================
# Selection
# =============================================================================


def select_item(
    pool: list[WeightedEntry],
    rng: random.Random | None = None,
) -> WeightedEntry | None:
    """
    Draw one entry by cumulative weight.

    Args:
        pool: Weighted entries (weights > 0)
        rng: Random source; module-level random if None

    Returns:
        The selected entry, or None when the pool is empty
    """
    if not pool:
        return None

    rng = rng or random.Random()
    total = sum(entry.weight for entry in pool)
    remainder = rng.random() * total

    for entry in pool:
        remainder -= entry.weight
        if remainder <= 0:
            return entry

    # Float accumulation can leave a tiny positive remainder
    return pool[-1]


def require_item(
    pool: list[WeightedEntry],
    level: int,
    time_signature: TimeSignature | str,
    rng: random.Random | None = None,
) -> WeightedEntry:
    """Like select_item but raises EmptyPoolError on an empty pool."""
    entry = select_item(pool, rng)
    if entry is None:
        raise EmptyPoolError(level, str(time_signature))
    return entry
