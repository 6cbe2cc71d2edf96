"""
Confusion and Mastery Tracking.

Owns the two persisted records of a drill module:
- ConfusionRecord: misses per item and per expected:given pair
- MasteryRecord: mastered item ids (never removed automatically)

Every mutation is written to the store immediately. A store failure is
logged and the in-memory state stays authoritative for the session.

Signals are returned as booleans so the caller decides how to publish them:
- record_miss() -> True exactly when an item's miss count reaches the mixup threshold
- mark_mastered() -> True only the first time an id enters the mastery set
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from loguru import logger

from rhythm_drill.core.catalog import DurationKind, TimeSignature
from rhythm_drill.core.records import ConfusionRecord, MasteryRecord, pair_key
from rhythm_drill.delivery.state_store import DrillStore
from rhythm_drill.delivery.telemetry import PerformanceRecord


@dataclass
class MasteryRule:
    """Thresholds for promoting an item to mastered."""

    window: int = 10
    min_correct: int = 9
    max_avg_response_ms: float = 4500.0
    min_tempo: int = 90


class ConfusionMasteryTracker:
    """
    Tracks mix-ups and mastery for one module.

    Usage:
        tracker = ConfusionMasteryTracker(store, "rhythm")
        tracker.load()
        if tracker.record_miss(item.id, item.beat_events, answer):
            ...  # publish "mixups detected"
    """

    def __init__(
        self,
        store: DrillStore,
        module_tag: str,
        mixup_threshold: int = 3,
        rule: MasteryRule | None = None,
    ):
        self.store = store
        self.module_tag = module_tag
        self.mixup_threshold = mixup_threshold
        self.rule = rule or MasteryRule()

        self._confusion = ConfusionRecord()
        self._mastered: list[str] = []

    # -------------------------------------------------------------------------
    # Loading & persistence
    # -------------------------------------------------------------------------

    def load(self) -> None:
        """Read both records from the store."""
        try:
            self._confusion = self.store.load_confusion(self.module_tag)
            self._mastered = list(self.store.load_mastery(self.module_tag).items)
        except Exception as e:
            logger.error(f"Could not load drill records for '{self.module_tag}': {e}")
            self._confusion = ConfusionRecord()
            self._mastered = []
            return

        logger.info(
            f"Loaded '{self.module_tag}' records: {len(self._mastered)} mastered, "
            f"{len(self._confusion.by_item)} confused items"
        )

    def _persist_confusion(self) -> None:
        try:
            self.store.save_confusion(self.module_tag, self._confusion)
        except Exception as e:
            logger.error(f"Failed to persist confusion data: {e}")

    def _persist_mastery(self) -> None:
        try:
            self.store.save_mastery(self.module_tag, MasteryRecord(items=list(self._mastered)))
        except Exception as e:
            logger.error(f"Failed to persist mastery data: {e}")

    # -------------------------------------------------------------------------
    # Views
    # -------------------------------------------------------------------------

    @property
    def mastered(self) -> frozenset[str]:
        return frozenset(self._mastered)

    @property
    def confusion(self) -> ConfusionRecord:
        """Snapshot of the confusion state."""
        return self._confusion.model_copy(deep=True)

    @property
    def confusion_by_item(self) -> dict[str, int]:
        return dict(self._confusion.by_item)

    def confusion_count(self, item_id: str) -> int:
        return self._confusion.count_for(item_id)

    def is_mastered(self, item_id: str) -> bool:
        return item_id in self._mastered

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def record_miss(
        self,
        item_id: str,
        target: Sequence[DurationKind],
        answer: Sequence[DurationKind | None],
    ) -> bool:
        """
        Record an incorrect answer.

        Args:
            item_id: The missed item
            target: Expected beat events
            answer: Submitted slots

        Returns:
            True if this miss brought the item to the mixup threshold
        """
        count = self._confusion.by_item.get(item_id, 0) + 1
        self._confusion.by_item[item_id] = count

        for expected, given in zip(target, answer):
            if expected is None or given is None or expected == given:
                continue
            key = pair_key(expected, given)
            self._confusion.by_pair[key] = self._confusion.by_pair.get(key, 0) + 1

        self._persist_confusion()

        if count == self.mixup_threshold:
            logger.info(f"Mixups detected on '{item_id}' after {count} misses")
            return True
        return False

    def mark_mastered(self, item_id: str) -> bool:
        """
        Add an item to the mastery set.

        Returns:
            True if the item was newly mastered, False if already present
        """
        if item_id in self._mastered:
            return False
        self._mastered.append(item_id)
        self._persist_mastery()
        logger.info(f"Item '{item_id}' mastered")
        return True

    def check_mastery(
        self,
        item_id: str,
        time_signature: TimeSignature | str,
        records: Sequence[PerformanceRecord],
        tempo: int,
    ) -> bool:
        """
        Apply the mastery rule after a correct answer.

        Looks at the most recent `window` records for this item and time
        signature. Fewer records than the window means no decision.

        Returns:
            True if the item was newly mastered
        """
        ts = str(TimeSignature.parse(time_signature))
        relevant = [r for r in records if r.item_id == item_id and r.time_signature == ts]
        if len(relevant) < self.rule.window:
            return False

        recent = relevant[-self.rule.window:]
        correct = sum(1 for r in recent if r.correct)
        avg_ms = sum(r.response_time_ms for r in recent) / len(recent)

        if (
            correct >= self.rule.min_correct
            and avg_ms < self.rule.max_avg_response_ms
            and tempo >= self.rule.min_tempo
        ):
            return self.mark_mastered(item_id)
        return False

    def reset(self, item_id: str | None = None) -> None:
        """
        Clear confusion counters.

        Args:
            item_id: Clear only this item's counter (re-arming its mixups
                signal); clear everything when None
        """
        if item_id is None:
            self._confusion = ConfusionRecord()
        else:
            self._confusion.by_item.pop(item_id, None)
        self._persist_confusion()
        logger.info(f"Confusion data reset ({item_id or 'all items'})")
