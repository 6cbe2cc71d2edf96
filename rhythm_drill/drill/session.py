"""
Rhythm Drill Session.

Drives one question at a time through the cycle:
    IDLE -> PRESENTING -> COLLECTING -> EVALUATED -> ADVANCING -> PRESENTING

Local state (stats, performance log, confusion, mastery, tempo) is updated
synchronously inside check_answer() before any collaborator is awaited, so
slow or failing services never block or roll back what the learner sees.

Every timer callback carries the generation of the question it was
scheduled for; a callback from a retired question is ignored.

Usage:
    session = RhythmDrillSession(
        default_catalog(),
        srs=srs, difficulty=difficulty, ledger=ledger,
        analytics=analytics, store=store, audio=audio,
    )
    await session.start()
    session.fill_answer(["quarter", "quarter", "eighth", "eighth"])
    outcome = await session.check_answer()
"""

from __future__ import annotations

import asyncio
import inspect
import random
import time
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

from loguru import logger

from rhythm_drill.adaptive.pool_builder import (
    PoolBuilder,
    WeightConfig,
    WeightedEntry,
    clamp_level,
    select_item,
)
from rhythm_drill.adaptive.tempo_adapter import TempoAdapter, TempoConfig
from rhythm_drill.config import DrillSettings, get_settings
from rhythm_drill.core.catalog import DurationKind, ItemCatalog, TimeSignature
from rhythm_drill.delivery.playback import Metronome, PlaybackScheduler
from rhythm_drill.delivery.state_store import DrillStore
from rhythm_drill.delivery.telemetry import MasteryStats, PerformanceLog, PerformanceRecord, SessionStats
from rhythm_drill.delivery.timers import AsyncioTimers, TimerGroup, Timers
from rhythm_drill.drill.question import (
    AdaptiveConfig,
    DrillEvent,
    DrillPhase,
    EvaluationOutcome,
    QuestionState,
)
from rhythm_drill.exceptions import (
    CollaboratorFailure,
    EmptyPoolError,
    IncompleteAnswerError,
    MissingCollaboratorError,
    PlaybackUnavailableError,
)
from rhythm_drill.integrations.collaborators import (
    AnalyticsSink,
    AudioEngine,
    DifficultyConfig,
    DifficultyController,
    GamificationLedger,
    RewardOverride,
    SrsScheduler,
    parse_srs_key,
    srs_key,
)
from rhythm_drill.learning.confusion_tracker import ConfusionMasteryTracker, MasteryRule
from rhythm_drill.learning.evaluator import Evaluation, EvaluationResult, evaluate_detailed
from rhythm_drill.learning.rewards import RewardCalculator, RewardConfig, RewardContext, quality_score

Listener = Callable[[DrillEvent], None]

# Timer slots
ADVANCE = "advance"
AUTOPLAY = "autoplay"


class RhythmDrillSession:
    """
    Adaptive rhythm dictation session.

    Owns the weighted pool, the active question, the tempo and the session
    counters. External services are injected and consulted through their
    protocols only.
    """

    def __init__(
        self,
        catalog: ItemCatalog,
        *,
        srs: SrsScheduler | None,
        difficulty: DifficultyController | None,
        ledger: GamificationLedger | None,
        analytics: AnalyticsSink | None,
        store: DrillStore | None,
        audio: AudioEngine | None = None,
        timers: Timers | None = None,
        settings: DrillSettings | None = None,
        rng: random.Random | None = None,
        reward_override: RewardOverride | None = None,
        clock: Callable[[], float] | None = None,
        time_signature: TimeSignature | str = "4/4",
        weight_config: WeightConfig | None = None,
    ):
        """
        Initialize the session.

        Args:
            catalog: Reference items to drill
            srs: Spaced repetition scheduler
            difficulty: Level controller
            ledger: XP ledger
            analytics: Activity sink
            store: Durable store for mastery and confusion records
            audio: Optional audio engine; playback is skipped without one
            timers: Timer source (asyncio loop timers if None)
            settings: Settings (cached environment settings if None)
            rng: Random source for item selection
            reward_override: Optional async replacement for the computed XP
            clock: Millisecond clock used for response times
            time_signature: Starting time signature

        Raises:
            MissingCollaboratorError: If a required collaborator is None
        """
        required = {
            "srs": srs,
            "difficulty": difficulty,
            "ledger": ledger,
            "analytics": analytics,
            "store": store,
        }
        for name, value in required.items():
            if value is None:
                raise MissingCollaboratorError(name)

        self.catalog = catalog
        self.srs = srs
        self.difficulty = difficulty
        self.ledger = ledger
        self.analytics = analytics
        self.store = store
        self.audio = audio
        self.settings = settings or get_settings()
        self.module_tag = self.settings.module_tag
        self.rng = rng or random.Random()
        self.reward_override = reward_override
        self.clock = clock or (lambda: time.monotonic() * 1000.0)
        self.time_signature = TimeSignature.parse(time_signature)

        s = self.settings
        self.timers = timers or AsyncioTimers()
        self._timer_group = TimerGroup(self.timers)

        self.pool_builder = PoolBuilder(
            catalog,
            weight_config or WeightConfig(fast_tempo_threshold=s.fast_tempo_threshold),
        )
        self.tracker = ConfusionMasteryTracker(
            store,
            self.module_tag,
            mixup_threshold=s.mixup_threshold,
            rule=MasteryRule(
                window=s.mastery_window,
                min_correct=s.mastery_min_correct,
                max_avg_response_ms=s.mastery_max_avg_response_ms,
                min_tempo=s.mastery_min_tempo,
            ),
        )
        self.tempo_adapter = TempoAdapter(
            s.initial_tempo,
            TempoConfig(
                step=s.tempo_step,
                minimum=s.min_tempo,
                maximum=s.max_tempo,
                interval=s.tempo_check_interval,
                raise_accuracy=s.tempo_raise_accuracy,
                lower_accuracy=s.tempo_lower_accuracy,
            ),
        )
        self.rewards = RewardCalculator(
            RewardConfig(base_xp=s.base_xp, fast_tempo_threshold=s.fast_tempo_threshold)
        )
        self.playback = PlaybackScheduler(
            self.timers,
            self._on_tick,
            accent_volume=s.accent_volume,
            tick_volume=s.tick_volume,
            min_tempo=s.min_playback_tempo,
            on_finished=self._on_playback_finished,
        )
        self.metronome = Metronome(
            self.timers,
            self._on_tick,
            accent_volume=s.accent_volume,
            tick_volume=s.tick_volume,
            min_tempo=s.min_playback_tempo,
        )

        self.log = PerformanceLog(s.performance_log_size)
        self.stats = SessionStats()
        self.config = AdaptiveConfig()
        self.phase = DrillPhase.IDLE
        self.question: QuestionState | None = None

        self._generation = 0
        self._due_keys: list[str] = []
        self._pool_key: tuple[int, str, bool] | None = None
        self._stalled = False
        self._started = False
        self._listeners: list[Listener] = []
        self._background: set[asyncio.Task] = set()

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def tempo(self) -> int:
        return self.tempo_adapter.tempo

    @property
    def level(self) -> int:
        return self.config.level

    @property
    def pool(self) -> list[WeightedEntry]:
        return self.config.pool

    @property
    def is_stalled(self) -> bool:
        return self._stalled

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def due_ids(self) -> set[str]:
        """Due item ids for the current time signature."""
        ts = str(self.time_signature)
        due = set()
        for key in self._due_keys:
            parsed = parse_srs_key(key)
            if parsed is None:
                continue
            tag, key_ts, item_id = parsed
            if tag == self.module_tag and key_ts == ts:
                due.add(item_id)
        return due

    # =========================================================================
    # Observers
    # =========================================================================

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a listener for session events.

        Returns:
            A callable that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, name: str, **payload: Any) -> None:
        event = DrillEvent(name=name, payload=payload)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.warning(f"Listener failed on '{name}': {e}")

    def _set_phase(self, phase: DrillPhase) -> None:
        if phase == self.phase:
            return
        previous = self.phase
        self.phase = phase
        self._emit("phase_changed", previous=previous, phase=phase)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> QuestionState | None:
        """
        Begin a session: load records, reset counters, build the pool and
        present the first question.

        Returns:
            The first question, or None if the pool is empty
        """
        self.teardown()
        self.tracker.load()
        self.stats = SessionStats()
        self.log.clear()
        self._started = True
        logger.info(
            f"Starting {self.module_tag} drill in {self.time_signature} at {self.tempo} BPM"
        )

        await self.refresh_pool()
        if self.question is None:
            return self.next_question()
        return self.question

    def teardown(self) -> None:
        """Cancel every timer, stop all audio and return to IDLE."""
        self._timer_group.cancel_all()
        self._stop_playback()
        self.metronome.stop()
        self._generation += 1
        had_question = self.question is not None
        self.question = None
        self._started = False
        self._stalled = False
        self._set_phase(DrillPhase.IDLE)
        if had_question:
            logger.debug("Session torn down")
        self._emit("torn_down")

    async def drain(self) -> None:
        """Wait for background collaborator calls to settle."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def close(self) -> None:
        self.teardown()
        await self.drain()

    # =========================================================================
    # Pool
    # =========================================================================

    async def refresh_pool(self) -> list[WeightedEntry]:
        """
        Fetch difficulty settings and due items, then rebuild the pool.

        Collaborator failures fall back to level 1 / easy and no due items.
        """
        config = await self._call(
            "getAdaptiveConfig",
            lambda: self.difficulty.get_adaptive_config(self.module_tag),
        )
        if not isinstance(config, DifficultyConfig):
            config = DifficultyConfig.fallback()

        due = await self._call(
            "getDueItems",
            lambda: self.srs.get_due_items(self.module_tag, self.settings.due_items_limit),
            default=[],
        )

        self.config.level = clamp_level(config.level)
        self.config.difficulty_label = config.difficulty_label
        self.config.option_count = config.option_count
        self._due_keys = list(due or [])
        return self.rebuild_pool()

    def rebuild_pool(self) -> list[WeightedEntry]:
        """Rebuild the weighted pool from current local signals."""
        pool = self.pool_builder.build(
            level=self.config.level,
            time_signature=self.time_signature,
            mastered=self.tracker.mastered,
            confusion_by_item=self.tracker.confusion_by_item,
            due_ids=self.due_ids,
            tempo=self.tempo,
        )
        self.config.pool = pool
        self._pool_key = self._current_pool_key()

        if not pool:
            self._mark_stalled()
        elif self._stalled:
            self._stalled = False
            logger.info(f"Pool restored with {len(pool)} items")
            if self._started and self.question is None:
                self.next_question()
        return pool

    def _current_pool_key(self) -> tuple[int, str, bool]:
        fast = self.tempo > self.settings.fast_tempo_threshold
        return (self.config.level, str(self.time_signature), fast)

    def _maybe_rebuild(self) -> None:
        if self._current_pool_key() != self._pool_key:
            self.rebuild_pool()

    def _mark_stalled(self) -> None:
        if self._stalled:
            return
        self._stalled = True
        error = EmptyPoolError(self.config.level, str(self.time_signature))
        logger.warning(str(error))
        self._emit("stalled", level=self.config.level, time_signature=str(self.time_signature))

    def set_time_signature(self, time_signature: TimeSignature | str) -> None:
        """Switch time signature; a running session moves to a new question."""
        ts = TimeSignature.parse(time_signature)
        if ts == self.time_signature:
            return
        self.time_signature = ts
        self.metronome.stop()
        generation = self._generation
        self._maybe_rebuild()
        # A restored pool may already have presented a fresh question
        if self._started and self.question is not None and self._generation == generation:
            self.next_question()

    def set_tempo(self, tempo: int) -> int:
        """
        Manually set the tempo (clamped to the configured bounds).

        Returns:
            The tempo now in force
        """
        previous = self.tempo
        current = self.tempo_adapter.set_tempo(tempo)
        if current != previous:
            self._on_tempo_changed(previous, current)
        return current

    def _on_tempo_changed(self, previous: int, current: int) -> None:
        if self.metronome.is_running:
            self.metronome.adjust(current)
        self._emit("tempo_changed", previous=previous, tempo=current)
        self._maybe_rebuild()

    # =========================================================================
    # Question flow
    # =========================================================================

    def next_question(self) -> QuestionState | None:
        """
        Retire the active question and present a new one.

        Returns:
            The new question, or None when the pool is empty (stalled)
        """
        self._timer_group.cancel(ADVANCE)
        self._timer_group.cancel(AUTOPLAY)
        self._stop_playback()
        self._generation += 1
        self.question = None

        entry = select_item(self.config.pool, self.rng)
        if entry is None:
            self._mark_stalled()
            self._set_phase(DrillPhase.IDLE)
            return None

        question = QuestionState.create(entry.item, self._generation, self.clock())
        self.question = question
        self._set_phase(DrillPhase.PRESENTING)
        self._emit("question_shown", item=entry.item, weight=entry.weight)
        logger.debug(f"Question {question.generation}: '{entry.item.id}' ({entry.item.pattern})")

        if self.settings.auto_play and self.audio is not None:
            generation = question.generation
            self._timer_group.schedule(
                AUTOPLAY,
                self.settings.auto_play_delay_ms,
                lambda: self._autoplay(generation),
            )

        self._spawn(
            "trackActivity",
            lambda: self.analytics.track_activity(
                self.module_tag,
                "question-shown",
                {
                    "item_id": entry.item.id,
                    "time_signature": str(self.time_signature),
                    "level": self.config.level,
                    "tempo": self.tempo,
                },
            ),
        )
        return question

    def advance(self) -> QuestionState | None:
        """Manual "next": skip any remaining feedback delay."""
        return self.next_question()

    def _active(self) -> QuestionState | None:
        question = self.question
        if question is None or question.generation != self._generation:
            return None
        return question

    def set_slot(self, index: int, kind: DurationKind | str) -> bool:
        """
        Fill one answer slot.

        Returns:
            False if no question is open for answers

        Raises:
            IndexError: If index is outside the answer slots
        """
        question = self._active()
        if question is None or question.revealed:
            return False
        if not 0 <= index < len(question.answer_slots):
            raise IndexError(f"Slot {index} out of range (0-{len(question.answer_slots) - 1})")

        value = DurationKind.parse(kind)
        question.answer_slots[index] = value
        self._set_phase(DrillPhase.COLLECTING)
        self._emit("slot_changed", index=index, value=value)
        return True

    def clear_slot(self, index: int) -> bool:
        question = self._active()
        if question is None or question.revealed:
            return False
        if not 0 <= index < len(question.answer_slots):
            raise IndexError(f"Slot {index} out of range (0-{len(question.answer_slots) - 1})")

        question.answer_slots[index] = None
        self._emit("slot_changed", index=index, value=None)
        return True

    def fill_answer(self, kinds: Iterable[DurationKind | str | None]) -> bool:
        """Fill slots from the start; None clears a slot."""
        question = self._active()
        if question is None or question.revealed:
            return False
        for index, kind in enumerate(list(kinds)[: len(question.answer_slots)]):
            if kind is None:
                self.clear_slot(index)
            else:
                self.set_slot(index, kind)
        return True

    def use_hint(self) -> DurationKind | None:
        """
        Reveal the expected value of the first empty or wrong slot.

        Marks the question as hinted, which halves its reward.
        """
        question = self._active()
        if question is None or question.revealed:
            return None

        for index, expected in enumerate(question.item.beat_events):
            if question.answer_slots[index] != expected:
                question.hint_used = True
                self._emit("hint_used", index=index, expected=expected)
                return expected
        return None

    # =========================================================================
    # Playback
    # =========================================================================

    def play_pattern(self) -> bool:
        """
        Play the active question's pattern.

        Prefers the engine's native pattern playback and falls back to
        ticks driven by the playback scheduler. Unavailable audio is
        reported as an advisory event, never raised.

        Returns:
            True if playback started
        """
        question = self._active()
        if question is None:
            return False
        if self.audio is None:
            return self._playback_unavailable("no audio engine bound")
        if self.playback.is_playing:
            return self._playback_unavailable("playback already in progress")

        try:
            native = self.audio.play_rhythm_pattern(question.item, self.tempo, self.time_signature)
        except Exception as e:
            logger.warning(f"Native pattern playback failed: {e}")
            native = False

        if not native:
            started = self.playback.play(
                question.item, self.tempo, self.time_signature.beats_per_bar
            )
            if not started:
                return self._playback_unavailable("playback already in progress")

        question.play_count += 1
        self._emit("playback_started", item_id=question.item.id, native=bool(native))
        return True

    def replay(self) -> bool:
        """
        Play the pattern again.

        A pending auto-advance is cancelled; the question then stays
        EVALUATED until "next".
        """
        if self._timer_group.cancel(ADVANCE):
            self._set_phase(DrillPhase.EVALUATED)
        return self.play_pattern()

    def stop_playback(self) -> None:
        self._stop_playback()

    def _stop_playback(self) -> None:
        self.playback.stop()
        if self.audio is not None:
            try:
                self.audio.stop()
            except Exception as e:
                logger.warning(f"Audio stop failed: {e}")

    def _playback_unavailable(self, reason: str) -> bool:
        error = PlaybackUnavailableError(reason)
        logger.info(f"Playback skipped: {error}")
        self._emit("playback_unavailable", reason=reason)
        return False

    def _autoplay(self, generation: int) -> None:
        if generation != self._generation:
            return
        self.play_pattern()

    def _on_tick(self, is_accent: bool, volume: float) -> None:
        if self.audio is not None:
            self.audio.play_metronome_tick(is_accent, volume)

    def _on_playback_finished(self) -> None:
        self._emit("playback_finished")

    def start_metronome(self) -> bool:
        """Start a continuous click track at the current tempo."""
        if self.audio is None:
            return self._playback_unavailable("no audio engine bound")
        return self.metronome.start(self.tempo, self.time_signature.beats_per_bar)

    def stop_metronome(self) -> None:
        self.metronome.stop()

    # =========================================================================
    # Evaluation
    # =========================================================================

    async def check_answer(self) -> EvaluationOutcome | None:
        """
        Evaluate the active question.

        An incomplete answer is rejected without touching any state. A
        complete answer updates every local structure first, then notifies
        collaborators.

        Returns:
            The outcome, or None if no unrevealed question is active
        """
        question = self._active()
        if question is None or question.revealed:
            logger.debug("check_answer ignored: no open question")
            return None

        evaluation = evaluate_detailed(question.item.beat_events, question.answer_slots)
        if evaluation.result == EvaluationResult.INCOMPLETE:
            error = IncompleteAnswerError(list(evaluation.empty_slots))
            logger.info(str(error))
            self._emit("incomplete_answer", empty_slots=list(evaluation.empty_slots))
            return EvaluationOutcome(
                result=evaluation.result,
                evaluation=evaluation,
                item_id=question.item.id,
            )

        outcome = self._apply_evaluation(question, evaluation)
        await self._notify_collaborators(question, outcome)
        return outcome

    def _apply_evaluation(self, question: QuestionState, evaluation: Evaluation) -> EvaluationOutcome:
        """Synchronous local bookkeeping for a complete answer."""
        item = question.item
        correct = evaluation.is_correct
        answered_tempo = self.tempo
        response_ms = max(0, int(self.clock() - question.shown_at_ms))
        perfect = correct and not question.hint_used and question.first_attempt

        question.revealed = True
        self.stats.record(correct, perfect, response_ms)
        self.log.append(
            PerformanceRecord(
                item_id=item.id,
                time_signature=str(item.time_signature),
                correct=correct,
                response_time_ms=response_ms,
                play_count=question.play_count,
                used_hint=question.hint_used,
                tempo=answered_tempo,
            )
        )

        mixups = False
        mastered = False
        if correct:
            mastered = self.tracker.check_mastery(
                item.id, item.time_signature, self.log.records, answered_tempo
            )
        else:
            mixups = self.tracker.record_miss(item.id, item.beat_events, question.answer_slots)

        xp = self.rewards.compute(
            RewardContext(
                correct=correct,
                tempo=answered_tempo,
                play_count=question.play_count,
                hint_used=question.hint_used,
                level=self.config.level,
                perfect_streak=self.stats.perfect_streak,
            )
        )

        decision = self.tempo_adapter.maybe_adapt(
            self.stats.total_count,
            self.log.recent_results(self.tempo_adapter.config.interval),
        )

        outcome = EvaluationOutcome(
            result=evaluation.result,
            evaluation=evaluation,
            item_id=item.id,
            xp=xp,
            quality=quality_score(correct, question.hint_used, question.play_count),
            response_time_ms=response_ms,
            tempo=answered_tempo,
            mixups_detected=mixups,
            newly_mastered=mastered,
            tempo_decision=decision,
        )

        self._set_phase(DrillPhase.EVALUATED)
        self._emit("evaluated", outcome=outcome, stats=self.stats.to_dict())
        if mixups:
            self._emit("mixups_detected", item_id=item.id, count=self.tracker.confusion_count(item.id))
        if mastered:
            self._emit("mastered", item_id=item.id)
        if decision is not None and decision.changed:
            self._on_tempo_changed(decision.previous, decision.tempo)

        self._schedule_advance(question, correct)
        return outcome

    def _schedule_advance(self, question: QuestionState, correct: bool) -> None:
        if not self.settings.auto_advance:
            return
        delay = (
            self.settings.correct_advance_delay_ms
            if correct
            else self.settings.incorrect_advance_delay_ms
        )
        generation = question.generation

        def fire() -> None:
            if generation == self._generation:
                self.next_question()

        self._timer_group.schedule(ADVANCE, delay, fire)
        self._set_phase(DrillPhase.ADVANCING)

    async def _notify_collaborators(self, question: QuestionState, outcome: EvaluationOutcome) -> None:
        item = question.item
        correct = outcome.correct
        context = {
            "item_id": item.id,
            "time_signature": str(item.time_signature),
            "tempo": outcome.tempo,
            "level": self.config.level,
            "play_count": question.play_count,
            "hint_used": question.hint_used,
            "response_time_ms": outcome.response_time_ms,
            "streak": self.stats.streak,
        }

        if self.reward_override is not None:
            override = await self._call("awardPracticeXP", lambda: self._override_xp(correct, context))
            if override is not None:
                outcome.xp = override

        await self._call(
            "addXP",
            lambda: self.ledger.add_xp(
                outcome.xp, f"{self.module_tag}_{'correct' if correct else 'attempt'}"
            ),
        )
        await self._call(
            "updateItem",
            lambda: self.srs.update_item(
                srs_key(self.module_tag, item),
                outcome.quality,
                outcome.response_time_ms,
                context,
            ),
        )
        await self._call(
            "trackActivity",
            lambda: self.analytics.track_activity(
                self.module_tag,
                "evaluation",
                {**context, "correct": correct, "xp": outcome.xp, "quality": outcome.quality},
            ),
        )
        if outcome.newly_mastered:
            await self._call(
                "trackActivity",
                lambda: self.analytics.track_activity(
                    self.module_tag, "mastery-unlocked", {"item_id": item.id}
                ),
            )
        if outcome.mixups_detected:
            await self._call(
                "trackActivity",
                lambda: self.analytics.track_activity(
                    self.module_tag,
                    "mixups-detected",
                    {"item_id": item.id, "count": self.tracker.confusion_count(item.id)},
                ),
            )

        total = self.stats.total_count
        interval = self.settings.difficulty_adjust_interval
        if interval > 0 and total % interval == 0:
            await self._call(
                "adjustDifficulty",
                lambda: self.difficulty.adjust_difficulty(
                    self.module_tag,
                    self.log.recent_accuracy(interval),
                    self.log.average_response_ms(interval) / 1000.0,
                ),
            )
            await self.refresh_pool()

        interval = self.settings.performance_record_interval
        if interval > 0 and total % interval == 0:
            await self._call(
                "recordPerformance",
                lambda: self.difficulty.record_performance(
                    self.module_tag,
                    self.stats.accuracy,
                    self.stats.average_response_time_ms / 1000.0,
                    self.stats.correct_count,
                    {"time_signature": str(self.time_signature), "tempo": self.tempo},
                ),
            )

    # =========================================================================
    # Collaborator calls
    # =========================================================================

    async def _call(
        self,
        name: str,
        factory: Callable[[], Awaitable[Any] | Any],
        default: Any = None,
    ) -> Any:
        """Invoke one collaborator call; failures are logged and replaced by default."""
        try:
            result = factory()
            if inspect.isawaitable(result):
                result = await result
            return result
        except Exception as e:
            logger.warning(str(CollaboratorFailure(name, e)))
            return default

    async def _override_xp(self, correct: bool, context: dict[str, Any]) -> int | None:
        result = self.reward_override(self.module_tag, correct, context)
        if inspect.isawaitable(result):
            result = await result
        if result is None:
            return None
        return max(0, int(result))

    def _spawn(self, name: str, factory: Callable[[], Awaitable[Any] | Any]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(f"No running event loop; skipped {name}")
            return
        task = loop.create_task(self._call(name, factory))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    # =========================================================================
    # Reporting
    # =========================================================================

    def mastery_stats(self) -> list[MasteryStats]:
        """Per-item accuracy for the current time signature, weakest first."""
        item_ids = [item.id for item in self.catalog.for_time_signature(self.time_signature)]
        return self.log.mastery_stats(item_ids, self.tracker.mastered)
