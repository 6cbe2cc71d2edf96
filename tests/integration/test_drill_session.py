"""
Integration tests for RhythmDrillSession.

Drives the full question cycle against recording collaborators and a
manually advanced clock:
- Presentation, auto-play and auto-advance timing
- Answer collection, incomplete rejection and evaluation
- Rewards, SRS quality, confusion, mastery and tempo adaptation
- Collaborator failure containment
- Stalled pools, teardown and late timer callbacks
"""

import asyncio

import pytest

from rhythm_drill.core.catalog import DurationKind, ItemCatalog, Tier
from rhythm_drill.drill.question import DrillPhase
from rhythm_drill.exceptions import MissingCollaboratorError
from rhythm_drill.integrations.collaborators import DifficultyConfig
from rhythm_drill.learning.evaluator import EvaluationResult

Q, E, S = DurationKind.QUARTER, DurationKind.EIGHTH, DurationKind.SIXTEENTH
RIGHT = [Q, Q, E, E]
WRONG = [Q, E, E, E]


async def answer(session, timers, kinds, think_ms=1000, advance=True):
    """Answer after think_ms, then move straight on to the next question."""
    timers.advance(think_ms)
    session.fill_answer(kinds)
    outcome = await session.check_answer()
    if advance:
        session.advance()
    return outcome


def names(events):
    return [event.name for event in events]


@pytest.fixture
def events():
    return []


@pytest.fixture
def session(make_session, single_catalog, events):
    session = make_session(single_catalog)
    session.subscribe(events.append)
    return session


# =============================================================================
# Construction
# =============================================================================


class TestConstruction:
    """Tests for collaborator wiring."""

    @pytest.mark.parametrize("missing", ["srs", "difficulty", "ledger", "analytics", "store"])
    def test_missing_collaborator_fails_fast(self, make_session, single_catalog, missing):
        with pytest.raises(MissingCollaboratorError) as exc_info:
            make_session(single_catalog, **{missing: None})
        assert exc_info.value.name == missing

    def test_audio_is_optional(self, make_session, single_catalog):
        session = make_session(single_catalog, audio=None)
        assert session.phase == DrillPhase.IDLE


# =============================================================================
# Question Flow
# =============================================================================


class TestQuestionFlow:
    """Tests for presentation and answer collection."""

    @pytest.mark.asyncio
    async def test_start_presents_question(self, session, analytics):
        question = await session.start()
        await session.drain()

        assert session.phase == DrillPhase.PRESENTING
        assert question.item.id == "steady"
        assert question.answer_slots == [None, None, None, None]
        assert analytics.names() == ["question-shown"]
        assert analytics.events[0][1]["time_signature"] == "4/4"

    @pytest.mark.asyncio
    async def test_auto_play_after_presentation(self, session, audio, timers):
        await session.start()
        timers.advance(299)
        assert audio.patterns == []

        timers.advance(1)
        assert audio.patterns == [("steady", 80, "4/4")]
        assert session.question.play_count == 1

        timers.advance(5000)
        # one tick per quarter beat, two per eighth beat
        assert len(audio.ticks) == 6
        assert audio.ticks[0] == (True, 0.8)
        assert not session.playback.is_playing

    @pytest.mark.asyncio
    async def test_slots_move_to_collecting(self, session, events):
        await session.start()

        assert session.set_slot(0, "q") is True
        assert session.phase == DrillPhase.COLLECTING
        assert session.question.answer_slots[0] == Q
        assert "slot_changed" in names(events)

        assert session.clear_slot(0) is True
        assert session.question.answer_slots[0] is None

    @pytest.mark.asyncio
    async def test_slot_index_out_of_range(self, session):
        await session.start()
        with pytest.raises(IndexError):
            session.set_slot(4, "q")

    @pytest.mark.asyncio
    async def test_incomplete_answer_is_rejected(self, session, srs, ledger, events):
        await session.start()
        session.set_slot(0, Q)
        session.set_slot(1, Q)

        outcome = await session.check_answer()

        assert outcome.result == EvaluationResult.INCOMPLETE
        assert not outcome.accepted
        assert outcome.evaluation.empty_slots == (2, 3)
        assert session.stats.total_count == 0
        assert session.question.revealed is False
        assert session.phase == DrillPhase.COLLECTING
        assert srs.updates == []
        assert ledger.awards == []
        assert "incomplete_answer" in names(events)

    @pytest.mark.asyncio
    async def test_answer_locked_after_reveal(self, session):
        await session.start()
        session.fill_answer(RIGHT)
        await session.check_answer()

        assert session.set_slot(0, E) is False
        assert session.use_hint() is None
        assert await session.check_answer() is None

    @pytest.mark.asyncio
    async def test_no_question_before_start(self, session):
        assert session.set_slot(0, Q) is False
        assert await session.check_answer() is None


# =============================================================================
# Evaluation
# =============================================================================


class TestEvaluation:
    """Tests for scoring and collaborator notifications."""

    @pytest.mark.asyncio
    async def test_correct_answer(self, session, timers, srs, ledger, analytics):
        await session.start()
        outcome = await answer(session, timers, RIGHT, think_ms=2000, advance=False)

        assert outcome.correct
        assert outcome.xp == 14
        assert outcome.quality == 5
        assert outcome.response_time_ms == 2000
        assert session.stats.correct_count == 1
        assert session.stats.streak == 1
        assert ledger.awards == [(14, "rhythm_correct")]
        key, quality, response_ms, metadata = srs.updates[0]
        assert (key, quality, response_ms) == ("rhythm:4/4:steady", 5, 2000)
        assert metadata["item_id"] == "steady"
        assert "evaluation" in analytics.names()

    @pytest.mark.asyncio
    async def test_incorrect_answer(self, session, timers, srs, ledger, store):
        await session.start()
        outcome = await answer(session, timers, WRONG, advance=False)

        assert outcome.result == EvaluationResult.INCORRECT
        assert outcome.xp == 3
        assert outcome.quality == 2
        assert [m.index for m in outcome.evaluation.mismatches] == [1]
        assert ledger.awards == [(3, "rhythm_attempt")]
        assert srs.updates[0][1] == 2
        assert store.load_confusion("rhythm").by_item == {"steady": 1}
        assert store.load_confusion("rhythm").by_pair == {"quarter:eighth": 1}

    @pytest.mark.asyncio
    async def test_replayed_answer_scores_lower(self, session, timers):
        await session.start()
        timers.advance(4000)
        session.play_pattern()

        outcome = await answer(session, timers, RIGHT, advance=False)

        # no first-attempt bonus: 10 + 2
        assert outcome.xp == 12
        assert outcome.quality == 4

    @pytest.mark.asyncio
    async def test_hint_halves_reward(self, session, timers):
        await session.start()
        timers.advance(1000)

        assert session.use_hint() == Q
        session.fill_answer([Q, Q, E, None])
        assert session.use_hint() == E

        session.fill_answer(RIGHT)
        outcome = await session.check_answer()

        # ceil(10 * 1.2) = 12, floor(12 * 0.5) = 6, + 2
        assert outcome.xp == 8
        assert outcome.quality == 4

    @pytest.mark.asyncio
    async def test_reward_override_replaces_xp(self, make_session, single_catalog, timers, ledger):
        calls = []

        async def override(module_tag, correct, context):
            calls.append((module_tag, correct, context["item_id"]))
            return 99

        session = make_session(single_catalog, reward_override=override)
        await session.start()
        outcome = await answer(session, timers, RIGHT, advance=False)

        assert outcome.xp == 99
        assert ledger.awards == [(99, "rhythm_correct")]
        assert calls == [("rhythm", True, "steady")]

    @pytest.mark.asyncio
    async def test_failing_reward_override_keeps_computed_xp(
        self, make_session, single_catalog, timers, ledger
    ):
        async def override(module_tag, correct, context):
            raise RuntimeError("rewards service down")

        session = make_session(single_catalog, reward_override=override)
        await session.start()
        outcome = await answer(session, timers, RIGHT, advance=False)

        assert outcome.xp == 14
        assert ledger.awards == [(14, "rhythm_correct")]

    @pytest.mark.asyncio
    async def test_non_numeric_reward_override_keeps_computed_xp(
        self, make_session, single_catalog, timers, ledger, srs
    ):
        async def override(module_tag, correct, context):
            return "n/a"

        session = make_session(single_catalog, reward_override=override)
        await session.start()
        outcome = await answer(session, timers, RIGHT, advance=False)
        await session.drain()

        assert outcome.xp == 14
        assert ledger.awards == [(14, "rhythm_correct")]
        assert len(srs.updates) == 1

    @pytest.mark.asyncio
    async def test_local_state_settles_before_collaborators(self, make_session, single_catalog, timers):
        gate = asyncio.Event()
        awarded = []

        class GatedLedger:
            async def add_xp(self, amount, reason):
                await gate.wait()
                awarded.append(amount)

        session = make_session(single_catalog, ledger=GatedLedger())
        await session.start()
        timers.advance(1000)
        session.fill_answer(WRONG)

        task = asyncio.create_task(session.check_answer())
        await asyncio.sleep(0)

        assert not task.done()
        assert session.stats.total_count == 1
        assert session.question.revealed is True
        assert session.tracker.confusion_count("steady") == 1
        assert session.phase == DrillPhase.ADVANCING

        gate.set()
        outcome = await task
        assert awarded == [outcome.xp]


# =============================================================================
# Advancing
# =============================================================================


class TestAdvancing:
    """Tests for feedback delays and manual navigation."""

    @pytest.mark.asyncio
    async def test_correct_advances_after_short_delay(self, session, timers):
        await session.start()
        first = session.generation
        await answer(session, timers, RIGHT, advance=False)
        assert session.phase == DrillPhase.ADVANCING

        timers.advance(1499)
        assert session.generation == first

        timers.advance(1)
        assert session.generation == first + 1
        assert session.phase == DrillPhase.PRESENTING
        assert session.question.answer_slots == [None] * 4

    @pytest.mark.asyncio
    async def test_incorrect_advances_after_long_delay(self, session, timers):
        await session.start()
        first = session.generation
        await answer(session, timers, WRONG, advance=False)

        timers.advance(2499)
        assert session.generation == first

        timers.advance(1)
        assert session.generation == first + 1

    @pytest.mark.asyncio
    async def test_auto_advance_disabled(self, make_session, single_catalog, settings, timers):
        settings = settings.model_copy(update={"auto_advance": False})
        session = make_session(single_catalog, settings=settings)
        await session.start()
        first = session.generation

        await answer(session, timers, RIGHT, advance=False)
        timers.advance(10_000)

        assert session.phase == DrillPhase.EVALUATED
        assert session.generation == first

    @pytest.mark.asyncio
    async def test_manual_next_cancels_pending_advance(self, session, timers):
        await session.start()
        await answer(session, timers, RIGHT, advance=False)

        session.advance()
        advanced = session.generation
        timers.advance(5000)

        assert session.generation == advanced

    @pytest.mark.asyncio
    async def test_replay_holds_feedback(self, session, timers):
        await session.start()
        await answer(session, timers, RIGHT, think_ms=4000, advance=False)
        generation = session.generation

        assert session.replay() is True
        assert session.phase == DrillPhase.EVALUATED
        assert session.question.play_count == 2

        timers.advance(10_000)
        assert session.generation == generation

    @pytest.mark.asyncio
    async def test_new_question_stops_playback(self, session, timers, audio):
        await session.start()
        timers.advance(300)
        assert session.playback.is_playing

        session.next_question()
        ticks = len(audio.ticks)
        timers.advance(200)

        assert not session.playback.is_playing
        assert len(audio.ticks) == ticks
        assert audio.stops >= 1

    @pytest.mark.asyncio
    async def test_stale_autoplay_is_ignored(self, session, timers, audio):
        await session.start()
        timers.advance(100)
        session.next_question()

        timers.advance(299)
        assert audio.patterns == []

        timers.advance(1)
        assert len(audio.patterns) == 1


# =============================================================================
# Adaptation
# =============================================================================


class TestAdaptation:
    """Tests for confusion, mastery, tempo and difficulty cadence."""

    @pytest.mark.asyncio
    async def test_mixups_signal_on_third_miss(self, session, timers, analytics, events):
        await session.start()
        outcomes = [await answer(session, timers, WRONG) for _ in range(4)]

        assert [o.mixups_detected for o in outcomes] == [False, False, True, False]
        assert names(events).count("mixups_detected") == 1
        assert analytics.names().count("mixups-detected") == 1

    @pytest.mark.asyncio
    async def test_confusion_raises_weight(self, session, timers):
        await session.start()
        await answer(session, timers, WRONG)
        await answer(session, timers, WRONG)

        session.rebuild_pool()
        assert session.pool[0].weight == pytest.approx(2.0)

    @pytest.mark.asyncio
    async def test_tempo_rises_after_five_correct(self, session, timers, events):
        await session.start()
        outcomes = [await answer(session, timers, RIGHT) for _ in range(5)]

        assert session.tempo == 85
        assert outcomes[-1].tempo_decision.changed
        assert all(o.tempo_decision is None for o in outcomes[:4])
        assert "tempo_changed" in names(events)

    @pytest.mark.asyncio
    async def test_tempo_falls_after_five_misses(self, session, timers):
        await session.start()
        for _ in range(5):
            await answer(session, timers, WRONG)

        assert session.tempo == 75

    @pytest.mark.asyncio
    async def test_difficulty_cadence(self, session, timers, difficulty):
        await session.start()
        for _ in range(10):
            await answer(session, timers, RIGHT)

        assert len(difficulty.adjust_calls) == 2
        module_tag, accuracy, avg_seconds = difficulty.adjust_calls[0]
        assert module_tag == "rhythm"
        assert accuracy == pytest.approx(1.0)
        assert avg_seconds == pytest.approx(1.0)
        assert len(difficulty.record_calls) == 1
        assert difficulty.record_calls[0][3] == 10

    @pytest.mark.asyncio
    async def test_difficulty_level_feeds_rewards(self, session, timers, difficulty):
        difficulty.config = DifficultyConfig(level=3, difficulty_label="medium")
        await session.start()

        outcome = await answer(session, timers, RIGHT)

        assert session.level == 3
        assert outcome.xp == 12 + 6

    @pytest.mark.asyncio
    async def test_mastery_after_ten_fast_answers(self, session, timers, analytics, store, events):
        await session.start()
        session.set_tempo(90)

        outcomes = [await answer(session, timers, RIGHT) for _ in range(10)]

        assert [o.newly_mastered for o in outcomes] == [False] * 9 + [True]
        assert session.tracker.is_mastered("steady")
        assert store.load_mastery("rhythm").items == ["steady"]
        assert "mastered" in names(events)
        assert "mastery-unlocked" in analytics.names()
        assert session.pool[0].weight == pytest.approx(0.3)

    @pytest.mark.asyncio
    async def test_no_mastery_below_tempo(self, session, timers):
        await session.start()
        for _ in range(10):
            await answer(session, timers, RIGHT)

        # tempo climbs 80 -> 85 -> 90 but was 85 at the tenth answer
        assert not session.tracker.is_mastered("steady")
        assert session.tempo == 90

    @pytest.mark.asyncio
    async def test_due_items_boost_weight(self, make_session, single_catalog, srs):
        srs.due_keys = ["rhythm:4/4:steady", "rhythm:3/4:waltz", "garbage"]
        session = make_session(single_catalog)
        await session.start()

        assert session.due_ids == {"steady"}
        assert session.pool[0].weight == pytest.approx(2.0)

    @pytest.mark.asyncio
    async def test_fast_tempo_rebuilds_pool(self, session):
        await session.start()
        assert session.pool[0].weight == pytest.approx(1.0)

        session.set_tempo(120)
        assert session.pool[0].weight == pytest.approx(1.2)

    def test_set_tempo_clamps(self, session):
        assert session.set_tempo(500) == 160
        assert session.set_tempo(1) == 40

    @pytest.mark.asyncio
    async def test_mastery_stats(self, session, timers):
        await session.start()
        await answer(session, timers, RIGHT)
        await answer(session, timers, WRONG)

        (stats,) = session.mastery_stats()
        assert (stats.item_id, stats.seen, stats.correct, stats.accuracy) == ("steady", 2, 1, 50)
        assert stats.status == "learning"


# =============================================================================
# Stalled Pool
# =============================================================================


class TestStalledPool:
    """Tests for empty pools and recovery."""

    @pytest.mark.asyncio
    async def test_level_too_low_stalls(self, make_session, item_factory, difficulty, events):
        catalog = ItemCatalog([item_factory("busy", "sses", tier=Tier.MEDIUM)])
        session = make_session(catalog)
        session.subscribe(events.append)

        assert await session.start() is None
        assert session.is_stalled
        assert session.phase == DrillPhase.IDLE
        assert names(events).count("stalled") == 1

        difficulty.config = DifficultyConfig(level=4, difficulty_label="medium")
        await session.refresh_pool()

        assert not session.is_stalled
        assert session.question.item.id == "busy"
        assert session.phase == DrillPhase.PRESENTING

    @pytest.mark.asyncio
    async def test_restart_after_teardown_stalls_again(self, make_session, item_factory, events):
        catalog = ItemCatalog([item_factory("waltz", "qqq", ts="3/4")])
        session = make_session(catalog)
        session.subscribe(events.append)

        assert await session.start() is None
        session.teardown()
        assert not session.is_stalled

        assert await session.start() is None
        assert session.is_stalled
        assert names(events).count("stalled") == 2

    @pytest.mark.asyncio
    async def test_time_signature_without_items(self, session):
        await session.start()

        session.set_time_signature("3/4")
        assert session.is_stalled
        assert session.question is None
        assert session.phase == DrillPhase.IDLE

        generation = session.generation
        session.set_time_signature("4/4")
        assert not session.is_stalled
        assert session.question.item.id == "steady"
        assert session.generation == generation + 1

    @pytest.mark.asyncio
    async def test_stall_signal_fires_once(self, session, events):
        await session.start()
        session.set_time_signature("5/4")
        session.next_question()
        session.next_question()

        assert names(events).count("stalled") == 1


# =============================================================================
# Failure Containment
# =============================================================================


class TestCollaboratorFailures:
    """Tests that failing services never break the drill."""

    @pytest.mark.asyncio
    async def test_everything_down(self, session, timers, srs, difficulty, ledger, analytics):
        for collaborator in (srs, difficulty, ledger, analytics):
            collaborator.fail = True

        question = await session.start()
        assert question is not None
        assert session.level == 1
        assert session.config.difficulty_label == "easy"

        outcomes = [await answer(session, timers, RIGHT) for _ in range(10)]
        await session.drain()

        assert all(o.correct for o in outcomes)
        assert session.stats.total_count == 10
        assert session.tempo == 90

    @pytest.mark.asyncio
    async def test_sync_collaborators_are_accepted(self, make_session, single_catalog, timers):
        awards = []

        class SyncLedger:
            def add_xp(self, amount, reason):
                awards.append(amount)

        session = make_session(single_catalog, ledger=SyncLedger())
        await session.start()
        await answer(session, timers, RIGHT)

        assert awards == [14]

    @pytest.mark.asyncio
    async def test_store_write_failure_keeps_drilling(self, make_session, single_catalog, timers, store):
        def broken(module_tag, record):
            raise OSError("disk full")

        store.save_confusion = broken
        session = make_session(single_catalog)
        await session.start()

        outcome = await answer(session, timers, WRONG)

        assert outcome.result == EvaluationResult.INCORRECT
        assert session.tracker.confusion_count("steady") == 1

    @pytest.mark.asyncio
    async def test_listener_errors_are_contained(self, session, timers):
        def explode(event):
            raise RuntimeError("bad listener")

        session.subscribe(explode)
        await session.start()
        outcome = await answer(session, timers, RIGHT)

        assert outcome.correct

    @pytest.mark.asyncio
    async def test_unsubscribe(self, session, events):
        received = []
        unsubscribe = session.subscribe(received.append)
        unsubscribe()
        unsubscribe()

        await session.start()
        assert received == []
        assert events


# =============================================================================
# Playback
# =============================================================================


class TestPlayback:
    """Tests for playback routing and advisories."""

    @pytest.mark.asyncio
    async def test_no_audio_is_advisory(self, make_session, single_catalog, events, timers):
        session = make_session(single_catalog, audio=None)
        session.subscribe(events.append)
        await session.start()
        timers.advance(1000)

        assert session.play_pattern() is False
        assert session.start_metronome() is False
        assert session.question.play_count == 0
        assert "playback_unavailable" in names(events)

    @pytest.mark.asyncio
    async def test_play_while_playing_is_advisory(self, session, timers, events):
        await session.start()
        timers.advance(300)

        assert session.play_pattern() is False
        assert session.question.play_count == 1
        assert "playback_unavailable" in names(events)

    @pytest.mark.asyncio
    async def test_native_pattern_playback(self, session, timers, audio):
        audio.native = True
        await session.start()
        timers.advance(5000)

        assert audio.patterns == [("steady", 80, "4/4")]
        assert audio.ticks == []
        assert session.question.play_count == 1

    @pytest.mark.asyncio
    async def test_native_failure_falls_back_to_ticks(self, session, timers, audio):
        def broken(item, tempo, time_signature):
            raise RuntimeError("device busy")

        audio.play_rhythm_pattern = broken
        await session.start()
        timers.advance(5000)

        assert len(audio.ticks) == 6
        assert session.question.play_count == 1

    @pytest.mark.asyncio
    async def test_metronome_follows_tempo(self, session, timers, audio):
        await session.start()
        timers.advance(5000)
        audio.ticks.clear()

        assert session.start_metronome() is True
        timers.advance(1500)
        assert len(audio.ticks) == 3  # 0, 750 and 1500 ms at 80 BPM

        session.set_tempo(120)
        assert session.metronome.bpm == 120

        session.stop_metronome()
        count = len(audio.ticks)
        timers.advance(5000)
        assert len(audio.ticks) == count


# =============================================================================
# Teardown
# =============================================================================


class TestTeardown:
    """Tests for stopping a session mid-flight."""

    @pytest.mark.asyncio
    async def test_teardown_cancels_everything(self, session, timers, audio, events):
        await session.start()
        session.start_metronome()
        timers.advance(800)

        session.teardown()
        ticks = len(audio.ticks)
        timers.advance(10_000)

        assert len(audio.ticks) == ticks
        assert session.phase == DrillPhase.IDLE
        assert session.question is None
        assert timers.pending == []
        assert "torn_down" in names(events)

    @pytest.mark.asyncio
    async def test_teardown_during_feedback(self, session, timers):
        await session.start()
        await answer(session, timers, RIGHT, advance=False)
        generation = session.generation

        session.teardown()
        timers.advance(10_000)

        assert session.question is None
        assert session.generation == generation + 1

    @pytest.mark.asyncio
    async def test_restart_resets_counters(self, session, timers):
        await session.start()
        await answer(session, timers, RIGHT)

        await session.start()

        assert session.stats.total_count == 0
        assert session.question is not None

    @pytest.mark.asyncio
    async def test_close_drains_background_calls(self, session, analytics):
        await session.start()
        await session.close()

        assert analytics.names() == ["question-shown"]
        assert session.phase == DrillPhase.IDLE
