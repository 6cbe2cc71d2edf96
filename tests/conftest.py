"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests:
a manually advanced timer source, recording collaborators, and session
factories wired to them.
"""
import random
import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from rhythm_drill.config import DrillSettings  # noqa: E402
from rhythm_drill.core.catalog import DurationKind, Item, ItemCatalog, Tier, TimeSignature  # noqa: E402
from rhythm_drill.delivery.state_store import MemoryDrillStore  # noqa: E402
from rhythm_drill.drill.session import RhythmDrillSession  # noqa: E402
from rhythm_drill.integrations.collaborators import DifficultyConfig  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (full session state machine)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


# =============================================================================
# Timers
# =============================================================================


class FakeHandle:
    """Handle returned by FakeTimers.call_later."""

    def __init__(self, due: float, seq: int, callback):
        self.due = due
        self.seq = seq
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeTimers:
    """Deterministic timer source; time only moves on advance()."""

    def __init__(self):
        self.now = 0.0
        self._seq = 0
        self._handles: list[FakeHandle] = []

    def call_later(self, delay_ms: float, callback) -> FakeHandle:
        self._seq += 1
        handle = FakeHandle(self.now + max(0.0, delay_ms), self._seq, callback)
        self._handles.append(handle)
        return handle

    def clock(self) -> float:
        return self.now

    @property
    def pending(self) -> list[FakeHandle]:
        return [h for h in self._handles if not h.cancelled and not h.fired]

    def advance(self, ms: float) -> None:
        """Fire every callback due within the next `ms`, in due order."""
        target = self.now + ms
        while True:
            due = [h for h in self.pending if h.due <= target]
            if not due:
                break
            handle = min(due, key=lambda h: (h.due, h.seq))
            self.now = handle.due
            handle.fired = True
            handle.callback()
        self.now = target


# =============================================================================
# Recording Collaborators
# =============================================================================


class CollaboratorDown(RuntimeError):
    pass


class RecordingSrs:
    def __init__(self, due_keys=None):
        self.due_keys = list(due_keys or [])
        self.updates = []
        self.fail = False

    async def get_due_items(self, module_tag, limit):
        if self.fail:
            raise CollaboratorDown("srs down")
        return self.due_keys[:limit]

    async def update_item(self, key, quality, response_time_ms, metadata):
        if self.fail:
            raise CollaboratorDown("srs down")
        self.updates.append((key, quality, response_time_ms, metadata))


class RecordingDifficulty:
    def __init__(self, level=1, label="easy"):
        self.config = DifficultyConfig(level=level, difficulty_label=label)
        self.adjust_calls = []
        self.record_calls = []
        self.fail = False

    async def get_adaptive_config(self, module_tag):
        if self.fail:
            raise CollaboratorDown("difficulty down")
        return self.config

    async def adjust_difficulty(self, module_tag, recent_accuracy, avg_response_time_s):
        if self.fail:
            raise CollaboratorDown("difficulty down")
        self.adjust_calls.append((module_tag, recent_accuracy, avg_response_time_s))

    async def record_performance(
        self, module_tag, cumulative_accuracy, avg_response_time_s, correct_count, context
    ):
        if self.fail:
            raise CollaboratorDown("difficulty down")
        self.record_calls.append((module_tag, cumulative_accuracy, avg_response_time_s, correct_count))


class RecordingLedger:
    def __init__(self):
        self.awards = []
        self.fail = False

    async def add_xp(self, amount, reason):
        if self.fail:
            raise CollaboratorDown("ledger down")
        self.awards.append((amount, reason))


class RecordingAnalytics:
    def __init__(self):
        self.events = []
        self.fail = False

    async def track_activity(self, module_tag, event, payload):
        if self.fail:
            raise CollaboratorDown("analytics down")
        self.events.append((event, payload))

    def names(self):
        return [name for name, _ in self.events]


class RecordingAudio:
    def __init__(self, native=False):
        self.native = native
        self.patterns = []
        self.ticks = []
        self.stops = 0

    def play_rhythm_pattern(self, item, tempo, time_signature):
        self.patterns.append((item.id, tempo, str(time_signature)))
        return self.native

    def play_metronome_tick(self, is_accent, volume):
        self.ticks.append((is_accent, volume))

    def stop(self):
        self.stops += 1


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def timers():
    return FakeTimers()


@pytest.fixture
def rng():
    """Seeded random source for deterministic selection."""
    return random.Random(1234)


@pytest.fixture
def settings(tmp_path):
    """Settings with defaults, isolated from the user's store."""
    return DrillSettings(store_path=tmp_path / "state.db")


@pytest.fixture
def store():
    return MemoryDrillStore()


@pytest.fixture
def srs():
    return RecordingSrs()


@pytest.fixture
def difficulty():
    return RecordingDifficulty()


@pytest.fixture
def ledger():
    return RecordingLedger()


@pytest.fixture
def analytics():
    return RecordingAnalytics()


@pytest.fixture
def audio():
    return RecordingAudio()


def make_item(item_id, pattern, ts="4/4", tier=Tier.EASY, syncopated=False):
    """Build an item from a q/e/s string such as 'qqee'."""
    return Item(
        id=item_id,
        beat_events=tuple(DurationKind.parse(ch) for ch in pattern),
        time_signature=TimeSignature.parse(ts),
        tier=tier,
        syncopated=syncopated,
    )


@pytest.fixture
def item_factory():
    return make_item


@pytest.fixture
def single_catalog():
    """One easy 4/4 item so every question is predictable."""
    return ItemCatalog([make_item("steady", "qqee")])


@pytest.fixture
def make_session(timers, settings, store, srs, difficulty, ledger, analytics, audio, rng):
    """Factory building a session wired to the recording collaborators."""

    def _make(catalog, **overrides):
        kwargs = dict(
            srs=srs,
            difficulty=difficulty,
            ledger=ledger,
            analytics=analytics,
            store=store,
            audio=audio,
            timers=timers,
            settings=settings,
            rng=rng,
            clock=timers.clock,
        )
        kwargs.update(overrides)
        return RhythmDrillSession(catalog, **kwargs)

    return _make

