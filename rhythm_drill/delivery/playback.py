"""
Beat Playback Scheduling.

Implements:
- PlaybackScheduler: expands an item's beat events into timed tick callbacks
- Metronome: steady click with downbeat accents and live tempo adjustment

Both advance one beat at a time through a chained timer. Nothing past the
current beat is queued, so stop() at any point silences every future tick.
A generation counter guards against callbacks that fire after a stop.

Sub-tick layout per beat:
    quarter   -> [0]
    eighth    -> [0, 1/2]
    sixteenth -> [0, 1/4, 1/2, 3/4]
"""

from __future__ import annotations

from collections.abc import Callable
from functools import partial

from loguru import logger

from rhythm_drill.core.catalog import DurationKind, Item
from rhythm_drill.delivery.timers import Cancellable, Timers

TickCallback = Callable[[bool, float], None]  # (is_accent, volume)

MIN_PLAYBACK_TEMPO = 30
MAX_METRONOME_TEMPO = 300


def beat_duration_ms(tempo: float, min_tempo: int = MIN_PLAYBACK_TEMPO) -> float:
    """Length of one beat in milliseconds."""
    return 60000.0 / max(min_tempo, tempo)


def subtick_offsets(kind: DurationKind, beat_ms: float) -> list[float]:
    """Offsets of the sub-ticks of one beat, relative to the beat start."""
    n = kind.subdivisions
    return [beat_ms * i / n for i in range(n)]


class PlaybackScheduler:
    """
    Plays one item's rhythm as metronome ticks.

    Only one pattern plays at a time; play() while playing is a no-op that
    returns False.
    """

    def __init__(
        self,
        timers: Timers,
        on_tick: TickCallback,
        *,
        accent_volume: float = 0.8,
        tick_volume: float = 0.4,
        min_tempo: int = MIN_PLAYBACK_TEMPO,
        on_finished: Callable[[], None] | None = None,
    ):
        self.timers = timers
        self.on_tick = on_tick
        self.accent_volume = accent_volume
        self.tick_volume = tick_volume
        self.min_tempo = min_tempo
        self.on_finished = on_finished

        self._playing = False
        self._generation = 0
        self._handles: list[Cancellable] = []

    @property
    def is_playing(self) -> bool:
        return self._playing

    def play(self, item: Item, tempo: float, beats_per_bar: int) -> bool:
        """
        Start playing an item.

        Args:
            item: Pattern to play
            tempo: Beats per minute (floored at min_tempo)
            beats_per_bar: Accent period from the time signature

        Returns:
            True if playback started, False if already playing
        """
        if self._playing:
            logger.info("Playback already in progress; ignoring play request")
            return False

        self._playing = True
        self._generation += 1
        beat_ms = beat_duration_ms(tempo, self.min_tempo)
        logger.debug(f"Playing '{item.id}' at {tempo} BPM ({beat_ms:.0f} ms/beat)")
        self._schedule_beat(self._generation, item.beat_events, 0, beat_ms, max(1, beats_per_bar))
        return True

    def stop(self) -> None:
        """Cancel every pending tick. Safe to call when idle."""
        self._generation += 1
        for handle in self._handles:
            handle.cancel()
        self._handles.clear()
        self._playing = False

    def _schedule_beat(
        self,
        generation: int,
        events: tuple[DurationKind, ...],
        index: int,
        beat_ms: float,
        beats_per_bar: int,
    ) -> None:
        if generation != self._generation:
            return

        # Handles of the previous beat have all fired by now
        self._handles.clear()

        if index >= len(events):
            self._finish(generation)
            return

        downbeat = index % beats_per_bar == 0
        for n, offset in enumerate(subtick_offsets(events[index], beat_ms)):
            accent = downbeat and n == 0
            volume = self.accent_volume if accent else self.tick_volume
            self._handles.append(
                self.timers.call_later(offset, partial(self._fire_tick, generation, accent, volume))
            )

        self._handles.append(
            self.timers.call_later(
                beat_ms,
                partial(self._schedule_beat, generation, events, index + 1, beat_ms, beats_per_bar),
            )
        )

    def _fire_tick(self, generation: int, accent: bool, volume: float) -> None:
        if generation != self._generation:
            return
        try:
            self.on_tick(accent, volume)
        except Exception as e:
            logger.warning(f"Tick callback failed: {e}")

    def _finish(self, generation: int) -> None:
        if generation != self._generation:
            return
        self._playing = False
        if self.on_finished is not None:
            self.on_finished()


class Metronome:
    """Continuous click track; tempo can change while running."""

    def __init__(
        self,
        timers: Timers,
        on_tick: TickCallback,
        *,
        accent_volume: float = 0.8,
        tick_volume: float = 0.4,
        min_tempo: int = MIN_PLAYBACK_TEMPO,
    ):
        self.timers = timers
        self.on_tick = on_tick
        self.accent_volume = accent_volume
        self.tick_volume = tick_volume
        self.min_tempo = min_tempo

        self._running = False
        self._generation = 0
        self._handle: Cancellable | None = None
        self._beat = 0
        self._beats_per_bar = 4
        self._interval_ms = beat_duration_ms(80)
        self.bpm = 80

    @property
    def is_running(self) -> bool:
        return self._running

    def _clamp(self, tempo: float) -> int:
        return int(max(self.min_tempo, min(MAX_METRONOME_TEMPO, tempo)))

    def start(self, tempo: float, beats_per_bar: int = 4) -> bool:
        """Start clicking immediately. Returns False if already running."""
        if self._running:
            return False
        self._running = True
        self._generation += 1
        self._beat = 0
        self._beats_per_bar = max(1, beats_per_bar)
        self.bpm = self._clamp(tempo)
        self._interval_ms = beat_duration_ms(self.bpm, self.min_tempo)
        self._tick(self._generation)
        return True

    def adjust(self, tempo: float) -> None:
        """Change tempo; the next click comes one new interval from now."""
        self.bpm = self._clamp(tempo)
        self._interval_ms = beat_duration_ms(self.bpm, self.min_tempo)
        if not self._running:
            return
        if self._handle is not None:
            self._handle.cancel()
        self._generation += 1
        self._handle = self.timers.call_later(
            self._interval_ms, partial(self._tick, self._generation)
        )

    def stop(self) -> None:
        self._generation += 1
        self._running = False
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _tick(self, generation: int) -> None:
        if generation != self._generation or not self._running:
            return

        accent = self._beat % self._beats_per_bar == 0
        try:
            self.on_tick(accent, self.accent_volume if accent else self.tick_volume)
        except Exception as e:
            logger.warning(f"Metronome tick failed: {e}")
        self._beat += 1

        self._handle = self.timers.call_later(self._interval_ms, partial(self._tick, generation))
