"""
Delivery Module - timing, playback, telemetry and persistence.

Components:
- Timers / AsyncioTimers / TimerGroup: cancellable scheduled callbacks
- PlaybackScheduler / Metronome: chained-timer beat playback
- PerformanceLog / SessionStats: in-session telemetry
- SQLiteDrillStore / MemoryDrillStore: durable drill records

The terminal interface lives in rhythm_drill.delivery.cli and is not
imported here.
"""

from .playback import Metronome, PlaybackScheduler, beat_duration_ms, subtick_offsets
from .state_store import DrillStore, MemoryDrillStore, SM2State, SQLiteDrillStore
from .telemetry import MasteryStats, PerformanceLog, PerformanceRecord, SessionStats
from .timers import AsyncioTimers, Cancellable, TimerGroup, Timers

__all__ = [
    # Timing
    "AsyncioTimers",
    "Cancellable",
    "TimerGroup",
    "Timers",
    # Playback
    "Metronome",
    "PlaybackScheduler",
    "beat_duration_ms",
    "subtick_offsets",
    # Persistence
    "DrillStore",
    "MemoryDrillStore",
    "SM2State",
    "SQLiteDrillStore",
    # Telemetry
    "MasteryStats",
    "PerformanceLog",
    "PerformanceRecord",
    "SessionStats",
]
