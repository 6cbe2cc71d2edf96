"""
Integrations Module - collaborator protocols and local implementations.
"""

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
from rhythm_drill.integrations.local import (
    LocalDifficultyController,
    LocalLedger,
    LocalSrsScheduler,
    LoguruAnalytics,
    review,
)

__all__ = [
    # Protocols
    "AnalyticsSink",
    "AudioEngine",
    "DifficultyConfig",
    "DifficultyController",
    "GamificationLedger",
    "RewardOverride",
    "SrsScheduler",
    "parse_srs_key",
    "srs_key",
    # Local implementations
    "LocalDifficultyController",
    "LocalLedger",
    "LocalSrsScheduler",
    "LoguruAnalytics",
    "review",
]
