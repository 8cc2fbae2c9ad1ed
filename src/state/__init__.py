"""
Incremental run state.

Tracks, per output channel ("kml", "pdf"), the local timestamp of the newest
activity processed by the last successful run. Persisted as JSON in the
user's config directory.
"""

from .models import CHANNELS, ChannelState, OutputType, UserState
from .store import JsonStateStore, StateSaveError
from .tracker import StateTracker

__all__ = [
    "CHANNELS",
    "ChannelState",
    "JsonStateStore",
    "OutputType",
    "StateSaveError",
    "StateTracker",
    "UserState",
]
