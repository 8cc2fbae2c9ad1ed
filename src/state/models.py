from __future__ import annotations

from datetime import datetime
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


OutputType = Literal["kml", "pdf"]

CHANNELS: List[str] = ["kml", "pdf"]


def parse_local_timestamp(value: Any) -> datetime:
    """Parse a stored or activity timestamp as naive local wall-clock time.

    Offsets such as a trailing "Z" are dropped: the value already is local time.
    """
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if not isinstance(value, str):
        raise TypeError(f"Expected an ISO-8601 string, got {type(value).__name__}")
    return datetime.fromisoformat(value).replace(tzinfo=None)


class ChannelState(BaseModel):
    """Watermark for a single output channel."""

    model_config = ConfigDict(populate_by_name=True)

    last_updated: Optional[str] = Field(
        default=None,
        alias="lastUpdated",
        description="ISO-8601 local timestamp of the newest activity included in the last run",
    )


class UserState(BaseModel):
    """
    Persistent per-channel state serialized to `user.state.json`.

    Fields
    - kml: watermark for KML generation.
    - pdf: watermark for bikelog (Acroforms XML) generation.

    Notes
    - An absent channel means "never updated for that channel".
    - Unknown top-level keys are kept (`extra="allow"`) and written back on save,
      so files produced by newer versions survive a round trip.
    """

    model_config = ConfigDict(extra="allow")

    kml: Optional[ChannelState] = None
    pdf: Optional[ChannelState] = None

    @classmethod
    def empty(cls) -> "UserState":
        """Convenience constructor for a fresh, empty state."""
        return cls()

    def channel(self, name: OutputType) -> Optional[ChannelState]:
        return getattr(self, name)

    def to_json_dict(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)
