from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict

from pydantic import ValidationError

from common.files import write_text_atomic

from .models import CHANNELS, UserState, parse_local_timestamp


logger = logging.getLogger(__name__)


class StateSaveError(RuntimeError):
    """Raised when the state file could not be written."""


def _normalize(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Drop channel entries that lack a parseable `lastUpdated` timestamp."""
    out: Dict[str, Any] = {}
    for key, value in raw.items():
        if key not in CHANNELS:
            out[key] = value
            continue
        if not isinstance(value, dict):
            logger.warning("Ignoring malformed %s entry in state file", key)
            continue
        ts = value.get("lastUpdated")
        try:
            local = parse_local_timestamp(ts)
        except (TypeError, ValueError):
            logger.warning("Ignoring %s entry with invalid lastUpdated %r", key, ts)
            continue
        out[key] = {"lastUpdated": local.isoformat()}
    return out


class JsonStateStore:
    """
    File-backed persistence for `UserState`.

    - `load()` never raises: a missing file, content that is not a JSON object,
      or any read/parse error all yield `UserState.empty()`.
    - `save(state)` writes a temporary sibling file and renames it over the
      target, so an interrupted write leaves the previous file in place.
      Failures are raised as `StateSaveError`.
    """

    def __init__(self, path: os.PathLike[str] | str) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> UserState:
        try:
            if not self._path.exists():
                logger.debug("State file %s does not exist, using empty state", self._path)
                return UserState.empty()
            with self._path.open("r", encoding="utf-8") as f:
                raw = json.load(f)
            if not isinstance(raw, dict):
                logger.debug("State file %s is not a JSON object, using empty state", self._path)
                return UserState.empty()
            state = UserState.model_validate(_normalize(raw))
        except (OSError, ValueError, ValidationError) as exc:
            # json.JSONDecodeError is a ValueError
            logger.warning("Failed to load state file %s, using empty state: %s", self._path, exc)
            return UserState.empty()
        logger.debug("Loaded state file %s", self._path)
        return state

    def save(self, state: UserState) -> None:
        payload = json.dumps(state.to_json_dict(), indent=2) + "\n"
        try:
            write_text_atomic(self._path, payload)
        except OSError as exc:
            logger.error("Failed to save state file %s: %s", self._path, exc)
            raise StateSaveError(f"Failed to save state file {self._path}: {exc}") from exc
        logger.debug("Saved state file %s", self._path)
