from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .files import write_text_atomic


logger = logging.getLogger(__name__)


ENV_HOME = "STRAVA_HOME"
ENV_CLIENT_ID = "STRAVA_CLIENT_ID"
ENV_CLIENT_SECRET = "STRAVA_CLIENT_SECRET"
ENV_REFRESH_TOKEN = "STRAVA_REFRESH_TOKEN"

SETTINGS_FILE = "user.settings.json"
CREDENTIALS_FILE = "credentials.json"
STATE_FILE = "user.state.json"


class SettingsError(RuntimeError):
    """Configuration is missing or invalid."""


def config_dir() -> Path:
    base = os.environ.get(ENV_HOME)
    if base:
        return Path(base).expanduser()
    return Path.home() / ".strava"


def settings_path() -> Path:
    return config_dir() / SETTINGS_FILE


def credentials_path() -> Path:
    return config_dir() / CREDENTIALS_FILE


def state_path() -> Path:
    return config_dir() / STATE_FILE


class LineStyle(BaseModel):
    color: str = Field(..., description="KML colour, aabbggrr hex")
    width: float = 4.0


class UserSettings(BaseModel):
    """
    Contents of `user.settings.json`.

    - formsDataFile: default output for the `pdf` command.
    - kmlFile: default output for the `kml` command.
    - gpxDir: default output directory for the `gpx` command.
    - lineStyles: activity type -> KML line style, overriding the built-in palette.
    - bikes: gear name -> short label used in the bikelog.
    """

    model_config = ConfigDict(populate_by_name=True)

    forms_data_file: Optional[str] = Field(default=None, alias="formsDataFile")
    kml_file: Optional[str] = Field(default=None, alias="kmlFile")
    gpx_dir: Optional[str] = Field(default=None, alias="gpxDir")
    line_styles: Dict[str, LineStyle] = Field(default_factory=dict, alias="lineStyles")
    bikes: Dict[str, str] = Field(default_factory=dict)


class Credentials(BaseModel):
    client_id: str
    client_secret: str
    refresh_token: str
    access_token: Optional[str] = None
    expires_at: int = 0


def _read_json(path: Path) -> Optional[dict]:
    if not path.exists():
        return None
    try:
        with path.open("r", encoding="utf-8") as f:
            raw = json.load(f)
    except (OSError, ValueError) as exc:
        raise SettingsError(f"Cannot read {path}: {exc}") from exc
    if not isinstance(raw, dict):
        raise SettingsError(f"{path} must contain a JSON object")
    return raw


def load_settings(path: Optional[Path] = None) -> UserSettings:
    p = path or settings_path()
    raw = _read_json(p)
    if raw is None:
        logger.debug("No settings file at %s, using defaults", p)
        return UserSettings()
    try:
        return UserSettings.model_validate(raw)
    except ValidationError as exc:
        raise SettingsError(f"Invalid settings in {p}: {exc}") from exc


def load_credentials(path: Optional[Path] = None) -> Credentials:
    """Read `credentials.json`; STRAVA_* environment variables override file values."""
    p = path or credentials_path()
    raw = _read_json(p) or {}
    for env_name, key in (
        (ENV_CLIENT_ID, "client_id"),
        (ENV_CLIENT_SECRET, "client_secret"),
        (ENV_REFRESH_TOKEN, "refresh_token"),
    ):
        val = os.environ.get(env_name)
        if val:
            raw[key] = val

    missing = [k for k in ("client_id", "client_secret", "refresh_token") if not raw.get(k)]
    if missing:
        raise SettingsError(
            f"Missing Strava credentials ({', '.join(missing)}): set them in {p} "
            f"or via {ENV_CLIENT_ID}/{ENV_CLIENT_SECRET}/{ENV_REFRESH_TOKEN}"
        )
    raw["client_id"] = str(raw["client_id"])
    try:
        return Credentials.model_validate(raw)
    except ValidationError as exc:
        raise SettingsError(f"Invalid credentials in {p}: {exc}") from exc


def save_credentials(creds: Credentials, path: Optional[Path] = None) -> None:
    p = path or credentials_path()
    write_text_atomic(p, json.dumps(creds.model_dump(), indent=2))
    logger.debug("Saved refreshed credentials to %s", p)


__all__ = [
    "Credentials",
    "LineStyle",
    "SettingsError",
    "UserSettings",
    "config_dir",
    "credentials_path",
    "load_credentials",
    "load_settings",
    "save_credentials",
    "settings_path",
    "state_path",
]
