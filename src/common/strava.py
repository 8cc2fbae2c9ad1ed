from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

import httpx
from pydantic import BaseModel, Field, ValidationError, field_validator

from .rate_limiter import RateLimitError, SlidingWindowRateLimiter
from .settings import Credentials


logger = logging.getLogger(__name__)


DEFAULT_BASE_URL = "https://www.strava.com/api/v3"
DEFAULT_TOKEN_URL = "https://www.strava.com/oauth/token"

RIDE_TYPES = {"Ride", "EBikeRide", "GravelRide", "MountainBikeRide", "VirtualRide", "Velomobile"}

# Refresh when the access token expires within this many seconds
TOKEN_EXPIRY_MARGIN = 60


class StravaError(RuntimeError):
    """Base error for the Strava client."""


class StravaApiError(StravaError):
    """API returned an error status or an unexpected payload."""


class StravaAuthError(StravaError):
    """Token refresh failed or the API rejected our credentials."""


class StravaRateLimitError(StravaError):
    """Local or remote rate limiting prevented the request."""


class Gear(BaseModel):
    id: str
    name: str = ""
    distance: float = 0.0
    primary: bool = False


class Athlete(BaseModel):
    id: int
    firstname: str = ""
    lastname: str = ""
    city: Optional[str] = None
    country: Optional[str] = None
    bikes: List[Gear] = Field(default_factory=list)
    shoes: List[Gear] = Field(default_factory=list)

    @property
    def name(self) -> str:
        return f"{self.firstname} {self.lastname}".strip()

    def gear_name(self, gear_id: Optional[str]) -> Optional[str]:
        if not gear_id:
            return None
        for g in [*self.bikes, *self.shoes]:
            if g.id == gear_id:
                return g.name
        return None


class ActivityMap(BaseModel):
    summary_polyline: Optional[str] = None
    polyline: Optional[str] = None


class Activity(BaseModel):
    id: int
    name: str = ""
    type: str = ""
    sport_type: Optional[str] = None
    start_date: datetime
    start_date_local: datetime = Field(..., description="Local wall-clock start time (naive)")
    distance: float = 0.0
    moving_time: int = 0
    elapsed_time: int = 0
    total_elevation_gain: float = 0.0
    gear_id: Optional[str] = None
    commute: bool = False
    trainer: bool = False
    description: Optional[str] = None
    private_note: Optional[str] = None
    map: Optional[ActivityMap] = None

    @field_validator("start_date_local")
    @classmethod
    def _drop_tz(cls, v: datetime) -> datetime:
        # Strava appends "Z" to local wall-clock time; it is not UTC
        return v.replace(tzinfo=None)

    def is_ride(self) -> bool:
        return (self.sport_type or self.type) in RIDE_TYPES or self.type in RIDE_TYPES


class Segment(BaseModel):
    id: int
    name: str = ""
    activity_type: Optional[str] = None
    distance: float = 0.0
    average_grade: float = 0.0
    elevation_high: Optional[float] = None
    elevation_low: Optional[float] = None
    city: Optional[str] = None
    map: Optional[ActivityMap] = None


class StreamSet(BaseModel):
    latlng: List[List[float]] = Field(default_factory=list)
    time: List[int] = Field(default_factory=list)
    altitude: List[float] = Field(default_factory=list)


class StravaClient:
    """
    Minimal Strava v3 client with token refresh and client-side throttling.

    Notes
    - Refreshes the access token when missing or about to expire; the optional
      `on_token_refresh` callback receives the new `Credentials` for persistence.
    - Enforces Strava's 15-minute and daily limits locally and syncs the local
      windows from the `X-RateLimit-Usage` response header.
    - Transport errors, 429 and 5xx are retried with exponential backoff.
    """

    def __init__(
        self,
        credentials: Credentials,
        *,
        base_url: str = DEFAULT_BASE_URL,
        token_url: str = DEFAULT_TOKEN_URL,
        timeout: float = 30.0,
        client: Optional[httpx.Client] = None,
        limiter: Optional[SlidingWindowRateLimiter] = None,
        on_token_refresh: Optional[Callable[[Credentials], None]] = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._creds = credentials
        self._base_url = base_url.rstrip("/")
        self._token_url = token_url
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout)
        self._limiter = limiter or SlidingWindowRateLimiter()
        self._on_token_refresh = on_token_refresh
        self._clock = clock
        self._sleep = sleep

    @property
    def credentials(self) -> Credentials:
        return self._creds

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "StravaClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # --------------- Public API ---------------
    def athlete(self) -> Athlete:
        return self._parse(Athlete, self._get("/athlete"))

    def activities(
        self,
        *,
        after: Optional[int] = None,
        before: Optional[int] = None,
        per_page: int = 100,
    ) -> List[Activity]:
        """List the athlete's activities between epoch-second bounds, following pages."""
        out: List[Activity] = []
        page = 1
        while True:
            params: Dict[str, Any] = {"page": page, "per_page": per_page}
            if after is not None:
                params["after"] = after
            if before is not None:
                params["before"] = before
            data = self._get("/athlete/activities", params=params)
            if not isinstance(data, list):
                raise StravaApiError("Expected a list of activities")
            if not data:
                break
            out.extend(self._parse(Activity, item) for item in data)
            page += 1
        logger.debug("Fetched %d activities in %d page(s)", len(out), page - 1)
        return out

    def activity(self, activity_id: int) -> Activity:
        """Detailed activity, including description and private note."""
        return self._parse(Activity, self._get(f"/activities/{activity_id}"))

    def streams(self, activity_id: int) -> StreamSet:
        data = self._get(
            f"/activities/{activity_id}/streams",
            params={"keys": "latlng,time,altitude", "key_by_type": "true"},
        )
        if not isinstance(data, dict):
            raise StravaApiError("Expected streams keyed by type")
        return self._parse(
            StreamSet, {k: v.get("data", []) for k, v in data.items() if isinstance(v, dict)}
        )

    def starred_segments(self) -> List[Segment]:
        out: List[Segment] = []
        page = 1
        while True:
            data = self._get("/segments/starred", params={"page": page, "per_page": 100})
            if not isinstance(data, list):
                raise StravaApiError("Expected a list of segments")
            if not data:
                break
            out.extend(self._parse(Segment, item) for item in data)
            page += 1
        return out

    def segment(self, segment_id: int) -> Segment:
        return self._parse(Segment, self._get(f"/segments/{segment_id}"))

    # --------------- Internal ---------------
    @staticmethod
    def _parse(model, payload: Any):
        try:
            return model.model_validate(payload)
        except ValidationError as ve:
            raise StravaApiError(f"Failed to parse {model.__name__}: {ve}") from ve

    def _ensure_token(self) -> str:
        c = self._creds
        if c.access_token and c.expires_at > self._clock() + TOKEN_EXPIRY_MARGIN:
            return c.access_token

        logger.info("Refreshing Strava access token")
        try:
            resp = self._client.post(
                self._token_url,
                data={
                    "client_id": c.client_id,
                    "client_secret": c.client_secret,
                    "grant_type": "refresh_token",
                    "refresh_token": c.refresh_token,
                },
            )
        except (httpx.TimeoutException, httpx.TransportError) as exc:
            raise StravaAuthError("Token refresh failed") from exc
        if resp.status_code != 200:
            raise StravaAuthError(f"Token refresh failed: HTTP {resp.status_code}: {resp.text[:200]}")
        body = resp.json()
        try:
            self._creds = c.model_copy(
                update={
                    "access_token": body["access_token"],
                    "refresh_token": body.get("refresh_token", c.refresh_token),
                    "expires_at": int(body["expires_at"]),
                }
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise StravaAuthError("Malformed token refresh response") from exc
        if self._on_token_refresh is not None:
            self._on_token_refresh(self._creds)
        return self._creds.access_token  # type: ignore[return-value]

    def _sync_usage(self, resp: httpx.Response) -> None:
        usage = resp.headers.get("X-RateLimit-Usage")
        if not usage:
            return
        try:
            counts = [int(x) for x in usage.split(",")]
        except ValueError:
            logger.debug("Ignoring malformed X-RateLimit-Usage %r", usage)
            return
        self._limiter.sync_usage(counts)

    def _get(self, path: str, *, params: Optional[Dict[str, Any]] = None) -> Any:
        token = self._ensure_token()
        headers = {"Authorization": f"Bearer {token}"}
        url = f"{self._base_url}{path}"

        attempt = 0
        backoff = 1.0
        last_exc: Optional[Exception] = None
        while attempt < 4:
            try:
                self._limiter.acquire(blocking=True)
            except RateLimitError as rl:
                raise StravaRateLimitError("Local rate limiter prevented request") from rl

            try:
                resp = self._client.get(url, params=params, headers=headers)
            except (httpx.TimeoutException, httpx.TransportError) as exc:
                last_exc = exc
            else:
                self._sync_usage(resp)
                if resp.status_code == 200:
                    try:
                        return resp.json()
                    except ValueError as exc:
                        raise StravaApiError(f"Invalid JSON from {path}") from exc
                if resp.status_code == 401:
                    raise StravaAuthError(f"Unauthorized for {path}: {resp.text[:200]}")
                if resp.status_code in (429, 500, 502, 503, 504):
                    last_exc = StravaApiError(f"HTTP {resp.status_code} from Strava {path}")
                    if resp.status_code == 429:
                        last_exc = StravaRateLimitError(f"HTTP 429 from Strava {path}")
                else:
                    raise StravaApiError(f"HTTP {resp.status_code} from Strava {path}: {resp.text[:200]}")

            attempt += 1
            logger.debug("Retrying %s in %.1fs (attempt %d)", path, backoff, attempt)
            self._sleep(backoff)
            backoff = min(backoff * 2, 8.0)

        if isinstance(last_exc, StravaRateLimitError):
            raise last_exc
        if last_exc is not None:
            raise StravaError(f"Failed request to {path} after retries") from last_exc
        raise StravaError(f"Failed request to {path} after retries (unknown error)")


__all__ = [
    "Activity",
    "ActivityMap",
    "Athlete",
    "Gear",
    "Segment",
    "StravaApiError",
    "StravaAuthError",
    "StravaClient",
    "StravaError",
    "StravaRateLimitError",
    "StreamSet",
]
