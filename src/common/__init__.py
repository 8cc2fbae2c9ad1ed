"""
Common utilities for strava-log.

Modules:
- strava: Strava v3 API client with token refresh and rate limiting
- daterange: Local-date ranges parsed from the command line
- settings: Config directory, user settings and credentials
- units: Metric/imperial display helpers
"""

__all__ = [
    "daterange",
    "files",
    "rate_limiter",
    "settings",
    "strava",
    "units",
]
