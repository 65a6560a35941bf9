"""OAuth token broker and read-only proxy for the Strava API."""

__version__ = "0.3.0"
