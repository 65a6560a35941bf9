"""Data model exports."""

from .strava import StravaToken
from .token import TokenRecord

__all__ = ["StravaToken", "TokenRecord"]
