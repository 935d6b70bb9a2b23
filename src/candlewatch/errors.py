"""Exception taxonomy for candlewatch.

FeedUnavailable is recovered locally (synthetic fallback data); InvalidInput is
surfaced to whoever tried to create the alert rule.
"""
from __future__ import annotations


class CandlewatchError(Exception):
    """Base exception for all candlewatch errors."""


class FeedUnavailable(CandlewatchError):
    """Market-data provider unreachable, timed out, or answered non-2xx."""


class MalformedFeedData(FeedUnavailable):
    """Provider answered, but a row could not be parsed into numbers."""


class InvalidInput(CandlewatchError, ValueError):
    """Rejected user input (e.g. a non-numeric or non-positive alert price)."""


class ServiceStopped(CandlewatchError):
    """A request reached a background service after (or while) it was stopped."""
