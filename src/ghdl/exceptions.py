"""Exceptions raised by the archiver.

Per-task errors (bad names, rate limits) are reported and the run carries on.
Run-level errors propagate to the command line and decide the exit status.
"""

from datetime import datetime, timezone
from typing import Optional


class GhdlError(Exception):
    """Base class for all archiver errors."""


class MalformedReferenceError(GhdlError):
    """A name token is neither ``owner`` nor ``owner/repo``."""

    def __init__(self, token: str):
        self.token = token
        super().__init__(f"invalid name {token!r}: expected OWNER or OWNER/REPO")


class RateLimitExceeded(GhdlError):
    """The listing API reported zero remaining requests."""

    def __init__(self, owner: str, reset_at: Optional[datetime] = None):
        self.owner = owner
        self.reset_at = reset_at
        if reset_at is None:
            when = "an unknown time"
        else:
            when = reset_at.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")
        super().__init__(f"{owner}: API rate limit exceeded, resets at {when}")


class NoRepositoriesDownloaded(GhdlError):
    """Every clone failed or nothing was discovered."""

    def __init__(self):
        super().__init__("no repositories downloaded")
