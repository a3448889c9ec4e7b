"""Completion tracking for the discovery and download phases.

The archive may only be written once every discovery task and every clone has
finished. :class:`CompletionTracker` counts that outstanding work: it is
seeded with one unit per input name before the first task starts, gains one
unit per discovered repository, and loses one unit whenever a task reaches a
terminal state. A producer always holds its own unit while it can still emit
descriptors, so the count cannot touch zero early.
"""

import asyncio
from dataclasses import dataclass


class CompletionTracker:
    """Countdown barrier over outstanding units of work.

    All calls must come from the event loop thread.
    """

    def __init__(self):
        self._outstanding = 0
        self._finished = asyncio.Event()

    @property
    def outstanding(self) -> int:
        return self._outstanding

    @property
    def finished(self) -> bool:
        return self._finished.is_set()

    def add(self, units: int = 1) -> None:
        """Schedule ``units`` more pieces of work."""
        if units < 0:
            raise ValueError("units must be non-negative")
        if self._finished.is_set():
            raise RuntimeError("work scheduled after the tracker reached zero")
        self._outstanding += units

    def done(self) -> None:
        """Release one unit. Fires the barrier on the last one."""
        if self._outstanding <= 0:
            raise RuntimeError("released more units than were scheduled")
        self._outstanding -= 1
        if self._outstanding == 0:
            self._finished.set()

    async def wait(self) -> None:
        """Block until the count reaches zero."""
        await self._finished.wait()


@dataclass
class ResultCounters:
    """Totals for one run. Only ever incremented."""

    discovered: int = 0
    succeeded: int = 0
    failed: int = 0
    timed_out: int = 0
    excluded: int = 0
