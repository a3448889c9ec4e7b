"""Repository discovery via the GitHub listing API.

The :class:`TaskDispatcher` turns each input name into a discovery task.
Owner names are handed to :class:`OwnerDiscovery`, which pages through the
account's repositories and streams one descriptor per repository into the
download queue. Names of the form ``owner/repo`` skip the listing and are
enqueued directly.
"""

import asyncio
from pathlib import Path
from typing import List, Optional, Sequence

import httpx

from ghdl.crawler.models import DiscoveryTask, RepoDescriptor, TaskKind, parse_reference
from ghdl.crawler.rate_limiter import RateLimitedClient
from ghdl.crawler.tracker import CompletionTracker, ResultCounters
from ghdl.exceptions import GhdlError, MalformedReferenceError, RateLimitExceeded
from ghdl.messages import MessageSink

# Errors that end one task without touching its siblings.
TASK_ERRORS = (GhdlError, httpx.HTTPError, ValueError, OSError)


def ensure_owner_dir(working_root: Path, owner: str) -> Path:
    """Create the owner's directory; other tasks may have done so already."""
    path = working_root / owner
    path.mkdir(mode=0o700, parents=True, exist_ok=True)
    return path


class OwnerDiscovery:
    """Pages through one owner's repositories.

    Every descriptor is counted in the tracker *before* it is queued, so the
    downloader's eventual release always has a matching unit.
    """

    def __init__(
        self,
        client: RateLimitedClient,
        queue: "asyncio.Queue[Optional[RepoDescriptor]]",
        tracker: CompletionTracker,
        counters: ResultCounters,
        sink: MessageSink,
        page_delay: float = 0.25,
    ):
        self.client = client
        self.queue = queue
        self.tracker = tracker
        self.counters = counters
        self.sink = sink
        self.page_delay = page_delay

    async def enqueue(self, descriptor: RepoDescriptor) -> None:
        self.tracker.add(1)
        self.counters.discovered += 1
        await self.queue.put(descriptor)

    async def discover(self, owner: str) -> int:
        """List every repository of ``owner`` and queue it for download.

        Stops at the first empty page or after the page named by the
        ``rel="last"`` link.

        Returns:
            Number of repositories found.

        Raises:
            RateLimitExceeded: the API has no requests left. Descriptors
                already queued stay queued.
        """
        found = 0
        last_page: Optional[int] = None
        page = 1

        while True:
            response = await self.client.fetch_listing(owner, page)

            # Quota check comes before parsing, an exhausted response has no listing.
            rate = self.client.rate_limit(response)
            if rate.exhausted:
                raise RateLimitExceeded(owner, rate.reset_at)

            listing = self.client.parse_listing(response, owner, page)
            if not listing.repos:
                break

            for descriptor in listing.repos:
                await self.enqueue(descriptor)
            found += len(listing.repos)

            if listing.last_page is not None:
                last_page = listing.last_page
            if last_page is not None and page >= last_page:
                break

            page += 1
            await asyncio.sleep(self.page_delay)

        return found


class TaskDispatcher:
    """Starts one task per input name, ``launch_delay`` apart.

    The tracker must already hold one unit per name; each task releases its
    unit when it finishes, whatever the outcome.
    """

    def __init__(
        self,
        discovery: OwnerDiscovery,
        working_root: Path,
        authenticated: bool = False,
        launch_delay: float = 0.25,
    ):
        self.discovery = discovery
        self.working_root = working_root
        self.authenticated = authenticated
        self.launch_delay = launch_delay

    @property
    def tracker(self) -> CompletionTracker:
        return self.discovery.tracker

    @property
    def sink(self) -> MessageSink:
        return self.discovery.sink

    def plan(self, names: Sequence[str]) -> List[DiscoveryTask]:
        """Classify names, reporting and releasing the malformed ones."""
        tasks = []
        for name in names:
            try:
                tasks.append(parse_reference(name))
            except MalformedReferenceError as exc:
                self.sink.error(exc)
                self.tracker.done()
        return tasks

    async def dispatch(self, names: Sequence[str], group: asyncio.TaskGroup) -> int:
        """Launch every valid task into ``group``. Returns the number started."""
        tasks = self.plan(names)
        for index, task in enumerate(tasks):
            if index:
                await asyncio.sleep(self.launch_delay)
            group.create_task(self.run_task(task), name=f"discover:{task.label}")
        return len(tasks)

    async def run_task(self, task: DiscoveryTask) -> None:
        try:
            ensure_owner_dir(self.working_root, task.owner)
            if task.kind is TaskKind.REPO:
                await self._enqueue_repository(task)
            else:
                found = await self.discovery.discover(task.owner)
                self.sink.info(f"found {found} repositories for {task.owner}")
        except TASK_ERRORS as exc:
            self.sink.error(exc)
        finally:
            self.tracker.done()

    async def _enqueue_repository(self, task: DiscoveryTask) -> None:
        # Visibility is unknown without a lookup; with a token, clone over SSH
        # so private repositories work too.
        descriptor = RepoDescriptor.for_repository(task.owner, task.repo, private=self.authenticated)
        await self.discovery.enqueue(descriptor)
        self.sink.info(f"added individual repo {descriptor.full_name}", detail=True)
