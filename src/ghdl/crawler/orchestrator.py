"""Main archiving orchestration.

Coordinates discovery, download and archiving:
- Fresh working directory per run, always removed afterwards
- Discovery and cloning run concurrently in one task group
- Archiving starts only once the completion tracker reaches zero
"""

import asyncio
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

import httpx

from ghdl.config import ArchiverConfig
from ghdl.crawler.archive import Archiver
from ghdl.crawler.discovery import OwnerDiscovery, TaskDispatcher
from ghdl.crawler.downloader import RepoDownloader
from ghdl.crawler.models import RepoDescriptor
from ghdl.crawler.rate_limiter import RateLimitedClient
from ghdl.crawler.tracker import CompletionTracker, ResultCounters
from ghdl.exceptions import NoRepositoriesDownloaded
from ghdl.messages import MessageSink


@dataclass
class RunSummary:
    """Outcome of a completed run."""

    discovered: int
    succeeded: int
    failed: int
    timed_out: int
    excluded: int
    archive_path: Optional[Path] = None
    archive_members: int = 0


class ArchiveOrchestrator:
    """Runs discovery, cloning and archiving for a list of names."""

    def __init__(
        self,
        config: ArchiverConfig,
        sink: Optional[MessageSink] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self.sink = sink or MessageSink()
        self.transport = transport
        self.counters = ResultCounters()
        self.tracker: Optional[CompletionTracker] = None
        self.working_root: Optional[Path] = None

    def _make_working_root(self) -> Path:
        if self.config.working_root is None:
            return Path(tempfile.mkdtemp(prefix="gh-dl-"))
        self.config.working_root.mkdir(mode=0o700, parents=True, exist_ok=False)
        return self.config.working_root

    def _client(self) -> RateLimitedClient:
        return RateLimitedClient(
            token=self.config.github_token if self.config.authenticated else None,
            base_url=self.config.api_base_url,
            timeout=self.config.http_timeout,
            per_page=self.config.per_page,
            transport=self.transport,
        )

    async def download_all(self, names: Sequence[str]) -> ResultCounters:
        """Discover and clone everything ``names`` refers to.

        Returns once every discovery task and every clone has finished.
        """
        if not names:
            raise ValueError("no names given")

        tracker = self.tracker = CompletionTracker()
        # One unit per name up front, so the barrier cannot fire before
        # discovery has even started.
        tracker.add(len(names))

        queue: "asyncio.Queue[Optional[RepoDescriptor]]" = asyncio.Queue(maxsize=self.config.queue_size)

        async with self._client() as client:
            discovery = OwnerDiscovery(
                client,
                queue,
                tracker,
                self.counters,
                self.sink,
                page_delay=self.config.page_delay,
            )
            dispatcher = TaskDispatcher(
                discovery,
                self.working_root,
                authenticated=self.config.authenticated,
                launch_delay=self.config.launch_delay,
            )
            downloader = RepoDownloader(
                self.config, self.working_root, tracker, self.counters, self.sink
            )

            async with asyncio.TaskGroup() as group:
                group.create_task(downloader.consume(queue, group), name="downloader")
                await dispatcher.dispatch(names, group)
                await tracker.wait()
                # Every descriptor has been consumed by now; stop the consumer.
                await queue.put(None)

        return self.counters

    def archive(self) -> Archiver:
        return Archiver(self.working_root, self.sink, self.config.compression_level)

    def cleanup(self) -> None:
        """Remove the working directory."""
        if self.working_root is not None and self.working_root.exists():
            shutil.rmtree(self.working_root)

    async def run(self, names: Sequence[str]) -> RunSummary:
        """Run the whole pipeline and return its summary.

        Raises:
            NoRepositoriesDownloaded: nothing was cloned; no archive is written.
            OSError: the archive or the working directory could not be
                written or removed.
        """
        self.working_root = self._make_working_root()
        self.sink.info(f"using the working directory {self.working_root}")

        try:
            summary = await self._run(names)
        except BaseException:
            # Keep the original error; a cleanup failure is only reported.
            try:
                self.cleanup()
            except OSError as exc:
                self.sink.error(exc)
            raise
        self.cleanup()
        return summary

    async def _run(self, names: Sequence[str]) -> RunSummary:
        counters = await self.download_all(names)
        self.sink.info(
            f"discovered {counters.discovered}, failed {counters.failed} "
            f"({counters.timed_out} timed out), excluded {counters.excluded}",
            detail=True,
        )

        if counters.succeeded == 0:
            raise NoRepositoriesDownloaded()
        self.sink.info(f"downloaded {counters.succeeded} repositories")

        self.sink.info("archiving...")
        output_path = self.config.output_path
        members = await asyncio.to_thread(self.archive().write, output_path)
        self.sink.info(f"archive created: {output_path}")

        return RunSummary(
            discovered=counters.discovered,
            succeeded=counters.succeeded,
            failed=counters.failed,
            timed_out=counters.timed_out,
            excluded=counters.excluded,
            archive_path=output_path,
            archive_members=members,
        )


async def run_archive(config: ArchiverConfig, names: Sequence[str], sink: Optional[MessageSink] = None) -> RunSummary:
    """Convenience function to run a whole archive."""
    return await ArchiveOrchestrator(config, sink).run(names)
