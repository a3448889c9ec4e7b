"""Streaming repository downloader.

Consumes descriptors from the discovery queue as they arrive and clones each
one with git:
- Exclusion list checked before anything touches disk
- Pacing delay between clone launches plus a concurrency cap
- Per-clone timeout, partial clones removed on any failure
- No retries; a failure is reported and the run moves on
"""

import asyncio
import shutil
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Optional, Set

from ghdl.config import ArchiverConfig
from ghdl.crawler.models import RepoDescriptor
from ghdl.crawler.tracker import CompletionTracker, ResultCounters
from ghdl.messages import MessageSink

# Parallel submodule fetches per clone.
SUBMODULE_JOBS = 16


class FailureKind(Enum):
    """Why a clone did not produce a repository."""

    ERROR = "error"  # git exited non-zero or could not be started
    TIMEOUT = "timeout"  # deadline expired, process killed
    DUPLICATE = "duplicate"  # another clone already owns the destination


@dataclass
class DownloadResult:
    """Result of a single repository download."""

    full_name: str
    success: bool
    path: Optional[Path] = None
    error: Optional[str] = None
    failure_kind: Optional[FailureKind] = None

    def describe(self) -> str:
        if self.failure_kind is FailureKind.TIMEOUT:
            return f"{self.full_name}: clone timeout ({self.error})"
        return f"{self.full_name}: {self.error}"


class CloneFailed(Exception):
    """Wraps a failed :class:`DownloadResult` for the message sink."""

    def __init__(self, result: DownloadResult):
        self.result = result
        super().__init__(result.describe())


class RepoDownloader:
    """Clones repositories into ``<working_root>/<owner>/<repo>``."""

    def __init__(
        self,
        config: ArchiverConfig,
        working_root: Path,
        tracker: CompletionTracker,
        counters: ResultCounters,
        sink: MessageSink,
    ):
        self.config = config
        self.working_root = working_root
        self.tracker = tracker
        self.counters = counters
        self.sink = sink
        self._semaphore = asyncio.Semaphore(config.max_concurrent_downloads)
        self._claimed: Set[Path] = set()
        self.results: List[DownloadResult] = []

    def _get_repo_path(self, repo: RepoDescriptor) -> Path:
        """Generate storage path: /root/owner/repo/"""
        return self.working_root / repo.owner / repo.name

    def _build_command(self, repo: RepoDescriptor, owner_dir: Path) -> List[str]:
        cmd = [
            self.config.git_binary,
            "-C",
            str(owner_dir),
            "clone",
            "-q",
            "--no-hardlinks",
        ]
        if self.config.recurse_submodules:
            cmd += ["--recurse-submodules", "-j", str(SUBMODULE_JOBS)]
        cmd += [repo.url_for(self.config.authenticated), repo.name]
        return cmd

    async def _clone_repo(self, repo: RepoDescriptor, dest_path: Path) -> DownloadResult:
        """Execute git clone with timeout."""
        timeout = self.config.clone_timeout_seconds
        cmd = self._build_command(repo, dest_path.parent)

        try:
            dest_path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
        except OSError as exc:
            return DownloadResult(
                full_name=repo.full_name,
                success=False,
                error=f"cannot create {dest_path.parent}: {exc}",
                failure_kind=FailureKind.ERROR,
            )

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            return DownloadResult(
                full_name=repo.full_name,
                success=False,
                error=f"cannot run {self.config.git_binary}: {exc}",
                failure_kind=FailureKind.ERROR,
            )

        try:
            _, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            await self._kill(process)
            self._remove_partial(dest_path)
            return DownloadResult(
                full_name=repo.full_name,
                success=False,
                error=f"no result after {timeout:g}s",
                failure_kind=FailureKind.TIMEOUT,
            )
        except asyncio.CancelledError:
            await self._kill(process)
            self._remove_partial(dest_path)
            raise
        except OSError as exc:
            # TimeoutError is an OSError too; it is handled above.
            await self._kill(process)
            self._remove_partial(dest_path)
            return DownloadResult(
                full_name=repo.full_name,
                success=False,
                error=f"clone failed: {exc}",
                failure_kind=FailureKind.ERROR,
            )

        if process.returncode == 0:
            return DownloadResult(full_name=repo.full_name, success=True, path=dest_path)

        self._remove_partial(dest_path)
        error = (stderr or b"").decode(errors="replace").strip()
        return DownloadResult(
            full_name=repo.full_name,
            success=False,
            error=error or f"git exited with status {process.returncode}",
            failure_kind=FailureKind.ERROR,
        )

    @staticmethod
    async def _kill(process: asyncio.subprocess.Process) -> None:
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass
        await process.wait()

    @staticmethod
    def _remove_partial(dest_path: Path) -> None:
        if dest_path.exists():
            shutil.rmtree(dest_path, ignore_errors=True)

    async def download_repo(self, repo: RepoDescriptor) -> DownloadResult:
        """Clone one repository and record the outcome."""
        dest_path = self._get_repo_path(repo)

        if dest_path in self._claimed:
            result = DownloadResult(
                full_name=repo.full_name,
                success=False,
                error=f"{dest_path.relative_to(self.working_root).as_posix()} is already being downloaded",
                failure_kind=FailureKind.DUPLICATE,
            )
        else:
            self._claimed.add(dest_path)
            async with self._semaphore:
                result = await self._clone_repo(repo, dest_path)

        self.results.append(result)
        if result.success:
            self.counters.succeeded += 1
            self.sink.info(f"downloaded repo {repo.full_name}", detail=True)
        else:
            self.counters.failed += 1
            if result.failure_kind is FailureKind.TIMEOUT:
                self.counters.timed_out += 1
            self.sink.error(CloneFailed(result))
        return result

    async def _download_and_release(self, repo: RepoDescriptor) -> None:
        try:
            await self.download_repo(repo)
        finally:
            self.tracker.done()

    async def consume(
        self,
        queue: "asyncio.Queue[Optional[RepoDescriptor]]",
        group: asyncio.TaskGroup,
    ) -> None:
        """Launch a clone per queued descriptor until ``None`` arrives."""
        launched = 0
        while True:
            repo = await queue.get()
            if repo is None:
                break

            if self.config.is_excluded(repo.full_name):
                self.counters.excluded += 1
                self.sink.info(f"skipped {repo.full_name}", detail=True)
                self.tracker.done()
                continue

            if launched:
                await asyncio.sleep(self.config.launch_delay)
            group.create_task(self._download_and_release(repo), name=f"clone:{repo.full_name}")
            launched += 1
