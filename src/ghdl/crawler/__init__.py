"""Discovery, cloning and archiving of GitHub repositories."""

from ghdl.crawler.archive import Archiver
from ghdl.crawler.discovery import OwnerDiscovery, TaskDispatcher
from ghdl.crawler.downloader import DownloadResult, FailureKind, RepoDownloader
from ghdl.crawler.models import DiscoveryTask, RepoDescriptor, TaskKind, parse_reference
from ghdl.crawler.orchestrator import ArchiveOrchestrator, RunSummary, run_archive
from ghdl.crawler.rate_limiter import RateLimitedClient, RateLimitState
from ghdl.crawler.tracker import CompletionTracker, ResultCounters

__all__ = [
    "Archiver",
    "OwnerDiscovery",
    "TaskDispatcher",
    "DownloadResult",
    "FailureKind",
    "RepoDownloader",
    "DiscoveryTask",
    "RepoDescriptor",
    "TaskKind",
    "parse_reference",
    "ArchiveOrchestrator",
    "RunSummary",
    "run_archive",
    "RateLimitedClient",
    "RateLimitState",
    "CompletionTracker",
    "ResultCounters",
]
