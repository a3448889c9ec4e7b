"""
gh-dl: archive every repository of a set of GitHub accounts into one tarball.
"""

__version__ = "1.0.0"

from ghdl.config import ArchiverConfig
from ghdl.crawler.orchestrator import ArchiveOrchestrator, RunSummary, run_archive
from ghdl.exceptions import GhdlError, NoRepositoriesDownloaded, RateLimitExceeded

__all__ = [
    "ArchiverConfig",
    "ArchiveOrchestrator",
    "RunSummary",
    "run_archive",
    "GhdlError",
    "NoRepositoriesDownloaded",
    "RateLimitExceeded",
]
