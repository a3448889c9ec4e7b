"""Configuration for an archiving run."""

import os
import re
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import FrozenSet, Iterable, List, Optional

from dotenv import load_dotenv

DEFAULT_API_URL = "https://api.github.com"

# zlib accepts -1 (library default) and 0 (store) through 9 (best).
DEFAULT_COMPRESSION = -1
MIN_COMPRESSION = -1
MAX_COMPRESSION = 9

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")


def default_archive_name() -> Path:
    return Path(f"gh-dl-{int(time.time())}.tar.gz")


@dataclass
class ArchiverConfig:
    """Configuration for discovering, cloning and archiving repositories.

    Attributes:
        output_path: Where the ``.tar.gz`` archive is written.
        working_root: Directory holding the clones. ``None`` creates a fresh
            temporary directory per run.
        compression_level: gzip level, -1 (default), 0 (none) to 9 (best).
        clone_timeout_seconds: Deadline per clone. ``None`` or 0 disables it.
        recurse_submodules: Pass ``--recurse-submodules`` to git.
        authenticated: List through the search API with ``github_token`` and
            clone private repositories over SSH.
        github_token: API token used in authenticated mode.
        excluded: Full names (``owner/repo``) that are never cloned.
        launch_delay: Pause between starting two tasks or two clones.
        page_delay: Pause between two listing requests of one owner.
        max_concurrent_downloads: Number of git clones allowed at once.
        queue_size: Capacity of the discovery -> download queue.
        per_page: Page size for listing requests.
        api_base_url: Root of the REST API.
        http_timeout: Timeout for a single listing request.
        git_binary: Executable used for cloning.
    """

    output_path: Path = field(default_factory=default_archive_name)
    working_root: Optional[Path] = None
    compression_level: int = DEFAULT_COMPRESSION
    clone_timeout_seconds: Optional[float] = 600
    recurse_submodules: bool = False
    authenticated: bool = False
    github_token: Optional[str] = field(default=None, repr=False)
    excluded: FrozenSet[str] = frozenset()
    launch_delay: float = 0.25
    page_delay: float = 0.25
    max_concurrent_downloads: int = 16
    queue_size: int = 100
    per_page: int = 100
    api_base_url: str = DEFAULT_API_URL
    http_timeout: float = 30.0
    git_binary: str = "git"

    def __post_init__(self):
        """Coerce paths and normalize the exclusion set."""
        if isinstance(self.output_path, str):
            self.output_path = Path(self.output_path)
        if isinstance(self.working_root, str):
            self.working_root = Path(self.working_root)
        if not self.clone_timeout_seconds:
            self.clone_timeout_seconds = None
        self.excluded = frozenset(name.strip().lower() for name in self.excluded if name.strip())
        if self.authenticated and not self.github_token:
            raise ValueError("authenticated mode requires a GitHub token")
        if self.max_concurrent_downloads < 1:
            raise ValueError("max_concurrent_downloads must be at least 1")
        if self.queue_size < 1:
            raise ValueError("queue_size must be at least 1")
        if not 1 <= self.per_page <= 100:
            raise ValueError("per_page must be between 1 and 100")

    def is_excluded(self, full_name: str) -> bool:
        return full_name.lower() in self.excluded


def parse_exclusions(value: Optional[str]) -> FrozenSet[str]:
    """Split a comma-separated list of ``owner/repo`` names."""
    if not value:
        return frozenset()
    return frozenset(part.strip() for part in value.split(",") if part.strip())


def parse_duration(value: str) -> Optional[float]:
    """Parse ``"10m"``, ``"1h30m"``, ``"90s"``, ``"500ms"`` or plain seconds.

    Returns ``None`` for a zero duration, meaning "no timeout".
    """
    text = value.strip().lower()
    if not text:
        raise ValueError("empty duration")
    try:
        seconds = float(text)
    except ValueError:
        seconds = 0.0
        pos = 0
        for match in _DURATION_PART.finditer(text):
            if match.start() != pos:
                break
            amount, unit = float(match.group(1)), match.group(2)
            seconds += amount * {"h": 3600, "m": 60, "s": 1, "ms": 0.001}[unit]
            pos = match.end()
        if pos != len(text):
            raise ValueError(f"invalid duration {value!r}")
    if seconds < 0:
        raise ValueError(f"negative duration {value!r}")
    return seconds or None


def load_environment(env_file: Optional[Path] = None) -> None:
    """Read ``.env`` into the process environment without overriding it."""
    load_dotenv(dotenv_path=env_file, override=False)


def token_from_environment() -> Optional[str]:
    token = os.environ.get("GITHUB_TOKEN", "").strip()
    return token or None


def api_url_from_environment() -> str:
    return os.environ.get("GHDL_API_URL", "").strip() or DEFAULT_API_URL


def normalize_names(names: Iterable[str]) -> List[str]:
    """Strip whitespace and drop empty tokens, keeping order."""
    return [name.strip() for name in names if name.strip()]
