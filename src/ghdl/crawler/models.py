"""Name references, discovery tasks and repository descriptors."""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from ghdl.exceptions import MalformedReferenceError

GITHUB_HOST = "github.com"

# Characters GitHub allows in account and repository names.
_NAME_SEGMENT = re.compile(r"[A-Za-z0-9._-]+")


class TaskKind(Enum):
    """What a discovery task has to do."""

    OWNER = "owner"  # list every repository of an account
    REPO = "repo"  # a single named repository, no listing needed


@dataclass(frozen=True)
class DiscoveryTask:
    """One unit of discovery work, created per input name."""

    kind: TaskKind
    owner: str
    repo: Optional[str] = None

    @property
    def label(self) -> str:
        if self.kind is TaskKind.REPO:
            return f"{self.owner}/{self.repo}"
        return self.owner


def _valid_segment(part: str) -> bool:
    return part not in (".", "..") and _NAME_SEGMENT.fullmatch(part) is not None


def parse_reference(token: str) -> DiscoveryTask:
    """Classify ``owner`` or ``owner/repo``.

    Raises:
        MalformedReferenceError: more than one ``/``, an empty segment, a
            ``.`` or ``..`` segment, or characters GitHub does not allow.
    """
    parts = token.strip().split("/")
    if any(not _valid_segment(part) for part in parts):
        raise MalformedReferenceError(token)
    if len(parts) == 1:
        return DiscoveryTask(TaskKind.OWNER, parts[0])
    if len(parts) == 2:
        return DiscoveryTask(TaskKind.REPO, parts[0], parts[1])
    raise MalformedReferenceError(token)


@dataclass(frozen=True)
class RepoDescriptor:
    """Clone metadata for one discovered repository."""

    clone_url: str  # anonymous https URL
    ssh_url: str  # used for private repositories in authenticated mode
    full_name: str  # owner/repo
    owner: str  # owner directory the clone lands in
    private: bool = False

    @property
    def name(self) -> str:
        return self.full_name.split("/", 1)[-1]

    def url_for(self, authenticated: bool) -> str:
        if self.private and authenticated:
            return self.ssh_url
        return self.clone_url

    @classmethod
    def from_api(cls, data: Dict[str, Any], owner: str) -> "RepoDescriptor":
        """Parse one item of a repository listing."""
        full_name = data["full_name"]
        return cls(
            clone_url=data.get("clone_url") or f"https://{GITHUB_HOST}/{full_name}.git",
            ssh_url=data.get("ssh_url") or f"git@{GITHUB_HOST}:{full_name}.git",
            full_name=full_name,
            owner=owner,
            private=bool(data.get("private", False)),
        )

    @classmethod
    def for_repository(cls, owner: str, repo: str, private: bool = False) -> "RepoDescriptor":
        """Build a descriptor for an explicitly named repository."""
        full_name = f"{owner}/{repo}"
        return cls(
            clone_url=f"https://{GITHUB_HOST}/{full_name}.git",
            ssh_url=f"git@{GITHUB_HOST}:{full_name}.git",
            full_name=full_name,
            owner=owner,
            private=private,
        )
