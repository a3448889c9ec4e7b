"""Shared fakes: a scripted GitHub listing API and a scripted git."""

import asyncio
import logging
from pathlib import Path
from typing import Dict, List, Optional

import httpx
import pytest

from ghdl.config import ArchiverConfig
from ghdl.messages import MessageSink, Verbosity

API = "https://api.github.test"


def repo_item(full_name: str, private: bool = False) -> dict:
    return {
        "full_name": full_name,
        "clone_url": f"https://github.com/{full_name}.git",
        "ssh_url": f"git@github.com:{full_name}.git",
        "private": private,
    }


class FakeListingAPI:
    """Serves ``/users/{owner}/repos`` from a dict of owner -> repo names.

    Pages are cut at the requested ``per_page`` and carry a GitHub-style Link
    header with ``rel="last"`` on every page but the last one.
    """

    def __init__(self, repos: Dict[str, List[str]], remaining: int = 59, with_links: bool = True):
        self.repos = repos
        self.remaining = remaining
        self.with_links = with_links
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        parts = request.url.path.strip("/").split("/")
        if len(parts) != 3 or parts[0] != "users" or parts[2] != "repos" or parts[1] not in self.repos:
            return httpx.Response(404, json={"message": "Not Found"})

        owner = parts[1]
        per_page = int(request.url.params.get("per_page", "30"))
        page = int(request.url.params.get("page", "1"))
        names = self.repos[owner]
        last = max(1, -(-len(names) // per_page))
        chunk = names[(page - 1) * per_page : page * per_page]

        headers = {"X-RateLimit-Remaining": str(self.remaining), "X-RateLimit-Reset": "1700000000"}
        if self.with_links and page < last:
            headers["Link"] = (
                f'<{API}/users/{owner}/repos?per_page={per_page}&page={page + 1}>; rel="next", '
                f'<{API}/users/{owner}/repos?per_page={per_page}&page={last}>; rel="last"'
            )
        return httpx.Response(200, json=[repo_item(f"{owner}/{name}") for name in chunk], headers=headers)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def pages_requested(self, owner: str) -> List[int]:
        return [
            int(r.url.params["page"]) for r in self.requests if r.url.path == f"/users/{owner}/repos"
        ]


class FakeProcess:
    def __init__(self, behavior: str, dest: Path):
        self.behavior = behavior
        self.dest = dest
        self.returncode: Optional[int] = None
        self.killed = False

    async def communicate(self):
        if self.behavior == "hang":
            self.dest.mkdir()
            (self.dest / "partial.pack").write_bytes(b"\0" * 16)
            await asyncio.sleep(3600)
        if self.behavior == "broken":
            self.dest.mkdir()
            (self.dest / "partial.pack").write_bytes(b"\0" * 16)
            raise BrokenPipeError(32, "Broken pipe")
        if self.behavior == "fail":
            self.dest.mkdir()
            self.returncode = 128
            return b"", b"fatal: repository not found"
        self.dest.mkdir()
        (self.dest / "README.md").write_text(f"# {self.dest.name}\n")
        (self.dest / ".git").mkdir()
        (self.dest / ".git" / "HEAD").write_text("ref: refs/heads/main\n")
        self.returncode = 0
        return b"", b""

    def kill(self):
        self.killed = True
        self.returncode = -9

    async def wait(self):
        return self.returncode


class FakeGit:
    """Stands in for ``asyncio.create_subprocess_exec`` running git."""

    def __init__(self, behaviors: Optional[Dict[str, str]] = None):
        self.behaviors = behaviors or {}
        self.calls: List[List[str]] = []
        self.processes: List[FakeProcess] = []

    async def __call__(self, *cmd, stdout=None, stderr=None):
        self.calls.append(list(cmd))
        owner_dir = Path(cmd[2])
        dest = owner_dir / cmd[-1]
        full_name = f"{owner_dir.name}/{cmd[-1]}"
        process = FakeProcess(self.behaviors.get(full_name, "ok"), dest)
        self.processes.append(process)
        return process

    @property
    def cloned(self) -> List[str]:
        return sorted(f"{Path(c[2]).name}/{c[-1]}" for c in self.calls)


@pytest.fixture
def fake_git(monkeypatch):
    git = FakeGit()
    monkeypatch.setattr(asyncio, "create_subprocess_exec", git)
    return git


@pytest.fixture
def sink():
    return MessageSink(Verbosity.VERBOSE)


@pytest.fixture
def config(tmp_path):
    return ArchiverConfig(
        output_path=tmp_path / "out.tar.gz",
        working_root=tmp_path / "work",
        launch_delay=0,
        page_delay=0,
        clone_timeout_seconds=5,
        api_base_url=API,
    )


@pytest.fixture(autouse=True)
def reset_ghdl_logger():
    """Undo ``configure_logging`` so caplog keeps seeing records."""
    yield
    logger = logging.getLogger("ghdl")
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
