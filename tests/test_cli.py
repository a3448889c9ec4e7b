"""Tests for the command-line entry point."""

import pytest

from ghdl import cli
from ghdl.crawler.orchestrator import RunSummary
from ghdl.exceptions import NoRepositoriesDownloaded


def test_parser_defaults():
    args = cli.build_parser().parse_args(["alice"])
    assert args.names == ["alice"]
    assert args.level == -1
    assert args.timeout == 600
    assert not args.auth


def test_zero_timeout_flag():
    args = cli.build_parser().parse_args(["-t", "0", "alice"])
    assert args.timeout is None


def test_quiet_and_verbose_are_exclusive(capsys):
    with pytest.raises(SystemExit) as exc:
        cli.build_parser().parse_args(["-q", "-v", "alice"])
    assert exc.value.code == 2


def test_names_required():
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args([])


def test_config_from_args(monkeypatch):
    monkeypatch.setenv("GITHUB_TOKEN", "from-env")
    args = cli.build_parser().parse_args(["-a", "-s", "-x", "a/b,c/d", "-l", "9", "-o", "x.tar.gz", "alice"])
    config = cli.config_from_args(args)
    assert config.authenticated
    assert config.github_token == "from-env"
    assert config.recurse_submodules
    assert config.excluded == frozenset({"a/b", "c/d"})
    assert config.compression_level == 9
    assert str(config.output_path) == "x.tar.gz"


def test_token_prompt_when_env_missing(monkeypatch):
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    monkeypatch.setattr(cli.getpass, "getpass", lambda prompt: "typed ")
    assert cli.read_token() == "typed"


class FakeOrchestrator:
    outcome = None

    def __init__(self, config, sink):
        self.config = config

    async def run(self, names):
        if isinstance(self.outcome, BaseException):
            raise self.outcome
        return self.outcome


@pytest.fixture
def fake_orchestrator(monkeypatch):
    monkeypatch.setattr(cli, "ArchiveOrchestrator", FakeOrchestrator)
    monkeypatch.setattr(cli, "load_environment", lambda: None)
    return FakeOrchestrator


def test_exit_zero_on_success(fake_orchestrator, tmp_path):
    fake_orchestrator.outcome = RunSummary(discovered=2, succeeded=2, failed=0, timed_out=0, excluded=0)
    assert cli.main(["-o", str(tmp_path / "a.tar.gz"), "alice"]) == 0


def test_exit_one_when_nothing_downloaded(fake_orchestrator, capsys):
    fake_orchestrator.outcome = NoRepositoriesDownloaded()
    assert cli.main(["alice"]) == 1
    assert "fail: no repositories downloaded" in capsys.readouterr().err


def test_exit_one_on_io_error(fake_orchestrator):
    fake_orchestrator.outcome = OSError("disk full")
    assert cli.main(["alice"]) == 1


def test_auth_without_token_is_usage_error(fake_orchestrator, monkeypatch):
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    monkeypatch.setattr(cli.getpass, "getpass", lambda prompt: "")
    with pytest.raises(SystemExit) as exc:
        cli.main(["-a", "alice"])
    assert exc.value.code == 2
