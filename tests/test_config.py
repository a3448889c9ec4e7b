"""Tests for configuration module."""

from pathlib import Path

import pytest

from ghdl.config import ArchiverConfig, normalize_names, parse_duration, parse_exclusions


def test_config_creation():
    """Test that ArchiverConfig can be created with defaults."""
    config = ArchiverConfig()
    assert config.compression_level == -1
    assert config.clone_timeout_seconds == 600
    assert config.output_path.name.startswith("gh-dl-")
    assert config.output_path.name.endswith(".tar.gz")
    assert config.working_root is None


def test_paths_are_coerced():
    config = ArchiverConfig(output_path="a.tar.gz", working_root="work")
    assert config.output_path == Path("a.tar.gz")
    assert config.working_root == Path("work")


def test_zero_timeout_disables_deadline():
    assert ArchiverConfig(clone_timeout_seconds=0).clone_timeout_seconds is None


def test_exclusions_are_case_insensitive():
    config = ArchiverConfig(excluded=frozenset({" Alice/Repo ", ""}))
    assert config.is_excluded("alice/repo")
    assert config.is_excluded("ALICE/REPO")
    assert not config.is_excluded("alice/other")


def test_authenticated_needs_token():
    with pytest.raises(ValueError, match="token"):
        ArchiverConfig(authenticated=True)


def test_token_hidden_from_repr():
    config = ArchiverConfig(authenticated=True, github_token="s3cret")
    assert "s3cret" not in repr(config)


@pytest.mark.parametrize(
    "text,seconds",
    [
        ("10m", 600),
        ("1h30m", 5400),
        ("90s", 90),
        ("10m0s", 600),
        ("500ms", 0.5),
        ("45", 45),
        ("2.5", 2.5),
    ],
)
def test_parse_duration(text, seconds):
    assert parse_duration(text) == pytest.approx(seconds)


@pytest.mark.parametrize("text", ["0", "0s", "0m0s"])
def test_zero_duration_means_no_timeout(text):
    assert parse_duration(text) is None


@pytest.mark.parametrize("text", ["", "ten minutes", "10x", "-5", "5m-3s"])
def test_bad_durations(text):
    with pytest.raises(ValueError):
        parse_duration(text)


def test_parse_exclusions():
    assert parse_exclusions("a/b, c/d,,") == frozenset({"a/b", "c/d"})
    assert parse_exclusions("") == frozenset()
    assert parse_exclusions(None) == frozenset()


def test_normalize_names_keeps_order():
    names = normalize_names([" bob ", "", "alice/repo", "   "])
    assert names == ["bob", "alice/repo"]
    assert isinstance(names, list)
