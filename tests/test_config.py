"""Tests for the configuration management subsystem."""

import logging
from pathlib import Path
from typing import Callable

import pytest

from git_autopull.config import Config, parse_size, parse_time
from git_autopull.constants import APP_NAME, DEFAULT_BRANCH, GITHUB_API_URL
from git_autopull.errors import ConfigError


def test_config_defaults(config_file: Callable[[str], Path], tmp_path: Path) -> None:
    """Verifies that optional settings fall back to sensible defaults."""
    conf = Config.load(config_file())

    assert conf.github.owner == "octocat"
    assert conf.github.repo == "hello-world"
    assert conf.github.target_branch == DEFAULT_BRANCH
    assert conf.github.access_token is None
    assert conf.github.api_url == GITHUB_API_URL
    assert conf.local_repo.path == tmp_path / "clone"
    assert conf.local_repo.check_interval_seconds == 60
    assert conf.logging.level == "INFO"


def test_config_load_all_sections(
    config_file: Callable[[str], Path], tmp_path: Path
) -> None:
    """Verifies that every recognised key is read and normalised."""
    path = config_file(
        """
[github]
owner = "acme"
repo = "widgets"
target_branch = "release"
access_token = "secret-token"
api_url = "https://github.example.com/api/v3/repos/"
request_timeout = "45s"

[local_repo]
path = "{path}"
check_interval_seconds = "5m"

[logging]
file = "{path}/autopull.log"
max_log_size = "1MB"
level = "debug"
"""
    )

    conf = Config.load(path)

    assert conf.github.target_branch == "release"
    assert conf.github.access_token == "secret-token"
    assert conf.github.api_url == "https://github.example.com/api/v3/repos"
    assert conf.github.request_timeout == 45.0
    assert conf.local_repo.check_interval_seconds == 300
    assert conf.logging.file == tmp_path / "clone" / "autopull.log"
    assert conf.logging.max_log_size == 1024**2
    assert conf.logging.level == "DEBUG"


def test_config_missing_file_raises(tmp_path: Path) -> None:
    """Verifies that a missing file is a fatal ConfigError."""
    with pytest.raises(ConfigError, match="not found"):
        Config.load(tmp_path / "nope.toml")


def test_config_syntax_error_raises(config_file: Callable[[str], Path]) -> None:
    """Verifies that invalid TOML surfaces as a ConfigError."""
    path = config_file("[github\nowner = ")

    with pytest.raises(ConfigError, match="syntax error"):
        Config.load(path)


@pytest.mark.parametrize(
    ("toml_text", "message"),
    [
        ('[local_repo]\npath = "x"\ncheck_interval_seconds = 1\n', r"\[github\]"),
        ('[github]\nowner = "a"\nrepo = "b"\n', r"\[local_repo\]"),
        (
            '[github]\nrepo = "b"\n[local_repo]\npath = "x"\ncheck_interval_seconds = 1\n',
            "github.owner",
        ),
        (
            '[github]\nowner = "a"\nrepo = "b"\n[local_repo]\npath = "x"\n',
            "local_repo.check_interval_seconds",
        ),
    ],
)
def test_config_missing_required_settings(
    config_file: Callable[[str], Path], toml_text: str, message: str
) -> None:
    """Verifies that required sections and keys are enforced."""
    with pytest.raises(ConfigError, match=message):
        Config.load(config_file(toml_text))


@pytest.mark.parametrize("interval", ["0", "-5", '"soon"', "true"])
def test_config_rejects_invalid_interval(
    config_file: Callable[[str], Path], interval: str
) -> None:
    """Verifies that the poll interval must be a positive duration."""
    path = config_file(
        '[github]\nowner = "a"\nrepo = "b"\n'
        f'[local_repo]\npath = "x"\ncheck_interval_seconds = {interval}\n'
    )

    with pytest.raises(ConfigError, match="check_interval_seconds"):
        Config.load(path)


def test_config_empty_token_means_no_token() -> None:
    """Verifies that a blank access token is treated as absent."""
    conf = Config.from_dict(
        {
            "github": {"owner": "a", "repo": "b", "access_token": "  "},
            "local_repo": {"path": "x", "check_interval_seconds": 10},
        }
    )

    assert conf.github.access_token is None


def test_config_warns_on_unknown_keys(caplog: pytest.LogCaptureFixture) -> None:
    """Verifies that typos are reported instead of silently ignored."""
    with caplog.at_level(logging.WARNING, logger=APP_NAME):
        Config.from_dict(
            {
                "github": {"owner": "a", "repo": "b", "branch": "dev"},
                "local_repo": {"path": "x", "check_interval_seconds": 10},
            }
        )

    assert "Unknown config keys in [github]: branch" in caplog.text


def test_config_redacted_masks_token() -> None:
    """Verifies that the printable form never contains the token."""
    conf = Config.from_dict(
        {
            "github": {"owner": "a", "repo": "b", "access_token": "ghp_secret"},
            "local_repo": {"path": "x", "check_interval_seconds": 10},
        }
    )

    data = conf.redacted()

    assert data["github"]["access_token"] == "********"
    assert data["local_repo"]["path"] == "x"
    assert "ghp_secret" not in str(data)
    # The original configuration is untouched.
    assert conf.github.access_token == "ghp_secret"


@pytest.mark.parametrize(
    ("value", "expected"),
    [(512, 512), ("10kb", 10 * 1024), ("1.5 MB", int(1.5 * 1024**2)), ("2g", 2 * 1024**3)],
)
def test_parse_size(value: int | str, expected: int) -> None:
    assert parse_size(value) == expected


@pytest.mark.parametrize(
    ("value", "expected"),
    [(30, 30.0), ("45s", 45.0), ("2min", 120.0), ("1hr", 3600.0), ("1.5h", 5400.0)],
)
def test_parse_time(value: int | str, expected: float) -> None:
    assert parse_time(value) == expected


@pytest.mark.parametrize("value", ["fast", "10 parsecs", ""])
def test_parse_time_rejects_garbage(value: str) -> None:
    with pytest.raises(ValueError):
        parse_time(value)
