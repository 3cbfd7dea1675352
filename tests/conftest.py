"""Shared fixtures for the git-autopull test suite."""

import logging
from pathlib import Path
from typing import Any, Callable, Iterator

import pytest

from git_autopull.config import Config
from git_autopull.constants import APP_NAME

MINIMAL_TOML = """
[github]
owner = "octocat"
repo = "hello-world"

[local_repo]
path = "{path}"
check_interval_seconds = 60
"""


@pytest.fixture
def config_file(tmp_path: Path) -> Callable[[str], Path]:
    """Returns a factory writing TOML text to a config file in tmp_path."""

    def _write(text: str = MINIMAL_TOML) -> Path:
        path = tmp_path / "config.toml"
        path.write_text(text.format(path=(tmp_path / "clone").as_posix()))
        return path

    return _write


@pytest.fixture
def config(tmp_path: Path) -> Config:
    """A valid in-memory configuration pointing at tmp_path/clone."""
    return Config.from_dict(
        {
            "github": {"owner": "octocat", "repo": "hello-world"},
            "local_repo": {
                "path": str(tmp_path / "clone"),
                "check_interval_seconds": 60,
            },
            "logging": {"file": str(tmp_path / "logs" / "daemon.log")},
        }
    )


@pytest.fixture(autouse=True)
def reset_app_logger() -> Iterator[Any]:
    """Detaches any handlers a test installed on the application logger."""
    logger = logging.getLogger(APP_NAME)
    yield
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.INFO)
