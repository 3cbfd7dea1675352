import logging
import re
import tomllib
from dataclasses import MISSING, asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Callable

from .constants import (
    APP_NAME,
    CONFIG_FILE,
    DEFAULT_BRANCH,
    GITHUB_API_URL,
    LOG_FILE,
    REQUEST_TIMEOUT,
)
from .errors import ConfigError

logger = logging.getLogger(APP_NAME)


def parse_size(value: int | str) -> int:
    """Converts human-readable size strings (e.g., '5MB') to bytes."""
    if isinstance(value, bool):
        raise ValueError(f"Invalid size format '{value}'")
    if isinstance(value, int):
        return value
    match = re.match(r"^(\d+(?:\.\d+)?)\s*([kmg]b?)$", str(value).strip().lower())
    if not match:
        raise ValueError(f"Invalid size format '{value}'")
    num, unit = float(match.group(1)), match.group(2)
    multiplier = {
        "k": 1024,
        "kb": 1024,
        "m": 1024**2,
        "mb": 1024**2,
        "g": 1024**3,
        "gb": 1024**3,
    }
    return int(num * multiplier[unit])


def parse_time(value: int | float | str) -> float:
    """Converts human-readable time strings (e.g., '1hr', '30s') to seconds."""
    if isinstance(value, bool):
        raise ValueError(f"Invalid time format '{value}'")
    if isinstance(value, (int, float)):
        return float(value)
    match = re.match(
        r"^(\d+(?:\.\d+)?)\s*(s|sec|m|min|h|hr)s?$", str(value).strip().lower()
    )
    if not match:
        raise ValueError(f"Invalid time format '{value}'")
    num, unit = float(match.group(1)), match.group(2)
    multiplier = {"s": 1, "sec": 1, "m": 60, "min": 60, "h": 3600, "hr": 3600}
    return num * multiplier[unit]


def _non_empty_str(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError("expected a non-empty string")
    return value.strip()


def _optional_token(value: Any) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError("expected a string")
    return value.strip() or None


def _positive_seconds(value: Any) -> float:
    seconds = parse_time(value)
    if seconds <= 0:
        raise ValueError("must be greater than zero")
    return seconds


def _positive_interval(value: Any) -> int:
    seconds = int(_positive_seconds(value))
    if seconds <= 0:
        raise ValueError("must be at least one second")
    return seconds


def _path(value: Any) -> Path:
    return Path(_non_empty_str(value)).expanduser()


def _log_level(value: Any) -> str:
    level = _non_empty_str(value).upper()
    if level not in logging.getLevelNamesMapping():
        raise ValueError(f"unknown log level '{value}'")
    return level


@dataclass(frozen=True)
class GitHubConfig:
    """Identity of the remote branch being followed.

    Attributes:
        owner (str): The account or organisation owning the repository.
        repo (str): The repository name.
        target_branch (str): The branch whose head is compared with the checkout.
        access_token (str | None): Optional token sent as `Authorization: token ...`.
        api_url (str): Base URL of the repository endpoints.
        request_timeout (float): Seconds before an API request is abandoned.
    """

    owner: str
    repo: str
    target_branch: str = DEFAULT_BRANCH
    access_token: str | None = None
    api_url: str = GITHUB_API_URL
    request_timeout: float = REQUEST_TIMEOUT


@dataclass(frozen=True)
class LocalRepoConfig:
    """The local clone kept in sync.

    Attributes:
        path (Path): Filesystem path of the working tree.
        check_interval_seconds (int): Seconds between two reconciliation cycles.
    """

    path: Path
    check_interval_seconds: int


@dataclass(frozen=True)
class LoggingConfig:
    """Log sink settings.

    Attributes:
        file (Path): The rotating log file.
        max_log_size (int): Max bytes for the log file before rotation.
        level (str): Minimum level name written to the log.
    """

    file: Path = LOG_FILE
    max_log_size: int = 5 * 1024 * 1024
    level: str = "INFO"


_PARSERS: dict[str, dict[str, Callable[[Any], Any]]] = {
    "github": {
        "owner": _non_empty_str,
        "repo": _non_empty_str,
        "target_branch": _non_empty_str,
        "access_token": _optional_token,
        "api_url": lambda v: _non_empty_str(v).rstrip("/"),
        "request_timeout": _positive_seconds,
    },
    "local_repo": {
        "path": _path,
        "check_interval_seconds": _positive_interval,
    },
    "logging": {
        "file": _path,
        "max_log_size": parse_size,
        "level": _log_level,
    },
}


@dataclass(frozen=True)
class Config:
    """Complete, immutable configuration for one daemon run.

    Attributes:
        github (GitHubConfig): Remote branch settings.
        local_repo (LocalRepoConfig): Local checkout settings.
        logging (LoggingConfig): Log sink settings.
    """

    github: GitHubConfig
    local_repo: LocalRepoConfig
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def load(cls, path: Path = CONFIG_FILE) -> "Config":
        """Reads and validates a TOML configuration file.

        Args:
            path (Path): The configuration file to read.

        Returns:
            Config: The validated configuration.

        Raises:
            ConfigError: If the file cannot be read, is not valid TOML, or
                         lacks required settings.
        """
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except FileNotFoundError as e:
            raise ConfigError(f"Config file not found: {path}") from e
        except OSError as e:
            raise ConfigError(f"Failed to read {path}: {e}") from e
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Config syntax error in {path}: {e}") from e

        logger.info(f"Config file read successfully: {path}")
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Config":
        """Builds a Config from already-parsed TOML data.

        Raises:
            ConfigError: If a required section or key is missing or invalid.
        """
        for required in ("github", "local_repo"):
            if not isinstance(data.get(required), dict):
                raise ConfigError(f"Missing [{required}] section")

        logging_section = data.get("logging", {})
        if not isinstance(logging_section, dict):
            raise ConfigError("[logging] must be a table")

        return cls(
            github=cls._build_section("github", GitHubConfig, data["github"]),
            local_repo=cls._build_section(
                "local_repo", LocalRepoConfig, data["local_repo"]
            ),
            logging=cls._build_section("logging", LoggingConfig, logging_section),
        )

    @staticmethod
    def _build_section(section_name: str, target: type, values: dict) -> Any:
        """Validates one TOML table and instantiates its dataclass.

        Unknown keys are logged and ignored. Missing required keys and
        unparsable values raise.
        """
        valid_keys = {f.name for f in fields(target)}
        invalid_keys = set(values) - valid_keys
        if invalid_keys:
            logger.warning(
                f"Unknown config keys in [{section_name}]: "
                f"{', '.join(sorted(invalid_keys))}. Ignoring."
            )

        parsers = _PARSERS[section_name]
        kwargs: dict[str, Any] = {}
        for f in fields(target):
            raw = values.get(f.name, MISSING)
            if raw is MISSING:
                if f.default is MISSING and f.default_factory is MISSING:
                    raise ConfigError(f"Missing required key {section_name}.{f.name}")
                continue
            try:
                kwargs[f.name] = parsers[f.name](raw)
            except ValueError as e:
                raise ConfigError(
                    f"Invalid value for {section_name}.{f.name}: {e}"
                ) from e

        return target(**kwargs)

    def redacted(self) -> dict[str, Any]:
        """Returns the configuration as plain data with the access token masked."""
        data = asdict(self)
        if data["github"]["access_token"]:
            data["github"]["access_token"] = "********"
        for section in data.values():
            for key, value in section.items():
                if isinstance(value, Path):
                    section[key] = str(value)
        return data
