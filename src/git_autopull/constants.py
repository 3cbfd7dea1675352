import os
from pathlib import Path

"""Global constants and default paths for git-autopull.

This module defines the application identity, the filesystem layout for
runtime state (adhering to XDG standards where applicable), and the defaults
used when talking to the hosting API.
"""

# --- Identity ---
APP_NAME = "git-autopull"
"""str: The human-readable application name (also the logger name)."""

VERSION = "0.3.0"
"""str: The application version, sent as part of the User-Agent."""

USER_AGENT = f"{APP_NAME}/{VERSION}"
"""str: The client-identifying header value sent to the hosting API."""

# --- Paths ---
_XDG_STATE = os.environ.get("XDG_STATE_HOME")
_BASE_STATE = Path(_XDG_STATE) if _XDG_STATE else Path.home() / ".local/state"

STATE_DIR = _BASE_STATE / "git-autopull"
"""Path: The directory for runtime state data (logs)."""

LOG_FILE = STATE_DIR / "daemon.log"
"""Path: The default file path for the daemon logs."""

CONFIG_FILE = Path("config.toml")
"""Path: The configuration file read when no --config is given."""

# --- Hosting API ---
GITHUB_API_URL = "https://api.github.com/repos"
"""str: Base URL for repository endpoints of the GitHub REST API."""

DEFAULT_BRANCH = "main"
"""str: The branch tracked when `github.target_branch` is not configured."""

REQUEST_TIMEOUT = 30.0
"""float: Seconds before a hung API request is abandoned."""

# --- Loop ---
BACKOFF_CAP = 6
"""int: Largest backoff exponent; delays never exceed 2**BACKOFF_CAP seconds."""

STATUS_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"
"""str: strftime format for the last-change timestamp on the status line."""
