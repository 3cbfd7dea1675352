"""git-autopull: keep a local clone in step with a GitHub branch.

This package provides the command-line interface, the polling daemon, and
the remote/local reference helpers it reconciles.
"""

from . import (
    cli,
    config,
    constants,
    daemon,
    errors,
    git_wrapper,
    ops,
    remote,
)

__all__ = [
    "cli",
    "config",
    "constants",
    "daemon",
    "errors",
    "git_wrapper",
    "ops",
    "remote",
]
