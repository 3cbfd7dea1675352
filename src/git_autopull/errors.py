"""Exception hierarchy for git-autopull.

`ConfigError` is the only fatal kind and is raised before the loop starts.
Every other error is raised by one collaborator of a single reconciliation
cycle and is caught, logged and turned into a backoff by the loop.
"""


class AutopullError(Exception):
    """Base class for all git-autopull errors."""


class ConfigError(AutopullError):
    """The configuration file is missing, unparsable or invalid."""


class RemoteUnavailable(AutopullError):
    """The hosting API could not be reached (network error or timeout)."""


class RemoteProtocolError(AutopullError):
    """The hosting API answered, but not with a usable commit identifier.

    Attributes:
        status_code (int | None): The HTTP status, when one was received.
    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class LocalRepoUnavailable(AutopullError):
    """The local checkout cannot be opened or has no resolvable HEAD commit."""


class SyncActionFailed(AutopullError):
    """`git pull` could not be launched or exited with a non-zero status.

    Attributes:
        returncode (int | None): The exit status, or None if git never ran.
    """

    def __init__(self, message: str, returncode: int | None = None):
        super().__init__(message)
        self.returncode = returncode
