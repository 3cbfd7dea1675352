import logging
import os
import subprocess
from pathlib import Path

from .constants import APP_NAME
from .errors import LocalRepoUnavailable, SyncActionFailed

logger = logging.getLogger(APP_NAME)


class GitRepo:
    """A wrapper around the Git command-line interface for a local checkout.

    Every command is executed as `git -C <path> ...`, so the daemon never
    changes its own working directory.

    Attributes:
        path (Path): The file system path to the repository root.
    """

    def __init__(self, path: Path):
        """Opens the repository at `path`.

        Args:
            path (Path): The path to the repository root directory.

        Raises:
            LocalRepoUnavailable: If the path does not exist or does not
                                  contain a .git entry.
        """
        self.path = Path(path)
        if not self.path.is_dir():
            raise LocalRepoUnavailable(f"Path does not exist: {self.path}")
        # .git is a file for worktrees and submodules.
        if not (self.path / ".git").exists():
            raise LocalRepoUnavailable(f"Not a git repository: {self.path}")

    def _run(
        self, args: list[str], capture: bool = True, env: dict | None = None
    ) -> str:
        """Executes a Git command against the repository.

        Args:
            args (list[str]): A list of arguments to pass to the git command.
            capture (bool, optional):   Whether to capture and return stdout.
                                        Defaults to True.
            env (Optional[dict], optional): Environment variables to pass to the
                                            subprocess. Defaults to None.

        Returns:
            str:    The stripped stdout of the command if capture is True,
                    otherwise an empty string.

        Raises:
            RuntimeError: If git cannot be launched or returns a non-zero
                          exit code.
        """
        try:
            res = subprocess.run(
                ["git", "-C", str(self.path), *args],
                capture_output=capture,
                text=True,
                check=True,
                env=env,
            )
            return res.stdout.strip() if capture else ""
        except subprocess.CalledProcessError as e:
            raise RuntimeError(f"Git error: {e.stderr or e}") from e
        except OSError as e:
            raise RuntimeError(f"Could not execute git: {e}") from e

    def rev_parse(self, rev: str) -> str | None:
        """Resolves a revision to a full commit SHA-1 hash.

        Args:
            rev (str): The revision to parse (e.g., 'HEAD', 'main').

        Returns:
            Optional[str]:  The full SHA-1 hash,
                            or None if the revision could not be resolved.
        """
        try:
            return self._run(["rev-parse", "--verify", "--quiet", f"{rev}^{{commit}}"])
        except RuntimeError as e:
            logger.debug(f"rev-parse failed for '{rev}': {e}")
            return None

    def head_sha(self) -> str:
        """Returns the commit currently checked out.

        Raises:
            LocalRepoUnavailable: If HEAD is unborn or cannot be resolved.
        """
        sha = self.rev_parse("HEAD")
        if not sha:
            raise LocalRepoUnavailable(f"HEAD has no resolvable commit in {self.path}")
        return sha

    def pull(self) -> None:
        """Runs `git pull` for the current branch.

        Output is captured so git progress does not break the status line;
        stderr ends up in the error message on failure. Credential prompts
        are disabled: a pull that needs a password fails instead of waiting.

        Raises:
            SyncActionFailed: If git cannot be launched or exits non-zero.
        """
        try:
            self._run(["pull"], env={**os.environ, "GIT_TERMINAL_PROMPT": "0"})
        except RuntimeError as e:
            cause = e.__cause__
            returncode = (
                cause.returncode
                if isinstance(cause, subprocess.CalledProcessError)
                else None
            )
            raise SyncActionFailed(str(e), returncode=returncode) from e
