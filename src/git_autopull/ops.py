import logging
from pathlib import Path

from .constants import APP_NAME
from .errors import LocalRepoUnavailable, SyncActionFailed
from .git_wrapper import GitRepo

logger = logging.getLogger(APP_NAME)


def open_local_repo(path: Path) -> GitRepo:
    """Opens the local checkout.

    Args:
        path (Path): The configured working tree.

    Returns:
        GitRepo: A wrapper bound to the checkout.

    Raises:
        LocalRepoUnavailable: If the path is missing or not a repository.
    """
    return GitRepo(Path(path).expanduser())


def read_local_head(repo: GitRepo | Path) -> str:
    """Reads the commit currently checked out in the local clone.

    Args:
        repo (GitRepo | Path): An opened repository, or a path to open.

    Returns:
        str: The full SHA of HEAD.

    Raises:
        LocalRepoUnavailable: If the repository cannot be opened or HEAD does
                              not resolve to a commit.
    """
    if not isinstance(repo, GitRepo):
        repo = open_local_repo(repo)

    sha = repo.head_sha()
    logger.info(f"Fetched local commit: {sha}")
    return sha


def pull_latest_changes(path: Path) -> bool:
    """Runs `git pull` in the local clone.

    A failed pull is logged and reported, never raised: the next cycle's
    comparison retries it if the checkout is still behind.

    Args:
        path (Path): The configured working tree.

    Returns:
        bool: True if git exited successfully, False otherwise.
    """
    logger.info("Pulling latest changes...")
    try:
        open_local_repo(path).pull()
    except SyncActionFailed as e:
        if e.returncode is None:
            logger.error(f"Failed to execute git pull: {e}")
        else:
            logger.error(
                f"Failed to pull latest changes (exit status {e.returncode}): {e}"
            )
        return False
    except LocalRepoUnavailable as e:
        logger.error(f"Failed to pull latest changes: {e}")
        return False

    logger.info("Successfully pulled latest changes.")
    return True
