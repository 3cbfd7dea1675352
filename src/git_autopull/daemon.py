import datetime
import enum
import logging
import signal
import sys
import time
from dataclasses import dataclass
from functools import partial
from logging.handlers import RotatingFileHandler
from pathlib import Path
from types import FrameType
from typing import Callable

import httpx
from rich.console import Console
from rich.control import Control
from rich.segment import ControlType

from . import ops, remote
from .config import Config, LoggingConfig
from .constants import APP_NAME, BACKOFF_CAP, STATUS_TIME_FORMAT
from .errors import LocalRepoUnavailable, RemoteProtocolError, RemoteUnavailable
from .git_wrapper import GitRepo

logger = logging.getLogger(APP_NAME)
logger.setLevel(logging.INFO)


def utc_now() -> datetime.datetime:
    """Returns the current time as an aware UTC datetime."""
    return datetime.datetime.now(datetime.timezone.utc)


def backoff_delay(attempt: int) -> float:
    """Computes the sleep after a failed cycle.

    Args:
        attempt (int): Number of consecutive failures before this one.

    Returns:
        float: `min(2**attempt, 2**BACKOFF_CAP)` seconds.

    Raises:
        ValueError: If `attempt` is negative.
    """
    if attempt < 0:
        raise ValueError(f"Backoff attempt must be non-negative, got {attempt}")
    return float(2 ** min(attempt, BACKOFF_CAP))


def format_status(last_change: datetime.datetime, now: datetime.datetime) -> str:
    """Renders the idle status line.

    Args:
        last_change (datetime.datetime): Time of the last detected divergence.
        now (datetime.datetime): Time of the current cycle.

    Returns:
        str: e.g. 'No new changes since 2024-05-01 09:30:00 UTC. Elapsed time: 42 seconds.'
    """
    stamp = last_change.astimezone(datetime.timezone.utc).strftime(STATUS_TIME_FORMAT)
    elapsed = max(0, int((now - last_change).total_seconds()))
    return f"No new changes since {stamp} UTC. Elapsed time: {elapsed} seconds."


class StatusLine:
    """A single console line that is rewritten in place on every update.

    On a terminal the cursor is returned to column 0 and the line erased
    before each write. When stdout is redirected, each update is printed as
    its own line instead, since a log file has no cursor.
    """

    def __init__(self, console: Console | None = None):
        self.console = console or Console()
        self._open = False

    def update(self, message: str) -> None:
        if not self.console.is_terminal:
            self.console.print(message, markup=False, highlight=False)
            return

        self.console.control(
            Control(ControlType.CARRIAGE_RETURN, (ControlType.ERASE_IN_LINE, 2))
        )
        self.console.print(message, end="", markup=False, highlight=False)
        self._open = True

    def finish(self) -> None:
        """Moves past the status line so later output starts on a fresh line."""
        if self._open:
            self.console.print()
            self._open = False


class CycleOutcome(enum.Enum):
    """How a reconciliation cycle ended."""

    PULLED = "pulled"
    UP_TO_DATE = "up_to_date"
    LOCAL_UNAVAILABLE = "local_unavailable"
    REMOTE_FAILED = "remote_failed"
    LOCAL_READ_FAILED = "local_read_failed"
    ERROR = "error"

    @property
    def failed(self) -> bool:
        return self not in (CycleOutcome.PULLED, CycleOutcome.UP_TO_DATE)


@dataclass
class LoopState:
    """Mutable state carried from one cycle to the next.

    Only the loop that created it may touch it.

    Attributes:
        last_change_time (datetime.datetime): Last time a divergence was acted on
            (process start until the first one).
        backoff_attempt (int): Consecutive failed cycles; reset by any success.
        cycles (int): Cycles run so far, for log context.
    """

    last_change_time: datetime.datetime
    backoff_attempt: int = 0
    cycles: int = 0


@dataclass(frozen=True)
class CycleResult:
    """Outcome of one cycle and how long to sleep before the next.

    Attributes:
        outcome (CycleOutcome): Which branch of the cycle was taken.
        delay (float): Seconds to sleep before the next cycle.
        remote_sha (str | None): Remote head, when it was fetched.
        local_sha (str | None): Local head, when it was read.
        pull_succeeded (bool | None): Result of the sync action, if one ran.
    """

    outcome: CycleOutcome
    delay: float
    remote_sha: str | None = None
    local_sha: str | None = None
    pull_succeeded: bool | None = None


class Reconciler:
    """Polls the remote branch and pulls the local clone when they diverge.

    Every collaborator is injected, so the loop can be driven in tests
    without network, git, or real sleeping.

    Attributes:
        interval (float): Seconds to sleep after a successful cycle.
        repo_path (Path): The local checkout.
    """

    def __init__(
        self,
        interval: float,
        repo_path: Path,
        fetch_remote: Callable[[], str],
        open_repo: Callable[[Path], GitRepo] = ops.open_local_repo,
        read_local: Callable[[GitRepo], str] = ops.read_local_head,
        sync: Callable[[Path], bool] = ops.pull_latest_changes,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime.datetime] = utc_now,
        status: StatusLine | None = None,
    ):
        if interval <= 0:
            raise ValueError("Poll interval must be greater than zero")
        self.interval = interval
        self.repo_path = repo_path
        self.fetch_remote = fetch_remote
        self.open_repo = open_repo
        self.read_local = read_local
        self.sync = sync
        self.sleep = sleep
        self.clock = clock
        self.status = status or StatusLine()

    @classmethod
    def from_config(cls, config: Config, client: httpx.Client) -> "Reconciler":
        """Wires the production collaborators for `config`."""
        return cls(
            interval=config.local_repo.check_interval_seconds,
            repo_path=config.local_repo.path,
            fetch_remote=partial(remote.fetch_remote_head, config.github, client),
        )

    def new_state(self) -> LoopState:
        return LoopState(last_change_time=self.clock())

    def _fail(
        self, state: LoopState, outcome: CycleOutcome, message: str | None = None
    ) -> CycleResult:
        self.status.finish()
        if message:
            logger.error(message)
        delay = backoff_delay(state.backoff_attempt)
        state.backoff_attempt += 1
        logger.info(
            f"Retrying in {delay:.0f}s (consecutive failures: {state.backoff_attempt})."
        )
        return CycleResult(outcome, delay)

    def run_cycle(self, state: LoopState) -> CycleResult:
        """Runs one fetch-compare-act cycle.

        Collaborator errors are logged and turned into a backoff delay; they
        never propagate.

        Args:
            state (LoopState): The loop state, updated in place.

        Returns:
            CycleResult: The branch taken and the delay before the next cycle.
        """
        state.cycles += 1

        # 1. Local checkout.
        try:
            repo = self.open_repo(self.repo_path)
        except LocalRepoUnavailable as e:
            return self._fail(
                state,
                CycleOutcome.LOCAL_UNAVAILABLE,
                f"Failed to open local repository: {e}",
            )

        # 2. Remote head.
        try:
            remote_sha = self.fetch_remote()
        except (RemoteUnavailable, RemoteProtocolError) as e:
            return self._fail(
                state,
                CycleOutcome.REMOTE_FAILED,
                f"Failed to get latest remote commit: {e}",
            )

        # 3. Local head.
        try:
            local_sha = self.read_local(repo)
        except LocalRepoUnavailable as e:
            return self._fail(
                state, CycleOutcome.LOCAL_READ_FAILED, f"Failed to get local commit: {e}"
            )

        # 4. Compare.
        if remote_sha != local_sha:
            logger.info(
                f"New changes detected ({local_sha[:7]} -> {remote_sha[:7]}). "
                "Pulling updates..."
            )
            self.status.finish()
            pulled = self.sync(self.repo_path)
            state.last_change_time = self.clock()
            state.backoff_attempt = 0
            return CycleResult(
                CycleOutcome.PULLED,
                self.interval,
                remote_sha=remote_sha,
                local_sha=local_sha,
                pull_succeeded=pulled,
            )

        state.backoff_attempt = 0
        self.status.update(format_status(state.last_change_time, self.clock()))
        return CycleResult(
            CycleOutcome.UP_TO_DATE,
            self.interval,
            remote_sha=remote_sha,
            local_sha=local_sha,
        )

    def run(
        self, state: LoopState | None = None, max_cycles: int | None = None
    ) -> LoopState:
        """Runs cycles until interrupted, sleeping between them.

        Args:
            state (LoopState | None, optional): State to resume from. A fresh
                state (attempt 0, last change = now) is created when None.
            max_cycles (int | None, optional): Stop after this many cycles.
                No sleep follows the final cycle. Runs forever when None.

        Returns:
            LoopState: The state after the last cycle.
        """
        if state is None:
            state = self.new_state()

        completed = 0
        try:
            while max_cycles is None or completed < max_cycles:
                try:
                    result = self.run_cycle(state)
                except Exception:
                    self.status.finish()
                    logger.exception(f"LOOP ERROR in cycle {state.cycles}")
                    result = self._fail(state, CycleOutcome.ERROR)

                completed += 1
                if max_cycles is not None and completed >= max_cycles:
                    break
                self.sleep(result.delay)
        finally:
            self.status.finish()

        return state


def setup_logging(settings: LoggingConfig, verbose: bool = False) -> None:
    """Configures the logging subsystem.

    Calling it again replaces the previous handlers, so the CLI can log to
    the default file before the configuration is read and switch afterwards.

    Args:
        settings (LoggingConfig): Log file, rotation size and level.
        verbose (bool): If True, also log to stderr.
    """
    formatter = logging.Formatter(
        "[%(asctime)s] %(levelname)s: %(message)s", "%Y-%m-%d %H:%M:%S"
    )

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    logger.setLevel(settings.level)

    if verbose:
        stream_handler = logging.StreamHandler(sys.stderr)
        stream_handler.setFormatter(formatter)
        logger.addHandler(stream_handler)

    try:
        settings.file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            settings.file,
            maxBytes=settings.max_log_size,
            backupCount=5,
        )
    except OSError as e:
        # Log file not writable: stderr only.
        if not verbose:
            stream_handler = logging.StreamHandler(sys.stderr)
            stream_handler.setFormatter(formatter)
            logger.addHandler(stream_handler)
        logger.warning(f"Could not open log file {settings.file}: {e}")
        return

    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)


def _terminate(_signum: int, _frame: FrameType | None) -> None:
    raise KeyboardInterrupt


def main(config: Config, once: bool = False) -> int:
    """The daemon entry point.

    Args:
        config (Config): The validated configuration.
        once (bool, optional): Run a single cycle and exit. Defaults to False.

    Returns:
        int: The process exit code.
    """
    logger.info(
        f"Starting application: following {config.github.owner}/"
        f"{config.github.repo}@{config.github.target_branch} into "
        f"{config.local_repo.path} every {config.local_repo.check_interval_seconds}s"
    )

    # SIGTERM from systemd/launchd takes the same graceful path as Ctrl-C.
    signal.signal(signal.SIGTERM, _terminate)

    with remote.make_client(config.github) as client:
        reconciler = Reconciler.from_config(config, client)
        try:
            reconciler.run(max_cycles=1 if once else None)
        except KeyboardInterrupt:
            logger.info("Shutdown requested.")

    logger.info("Daemon stopped.")
    return 0
