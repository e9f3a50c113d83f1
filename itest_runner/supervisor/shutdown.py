import time
import psutil
import logging
from typing import List, Optional

from itest_runner.supervisor.supervised import SupervisedProcess

log = logging.getLogger(__name__)


def _terminate_descendants(processes: List[psutil.Process]) -> None:
    """Sends SIGTERM to the server's descendants."""
    for proc in processes:
        try:
            log.debug(f"Sending SIGTERM to {proc.name()} (PID {proc.pid})")
            proc.terminate()
        except psutil.NoSuchProcess:
            log.debug(f"Process {proc.pid} no longer exists, skipping termination.")


def _forceful_kill(processes: List[psutil.Process]) -> None:
    """Forcefully kills descendants that outlived the grace window."""
    if not processes:
        return

    log.warning(f"{len(processes)} descendant processes did not terminate gracefully. Forcing shutdown...")
    for proc in processes:
        try:
            log.warning(f"Killing stubborn process {proc.name()} (PID {proc.pid}).")
            proc.kill()
        except psutil.NoSuchProcess:
            log.debug(f"Process {proc.pid} no longer exists, skipping forceful kill.")


class ShutdownCoordinator:
    """
    Stops a SupervisedProcess: SIGTERM first, SIGKILL if it outlives the grace window.

    The grace timer races the child's exit notification. Whichever completes
    first decides whether the forceful signal is sent. `shutdown()` is
    idempotent and a no-op for a process that already exited.
    """

    def __init__(self, grace_period: float = 5.0, kill_wait: Optional[float] = None) -> None:
        self.grace_period = grace_period
        # How long to wait for the exit notification after SIGKILL.
        self.kill_wait = grace_period if kill_wait is None else kill_wait

    def shutdown(self, process: SupervisedProcess) -> None:
        """
        Runs the graceful shutdown sequence for `process`.

        :param process: The process to stop.
        """
        if not process.begin_stop():
            log.debug(f"Shutdown of {process.name} already in progress or done.")
            return
        if not process.is_alive:
            log.info(f"{process.name} already exited with code {process.exit_code}.")
            return

        log.info(f"Stopping {process.name} (PID {process.pid})...")
        started = time.monotonic()
        descendants = process.children()
        process.terminate()
        _terminate_descendants(descendants)

        if process.wait_for_exit(self.grace_period):
            log.info(f"{process.name} stopped gracefully.")
        else:
            log.warning(f"{process.name} did not terminate within {self.grace_period:g}s. Forcing shutdown...")
            process.kill()
            if not process.wait_for_exit(self.kill_wait):
                log.error(f"{process.name} (PID {process.pid}) is still alive after SIGKILL.")

        if descendants:
            try:
                remaining = max(0.0, self.grace_period - (time.monotonic() - started))
                _, alive = psutil.wait_procs(descendants, timeout=remaining)
            except psutil.Error:
                alive = []
            _forceful_kill(alive)
