import logging
import threading
import subprocess
from typing import Any, List, Mapping, Optional

from itest_runner.errors import InterruptedExternally, TestProcessFailure, TestRunnerSpawnError
from itest_runner.supervisor import process_utils
from itest_runner.supervisor.cancellation import CancellationToken
from itest_runner.supervisor.outcome import RunOutcome

log = logging.getLogger(__name__)


class TestRunner:
    """
    Runs the test process in the foreground with inherited stdio.

    The exit code is the only signal consumed. There are no retries.
    """

    __test__ = False

    def __init__(self, grace_period: float = 5.0, env: Optional[Mapping[str, Any]] = None, cwd: Optional[str] = None) -> None:
        self.grace_period = grace_period
        self.env = env
        self.cwd = cwd

    def _stop_on_cancel(self, process: subprocess.Popen) -> threading.Timer:
        """Terminates the test process, arming a SIGKILL for after the grace window."""
        log.warning("Stopping test process...")
        killer = threading.Timer(self.grace_period, self._kill, args=(process,))
        killer.daemon = True
        killer.start()
        try:
            process.terminate()
        except ProcessLookupError:
            pass
        return killer

    @staticmethod
    def _kill(process: subprocess.Popen) -> None:
        if process.poll() is None:
            log.warning(f"Test process (PID {process.pid}) ignored SIGTERM. Killing it.")
            try:
                process.kill()
            except ProcessLookupError:
                pass

    def run_checked(self, command: str, args: List[str], cancel: Optional[CancellationToken] = None) -> None:
        """
        Runs the test process and raises unless it exits with code 0.

        :raises TestRunnerSpawnError: If the test process could not be launched.
        :raises TestProcessFailure: If it exited with a nonzero code.
        :raises InterruptedExternally: If `cancel` fired while the tests were running.
        """
        argv = [command, *args]
        log.info(f"Running integration tests: {' '.join(argv)}")
        try:
            process = process_utils.spawn_inherited(argv, env=self.env, cwd=self.cwd)
        except OSError as e:
            log.error(f"Failed to run tests: {e}")
            raise TestRunnerSpawnError(f"Failed to run tests: {e}") from e

        killers: List[threading.Timer] = []

        def on_cancel() -> None:
            killers.append(self._stop_on_cancel(process))

        if cancel is not None:
            cancel.add_callback(on_cancel)
        try:
            code = process.wait()
        finally:
            if cancel is not None:
                cancel.remove_callback(on_cancel)
            for killer in killers:
                killer.cancel()

        if cancel is not None and cancel.is_cancelled:
            raise InterruptedExternally(f"Test process interrupted (exit code {code})")
        if code != 0:
            log.error("Integration tests failed")
            raise TestProcessFailure(code)
        log.info("Integration tests passed")

    def run(self, command: str, args: List[str], cancel: Optional[CancellationToken] = None) -> RunOutcome:
        """
        Runs the test process and maps its exit code to a RunOutcome.

        :return: tests-passed for exit code 0, tests-failed(code) otherwise.
        :raises TestRunnerSpawnError: If the test process could not be launched.
        :raises InterruptedExternally: If `cancel` fired while the tests were running.
        """
        try:
            self.run_checked(command, args, cancel)
        except TestProcessFailure as e:
            return RunOutcome.tests_failed(e.exit_code)
        return RunOutcome.tests_passed()
