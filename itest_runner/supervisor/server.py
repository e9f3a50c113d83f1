import time
import logging
import threading
from typing import Any, Callable, List, Mapping, Optional

from itest_runner.errors import InterruptedExternally, ServerExitedEarly, ServerStartFailed, ServerStartTimeout
from itest_runner.supervisor import health, process_utils
from itest_runner.supervisor.cancellation import CancellationToken
from itest_runner.supervisor.health import ReadinessCheck
from itest_runner.supervisor.readiness import MARKER, POLICY_FIRST, PROBE, ReadinessLatch
from itest_runner.supervisor.supervised import SupervisedProcess

log = logging.getLogger(__name__)

# Receives (stream, line) where stream is 'stdout' or 'stderr'.
LineSink = Callable[[str, str], None]


class ServerSupervisor:
    """
    Spawns the dependent server and tracks it until it is ready.

    One supervisor manages exactly one SupervisedProcess. Readiness is
    decided by a ReadinessLatch fed by the output reader (marker) and, when a
    ReadinessCheck is configured, by a background health poller (probe).
    """

    def __init__(
        self,
        name: str = "test-server",
        ready_marker: str = "running on",
        readiness_check: Optional[ReadinessCheck] = None,
        start_timeout: float = 10.0,
        readiness_policy: str = POLICY_FIRST,
        line_sink: Optional[LineSink] = None,
        cwd: Optional[str] = None,
    ) -> None:
        self.name = name
        self.ready_marker = ready_marker
        self.readiness_check = readiness_check
        self.start_timeout = start_timeout
        self.cwd = cwd
        self.line_sink = line_sink or self._log_line

        expected = {MARKER, PROBE} if readiness_check is not None else {MARKER}
        self.latch = ReadinessLatch(readiness_policy, frozenset(expected))
        self.process: Optional[SupervisedProcess] = None
        self._probe_token = CancellationToken()
        self._proc_logger = logging.getLogger(f"proc.{name}")

    def _log_line(self, stream: str, line: str) -> None:
        self._proc_logger.log(logging.INFO if stream == "stdout" else logging.ERROR, line)

    #* --- Output and lifecycle callbacks ---
    def _on_stdout(self, line: str) -> None:
        self.line_sink("stdout", line)
        if self.ready_marker and self.ready_marker in line and self.latch.signal(MARKER):
            log.info(f"Readiness marker '{self.ready_marker}' observed in {self.name} output.")

    def _on_stderr(self, line: str) -> None:
        self.line_sink("stderr", line)

    def _on_exit(self, code: Optional[int]) -> None:
        self._probe_token.cancel("server exited")
        if self.latch.fail(ServerExitedEarly(code)):
            log.error(f"Test server exited with code {code} before becoming ready")
        elif self.process is not None and self.process.stopping:
            log.info(f"Test server stopped with exit code {code}.")
        else:
            log.warning(f"Test server exited unexpectedly with code {code}")

    def _poll_health(self) -> None:
        try:
            health.wait_until_ready(self.readiness_check, self._probe_token)
        except InterruptedExternally:
            log.debug("Health polling stopped.")
            return
        except Exception as e:
            self.latch.fail(e)
            return
        self.latch.signal(PROBE)

    #* --- Public API ---
    def start(self, command: str, args: List[str], env: Optional[Mapping[str, Any]] = None) -> SupervisedProcess:
        """
        Spawns the server with its output captured.

        :param command: The executable to run.
        :param args: The arguments for the executable.
        :param env: Environment overrides merged over the current environment.
        :return: The SupervisedProcess handle, in the 'starting' state.
        :raises ServerStartFailed: If the process could not be spawned.
        """
        if self.process is not None:
            raise RuntimeError(f"{self.name} has already been started; a supervisor runs a single process.")

        argv = [command, *args]
        log.info(f"Starting {self.name}: {' '.join(argv)}")
        try:
            popen = process_utils.spawn_captured(argv, env=env, cwd=self.cwd)
        except OSError as e:
            log.critical(f"Failed to start {self.name}: {e}")
            raise ServerStartFailed(f"Failed to start {self.name}: {e}") from e

        self.process = SupervisedProcess(self.name, popen)
        process_utils.log_process_output(popen, self.name, self._on_stdout, self._on_stderr)
        self.process.add_exit_callback(self._on_exit)
        self.process.start_watching()

        if self.readiness_check is not None:
            threading.Thread(target=self._poll_health, daemon=True, name=f"{self.name}-health-poller").start()

        log.info(f"{self.name} started with PID: {popen.pid}")
        return self.process

    def wait_until_ready(self, cancel: Optional[CancellationToken] = None) -> SupervisedProcess:
        """
        Blocks until the server is ready, bounded by `start_timeout`.

        :raises ServerStartTimeout: If the bound elapsed first.
        :raises ServerExitedEarly: If the server exited before readiness.
        :raises ReadinessTimeout: If the health poller gave up first.
        :raises InterruptedExternally: If `cancel` fired first.
        """
        if self.process is None:
            raise RuntimeError(f"{self.name} has not been started.")

        def _abandon() -> None:
            self.latch.fail(InterruptedExternally(f"Interrupted while waiting for {self.name}"))

        if cancel is not None:
            cancel.add_callback(_abandon)
        started = time.monotonic()
        try:
            if not self.latch.wait(self.start_timeout):
                self.latch.fail(ServerStartTimeout(self.start_timeout))
                # A signal may have won the race against the timeout.
                self.latch.wait(0)
        finally:
            self._probe_token.cancel("readiness resolved")
            if cancel is not None:
                cancel.remove_callback(_abandon)

        self.process.mark_ready()
        log.info(f"{self.name} ready after {time.monotonic() - started:.2f}s (signals: {', '.join(self.latch.signals)})")
        return self.process
