import psutil
import logging
import threading
import subprocess
from enum import Enum
from typing import Callable, List, Optional

log = logging.getLogger(__name__)


class ProcessState(str, Enum):
    STARTING = "starting"
    READY = "ready"
    RUNNING = "running"
    EXITED = "exited"
    KILLED = "killed"


_STATE_ORDER = {
    ProcessState.STARTING: 0,
    ProcessState.READY: 1,
    ProcessState.RUNNING: 2,
    ProcessState.EXITED: 3,
    ProcessState.KILLED: 3,
}
TERMINAL_STATES = frozenset({ProcessState.EXITED, ProcessState.KILLED})


class SupervisedProcess:
    """
    A child process under the orchestrator's lifecycle management.

    States only move forward (starting -> ready -> running -> exited/killed).
    A background watcher waits on the child and publishes its exit through
    `wait_for_exit()` and the registered exit callbacks.
    """

    def __init__(self, name: str, popen: subprocess.Popen) -> None:
        self.name = name
        self.popen = popen
        self.pid = popen.pid
        self.state = ProcessState.STARTING
        self.exit_code: Optional[int] = None
        self.stopping = False

        self._lock = threading.Lock()
        self._exited = threading.Event()
        self._exit_callbacks: List[Callable[[Optional[int]], None]] = []
        self._watcher: Optional[threading.Thread] = None
        try:
            self.proc: Optional[psutil.Process] = psutil.Process(self.pid)
        except psutil.NoSuchProcess:
            # Exited (and was reaped) before we could attach.
            self.proc = None

    def __repr__(self) -> str:
        return f"<SupervisedProcess {self.name} pid={self.pid} state={self.state.value}>"

    #* --- Lifecycle ---
    def transition(self, new_state: ProcessState) -> bool:
        """Moves to `new_state` if it is ahead of the current one. Returns True if it moved."""
        with self._lock:
            return self._transition_locked(new_state)

    def _transition_locked(self, new_state: ProcessState) -> bool:
        if self.state in TERMINAL_STATES or _STATE_ORDER[new_state] <= _STATE_ORDER[self.state]:
            log.debug(f"Ignoring transition of {self.name} from {self.state.value} to {new_state.value}")
            return False
        log.debug(f"{self.name} (PID {self.pid}): {self.state.value} -> {new_state.value}")
        self.state = new_state
        return True

    def mark_ready(self) -> bool:
        return self.transition(ProcessState.READY)

    def mark_running(self) -> bool:
        return self.transition(ProcessState.RUNNING)

    def begin_stop(self) -> bool:
        """Claims the right to stop this process. Only the first caller gets True."""
        with self._lock:
            if self.stopping:
                return False
            self.stopping = True
            return True

    #* --- Exit notification ---
    def add_exit_callback(self, callback: Callable[[Optional[int]], None]) -> None:
        with self._lock:
            if not self._exited.is_set():
                self._exit_callbacks.append(callback)
                return
        callback(self.exit_code)

    def start_watching(self) -> None:
        """Starts the daemon thread that waits for the child to exit."""
        if self._watcher is not None:
            return
        self._watcher = threading.Thread(target=self._watch, daemon=True, name=f"{self.name}-exit-watcher")
        self._watcher.start()

    def _watch(self) -> None:
        code = self.popen.wait()
        with self._lock:
            self.exit_code = code
            self._transition_locked(ProcessState.EXITED)
            self._exited.set()
            callbacks, self._exit_callbacks = self._exit_callbacks, []
        for callback in callbacks:
            try:
                callback(code)
            except Exception as e:
                log.error(f"Exit callback for {self.name} failed: {e}", exc_info=True)

    @property
    def is_alive(self) -> bool:
        return not self._exited.is_set()

    def wait_for_exit(self, timeout: Optional[float] = None) -> bool:
        """Blocks until the child exits or `timeout` elapses. Returns True if it exited."""
        return self._exited.wait(timeout)

    #* --- Signalling ---
    def children(self) -> List[psutil.Process]:
        """Returns the live descendants of the child, or an empty list if it is gone."""
        if self.proc is None:
            return []
        try:
            return self.proc.children(recursive=True)
        except psutil.NoSuchProcess:
            return []

    def terminate(self) -> None:
        """Sends the graceful termination signal (SIGTERM)."""
        if self.proc is None or not self.is_alive:
            return
        try:
            log.debug(f"Sending SIGTERM to {self.name} (PID {self.pid})")
            self.proc.terminate()
        except psutil.NoSuchProcess:
            log.debug(f"Process {self.pid} no longer exists, skipping termination.")

    def kill(self) -> None:
        """Sends the forceful termination signal (SIGKILL) and marks the process killed."""
        if self.proc is None or not self.is_alive:
            return
        try:
            log.warning(f"Killing stubborn process {self.name} (PID {self.pid}).")
            self.proc.kill()
        except psutil.NoSuchProcess:
            log.debug(f"Process {self.pid} no longer exists, skipping forceful kill.")
            return
        self.transition(ProcessState.KILLED)
