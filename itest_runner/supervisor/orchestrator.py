import time
import logging
from enum import Enum
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

from itest_runner.errors import (
    InterruptedExternally, OrchestrationError, ServerNotReady, ServerStartFailed,
    TestProcessFailure, TestRunnerSpawnError,
)
from itest_runner.supervisor.cancellation import CancellationToken
from itest_runner.supervisor.health import ReadinessCheck
from itest_runner.supervisor.outcome import OutcomeKind, RunOutcome
from itest_runner.supervisor.readiness import POLICY_FIRST
from itest_runner.supervisor.server import ServerSupervisor
from itest_runner.supervisor.shutdown import ShutdownCoordinator
from itest_runner.supervisor.suite import TestRunner
from itest_runner.supervisor.supervised import SupervisedProcess

log = logging.getLogger(__name__)


class EpisodeState(str, Enum):
    IDLE = "idle"
    STARTING = "starting"
    WAITING_READY = "waiting-ready"
    RUNNING_TESTS = "running-tests"
    SHUTTING_DOWN = "shutting-down"
    DONE = "done"


@dataclass(frozen=True)
class RunConfig:
    """Everything one orchestration episode needs to know."""

    server_command: str
    server_args: Tuple[str, ...]
    test_command: str
    test_args: Tuple[str, ...]
    server_env: Dict[str, Any] = field(default_factory=dict)
    server_name: str = "test-server"
    ready_marker: str = "running on"
    readiness_check: Optional[ReadinessCheck] = None
    start_timeout: float = 10.0
    readiness_policy: str = POLICY_FIRST
    grace_period: float = 5.0
    cwd: Optional[str] = None

    @classmethod
    def from_settings(cls, settings=None) -> "RunConfig":
        """Builds the configuration from `effective_settings` (or the given settings object)."""
        if settings is None:
            from itest_runner.config import effective_settings as settings

        health_url = f"http://{settings.TEST_SERVER_HOST}:{settings.TEST_SERVER_PORT}{settings.HEALTH_PATH}"
        return cls(
            server_command=settings.SERVER_COMMAND,
            server_args=tuple(settings.SERVER_ARGS),
            test_command=settings.TEST_COMMAND,
            test_args=tuple(settings.TEST_ARGS),
            server_env={"PORT": settings.TEST_SERVER_PORT},
            ready_marker=settings.READY_MARKER,
            readiness_check=ReadinessCheck(
                url=health_url,
                timeout=settings.READINESS_TIMEOUT,
                interval=settings.HEALTH_POLL_INTERVAL,
                attempt_timeout=settings.HEALTH_PROBE_TIMEOUT,
            ),
            start_timeout=settings.SERVER_START_TIMEOUT,
            readiness_policy=settings.READINESS_POLICY,
            grace_period=settings.GRACEFUL_SHUTDOWN_TIMEOUT,
            cwd=str(settings.BASE_DIR),
        )


class Orchestrator:
    """
    Runs one episode: start the server, wait until it is ready, run the tests, shut down.

    idle -> starting -> waiting-ready -> running-tests -> shutting-down -> done

    Any failure or a cancellation of `cancel` short-circuits to shutting-down.
    Once the server process exists, it is shut down exactly once, whichever
    way control leaves the sequence. An orchestrator runs a single episode.
    """

    def __init__(
        self,
        config: RunConfig,
        cancel: Optional[CancellationToken] = None,
        supervisor: Optional[ServerSupervisor] = None,
        test_runner: Optional[TestRunner] = None,
        coordinator: Optional[ShutdownCoordinator] = None,
    ) -> None:
        self.config = config
        self.cancel = cancel or CancellationToken()
        self.supervisor = supervisor or ServerSupervisor(
            name=config.server_name,
            ready_marker=config.ready_marker,
            readiness_check=config.readiness_check,
            start_timeout=config.start_timeout,
            readiness_policy=config.readiness_policy,
            cwd=config.cwd,
        )
        self.test_runner = test_runner or TestRunner(grace_period=config.grace_period, cwd=config.cwd)
        self.coordinator = coordinator or ShutdownCoordinator(config.grace_period)

        self.state = EpisodeState.IDLE
        self.history: List[EpisodeState] = [EpisodeState.IDLE]
        self.outcome: Optional[RunOutcome] = None

    def _transition(self, new_state: EpisodeState) -> None:
        log.debug(f"Episode: {self.state.value} -> {new_state.value}")
        self.state = new_state
        self.history.append(new_state)

    @contextmanager
    def _server(self) -> Iterator[SupervisedProcess]:
        """Spawns the server and guarantees its shutdown once the handle exists."""
        process = self.supervisor.start(
            self.config.server_command, list(self.config.server_args), self.config.server_env
        )
        try:
            yield process
        finally:
            self._transition(EpisodeState.SHUTTING_DOWN)
            self.coordinator.shutdown(process)

    def _outcome_for(self, error: OrchestrationError) -> RunOutcome:
        if self.cancel.is_cancelled or isinstance(error, InterruptedExternally):
            return RunOutcome.interrupted(self.cancel.reason)
        if isinstance(error, ServerNotReady):
            return RunOutcome.server_not_ready(error.timeout, str(error))
        if isinstance(error, ServerStartFailed):
            return RunOutcome.server_start_failed(str(error))
        if isinstance(error, TestRunnerSpawnError):
            return RunOutcome.test_runner_failed(str(error))
        if isinstance(error, TestProcessFailure):
            return RunOutcome.tests_failed(error.exit_code)
        raise error

    def _sequence(self) -> RunOutcome:
        self.cancel.raise_if_cancelled()
        with self._server():
            self._transition(EpisodeState.WAITING_READY)
            process = self.supervisor.wait_until_ready(self.cancel)

            self.cancel.raise_if_cancelled()
            self._transition(EpisodeState.RUNNING_TESTS)
            process.mark_running()
            outcome = self.test_runner.run(self.config.test_command, list(self.config.test_args), self.cancel)
            if self.cancel.is_cancelled:
                return RunOutcome.interrupted(self.cancel.reason)
            return outcome

    def run(self) -> RunOutcome:
        """
        Runs the episode and returns its outcome.

        Unexpected exceptions still pass through the shutdown path before
        they propagate.
        """
        if self.state is not EpisodeState.IDLE:
            raise RuntimeError("An orchestrator runs a single episode.")

        started = time.monotonic()
        self._transition(EpisodeState.STARTING)
        try:
            outcome = self._sequence()
        except OrchestrationError as e:
            outcome = self._outcome_for(e)
            if outcome.kind is OutcomeKind.INTERRUPTED:
                log.warning(f"Integration test run interrupted ({outcome.reason}).")
            else:
                log.error(f"Integration test execution failed at {e.stage}: {e}")
        except Exception as e:
            log.critical(f"Unhandled error during the integration test run: {e}", exc_info=True)
            raise
        finally:
            if self.state is not EpisodeState.SHUTTING_DOWN:
                self._transition(EpisodeState.SHUTTING_DOWN)
            self._transition(EpisodeState.DONE)

        self.outcome = outcome
        if outcome.succeeded:
            log.info(f"All integration tests completed successfully in {time.monotonic() - started:.2f}s.")
        else:
            log.info(f"Integration test run finished with outcome {outcome} after {time.monotonic() - started:.2f}s.")
        return outcome
