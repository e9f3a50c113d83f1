"""
Exception hierarchy for a single orchestration episode.

None of these are retried. The orchestrator maps each one to a RunOutcome
after the shutdown path has run.
"""
from typing import Optional


class OrchestrationError(Exception):
    """Base class for every failure of an orchestration episode."""

    stage = "orchestration"


class ServerStartFailed(OrchestrationError):
    """The server process could not be spawned."""

    stage = "server start"


# The executable is missing or unstartable.
SpawnError = ServerStartFailed


class ServerExitedEarly(ServerStartFailed):
    """The server process exited before it signalled readiness."""

    def __init__(self, exit_code: Optional[int]):
        super().__init__(f"Server exited with code {exit_code} before becoming ready")
        self.exit_code = exit_code


class ServerNotReady(OrchestrationError):
    """The server did not become ready within a deadline."""

    stage = "server readiness"

    def __init__(self, message: str, timeout: float):
        super().__init__(message)
        self.timeout = timeout


class ServerStartTimeout(ServerNotReady):
    """The hard time-to-readiness bound of the supervisor elapsed."""

    def __init__(self, timeout: float):
        super().__init__(f"Test server failed to start within {timeout:g} seconds", timeout)


class ReadinessTimeout(ServerNotReady):
    """The health endpoint never answered within the poller deadline."""

    def __init__(self, url: str, timeout: float):
        super().__init__(f"Test server at {url} is not available after {timeout:g} seconds", timeout)
        self.url = url


class TestProcessFailure(OrchestrationError):
    """The test process exited with a nonzero code."""

    __test__ = False
    stage = "tests"

    def __init__(self, exit_code: int):
        super().__init__(f"Tests failed with exit code {exit_code}")
        self.exit_code = exit_code


class TestRunnerSpawnError(OrchestrationError):
    """The test process could not be launched at all."""

    __test__ = False
    stage = "test runner"


class InterruptedExternally(OrchestrationError):
    """The episode was cancelled by an external signal. Not a failure."""

    stage = "interrupt"
