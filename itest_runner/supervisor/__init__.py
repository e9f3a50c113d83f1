"""
The Supervisor package.
Runs one integration-test episode against a dependent server process.

This package contains the Orchestrator and the pieces it sequences: the
server supervisor, the health poller, the test runner and the shutdown
coordinator, plus the cancellation token that ties them to process signals.
"""
from .cancellation import CancellationToken, signal_cancellation
from .health import ReadinessCheck, wait_until_ready
from .orchestrator import EpisodeState, Orchestrator, RunConfig
from .outcome import OutcomeKind, RunOutcome
from .server import ServerSupervisor
from .shutdown import ShutdownCoordinator
from .suite import TestRunner
from .supervised import ProcessState, SupervisedProcess

__all__ = [
    "CancellationToken", "signal_cancellation", "ReadinessCheck", "wait_until_ready",
    "EpisodeState", "Orchestrator", "RunConfig", "OutcomeKind", "RunOutcome",
    "ServerSupervisor", "ShutdownCoordinator", "TestRunner", "ProcessState", "SupervisedProcess",
]
