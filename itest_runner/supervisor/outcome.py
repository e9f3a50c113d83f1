from enum import Enum
from dataclasses import dataclass
from typing import Optional


class OutcomeKind(str, Enum):
    TESTS_PASSED = "tests-passed"
    TESTS_FAILED = "tests-failed"
    SERVER_START_FAILED = "server-start-failed"
    SERVER_NOT_READY = "server-not-ready"
    TEST_RUNNER_FAILED = "test-runner-failed"
    INTERRUPTED = "interrupted"


# Process exit code reported for each outcome. Only 0 vs. nonzero is a contract.
EXIT_CODES = {
    OutcomeKind.TESTS_PASSED: 0,
    OutcomeKind.TESTS_FAILED: 1,
    OutcomeKind.SERVER_START_FAILED: 2,
    OutcomeKind.SERVER_NOT_READY: 3,
    OutcomeKind.TEST_RUNNER_FAILED: 4,
    OutcomeKind.INTERRUPTED: 130,
}


@dataclass(frozen=True)
class RunOutcome:
    """The terminal result of one orchestration episode."""

    kind: OutcomeKind
    test_exit_code: Optional[int] = None
    reason: Optional[str] = None
    timeout: Optional[float] = None

    @classmethod
    def tests_passed(cls) -> "RunOutcome":
        return cls(OutcomeKind.TESTS_PASSED, test_exit_code=0)

    @classmethod
    def tests_failed(cls, code: int) -> "RunOutcome":
        return cls(OutcomeKind.TESTS_FAILED, test_exit_code=code, reason=f"Tests failed with exit code {code}")

    @classmethod
    def server_start_failed(cls, reason: str) -> "RunOutcome":
        return cls(OutcomeKind.SERVER_START_FAILED, reason=reason)

    @classmethod
    def server_not_ready(cls, timeout: float, reason: Optional[str] = None) -> "RunOutcome":
        return cls(OutcomeKind.SERVER_NOT_READY, reason=reason, timeout=timeout)

    @classmethod
    def test_runner_failed(cls, reason: str) -> "RunOutcome":
        return cls(OutcomeKind.TEST_RUNNER_FAILED, reason=reason)

    @classmethod
    def interrupted(cls, reason: Optional[str] = None) -> "RunOutcome":
        return cls(OutcomeKind.INTERRUPTED, reason=reason)

    @property
    def succeeded(self) -> bool:
        return self.kind is OutcomeKind.TESTS_PASSED

    @property
    def exit_code(self) -> int:
        return EXIT_CODES[self.kind]

    def __str__(self) -> str:
        if self.kind is OutcomeKind.TESTS_FAILED:
            return f"{self.kind.value}({self.test_exit_code})"
        if self.kind is OutcomeKind.SERVER_NOT_READY and self.timeout is not None:
            return f"{self.kind.value}({self.timeout:g}s)"
        if self.reason and self.kind is not OutcomeKind.TESTS_PASSED:
            return f"{self.kind.value}({self.reason})"
        return self.kind.value
