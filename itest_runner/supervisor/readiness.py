import logging
import threading
from typing import FrozenSet, List, Optional

log = logging.getLogger(__name__)

MARKER = "marker"
PROBE = "probe"

POLICY_FIRST = "first"
POLICY_BOTH = "both"
READINESS_POLICIES = (POLICY_FIRST, POLICY_BOTH)


class ReadinessLatch:
    """
    A single-resolution latch for the server's "ready" condition.

    Several producers race to satisfy it: the output reader reports the
    readiness marker, the health poller reports a successful probe, and the
    exit watcher or a timeout reports failure. The first resolution wins and
    every later one is ignored.

    Under the 'first' policy any one signal is enough. Under 'both', every
    expected signal must be reported before the latch resolves as ready.
    """

    def __init__(self, policy: str = POLICY_FIRST, expected: FrozenSet[str] = frozenset({MARKER, PROBE})) -> None:
        if policy not in READINESS_POLICIES:
            raise ValueError(f"Unknown readiness policy '{policy}'. Expected one of {READINESS_POLICIES}.")
        self.policy = policy
        self.expected = frozenset(expected)
        self.signals: List[str] = []
        self.error: Optional[BaseException] = None

        self._lock = threading.Lock()
        self._resolved = threading.Event()

    @property
    def is_resolved(self) -> bool:
        return self._resolved.is_set()

    @property
    def is_ready(self) -> bool:
        return self._resolved.is_set() and self.error is None

    def signal(self, source: str) -> bool:
        """
        Reports a readiness signal from `source`.

        :return: True if this signal resolved the latch.
        """
        with self._lock:
            if self._resolved.is_set():
                return False
            if source not in self.signals:
                self.signals.append(source)
            if self.policy == POLICY_BOTH and not self.expected.issubset(self.signals):
                log.debug(f"Readiness signal '{source}' received, still waiting for {sorted(self.expected - set(self.signals))}")
                return False
            log.debug(f"Readiness latch resolved by '{source}'")
            self._resolved.set()
            return True

    def fail(self, error: BaseException) -> bool:
        """
        Resolves the latch with an error unless it is already resolved.

        :return: True if this call resolved the latch.
        """
        with self._lock:
            if self._resolved.is_set():
                return False
            self.error = error
            self._resolved.set()
            return True

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Blocks until the latch resolves or `timeout` elapses.

        :return: True if ready, False on timeout.
        :raises BaseException: The error the latch was failed with.
        """
        if not self._resolved.wait(timeout):
            return False
        if self.error is not None:
            raise self.error
        return True
