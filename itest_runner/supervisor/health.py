import time
import logging
import requests
from dataclasses import dataclass
from typing import Optional

from itest_runner.errors import InterruptedExternally, ReadinessTimeout
from itest_runner.supervisor.cancellation import CancellationToken

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReadinessCheck:
    """
    Configuration of one health polling run.

    :param url: The health endpoint to GET.
    :param timeout: Overall deadline in seconds, measured from the first attempt.
    :param interval: Pause between attempts in seconds.
    :param attempt_timeout: Upper bound in seconds for a single request.
    """
    url: str
    timeout: float = 30.0
    interval: float = 1.0
    attempt_timeout: float = 2.0


def probe(url: str, timeout: float) -> bool:
    """
    Sends a single readiness probe.

    Any completed response counts, whatever its status code or body.

    :return: True if the endpoint answered, False on a transport-level error.
    """
    try:
        requests.get(url, timeout=timeout)
        return True
    except requests.RequestException as e:
        log.debug(f"Readiness probe to {url} failed: {e}")
        return False


def wait_until_ready(check: ReadinessCheck, cancel: Optional[CancellationToken] = None) -> None:
    """
    Polls the health endpoint until it answers or the deadline elapses.

    Individual failures are not counted; only the deadline matters. The
    request timeout and the pause between attempts are clipped to the time
    left, so the deadline is honoured even with slow probes.

    :param check: The readiness check configuration.
    :param cancel: Optional token that abandons the wait.
    :raises ReadinessTimeout: If no probe succeeded within `check.timeout`.
    :raises InterruptedExternally: If `cancel` fired first.
    """
    deadline = time.monotonic() + check.timeout

    while True:
        if cancel is not None and cancel.is_cancelled:
            raise InterruptedExternally(f"Readiness wait for {check.url} abandoned")

        remaining = deadline - time.monotonic()
        if remaining <= 0:
            break
        if probe(check.url, min(check.attempt_timeout, remaining)):
            log.info("Test server is ready")
            return

        remaining = deadline - time.monotonic()
        if remaining <= 0:
            break
        log.info("Waiting for test server...")
        pause = min(check.interval, remaining)
        if cancel is not None:
            if cancel.wait(pause):
                raise InterruptedExternally(f"Readiness wait for {check.url} abandoned")
        else:
            time.sleep(pause)

    raise ReadinessTimeout(check.url, check.timeout)
