from __future__ import annotations

import threading

import pytest

from itest_runner.errors import ServerExitedEarly
from itest_runner.supervisor.readiness import MARKER, POLICY_BOTH, PROBE, ReadinessLatch


def test_first_signal_resolves_the_latch() -> None:
    latch = ReadinessLatch()

    assert latch.signal(MARKER) is True
    assert latch.wait(0) is True
    assert latch.signals == [MARKER]


def test_later_resolutions_are_ignored() -> None:
    latch = ReadinessLatch()
    latch.signal(PROBE)

    assert latch.signal(MARKER) is False
    assert latch.fail(ServerExitedEarly(1)) is False
    assert latch.is_ready
    assert latch.signals == [PROBE]


def test_failure_is_raised_from_wait() -> None:
    latch = ReadinessLatch()
    latch.fail(ServerExitedEarly(2))

    with pytest.raises(ServerExitedEarly) as exc_info:
        latch.wait(0)
    assert exc_info.value.exit_code == 2
    assert not latch.is_ready


def test_wait_times_out_when_nothing_happens() -> None:
    assert ReadinessLatch().wait(0.05) is False


def test_both_policy_waits_for_every_expected_signal() -> None:
    latch = ReadinessLatch(POLICY_BOTH)

    assert latch.signal(MARKER) is False
    assert latch.signal(MARKER) is False
    assert not latch.is_resolved
    assert latch.signal(PROBE) is True
    assert latch.signals == [MARKER, PROBE]


def test_both_policy_with_marker_only_expected() -> None:
    latch = ReadinessLatch(POLICY_BOTH, frozenset({MARKER}))

    assert latch.signal(MARKER) is True


def test_signal_from_another_thread_wakes_the_waiter() -> None:
    latch = ReadinessLatch()
    threading.Timer(0.05, latch.signal, args=(MARKER,)).start()

    assert latch.wait(2) is True


def test_unknown_policy_is_rejected() -> None:
    with pytest.raises(ValueError):
        ReadinessLatch("eventually")
