from __future__ import annotations

import os
import signal
import subprocess
import sys

import pytest

from itest_runner.errors import InterruptedExternally
from itest_runner.supervisor import CancellationToken, signal_cancellation

from helpers import python_command


def test_callbacks_fire_once_with_the_first_reason() -> None:
    token = CancellationToken()
    fired = []
    token.add_callback(lambda: fired.append("a"))

    token.cancel("SIGINT")
    token.cancel("SIGTERM")

    assert fired == ["a"]
    assert token.reason == "SIGINT"
    assert token.is_cancelled


def test_callback_added_after_cancel_runs_immediately() -> None:
    token = CancellationToken()
    token.cancel()
    fired = []

    token.add_callback(lambda: fired.append(True))

    assert fired == [True]


def test_removed_callback_does_not_fire() -> None:
    token = CancellationToken()
    fired = []

    def _callback():
        fired.append(True)

    token.add_callback(_callback)
    token.remove_callback(_callback)
    token.cancel()

    assert fired == []


def test_failing_callback_does_not_block_the_others() -> None:
    token = CancellationToken()
    fired = []

    def _broken():
        raise RuntimeError("broken")

    token.add_callback(_broken)
    token.add_callback(lambda: fired.append(True))
    token.cancel()

    assert fired == [True]


def test_raise_if_cancelled() -> None:
    token = CancellationToken()
    token.raise_if_cancelled()
    token.cancel("SIGTERM")

    with pytest.raises(InterruptedExternally):
        token.raise_if_cancelled()


def test_wait_returns_false_until_cancelled() -> None:
    token = CancellationToken()

    assert token.wait(0.01) is False
    token.cancel()
    assert token.wait(0.01) is True


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX signals")
def test_signals_cancel_the_bound_token_and_handlers_are_restored() -> None:
    previous = signal.getsignal(signal.SIGTERM)
    token = CancellationToken()

    with signal_cancellation(token, signals=(signal.SIGTERM,)):
        os.kill(os.getpid(), signal.SIGTERM)
        assert token.wait(2)

    assert token.reason == "SIGTERM"
    assert signal.getsignal(signal.SIGTERM) == previous


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX signals")
def test_signal_arriving_while_the_token_lock_is_held_does_not_hang() -> None:
    command, args = python_command(
        """
        import os, signal
        from itest_runner.supervisor.cancellation import CancellationToken, signal_cancellation

        token = CancellationToken()
        with signal_cancellation(token, signals=(signal.SIGTERM,)):
            with token._lock:
                os.kill(os.getpid(), signal.SIGTERM)
                print("still running", flush=True)
            assert token.wait(5)
        print(f"cancelled by {token.reason}", flush=True)
        """
    )

    result = subprocess.run([command, *args], capture_output=True, text=True, timeout=15)

    assert result.returncode == 0, result.stderr
    assert "still running" in result.stdout
    assert "cancelled by SIGTERM" in result.stdout
