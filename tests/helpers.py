"""Tiny Python programs that play the server and the test process."""

from __future__ import annotations

import sys
import textwrap
from typing import List, Tuple

# Never-listening port used for health URLs in tests.
DEAD_HEALTH_URL = "http://127.0.0.1:9/health"

SERVER_SCRIPT = textwrap.dedent(
    """
    import signal, sys, time
    delay, mode = float(sys.argv[1]), sys.argv[2]
    if mode == "ignore-term":
        signal.signal(signal.SIGTERM, signal.SIG_IGN)
    print("booting", flush=True)
    print("warming up", file=sys.stderr, flush=True)
    time.sleep(delay)
    if mode != "silent":
        print("Test server running on http://localhost:3001", flush=True)
    while True:
        time.sleep(0.05)
    """
)


def python_command(script: str, *args: str) -> Tuple[str, List[str]]:
    """Returns (command, args) running `script` with an unbuffered interpreter."""
    return sys.executable, ["-u", "-c", textwrap.dedent(script), *args]


def server_command(delay: float = 0.0, mode: str = "normal") -> Tuple[str, List[str]]:
    """A fake server: prints the marker after `delay` seconds ('silent' never does)."""
    return python_command(SERVER_SCRIPT, str(delay), mode)


def exit_command(code: int, sleep: float = 0.0) -> Tuple[str, List[str]]:
    """A fake test process that exits with `code`."""
    return python_command(f"import sys, time; time.sleep({sleep}); sys.exit({code})")


class FakeResponse:
    status_code = 200
    text = "OK"
