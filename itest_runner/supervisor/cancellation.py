import signal
import logging
import threading
from contextlib import contextmanager
from typing import Callable, Iterator, List, Optional, Sequence

from itest_runner.errors import InterruptedExternally

log = logging.getLogger(__name__)


class CancellationToken:
    """
    The single cancellation source of an orchestration episode.

    Waits that must abandon on interrupt either wait on the token itself or
    register a callback that unblocks them. Callbacks run once, on the thread
    that calls `cancel()`.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: List[Callable[[], None]] = []
        self.reason: Optional[str] = None

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled") -> None:
        """Cancels the token and fires the registered callbacks. Later calls are ignored."""
        with self._lock:
            if self._event.is_set():
                return
            self.reason = reason
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []

        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                log.error(f"Cancellation callback failed: {e}", exc_info=True)

    def add_callback(self, callback: Callable[[], None]) -> None:
        """Registers a callback. It runs immediately if the token is already cancelled."""
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return
        callback()

    def remove_callback(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Blocks for up to `timeout` seconds. Returns True if the token was cancelled."""
        return self._event.wait(timeout)

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise InterruptedExternally(f"Interrupted: {self.reason}")


@contextmanager
def signal_cancellation(
    token: CancellationToken,
    signals: Sequence[signal.Signals] = (signal.SIGINT, signal.SIGTERM),
) -> Iterator[CancellationToken]:
    """
    Binds process signals to `token` for the duration of the block.

    The handlers only cancel the token; the shutdown already in flight does the
    cleanup. Previous handlers are restored on exit. Must be entered from the
    main thread.

    The handler interrupts the main thread, which may be holding the token's
    lock or a logging handler's lock, so it hands the work to a thread and
    returns without taking any lock itself.
    """
    def _cancel(name: str) -> None:
        log.warning(f"Received {name}, shutting down...")
        token.cancel(name)

    def _handler(signum, frame):
        name = signal.Signals(signum).name
        threading.Thread(target=_cancel, args=(name,), daemon=True, name=f"{name}-cancel").start()

    previous = {}
    for sig in signals:
        previous[sig] = signal.signal(sig, _handler)
    try:
        yield token
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)
