"""
Signal handling: termination signals request a graceful shutdown, crash
signals dump diagnostics and terminate.

Termination handlers only record the signal number. Logging and the stop
request happen later in normal context, when the supervisor calls dispatch().
"""

import faulthandler
import logging
import os
import queue
import signal
import sys
import threading
import traceback
from typing import Dict, Optional, Sequence, TextIO

from config import MAX_BACKTRACE_DEPTH


logger = logging.getLogger(__name__)

TERMINATION_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class StopToken:
    """One-shot shutdown request, false until the first request_stop()"""

    def __init__(self):
        self._event = threading.Event()
        self.reason: Optional[str] = None

    def request_stop(self, reason: str) -> bool:
        """Returns True only for the call that made the transition"""
        if self._event.is_set():
            return False
        self.reason = reason
        self._event.set()
        return True

    def is_set(self) -> bool:
        return self._event.is_set()


class SignalController:
    """
    Bridges termination signals to a StopToken.

    Args:
        stop_token: Token to post to when a termination signal is dispatched
        signals: Signals treated as termination requests
    """

    def __init__(self, stop_token: StopToken, signals: Sequence[int] = TERMINATION_SIGNALS):
        self.stop_token = stop_token
        self.signals = tuple(signals)
        self._received: "queue.SimpleQueue[int]" = queue.SimpleQueue()
        self._previous: Dict[int, object] = {}

    def _handle(self, signum: int, frame) -> None:
        self._received.put_nowait(signum)

    def install(self) -> None:
        for signum in self.signals:
            self._previous[signum] = signal.signal(signum, self._handle)

    def restore(self) -> None:
        for signum, handler in self._previous.items():
            signal.signal(signum, handler)
        self._previous.clear()

    def dispatch(self) -> int:
        """
        Process the signals received since the last call.

        Returns:
            Number of signals processed
        """
        count = 0
        while True:
            try:
                signum = self._received.get_nowait()
            except queue.Empty:
                return count
            count += 1
            logger.info("Received signal [%d]", signum)
            self.stop_token.request_stop(signal.Signals(signum).name)


class CrashDiagnostics:
    """
    Tracebacks on crash, no cleanup.

    Fatal signals (SIGSEGV, SIGABRT, SIGBUS, SIGFPE, SIGILL) dump the Python
    stack of every thread through faulthandler and the process dies with the
    signal. Uncaught exceptions print their last frames and exit with status 1.
    State may be corrupted at that point, nothing is unwound.
    """

    def __init__(self, stream: Optional[TextIO] = None, depth: int = MAX_BACKTRACE_DEPTH):
        self.stream = stream
        self.depth = depth

    def install(self) -> None:
        stream = self.stream or sys.stderr
        try:
            faulthandler.enable(file=stream, all_threads=True)
        except (AttributeError, ValueError, OSError):
            # No usable file descriptor: crashes fall back to a plain abort
            logger.warning("Crash tracebacks are not available")
        sys.excepthook = self.excepthook

    def excepthook(self, exc_type, exc_value, exc_traceback) -> None:
        stream = self.stream or sys.stderr
        stream.write(f"Error: uncaught {exc_type.__name__}:\n")
        traceback.print_exception(exc_type, exc_value, exc_traceback,
                                  limit=-self.depth, file=stream)
        stream.flush()
        os._exit(1)
