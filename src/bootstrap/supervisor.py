"""
Supervisor loop: start the server, wait for a stop condition, stop the server.
"""

import logging
import time
from typing import Callable, Optional

from bootstrap.options import DatabaseOptions, ServerOptions
from bootstrap.signals import SignalController, StopToken
from config import POLL_INTERVAL


logger = logging.getLogger(__name__)


class Supervisor:
    """
    Runs a server until a termination signal arrives or the server asks to stop.

    Args:
        server: Object with start(server_options, db_options, db_path),
            stop() and is_stop_requested()
        stop_token: Token posted to by the signal controller
        signal_controller: Controller whose pending signals are dispatched
            every poll cycle, or None
        poll_interval: Seconds between two checks of the stop condition
    """

    def __init__(self, server, stop_token: StopToken,
                 signal_controller: Optional[SignalController] = None,
                 poll_interval: float = POLL_INTERVAL,
                 sleep: Callable[[float], None] = time.sleep):
        self.server = server
        self.stop_token = stop_token
        self.signal_controller = signal_controller
        self.poll_interval = poll_interval
        self._sleep = sleep

    def should_stop(self) -> bool:
        return self.stop_token.is_set() or self.server.is_stop_requested()

    def run(self, server_options: ServerOptions, db_options: DatabaseOptions,
            db_path: str) -> int:
        """Block until the server is stopped; returns the exit status"""
        self.server.start(server_options, db_options, db_path)
        logger.info("Daemon has started")

        while True:
            self._sleep(self.poll_interval)
            if self.signal_controller is not None:
                self.signal_controller.dispatch()
            if self.should_stop():
                break

        self.server.stop()
        logger.info("Daemon has stopped")
        return 0
