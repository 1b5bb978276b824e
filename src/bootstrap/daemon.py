"""
Detaching the server process from its controlling terminal.
"""

import logging
import os

from bootstrap.errors import DaemonizationError
from utils.fs import cached_getcwd


logger = logging.getLogger(__name__)


class Backgrounder:
    """Turns the current process into a background daemon"""

    def background(self) -> None:
        raise NotImplementedError


class PosixBackgrounder(Backgrounder):
    """
    Classic double-fork daemonization.

    The first fork lets the caller's shell get its prompt back and makes the
    child a non-group-leader so it can call setsid(). The second fork makes
    sure the daemon is not a session leader, so it can never reacquire a
    controlling terminal.
    """

    def _fork(self) -> None:
        """Fork, exiting the parent; only the child returns"""
        try:
            pid = os.fork()
        except OSError as e:
            raise DaemonizationError(f"fork() failed: {e.strerror}") from e
        if pid > 0:
            os._exit(0)

    def background(self) -> None:
        # The working directory must be read before forking, some platforms
        # report '/' afterwards
        cached_getcwd()

        self._fork()

        try:
            os.setsid()
        except OSError as e:
            raise DaemonizationError(f"setsid() failed: {e.strerror}") from e

        self._fork()

        os.umask(0)
        try:
            os.chdir('/')
        except OSError as e:
            logger.error("chdir(): %s", e.strerror)


class UnsupportedBackgrounder(Backgrounder):
    """Platforms without fork() and setsid() cannot daemonize"""

    def background(self) -> None:
        raise DaemonizationError(
            "Daemonization is not supported on this platform, use --foreground")


def get_backgrounder() -> Backgrounder:
    if hasattr(os, 'fork') and hasattr(os, 'setsid'):
        return PosixBackgrounder()
    return UnsupportedBackgrounder()
