"""
Main entry point of the KVServer process.
Resolves the configuration, prepares the process, then supervises the server
until a termination signal arrives.
"""

import logging
import os
import sys
from typing import Callable, Optional, Sequence

from bootstrap.daemon import Backgrounder, get_backgrounder
from bootstrap.errors import BootstrapError, ResourceLimitWarning
from bootstrap.resolver import resolve
from bootstrap.signals import CrashDiagnostics, SignalController, StopToken
from bootstrap.supervisor import Supervisor
from bootstrap.validation import configure_logging, increase_open_files_limit, validate_options
from server.api_server import KVServer
from storage.database import DatabaseError


logger = logging.getLogger('kvserver')


def main(argv: Optional[Sequence[str]] = None,
         server_factory: Callable[[], object] = KVServer,
         backgrounder: Optional[Backgrounder] = None) -> int:
    """
    Run the server process.

    Args:
        argv: Command-line arguments without the program name (default: sys.argv[1:])
        server_factory: Builds the server to supervise
        backgrounder: Daemonization strategy (default: the platform's)

    Returns:
        Process exit status
    """
    if argv is None:
        argv = sys.argv[1:]

    try:
        resolution = resolve(argv)
        if resolution.informational is not None:
            sys.stdout.write(resolution.informational)
            return 0

        options = resolution.options
        configure_logging(options.database)
        validate_options(options.database)
    except BootstrapError as e:
        print(e, file=sys.stderr)
        return e.exit_status

    try:
        increase_open_files_limit()
    except ResourceLimitWarning as e:
        logger.warning("%s", e)

    stop_token = StopToken()
    signal_controller = SignalController(stop_token)
    signal_controller.install()
    CrashDiagnostics().install()

    try:
        if not options.general.foreground:
            try:
                (backgrounder or get_backgrounder()).background()
            except BootstrapError as e:
                print(f"Could not daemonize the process: {e}", file=sys.stderr)
                return e.exit_status
            logger.info("Running in the background with pid %d", os.getpid())

        supervisor = Supervisor(server_factory(), stop_token, signal_controller)
        return supervisor.run(options.server, options.database, options.general.db_path)
    except (DatabaseError, OSError) as e:
        logger.error("Could not start the server: %s", e)
        return 1
    finally:
        signal_controller.restore()


def run() -> None:
    sys.exit(main())


if __name__ == '__main__':
    run()
