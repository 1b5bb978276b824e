"""
Process-wide logging setup: level names used by the log.level parameter and
the log.target destination (error stream or syslog).
"""

import logging
import logging.handlers
import sys
from typing import Optional

from config import LOG_FORMAT, SYSLOG_ADDRESS


NOTICE = 25
TRACE = 5
SILENT = logging.CRITICAL + 10

logging.addLevelName(NOTICE, 'NOTICE')
logging.addLevelName(TRACE, 'TRACE')

LEVELS = {
    'silent': SILENT,
    'emerg': logging.CRITICAL,
    'alert': logging.CRITICAL,
    'crit': logging.CRITICAL,
    'critical': logging.CRITICAL,
    'error': logging.ERROR,
    'warn': logging.WARNING,
    'warning': logging.WARNING,
    'notice': NOTICE,
    'info': logging.INFO,
    'debug': logging.DEBUG,
    'trace': TRACE,
}

_handler: Optional[logging.Handler] = None


def parse_level(name: str) -> int:
    """
    Convert a level name to a logging level.

    Raises:
        ValueError: Unknown level name
    """
    try:
        return LEVELS[name.strip().lower()]
    except KeyError:
        raise ValueError(f"Unknown log level: [{name}]") from None


def set_current_level(name: str) -> None:
    logging.getLogger().setLevel(parse_level(name))


def set_target(target: str) -> None:
    """Send all log records to stderr, or to syslog tagged with target"""
    global _handler

    if target == 'stderr':
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
    else:
        handler = logging.handlers.SysLogHandler(address=SYSLOG_ADDRESS)
        handler.ident = f"{target}: "
        handler.setFormatter(logging.Formatter('%(name)s - %(levelname)s - %(message)s'))

    root = logging.getLogger()
    if _handler is not None:
        root.removeHandler(_handler)
        _handler.close()
    root.addHandler(handler)
    _handler = handler
