"""
Validation of enumerated options and adjustment of process resource limits.
"""

import logging
from enum import Enum
from typing import Dict, Tuple, Type

try:
    import resource
except ImportError:  # not available on Windows
    resource = None

from bootstrap.errors import ResourceLimitWarning, ValidationError
from bootstrap.options import CompressionType, DatabaseOptions, HashType, WriteBufferMode
from utils import logger as log_setup


logger = logging.getLogger(__name__)

# Fallback ceiling when the hard limit is unlimited (OPEN_MAX on macOS)
OPEN_MAX = 10240

# parameter name -> (raw string attribute, typed attribute, enum of valid literals)
ENUMERATED_OPTIONS: Dict[str, Tuple[str, str, Type[Enum]]] = {
    'storage.compression-algorithm': ('compression_algorithm', 'compression', CompressionType),
    'storage.hashing-algorithm': ('hashing_algorithm', 'hash', HashType),
    'db.write-buffer.mode': ('write_buffer_mode_str', 'write_buffer_mode', WriteBufferMode),
}


def configure_logging(db_options: DatabaseOptions) -> None:
    """
    Apply log.level and log.target to the process-wide logging setup.

    Raises:
        ValidationError: log.level is not a known level name
    """
    if db_options.log_level:
        try:
            log_setup.set_current_level(db_options.log_level)
        except ValueError:
            raise ValidationError('log.level', db_options.log_level) from None
    log_setup.set_target(db_options.log_target)


def validate_options(db_options: DatabaseOptions) -> None:
    """
    Map every enumerated option to its typed mode, in place.

    Raises:
        ValidationError: A value is outside the set of its parameter
    """
    for name, (raw_attr, typed_attr, enum_class) in ENUMERATED_OPTIONS.items():
        raw = getattr(db_options, raw_attr)
        try:
            setattr(db_options, typed_attr, enum_class(raw))
        except ValueError:
            raise ValidationError(name, raw) from None


def increase_open_files_limit() -> int:
    """
    Raise the soft limit on open file descriptors to the hard limit.

    Returns:
        The new soft limit

    Raises:
        ResourceLimitWarning: The limit could not be read or changed
    """
    if resource is None:
        raise ResourceLimitWarning("Resource limits are not supported on this platform")

    try:
        soft, hard = resource.getrlimit(resource.RLIMIT_NOFILE)
    except (OSError, ValueError) as e:
        raise ResourceLimitWarning(f"Could not read RLIMIT_NOFILE: {e}") from e

    target = OPEN_MAX if hard == resource.RLIM_INFINITY else hard
    if soft == resource.RLIM_INFINITY or soft >= target:
        return soft

    try:
        resource.setrlimit(resource.RLIMIT_NOFILE, (target, hard))
    except (OSError, ValueError) as e:
        raise ResourceLimitWarning(f"Could not set RLIMIT_NOFILE to {target}: {e}") from e

    logger.debug("Raised RLIMIT_NOFILE from %d to %d", soft, target)
    return target
