"""
Errors raised while bootstrapping the server process.
Every fatal error is handled once, in main(), by printing it and exiting.
"""

from typing import Iterable


class BootstrapError(Exception):
    """Base class for fatal startup errors"""

    exit_status = 1


class ConfigError(BootstrapError):
    """Malformed arguments, missing config file or unparsable config file"""


class MandatoryParameterMissing(BootstrapError):
    """One or more mandatory parameters were not found in any source"""

    def __init__(self, names: Iterable[str]):
        self.names = list(names)
        lines = [f"Missing mandatory parameter [{name}]" for name in self.names]
        super().__init__("\n".join(lines))


class ValidationError(BootstrapError):
    """An enumerated option resolved to a value outside its closed set"""

    def __init__(self, parameter: str, value: str):
        self.parameter = parameter
        self.value = value
        super().__init__(f"Unknown value for parameter [{parameter}]: [{value}]")


class DaemonizationError(BootstrapError):
    """Could not detach the process from its controlling terminal"""


class ResourceLimitWarning(Exception):
    """Process resource limits could not be adjusted; startup proceeds"""
