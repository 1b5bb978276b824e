"""
Parameter declarations and the registry that parses them.
A parameter binds a name to an attribute of an options object; the registry
fills those attributes from config files and command-line arguments.
"""

import argparse
import re
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from bootstrap.errors import ConfigError, MandatoryParameterMissing


SIZE_UNITS = {
    'b': 1,
    'kb': 1024,
    'mb': 1024 ** 2,
    'gb': 1024 ** 3,
    'tb': 1024 ** 4,
}

# Durations are stored in milliseconds
TIME_UNITS = {
    'ms': 1,
    's': 1000,
    'min': 60 * 1000,
    'h': 60 * 60 * 1000,
}

_TRUE_VALUES = ('true', 'yes', 'on', '1')
_FALSE_VALUES = ('false', 'no', 'off', '0')

_ASSIGNMENT_RE = re.compile(r'^(?P<name>[\w.\-]+)(?:\s*[=:]\s*|\s+|$)(?P<value>.*)$')
_UNSIGNED_RE = re.compile(r'^(?P<number>\d+)\s*(?P<unit>[a-zA-Z]*)$')


class Parameter:
    """
    A named configuration value bound to target.attr.

    Args:
        name: Unique parameter name, e.g. 'db.path'
        default: Value used when no source sets the parameter
        target: Object receiving the parsed value
        attr: Attribute of target receiving the parsed value
        mandatory: Whether a non-empty value must be found in some source
        help: One-line description shown in usage and documentation
    """

    type_name = 'string'

    def __init__(self, name: str, default: Any, target: Any, attr: str,
                 mandatory: bool = False, help: str = ''):
        self.name = name
        self.target = target
        self.attr = attr
        self.mandatory = mandatory
        self.help = help
        self.is_set = False
        self.set_default(default)

    def parse(self, raw: str) -> Any:
        """Convert a raw string to the destination type, raising ValueError"""
        return raw

    def set_default(self, default: Any) -> None:
        """Retune the default; the destination follows unless a source set it"""
        self.default = default
        if isinstance(default, str):
            default = self.parse(default)
        if not self.is_set:
            setattr(self.target, self.attr, default)

    def set_value(self, raw: str) -> None:
        setattr(self.target, self.attr, self.parse(raw))
        self.is_set = True

    @property
    def value(self) -> Any:
        return getattr(self.target, self.attr)

    def format_default(self) -> str:
        return '' if self.default is None else str(self.default)


class StringParameter(Parameter):
    pass


class FlagParameter(Parameter):
    """Boolean parameter; a bare '--name' on the command line sets it"""

    type_name = 'flag'

    def parse(self, raw: str) -> bool:
        lowered = raw.strip().lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
        raise ValueError(f"expected a boolean, got [{raw}]")

    def format_default(self) -> str:
        return 'true' if self.default else 'false'


class UnsignedParameter(Parameter):
    """Non-negative integer, optionally written with a unit suffix"""

    type_name = 'unsigned'

    def __init__(self, name: str, default: Any, target: Any, attr: str,
                 mandatory: bool = False, help: str = '',
                 units: Optional[Dict[str, int]] = None):
        self.units = units
        super().__init__(name, default, target, attr, mandatory, help)

    def parse(self, raw: str) -> int:
        match = _UNSIGNED_RE.match(raw.strip())
        if not match:
            raise ValueError(f"expected an unsigned integer, got [{raw}]")

        number = int(match.group('number'))
        unit = match.group('unit').lower()
        if not unit:
            return number
        if self.units is None or unit not in self.units:
            raise ValueError(f"unknown unit [{match.group('unit')}] in [{raw}]")
        return number * self.units[unit]

    def format_default(self) -> str:
        if not isinstance(self.default, int) or not self.units or self.default == 0:
            return super().format_default()

        # Largest unit that divides the default evenly
        for unit, factor in sorted(self.units.items(), key=lambda item: -item[1]):
            if self.default % factor == 0:
                suffix = unit.upper() if self.units is SIZE_UNITS else unit
                return f"{self.default // factor}{suffix}"
        return str(self.default)


class _ArgumentParser(argparse.ArgumentParser):
    """argparse parser reporting errors as ConfigError instead of exiting"""

    def error(self, message: str) -> None:
        raise ConfigError(message)


class ParameterRegistry:
    """
    Ordered, name-unique collection of parameters.

    In strict mode, unknown parameters in a config file or on the command line
    are errors. In non-strict mode they are ignored, which allows a partial
    schema to pick a few values out of a full command line.
    """

    def __init__(self, strict: bool = True):
        self.strict = strict
        self._parameters: Dict[str, Parameter] = {}

    def add(self, parameter: Parameter) -> Parameter:
        if parameter.name in self._parameters:
            raise ValueError(f"Parameter [{parameter.name}] is already registered")
        self._parameters[parameter.name] = parameter
        return parameter

    def get(self, name: str) -> Parameter:
        return self._parameters[name]

    def __contains__(self, name: str) -> bool:
        return name in self._parameters

    def __iter__(self) -> Iterator[Parameter]:
        return iter(self._parameters.values())

    def __len__(self) -> int:
        return len(self._parameters)

    def set_default(self, name: str, value: Any) -> None:
        self._parameters[name].set_default(value)

    def _apply(self, name: str, raw: str, source: str) -> None:
        parameter = self._parameters.get(name)
        if parameter is None:
            if self.strict:
                raise ConfigError(f"{source}: unknown parameter [{name}]")
            return
        try:
            parameter.set_value(raw)
        except ValueError as e:
            raise ConfigError(f"{source}: invalid value for parameter [{name}]: {e}") from e

    def parse_command_line(self, argv: Sequence[str]) -> None:
        """Apply '--name=value' arguments; argv excludes the program name"""
        parser = _ArgumentParser(add_help=False, allow_abbrev=False)
        for parameter in self:
            if isinstance(parameter, FlagParameter):
                parser.add_argument(f'--{parameter.name}', dest=parameter.name,
                                    nargs='?', const='true', default=argparse.SUPPRESS)
            else:
                parser.add_argument(f'--{parameter.name}', dest=parameter.name,
                                    default=argparse.SUPPRESS)

        if self.strict:
            namespace = parser.parse_args(list(argv))
        else:
            namespace, _ = parser.parse_known_args(list(argv))

        for name, raw in vars(namespace).items():
            self._apply(name, raw, 'command line')

    def parse_file(self, path: str) -> None:
        """Apply the assignments of a config file, one per line"""
        try:
            with open(path, 'r', encoding='utf-8') as f:
                lines = f.readlines()
        except OSError as e:
            raise ConfigError(f"Could not read configuration file [{path}]: {e.strerror}") from e

        for lineno, line in enumerate(lines, start=1):
            source = f"{path}:{lineno}"
            try:
                assignment = _parse_assignment(line)
            except ValueError as e:
                raise ConfigError(f"{source}: {e}") from e
            if assignment is None:
                continue
            name, raw = assignment

            parameter = self._parameters.get(name)
            if raw == '':
                if isinstance(parameter, FlagParameter):
                    raw = 'true'
                elif parameter is not None:
                    raise ConfigError(f"{source}: missing value for parameter [{name}]")
            self._apply(name, raw, source)

    def missing_mandatory(self) -> List[str]:
        return [p.name for p in self
                if p.mandatory and (not p.is_set or p.value in (None, ''))]

    def check_mandatory(self) -> None:
        """Raise listing every mandatory parameter that was not found"""
        missing = self.missing_mandatory()
        if missing:
            raise MandatoryParameterMissing(missing)

    def format_usage(self) -> str:
        lines = []
        for parameter in self:
            lines.append(f"  --{parameter.name}")
            if parameter.help:
                lines.append(f"      {parameter.help}")
            if parameter.mandatory:
                lines.append("      Mandatory.")
            else:
                lines.append(f"      Default: {parameter.format_default()}")
            lines.append("")
        return "\n".join(lines)

    def format_markdown(self) -> str:
        lines = [
            "| Parameter name | Default value | Description |",
            "| --- | --- | --- |",
        ]
        for parameter in self:
            default = 'mandatory' if parameter.mandatory else parameter.format_default()
            description = parameter.help.replace('|', '\\|')
            lines.append(f"| `{parameter.name}` | {default} | {description} |")
        return "\n".join(lines)


def _strip_comment(line: str) -> str:
    """
    Remove a trailing comment. '#' starts a comment at the beginning of the
    line or after whitespace, outside quotes; elsewhere it is part of the value.
    """
    quote = None
    for i, char in enumerate(line):
        if quote:
            if char == quote:
                quote = None
        elif char in ('"', "'"):
            quote = char
        elif char == '#' and (i == 0 or line[i - 1].isspace()):
            return line[:i]
    return line


def _parse_assignment(line: str) -> Optional[Tuple[str, str]]:
    """Split a config file line into (name, raw value); None for blank lines"""
    line = _strip_comment(line).strip()
    if not line:
        return None

    match = _ASSIGNMENT_RE.match(line)
    if not match:
        raise ValueError(f"could not parse line [{line}]")

    value = match.group('value').strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
        value = value[1:-1]
    return match.group('name'), value
