"""
Two-phase configuration resolution.

Phase 1 looks for --configfile alone, ignoring every other argument since the
full schema is not registered yet. Phase 2 registers the full schema, applies
the config file and then the command line, so command-line values win.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional, Sequence

from bootstrap.errors import ConfigError
from bootstrap.options import DatabaseOptions, GeneralOptions, ResolvedOptions, ServerOptions
from bootstrap.parameters import ParameterRegistry, StringParameter
from config import DATA_FORMAT_VERSION, DEFAULT_CONFIG_FILES, ENGINE_VERSION, SERVER_VERSION


logger = logging.getLogger(__name__)

HELP_FLAGS = ('--help', '-h')
GENERATE_DOC_FLAG = '--generate-doc'


@dataclass
class Resolution:
    """
    Outcome of resolve(): either fully resolved options, or informational
    text (usage or documentation) to print before exiting successfully.
    """

    options: ResolvedOptions
    registry: ParameterRegistry
    informational: Optional[str] = None


def discover_config_file(argv: Sequence[str],
                         candidates: Sequence[str] = DEFAULT_CONFIG_FILES) -> str:
    """
    Find the config file to use.

    Args:
        argv: Command-line arguments, without the program name
        candidates: Paths probed in order when --configfile is not given

    Returns:
        Path of the config file, or '' when there is none

    Raises:
        ConfigError: --configfile names a file that does not exist
    """
    holder = GeneralOptions()
    registry = ParameterRegistry(strict=False)
    registry.add(StringParameter('configfile', '', holder, 'configfile'))
    registry.parse_command_line(argv)

    if holder.configfile == '':
        for candidate in candidates:
            if os.path.exists(candidate):
                return candidate
        return ''

    if not os.path.exists(holder.configfile):
        raise ConfigError(f"Could not find configuration file [{holder.configfile}]")
    return holder.configfile


def build_registry(options: ResolvedOptions) -> ParameterRegistry:
    """Register the full parameter schema bound to the given option groups"""
    registry = ParameterRegistry()
    options.general.add_parameters(registry)
    options.database.add_parameters(registry)
    options.server.add_parameters(registry)

    # The server buffers writes adaptively unless told otherwise
    registry.set_default('db.write-buffer.mode', 'adaptive')
    return registry


def format_version() -> str:
    server = '.'.join(str(n) for n in SERVER_VERSION[:3])
    return (
        f"KVServer version: {server}-{SERVER_VERSION[3]}\n"
        f"Engine version: {'.'.join(str(n) for n in ENGINE_VERSION)}\n"
        f"Data format version: {'.'.join(str(n) for n in DATA_FORMAT_VERSION)}\n"
    )


def format_help(registry: ParameterRegistry) -> str:
    return (
        "KVServer is a persisted key-value database server, serving a\n"
        "write-ahead-logged storage backend over HTTP.\n"
        f"{format_version()}"
        "\nParameters:\n\n"
        f"{registry.format_usage()}"
    )


def format_doc(registry: ParameterRegistry) -> str:
    return (
        "Generating the parameter list in markdown format for use in the documentation.\n\n"
        f"{registry.format_markdown()}\n"
    )


def resolve(argv: Sequence[str],
            candidates: Sequence[str] = DEFAULT_CONFIG_FILES) -> Resolution:
    """
    Resolve all options from defaults, config file and command line.

    Raises:
        ConfigError: Bad arguments, missing or unparsable config file
        MandatoryParameterMissing: Mandatory parameters were not found
    """
    # Informational requests never look at config files
    if any(arg in HELP_FLAGS for arg in argv) or GENERATE_DOC_FLAG in argv:
        options = ResolvedOptions(GeneralOptions(), DatabaseOptions(), ServerOptions())
        registry = build_registry(options)
        if any(arg in HELP_FLAGS for arg in argv):
            return Resolution(options, registry, format_help(registry))
        return Resolution(options, registry, format_doc(registry))

    configfile = discover_config_file(argv, candidates)

    options = ResolvedOptions(GeneralOptions(configfile=configfile),
                              DatabaseOptions(), ServerOptions())
    registry = build_registry(options)

    if configfile:
        registry.parse_file(configfile)
    registry.parse_command_line(argv)
    registry.check_mandatory()

    logger.debug("Resolved options from [%s]", configfile or 'command line')
    return Resolution(options, registry)
