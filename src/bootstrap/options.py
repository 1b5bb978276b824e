"""
Option groups resolved at startup: general bootstrap options, database options
and server options. Each group registers its own parameters.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from bootstrap.parameters import (
    FlagParameter, ParameterRegistry, SIZE_UNITS, StringParameter,
    TIME_UNITS, UnsignedParameter,
)
from config import (
    DEFAULT_COMPRESSION_ALGORITHM, DEFAULT_CREATE_IF_MISSING, DEFAULT_CONFIG_FILES,
    DEFAULT_ERROR_IF_EXISTS, DEFAULT_HASHING_ALGORITHM, DEFAULT_HOST,
    DEFAULT_LISTEN_BACKLOG, DEFAULT_NUM_THREADS, DEFAULT_PORT,
    DEFAULT_RECV_SOCKET_BUFFER_SIZE, DEFAULT_WRITE_BUFFER_FLUSH_TIMEOUT,
    DEFAULT_WRITE_BUFFER_MODE, DEFAULT_WRITE_BUFFER_SIZE, LOG_LEVEL, LOG_TARGET,
)


class CompressionType(Enum):
    DISABLED = 'disabled'
    LZ4 = 'lz4'


class HashType(Enum):
    XXHASH_64 = 'xxhash-64'
    MURMURHASH3_64 = 'murmurhash3-64'


class WriteBufferMode(Enum):
    DIRECT = 'direct'
    ADAPTIVE = 'adaptive'


def _choices(enum_class) -> str:
    return ', '.join(f'"{member.value}"' for member in enum_class)


@dataclass
class GeneralOptions:
    db_path: str = ''
    configfile: str = ''
    foreground: bool = False

    def add_parameters(self, registry: ParameterRegistry) -> None:
        registry.add(StringParameter(
            'configfile', self.configfile, self, 'configfile',
            help=f"Configuration file. If not specified, the paths "
                 f"{' and '.join(DEFAULT_CONFIG_FILES)} will be tested."))
        registry.add(FlagParameter(
            'foreground', self.foreground, self, 'foreground',
            help="When set, the server will run as a foreground process. "
                 "By default, the server runs as a daemon process."))
        registry.add(StringParameter(
            'db.path', self.db_path, self, 'db_path', mandatory=True,
            help="Path where the database can be found or will be created."))


@dataclass
class DatabaseOptions:
    """
    Database options. The string fields of the enumerated options hold what
    was parsed; the typed modes are filled in by option validation.
    """

    create_if_missing: bool = DEFAULT_CREATE_IF_MISSING
    error_if_exists: bool = DEFAULT_ERROR_IF_EXISTS
    write_buffer_size: int = DEFAULT_WRITE_BUFFER_SIZE
    write_buffer_flush_timeout: int = DEFAULT_WRITE_BUFFER_FLUSH_TIMEOUT
    write_buffer_mode_str: str = DEFAULT_WRITE_BUFFER_MODE
    compression_algorithm: str = DEFAULT_COMPRESSION_ALGORITHM
    hashing_algorithm: str = DEFAULT_HASHING_ALGORITHM
    log_level: str = LOG_LEVEL
    log_target: str = LOG_TARGET

    compression: Optional[CompressionType] = None
    hash: Optional[HashType] = None
    write_buffer_mode: Optional[WriteBufferMode] = None

    def add_parameters(self, registry: ParameterRegistry) -> None:
        registry.add(FlagParameter(
            'db.create-if-missing', self.create_if_missing, self, 'create_if_missing',
            help="Will create the database if it does not already exist."))
        registry.add(FlagParameter(
            'db.error-if-exists', self.error_if_exists, self, 'error_if_exists',
            help="Will exit if the database already exists."))
        registry.add(UnsignedParameter(
            'db.write-buffer.size', self.write_buffer_size, self, 'write_buffer_size',
            units=SIZE_UNITS,
            help="Size of the write buffer held in memory before it is flushed."))
        registry.add(UnsignedParameter(
            'db.write-buffer.flush-timeout', self.write_buffer_flush_timeout, self,
            'write_buffer_flush_timeout', units=TIME_UNITS,
            help="Maximum delay before buffered writes are flushed to disk, "
                 "in adaptive mode. 0 means buffered writes are only flushed "
                 "when the database is closed."))
        registry.add(StringParameter(
            'db.write-buffer.mode', self.write_buffer_mode_str, self, 'write_buffer_mode_str',
            help=f"Write buffer mode, one of {_choices(WriteBufferMode)}. In direct mode "
                 f"every write is synced to disk; in adaptive mode writes are "
                 f"synced at every flush."))
        registry.add(StringParameter(
            'storage.compression-algorithm', self.compression_algorithm, self,
            'compression_algorithm',
            help=f"Compression algorithm, one of {_choices(CompressionType)}."))
        registry.add(StringParameter(
            'storage.hashing-algorithm', self.hashing_algorithm, self, 'hashing_algorithm',
            help=f"Hashing algorithm, one of {_choices(HashType)}."))
        registry.add(StringParameter(
            'log.level', self.log_level, self, 'log_level',
            help="Level of the logging, one of \"silent\", \"emerg\", \"alert\", "
                 "\"crit\", \"error\", \"warn\", \"notice\", \"info\", \"debug\", "
                 "\"trace\"."))
        registry.add(StringParameter(
            'log.target', self.log_target, self, 'log_target',
            help="Target of the logs: \"stderr\" logs to the error stream, any "
                 "other value logs to syslog with that value as the identifier."))


@dataclass
class ServerOptions:
    interface_address: str = DEFAULT_HOST
    interface_port: int = DEFAULT_PORT
    num_threads: int = DEFAULT_NUM_THREADS
    recv_socket_buffer_size: int = DEFAULT_RECV_SOCKET_BUFFER_SIZE
    listen_backlog: int = DEFAULT_LISTEN_BACKLOG

    def add_parameters(self, registry: ParameterRegistry) -> None:
        registry.add(StringParameter(
            'server.interface.address', self.interface_address, self, 'interface_address',
            help="Address on which the server listens."))
        registry.add(UnsignedParameter(
            'server.interface.port', self.interface_port, self, 'interface_port',
            help="Port on which the server listens."))
        registry.add(UnsignedParameter(
            'server.num-threads', self.num_threads, self, 'num_threads',
            help="Maximum number of requests served concurrently."))
        registry.add(UnsignedParameter(
            'server.recv-socket-buffer-size', self.recv_socket_buffer_size, self,
            'recv_socket_buffer_size', units=SIZE_UNITS,
            help="Size of the receive buffer of the client sockets."))
        registry.add(UnsignedParameter(
            'server.listen-backlog', self.listen_backlog, self, 'listen_backlog',
            help="Size of the listen() backlog."))


@dataclass
class ResolvedOptions:
    general: GeneralOptions
    database: DatabaseOptions
    server: ServerOptions
