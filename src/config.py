"""
Configuration constants for the KVServer bootstrap and its reference server.
"""

import os

# Versions
SERVER_VERSION = (0, 9, 0, 0)  # major, minor, revision, build
ENGINE_VERSION = (0, 9, 0)
DATA_FORMAT_VERSION = (0, 9)

# Config file discovery, probed in order when --configfile is not given
DEFAULT_CONFIG_FILES = ('./kvstore.conf', '/etc/kvstore.conf')

# Supervisor
POLL_INTERVAL = 0.5  # seconds

# Crash diagnostics
MAX_BACKTRACE_DEPTH = 20

# Database options
DEFAULT_CREATE_IF_MISSING = True
DEFAULT_ERROR_IF_EXISTS = False
DEFAULT_WRITE_BUFFER_SIZE = 64 * 1024 * 1024  # 64MB
DEFAULT_WRITE_BUFFER_FLUSH_TIMEOUT = 500  # milliseconds
DEFAULT_WRITE_BUFFER_MODE = 'direct'  # overridden to 'adaptive' by the server
DEFAULT_COMPRESSION_ALGORITHM = 'lz4'
DEFAULT_HASHING_ALGORITHM = 'xxhash-64'
WAL_FILE_NAME = 'wal.log'

# Server options
DEFAULT_HOST = 'localhost'
DEFAULT_PORT = 8080
DEFAULT_NUM_THREADS = 150
DEFAULT_RECV_SOCKET_BUFFER_SIZE = 64 * 1024  # 64KB
DEFAULT_LISTEN_BACKLOG = 150
MAX_REQUEST_SIZE = 10 * 1024 * 1024  # 10MB

# Logging configuration
LOG_LEVEL = 'info'
LOG_TARGET = 'stderr'
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
SYSLOG_ADDRESS = '/dev/log' if os.path.exists('/dev/log') else ('localhost', 514)
