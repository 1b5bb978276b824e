"""
Write-ahead log backing the database.
Every mutation is appended to the log before it is applied in memory, and the
log is replayed when the database is opened again.
"""

import logging
import os
import struct
import threading
import zlib
from dataclasses import dataclass
from typing import BinaryIO, Iterator, Optional


logger = logging.getLogger(__name__)

OP_PUT = 1
OP_DELETE = 2

# Frame: [crc32 of payload][payload length]
_FRAME_HEADER = struct.Struct('>II')
_LENGTH = struct.Struct('>I')


@dataclass
class WALRecord:
    """A single logged mutation; value is None for deletions"""

    operation: int
    key: bytes
    value: Optional[bytes] = None

    def serialize(self) -> bytes:
        # Format: [operation][key_len][key][value_len][value]
        value = self.value or b''
        return (bytes([self.operation]) + _LENGTH.pack(len(self.key)) + self.key
                + _LENGTH.pack(len(value)) + value)

    @classmethod
    def deserialize(cls, payload: bytes) -> 'WALRecord':
        operation = payload[0]
        if operation not in (OP_PUT, OP_DELETE):
            raise ValueError(f"unknown operation {operation}")

        offset = 1
        key_len = _LENGTH.unpack_from(payload, offset)[0]
        offset += _LENGTH.size
        key = payload[offset:offset + key_len]
        offset += key_len

        value_len = _LENGTH.unpack_from(payload, offset)[0]
        offset += _LENGTH.size
        value = payload[offset:offset + value_len]
        if offset + value_len != len(payload):
            raise ValueError("record length mismatch")

        return cls(operation, key, value if operation == OP_PUT else None)


class WAL:
    """
    Append-only log file.

    Args:
        path: Path of the log file
        sync_on_write: fsync after every append; otherwise records reach
            the disk on flush()
    """

    def __init__(self, path: str, sync_on_write: bool = True):
        self.path = path
        self.sync_on_write = sync_on_write
        self._lock = threading.Lock()
        self._file: Optional[BinaryIO] = None
        # Length of the valid prefix found by the last replay
        self._valid_size: Optional[int] = None

    def open(self) -> None:
        """Open for appending, cutting off a corrupted tail found by replay()"""
        with self._lock:
            if self._file is None:
                if self._valid_size is not None and self._valid_size < self.get_size():
                    logger.warning("Truncating %s to %d bytes", self.path, self._valid_size)
                    os.truncate(self.path, self._valid_size)
                self._file = open(self.path, 'ab')

    def close(self) -> None:
        with self._lock:
            if self._file is None:
                return
            self._sync_unlocked()
            self._file.close()
            self._file = None

    def append(self, record: WALRecord) -> None:
        payload = record.serialize()
        frame = _FRAME_HEADER.pack(zlib.crc32(payload) & 0xffffffff, len(payload)) + payload

        with self._lock:
            if self._file is None:
                raise RuntimeError("WAL is not open")
            self._file.write(frame)
            if self.sync_on_write:
                self._sync_unlocked()

    def flush(self) -> None:
        """Push buffered records to disk"""
        with self._lock:
            if self._file is not None:
                self._sync_unlocked()

    def _sync_unlocked(self) -> None:
        self._file.flush()
        os.fsync(self._file.fileno())

    def replay(self) -> Iterator[WALRecord]:
        """
        Yield the logged records in order.
        Reading stops at the first torn or corrupted frame, which can only be
        the tail of a log cut short by a crash. The next open() truncates the
        file after the last valid frame so new records are not written behind
        the damaged tail.
        """
        self._valid_size = 0
        if not os.path.exists(self.path):
            return

        with open(self.path, 'rb') as f:
            while True:
                header = f.read(_FRAME_HEADER.size)
                if not header:
                    break
                if len(header) < _FRAME_HEADER.size:
                    logger.warning("Dropping torn tail of %s", self.path)
                    break
                checksum, length = _FRAME_HEADER.unpack(header)

                payload = f.read(length)
                if len(payload) < length or zlib.crc32(payload) & 0xffffffff != checksum:
                    logger.warning("Dropping corrupted tail of %s", self.path)
                    break

                try:
                    record = WALRecord.deserialize(payload)
                except (ValueError, IndexError, struct.error) as e:
                    logger.warning("Dropping malformed record in %s: %s", self.path, e)
                    break

                self._valid_size = f.tell()
                yield record

    def get_size(self) -> int:
        if os.path.exists(self.path):
            return os.path.getsize(self.path)
        return 0
