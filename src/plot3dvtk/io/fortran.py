"""
Fortran sequential unformatted record framing.

Fortran writes each unformatted record as a 4-byte byte count, the payload,
and the same 4-byte byte count again. ``FortranRecordReader`` treats the two
markers as checkpoints around an arbitrary sequence of raw value reads, so a
caller can read a record's values one at a time or in bulk.
"""

import logging
import struct
from contextlib import contextmanager
from typing import BinaryIO, Optional

import numpy as np

from plot3dvtk.exceptions import MalformedStreamError, RecordMismatchError

logger = logging.getLogger(__name__)

MARKER_SIZE = 4
INT_SIZE = 4
DOUBLE_SIZE = 8


class FortranRecordReader:
    """Reads values from a stream framed as Fortran sequential records.

    Args:
        stream: Binary input stream
        endian: Byte order ('<' little-endian, '>' big-endian)
    """

    def __init__(self, stream: BinaryIO, endian: str = "<"):
        self.stream = stream
        self.endian = endian
        self._record_length: Optional[int] = None
        self._remaining = 0

    @property
    def in_record(self) -> bool:
        return self._record_length is not None

    @property
    def record_length(self) -> Optional[int]:
        """Payload length of the open record, or None outside a record."""
        return self._record_length

    def open_record(self) -> int:
        """Read the leading record marker.

        Returns:
            Number of payload bytes announced by the marker

        Raises:
            MalformedStreamError: If a record is already open, the stream is
                exhausted, or the marker is negative
        """
        if self.in_record:
            raise MalformedStreamError("Cannot open a record while another record is open")
        length = self._read_marker()
        if length < 0:
            raise MalformedStreamError(f"Invalid record length {length}")
        self._record_length = length
        self._remaining = length
        logger.debug(f"Opened record of {length} bytes")
        return length

    def close_record(self) -> None:
        """Read the trailing record marker and check it against the leading one.

        Raises:
            RecordMismatchError: If the trailing marker differs from the leading one
            MalformedStreamError: If no record is open or the stream is exhausted
        """
        if not self.in_record:
            raise MalformedStreamError("Cannot close a record that was never opened")
        expected = self._record_length
        self._record_length = None
        found = self._read_marker()
        if found != expected:
            raise RecordMismatchError(expected, found)

    @contextmanager
    def record(self):
        """Context manager opening a record on entry and verifying it on exit.

        The trailing marker is checked on every normal exit, including an early
        return from the ``with`` body. When the body raises, the exception is
        propagated without reading further from the stream.
        """
        self.open_record()
        try:
            yield self
        except BaseException:
            self._record_length = None
            raise
        self.close_record()

    def read_ints(self, count: int) -> np.ndarray:
        """Read ``count`` 4-byte signed integers."""
        data = self._read_payload(count * INT_SIZE)
        return np.frombuffer(data, dtype=f"{self.endian}i4", count=count).astype(np.int64)

    def read_int(self) -> int:
        return int(self.read_ints(1)[0])

    def read_doubles(self, count: int) -> np.ndarray:
        """Read ``count`` 8-byte floats."""
        data = self._read_payload(count * DOUBLE_SIZE)
        return np.frombuffer(data, dtype=f"{self.endian}f8", count=count).astype(np.float64)

    def read_double(self) -> float:
        return float(self.read_doubles(1)[0])

    def _read_marker(self) -> int:
        data = self._read_exact(MARKER_SIZE)
        return struct.unpack(f"{self.endian}i", data)[0]

    def _read_payload(self, n_bytes: int) -> bytes:
        # Reads inside a record may not run past its trailing marker.
        if self.in_record:
            if n_bytes > self._remaining:
                raise MalformedStreamError(
                    f"Read of {n_bytes} bytes overruns record with {self._remaining} bytes left"
                )
            self._remaining -= n_bytes
        return self._read_exact(n_bytes)

    def _read_exact(self, n_bytes: int) -> bytes:
        data = self.stream.read(n_bytes)
        if data is None or len(data) < n_bytes:
            got = 0 if data is None else len(data)
            raise MalformedStreamError(f"Unexpected end of stream: wanted {n_bytes} bytes, got {got}")
        return data


class FortranRecordWriter:
    """Writes arrays as Fortran sequential records.

    Args:
        stream: Binary output stream
        endian: Byte order ('<' little-endian, '>' big-endian)
    """

    def __init__(self, stream: BinaryIO, endian: str = "<"):
        self.stream = stream
        self.endian = endian

    def write_record(self, data) -> int:
        """Write one record holding ``data``.

        Args:
            data: A numpy array (written in the writer's byte order) or raw bytes

        Returns:
            Number of payload bytes written
        """
        if isinstance(data, np.ndarray):
            payload = data.astype(data.dtype.newbyteorder(self.endian)).tobytes()
        else:
            payload = bytes(data)
        marker = struct.pack(f"{self.endian}i", len(payload))
        self.stream.write(marker)
        self.stream.write(payload)
        self.stream.write(marker)
        return len(payload)

    def write_ints(self, values) -> int:
        return self.write_record(np.asarray(values, dtype=np.int32))

    def write_doubles(self, values) -> int:
        return self.write_record(np.asarray(values, dtype=np.float64))
