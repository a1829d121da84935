"""
Plot3D grid file reader and writer.

This module reads the grid (``.xyz``) member of the Plot3D family in both of its
common encodings:

- ASCII: an optional block count line, one line of extents per block, then the
  coordinates of each block as whitespace-separated numbers.
- Fortran unformatted binary: the block count, the table of extents, and each
  block's coordinates are each wrapped in one sequential record.

Within a block all x values are stored first (i varying fastest, then j, then
k), then all y values, then, for 3D grids, all z values.

Blocks are not accumulated by the parser. Each completed block is passed to
the callables registered with ``add_2d_block_function`` or
``add_3d_block_function``, in registration order. A callable returning a falsy
value stops the remaining callables for that block only; the next block is
still read and dispatched to every callable.
"""

import logging
import math
import os
import re
from typing import BinaryIO, Callable, IO, List, Optional, Sequence, TextIO, Union

import numpy as np

from plot3dvtk.exceptions import ConfigurationError, MalformedStreamError
from plot3dvtk.io.fortran import DOUBLE_SIZE, FortranRecordReader, FortranRecordWriter
from plot3dvtk.mesh.blocks import StructuredMeshBlock2D, StructuredMeshBlock3D

logger = logging.getLogger(__name__)

# Default significant digits for ASCII coordinate output
PLOT3D_PRECISION = 6

_EXTENT_SEPARATORS = re.compile(r"[\s,;()\[\]]+")
_LEADING_INTEGER = re.compile(r"\s*([-+]?\d+)")

Block = Union[StructuredMeshBlock2D, StructuredMeshBlock3D]
BlockFunction2D = Callable[[StructuredMeshBlock2D], bool]
BlockFunction3D = Callable[[StructuredMeshBlock3D], bool]


def tokenise(line: str) -> List[str]:
    """Split a line on whitespace and simple punctuation."""
    return [t for t in _EXTENT_SEPARATORS.split(line) if t]


def _atoi(text: str) -> int:
    """Parse a leading integer like C ``atoi``: anything else yields 0."""
    match = _LEADING_INTEGER.match(text)
    return int(match.group(1)) if match else 0


class _AsciiReader:
    """Line-counting reader over a text (or bytes) stream."""

    def __init__(self, stream: IO):
        self.stream = stream
        self.line_number = 0
        self._pending: List[str] = []

    def readline(self) -> str:
        line = self.stream.readline()
        if isinstance(line, bytes):
            line = line.decode("ascii", errors="replace")
        if not line:
            raise MalformedStreamError("Unexpected end of file", self.line_number + 1)
        self.line_number += 1
        return line

    def next_value(self) -> float:
        """Return the next whitespace-separated number, reading further lines as needed."""
        while not self._pending:
            # Reversed so that pop() returns tokens in file order
            self._pending = self.readline().split()[::-1]
        token = self._pending.pop()
        try:
            return float(token.replace("D", "E").replace("d", "e"))
        except ValueError:
            raise MalformedStreamError(f"Expected a number, got {token!r}", self.line_number) from None

    def read_values(self, count: int) -> np.ndarray:
        values = np.empty(count, dtype=np.float64)
        for n in range(count):
            values[n] = self.next_value()
        return values


class Plot3DParser:
    """Parser for Plot3D grid files.

    Attributes:
        dimensions: Number of spatial dimensions (2 or 3)
        binary: Whether the file is Fortran unformatted binary (else ASCII)
        single_block: Whether the file omits the block count (exactly one block)
        endian: Byte order of binary files ('<' little, '>' big)
    """

    def __init__(self, dimensions: int = 3, binary: bool = True,
                 single_block: bool = False, endian: str = "<"):
        self.dimensions = dimensions
        self.binary = binary
        self.single_block = single_block
        self.endian = endian
        self._block_functions_2d: List[BlockFunction2D] = []
        self._block_functions_3d: List[BlockFunction3D] = []

    def add_2d_block_function(self, func: BlockFunction2D) -> None:
        """Register a callable receiving every 2D block."""
        if not callable(func):
            raise TypeError(f"Block function must be callable, got {type(func).__name__}")
        self._block_functions_2d.append(func)

    def add_3d_block_function(self, func: BlockFunction3D) -> None:
        """Register a callable receiving every 3D block."""
        if not callable(func):
            raise TypeError(f"Block function must be callable, got {type(func).__name__}")
        self._block_functions_3d.append(func)

    def parse(self, stream: IO, error_stream: Optional[TextIO] = None) -> int:
        """Parse a Plot3D grid from an open stream.

        Args:
            stream: Binary stream for binary files; text or binary stream for ASCII
            error_stream: Optional text stream receiving a diagnostic line on failure

        Returns:
            Number of blocks read

        Raises:
            ConfigurationError: If ``dimensions`` is neither 2 nor 3
            MalformedStreamError: If the stream is truncated or malformed
        """
        if self.dimensions not in (2, 3):
            raise ConfigurationError(f"Plot3D dimensions must be 2 or 3, got {self.dimensions}")

        try:
            if self.binary:
                return self._parse_binary(stream)
            return self._parse_ascii(stream)
        except MalformedStreamError as e:
            if error_stream is not None:
                error_stream.write(f"Plot3D parse error: {e}\n")
            raise

    def parse_file(self, filename: str, error_stream: Optional[TextIO] = None) -> int:
        """Open ``filename`` in the mode the configuration needs and parse it."""
        if not os.path.exists(filename):
            raise FileNotFoundError(f"Plot3D file not found: {filename}")
        logger.info(f"Reading {'binary' if self.binary else 'ASCII'} {self.dimensions}D Plot3D file: {filename}")
        # ASCII lines are decoded by the reader, so both encodings open in binary mode
        with open(filename, "rb") as f:
            n_blocks = self.parse(f, error_stream)
        logger.info(f"Read {n_blocks} block(s) from {filename}")
        return n_blocks

    def _parse_ascii(self, stream: IO) -> int:
        reader = _AsciiReader(stream)

        if self.single_block:
            n_blocks = 1
        else:
            n_blocks = _atoi(reader.readline())
            if n_blocks < 1:
                raise MalformedStreamError(f"Invalid number of blocks {n_blocks}", reader.line_number)

        extents = []
        for _ in range(n_blocks):
            tokens = tokenise(reader.readline())
            if len(tokens) < self.dimensions:
                raise MalformedStreamError(
                    f"Expected {self.dimensions} block extents, got {len(tokens)}", reader.line_number
                )
            try:
                block_extent = [int(t) for t in tokens[:self.dimensions]]
            except ValueError:
                raise MalformedStreamError(f"Invalid block extents {tokens}", reader.line_number) from None
            self._check_extent(block_extent, reader.line_number)
            extents.append(block_extent)
        logger.debug(f"Block extents: {extents}")

        for n, block_extent in enumerate(extents):
            block = self._allocate_block(block_extent, reader.line_number)
            for axis in range(self.dimensions):
                block.set_axis(axis, reader.read_values(block.size()))
            logger.debug(f"Read block {n + 1}/{n_blocks} ending on line {reader.line_number}")
            self._dispatch(block)

        return n_blocks

    def _parse_binary(self, stream: BinaryIO) -> int:
        fortran = FortranRecordReader(stream, self.endian)

        if self.single_block:
            n_blocks = 1
        else:
            with fortran.record():
                n_blocks = fortran.read_int()
            if n_blocks < 1:
                raise MalformedStreamError(f"Invalid number of blocks {n_blocks}")

        with fortran.record():
            table = fortran.read_ints(n_blocks * self.dimensions)
        extents = table.reshape(n_blocks, self.dimensions).tolist()
        for block_extent in extents:
            self._check_extent(block_extent)
        logger.debug(f"Block extents: {extents}")

        for n, block_extent in enumerate(extents):
            with fortran.record():
                n_bytes = math.prod(block_extent) * self.dimensions * DOUBLE_SIZE
                if fortran.record_length != n_bytes:
                    raise MalformedStreamError(
                        f"Block {n + 1} with extents {block_extent} needs a {n_bytes} byte record, "
                        f"got {fortran.record_length}"
                    )
                block = self._allocate_block(block_extent)
                for axis in range(self.dimensions):
                    block.set_axis(axis, fortran.read_doubles(block.size()))
            logger.debug(f"Read block {n + 1}/{n_blocks}")
            self._dispatch(block)

        return n_blocks

    def _check_extent(self, block_extent: Sequence[int], line_number: Optional[int] = None) -> None:
        if any(e < 1 for e in block_extent):
            raise MalformedStreamError(f"Block extents must be positive, got {list(block_extent)}", line_number)

    def _allocate_block(self, block_extent: Sequence[int],
                        line_number: Optional[int] = None) -> StructuredMeshBlock3D:
        ni, nj = block_extent[0], block_extent[1]
        nk = block_extent[2] if self.dimensions == 3 else 1
        try:
            return StructuredMeshBlock3D((ni, nj, nk))
        except (MemoryError, ValueError) as e:
            raise MalformedStreamError(f"Cannot allocate block with extents {list(block_extent)}: {e}",
                                       line_number) from e

    def _dispatch(self, block: StructuredMeshBlock3D) -> None:
        if self.dimensions == 3:
            target, functions = block, self._block_functions_3d
        else:
            target, functions = block.to_2d(), self._block_functions_2d
        for func in functions:
            if not func(target):
                # Only the remaining functions for this block are skipped.
                break


def read_blocks(filename: str, dimensions: int = 3, binary: bool = True,
                single_block: bool = False, endian: str = "<") -> List[Block]:
    """Read every block of a Plot3D grid file into a list.

    Args:
        filename: Path to the Plot3D file
        dimensions: Number of spatial dimensions (2 or 3)
        binary: Whether the file is Fortran unformatted binary
        single_block: Whether the file omits the block count
        endian: Byte order of binary files

    Returns:
        List of StructuredMeshBlock2D or StructuredMeshBlock3D, in file order
    """
    blocks: List[Block] = []

    def collect(block):
        blocks.append(block)
        return True

    parser = Plot3DParser(dimensions, binary, single_block, endian)
    parser.add_2d_block_function(collect)
    parser.add_3d_block_function(collect)
    parser.parse_file(filename)
    return blocks


def write_plot3d(stream: IO, blocks: Sequence[Block], binary: bool = False,
                 single_block: bool = False, endian: str = "<",
                 precision: int = PLOT3D_PRECISION) -> None:
    """Write structured blocks as a Plot3D grid.

    Args:
        stream: Text stream for ASCII output, binary stream for binary output
        blocks: 2D or 3D blocks, all of the same kind
        binary: Write Fortran unformatted records instead of ASCII
        single_block: Omit the block count (requires exactly one block)
        endian: Byte order of binary output
        precision: Significant digits of ASCII coordinates

    Raises:
        ValueError: If the blocks are empty, mixed, or single_block is set with
            more than one block
    """
    if not blocks:
        raise ValueError("No blocks to write")
    ndim = blocks[0].ndim
    if any(b.ndim != ndim for b in blocks):
        raise ValueError("Cannot mix 2D and 3D blocks in one Plot3D file")
    if single_block and len(blocks) != 1:
        raise ValueError(f"Single-block output requires exactly 1 block, got {len(blocks)}")

    if binary:
        fortran = FortranRecordWriter(stream, endian)
        if not single_block:
            fortran.write_ints([len(blocks)])
        fortran.write_ints([e for b in blocks for e in b.extent()])
        for block in blocks:
            fortran.write_doubles(np.concatenate([block.axis_values(a) for a in range(ndim)]))
        return

    if not single_block:
        stream.write(f"{len(blocks)}\n")
    for block in blocks:
        stream.write(" ".join(str(e) for e in block.extent()) + "\n")
    for block in blocks:
        ni = block.extent()[0]
        for axis in range(ndim):
            values = block.axis_values(axis)
            # One row of i per line
            for start in range(0, len(values), ni):
                row = values[start:start + ni]
                stream.write(" ".join(f"{v:.{precision}g}" for v in row) + "\n")
