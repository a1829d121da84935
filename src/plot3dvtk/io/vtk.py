"""
VTK XML unstructured grid (.vtu) writer.

Every data array is written in one of three encodings, fixed for a writer:

- ascii: decimal text inline in the DataArray element.
- binary: an 8-byte little-endian payload length followed by the
  little-endian payload, base64 encoded inline.
- appended: the same base64 buffer, deferred to a single AppendedData element
  at the end of the file. The DataArray element only carries the buffer's
  ``offset`` within that element.

A file is written by ``open_file``, any number of ``write_piece`` calls and
``close_file``.
"""

import base64
import logging
import struct
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, TextIO, Tuple, Union

import numpy as np

from plot3dvtk.exceptions import ConfigurationError, WriterStateError
from plot3dvtk.mesh.unstructured import UnstructuredMesh, VtkUnstructuredDataset

logger = logging.getLogger(__name__)

HEADER_FORMAT = "<Q"  # header_type="UInt64"

Attributes = Iterable[Tuple[str, str]]


class VtkFileType(Enum):
    """VTK XML dataset types."""
    NONE = "None"
    UNSTRUCTURED_GRID = "UnstructuredGrid"


class WriterState(Enum):
    CLOSED = "closed"
    OPENED = "opened"


class XmlTagWriter:
    """Streaming writer of nested XML tags.

    Container tags are opened and closed explicitly; the writer keeps the stack
    of open tags so ``close_tag`` needs no name. Complete leaf elements are
    built with ElementTree and written in one go with ``write_element``.
    """

    def __init__(self, indent: str = "  "):
        self.indent = indent
        self._open_tags: List[str] = []

    @property
    def depth(self) -> int:
        return len(self._open_tags)

    def header(self, stream: TextIO, version: str = "1.0", encoding: str = "UTF-8") -> None:
        stream.write(f'<?xml version="{version}" encoding="{encoding}"?>\n')

    @staticmethod
    def element(name: str, attributes: Attributes = (), text: Optional[str] = None) -> ET.Element:
        """Build an element with attributes in the given order."""
        elem = ET.Element(name)
        for key, value in attributes:
            elem.set(key, str(value))
        elem.text = text
        return elem

    def open_tag(self, stream: TextIO, name: str, attributes: Attributes = ()) -> None:
        serialized = ET.tostring(self.element(name, attributes), encoding="unicode",
                                 short_empty_elements=False)
        # Keep the start tag only
        start_tag = serialized[:-len(f"</{name}>")]
        stream.write(f"{self.indent * self.depth}{start_tag}\n")
        self._open_tags.append(name)

    def close_tag(self, stream: TextIO) -> None:
        if not self._open_tags:
            raise WriterStateError("No open XML tag to close")
        name = self._open_tags.pop()
        stream.write(f"{self.indent * self.depth}</{name}>\n")

    def write_element(self, stream: TextIO, elem: ET.Element) -> None:
        """Write a complete element at the current depth."""
        stream.write(f"{self.indent * self.depth}{ET.tostring(elem, encoding='unicode')}\n")


class AppendedDataTrailer:
    """Accumulates encoded data array buffers for the AppendedData element.

    Each buffer already starts with its own length header, so the offsets
    returned by ``submit`` are all a reader needs to find an array.
    """

    def __init__(self, encoding: str = "base64"):
        self.encoding = encoding
        self._buffers: List[bytes] = []
        self._byte_length = 0
        self._flushed = False

    def submit(self, buffer: bytes) -> int:
        """Store a buffer and return its offset within the appended data.

        Raises:
            WriterStateError: If the trailer has already been flushed
        """
        if self._flushed:
            raise WriterStateError("Cannot submit data to a flushed appended data block")
        offset = self._byte_length
        self._buffers.append(bytes(buffer))
        self._byte_length += len(buffer)
        return offset

    @property
    def byte_length(self) -> int:
        return self._byte_length

    @property
    def buffers(self) -> Tuple[bytes, ...]:
        return tuple(self._buffers)

    @property
    def flushed(self) -> bool:
        return self._flushed

    def __len__(self) -> int:
        return len(self._buffers)

    def flush(self, stream: TextIO, tag_writer: XmlTagWriter) -> None:
        """Write the AppendedData element holding every submitted buffer.

        Nothing is written if no buffer was submitted.

        Raises:
            WriterStateError: If called more than once
        """
        if self._flushed:
            raise WriterStateError("Appended data has already been flushed")
        self._flushed = True
        if not self._buffers:
            return
        tag_writer.open_tag(stream, "AppendedData", [("encoding", self.encoding)])
        stream.write(tag_writer.indent * tag_writer.depth)
        stream.write("_")
        for buffer in self._buffers:
            stream.write(buffer.decode("ascii"))
        stream.write("\n")
        tag_writer.close_tag(stream)
        logger.debug(f"Flushed {len(self._buffers)} appended arrays ({self._byte_length} bytes)")


@dataclass
class _WriterSession:
    """State of one file being written."""
    file_type: VtkFileType
    state: WriterState = WriterState.OPENED
    pieces_written: int = 0
    trailer: AppendedDataTrailer = field(default_factory=AppendedDataTrailer)


class VtkWriter:
    """Writer for VTK XML unstructured grid files.

    Attributes:
        ascii: Write data arrays as decimal text
        appended: Defer data arrays to the AppendedData element
        write_precision: Significant digits of floating point ascii output
    """

    def __init__(self, ascii: bool = False, appended: bool = True, write_precision: int = 6):
        self.ascii = ascii
        self.appended = appended
        self.write_precision = write_precision
        self._xml = XmlTagWriter()
        self._session: Optional[_WriterSession] = None

    @property
    def state(self) -> WriterState:
        return self._session.state if self._session else WriterState.CLOSED

    @property
    def pieces_written(self) -> int:
        return self._session.pieces_written if self._session else 0

    def open_file(self, stream: TextIO, file_type: Union[VtkFileType, str]) -> None:
        """Write the XML prologue and open the dataset element.

        Raises:
            ConfigurationError: If the file type is not UnstructuredGrid or the
                encoding options conflict
            WriterStateError: If a file is already open
        """
        file_type = self._coerce_file_type(file_type)
        if file_type is not VtkFileType.UNSTRUCTURED_GRID:
            raise ConfigurationError(f"Unsupported VTK file type: {file_type.value}")
        self._check_options()
        if self.state is WriterState.OPENED:
            raise WriterStateError("A VTK file is already open; call close_file first")

        self._session = _WriterSession(file_type)
        self._xml = XmlTagWriter()
        self._xml.header(stream, "1.0", "UTF-8")
        self._xml.open_tag(stream, "VTKFile", [
            ("type", file_type.value),
            ("version", "1.0"),
            ("byte_order", "LittleEndian"),
            ("header_type", "UInt64"),
        ])
        self._xml.open_tag(stream, file_type.value)

    def write_piece(self, stream: TextIO, data: VtkUnstructuredDataset) -> None:
        """Write one Piece element for a dataset.

        Raises:
            WriterStateError: If no file is open
            ConfigurationError: If the open file is not an unstructured grid or
                the encoding options conflict
        """
        if self.state is not WriterState.OPENED:
            raise WriterStateError("write_piece called before open_file")
        if self._session.file_type is not VtkFileType.UNSTRUCTURED_GRID:
            raise ConfigurationError("Open VTK file is not an unstructured grid")
        self._check_options()

        mesh = data.mesh
        self._xml.open_tag(stream, "Piece", [
            ("NumberOfPoints", str(mesh.num_points())),
            ("NumberOfCells", str(mesh.num_cells())),
        ])
        self._write_mesh(stream, mesh)
        self._write_field_block(stream, "PointData", data.integer_point_data,
                                data.scalar_point_data, data.vector_point_data)
        self._write_field_block(stream, "CellData", data.integer_cell_data,
                                data.scalar_cell_data, data.vector_cell_data)
        self._xml.close_tag(stream)

        self._session.pieces_written += 1
        logger.debug(f"Wrote piece {self._session.pieces_written}: "
                     f"{mesh.num_points()} points, {mesh.num_cells()} cells")

    def close_file(self, stream: TextIO) -> None:
        """Close the dataset element, write appended data and close the file.

        Raises:
            WriterStateError: If no file is open
        """
        if self.state is not WriterState.OPENED:
            raise WriterStateError("close_file called without an open file")
        self._xml.close_tag(stream)
        if len(self._session.trailer):
            self._session.trailer.flush(stream, self._xml)
        self._xml.close_tag(stream)
        self._session.state = WriterState.CLOSED

    def write_file(self, filename: str, datasets: Iterable[VtkUnstructuredDataset]) -> int:
        """Write datasets as the pieces of a new .vtu file.

        Returns:
            Number of pieces written
        """
        logger.info(f"Writing VTK unstructured grid: {filename}")
        with open(filename, "w", encoding="utf-8") as f:
            self.open_file(f, VtkFileType.UNSTRUCTURED_GRID)
            for dataset in datasets:
                self.write_piece(f, dataset)
            pieces = self.pieces_written
            self.close_file(f)
        logger.info(f"Wrote {pieces} piece(s) to {filename}")
        return pieces

    def _write_mesh(self, stream: TextIO, mesh: UnstructuredMesh) -> None:
        self._xml.open_tag(stream, "Points")
        self._data_array(stream, "Points", mesh.points, "Float64", 3)
        self._xml.close_tag(stream)

        self._xml.open_tag(stream, "Cells")
        self._data_array(stream, "types", mesh.cell_types(), "Int64", 1)
        self._data_array(stream, "offsets", mesh.offsets(), "Int64", 1)
        self._data_array(stream, "connectivity", mesh.connectivity(), "Int64", 1)
        self._xml.close_tag(stream)

    def _write_field_block(self, stream: TextIO, tag: str, integers: Dict[str, np.ndarray],
                           scalars: Dict[str, np.ndarray], vectors: Dict[str, np.ndarray]) -> None:
        self._xml.open_tag(stream, tag)
        for name, values in integers.items():
            self._data_array(stream, name, values, "Int64", 1)
        for name, values in scalars.items():
            self._data_array(stream, name, values, "Float64", 1)
        for name, values in vectors.items():
            self._data_array(stream, name, values, "Float64", 3)
        self._xml.close_tag(stream)

    def _data_array(self, stream: TextIO, name: str, values, vtk_type: str, components: int) -> None:
        attributes = [
            ("type", vtk_type),
            ("Name", name),
            ("NumberOfComponents", str(components)),
        ]
        if self.ascii:
            attributes.append(("format", "ascii"))
            text = "\n" + self.format_ascii(values, vtk_type, components) + self._xml.indent * self._xml.depth
            self._xml.write_element(stream, self._xml.element("DataArray", attributes, text))
            return

        buffer = self.encode_binary(values, vtk_type, components)
        if self.appended:
            offset = self._session.trailer.submit(buffer)
            # VTK readers look the attribute up as lowercase "offset"
            attributes += [("format", "appended"), ("offset", str(offset))]
            self._xml.write_element(stream, self._xml.element("DataArray", attributes))
        else:
            attributes.append(("format", "binary"))
            self._xml.write_element(stream, self._xml.element("DataArray", attributes, buffer.decode("ascii")))

    def format_ascii(self, values, vtk_type: str, components: int) -> str:
        """Render values as text, one value (or one vector) per line."""
        if vtk_type.startswith("Int"):
            flat = np.asarray(values, dtype=np.int64).reshape(-1, components)
            lines = [" ".join(str(int(v)) for v in row) for row in flat]
        else:
            flat = np.asarray(values, dtype=np.float64).reshape(-1, components)
            p = self.write_precision
            lines = [" ".join(f"{v:.{p}g}" for v in row) for row in flat]
        return "".join(line + "\n" for line in lines)

    @staticmethod
    def encode_binary(values, vtk_type: str, components: int) -> bytes:
        """Pack values little-endian behind a UInt64 byte count and base64 encode them."""
        dtype = "<i8" if vtk_type.startswith("Int") else "<f8"
        payload = np.asarray(values).astype(dtype).reshape(-1, components).tobytes()
        return base64.b64encode(struct.pack(HEADER_FORMAT, len(payload)) + payload)

    def _check_options(self) -> None:
        if self.ascii and self.appended:
            raise ConfigurationError("ASCII output cannot be combined with appended data")

    @staticmethod
    def _coerce_file_type(file_type: Union[VtkFileType, str]) -> VtkFileType:
        if isinstance(file_type, VtkFileType):
            return file_type
        try:
            return VtkFileType(file_type)
        except ValueError:
            raise ConfigurationError(f"Unknown VTK file type: {file_type!r}") from None
