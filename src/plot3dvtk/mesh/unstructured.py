"""
Unstructured mesh data structures for VTK output.

Provides the VTK cell type constants with their element metadata, an
unstructured mesh made of points and typed cells, and the dataset container
that pairs a mesh with named point and cell fields.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Sequence, Union

import numpy as np

logger = logging.getLogger(__name__)


class VTKCellType(Enum):
    """VTK cell type constants."""
    VERTEX = 1
    POLY_VERTEX = 2
    LINE = 3
    POLY_LINE = 4
    TRIANGLE = 5
    TRIANGLE_STRIP = 6
    POLYGON = 7
    PIXEL = 8
    QUAD = 9
    TETRA = 10
    VOXEL = 11
    HEXAHEDRON = 12
    WEDGE = 13
    PYRAMID = 14
    QUADRATIC_EDGE = 21
    QUADRATIC_TRIANGLE = 22
    QUADRATIC_QUAD = 23
    QUADRATIC_TETRA = 24
    QUADRATIC_HEXAHEDRON = 25


# (name, node count, dimensions, gmsh element id)
# Node count -1 means variable, gmsh id -1 means no equivalent with the same node ordering.
_ELEMENT_INFO = {
    VTKCellType.VERTEX: ("vertex", 1, 0, 15),
    VTKCellType.POLY_VERTEX: ("poly_vertex", -1, 0, -1),
    VTKCellType.LINE: ("line", 2, 1, 1),
    VTKCellType.POLY_LINE: ("poly_line", -1, 1, -1),
    VTKCellType.TRIANGLE: ("triangle", 3, 2, 2),
    VTKCellType.TRIANGLE_STRIP: ("triangle_strip", -1, 2, -1),
    VTKCellType.POLYGON: ("polygon", -1, 2, -1),
    VTKCellType.PIXEL: ("pixel", 4, 2, -1),
    VTKCellType.QUAD: ("quad", 4, 2, 3),
    VTKCellType.TETRA: ("tetra", 4, 3, 4),
    VTKCellType.VOXEL: ("voxel", 8, 3, -1),
    VTKCellType.HEXAHEDRON: ("hexahedron", 8, 3, 5),
    VTKCellType.WEDGE: ("wedge", 6, 3, 6),
    VTKCellType.PYRAMID: ("pyramid", 5, 3, 7),
    VTKCellType.QUADRATIC_EDGE: ("quadratic_edge", 3, 1, 8),
    VTKCellType.QUADRATIC_TRIANGLE: ("quadratic_triangle", 6, 2, 9),
    VTKCellType.QUADRATIC_QUAD: ("quadratic_quad", 8, 2, 16),
    VTKCellType.QUADRATIC_TETRA: ("quadratic_tetra", 10, 3, 11),
    VTKCellType.QUADRATIC_HEXAHEDRON: ("quadratic_hexahedron", 20, 3, -1),
}

CellTypeLike = Union[VTKCellType, int]


def _lookup(cell_type: CellTypeLike):
    try:
        return _ELEMENT_INFO[VTKCellType(cell_type)]
    except ValueError:
        return None


def element_name(cell_type: CellTypeLike) -> str:
    """Return a descriptive name for a VTK cell type, or 'unknown'."""
    info = _lookup(cell_type)
    return info[0] if info else "unknown"


def element_node_count(cell_type: CellTypeLike) -> int:
    """Return the node count of a VTK cell type.

    Returns -1 for cells with a variable number of nodes and -2 for an
    unknown cell type.
    """
    info = _lookup(cell_type)
    return info[1] if info else -2


def element_dimensions(cell_type: CellTypeLike) -> int:
    """Return the topological dimension of a VTK cell type, or -1 if unknown."""
    info = _lookup(cell_type)
    return info[2] if info else -1


def to_gmsh_element_id(cell_type: CellTypeLike) -> int:
    """Return the equivalent Gmsh element id, or -1 if there is none."""
    info = _lookup(cell_type)
    return info[3] if info else -1


@dataclass
class UnstructuredCell:
    """A single cell: a VTK cell type and the ordered ids of its nodes."""
    cell_type: int
    node_ids: List[int]

    def __post_init__(self):
        self.cell_type = int(getattr(self.cell_type, "value", self.cell_type))
        self.node_ids = [int(n) for n in self.node_ids]


class UnstructuredMesh:
    """Ordered list of 3D points and ordered list of cells indexing into them."""

    def __init__(self, points: Sequence[Sequence[float]] = None,
                 cells: Sequence[UnstructuredCell] = None):
        if points is None or len(points) == 0:
            self.points = np.zeros((0, 3), dtype=np.float64)
        else:
            self.points = np.asarray(points, dtype=np.float64).reshape(-1, 3)
        self.cells: List[UnstructuredCell] = list(cells) if cells else []

    def num_points(self) -> int:
        return len(self.points)

    def num_cells(self) -> int:
        return len(self.cells)

    def add_point(self, point: Sequence[float]) -> int:
        """Append a point and return its index."""
        self.points = np.vstack([self.points, np.asarray(point, dtype=np.float64).reshape(1, 3)])
        return len(self.points) - 1

    def add_cell(self, cell_type: CellTypeLike, node_ids: Sequence[int]) -> int:
        """Append a cell and return its index."""
        self.cells.append(UnstructuredCell(cell_type, list(node_ids)))
        return len(self.cells) - 1

    def merge(self, other: "UnstructuredMesh") -> int:
        """Append the points and cells of another mesh.

        Node ids of the appended cells are shifted by the current point count.

        Returns:
            The offset applied to the appended node ids
        """
        offset = self.num_points()
        self.points = np.vstack([self.points, other.points])
        for cell in other.cells:
            self.cells.append(UnstructuredCell(cell.cell_type, [n + offset for n in cell.node_ids]))
        return offset

    def cell_types(self) -> np.ndarray:
        return np.array([c.cell_type for c in self.cells], dtype=np.int64)

    def offsets(self) -> np.ndarray:
        """Running total of node counts after each cell."""
        return np.cumsum([len(c.node_ids) for c in self.cells], dtype=np.int64)

    def connectivity(self) -> np.ndarray:
        """All cell node ids flattened in cell order."""
        flat = [n for c in self.cells for n in c.node_ids]
        return np.array(flat, dtype=np.int64)

    def __repr__(self):
        return f"UnstructuredMesh(points={self.num_points()}, cells={self.num_cells()})"


@dataclass
class VtkUnstructuredDataset:
    """A mesh plus named integer, scalar and vector fields on points and cells.

    Field arrays must hold one entry per point (point fields) or per cell
    (cell fields). Vector fields hold three components per entry. Lengths are
    not validated when the dataset is written.
    """
    mesh: UnstructuredMesh = field(default_factory=UnstructuredMesh)
    integer_point_data: Dict[str, np.ndarray] = field(default_factory=dict)
    scalar_point_data: Dict[str, np.ndarray] = field(default_factory=dict)
    vector_point_data: Dict[str, np.ndarray] = field(default_factory=dict)
    integer_cell_data: Dict[str, np.ndarray] = field(default_factory=dict)
    scalar_cell_data: Dict[str, np.ndarray] = field(default_factory=dict)
    vector_cell_data: Dict[str, np.ndarray] = field(default_factory=dict)
