"""
Structured mesh blocks.

A Plot3D grid file holds one or more rectangular blocks of coordinates. Two
concrete block types are provided: ``StructuredMeshBlock3D`` indexed by
``(i, j, k)`` holding ``(x, y, z)`` and ``StructuredMeshBlock2D`` indexed by
``(i, j)`` holding ``(x, y)``. A 3D block with a single k layer can be
projected onto a 2D block with ``StructuredMeshBlock3D.to_2d``.
"""

import logging
from typing import Optional, Sequence, Tuple

import numpy as np

logger = logging.getLogger(__name__)


class _StructuredMeshBlock:
    """Shared storage and index checking for structured blocks."""

    ndim = 0

    def __init__(self, extent: Optional[Sequence[int]] = None):
        self._extent: Optional[Tuple[int, ...]] = None
        self._coords: Optional[np.ndarray] = None
        if extent is not None:
            self.set_extent(extent)

    def set_extent(self, extent: Sequence[int]) -> None:
        """Set the block extents, discarding any stored coordinates.

        Args:
            extent: One positive integer per index direction

        Raises:
            ValueError: If the number of extents or any extent is invalid
        """
        extent = tuple(int(e) for e in extent)
        if len(extent) != self.ndim:
            raise ValueError(f"Expected {self.ndim} extents, got {len(extent)}")
        if any(e < 1 for e in extent):
            raise ValueError(f"Extents must be positive, got {extent}")
        self._extent = extent
        self._coords = np.zeros(extent + (self.ndim,), dtype=np.float64)

    def extent(self) -> Tuple[int, ...]:
        """Return the block extents."""
        self._check_allocated()
        return self._extent

    def size(self) -> int:
        """Return the number of coordinate tuples in the block."""
        self._check_allocated()
        return int(np.prod(self._extent))

    @property
    def coordinates(self) -> np.ndarray:
        """Coordinate array with shape ``extent + (ndim,)``."""
        self._check_allocated()
        return self._coords

    def coord(self, *index: int) -> np.ndarray:
        """Return a copy of the coordinate tuple at ``index``."""
        return self._coords[self._check_index(index)].copy()

    def set_coord(self, index: Sequence[int], value: Sequence[float]) -> None:
        """Set the coordinate tuple at ``index``."""
        value = np.asarray(value, dtype=np.float64)
        if value.shape != (self.ndim,):
            raise ValueError(f"Coordinate must have {self.ndim} components, got shape {value.shape}")
        self._coords[self._check_index(tuple(index))] = value

    def set_axis(self, axis: int, values: Sequence[float]) -> None:
        """Fill one coordinate component from a flat array in Plot3D order.

        Plot3D stores each component with the i index varying fastest,
        then j, then k.

        Args:
            axis: Coordinate component (0 for x, 1 for y, 2 for z)
            values: Flat array of ``size()`` values
        """
        self._check_allocated()
        if not 0 <= axis < self.ndim:
            raise IndexError(f"Axis {axis} out of range for a {self.ndim}D block")
        values = np.asarray(values, dtype=np.float64)
        if values.size != self.size():
            raise ValueError(f"Expected {self.size()} values, got {values.size}")
        # Reversed reshape puts the fastest index last, transpose restores (i, j[, k]).
        self._coords[..., axis] = values.reshape(self._extent[::-1]).transpose()

    def axis_values(self, axis: int) -> np.ndarray:
        """Return one coordinate component flattened in Plot3D order."""
        self._check_allocated()
        return self._coords[..., axis].transpose().ravel()

    def _check_allocated(self) -> None:
        if self._extent is None:
            raise RuntimeError("Block extents must be set before coordinates are accessed")

    def _check_index(self, index: Tuple[int, ...]) -> Tuple[int, ...]:
        self._check_allocated()
        if len(index) != self.ndim:
            raise IndexError(f"Expected {self.ndim} indices, got {len(index)}")
        for n, (idx, ext) in enumerate(zip(index, self._extent)):
            if not 0 <= idx < ext:
                raise IndexError(f"Index {idx} out of range [0, {ext}) in direction {n}")
        return tuple(index)

    def __eq__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        if self._extent != other._extent:
            return False
        if self._extent is None:
            return True
        return bool(np.array_equal(self._coords, other._coords))

    def __repr__(self):
        return f"{type(self).__name__}(extent={self._extent})"


class StructuredMeshBlock2D(_StructuredMeshBlock):
    """Structured 2D block of (x, y) coordinates indexed by (i, j)."""

    ndim = 2


class StructuredMeshBlock3D(_StructuredMeshBlock):
    """Structured 3D block of (x, y, z) coordinates indexed by (i, j, k)."""

    ndim = 3

    def to_2d(self) -> StructuredMeshBlock2D:
        """Project onto a 2D block.

        The z component is dropped and only the ``k = 0`` layer is kept.

        Returns:
            A new StructuredMeshBlock2D with extents (ni, nj)
        """
        ni, nj, nk = self.extent()
        if nk != 1:
            logger.debug(f"Projecting block with {nk} k-layers to 2D keeps only k = 0")
        block = StructuredMeshBlock2D((ni, nj))
        block.coordinates[...] = self._coords[:, :, 0, :2]
        return block
