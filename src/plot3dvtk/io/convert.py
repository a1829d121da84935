"""
Plot3D to VTK unstructured grid conversion.

Structured blocks are turned into unstructured meshes whose cells are the
hexahedra (3D), quads (2D) or lines spanned by neighbouring grid points. The
conversion runs as a block function registered with ``Plot3DParser`` so a
file is streamed block by block into an open ``VtkWriter``.
"""

import logging
import os
from typing import List, Optional, TextIO, Union

import numpy as np

from plot3dvtk.core.config import ConversionConfig
from plot3dvtk.io.plot3d import Plot3DParser
from plot3dvtk.io.vtk import VtkFileType, VtkWriter
from plot3dvtk.mesh.blocks import StructuredMeshBlock2D, StructuredMeshBlock3D
from plot3dvtk.mesh.unstructured import UnstructuredCell, UnstructuredMesh, VTKCellType, VtkUnstructuredDataset

logger = logging.getLogger(__name__)

Block = Union[StructuredMeshBlock2D, StructuredMeshBlock3D]

# Corner offsets (di, dj, dk) in VTK node order
_HEX_CORNERS = [(0, 0, 0), (1, 0, 0), (1, 1, 0), (0, 1, 0),
                (0, 0, 1), (1, 0, 1), (1, 1, 1), (0, 1, 1)]
_QUAD_CORNERS = [(0, 0), (1, 0), (1, 1), (0, 1)]
_LINE_CORNERS = [(0,), (1,)]


def _block_points(block: Block) -> np.ndarray:
    """Block coordinates as (N, 3) points, i varying fastest."""
    points = np.zeros((block.size(), 3), dtype=np.float64)
    for axis in range(block.ndim):
        points[:, axis] = block.axis_values(axis)
    return points


def block_to_unstructured(block: Block) -> UnstructuredMesh:
    """Convert a structured block to an unstructured mesh.

    Points keep the Plot3D ordering (i fastest, then j, then k) and 2D blocks
    are placed in the z = 0 plane. The cell type depends on how many index
    directions have more than one point: three give hexahedra, two give quads,
    one gives lines and none gives a single vertex.

    Args:
        block: A StructuredMeshBlock2D or StructuredMeshBlock3D

    Returns:
        UnstructuredMesh with the block's points and cells
    """
    ni, nj, nk = (tuple(block.extent()) + (1,))[:3]
    point_ids = np.arange(ni * nj * nk, dtype=np.int64).reshape(nk, nj, ni).transpose()

    active = [axis for axis, ext in enumerate((ni, nj, nk)) if ext > 1]
    if len(active) == 3:
        cell_type, corners = VTKCellType.HEXAHEDRON, _HEX_CORNERS
    elif len(active) == 2:
        cell_type, corners = VTKCellType.QUAD, _QUAD_CORNERS
    elif len(active) == 1:
        cell_type, corners = VTKCellType.LINE, _LINE_CORNERS
    else:
        cell_type, corners = VTKCellType.VERTEX, [()]

    # Drop directions holding a single point so corners index the active ones.
    ids = point_ids.reshape([point_ids.shape[axis] for axis in active])

    columns = []
    for corner in corners:
        window = tuple(slice(d, d + ids.shape[n] - 1) for n, d in enumerate(corner))
        # Fortran order keeps cells numbered with i fastest
        columns.append(ids[window].ravel(order="F"))
    connectivity = np.stack(columns, axis=1)

    cells = [UnstructuredCell(cell_type.value, row.tolist()) for row in connectivity]
    return UnstructuredMesh(_block_points(block), cells)


def block_dataset(block: Block, block_id: int = 0) -> VtkUnstructuredDataset:
    """Wrap a block as a dataset with its index fields.

    Adds integer point fields ``i``, ``j`` (and ``k`` for 3D blocks) holding
    each point's structured index, and the integer cell field ``block_id``.
    """
    mesh = block_to_unstructured(block)
    extent = tuple(block.extent())
    index = np.indices(extent).reshape(len(extent), -1, order="F")
    dataset = VtkUnstructuredDataset(mesh=mesh)
    for name, values in zip("ijk", index):
        dataset.integer_point_data[name] = values.astype(np.int64)
    dataset.integer_cell_data["block_id"] = np.full(mesh.num_cells(), block_id, dtype=np.int64)
    return dataset


def merge_datasets(datasets: List[VtkUnstructuredDataset]) -> VtkUnstructuredDataset:
    """Concatenate datasets holding the same fields into one."""
    merged = VtkUnstructuredDataset()
    for dataset in datasets:
        merged.mesh.merge(dataset.mesh)
    for attr in ("integer_point_data", "scalar_point_data", "vector_point_data",
                 "integer_cell_data", "scalar_cell_data", "vector_cell_data"):
        target = getattr(merged, attr)
        names = [name for name in getattr(datasets[0], attr)] if datasets else []
        for name in names:
            target[name] = np.concatenate([np.asarray(getattr(d, attr)[name]) for d in datasets])
    return merged


class BlockCollector:
    """Block function storing every block it receives."""

    def __init__(self):
        self.blocks: List[Block] = []

    def __call__(self, block: Block) -> bool:
        self.blocks.append(block)
        return True


class VtkPieceSink:
    """Block function writing each block as one piece through an open VtkWriter.

    Args:
        writer: VtkWriter whose file has been opened
        stream: Stream the writer's file is being written to
    """

    def __init__(self, writer: VtkWriter, stream: TextIO):
        self.writer = writer
        self.stream = stream
        self.blocks_written = 0

    def __call__(self, block: Block) -> bool:
        dataset = block_dataset(block, self.blocks_written)
        self.writer.write_piece(self.stream, dataset)
        self.blocks_written += 1
        logger.debug(f"Converted block {self.blocks_written} with extent {block.extent()}")
        return True


def convert_plot3d_to_vtu(input_file: str, output_file: str,
                          config: Optional[ConversionConfig] = None) -> int:
    """Convert a Plot3D grid file to a VTK unstructured grid file.

    Args:
        input_file: Path to the Plot3D grid file
        output_file: Path of the .vtu file to create
        config: Conversion options (defaults to ConversionConfig())

    Returns:
        Number of blocks converted
    """
    config = config or ConversionConfig()
    if not os.path.exists(input_file):
        raise FileNotFoundError(f"Plot3D file not found: {input_file}")

    output_dir = os.path.dirname(os.path.abspath(output_file))
    if output_dir and not os.path.exists(output_dir):
        os.makedirs(output_dir, exist_ok=True)
        logger.info(f"Created output directory: {output_dir}")

    parser = Plot3DParser(config.dimensions, config.binary_input, config.single_block, config.endian)
    writer = VtkWriter(ascii=config.writer_ascii, appended=config.writer_appended,
                       write_precision=config.precision)

    with open(output_file, "w", encoding="utf-8") as out:
        writer.open_file(out, VtkFileType.UNSTRUCTURED_GRID)
        if config.merge_blocks:
            collector = BlockCollector()
            parser.add_2d_block_function(collector)
            parser.add_3d_block_function(collector)
            n_blocks = parser.parse_file(input_file)
            datasets = [block_dataset(b, n) for n, b in enumerate(collector.blocks)]
            writer.write_piece(out, merge_datasets(datasets))
        else:
            sink = VtkPieceSink(writer, out)
            parser.add_2d_block_function(sink)
            parser.add_3d_block_function(sink)
            n_blocks = parser.parse_file(input_file)
        writer.close_file(out)

    logger.info(f"Converted {n_blocks} block(s) from {input_file} to {output_file} "
                f"({config.encoding} encoding)")
    return n_blocks
