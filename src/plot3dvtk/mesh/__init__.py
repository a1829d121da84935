"""
Mesh data structures for plot3dvtk.

Structured blocks are produced by the Plot3D reader; unstructured meshes and
datasets are consumed by the VTK writer.
"""

from plot3dvtk.mesh.blocks import StructuredMeshBlock2D, StructuredMeshBlock3D
from plot3dvtk.mesh.unstructured import (
    UnstructuredCell,
    UnstructuredMesh,
    VTKCellType,
    VtkUnstructuredDataset,
    element_dimensions,
    element_name,
    element_node_count,
    to_gmsh_element_id,
)

__all__ = [
    "StructuredMeshBlock2D",
    "StructuredMeshBlock3D",
    "UnstructuredCell",
    "UnstructuredMesh",
    "VTKCellType",
    "VtkUnstructuredDataset",
    "element_dimensions",
    "element_name",
    "element_node_count",
    "to_gmsh_element_id",
]
