"""
plot3dvtk - Plot3D grid reader and VTK unstructured grid writer.

Reads ASCII or Fortran unformatted Plot3D grid files (2D or 3D, single- or
multi-block) and writes VTK XML unstructured grids with ascii, inline binary
or appended data arrays.
"""

__author__ = "HJA Bird"
__version__ = "1.0.0"

from plot3dvtk.core import ConversionConfig
from plot3dvtk.exceptions import (
    ConfigurationError, MalformedStreamError, Plot3dVtkError,
    RecordMismatchError, WriterStateError
)
from plot3dvtk.io import Plot3DParser, VtkWriter, convert_plot3d_to_vtu, read_blocks
from plot3dvtk.mesh import (
    StructuredMeshBlock2D, StructuredMeshBlock3D,
    UnstructuredMesh, VtkUnstructuredDataset
)

__all__ = [
    "ConversionConfig",
    "ConfigurationError", "MalformedStreamError", "Plot3dVtkError",
    "RecordMismatchError", "WriterStateError",
    "Plot3DParser", "VtkWriter", "convert_plot3d_to_vtu", "read_blocks",
    "StructuredMeshBlock2D", "StructuredMeshBlock3D",
    "UnstructuredMesh", "VtkUnstructuredDataset",
]
