"""I/O for Plot3D grid files and VTK unstructured grid files."""

from plot3dvtk.io.fortran import FortranRecordReader, FortranRecordWriter
from plot3dvtk.io.plot3d import Plot3DParser, read_blocks, write_plot3d
from plot3dvtk.io.vtk import AppendedDataTrailer, VtkFileType, VtkWriter, XmlTagWriter
from plot3dvtk.io.convert import block_to_unstructured, convert_plot3d_to_vtu

__all__ = [
    "FortranRecordReader", "FortranRecordWriter",
    "Plot3DParser", "read_blocks", "write_plot3d",
    "AppendedDataTrailer", "VtkFileType", "VtkWriter", "XmlTagWriter",
    "block_to_unstructured", "convert_plot3d_to_vtu",
]
