"""Configuration module for plot3dvtk.

This module provides the configuration class for the Plot3D to VTK conversion process.
"""

from dataclasses import dataclass

from plot3dvtk.exceptions import ConfigurationError

ENCODINGS = ("ascii", "binary", "appended")


@dataclass
class ConversionConfig:
    """Configuration for converting a Plot3D grid file to a VTK unstructured grid.

    Attributes:
        dimensions: Number of spatial dimensions of the Plot3D grid (2 or 3)
        binary_input: Whether the Plot3D file is Fortran unformatted binary
        single_block: Whether the file omits the block count (exactly one block)
        endian: Byte order of the binary input ('<' little, '>' big)
        encoding: VTK data array encoding ('ascii', 'binary' or 'appended')
        precision: Significant digits used for ascii output
        merge_blocks: Whether to write all blocks into a single piece
        debug: Whether to enable debug output
    """

    dimensions: int = 3
    binary_input: bool = True
    single_block: bool = False
    endian: str = "<"
    encoding: str = "appended"
    precision: int = 6
    merge_blocks: bool = False
    debug: bool = False

    def __post_init__(self) -> None:
        """Validate the configuration after initialization."""
        if self.dimensions not in (2, 3):
            raise ConfigurationError(f"Dimensions must be 2 or 3, got {self.dimensions}")

        if self.endian not in ("<", ">"):
            raise ConfigurationError(f"Endian must be '<' or '>', got {self.endian!r}")

        if self.encoding not in ENCODINGS:
            raise ConfigurationError(
                f"Encoding must be one of {', '.join(ENCODINGS)}, got {self.encoding!r}"
            )

        if self.precision < 1:
            raise ConfigurationError("Precision must be a positive number of digits")

    @property
    def writer_ascii(self) -> bool:
        """Whether the VTK writer should emit ascii data arrays."""
        return self.encoding == "ascii"

    @property
    def writer_appended(self) -> bool:
        """Whether the VTK writer should defer data arrays to the appended block."""
        return self.encoding == "appended"
