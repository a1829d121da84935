"""Command-line interface for plot3dvtk.

This module provides the main entry point for the Plot3D to VTK converter.
"""

import argparse
import logging
import os
import sys
import traceback
from typing import List, Optional

from plot3dvtk.core.config import ENCODINGS, ConversionConfig
from plot3dvtk.exceptions import Plot3dVtkError
from plot3dvtk.io.convert import convert_plot3d_to_vtu


def setup_logging(debug_mode: bool = False) -> None:
    """Configure logging based on debug mode.

    Args:
        debug_mode: If True, set logging level to DEBUG, otherwise INFO
    """
    log_level = logging.DEBUG if debug_mode else logging.INFO
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments.

    Args:
        argv: Argument list (defaults to sys.argv[1:])

    Returns:
        Parsed command line arguments
    """
    parser = argparse.ArgumentParser(
        description='Convert a Plot3D grid file to a VTK XML unstructured grid (.vtu)'
    )
    parser.add_argument('input_file', help='Path to Plot3D grid file')
    parser.add_argument('output_file', help='Path of the .vtu file to write')

    input_group = parser.add_argument_group('input', 'Describe the Plot3D file')
    input_group.add_argument('-d', '--dims', type=int, choices=[2, 3], default=3,
                             help='Number of spatial dimensions of the grid')
    input_group.add_argument('--ascii', action='store_true',
                             help='Input is ASCII (default: Fortran unformatted binary)')
    input_group.add_argument('--single-block', action='store_true',
                             help='Input holds exactly one block and no block count')
    input_group.add_argument('--big-endian', action='store_true',
                             help='Binary input is big-endian')

    output_group = parser.add_argument_group('output', 'Control the VTK output')
    output_group.add_argument('-e', '--encoding', choices=ENCODINGS, default='appended',
                              help='Data array encoding (default: appended)')
    output_group.add_argument('-p', '--precision', type=int, default=6,
                              help='Significant digits for ascii output')
    output_group.add_argument('--merge-blocks', action='store_true',
                              help='Write all blocks into a single piece')

    adv_group = parser.add_argument_group('advanced', 'Advanced settings')
    adv_group.add_argument('--debug', action='store_true', help='Enable debug output')

    return parser.parse_args(argv)


def create_config(args: argparse.Namespace) -> ConversionConfig:
    """Create the conversion configuration from command line arguments."""
    return ConversionConfig(
        dimensions=args.dims,
        binary_input=not args.ascii,
        single_block=args.single_block,
        endian='>' if args.big_endian else '<',
        encoding=args.encoding,
        precision=args.precision,
        merge_blocks=args.merge_blocks,
        debug=args.debug,
    )


def main(argv: Optional[List[str]] = None) -> int:
    """Main function to run the converter.

    Returns:
        Exit code: 0 for success, non-zero for error
    """
    args = parse_arguments(argv)

    setup_logging(args.debug)
    logger = logging.getLogger(__name__)

    logger.info(f"Processing Plot3D file: {args.input_file}")

    if not os.path.exists(args.input_file):
        logger.error(f"Plot3D file not found: {args.input_file}")
        return 1

    try:
        config = create_config(args)
        n_blocks = convert_plot3d_to_vtu(args.input_file, args.output_file, config)
    except (Plot3dVtkError, OSError) as e:
        logger.error(f"Conversion failed: {e}")
        if args.debug:
            logger.debug(traceback.format_exc())
        return 1

    logger.info(f"Successfully wrote {n_blocks} block(s) to {args.output_file}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
