#!/usr/bin/env python
"""
Test suite for Plot3D to VTK conversion, its configuration and the command line.
"""

import logging
import os
import sys
import tempfile
import unittest
import xml.etree.ElementTree as ET
from pathlib import Path

import numpy as np

# Add src directory to path for imports
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'src')))

from plot3dvtk.cli.app import create_config, main, parse_arguments
from plot3dvtk.core import ConversionConfig
from plot3dvtk.exceptions import ConfigurationError, MalformedStreamError
from plot3dvtk.io.convert import (
    BlockCollector, block_dataset, block_to_unstructured, convert_plot3d_to_vtu, merge_datasets
)
from plot3dvtk.io.plot3d import write_plot3d
from plot3dvtk.mesh import StructuredMeshBlock2D, StructuredMeshBlock3D, VTKCellType

try:
    import meshio
    MESHIO_AVAILABLE = True
except ImportError:
    MESHIO_AVAILABLE = False


def make_block_3d(ni, nj, nk, offset=0.0):
    block = StructuredMeshBlock3D((ni, nj, nk))
    i, j, k = np.indices((ni, nj, nk))
    block.coordinates[...] = np.stack([i + offset, j * 2.0, k * 3.0], axis=-1)
    return block


def make_block_2d(ni, nj):
    block = StructuredMeshBlock2D((ni, nj))
    i, j = np.indices((ni, nj))
    block.coordinates[...] = np.stack([i * 1.0, j * 0.5], axis=-1)
    return block


def cell_rows(mesh):
    return [c.node_ids for c in mesh.cells]


class TestBlockToUnstructured(unittest.TestCase):
    """Test turning structured blocks into cells."""

    def test_single_hexahedron(self):
        mesh = block_to_unstructured(make_block_3d(2, 2, 2))
        self.assertEqual(mesh.num_points(), 8)
        self.assertEqual(mesh.num_cells(), 1)
        self.assertEqual(mesh.cells[0].cell_type, VTKCellType.HEXAHEDRON.value)
        self.assertEqual(cell_rows(mesh), [[0, 1, 3, 2, 4, 5, 7, 6]])

    def test_hexahedra_numbered_i_fastest(self):
        mesh = block_to_unstructured(make_block_3d(3, 2, 2))
        self.assertEqual(cell_rows(mesh), [
            [0, 1, 4, 3, 6, 7, 10, 9],
            [1, 2, 5, 4, 7, 8, 11, 10],
        ])

    def test_points_keep_file_order(self):
        block = make_block_3d(3, 2, 2)
        mesh = block_to_unstructured(block)
        # point index = i + ni * (j + nj * k)
        np.testing.assert_array_equal(mesh.points[1], block.coord(1, 0, 0))
        np.testing.assert_array_equal(mesh.points[3], block.coord(0, 1, 0))
        np.testing.assert_array_equal(mesh.points[6], block.coord(0, 0, 1))

    def test_2d_block_gives_quads_in_z_plane(self):
        mesh = block_to_unstructured(make_block_2d(3, 2))
        self.assertEqual(mesh.cell_types().tolist(), [9, 9])
        self.assertEqual(cell_rows(mesh), [[0, 1, 4, 3], [1, 2, 5, 4]])
        np.testing.assert_array_equal(mesh.points[:, 2], np.zeros(6))
        np.testing.assert_array_equal(mesh.points[5], [2.0, 0.5, 0.0])

    def test_flat_3d_block_gives_quads(self):
        mesh = block_to_unstructured(make_block_3d(2, 1, 2))
        self.assertEqual(mesh.cell_types().tolist(), [VTKCellType.QUAD.value])
        self.assertEqual(cell_rows(mesh), [[0, 1, 3, 2]])

    def test_line_block(self):
        mesh = block_to_unstructured(make_block_3d(3, 1, 1))
        self.assertEqual(mesh.cell_types().tolist(), [3, 3])
        self.assertEqual(cell_rows(mesh), [[0, 1], [1, 2]])

    def test_single_point_block(self):
        mesh = block_to_unstructured(make_block_3d(1, 1, 1))
        self.assertEqual(mesh.cell_types().tolist(), [VTKCellType.VERTEX.value])
        self.assertEqual(cell_rows(mesh), [[0]])

    def test_offsets_match_connectivity(self):
        mesh = block_to_unstructured(make_block_3d(4, 3, 2))
        offsets = mesh.offsets()
        self.assertEqual(len(offsets), mesh.num_cells())
        self.assertTrue(np.all(np.diff(offsets) >= 0))
        self.assertEqual(offsets[-1], len(mesh.connectivity()))


class TestBlockDataset(unittest.TestCase):
    """Test the index fields attached to converted blocks."""

    def test_3d_fields(self):
        dataset = block_dataset(make_block_3d(2, 3, 2), block_id=4)
        self.assertEqual(sorted(dataset.integer_point_data), ['i', 'j', 'k'])
        np.testing.assert_array_equal(dataset.integer_point_data['i'][:4], [0, 1, 0, 1])
        np.testing.assert_array_equal(dataset.integer_point_data['j'][:4], [0, 0, 1, 1])
        np.testing.assert_array_equal(dataset.integer_point_data['k'][5:7], [0, 1])
        np.testing.assert_array_equal(dataset.integer_cell_data['block_id'], [4, 4])

    def test_2d_fields(self):
        dataset = block_dataset(make_block_2d(3, 2))
        self.assertEqual(sorted(dataset.integer_point_data), ['i', 'j'])
        np.testing.assert_array_equal(dataset.integer_point_data['i'], [0, 1, 2, 0, 1, 2])
        np.testing.assert_array_equal(dataset.integer_point_data['j'], [0, 0, 0, 1, 1, 1])

    def test_merge_shifts_node_ids(self):
        first = block_dataset(make_block_3d(2, 2, 2), 0)
        second = block_dataset(make_block_3d(2, 2, 2, offset=5.0), 1)
        merged = merge_datasets([first, second])
        self.assertEqual(merged.mesh.num_points(), 16)
        self.assertEqual(merged.mesh.cells[1].node_ids, [8, 9, 11, 10, 12, 13, 15, 14])
        np.testing.assert_array_equal(merged.integer_cell_data['block_id'], [0, 1])
        self.assertEqual(len(merged.integer_point_data['i']), 16)


class TestConversion(unittest.TestCase):
    """Test converting Plot3D files on disk."""

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.test_dir = Path(self.temp_dir.name)
        self.blocks = [make_block_3d(3, 2, 2), make_block_3d(2, 2, 2, offset=10.0)]
        self.grid = self.test_dir / "grid.xyz"
        with open(self.grid, 'wb') as f:
            write_plot3d(f, self.blocks, binary=True)

    def tearDown(self):
        self.temp_dir.cleanup()

    def test_one_piece_per_block(self):
        output = self.test_dir / "grid.vtu"
        config = ConversionConfig(encoding="ascii")
        self.assertEqual(convert_plot3d_to_vtu(str(self.grid), str(output), config), 2)

        root = ET.parse(str(output)).getroot()
        pieces = root.findall('UnstructuredGrid/Piece')
        self.assertEqual([p.get('NumberOfCells') for p in pieces], ['2', '1'])
        block_ids = [p.find("CellData/DataArray[@Name='block_id']").text.split() for p in pieces]
        self.assertEqual(block_ids, [['0', '0'], ['1']])

    def test_merged_blocks(self):
        output = self.test_dir / "merged.vtu"
        config = ConversionConfig(encoding="binary", merge_blocks=True)
        convert_plot3d_to_vtu(str(self.grid), str(output), config)

        root = ET.parse(str(output)).getroot()
        pieces = root.findall('UnstructuredGrid/Piece')
        self.assertEqual(len(pieces), 1)
        self.assertEqual(pieces[0].get('NumberOfPoints'), '20')
        self.assertEqual(pieces[0].get('NumberOfCells'), '3')

    def test_appended_output(self):
        output = self.test_dir / "appended.vtu"
        convert_plot3d_to_vtu(str(self.grid), str(output))
        root = ET.parse(str(output)).getroot()
        self.assertIsNotNone(root.find('AppendedData'))

    def test_creates_output_directory(self):
        output = self.test_dir / "nested" / "out" / "grid.vtu"
        convert_plot3d_to_vtu(str(self.grid), str(output))
        self.assertTrue(output.exists())

    def test_ascii_2d_input(self):
        grid = self.test_dir / "grid.p2d"
        with open(grid, 'w') as f:
            write_plot3d(f, [make_block_2d(3, 3)], single_block=True)
        output = self.test_dir / "grid2d.vtu"
        config = ConversionConfig(dimensions=2, binary_input=False, single_block=True, encoding="ascii")
        self.assertEqual(convert_plot3d_to_vtu(str(grid), str(output), config), 1)

        piece = ET.parse(str(output)).getroot().find('UnstructuredGrid/Piece')
        types = piece.find("Cells/DataArray[@Name='types']").text.split()
        self.assertEqual(types, ['9'] * 4)

    def test_missing_input(self):
        with self.assertRaises(FileNotFoundError):
            convert_plot3d_to_vtu(str(self.test_dir / "missing.xyz"), str(self.test_dir / "out.vtu"))

    def test_wrong_dimensions_fail(self):
        # A 3D file read as ascii is malformed
        with self.assertRaises(MalformedStreamError):
            convert_plot3d_to_vtu(str(self.grid), str(self.test_dir / "out.vtu"),
                                  ConversionConfig(binary_input=False))

    def test_block_collector(self):
        collector = BlockCollector()
        self.assertTrue(collector(self.blocks[0]))
        self.assertEqual(collector.blocks, [self.blocks[0]])

    @unittest.skipUnless(MESHIO_AVAILABLE, "meshio not installed")
    def test_meshio_reads_output(self):
        output = self.test_dir / "meshio.vtu"
        config = ConversionConfig(encoding="ascii", merge_blocks=True)
        convert_plot3d_to_vtu(str(self.grid), str(output), config)

        mesh = meshio.read(str(output))
        self.assertEqual(len(mesh.points), 20)
        self.assertEqual(sum(len(block.data) for block in mesh.cells), 3)
        self.assertEqual(mesh.cells[0].type, "hexahedron")


class TestConversionConfig(unittest.TestCase):
    """Test configuration validation."""

    def test_defaults(self):
        config = ConversionConfig()
        self.assertEqual(config.dimensions, 3)
        self.assertTrue(config.binary_input)
        self.assertTrue(config.writer_appended)
        self.assertFalse(config.writer_ascii)

    def test_ascii_encoding(self):
        config = ConversionConfig(encoding="ascii")
        self.assertTrue(config.writer_ascii)
        self.assertFalse(config.writer_appended)

    def test_invalid_values(self):
        with self.assertRaises(ConfigurationError):
            ConversionConfig(dimensions=1)
        with self.assertRaises(ConfigurationError):
            ConversionConfig(endian="=")
        with self.assertRaises(ConfigurationError):
            ConversionConfig(encoding="raw")
        with self.assertRaises(ConfigurationError):
            ConversionConfig(precision=0)


class TestCommandLine(unittest.TestCase):
    """Test the command line entry point."""

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.test_dir = Path(self.temp_dir.name)
        self.grid = self.test_dir / "grid.xyz"
        with open(self.grid, 'w') as f:
            write_plot3d(f, [make_block_3d(2, 2, 2)])
        logging.disable(logging.CRITICAL)

    def tearDown(self):
        logging.disable(logging.NOTSET)
        self.temp_dir.cleanup()

    def test_parse_arguments(self):
        args = parse_arguments(['in.xyz', 'out.vtu', '-d', '2', '--ascii', '--big-endian',
                                '-e', 'binary', '-p', '8'])
        config = create_config(args)
        self.assertEqual(config.dimensions, 2)
        self.assertFalse(config.binary_input)
        self.assertEqual(config.endian, '>')
        self.assertEqual(config.encoding, 'binary')
        self.assertEqual(config.precision, 8)

    def test_successful_conversion(self):
        output = self.test_dir / "grid.vtu"
        self.assertEqual(main([str(self.grid), str(output), '--ascii']), 0)
        self.assertTrue(output.exists())

    def test_missing_input(self):
        self.assertEqual(main([str(self.test_dir / "missing.xyz"), str(self.test_dir / "out.vtu")]), 1)

    def test_malformed_input(self):
        # The ascii grid is not a valid binary file
        self.assertEqual(main([str(self.grid), str(self.test_dir / "out.vtu")]), 1)

    def test_invalid_precision(self):
        output = self.test_dir / "grid.vtu"
        self.assertEqual(main([str(self.grid), str(output), '--ascii', '-p', '0']), 1)


if __name__ == '__main__':
    unittest.main()
