"""
Unit tests for .vox decoding, palettes and the exporter.
"""

import struct
import sys
from pathlib import Path
import numpy as np
import unittest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from voxel_renderer.chunks import ChunkReader, VOX_MAGIC, iter_chunks, read_header
from voxel_renderer.errors import MalformedStream, SelectionError, StructuralError, VoxRenderError
from voxel_renderer.exporters.vox_exporter import (
    MainChunk,
    RGBAChunk,
    SizeChunk,
    VoxChunk,
    VoxExporter,
    XYZIChunk,
    encode_vox,
)
from voxel_renderer.model import Model, Voxel, load_vox, read_vox
from voxel_renderer.palette import DEFAULT_PALETTE, Palette


def file_with(*chunks: VoxChunk, version: int = 150) -> bytes:
    """Wrap chunks in a MAIN chunk with a file header."""
    main = MainChunk()
    for chunk in chunks:
        main.add_child(chunk)
    return VOX_MAGIC + struct.pack('<I', version) + main.pack()


def raw_chunk(chunk_id: str, content: bytes) -> VoxChunk:
    chunk = VoxChunk(chunk_id)
    chunk.content = content
    return chunk


class TestChunkReader(unittest.TestCase):
    """Tests for the chunk stream walker."""

    def test_header(self):
        """Test version is read from the header."""
        data = file_with(version=200)
        assert read_header(data) == 200
        assert ChunkReader(data).version == 200

    def test_bad_magic(self):
        """Test wrong magic bytes are rejected at offset 0."""
        with self.assertRaises(MalformedStream) as ctx:
            ChunkReader(b'RIFF' + struct.pack('<I', 150))
        assert ctx.exception.offset == 0

    def test_short_header(self):
        """Test a truncated header."""
        with self.assertRaises(MalformedStream):
            ChunkReader(b'VOX')

    def test_oversized_first_chunk(self):
        """Test a first chunk declaring more content than remains."""
        data = VOX_MAGIC + struct.pack('<I', 150) + b'MAIN' + struct.pack('<II', 100, 0)

        with self.assertRaises(MalformedStream) as ctx:
            load_vox(data)
        assert ctx.exception.offset == 8

    def test_oversized_child_chunk(self):
        """Test a child whose content runs past its parent."""
        child = b'SIZE' + struct.pack('<II', 1000, 0) + struct.pack('<iii', 1, 1, 1)
        data = (VOX_MAGIC + struct.pack('<I', 150) +
                b'MAIN' + struct.pack('<II', 0, len(child)) + child)

        with self.assertRaises(MalformedStream) as ctx:
            list(iter_chunks(data))
        assert ctx.exception.offset == 20

    def test_oversized_children(self):
        """Test declared children length beyond the stream."""
        data = VOX_MAGIC + struct.pack('<I', 150) + b'MAIN' + struct.pack('<II', 0, 64)

        with self.assertRaises(MalformedStream):
            load_vox(data)

    def test_truncated_voxel_list(self):
        """Test an XYZI chunk declaring more voxels than it holds."""
        data = file_with(
            SizeChunk(2, 2, 2),
            raw_chunk('XYZI', struct.pack('<I', 10) + bytes([0, 0, 0, 1]))
        )

        with self.assertRaises(MalformedStream):
            load_vox(data)

    def test_root_must_be_main(self):
        """Test a root chunk other than MAIN."""
        data = VOX_MAGIC + struct.pack('<I', 150) + raw_chunk('PACK', b'\x01\x00\x00\x00').pack()

        with self.assertRaises(MalformedStream):
            load_vox(data)

    def test_stream_order_and_depth(self):
        """Test chunks come parent first with nesting depth."""
        data = file_with(SizeChunk(1, 1, 1), XYZIChunk(np.array([[0, 0, 0, 1]])))
        chunks = list(iter_chunks(data))

        assert [c.id for c in chunks] == ['MAIN', 'SIZE', 'XYZI']
        assert [c.depth for c in chunks] == [0, 1, 1]
        assert chunks[1].offset == 20

    def test_single_pass(self):
        """Test the reader cannot be walked twice."""
        reader = ChunkReader(file_with(SizeChunk(1, 1, 1)))
        assert len(list(reader)) == 2
        assert list(reader) == []

    def test_trailing_bytes_ignored(self):
        """Test bytes after the root chunk are ignored."""
        data = file_with(SizeChunk(1, 1, 1), XYZIChunk(np.array([[0, 0, 0, 3]]))) + b'junk'
        assert load_vox(data).model_count == 1

    def test_errors_are_value_errors(self):
        """Test the error hierarchy."""
        assert issubclass(MalformedStream, VoxRenderError)
        assert issubclass(StructuralError, ValueError)
        assert issubclass(SelectionError, ValueError)


class TestDocumentBuilder(unittest.TestCase):
    """Tests for turning chunks into models."""

    def test_model_count(self):
        """Test N size/voxel pairs give N models."""
        models = [
            ((2, 2, 2), [(0, 0, 0, 1), (1, 1, 1, 0)]),
            ((3, 1, 1), [(0, 0, 0, 5), (1, 0, 0, 6), (2, 0, 0, 7)]),
            ((1, 1, 1), []),
        ]
        document = load_vox(encode_vox(models))

        assert document.model_count == 3
        assert document.models[0].voxel_count == 1
        assert document.models[1].voxel_count == 3
        assert document.models[2].is_empty
        assert [m.index for m in document.models] == [0, 1, 2]

    def test_voxel_count_bounded_by_nonzero_entries(self):
        """Test decoded voxels never exceed declared non-zero entries."""
        rng = np.random.default_rng(7)
        raw = rng.integers(0, 4, size=(200, 4))
        document = load_vox(encode_vox([((4, 4, 4), raw)]))

        assert document.models[0].voxel_count <= int(np.count_nonzero(raw[:, 3]))

    def test_size_without_voxels(self):
        """Test an unpaired SIZE chunk."""
        data = file_with(SizeChunk(2, 2, 2), RGBAChunk(Palette.default()))
        with self.assertRaises(StructuralError):
            load_vox(data)

    def test_trailing_size(self):
        """Test a SIZE chunk at the very end."""
        data = file_with(SizeChunk(1, 1, 1), XYZIChunk(np.zeros((0, 4))), SizeChunk(1, 1, 1))
        with self.assertRaises(StructuralError):
            load_vox(data)

    def test_voxels_without_size(self):
        """Test an XYZI chunk with no SIZE before it."""
        data = file_with(XYZIChunk(np.array([[0, 0, 0, 1]])))
        with self.assertRaises(StructuralError):
            load_vox(data)

    def test_bad_palette_length(self):
        """Test an RGBA chunk that is not 256 entries."""
        data = file_with(
            SizeChunk(1, 1, 1),
            XYZIChunk(np.array([[0, 0, 0, 1]])),
            raw_chunk('RGBA', bytes(1020))
        )
        with self.assertRaises(StructuralError):
            load_vox(data)

    def test_size_out_of_range(self):
        """Test a zero dimension."""
        data = file_with(
            raw_chunk('SIZE', struct.pack('<iii', 0, 4, 4)),
            XYZIChunk(np.zeros((0, 4)))
        )
        with self.assertRaises(StructuralError):
            load_vox(data)

    def test_unknown_chunks_skipped(self):
        """Test scene graph chunks are skipped but recorded."""
        data = VoxExporter().encode(
            [((1, 1, 1), [(0, 0, 0, 1)])],
            extra_chunks=[raw_chunk('nTRN', b'abcd'), raw_chunk('MATL', b'')]
        )
        document = load_vox(data)

        assert document.model_count == 1
        assert document.skipped_chunks == ('nTRN', 'MATL')

    def test_children_of_unknown_chunk_not_parsed(self):
        """Test a group chunk whose children bytes are not chunks."""
        group = raw_chunk('nGRP', b'\x00\x00\x00\x00')
        group.children = bytes([1, 2, 3, 4, 5])
        data = VoxExporter().encode(
            [((1, 1, 1), [(0, 0, 0, 1)])],
            extra_chunks=[group]
        )
        document = load_vox(data)

        assert document.model_count == 1
        assert document.skipped_chunks == ('nGRP',)

    def test_unknown_chunk_children_not_yielded(self):
        """Test chunks nested inside a non-container chunk are not walked."""
        inner = raw_chunk('nSHP', b'1234')
        outer = raw_chunk('nTRN', b'')
        outer.children = inner.pack()
        chunks = list(iter_chunks(file_with(outer, SizeChunk(1, 1, 1))))

        assert [c.id for c in chunks] == ['MAIN', 'nTRN', 'SIZE']

    def test_pack_mismatch_is_not_fatal(self):
        """Test a wrong PACK count only warns."""
        data = file_with(
            raw_chunk('PACK', struct.pack('<I', 5)),
            SizeChunk(1, 1, 1),
            XYZIChunk(np.array([[0, 0, 0, 1]]))
        )
        with self.assertLogs('voxel_renderer.model', level='WARNING'):
            document = load_vox(data)
        assert document.model_count == 1

    def test_default_palette(self):
        """Test a file without RGBA uses the default palette."""
        document = load_vox(encode_vox([((1, 1, 1), [(0, 0, 0, 1)])]))

        assert document.palette.is_default
        assert document.palette[0] == (0, 0, 0, 0)
        assert document.palette[1] == (255, 255, 255, 255)
        assert document.palette[255] == (17, 17, 17, 255)

    def test_file_palette(self):
        """Test RGBA entry k maps to palette index k + 1."""
        palette = Palette.from_colors([(10, 20, 30), (40, 50, 60, 70)])
        document = load_vox(encode_vox([((1, 1, 1), [(0, 0, 0, 1)])], palette))

        assert not document.palette.is_default
        assert document.palette[1] == (10, 20, 30, 255)
        assert document.palette[2] == (40, 50, 60, 70)

    def test_model_selection(self):
        """Test out of range model lookup."""
        document = load_vox(encode_vox([((1, 1, 1), [(0, 0, 0, 1)])]))
        assert document.model(0).voxel_count == 1
        with self.assertRaises(SelectionError):
            document.model(1)

    def test_read_vox(self):
        """Test reading from disk."""
        import tempfile

        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "one.vox"
            VoxExporter().export([((2, 1, 1), [(1, 0, 0, 9)])], path)
            document = read_vox(path)

            assert document.models[0].color_at(1, 0, 0) == 9

            with self.assertRaises(FileNotFoundError):
                read_vox(Path(tmp) / "missing.vox")


class TestModel(unittest.TestCase):
    """Tests for the Model class."""

    def test_zero_color_dropped(self):
        """Test color index 0 means no voxel."""
        model = Model.from_voxels((2, 2, 2), [(0, 0, 0, 0), (1, 1, 1, 4)])
        assert model.voxel_count == 1
        assert model.color_at(0, 0, 0) == 0

    def test_duplicates_last_wins(self):
        """Test a repeated coordinate keeps its last color."""
        model = Model.from_voxels((2, 2, 2), [(0, 0, 0, 1), (1, 0, 0, 3), (0, 0, 0, 2)])
        assert model.voxel_count == 2
        assert model.color_at(0, 0, 0) == 2

    def test_out_of_bounds_dropped(self):
        """Test voxels outside the size are dropped."""
        model = Model.from_voxels((2, 2, 2), [(5, 0, 0, 1), (1, 1, 1, 1)])
        assert model.voxel_count == 1

    def test_lexicographic_order(self):
        """Test voxels are stored sorted by (x, y, z)."""
        model = Model.from_voxels((3, 3, 3), [(2, 0, 0, 1), (0, 2, 1, 1), (0, 2, 0, 1), (1, 0, 2, 1)])
        coords = [tuple(c) for c in model.coords.tolist()]
        assert coords == sorted(coords)

    def test_color_lookup(self):
        """Test color_at against every stored voxel and empty cells."""
        voxels = [Voxel(x, y, z, 1 + (x + 2 * y + 3 * z) % 200)
                  for x in range(0, 6, 2) for y in range(5) for z in range(0, 4, 3)]
        model = Model.from_voxels((6, 5, 4), voxels)

        for v in voxels:
            assert model.color_at(v.x, v.y, v.z) == v.color_index
        assert model.color_at(1, 0, 0) == 0
        assert model.color_at(6, 0, 0) == 0
        assert model.color_at(-1, 0, 0) == 0

    def test_lookup_keys_built_once(self):
        """Test the lookup keys are stored with the model and read-only."""
        model = Model.from_voxels((2, 2, 2), [(1, 1, 1, 4), (0, 1, 0, 2)])
        keys = model._keys

        assert model.color_at(0, 1, 0) == 2
        assert model._keys is keys
        assert len(keys) == model.voxel_count
        assert not keys.flags.writeable

    def test_empty_model_lookup(self):
        """Test lookups on a model with no voxels."""
        model = Model.from_voxels((2, 2, 2), [])
        assert model.is_empty
        assert model.color_at(0, 0, 0) == 0

    def test_immutable(self):
        """Test arrays cannot be modified."""
        model = Model.from_voxels((2, 2, 2), [(0, 0, 0, 1)])
        with self.assertRaises(ValueError):
            model.colors[0] = 5

    def test_invalid_size(self):
        """Test dimensions outside 1..256."""
        with self.assertRaises(StructuralError):
            Model.from_voxels((257, 1, 1), [])


class TestPalette(unittest.TestCase):
    """Tests for palettes."""

    def test_default_layout(self):
        """Test generated default palette."""
        assert DEFAULT_PALETTE.shape == (256, 4)
        assert tuple(DEFAULT_PALETTE[215]) == (0, 0, 51, 255)
        assert tuple(DEFAULT_PALETTE[216]) == (238, 0, 0, 255)

    def test_index_zero_transparent(self):
        """Test index 0 is forced transparent."""
        colors = np.full((256, 4), 200, dtype=np.uint8)
        assert Palette(colors)[0] == (0, 0, 0, 0)

    def test_chunk_roundtrip(self):
        """Test palette survives RGBA chunk packing."""
        palette = Palette.from_colors([(1, 2, 3), (4, 5, 6)], fill=(9, 9, 9, 255))
        content = palette.to_rgba_chunk()

        assert len(content) == 1024
        assert np.array_equal(Palette.from_rgba_chunk(content).colors, palette.colors)

    def test_too_many_colors(self):
        """Test more than 255 colors."""
        with self.assertRaises(StructuralError):
            Palette.from_colors([(0, 0, 0)] * 256)


class TestVoxExporter(unittest.TestCase):
    """Tests for writing .vox files."""

    def test_model_roundtrip(self):
        """Test models decode to the same voxels."""
        model = Model.from_voxels((3, 2, 1), [(0, 0, 0, 1), (2, 1, 0, 200)])
        document = load_vox(encode_vox([model]))

        decoded = document.models[0]
        assert decoded.size == (3, 2, 1)
        assert np.array_equal(decoded.coords, model.coords)
        assert np.array_equal(decoded.colors, model.colors)

    def test_pack_written_for_multiple_models(self):
        """Test PACK is only written for multi-model files."""
        one = [c.id for c in iter_chunks(encode_vox([((1, 1, 1), [])]))]
        two = [c.id for c in iter_chunks(encode_vox([((1, 1, 1), []), ((1, 1, 1), [])]))]

        assert 'PACK' not in one
        assert two[1] == 'PACK'

    def test_size_limit(self):
        """Test sizes above 256 are rejected."""
        with self.assertRaises(ValueError):
            encode_vox([((300, 1, 1), [])])

    def test_coordinate_limit(self):
        """Test voxel values must fit in a byte."""
        with self.assertRaises(ValueError):
            XYZIChunk(np.array([[256, 0, 0, 1]]))


if __name__ == "__main__":
    unittest.main()
