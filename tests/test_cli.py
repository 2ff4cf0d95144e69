"""
Tests for the voxrender command line.
"""

import io
import sys
import tempfile
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path
import unittest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from PIL import Image

from voxel_renderer.cli import main
from voxel_renderer.exporters import VoxExporter
from voxel_renderer.projection import Oblique, Side, View
from voxel_renderer.samples import sample_document


def run(argv):
    """Run the CLI, capturing output."""
    out, err = io.StringIO(), io.StringIO()
    with redirect_stdout(out), redirect_stderr(err):
        code = main([str(a) for a in argv])
    return code, out.getvalue(), err.getvalue()


class TestCLI(unittest.TestCase):
    """Tests for the voxrender entry point."""

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)

        document = sample_document("cube", "house")
        self.vox_path = VoxExporter().export(document.models, self.tmp / "models.vox", document.palette)
        self.out_dir = self.tmp / "sprites"

    def tearDown(self):
        self._tmp.cleanup()

    def test_single_view(self):
        """Test rendering one model from one view."""
        code, out, _ = run([self.vox_path, "-m", 0, "-v", "front_right", "-o", self.out_dir])

        assert code == 0
        assert "Rendered 1 sprites" in out

        path = self.out_dir / "front_right_0.png"
        assert path.exists()
        with Image.open(path) as image:
            assert image.mode == "RGBA"
            assert image.size == (8, 6)

    def test_default_renders_everything(self):
        """Test no selection renders every view and side of every model."""
        code, _, _ = run([self.vox_path, "-o", self.out_dir])

        assert code == 0
        files = sorted(p.name for p in self.out_dir.glob("*.png"))
        assert len(files) == 2 * (len(View) + len(Oblique) + len(Side))
        assert "top_1.png" in files
        assert "left_front_1.png" in files
        assert "back_22_5_1.png" in files

    def test_oblique_view(self):
        """Test -v accepts oblique view names."""
        code, _, _ = run([self.vox_path, "-m", 0, "-v", "front_22.5", "-o", self.out_dir])

        assert code == 0
        with Image.open(self.out_dir / "front_22_5_0.png") as image:
            assert image.size == (4, 6)

    def test_tile(self):
        """Test --tile enlarges the isometric cell."""
        code, _, _ = run([self.vox_path, "-m", 0, "-v", "front_right", "--tile", "8x4", "-o", self.out_dir])

        assert code == 0
        with Image.open(self.out_dir / "front_right_0.png") as image:
            assert image.size == (16, 12)

    def test_invalid_tile(self):
        """Test malformed or odd --tile values exit with 1."""
        for tile in ("3x2", "big", "4x2x1"):
            code, _, err = run([self.vox_path, "--tile", tile, "-o", self.out_dir])
            assert code == 1, tile
            assert "--tile" in err
        assert not self.out_dir.exists()

    def test_scale(self):
        """Test --scale enlarges the sprite."""
        code, _, _ = run([self.vox_path, "-m", 0, "-s", "top", "--scale", 4, "-o", self.out_dir])

        assert code == 0
        with Image.open(self.out_dir / "top_0.png") as image:
            assert image.size == (8, 8)

    def test_list(self):
        """Test --list prints the models."""
        code, out, _ = run([self.vox_path, "--list"])

        assert code == 0
        assert "2 models" in out
        assert "[0] 2x2x2  8 voxels" in out

    def test_bad_model_index(self):
        """Test an out of range model exits with 2."""
        code, _, err = run([self.vox_path, "-m", 7, "-o", self.out_dir])

        assert code == 2
        assert "Error" in err
        assert not self.out_dir.exists()

    def test_bad_view(self):
        """Test an unknown view exits with 2."""
        code, _, err = run([self.vox_path, "-v", "upside_down", "-o", self.out_dir])
        assert code == 2
        assert "upside_down" in err

    def test_missing_file(self):
        """Test a missing input exits with 1."""
        code, _, err = run([self.tmp / "nope.vox"])
        assert code == 1
        assert "not found" in err

    def test_malformed_file(self):
        """Test a corrupt file exits with 1."""
        bad = self.tmp / "bad.vox"
        bad.write_bytes(b"VOX \x96\x00\x00\x00MAIN\xff\x00\x00\x00\x00\x00\x00\x00")

        code, _, err = run([bad, "-o", self.out_dir])
        assert code == 1
        assert "Error" in err

    def test_batch(self):
        """Test rendering a directory of files."""
        VoxExporter().export(sample_document("cube").models, self.tmp / "second.vox")

        code, out, _ = run(["--batch", self.tmp, "-s", "top", "-o", self.out_dir])

        assert code == 0
        assert (self.out_dir / "models" / "top_0.png").exists()
        assert (self.out_dir / "models" / "top_1.png").exists()
        assert (self.out_dir / "second" / "top_0.png").exists()

    def test_batch_continues_after_bad_model_index(self):
        """Test a model index missing from one file does not stop the batch."""
        batch_dir = self.tmp / "batch"
        batch_dir.mkdir()
        VoxExporter().export(sample_document("cube").models, batch_dir / "a_one.vox")
        VoxExporter().export(sample_document("cube", "tree").models, batch_dir / "b_two.vox")

        code, _, err = run(["--batch", batch_dir, "-m", 1, "-s", "top", "-o", self.out_dir])

        assert code == 2
        assert "a_one.vox" in err
        assert not (self.out_dir / "a_one").exists()
        assert (self.out_dir / "b_two" / "top_1.png").exists()

    def test_batch_continues_after_corrupt_file(self):
        """Test an unreadable file is counted and later files still render."""
        batch_dir = self.tmp / "batch"
        batch_dir.mkdir()
        (batch_dir / "a_bad.vox").write_bytes(b"not a vox file")
        VoxExporter().export(sample_document("cube").models, batch_dir / "b_good.vox")

        code, out, err = run(["--batch", batch_dir, "-s", "top", "-o", self.out_dir])

        assert code == 1
        assert "a_bad.vox" in err
        assert "from 1 files" in out
        assert (self.out_dir / "b_good" / "top_0.png").exists()

    def test_invalid_scale(self):
        """Test --scale below 1 is rejected."""
        code, _, _ = run([self.vox_path, "--scale", 0])
        assert code == 1


if __name__ == "__main__":
    unittest.main()
