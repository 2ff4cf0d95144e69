"""
MagicaVoxel .vox Format Exporter

Writes models and a palette back out in the layout the decoder reads:

- Header: "VOX " (4 bytes) + version (4 bytes, int32)
- MAIN chunk (container)
  - PACK chunk: model count (only when there is more than one model)
  - SIZE chunk + XYZI chunk, once per model
  - RGBA chunk: palette entries 1..255 followed by one unused entry

Limitations:
- Maximum 256x256x256 dimensions per model
- Coordinates and color indices are uint8
"""

from pathlib import Path
from typing import Iterable, Optional, Sequence, Tuple, Union
import logging
import struct
import numpy as np

from ..chunks import (
    PACK_CHUNK,
    RGBA_CHUNK,
    ROOT_CHUNK,
    SIZE_CHUNK,
    VOX_MAGIC,
    VOX_VERSION,
    XYZI_CHUNK,
)
from ..model import MAX_DIMENSION, Model
from ..palette import Palette


logger = logging.getLogger(__name__)


class VoxChunk:
    """Base class for VOX chunks."""

    def __init__(self, chunk_id: str):
        if len(chunk_id) != 4:
            raise ValueError(f"Chunk id must be 4 characters, got {chunk_id!r}")
        self.chunk_id = chunk_id.encode('ascii')
        self.content = b''
        self.children = b''

    def pack(self) -> bytes:
        """Pack the chunk into bytes."""
        return (
            self.chunk_id +
            struct.pack('<II', len(self.content), len(self.children)) +
            self.content +
            self.children
        )


class SizeChunk(VoxChunk):
    """SIZE chunk containing model dimensions."""

    def __init__(self, size_x: int, size_y: int, size_z: int):
        super().__init__(SIZE_CHUNK)
        for s in (size_x, size_y, size_z):
            if not 1 <= s <= MAX_DIMENSION:
                raise ValueError(
                    f"VOX format limited to {MAX_DIMENSION} per axis. "
                    f"Model size: {(size_x, size_y, size_z)}"
                )
        self.content = struct.pack('<iii', size_x, size_y, size_z)


class XYZIChunk(VoxChunk):
    """XYZI chunk containing voxel positions and color indices."""

    def __init__(self, voxels: np.ndarray):
        """
        Args:
            voxels: Array of shape (N, 4) with (x, y, z, color_index)

        Raises:
            ValueError: If any value does not fit in a byte
        """
        super().__init__(XYZI_CHUNK)
        voxels = np.asarray(voxels, dtype=np.int64).reshape(-1, 4)
        if voxels.size and (voxels.min() < 0 or voxels.max() > 255):
            raise ValueError("Voxel coordinates and color indices must be in 0..255")

        self.content = struct.pack('<I', len(voxels)) + voxels.astype(np.uint8).tobytes()


class RGBAChunk(VoxChunk):
    """RGBA chunk containing the 256-color palette."""

    def __init__(self, palette: Palette):
        super().__init__(RGBA_CHUNK)
        self.content = palette.to_rgba_chunk()


class PackChunk(VoxChunk):
    """PACK chunk declaring the model count."""

    def __init__(self, model_count: int):
        super().__init__(PACK_CHUNK)
        self.content = struct.pack('<I', model_count)


class MainChunk(VoxChunk):
    """MAIN container chunk."""

    def __init__(self):
        super().__init__(ROOT_CHUNK)

    def add_child(self, chunk: VoxChunk):
        """Add a child chunk."""
        self.children += chunk.pack()


ModelLike = Union[Model, Tuple[Tuple[int, int, int], Sequence]]


def _model_parts(model: ModelLike):
    """Size and (N, 4) voxel array of a Model or a (size, voxels) pair."""
    if isinstance(model, Model):
        voxels = np.column_stack([model.coords.astype(np.int64), model.colors.astype(np.int64)])
        return model.size, voxels

    size, voxels = model
    if not isinstance(voxels, np.ndarray):
        voxels = list(voxels)
    voxels = np.asarray(voxels, dtype=np.int64).reshape(-1, 4)
    return tuple(int(s) for s in size), voxels


class VoxExporter:
    """
    Export models to MagicaVoxel .vox format.

    Models may be Model instances or raw (size, voxels) pairs; raw voxel
    lists are written as given, including zero color indices and repeated
    coordinates.

    Usage:
        exporter = VoxExporter()
        exporter.export([model], "output.vox", palette)
    """

    def __init__(self, version: int = VOX_VERSION, write_pack: Optional[bool] = None):
        """
        Initialize the exporter.

        Args:
            version: Version number written to the header
            write_pack: Force (True) or suppress (False) the PACK chunk;
                None writes it only for multi-model files
        """
        self.version = version
        self.write_pack = write_pack

    def encode(
        self,
        models: Iterable[ModelLike],
        palette: Optional[Palette] = None,
        extra_chunks: Sequence[VoxChunk] = ()
    ) -> bytes:
        """
        Encode models into .vox bytes.

        Args:
            models: Models to write, in order
            palette: Palette to store (no RGBA chunk if None)
            extra_chunks: Additional chunks appended inside MAIN

        Returns:
            Complete file contents
        """
        models = list(models)
        main_chunk = MainChunk()

        write_pack = self.write_pack if self.write_pack is not None else len(models) > 1
        if write_pack:
            main_chunk.add_child(PackChunk(len(models)))

        for model in models:
            size, voxels = _model_parts(model)
            main_chunk.add_child(SizeChunk(*size))
            main_chunk.add_child(XYZIChunk(voxels))

        if palette is not None:
            main_chunk.add_child(RGBAChunk(palette))

        for chunk in extra_chunks:
            main_chunk.add_child(chunk)

        return VOX_MAGIC + struct.pack('<I', self.version) + main_chunk.pack()

    def export(
        self,
        models: Iterable[ModelLike],
        output_path: Union[str, Path],
        palette: Optional[Palette] = None
    ) -> Path:
        """
        Write models to a .vox file.

        Args:
            models: Models to write
            output_path: Output file path
            palette: Palette to store

        Returns:
            The output path
        """
        output_path = Path(output_path)
        data = self.encode(models, palette)

        with open(output_path, 'wb') as f:
            f.write(data)

        logger.info("Wrote %d bytes to %s", len(data), output_path)
        return output_path


def encode_vox(models: Iterable[ModelLike], palette: Optional[Palette] = None) -> bytes:
    """Encode models with the default exporter settings."""
    return VoxExporter().encode(models, palette)
