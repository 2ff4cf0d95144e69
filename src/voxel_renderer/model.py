"""
Voxel Models and Document Builder

This module provides:
- Model: immutable sparse voxel model (one SIZE + XYZI pair)
- VoxDocument: every model of a file plus the shared palette
- build_document / load_vox / read_vox: assemble documents from chunks

Sparse storage: coordinates live in an (N, 3) array sorted
lexicographically by (x, y, z), color indices in a parallel (N,) array.
A 256³ model can hold millions of voxels, but typical pixel art models
hold a few thousand, so no dense grid is kept per model.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, NamedTuple, Optional, Tuple, Union
import logging
import numpy as np

from .chunks import (
    Chunk,
    ChunkReader,
    PackRecord,
    PaletteRecord,
    Record,
    SizeRecord,
    VoxelRecord,
)
from .errors import SelectionError, StructuralError
from .palette import Palette


logger = logging.getLogger(__name__)

MAX_DIMENSION = 256


class Voxel(NamedTuple):
    """A single voxel and its palette index."""
    x: int
    y: int
    z: int
    color_index: int


def _readonly(array: np.ndarray) -> np.ndarray:
    array.flags.writeable = False
    return array


@dataclass(frozen=True, eq=False)
class Model:
    """
    Immutable sparse voxel model.

    Coordinate system: Z-up, matching MagicaVoxel (+X right, +Y back, +Z up).

    Attributes:
        index: Order of appearance in the source file (0-based)
        size: (size_x, size_y, size_z), each in [1, 256]
        coords: (N, 3) int16 array of unique coordinates, lexicographic order
        colors: (N,) uint8 array of palette indices in [1, 255]
    """

    index: int
    size: Tuple[int, int, int]
    coords: np.ndarray = field(repr=False)
    colors: np.ndarray = field(repr=False)

    @classmethod
    def from_voxels(
        cls,
        size: Tuple[int, int, int],
        voxels: Union[np.ndarray, Iterable[Tuple[int, int, int, int]]],
        index: int = 0
    ) -> "Model":
        """
        Build a model from a raw voxel list.

        The list is normalized the way MagicaVoxel files are read:
        - Color index 0 means "no voxel"; such entries are dropped
        - Entries outside the model size are dropped
        - Repeated coordinates keep the last entry (last write wins)

        Args:
            size: Model dimensions (x, y, z)
            voxels: Array of shape (N, 4) or iterable of (x, y, z, color_index)
            index: Model index within its document

        Raises:
            StructuralError: If a dimension is outside [1, 256]
        """
        size = tuple(int(s) for s in size)
        if len(size) != 3 or any(s < 1 or s > MAX_DIMENSION for s in size):
            raise StructuralError(
                f"Model {index} size {size} outside 1..{MAX_DIMENSION} per axis"
            )

        if not isinstance(voxels, np.ndarray):
            voxels = list(voxels)
        raw = np.asarray(voxels, dtype=np.int64)
        if raw.size == 0:
            raw = raw.reshape(0, 4)
        if raw.ndim != 2 or raw.shape[1] != 4:
            raise ValueError(f"Voxels must have shape (N, 4), got {raw.shape}")

        keep = raw[:, 3] != 0
        dropped = int(np.count_nonzero(~keep))
        if dropped:
            logger.debug("Model %d: dropped %d voxels with color index 0", index, dropped)
        raw = raw[keep]

        inside = np.all((raw[:, :3] >= 0) & (raw[:, :3] < np.array(size)), axis=1)
        outside = int(np.count_nonzero(~inside))
        if outside:
            logger.debug("Model %d: dropped %d voxels outside size %s", index, outside, size)
        raw = raw[inside]

        coords, colors = _deduplicate(raw)
        return cls(index=index, size=size, coords=coords, colors=colors)

    def __post_init__(self):
        _readonly(self.coords)
        _readonly(self.colors)
        # Sorted lookup keys, parallel to coords
        object.__setattr__(self, "_keys", _readonly(_pack_keys(self.coords)))

    @property
    def voxel_count(self) -> int:
        """Number of voxels in the model."""
        return int(self.coords.shape[0])

    @property
    def is_empty(self) -> bool:
        return self.voxel_count == 0

    def color_at(self, x: int, y: int, z: int) -> int:
        """Palette index at a coordinate, 0 if empty or out of bounds."""
        if not all(0 <= v < s for v, s in zip((x, y, z), self.size)):
            return 0
        key = (int(x) << 16) | (int(y) << 8) | int(z)
        keys = self._keys
        pos = int(np.searchsorted(keys, key))
        if pos < len(keys) and keys[pos] == key:
            return int(self.colors[pos])
        return 0


def _pack_keys(coords: np.ndarray) -> np.ndarray:
    """Pack (x, y, z) rows into integers that sort lexicographically."""
    coords = coords.astype(np.int64)
    return (coords[:, 0] << 16) | (coords[:, 1] << 8) | coords[:, 2]


def _deduplicate(raw: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Keep the last entry for each coordinate and sort by (x, y, z).

    Args:
        raw: (N, 4) int array of in-bounds, non-zero voxels

    Returns:
        Tuple of (coords, colors)
    """
    if len(raw) == 0:
        return np.zeros((0, 3), dtype=np.int16), np.zeros(0, dtype=np.uint8)

    keys = _pack_keys(raw[:, :3])

    # np.unique reports the first occurrence, so search the reversed list
    _, first_in_reversed = np.unique(keys[::-1], return_index=True)
    last = len(keys) - 1 - first_in_reversed

    coords = raw[last, :3].astype(np.int16)
    colors = raw[last, 3].astype(np.uint8)
    return coords, colors


@dataclass(frozen=True, eq=False)
class VoxDocument:
    """
    Decoded contents of one .vox file.

    Attributes:
        version: File format version from the header
        palette: Palette shared by all models
        models: Models in order of appearance
        skipped_chunks: Ids of chunks that were read but not interpreted
    """

    version: int
    palette: Palette
    models: Tuple[Model, ...]
    skipped_chunks: Tuple[str, ...] = ()

    @property
    def model_count(self) -> int:
        return len(self.models)

    def model(self, index: int) -> Model:
        """Get a model by index (negative indices are not accepted)."""
        if not 0 <= index < len(self.models):
            raise SelectionError(
                f"Model index {index} out of range [0, {len(self.models)})"
            )
        return self.models[index]


def build_document(records: Iterable[Record], version: int = 0) -> VoxDocument:
    """
    Assemble models and the palette from a stream of decoded records.

    Pairing rule: every SIZE record must be immediately followed by its
    XYZI record. The root MAIN chunk is ignored; any other record type is
    skipped and only its id is kept for diagnostics.

    Args:
        records: Typed records as produced by ChunkReader.records()
        version: File version to store in the document

    Returns:
        VoxDocument

    Raises:
        StructuralError: On unpaired SIZE/XYZI chunks, bad sizes or a
            palette with the wrong entry count
    """
    models: List[Model] = []
    palette: Optional[Palette] = None
    declared_models: Optional[int] = None
    skipped: List[str] = []
    pending: Optional[SizeRecord] = None

    for record in records:
        if pending is not None and not isinstance(record, VoxelRecord):
            raise StructuralError(
                f"SIZE chunk at byte {pending.offset} is not followed by an XYZI chunk"
            )

        if isinstance(record, SizeRecord):
            pending = record

        elif isinstance(record, VoxelRecord):
            if pending is None:
                raise StructuralError(
                    f"XYZI chunk at byte {record.offset} has no preceding SIZE chunk"
                )
            models.append(Model.from_voxels(
                (pending.x, pending.y, pending.z),
                record.voxels,
                index=len(models)
            ))
            pending = None

        elif isinstance(record, PaletteRecord):
            if palette is not None:
                logger.debug("Replacing palette with RGBA chunk at byte %d", record.offset)
            palette = Palette.from_rgba_chunk(record.content)

        elif isinstance(record, PackRecord):
            declared_models = record.model_count

        elif isinstance(record, Chunk) and record.depth > 0:
            skipped.append(record.id)
            logger.debug("Skipping %s chunk at byte %d", record.id, record.offset)

    if pending is not None:
        raise StructuralError(
            f"SIZE chunk at byte {pending.offset} is not followed by an XYZI chunk"
        )

    if declared_models is not None and declared_models != len(models):
        logger.warning("PACK chunk declares %d models but %d were found",
                       declared_models, len(models))

    if palette is None:
        palette = Palette.default()

    document = VoxDocument(
        version=version,
        palette=palette,
        models=tuple(models),
        skipped_chunks=tuple(skipped)
    )
    logger.info("Decoded %d models (version %d, %s palette)",
                len(models), version, "default" if palette.is_default else "file")
    return document


def load_vox(data: bytes) -> VoxDocument:
    """
    Decode a complete .vox file held in memory.

    Args:
        data: File contents

    Returns:
        VoxDocument

    Raises:
        MalformedStream: If the byte stream is corrupt
        StructuralError: If the chunks do not form valid models
    """
    reader = ChunkReader(data)
    return build_document(reader.records(), version=reader.version)


def read_vox(file_path: Union[str, Path]) -> VoxDocument:
    """
    Read and decode a .vox file.

    Args:
        file_path: Path to .vox file

    Returns:
        VoxDocument
    """
    file_path = Path(file_path)
    if not file_path.exists():
        raise FileNotFoundError(f"VOX file not found: {file_path}")

    return load_vox(file_path.read_bytes())


__all__ = [
    "Model",
    "Voxel",
    "VoxDocument",
    "build_document",
    "load_vox",
    "read_vox",
]
