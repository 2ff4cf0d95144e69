"""
MagicaVoxel .vox Chunk Decoder

The .vox format is a RIFF-style chunk-based binary format.

File Structure:
- Header: "VOX " (4 bytes) + version (4 bytes, int32 little-endian)
- MAIN chunk (root container, no content)
  - PACK chunk: model count (optional)
  - SIZE chunk: dimensions (x, y, z)
  - XYZI chunk: voxel count + (x, y, z, color_index) per voxel
  - RGBA chunk: 256-color palette (optional)
  - nTRN/nGRP/nSHP/LAYR/MATL/rOBJ/... scene and material chunks

Every chunk is laid out as:
    id (4 bytes) | content size (uint32) | children size (uint32)
    | content | children

This module only walks the stream and checks that every declared length
fits inside the enclosing chunk. Turning records into models is the job of
model.py.
"""

from dataclasses import dataclass
from typing import Iterator, NamedTuple, Union
import logging
import struct
import numpy as np

from .errors import MalformedStream


logger = logging.getLogger(__name__)

# VOX format constants
VOX_MAGIC = b'VOX '
VOX_VERSION = 150
FILE_HEADER_SIZE = 8
CHUNK_HEADER_SIZE = 12

ROOT_CHUNK = 'MAIN'
SIZE_CHUNK = 'SIZE'
XYZI_CHUNK = 'XYZI'
RGBA_CHUNK = 'RGBA'
PACK_CHUNK = 'PACK'

# Chunks whose children area holds further chunks
CONTAINER_CHUNKS = frozenset({ROOT_CHUNK})


@dataclass(frozen=True)
class Chunk:
    """
    A single chunk read from the stream.

    Attributes:
        id: Four character chunk identifier (e.g. "SIZE")
        content: Raw content bytes
        children_size: Declared byte length of the nested children
        offset: Absolute byte offset of the chunk header
        depth: Nesting depth (0 for the root chunk)
    """

    id: str
    content: bytes
    children_size: int
    offset: int
    depth: int

    @property
    def children_offset(self) -> int:
        """Absolute offset of the first child chunk."""
        return self.offset + CHUNK_HEADER_SIZE + len(self.content)

    @property
    def end(self) -> int:
        """Absolute offset one past the last byte of this chunk."""
        return self.children_offset + self.children_size


class SizeRecord(NamedTuple):
    """Decoded SIZE chunk."""
    x: int
    y: int
    z: int
    offset: int


class VoxelRecord(NamedTuple):
    """Decoded XYZI chunk: array of shape (N, 4) with x, y, z, color_index."""
    voxels: np.ndarray
    offset: int


class PaletteRecord(NamedTuple):
    """RGBA chunk content, left raw so the builder can validate its length."""
    content: bytes
    offset: int


class PackRecord(NamedTuple):
    """Decoded PACK chunk (declared model count)."""
    model_count: int
    offset: int


Record = Union[SizeRecord, VoxelRecord, PaletteRecord, PackRecord, Chunk]


def read_header(data: bytes) -> int:
    """
    Validate the file header.

    Args:
        data: Complete file contents

    Returns:
        The file format version

    Raises:
        MalformedStream: If the header is truncated or the magic is wrong
    """
    if len(data) < FILE_HEADER_SIZE:
        raise MalformedStream(
            f"File too short for a VOX header: {len(data)} bytes", 0
        )

    magic = bytes(data[:4])
    if magic != VOX_MAGIC:
        raise MalformedStream(f"Invalid VOX file: bad magic {magic!r}", 0)

    return struct.unpack_from('<I', data, 4)[0]


def _check_content(chunk: Chunk):
    """Reject chunks too short for the fields their type requires."""
    if chunk.id == SIZE_CHUNK and len(chunk.content) < 12:
        raise MalformedStream(
            f"SIZE chunk needs 12 content bytes, got {len(chunk.content)}",
            chunk.offset
        )

    if chunk.id == XYZI_CHUNK:
        if len(chunk.content) < 4:
            raise MalformedStream(
                f"XYZI chunk needs a 4 byte voxel count, got {len(chunk.content)} bytes",
                chunk.offset
            )
        count = struct.unpack_from('<I', chunk.content, 0)[0]
        needed = 4 + 4 * count
        if len(chunk.content) < needed:
            raise MalformedStream(
                f"XYZI chunk declares {count} voxels ({needed} bytes) "
                f"but holds {len(chunk.content)} bytes",
                chunk.offset
            )

    if chunk.id == PACK_CHUNK and len(chunk.content) < 4:
        raise MalformedStream("PACK chunk needs 4 content bytes", chunk.offset)


class ChunkReader:
    """
    Single-pass reader over the chunks of a .vox byte stream.

    The header is validated on construction; chunks are then produced lazily,
    in stream order (MAIN before its children). Only container chunks are
    descended into; the children area of any other chunk is skipped by its
    declared length without being parsed. Iterating a
    second time continues the same exhausted generator, so the stream is
    walked at most once.

    Usage:
        reader = ChunkReader(data)
        for chunk in reader:
            ...
    """

    def __init__(self, data: bytes):
        self._data = bytes(data)
        self.version = read_header(self._data)
        self._iterator = self._walk()

    def __iter__(self) -> Iterator[Chunk]:
        return self._iterator

    def records(self) -> Iterator[Record]:
        """Iterate over typed records instead of raw chunks."""
        for chunk in self._iterator:
            yield decode_record(chunk)

    def _read_chunk(self, offset: int, scope_end: int, depth: int) -> Chunk:
        """Read one chunk whose bytes must end at or before scope_end."""
        data = self._data

        if scope_end - offset < CHUNK_HEADER_SIZE:
            raise MalformedStream(
                f"Truncated chunk header: {scope_end - offset} bytes left", offset
            )

        chunk_id = bytes(data[offset:offset + 4]).decode('ascii', errors='replace')
        content_size, children_size = struct.unpack_from('<II', data, offset + 4)

        body = offset + CHUNK_HEADER_SIZE
        remaining = scope_end - body
        if content_size > remaining:
            raise MalformedStream(
                f"{chunk_id} chunk declares {content_size} content bytes "
                f"but only {remaining} remain",
                offset
            )
        if children_size > remaining - content_size:
            raise MalformedStream(
                f"{chunk_id} chunk declares {children_size} children bytes "
                f"but only {remaining - content_size} remain",
                offset
            )

        chunk = Chunk(
            id=chunk_id,
            content=bytes(data[body:body + content_size]),
            children_size=children_size,
            offset=offset,
            depth=depth
        )
        _check_content(chunk)
        return chunk

    def _walk(self) -> Iterator[Chunk]:
        """Depth-first walk, using an explicit stack of open scopes."""
        total = len(self._data)

        root = self._read_chunk(FILE_HEADER_SIZE, total, depth=0)
        if root.id != ROOT_CHUNK:
            raise MalformedStream(
                f"Expected {ROOT_CHUNK} chunk, got {root.id!r}", root.offset
            )
        yield root

        # Each entry is the end offset of a chunk whose children are being read
        scopes = [root.end]
        offset = root.children_offset

        while scopes:
            if offset >= scopes[-1]:
                scopes.pop()
                continue

            chunk = self._read_chunk(offset, scopes[-1], depth=len(scopes))
            yield chunk

            if chunk.id in CONTAINER_CHUNKS:
                scopes.append(chunk.end)
                offset = chunk.children_offset
                continue

            if chunk.children_size:
                logger.debug("Skipping %d children bytes of %s chunk",
                             chunk.children_size, chunk.id)
            offset = chunk.end

        if root.end < total:
            logger.debug("Ignoring %d trailing bytes after %s chunk",
                         total - root.end, ROOT_CHUNK)


def decode_record(chunk: Chunk) -> Record:
    """
    Decode the fields of a known chunk type.

    Unknown and scene-graph chunks are returned unchanged.
    """
    if chunk.id == SIZE_CHUNK:
        x, y, z = struct.unpack_from('<iii', chunk.content, 0)
        return SizeRecord(x, y, z, chunk.offset)

    if chunk.id == XYZI_CHUNK:
        count = struct.unpack_from('<I', chunk.content, 0)[0]
        if count == 0:
            return VoxelRecord(np.zeros((0, 4), dtype=np.uint8), chunk.offset)
        voxels = np.frombuffer(
            chunk.content, dtype=np.uint8, count=4 * count, offset=4
        ).reshape(count, 4)
        return VoxelRecord(voxels, chunk.offset)

    if chunk.id == RGBA_CHUNK:
        return PaletteRecord(chunk.content, chunk.offset)

    if chunk.id == PACK_CHUNK:
        return PackRecord(struct.unpack_from('<I', chunk.content, 0)[0], chunk.offset)

    return chunk


def iter_chunks(data: bytes) -> Iterator[Chunk]:
    """
    Iterate over all chunks of a .vox byte stream.

    Args:
        data: Complete file contents

    Yields:
        Chunk objects in stream order, parents before children

    Raises:
        MalformedStream: On a bad header or any out-of-bounds length
    """
    return iter(ChunkReader(data))
