"""
Palette Handling

A .vox file carries at most one 256-entry RGBA palette shared by every model
in the file. Index 0 means "no voxel" and is always fully transparent.

When a file has no RGBA chunk, MagicaVoxel falls back to its built-in default
palette. That palette is regular enough to be generated rather than listed:
- Indices 1-215: a 6x6x6 color cube over the levels 255, 204, 153, 102, 51, 0
  (red slowest, blue fastest), skipping pure black
- Indices 216-255: ten-step ramps of red, green, blue and gray over
  238, 221, 187, 170, 136, 119, 85, 68, 34, 17
"""

from dataclasses import dataclass, field
from typing import Optional, Sequence, Tuple
import numpy as np

from .errors import StructuralError


PALETTE_SIZE = 256
RGBA_CHUNK_BYTES = PALETTE_SIZE * 4

_CUBE_LEVELS = (255, 204, 153, 102, 51, 0)
_RAMP_LEVELS = (238, 221, 187, 170, 136, 119, 85, 68, 34, 17)


def _build_default_palette() -> np.ndarray:
    """Generate the MagicaVoxel default palette as a (256, 4) uint8 array."""
    colors = [(0, 0, 0, 0)]

    for r in _CUBE_LEVELS:
        for g in _CUBE_LEVELS:
            for b in _CUBE_LEVELS:
                if r == g == b == 0:
                    continue
                colors.append((r, g, b, 255))

    for level in _RAMP_LEVELS:
        colors.append((level, 0, 0, 255))
    for level in _RAMP_LEVELS:
        colors.append((0, level, 0, 255))
    for level in _RAMP_LEVELS:
        colors.append((0, 0, level, 255))
    for level in _RAMP_LEVELS:
        colors.append((level, level, level, 255))

    table = np.array(colors, dtype=np.uint8)
    table.flags.writeable = False
    return table


DEFAULT_PALETTE = _build_default_palette()


@dataclass(frozen=True, eq=False)
class Palette:
    """
    Immutable 256-entry RGBA lookup table.

    Attributes:
        colors: Array of shape (256, 4), uint8, read-only. Row i is the
            color of palette index i.
        is_default: True when the file carried no palette of its own
    """

    colors: np.ndarray = field(repr=False)
    is_default: bool = False

    def __post_init__(self):
        colors = np.array(self.colors, dtype=np.uint8)
        if colors.shape != (PALETTE_SIZE, 4):
            raise StructuralError(
                f"Palette must have {PALETTE_SIZE} RGBA entries, got shape {colors.shape}"
            )
        # Index 0 is reserved for empty space
        colors[0] = (0, 0, 0, 0)
        colors.flags.writeable = False
        object.__setattr__(self, "colors", colors)

    @classmethod
    def default(cls) -> "Palette":
        """Get the MagicaVoxel default palette."""
        return cls(DEFAULT_PALETTE, is_default=True)

    @classmethod
    def from_rgba_chunk(cls, content: bytes) -> "Palette":
        """
        Build a palette from raw RGBA chunk content.

        The chunk stores 256 colors where entry k is palette index k + 1;
        the final entry has no index and is discarded.

        Args:
            content: Exactly 1024 bytes of RGBA data

        Raises:
            StructuralError: If the chunk does not hold exactly 256 entries
        """
        if len(content) != RGBA_CHUNK_BYTES:
            raise StructuralError(
                f"RGBA chunk must hold {PALETTE_SIZE} entries "
                f"({RGBA_CHUNK_BYTES} bytes), got {len(content)} bytes"
            )

        entries = np.frombuffer(content, dtype=np.uint8).reshape(PALETTE_SIZE, 4)
        colors = np.zeros((PALETTE_SIZE, 4), dtype=np.uint8)
        colors[1:] = entries[:PALETTE_SIZE - 1]
        return cls(colors)

    @classmethod
    def from_colors(
        cls,
        colors: Sequence[Tuple[int, ...]],
        fill: Optional[Tuple[int, int, int, int]] = None
    ) -> "Palette":
        """
        Build a palette from a list of colors for indices 1, 2, 3, ...

        Args:
            colors: RGB or RGBA tuples; RGB entries get alpha 255
            fill: Color for the remaining indices (default palette if None)
        """
        if len(colors) > PALETTE_SIZE - 1:
            raise StructuralError(
                f"At most {PALETTE_SIZE - 1} colors fit in a palette, got {len(colors)}"
            )

        table = np.array(DEFAULT_PALETTE, dtype=np.uint8)
        if fill is not None:
            table[1:] = fill

        for i, color in enumerate(colors, start=1):
            rgba = tuple(color) + (255,) * (4 - len(color))
            table[i] = rgba[:4]

        return cls(table)

    def to_rgba_chunk(self) -> bytes:
        """Pack the palette back into the 1024-byte RGBA chunk layout."""
        entries = np.zeros((PALETTE_SIZE, 4), dtype=np.uint8)
        entries[:PALETTE_SIZE - 1] = self.colors[1:]
        return entries.tobytes()

    def __getitem__(self, index: int) -> Tuple[int, int, int, int]:
        r, g, b, a = self.colors[index]
        return (int(r), int(g), int(b), int(a))

    def __len__(self) -> int:
        return PALETTE_SIZE
