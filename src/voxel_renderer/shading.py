"""
Face Shading

Turns a PixelGrid into RGBA pixels. Each filled cell takes its palette color,
with RGB scaled by a brightness factor for the face it shows:

    TOP   1.0   (unshaded, also used for every side projection)
    RIGHT 0.8
    LEFT  0.65

Results are rounded half up. Filled pixels are fully opaque whatever the
palette alpha; empty pixels are (0, 0, 0, 0). There is no blending.
"""

from types import MappingProxyType
import numpy as np

from .palette import PALETTE_SIZE, Palette
from .projection import Face, PixelGrid


SHADE_FACTORS = MappingProxyType({
    Face.TOP: 1.0,
    Face.RIGHT: 0.8,
    Face.LEFT: 0.65,
})


def shaded_palette(palette: Palette) -> np.ndarray:
    """
    Pre-shade every palette entry for every face.

    Args:
        palette: Source palette

    Returns:
        uint8 array of shape (3, 256, 4) indexed by [face, color_index]
    """
    rgb = palette.colors[:, :3].astype(np.float64)
    table = np.empty((len(Face), PALETTE_SIZE, 4), dtype=np.uint8)

    for face in Face:
        scaled = np.floor(rgb * SHADE_FACTORS[face] + 0.5)
        table[face, :, :3] = np.clip(scaled, 0, 255).astype(np.uint8)
        table[face, :, 3] = 255

    return table


def shade(grid: PixelGrid, palette: Palette) -> np.ndarray:
    """
    Color a projected grid.

    Args:
        grid: Occlusion-resolved grid from the projection engine
        palette: Palette of the model's document

    Returns:
        uint8 array of shape (H, W, 4)
    """
    rgba = np.zeros((grid.height, grid.width, 4), dtype=np.uint8)
    filled = grid.filled
    if not filled.any():
        return rgba

    table = shaded_palette(palette)
    rgba[filled] = table[grid.face[filled], grid.color_index[filled]]
    return rgba
