"""
Canvas Assembly

Crops a shaded RGBA buffer to the tight bounding box of its non-transparent
pixels and packages it with a label for whatever writes it out.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Union
import numpy as np
from PIL import Image
from scipy import ndimage


@dataclass(frozen=True, eq=False)
class Canvas:
    """
    Final cropped RGBA image for one render.

    Attributes:
        pixels: (H, W, 4) uint8 array, row-major, read-only
        label: Suggested name, e.g. "front_right_0"
    """

    pixels: np.ndarray = field(repr=False)
    label: str = ""

    def __post_init__(self):
        self.pixels.flags.writeable = False

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def is_blank(self) -> bool:
        """True if no pixel is visible."""
        return not bool(np.any(self.pixels[:, :, 3]))

    def tobytes(self) -> bytes:
        """Row-major RGBA bytes, 4 per pixel."""
        return self.pixels.tobytes()

    def to_image(self) -> Image.Image:
        """Convert to a Pillow RGBA image."""
        return Image.fromarray(self.pixels.copy())

    def save(self, path: Union[str, Path]) -> Path:
        """Write the canvas as a PNG file."""
        path = Path(path)
        self.to_image().save(path, format="PNG")
        return path

    def __eq__(self, other) -> bool:
        if not isinstance(other, Canvas):
            return NotImplemented
        return self.label == other.label and np.array_equal(self.pixels, other.pixels)

    __hash__ = None


def bounding_box(rgba: np.ndarray):
    """
    Bounding box of the pixels with alpha > 0.

    Returns:
        Tuple of (row_slice, col_slice), or None if nothing is visible
    """
    mask = (rgba[:, :, 3] > 0).astype(np.int32)
    objects = ndimage.find_objects(mask)
    if not objects:
        return None
    return objects[0]


def assemble(rgba: np.ndarray, label: str, scale: int = 1) -> Canvas:
    """
    Crop and optionally upscale a shaded buffer.

    An all-transparent buffer becomes a 1x1 transparent canvas (before
    scaling), so an empty model still yields a valid image.

    Args:
        rgba: (H, W, 4) uint8 buffer from shade()
        label: Name carried along for the output stage
        scale: Integer nearest-neighbour upscale factor (>= 1)

    Returns:
        Canvas
    """
    if scale < 1 or int(scale) != scale:
        raise ValueError(f"Scale must be a positive integer, got {scale}")
    scale = int(scale)

    box = bounding_box(rgba)
    if box is None:
        cropped = np.zeros((1, 1, 4), dtype=np.uint8)
    else:
        cropped = np.array(rgba[box], dtype=np.uint8)

    if scale > 1:
        h, w = cropped.shape[:2]
        img = Image.fromarray(cropped)
        img = img.resize((w * scale, h * scale), Image.Resampling.NEAREST)
        cropped = np.array(img, dtype=np.uint8)

    return Canvas(pixels=cropped, label=label)
