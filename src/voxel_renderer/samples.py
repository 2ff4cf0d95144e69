"""
Sample models built in code, for demos and quick checks without a .vox file.
"""

from typing import Dict, Callable, List
import numpy as np

from .model import Model, VoxDocument, Voxel
from .palette import Palette


# Palette indices used by the samples
RED, GREEN, BLUE, BROWN, LEAF, STONE, ROOF = 1, 2, 3, 4, 5, 6, 7

SAMPLE_COLORS = [
    (255, 0, 0),      # red
    (0, 200, 0),      # green
    (40, 80, 220),    # blue
    (101, 67, 33),    # bark
    (34, 139, 34),    # foliage
    (150, 150, 160),  # stone
    (170, 60, 40),    # roof tiles
]


def sample_palette() -> Palette:
    """Palette with the sample colors at indices 1..7."""
    return Palette.from_colors(SAMPLE_COLORS)


def make_cube(size: int = 2, color: int = RED, index: int = 0) -> Model:
    """Solid cube of one color."""
    x, y, z = np.meshgrid(np.arange(size), np.arange(size), np.arange(size), indexing="ij")
    voxels = np.column_stack([x.ravel(), y.ravel(), z.ravel(), np.full(x.size, color)])
    return Model.from_voxels((size, size, size), voxels, index=index)


def make_tree(height: int = 12, index: int = 0) -> Model:
    """Trunk with a rounded crown of leaves."""
    width = height
    cx = cy = width // 2
    trunk_top = height // 2
    voxels: List[Voxel] = []

    for z in range(trunk_top):
        voxels.append(Voxel(cx, cy, z, BROWN))

    radius = width // 2 - 1
    crown_z = trunk_top + radius // 2
    for x in range(width):
        for y in range(width):
            for z in range(trunk_top - 1, height):
                d = np.sqrt((x - cx) ** 2 + (y - cy) ** 2 + (z - crown_z) ** 2)
                if d <= radius:
                    voxels.append(Voxel(x, y, z, LEAF))

    return Model.from_voxels((width, width, height), voxels, index=index)


def make_house(size: int = 8, index: int = 0) -> Model:
    """Hollow stone box with a stepped roof and a door on the front (-y) face."""
    walls = size // 2
    voxels: List[Voxel] = []

    for x in range(size):
        for y in range(size):
            for z in range(walls):
                on_edge = x in (0, size - 1) or y in (0, size - 1) or z == 0
                if on_edge:
                    voxels.append(Voxel(x, y, z, STONE))

    # Door: two empty cells in the front wall
    door = {(size // 2, 0, 1), (size // 2, 0, 2)}
    voxels = [v for v in voxels if v[:3] not in door]

    for step in range(size // 2):
        z = walls + step
        for x in range(step, size - step):
            for y in range(size):
                voxels.append(Voxel(x, y, z, ROOF))

    return Model.from_voxels((size, size, walls + size // 2), voxels, index=index)


SAMPLES: Dict[str, Callable[..., Model]] = {
    "cube": make_cube,
    "tree": make_tree,
    "house": make_house,
}


def sample_document(*names: str) -> VoxDocument:
    """
    Build a document holding the named samples (all of them by default).

    Raises:
        KeyError: If a name is not in SAMPLES
    """
    names = names or tuple(SAMPLES)
    models = tuple(SAMPLES[name](index=i) for i, name in enumerate(names))
    return VoxDocument(version=150, palette=sample_palette(), models=models)
