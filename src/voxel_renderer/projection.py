"""
Projection Engine for Voxel Sprites

This module turns a sparse voxel model into a 2D grid of visible voxels,
one cell per output pixel, before any color is applied.

Three families of orthographic cameras are supported:
- Side: axis-aligned, one face visible. One axis collapses and the
  nearest voxel along it wins each cell.
- View: pixel-art isometric from one of four corners, three faces visible
  (top plus two vertical faces). The standard views use a 2:1 cell; the
  "_22_5" views use a taller cell for a flatter camera.
- Oblique: camera raised 45 or 22.5 degrees above one side. Only the top
  face and the face toward the camera are visible.

Coordinate Systems:
- Model: Z-up, right-handed (+X right, +Y back, +Z up), as in MagicaVoxel
- Screen: u to the right, v downward (image space)
- Rotated (views only): (a, b, z) where the camera sees the +a, +b and +z
  faces. +a is the lower-right face on screen, +b the lower-left face.

Isometric placement (cell of W x H pixels with T top rows and z step S,
default 4 x 2 with T = 1, S = 2):
    u = (W/2) * (a + (B-1-b))
    v = T * (a + b) + S * (Z-1-z)
    depth = a + b + z            (larger is nearer the camera)

Each voxel is stamped as a W x H sprite whose upper T rows are its top face
and whose remaining rows are split into left and right faces.

Oblique placement (column width C, T top rows, S side rows):
    u = C * h                    (h: horizontal position, as for the side)
    v = T * n + S * (Z-1-z)      (n: nearness to the camera)
    depth = n + z
"""

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Optional, Tuple, Union
import numpy as np
from numba import njit

from .errors import SelectionError
from .model import Model


class Face(IntEnum):
    """
    Face classes used for shading, in exposure-array column order.

    Oblique views draw the face toward the camera as LEFT, the darkest of
    the vertical faces.
    """
    TOP = 0
    LEFT = 1
    RIGHT = 2


EMPTY_FACE = -1

# Plain ints so the JIT kernels see compile-time constants
_TOP = 0
_LEFT = 1
_RIGHT = 2


def _normalize(value) -> str:
    """Lower-case a name, accepting "-", "." and spaces in place of "_"."""
    name = str(value).strip().lower()
    for sep in ("-", ".", " "):
        name = name.replace(sep, "_")
    return name


class Side(Enum):
    """Axis-aligned orthographic projections."""
    TOP = "top"
    FRONT = "front"
    LEFT = "left"
    RIGHT = "right"
    BACK = "back"
    BOTTOM = "bottom"

    @classmethod
    def parse(cls, value: Union[str, "Side"]) -> "Side":
        """
        Convert a name to a Side.

        Raises:
            SelectionError: If the name is not a known side
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            choices = ", ".join(s.value for s in cls)
            raise SelectionError(f"No side named {value!r} (choose from {choices})") from None

    @classmethod
    def all(cls) -> Tuple["Side", ...]:
        return tuple(cls)


class View(Enum):
    """
    Isometric corner views.

    Each is named after the two vertical faces it shows, listed in screen
    order (left face first). The top face is always visible. The "_22_5"
    variants look from the same corner with a taller 4 x 4 cell.
    """
    FRONT_RIGHT = "front_right"
    RIGHT_BACK = "right_back"
    BACK_LEFT = "back_left"
    LEFT_FRONT = "left_front"
    FRONT_RIGHT_22_5 = "front_right_22_5"
    RIGHT_BACK_22_5 = "right_back_22_5"
    BACK_LEFT_22_5 = "back_left_22_5"
    LEFT_FRONT_22_5 = "left_front_22_5"

    @classmethod
    def parse(cls, value: Union[str, "View"]) -> "View":
        """
        Convert a name to a View ("front-right" and "front_right" both work).

        Raises:
            SelectionError: If the name is not a known view
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(_normalize(value))
        except ValueError:
            choices = ", ".join(v.value for v in cls)
            raise SelectionError(f"No view named {value!r} (choose from {choices})") from None

    @classmethod
    def all(cls) -> Tuple["View", ...]:
        return tuple(cls)

    @property
    def corner(self) -> "View":
        """The standard 2:1 view from the same corner."""
        return View(self.value.replace("_22_5", ""))

    @property
    def is_standard(self) -> bool:
        return self.corner is self


class Oblique(Enum):
    """
    Oblique views facing one side.

    Named "<side>_45" or "<side>_22_5" after the side the camera faces and
    how far it is raised above the horizon.
    """
    FRONT_45 = "front_45"
    LEFT_45 = "left_45"
    RIGHT_45 = "right_45"
    BACK_45 = "back_45"
    FRONT_22_5 = "front_22_5"
    LEFT_22_5 = "left_22_5"
    RIGHT_22_5 = "right_22_5"
    BACK_22_5 = "back_22_5"

    @classmethod
    def parse(cls, value: Union[str, "Oblique"]) -> "Oblique":
        """
        Convert a name to an Oblique view ("front_22.5" is accepted).

        Raises:
            SelectionError: If the name is not a known oblique view
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(_normalize(value))
        except ValueError:
            choices = ", ".join(o.value for o in cls)
            raise SelectionError(f"No oblique view named {value!r} (choose from {choices})") from None

    @classmethod
    def all(cls) -> Tuple["Oblique", ...]:
        return tuple(cls)

    @property
    def side(self) -> Side:
        """The side the camera faces."""
        return Side(self.value.split("_", 1)[0])


Projection = Union[View, Oblique, Side]


@dataclass(frozen=True, eq=False)
class PixelGrid:
    """
    Occlusion-resolved voxel-per-pixel map.

    Attributes:
        color_index: (H, W) uint8 palette indices, 0 where empty
        face: (H, W) int8 Face values, EMPTY_FACE where empty
        voxel: (H, W) int64 index into the model's voxel arrays, -1 where empty
    """

    color_index: np.ndarray = field(repr=False)
    face: np.ndarray = field(repr=False)
    voxel: np.ndarray = field(repr=False)

    @property
    def width(self) -> int:
        return int(self.color_index.shape[1])

    @property
    def height(self) -> int:
        return int(self.color_index.shape[0])

    @property
    def filled(self) -> np.ndarray:
        """Boolean mask of cells with a visible voxel."""
        return self.voxel >= 0

    @property
    def is_empty(self) -> bool:
        return not bool(np.any(self.filled))


@njit(cache=True, nogil=True)
def _rasterize(
    us: np.ndarray,
    vs: np.ndarray,
    depths: np.ndarray,
    sprite_faces: np.ndarray,
    sprite_halves: np.ndarray,
    width: int,
    height: int
):
    """
    Stamp one sprite per voxel into a depth buffer.

    Voxels must arrive in tie-break order: a later voxel only replaces an
    earlier one when it is strictly nearer.

    Returns:
        Tuple of (winners, nominal, halves) arrays of shape (height, width)
    """
    winners = np.full((height, width), -1, np.int64)
    nominal = np.full((height, width), -1, np.int8)
    halves = np.full((height, width), -1, np.int8)
    best = np.full((height, width), -1, np.int64)

    sh = sprite_faces.shape[0]
    sw = sprite_faces.shape[1]

    for i in range(us.shape[0]):
        d = depths[i]
        for dy in range(sh):
            y = vs[i] + dy
            for dx in range(sw):
                x = us[i] + dx
                if d > best[y, x]:
                    best[y, x] = d
                    winners[y, x] = i
                    nominal[y, x] = sprite_faces[dy, dx]
                    halves[y, x] = sprite_halves[dy, dx]

    return winners, nominal, halves


@njit(cache=True, nogil=True)
def _classify_faces(
    winners: np.ndarray,
    nominal: np.ndarray,
    halves: np.ndarray,
    exposed: np.ndarray
) -> np.ndarray:
    """
    Pick the face each winning voxel is seen through.

    A pixel keeps its nominal face when that face is exposed. Otherwise the
    first exposed face wins in the order: top, the face on the pixel's half
    of the sprite, the other vertical face. With nothing exposed the nominal
    face is kept.
    """
    height, width = winners.shape
    faces = np.full((height, width), -1, np.int8)

    for y in range(height):
        for x in range(width):
            i = winners[y, x]
            if i < 0:
                continue

            face = nominal[y, x]
            if not exposed[i, face]:
                half = halves[y, x]
                other = _LEFT + _RIGHT - half
                if exposed[i, _TOP]:
                    face = _TOP
                elif exposed[i, half]:
                    face = half
                elif exposed[i, other]:
                    face = other
            faces[y, x] = face

    return faces


def resolve_occlusion(
    coords: np.ndarray,
    u: np.ndarray,
    v: np.ndarray,
    depth: np.ndarray,
    width: int,
    height: int,
    sprite_faces: np.ndarray,
    sprite_halves: np.ndarray
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Resolve which voxel is visible at every pixel.

    The voxel with the greatest depth wins a pixel. When two voxels reach a
    pixel with equal depth, the one whose original (x, y, z) is
    lexicographically smaller wins, regardless of input order.

    Args:
        coords: (N, 3) original voxel coordinates (tie-break key)
        u, v: (N,) screen position of each voxel's sprite origin
        depth: (N,) non-negative nearness values
        width, height: Output grid size
        sprite_faces: (h, w) nominal Face per sprite pixel
        sprite_halves: (h, w) Face of the sprite half each pixel lies in

    Returns:
        Tuple of (winners, nominal, halves); winners index into coords
    """
    coords = np.asarray(coords)
    order = np.lexsort((coords[:, 2], coords[:, 1], coords[:, 0]))

    winners, nominal, halves = _rasterize(
        np.ascontiguousarray(u[order], dtype=np.int64),
        np.ascontiguousarray(v[order], dtype=np.int64),
        np.ascontiguousarray(depth[order], dtype=np.int64),
        sprite_faces, sprite_halves,
        int(width), int(height)
    )

    filled = winners >= 0
    winners[filled] = order[winners[filled]]
    return winners, nominal, halves


@dataclass(frozen=True)
class IsometricProjection:
    """
    Pixel-art isometric placement.

    A step along either horizontal axis moves a voxel half a cell across
    and top_height rows down; a step up moves it z_step rows up. With the
    default 4 x 2 cell a cube of n voxels per side comes out 4n pixels wide
    and 4n - 2 pixels tall.

    Attributes:
        tile_width: Cell width in pixels (even, >= 2)
        tile_height: Cell height in pixels (>= 2)
        top_height: Rows of top face per cell (default tile_height / 2)
        z_step: Rows between stacked voxels (default tile_height)
    """

    tile_width: int = 4
    tile_height: int = 2
    top_height: Optional[int] = None
    z_step: Optional[int] = None

    def __post_init__(self):
        if self.tile_width < 2 or self.tile_width % 2:
            raise ValueError(f"tile_width must be an even number >= 2, got {self.tile_width}")
        if self.tile_height < 2:
            raise ValueError(f"tile_height must be >= 2, got {self.tile_height}")

        if self.top_height is None:
            if self.tile_height % 2:
                raise ValueError(
                    f"tile_height must be even without an explicit top_height, got {self.tile_height}"
                )
            object.__setattr__(self, "top_height", self.tile_height // 2)
        if self.z_step is None:
            object.__setattr__(self, "z_step", self.tile_height)

        if not 1 <= self.top_height < self.tile_height:
            raise ValueError(f"top_height must be in [1, {self.tile_height}), got {self.top_height}")
        if not 1 <= self.z_step <= self.tile_height:
            raise ValueError(f"z_step must be in [1, {self.tile_height}], got {self.z_step}")

    def sprite(self) -> Tuple[np.ndarray, np.ndarray]:
        """
        Build the per-voxel sprite.

        Returns:
            Tuple of (faces, halves) int8 arrays of shape (H, W)
        """
        w, h = self.tile_width, self.tile_height
        halves = np.empty((h, w), dtype=np.int8)
        halves[:, :w // 2] = Face.LEFT
        halves[:, w // 2:] = Face.RIGHT

        faces = halves.copy()
        faces[:self.top_height] = Face.TOP
        return faces, halves

    def voxel_to_pixel(self, a, b, z, size_b: int, size_z: int):
        """
        Screen position of a voxel's sprite origin (top-left pixel).

        Args:
            a, b, z: Rotated voxel coordinates (ints or arrays)
            size_b, size_z: Rotated model extent along b and z

        Returns:
            (u, v) pixel coordinates
        """
        u = (self.tile_width // 2) * (a + (size_b - 1 - b))
        v = self.top_height * (a + b) + self.z_step * (size_z - 1 - z)
        return u, v

    def canvas_size(self, size_a: int, size_b: int, size_z: int) -> Tuple[int, int]:
        """Width and height of the uncropped buffer for a rotated model extent."""
        span = (size_a - 1) + (size_b - 1)
        width = (self.tile_width // 2) * span + self.tile_width
        height = self.top_height * span + self.z_step * (size_z - 1) + self.tile_height
        return width, height


@dataclass(frozen=True)
class ObliqueProjection:
    """
    Oblique placement with the camera raised above one side.

    Each voxel is a column_width wide sprite: top_height rows of top face
    over side_height rows of the face toward the camera. Nearer voxels sit
    lower on screen; stacked voxels are side_height rows apart.
    """

    column_width: int = 1
    side_height: int = 1
    top_height: int = 1

    def __post_init__(self):
        for name in ("column_width", "side_height", "top_height"):
            value = getattr(self, name)
            if value < 1:
                raise ValueError(f"{name} must be >= 1, got {value}")

    def sprite(self) -> Tuple[np.ndarray, np.ndarray]:
        height = self.top_height + self.side_height
        halves = np.full((height, self.column_width), Face.LEFT, dtype=np.int8)
        faces = halves.copy()
        faces[:self.top_height] = Face.TOP
        return faces, halves

    def voxel_to_pixel(self, h, n, z, size_z: int):
        u = self.column_width * h
        v = self.top_height * n + self.side_height * (size_z - 1 - z)
        return u, v

    def canvas_size(self, size_h: int, size_n: int, size_z: int) -> Tuple[int, int]:
        width = self.column_width * size_h
        height = (self.top_height * (size_n - 1) + self.side_height * (size_z - 1)
                  + self.top_height + self.side_height)
        return width, height


DEFAULT_ISOMETRIC = IsometricProjection()
TALL_ISOMETRIC = IsometricProjection(tile_width=4, tile_height=4, top_height=1, z_step=3)

OBLIQUE_45 = ObliqueProjection(column_width=1, side_height=1)
OBLIQUE_22_5 = ObliqueProjection(column_width=2, side_height=2)

_FLAT_SPRITE = np.full((1, 1), _TOP, dtype=np.int8)

# Model axis along which nearness is measured for each vertical side
_DEPTH_AXIS = {Side.FRONT: 1, Side.BACK: 1, Side.LEFT: 0, Side.RIGHT: 0}


def _side_mapping(model: Model, side: Side):
    """In-plane position, nearness and grid size for a side projection."""
    sx, sy, sz = model.size
    coords = model.coords.astype(np.int64)
    x, y, z = coords[:, 0], coords[:, 1], coords[:, 2]

    if side is Side.TOP:
        return x, sy - 1 - y, z, (sx, sy)
    if side is Side.BOTTOM:
        return x, y, sz - 1 - z, (sx, sy)
    if side is Side.FRONT:
        return x, sz - 1 - z, sy - 1 - y, (sx, sz)
    if side is Side.BACK:
        return sx - 1 - x, sz - 1 - z, y, (sx, sz)
    if side is Side.LEFT:
        return sy - 1 - y, sz - 1 - z, sx - 1 - x, (sy, sz)
    if side is Side.RIGHT:
        return y, sz - 1 - z, x, (sy, sz)
    raise SelectionError(f"Unsupported side: {side!r}")


def _view_rotation(model: Model, view: View):
    """Rotate horizontal coordinates so the view sees +a, +b and +z."""
    sx, sy, sz = model.size
    coords = model.coords.astype(np.int64)
    x, y, z = coords[:, 0], coords[:, 1], coords[:, 2]

    view = view.corner
    if view is View.FRONT_RIGHT:
        return x, sy - 1 - y, z, (sx, sy, sz)
    if view is View.RIGHT_BACK:
        return y, x, z, (sy, sx, sz)
    if view is View.BACK_LEFT:
        return sx - 1 - x, y, z, (sx, sy, sz)
    if view is View.LEFT_FRONT:
        return sy - 1 - y, sx - 1 - x, z, (sy, sx, sz)
    raise SelectionError(f"Unsupported view: {view!r}")


def _build_grid(model: Model, winners: np.ndarray, faces: np.ndarray) -> PixelGrid:
    filled = winners >= 0
    color_index = np.zeros(winners.shape, dtype=np.uint8)
    color_index[filled] = model.colors[winners[filled]]
    return PixelGrid(color_index=color_index, face=faces, voxel=winners)


def project_side(model: Model, side: Union[str, Side]) -> PixelGrid:
    """
    Flat orthographic projection along one axis.

    Every visible cell is classified as Face.TOP: the face squarely facing
    the camera is drawn unshaded.

    Args:
        model: Model to project
        side: Side or side name

    Returns:
        PixelGrid sized to the model's in-plane extent
    """
    side = Side.parse(side)
    u, v, near, (width, height) = _side_mapping(model, side)

    winners, nominal, _ = resolve_occlusion(
        model.coords, u, v, near, width, height, _FLAT_SPRITE, _FLAT_SPRITE
    )
    return _build_grid(model, winners, nominal)


def exposed_faces(a: np.ndarray, b: np.ndarray, z: np.ndarray,
                  extent: Tuple[int, int, int]) -> np.ndarray:
    """
    Exposure of the three camera-facing faces of each voxel.

    A face is exposed when the neighbouring cell in its outward direction
    is empty or outside the model.

    Returns:
        (N, 3) bool array, columns ordered as Face (TOP, LEFT, RIGHT)
    """
    size_a, size_b, size_z = extent
    occupied = np.zeros((size_a + 1, size_b + 1, size_z + 1), dtype=bool)
    occupied[a, b, z] = True

    exposed = np.empty((len(a), 3), dtype=bool)
    exposed[:, Face.TOP] = ~occupied[a, b, z + 1]
    exposed[:, Face.LEFT] = ~occupied[a, b + 1, z]
    exposed[:, Face.RIGHT] = ~occupied[a + 1, b, z]
    return exposed


def project_view(
    model: Model,
    view: Union[str, View],
    projection: Optional[IsometricProjection] = None
) -> PixelGrid:
    """
    Isometric projection from one of the four corners.

    Args:
        model: Model to project
        view: View or view name
        projection: Cell geometry (default 4 x 2 pixels for the standard
            views, 4 x 4 with a one-row top for the "_22_5" views)

    Returns:
        PixelGrid with per-pixel face classification
    """
    view = View.parse(view)
    if projection is None:
        projection = DEFAULT_ISOMETRIC if view.is_standard else TALL_ISOMETRIC

    a, b, z, extent = _view_rotation(model, view)
    size_a, size_b, size_z = extent

    sprite_faces, sprite_halves = projection.sprite()
    u, v = projection.voxel_to_pixel(a, b, z, size_b, size_z)
    width, height = projection.canvas_size(size_a, size_b, size_z)

    winners, nominal, halves = resolve_occlusion(
        model.coords, u, v, a + b + z, width, height, sprite_faces, sprite_halves
    )
    faces = _classify_faces(winners, nominal, halves, exposed_faces(a, b, z, extent))
    return _build_grid(model, winners, faces)


def project_oblique(model: Model, oblique: Union[str, Oblique]) -> PixelGrid:
    """
    Oblique projection facing one vertical side.

    The 45 degree views draw each voxel as a 1 x 2 column, the 22.5 degree
    views as 2 x 3. A hidden camera-facing face falls back to the top face
    when that is exposed.

    Args:
        model: Model to project
        oblique: Oblique view or its name

    Returns:
        PixelGrid with TOP and LEFT (camera-facing) cells
    """
    oblique = Oblique.parse(oblique)
    projection = OBLIQUE_45 if oblique.value.endswith("_45") else OBLIQUE_22_5

    h, _, near, (size_h, size_z) = _side_mapping(model, oblique.side)
    size_n = model.size[_DEPTH_AXIS[oblique.side]]
    z = model.coords[:, 2].astype(np.int64)

    sprite_faces, sprite_halves = projection.sprite()
    u, v = projection.voxel_to_pixel(h, near, z, size_z)
    width, height = projection.canvas_size(size_h, size_n, size_z)

    winners, nominal, halves = resolve_occlusion(
        model.coords, u, v, near + z, width, height, sprite_faces, sprite_halves
    )

    # Nearness plays the part of b: its +1 neighbour covers the camera face
    exposed = exposed_faces(h, near, z, (size_h, size_n, size_z))
    exposed[:, Face.RIGHT] = False
    faces = _classify_faces(winners, nominal, halves, exposed)
    return _build_grid(model, winners, faces)


def parse_view(value: Union[str, View, Oblique]) -> Union[View, Oblique]:
    """
    Interpret a name as a corner View or an Oblique view.

    Raises:
        SelectionError: If the name matches neither
    """
    if isinstance(value, (View, Oblique)):
        return value
    try:
        return View.parse(value)
    except SelectionError:
        pass
    try:
        return Oblique.parse(value)
    except SelectionError:
        choices = ", ".join(v.value for v in all_views())
        raise SelectionError(f"No view named {value!r} (choose from {choices})") from None


def all_views() -> Tuple[Union[View, Oblique], ...]:
    """Every corner and oblique view, corners first."""
    return View.all() + Oblique.all()


def parse_projection(value: Union[str, Projection]) -> Projection:
    """
    Interpret a name as a View, an Oblique view or a Side.

    Raises:
        SelectionError: If the name matches none of them
    """
    if isinstance(value, (View, Oblique, Side)):
        return value
    try:
        return parse_view(value)
    except SelectionError:
        pass
    try:
        return Side.parse(value)
    except SelectionError:
        raise SelectionError(f"{value!r} is neither a view nor a side") from None


def project(
    model: Model,
    projection: Union[str, Projection],
    tile: Optional[IsometricProjection] = None
) -> PixelGrid:
    """
    Project a model with any supported camera.

    Args:
        model: Model to project
        projection: View, Oblique, Side, or the name of any of them
        tile: Cell geometry for the standard corner views (default 4 x 2).
            The "_22_5" corner views keep their own cell.

    Returns:
        PixelGrid
    """
    projection = parse_projection(projection)
    if isinstance(projection, View):
        return project_view(model, projection, tile if projection.is_standard else None)
    if isinstance(projection, Oblique):
        return project_oblique(model, projection)
    return project_side(model, projection)
