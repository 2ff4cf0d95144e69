"""
Voxel Renderer
==============

Renders MagicaVoxel (.vox) models into hard-edged pixel art sprites.

This package decodes .vox files and draws every model as a flat,
axis-aligned sprite (one of six sides), as an isometric sprite from one of
four corners, or as an oblique sprite looking down on one side, with simple
per-face shading and a transparent background.

Key Features:
- Bounds-checked chunk decoder for the MagicaVoxel .vox format
- Six orthographic sides, isometric corner views at two camera heights and
  45 and 22.5 degree oblique views
- Deterministic occlusion with Numba JIT compiled rasterization
- Thread pool rendering of every (model, view-or-side) combination
- Tightly cropped RGBA canvases, saved as PNG through Pillow

Example Usage:
    from voxel_renderer import VoxelRenderer

    renderer = VoxelRenderer()
    renderer.load_file("castle.vox")
    for output in renderer.render(model=0, view="front_right"):
        output.canvas.save(output.filename)
"""

__version__ = "1.0.0"
__author__ = "Voxel Renderer Team"

from .errors import MalformedStream, SelectionError, StructuralError, VoxRenderError
from .palette import DEFAULT_PALETTE, Palette
from .model import Model, VoxDocument, load_vox, read_vox
from .projection import Face, IsometricProjection, Oblique, PixelGrid, Side, View, project
from .shading import SHADE_FACTORS, shade
from .canvas import Canvas, assemble
from .renderer import RenderJob, RenderOutput, VoxelRenderer, plan_jobs, render_job
from .exporters import VoxExporter, encode_vox

__all__ = [
    "VoxelRenderer",
    "RenderJob",
    "RenderOutput",
    "plan_jobs",
    "render_job",
    "Model",
    "VoxDocument",
    "load_vox",
    "read_vox",
    "Palette",
    "DEFAULT_PALETTE",
    "Face",
    "Side",
    "View",
    "Oblique",
    "PixelGrid",
    "IsometricProjection",
    "project",
    "SHADE_FACTORS",
    "shade",
    "Canvas",
    "assemble",
    "VoxExporter",
    "encode_vox",
    "VoxRenderError",
    "MalformedStream",
    "StructuralError",
    "SelectionError",
]
