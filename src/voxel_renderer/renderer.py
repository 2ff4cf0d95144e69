"""
Main VoxelRenderer Class

This is the primary interface for the rendering pipeline.
It orchestrates:
1. Decoding a .vox file into models and a palette
2. Planning one job per (model, view-or-side) combination
3. Projection, shading and canvas assembly per job
4. Running the jobs on a thread pool

Example Usage:
    renderer = VoxelRenderer(scale=2)
    renderer.load_file("castle.vox")
    for output in renderer.render(model=0, view="front_right"):
        output.canvas.save(output.filename)
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, NamedTuple, Optional, Sequence, Union
import logging

from .canvas import Canvas, assemble
from .errors import SelectionError
from .model import Model, VoxDocument, load_vox, read_vox
from .projection import (
    IsometricProjection,
    Oblique,
    Projection,
    Side,
    View,
    all_views,
    parse_view,
    project,
)
from .shading import shade


logger = logging.getLogger(__name__)

ALL = "all"

ModelSelector = Optional[Union[int, str]]
ProjectionSelector = Optional[Union[str, View, Oblique, Side]]


@dataclass(frozen=True)
class RenderJob:
    """One unit of work: a model index and a single view or side."""

    model_index: int
    projection: Projection

    @property
    def label(self) -> str:
        """Label such as "front_right_0" or "top_2"."""
        return f"{self.projection.value}_{self.model_index}"


@dataclass(frozen=True)
class RenderOutput:
    """Result of one job."""

    job: RenderJob
    canvas: Canvas

    @property
    def label(self) -> str:
        return self.job.label

    @property
    def filename(self) -> str:
        """Suggested PNG file name."""
        return f"{self.job.label}.png"


class Selection(NamedTuple):
    """A render request as given by a caller (model, view, side)."""
    model: ModelSelector = None
    view: ProjectionSelector = None
    side: ProjectionSelector = None


@dataclass
class BatchResult:
    """Outcome of one selection in render_batch()."""

    selection: Selection
    outputs: List[RenderOutput]
    error: Optional[SelectionError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _is_all(value) -> bool:
    return isinstance(value, str) and value.strip().lower() == ALL


def _resolve_models(model_count: int, model: ModelSelector) -> List[int]:
    if model is None or _is_all(model):
        return list(range(model_count))

    try:
        index = int(model)
    except (TypeError, ValueError):
        raise SelectionError(f"Model must be an index or 'all', got {model!r}") from None

    if not 0 <= index < model_count:
        raise SelectionError(f"Model index {index} out of range [0, {model_count})")
    return [index]


def _resolve_views(value) -> List[Projection]:
    if value is None:
        return []
    if _is_all(value):
        return list(all_views())
    return [parse_view(value)]


def _resolve_sides(value) -> List[Projection]:
    if value is None:
        return []
    if _is_all(value):
        return list(Side.all())
    return [Side.parse(value)]


def plan_jobs(
    model_count: int,
    model: ModelSelector = None,
    view: ProjectionSelector = None,
    side: ProjectionSelector = None
) -> List[RenderJob]:
    """
    Expand a selection into an explicit, ordered job list.

    Args:
        model_count: Number of models in the document
        model: Model index, "all" or None (every model)
        view: View or Oblique, its name, "all" or None (no views)
        side: Side, side name, "all" or None (no sides)

    When neither a view nor a side is requested, every corner view, every
    oblique view and every side is rendered. Jobs are ordered by model, then views before sides.

    Returns:
        List of RenderJob

    Raises:
        SelectionError: On an out-of-range model or an unknown view/side
    """
    models = _resolve_models(model_count, model)

    if view is None and side is None:
        projections = list(all_views()) + list(Side.all())
    else:
        projections = _resolve_views(view) + _resolve_sides(side)

    return [RenderJob(m, p) for m in models for p in projections]


def render_model(model: Model, document: VoxDocument, projection: Projection,
                 scale: int = 1, label: str = "",
                 tile: Optional[IsometricProjection] = None) -> Canvas:
    """Project, shade and crop a single model."""
    grid = project(model, projection, tile)
    rgba = shade(grid, document.palette)
    return assemble(rgba, label or f"{projection.value}_{model.index}", scale=scale)


def render_job(document: VoxDocument, job: RenderJob, scale: int = 1,
               tile: Optional[IsometricProjection] = None) -> RenderOutput:
    """
    Run one job. Pure: reads the document and returns a new canvas.

    Raises:
        SelectionError: If the job's model index is not in the document
    """
    model = document.model(job.model_index)
    canvas = render_model(model, document, job.projection, scale=scale,
                          label=job.label, tile=tile)
    return RenderOutput(job=job, canvas=canvas)


class VoxelRenderer:
    """
    High-level interface for rendering .vox files to sprites.

    Attributes:
        workers: Thread pool size (None lets the executor decide)
        scale: Integer upscale factor applied to every canvas
        tile: Cell geometry for the standard corner views, or None for 4 x 2
        document: The loaded document, or None
    """

    def __init__(self, workers: Optional[int] = None, scale: int = 1,
                 tile: Optional[IsometricProjection] = None):
        """
        Initialize the VoxelRenderer.

        Args:
            workers: Maximum number of render threads
            scale: Nearest-neighbour upscale factor (>= 1)
            tile: Isometric cell for the standard corner views
        """
        if workers is not None and workers < 1:
            raise ValueError(f"workers must be >= 1, got {workers}")
        if scale < 1:
            raise ValueError(f"scale must be >= 1, got {scale}")

        self.workers = workers
        self.scale = scale
        self.tile = tile
        self._document: Optional[VoxDocument] = None

    def load_file(self, file_path: Union[str, Path]) -> "VoxelRenderer":
        """
        Load a .vox file.

        Returns:
            self for method chaining
        """
        self._document = read_vox(file_path)
        return self

    def load_bytes(self, data: bytes) -> "VoxelRenderer":
        """
        Load .vox data already in memory.

        Returns:
            self for method chaining
        """
        self._document = load_vox(data)
        return self

    def load_document(self, document: VoxDocument) -> "VoxelRenderer":
        """Use an already decoded document."""
        self._document = document
        return self

    @property
    def document(self) -> Optional[VoxDocument]:
        return self._document

    def _require_document(self) -> VoxDocument:
        if self._document is None:
            raise RuntimeError("No document loaded. Call load_file() first.")
        return self._document

    def plan(self, model: ModelSelector = None, view: ProjectionSelector = None,
             side: ProjectionSelector = None) -> List[RenderJob]:
        """Plan jobs against the loaded document."""
        return plan_jobs(self._require_document().model_count, model, view, side)

    def render_jobs(self, jobs: Sequence[RenderJob]) -> List[RenderOutput]:
        """
        Render jobs concurrently.

        Results come back in job order.
        """
        document = self._require_document()
        jobs = list(jobs)
        if not jobs:
            return []

        logger.info("Rendering %d jobs with %s workers", len(jobs), self.workers or "default")

        if len(jobs) == 1 or self.workers == 1:
            return [render_job(document, job, self.scale, self.tile) for job in jobs]

        with ThreadPoolExecutor(max_workers=self.workers) as executor:
            return list(executor.map(
                lambda job: render_job(document, job, self.scale, self.tile), jobs
            ))

    def render(self, model: ModelSelector = None, view: ProjectionSelector = None,
               side: ProjectionSelector = None) -> List[RenderOutput]:
        """
        Render one selection.

        Args:
            model: Model index or "all" (default all)
            view: View name, "all" or None
            side: Side name, "all" or None

        Returns:
            One RenderOutput per (model, view-or-side) combination

        Raises:
            SelectionError: If the selection is invalid
        """
        return self.render_jobs(self.plan(model, view, side))

    def render_batch(
        self,
        selections: Iterable[Union[Selection, tuple, dict]]
    ) -> List[BatchResult]:
        """
        Render several selections, isolating selection errors.

        A SelectionError fails only the selection that caused it; every
        other selection is still rendered.

        Args:
            selections: Selection tuples, plain (model, view, side) tuples
                or dicts with those keys

        Returns:
            One BatchResult per selection, in input order
        """
        self._require_document()
        results = []

        for raw in selections:
            if isinstance(raw, dict):
                selection = Selection(**raw)
            else:
                selection = Selection(*raw)

            try:
                jobs = self.plan(*selection)
            except SelectionError as exc:
                logger.info("Skipping selection %s: %s", tuple(selection), exc)
                results.append(BatchResult(selection, [], exc))
                continue

            results.append(BatchResult(selection, self.render_jobs(jobs)))

        return results

    def describe_models(self) -> List[dict]:
        """
        Summarize the loaded models.

        Returns:
            List of dicts with index, size and voxel count
        """
        document = self._require_document()
        return [
            {
                "index": m.index,
                "size": m.size,
                "voxels": m.voxel_count,
            }
            for m in document.models
        ]
