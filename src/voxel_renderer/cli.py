"""
Command-Line Interface for Voxel Renderer

Usage:
    voxrender castle.vox
    voxrender castle.vox -m 0 -v front_right -o sprites
    voxrender castle.vox -s top --scale 4 -o sprites
    voxrender castle.vox -v front_45 -o sprites
    voxrender --batch models/ -o sprites

"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional
import time

from . import __version__
from .errors import SelectionError
from .projection import IsometricProjection, Oblique, Side, View
from .renderer import ALL, RenderOutput, VoxelRenderer


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    view_names = ", ".join(v.value for v in View)
    oblique_names = ", ".join(o.value for o in Oblique)
    side_names = ", ".join(s.value for s in Side)

    parser = argparse.ArgumentParser(
        prog="voxrender",
        description="Voxel Renderer - Render MagicaVoxel models to pixel art sprites",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Examples:
  voxrender castle.vox
      Render every model from every view and side into the current directory

  voxrender castle.vox -m 0 -v front_right -o sprites
      Render model 0 as an isometric sprite

  voxrender castle.vox -s all --scale 4 -o sprites
      Render all flat sides, upscaled 4x

  voxrender castle.vox -v front_right --tile 8x4 -o sprites
      Render with a larger isometric cell

  voxrender castle.vox --list
      Print the models in the file

Views (isometric): {view_names}
Views (oblique):   {oblique_names}
Sides (flat):      {side_names}

--view all selects every isometric and oblique view; --side all every side.
If neither --view nor --side is given, every view and every side is rendered.
Output files are named <view-or-side>_<model>.png.
        """
    )

    # Input
    parser.add_argument(
        "input",
        nargs="?",
        help="Input .vox file"
    )

    # Selection
    parser.add_argument(
        "-m", "--model",
        default=ALL,
        help="Model index to render, or 'all' (default: all)"
    )

    parser.add_argument(
        "-v", "--view",
        help="Isometric or oblique view to render, or 'all'"
    )

    parser.add_argument(
        "-s", "--side",
        help="Flat side to render, or 'all'"
    )

    # Output
    parser.add_argument(
        "-o", "--output",
        default=".",
        help="Output directory (default: current directory)"
    )

    parser.add_argument(
        "--scale",
        type=int,
        default=1,
        help="Integer upscale factor for every sprite (default: 1)"
    )

    parser.add_argument(
        "--tile",
        help="Isometric cell as WIDTHxHEIGHT for the standard corner views (default: 4x2)"
    )

    parser.add_argument(
        "--workers",
        type=int,
        help="Number of render threads (default: automatic)"
    )

    # Batch processing
    parser.add_argument(
        "--batch",
        help="Render every .vox file in a directory"
    )

    parser.add_argument(
        "--pattern",
        default="*.vox",
        help="File pattern for batch processing (default: *.vox)"
    )

    # Misc
    parser.add_argument(
        "--list",
        action="store_true",
        help="List the models in the input file and exit"
    )

    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Verbose output with timings and log messages"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    return parser


def parse_tile(value: str) -> IsometricProjection:
    """
    Parse a WIDTHxHEIGHT cell such as "8x4".

    Raises:
        ValueError: If the text is malformed or the cell is invalid
    """
    parts = value.lower().split("x")
    if len(parts) != 2:
        raise ValueError(f"Tile must look like WIDTHxHEIGHT, got {value!r}")
    return IsometricProjection(int(parts[0]), int(parts[1]))


def configure_logging(verbose: bool):
    """Send library log records to stderr."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def write_outputs(outputs: List[RenderOutput], output_dir: Path, verbose: bool = False) -> List[Path]:
    """Save each canvas as <label>.png in output_dir."""
    output_dir.mkdir(parents=True, exist_ok=True)
    paths = []

    for output in outputs:
        path = output.canvas.save(output_dir / output.filename)
        paths.append(path)
        if verbose:
            print(f"Wrote: {path} ({output.canvas.width}x{output.canvas.height})")

    return paths


def print_models(renderer: VoxelRenderer, source: Path):
    """Print a table of the loaded models."""
    document = renderer.document
    palette = "default" if document.palette.is_default else "file"
    print(f"{source}: version {document.version}, {document.model_count} models, {palette} palette")
    for info in renderer.describe_models():
        x, y, z = info["size"]
        print(f"  [{info['index']}] {x}x{y}x{z}  {info['voxels']} voxels")


def process_single(args) -> int:
    """Render one .vox file."""
    if not args.input:
        print("Error: No input file specified", file=sys.stderr)
        return 1

    input_path = Path(args.input)
    if not input_path.exists():
        print(f"Error: Input file not found: {input_path}", file=sys.stderr)
        return 1

    start_time = time.time()

    try:
        renderer = VoxelRenderer(workers=args.workers, scale=args.scale, tile=args.tile)

        if args.verbose:
            print(f"Loading: {input_path}")

        renderer.load_file(input_path)

        if args.list:
            print_models(renderer, input_path)
            return 0

        outputs = renderer.render(model=args.model, view=args.view, side=args.side)
        paths = write_outputs(outputs, Path(args.output), args.verbose)

        elapsed = time.time() - start_time
        print(f"Rendered {len(paths)} sprites to {args.output}")
        if args.verbose:
            print(f"Completed in {elapsed:.2f}s")

        return 0

    except SelectionError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1


def process_batch(args) -> int:
    """
    Render every matching file in a directory into per-file subdirectories.

    A file that cannot be read or rendered is reported and skipped. The exit
    code is 1 if any file failed to load, 2 if only selections failed.
    """
    batch_dir = Path(args.batch)
    if not batch_dir.is_dir():
        print(f"Error: Batch directory not found: {batch_dir}", file=sys.stderr)
        return 1

    output_dir = Path(args.output)
    renderer = VoxelRenderer(workers=args.workers, scale=args.scale, tile=args.tile)
    start_time = time.time()
    failures = 0
    selection_failures = 0
    total = 0

    files = sorted(batch_dir.glob(args.pattern))
    for vox_path in files:
        try:
            renderer.load_file(vox_path)
            outputs = renderer.render(model=args.model, view=args.view, side=args.side)
        except SelectionError as e:
            selection_failures += 1
            print(f"Error: {vox_path.name}: {e}", file=sys.stderr)
            continue
        except Exception as e:
            failures += 1
            print(f"Error: {vox_path.name}: {e}", file=sys.stderr)
            continue

        total += len(write_outputs(outputs, output_dir / vox_path.stem, args.verbose))

    elapsed = time.time() - start_time
    print(f"Rendered {total} sprites from {len(files) - failures - selection_failures} files in {elapsed:.2f}s")
    print(f"Output directory: {output_dir}")

    if failures:
        return 1
    return 2 if selection_failures else 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    configure_logging(args.verbose)

    if args.scale < 1:
        print("Error: --scale must be at least 1", file=sys.stderr)
        return 1
    if args.workers is not None and args.workers < 1:
        print("Error: --workers must be at least 1", file=sys.stderr)
        return 1
    if args.tile is not None:
        try:
            args.tile = parse_tile(args.tile)
        except ValueError as e:
            print(f"Error: --tile: {e}", file=sys.stderr)
            return 1

    if args.batch:
        return process_batch(args)
    else:
        return process_single(args)


if __name__ == "__main__":
    sys.exit(main())
