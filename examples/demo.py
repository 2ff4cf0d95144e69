#!/usr/bin/env python3
"""
Voxel Renderer Demo Script

This script demonstrates the full rendering pipeline by:
1. Building sample models in code (no external .vox files needed)
2. Writing them to a .vox file and decoding it again
3. Rendering every view and side of every model
4. Printing sprite sizes and timings

Run with: python examples/demo.py
"""

import sys
from pathlib import Path
import time

# Add src to path for development
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from voxel_renderer import VoxelRenderer, VoxExporter
from voxel_renderer.projection import all_views
from voxel_renderer.samples import sample_document


def run_demo():
    """Run the demonstration."""
    print("=" * 60)
    print("Voxel Renderer - Demo")
    print("=" * 60)
    print()

    # Create output directory
    output_dir = Path(__file__).parent / "output"
    output_dir.mkdir(exist_ok=True)

    document = sample_document()
    vox_path = VoxExporter().export(document.models, output_dir / "samples.vox", document.palette)
    print(f"Saved: {vox_path}")

    total_start = time.time()

    renderer = VoxelRenderer(scale=4)
    renderer.load_file(vox_path)

    for info in renderer.describe_models():
        x, y, z = info["size"]
        print(f"\n--- Model {info['index']}: {x}x{y}x{z}, {info['voxels']} voxels ---")

        model_start = time.time()
        outputs = renderer.render(model=info["index"])
        render_time = time.time() - model_start

        for output in outputs:
            path = output.canvas.save(output_dir / output.filename)
            print(f"  {output.label:<16} {output.canvas.width:>4}x{output.canvas.height:<4} {path.name}")

        print(f"  Render time: {render_time*1000:.1f}ms for {len(outputs)} sprites")

    total_time = time.time() - total_start

    print("\n" + "=" * 60)
    print(f"Demo complete! Total time: {total_time:.2f}s")
    print(f"Output files in: {output_dir}")
    print("=" * 60)

    return 0


def benchmark_rendering():
    """Benchmark isometric rendering of solid cubes."""
    from voxel_renderer.samples import make_cube
    from voxel_renderer.model import VoxDocument
    from voxel_renderer.palette import Palette

    print("\n--- Isometric Rendering Benchmark ---\n")

    for size in [16, 32, 64, 128]:
        document = VoxDocument(150, Palette.default(), (make_cube(size, color=79),))
        renderer = VoxelRenderer().load_document(document)

        start = time.time()
        outputs = renderer.render(model=0, view="all")
        elapsed = time.time() - start

        canvas = outputs[0].canvas
        print(f"Cube {size}x{size}x{size}: {size ** 3} voxels")
        print(f"  {len(all_views())} views in {elapsed*1000:.1f}ms, sprite {canvas.width}x{canvas.height}")
        print()


if __name__ == "__main__":
    run_demo()

    # Uncomment to run benchmark
    # benchmark_rendering()
