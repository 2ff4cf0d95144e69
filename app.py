#!/usr/bin/env python3
"""
Voxel Renderer Web Interface

A simple Gradio-based web UI for rendering MagicaVoxel models to sprites.

Run with: python app.py
Then open http://localhost:7860 in your browser
"""

import sys
from pathlib import Path
import tempfile

# Add src to path
sys.path.insert(0, str(Path(__file__).parent / "src"))

import gradio as gr
from voxel_renderer import VoxelRenderer, VoxRenderError
from voxel_renderer.projection import Side, View, all_views
from voxel_renderer.samples import SAMPLES, sample_document


NONE = "(none)"
ALL = "all"

VIEW_CHOICES = [NONE, ALL] + [v.value for v in all_views()]
SIDE_CHOICES = [NONE, ALL] + [s.value for s in Side]


def _selection(value: str):
    return None if value in (None, NONE) else value


def _render(renderer: VoxelRenderer, model: str, view: str, side: str, source: str):
    """Render a selection and save the canvases for the gallery."""
    outputs = renderer.render(model=model or ALL, view=_selection(view), side=_selection(side))

    export_dir = Path(tempfile.mkdtemp(prefix="voxrender_"))
    gallery = []
    for output in outputs:
        path = output.canvas.save(export_dir / output.filename)
        gallery.append((str(path), output.label))

    rows = "\n".join(
        f"| {info['index']} | {'x'.join(str(s) for s in info['size'])} | {info['voxels']:,} |"
        for info in renderer.describe_models()
    )

    stats_text = f"""## Rendered {len(outputs)} sprites

**Source:** {source}

| Model | Size | Voxels |
|-------|------|--------|
{rows}

**Settings:** model={model or ALL}, view={view}, side={side}, scale={renderer.scale}
"""
    return gallery, stats_text


def process_file(vox_file, model: str, view: str, side: str, scale: int):
    """
    Render an uploaded .vox file.

    Returns gallery items and stats text.
    """
    if vox_file is None:
        return [], "Please upload a .vox file first."

    path = Path(vox_file if isinstance(vox_file, str) else vox_file.name)
    renderer = VoxelRenderer(scale=int(scale))

    try:
        renderer.load_file(path)
        return _render(renderer, model, view, side, path.name)
    except (VoxRenderError, OSError) as e:
        return [], f"**Error:** {e}"


def process_sample(name: str, view: str, side: str, scale: int):
    """Render one of the built-in sample models."""
    if not name:
        return [], "Pick a sample first."

    renderer = VoxelRenderer(scale=int(scale)).load_document(sample_document(name))
    try:
        return _render(renderer, ALL, view, side, f"sample '{name}'")
    except VoxRenderError as e:
        return [], f"**Error:** {e}"


# Build the Gradio interface
with gr.Blocks(title="Voxel Renderer") as app:

    gr.Markdown("""
    # Voxel Renderer
    ### Render MagicaVoxel Models to Pixel Art Sprites

    Upload a .vox file or try a sample, pick views and sides, and download the sprites!
    """)

    with gr.Row():
        # Left column - Input
        with gr.Column(scale=1):
            gr.Markdown("### Input Model")

            vox_input = gr.File(
                label="Upload .vox file",
                file_types=[".vox"]
            )

            with gr.Row():
                sample_dropdown = gr.Dropdown(
                    choices=list(SAMPLES),
                    label="Or try a sample"
                )
                sample_btn = gr.Button("Render Sample")

            gr.Markdown("### Settings")

            model_input = gr.Textbox(
                value=ALL,
                label="Model index (or 'all')"
            )

            view_input = gr.Dropdown(
                choices=VIEW_CHOICES,
                value=View.FRONT_RIGHT.value,
                label="Isometric view"
            )

            side_input = gr.Dropdown(
                choices=SIDE_CHOICES,
                value=NONE,
                label="Flat side"
            )

            scale_input = gr.Slider(
                minimum=1,
                maximum=8,
                value=4,
                step=1,
                label="Pixel scale"
            )

            render_btn = gr.Button("Render Sprites", variant="primary")

        # Right column - Output
        with gr.Column(scale=2):
            gr.Markdown("### Sprites")

            gallery_output = gr.Gallery(
                label="Rendered sprites",
                columns=4,
                object_fit="contain"
            )

            stats_output = gr.Markdown(
                value="Upload a model and click 'Render' to see results."
            )

            gr.Markdown("""
            ---
            **Tips:**
            - **Views** are isometric (three faces) or oblique (`front_45`, `front_22_5`, ...: top and one side)
            - **Sides** are flat, one face visible
            - Leave both at *(none)* to render everything
            """)

    # Wire up events
    sample_btn.click(
        fn=process_sample,
        inputs=[sample_dropdown, view_input, side_input, scale_input],
        outputs=[gallery_output, stats_output]
    )

    render_btn.click(
        fn=process_file,
        inputs=[vox_input, model_input, view_input, side_input, scale_input],
        outputs=[gallery_output, stats_output]
    )


if __name__ == "__main__":
    print("\n" + "="*60)
    print("Voxel Renderer Web Interface")
    print("="*60)
    print("\nStarting server...")
    print("Open http://localhost:7860 in your browser\n")

    app.launch(
        server_name="0.0.0.0",
        server_port=7860,
        share=False
    )
