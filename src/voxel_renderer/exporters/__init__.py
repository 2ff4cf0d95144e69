"""
Export modules.

Supported formats:
- MagicaVoxel (.vox) - Round-trips decoded models and palettes
"""

from .vox_exporter import VoxChunk, VoxExporter, encode_vox

__all__ = ["VoxChunk", "VoxExporter", "encode_vox"]
