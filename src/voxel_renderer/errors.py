"""
Error Types

Every failure the decoder, builder and renderer report is a VoxRenderError.
The base class derives from ValueError so callers that already guard
against bad input with ``except ValueError`` keep working.
"""

from typing import Optional


class VoxRenderError(ValueError):
    """Base class for all voxel renderer errors."""


class MalformedStream(VoxRenderError):
    """
    The byte stream cannot be decoded.

    Raised for a bad magic signature, a truncated header, or a chunk whose
    declared length runs past the end of its enclosing scope.
    """

    def __init__(self, message: str, offset: Optional[int] = None):
        self.offset = offset
        if offset is not None:
            message = f"{message} (at byte {offset})"
        super().__init__(message)


class StructuralError(VoxRenderError):
    """Chunks decode but do not form a valid document (pairing, palette size)."""


class SelectionError(VoxRenderError):
    """A model index, view or side outside the valid set was requested."""
