"""
Exceptions raised by the relief pipeline.

Every stage raises immediately; no stage hands back a partially
computed raster or mesh.
"""


class ReliefError(Exception):
    """Base class for all relief pipeline errors."""


class DecodeError(ReliefError):
    """Source raster could not be decoded."""


class InvalidDimensionsError(ReliefError, ValueError):
    """Zero or negative raster width/height."""


class InvalidParameterError(ReliefError, ValueError):
    """Edge parameter outside its domain (rejected, never clamped)."""
