"""
Errors raised by the cover compositor.

All of them are fatal to the render that raised them; callers present the
message and let the user retry.
"""


class CoverRenderError(Exception):
    """Base class for every failure the compositor reports."""


class ResourceLoadError(CoverRenderError):
    """An image or font reference could not be read or decoded."""


class RenderSurfaceError(CoverRenderError):
    """The output canvas could not be allocated at the requested size."""


class InvalidGeometryError(CoverRenderError):
    """Physical dimensions that cannot describe a printable cover."""
