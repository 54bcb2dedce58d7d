"""Image data model: geometry, rescale state and the sample buffer."""

from voxbuf.core.geometry import Geometry, Index, Matrix33, Size
from voxbuf.core.image import Image
from voxbuf.core.types import RescaleSlopeAndIntercept

__all__ = [
    "Geometry",
    "Image",
    "Index",
    "Matrix33",
    "RescaleSlopeAndIntercept",
    "Size",
]
