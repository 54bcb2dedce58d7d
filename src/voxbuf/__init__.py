"""voxbuf: voxel buffer images and orientation-aware slice traversal."""

__version__ = "0.1.0"
