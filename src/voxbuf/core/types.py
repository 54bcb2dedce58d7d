"""Core data types for voxbuf images."""

from __future__ import annotations

import math
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True, eq=False)
class RescaleSlopeAndIntercept:
    """Linear transform from stored sample values to calibrated units."""

    slope: float = 1.0
    intercept: float = 0.0

    def __post_init__(self):
        # integer fields would keep integer buffers in their own dtype
        object.__setattr__(self, "slope", float(self.slope))
        object.__setattr__(self, "intercept", float(self.intercept))

    def apply(self, value: float) -> float:
        return value * self.slope + self.intercept

    def is_identity(self) -> bool:
        return self.slope == 1 and self.intercept == 0

    def equals(self, rhs: RescaleSlopeAndIntercept | None, tol: float = 1e-8) -> bool:
        """Check equality of both fields within an absolute tolerance."""
        if rhs is None:
            return False
        return (
            math.isclose(self.slope, rhs.slope, rel_tol=0.0, abs_tol=tol)
            and math.isclose(self.intercept, rhs.intercept, rel_tol=0.0, abs_tol=tol)
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RescaleSlopeAndIntercept):
            return NotImplemented
        return self.equals(other)

    def __hash__(self) -> int:
        return hash((round(self.slope, 6), round(self.intercept, 6)))

    def __str__(self) -> str:
        return f"({self.slope}, {self.intercept})"


@dataclass(frozen=True)
class DataRange:
    """Minimum and maximum of a set of sample values."""

    min: float
    max: float


@dataclass(frozen=True)
class WindowLevel:
    """Display window centre and width."""

    center: float
    width: float


@dataclass
class WindowPreset:
    """Named window/level preset, one value for all slices or one per slice."""

    wl: list[WindowLevel]
    name: str = ""
    perslice: bool = False


@dataclass
class InspectConfig:
    """Configuration for the inspect command (from CLI flags)."""

    input_path: Path
    view: str = "axial"  # "axial", "coronal", "sagittal"
    slice_index: int = 0
    slope: float = 1.0
    intercept: float = 0.0
    rescaled: bool = False
    rgb: bool = False
    planar: bool = False
    histogram: bool = False
    preview: int = 16  # number of slice values to print
    verbose: bool = False
