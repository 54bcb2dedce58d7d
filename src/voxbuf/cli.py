"""CLI entry point for voxbuf."""

from __future__ import annotations

import logging
from itertools import islice
from pathlib import Path

import numpy as np
import typer
from rich.table import Table

from voxbuf import __version__
from voxbuf._console import console, print_error, setup_logging
from voxbuf.core.geometry import Geometry, get_matrix_from_name
from voxbuf.core.image import Image
from voxbuf.core.types import InspectConfig, RescaleSlopeAndIntercept
from voxbuf.traversal.planner import get_slice_iterator

app = typer.Typer(
    name="voxbuf",
    help="Inspect a voxel volume: value ranges, histogram and oriented slices.",
    add_completion=False,
)

logger = logging.getLogger("voxbuf")


def version_callback(value: bool):
    if value:
        console.print(f"voxbuf {__version__}")
        raise typer.Exit()


@app.command()
def main(
    input_path: Path = typer.Argument(
        ...,
        help="Path to a .npy volume: [rows, cols], [slices, rows, cols] or [frames, slices, rows, cols].",
        exists=True,
    ),
    view: str = typer.Option(
        "axial",
        "--view",
        help="View orientation: axial, coronal, sagittal.",
    ),
    slice_index: int = typer.Option(
        0,
        "-s",
        "--slice",
        help="Index of the slice along the view's through-plane axis.",
    ),
    slope: float = typer.Option(
        1.0,
        "--slope",
        help="Rescale slope applied to stored values.",
    ),
    intercept: float = typer.Option(
        0.0,
        "--intercept",
        help="Rescale intercept applied to stored values.",
    ),
    rescaled: bool = typer.Option(
        False,
        "--rescaled",
        help="Preview rescaled instead of stored values.",
    ),
    rgb: bool = typer.Option(
        False,
        "--rgb",
        help="Last axis of the array holds 3 colour components.",
    ),
    planar: bool = typer.Option(
        False,
        "--planar",
        help="Store colour components per plane (RRR...GGG...BBB...).",
    ),
    histogram: bool = typer.Option(
        False,
        "--histogram",
        help="Print the non-empty histogram buckets.",
    ),
    preview: int = typer.Option(
        16,
        "--preview",
        help="Number of slice values to print.",
        min=0,
    ),
    verbose: bool = typer.Option(
        False,
        "-v",
        "--verbose",
        help="Show debug logging.",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
):
    """Inspect a voxel volume stored as a numpy array."""
    setup_logging(verbose)

    config = InspectConfig(
        input_path=input_path,
        view=view,
        slice_index=slice_index,
        slope=slope,
        intercept=intercept,
        rescaled=rescaled,
        rgb=rgb,
        planar=planar,
        histogram=histogram,
        preview=preview,
        verbose=verbose,
    )

    try:
        _run_inspect(config)
    except ValueError as e:
        print_error(str(e))
        raise typer.Exit(code=1)
    except FileNotFoundError as e:
        print_error(str(e))
        raise typer.Exit(code=4)


def load_image(config: InspectConfig) -> Image:
    """Build an image from a .npy array (rows and columns last, C order)."""
    array = np.load(config.input_path, allow_pickle=False)
    return image_from_array(array, rgb=config.rgb, planar=config.planar)


def image_from_array(array: np.ndarray, rgb: bool = False, planar: bool = False) -> Image:
    ncomp = 1
    shape = array.shape
    if rgb:
        if shape[-1] != 3:
            raise ValueError(f"Expected 3 components on the last axis, got shape {shape}")
        ncomp = 3
        shape = shape[:-1]
    if len(shape) not in (2, 3, 4):
        raise ValueError(f"Unsupported array shape: {array.shape}")

    # numpy order is [frames, slices, rows, cols], geometry order is reversed
    size = list(reversed(shape))
    if len(size) == 2:
        size.append(1)
    geometry = Geometry(origin=(0.0, 0.0, 0.0), size=size)

    if ncomp == 3 and planar:
        ncols, nrows = size[0], size[1]
        planes = array.reshape(-1, nrows, ncols, 3).transpose(0, 3, 1, 2)
        buffer = np.ascontiguousarray(planes).ravel()
    else:
        buffer = np.ascontiguousarray(array).ravel()

    image = Image(geometry, buffer, ["1"])
    if ncomp == 3:
        image.photometric_interpretation = "RGB"
        image.planar_configuration = 1 if planar else 0
    logger.debug("Loaded %r", image)
    return image


def _run_inspect(config: InspectConfig) -> None:
    image = load_image(config)
    image.set_rescale_slope_and_intercept(
        RescaleSlopeAndIntercept(config.slope, config.intercept)
    )
    orientation = get_matrix_from_name(config.view)
    if image.number_of_components != 1 and config.view.lower() != "axial":
        # colour slices are always walked in storage order
        raise ValueError(f"Colour images only support the axial view, got {config.view!r}")

    size = image.geometry.size
    through_plane = orientation.get_col_abs_max(2).index
    n_planes = size.get(through_plane)
    if not 0 <= config.slice_index < n_planes:
        raise ValueError(
            f"Slice index {config.slice_index} out of range [0, {n_planes - 1}] "
            f"for the {config.view} view"
        )
    position = [0] * size.length
    position[through_plane] = config.slice_index

    _print_summary(image)

    view_orientation = orientation if image.number_of_components == 1 else None
    iterator = get_slice_iterator(image, position, config.rescaled, view_orientation)
    values = list(islice(iterator, config.preview))
    label = "rescaled" if config.rescaled else "stored"
    console.print(
        f"\n[bold]{config.view.capitalize()} slice {config.slice_index}[/bold] "
        f"(first {len(values)} {label} values):"
    )
    console.print(", ".join(_format_value(v) for v in values))

    if config.histogram:
        if not image.can_quantify():
            raise ValueError("Histogram needs a single component image")
        _print_histogram(image.get_histogram())


def _print_summary(image: Image) -> None:
    table = Table(title="Image")
    table.add_column("Property", style="bold")
    table.add_column("Value")
    table.add_row("Size", " x ".join(str(v) for v in image.geometry.size.values))
    table.add_row("Components", str(image.number_of_components))
    table.add_row("Data type", str(image.buffer.dtype))
    table.add_row("Photometric", image.photometric_interpretation)
    table.add_row("RSI", str(image.get_rescale_slope_and_intercept()))
    if image.can_quantify():
        data_range = image.get_data_range()
        rescaled_range = image.get_rescaled_data_range()
        table.add_row("Data range", f"{data_range.min} .. {data_range.max}")
        table.add_row("Rescaled range", f"{rescaled_range.min} .. {rescaled_range.max}")
    console.print(table)


def _print_histogram(histogram: list[tuple[float, int]]) -> None:
    table = Table(title="Histogram")
    table.add_column("Value", justify="right")
    table.add_column("Count", justify="right")
    for bucket, count in histogram:
        if count:
            table.add_row(_format_value(bucket), str(count))
    console.print(table)


def _format_value(value) -> str:
    if isinstance(value, tuple):
        return "(" + ", ".join(_format_value(v) for v in value) + ")"
    if isinstance(value, (float, np.floating)) and float(value).is_integer():
        return str(int(value))
    return str(value)
