"""Integration test: CLI argument parsing and the inspect command."""

from __future__ import annotations

import numpy as np
import pytest
from typer.testing import CliRunner

from voxbuf.cli import app, image_from_array

runner = CliRunner()


@pytest.fixture
def volume_file(tmp_path):
    """2 slices x 3 rows x 4 columns, value == offset."""
    path = tmp_path / "volume.npy"
    np.save(path, np.arange(24, dtype=np.int16).reshape(2, 3, 4))
    return path


@pytest.fixture
def rgb_file(tmp_path):
    path = tmp_path / "rgb.npy"
    np.save(path, np.array([[[10, 20, 30], [11, 21, 31]]], dtype=np.uint8))
    return path


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert "0.1.0" in result.output


def test_missing_input():
    result = runner.invoke(app, [])
    assert result.exit_code != 0


def test_nonexistent_input():
    result = runner.invoke(app, ["/nonexistent/volume.npy"])
    assert result.exit_code != 0


def test_axial_summary(volume_file):
    result = runner.invoke(app, [str(volume_file), "-s", "1", "--preview", "4"])
    assert result.exit_code == 0, f"CLI failed: {result.output}"
    assert "4 x 3 x 2" in result.output
    assert "12, 13, 14, 15" in result.output


def test_coronal_view(volume_file):
    result = runner.invoke(app, [str(volume_file), "--view", "coronal", "-s", "1"])
    assert result.exit_code == 0, f"CLI failed: {result.output}"
    assert "16, 17, 18, 19, 4, 5, 6, 7" in result.output


def test_rescaled_preview(volume_file):
    result = runner.invoke(
        app,
        [str(volume_file), "--slope", "2", "--intercept", "-10", "--rescaled", "--preview", "3"],
    )
    assert result.exit_code == 0, f"CLI failed: {result.output}"
    assert "-10, -8, -6" in result.output
    assert "-10.0 .. 36.0" in result.output


def test_histogram(volume_file):
    result = runner.invoke(app, [str(volume_file), "--histogram"])
    assert result.exit_code == 0, f"CLI failed: {result.output}"
    assert "Histogram" in result.output


def test_slice_out_of_range(volume_file):
    result = runner.invoke(app, [str(volume_file), "-s", "5"])
    assert result.exit_code == 1


def test_unknown_view(volume_file):
    result = runner.invoke(app, [str(volume_file), "--view", "oblique"])
    assert result.exit_code == 1


@pytest.mark.parametrize("planar", [False, True])
def test_rgb_preview(rgb_file, planar):
    args = [str(rgb_file), "--rgb"] + (["--planar"] if planar else [])
    result = runner.invoke(app, args)
    assert result.exit_code == 0, f"CLI failed: {result.output}"
    assert "(10, 20, 30), (11, 21, 31)" in result.output


def test_rgb_non_axial_view_rejected(rgb_file):
    result = runner.invoke(app, [str(rgb_file), "--rgb", "--view", "coronal"])
    assert result.exit_code == 1
    assert "Coronal slice" not in result.output


def test_rgb_histogram_rejected(rgb_file):
    result = runner.invoke(app, [str(rgb_file), "--rgb", "--histogram"])
    assert result.exit_code == 1


# --- image_from_array tests ---


def test_image_from_2d_array():
    image = image_from_array(np.zeros((3, 4), dtype=np.uint8))
    assert image.geometry.size.values == (4, 3, 1)


def test_image_from_4d_array():
    image = image_from_array(np.zeros((2, 5, 3, 4), dtype=np.int16))
    assert image.geometry.size.values == (4, 3, 5, 2)


def test_image_from_planar_rgb():
    array = np.array([[[10, 20, 30], [11, 21, 31]]], dtype=np.uint8)
    image = image_from_array(array, rgb=True, planar=True)
    assert image.buffer.tolist() == [10, 11, 20, 21, 30, 31]
    assert image.planar_configuration == 1
    assert image.photometric_interpretation == "RGB"


def test_image_from_array_bad_rgb_shape():
    with pytest.raises(ValueError, match="3 components"):
        image_from_array(np.zeros((2, 4), dtype=np.uint8), rgb=True)
