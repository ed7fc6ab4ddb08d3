"""
Root conftest.py: sys.path and small GeoTIFF fixtures.

The app modules live flat in webapp/ (imported as `from raster_loader import
...`), and the CLI in scripts/, so both directories go on sys.path.
"""

import os
import sys

import numpy as np
import pytest
import rasterio
from rasterio.transform import from_bounds

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
for sub in ("webapp", "scripts"):
    path = os.path.join(PROJECT_ROOT, sub)
    if path not in sys.path:
        sys.path.insert(0, path)

from app_config import AppConfig  # noqa: E402
from raster_catalog import build_catalog  # noqa: E402


NODATA = -9999.0

INFO_TEXT = "RespirIT - allergenic tree species\nAuthors: S. Dujardin & C. Visée\n"

# west, south, east, north (EPSG:4326, roughly Belgium)
BOUNDS = {
    "Alnus": (2.5, 49.5, 6.4, 51.5),
    "Betula": (2.6, 49.6, 6.3, 51.4),
    "Corylus": (2.7, 49.7, 6.2, 51.3),
}


def write_tif(path, values, bounds, crs="EPSG:4326", nodata=NODATA, dtype="float32"):
    values = np.asarray(values, dtype=dtype)
    height, width = values.shape
    with rasterio.open(
        path, "w",
        driver="GTiff",
        height=height,
        width=width,
        count=1,
        dtype=dtype,
        crs=crs,
        transform=from_bounds(*bounds, width, height),
        nodata=nodata,
    ) as dst:
        dst.write(values, 1)
    return path


def make_values(height, width, seed=0):
    """Cover values spanning the color domain, with a few nodata cells."""
    rng = np.random.default_rng(seed)
    values = rng.uniform(-1.0, 55.0, size=(height, width)).astype(np.float32)
    values[0, 0] = NODATA
    values[-1, -1] = NODATA
    return values


@pytest.fixture
def data_dir(tmp_path):
    """DataProj-like directory with the three species rasters."""
    directory = tmp_path / "DataProj"
    directory.mkdir()
    for seed, (key, bounds) in enumerate(BOUNDS.items()):
        write_tif(str(directory / f"{key}.tif"), make_values(20, 30, seed), bounds)
    return str(directory)


@pytest.fixture
def info_file(tmp_path):
    path = tmp_path / "infoMap.txt"
    path.write_bytes(INFO_TEXT.encode("utf-8"))
    return str(path)


@pytest.fixture
def catalog(data_dir):
    return build_catalog(data_dir)


@pytest.fixture
def app_config(data_dir, info_file):
    return AppConfig(data_dir=data_dir, info_file=info_file, secret_key="test-secret")
