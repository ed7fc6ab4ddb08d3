"""
Raster Loader
=============
Reads a single-band GeoTIFF into memory on demand.

Nothing is cached: the hosting plan only allows one raster in memory at a
time, so every caller gets a fresh grid and drops it when done.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
import rasterio
from rasterio.crs import CRS
from rasterio.errors import RasterioError
from rasterio.transform import Affine

from map_errors import CorruptData, NotFound


logger = logging.getLogger(__name__)

Bounds = Tuple[float, float, float, float]


def float32_nodata(nodata: Optional[float]) -> Optional[float]:
    """
    Nodata value usable with float32 cells.

    Sentinels float32 cannot hold exactly (e.g. GDAL's float64 minimum)
    become NaN, which is what the masked cells hold anyway.
    """
    if nodata is None:
        return None
    if not np.isfinite(nodata) or abs(nodata) > np.finfo(np.float32).max:
        return float('nan')
    if float(np.float32(nodata)) != float(nodata):
        return float('nan')
    return float(nodata)


@dataclass
class RasterGrid:
    """One band of cell values with its georeferencing. Missing cells are NaN."""

    values: np.ndarray
    geo_bounds: Bounds  # west, south, east, north in the raster's own CRS
    crs: Optional[CRS]
    transform: Affine
    nodata: Optional[float] = None

    @property
    def height(self) -> int:
        return int(self.values.shape[0])

    @property
    def width(self) -> int:
        return int(self.values.shape[1])

    @property
    def missing_mask(self) -> np.ndarray:
        return ~np.isfinite(self.values)


class RasterLoader:
    """Loads catalog rasters from storage. Stateless."""

    def __init__(self, band: int = 1):
        self.band = band

    def load(self, source_path: str) -> RasterGrid:
        """
        Read one raster band.

        Raises:
            NotFound: the path does not exist
            CorruptData: the file exists but is not a readable raster
        """
        if not os.path.exists(source_path):
            raise NotFound(f"Raster not found: {source_path}")

        try:
            with rasterio.open(source_path) as src:
                if src.count < self.band:
                    raise CorruptData(f"Raster has no band {self.band}: {source_path}")
                if src.width == 0 or src.height == 0:
                    raise CorruptData(f"Raster is empty: {source_path}")

                data = src.read(self.band, masked=True)
                values = np.ma.filled(data.astype(np.float64), np.nan).astype(np.float32)
                bounds = src.bounds

                grid = RasterGrid(
                    values=values,
                    geo_bounds=(bounds.left, bounds.bottom, bounds.right, bounds.top),
                    crs=src.crs,
                    transform=src.transform,
                    nodata=float32_nodata(src.nodata),
                )
        except RasterioError as e:
            raise CorruptData(f"Unreadable raster {source_path}: {e}") from e

        logger.info("Loaded %s (%d x %d)", os.path.basename(source_path), grid.width, grid.height)
        return grid
