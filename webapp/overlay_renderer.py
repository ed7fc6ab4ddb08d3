"""
Overlay Renderer
================
Turns a loaded RasterGrid into a georeferenced RGBA image for the web map.

The raw RGBA size (width * height * 4) is kept under a byte budget by halving
the resolution as many times as needed. Pixels are never warped: the image is
stretched over the grid's own bounds.
"""

import logging
from dataclasses import dataclass
from io import BytesIO
from typing import Optional, Tuple

import numpy as np
from PIL import Image
from rasterio.crs import CRS
from rasterio.warp import transform_bounds

from color_mapping import ColorMapping
from map_errors import OutputTooLarge
from raster_loader import Bounds, RasterGrid


logger = logging.getLogger(__name__)

# Reference deployment limit for a single overlay
DEFAULT_MAX_BYTES = int(6.5 * 10 ** 6)

BYTES_PER_PIXEL = 4

WGS84 = CRS.from_epsg(4326)


@dataclass(frozen=True)
class OverlayImage:
    pixels: np.ndarray  # (height, width, 4) uint8
    geo_bounds: Bounds
    crs: Optional[CRS]
    latlon_bounds: Bounds  # west, south, east, north in EPSG:4326
    scale_factor: int = 1

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def byte_size(self) -> int:
        return self.width * self.height * BYTES_PER_PIXEL

    def to_png(self) -> bytes:
        """Encode the overlay as a PNG with alpha."""
        buffer = BytesIO()
        Image.fromarray(self.pixels, 'RGBA').save(buffer, 'PNG')
        return buffer.getvalue()

    def leaflet_bounds(self) -> list:
        """[[south, west], [north, east]] as expected by L.imageOverlay."""
        west, south, east, north = self.latlon_bounds
        return [[south, west], [north, east]]

    def encode(self) -> "EncodedOverlay":
        """PNG-only copy for holding between requests."""
        return EncodedOverlay(
            png=self.to_png(),
            geo_bounds=self.geo_bounds,
            crs=self.crs,
            latlon_bounds=self.latlon_bounds,
            width=self.width,
            height=self.height,
            scale_factor=self.scale_factor,
        )


@dataclass(frozen=True)
class EncodedOverlay:
    """An overlay kept as its PNG bytes; the RGBA array is not retained."""

    png: bytes
    geo_bounds: Bounds
    crs: Optional[CRS]
    latlon_bounds: Bounds
    width: int
    height: int
    scale_factor: int = 1

    @property
    def byte_size(self) -> int:
        return self.width * self.height * BYTES_PER_PIXEL

    def to_png(self) -> bytes:
        return self.png

    def leaflet_bounds(self) -> list:
        west, south, east, north = self.latlon_bounds
        return [[south, west], [north, east]]


def corner_bounds_latlon(bounds: Bounds, crs: Optional[CRS]) -> Bounds:
    """Express the bounds' corners in EPSG:4326 (the pixels are untouched)."""
    if crs is None or crs == WGS84:
        return tuple(bounds)
    return tuple(transform_bounds(crs, WGS84, *bounds))


def downsample_factor(width: int, height: int, max_bytes: int, min_side: int = 1) -> int:
    """
    Smallest power-of-two stride that brings the RGBA size under max_bytes.

    Raises:
        OutputTooLarge: halving again would drop below min_side pixels
    """
    factor = 1
    w, h = width, height
    while w * h * BYTES_PER_PIXEL > max_bytes:
        next_w = -(-width // (factor * 2))
        next_h = -(-height // (factor * 2))
        if next_w < min_side or next_h < min_side or (next_w, next_h) == (w, h):
            raise OutputTooLarge(
                f"Overlay of {width} x {height} cannot fit {max_bytes} bytes "
                f"(stopped at {w} x {h}, minimum side {min_side})"
            )
        factor *= 2
        w, h = next_w, next_h
    return factor


class OverlayRenderer:
    """Colors a grid and fits it into the byte budget."""

    def __init__(self, max_bytes: int = DEFAULT_MAX_BYTES, min_side: int = 1):
        self.max_bytes = max_bytes
        self.min_side = min_side

    def render(self, grid: RasterGrid, color_mapping: ColorMapping,
               max_bytes: Optional[int] = None) -> OverlayImage:
        limit = self.max_bytes if max_bytes is None else max_bytes

        # Step 1: pick the resolution before coloring, so only the small grid is colored
        factor = downsample_factor(grid.width, grid.height, limit, self.min_side)
        values = grid.values
        if factor > 1:
            values = values[::factor, ::factor]
            logger.debug("Downsampled %d x %d by %d to %d x %d",
                         grid.width, grid.height, factor, values.shape[1], values.shape[0])

        # Step 2: apply the palette
        pixels = color_mapping.apply(values, nodata=grid.nodata)

        overlay = OverlayImage(
            pixels=pixels,
            geo_bounds=tuple(grid.geo_bounds),
            crs=grid.crs,
            latlon_bounds=corner_bounds_latlon(grid.geo_bounds, grid.crs),
            scale_factor=factor,
        )
        logger.info("Rendered overlay %d x %d (%d bytes, limit %d)",
                    overlay.width, overlay.height, overlay.byte_size, limit)
        return overlay
