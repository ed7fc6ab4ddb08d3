"""
Color Mapping
=============
Continuous three-anchor palette for the percent-cover rasters.

The domain is fixed for every species so the legend means the same thing on
every map. Values outside the domain and missing cells are fully transparent.
"""

from typing import List, Optional, Sequence, Tuple

import numpy as np

from map_errors import ConfigError


# Percent cover range shared by all species
DOMAIN = (-1.0, 55.0)

# Low, mid, high (dark blue -> teal -> pale yellow)
ANCHOR_COLORS = ("#0C2C84", "#41B6C4", "#FFFFCC")

LEGEND_TITLE = "% cover"

TRANSPARENT = (0, 0, 0, 0)

RGBA = Tuple[int, int, int, int]


def hex_to_rgb(color: str) -> Tuple[int, int, int]:
    """Parse '#RRGGBB' into an (r, g, b) tuple."""
    value = color.lstrip('#')
    if len(value) != 6:
        raise ConfigError(f"Invalid hex color: {color!r}")
    try:
        return tuple(int(value[i:i + 2], 16) for i in (0, 2, 4))
    except ValueError:
        raise ConfigError(f"Invalid hex color: {color!r}") from None


class ColorMapping:
    """Maps numeric cell values to RGBA through evenly spaced anchors."""

    def __init__(self, low: float = DOMAIN[0], high: float = DOMAIN[1],
                 colors: Sequence[str] = ANCHOR_COLORS, nodata: Optional[float] = None):
        if not np.isfinite(low) or not np.isfinite(high):
            raise ConfigError(f"Color domain must be finite, got ({low}, {high})")
        if low >= high:
            raise ConfigError(f"Color domain low ({low}) must be below high ({high})")
        if len(colors) < 2:
            raise ConfigError("At least two anchor colors are required")

        self.low = float(low)
        self.high = float(high)
        self.nodata = nodata
        self.colors = tuple(colors)
        self._anchors = np.array([hex_to_rgb(c) for c in colors], dtype=np.float64)
        # Anchor positions spread evenly across the domain
        self._stops = np.linspace(self.low, self.high, len(colors))

    @property
    def domain(self) -> Tuple[float, float]:
        return (self.low, self.high)

    @property
    def anchors(self) -> List[RGBA]:
        return [tuple(int(v) for v in rgb) + (255,) for rgb in self._anchors]

    def apply(self, values: np.ndarray, nodata: Optional[float] = None) -> np.ndarray:
        """
        Color a 2D array of values.

        Args:
            values: float array of any shape
            nodata: missing-data sentinel, in addition to NaN

        Returns:
            uint8 array of shape values.shape + (4,)
        """
        values = np.asarray(values, dtype=np.float64)
        rgba = np.zeros(values.shape + (4,), dtype=np.uint8)

        valid = np.isfinite(values) & (values >= self.low) & (values <= self.high)
        sentinel = self.nodata if nodata is None else nodata
        if sentinel is not None and np.isfinite(sentinel):
            valid &= values != sentinel

        if not valid.any():
            return rgba

        v = values[valid]
        for channel in range(3):
            interpolated = np.interp(v, self._stops, self._anchors[:, channel])
            rgba[..., channel][valid] = np.rint(interpolated).astype(np.uint8)
        rgba[..., 3][valid] = 255

        return rgba

    def color_for(self, value: Optional[float], nodata: Optional[float] = None) -> RGBA:
        """Color a single value; None, NaN and out-of-domain are transparent."""
        if value is None:
            return TRANSPARENT
        pixel = self.apply(np.array([value], dtype=np.float64), nodata=nodata)[0]
        return tuple(int(c) for c in pixel)

    def legend(self) -> dict:
        return {
            'title': LEGEND_TITLE,
            'domain': [self.low, self.high],
            'colors': list(self.colors),
        }
