"""
Export Bundler
==============
Builds the download archive for the current selection.

The raster is read again from storage rather than taken from the displayed
overlay, so a download never holds a second large array alongside the map.
"""

import logging
import os
import tempfile
import zipfile
from dataclasses import dataclass
from io import BytesIO
from typing import List, Optional, Tuple

import rasterio
from rasterio.errors import RasterioError

from map_errors import CorruptData, NoSelection, NotFound
from raster_catalog import RasterCatalog
from raster_loader import RasterGrid, RasterLoader


logger = logging.getLogger(__name__)

INFO_ENTRY_NAME = "infoMap.txt"


@dataclass(frozen=True)
class ExportBundle:
    archive_name: str
    entries: Tuple[Tuple[str, bytes], ...]

    @property
    def names(self) -> List[str]:
        return [name for name, _ in self.entries]

    def to_zip(self) -> bytes:
        """Pack the entries, in order, into ZIP bytes."""
        buffer = BytesIO()
        with zipfile.ZipFile(buffer, 'w', compression=zipfile.ZIP_DEFLATED) as zf:
            for name, data in self.entries:
                zf.writestr(name, data)
        return buffer.getvalue()


def write_geotiff(grid: RasterGrid, path: str):
    """Write a grid back out as a single-band float32 GeoTIFF."""
    nodata = grid.nodata if grid.nodata is not None else float('nan')
    values = grid.values.copy()
    if grid.nodata is not None:
        values[grid.missing_mask] = grid.nodata

    profile = {
        'driver': 'GTiff',
        'height': grid.height,
        'width': grid.width,
        'count': 1,
        'dtype': 'float32',
        'crs': grid.crs,
        'transform': grid.transform,
        'nodata': nodata,
        'compress': 'deflate',
    }
    with rasterio.open(path, 'w', **profile) as dst:
        dst.write(values, 1)


class ExportBundler:
    """Re-reads the selected raster and packs it with the info text."""

    def __init__(self, catalog: RasterCatalog, loader: RasterLoader, info_path: str):
        self.catalog = catalog
        self.loader = loader
        self.info_path = info_path

    def read_info(self) -> bytes:
        if not os.path.exists(self.info_path):
            raise NotFound(f"Metadata file not found: {self.info_path}")
        with open(self.info_path, 'rb') as f:
            return f.read()

    def export(self, selection_key: Optional[str]) -> ExportBundle:
        """
        Build the bundle for a selection key.

        Raises:
            NoSelection: selection_key is None
            NotFound / CorruptData: from the catalog or the loader
        """
        if not selection_key:
            raise NoSelection("Select a dataset before downloading")

        # Step 1: resolve the entry
        entry = self.catalog.lookup(selection_key)

        # Step 2-3: fresh read, written out under the export name
        with tempfile.TemporaryDirectory(prefix='respirit_export_') as tmp_dir:
            grid = self.loader.load(entry.source_path)
            tif_path = os.path.join(tmp_dir, entry.raster_name)
            try:
                write_geotiff(grid, tif_path)
            except (ValueError, RasterioError) as e:
                raise CorruptData(f"Cannot write {entry.raster_name}: {e}") from e
            del grid
            with open(tif_path, 'rb') as f:
                tif_bytes = f.read()

        # Step 4: metadata text, unmodified
        info_bytes = self.read_info()

        logger.info("Export bundle %s ready (%d bytes raster)", entry.archive_name, len(tif_bytes))

        # Step 5: the archive itself is packed by the caller
        return ExportBundle(
            archive_name=entry.archive_name,
            entries=((entry.raster_name, tif_bytes), (INFO_ENTRY_NAME, info_bytes)),
        )
