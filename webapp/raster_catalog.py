"""
Raster Catalog
==============
Fixed table of the selectable allergen tree-species rasters.

Each display label maps to one GeoTIFF under the data directory. The file and
export names use only the first word of the label so that "Alnus spp." does
not end up as "Alnus spp..zip".
"""

import os
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from map_errors import NotFound


# Display labels, in the order they are offered to the user
SPECIES_LABELS = (
    "Alnus spp.",
    "Betula spp.",
    "Corylus avellana",
)

DEFAULT_LABEL = "Alnus spp."


def first_token(label: str) -> str:
    """Return the first whitespace-delimited word of a label."""
    parts = label.split()
    if not parts:
        raise ValueError("Empty display label")
    return parts[0]


@dataclass(frozen=True)
class CatalogEntry:
    selection_key: str
    display_label: str
    source_path: str
    export_base_name: str

    @property
    def raster_name(self) -> str:
        return f"{self.export_base_name}.tif"

    @property
    def archive_name(self) -> str:
        return f"{self.export_base_name}.zip"


class RasterCatalog:
    """Immutable lookup from selection key (or display label) to entry."""

    def __init__(self, entries: Iterable[CatalogEntry]):
        by_key: Dict[str, CatalogEntry] = {}
        by_label: Dict[str, CatalogEntry] = {}
        for entry in entries:
            if entry.selection_key in by_key:
                raise ValueError(f"Duplicate selection key: {entry.selection_key}")
            by_key[entry.selection_key] = entry
            by_label[entry.display_label] = entry
        self._by_key = by_key
        self._by_label = by_label
        self._order: Tuple[CatalogEntry, ...] = tuple(by_key.values())

    def lookup(self, selection_key: str) -> CatalogEntry:
        """Return the entry for a selection key, or raise NotFound."""
        entry = self._by_key.get(selection_key) if isinstance(selection_key, str) else None
        if entry is None:
            raise NotFound(f"Unknown dataset: {selection_key!r}")
        return entry

    def resolve(self, value: Optional[str]) -> CatalogEntry:
        """
        Resolve user input to an entry.

        Accepts an exact display label ("Betula spp.") or a selection key
        ("Betula"). Anything else raises NotFound; no default is guessed.
        """
        if value is None:
            raise NotFound("No dataset selected")
        if not isinstance(value, str):
            raise NotFound(f"Unknown dataset: {value!r}")
        entry = self._by_label.get(value)
        if entry is not None:
            return entry
        return self.lookup(value)

    def entries(self) -> List[CatalogEntry]:
        return list(self._order)

    def keys(self) -> List[str]:
        return [entry.selection_key for entry in self._order]

    def __contains__(self, selection_key: str) -> bool:
        return selection_key in self._by_key

    def __len__(self) -> int:
        return len(self._order)


def build_catalog(data_dir: str, labels: Iterable[str] = SPECIES_LABELS) -> RasterCatalog:
    """Derive catalog entries from display labels: <data_dir>/<Token>.tif."""
    entries = []
    for label in labels:
        token = first_token(label)
        entries.append(CatalogEntry(
            selection_key=token,
            display_label=label,
            source_path=os.path.join(data_dir, f"{token}.tif"),
            export_base_name=token,
        ))
    return RasterCatalog(entries)
