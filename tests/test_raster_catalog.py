"""
Catalog tests: entry derivation and strict lookups.
"""

import os

import pytest

from map_errors import NotFound
from raster_catalog import (
    DEFAULT_LABEL, SPECIES_LABELS, CatalogEntry, RasterCatalog, build_catalog, first_token,
)


class TestBuildCatalog:

    def test_three_species_in_order(self, catalog):
        assert catalog.keys() == ["Alnus", "Betula", "Corylus"]
        assert [e.display_label for e in catalog.entries()] == list(SPECIES_LABELS)
        assert len(catalog) == 3

    def test_entry_paths_and_names(self, catalog, data_dir):
        entry = catalog.lookup("Alnus")
        assert entry.display_label == "Alnus spp."
        assert entry.source_path == os.path.join(data_dir, "Alnus.tif")
        assert entry.raster_name == "Alnus.tif"
        assert entry.archive_name == "Alnus.zip"

    def test_export_names_have_no_label_periods(self, catalog):
        for entry in catalog.entries():
            assert "." not in entry.export_base_name
            assert " " not in entry.export_base_name

    def test_default_label_is_in_catalog(self, catalog):
        assert catalog.resolve(DEFAULT_LABEL).selection_key == "Alnus"

    def test_adding_a_dataset_is_data_only(self, tmp_path):
        catalog = build_catalog(str(tmp_path), SPECIES_LABELS + ("Quercus robur",))
        assert catalog.lookup("Quercus").raster_name == "Quercus.tif"


class TestLookup:

    def test_lookup_by_key(self, catalog):
        assert catalog.lookup("Corylus").display_label == "Corylus avellana"

    def test_lookup_rejects_label(self, catalog):
        with pytest.raises(NotFound):
            catalog.lookup("Corylus avellana")

    @pytest.mark.parametrize("value", ["Quercus", "alnus", "", "Alnus spp", "Betula  spp."])
    def test_unknown_is_not_found(self, catalog, value):
        with pytest.raises(NotFound):
            catalog.resolve(value)

    def test_resolve_none(self, catalog):
        with pytest.raises(NotFound):
            catalog.resolve(None)

    @pytest.mark.parametrize("value", [["Alnus spp."], 5, {"key": "Alnus"}])
    def test_resolve_non_string(self, catalog, value):
        with pytest.raises(NotFound):
            catalog.resolve(value)
        with pytest.raises(NotFound):
            catalog.lookup(value)

    @pytest.mark.parametrize("value,key", [
        ("Alnus spp.", "Alnus"),
        ("Betula spp.", "Betula"),
        ("Corylus avellana", "Corylus"),
        ("Betula", "Betula"),
    ])
    def test_resolve(self, catalog, value, key):
        assert catalog.resolve(value).selection_key == key

    def test_contains(self, catalog):
        assert "Alnus" in catalog
        assert "Alnus spp." not in catalog


class TestEntries:

    def test_first_token(self):
        assert first_token("Alnus spp.") == "Alnus"
        assert first_token("  Corylus   avellana ") == "Corylus"

    def test_first_token_empty(self):
        with pytest.raises(ValueError):
            first_token("   ")

    def test_duplicate_keys_rejected(self):
        entry = CatalogEntry("Alnus", "Alnus spp.", "a.tif", "Alnus")
        with pytest.raises(ValueError):
            RasterCatalog([entry, entry])

    def test_entries_are_frozen(self, catalog):
        entry = catalog.lookup("Alnus")
        with pytest.raises(Exception):
            entry.source_path = "elsewhere.tif"
