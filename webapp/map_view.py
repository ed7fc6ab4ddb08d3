"""
Map View Controller
===================
Per-session state machine behind the map page.

A session is either Idle (base map and legend only) or Displaying one dataset
(base map, legend and that dataset's overlay). Every selection re-runs the
full load -> color -> render pipeline. Each call takes a generation number and
only the newest call may commit its result, so a slow render for an old
selection can never replace a newer one.
"""

import logging
import threading
import uuid
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Optional

from color_mapping import ColorMapping
from map_errors import MapError
from overlay_renderer import EncodedOverlay, OverlayRenderer
from raster_catalog import CatalogEntry, RasterCatalog
from raster_loader import RasterLoader


logger = logging.getLogger(__name__)

IDLE = "idle"
DISPLAYING = "displaying"


@dataclass(frozen=True)
class MapViewState:
    state: str
    generation: int
    selection_key: Optional[str] = None
    display_label: Optional[str] = None
    overlay: Optional[EncodedOverlay] = None
    warning: Optional[str] = None

    @property
    def is_displaying(self) -> bool:
        return self.state == DISPLAYING

    def to_dict(self) -> dict:
        data = {
            'state': self.state,
            'generation': self.generation,
            'selection_key': self.selection_key,
            'display_label': self.display_label,
            'warning': self.warning,
            'overlay': None,
        }
        if self.overlay is not None:
            data['overlay'] = {
                'bounds': self.overlay.leaflet_bounds(),
                'geo_bounds': list(self.overlay.geo_bounds),
                'crs': self.overlay.crs.to_string() if self.overlay.crs else None,
                'width': self.overlay.width,
                'height': self.overlay.height,
                'byte_size': self.overlay.byte_size,
            }
        return data


class MapViewController:
    """Owns the current selection of one session."""

    def __init__(self, catalog: RasterCatalog, color_mapping: ColorMapping,
                 loader: RasterLoader, renderer: OverlayRenderer):
        self.catalog = catalog
        self.color_mapping = color_mapping
        self.loader = loader
        self.renderer = renderer
        self._lock = threading.Lock()
        self._generation = 0
        self._view = MapViewState(state=IDLE, generation=0)

    @property
    def selection_key(self) -> Optional[str]:
        """Key read by the export path; None while Idle."""
        return self._view.selection_key

    def view(self) -> MapViewState:
        return self._view

    def select(self, value: Optional[str]) -> MapViewState:
        """
        Change the selection and rebuild the view.

        Never raises for bad input or broken data: those end in Idle with a
        warning. Returns the committed view, which may belong to a newer call
        if this one was superseded while rendering.
        """
        with self._lock:
            self._generation += 1
            token = self._generation

        if not value:
            return self._commit(token, MapViewState(state=IDLE, generation=token))

        try:
            entry = self.catalog.resolve(value)
        except MapError as e:
            logger.warning("Selection %r rejected: %s", value, e)
            return self._commit(token, MapViewState(
                state=IDLE, generation=token, warning=str(e)))

        try:
            overlay = self._render(entry)
        except MapError as e:
            logger.warning("Render failed for %s: %s", entry.selection_key, e)
            return self._commit(token, MapViewState(
                state=IDLE, generation=token, warning=f"{entry.display_label}: {e}"))

        return self._commit(token, MapViewState(
            state=DISPLAYING,
            generation=token,
            selection_key=entry.selection_key,
            display_label=entry.display_label,
            overlay=overlay,
        ))

    def _render(self, entry: CatalogEntry) -> EncodedOverlay:
        grid = self.loader.load(entry.source_path)
        try:
            # Sessions hold only the PNG, not the RGBA array
            return self.renderer.render(grid, self.color_mapping).encode()
        finally:
            # Drop the grid before anything else can be loaded
            del grid

    def _commit(self, token: int, new_view: MapViewState) -> MapViewState:
        with self._lock:
            if token != self._generation:
                logger.debug("Discarding stale result (generation %d, current %d)",
                             token, self._generation)
                return self._view
            self._view = new_view
            return new_view


class SessionRegistry:
    """
    One MapViewController per browser session.

    Bounded: the least recently used session is dropped once max_sessions is
    exceeded, which also releases its overlay.
    """

    def __init__(self, factory: Callable[[], MapViewController], max_sessions: int = 256):
        self.factory = factory
        self.max_sessions = max_sessions
        self._sessions: "OrderedDict[str, MapViewController]" = OrderedDict()
        self._lock = threading.Lock()

    @staticmethod
    def new_session_id() -> str:
        return uuid.uuid4().hex

    def get(self, session_id: str) -> MapViewController:
        with self._lock:
            controller = self._sessions.get(session_id)
            if controller is None:
                controller = self.factory()
                self._sessions[session_id] = controller
                while len(self._sessions) > self.max_sessions:
                    dropped, _ = self._sessions.popitem(last=False)
                    logger.debug("Evicted session %s", dropped)
            else:
                self._sessions.move_to_end(session_id)
            return controller

    def __len__(self) -> int:
        return len(self._sessions)
