"""
Map Errors
==========
Error taxonomy shared by the render and export pipelines.

Every error carries the HTTP status the Flask layer answers with, so routes
can raise and let the app-level handler build the JSON response.
"""


class MapError(Exception):
    """Base class for recoverable map/export failures."""

    status_code = 500

    @property
    def kind(self) -> str:
        return type(self).__name__

    def to_dict(self) -> dict:
        return {'error': str(self), 'kind': self.kind}


class NotFound(MapError):
    """Selection key or storage resource does not exist."""

    status_code = 404


class CorruptData(MapError):
    """Resource exists but cannot be read as a raster grid."""

    status_code = 422


class OutputTooLarge(MapError):
    """Overlay cannot fit the byte budget even at the minimum resolution."""

    status_code = 413


class NoSelection(MapError):
    """Export requested while no dataset is selected."""

    status_code = 409


class ConfigError(Exception):
    """Invalid startup configuration. Fatal: the app must not start."""
