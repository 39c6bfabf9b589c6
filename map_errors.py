"""
Error taxonomy for the interactive map core.

ConfigurationError fails loudly, the others are recovered where they
happen and kept as diagnostics.
"""


class MapError(Exception):
    """Base class for all map core errors."""


class ConfigurationError(MapError):
    """Invalid configuration: degenerate extent, bad tile size, malformed color, URL template."""


class RenderError(MapError):
    """A style override raised or produced an unusable style."""


class NotFoundError(MapError):
    """A highlight target id is not present in the feature collection."""


class NetworkError(MapError):
    """Fetching base layer capabilities or catalog records failed."""
