"""
Configuration for the interactive map core.

Holds the map constants, the default style theme, and the MapConfig
dataclass that validates the recognized options. Config can be loaded
from map_config.json; keys may be written in snake_case or in the
camelCase used by the web host (tileSize, maxZoom, ...).
"""

import json
import logging
import math
import re
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from map_errors import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_FILE = Path("map_config.json")

# === Map constants ===
DEFAULT_ZOOM = 10
DEFAULT_CENTER = (35.2137, 31.7683)
ANIMATION_DURATION_MS = 1000
TILE_MATRIX_SET = "WorldCRS84"
TILE_SIZE = 256
MAX_ZOOM = 21
MIN_ZOOM = 1
DEFAULT_PROJECTION = "EPSG:4326"
DEFAULT_ID_COLUMN = "id"

# === Style theme ===
DEFAULT_STYLES = {
    "FILL_COLOR": "#3388ff",
    "STROKE_COLOR": "#3388ff",
    "STROKE_WIDTH": 2,
    "FILL_OPACITY": 0.2,
    "STROKE_OPACITY": 1,
    "SELECTED_FILL_COLOR": "#ff3388",
    "SELECTED_STROKE_COLOR": "#ff3388",
    "HIGHLIGHT_FILL_OPACITY": 0.4,
    "POINT_RADIUS": 6,
    "SELECTED_POINT_RADIUS": 8,
}

# Sketch layer style
DRAWING_FILL_COLOR = "#ffffff"
DRAWING_FILL_OPACITY = 0.2
DRAWING_STROKE_COLOR = "#ffcc33"
DRAWING_STROKE_WIDTH = 2
DRAWING_LINE_DASH = (10, 10)
DRAWING_POINT_RADIUS = 5

HEX_COLOR_RE = re.compile(r"#?[0-9a-fA-F]{6}")

# camelCase keys accepted from JSON / web hosts
_ALIASES = {
    "tileSize": "tile_size",
    "matrixSetId": "matrix_set_id",
    "maxZoom": "max_zoom",
    "minZoom": "min_zoom",
    "animationDurationMs": "animation_duration_ms",
    "defaultFillColor": "default_fill_color",
    "defaultStrokeColor": "default_stroke_color",
    "defaultOpacity": "default_opacity",
    "idColumn": "id_column",
    "defaultCenter": "default_center",
    "defaultZoom": "default_zoom",
    "snapTolerance": "snap_tolerance",
}


def is_hex_color(value: Any) -> bool:
    """Check for a 6-digit hex color, with or without the leading '#'."""
    return isinstance(value, str) and bool(HEX_COLOR_RE.fullmatch(value))


@dataclass
class MapConfig:
    """Recognized map options.

    Attributes:
        tile_size: Tile edge in pixels
        matrix_set_id: WMTS tile matrix set identifier
        max_zoom: Number of zoom levels in the tile matrix (and view ceiling)
        min_zoom: Lowest zoom the view may reach
        animation_duration_ms: Camera animation length
        default_fill_color: Theme fill color
        default_stroke_color: Theme stroke color
        default_opacity: Theme fill opacity
        id_column: Property holding the application feature id
        default_center: Initial view center (x, y)
        default_zoom: Initial view zoom
        projection: CRS of the view and the base layers
        snap_tolerance: Snapping distance for drawing, in map units
    """
    tile_size: int = TILE_SIZE
    matrix_set_id: str = TILE_MATRIX_SET
    max_zoom: int = MAX_ZOOM
    min_zoom: int = MIN_ZOOM
    animation_duration_ms: int = ANIMATION_DURATION_MS
    default_fill_color: str = DEFAULT_STYLES["FILL_COLOR"]
    default_stroke_color: str = DEFAULT_STYLES["STROKE_COLOR"]
    default_opacity: float = DEFAULT_STYLES["FILL_OPACITY"]
    id_column: str = DEFAULT_ID_COLUMN
    default_center: Tuple[float, float] = field(default=DEFAULT_CENTER)
    default_zoom: float = DEFAULT_ZOOM
    projection: str = DEFAULT_PROJECTION
    snap_tolerance: float = 0.0001

    def __post_init__(self):
        self.default_center = tuple(self.default_center)
        self.validate()

    def validate(self):
        """Raise ConfigurationError for any out-of-range option."""
        if not isinstance(self.tile_size, int) or self.tile_size <= 0:
            raise ConfigurationError(f"tile_size must be a positive integer, got {self.tile_size!r}")
        if not isinstance(self.max_zoom, int) or self.max_zoom < 1:
            raise ConfigurationError(f"max_zoom must be >= 1, got {self.max_zoom!r}")
        if not isinstance(self.min_zoom, int) or self.min_zoom < 0:
            raise ConfigurationError(f"min_zoom must be >= 0, got {self.min_zoom!r}")
        if self.min_zoom > self.max_zoom:
            raise ConfigurationError(
                f"min_zoom ({self.min_zoom}) is above max_zoom ({self.max_zoom})"
            )
        if self.animation_duration_ms < 0:
            raise ConfigurationError("animation_duration_ms must be >= 0")
        for name in ("default_fill_color", "default_stroke_color"):
            value = getattr(self, name)
            if not is_hex_color(value):
                raise ConfigurationError(f"{name} is not a hex color: {value!r}")
        if not 0 <= self.default_opacity <= 1:
            raise ConfigurationError(f"default_opacity must be in [0, 1], got {self.default_opacity}")
        if not self.matrix_set_id:
            raise ConfigurationError("matrix_set_id must not be empty")
        if not self.id_column:
            raise ConfigurationError("id_column must not be empty")
        if len(self.default_center) != 2 or not all(math.isfinite(c) for c in self.default_center):
            raise ConfigurationError(f"default_center must be a finite (x, y), got {self.default_center!r}")
        if self.snap_tolerance < 0:
            raise ConfigurationError("snap_tolerance must be >= 0")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MapConfig":
        """Build a config from a dict, accepting camelCase keys.

        Unknown keys are ignored with a warning.
        """
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in data.items():
            name = _ALIASES.get(key, key)
            if name not in known:
                logger.warning("Ignoring unknown map option %r", key)
                continue
            kwargs[name] = value
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def load_config_from_file(path: Optional[Path] = None) -> Optional[MapConfig]:
    """Load configuration from map_config.json if it exists."""
    config_path = Path(path) if path is not None else CONFIG_FILE
    if not config_path.exists():
        return None

    logger.info("Loading configuration from %s", config_path)
    with open(config_path) as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"{config_path} is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"{config_path} must contain a JSON object")
    return MapConfig.from_dict(data)
