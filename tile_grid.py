"""
Tile matrix computation for WMTS raster base layers.

The resolution of zoom level z is span / (tile_size * 2**z), where span is
the larger side of the projection extent. A matrix set never changes for
a given (extent, tile_size, zoom_levels) so results are cached.
"""

import logging
import math
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Sequence, Tuple

from pyproj import CRS, Transformer
from pyproj.exceptions import CRSError

from map_errors import ConfigurationError
from map_utils import Extent

logger = logging.getLogger(__name__)

WGS84 = "EPSG:4326"

# Placeholders every WMTS RESTful template must carry
REQUIRED_PLACEHOLDERS = ("{TileMatrixSet}", "{TileMatrix}", "{TileCol}", "{TileRow}")


@dataclass(frozen=True)
class TileMatrix:
    """One zoom level of a tile matrix set.

    Attributes:
        matrix_id: WMTS TileMatrix identifier
        resolution: Map units per pixel
        matrix_width: Number of tile columns covering the extent
        matrix_height: Number of tile rows covering the extent
    """
    matrix_id: str
    resolution: float
    matrix_width: int
    matrix_height: int


@dataclass(frozen=True)
class TileMatrixSet:
    """Per-zoom resolutions, tile size and origin of a projection."""
    matrix_set_id: str
    origin: Tuple[float, float]
    tile_size: int
    extent: Extent
    matrices: Tuple[TileMatrix, ...]

    @property
    def resolutions(self) -> Tuple[float, ...]:
        return tuple(m.resolution for m in self.matrices)

    @property
    def matrix_ids(self) -> Tuple[str, ...]:
        return tuple(m.matrix_id for m in self.matrices)

    @property
    def zoom_levels(self) -> int:
        return len(self.matrices)

    def matrix(self, z: int) -> TileMatrix:
        if not 0 <= z < len(self.matrices):
            raise ConfigurationError(
                f"Zoom {z} outside tile matrix set {self.matrix_set_id} (0..{len(self.matrices) - 1})"
            )
        return self.matrices[z]

    def resolution_for_zoom(self, zoom: float) -> float:
        """Resolution at a (possibly fractional) zoom."""
        return self.matrices[0].resolution / (2 ** zoom)

    def zoom_for_resolution(self, resolution: float) -> float:
        """Inverse of resolution_for_zoom."""
        return math.log2(self.matrices[0].resolution / resolution)


def compute_tile_matrix_set(
    extent: Sequence[float],
    tile_size: int = 256,
    zoom_levels: int = 21,
    origin: Optional[Tuple[float, float]] = None,
    matrix_set_id: str = "WorldCRS84",
) -> TileMatrixSet:
    """Compute the tile matrix set for a projection extent.

    Args:
        extent: Projection extent (min_x, min_y, max_x, max_y) or Extent
        tile_size: Tile edge in pixels
        zoom_levels: Number of zoom levels (matrix ids "0".."zoom_levels-1")
        origin: Tile origin; defaults to the extent's top-left corner
        matrix_set_id: Identifier recorded on the result

    Returns:
        TileMatrixSet with strictly decreasing resolutions

    Raises:
        ConfigurationError: degenerate or non-finite extent, bad tile size
            or zoom level count
    """
    if not isinstance(extent, Extent):
        try:
            extent = Extent.from_bounds(extent)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid projection extent {extent!r}: {e}") from e
    if not extent.is_finite():
        raise ConfigurationError(f"Projection extent is not finite: {extent.as_tuple()}")
    if isinstance(tile_size, bool) or not isinstance(tile_size, int) or tile_size <= 0:
        raise ConfigurationError(f"tile_size must be a positive integer, got {tile_size!r}")
    if isinstance(zoom_levels, bool) or not isinstance(zoom_levels, int) or zoom_levels < 1:
        raise ConfigurationError(f"zoom_levels must be >= 1, got {zoom_levels!r}")
    if origin is not None:
        origin = (float(origin[0]), float(origin[1]))
    return _cached_matrix_set(extent, tile_size, zoom_levels, origin, matrix_set_id)


@lru_cache(maxsize=32)
def _cached_matrix_set(extent, tile_size, zoom_levels, origin, matrix_set_id) -> TileMatrixSet:

    span = max(extent.width, extent.height)
    if span <= 0:
        raise ConfigurationError(f"Projection extent has no area: {extent.as_tuple()}")

    matrices = []
    for z in range(zoom_levels):
        resolution = span / (tile_size * 2 ** z)
        tile_span = resolution * tile_size
        matrices.append(TileMatrix(
            matrix_id=str(z),
            resolution=resolution,
            matrix_width=max(1, math.ceil(extent.width / tile_span)),
            matrix_height=max(1, math.ceil(extent.height / tile_span)),
        ))

    logger.debug(
        "Computed tile matrix set %s: %d levels, z0 resolution %s",
        matrix_set_id, zoom_levels, matrices[0].resolution
    )
    return TileMatrixSet(
        matrix_set_id=matrix_set_id,
        origin=origin if origin is not None else extent.top_left,
        tile_size=tile_size,
        extent=extent,
        matrices=tuple(matrices),
    )


def projection_extent(crs: str) -> Extent:
    """Full extent of a CRS in its own units.

    Geographic CRSs use their area of use directly; projected CRSs get the
    area of use transformed from WGS84.
    """
    try:
        crs_obj = CRS.from_user_input(crs)
    except CRSError as e:
        raise ConfigurationError(f"Unknown projection {crs!r}: {e}") from e

    area = crs_obj.area_of_use
    if area is None:
        raise ConfigurationError(f"Projection {crs!r} has no area of use")

    if crs_obj.is_geographic:
        return Extent.from_bounds(area.bounds)

    transformer = Transformer.from_crs(WGS84, crs_obj, always_xy=True)
    return Extent.from_bounds(transformer.transform_bounds(*area.bounds))


def tile_grid_for_config(config, crs: Optional[str] = None) -> TileMatrixSet:
    """Tile matrix set for a MapConfig and projection."""
    extent = projection_extent(crs or config.projection)
    return compute_tile_matrix_set(
        extent,
        tile_size=config.tile_size,
        zoom_levels=config.max_zoom,
        matrix_set_id=config.matrix_set_id,
    )


def validate_tile_url(template: str) -> bool:
    """Check that a WMTS template carries all tile placeholders."""
    return all(param in template for param in REQUIRED_PLACEHOLDERS)


def format_tile_url(template: str, matrix_set_id: str) -> str:
    """Turn a WMTS RESTful template into a {z}/{x}/{y} template.

    Raises:
        ConfigurationError: if a placeholder is missing
    """
    missing = [param for param in REQUIRED_PLACEHOLDERS if param not in template]
    if missing:
        raise ConfigurationError(f"Tile URL template is missing {', '.join(missing)}: {template}")
    return (template
            .replace("{TileMatrixSet}", matrix_set_id)
            .replace("{TileMatrix}", "{z}")
            .replace("{TileCol}", "{x}")
            .replace("{TileRow}", "{y}"))


def tile_url(template: str, matrix_set: TileMatrixSet, z: int, col: int, row: int) -> str:
    """Concrete URL of one tile."""
    matrix = matrix_set.matrix(z)
    return (format_tile_url(template, matrix_set.matrix_set_id)
            .replace("{z}", matrix.matrix_id)
            .replace("{x}", str(col))
            .replace("{y}", str(row)))


def tile_range(matrix_set: TileMatrixSet, z: int, extent: Extent) -> Tuple[int, int, int, int]:
    """Inclusive (min_col, min_row, max_col, max_row) of tiles covering an extent.

    The range is clamped to the matrix; rows grow downward from the origin.
    """
    matrix = matrix_set.matrix(z)
    tile_span = matrix.resolution * matrix_set.tile_size
    ox, oy = matrix_set.origin

    def clamp(value, upper):
        return max(0, min(upper - 1, value))

    min_col = clamp(math.floor((extent.min_x - ox) / tile_span), matrix.matrix_width)
    max_col = clamp(math.floor((extent.max_x - ox) / tile_span), matrix.matrix_width)
    min_row = clamp(math.floor((oy - extent.max_y) / tile_span), matrix.matrix_height)
    max_row = clamp(math.floor((oy - extent.min_y) / tile_span), matrix.matrix_height)
    return (min_col, min_row, max_col, max_row)
