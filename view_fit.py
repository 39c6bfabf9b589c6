"""
Camera policy for flying to features.

Points are centered at a fixed zoom; lines and polygons are fit to their
extent with padding and a per-class zoom ceiling. A non-finite extent is
rejected before the view is touched.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from features import Feature, GeometryType
from map_config import ANIMATION_DURATION_MS
from map_errors import ConfigurationError
from map_utils import Extent

logger = logging.getLogger(__name__)

POINT_ZOOM = 17
LINE_MAX_ZOOM = 14
POLYGON_MAX_ZOOM = 16
LAYER_MAX_ZOOM = 16
DEFAULT_PADDING_PX = 50
ZOOM_STEP_DURATION_MS = 300


class GeometryClass(Enum):
    POINT = "point"
    LINE = "line"
    POLYGON = "polygon"
    OTHER = "other"


_CLASS_BY_TYPE = {
    GeometryType.POINT: GeometryClass.POINT,
    GeometryType.LINE_STRING: GeometryClass.LINE,
    GeometryType.MULTI_LINE_STRING: GeometryClass.LINE,
    GeometryType.POLYGON: GeometryClass.POLYGON,
    GeometryType.MULTI_POLYGON: GeometryClass.POLYGON,
    GeometryType.MULTI_POINT: GeometryClass.OTHER,
}

# Zoom ceiling applied when fitting each class; POINT animates instead
_MAX_ZOOM_BY_CLASS = {
    GeometryClass.LINE: LINE_MAX_ZOOM,
    GeometryClass.POLYGON: POLYGON_MAX_ZOOM,
    GeometryClass.OTHER: None,
}


def classify(geometry_type) -> GeometryClass:
    """Camera class of a geometry type; unknown types are OTHER."""
    kind = GeometryType.parse(geometry_type)
    if kind is None:
        return GeometryClass.OTHER
    return _CLASS_BY_TYPE[kind]


@dataclass(frozen=True)
class CameraMove:
    """Parameters of one camera change.

    Attributes:
        action: "animate" or "fit"
        duration_ms: Animation length
        center: Target center (animate)
        zoom: Target zoom (animate)
        extent: Extent to show (fit)
        padding: [top, right, bottom, left] in pixels (fit)
        max_zoom: Zoom ceiling for the fit, None for no ceiling
    """
    action: str
    duration_ms: int
    center: Optional[Tuple[float, float]] = None
    zoom: Optional[float] = None
    extent: Optional[Extent] = None
    padding: Optional[Tuple[int, int, int, int]] = None
    max_zoom: Optional[float] = None


def _require_finite(extent) -> Extent:
    if not isinstance(extent, Extent):
        extent = Extent.from_bounds(extent)
    if not extent.is_finite():
        raise ConfigurationError(f"Refusing to move the camera to a non-finite extent {extent.as_tuple()}")
    return extent


def camera_move(
    extent,
    geometry_class: GeometryClass,
    padding_px: int = DEFAULT_PADDING_PX,
    duration_ms: int = ANIMATION_DURATION_MS,
) -> CameraMove:
    """Camera parameters for showing an extent of a given class.

    Raises:
        ConfigurationError: the extent has a non-finite coordinate
    """
    extent = _require_finite(extent)
    if geometry_class is GeometryClass.POINT:
        return CameraMove(action="animate", duration_ms=duration_ms, center=extent.center, zoom=POINT_ZOOM)
    return CameraMove(
        action="fit",
        duration_ms=duration_ms,
        extent=extent,
        padding=(padding_px,) * 4,
        max_zoom=_MAX_ZOOM_BY_CLASS[geometry_class],
    )


def apply_camera_move(view, move: CameraMove):
    """Send a CameraMove to a host view."""
    if move.action == "animate":
        view.animate(center=move.center, zoom=move.zoom, duration=move.duration_ms)
    else:
        view.fit(move.extent, padding=list(move.padding), duration=move.duration_ms, max_zoom=move.max_zoom)


def fly_to_feature(
    view,
    feature: Feature,
    padding_px: int = DEFAULT_PADDING_PX,
    duration_ms: int = ANIMATION_DURATION_MS,
) -> CameraMove:
    """Move the camera to a feature according to its geometry class."""
    move = camera_move(feature.extent(), classify(feature.geometry_type), padding_px, duration_ms)
    apply_camera_move(view, move)
    return move


def fit_to_extent(
    view,
    extent,
    padding_px: int = DEFAULT_PADDING_PX,
    duration_ms: int = ANIMATION_DURATION_MS,
    max_zoom: Optional[float] = LAYER_MAX_ZOOM,
) -> CameraMove:
    """Fit the view to a whole layer's extent."""
    extent = _require_finite(extent)
    move = CameraMove(
        action="fit",
        duration_ms=duration_ms,
        extent=extent,
        padding=(padding_px,) * 4,
        max_zoom=max_zoom,
    )
    apply_camera_move(view, move)
    return move


def step_zoom(view, delta: float, min_zoom: float, max_zoom: float,
              default_zoom: float = 10, duration_ms: int = ZOOM_STEP_DURATION_MS) -> float:
    """Zoom in (delta > 0) or out, clamped to [min_zoom, max_zoom].

    Returns:
        The target zoom
    """
    current = view.get_zoom()
    if current is None:
        current = default_zoom
    target = max(min_zoom, min(max_zoom, current + delta))
    view.animate(zoom=target, duration=duration_ms)
    return target
