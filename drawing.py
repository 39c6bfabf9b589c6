"""
Drawing interaction lifecycle.

One DrawingStateMachine exists per map. Starting a mode detaches the
current draw/modify/snap triple before attaching a fresh one, so at most
one generation of handlers is ever registered on the host surface.
Finished shapes are appended to the draft layer and reported as WKT.
"""

import logging
import math
from enum import Enum
from typing import Callable, List, NamedTuple, Optional, Tuple, Union

import wkt_codec
from feature_style import drawing_style
from features import Feature, GeometryType
from map_utils import LayerZOrder, VectorLayer

logger = logging.getLogger(__name__)

DRAWING_LAYER_NAME = "drawing"

WktSubscriber = Callable[[Optional[str]], None]


class DrawingMode(Enum):
    NONE = "none"
    POLYGON = "polygon"
    LINE = "line"
    POINT = "point"

    @classmethod
    def parse(cls, value: Union[str, "DrawingMode", None]) -> "DrawingMode":
        if value is None:
            return cls.NONE
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ValueError(f"Unknown drawing mode {value!r}") from None

    @property
    def geometry_type(self) -> Optional[GeometryType]:
        return _MODE_GEOMETRY[self]

    @property
    def min_vertices(self) -> int:
        return _MODE_MIN_VERTICES[self]


_MODE_GEOMETRY = {
    DrawingMode.NONE: None,
    DrawingMode.POLYGON: GeometryType.POLYGON,
    DrawingMode.LINE: GeometryType.LINE_STRING,
    DrawingMode.POINT: GeometryType.POINT,
}

_MODE_MIN_VERTICES = {
    DrawingMode.NONE: 0,
    DrawingMode.POLYGON: 3,
    DrawingMode.LINE: 2,
    DrawingMode.POINT: 1,
}


def feature_vertices(feature: Feature) -> List[Tuple[float, float]]:
    """Vertices of a drafted Point, LineString or Polygon (ring without closing point)."""
    kind = feature.kind
    if kind is GeometryType.POINT:
        return [tuple(feature.coordinates)]
    if kind is GeometryType.LINE_STRING:
        return [tuple(c) for c in feature.coordinates]
    if kind is GeometryType.POLYGON:
        return [tuple(c) for c in feature.coordinates[0][:-1]]
    return []


def draft_coordinates(geometry_type: GeometryType, vertices: List[Tuple[float, float]]) -> list:
    """GeoJSON-style coordinates for a drafted shape; polygon rings are closed."""
    if geometry_type is GeometryType.POINT:
        return list(vertices[0])
    if geometry_type is GeometryType.LINE_STRING:
        return [list(v) for v in vertices]
    ring = [list(v) for v in vertices]
    return [ring + [list(vertices[0])]]


class _Handler:
    """Base for interactions registered on the host surface."""

    kind = "handler"

    def __init__(self, machine: "DrawingStateMachine", generation: int):
        self.machine = machine
        self.generation = generation
        self.attached = False

    def _check_attached(self, event: str) -> bool:
        if not self.attached:
            logger.warning("Ignoring %s on detached %s handler (generation %d)",
                           event, self.kind, self.generation)
        return self.attached

    def __repr__(self):
        state = "attached" if self.attached else "detached"
        return f"<{type(self).__name__} gen={self.generation} {state}>"


class SnapHandler(_Handler):
    """Pulls pointer positions onto nearby draft vertices."""

    kind = "snap"

    def __init__(self, machine, generation, tolerance: float):
        super().__init__(machine, generation)
        self.tolerance = tolerance

    def snap(self, x: float, y: float) -> Tuple[float, float]:
        """Nearest draft vertex within tolerance, else (x, y) unchanged."""
        if not self.attached or self.tolerance <= 0:
            return (x, y)
        best = None
        best_dist = self.tolerance
        for feature in self.machine.draft_features:
            for vx, vy in feature_vertices(feature):
                dist = math.hypot(vx - x, vy - y)
                if dist <= best_dist:
                    best, best_dist = (vx, vy), dist
        return best if best is not None else (x, y)


class DrawHandler(_Handler):
    """Builds one shape at a time from pointer clicks."""

    kind = "draw"

    def __init__(self, machine, generation, mode: DrawingMode, snapper: Optional[SnapHandler] = None):
        super().__init__(machine, generation)
        self.mode = mode
        self.snapper = snapper
        self.vertices: List[Tuple[float, float]] = []

    def add_vertex(self, x: float, y: float) -> Optional[Feature]:
        """Add a clicked vertex. In point mode this commits immediately.

        Returns:
            The committed Feature in point mode, else None
        """
        if not self._check_attached("vertex"):
            return None
        if self.snapper is not None:
            x, y = self.snapper.snap(x, y)
        self.vertices.append((float(x), float(y)))
        if self.mode is DrawingMode.POINT:
            return self.finish()
        return None

    def finish(self) -> Optional[Feature]:
        """Commit the shape being drawn.

        Returns:
            The committed Feature, or None when too few vertices were placed
            (the sketch is discarded)
        """
        if not self._check_attached("finish"):
            return None
        vertices, self.vertices = self.vertices, []
        if self.mode is DrawingMode.POLYGON and len(vertices) > 1 and vertices[0] == vertices[-1]:
            vertices = vertices[:-1]
        if len(vertices) < self.mode.min_vertices:
            logger.debug("Discarding %s sketch with %d vertices", self.mode.value, len(vertices))
            return None
        return self.machine._commit(self, vertices)

    def abort(self):
        """Drop the in-progress sketch."""
        self.vertices = []


class ModifyHandler(_Handler):
    """Edits vertices of already drafted shapes."""

    kind = "modify"

    def move_vertex(self, feature_index: int, vertex_index: int, x: float, y: float) -> Optional[str]:
        """Move one vertex of a draft feature.

        Returns:
            WKT of the edited shape, or None when the handler is detached
        """
        if not self._check_attached("modify"):
            return None
        feature = self.machine.draft_features[feature_index]
        point = [float(x), float(y)]
        kind = feature.kind
        if kind is GeometryType.POINT:
            if vertex_index != 0:
                raise IndexError(f"Point has no vertex {vertex_index}")
            feature.coordinates = point
        elif kind is GeometryType.LINE_STRING:
            feature.coordinates[vertex_index] = point
        elif kind is GeometryType.POLYGON:
            ring = feature.coordinates[0]
            if not 0 <= vertex_index < len(ring) - 1:
                raise IndexError(f"Polygon ring has no vertex {vertex_index}")
            ring[vertex_index] = point
            if vertex_index == 0:
                ring[-1] = list(point)
        return wkt_codec.encode_geometry(feature.geometry_type, feature.coordinates)


class HandlerSet(NamedTuple):
    constructor: DrawHandler
    modifier: ModifyHandler
    snapper: SnapHandler


class DrawingStateMachine:
    """Owns the draft features and the active interaction handlers.

    States are Idle (mode NONE, no handlers) and Drawing(mode).
    """

    def __init__(self, surface, subscriber: Optional[WktSubscriber] = None, snap_tolerance: float = 0.0):
        """Initialize the state machine.

        Args:
            surface: Host surface with add/remove_interaction and add_layer/has_layer
            subscriber: Called with WKT on every commit and with None on clear
            snap_tolerance: Snapping distance in map units (0 disables snapping)
        """
        self.surface = surface
        self.subscriber = subscriber
        self.snap_tolerance = snap_tolerance
        self.mode = DrawingMode.NONE
        self.draft_features: List[Feature] = []
        self.active_handlers: Optional[HandlerSet] = None
        self._generation = 0
        self.layer = VectorLayer(
            name=DRAWING_LAYER_NAME,
            features=self.draft_features,
            style_for=lambda index: drawing_style(),
            z_order=LayerZOrder.DRAWING,
        )

    @property
    def is_drawing(self) -> bool:
        return self.active_handlers is not None

    @property
    def state(self) -> str:
        if self.active_handlers is None:
            return "idle"
        return f"drawing:{self.mode.value}"

    def start(self, mode, subscriber: Optional[WktSubscriber] = None):
        """Switch to a drawing mode, replacing any active handlers.

        ``start(DrawingMode.NONE)`` is the same as ``stop()``.
        """
        mode = DrawingMode.parse(mode)
        if subscriber is not None:
            self.subscriber = subscriber

        self._detach()
        if mode is DrawingMode.NONE:
            self.mode = DrawingMode.NONE
            return

        self._generation += 1
        snapper = SnapHandler(self, self._generation, self.snap_tolerance)
        handlers = HandlerSet(
            constructor=DrawHandler(self, self._generation, mode, snapper),
            modifier=ModifyHandler(self, self._generation),
            snapper=snapper,
        )
        attached = []
        try:
            for handler in handlers:
                self.surface.add_interaction(handler)
                handler.attached = True
                attached.append(handler)
        except Exception:
            for handler in attached:
                self.surface.remove_interaction(handler)
                handler.attached = False
            self.mode = DrawingMode.NONE
            raise

        if not self.surface.has_layer(self.layer):
            self.surface.add_layer(self.layer)

        self.active_handlers = handlers
        self.mode = mode
        logger.debug("Drawing started: %s (generation %d)", mode.value, self._generation)

    def stop(self):
        """Detach all handlers and go idle. Draft features are kept."""
        self._detach()
        self.mode = DrawingMode.NONE

    def clear(self):
        """Remove every draft feature and notify the subscriber with None."""
        del self.draft_features[:]
        if self.subscriber is not None:
            self.subscriber(None)

    def load_wkt(self, text: str) -> Feature:
        """Re-display a previously exported shape as a draft feature.

        The subscriber is not notified; this restores state rather than
        recording a new drawing.
        """
        geometry_type, coords = wkt_codec.decode(text)
        if geometry_type not in (GeometryType.POINT, GeometryType.LINE_STRING, GeometryType.POLYGON):
            raise ValueError(f"Cannot draft a {geometry_type.value}")
        vertices = [coords] if geometry_type is GeometryType.POINT else coords
        coordinates = draft_coordinates(geometry_type, vertices)
        feature = Feature(geometry_type=geometry_type, coordinates=coordinates)
        self.draft_features.append(feature)
        if not self.surface.has_layer(self.layer):
            self.surface.add_layer(self.layer)
        return feature

    def export_wkt(self) -> List[str]:
        """WKT of every draft feature, in drawing order."""
        return [wkt_codec.encode_geometry(f.geometry_type, f.coordinates) for f in self.draft_features]

    def _detach(self):
        if self.active_handlers is None:
            return
        for handler in self.active_handlers:
            self.surface.remove_interaction(handler)
            handler.attached = False
        logger.debug("Drawing handlers detached (generation %d)", self.active_handlers.constructor.generation)
        self.active_handlers = None

    def _commit(self, handler: DrawHandler, vertices: List[Tuple[float, float]]) -> Optional[Feature]:
        if self.active_handlers is None or handler is not self.active_handlers.constructor:
            logger.warning("Dropping shape from stale draw handler (generation %d)", handler.generation)
            return None

        geometry_type = handler.mode.geometry_type
        coordinates = draft_coordinates(geometry_type, vertices)

        feature = Feature(geometry_type=geometry_type, coordinates=coordinates)
        self.draft_features.append(feature)
        wkt = wkt_codec.encode_geometry(geometry_type, coordinates)
        logger.info("Shape drawn: %s", wkt)
        if self.subscriber is not None:
            self.subscriber(wkt)
        return feature
