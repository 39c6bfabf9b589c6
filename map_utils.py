"""
Utility classes for the interactive map core.

This module provides the Extent value type, the layer records handed to
a host surface, and a LayerManager that keeps layer z-ordering and
base-layer visibility in one place.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple


@dataclass(frozen=True)
class Extent:
    """Axis-aligned bounding box in map coordinates.

    Attributes:
        min_x: Western/left boundary
        min_y: Southern/bottom boundary
        max_x: Eastern/right boundary
        max_y: Northern/top boundary
    """
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @classmethod
    def from_bounds(cls, bounds: Sequence[float]) -> "Extent":
        """Build from a (min_x, min_y, max_x, max_y) sequence."""
        if len(bounds) != 4:
            raise ValueError(f"Extent needs 4 values, got {len(bounds)}")
        min_x, min_y, max_x, max_y = (float(v) for v in bounds)
        return cls(min_x, min_y, max_x, max_y)

    @classmethod
    def empty(cls) -> "Extent":
        """The identity for union; never finite."""
        return cls(math.inf, math.inf, -math.inf, -math.inf)

    @property
    def width(self) -> float:
        """Width of the extent (east-west)."""
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        """Height of the extent (north-south)."""
        return self.max_y - self.min_y

    @property
    def center(self) -> Tuple[float, float]:
        """Center point of the extent as (x, y)."""
        return (
            (self.min_x + self.max_x) / 2,
            (self.min_y + self.max_y) / 2
        )

    @property
    def top_left(self) -> Tuple[float, float]:
        return (self.min_x, self.max_y)

    def is_finite(self) -> bool:
        """True when every coordinate is a finite number."""
        return all(math.isfinite(v) for v in self.as_tuple())

    def contains(self, x: float, y: float) -> bool:
        """Check if a point is within the extent."""
        return (self.min_x <= x <= self.max_x and
                self.min_y <= y <= self.max_y)

    def expand(self, buffer: float) -> "Extent":
        """Return a new Extent expanded by buffer in all directions."""
        return Extent(
            min_x=self.min_x - buffer,
            min_y=self.min_y - buffer,
            max_x=self.max_x + buffer,
            max_y=self.max_y + buffer
        )

    def union(self, other: "Extent") -> "Extent":
        return Extent(
            min_x=min(self.min_x, other.min_x),
            min_y=min(self.min_y, other.min_y),
            max_x=max(self.max_x, other.max_x),
            max_y=max(self.max_y, other.max_y)
        )

    def as_tuple(self) -> Tuple[float, float, float, float]:
        """Return extent as (min_x, min_y, max_x, max_y) tuple."""
        return (self.min_x, self.min_y, self.max_x, self.max_y)


@dataclass
class VectorLayer:
    """A vector layer as handed to the host surface.

    Attributes:
        name: Layer name, unique per surface
        features: Features drawn by the layer
        style_for: Callable (index) -> renderable Style for feature at index
        z_order: Stacking order (higher values render on top)
        visible: Whether the host should draw the layer
    """
    name: str
    features: List[Any] = field(default_factory=list)
    style_for: Optional[Callable[[int], Any]] = None
    z_order: int = 0
    visible: bool = True


@dataclass
class TileLayer:
    """A raster base layer backed by a WMTS tile matrix set.

    Attributes:
        layer_id: Base layer identifier
        name: Display name
        url_template: Tile URL with {z}/{x}/{y} placeholders
        tile_matrix_set: TileMatrixSet used to address tiles
        z_order: Stacking order
        visible: Only one base layer is visible at a time
    """
    layer_id: str
    name: str
    url_template: str
    tile_matrix_set: Any
    z_order: int = 0
    visible: bool = False

    @property
    def name_key(self) -> str:
        return f"base:{self.layer_id}"


class LayerManager:
    """Registers layers on a host surface and keeps their z-ordering.

    Base layers are mutually exclusive: showing one hides the others.

    Attributes:
        layers: Dictionary mapping layer key to layer record
    """

    def __init__(self, surface):
        """Initialize the layer manager.

        Args:
            surface: Host surface with add_layer/remove_layer
        """
        self.surface = surface
        self.layers: Dict[str, Any] = {}

    @staticmethod
    def _key(layer) -> str:
        if isinstance(layer, TileLayer):
            return layer.name_key
        return layer.name

    def register_layer(self, layer, z_order: Optional[int] = None):
        """Add a layer to the surface, replacing one with the same key.

        Args:
            layer: VectorLayer or TileLayer
            z_order: Optional override of the layer's z_order

        Returns:
            The registered layer
        """
        if z_order is not None:
            layer.z_order = z_order

        key = self._key(layer)
        previous = self.layers.get(key)
        if previous is not None:
            self.surface.remove_layer(previous)

        self.layers[key] = layer
        self.surface.add_layer(layer)
        return layer

    def remove_layer(self, key: str) -> bool:
        """Remove a layer by key. Returns False if it was not registered."""
        layer = self.layers.pop(key, None)
        if layer is None:
            return False
        self.surface.remove_layer(layer)
        return True

    def get_layer(self, key: str) -> Any:
        """Get a layer by key."""
        return self.layers.get(key)

    def get_layers_by_z_order(self, base: Optional[bool] = None) -> List[Any]:
        """Get layers sorted by z-order.

        Args:
            base: If specified, filter to only base (tile) or overlay layers

        Returns:
            List of layers sorted by z-order (lowest first)
        """
        filtered = list(self.layers.values())

        if base is not None:
            filtered = [layer for layer in filtered if isinstance(layer, TileLayer) == base]

        return sorted(filtered, key=lambda layer: layer.z_order)

    def get_base_layers(self) -> List[TileLayer]:
        return self.get_layers_by_z_order(base=True)

    def get_overlay_layers(self) -> List[Any]:
        return self.get_layers_by_z_order(base=False)

    def show_base_layer(self, layer_id: str) -> bool:
        """Make one base layer visible and hide the rest.

        Returns False (and changes nothing) if no base layer has that id.
        """
        base_layers = self.get_base_layers()
        if not any(layer.layer_id == layer_id for layer in base_layers):
            return False
        for layer in base_layers:
            layer.visible = layer.layer_id == layer_id
        return True

    def visible_base_layer(self) -> Optional[TileLayer]:
        for layer in self.get_base_layers():
            if layer.visible:
                return layer
        return None


# Z-order constants for standard layers
class LayerZOrder:
    """Standard z-order values for map layers.

    Lower values render first (underneath).
    """
    # Raster base layers
    BASE = 0
    FALLBACK_BASE = 5

    # Context layers (other layers' geometry)
    CONTEXT = 100

    # Main feature layer
    FEATURES = 200

    # Sketches drawn by the user
    DRAWING = 300
