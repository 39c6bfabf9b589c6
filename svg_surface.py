"""
Reference host surface rendering to SVG.

SvgMapSurface implements the host side the map core talks to: a view
with fit/animate, a layer list and an interaction registry. Camera moves
are applied immediately (the requested duration is only recorded) and
render() writes the current view to an SVG document with svgwrite.
"""

import logging
import math
import re
from typing import Any, List, Optional, Sequence, Tuple

import svgwrite

from map_utils import Extent, TileLayer, VectorLayer
from render_helpers import render_feature, tile_corners
from tile_grid import TileMatrixSet, tile_range

logger = logging.getLogger(__name__)

MAX_TILES_PER_RENDER = 256


def svg_id(name: str) -> str:
    """Layer name made safe for an SVG id attribute."""
    cleaned = re.sub(r"[^A-Za-z0-9_-]", "_", name)
    if not cleaned or not cleaned[0].isalpha():
        cleaned = "layer_" + cleaned
    return cleaned


class SvgView:
    """Camera over a tile matrix set.

    Zoom is continuous; zoom 0 shows the matrix set's level-0 resolution.

    Attributes:
        width: Viewport width in pixels
        height: Viewport height in pixels
        history: (action, kwargs) of every camera call, oldest first
    """

    def __init__(
        self,
        matrix_set: TileMatrixSet,
        width: int = 800,
        height: int = 600,
        center: Tuple[float, float] = (0.0, 0.0),
        zoom: float = 0,
        min_zoom: float = 0,
        max_zoom: Optional[float] = None,
    ):
        self.matrix_set = matrix_set
        self.width = width
        self.height = height
        self.min_zoom = min_zoom
        self.max_zoom = max_zoom if max_zoom is not None else matrix_set.zoom_levels - 1
        self.center = (float(center[0]), float(center[1]))
        self.zoom = self._clamp(zoom)
        self.history: List[Tuple[str, dict]] = []

    def _clamp(self, zoom: float, ceiling: Optional[float] = None) -> float:
        upper = self.max_zoom if ceiling is None else min(self.max_zoom, ceiling)
        return max(self.min_zoom, min(upper, zoom))

    def get_zoom(self) -> float:
        return self.zoom

    def get_center(self) -> Tuple[float, float]:
        return self.center

    def get_resolution(self) -> float:
        return self.matrix_set.resolution_for_zoom(self.zoom)

    def visible_extent(self) -> Extent:
        res = self.get_resolution()
        half_w = self.width * res / 2
        half_h = self.height * res / 2
        cx, cy = self.center
        return Extent(cx - half_w, cy - half_h, cx + half_w, cy + half_h)

    def animate(self, center: Optional[Sequence[float]] = None, zoom: Optional[float] = None,
                duration: int = 0):
        """Move to a center and/or zoom."""
        self.history.append(("animate", {"center": center, "zoom": zoom, "duration": duration}))
        if center is not None:
            self.center = (float(center[0]), float(center[1]))
        if zoom is not None:
            self.zoom = self._clamp(zoom)

    def fit(self, extent, padding: Sequence[int] = (0, 0, 0, 0), duration: int = 0,
            max_zoom: Optional[float] = None):
        """Show an extent inside the padded viewport.

        Raises:
            ValueError: non-finite extent or padding larger than the viewport
        """
        if not isinstance(extent, Extent):
            extent = Extent.from_bounds(extent)
        if not extent.is_finite():
            raise ValueError(f"Cannot fit non-finite extent {extent.as_tuple()}")
        top, right, bottom, left = padding
        inner_w = self.width - left - right
        inner_h = self.height - top - bottom
        if inner_w <= 0 or inner_h <= 0:
            raise ValueError(f"Padding {list(padding)} leaves no room in a {self.width}x{self.height} view")

        self.history.append(("fit", {"extent": extent, "padding": list(padding),
                                     "duration": duration, "max_zoom": max_zoom}))
        ceiling = max_zoom if max_zoom is not None else self.max_zoom
        if extent.width == 0 and extent.height == 0:
            zoom = ceiling
        else:
            resolution = max(extent.width / inner_w, extent.height / inner_h)
            zoom = self.matrix_set.zoom_for_resolution(resolution)
        self.zoom = self._clamp(zoom, ceiling)

        # Center of the padded area lands on the extent center
        res = self.get_resolution()
        cx, cy = extent.center
        self.center = (cx - (left - right) / 2 * res, cy + (top - bottom) / 2 * res)


class SvgMapSurface:
    """Layer list, interaction registry and SVG renderer."""

    def __init__(self, view: SvgView):
        self.view = view
        self.layers: List[Any] = []
        self.interactions: List[Any] = []

    def get_view(self) -> SvgView:
        return self.view

    def add_layer(self, layer):
        if self.has_layer(layer):
            return
        self.layers.append(layer)

    def remove_layer(self, layer):
        self.layers = [existing for existing in self.layers if existing is not layer]

    def has_layer(self, layer) -> bool:
        return any(existing is layer for existing in self.layers)

    def add_interaction(self, interaction):
        if any(existing is interaction for existing in self.interactions):
            raise ValueError(f"Interaction {interaction!r} is already registered")
        self.interactions.append(interaction)

    def remove_interaction(self, interaction):
        before = len(self.interactions)
        self.interactions = [existing for existing in self.interactions if existing is not interaction]
        if len(self.interactions) == before:
            logger.warning("Removing interaction that was not registered: %r", interaction)

    def to_svg_transform(self):
        """Function mapping map coordinates to SVG pixel coordinates."""
        extent = self.view.visible_extent()
        res = self.view.get_resolution()

        def to_svg(x: float, y: float) -> Tuple[float, float]:
            return ((x - extent.min_x) / res, (extent.max_y - y) / res)

        return to_svg

    def render(self, output_path=None) -> svgwrite.Drawing:
        """Draw visible layers in z-order.

        Args:
            output_path: Optional file to save the SVG to

        Returns:
            The svgwrite Drawing
        """
        view = self.view
        dwg = svgwrite.Drawing(
            filename=str(output_path) if output_path else "map.svg",
            size=(view.width, view.height),
            viewBox=f"0 0 {view.width} {view.height}",
        )
        to_svg = self.to_svg_transform()

        for layer in sorted(self.layers, key=lambda layer: layer.z_order):
            if not layer.visible:
                continue
            if isinstance(layer, TileLayer):
                group = dwg.g(id=svg_id(layer.name_key))
                self._render_tiles(dwg, group, layer, to_svg)
            elif isinstance(layer, VectorLayer):
                group = dwg.g(id=svg_id(layer.name))
                for index, feature in enumerate(layer.features):
                    if layer.style_for is None:
                        continue
                    render_feature(feature, group, dwg, layer.style_for(index), to_svg)
            else:
                logger.debug("Skipping unsupported layer %r", layer)
                continue
            dwg.add(group)

        if output_path:
            dwg.save()
            logger.info("Saved map to %s", output_path)
        return dwg

    def _render_tiles(self, dwg, group, layer: TileLayer, to_svg) -> int:
        matrix_set = layer.tile_matrix_set
        z = max(0, min(matrix_set.zoom_levels - 1, int(math.floor(self.view.zoom + 0.5))))
        min_col, min_row, max_col, max_row = tile_range(matrix_set, z, self.view.visible_extent())
        count = (max_col - min_col + 1) * (max_row - min_row + 1)
        if count > MAX_TILES_PER_RENDER:
            logger.warning("Skipping %d tiles of %s at zoom %d", count, layer.layer_id, z)
            return 0

        matrix = matrix_set.matrix(z)
        tile_span = matrix.resolution * matrix_set.tile_size
        for row in range(min_row, max_row + 1):
            for col in range(min_col, max_col + 1):
                (left, top), (right, bottom) = tile_corners(col, row, matrix_set.origin, tile_span)
                x0, y0 = to_svg(left, top)
                x1, y1 = to_svg(right, bottom)
                href = (layer.url_template
                        .replace("{z}", matrix.matrix_id)
                        .replace("{x}", str(col))
                        .replace("{y}", str(row)))
                group.add(dwg.image(href=href, insert=(x0, y0), size=(x1 - x0, y1 - y0)))
        return count
