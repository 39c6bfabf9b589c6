"""
Interactive map orchestrator and the render-map command.

InteractiveMap wires the core pieces onto one host surface: the feature
layer styled through the highlighter, an optional layer with the other
layers' geometry, the drawing layer, and WMTS base layers. Recoverable
errors (bad overrides, unknown highlight ids, unusable extents, failed
catalog fetches) are logged and kept in ``diagnostics``; messages meant
for the user end up in ``notices``.

Usage:
    render-map parcels.geojson --select 002 --output parcels.svg
"""

import argparse
import logging
import sys
import threading
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence

from base_layers import BaseLayerLoader, CatalogClient
from drawing import DrawingStateMachine
from feature_style import StyleOverride, StyleResolver, StyleSpec
from features import Feature, collection_extent, load_feature_collection
from highlighter import FeatureHighlighter
from map_config import MapConfig, load_config_from_file
from map_errors import ConfigurationError, MapError, NotFoundError
from map_utils import LayerManager, LayerZOrder, VectorLayer
from svg_surface import SvgMapSurface, SvgView
from tile_grid import TileMatrixSet, tile_grid_for_config
from view_fit import DEFAULT_PADDING_PX, fit_to_extent, fly_to_feature, step_zoom

logger = logging.getLogger(__name__)

CONTEXT_LAYER_NAME = "other-layers"


class InteractiveMap:
    """One feature collection on a host surface, with selection and drawing.

    Attributes:
        features: Features of the main layer
        highlighter: Selection state and style cache of the main layer
        drawing: Drawing state machine for sketches
        base_loader: Generation-guarded base layer loader
        notices: User-visible, non-blocking messages
    """

    def __init__(
        self,
        surface,
        config: Optional[MapConfig] = None,
        features: Sequence[Feature] = (),
        style_override: Optional[StyleOverride] = None,
        layer_name: str = "features",
        on_select: Optional[Callable[[Feature], None]] = None,
        on_draw: Optional[Callable[[Optional[str]], None]] = None,
        context_features: Optional[Sequence[Feature]] = None,
        catalog_client: Optional[CatalogClient] = None,
        base_layer_ids: Optional[Sequence[str]] = None,
        matrix_set: Optional[TileMatrixSet] = None,
    ):
        self.surface = surface
        self.config = config or MapConfig()
        self.layer_name = layer_name
        self.on_select = on_select
        self.resolver = StyleResolver(theme=StyleSpec.from_config(self.config))
        self.layers = LayerManager(surface)
        self.matrix_set = matrix_set or tile_grid_for_config(self.config)
        self.drawing = DrawingStateMachine(surface, subscriber=on_draw,
                                           snap_tolerance=self.config.snap_tolerance)
        self.base_loader = BaseLayerLoader(catalog_client, self.matrix_set, layer_ids=base_layer_ids)
        self.notices: List[str] = []
        self._errors: List[MapError] = []
        self._installed_generation = 0
        self._install_lock = threading.Lock()

        self.feature_layer: Optional[VectorLayer] = None
        self.context_layer: Optional[VectorLayer] = None
        self.set_features(features, style_override)
        if context_features:
            self.set_context_features(context_features)

    @property
    def view(self):
        return self.surface.get_view()

    @property
    def diagnostics(self) -> List[MapError]:
        """Recovered errors, style override failures first."""
        return list(self.resolver.diagnostics) + self._errors

    def _record(self, error: MapError):
        logger.warning("%s: %s", type(error).__name__, error)
        self._errors.append(error)

    # === Layers ===

    def set_features(self, features: Sequence[Feature], style_override: Optional[StyleOverride] = None):
        """Replace the main layer's features. Any selection is dropped."""
        self.features = list(features)
        self.highlighter = FeatureHighlighter(
            self.features, self.resolver, self.config.id_column, override=style_override
        )
        self.feature_layer = self.layers.register_layer(VectorLayer(
            name=self.layer_name,
            features=self.features,
            style_for=self.highlighter.style_for,
            z_order=LayerZOrder.FEATURES,
        ))
        logger.info("Showing %d features on layer %s", len(self.features), self.layer_name)

    def set_style_override(self, style_override: Optional[StyleOverride]):
        self.highlighter.set_override(style_override)

    def set_context_features(self, features: Sequence[Feature]):
        """Show other layers' geometry underneath, in the default theme."""
        features = list(features)
        styles = [self.resolver.resolve(feature).style for feature in features]
        self.context_layer = self.layers.register_layer(VectorLayer(
            name=CONTEXT_LAYER_NAME,
            features=features,
            style_for=styles.__getitem__,
            z_order=LayerZOrder.CONTEXT,
        ))

    # === Selection and camera ===

    def select(self, target: Any, fly: bool = True) -> Optional[Feature]:
        """Highlight the feature whose id column equals target.

        An unknown id keeps the previous selection and is recorded as a
        NotFoundError in diagnostics.

        Returns:
            The selected feature, or None if nothing matched
        """
        try:
            index = self.highlighter.highlight(target)
        except NotFoundError as e:
            self._record(e)
            return None

        feature = self.features[index]
        if fly:
            self.fly_to(feature)
        if self.on_select is not None:
            self.on_select(feature)
        return feature

    def feature_clicked(self, index: int) -> Optional[Feature]:
        """Select a feature picked on the map, without moving the camera.

        A feature without a value in the id column cannot be selected.
        """
        feature_id = self.features[index].get(self.config.id_column)
        if feature_id is None:
            logger.info("Clicked feature %d has no %s", index, self.config.id_column)
            return None
        return self.select(feature_id, fly=False)

    def clear_selection(self):
        self.highlighter.clear()

    def fly_to(self, feature: Feature) -> bool:
        """Move the camera to a feature. Returns False if its extent is unusable."""
        try:
            fly_to_feature(self.view, feature, DEFAULT_PADDING_PX, self.config.animation_duration_ms)
        except ConfigurationError as e:
            self._record(e)
            return False
        return True

    def fit_to_features(self) -> bool:
        """Fit the view to the whole main layer."""
        try:
            fit_to_extent(self.view, collection_extent(self.features),
                          duration_ms=self.config.animation_duration_ms)
        except ConfigurationError as e:
            self._record(e)
            return False
        return True

    def zoom_in(self) -> float:
        return step_zoom(self.view, 1, self.config.min_zoom, self.config.max_zoom,
                         default_zoom=self.config.default_zoom)

    def zoom_out(self) -> float:
        return step_zoom(self.view, -1, self.config.min_zoom, self.config.max_zoom,
                         default_zoom=self.config.default_zoom)

    # === Drawing ===

    def start_drawing(self, mode, on_draw: Optional[Callable[[Optional[str]], None]] = None):
        self.drawing.start(mode, on_draw)

    def stop_drawing(self):
        self.drawing.stop()

    def clear_drawing(self):
        self.drawing.clear()

    # === Base layers ===

    def load_base_layers(self, background: bool = False):
        """Discover base layers and put them on the surface.

        In background mode only the fetch runs on the returned worker
        thread. Its result reaches the surface when the caller runs
        ``install_base_layers()`` (``render()`` does so), and only if no
        newer load has started in the meantime.
        """
        if background:
            return self.base_loader.load_in_background()

        if self.base_loader.load():
            self.install_base_layers()
        return None

    def install_base_layers(self) -> bool:
        """Swap the surface's base layers for the loader's latest result.

        Returns:
            False when that result is already installed
        """
        with self._install_lock:
            generation, layers, errors, notice = self.base_loader.snapshot()
            if generation <= self._installed_generation:
                return False

            for layer in self.layers.get_base_layers():
                self.layers.remove_layer(layer.name_key)
            for layer in layers:
                self.layers.register_layer(layer)

            self._installed_generation = generation
            for error in errors:
                self._record(error)
            if notice:
                self.notices.append(notice)
            logger.info("Installed %d base layers", len(layers))
            return True

    def show_base_layer(self, layer_id: str) -> bool:
        shown = self.layers.show_base_layer(layer_id)
        if not shown:
            logger.warning("No base layer %r", layer_id)
        return shown

    def render(self, output_path: Optional[Path] = None):
        self.install_base_layers()
        return self.surface.render(output_path)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Command-line interface: render a GeoJSON file to SVG."""
    parser = argparse.ArgumentParser(description="Render a GeoJSON feature collection to an SVG map")
    parser.add_argument("geojson", type=Path, help="GeoJSON FeatureCollection to display")
    parser.add_argument("--config", type=Path, default=None,
                        help="Map config JSON (default: map_config.json if present)")
    parser.add_argument("--select", default=None, help="Id of the feature to highlight and fly to")
    parser.add_argument("--id-column", default=None, help="Property holding feature ids")
    parser.add_argument("--context", type=Path, default=None,
                        help="GeoJSON with other layers' geometry to show underneath")
    parser.add_argument("--output", type=Path, default=None, help="Output SVG (default: <geojson>.svg)")
    parser.add_argument("--width", type=int, default=800, help="Image width in pixels")
    parser.add_argument("--height", type=int, default=600, help="Image height in pixels")
    parser.add_argument("--capabilities", default=None, help="WMTS GetCapabilities URL for base layers")
    parser.add_argument("--sketch", action="append", default=[], metavar="WKT",
                        help="Sketch to show on the drawing layer (repeatable)")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")

    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")

    try:
        config = load_config_from_file(args.config) or MapConfig()
        if args.id_column:
            config.id_column = args.id_column
        features = load_feature_collection(args.geojson)
        context = load_feature_collection(args.context) if args.context else None
        matrix_set = tile_grid_for_config(config)
    except (MapError, OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    output = args.output or args.geojson.with_suffix(".svg")

    print("=" * 60)
    print("Interactive Map Render")
    print("=" * 60)
    print(f"  Features: {len(features)} from {args.geojson}")
    print(f"  Tile matrix set: {matrix_set.matrix_set_id} ({matrix_set.zoom_levels} levels)")

    view = SvgView(matrix_set, width=args.width, height=args.height,
                   center=config.default_center, zoom=config.default_zoom,
                   min_zoom=config.min_zoom, max_zoom=config.max_zoom - 1)
    client = CatalogClient(args.capabilities) if args.capabilities else None
    imap = InteractiveMap(SvgMapSurface(view), config, features,
                          context_features=context, catalog_client=client, matrix_set=matrix_set)

    if client is not None:
        imap.load_base_layers()

    for text in args.sketch:
        try:
            imap.drawing.load_wkt(text)
        except ValueError as e:
            print(f"  Skipping sketch: {e}")

    if args.select is not None:
        if imap.select(args.select) is None:
            print(f"  No feature with {config.id_column} == {args.select!r}")
            imap.fit_to_features()
    else:
        imap.fit_to_features()

    imap.render(output)

    for notice in imap.notices:
        print(f"  Notice: {notice}")
    if imap.diagnostics:
        print(f"  {len(imap.diagnostics)} recoverable problem(s), see log")

    print(f"\n{'=' * 60}")
    print("Render complete!")
    print(f"  Zoom: {view.get_zoom():.2f}")
    print(f"  Output: {output}")
    print("=" * 60)
    return 0


if __name__ == "__main__":
    sys.exit(main())
