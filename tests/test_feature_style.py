"""
Tests for feature_style module.

Run with: pytest tests/test_feature_style.py -v
"""

import pytest
from feature_style import (
    STYLE_BUILDERS,
    SelectedPalette,
    StyleResolver,
    StyleSpec,
    drawing_style,
    hex_to_rgba,
    rgba_css,
)
from features import Feature, GeometryType
from map_config import MapConfig
from map_errors import ConfigurationError, RenderError


def make_feature(geometry_type, coordinates=None, **properties):
    defaults = {
        GeometryType.POINT: [1, 2],
        GeometryType.MULTI_POINT: [[1, 2], [3, 4]],
        GeometryType.LINE_STRING: [[0, 0], [1, 1]],
        GeometryType.MULTI_LINE_STRING: [[[0, 0], [1, 1]]],
        GeometryType.POLYGON: [[[0, 0], [1, 0], [1, 1], [0, 0]]],
        GeometryType.MULTI_POLYGON: [[[[0, 0], [1, 0], [1, 1], [0, 0]]]],
    }
    if coordinates is None:
        coordinates = defaults.get(geometry_type, [])
    return Feature(geometry_type=geometry_type, coordinates=coordinates, properties=properties)


class TestHexToRgba:
    """Tests for hex color conversion."""

    def test_basic_conversion(self):
        """Test channel values and alpha."""
        assert hex_to_rgba("#3388ff", 0.2) == (51, 136, 255, 0.2)

    def test_without_hash(self):
        """Test the leading '#' is optional."""
        assert hex_to_rgba("ff3388", 1) == (255, 51, 136, 1)

    def test_alpha_is_exact(self):
        """Test alpha equals the opacity given."""
        for opacity in (0, 0.3, 0.4, 1):
            assert hex_to_rgba("#000000", opacity)[3] == opacity

    @pytest.mark.parametrize("color", ["#fff", "#gggggg", "", "3388ff00", "#3388ff\n", None])
    def test_invalid_color(self, color):
        """Test malformed colors."""
        with pytest.raises(ConfigurationError):
            hex_to_rgba(color, 0.5)

    @pytest.mark.parametrize("opacity", [-0.1, 1.5, "0.5", True])
    def test_invalid_opacity(self, opacity):
        """Test opacity outside [0, 1] or not a number."""
        with pytest.raises(ConfigurationError):
            hex_to_rgba("#3388ff", opacity)

    def test_rgba_css(self):
        """Test CSS formatting."""
        assert rgba_css((51, 136, 255, 0.2)) == "rgba(51, 136, 255, 0.2)"


class TestStyleSpec:
    """Tests for StyleSpec validation and override normalization."""

    def test_defaults_are_valid(self):
        """Test the default theme."""
        spec = StyleSpec()
        assert spec.is_valid()
        assert spec.fill_color == "#3388ff"
        assert spec.fill_opacity == 0.2

    def test_from_config(self):
        """Test the theme follows the config colors."""
        spec = StyleSpec.from_config(MapConfig(default_fill_color="#00ff00", default_opacity=0.5))
        assert spec.fill_color == "#00ff00"
        assert spec.fill_opacity == 0.5

    def test_override_camel_case(self):
        """Test camelCase keys and stroke fallbacks."""
        spec = StyleSpec.from_override({"fillColor": "#00ff00", "fillOpacity": 0.3}, "#3388ff")
        assert spec.fill_color == "#00ff00"
        assert spec.stroke_color == "#00ff00"
        assert spec.stroke_width == 2
        assert spec.stroke_opacity == 1

    def test_override_uses_default_color(self):
        """Test a missing fill color falls back to the default color."""
        spec = StyleSpec.from_override({"strokeWidth": 4}, "#123456")
        assert spec.fill_color == "#123456"
        assert spec.stroke_width == 4

    def test_override_spec_passthrough(self):
        """Test a StyleSpec result is used as is."""
        given = StyleSpec(fill_color="#abcdef")
        assert StyleSpec.from_override(given, "#3388ff") is given

    @pytest.mark.parametrize("value", [
        {"fillColor": "red"},
        {"fillOpacity": 2},
        {"strokeWidth": -1},
        {"strokeWidth": float("nan")},
        {"strokeWidth": float("inf")},
        {"bogus": 1},
        "#ff0000",
        None,
    ])
    def test_override_invalid(self, value):
        """Test unusable override results."""
        with pytest.raises(RenderError):
            StyleSpec.from_override(value, "#3388ff")


class TestStyleResolver:
    """Tests for StyleResolver."""

    @pytest.fixture
    def resolver(self):
        return StyleResolver()

    def test_builders_cover_every_type(self):
        """Test the style table is exhaustive."""
        assert set(STYLE_BUILDERS) == set(GeometryType)

    @pytest.mark.parametrize("geometry_type", [GeometryType.POINT, GeometryType.MULTI_POINT])
    def test_point_shape(self, resolver, geometry_type):
        """Test points get a circle with fill and outline."""
        style = resolver.resolve(make_feature(geometry_type)).style
        assert style.image is not None
        assert style.image.radius == 6
        assert style.fill is None and style.stroke is None

    @pytest.mark.parametrize("geometry_type", [GeometryType.LINE_STRING, GeometryType.MULTI_LINE_STRING])
    def test_line_shape(self, resolver, geometry_type):
        """Test lines get a stroke only."""
        style = resolver.resolve(make_feature(geometry_type)).style
        assert style.stroke is not None
        assert style.fill is None and style.image is None

    @pytest.mark.parametrize("geometry_type", [GeometryType.POLYGON, GeometryType.MULTI_POLYGON])
    def test_polygon_shape(self, resolver, geometry_type):
        """Test polygons get fill and stroke."""
        style = resolver.resolve(make_feature(geometry_type)).style
        assert style.fill.color == (51, 136, 255, 0.2)
        assert style.stroke.color == (51, 136, 255, 1)
        assert style.stroke.width == 2

    def test_unknown_type_uses_polygon_shape(self, resolver):
        """Test foreign geometry types fall back to fill and stroke."""
        style = resolver.resolve(make_feature("GeometryCollection")).style
        assert style.fill is not None and style.stroke is not None

    def test_override_receives_properties_and_default(self, resolver):
        """Test the override arguments."""
        calls = []

        def override(properties, default_color):
            calls.append((dict(properties), default_color))
            return {"fillColor": "#00ff00"}

        resolved = resolver.resolve(make_feature(GeometryType.POLYGON, kind="park"), override)
        assert calls == [({"kind": "park"}, "#3388ff")]
        assert resolved.spec.fill_color == "#00ff00"
        assert resolved.style.fill.color == (0, 255, 0, 0.2)

    def test_raising_override_falls_back(self, resolver):
        """Test an exception in the override uses the theme and is recorded."""
        def override(properties, default_color):
            raise KeyError("color")

        resolved = resolver.resolve(make_feature(GeometryType.POLYGON), override)
        assert resolved.spec == resolver.theme
        assert len(resolver.diagnostics) == 1
        assert isinstance(resolver.diagnostics[0], RenderError)

    def test_failure_recorded_once_per_feature(self, resolver):
        """Test re-resolving a failing feature does not repeat the diagnostic."""
        def override(properties, default_color):
            raise KeyError("color")

        feature = make_feature(GeometryType.POLYGON)
        for selected in (False, True, False):
            resolver.resolve(feature, override, selected=selected)
        assert len(resolver.diagnostics) == 1
        resolver.resolve(make_feature(GeometryType.POLYGON), override)
        assert len(resolver.diagnostics) == 2

    def test_invalid_override_result_falls_back(self, resolver):
        """Test an invalid color from the override uses the theme."""
        resolved = resolver.resolve(make_feature(GeometryType.LINE_STRING),
                                    lambda properties, default: {"fillColor": "blue"})
        assert resolved.spec == resolver.theme
        assert len(resolver.diagnostics) == 1

    def test_selected_variant(self, resolver):
        """Test the selected palette wins over the override."""
        resolved = resolver.resolve(make_feature(GeometryType.POLYGON),
                                    lambda properties, default: {"fillColor": "#00ff00", "strokeWidth": 3},
                                    selected=True)
        assert resolved.selected is True
        assert resolved.spec.fill_color == "#ff3388"
        assert resolved.spec.stroke_color == "#ff3388"
        assert resolved.spec.fill_opacity == 0.4
        assert resolved.spec.stroke_width == 4

    def test_selected_point_radius(self, resolver):
        """Test selected points grow from 6 to 8."""
        resolved = resolver.resolve(make_feature(GeometryType.POINT), selected=True)
        assert resolved.style.image.radius == 8

    def test_invalid_theme(self):
        """Test a bad theme fails loudly."""
        with pytest.raises(ConfigurationError):
            StyleResolver(theme=StyleSpec(fill_color="blue"))

    def test_custom_palette(self):
        """Test a custom selected palette."""
        resolver = StyleResolver(palette=SelectedPalette(fill_color="#000000", stroke_color="#000000"))
        spec = resolver.resolve_spec(make_feature(GeometryType.POLYGON), selected=True)
        assert spec.fill_color == "#000000"


class TestDrawingStyle:
    """Tests for the sketch layer style."""

    def test_dashed_yellow_stroke(self):
        """Test the stroke color and dash pattern."""
        style = drawing_style()
        assert style.stroke.color == (255, 204, 51, 1)
        assert style.stroke.line_dash == (10, 10)
        assert style.fill.color == (255, 255, 255, 0.2)
        assert style.image.radius == 5
