"""
Tests for map_config module.

Run with: pytest tests/test_map_config.py -v
"""

import json
import pytest
from map_config import DEFAULT_STYLES, MapConfig, is_hex_color, load_config_from_file
from map_errors import ConfigurationError


class TestMapConfig:
    """Tests for MapConfig defaults and validation."""

    def test_defaults(self):
        """Test the default option values."""
        config = MapConfig()
        assert config.tile_size == 256
        assert config.matrix_set_id == "WorldCRS84"
        assert config.max_zoom == 21
        assert config.min_zoom == 1
        assert config.animation_duration_ms == 1000
        assert config.default_fill_color == "#3388ff"
        assert config.default_stroke_color == "#3388ff"
        assert config.default_opacity == 0.2
        assert config.id_column == "id"

    def test_style_theme_constants(self):
        """Test the selected palette constants."""
        assert DEFAULT_STYLES["SELECTED_FILL_COLOR"] == "#ff3388"
        assert DEFAULT_STYLES["HIGHLIGHT_FILL_OPACITY"] == 0.4
        assert DEFAULT_STYLES["POINT_RADIUS"] == 6
        assert DEFAULT_STYLES["SELECTED_POINT_RADIUS"] == 8

    @pytest.mark.parametrize("kwargs", [
        {"tile_size": 0},
        {"tile_size": 256.0},
        {"max_zoom": 0},
        {"min_zoom": 5, "max_zoom": 4},
        {"animation_duration_ms": -1},
        {"default_fill_color": "blue"},
        {"default_stroke_color": "#12345"},
        {"default_opacity": 1.5},
        {"id_column": ""},
        {"default_center": (float("inf"), 0)},
        {"snap_tolerance": -1},
    ])
    def test_invalid(self, kwargs):
        """Test out-of-range options fail loudly."""
        with pytest.raises(ConfigurationError):
            MapConfig(**kwargs)

    def test_from_dict_camel_case(self):
        """Test camelCase keys from a web host."""
        config = MapConfig.from_dict({"tileSize": 512, "idColumn": "parcel_id", "maxZoom": 18})
        assert config.tile_size == 512
        assert config.id_column == "parcel_id"
        assert config.max_zoom == 18

    def test_from_dict_ignores_unknown(self):
        """Test unknown keys are skipped."""
        config = MapConfig.from_dict({"token": "secret", "min_zoom": 2})
        assert config.min_zoom == 2
        assert "token" not in config.to_dict()

    def test_center_is_tuple(self):
        """Test a JSON list center becomes a tuple."""
        assert MapConfig.from_dict({"defaultCenter": [1, 2]}).default_center == (1, 2)

    def test_hex_color(self):
        """Test hex color recognition."""
        assert is_hex_color("#3388ff")
        assert is_hex_color("3388FF")
        assert not is_hex_color("#3388f")
        assert not is_hex_color(None)
        assert not is_hex_color("#3388ff\n")


class TestLoadConfigFromFile:
    """Tests for JSON config loading."""

    def test_missing_file(self, tmp_path):
        """Test a missing file gives None."""
        assert load_config_from_file(tmp_path / "map_config.json") is None

    def test_load(self, tmp_path):
        """Test loading a JSON config."""
        path = tmp_path / "map_config.json"
        path.write_text(json.dumps({"defaultFillColor": "#00ff00", "defaultZoom": 12}))
        config = load_config_from_file(path)
        assert config.default_fill_color == "#00ff00"
        assert config.default_zoom == 12

    def test_invalid_json(self, tmp_path):
        """Test broken JSON is a configuration error."""
        path = tmp_path / "map_config.json"
        path.write_text("{not json")
        with pytest.raises(ConfigurationError):
            load_config_from_file(path)

    def test_not_an_object(self, tmp_path):
        """Test a JSON list is rejected."""
        path = tmp_path / "map_config.json"
        path.write_text("[1, 2]")
        with pytest.raises(ConfigurationError):
            load_config_from_file(path)
