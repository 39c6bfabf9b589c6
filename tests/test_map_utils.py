"""
Tests for map_utils module.

Run with: pytest tests/test_map_utils.py -v
"""

import math
import pytest
from map_utils import Extent, LayerManager, LayerZOrder, TileLayer, VectorLayer


class TestExtent:
    """Tests for the Extent dataclass."""

    def test_extent_creation(self):
        """Test basic extent creation."""
        extent = Extent(min_x=0, min_y=0, max_x=100, max_y=50)
        assert extent.min_x == 0
        assert extent.max_x == 100
        assert extent.min_y == 0
        assert extent.max_y == 50

    def test_from_bounds(self):
        """Test building from a bounds sequence."""
        assert Extent.from_bounds([1, 2, 3, 4]) == Extent(1, 2, 3, 4)
        with pytest.raises(ValueError):
            Extent.from_bounds([1, 2, 3])

    def test_extent_width_height(self):
        """Test width and height properties."""
        extent = Extent(min_x=10, min_y=20, max_x=110, max_y=70)
        assert extent.width == 100
        assert extent.height == 50

    def test_extent_center(self):
        """Test center property."""
        extent = Extent(min_x=0, min_y=0, max_x=100, max_y=100)
        assert extent.center == (50, 50)

    def test_top_left(self):
        """Test the top-left corner is (min_x, max_y)."""
        assert Extent(0, 1, 2, 3).top_left == (0, 3)

    def test_extent_contains(self):
        """Test point containment check."""
        extent = Extent(min_x=0, min_y=0, max_x=100, max_y=100)
        assert extent.contains(50, 50) is True
        assert extent.contains(0, 0) is True
        assert extent.contains(100, 100) is True
        assert extent.contains(-1, 50) is False
        assert extent.contains(50, 101) is False

    def test_extent_expand(self):
        """Test extent expansion."""
        expanded = Extent(min_x=10, min_y=20, max_x=90, max_y=80).expand(10)
        assert expanded.as_tuple() == (0, 10, 100, 90)

    def test_is_finite(self):
        """Test finiteness checks."""
        assert Extent(0, 0, 1, 1).is_finite()
        assert not Extent(0, 0, math.inf, 1).is_finite()
        assert not Extent(math.nan, 0, 1, 1).is_finite()
        assert not Extent.empty().is_finite()

    def test_union(self):
        """Test union with another extent and with the empty extent."""
        a = Extent(0, 0, 1, 1)
        b = Extent(2, -1, 3, 0.5)
        assert a.union(b) == Extent(0, -1, 3, 1)
        assert Extent.empty().union(a) == a

    def test_extent_as_tuple(self):
        """Test conversion to tuple."""
        assert Extent(min_x=1, min_y=3, max_x=2, max_y=4).as_tuple() == (1, 3, 2, 4)


class FakeSurface:
    """Records layer additions and removals."""

    def __init__(self):
        self.layers = []

    def add_layer(self, layer):
        self.layers.append(layer)

    def remove_layer(self, layer):
        self.layers.remove(layer)


def tile_layer(layer_id, z_order=LayerZOrder.BASE):
    return TileLayer(layer_id=layer_id, name=layer_id.title(),
                     url_template=f"https://x/{layer_id}/{{z}}/{{x}}/{{y}}.png",
                     tile_matrix_set=None, z_order=z_order)


class TestLayerManager:
    """Tests for the LayerManager class."""

    @pytest.fixture
    def surface(self):
        return FakeSurface()

    @pytest.fixture
    def manager(self, surface):
        """Create a LayerManager instance."""
        return LayerManager(surface)

    def test_register_layer(self, manager, surface):
        """Test registering a layer adds it to the surface."""
        layer = manager.register_layer(VectorLayer("features", z_order=LayerZOrder.FEATURES))
        assert manager.get_layer("features") is layer
        assert surface.layers == [layer]

    def test_register_with_z_order(self, manager):
        """Test the z-order override."""
        layer = manager.register_layer(VectorLayer("context"), z_order=LayerZOrder.CONTEXT)
        assert layer.z_order == 100

    def test_register_replaces_same_name(self, manager, surface):
        """Test re-registering a name swaps the layer on the surface."""
        old = manager.register_layer(VectorLayer("features"))
        new = manager.register_layer(VectorLayer("features"))
        assert surface.layers == [new]
        assert all(layer is not old for layer in surface.layers)

    def test_remove_layer(self, manager, surface):
        """Test removing a layer."""
        manager.register_layer(VectorLayer("features"))
        assert manager.remove_layer("features") is True
        assert manager.remove_layer("features") is False
        assert surface.layers == []

    def test_z_order_sorting(self, manager):
        """Test layers come back lowest first."""
        manager.register_layer(VectorLayer("drawing", z_order=LayerZOrder.DRAWING))
        manager.register_layer(VectorLayer("features", z_order=LayerZOrder.FEATURES))
        manager.register_layer(tile_layer("osm"))
        names = [getattr(layer, "name") for layer in manager.get_layers_by_z_order()]
        assert names == ["Osm", "features", "drawing"]

    def test_base_and_overlay_filters(self, manager):
        """Test filtering tile layers from vector layers."""
        manager.register_layer(VectorLayer("features"))
        manager.register_layer(tile_layer("osm"))
        assert [layer.layer_id for layer in manager.get_base_layers()] == ["osm"]
        assert [layer.name for layer in manager.get_overlay_layers()] == ["features"]

    def test_base_layer_key(self, manager):
        """Test base layers are keyed by id, apart from vector names."""
        manager.register_layer(VectorLayer("osm"))
        manager.register_layer(tile_layer("osm"))
        assert len(manager.layers) == 2
        assert manager.get_layer("base:osm").layer_id == "osm"

    def test_show_base_layer_exclusive(self, manager):
        """Test showing one base layer hides the others."""
        manager.register_layer(tile_layer("satellite"))
        manager.register_layer(tile_layer("streets"))
        assert manager.show_base_layer("streets") is True
        assert manager.visible_base_layer().layer_id == "streets"
        assert manager.show_base_layer("satellite") is True
        assert [layer.visible for layer in manager.get_base_layers()].count(True) == 1

    def test_show_unknown_base_layer(self, manager):
        """Test an unknown id changes nothing."""
        manager.register_layer(tile_layer("satellite"))
        manager.show_base_layer("satellite")
        assert manager.show_base_layer("terrain") is False
        assert manager.visible_base_layer().layer_id == "satellite"


class TestLayerZOrder:
    """Tests for LayerZOrder constants."""

    def test_z_order_values(self):
        """Test z-order constants are properly ordered."""
        assert LayerZOrder.BASE < LayerZOrder.FALLBACK_BASE
        assert LayerZOrder.FALLBACK_BASE < LayerZOrder.CONTEXT
        assert LayerZOrder.CONTEXT < LayerZOrder.FEATURES
        assert LayerZOrder.FEATURES < LayerZOrder.DRAWING
