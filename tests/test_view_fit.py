"""
Tests for view_fit module.

Run with: pytest tests/test_view_fit.py -v
"""

import math
from unittest.mock import Mock

import pytest
from features import Feature, GeometryType
from map_errors import ConfigurationError
from map_utils import Extent
from view_fit import (
    _CLASS_BY_TYPE,
    GeometryClass,
    camera_move,
    classify,
    fit_to_extent,
    fly_to_feature,
    step_zoom,
)


@pytest.fixture
def view():
    """A spy standing in for the host view."""
    spy = Mock()
    spy.get_zoom.return_value = 10
    return spy


class TestClassify:
    """Tests for geometry classification."""

    @pytest.mark.parametrize("geometry_type, expected", [
        (GeometryType.POINT, GeometryClass.POINT),
        (GeometryType.LINE_STRING, GeometryClass.LINE),
        (GeometryType.MULTI_LINE_STRING, GeometryClass.LINE),
        (GeometryType.POLYGON, GeometryClass.POLYGON),
        (GeometryType.MULTI_POLYGON, GeometryClass.POLYGON),
        (GeometryType.MULTI_POINT, GeometryClass.OTHER),
        ("Polygon", GeometryClass.POLYGON),
        ("GeometryCollection", GeometryClass.OTHER),
    ])
    def test_classify(self, geometry_type, expected):
        """Test each geometry type's camera class."""
        assert classify(geometry_type) is expected

    def test_table_covers_every_type(self):
        """Test the class table is exhaustive."""
        assert set(_CLASS_BY_TYPE) == set(GeometryType)


class TestCameraMove:
    """Tests for camera parameter selection."""

    def test_point_animates(self):
        """Test points are centered at zoom 17."""
        move = camera_move(Extent(35, 31, 35, 31), GeometryClass.POINT)
        assert move.action == "animate"
        assert move.center == (35, 31)
        assert move.zoom == 17
        assert move.duration_ms == 1000

    def test_line_fit(self):
        """Test lines fit with a zoom ceiling of 14."""
        move = camera_move(Extent(0, 0, 1, 1), GeometryClass.LINE)
        assert move.action == "fit"
        assert move.padding == (50, 50, 50, 50)
        assert move.max_zoom == 14

    def test_polygon_fit(self):
        """Test polygons fit with a zoom ceiling of 16."""
        assert camera_move(Extent(0, 0, 1, 1), GeometryClass.POLYGON).max_zoom == 16

    def test_other_fit_without_ceiling(self):
        """Test other geometries fit without a ceiling."""
        move = camera_move(Extent(0, 0, 1, 1), GeometryClass.OTHER)
        assert move.action == "fit"
        assert move.max_zoom is None

    def test_custom_padding_and_duration(self):
        """Test padding and duration are passed through."""
        move = camera_move((0, 0, 1, 1), GeometryClass.POLYGON, padding_px=20, duration_ms=250)
        assert move.padding == (20, 20, 20, 20)
        assert move.duration_ms == 250

    @pytest.mark.parametrize("extent", [
        Extent(0, 0, math.inf, 1),
        Extent(math.nan, 0, 1, 1),
        Extent.empty(),
    ])
    def test_non_finite_extent(self, extent):
        """Test non-finite extents are rejected."""
        with pytest.raises(ConfigurationError):
            camera_move(extent, GeometryClass.POLYGON)


class TestFlyToFeature:
    """Tests for moving a host view."""

    def test_point_feature(self, view):
        """Test a point feature animates the view."""
        fly_to_feature(view, Feature(GeometryType.POINT, [35.2, 31.7]))
        view.animate.assert_called_once_with(center=(35.2, 31.7), zoom=17, duration=1000)
        view.fit.assert_not_called()

    def test_polygon_feature(self, view):
        """Test a polygon feature fits the view to its bounds."""
        feature = Feature(GeometryType.POLYGON, [[[0, 0], [4, 0], [4, 2], [0, 0]]])
        fly_to_feature(view, feature)
        view.fit.assert_called_once_with(Extent(0, 0, 4, 2), padding=[50, 50, 50, 50],
                                         duration=1000, max_zoom=16)

    def test_line_feature(self, view):
        """Test a line feature uses the line ceiling."""
        fly_to_feature(view, Feature(GeometryType.LINE_STRING, [[0, 0], [1, 1]]))
        assert view.fit.call_args.kwargs["max_zoom"] == 14

    def test_infinite_coordinates_never_reach_view(self, view):
        """Test a feature with an infinite extent leaves the view alone."""
        feature = Mock(spec=Feature)
        feature.geometry_type = GeometryType.POLYGON
        feature.extent.return_value = Extent(0, 0, math.inf, 1)
        with pytest.raises(ConfigurationError):
            fly_to_feature(view, feature)
        view.fit.assert_not_called()
        view.animate.assert_not_called()

    def test_empty_geometry_never_reaches_view(self, view):
        """Test an empty geometry leaves the view alone."""
        with pytest.raises(ConfigurationError):
            fly_to_feature(view, Feature(GeometryType.POLYGON, []))
        view.fit.assert_not_called()
        view.animate.assert_not_called()


class TestFitAndZoom:
    """Tests for layer fitting and zoom controls."""

    def test_fit_to_extent(self, view):
        """Test the layer fit uses padding 50 and max zoom 16."""
        fit_to_extent(view, Extent(0, 0, 10, 10))
        view.fit.assert_called_once_with(Extent(0, 0, 10, 10), padding=[50, 50, 50, 50],
                                         duration=1000, max_zoom=16)

    def test_fit_to_non_finite_extent(self, view):
        """Test an empty layer is not fitted."""
        with pytest.raises(ConfigurationError):
            fit_to_extent(view, Extent.empty())
        view.fit.assert_not_called()

    def test_zoom_in(self, view):
        """Test zooming in by one level."""
        assert step_zoom(view, 1, 1, 21) == 11
        view.animate.assert_called_once_with(zoom=11, duration=300)

    def test_zoom_clamped(self, view):
        """Test zoom stays within bounds."""
        view.get_zoom.return_value = 21
        assert step_zoom(view, 1, 1, 21) == 21
        view.get_zoom.return_value = 1
        assert step_zoom(view, -1, 1, 21) == 1

    def test_zoom_without_current_zoom(self, view):
        """Test the default zoom is used when the view has none."""
        view.get_zoom.return_value = None
        assert step_zoom(view, -1, 1, 21, default_zoom=10) == 9
