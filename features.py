"""
Feature model shared by the style, highlight, drawing and view-fit code.

Features are read from GeoJSON feature collections. The core never copies
or mutates their geometry; a shapely geometry is built on demand when an
extent is needed.
"""

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from shapely.geometry import shape
from shapely.geometry.base import BaseGeometry

from map_utils import Extent

logger = logging.getLogger(__name__)


class GeometryType(Enum):
    """GeoJSON geometry types the map can display."""
    POINT = "Point"
    LINE_STRING = "LineString"
    POLYGON = "Polygon"
    MULTI_POINT = "MultiPoint"
    MULTI_LINE_STRING = "MultiLineString"
    MULTI_POLYGON = "MultiPolygon"

    @classmethod
    def parse(cls, name: Union[str, "GeometryType", None]) -> Optional["GeometryType"]:
        """Return the member for a GeoJSON type name, or None if unknown."""
        if isinstance(name, cls):
            return name
        for member in cls:
            if member.value == name:
                return member
        return None


@dataclass
class Feature:
    """A single geometry plus its attribute properties.

    Attributes:
        geometry_type: GeometryType member, or the raw type string when the
            source used a type the map does not know
        coordinates: Nested coordinate sequence matching the geometry type
        properties: Attribute mapping, including the application id column
    """
    geometry_type: Union[GeometryType, str]
    coordinates: Sequence[Any]
    properties: Dict[str, Any] = field(default_factory=dict)

    @property
    def kind(self) -> Optional[GeometryType]:
        """The known geometry type, or None for foreign types."""
        return GeometryType.parse(self.geometry_type)

    @property
    def type_name(self) -> str:
        if isinstance(self.geometry_type, GeometryType):
            return self.geometry_type.value
        return str(self.geometry_type)

    def get(self, key: str, default: Any = None) -> Any:
        return self.properties.get(key, default)

    def to_shape(self) -> BaseGeometry:
        """Build a shapely geometry from the coordinates."""
        return shape({"type": self.type_name, "coordinates": self.coordinates})

    def extent(self) -> Extent:
        """Bounding extent of the geometry.

        Empty or foreign geometries give a non-finite extent, which callers must check
        with Extent.is_finite before handing it to a camera.
        """
        if self.kind is None or not self.coordinates:
            return Extent.empty()
        geom = self.to_shape()
        if geom.is_empty:
            return Extent.empty()
        return Extent.from_bounds(geom.bounds)

    @classmethod
    def from_geojson(cls, data: Dict[str, Any]) -> "Feature":
        """Build a Feature from a GeoJSON Feature dict."""
        geometry = data.get("geometry") or {}
        type_name = geometry.get("type")
        kind = GeometryType.parse(type_name)
        if kind is None:
            logger.debug("Feature with unsupported geometry type %r", type_name)
        return cls(
            geometry_type=kind if kind is not None else str(type_name),
            coordinates=geometry.get("coordinates", []),
            properties=dict(data.get("properties") or {}),
        )

    def to_geojson(self) -> Dict[str, Any]:
        return {
            "type": "Feature",
            "geometry": {"type": self.type_name, "coordinates": self.coordinates},
            "properties": self.properties,
        }


def features_from_geojson(data: Dict[str, Any]) -> List[Feature]:
    """Read the features of a GeoJSON FeatureCollection (or a single Feature)."""
    if data.get("type") == "Feature":
        return [Feature.from_geojson(data)]
    if data.get("type") != "FeatureCollection":
        raise ValueError(f"Expected a GeoJSON FeatureCollection, got {data.get('type')!r}")
    return [Feature.from_geojson(item) for item in data.get("features", [])]


def load_feature_collection(path: Path) -> List[Feature]:
    """Load features from a GeoJSON file."""
    with open(path) as f:
        data = json.load(f)
    features = features_from_geojson(data)
    logger.info("Loaded %d features from %s", len(features), path)
    return features


def collection_extent(features: Sequence[Feature]) -> Extent:
    """Union of the extents of all features (non-finite when there are none)."""
    extent = Extent.empty()
    for feature in features:
        extent = extent.union(feature.extent())
    return extent
