"""
WKT encoding of drawn shapes and decoding for re-display.

Coordinates are written with the shortest representation that parses
back to the same float, so encode/decode round trips are exact.
"""

import math
from typing import List, Sequence, Tuple

from shapely import wkt as shapely_wkt
from shapely.errors import ShapelyError

from features import GeometryType

Coordinate = Tuple[float, float]


def format_number(value: float) -> str:
    """Shortest exact text for a coordinate value ("1" rather than "1.0")."""
    value = float(value)
    if not math.isfinite(value):
        raise ValueError(f"Cannot encode non-finite coordinate {value}")
    if value.is_integer() and abs(value) < 1e15:
        return str(int(value))
    return repr(value)


def _format_coord(coord: Sequence[float]) -> str:
    if len(coord) < 2:
        raise ValueError(f"Coordinate needs x and y, got {coord!r}")
    return f"{format_number(coord[0])} {format_number(coord[1])}"


def _format_sequence(coords: Sequence[Sequence[float]]) -> str:
    return ", ".join(_format_coord(c) for c in coords)


def _same_point(a: Sequence[float], b: Sequence[float]) -> bool:
    return float(a[0]) == float(b[0]) and float(a[1]) == float(b[1])


def encode_point(point: Sequence[float]) -> str:
    """POINT (x y)"""
    return f"POINT ({_format_coord(point)})"


def encode_line(coords: Sequence[Sequence[float]]) -> str:
    """LINESTRING (x0 y0, x1 y1, ...)"""
    if len(coords) < 2:
        raise ValueError(f"A line needs at least 2 points, got {len(coords)}")
    return f"LINESTRING ({_format_sequence(coords)})"


def encode_polygon(ring: Sequence[Sequence[float]]) -> str:
    """POLYGON ((x0 y0, ..., x0 y0)).

    The ring is closed by repeating the first vertex unless the caller
    already closed it.
    """
    ring = list(ring)
    if len(ring) >= 2 and _same_point(ring[0], ring[-1]):
        ring = ring[:-1]
    if len(ring) < 3:
        raise ValueError(f"A polygon ring needs at least 3 distinct points, got {len(ring)}")
    return f"POLYGON (({_format_sequence(ring + [ring[0]])}))"


def encode_geometry(geometry_type, coordinates) -> str:
    """Encode one of the drawable geometry types.

    Polygon coordinates may be given GeoJSON-style (list of rings); only
    the exterior ring is written.
    """
    kind = GeometryType.parse(geometry_type)
    if kind is GeometryType.POINT:
        return encode_point(coordinates)
    if kind is GeometryType.LINE_STRING:
        return encode_line(coordinates)
    if kind is GeometryType.POLYGON:
        ring = coordinates
        if ring and isinstance(ring[0][0], (list, tuple)):
            ring = ring[0]
        return encode_polygon(ring)
    raise ValueError(f"Cannot encode geometry type {geometry_type!r}")


def decode(text: str) -> Tuple[GeometryType, object]:
    """Parse WKT produced by the encoders.

    Returns:
        (GeometryType, coordinates). Points give (x, y), lines a list of
        (x, y), polygons the exterior ring without its closing vertex.

    Raises:
        ValueError: for unparsable text or unsupported geometry types
    """
    try:
        geom = shapely_wkt.loads(text)
    except (ShapelyError, TypeError) as e:
        raise ValueError(f"Invalid WKT {text!r}: {e}") from e

    if geom.is_empty:
        raise ValueError(f"Empty geometry in WKT {text!r}")

    kind = GeometryType.parse(geom.geom_type)
    if kind is GeometryType.POINT:
        return kind, (geom.x, geom.y)
    if kind is GeometryType.LINE_STRING:
        return kind, [(x, y) for x, y, *_ in geom.coords]
    if kind is GeometryType.POLYGON:
        ring: List[Coordinate] = [(x, y) for x, y, *_ in geom.exterior.coords]
        return kind, ring[:-1]
    raise ValueError(f"Unsupported WKT geometry type {geom.geom_type}")
