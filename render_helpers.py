"""
Rendering helper functions for drawing styled features into SVG.

Each helper takes an svgwrite Drawing, the group to add to, feature
coordinates, a resolved Style and a transform from map to SVG
coordinates. Stroke widths and point radii are in pixels.
"""

from typing import Callable, List, Optional, Sequence, Tuple

from feature_style import RGBA, Style
from features import Feature, GeometryType


def svg_paint(rgba: Optional[RGBA]) -> Tuple[str, float]:
    """Split an RGBA tuple into an SVG color string and an opacity.

    Returns ('none', 0) for a missing color.
    """
    if rgba is None:
        return ("none", 0)
    r, g, b, a = rgba
    return (f"rgb({r},{g},{b})", a)


def _stroke_props(style: Style) -> dict:
    if style.stroke is None:
        return {"stroke": "none"}
    color, opacity = svg_paint(style.stroke.color)
    props = {
        "stroke": color,
        "stroke_opacity": opacity,
        "stroke_width": style.stroke.width,
        "stroke_linejoin": "round",
        "stroke_linecap": "round",
    }
    if style.stroke.line_dash:
        props["stroke_dasharray"] = ",".join(str(d) for d in style.stroke.line_dash)
    return props


def _fill_props(style: Style) -> dict:
    if style.fill is None:
        return {"fill": "none"}
    color, opacity = svg_paint(style.fill.color)
    return {"fill": color, "fill_opacity": opacity}


def render_polygons(
    polygons: Sequence[Sequence[Sequence[Sequence[float]]]],
    layer,
    dwg,
    style: Style,
    to_svg: Callable
) -> int:
    """Render polygons (list of rings each) to an SVG layer.

    Holes are drawn with an evenodd path so they stay transparent.

    Returns:
        Number of polygons rendered
    """
    count = 0
    for rings in polygons:
        if not rings or len(rings[0]) < 3:
            continue
        commands = []
        for ring in rings:
            points = [to_svg(x, y) for x, y, *_ in ring]
            commands.append("M " + " L ".join(f"{px},{py}" for px, py in points) + " Z")
        props = {"d": " ".join(commands), "fill_rule": "evenodd"}
        props.update(_fill_props(style))
        props.update(_stroke_props(style))
        layer.add(dwg.path(**props))
        count += 1
    return count


def render_linestrings(
    lines: Sequence[Sequence[Sequence[float]]],
    layer,
    dwg,
    style: Style,
    to_svg: Callable
) -> int:
    """Render linestrings to an SVG layer.

    Returns:
        Number of linestrings rendered
    """
    count = 0
    for line in lines:
        if len(line) < 2:
            continue
        svg_points = [to_svg(x, y) for x, y, *_ in line]
        props = {"points": svg_points, "fill": "none"}
        props.update(_stroke_props(style))
        layer.add(dwg.polyline(**props))
        count += 1
    return count


def render_points(
    points: Sequence[Sequence[float]],
    layer,
    dwg,
    style: Style,
    to_svg: Callable
) -> int:
    """Render points as circles using the style's circle image.

    Returns:
        Number of points rendered
    """
    circle = style.image
    if circle is None:
        return 0
    fill_color, fill_opacity = svg_paint(circle.fill.color)
    stroke_color, stroke_opacity = svg_paint(circle.stroke.color)
    count = 0
    for point in points:
        if len(point) < 2:
            continue
        x, y = point[0], point[1]
        layer.add(dwg.circle(
            center=to_svg(x, y),
            r=circle.radius,
            fill=fill_color,
            fill_opacity=fill_opacity,
            stroke=stroke_color,
            stroke_opacity=stroke_opacity,
            stroke_width=circle.stroke.width,
        ))
        count += 1
    return count


def render_feature(feature: Feature, layer, dwg, style: Style, to_svg: Callable) -> int:
    """Render one feature with its resolved style.

    Features of unknown geometry type are skipped.

    Returns:
        Number of SVG elements added
    """
    kind = feature.kind
    coords = feature.coordinates
    if kind is GeometryType.POINT:
        return render_points([coords], layer, dwg, style, to_svg)
    if kind is GeometryType.MULTI_POINT:
        return render_points(coords, layer, dwg, style, to_svg)
    if kind is GeometryType.LINE_STRING:
        return render_linestrings([coords], layer, dwg, style, to_svg)
    if kind is GeometryType.MULTI_LINE_STRING:
        return render_linestrings(coords, layer, dwg, style, to_svg)
    if kind is GeometryType.POLYGON:
        return render_polygons([coords], layer, dwg, style, to_svg)
    if kind is GeometryType.MULTI_POLYGON:
        return render_polygons(coords, layer, dwg, style, to_svg)
    return 0


def tile_corners(col: int, row: int, origin: Tuple[float, float], tile_span: float) -> List[Tuple[float, float]]:
    """Map coordinates of a tile's top-left and bottom-right corners."""
    ox, oy = origin
    left = ox + col * tile_span
    top = oy - row * tile_span
    return [(left, top), (left + tile_span, top - tile_span)]
