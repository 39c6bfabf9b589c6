"""
Style resolution for map features.

A StyleSpec describes colors, opacities and widths; a Style is the
renderable object the host draws, shaped by the feature's geometry type
(circle for points, stroke for lines, fill + stroke for polygons).
"""

import logging
import math
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from features import Feature, GeometryType
from map_config import (
    DEFAULT_STYLES,
    DRAWING_FILL_COLOR,
    DRAWING_FILL_OPACITY,
    DRAWING_LINE_DASH,
    DRAWING_POINT_RADIUS,
    DRAWING_STROKE_COLOR,
    DRAWING_STROKE_WIDTH,
    is_hex_color,
)
from map_errors import ConfigurationError, RenderError

logger = logging.getLogger(__name__)

RGBA = Tuple[int, int, int, float]
StyleOverride = Callable[[Mapping[str, Any], str], Any]

# camelCase keys of style dicts returned by host callbacks
_SPEC_ALIASES = {
    "fillColor": "fill_color",
    "fillOpacity": "fill_opacity",
    "strokeColor": "stroke_color",
    "strokeWidth": "stroke_width",
    "strokeOpacity": "stroke_opacity",
}


def hex_to_rgba(color: str, opacity: float) -> RGBA:
    """Convert '#RRGGBB' plus an opacity to an (r, g, b, a) tuple.

    Raises:
        ConfigurationError: malformed color or opacity outside [0, 1]
    """
    if not is_hex_color(color):
        raise ConfigurationError(f"Invalid hex color: {color!r}")
    if isinstance(opacity, bool) or not isinstance(opacity, (int, float)) or not 0 <= opacity <= 1:
        raise ConfigurationError(f"Opacity must be in [0, 1], got {opacity!r}")
    digits = color.lstrip("#")
    r = int(digits[0:2], 16)
    g = int(digits[2:4], 16)
    b = int(digits[4:6], 16)
    return (r, g, b, opacity)


def rgba_css(rgba: RGBA) -> str:
    """Format an RGBA tuple as a CSS rgba() string."""
    r, g, b, a = rgba
    return f"rgba({r}, {g}, {b}, {a})"


@dataclass(frozen=True)
class StyleSpec:
    """Colors and widths of one feature style."""
    fill_color: str = DEFAULT_STYLES["FILL_COLOR"]
    fill_opacity: float = DEFAULT_STYLES["FILL_OPACITY"]
    stroke_color: str = DEFAULT_STYLES["STROKE_COLOR"]
    stroke_width: float = DEFAULT_STYLES["STROKE_WIDTH"]
    stroke_opacity: float = DEFAULT_STYLES["STROKE_OPACITY"]

    def problems(self) -> List[str]:
        """Describe every invalid value; empty when the spec is usable."""
        found = []
        for name in ("fill_color", "stroke_color"):
            if not is_hex_color(getattr(self, name)):
                found.append(f"{name} {getattr(self, name)!r} is not a hex color")
        for name in ("fill_opacity", "stroke_opacity"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or not 0 <= value <= 1:
                found.append(f"{name} {value!r} is outside [0, 1]")
        if isinstance(self.stroke_width, bool) or not isinstance(self.stroke_width, (int, float)) \
                or not math.isfinite(self.stroke_width) or self.stroke_width < 0:
            found.append(f"stroke_width {self.stroke_width!r} is negative or not a finite number")
        return found

    def is_valid(self) -> bool:
        return not self.problems()

    @classmethod
    def from_config(cls, config) -> "StyleSpec":
        """Default theme from a MapConfig."""
        return cls(
            fill_color=config.default_fill_color,
            fill_opacity=config.default_opacity,
            stroke_color=config.default_stroke_color,
        )

    @classmethod
    def from_override(cls, value: Any, default_color: str) -> "StyleSpec":
        """Normalize an override result into a validated StyleSpec.

        Accepts a StyleSpec or a mapping with snake_case or camelCase keys.
        Missing stroke color falls back to the fill color, missing stroke
        width to the default width, missing stroke opacity to 1.

        Raises:
            RenderError: when the value is not usable as a style
        """
        if isinstance(value, StyleSpec):
            spec = value
        elif isinstance(value, Mapping):
            data = {_SPEC_ALIASES.get(k, k): v for k, v in value.items()}
            unknown = set(data) - {"fill_color", "fill_opacity", "stroke_color",
                                   "stroke_width", "stroke_opacity"}
            if unknown:
                raise RenderError(f"Unknown style keys: {sorted(unknown)}")
            fill_color = data.get("fill_color", default_color)
            spec = cls(
                fill_color=fill_color,
                fill_opacity=data.get("fill_opacity", DEFAULT_STYLES["FILL_OPACITY"]),
                stroke_color=data.get("stroke_color") or fill_color,
                stroke_width=data.get("stroke_width", DEFAULT_STYLES["STROKE_WIDTH"]),
                stroke_opacity=data.get("stroke_opacity", DEFAULT_STYLES["STROKE_OPACITY"]),
            )
        else:
            raise RenderError(f"Style override returned {type(value).__name__}, expected a style")

        problems = spec.problems()
        if problems:
            raise RenderError("Invalid style: " + "; ".join(problems))
        return spec


@dataclass(frozen=True)
class Fill:
    color: RGBA


@dataclass(frozen=True)
class Stroke:
    color: RGBA
    width: float
    line_dash: Optional[Tuple[int, ...]] = None


@dataclass(frozen=True)
class CircleStyle:
    radius: float
    fill: Fill
    stroke: Stroke


@dataclass(frozen=True)
class Style:
    """Renderable style; unset parts are not drawn."""
    fill: Optional[Fill] = None
    stroke: Optional[Stroke] = None
    image: Optional[CircleStyle] = None


@dataclass(frozen=True)
class ResolvedStyle:
    spec: StyleSpec
    style: Style
    selected: bool = False


def _point_style(spec: StyleSpec, radius: float) -> Style:
    return Style(image=CircleStyle(
        radius=radius,
        fill=Fill(hex_to_rgba(spec.fill_color, spec.fill_opacity)),
        stroke=Stroke(hex_to_rgba(spec.stroke_color, spec.stroke_opacity), spec.stroke_width),
    ))


def _line_style(spec: StyleSpec, radius: float) -> Style:
    return Style(stroke=Stroke(hex_to_rgba(spec.stroke_color, spec.stroke_opacity), spec.stroke_width))


def _polygon_style(spec: StyleSpec, radius: float) -> Style:
    return Style(
        fill=Fill(hex_to_rgba(spec.fill_color, spec.fill_opacity)),
        stroke=Stroke(hex_to_rgba(spec.stroke_color, spec.stroke_opacity), spec.stroke_width),
    )


# One entry per GeometryType member
STYLE_BUILDERS = {
    GeometryType.POINT: _point_style,
    GeometryType.MULTI_POINT: _point_style,
    GeometryType.LINE_STRING: _line_style,
    GeometryType.MULTI_LINE_STRING: _line_style,
    GeometryType.POLYGON: _polygon_style,
    GeometryType.MULTI_POLYGON: _polygon_style,
}


@dataclass(frozen=True)
class SelectedPalette:
    """Colors that replace any theme or override when a feature is selected."""
    fill_color: str = DEFAULT_STYLES["SELECTED_FILL_COLOR"]
    stroke_color: str = DEFAULT_STYLES["SELECTED_STROKE_COLOR"]
    fill_opacity: float = DEFAULT_STYLES["HIGHLIGHT_FILL_OPACITY"]
    stroke_width_delta: float = 1
    point_radius: float = DEFAULT_STYLES["SELECTED_POINT_RADIUS"]

    def apply(self, spec: StyleSpec) -> StyleSpec:
        return replace(
            spec,
            fill_color=self.fill_color,
            fill_opacity=self.fill_opacity,
            stroke_color=self.stroke_color,
            stroke_width=spec.stroke_width + self.stroke_width_delta,
        )


class StyleResolver:
    """Resolves a concrete style per feature.

    Override failures never escape: the theme is used instead and the
    RenderError is logged and kept in ``diagnostics``.
    """

    def __init__(
        self,
        theme: Optional[StyleSpec] = None,
        palette: Optional[SelectedPalette] = None,
        point_radius: float = DEFAULT_STYLES["POINT_RADIUS"],
    ):
        self.theme = theme or StyleSpec()
        problems = self.theme.problems()
        if problems:
            raise ConfigurationError("Invalid default theme: " + "; ".join(problems))
        self.palette = palette or SelectedPalette()
        self.point_radius = point_radius
        self.diagnostics: List[RenderError] = []
        self._failures: Dict[tuple, Feature] = {}

    def resolve_spec(
        self,
        feature: Feature,
        override: Optional[StyleOverride] = None,
        selected: bool = False,
    ) -> StyleSpec:
        """StyleSpec for a feature, before shaping by geometry type."""
        spec = self.theme
        if override is not None:
            try:
                spec = StyleSpec.from_override(
                    override(feature.properties, self.theme.fill_color),
                    self.theme.fill_color,
                )
            except RenderError as e:
                self._record(feature, override, e)
            except Exception as e:
                self._record(feature, override, RenderError(f"Style override raised {type(e).__name__}: {e}"))
        if selected:
            spec = self.palette.apply(spec)
        return spec

    def resolve(
        self,
        feature: Feature,
        override: Optional[StyleOverride] = None,
        selected: bool = False,
    ) -> ResolvedStyle:
        """Resolve the spec and the renderable style of a feature."""
        spec = self.resolve_spec(feature, override, selected)
        radius = self.palette.point_radius if selected else self.point_radius
        builder = STYLE_BUILDERS.get(feature.kind)
        if builder is None:
            logger.debug("Unknown geometry type %r, using polygon style", feature.type_name)
            builder = _polygon_style
        return ResolvedStyle(spec=spec, style=builder(spec, radius), selected=selected)

    def _record(self, feature: Feature, override: StyleOverride, error: RenderError):
        # One entry per feature and override, however often it is re-resolved
        key = (id(feature), override)
        if key in self._failures:
            return
        self._failures[key] = feature
        logger.warning("Style override failed for feature %s, using default theme: %s",
                       feature.properties, error)
        self.diagnostics.append(error)


def drawing_style() -> Style:
    """Style of the sketch layer and of in-progress drawings."""
    fill = Fill(hex_to_rgba(DRAWING_FILL_COLOR, DRAWING_FILL_OPACITY))
    stroke = Stroke(
        hex_to_rgba(DRAWING_STROKE_COLOR, 1),
        DRAWING_STROKE_WIDTH,
        line_dash=DRAWING_LINE_DASH,
    )
    return Style(
        fill=fill,
        stroke=stroke,
        image=CircleStyle(radius=DRAWING_POINT_RADIUS, fill=fill, stroke=Stroke(stroke.color, 1)),
    )
