"""
Single-selection highlighting over a feature collection.

The highlighter owns the style cache (feature index -> StyleSpec and
renderable Style). Every highlight change recomputes all features, so a
read of the selection right after a call is always consistent.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from feature_style import ResolvedStyle, Style, StyleOverride, StyleResolver, StyleSpec
from features import Feature
from map_errors import NotFoundError

logger = logging.getLogger(__name__)


class FeatureHighlighter:
    """Applies and clears the highlight of at most one feature.

    Not safe to call concurrently on the same collection.
    """

    def __init__(
        self,
        features: Sequence[Feature],
        resolver: StyleResolver,
        id_column: str,
        override: Optional[StyleOverride] = None,
    ):
        self.features = features
        self.resolver = resolver
        self.id_column = id_column
        self.override = override
        self._styles: Dict[int, ResolvedStyle] = {}
        self._selected_index: Optional[int] = None
        self.refresh()

    @property
    def selected_index(self) -> Optional[int]:
        return self._selected_index

    @property
    def selected_id(self) -> Any:
        if self._selected_index is None:
            return None
        return self.features[self._selected_index].get(self.id_column)

    def is_selected(self, index: int) -> bool:
        return index == self._selected_index

    def spec_for(self, index: int) -> StyleSpec:
        return self._styles[index].spec

    def style_for(self, index: int) -> Style:
        return self._styles[index].style

    def selected_indices(self) -> List[int]:
        """Indices whose cached style is the selected variant."""
        return [i for i, resolved in self._styles.items() if resolved.selected]

    def refresh(self):
        """Recompute every feature's style with its current selection flag."""
        self._styles = {
            i: self.resolver.resolve(feature, self.override, selected=(i == self._selected_index))
            for i, feature in enumerate(self.features)
        }

    def find(self, target: Any) -> Optional[int]:
        """Index of the first feature whose id column equals target."""
        for i, feature in enumerate(self.features):
            if feature.get(self.id_column) == target:
                return i
        return None

    def highlight(self, target: Any) -> int:
        """Select the feature with id ``target`` and reset all others.

        Returns:
            Index of the selected feature

        Raises:
            NotFoundError: no feature has that id; styles and the previous
                selection are left untouched
        """
        index = self.find(target)
        if index is None:
            raise NotFoundError(f"No feature with {self.id_column} == {target!r}")

        self._selected_index = index
        self.refresh()
        logger.debug("Highlighted feature %r at index %d", target, index)
        return index

    def clear(self):
        """Drop the selection and restore every feature's normal style."""
        self._selected_index = None
        self.refresh()

    def set_override(self, override: Optional[StyleOverride]):
        """Swap the per-feature color function and repaint."""
        self.override = override
        self.refresh()
