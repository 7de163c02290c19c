"""
Tract fill encodings and the controller that switches between them.

Color computation is a pure function of the tracts and an encoding. The
controller owns only the active encoding: it diffs the computed colors against
what the fill elements currently show, eases the changed ones toward their new
color, and rebuilds the legend. No other layer is touched.
"""

import time
from dataclasses import dataclass
from typing import Callable, Dict, Hashable, List, Mapping, Optional, Sequence

import geopandas as gpd
import matplotlib.colors as mcolors
import numpy as np
from loguru import logger

from .scales import ThresholdColorScale, numeric_value
from .scene import Element

FeatureId = Hashable


@dataclass(frozen=True)
class EncodingDefinition:
    """A selectable (title, numeric property, threshold scale) triple."""

    key: str
    title: str
    field: str
    scale: ThresholdColorScale

    def value_of(self, properties: Mapping) -> Optional[float]:
        """Read this encoding's numeric property from a feature's properties."""
        return numeric_value(properties.get(self.field))


def compute_fill_colors(features: gpd.GeoDataFrame, encoding: EncodingDefinition) -> Dict[FeatureId, str]:
    """
    Compute the fill color of every tract under an encoding.

    Tracts with a missing, zero or negative value get the scale's fallback color.

    Args:
        features: Tract collection
        encoding: Encoding to apply

    Returns:
        Feature id (frame index) to color
    """
    if encoding.field not in features.columns:
        logger.warning(f"  ⚠️ Tracts have no '{encoding.field}' property; all tracts show no data")
        return {fid: encoding.scale.fallback for fid in features.index}
    return {
        fid: encoding.scale.color_for(value)
        for fid, value in zip(features.index, features[encoding.field])
    }


def render_legend(legend: Element, encoding: EncodingDefinition) -> None:
    """Replace the legend content with the title and one swatch per color bucket."""
    legend.clear()

    title = legend.append("div", class_="legend-title")
    title.text = encoding.title

    items = legend.append("div", class_="legend-items")
    items.style.update({"display": "flex", "flex-direction": "row"})

    for color, label in encoding.scale.legend_entries():
        item = items.append("div", class_="legend-item")
        swatch = item.append("div", class_="legend-color")
        swatch.style["background-color"] = color
        text = item.append("div", class_="legend-label")
        text.text = label


def ease_cubic_in_out(t: float) -> float:
    t *= 2
    if t <= 1:
        return t * t * t / 2
    t -= 2
    return (t * t * t + 2) / 2


class FillTransition:
    """Time-based RGB interpolation from start colors to target colors."""

    def __init__(
        self,
        start: Mapping[FeatureId, str],
        target: Mapping[FeatureId, str],
        duration: float,
        started_at: float,
    ):
        self.target = dict(target)
        self.duration = duration
        self.started_at = started_at
        self._start_rgb = {fid: np.array(mcolors.to_rgb(start[fid])) for fid in self.target}
        self._target_rgb = {fid: np.array(mcolors.to_rgb(c)) for fid, c in self.target.items()}

    def progress(self, now: float) -> float:
        if self.duration <= 0:
            return 1.0
        return min(max((now - self.started_at) / self.duration, 0.0), 1.0)

    def done(self, now: float) -> bool:
        return self.progress(now) >= 1.0

    def colors_at(self, now: float) -> Dict[FeatureId, str]:
        if self.done(now):
            return dict(self.target)
        eased = ease_cubic_in_out(self.progress(now))
        return {
            fid: mcolors.to_hex(self._start_rgb[fid] + (self._target_rgb[fid] - self._start_rgb[fid]) * eased)
            for fid in self.target
        }


class EncodingController:
    """
    Owns the active encoding and applies it to the tract fill elements.

    Selecting an encoding while a transition is running restarts the transition
    from the colors currently shown toward the new targets.
    """

    def __init__(
        self,
        encodings: Sequence[EncodingDefinition],
        tracts: gpd.GeoDataFrame,
        fill_elements: Sequence[Element],
        legend: Element,
        duration: float = 0.3,
        clock: Callable[[], float] = time.monotonic,
    ):
        if not encodings:
            raise ValueError("At least one encoding is required")
        self._encodings: Dict[str, EncodingDefinition] = {e.key: e for e in encodings}
        self._tracts = tracts
        self._elements: Dict[FeatureId, Element] = {el.datum: el for el in fill_elements}
        self._legend = legend
        self._duration = duration
        self._clock = clock
        self._active: Optional[EncodingDefinition] = None
        self._transition: Optional[FillTransition] = None

    @property
    def keys(self) -> List[str]:
        return list(self._encodings)

    @property
    def active(self) -> Optional[EncodingDefinition]:
        return self._active

    @property
    def transitioning(self) -> bool:
        return self._transition is not None

    def select(self, key: str) -> None:
        """Activate an encoding by key and recolor the tracts toward it."""
        if key not in self._encodings:
            raise KeyError(f"Unknown encoding '{key}'. Available: {self.keys}")

        self._active = self._encodings[key]
        logger.debug(f"  🎨 Applying encoding '{key}' ({self._active.title})")

        now = self._clock()
        target = compute_fill_colors(self._tracts, self._active)
        current = self.current_fills()

        changed: Dict[FeatureId, str] = {}
        for fid, color in target.items():
            el = self._elements.get(fid)
            if el is None:
                continue
            if fid not in current:
                # Never filled: nothing to ease from
                el.attrs["fill"] = color
            elif current[fid] != color:
                changed[fid] = color

        self._transition = FillTransition(current, changed, self._duration, now) if changed else None
        self.tick(now)
        render_legend(self._legend, self._active)

    def tick(self, now: Optional[float] = None) -> bool:
        """Advance the running transition. Returns True while it is still running."""
        if self._transition is None:
            return False
        now = self._clock() if now is None else now
        for fid, color in self._transition.colors_at(now).items():
            self._elements[fid].attrs["fill"] = color
        if self._transition.done(now):
            self._transition = None
            return False
        return True

    def finish(self) -> None:
        """Settle every fill at its target color."""
        if self._transition is not None:
            for fid, color in self._transition.target.items():
                self._elements[fid].attrs["fill"] = color
            self._transition = None

    def current_fills(self) -> Dict[FeatureId, str]:
        return {fid: el.attrs["fill"] for fid, el in self._elements.items() if "fill" in el.attrs}
