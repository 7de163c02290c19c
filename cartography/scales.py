"""
Threshold color scales for tract fill encodings.

A threshold scale splits the number line at ascending break values and assigns
one color per interval, the same bucketing a stepped choropleth legend shows.
"""

import math
from bisect import bisect_right
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

import matplotlib as mpl
import matplotlib.colors as mcolors

# Water-like tone shared with the water layer; never a bucket color
NO_DATA_COLOR = "lightblue"


def scheme_colors(cmap_name: str, n_classes: int) -> Tuple[str, ...]:
    """
    Sample a sequential matplotlib colormap into discrete hex colors.

    The ColorBrewer colormaps shipped with matplotlib are defined from their
    nine-class anchors, so resampling YlOrRd or Purples to nine classes gives
    the familiar ColorBrewer palette.

    Args:
        cmap_name: Registered matplotlib colormap name
        n_classes: Number of colors to return (at least 2)

    Returns:
        Hex colors from lightest to darkest
    """
    if n_classes < 2:
        raise ValueError(f"Need at least 2 classes, got {n_classes}")
    try:
        cmap = mpl.colormaps[cmap_name].resampled(n_classes)
    except KeyError as e:
        raise ValueError(f"Unknown colormap: {cmap_name}") from e
    return tuple(mcolors.to_hex(cmap(i)) for i in range(n_classes))


def numeric_value(value: Any) -> Optional[float]:
    """Coerce a property value to float, treating None, NaN and non-numbers as missing."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number):
        return None
    return number


def format_break(value: float) -> str:
    """Format a threshold for legend labels: 5000.0 -> '5000', 12.5 -> '12.5'."""
    if float(value).is_integer():
        return str(int(value))
    return str(value)


@dataclass(frozen=True)
class ThresholdColorScale:
    """
    Stepwise numeric-to-color mapping.

    With thresholds t0 < t1 < ... < tn-1 and colors c0..cn, a value v maps to
    c0 when v < t0, to c(i+1) when ti <= v < t(i+1), and to cn when v >= tn-1.
    """

    thresholds: Tuple[float, ...]
    colors: Tuple[str, ...]
    fallback: str = NO_DATA_COLOR

    def __post_init__(self) -> None:
        object.__setattr__(self, "thresholds", tuple(float(t) for t in self.thresholds))
        object.__setattr__(self, "colors", tuple(self.colors))
        if not self.thresholds:
            raise ValueError("A threshold scale needs at least one threshold")
        if any(b <= a for a, b in zip(self.thresholds, self.thresholds[1:])):
            raise ValueError(f"Thresholds must be strictly ascending: {list(self.thresholds)}")
        if len(self.colors) != len(self.thresholds) + 1:
            raise ValueError(
                f"Expected {len(self.thresholds) + 1} colors for {len(self.thresholds)} thresholds, "
                f"got {len(self.colors)}"
            )
        fallback_hex = mcolors.to_hex(self.fallback)
        if any(mcolors.to_hex(color) == fallback_hex for color in self.colors):
            raise ValueError(f"Fallback color {self.fallback} collides with a bucket color")

    def bucket(self, value: float) -> int:
        """Index of the color bucket for a value."""
        return bisect_right(self.thresholds, value)

    def __call__(self, value: float) -> str:
        return self.colors[self.bucket(value)]

    def color_for(self, value: Any) -> str:
        """
        Resolve a raw property value to a fill color.

        Missing, zero and negative values all resolve to the fallback color.
        """
        number = numeric_value(value)
        if number is None or number <= 0:
            return self.fallback
        return self(number)

    def legend_entries(self) -> List[Tuple[str, str]]:
        """(color, label) pairs, one for the below-first-threshold bucket and one per threshold."""
        entries = [(self.colors[0], f"< {format_break(self.thresholds[0])}")]
        for i, threshold in enumerate(self.thresholds):
            entries.append((self.colors[i + 1], format_break(threshold)))
        return entries
