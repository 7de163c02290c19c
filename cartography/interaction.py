"""
Pointer interaction: tract hit-testing and the shared tooltip.

Hit-testing runs against the unclipped tract geometries of the interaction
layer, so hovering a tract works even where the land mask trims its fill.
Chart marks from the sibling charts reuse the same tooltip element.
"""

from dataclasses import dataclass
from html import escape
from typing import Any, Dict, Hashable, List, Mapping, Optional, Sequence, Tuple

import geopandas as gpd
import numpy as np
from loguru import logger
from shapely import STRtree
from shapely.geometry import Point

from .projection import PathRenderer
from .scales import numeric_value
from .scene import Element

FeatureId = Hashable


@dataclass(frozen=True)
class TooltipPayload:
    html: str
    left: float
    top: float


def _number(value: Any) -> float:
    number = numeric_value(value)
    return 0.0 if number is None else number


def _rounded(value: Any, digits: int) -> str:
    """Fixed-decimal text, or a bare 0 when the value is missing or zero."""
    number = numeric_value(value)
    if not number:
        return "0"
    return f"{number:.{digits}f}"


@dataclass(frozen=True)
class TractFields:
    """Property names the tract tooltip reads."""

    name: str = "name"
    population: str = "population"
    density: str = "population_density_sq_mi"
    no_vehicle: str = "percent_no_vehicle"


def format_tract_tooltip(properties: Mapping[str, Any], fields: TractFields = TractFields()) -> str:
    """Tract name, density to whole people/mi², population and no-vehicle share to one decimal."""
    density = _rounded(properties.get(fields.density), 0)
    equity = _rounded(properties.get(fields.no_vehicle), 1)
    population = _rounded(properties.get(fields.population), 0)
    name = properties.get(fields.name)
    return (
        f"<strong>Tract:</strong> {escape(str(name if name is not None else ''))}<br>"
        '<hr style="border: 0; border-top: 1px solid #ccc; margin: 4px 0;">'
        f"<strong>Density:</strong> {density} people/mi²<br>"
        f"<strong>Population:</strong> {population}<br>"
        f"<strong>No-Vehicle HH:</strong> {equity}%"
    )


def format_crowding_tooltip(datum: Mapping[str, Any]) -> str:
    """Peak crowding bar: route name and share of crowded peak trips."""
    crowded = _number(datum.get("Max_Peak_Crowding_Prc"))
    return (
        f"<strong>{escape(str(datum.get('ROUTE_NAME', '')))}</strong><br>"
        f"{crowded:.1f}% of peak trips are crowded"
    )


RIDERSHIP_MODES = {"Bus_Ridership": "Muni Bus", "BART_Ridership": "BART"}


def format_ridership_tooltip(datum: Mapping[str, Any], key: str) -> str:
    """Stacked ridership bar segment: corridor and the segment's rounded ridership."""
    if key not in RIDERSHIP_MODES:
        raise ValueError(f"Unknown ridership series '{key}'")
    value = round(_number(datum.get(key)))
    return (
        f"<strong>{escape(str(datum.get('Corridor', '')))}</strong><br>"
        f"{RIDERSHIP_MODES[key]}: {value:,}"
    )


class Tooltip:
    """The single positioned tooltip element shared by the map and charts."""

    def __init__(self, element: Element, offset: Tuple[float, float] = (10, -10)):
        self.element = element
        self.offset = offset
        self.element.style["opacity"] = 0

    @property
    def visible(self) -> bool:
        return self.element.style.get("opacity") == 1

    def show(self, html: str, page_x: float, page_y: float) -> TooltipPayload:
        payload = TooltipPayload(html=html, left=page_x + self.offset[0], top=page_y + self.offset[1])
        self.element.html = payload.html
        self.element.style.update(
            {"opacity": 1, "left": f"{payload.left:g}px", "top": f"{payload.top:g}px"}
        )
        return payload

    def hide(self) -> None:
        self.element.style["opacity"] = 0


class TractHitTester:
    """Point-in-tract lookup in drawing-surface coordinates."""

    def __init__(self, tracts: gpd.GeoDataFrame, path: PathRenderer):
        ids: List[FeatureId] = []
        geoms = []
        for fid, geom in tracts.geometry.items():
            if geom is None or geom.is_empty:
                continue
            ids.append(fid)
            geoms.append(path.project(geom))
        self._ids = ids
        self._geoms = geoms
        self._tree = STRtree(geoms)

    def hit(self, x: float, y: float) -> Optional[FeatureId]:
        """Feature under the point; where tracts overlap the last drawn one wins."""
        if not self._geoms:
            return None
        matches = self._tree.query(Point(x, y), predicate="intersects")
        if len(matches) == 0:
            return None
        return self._ids[int(np.max(matches))]


class InteractionLayer:
    """
    Translates pointer movement into tooltip enter/leave events.

    Args:
        tooltip: Shared tooltip
        tracts: Tract collection, for tooltip properties
        hit_tester: Lookup over the interaction layer's geometries
        fields: Property names shown in the tract tooltip
    """

    def __init__(
        self,
        tooltip: Tooltip,
        tracts: gpd.GeoDataFrame,
        hit_tester: TractHitTester,
        fields: TractFields = TractFields(),
    ):
        self.tooltip = tooltip
        self.tracts = tracts
        self.hit_tester = hit_tester
        self.fields = fields
        self.hovered: Optional[FeatureId] = None

    def _properties(self, fid: FeatureId) -> Dict[str, Any]:
        row = self.tracts.loc[fid]
        return {k: v for k, v in row.items() if k != self.tracts.geometry.name}

    def enter_tract(self, fid: FeatureId, page_x: float, page_y: float) -> TooltipPayload:
        self.hovered = fid
        return self.tooltip.show(format_tract_tooltip(self._properties(fid), self.fields), page_x, page_y)

    def enter_chart_mark(self, html: str, page_x: float, page_y: float) -> TooltipPayload:
        self.hovered = None
        return self.tooltip.show(html, page_x, page_y)

    def leave(self) -> None:
        """Hide the tooltip; safe to call without a preceding enter."""
        self.hovered = None
        self.tooltip.hide()

    def pointer_move(self, x: float, y: float, page_x: float, page_y: float) -> Optional[TooltipPayload]:
        """
        Handle pointer movement over the map surface.

        Moving onto a tract enters it, moving off leaves it, and crossing from
        one tract to another leaves the first before entering the second.

        Returns:
            The tooltip payload when a tract was entered, otherwise None
        """
        fid = self.hit_tester.hit(x, y)
        if fid == self.hovered:
            return None
        if self.hovered is not None:
            self.leave()
        if fid is None:
            return None
        logger.trace(f"Pointer entered tract {fid}")
        return self.enter_tract(fid, page_x, page_y)

    def pointer_leave_map(self) -> None:
        self.leave()


def hit_chart_mark(marks: Sequence[Tuple[Tuple[float, float, float, float], Any]], x: float, y: float) -> Any:
    """Return the datum of the first (x, y, width, height) bar rectangle containing the point."""
    for (bx, by, bw, bh), datum in marks:
        if bx <= x <= bx + bw and by <= y <= by + bh:
            return datum
    return None
