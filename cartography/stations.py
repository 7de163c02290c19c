"""Derive the rapid-transit line from station points and a curated visiting order."""

from dataclasses import dataclass
from typing import Dict, Sequence, Tuple

import geopandas as gpd
import pandas as pd
from loguru import logger
from shapely.geometry import LineString

Coordinate = Tuple[float, float]


@dataclass(frozen=True)
class StationLine:
    """Ordered stations that resolved against the station data, with their coordinates."""

    names: Tuple[str, ...]
    coordinates: Tuple[Coordinate, ...]

    @property
    def is_degenerate(self) -> bool:
        return len(self.coordinates) < 2

    @property
    def geometry(self) -> LineString:
        # Fewer than two points cannot form a line; render as empty
        if self.is_degenerate:
            return LineString()
        return LineString(self.coordinates)


def build_station_lookup(stations: gpd.GeoDataFrame, name_field: str = "Name") -> Dict[str, Coordinate]:
    """Map station name to (lon, lat). A repeated name keeps its last coordinate."""
    lookup: Dict[str, Coordinate] = {}
    if name_field not in stations.columns:
        logger.warning(f"  ⚠️ Station data has no '{name_field}' column")
        return lookup

    for name, geom in zip(stations[name_field], stations.geometry):
        if pd.isna(name) or geom is None or geom.is_empty or geom.geom_type != "Point":
            continue
        lookup[str(name)] = (float(geom.x), float(geom.y))
    return lookup


def resolve_station_line(
    order: Sequence[str], stations: gpd.GeoDataFrame, name_field: str = "Name"
) -> StationLine:
    """
    Build the transit line by visiting stations in curated order.

    Names that are not present in the station data are skipped; the remaining
    names keep their curated order.

    Args:
        order: Curated station names, one end of the line to the other
        stations: Station point collection
        name_field: Property holding the station name

    Returns:
        StationLine with the resolved names and coordinates
    """
    lookup = build_station_lookup(stations, name_field)
    resolved = [(name, lookup[name]) for name in order if name in lookup]
    missing = [name for name in order if name not in lookup]

    if missing:
        logger.warning(f"  ⚠️ {len(missing)} curated stations not in data, skipped: {missing}")
    logger.debug(f"  🚇 Transit line resolved through {len(resolved)} of {len(order)} stations")

    return StationLine(
        names=tuple(name for name, _ in resolved),
        coordinates=tuple(coord for _, coord in resolved),
    )
