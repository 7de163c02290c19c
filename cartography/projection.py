"""
Projection fitting and SVG path generation.

One Mercator projection is fitted per map to the tracts that have people living
in them, then every layer is drawn through the same PathRenderer so rail lines,
water and stations stay registered with the tract polygons.
"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Tuple

import geopandas as gpd
import numpy as np
import shapely
from loguru import logger
from pyproj import Transformer
from shapely.geometry import (
    GeometryCollection,
    LinearRing,
    LineString,
    MultiLineString,
    MultiPoint,
    MultiPolygon,
    Point,
    Polygon,
)
from shapely.geometry.base import BaseGeometry
from shapely.ops import transform

from .scales import numeric_value

# Spherical Mercator, the same projection web tiles use
MERCATOR_CRS = "EPSG:3857"
GEOGRAPHIC_CRS = "EPSG:4326"

_TO_MERCATOR = Transformer.from_crs(GEOGRAPHIC_CRS, MERCATOR_CRS, always_xy=True)


class ProjectionFitError(ValueError):
    """Raised when no reference feature can anchor the projection."""


@dataclass(frozen=True)
class Projection:
    """
    Geographic (lon, lat) to drawing-surface (x, y) transform.

    Mercator metres are scaled by `scale` and translated so the fitted extent
    sits centred in the viewport; y grows downward as on screen.
    """

    scale: float
    translate_x: float
    translate_y: float

    def __call__(self, lon: float, lat: float) -> Tuple[float, float]:
        x, y = self.project_arrays(np.asarray([lon], dtype=float), np.asarray([lat], dtype=float))
        return float(x[0]), float(y[0])

    def project_arrays(self, lon, lat, z=None):
        mx, my = _TO_MERCATOR.transform(np.asarray(lon, dtype=float), np.asarray(lat, dtype=float))
        return self.translate_x + self.scale * mx, self.translate_y - self.scale * my

    def project_geometry(self, geometry: BaseGeometry) -> BaseGeometry:
        """Project a shapely geometry into drawing-surface coordinates."""
        if geometry is None or geometry.is_empty:
            return geometry
        return transform(self.project_arrays, shapely.force_2d(geometry))


def fit_projection(
    reference: gpd.GeoDataFrame,
    width: float,
    height: float,
    population_field: str = "population",
) -> Projection:
    """
    Fit a Mercator projection so the populated reference features fill the viewport.

    Features without a positive population (water-only or empty tracts) are left
    out so they cannot stretch the extent. The filtered extent is scaled by the
    tighter of the two axes and centred, which keeps the aspect ratio and gives
    equal padding on the looser axis.

    Args:
        reference: Reference collection in WGS84
        width: Viewport width in drawing units
        height: Viewport height in drawing units
        population_field: Property used for the relevance filter

    Returns:
        The fitted Projection

    Raises:
        ProjectionFitError: If no feature passes the filter or the extent is degenerate
    """
    logger.info(f"📐 Fitting projection to {width}x{height} viewport...")

    if reference.crs is None:
        reference = reference.set_crs(GEOGRAPHIC_CRS)

    if population_field in reference.columns:
        mask = reference[population_field].map(lambda v: (numeric_value(v) or 0) > 0)
        relevant = reference[mask.astype(bool)]
    else:
        relevant = reference.iloc[0:0]

    relevant = relevant[relevant.geometry.notna() & ~relevant.geometry.is_empty]
    logger.debug(f"  🎯 {len(relevant):,} of {len(reference):,} features used for fitting")

    if relevant.empty:
        raise ProjectionFitError(
            f"No features with {population_field} > 0 to fit the projection against"
        )

    x0, y0, x1, y1 = relevant.to_crs(MERCATOR_CRS).total_bounds
    dx, dy = x1 - x0, y1 - y0
    if dx <= 0 and dy <= 0:
        raise ProjectionFitError("Reference extent has zero area; cannot fit projection")

    axis_scales = []
    if dx > 0:
        axis_scales.append(width / dx)
    if dy > 0:
        axis_scales.append(height / dy)
    scale = min(axis_scales)
    projection = Projection(
        scale=scale,
        translate_x=(width - scale * (x0 + x1)) / 2,
        translate_y=(height + scale * (y0 + y1)) / 2,
    )

    logger.success(f"  ✅ Projection fitted (scale {scale:.6g})")
    return projection


class PathRenderer:
    """
    Turns geometries into SVG path data through one fitted projection.

    Points render as small circles of `point_radius` drawing units; empty and
    degenerate geometries render as the empty string.
    """

    def __init__(self, projection: Projection, point_radius: float = 4.5, precision: int = 2):
        self.projection = projection
        self.point_radius = point_radius
        self.precision = precision

    def with_point_radius(self, radius: float) -> "PathRenderer":
        return PathRenderer(self.projection, point_radius=radius, precision=self.precision)

    def project(self, geometry: BaseGeometry) -> BaseGeometry:
        return self.projection.project_geometry(geometry)

    def __call__(self, geometry: BaseGeometry) -> str:
        if geometry is None or geometry.is_empty:
            return ""
        return "".join(self._parts(self.project(geometry)))

    def _fmt(self, x: float, y: float) -> str:
        return f"{x:.{self.precision}f},{y:.{self.precision}f}"

    def _ring(self, coords, closed: bool) -> str:
        points: List[Tuple[float, float]] = [(c[0], c[1]) for c in coords]
        if closed and len(points) > 1 and points[0] == points[-1]:
            points = points[:-1]
        if len(points) < 2:
            return ""
        d = "M" + "L".join(self._fmt(x, y) for x, y in points)
        return d + "Z" if closed else d

    def _circle(self, x: float, y: float) -> str:
        r = self.point_radius
        return (
            f"M{self._fmt(x, y - r)}"
            f"a{r},{r} 0 1,1 0,{2 * r}"
            f"a{r},{r} 0 1,1 0,{-2 * r}Z"
        )

    def _parts(self, geometry: BaseGeometry) -> List[str]:
        handler = _PART_HANDLERS.get(type(geometry))
        if handler is None:
            raise TypeError(f"Unsupported geometry type: {geometry.geom_type}")
        return handler(self, geometry)


def _polygon_parts(renderer: PathRenderer, polygon: Polygon) -> List[str]:
    rings = [polygon.exterior, *polygon.interiors]
    return [d for d in (renderer._ring(ring.coords, closed=True) for ring in rings) if d]


def _line_parts(renderer: PathRenderer, line: LineString) -> List[str]:
    d = renderer._ring(line.coords, closed=False)
    return [d] if d else []


def _point_parts(renderer: PathRenderer, point: Point) -> List[str]:
    return [renderer._circle(point.x, point.y)]


def _multi_parts(renderer: PathRenderer, collection) -> List[str]:
    parts: List[str] = []
    for geom in collection.geoms:
        if not geom.is_empty:
            parts.extend(renderer._parts(geom))
    return parts


_PART_HANDLERS: Dict[type, Callable[[PathRenderer, BaseGeometry], List[str]]] = {
    Polygon: _polygon_parts,
    LineString: _line_parts,
    LinearRing: lambda renderer, ring: [renderer._ring(ring.coords, closed=True)],
    Point: _point_parts,
    MultiPolygon: _multi_parts,
    MultiLineString: _multi_parts,
    MultiPoint: _multi_parts,
    GeometryCollection: _multi_parts,
}
