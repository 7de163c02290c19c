"""
Interactive Leaflet export of the transit density map.

Each encoding becomes a mutually exclusive base layer colored with the same
fill computation as the SVG map; rail, highlighted route and the transit line
are independently checkable overlays.
"""

from typing import Mapping, Optional, Sequence

import folium
import pandas as pd
from branca.colormap import StepColormap
from loguru import logger

from .compositor import LayerId
from .encoding import EncodingDefinition, compute_fill_colors
from .interaction import TractFields
from .loader import MapCollections
from .stations import StationLine

OVERLAY_NAMES = {
    LayerId.RAIL: "Rail lines",
    LayerId.ROUTE: "Highlighted route",
    LayerId.TRANSIT: "Rapid transit",
}


def encoding_colormap(encoding: EncodingDefinition) -> StepColormap:
    """Stepped legend matching the encoding's threshold buckets."""
    thresholds = list(encoding.scale.thresholds)
    upper = thresholds[-1] + (thresholds[-1] - thresholds[-2] if len(thresholds) > 1 else thresholds[-1])
    index = [min(0.0, thresholds[0])] + thresholds + [upper]
    return StepColormap(
        list(encoding.scale.colors),
        index=index,
        vmin=index[0],
        vmax=index[-1],
        caption=encoding.title,
    )


def build_web_map(
    collections: MapCollections,
    encodings: Sequence[EncodingDefinition],
    station_line: StationLine,
    active_key: Optional[str] = None,
    visibility: Optional[Mapping[LayerId, bool]] = None,
    styles: Optional[Mapping[str, Mapping]] = None,
    station_name_field: str = "Name",
    tract_fields: TractFields = TractFields(),
) -> folium.Map:
    """
    Build a folium map with one base layer per encoding and toggleable overlays.

    Args:
        collections: Loaded map collections in WGS84
        encodings: Selectable encodings
        station_line: Resolved transit line
        active_key: Encoding shown initially (first encoding when None)
        visibility: Initial overlay visibility, all visible when None
        styles: Per-layer style settings
        station_name_field: Station property used for marker tooltips
        tract_fields: Tract property names shown in the hover tooltip

    Returns:
        The folium Map, ready to save
    """
    logger.info("🗺️ Creating interactive web map...")
    styles = styles or {}
    visibility = visibility or {}
    active_key = active_key or encodings[0].key

    tracts = collections.tracts
    x0, y0, x1, y1 = tracts.total_bounds
    m = folium.Map(
        location=[(y0 + y1) / 2, (x0 + x1) / 2],
        zoom_start=12,
        tiles=None,
        prefer_canvas=True,
    )
    folium.TileLayer("CartoDB Positron", control=False).add_to(m)

    aliases = {
        tract_fields.name: "Tract:",
        tract_fields.population: "Population:",
        tract_fields.density: "Density (people/mi²):",
        tract_fields.no_vehicle: "No-Vehicle HH (%):",
    }
    tooltip_fields = [f for f in aliases if f in tracts.columns]

    for encoding in encodings:
        colors = compute_fill_colors(tracts, encoding)
        frame = tracts.copy()
        frame["fill_color"] = [colors[fid] for fid in frame.index]

        group = folium.FeatureGroup(name=encoding.title, overlay=False, show=encoding.key == active_key)
        folium.GeoJson(
            data=frame,
            style_function=lambda feature: {
                "fillColor": feature["properties"]["fill_color"],
                "color": "#ffffff",
                "weight": 0.5,
                "fillOpacity": 0.85,
            },
            tooltip=folium.GeoJsonTooltip(
                fields=tooltip_fields,
                aliases=[aliases[f] for f in tooltip_fields],
                localize=True,
                sticky=False,
                labels=True,
            ),
        ).add_to(group)
        group.add_to(m)
        logger.debug(f"  ✅ Added encoding layer: {encoding.title}")

    water_style = dict(styles.get("water", {}))
    water_color = water_style.get("fill", "lightblue")
    if not collections.water.empty:
        folium.GeoJson(
            data=collections.water,
            name="Water",
            control=False,
            style_function=lambda feature: {
                "fillColor": water_color,
                "color": water_color,
                "weight": 1,
                "fillOpacity": 1,
            },
        ).add_to(m)

    for layer_id, key, collection in (
        (LayerId.RAIL, "rail", collections.rail),
        (LayerId.ROUTE, "route", collections.route),
    ):
        style = dict(styles.get(key, {}))
        group = folium.FeatureGroup(name=OVERLAY_NAMES[layer_id], overlay=True,
                                    show=visibility.get(layer_id, True))
        if not collection.empty:
            folium.GeoJson(
                data=collection,
                style_function=lambda feature, style=style: {
                    "color": style.get("stroke", "#555"),
                    "weight": _width(style.get("stroke-width", "2")),
                    "opacity": style.get("stroke-opacity", 0.7),
                },
            ).add_to(group)
        group.add_to(m)

    transit_style = dict(styles.get("transit", {}))
    transit = folium.FeatureGroup(name=OVERLAY_NAMES[LayerId.TRANSIT], overlay=True,
                                  show=visibility.get(LayerId.TRANSIT, True))
    if not station_line.is_degenerate:
        folium.PolyLine(
            locations=[(lat, lon) for lon, lat in station_line.coordinates],
            color=transit_style.get("stroke", "#0099d8"),
            weight=_width(transit_style.get("stroke-width", "3")),
            tooltip=" → ".join(station_line.names),
        ).add_to(transit)
    for name, geom in zip(_station_names(collections, station_name_field), collections.stations.geometry):
        if geom is None or geom.is_empty:
            continue
        folium.CircleMarker(
            location=(geom.y, geom.x),
            radius=transit_style.get("station_radius", 2) + 1,
            color=transit_style.get("stroke", "#0099d8"),
            fill=True,
            tooltip=name,
        ).add_to(transit)
    transit.add_to(m)

    active = next(e for e in encodings if e.key == active_key)
    encoding_colormap(active).add_to(m)

    folium.LayerControl(collapsed=False).add_to(m)
    logger.success("  ✅ Web map created")
    return m


def _station_names(collections: MapCollections, name_field: str):
    stations = collections.stations
    if name_field in stations.columns:
        return [None if pd.isna(name) else str(name) for name in stations[name_field]]
    logger.warning(f"  ⚠️ Station data has no '{name_field}' column; markers have no tooltips")
    return [None] * len(stations)


def _width(value) -> float:
    """CSS width such as '2.5px' to a Leaflet line weight."""
    return float(str(value).removesuffix("px"))
