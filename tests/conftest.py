"""
Shared fixtures: a small synthetic San Francisco in WGS84.

Four populated tracts sit in a 2x2 grid; a fifth, unpopulated tract lies far
to the south-west and must never influence the projection fit.
"""

from pathlib import Path

import geopandas as gpd
import numpy as np
import pytest
import yaml
from shapely.geometry import LineString, Point, box

from cartography.encoding import EncodingDefinition
from cartography.loader import DataUnavailableError, MapCollections
from cartography.map_app import TransitDensityMap
from cartography.projection import PathRenderer, fit_projection
from cartography.scales import ThresholdColorScale

CRS = "EPSG:4326"

YLORRD = ["#ffffcc", "#ffeda0", "#fed976", "#feb24c", "#fd8d3c", "#fc4e2a", "#e31a1c", "#bd0026", "#800026"]
PURPLES = ["#fcfbfd", "#efedf5", "#dadaeb", "#bcbddc", "#9e9ac8", "#807dba", "#6a51a3", "#54278f", "#3f007d"]

DENSITY_THRESHOLDS = [5000, 10000, 20000, 30000, 40000, 50000, 75000, 100000]
EQUITY_THRESHOLDS = [10, 20, 30, 40, 50, 60, 70, 80]

STATION_ORDER = ["West Oakland", "Embarcadero", "Powell St", "Glen Park", "Balboa Park"]


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def make_tracts() -> gpd.GeoDataFrame:
    return gpd.GeoDataFrame(
        {
            "name": ["Tract 101", "Tract 102", "Tract 103", "Tract 104", "Tract 9901"],
            "population": [4200, 3000, 1500, 8000, 0],
            "population_density_sq_mi": [12000.0, 3000.0, np.nan, 150000.0, 0.0],
            "percent_no_vehicle": [45.56, 0.0, np.nan, 5.0, np.nan],
        },
        geometry=[
            box(-122.46, 37.76, -122.44, 37.78),
            box(-122.44, 37.76, -122.42, 37.78),
            box(-122.46, 37.74, -122.44, 37.76),
            box(-122.44, 37.74, -122.42, 37.76),
            box(-122.70, 37.60, -122.68, 37.62),
        ],
        crs=CRS,
    )


def make_frames() -> dict:
    tracts = make_tracts()
    water = gpd.GeoDataFrame({"name": ["Lake"]}, geometry=[box(-122.445, 37.765, -122.435, 37.775)], crs=CRS)
    land = gpd.GeoDataFrame({"name": ["San Francisco"]}, geometry=[box(-122.47, 37.73, -122.41, 37.79)], crs=CRS)
    route = gpd.GeoDataFrame(
        {"ROUTE_NAME": ["38 Geary"]},
        geometry=[LineString([(-122.46, 37.77), (-122.42, 37.77)])],
        crs=CRS,
    )
    rail = gpd.GeoDataFrame(
        {"LINE": ["N", "J"]},
        geometry=[
            LineString([(-122.46, 37.765), (-122.43, 37.765)]),
            LineString([(-122.43, 37.745), (-122.43, 37.775)]),
        ],
        crs=CRS,
    )
    stations = gpd.GeoDataFrame(
        {"Name": ["Embarcadero", "Powell St", "Glen Park", "Balboa Park", None]},
        geometry=[
            Point(-122.43, 37.775),
            Point(-122.44, 37.765),
            Point(-122.45, 37.745),
            Point(-122.455, 37.742),
            Point(-122.425, 37.75),
        ],
        crs=CRS,
    )
    return {"tracts": tracts, "water": water, "land": land, "route": route, "rail": rail, "stations": stations}


@pytest.fixture
def frames():
    return make_frames()


@pytest.fixture
def tracts(frames):
    return frames["tracts"]


@pytest.fixture
def collections(frames):
    return MapCollections.from_mapping(frames)


@pytest.fixture
def density():
    return EncodingDefinition(
        key="density",
        title="Population per mi²",
        field="population_density_sq_mi",
        scale=ThresholdColorScale(DENSITY_THRESHOLDS, YLORRD),
    )


@pytest.fixture
def equity():
    return EncodingDefinition(
        key="equity",
        title="% Households w/ No Vehicle",
        field="percent_no_vehicle",
        scale=ThresholdColorScale(EQUITY_THRESHOLDS, PURPLES),
    )


@pytest.fixture
def encodings(density, equity):
    return [density, equity]


@pytest.fixture
def projection(tracts):
    return fit_projection(tracts, 800, 800)


@pytest.fixture
def path(projection):
    return PathRenderer(projection)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_loader(frames):
    async def loader(sources):
        return dict(frames)

    return loader


@pytest.fixture
def failing_loader():
    async def loader(sources):
        raise DataUnavailableError("tracts", FileNotFoundError("data/sf_map_data.json"))

    return loader


@pytest.fixture
def make_map(encodings, clock):
    def _make(**overrides):
        kwargs = dict(
            sources={name: f"data/{name}.geojson" for name in make_frames()},
            encodings=encodings,
            station_order=STATION_ORDER,
            default_encoding="density",
            clock=clock,
        )
        kwargs.update(overrides)
        return TransitDensityMap(**kwargs)

    return _make


@pytest.fixture
def project_dir(tmp_path: Path, frames) -> Path:
    """A project tree with GeoJSON inputs under data/ and a config under ops/."""
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    (tmp_path / "ops").mkdir()

    input_files = {}
    for name, frame in frames.items():
        target = data_dir / f"{name}.geojson"
        target.write_text(frame.to_json(), encoding="utf-8")
        input_files[f"{name}_geojson"] = f"data/{name}.geojson"

    config = {
        "project_name": "Test Transit Map",
        "input_files": input_files,
        "output": {"map_html": "map.html", "web_map_html": "web_map.html"},
        "transit": {"station_order": STATION_ORDER},
    }
    (tmp_path / "ops" / "config.yaml").write_text(yaml.safe_dump(config), encoding="utf-8")
    return tmp_path
