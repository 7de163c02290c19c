"""Tests for the map component lifecycle and its UI entry points."""

import asyncio

import pytest
import yaml

from cartography.compositor import LayerId
from cartography.encoding import compute_fill_colors
from cartography.map_app import LOAD_ERROR_MESSAGE, TransitDensityMap
from ops.config_loader import Config


@pytest.fixture
def ready_map(make_map, fake_loader):
    transit_map = make_map()
    assert asyncio.run(transit_map.initialize(loader=fake_loader))
    return transit_map


def _markup(transit_map, layer_id):
    return transit_map.registry.get(layer_id).element.to_markup()


def test_initialize_draws_default_encoding(ready_map, tracts, density):
    assert ready_map.ready
    assert ready_map.encoder.active.key == "density"
    assert ready_map.encoder.current_fills() == compute_fill_colors(tracts, density)
    assert len(ready_map.container.legend.select_all("legend-item")) == 9
    assert ready_map.container.error_message is None


def test_unknown_default_encoding_rejected(make_map):
    with pytest.raises(ValueError, match="densty"):
        make_map(default_encoding="densty")


def test_load_failure_shows_error_and_draws_nothing(make_map, failing_loader):
    transit_map = make_map()

    assert not asyncio.run(transit_map.initialize(loader=failing_loader))

    container = transit_map.container
    assert container.error_message == LOAD_ERROR_MESSAGE
    assert container.surface.draw_calls == 0
    assert container.surface.root.children == []
    assert container.legend.children == []
    html = transit_map.to_html()
    assert "Could not load all data files." in html
    assert "<svg" not in html


def test_missing_files_with_default_loader_show_error(make_map, tmp_path):
    sources = {name: tmp_path / f"{name}.geojson" for name in ("tracts", "water", "land", "route", "rail", "stations")}
    transit_map = make_map(sources=sources)

    assert not asyncio.run(transit_map.initialize())
    assert transit_map.container.error_message == LOAD_ERROR_MESSAGE
    assert transit_map.container.surface.draw_calls == 0


def test_unfittable_tracts_show_error(make_map, frames):
    frames["tracts"] = frames["tracts"].assign(population=0)

    async def loader(sources):
        return frames

    transit_map = make_map()
    assert not asyncio.run(transit_map.initialize(loader=loader))
    assert transit_map.container.error_message == LOAD_ERROR_MESSAGE


def test_entry_points_require_successful_initialize(make_map, failing_loader):
    transit_map = make_map()
    with pytest.raises(RuntimeError):
        transit_map.on_selection_changed("equity")

    asyncio.run(transit_map.initialize(loader=failing_loader))
    with pytest.raises(RuntimeError):
        transit_map.on_toggle_changed("rail", False)


def test_initialize_runs_once(ready_map, fake_loader):
    with pytest.raises(RuntimeError):
        asyncio.run(ready_map.initialize(loader=fake_loader))


def test_selection_change_only_touches_fills_and_legend(ready_map, clock, tracts, equity):
    untouched = [LayerId.WATER, LayerId.TRACT_INTERACTION, LayerId.RAIL, LayerId.ROUTE, LayerId.TRANSIT]
    before = {layer_id: _markup(ready_map, layer_id) for layer_id in untouched}
    visibility = ready_map.layer_visibility()
    calls = ready_map.container.surface.draw_calls

    clock.now = 5.0
    ready_map.on_selection_changed("equity")
    assert ready_map.tick(5.15)
    assert not ready_map.tick(6.0)

    assert ready_map.encoder.current_fills() == compute_fill_colors(tracts, equity)
    assert ready_map.container.legend.select_all("legend-title")[0].text == equity.title
    assert {layer_id: _markup(ready_map, layer_id) for layer_id in untouched} == before
    assert ready_map.layer_visibility() == visibility
    assert ready_map.container.surface.draw_calls == calls


def test_selection_round_trip_is_idempotent(ready_map, clock):
    fills = ready_map.encoder.current_fills()
    legend = ready_map.container.legend.to_markup()

    clock.now = 1.0
    ready_map.on_selection_changed("equity")
    clock.now = 1.1
    ready_map.on_selection_changed("density")
    ready_map.tick(2.0)

    assert ready_map.encoder.current_fills() == fills
    assert ready_map.container.legend.to_markup() == legend


def test_toggle_round_trip_restores_layer(ready_map):
    before = _markup(ready_map, LayerId.ROUTE)

    ready_map.on_toggle_changed("route", False)
    assert ready_map.layer_visibility()[LayerId.ROUTE] is False
    assert ready_map.layer_visibility()[LayerId.RAIL] is True

    ready_map.on_toggle_changed("route", True)
    assert _markup(ready_map, LayerId.ROUTE) == before


def test_pointer_entry_points(ready_map, tracts):
    point = ready_map.path.project(tracts.geometry.iloc[1]).centroid

    payload = ready_map.on_pointer_move(point.x, point.y, 100, 200)

    assert "Tract 102" in payload.html
    assert (payload.left, payload.top) == (110, 190)
    ready_map.on_pointer_leave()
    ready_map.on_pointer_leave()
    assert ready_map.container.tooltip.style["opacity"] == 0


def test_to_html_contains_layers_legend_and_controls(ready_map):
    ready_map.on_toggle_changed("rail", False)
    html = ready_map.to_html()

    assert '<svg id="transit-map"' in html
    assert 'id="legend"' in html
    assert 'id="rail-layer" style="display: none"' in html
    assert 'value="density" checked' in html
    assert "Error:" not in html


def test_from_config_uses_configured_settings(project_dir):
    config = Config(str(project_dir / "ops" / "config.yaml"))
    transit_map = TransitDensityMap.from_config(config, transition_seconds=0)

    assert transit_map.container.surface.width == 800
    assert [e.key for e in transit_map.encodings] == ["density", "equity"]
    assert transit_map.sources["tracts"] == project_dir.resolve() / "data" / "tracts.geojson"
    assert asyncio.run(transit_map.initialize())
    assert transit_map.station_line.names == ("Embarcadero", "Powell St", "Glen Park", "Balboa Park")


def test_from_config_reads_tract_column_names(project_dir, frames):
    renamed = frames["tracts"].rename(columns={"name": "NAMELSAD", "percent_no_vehicle": "pct_no_vehicle"})
    (project_dir / "data" / "tracts.geojson").write_text(renamed.to_json(), encoding="utf-8")
    config_path = project_dir / "ops" / "config.yaml"
    raw = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    raw["columns"] = {"tract_name": "NAMELSAD", "no_vehicle": "pct_no_vehicle"}
    config_path.write_text(yaml.safe_dump(raw), encoding="utf-8")

    transit_map = TransitDensityMap.from_config(Config(str(config_path)), transition_seconds=0)

    assert transit_map.tract_fields.name == "NAMELSAD"
    assert transit_map.tract_fields.density == "population_density_sq_mi"
    assert asyncio.run(transit_map.initialize())
    point = transit_map.path.project(renamed.geometry.iloc[0]).centroid
    payload = transit_map.on_pointer_move(point.x, point.y, 0, 0)
    assert "<strong>Tract:</strong> Tract 101" in payload.html
    assert "<strong>No-Vehicle HH:</strong> 45.6%" in payload.html
