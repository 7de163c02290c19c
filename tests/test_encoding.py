"""Tests for fill color computation, the legend, and encoding switching."""

import pytest

from cartography.encoding import (
    EncodingController,
    FillTransition,
    compute_fill_colors,
    ease_cubic_in_out,
    render_legend,
)
from cartography.scales import NO_DATA_COLOR
from cartography.scene import Element, Surface
from conftest import PURPLES, YLORRD


@pytest.fixture
def fill_elements(tracts):
    surface = Surface(800, 800)
    group = surface.root.append("g")
    return [surface.path(group, "", datum=fid, class_="tract-fill") for fid in tracts.index]


@pytest.fixture
def legend():
    return Element("div", attrs={"id": "legend"})


@pytest.fixture
def controller(encodings, tracts, fill_elements, legend, clock):
    return EncodingController(encodings, tracts, fill_elements, legend, duration=0.3, clock=clock)


def test_compute_fill_colors_density(tracts, density):
    colors = compute_fill_colors(tracts, density)
    assert colors == {0: YLORRD[2], 1: YLORRD[0], 2: NO_DATA_COLOR, 3: YLORRD[8], 4: NO_DATA_COLOR}


def test_compute_fill_colors_equity(tracts, equity):
    colors = compute_fill_colors(tracts, equity)
    assert colors == {0: PURPLES[4], 1: NO_DATA_COLOR, 2: NO_DATA_COLOR, 3: PURPLES[0], 4: NO_DATA_COLOR}


def test_missing_field_gives_every_tract_the_fallback(tracts, density):
    colors = compute_fill_colors(tracts.drop(columns=[density.field]), density)
    assert set(colors.values()) == {NO_DATA_COLOR}


def test_legend_has_title_and_one_item_per_bucket(legend, density):
    render_legend(legend, density)

    assert legend.select_all("legend-title")[0].text == density.title
    items = legend.select_all("legend-item")
    assert len(items) == len(density.scale.thresholds) + 1
    swatches = legend.select_all("legend-color")
    assert swatches[0].style["background-color"] == YLORRD[0]
    assert [label.text for label in legend.select_all("legend-label")][:2] == ["< 5000", "5000"]


def test_legend_is_replaced_not_appended(legend, density, equity):
    render_legend(legend, density)
    render_legend(legend, equity)

    assert len(legend.select_all("legend-title")) == 1
    assert legend.select_all("legend-title")[0].text == equity.title
    assert len(legend.select_all("legend-item")) == 9


def test_ease_cubic_in_out_endpoints():
    assert ease_cubic_in_out(0) == 0
    assert ease_cubic_in_out(0.5) == pytest.approx(0.5)
    assert ease_cubic_in_out(1) == 1


def test_fill_transition_interpolates_and_settles():
    transition = FillTransition({"a": "#000000"}, {"a": "#ffffff"}, duration=1.0, started_at=0.0)

    assert transition.colors_at(0.0) == {"a": "#000000"}
    assert transition.colors_at(0.5)["a"] not in ("#000000", "#ffffff")
    assert transition.colors_at(1.0) == {"a": "#ffffff"}
    assert transition.done(1.0)


def test_first_selection_fills_immediately(controller, tracts, density, legend):
    controller.select("density")

    assert controller.active is density
    assert not controller.transitioning
    assert controller.current_fills() == compute_fill_colors(tracts, density)
    assert len(legend.select_all("legend-item")) == 9


def test_switching_encoding_transitions_changed_tracts(controller, clock, tracts, density, equity):
    controller.select("density")
    clock.now = 10.0
    controller.select("equity")

    assert controller.transitioning
    assert controller.tick(10.15)
    fills = controller.current_fills()
    assert fills[0] not in (YLORRD[2], PURPLES[4])
    # Unchanged tracts keep their color throughout
    assert fills[2] == NO_DATA_COLOR

    assert not controller.tick(11.0)
    assert controller.current_fills() == compute_fill_colors(tracts, equity)


def test_round_trip_restores_first_selection_colors(controller, clock, tracts, density):
    controller.select("density")
    before = controller.current_fills()

    clock.now = 1.0
    controller.select("equity")
    controller.finish()
    clock.now = 2.0
    controller.select("density")
    controller.finish()

    assert controller.current_fills() == before == compute_fill_colors(tracts, density)


def test_reselect_mid_transition_restarts_from_current_colors(controller, clock, tracts, density):
    controller.select("density")
    clock.now = 1.0
    controller.select("equity")
    controller.tick(1.15)
    mid = controller.current_fills()

    clock.now = 1.15
    controller.select("density")

    assert controller.transitioning
    assert controller.current_fills() == mid
    controller.tick(2.0)
    assert controller.current_fills() == compute_fill_colors(tracts, density)


def test_zero_duration_applies_immediately(encodings, tracts, fill_elements, legend, clock, equity):
    controller = EncodingController(encodings, tracts, fill_elements, legend, duration=0, clock=clock)
    controller.select("density")
    controller.select("equity")

    assert not controller.transitioning
    assert controller.current_fills() == compute_fill_colors(tracts, equity)


def test_unknown_encoding_raises(controller):
    with pytest.raises(KeyError):
        controller.select("ridership")


def test_controller_requires_encodings(tracts, fill_elements, legend):
    with pytest.raises(ValueError):
        EncodingController([], tracts, fill_elements, legend)


def test_keys_in_definition_order(controller):
    assert controller.keys == ["density", "equity"]
