"""Tests for the retained-mode drawing surface."""

from cartography.scene import Element, MapContainer, Surface


def test_append_translates_attribute_names():
    el = Element("g").append("path", class_="tract", clip_path="url(#land-mask)")
    assert el.attrs == {"class": "tract", "clip-path": "url(#land-mask)"}


def test_select_all_matches_whole_class_tokens():
    root = Element("g")
    root.append("path", class_="tract")
    root.append("path", class_="tract-fill")
    assert len(root.select_all("tract")) == 1


def test_surface_counts_draw_calls():
    surface = Surface(200, 100)
    group = surface.root.append("g", id="layer")
    surface.path(group, "M0,0L1,1", datum=7)

    assert surface.draw_calls == 1
    assert surface.root.find("layer").children[0].datum == 7
    assert 'viewBox="0 0 200 100"' in surface.to_svg()


def test_markup_escapes_text_but_not_html():
    el = Element("div", text="a < b", html="<strong>x</strong>")
    assert el.to_markup() == "<div>a &lt; b<strong>x</strong></div>"


def test_show_error_replaces_container_content():
    container = MapContainer(800, 800)
    container.surface.root.append("g", id="tract-fill-layer")
    container.legend.append("div", class_="legend-title")

    container.show_error("Could not load all data files.")

    assert container.surface.root.children == []
    assert container.legend.children == []
    html = container.to_html()
    assert '<p style="color: red;"><strong>Error:</strong> Could not load all data files.</p>' in html
    assert "<svg" not in html
