"""
Layer composition in a fixed draw order.

Draw order, bottom to top:
    1. land clip mask (defs)
    2. tract fills, clipped to land, colored by the encoding controller
    3. water, unclipped, so inland water is never tract-colored
    4. tract interaction paths, unclipped and invisible, receive pointer events
    5. rail, highlighted route, transit line + stations (toggleable overlays)

Every layer is created once. Toggling an overlay flips one registry entry and
the display of that one group; nothing is re-projected or redrawn.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterator, List, Mapping, Optional

from loguru import logger

from .loader import MapCollections
from .projection import PathRenderer
from .scene import Element, Surface
from .stations import StationLine


class LayerId(str, Enum):
    CLIP_MASK = "land-mask"
    TRACT_FILL = "tract-fill-layer"
    WATER = "water-layer"
    TRACT_INTERACTION = "tract-layer"
    RAIL = "rail-layer"
    ROUTE = "route-layer"
    TRANSIT = "transit-layer"


OVERLAY_LAYERS = (LayerId.RAIL, LayerId.ROUTE, LayerId.TRANSIT)

# Short names used by UI toggles and the command line
OVERLAY_ALIASES: Dict[str, LayerId] = {
    "rail": LayerId.RAIL,
    "route": LayerId.ROUTE,
    "transit": LayerId.TRANSIT,
}


def overlay_id(name: Any) -> LayerId:
    """Resolve a toggle name ('rail', 'rail-layer' or a LayerId) to an overlay id."""
    if isinstance(name, LayerId):
        layer_id = name
    elif name in OVERLAY_ALIASES:
        layer_id = OVERLAY_ALIASES[name]
    else:
        try:
            layer_id = LayerId(name)
        except ValueError as e:
            raise ValueError(f"Unknown layer '{name}'") from e
    if layer_id not in OVERLAY_LAYERS:
        raise ValueError(f"Layer '{layer_id.value}' is not a toggleable overlay")
    return layer_id


@dataclass
class Layer:
    id: LayerId
    element: Element
    visible: bool = True
    interactive: bool = False
    toggleable: bool = False


class LayerRegistry:
    """Ordered layers; iteration order is draw order."""

    def __init__(self) -> None:
        self._layers: List[Layer] = []

    def add(self, layer: Layer) -> Layer:
        if any(existing.id == layer.id for existing in self._layers):
            raise ValueError(f"Layer '{layer.id.value}' already registered")
        self._layers.append(layer)
        return layer

    def get(self, layer_id: LayerId) -> Layer:
        for layer in self._layers:
            if layer.id == layer_id:
                return layer
        raise KeyError(layer_id)

    def set_visible(self, layer_id: LayerId, visible: bool) -> None:
        layer = self.get(layer_id)
        if not layer.toggleable:
            raise ValueError(f"Layer '{layer_id.value}' cannot be toggled")
        layer.visible = visible
        layer.element.style["display"] = None if visible else "none"

    def visibility(self) -> Dict[LayerId, bool]:
        return {layer.id: layer.visible for layer in self._layers if layer.toggleable}

    def ids(self) -> List[LayerId]:
        return [layer.id for layer in self._layers]

    def __iter__(self) -> Iterator[Layer]:
        return iter(self._layers)

    def __len__(self) -> int:
        return len(self._layers)


class LayerCompositor:
    """
    Draws the map layers onto a surface through one shared path renderer.

    Args:
        surface: Drawing surface; the compositor owns its layer groups
        path: Path renderer bound to the fitted projection
        styles: Per-layer style settings keyed 'water', 'rail', 'route', 'transit'
    """

    def __init__(self, surface: Surface, path: PathRenderer, styles: Optional[Mapping[str, Mapping]] = None):
        self.surface = surface
        self.path = path
        self.styles: Mapping[str, Mapping] = styles or {}
        self.registry: Optional[LayerRegistry] = None

    def _style(self, key: str) -> Dict[str, Any]:
        return dict(self.styles.get(key, {}))

    def compose(self, collections: MapCollections, station_line: StationLine) -> LayerRegistry:
        """Create every layer exactly once, in draw order."""
        if self.registry is not None:
            raise RuntimeError("Layers have already been composed")

        logger.info("🖌️ Composing map layers...")
        registry = LayerRegistry()
        root = self.surface.root

        # 1. Land clip mask
        defs = root.append("defs")
        clip = defs.append("clipPath", id=LayerId.CLIP_MASK.value)
        for fid, geom in collections.land.geometry.items():
            self.surface.path(clip, self.path(geom), datum=fid)
        registry.add(Layer(LayerId.CLIP_MASK, clip))

        # 2. Tract fills, clipped, never interactive
        fills = root.append("g", id=LayerId.TRACT_FILL.value, clip_path=f"url(#{LayerId.CLIP_MASK.value})")
        for fid, geom in collections.tracts.geometry.items():
            el = self.surface.path(fills, self.path(geom), datum=fid, class_="tract-fill")
            el.style["pointer-events"] = "none"
        registry.add(Layer(LayerId.TRACT_FILL, fills))

        # 3. Water, unclipped
        water_style = self._style("water")
        water = root.append("g", id=LayerId.WATER.value)
        for fid, geom in collections.water.geometry.items():
            el = self.surface.path(water, self.path(geom), datum=fid, fill=water_style.get("fill", "lightblue"))
            el.style.update(
                {
                    "stroke": water_style.get("stroke", "lightblue"),
                    "stroke-width": water_style.get("stroke-width", "1px"),
                    "pointer-events": "none",
                }
            )
        registry.add(Layer(LayerId.WATER, water))

        # 4. Tract interaction, unclipped so hover works right up to the shoreline
        hits = root.append("g", id=LayerId.TRACT_INTERACTION.value)
        for fid, geom in collections.tracts.geometry.items():
            el = self.surface.path(hits, self.path(geom), datum=fid, class_="tract")
            el.style.update({"fill": "none", "pointer-events": "all"})
        registry.add(Layer(LayerId.TRACT_INTERACTION, hits, interactive=True))

        # 5. Toggleable overlays
        registry.add(self._line_layer(LayerId.RAIL, collections.rail, self._style("rail")))
        registry.add(self._line_layer(LayerId.ROUTE, collections.route, self._style("route")))
        registry.add(self._transit_layer(collections, station_line))

        self.registry = registry
        logger.success(f"  ✅ Composed {len(registry)} layers ({self.surface.draw_calls:,} paths)")
        return registry

    def _line_layer(self, layer_id: LayerId, collection, style: Mapping[str, Any]) -> Layer:
        group = self.surface.root.append("g", id=layer_id.value)
        for fid, geom in collection.geometry.items():
            el = self.surface.path(group, self.path(geom), datum=fid)
            el.style.update(
                {
                    "fill": "none",
                    "stroke": style.get("stroke"),
                    "stroke-width": style.get("stroke-width"),
                    "stroke-opacity": style.get("stroke-opacity"),
                    "pointer-events": "none",
                }
            )
        return Layer(layer_id, group, toggleable=True)

    def _transit_layer(self, collections: MapCollections, station_line: StationLine) -> Layer:
        style = self._style("transit")
        group = self.surface.root.append("g", id=LayerId.TRANSIT.value)

        line = self.surface.path(group, self.path(station_line.geometry), datum=station_line.names,
                                 class_="transit-line-generated")
        line.style.update(
            {"fill": "none", "stroke": style.get("stroke"), "stroke-width": style.get("stroke-width")}
        )

        station_path = self.path.with_point_radius(style.get("station_radius", 2))
        for fid, geom in collections.stations.geometry.items():
            el = self.surface.path(group, station_path(geom), datum=fid, class_="transit-station")
            el.style["pointer-events"] = "none"
        return Layer(LayerId.TRANSIT, group, toggleable=True)

    def set_visibility(self, layer_id: Any, visible: bool) -> None:
        if self.registry is None:
            raise RuntimeError("Layers have not been composed yet")
        resolved = overlay_id(layer_id)
        self.registry.set_visible(resolved, visible)
        logger.debug(f"  👁️ {resolved.value} {'shown' if visible else 'hidden'}")

    def fill_elements(self) -> List[Element]:
        return self.surface.root.select_all("tract-fill")

    def interaction_elements(self) -> List[Element]:
        return self.surface.root.select_all("tract")
