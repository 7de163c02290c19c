"""
Transit density map: load, fit, compose, encode, interact.

Control flow:
    loader -> projection fit + station line -> layer composition (once)
    -> encoding controller (initial + on selection) -> interaction (per event)

The only suspension point is the batched load. If it fails, or the projection
cannot be fitted, the container shows a fixed error message and no layer is drawn.
"""

from html import escape
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Sequence, Union

import geopandas as gpd
from loguru import logger

from .compositor import LayerCompositor, LayerId, LayerRegistry, overlay_id
from .encoding import EncodingController, EncodingDefinition
from .interaction import InteractionLayer, Tooltip, TooltipPayload, TractFields, TractHitTester
from .loader import DataUnavailableError, MapCollections, load_collections
from .projection import PathRenderer, Projection, ProjectionFitError, fit_projection
from .scene import MapContainer
from .stations import StationLine, resolve_station_line

LOAD_ERROR_MESSAGE = "Could not load all data files. Please check the 'data' folder."

Loader = Callable[[Mapping[str, Union[str, Path]]], Awaitable[Dict[str, gpd.GeoDataFrame]]]


class TransitDensityMap:
    """
    The map component and its UI entry points.

    Args:
        sources: Collection name to path for tracts, water, land, route, rail, stations
        encodings: Selectable fill encodings
        station_order: Curated station visiting order for the transit line
        width: Viewport width
        height: Viewport height
        default_encoding: Key of the encoding active after load
        styles: Per-layer style settings
        tooltip_offset: Pixel offset of the tooltip from the pointer
        transition_seconds: Duration of the fill transition
        clock: Monotonic clock used by the fill transition
        population_field: Property used to pick tracts for the projection fit
        station_name_field: Property holding station names
        path_precision: Decimal places in generated path data
        tract_fields: Tract property names shown in the tooltip

    Raises:
        ValueError: If no encoding is given or the default encoding is not one of them
    """

    def __init__(
        self,
        sources: Mapping[str, Union[str, Path]],
        encodings: Sequence[EncodingDefinition],
        station_order: Sequence[str],
        width: int = 800,
        height: int = 800,
        default_encoding: Optional[str] = None,
        styles: Optional[Mapping[str, Mapping]] = None,
        tooltip_offset=(10, -10),
        transition_seconds: float = 0.3,
        clock: Optional[Callable[[], float]] = None,
        population_field: str = "population",
        station_name_field: str = "Name",
        path_precision: int = 2,
        tract_fields: Optional[TractFields] = None,
    ):
        if not encodings:
            raise ValueError("At least one encoding is required")
        keys = [e.key for e in encodings]
        if default_encoding is not None and default_encoding not in keys:
            raise ValueError(f"Default encoding '{default_encoding}' is not one of {keys}")
        self.sources = dict(sources)
        self.encodings = list(encodings)
        self.station_order = list(station_order)
        self.default_encoding = default_encoding or self.encodings[0].key
        self.styles = dict(styles or {})
        self.tooltip_offset = tooltip_offset
        self.transition_seconds = transition_seconds
        self.clock = clock
        self.population_field = population_field
        self.station_name_field = station_name_field
        self.path_precision = path_precision
        self.tract_fields = tract_fields or TractFields(population=population_field)

        self.container = MapContainer(width, height)
        self.collections: Optional[MapCollections] = None
        self.projection: Optional[Projection] = None
        self.path: Optional[PathRenderer] = None
        self.station_line: Optional[StationLine] = None
        self.compositor: Optional[LayerCompositor] = None
        self.registry: Optional[LayerRegistry] = None
        self.encoder: Optional[EncodingController] = None
        self.interaction: Optional[InteractionLayer] = None

    @classmethod
    def from_config(cls, config, **overrides: Any) -> "TransitDensityMap":
        """Build the map from an ops.Config instance."""
        width, height = config.get_viewport()
        kwargs: Dict[str, Any] = dict(
            sources=config.get_geometry_sources(),
            encodings=config.get_encodings(),
            station_order=config.get_station_order(),
            width=width,
            height=height,
            default_encoding=config.get_default_encoding(),
            styles={key: config.get_style(key) for key in ("water", "rail", "route", "transit")},
            tooltip_offset=config.get_tooltip_offset(),
            transition_seconds=float(config.get("encodings.transition_seconds")),
            population_field=config.get_column_name("population"),
            station_name_field=config.get_column_name("station_name"),
            path_precision=int(config.get_system_setting("path_precision")),
            tract_fields=TractFields(
                name=config.get_column_name("tract_name"),
                population=config.get_column_name("population"),
                density=config.get_column_name("density"),
                no_vehicle=config.get_column_name("no_vehicle"),
            ),
        )
        kwargs.update(overrides)
        return cls(**kwargs)

    @property
    def ready(self) -> bool:
        return self.encoder is not None

    async def initialize(self, loader: Loader = load_collections) -> bool:
        """
        Load every collection, then draw the map.

        Returns:
            True when the map was drawn, False when the error state is shown instead
        """
        if self.ready:
            raise RuntimeError("Map already initialized")

        try:
            frames = await loader(self.sources)
            collections = MapCollections.from_mapping(frames)
        except (DataUnavailableError, KeyError) as e:
            logger.critical(f"❌ Map data unavailable: {e}")
            self.container.show_error(LOAD_ERROR_MESSAGE)
            return False

        try:
            self.draw(collections)
        except ProjectionFitError as e:
            logger.critical(f"❌ Cannot fit projection: {e}")
            self.container.show_error(LOAD_ERROR_MESSAGE)
            return False
        return True

    def draw(self, collections: MapCollections) -> None:
        """Fit, compose and apply the default encoding against fully loaded collections."""
        surface = self.container.surface
        self.projection = fit_projection(
            collections.tracts, surface.width, surface.height, self.population_field
        )
        self.path = PathRenderer(self.projection, precision=self.path_precision)
        self.station_line = resolve_station_line(
            self.station_order, collections.stations, self.station_name_field
        )
        self.collections = collections

        self.compositor = LayerCompositor(surface, self.path, self.styles)
        self.registry = self.compositor.compose(collections, self.station_line)

        controller_kwargs: Dict[str, Any] = {"duration": self.transition_seconds}
        if self.clock is not None:
            controller_kwargs["clock"] = self.clock
        self.encoder = EncodingController(
            self.encodings,
            collections.tracts,
            self.compositor.fill_elements(),
            self.container.legend,
            **controller_kwargs,
        )
        self.encoder.select(self.default_encoding)

        self.interaction = InteractionLayer(
            Tooltip(self.container.tooltip, self.tooltip_offset),
            collections.tracts,
            TractHitTester(collections.tracts, self.path),
            self.tract_fields,
        )
        logger.success("✅ Transit density map drawn")

    def _require_ready(self) -> None:
        if not self.ready:
            raise RuntimeError("Map is not drawn; initialize() must succeed first")

    def on_selection_changed(self, encoding_key: str) -> None:
        """Encoding selector entry point."""
        self._require_ready()
        self.encoder.select(encoding_key)

    def on_toggle_changed(self, layer: Any, checked: bool) -> None:
        """Overlay toggle entry point ('rail', 'route' or 'transit')."""
        self._require_ready()
        self.compositor.set_visibility(overlay_id(layer), checked)

    def on_pointer_move(self, x: float, y: float, page_x: float, page_y: float) -> Optional[TooltipPayload]:
        self._require_ready()
        return self.interaction.pointer_move(x, y, page_x, page_y)

    def on_pointer_leave(self) -> None:
        self._require_ready()
        self.interaction.leave()

    def tick(self, now: Optional[float] = None) -> bool:
        """Advance the fill transition; True while still running."""
        self._require_ready()
        return self.encoder.tick(now)

    def layer_visibility(self) -> Dict[LayerId, bool]:
        self._require_ready()
        return self.registry.visibility()

    def to_html(self) -> str:
        """Standalone page with the settled map state, or the error message."""
        if self.ready:
            self.encoder.finish()
        return self.container.to_html(controls=self._controls_html() if self.ready else "")

    def _controls_html(self) -> str:
        active = self.encoder.active.key if self.encoder.active else None
        radios = "".join(
            f'<label><input type="radio" name="map-view" value="{e.key}"'
            f'{" checked" if e.key == active else ""} disabled> {escape(e.title)}</label> '
            for e in self.encodings
        )
        visibility = self.registry.visibility()
        toggles = "".join(
            f'<label><input type="checkbox" id="toggle-{layer_id.value}"'
            f'{" checked" if visible else ""} disabled> {layer_id.value}</label> '
            for layer_id, visible in visibility.items()
        )
        return f'<div class="map-controls">{radios}{toggles}</div>'
