"""
Cartography package for the Transit Density Map

This package contains the geospatial rendering and recoloring engine:
- Projection fitting and SVG path generation
- Layer composition with a land clip mask
- Threshold color encodings, legend and fill transitions
- Pointer hit-testing and tooltips
"""

__version__ = "0.1.0"

from .compositor import LayerCompositor, LayerId, LayerRegistry
from .encoding import EncodingController, EncodingDefinition, compute_fill_colors
from .interaction import TractFields
from .loader import DataUnavailableError, MapCollections, load_collections
from .map_app import LOAD_ERROR_MESSAGE, TransitDensityMap
from .projection import PathRenderer, Projection, ProjectionFitError, fit_projection
from .scales import NO_DATA_COLOR, ThresholdColorScale, scheme_colors
from .stations import StationLine, resolve_station_line

__all__ = [
    "DataUnavailableError",
    "EncodingController",
    "EncodingDefinition",
    "LOAD_ERROR_MESSAGE",
    "LayerCompositor",
    "LayerId",
    "LayerRegistry",
    "MapCollections",
    "NO_DATA_COLOR",
    "PathRenderer",
    "Projection",
    "ProjectionFitError",
    "StationLine",
    "ThresholdColorScale",
    "TractFields",
    "TransitDensityMap",
    "compute_fill_colors",
    "fit_projection",
    "load_collections",
    "resolve_station_line",
    "scheme_colors",
]
