"""
Batched loading of the map's geometry collections.

All collections are read concurrently and the batch either resolves completely
or fails as one unit; drawing never starts from a partial set.
"""

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Union

import geopandas as gpd
import pandas as pd
from loguru import logger

from .projection import GEOGRAPHIC_CRS

Reader = Callable[[Union[str, Path]], gpd.GeoDataFrame]


class DataUnavailableError(RuntimeError):
    """Raised when any required data resource cannot be retrieved."""

    def __init__(self, resource: str, cause: BaseException):
        super().__init__(f"Could not load '{resource}': {cause}")
        self.resource = resource
        self.cause = cause


@dataclass(frozen=True)
class MapCollections:
    """The six collections the map draws, positionally matched to the load order."""

    tracts: gpd.GeoDataFrame
    water: gpd.GeoDataFrame
    land: gpd.GeoDataFrame
    route: gpd.GeoDataFrame
    rail: gpd.GeoDataFrame
    stations: gpd.GeoDataFrame

    @classmethod
    def from_mapping(cls, frames: Mapping[str, gpd.GeoDataFrame]) -> "MapCollections":
        return cls(
            tracts=frames["tracts"],
            water=frames["water"],
            land=frames["land"],
            route=frames["route"],
            rail=frames["rail"],
            stations=frames["stations"],
        )


def ensure_wgs84(gdf: gpd.GeoDataFrame, source_description: str = "GeoDataFrame") -> gpd.GeoDataFrame:
    """
    Return the collection in WGS84, assuming WGS84 when no CRS is declared.

    Args:
        gdf: Input GeoDataFrame
        source_description: Description for logging

    Returns:
        GeoDataFrame in EPSG:4326
    """
    if gdf.crs is None:
        logger.debug(f"  ⚠️ No CRS on {source_description}, assuming {GEOGRAPHIC_CRS}")
        return gdf.set_crs(GEOGRAPHIC_CRS)
    if gdf.crs.to_epsg() != 4326:
        logger.debug(f"  🔄 Reprojecting {source_description} from {gdf.crs} to {GEOGRAPHIC_CRS}")
        return gdf.to_crs(GEOGRAPHIC_CRS)
    return gdf


async def _read_one(name: str, source: Union[str, Path], reader: Reader) -> gpd.GeoDataFrame:
    try:
        frame = await asyncio.to_thread(reader, source)
        return ensure_wgs84(frame, name)
    except Exception as e:
        raise DataUnavailableError(name, e) from e


async def load_collections(
    sources: Mapping[str, Union[str, Path]], reader: Reader = gpd.read_file
) -> Dict[str, gpd.GeoDataFrame]:
    """
    Read every named geometry collection concurrently.

    Args:
        sources: Collection name to file path (or URL), in the order wanted back
        reader: Callable returning a GeoDataFrame for one source

    Returns:
        Collection name to GeoDataFrame, in the same order as `sources`

    Raises:
        DataUnavailableError: If any single read fails
    """
    logger.info(f"📂 Loading {len(sources)} geometry collections...")
    names = list(sources)
    tasks = [asyncio.ensure_future(_read_one(name, sources[name], reader)) for name in names]

    try:
        frames: List[gpd.GeoDataFrame] = await asyncio.gather(*tasks)
    except DataUnavailableError as e:
        for task in tasks:
            task.cancel()
        logger.critical(f"❌ {e}")
        raise

    for name, frame in zip(names, frames):
        logger.debug(f"  ✅ {name}: {len(frame):,} features")
    logger.success(f"  ✅ Loaded all {len(names)} collections")
    return dict(zip(names, frames))


def load_chart_summary(source: Union[str, Path]) -> List[Dict[str, Any]]:
    """
    Read an aggregated chart summary stored as a JSON array of records.

    Raises:
        DataUnavailableError: If the file cannot be read or parsed
    """
    try:
        frame = pd.read_json(source, orient="records")
    except (OSError, ValueError) as e:
        raise DataUnavailableError(str(source), e) from e
    return frame.to_dict(orient="records")
