"""
Configuration Loader for the Transit Density Map

This module provides a centralized way to load and access configuration
settings from the config.yaml file.

Usage:
    from ops.config_loader import Config

    config = Config()
    tracts_path = config.get_input_path('tracts_geojson')
    html_dir = config.get_output_dir('html')
"""

import copy
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml  # type: ignore[import-untyped]
from loguru import logger

from cartography.encoding import EncodingDefinition
from cartography.scales import NO_DATA_COLOR, ThresholdColorScale, scheme_colors

# Input keys in the order the loader resolves them
GEOMETRY_INPUT_KEYS = (
    "tracts_geojson",
    "water_geojson",
    "land_geojson",
    "route_geojson",
    "rail_geojson",
    "stations_geojson",
)


class Config:
    """Configuration manager for the transit density map."""

    # Default values that can be overridden in config
    DEFAULTS: Dict[str, Any] = {
        "columns": {
            "tract_name": "name",
            "population": "population",
            "density": "population_density_sq_mi",
            "no_vehicle": "percent_no_vehicle",
            "station_name": "Name",
        },
        "viewport": {"width": 800, "height": 800},
        "encodings": {
            "default": "density",
            "no_data_color": NO_DATA_COLOR,
            "transition_seconds": 0.3,
            "definitions": [
                {
                    "key": "density",
                    "title": "Population per mi²",
                    "field": "population_density_sq_mi",
                    "thresholds": [5000, 10000, 20000, 30000, 40000, 50000, 75000, 100000],
                    "colormap": "YlOrRd",
                },
                {
                    "key": "equity",
                    "title": "% Households w/ No Vehicle",
                    "field": "percent_no_vehicle",
                    "thresholds": [10, 20, 30, 40, 50, 60, 70, 80],
                    "colormap": "Purples",
                },
            ],
        },
        "transit": {"station_order": []},
        "styles": {
            "water": {"fill": "lightblue", "stroke": "lightblue", "stroke-width": "1px"},
            "rail": {"stroke": "#555", "stroke-width": "2px", "stroke-opacity": 0.7},
            "route": {"stroke": "blue", "stroke-width": "2.5px", "stroke-opacity": 0.75},
            "transit": {"stroke": "#0099d8", "stroke-width": "3px", "station_radius": 2},
        },
        "tooltip": {"offset_x": 10, "offset_y": -10},
        "system": {
            "path_precision": 2,
        },
    }

    def __init__(
        self,
        config_file: Optional[str] = None,
        project_root_override: Optional[Union[str, Path]] = None,
    ):
        """
        Initialize configuration manager.

        Args:
            config_file: Path to config file. If None, looks for:
                        1. Environment variable MAP_CONFIG_PATH
                        2. config.yaml in current directory
                        3. ops/config.yaml next to this module
            project_root_override: Override project root detection (useful for temp configs)
        """
        if config_file is None:
            env_config = os.environ.get("MAP_CONFIG_PATH")
            if env_config and Path(env_config).exists():
                config_file = env_config
                logger.debug(f"Using config from environment: {config_file}")
            elif Path("config.yaml").exists():
                config_file = "config.yaml"
            elif (Path(__file__).parent / "config.yaml").exists():
                config_file = str(Path(__file__).parent / "config.yaml")
                logger.debug("Using packaged ops/config.yaml")
            else:
                raise FileNotFoundError(
                    "No config.yaml found. Check current directory or set MAP_CONFIG_PATH"
                )

        self.config_path = Path(config_file).resolve()
        self.config_dir = self.config_path.parent

        if project_root_override:
            self.project_root = Path(project_root_override).resolve()
            logger.debug(f"Using project root override: {self.project_root}")
        else:
            self.project_root = self._find_project_root()

        logger.debug(f"Loading config from: {self.config_path}")
        logger.debug(f"Project root: {self.project_root}")

        with open(self.config_path, "r", encoding="utf-8") as f:
            self.data = yaml.safe_load(f) or {}

        if not isinstance(self.data, dict):
            raise ValueError(f"Expected a mapping at the top of {self.config_path}")

        self._setup_paths()

    def _setup_paths(self) -> None:
        """Setup base directory paths relative to project root."""
        dirs = self.data.get("directories", {})

        self.data_dir = self.project_root / dirs.get("data", "data")
        self.html_dir = self.project_root / dirs.get("html", "html")

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation with intelligent defaults.

        Args:
            key_path: Dot-separated path to the configuration value
            default: Default value if key not found

        Returns:
            Configuration value
        """
        keys = key_path.split(".")

        value: Any = self.data
        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                value = None
                break

        if value is None:
            value = self.DEFAULTS
            for key in keys:
                if isinstance(value, dict) and key in value:
                    value = value[key]
                else:
                    return default

        return value

    def get_input_path(self, filename_key: str) -> Path:
        """
        Get full path to an input file. The path is taken directly from config.yaml
        and joined with the project root.

        Args:
            filename_key: Key for the filename in input_files

        Returns:
            Full absolute path to the input file
        """
        relative_path_str = self.data.get("input_files", {}).get(filename_key)
        if not relative_path_str:
            raise ValueError(
                f"Input filename key '{filename_key}' not found in config: input_files"
            )
        return self.project_root / relative_path_str

    def get_geometry_sources(self) -> Dict[str, Path]:
        """Map each geometry collection name to its input path, in load order."""
        return {key.removesuffix("_geojson"): self.get_input_path(key) for key in GEOMETRY_INPUT_KEYS}

    def get_output_dir(self, dir_key: str) -> Path:
        """
        Get full path to an output directory.

        Args:
            dir_key: Directory key ('data' or 'html')

        Returns:
            Full path to the directory
        """
        if dir_key == "data":
            return self.data_dir
        elif dir_key == "html":
            return self.html_dir
        else:
            raise ValueError(f"Unknown directory key: {dir_key}")

    def get_map_html_path(self) -> Path:
        """Get path to the rendered map HTML file."""
        return self.html_dir / self.get("output.map_html", "transit_density_map.html")

    def get_web_map_path(self) -> Path:
        """Get path to the folium web map HTML file."""
        return self.html_dir / self.get("output.web_map_html", "transit_density_web_map.html")

    def get_viewport(self) -> Tuple[int, int]:
        """Get the fixed drawing viewport as (width, height)."""
        width = self.get("viewport.width")
        height = self.get("viewport.height")
        if not isinstance(width, int) or not isinstance(height, int) or width <= 0 or height <= 0:
            raise ValueError(f"Viewport must be positive integers, got {width}x{height}")
        return width, height

    def get_column_name(self, column_key: str) -> str:
        """Get column name with intelligent defaults."""
        result = self.get(f"columns.{column_key}")
        if isinstance(result, str):
            return result
        raise ValueError(f"Column name not found or not a string: {column_key}")

    def get_station_order(self) -> List[str]:
        """Get the curated north-to-south station visiting order."""
        order = self.get("transit.station_order", [])
        if not isinstance(order, list) or not all(isinstance(name, str) for name in order):
            raise ValueError("transit.station_order must be a list of station names")
        return list(order)

    def get_style(self, layer_key: str) -> Dict[str, Any]:
        """Get style settings for a layer, falling back to defaults."""
        style = copy.deepcopy(self.DEFAULTS["styles"].get(layer_key, {}))
        style.update(self.data.get("styles", {}).get(layer_key, {}) or {})
        return style

    def get_system_setting(self, setting_key: str) -> Any:
        """Get system setting with intelligent defaults."""
        return self.get(f"system.{setting_key}")

    def get_tooltip_offset(self) -> Tuple[float, float]:
        return float(self.get("tooltip.offset_x")), float(self.get("tooltip.offset_y"))

    def get_default_encoding(self) -> str:
        return str(self.get("encodings.default"))

    def get_encodings(self) -> List[EncodingDefinition]:
        """
        Build the selectable encodings from configuration.

        Each definition names a property field, ascending thresholds and either an
        explicit color list or a matplotlib colormap resampled to one more class
        than there are thresholds.

        Returns:
            Encoding definitions in configured order
        """
        fallback = self.get("encodings.no_data_color")
        encodings: List[EncodingDefinition] = []

        for raw in self.get("encodings.definitions"):
            try:
                thresholds = [float(t) for t in raw["thresholds"]]
                if "colors" in raw:
                    colors = list(raw["colors"])
                else:
                    colors = list(scheme_colors(raw["colormap"], len(thresholds) + 1))
                scale = ThresholdColorScale(thresholds, colors, fallback=fallback)
                encodings.append(
                    EncodingDefinition(
                        key=raw["key"], title=raw["title"], field=raw["field"], scale=scale
                    )
                )
            except KeyError as e:
                raise ValueError(f"Encoding definition missing required key {e}: {raw}") from e

        keys = [encoding.key for encoding in encodings]
        if len(set(keys)) != len(keys):
            raise ValueError(f"Duplicate encoding keys: {keys}")
        if not encodings:
            raise ValueError("At least one encoding definition is required")
        return encodings

    def validate_input_files(self) -> Dict[str, bool]:
        """Validate that input files exist."""
        results: Dict[str, bool] = {}
        input_files = self.data.get("input_files", {})

        for filename_key in input_files:
            try:
                results[filename_key] = self.get_input_path(filename_key).exists()
            except ValueError:
                results[filename_key] = False

        return results

    def print_config_summary(self) -> None:
        """Print a summary of the current configuration."""
        logger.debug("📋 Configuration Summary")
        logger.debug("=" * 50)
        logger.debug(f"Project: {self.get('project_name', 'Unknown')}")
        logger.debug(f"Description: {self.get('description', 'No description')}")
        logger.debug(f"Config file: {self.config_path}")
        logger.debug(f"Viewport: {self.get_viewport()}")

        logger.debug("📁 Directories:")
        for key in ["data", "html"]:
            dir_path = self.get_output_dir(key)
            exists = "✅" if dir_path.exists() else "❌"
            logger.debug(f"  {exists} {key}: {dir_path}")

        logger.debug("📊 Input Files:")
        for file_key, exists in self.validate_input_files().items():
            status = "✅" if exists else "❌"
            logger.debug(f"  {status} {file_key}")

    def _find_project_root(self) -> Path:
        """Find the project root directory by looking for characteristic files/directories."""
        current = self.config_path.parent

        project_markers = ["cartography", "data", "ops", "pyproject.toml", ".git"]

        for _ in range(5):
            markers_found = sum(1 for marker in project_markers if (current / marker).exists())
            if markers_found >= 2:
                return current

            parent = current.parent
            if parent == current:
                break
            current = parent

        # Fallback: if config is in ops/, project root is parent
        if self.config_path.parent.name == "ops":
            return self.config_path.parent.parent

        logger.warning(
            f"Could not reliably detect project root, using config directory: {self.config_path.parent}"
        )
        return self.config_path.parent
