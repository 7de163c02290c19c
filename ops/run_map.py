#!/usr/bin/env python3
"""
Transit Density Map Renderer with Click CLI

Loads the tract, water, land, route, rail and station collections named in
config.yaml, draws the layered map with the selected encoding, and writes a
standalone HTML page. Optionally also writes an interactive Leaflet web map.

Usage:
    transit-map [OPTIONS]

    # Render with the equity encoding and the rail layer hidden:
    transit-map --encoding equity --hide-layer rail

    # Also write the folium web map:
    transit-map --web-map

    # Check that every input file exists:
    transit-map validate
"""

import asyncio
import os
import sys
from pathlib import Path
from typing import Optional

import click
from loguru import logger

from cartography.compositor import OVERLAY_ALIASES
from cartography.map_app import TransitDensityMap
from cartography.webmap import build_web_map
from ops.config_loader import Config


@click.group(invoke_without_command=True)
@click.option("--config", "config_file", type=click.Path(exists=True, dir_okay=False), help="Path to config.yaml")
@click.option("--encoding", help="Encoding shown on the rendered map (e.g. density, equity)")
@click.option(
    "--hide-layer",
    multiple=True,
    type=click.Choice(sorted(OVERLAY_ALIASES)),
    help="Overlay to hide; repeatable",
)
@click.option("--output", type=click.Path(dir_okay=False), help="Output HTML path (defaults to config)")
@click.option("--web-map", is_flag=True, help="Also write the interactive folium web map")
@click.option("-v", "--verbose", is_flag=True, help="Enable DEBUG level logging")
@click.option("--trace", is_flag=True, help="Enable TRACE level logging for deep debugging")
@click.option("--log-file", type=str, help="Also log to specified file")
@click.pass_context
def cli(ctx, config_file, encoding, hide_layer, output, web_map, verbose, trace, log_file):
    """
    Transit Density Map Renderer

    \b
    Examples:
      transit-map                                  # Render with the default encoding
      transit-map --encoding equity                # Vehicle-access equity encoding
      transit-map --hide-layer route --web-map     # Hide the highlighted route, add web map
      transit-map --verbose                        # Enable DEBUG level logging
    """
    setup_logging(verbose=verbose, enable_trace=trace)

    if log_file:
        log_level = "TRACE" if trace else ("DEBUG" if verbose else "INFO")
        logger.add(
            log_file,
            level=log_level,
            format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} | {message}",
            rotation="10 MB",
            retention="7 days",
        )
        logger.info(f"📄 Also logging to file: {log_file}")

    try:
        config = Config(config_file)
        logger.info(f"📋 Project: {config.get('project_name')}")
        config.print_config_summary()
    except (FileNotFoundError, ValueError) as e:
        handle_critical_error(e, "Loading configuration")
        ctx.exit(1)

    ctx.obj = {"config": config}

    if ctx.invoked_subcommand is None:
        ok = render_map(config, encoding, hide_layer, Path(output) if output else None, web_map)
        ctx.exit(0 if ok else 1)


@cli.command()
@click.pass_context
def validate(ctx):
    """Check that every configured input file exists."""
    config: Config = ctx.obj["config"]
    results = config.validate_input_files()
    for key, exists in results.items():
        if exists:
            logger.success(f"  ✅ {key}: {config.get_input_path(key)}")
        else:
            logger.error(f"  ❌ {key}: {config.get_input_path(key)}")
    if not all(results.values()):
        ctx.exit(1)


def render_map(
    config: Config,
    encoding: Optional[str],
    hidden_layers,
    output: Optional[Path],
    web_map: bool,
) -> bool:
    """
    Load, draw and write the map.

    Returns:
        True on success; False when data could not be loaded (the error page is still written)
    """
    logger.info("🗺️ Transit Density Map")
    logger.info("=" * 40)

    try:
        transit_map = TransitDensityMap.from_config(config)
    except ValueError as e:
        handle_critical_error(e, "Building map from configuration")
        return False
    ok = asyncio.run(transit_map.initialize())

    if ok and encoding:
        try:
            transit_map.on_selection_changed(encoding)
        except KeyError as e:
            handle_critical_error(e, "Selecting encoding")
            return False
    if ok:
        for layer in hidden_layers:
            transit_map.on_toggle_changed(layer, False)

    output_path = output or config.get_map_html_path()
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(transit_map.to_html(), encoding="utf-8")
    logger.info(f"  💾 Map page written: {output_path}")

    if not ok:
        logger.critical("❌ Map could not be drawn; error page written instead")
        return False

    if web_map:
        web_map_path = config.get_web_map_path()
        web_map_path.parent.mkdir(parents=True, exist_ok=True)
        m = build_web_map(
            transit_map.collections,
            transit_map.encodings,
            transit_map.station_line,
            active_key=transit_map.encoder.active.key,
            visibility=transit_map.layer_visibility(),
            styles=transit_map.styles,
            station_name_field=transit_map.station_name_field,
            tract_fields=transit_map.tract_fields,
        )
        m.save(str(web_map_path))
        logger.success(f"  ✅ Web map saved: {web_map_path}")

    logger.success("✅ Transit density map completed successfully!")
    return True


def setup_logging(verbose: bool = False, enable_trace: bool = False) -> None:
    """
    Configure loguru logging with appropriate levels.

    Args:
        verbose: If True, set log level to DEBUG
        enable_trace: If True, enable TRACE level logging for deep debugging
    """
    logger.remove()

    if enable_trace:
        log_level = "TRACE"
        log_format = "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | <level>{message}</level>"
    elif verbose:
        log_level = "DEBUG"
        log_format = "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | <level>{message}</level>"
    else:
        log_level = "INFO"
        log_format = (
            "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>"
        )

    logger.add(
        sys.stderr,
        format=log_format,
        level=log_level,
        colorize=True,
        backtrace=enable_trace,
        diagnose=enable_trace,
    )

    os.environ["LOGURU_LEVEL"] = log_level

    if enable_trace:
        logger.trace("🔍 Trace logging enabled - maximum detail mode")


def handle_critical_error(error: Exception, context: str = "") -> None:
    """
    Handle critical errors with optional trace logging.

    Args:
        error: The exception that occurred
        context: Additional context about where the error occurred
    """
    if os.environ.get("LOGURU_LEVEL", "INFO") == "TRACE":
        logger.opt(exception=error).trace(f"💥 TRACE MODE: full context for {context}")

    logger.critical(f"💥 CRITICAL ERROR: {context}")
    logger.critical(f"Exception: {type(error).__name__}: {error}")


if __name__ == "__main__":
    cli()
