"""
Operations package for the Transit Density Map

This package centralizes the operational tools:
- Configuration management
- The map rendering command line

The Config class is exposed at the package level for convenient imports:
    from ops import Config
"""

from .config_loader import Config

__all__ = ["Config"]
