"""
Configuration loading for subsync projects.
"""

from subsync.config.loader import Config, load_config
from subsync.config.resolver import resolve_config

__all__ = ["Config", "load_config", "resolve_config"]
