"""Configuration module -- exports Settings and the YAML loader helpers."""

from ragdesk.config.loader import build_chunking_config, load_config
from ragdesk.config.settings import Settings

__all__ = ["Settings", "build_chunking_config", "load_config"]
