"""Configuration management for LocalPulse."""

from .catalog import SourceCatalog, load_catalog, save_catalog
from .loader import Config, load_config, save_config
from .mapping import FieldMapping, MappingFlags, default_mapping, load_mapping
from .models import (
    ConfigModel,
    IngestConfig,
    LLMConfig,
    RegionConfig,
    SourceConfig,
    SynthesisConfig,
)

__all__ = [
    "Config",
    "ConfigModel",
    "IngestConfig",
    "SynthesisConfig",
    "LLMConfig",
    "SourceConfig",
    "RegionConfig",
    "SourceCatalog",
    "FieldMapping",
    "MappingFlags",
    "default_mapping",
    "load_catalog",
    "load_config",
    "load_mapping",
    "save_catalog",
    "save_config",
]
