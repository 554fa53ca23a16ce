"""
Configuration system with Pydantic models and validation.

Provides normalization options, stage tunables and logging settings, with
loading from JSON, YAML and TOML files.
"""

from .models import (
    Config,
    ContourConfig,
    ContrastConfig,
    LoggingConfig,
    LogLevel,
    NormalizationOptions,
    OutputFormat,
)
from .loader import (
    load_config,
    load_config_from_dict,
    load_options,
    save_config,
    get_default_config,
)

__all__ = [
    # Configuration models
    "Config",
    "ContourConfig",
    "ContrastConfig",
    "LoggingConfig",
    "LogLevel",
    "NormalizationOptions",
    "OutputFormat",
    # Configuration loading
    "load_config",
    "load_config_from_dict",
    "load_options",
    "save_config",
    "get_default_config",
]
