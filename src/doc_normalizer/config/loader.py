"""
Configuration loader for JSON, YAML and TOML files.

Substitutes ${VAR} environment references before validating the result
against the pydantic models.
"""

import json
import os
import re
import tomllib
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import ValidationError

from .models import Config, NormalizationOptions
from ..exceptions import ConfigurationError

PathLike = Union[str, Path]

ENV_PREFIX = "DOCNORM_"


def load_config(config_path: PathLike) -> Config:
    """
    Load configuration from a file, choosing the parser by suffix.

    Files with an unrecognized suffix are parsed as YAML.

    Args:
        config_path: Path to configuration file

    Returns:
        Validated configuration object

    Raises:
        ConfigurationError: If configuration cannot be loaded or is invalid
    """
    path = Path(config_path)

    if not path.exists():
        raise ConfigurationError(f"Configuration file not found: {path}")

    try:
        suffix = path.suffix.lower()

        if suffix == '.json':
            config_data = _load_json(path)
        elif suffix in ['.yaml', '.yml']:
            config_data = _load_yaml(path)
        elif suffix == '.toml':
            config_data = _load_toml(path)
        else:
            config_data = _load_unknown_suffix(path)

        config_data = _substitute_env_vars(config_data)

        return load_config_from_dict(config_data)

    except ConfigurationError:
        raise
    except Exception as e:
        raise ConfigurationError(f"Error loading configuration from {path}: {e}") from e


def load_config_from_dict(config_data: Dict[str, Any]) -> Config:
    """
    Load configuration from dictionary.

    Args:
        config_data: Configuration dictionary

    Returns:
        Validated configuration object

    Raises:
        ConfigurationError: If configuration is invalid
    """
    try:
        return Config(**config_data)
    except ValidationError as e:
        raise ConfigurationError(_format_validation_error(e)) from e


def load_options(options: Union[NormalizationOptions, Dict[str, Any], None]) -> NormalizationOptions:
    """Coerce ``None``, a dict or an options object into validated options."""
    if options is None:
        return NormalizationOptions()
    if isinstance(options, NormalizationOptions):
        return options
    try:
        return NormalizationOptions(**options)
    except ValidationError as e:
        raise ConfigurationError(_format_validation_error(e)) from e
    except TypeError as e:
        raise ConfigurationError(f"Options must be a mapping, got {type(options).__name__}") from e


def save_config(config: Config, output_path: PathLike, format_type: Optional[str] = None) -> None:
    """
    Save configuration to file.

    Args:
        config: Configuration object to save
        output_path: Output file path
        format_type: Format to save in ('json', 'yaml'). Auto-detected if None.

    Raises:
        ConfigurationError: If configuration cannot be saved
    """
    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    if format_type is None:
        format_type = path.suffix.lower().lstrip('.')

    if format_type not in ('json', 'yaml', 'yml'):
        raise ConfigurationError(f"Unsupported format: {format_type}")

    try:
        config_dict = config.model_dump(mode="json")

        if format_type == 'json':
            _save_json(config_dict, path)
        else:
            _save_yaml(config_dict, path)

    except OSError as e:
        raise ConfigurationError(f"Error saving configuration to {path}: {e}") from e


def get_default_config() -> Config:
    """
    Get default configuration object.

    Returns:
        Default configuration with all default values
    """
    return Config()


def _format_validation_error(error: ValidationError) -> str:
    error_details = []
    for item in error.errors():
        location = " -> ".join(str(x) for x in item['loc']) or "<root>"
        error_details.append(f"{location}: {item['msg']}")
    return "Configuration validation failed:\n" + "\n".join(error_details)


def _load_json(path: Path) -> Dict[str, Any]:
    """Load JSON configuration file."""
    try:
        with path.open('r', encoding='utf-8') as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in {path}: {e}") from e


def _load_yaml(path: Path) -> Dict[str, Any]:
    """Load YAML configuration file."""
    try:
        with path.open('r', encoding='utf-8') as f:
            return yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e


def _load_toml(path: Path) -> Dict[str, Any]:
    """Load TOML configuration file."""
    try:
        with path.open('rb') as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid TOML in {path}: {e}") from e


def _load_unknown_suffix(path: Path) -> Dict[str, Any]:
    """Read a file with an unrecognized suffix as YAML, which also accepts JSON documents."""
    data = _load_yaml(path)
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Configuration in {path} must be a mapping, got {type(data).__name__}"
        )
    return data


def _save_json(config_dict: Dict[str, Any], path: Path) -> None:
    """Save configuration as JSON."""
    with path.open('w', encoding='utf-8') as f:
        json.dump(config_dict, f, indent=2, ensure_ascii=False)


def _save_yaml(config_dict: Dict[str, Any], path: Path) -> None:
    """Save configuration as YAML."""
    with path.open('w', encoding='utf-8') as f:
        yaml.dump(config_dict, f, default_flow_style=False, allow_unicode=True, indent=2)


def _substitute_env_vars(data: Any, prefix: str = ENV_PREFIX) -> Any:
    """
    Recursively substitute environment variables in configuration data.

    Looks for strings in format ${ENV_VAR} or ${ENV_VAR:default_value}
    and replaces them with environment variable values.
    """
    if isinstance(data, dict):
        return {key: _substitute_env_vars(value, prefix) for key, value in data.items()}
    elif isinstance(data, list):
        return [_substitute_env_vars(item, prefix) for item in data]
    elif isinstance(data, str):
        return _substitute_env_var_string(data, prefix)
    else:
        return data


def _substitute_env_var_string(text: str, prefix: str) -> str:
    """
    Substitute environment variables in a string.

    Supports formats:
    - ${VAR} - substitute with environment variable VAR
    - ${VAR:default} - substitute with VAR or use default if not set
    - ${DOCNORM_VAR} - with prefix, tried first
    """

    def replace_env_var(match):
        var_expr = match.group(1)

        if ':' in var_expr:
            var_name, default_value = var_expr.split(':', 1)
        else:
            var_name, default_value = var_expr, None

        for name in [f"{prefix}{var_name}", var_name]:
            if name in os.environ:
                return os.environ[name]

        if default_value is not None:
            return default_value
        return match.group(0)

    return re.sub(r'\$\{([^}]+)\}', replace_env_var, text)
