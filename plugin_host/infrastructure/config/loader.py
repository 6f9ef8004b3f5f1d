"""
Configuration loading and saving utilities.

Configuration is read from a YAML or JSON file and then overridden by
PLUGIN_HOST_* environment variables.
"""

import json
import os
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import yaml

from .models import ApplicationConfig


class ConfigLoader:
    """Configuration loader supporting YAML, JSON and environment variables."""

    def __init__(self, env_prefix: str = "PLUGIN_HOST_") -> None:
        self._env_prefix = env_prefix

    def load_config(self, config_file: Optional[str] = None) -> ApplicationConfig:
        """
        Load configuration from file and environment variables.

        Args:
            config_file: Path to configuration file (optional)

        Returns:
            Loaded and validated configuration
        """
        config_data: Dict[str, Any] = {}

        if config_file:
            config_data = self._load_from_file(config_file)

        env_overrides = self._load_from_environment()
        config_data = self._merge_configs(config_data, env_overrides)

        config = ApplicationConfig.from_dict(config_data)
        config.config_file_path = config_file

        return config

    def save_config(self, config: ApplicationConfig, file_path: str, format: str = "yaml") -> None:
        """
        Save configuration to file.

        Args:
            config: Configuration to save
            file_path: Output file path
            format: File format (yaml or json)
        """
        config_data = config.to_dict()
        config_data.pop('config_file_path', None)

        if format.lower() == "yaml":
            self._save_yaml(config_data, file_path)
        elif format.lower() == "json":
            self._save_json(config_data, file_path)
        else:
            raise ValueError(f"Unsupported format: {format}")

    def _load_from_file(self, file_path: str) -> Dict[str, Any]:
        """Load configuration from file."""
        path = Path(file_path)

        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {file_path}")

        if path.suffix.lower() in ['.yaml', '.yml']:
            return self._load_yaml(file_path)
        elif path.suffix.lower() == '.json':
            return self._load_json(file_path)
        else:
            raise ValueError(f"Unsupported configuration file format: {path.suffix}")

    def _load_yaml(self, file_path: str) -> Dict[str, Any]:
        """Load YAML configuration file."""
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                return yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in {file_path}: {e}")
        except OSError as e:
            raise ValueError(f"Error reading {file_path}: {e}")

    def _load_json(self, file_path: str) -> Dict[str, Any]:
        """Load JSON configuration file."""
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                return json.load(f)  # type: ignore[no-any-return]
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {file_path}: {e}")
        except OSError as e:
            raise ValueError(f"Error reading {file_path}: {e}")

    def _save_yaml(self, data: Dict[str, Any], file_path: str) -> None:
        try:
            with open(file_path, 'w', encoding='utf-8') as f:
                yaml.safe_dump(data, f, default_flow_style=False, indent=2, sort_keys=False)
        except OSError as e:
            raise ValueError(f"Error writing YAML to {file_path}: {e}")

    def _save_json(self, data: Dict[str, Any], file_path: str) -> None:
        try:
            with open(file_path, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2)
        except OSError as e:
            raise ValueError(f"Error writing JSON to {file_path}: {e}")

    def _env_mappings(self) -> Dict[str, Tuple[str, Callable[[str], Any]]]:
        prefix = self._env_prefix
        return {
            f"{prefix}DEBUG": ("debug", self._parse_bool),
            f"{prefix}ENVIRONMENT": ("environment", str),
            f"{prefix}API_HOST": ("api.host", str),
            f"{prefix}API_PORT": ("api.port", int),
            f"{prefix}LOG_LEVEL": ("logging.level", str),
            f"{prefix}LOG_DIR": ("logging.log_directory", str),
            f"{prefix}PLUGIN_DIR": ("plugins.plugin_directory", str),
            f"{prefix}PLUGIN_AUTO_LOAD": ("plugins.auto_load", self._parse_bool),
            f"{prefix}DATABASE_ENABLED": ("database.enabled", self._parse_bool),
            f"{prefix}DATABASE_HOST": ("database.host", str),
            f"{prefix}DATABASE_PORT": ("database.port", int),
            f"{prefix}DATABASE_USER": ("database.user", str),
            f"{prefix}DATABASE_PASSWORD": ("database.password", str),
            f"{prefix}DATABASE_NAME": ("database.database", str),
            f"{prefix}KAFKA_ENABLED": ("messaging.enabled", self._parse_bool),
            f"{prefix}KAFKA_BROKERS": ("messaging.brokers", self._parse_list),
            f"{prefix}KAFKA_CLIENT_ID": ("messaging.client_id", str),
            f"{prefix}KSQLDB_URL": ("messaging.ksqldb_url", str),
            f"{prefix}KSQLDB_USERNAME": ("messaging.ksqldb_username", str),
            f"{prefix}KSQLDB_PASSWORD": ("messaging.ksqldb_password", str),
            f"{prefix}S3_ENABLED": ("object_store.enabled", self._parse_bool),
            f"{prefix}S3_ENDPOINT": ("object_store.endpoint_url", str),
            f"{prefix}S3_REGION": ("object_store.region", str),
            f"{prefix}S3_ACCESS_KEY_ID": ("object_store.access_key_id", str),
            f"{prefix}S3_SECRET_ACCESS_KEY": ("object_store.secret_access_key", str),
        }

    def _load_from_environment(self) -> Dict[str, Any]:
        """Load configuration overrides from environment variables."""
        config: Dict[str, Any] = {}

        for env_var, (config_path, converter) in self._env_mappings().items():
            value = os.getenv(env_var)
            if value is not None:
                try:
                    converted_value = converter(value)
                    self._set_nested_value(config, config_path, converted_value)
                except (ValueError, TypeError) as e:
                    raise ValueError(f"Invalid value for {env_var}: {value} ({e})")

        return config

    def _parse_bool(self, value: str) -> bool:
        """Parse boolean value from string."""
        return value.lower() in ('true', '1', 'yes', 'on', 'enabled')

    def _parse_list(self, value: str) -> List[str]:
        """Parse a comma separated list."""
        return [item.strip() for item in value.split(',') if item.strip()]

    def _set_nested_value(self, config: Dict[str, Any], path: str, value: Any) -> None:
        """Set a nested configuration value using dot notation."""
        keys = path.split('.')
        current = config

        for key in keys[:-1]:
            if key not in current:
                current[key] = {}
            current = current[key]

        current[keys[-1]] = value

    def _merge_configs(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively merge two configuration dictionaries."""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_configs(result[key], value)
            else:
                result[key] = value

        return result
