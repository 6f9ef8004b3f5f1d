"""
Configuration models and data structures.

This module defines the configuration models of the plugin host, providing
type safety and validation for configuration values.
"""

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from ...core.domain.plugin import ResourceOverrides


@dataclass
class ApiConfig:
    """Operator HTTP API configuration."""
    host: str = "0.0.0.0"
    port: int = 8000
    allowed_origins: List[str] = field(default_factory=lambda: ["*"])


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    log_directory: str = "logs"
    max_file_size: str = "10MB"
    backup_count: int = 5
    console_enabled: bool = True
    file_enabled: bool = True


@dataclass
class PluginConfig:
    """Plugin system configuration."""
    plugin_directory: str = "plugins"
    auto_load: bool = True
    resource_overrides: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    """Initial resource overrides keyed by plugin name."""


@dataclass
class DatabaseConfig:
    """PostgreSQL connection configuration."""
    enabled: bool = False
    host: str = "localhost"
    port: int = 5432
    user: str = "postgres"
    password: Optional[str] = None
    database: str = "plugins"
    min_pool_size: int = 1
    max_pool_size: int = 10


@dataclass
class MessagingConfig:
    """Kafka and ksqlDB configuration."""
    enabled: bool = False
    brokers: List[str] = field(default_factory=lambda: ["localhost:9092"])
    client_id: str = "plugin-host"
    ksqldb_url: str = "http://localhost:8088"
    ksqldb_username: Optional[str] = None
    ksqldb_password: Optional[str] = None


@dataclass
class ObjectStoreConfig:
    """S3 compatible object storage configuration."""
    enabled: bool = False
    endpoint_url: Optional[str] = None
    region: str = "us-east-1"
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    force_path_style: bool = True


@dataclass
class ApplicationConfig:
    """Main application configuration."""

    name: str = "Plugin Host"
    version: str = "0.1.0"
    debug: bool = False
    environment: str = "production"

    api: ApiConfig = field(default_factory=ApiConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    plugins: PluginConfig = field(default_factory=PluginConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    messaging: MessagingConfig = field(default_factory=MessagingConfig)
    object_store: ObjectStoreConfig = field(default_factory=ObjectStoreConfig)

    config_file_path: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        self._validate_paths()
        self._validate_ports()
        self._validate_pools()
        self._validate_overrides()

    def _validate_paths(self) -> None:
        """Create the log directory if file logging is enabled."""
        if self.logging.file_enabled and self.logging.log_directory:
            path = Path(self.logging.log_directory)
            try:
                path.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise ValueError(f"Cannot create directory {path}: {e}")

    def _validate_ports(self) -> None:
        """Validate port numbers."""
        ports = [
            ("API port", self.api.port),
            ("Database port", self.database.port),
        ]

        for name, port in ports:
            if not (1 <= port <= 65535):
                raise ValueError(f"{name} must be between 1 and 65535, got {port}")

    def _validate_pools(self) -> None:
        if self.database.min_pool_size < 0:
            raise ValueError(
                f"Database min_pool_size must not be negative, got {self.database.min_pool_size}")
        if self.database.max_pool_size < max(1, self.database.min_pool_size):
            raise ValueError(
                "Database max_pool_size must be at least 1 and not below min_pool_size, "
                f"got {self.database.max_pool_size}")
        if self.messaging.enabled and not self.messaging.brokers:
            raise ValueError("Messaging is enabled but no brokers are configured")

    def _validate_overrides(self) -> None:
        for plugin_name, overrides in self.plugins.resource_overrides.items():
            try:
                ResourceOverrides.from_dict(overrides)
            except ValueError as e:
                raise ValueError(f"Invalid resource overrides for plugin {plugin_name}: {e}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ApplicationConfig':
        """Create configuration from dictionary."""
        return cls(
            name=data.get('name', 'Plugin Host'),
            version=data.get('version', '0.1.0'),
            debug=data.get('debug', False),
            environment=data.get('environment', 'production'),
            api=ApiConfig(**data.get('api', {})),
            logging=LoggingConfig(**data.get('logging', {})),
            plugins=PluginConfig(**data.get('plugins', {})),
            database=DatabaseConfig(**data.get('database', {})),
            messaging=MessagingConfig(**data.get('messaging', {})),
            object_store=ObjectStoreConfig(**data.get('object_store', {})),
            config_file_path=data.get('config_file_path'),
        )
