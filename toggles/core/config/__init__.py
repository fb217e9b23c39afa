from toggles.core.config.loader import build_persistence, build_store, load_config, write_default_config
from toggles.core.config.models import (
    AppConfig,
    BackendConfig,
    LoggingConfig,
    StoreConfig,
    SyncConfig,
    ToggleEntryConfig,
    WebConfig,
)

__all__ = [
    "AppConfig",
    "BackendConfig",
    "StoreConfig",
    "SyncConfig",
    "WebConfig",
    "LoggingConfig",
    "ToggleEntryConfig",
    "load_config",
    "write_default_config",
    "build_persistence",
    "build_store",
]
