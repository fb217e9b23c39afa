from __future__ import annotations

import json
from typing import Optional

from pydantic import ValidationError

from toggles.core.audit import ToggleAuditLogger
from toggles.core.config.models import AppConfig, BackendConfig
from toggles.core.errors import ConfigError
from toggles.core.persistence.base import NoPersistence, Persistence
from toggles.core.persistence.disk import LocalFilePersistence
from toggles.core.persistence.io import atomic_write_json
from toggles.core.store.manager import ToggleStore
from toggles.core.store.schema import definitions_from_config


def load_config(path: str) -> AppConfig:
    """
    Read and validate the process config. A missing file yields the defaults;
    a corrupt or invalid one raises ConfigError.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        return AppConfig()
    except (OSError, ValueError) as e:
        raise ConfigError(f"Config file {path} is unreadable: {e}", path=path) from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must hold a JSON object.", path=path)
    try:
        return AppConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Config file {path} is invalid: {e}", path=path) from e


def write_default_config(path: str) -> AppConfig:
    cfg = AppConfig()
    atomic_write_json(path, cfg.model_dump(mode="json"))
    return cfg


def build_persistence(cfg: BackendConfig) -> Persistence:
    if cfg.kind == "disk":
        return LocalFilePersistence(
            cfg.directory,
            file_name=cfg.file_name,
            backups_dir=cfg.backups_dir,
            max_backups=cfg.max_backups,
        )
    if cfg.kind == "s3":
        from toggles.core.persistence.s3 import S3Persistence

        return S3Persistence.from_config(
            cfg.bucket,
            prefix=cfg.prefix,
            object_name=cfg.object_name,
            region_name=cfg.region_name,
            endpoint_url=cfg.endpoint_url,
            timeout_seconds=cfg.timeout_seconds,
            max_attempts=cfg.max_attempts,
        )
    return NoPersistence()


def build_store(cfg: AppConfig, *, persistence: Optional[Persistence] = None, logger=None) -> ToggleStore:
    definitions = definitions_from_config(cfg.toggles)
    if not definitions:
        raise ConfigError("Config declares no toggles.")
    return ToggleStore(
        definitions,
        persistence if persistence is not None else build_persistence(cfg.backend),
        logger=logger,
        audit_logger=ToggleAuditLogger(cfg.store.audit_path) if cfg.store.audit_path else None,
        backend_timeout_seconds=cfg.store.backend_timeout_seconds,
        max_history=cfg.store.max_history,
    )
