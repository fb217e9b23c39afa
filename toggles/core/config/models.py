from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class BackendConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    kind: Literal["none", "disk", "s3"] = "none"
    # disk
    directory: str = "data/toggles"
    file_name: str = "current.json"
    backups_dir: Optional[str] = None
    max_backups: int = Field(default=10, ge=0)
    # s3
    bucket: str = ""
    prefix: str = ""
    object_name: str = "current.json"
    region_name: Optional[str] = None
    endpoint_url: Optional[str] = None
    max_attempts: int = Field(default=3, ge=1, le=10)
    timeout_seconds: float = Field(default=10.0, gt=0)

    @model_validator(mode="after")
    def check_s3_bucket(self) -> "BackendConfig":
        if self.kind == "s3" and not self.bucket:
            raise ValueError("backend.bucket is required for the s3 backend")
        return self


class StoreConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    backend_timeout_seconds: float = Field(default=10.0, gt=0)
    max_history: int = Field(default=100, ge=1)
    audit_path: Optional[str] = "logs/toggles_audit.jsonl"


class SyncConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    enabled: bool = True
    ok_interval_seconds: float = Field(default=30.0, gt=0)
    err_interval_seconds: float = Field(default=60.0, gt=0)
    start_timeout_seconds: Optional[float] = Field(default=30.0, gt=0)


class WebConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    enabled: bool = True
    bind_host: str = "127.0.0.1"
    port: int = Field(default=8000, ge=1, le=65535)


class LoggingConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    log_dir: Optional[str] = "logs"
    level: str = "INFO"


class ToggleEntryConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    key: str = Field(min_length=1)
    description: str = ""
    format: Dict[str, Any]
    default: Any = None


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    backend: BackendConfig = Field(default_factory=BackendConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    web: WebConfig = Field(default_factory=WebConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    toggles: List[ToggleEntryConfig] = Field(default_factory=list)
