from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class Severity(str, Enum):
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


@dataclass
class ToggleError(Exception):
    code: str
    user_message: str
    severity: Severity = Severity.ERROR
    recoverable: bool = True
    context: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        super().__init__(self.code)

    def __str__(self) -> str:
        return self.user_message

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "user_message": self.user_message,
            "severity": self.severity.value,
            "recoverable": bool(self.recoverable),
            "context": dict(self.context or {}),
        }


# ---- Core types ----
class DecodeError(ToggleError):
    """A persisted value does not match the format declared for its key."""

    def __init__(self, user_message: str = "Stored value could not be decoded.", *, key: Optional[str] = None, raw: Any = None, **ctx: Any):
        super().__init__("decode_error", user_message, severity=Severity.ERROR, recoverable=True, context={"key": key, "raw": raw, **ctx})

    @property
    def key(self) -> Optional[str]:
        return self.context.get("key")


class ValidationError(ToggleError):
    """A new value was rejected before anything was persisted."""

    def __init__(self, user_message: str = "Invalid value.", *, key: Optional[str] = None, constraint: Optional[str] = None, **ctx: Any):
        super().__init__("validation_error", user_message, severity=Severity.WARN, recoverable=False, context={"key": key, "constraint": constraint, **ctx})

    @property
    def key(self) -> Optional[str]:
        return self.context.get("key")

    @property
    def constraint(self) -> Optional[str]:
        return self.context.get("constraint")


class BackendError(ToggleError):
    def __init__(self, user_message: str = "Persistence backend error.", *, operation: Optional[str] = None, code: str = "backend_error", **ctx: Any):
        super().__init__(code, user_message, severity=Severity.ERROR, recoverable=True, context={"operation": operation, **ctx})

    @property
    def operation(self) -> Optional[str]:
        return self.context.get("operation")


class BackendTimeoutError(BackendError):
    def __init__(self, user_message: str = "Persistence backend timed out.", *, operation: Optional[str] = None, timeout_seconds: Optional[float] = None, **ctx: Any):
        super().__init__(user_message, operation=operation, code="backend_timeout", timeout_seconds=timeout_seconds, **ctx)


class UnknownKeyError(ToggleError):
    def __init__(self, key: str):
        super().__init__("unknown_key", f"Unknown toggle: {key}", severity=Severity.WARN, recoverable=False, context={"key": key})

    @property
    def key(self) -> str:
        return str(self.context.get("key"))


class SchemaMismatch(ToggleError):
    def __init__(self, user_message: str = "Invalid toggle declaration.", **ctx: Any):
        super().__init__("schema_mismatch", user_message, severity=Severity.CRITICAL, recoverable=False, context=ctx)


class ConfigError(ToggleError):
    def __init__(self, user_message: str = "Configuration error.", **ctx: Any):
        super().__init__("config_error", user_message, severity=Severity.CRITICAL, recoverable=False, context=ctx)
