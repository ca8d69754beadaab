"""Project-level configuration and path helpers."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from .errors import ConfigurationError
from .models.contracts import INSPECTOR_PREFIX
from .models.tracing import PayloadMode

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
LOGS_DIR = PROJECT_ROOT / "04_logs"
DEFAULT_LOG_PATH = LOGS_DIR / "inspector.log"


PathLike = Union[str, Path]


def resolve_log_path(env_value: PathLike | None = None) -> Path:
    """Resolve INSPECTOR_LOG_FILE to an absolute path."""
    if not env_value:
        return DEFAULT_LOG_PATH

    candidate = Path(env_value)
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate


@dataclass
class InspectorOptions:
    """Inspector configuration options."""

    enabled: bool = True
    max_events: int = 5000
    payload_mode: PayloadMode = PayloadMode.REDACTED
    max_payload_preview_bytes: int = 10_000
    batching_enabled: bool = True
    max_batch_size: int = 50
    max_batch_delay: float = 0.1  # seconds
    router_timeout: float = 5.0  # seconds
    reserved_prefix: str = INSPECTOR_PREFIX

    def validate(self) -> "InspectorOptions":
        """Raise ConfigurationError for values the inspector cannot run with."""
        if self.max_events < 1:
            raise ConfigurationError(
                f"max_events must be greater than 0, got {self.max_events}"
            )
        if self.max_payload_preview_bytes < 0:
            raise ConfigurationError("max_payload_preview_bytes must not be negative")
        if self.max_batch_size < 1:
            raise ConfigurationError(
                f"max_batch_size must be greater than 0, got {self.max_batch_size}"
            )
        if self.max_batch_delay < 0:
            raise ConfigurationError("max_batch_delay must not be negative")
        if self.router_timeout <= 0:
            raise ConfigurationError("router_timeout must be greater than 0")
        if not self.reserved_prefix:
            raise ConfigurationError("reserved_prefix must not be empty")
        return self

    @classmethod
    def from_env(cls) -> "InspectorOptions":
        """Build options from INSPECTOR_* environment variables."""
        defaults = cls()
        try:
            options = cls(
                enabled=_env_bool(
                    "INSPECTOR_ENABLED",
                    os.getenv("INSPECTOR_ENV", "development") != "production",
                ),
                max_events=int(os.getenv("INSPECTOR_MAX_EVENTS", defaults.max_events)),
                payload_mode=PayloadMode(
                    os.getenv("INSPECTOR_PAYLOAD_MODE", defaults.payload_mode.value)
                ),
                max_payload_preview_bytes=int(
                    os.getenv(
                        "INSPECTOR_MAX_PREVIEW_BYTES",
                        defaults.max_payload_preview_bytes,
                    )
                ),
                batching_enabled=_env_bool(
                    "INSPECTOR_BATCHING", defaults.batching_enabled
                ),
                max_batch_size=int(
                    os.getenv("INSPECTOR_MAX_BATCH_SIZE", defaults.max_batch_size)
                ),
                max_batch_delay=float(
                    os.getenv("INSPECTOR_MAX_BATCH_DELAY", defaults.max_batch_delay)
                ),
                router_timeout=float(
                    os.getenv("INSPECTOR_ROUTER_TIMEOUT", defaults.router_timeout)
                ),
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid inspector environment: {e}") from e
        return options.validate()


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")
