"""Runtime configuration.

RuntimeConfig collects the tunables of the orchestration core: how long
non-streaming callers wait, the event queue overflow policy, the push
notification retry curve and the storage backend. Values can be loaded
from environment variables or from the ``runtime`` section of a YAML file.
"""

import os
from pathlib import Path
from typing import Optional, Union

from pydantic import BaseModel, Field


def _env_bool(value: str) -> bool:
    return value.lower() in ("true", "1", "yes")


class RuntimeConfig(BaseModel):
    """Configuration for the request handler, event queues and push delivery.

    Queue policy: queues are unbounded unless ``max_queue_size`` is set, in
    which case the oldest buffered event is dropped and lagging readers are
    flagged as overflowed.

    Push policy: each notification is attempted up to ``push_max_attempts``
    times; the delay before attempt n+1 is
    ``push_backoff_base_seconds * push_backoff_factor ** (n - 1)``.
    """

    blocking_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="How long a non-streaming send waits for the execution to finish",
    )
    max_queue_size: Optional[int] = Field(
        default=None,
        ge=1,
        description="Maximum buffered events per task queue (None = unbounded)",
    )

    push_max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Maximum webhook POST attempts per notification",
    )
    push_backoff_base_seconds: float = Field(
        default=0.5,
        ge=0.0,
        description="Delay before the first retry",
    )
    push_backoff_factor: float = Field(
        default=2.0,
        ge=1.0,
        description="Multiplier applied to the delay after each failed attempt",
    )
    push_request_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout for a single webhook POST",
    )

    database_url: Optional[str] = Field(
        default=None,
        description="SQLAlchemy URL for persistent stores (None = in-memory stores)",
    )

    log_level: str = Field(default="INFO")
    json_logs: bool = Field(default=True)

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "RuntimeConfig":
        """Load configuration from a YAML file.

        Args:
            path: Path to YAML configuration file

        Returns:
            RuntimeConfig built from the ``runtime`` section of the file

        Raises:
            FileNotFoundError: If configuration file doesn't exist
            ValueError: If YAML format is invalid
        """
        import yaml  # type: ignore[import-untyped]

        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        try:
            with open(config_path) as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML format in {path}: {e}") from e

        config_data = data.get("runtime", {}) if isinstance(data, dict) else {}
        return cls(**(config_data or {}))

    @classmethod
    def from_env(cls) -> "RuntimeConfig":
        """Load configuration from environment variables.

        Variables follow the pattern ``A2A_RUNTIME_<FIELD_NAME>``, for example
        ``A2A_RUNTIME_PUSH_MAX_ATTEMPTS`` or ``A2A_RUNTIME_DATABASE_URL``.
        Unset variables keep the field default.

        Returns:
            RuntimeConfig instance with environment overrides
        """
        defaults = {name: field.default for name, field in cls.model_fields.items()}

        def env(name: str) -> Optional[str]:
            return os.getenv(f"A2A_RUNTIME_{name.upper()}")

        max_queue_size = env("max_queue_size")
        return cls(
            blocking_timeout_seconds=float(
                env("blocking_timeout_seconds") or defaults["blocking_timeout_seconds"]
            ),
            max_queue_size=int(max_queue_size) if max_queue_size else None,
            push_max_attempts=int(env("push_max_attempts") or defaults["push_max_attempts"]),
            push_backoff_base_seconds=float(
                env("push_backoff_base_seconds") or defaults["push_backoff_base_seconds"]
            ),
            push_backoff_factor=float(
                env("push_backoff_factor") or defaults["push_backoff_factor"]
            ),
            push_request_timeout_seconds=float(
                env("push_request_timeout_seconds") or defaults["push_request_timeout_seconds"]
            ),
            database_url=env("database_url") or defaults["database_url"],
            log_level=env("log_level") or defaults["log_level"],
            json_logs=_env_bool(env("json_logs") or str(defaults["json_logs"])),
        )
