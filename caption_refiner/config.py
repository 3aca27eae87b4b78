"""
config.py

Runtime configuration for transcript refinement.

Configuration:
    Values are resolved by precedence:
    1. Explicit arguments
    2. Environment variables (OPENROUTER_API_KEY, REFINER_MODEL,
       REFINER_API_BASE_URL, REFINER_CONCURRENCY, REFINER_MAX_SEGMENTS_PER_CHUNK)
    3. Optional JSON/YAML configuration file
    4. Module defaults
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict

from .chunker import MAX_SEGMENTS_PER_CHUNK

logger = logging.getLogger(__name__)

# Default configuration values
DEFAULT_MODEL = "google/gemini-2.5-flash-lite-preview-09-2025"
DEFAULT_API_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_TEMPERATURE = 0.0
DEFAULT_CONCURRENCY = 8
DEFAULT_REQUEST_TIMEOUT: float | None = None
DEFAULT_APP_TITLE = "Better YouTube"

# Environment variable names
ENV_API_KEY = "OPENROUTER_API_KEY"
ENV_MODEL = "REFINER_MODEL"
ENV_API_BASE_URL = "REFINER_API_BASE_URL"
ENV_CONCURRENCY = "REFINER_CONCURRENCY"
ENV_MAX_PER_CHUNK = "REFINER_MAX_SEGMENTS_PER_CHUNK"


class ConfigError(Exception):
    """Raised when configuration loading or validation fails."""


@dataclass
class RefinerConfig:
    """Configuration for a refinement run.

    Attributes:
        model: Model identifier sent to the completion endpoint.
        api_base_url: Base URL for the OpenAI-compatible API.
        api_key: API key; resolved from the environment when unset.
        temperature: Sampling temperature.
        request_timeout: Optional per-request timeout (seconds).
        concurrency: Worker pool size for chunk dispatch.
        max_per_chunk: Maximum segments per chunk.
        app_title: Title header sent to OpenRouter.
    """

    model: str = DEFAULT_MODEL
    api_base_url: str = DEFAULT_API_BASE_URL
    api_key: str | None = None
    temperature: float = DEFAULT_TEMPERATURE
    request_timeout: float | None = DEFAULT_REQUEST_TIMEOUT
    concurrency: int = DEFAULT_CONCURRENCY
    max_per_chunk: int = MAX_SEGMENTS_PER_CHUNK
    app_title: str = DEFAULT_APP_TITLE

    def validate(self) -> "RefinerConfig":
        if self.concurrency < 1:
            raise ConfigError(f"concurrency must be >= 1, got {self.concurrency}")
        if self.max_per_chunk < 1:
            raise ConfigError(f"max_per_chunk must be >= 1, got {self.max_per_chunk}")
        if not self.model:
            raise ConfigError("model must not be empty")
        return self


def load_config_file(config_path: str | Path | None) -> Dict[str, Any]:
    """Load configuration from a JSON or YAML file.

    Args:
        config_path: Path to JSON or YAML configuration file.

    Returns:
        Parsed configuration dictionary (empty if no path provided).

    Raises:
        ConfigError: If the file cannot be read or parsed, or is invalid.
    """
    if config_path is None:
        return {}

    path = Path(config_path)
    if not path.exists():
        raise ConfigError(f"Configuration file not found at '{path}'")

    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Failed to read configuration file '{path}': {exc}") from exc

    try:
        if path.suffix.lower() in {".yml", ".yaml"}:
            import yaml

            data = yaml.safe_load(text) or {}
        else:
            data = json.loads(text)
    except Exception as exc:  # noqa: BLE001
        raise ConfigError(f"Failed to parse configuration file '{path}': {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"Configuration file '{path}' must contain a JSON/YAML object.")

    unknown = set(data) - {f.name for f in fields(RefinerConfig)}
    if unknown:
        logger.warning("Ignoring unknown configuration keys in %s: %s", path, ", ".join(sorted(unknown)))

    return data


def _resolve_value(
    override: Any,
    env_value: Any,
    config_value: Any,
    default_value: Any,
) -> Any:
    """Resolve a configuration value by precedence."""
    if override is not None:
        return override
    if env_value is not None:
        return env_value
    if config_value is not None:
        return config_value
    return default_value


def _env_int(name: str) -> int | None:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return None
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"Environment variable {name} must be an integer, got '{raw}'") from exc


def load_refiner_config(
    model: str | None = None,
    api_base_url: str | None = None,
    api_key: str | None = None,
    temperature: float | None = None,
    request_timeout: float | None = None,
    concurrency: int | None = None,
    max_per_chunk: int | None = None,
    config_path: str | Path | None = None,
) -> RefinerConfig:
    """Build a validated RefinerConfig from arguments, environment, file and defaults."""

    file_config = load_config_file(config_path)

    timeout_value = _resolve_value(request_timeout, None, file_config.get("request_timeout"), DEFAULT_REQUEST_TIMEOUT)

    config = RefinerConfig(
        model=str(_resolve_value(model, os.environ.get(ENV_MODEL), file_config.get("model"), DEFAULT_MODEL)),
        api_base_url=str(
            _resolve_value(
                api_base_url,
                os.environ.get(ENV_API_BASE_URL),
                file_config.get("api_base_url"),
                DEFAULT_API_BASE_URL,
            )
        ),
        api_key=_resolve_value(api_key, os.environ.get(ENV_API_KEY), file_config.get("api_key"), None),
        temperature=float(_resolve_value(temperature, None, file_config.get("temperature"), DEFAULT_TEMPERATURE)),
        request_timeout=float(timeout_value) if timeout_value is not None else None,
        concurrency=int(
            _resolve_value(concurrency, _env_int(ENV_CONCURRENCY), file_config.get("concurrency"), DEFAULT_CONCURRENCY)
        ),
        max_per_chunk=int(
            _resolve_value(
                max_per_chunk,
                _env_int(ENV_MAX_PER_CHUNK),
                file_config.get("max_per_chunk"),
                MAX_SEGMENTS_PER_CHUNK,
            )
        ),
        app_title=str(file_config.get("app_title") or DEFAULT_APP_TITLE),
    )

    logger.debug(
        "Resolved refiner config: model=%s, base_url=%s, concurrency=%s, max_per_chunk=%s",
        config.model,
        config.api_base_url,
        config.concurrency,
        config.max_per_chunk,
    )
    return config.validate()


__all__ = [
    "ConfigError",
    "DEFAULT_API_BASE_URL",
    "DEFAULT_CONCURRENCY",
    "DEFAULT_MODEL",
    "ENV_API_KEY",
    "RefinerConfig",
    "load_config_file",
    "load_refiner_config",
]
