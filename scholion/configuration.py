"""Prepper-backed configuration loader for Scholion."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal, Mapping, Sequence

from dotenv import dotenv_values
from prepper import (
    Field,
    IoError,
    SchemaError,
    SchemaModel,
    ValidationError,
    model_validator,
)
from prepper.config import ConfigInstance
from prepper.loaders import _parse_file, _path_to_source, discover_file_paths
from prepper.merge import merge_layer
from prepper.provenance import ProvenanceRecorder

from .cache import DEFAULT_CAPACITY
from .errors import ProviderConfigurationError
from .structures import DEFAULT_LANGUAGE

APP_NAME = "Scholion"


class ScholionConfig(SchemaModel):
    """Schema describing all supported configuration options."""

    SCHOLION_PROVIDER: Literal["http", "memory"] = Field(
        default="http",
        description="Text provider selection.",
    )
    SCHOLION_API_BASE_URL: str = Field(
        default="http://localhost:8080",
        description="Base URL of the reader API serving /api/text, /api/titles and /api/annotation.",
    )
    SCHOLION_DATA_FILE: str | None = Field(
        default=None,
        description="JSON file with texts and titles for the memory provider.",
    )
    SCHOLION_DEFAULT_LANGUAGE: str = Field(default=DEFAULT_LANGUAGE)
    SCHOLION_CACHE_CAPACITY: int = Field(default=DEFAULT_CAPACITY)
    SCHOLION_REQUEST_RETRIES: int = Field(default=3)
    SCHOLION_REQUEST_TIMEOUT: float = Field(default=30.0)
    SCHOLION_PROVIDER_DEBUG: bool = Field(default=False)

    @model_validator(mode="before")
    def _normalise_provider(data: Any) -> Any:
        if isinstance(data, dict):
            raw_value = data.get("SCHOLION_PROVIDER")
            if isinstance(raw_value, str):
                normalized = raw_value.strip().lower().replace("_", "-")
                synonyms = {
                    "api": "http",
                    "in-memory": "memory",
                    "mock": "memory",
                }
                normalized = synonyms.get(normalized, normalized)
                if normalized not in {"http", "memory"}:
                    normalized = "http"
                data["SCHOLION_PROVIDER"] = normalized
        return data


@lru_cache(maxsize=1)
def _load_config_instance(app_dir: Path | None = None) -> ConfigInstance:
    """Load configuration layers once and cache the immutable instance."""

    base_dir = app_dir or Path.cwd()
    try:
        provenance = ProvenanceRecorder()
        combined = _load_discovered_yaml(app_dir=base_dir, provenance=provenance)
        _merge_env_sources(
            combined,
            provenance=provenance,
            app_dir=base_dir,
            schema=ScholionConfig,
        )

        model = ScholionConfig.validate(combined, provenance=provenance)
        _validate_settings(model)

        instance = ConfigInstance(
            model=model,
            provenance=provenance,
            env_prefix=None,
            schema_cls=ScholionConfig,
        )
        return instance
    except IoError as exc:
        raise ProviderConfigurationError(
            f"Configuration files could not be read: {exc}"
        ) from exc
    except SchemaError as exc:
        raise ProviderConfigurationError(
            f"Configuration schema error: {exc}"
        ) from exc
    except ValidationError as exc:
        issues = _format_validation_errors(exc.to_dict())
        raise ProviderConfigurationError(issues) from exc


def _load_discovered_yaml(
    *,
    app_dir: Path,
    provenance: ProvenanceRecorder,
) -> dict[str, Any]:
    """Load YAML configuration files using Prepper's discovery rules."""

    result: dict[str, Any] = {}
    discovered = discover_file_paths(
        APP_NAME,
        "yaml",
        app_dir=app_dir,
        extra_paths=None,
    )
    for path, label in discovered:
        parsed = _parse_file(path, "yaml")
        if not isinstance(parsed, Mapping):
            raise IoError(
                f"Invalid configuration file {path}: expected a mapping at the root."
            )
        source = _path_to_source(label, "yaml", path)
        merge_layer(result, parsed, provenance=provenance, source=source, layer="file")
    return result


def _merge_env_sources(
    target: dict[str, Any],
    *,
    provenance: ProvenanceRecorder,
    app_dir: Path,
    schema: type[SchemaModel],
) -> None:
    """Merge .env and process environment variables into the target mapping."""

    allowed = set(schema.__field_infos__.keys())

    def merge_values(values: Mapping[str, str], *, source_prefix: str) -> None:
        for key, value in sorted(values.items()):
            if value is None:
                continue
            if key not in allowed:
                continue
            merge_layer(
                target,
                {key: value},
                provenance=provenance,
                source=f"env:{source_prefix}:{key}",
                layer="env",
            )

    dotenv_path = app_dir / ".env"
    if dotenv_path.exists():
        dotenv_content = dotenv_values(dotenv_path)
        merge_values(
            {k: v for k, v in dotenv_content.items() if v is not None},
            source_prefix=".env",
        )

    merge_values(
        {k: v for k, v in os.environ.items() if isinstance(v, str)},
        source_prefix="process",
    )


def _validate_settings(settings: ScholionConfig) -> None:
    errors: list[str] = []

    if settings.SCHOLION_PROVIDER == "http" and not settings.SCHOLION_API_BASE_URL:
        errors.append(
            "SCHOLION_API_BASE_URL is required when SCHOLION_PROVIDER is 'http'."
        )
    if settings.SCHOLION_PROVIDER == "memory" and not settings.SCHOLION_DATA_FILE:
        errors.append(
            "SCHOLION_DATA_FILE is required when SCHOLION_PROVIDER is 'memory'."
        )
    if settings.SCHOLION_CACHE_CAPACITY < 1:
        errors.append("SCHOLION_CACHE_CAPACITY must be at least 1.")
    if settings.SCHOLION_REQUEST_RETRIES < 1:
        errors.append("SCHOLION_REQUEST_RETRIES must be at least 1.")

    if errors:
        bullet_list = "\n".join(f"- {message}" for message in errors)
        raise ProviderConfigurationError(
            "Configuration validation errors detected:\n" + bullet_list
        )


def _format_validation_errors(entries: Sequence[dict[str, Any]]) -> str:
    details: list[str] = []
    for entry in entries:
        path = entry.get("path") or []
        if isinstance(path, (list, tuple)):
            location = ".".join(str(part) for part in path if part not in {None, ""})
        else:
            location = str(path)
        message = str(entry.get("message") or entry.get("msg") or "Invalid value")
        source = entry.get("source")
        origin = f" (source: {source})" if source else ""
        prefix = f"{location}: " if location else ""
        details.append(f"- {prefix}{message}{origin}")
    return "Configuration validation errors detected:\n" + "\n".join(details)


def get_config(app_dir: Path | None = None) -> ConfigInstance:
    """Return the immutable configuration instance."""

    return _load_config_instance(app_dir=app_dir)


def get_settings(app_dir: Path | None = None) -> ScholionConfig:
    """Return the validated schema model for typed access."""

    return get_config(app_dir=app_dir).model()


def reset_settings() -> None:
    """Forget the cached configuration so the next lookup reloads every layer."""

    _load_config_instance.cache_clear()
