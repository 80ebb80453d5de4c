"""Prepper-backed configuration loader for Multilingo."""

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

from .engines import DEFAULT_ENDPOINT
from .errors import ConfigurationError

APP_NAME = "Multilingo"

ENGINE_SYNONYMS = {
    "default": "http",
    "lingo": "http",
    "gpt": "openai",
    "noop": "echo",
    "mock": "echo",
}


def normalise_engine_name(value: str) -> str:
    """Map an engine name or synonym onto http, openai or echo; unknown names fall back to http."""

    normalized = value.strip().lower().replace("-", "_")
    normalized = ENGINE_SYNONYMS.get(normalized, normalized)
    if normalized not in {"http", "openai", "echo"}:
        return "http"
    return normalized


class MultilingoConfig(SchemaModel):
    """Schema describing all supported configuration options."""

    MULTILINGO_ENGINE: Literal["http", "openai", "echo"] = Field(
        default="http",
        description="Translation backend used for detection and translation calls.",
    )
    MULTILINGO_ENDPOINT: str = Field(
        default=DEFAULT_ENDPOINT,
        description="URL of the JSON translate endpoint for the http engine.",
    )
    MULTILINGO_API_KEY: str | None = Field(default=None, secret=True)
    OPENAI_API_KEY: str | None = Field(default=None, secret=True)
    MULTILINGO_OPENAI_MODEL: str = Field(default="gpt-4o-mini")
    MULTILINGO_REQUEST_TIMEOUT: float | None = Field(
        default=30.0,
        description="Seconds before a single detection or translation call fails.",
    )
    MULTILINGO_AUTO_CLOSE_DELAY: float = Field(
        default=3.5,
        description="Seconds the immersive display stays open after a batch settles.",
    )
    MULTILINGO_PROVIDER_DEBUG: bool = Field(default=False)

    @model_validator(mode="before")
    def _normalise_engine(data: Any) -> Any:
        if isinstance(data, dict):
            raw_value = data.get("MULTILINGO_ENGINE")
            if isinstance(raw_value, str):
                data["MULTILINGO_ENGINE"] = normalise_engine_name(raw_value)
        return data

    def credential(self, engine: str | None = None) -> str:
        """Return the credential bundled with each call.

        ``engine`` overrides the configured engine, e.g. when chosen on the
        command line.
        """

        selected = normalise_engine_name(engine) if engine else self.MULTILINGO_ENGINE
        if selected == "openai":
            return self.OPENAI_API_KEY or ""
        if selected == "echo":
            return self.MULTILINGO_API_KEY or "echo"
        return self.MULTILINGO_API_KEY or ""


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
            schema=MultilingoConfig,
        )

        model = MultilingoConfig.validate(combined, provenance=provenance)
        _validate_engine_settings(model)

        return ConfigInstance(
            model=model,
            provenance=provenance,
            env_prefix=None,
            schema_cls=MultilingoConfig,
        )
    except IoError as exc:
        raise ConfigurationError(
            f"Configuration files could not be read: {exc}"
        ) from exc
    except SchemaError as exc:
        raise ConfigurationError(f"Configuration schema error: {exc}") from exc
    except ValidationError as exc:
        issues = _format_validation_errors(exc.to_dict())
        raise ConfigurationError(issues) from exc


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


def _validate_engine_settings(settings: MultilingoConfig) -> None:
    errors: list[str] = []

    if settings.MULTILINGO_ENGINE == "http":
        endpoint = (settings.MULTILINGO_ENDPOINT or "").strip()
        if not endpoint.startswith(("http://", "https://")):
            errors.append(
                "MULTILINGO_ENDPOINT must be an http(s) URL when MULTILINGO_ENGINE is 'http'."
            )
    if settings.MULTILINGO_REQUEST_TIMEOUT is not None and settings.MULTILINGO_REQUEST_TIMEOUT <= 0:
        errors.append("MULTILINGO_REQUEST_TIMEOUT must be a positive number of seconds.")
    if settings.MULTILINGO_AUTO_CLOSE_DELAY < 0:
        errors.append("MULTILINGO_AUTO_CLOSE_DELAY cannot be negative.")

    if errors:
        bullet_list = "\n".join(f"- {message}" for message in errors)
        raise ConfigurationError(
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


def get_settings(app_dir: Path | None = None) -> MultilingoConfig:
    """Return the validated schema model for typed access."""

    return get_config(app_dir=app_dir).model()
