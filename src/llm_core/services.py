from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import structlog
from pydantic import BaseModel

from .config import LLMCoreConfig
from .errors import ConfigurationError, ServiceNotFoundError

log = structlog.get_logger()

DEFAULT_SERVICES_TOML = """\
default_service = "anthropic"

[services.anthropic]
adapter = "anthropic"
key = "anthropic"
base_url = "https://api.anthropic.com/v1"

[services.openai]
adapter = "openai"
key = "openai"
base_url = "https://api.openai.com/v1"

[services.ollama]
adapter = "ollama"
base_url = "http://localhost:11434"
key_required = false
"""

_OPTIONAL_STR_FIELDS = ("key", "default_model")


class ServiceConfig(BaseModel):
    name: str
    adapter: str
    base_url: str
    key: str | None = None
    key_required: bool = True
    default_model: str | None = None


@dataclass(frozen=True)
class ServiceMap:
    default_service: str
    services: dict[str, ServiceConfig]


def _invalid(message: str, path: Path) -> ConfigurationError:
    return ConfigurationError(f"Invalid config: {message} in {path}", path=path)


def parse_service_map(raw: str, path: Path) -> ServiceMap:
    """Parse and validate services TOML text. ``path`` is only used in errors."""
    try:
        parsed = tomllib.loads(raw)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Failed to parse {path}: {e}", path=path) from e

    default_service = parsed.get("default_service")
    if not isinstance(default_service, str):
        raise _invalid('missing or non-string "default_service"', path)

    entries = parsed.get("services")
    if not isinstance(entries, dict):
        raise _invalid("missing or invalid [services] section", path)

    services: dict[str, ServiceConfig] = {}
    for name, entry in entries.items():
        services[name] = _parse_service(name, entry, path)

    if default_service not in services:
        available = ", ".join(services)
        raise _invalid(
            f'default_service "{default_service}" not found in [services]. Available: [{available}]', path
        )

    return ServiceMap(default_service=default_service, services=services)


def _parse_service(name: str, entry: Any, path: Path) -> ServiceConfig:
    if not isinstance(entry, dict):
        raise _invalid(f'service "{name}" must be a table', path)
    for field in ("adapter", "base_url"):
        if not isinstance(entry.get(field), str):
            raise _invalid(f'service "{name}" missing "{field}" field', path)
    for field in _OPTIONAL_STR_FIELDS:
        if field in entry and not isinstance(entry[field], str):
            raise _invalid(f'service "{name}" field "{field}" must be a string', path)
    if "key_required" in entry and not isinstance(entry["key_required"], bool):
        raise _invalid(f'service "{name}" field "key_required" must be a boolean', path)

    return ServiceConfig(
        name=name,
        adapter=entry["adapter"],
        base_url=entry["base_url"],
        key=entry.get("key"),
        key_required=entry.get("key_required", True),
        default_model=entry.get("default_model"),
    )


class ServiceRegistry:
    """
    Owns the services map for one configuration file.

    The map is read (and, on first run, generated) lazily and then cached
    until `reset()`. Hosts that need isolation construct their own registry
    instead of sharing the process default.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._map: ServiceMap | None = None

    def reset(self) -> None:
        self._map = None

    def load(self) -> ServiceMap:
        if self._map is not None:
            return self._map

        if not self.path.exists():
            self._write_defaults()

        try:
            raw = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigurationError(f"Failed to read {self.path}: {e}", path=self.path) from e

        service_map = parse_service_map(raw, self.path)
        log.debug("services_loaded", path=str(self.path), services=list(service_map.services))
        self._map = service_map
        return service_map

    def _write_defaults(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(DEFAULT_SERVICES_TOML, encoding="utf-8")
        except OSError as e:
            raise ConfigurationError(
                f"Failed to create default services.toml at {self.path}: {e}", path=self.path
            ) from e
        log.info("services_defaults_written", path=str(self.path))

    def resolve(self, name: str | None = None) -> ServiceConfig:
        service_map = self.load()
        service_name = name if name is not None else service_map.default_service
        service = service_map.services.get(service_name)
        if service is None:
            raise ServiceNotFoundError(service_name, list(service_map.services))
        return service

    def list_names(self) -> list[str]:
        return list(self.load().services)


_default_registry: ServiceRegistry | None = None


def get_service_registry(cfg: LLMCoreConfig | None = None) -> ServiceRegistry:
    global _default_registry
    if _default_registry is None:
        _default_registry = ServiceRegistry((cfg or LLMCoreConfig()).services_file())
    return _default_registry


def reset_service_registry() -> None:
    """Drop the process-wide registry and its cached map. Test use only."""
    global _default_registry
    if _default_registry is not None:
        _default_registry.reset()
    _default_registry = None


def resolve_service(name: str | None = None) -> ServiceConfig:
    return get_service_registry().resolve(name)


def list_services() -> list[str]:
    return get_service_registry().list_names()
