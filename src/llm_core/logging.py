from __future__ import annotations

import logging
import re
import sys
from collections.abc import Callable, Iterable, Mapping, MutableMapping
from typing import Any, TypeAlias, cast

import structlog


# Header and field names that never reach a log line.
_SENSITIVE_KEYS = {
    "authorization",
    "x-api-key",
    "api_key",
    "apikey",
    "secret",
    "fernet_key",
    "credentials",
}
_SENSITIVE_FRAGMENTS = ("api_key", "secret", "token", "password")

_BEARER_RE = re.compile(r"(?i)\bBearer\s+([A-Za-z0-9._-]{6,})")
_REDACTED = "[REDACTED]"

ProcessorReturn: TypeAlias = Mapping[str, Any] | str | bytes | bytearray | tuple[Any, ...]
Processor: TypeAlias = Callable[[Any, str, MutableMapping[str, Any]], ProcessorReturn]


def _is_sensitive_key(key: Any) -> bool:
    name = str(key).lower()
    if name in _SENSITIVE_KEYS:
        return True
    # token counts are logged on purpose
    if "tokens" in name:
        return False
    return any(fragment in name for fragment in _SENSITIVE_FRAGMENTS)


def redact(value: Any, *, secrets: Iterable[str] = ()) -> Any:
    """Return ``value`` with secret strings and sensitive mapping keys masked."""
    known = [s for s in secrets if s]
    if isinstance(value, str):
        for secret in known:
            value = value.replace(secret, _REDACTED)
        return _BEARER_RE.sub(f"Bearer {_REDACTED}", value)
    if isinstance(value, Mapping):
        return {
            k: (_REDACTED if _is_sensitive_key(k) else redact(v, secrets=known)) for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return type(value)(redact(v, secrets=known) for v in value)
    return value


def _redaction_processor(secrets: list[str]) -> Processor:
    def _processor(_logger: Any, _method_name: str, event_dict: MutableMapping[str, Any]) -> ProcessorReturn:
        return cast(dict[str, Any], redact(event_dict, secrets=secrets))

    return _processor


def configure_logging(level: str = "INFO", fmt: str = "json", *, secrets: list[str] | None = None) -> None:
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=numeric_level, stream=sys.stderr)

    processors: list[Processor] = [
        cast(Processor, structlog.contextvars.merge_contextvars),
        cast(Processor, structlog.processors.add_log_level),
        cast(Processor, structlog.processors.TimeStamper(fmt="iso")),
        # Always on: bearer tokens can show up in upstream error bodies.
        _redaction_processor(list(secrets or [])),
    ]

    if fmt == "json":
        processors.append(cast(Processor, structlog.processors.JSONRenderer()))
    else:
        processors.append(cast(Processor, structlog.dev.ConsoleRenderer()))

    structlog.configure(
        processors=processors,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        cache_logger_on_first_use=True,
    )
