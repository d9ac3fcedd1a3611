from __future__ import annotations

import tomllib
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import structlog

log = structlog.get_logger()

TOKENS_PER_RATE_UNIT = 1_000_000


@dataclass(frozen=True)
class ModelRates:
    """USD per million tokens."""

    input: float
    output: float


def _rate(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


class PriceTable:
    """
    Read-only model -> rates lookup, loaded from pricing.toml:

        [models."claude-3-5-sonnet-20241022"]
        input = 3.00
        output = 15.00

    Pricing is advisory. A missing or broken file is an empty table, and a
    malformed entry is skipped.
    """

    def __init__(self, rates: Mapping[str, ModelRates] | None = None):
        self._rates: dict[str, ModelRates] = dict(rates or {})

    def __contains__(self, model: object) -> bool:
        return model in self._rates

    def __len__(self) -> int:
        return len(self._rates)

    def get(self, model: str) -> ModelRates | None:
        return self._rates.get(model)

    @classmethod
    def load(cls, path: str | Path) -> "PriceTable":
        path = Path(path)
        if not path.exists():
            return cls()
        try:
            parsed = tomllib.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, tomllib.TOMLDecodeError) as e:
            log.warning("pricing_unreadable", path=str(path), error=str(e))
            return cls()
        return cls.from_mapping(parsed.get("models", {}))

    @classmethod
    def from_mapping(cls, models: Any) -> "PriceTable":
        if not isinstance(models, Mapping):
            return cls()
        rates: dict[str, ModelRates] = {}
        for name, entry in models.items():
            if not isinstance(entry, Mapping):
                continue
            input_rate, output_rate = _rate(entry.get("input")), _rate(entry.get("output"))
            if input_rate is None or output_rate is None:
                log.debug("pricing_entry_skipped", model=name)
                continue
            rates[str(name)] = ModelRates(input=input_rate, output=output_rate)
        return cls(rates)


def estimate_cost(model: str, input_tokens: int, output_tokens: int, table: PriceTable) -> float | None:
    """Estimated USD for one completion; None when the model has no rates."""
    rates = table.get(model)
    if rates is None:
        return None
    return (input_tokens / TOKENS_PER_RATE_UNIT) * rates.input + (
        output_tokens / TOKENS_PER_RATE_UNIT
    ) * rates.output
