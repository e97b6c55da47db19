import fnmatch
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from ..types import Polarity

logger = logging.getLogger(__name__)

_ALIASES: dict[str, Polarity] = {
    "lower": Polarity.LOWER_IS_BETTER,
    "lower_is_better": Polarity.LOWER_IS_BETTER,
    "higher": Polarity.HIGHER_IS_BETTER,
    "higher_is_better": Polarity.HIGHER_IS_BETTER,
}


def parse_polarity(value: Any) -> Polarity:
    if isinstance(value, Polarity):
        return value
    key = str(value).strip().lower().replace("-", "_").replace(" ", "_")
    try:
        return _ALIASES[key]
    except KeyError:
        allowed = ", ".join(p.value for p in Polarity)
        raise ValueError(f"Unknown polarity {value!r}; expected one of: {allowed}") from None


@dataclass(frozen=True)
class PolarityRule:
    pattern: str
    polarity: Polarity


@dataclass(frozen=True)
class PolarityTable:
    """Lookup of benchmark polarity: exact overrides, then pattern rules, then default."""

    rules: tuple[PolarityRule, ...] = ()
    default: Polarity = Polarity.LOWER_IS_BETTER
    overrides: Mapping[str, Polarity] = field(default_factory=dict)

    def polarity_for(self, benchmark_name: str) -> Polarity:
        if benchmark_name in self.overrides:
            return self.overrides[benchmark_name]
        for rule in self.rules:
            if fnmatch.fnmatchcase(benchmark_name, rule.pattern):
                return rule.polarity
        return self.default

    def with_overrides(self, overrides: Mapping[str, Polarity]) -> "PolarityTable":
        if not overrides:
            return self
        return PolarityTable(
            rules=self.rules,
            default=self.default,
            overrides={**self.overrides, **overrides},
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PolarityTable":
        rules = tuple(
            PolarityRule(pattern=str(r["pattern"]), polarity=parse_polarity(r["polarity"]))
            for r in data.get("rules") or []
        )
        default = parse_polarity(data.get("default", Polarity.LOWER_IS_BETTER))
        overrides = {
            str(name): parse_polarity(p) for name, p in (data.get("benchmarks") or {}).items()
        }
        return cls(rules=rules, default=default, overrides=overrides)

    @classmethod
    def from_file(cls, path: str | Path) -> "PolarityTable":
        with Path(path).open(encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, Mapping):
            raise ValueError(f"Polarity file must be a mapping: {path}")
        table = cls.from_dict(data)
        logger.debug("Loaded %d polarity rules from %s", len(table.rules), path)
        return table
