"""Detector configuration and its YAML loader.

One Configuration is shared read-only by every client of a detector, so it
is frozen.  The loader validates up front and raises ValueError naming the
file and field; nothing downstream re-checks.
"""

from dataclasses import dataclass, field
from pathlib import Path

import yaml

from ratecheck.clock import LagMode

DEFAULT_CONFIG = Path(__file__).resolve().parent / "configs" / "fastplace.yml"

KNOWN_ACTIONS = ("cancel", "log", "kick")

_REQUIRED_FIELDS = ("full_window_limit", "short_term_ticks", "short_term_limit", "actions")


@dataclass(frozen=True)
class ActionThreshold:
    threshold: float
    actions: tuple[str, ...]

    @property
    def cancels(self) -> bool:
        return "cancel" in self.actions


@dataclass(frozen=True)
class Configuration:
    full_window_limit: float = 22.0
    bucket_duration_ms: int = 1000
    number_of_buckets: int = 2
    # Window the full score is scaled to.  None = the ring's own span.
    rate_reference_ms: float | None = None
    short_term_ticks: int = 10
    short_term_limit: int = 4
    lag_compensation: bool = True
    lag_mode: LagMode = LagMode.CAPPED
    burst_lag_threshold: float = 1.2
    decay_eligibility_ratio: float = 0.75
    decay_multiplier: float = 0.95
    violation_divisor: float = 1000.0
    # Ascending by threshold.
    actions: tuple[ActionThreshold, ...] = field(default_factory=tuple)

    def window_span(self) -> int:
        return self.bucket_duration_ms * self.number_of_buckets


def load_config(path: str | Path = DEFAULT_CONFIG) -> Configuration:
    """Parse and validate a YAML config file."""
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {path}")
    with open(path) as f:
        definition = yaml.safe_load(f)
    return parse_config(definition, source=path.name)


def parse_config(definition: dict, source: str = "<config>") -> Configuration:
    if not isinstance(definition, dict):
        raise ValueError(f"{source}: top level must be a mapping")

    for name in _REQUIRED_FIELDS:
        if name not in definition:
            raise ValueError(f"{source}: missing required field '{name}'")

    unknown = set(definition) - set(Configuration.__dataclass_fields__)
    if unknown:
        raise ValueError(f"{source}: unknown field(s) {sorted(unknown)}")

    kwargs = dict(definition)
    kwargs["actions"] = _parse_actions(definition["actions"], source)

    mode = definition.get("lag_mode", LagMode.CAPPED.value)
    try:
        kwargs["lag_mode"] = LagMode(mode)
    except ValueError:
        raise ValueError(f"{source}: lag_mode must be 'capped' or 'uncapped', got {mode!r}")

    config = Configuration(**kwargs)
    _check_ranges(config, source)
    return config


def _parse_actions(raw, source: str) -> tuple[ActionThreshold, ...]:
    if not isinstance(raw, list):
        raise ValueError(f"{source}: 'actions' must be a list")

    entries = []
    for item in raw:
        if "threshold" not in item or "do" not in item:
            raise ValueError(f"{source}: each action entry needs 'threshold' and 'do'")
        names = item["do"]
        if isinstance(names, str):
            names = [names]
        for name in names:
            if name not in KNOWN_ACTIONS:
                raise ValueError(f"{source}: unknown action '{name}'")
        threshold = float(item["threshold"])
        if threshold < 0:
            raise ValueError(f"{source}: action threshold must be >= 0")
        entries.append(ActionThreshold(threshold, tuple(names)))

    return tuple(sorted(entries, key=lambda e: e.threshold))


def _check_ranges(config: Configuration, source: str) -> None:
    positive = ("full_window_limit", "bucket_duration_ms", "number_of_buckets",
                "short_term_ticks", "violation_divisor", "burst_lag_threshold")
    for name in positive:
        if getattr(config, name) <= 0:
            raise ValueError(f"{source}: '{name}' must be positive")
    if config.rate_reference_ms is not None and config.rate_reference_ms <= 0:
        raise ValueError(f"{source}: 'rate_reference_ms' must be positive")
    if config.short_term_limit < 0:
        raise ValueError(f"{source}: 'short_term_limit' must be >= 0")
    if not 0 < config.decay_multiplier <= 1:
        raise ValueError(f"{source}: 'decay_multiplier' must be in (0, 1]")
    if config.decay_eligibility_ratio < 0:
        raise ValueError(f"{source}: 'decay_eligibility_ratio' must be >= 0")
