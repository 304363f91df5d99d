"""Scheduler options and request context read from a flat key-value store.

The store is the same flat mapping the options page writes (camelCase keys);
it is consumed verbatim, absent keys fall back to the defaults in
``constants.py`` and keys this module doesn't know are ignored.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from typing import Any, Mapping, Optional

from pagetranslate.config.constants import (
    DEFAULT_BASE_BACKOFF_MS,
    DEFAULT_CAPACITY,
    DEFAULT_MAX_BACKOFF_MS,
    DEFAULT_MAX_BATCH_CHARS,
    DEFAULT_MAX_CONCURRENT,
    DEFAULT_MAX_RETRIES,
    DEFAULT_MAX_SEGMENT_LENGTH,
    DEFAULT_MIN_INTERVAL_MS,
    DEFAULT_MIN_SEGMENT_LENGTH,
    DEFAULT_REFILL_PER_SECOND,
    MIN_WAVE_PACING_MS,
)
from pagetranslate.config.models import get_target_language, normalize_model_name
from pagetranslate.errors import ConfigurationError

logger = logging.getLogger(__name__)

# store key -> (attribute, type, minimum); refillPerSecond must be strictly positive
_OPTION_KEYS = {
    'capacity': ('capacity', int, 1),
    'refillPerSecond': ('refill_per_second', float, 0.0),
    'maxRetries': ('max_retries', int, 0),
    'baseBackoffMs': ('base_backoff_ms', float, 0.0),
    'maxBackoffMs': ('max_backoff_ms', float, 0.0),
    'maxConcurrent': ('max_concurrent', int, 1),
    'maxSegmentLength': ('max_segment_length', int, 1),
    'minSegmentLength': ('min_segment_length', int, 0),
    'maxBatchChars': ('max_batch_chars', int, 1),
    'minIntervalMs': ('min_interval_ms', float, 0.0),
}

_CONTEXT_KEYS = ('apiKey', 'targetLanguage', 'model')


def _coerce(key: str, value: Any, kind: type) -> Any:
    # bool is an int subclass; a checkbox value is never a valid number here
    if isinstance(value, bool):
        raise ConfigurationError(f"{key}: expected a number, got {value!r}")
    try:
        if kind is int:
            if isinstance(value, float) and not value.is_integer():
                raise ValueError(value)
            converted = int(value)
        else:
            converted = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{key}: expected a number, got {value!r}") from exc
    return converted


@dataclass(frozen=True)
class SchedulerOptions:
    """Tunables for the request scheduler (times in milliseconds).

    Out-of-range values raise ``ConfigurationError`` on construction.
    """

    capacity: int = DEFAULT_CAPACITY
    refill_per_second: float = DEFAULT_REFILL_PER_SECOND
    max_retries: int = DEFAULT_MAX_RETRIES
    base_backoff_ms: float = DEFAULT_BASE_BACKOFF_MS
    max_backoff_ms: float = DEFAULT_MAX_BACKOFF_MS
    max_concurrent: int = DEFAULT_MAX_CONCURRENT
    max_segment_length: int = DEFAULT_MAX_SEGMENT_LENGTH
    min_segment_length: int = DEFAULT_MIN_SEGMENT_LENGTH
    max_batch_chars: int = DEFAULT_MAX_BATCH_CHARS
    min_interval_ms: float = DEFAULT_MIN_INTERVAL_MS

    def __post_init__(self) -> None:
        for key, (attribute, _, minimum) in _OPTION_KEYS.items():
            value = getattr(self, attribute)
            if value < minimum or (key == 'refillPerSecond' and value <= 0):
                raise ConfigurationError(f"{key}: value {value!r} is out of range")
        if self.min_segment_length > self.max_segment_length:
            raise ConfigurationError(
                "minSegmentLength must not exceed maxSegmentLength "
                f"({self.min_segment_length} > {self.max_segment_length})"
            )

    @classmethod
    def from_mapping(cls, store: Optional[Mapping[str, Any]] = None) -> SchedulerOptions:
        """Build options from a flat key-value store.

        Args:
            store: Mapping with camelCase keys (``maxRetries``, ...); None
                means "all defaults".

        Raises:
            ConfigurationError: A recognised key holds a non-numeric or
                out-of-range value, or segment bounds contradict each other.
        """
        values: dict[str, Any] = {}
        for key, raw in (store or {}).items():
            spec = _OPTION_KEYS.get(key)
            if spec is None:
                if key not in _CONTEXT_KEYS:
                    logger.debug("Ignoring unknown option key %r", key)
                continue
            if raw is None:
                continue
            attribute, kind, _ = spec
            values[attribute] = _coerce(key, raw, kind)
        return cls(**values)

    def to_mapping(self) -> dict[str, Any]:
        """Return the options as a flat camelCase store."""
        by_attribute = {spec[0]: key for key, spec in _OPTION_KEYS.items()}
        return {by_attribute[f.name]: getattr(self, f.name) for f in fields(self)}

    @property
    def base_backoff(self) -> float:
        return self.base_backoff_ms / 1000.0

    @property
    def max_backoff(self) -> float:
        return self.max_backoff_ms / 1000.0

    @property
    def min_interval(self) -> float:
        return self.min_interval_ms / 1000.0

    @property
    def wave_pacing(self) -> float:
        """Pause between two waves of concurrent batches, in seconds."""
        return max(MIN_WAVE_PACING_MS, self.min_interval_ms) / 1000.0


@dataclass(frozen=True)
class RequestContext:
    """Per-request parameters threaded through the scheduler to the client."""

    api_key: Optional[str]
    target_language: str
    model: str

    @classmethod
    def from_mapping(cls, store: Optional[Mapping[str, Any]] = None) -> RequestContext:
        """Read ``apiKey``, ``targetLanguage`` and ``model`` from a store."""
        store = store or {}
        api_key = store.get('apiKey')
        if isinstance(api_key, str):
            api_key = api_key.strip() or None
        target = str(store.get('targetLanguage') or '').strip() or get_target_language()
        return cls(
            api_key=api_key,
            target_language=target,
            model=normalize_model_name(store.get('model')),
        )

    @property
    def has_credential(self) -> bool:
        return bool(self.api_key)
