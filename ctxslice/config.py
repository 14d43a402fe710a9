"""Defaults, per-call extraction options and persisted configuration."""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict

from .text import Messages

DEFAULT_CONFIG_DIR = Path(os.path.expanduser("~")) / ".ctxslice"
CONFIG_DIR = DEFAULT_CONFIG_DIR
CONFIG_FILE = CONFIG_DIR / "config.json"

DEFAULT_LANGUAGE = "javascript"
SUPPORTED_LANGUAGES: tuple[str, ...] = (DEFAULT_LANGUAGE, "typescript", "tsx")
DEFAULT_LINE_WINDOW = 5
DEFAULT_NESTING_LEVEL = 0
MAX_NESTING_LEVEL = 50
DEFAULT_DECLARATIONS_BUDGET = 2000
DEFAULT_RELEVANT_BUDGET = 4000
DEFAULT_RANKED_BUDGET = 8000
MIN_RANKED_BUDGET = 1000
DEFAULT_TOP_K = 3
DEFAULT_MIN_SIMILARITY = 0.05
DEFAULT_TEST_OBJECT = "pm"
DEFAULT_TEST_METHOD = "test"


@dataclass(frozen=True, slots=True)
class TierPercents:
    a: float = 0.4
    b: float = 0.3
    c: float = 0.2
    d: float = 0.1

    def __post_init__(self) -> None:
        for value in (self.a, self.b, self.c, self.d):
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
                raise ValueError(Messages.ERROR_TIER_PERCENTS_INVALID)

    @classmethod
    def from_value(cls, value: object) -> "TierPercents":
        """Accept a TierPercents, a mapping keyed A-D, a sequence, or "a,b,c,d"."""

        if isinstance(value, TierPercents):
            return value
        if isinstance(value, Mapping):
            lowered = {str(k).lower(): v for k, v in value.items()}
            try:
                return cls(*(float(lowered[k]) for k in ("a", "b", "c", "d")))
            except (KeyError, TypeError, ValueError) as exc:
                raise ValueError(Messages.ERROR_TIER_PERCENTS_INVALID) from exc
        if isinstance(value, str):
            value = [part for part in value.replace(" ", "").split(",") if part]
        if isinstance(value, (list, tuple)) and len(value) == 4:
            try:
                return cls(*(float(v) for v in value))
            except (TypeError, ValueError) as exc:
                raise ValueError(Messages.ERROR_TIER_PERCENTS_INVALID) from exc
        raise ValueError(Messages.ERROR_TIER_PERCENTS_INVALID)

    def as_dict(self) -> dict[str, float]:
        return {"A": self.a, "B": self.b, "C": self.c, "D": self.d}


DEFAULT_TIER_PERCENTS = TierPercents()


@dataclass(frozen=True, slots=True)
class TestCallPattern:
    """Recognizes ``<object_name>.<method_name>("title", ...)`` test calls."""

    __test__ = False

    object_name: str = DEFAULT_TEST_OBJECT
    method_name: str = DEFAULT_TEST_METHOD

    @classmethod
    def parse(cls, value: str) -> "TestCallPattern":
        obj, sep, method = (value or "").strip().partition(".")
        if not sep or not obj.isidentifier() or not method.isidentifier():
            raise ValueError(Messages.ERROR_TEST_PATTERN_INVALID.format(value=value))
        return cls(obj, method)

    @property
    def callee(self) -> str:
        return f"{self.object_name}.{self.method_name}"

    def matches(self, object_name: str, method_name: str) -> bool:
        return object_name == self.object_name and method_name == self.method_name


DEFAULT_TEST_PATTERN = TestCallPattern()


@dataclass(frozen=True, slots=True)
class ContextOptions:
    """Options recognized by the extraction queries.

    Line window resolution follows ``number_of_*_lines``, then
    ``raw_*_lines``, then ``fallback_line_window``, then the default of 5.
    """

    fallback_line_window: int | None = None
    number_of_prefix_lines: int | None = None
    number_of_suffix_lines: int | None = None
    raw_prefix_lines: int | None = None
    raw_suffix_lines: int | None = None
    nesting_level: int = DEFAULT_NESTING_LEVEL
    max_chars_budget: int | None = None
    tier_percents: TierPercents = DEFAULT_TIER_PERCENTS
    include_leading_comments: bool = True
    force_raw_lines_around_cursor: bool = False
    top_k: int = DEFAULT_TOP_K
    min_similarity_threshold: float = DEFAULT_MIN_SIMILARITY
    debug: bool = False

    @property
    def prefix_lines(self) -> int:
        return _first_set(
            self.number_of_prefix_lines, self.raw_prefix_lines, self.fallback_line_window
        )

    @property
    def suffix_lines(self) -> int:
        return _first_set(
            self.number_of_suffix_lines, self.raw_suffix_lines, self.fallback_line_window
        )

    @property
    def safe_nesting_level(self) -> int:
        return max(0, min(int(self.nesting_level or 0), MAX_NESTING_LEVEL))

    def budget_or(self, default: int) -> int:
        if self.max_chars_budget is None:
            return default
        return max(0, int(self.max_chars_budget))

    def with_overrides(self, **overrides: Any) -> "ContextOptions":
        return replace(self, **overrides)


def _first_set(*values: int | None) -> int:
    for value in values:
        if value is not None:
            return max(0, int(value))
    return DEFAULT_LINE_WINDOW


_OPTIONAL_INT_OPTIONS = frozenset(
    {
        "fallback_line_window",
        "number_of_prefix_lines",
        "number_of_suffix_lines",
        "raw_prefix_lines",
        "raw_suffix_lines",
        "max_chars_budget",
    }
)
_INT_OPTIONS = frozenset({"nesting_level", "top_k"})
_FLOAT_OPTIONS = frozenset({"min_similarity_threshold"})
_BOOL_OPTIONS = frozenset(
    {"include_leading_comments", "force_raw_lines_around_cursor", "debug"}
)


def _check_option(name: str, value: object) -> object:
    """Return *value* if it has the type option *name* expects, else raise ``ValueError``."""

    if name == "tier_percents":
        return DEFAULT_TIER_PERCENTS if value is None else TierPercents.from_value(value)
    if value is None and name in _OPTIONAL_INT_OPTIONS:
        return None
    if name in _BOOL_OPTIONS and isinstance(value, bool):
        return value
    if not isinstance(value, bool):
        if name in (_OPTIONAL_INT_OPTIONS | _INT_OPTIONS) and isinstance(value, int):
            return value
        if name in _FLOAT_OPTIONS and isinstance(value, (int, float)):
            return float(value)
    raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field=name))


def coerce_options(options: ContextOptions | Mapping[str, Any] | None) -> ContextOptions:
    """Build :class:`ContextOptions` from a mapping of option names.

    Values must already have the option's type; strings are not parsed.
    """

    if options is None:
        return ContextOptions()
    if isinstance(options, ContextOptions):
        return options
    data = dict(options)
    known = set(ContextOptions.__dataclass_fields__)
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field=", ".join(unknown)))
    return ContextOptions(**{name: _check_option(name, value) for name, value in data.items()})


@dataclass
class Config:
    language: str = DEFAULT_LANGUAGE
    max_chars_budget: int = DEFAULT_RANKED_BUDGET
    tier_percents: TierPercents = field(default_factory=TierPercents)
    fallback_line_window: int = DEFAULT_LINE_WINDOW
    nesting_level: int = DEFAULT_NESTING_LEVEL
    include_leading_comments: bool = True
    top_k: int = DEFAULT_TOP_K
    min_similarity_threshold: float = DEFAULT_MIN_SIMILARITY
    test_pattern: TestCallPattern = field(default_factory=TestCallPattern)


def options_from_config(config: Config, **overrides: Any) -> ContextOptions:
    """Turn stored defaults into per-call options; ``None`` overrides are ignored."""

    base = ContextOptions(
        fallback_line_window=config.fallback_line_window,
        nesting_level=config.nesting_level,
        max_chars_budget=config.max_chars_budget,
        tier_percents=config.tier_percents,
        include_leading_comments=config.include_leading_comments,
        top_k=config.top_k,
        min_similarity_threshold=config.min_similarity_threshold,
    )
    cleaned = {key: value for key, value in overrides.items() if value is not None}
    return base.with_overrides(**cleaned) if cleaned else base


def load_config() -> Config:
    config_file = CONFIG_FILE
    if not config_file.exists():
        return Config()
    raw = json.loads(config_file.read_text(encoding="utf-8"))
    if not isinstance(raw, Mapping):
        return Config()
    config = Config()
    try:
        _apply_config_payload(config, raw)
    except ValueError:
        return Config()
    return config


def save_config(config: Config) -> None:
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    data: Dict[str, Any] = {
        "language": config.language,
        "max_chars_budget": config.max_chars_budget,
        "tier_percents": config.tier_percents.as_dict(),
        "fallback_line_window": config.fallback_line_window,
        "nesting_level": config.nesting_level,
        "include_leading_comments": bool(config.include_leading_comments),
        "top_k": config.top_k,
        "min_similarity_threshold": config.min_similarity_threshold,
        "test_pattern": config.test_pattern.callee,
    }
    CONFIG_FILE.write_text(
        json.dumps(data, ensure_ascii=False, indent=2),
        encoding="utf-8",
    )


def set_language(value: str) -> None:
    config = load_config()
    config.language = normalize_language(value)
    save_config(config)


def set_budget(value: int) -> None:
    config = load_config()
    config.max_chars_budget = _coerce_int(value, "max_chars_budget", DEFAULT_RANKED_BUDGET)
    save_config(config)


def set_tier_percents(value: object) -> None:
    config = load_config()
    config.tier_percents = TierPercents.from_value(value)
    save_config(config)


def set_test_pattern(value: str) -> None:
    config = load_config()
    config.test_pattern = TestCallPattern.parse(value)
    save_config(config)


def reset_config() -> None:
    save_config(Config())


def normalize_language(value: object) -> str:
    if value is None:
        return DEFAULT_LANGUAGE
    if isinstance(value, str):
        normalized = value.strip().lower() or DEFAULT_LANGUAGE
        if normalized in SUPPORTED_LANGUAGES:
            return normalized
    raise ValueError(
        Messages.ERROR_LANGUAGE_INVALID.format(
            value=value, allowed=", ".join(SUPPORTED_LANGUAGES)
        )
    )


def _apply_config_payload(config: Config, payload: Mapping[str, object]) -> None:
    if "language" in payload:
        config.language = normalize_language(payload["language"])
    if "max_chars_budget" in payload:
        config.max_chars_budget = _coerce_int(
            payload["max_chars_budget"], "max_chars_budget", DEFAULT_RANKED_BUDGET
        )
    if "tier_percents" in payload:
        config.tier_percents = TierPercents.from_value(payload["tier_percents"])
    if "fallback_line_window" in payload:
        config.fallback_line_window = _coerce_int(
            payload["fallback_line_window"], "fallback_line_window", DEFAULT_LINE_WINDOW
        )
    if "nesting_level" in payload:
        config.nesting_level = _coerce_int(
            payload["nesting_level"], "nesting_level", DEFAULT_NESTING_LEVEL
        )
    if "include_leading_comments" in payload:
        config.include_leading_comments = _coerce_bool(
            payload["include_leading_comments"], "include_leading_comments"
        )
    if "top_k" in payload:
        config.top_k = _coerce_int(payload["top_k"], "top_k", DEFAULT_TOP_K)
    if "min_similarity_threshold" in payload:
        config.min_similarity_threshold = _coerce_float(
            payload["min_similarity_threshold"],
            "min_similarity_threshold",
            DEFAULT_MIN_SIMILARITY,
        )
    if "test_pattern" in payload:
        raw = payload["test_pattern"]
        config.test_pattern = (
            TestCallPattern() if raw is None else TestCallPattern.parse(str(raw))
        )


def _coerce_int(value: object, field: str, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field=field))
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if value.is_integer():
            return int(value)
        raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field=field))
    if isinstance(value, str):
        cleaned = value.strip()
        if not cleaned:
            return default
        try:
            return int(cleaned)
        except ValueError as exc:
            raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field=field)) from exc
    raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field=field))


def _coerce_float(value: object, field: str, default: float) -> float:
    if value is None:
        return default
    if isinstance(value, bool):
        raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field=field))
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str) and value.strip():
        try:
            return float(value.strip())
        except ValueError as exc:
            raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field=field)) from exc
    raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field=field))


def _coerce_bool(value: object, field: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        cleaned = value.strip().lower()
        if cleaned in {"true", "1", "yes", "on"}:
            return True
        if cleaned in {"false", "0", "no", "off"}:
            return False
    raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field=field))
