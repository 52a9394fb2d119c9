"""
Transaction Anomaly Gate - Configuration

The engine consumes a fully resolved ``Configuration``. ``resolve_config``
validates persisted user overrides (camelCase keys, as stored) on top of
the defaults. Unknown keys and wrongly typed values are rejected.
"""

import re
import json
from typing import Literal

from pydantic import (
    BaseModel, ConfigDict, Field, StrictBool, StrictFloat, StrictStr,
    ValidationError, field_validator, model_validator,
)
from pydantic.alias_generators import to_camel

from txgate.parser import DEFAULT_DATE_PATTERNS

DEFAULT_CATEGORIES = ("Office", "Travel", "Utilities", "Salaries", "Marketing", "Other")
DEFAULT_EMAIL_FORMAT = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"


class ConfigError(ValueError):
    """Invalid configuration overrides."""


def _compiles(pattern: str) -> str:
    try:
        re.compile(pattern)
    except re.error as e:
        raise ValueError(f"invalid pattern {pattern!r}: {e}") from e
    return pattern


class _Section(BaseModel):
    model_config = ConfigDict(
        frozen=True, extra="forbid", alias_generator=to_camel, populate_by_name=True,
    )


class AmountConfig(_Section):
    min: StrictFloat = -1_000_000.0
    max: StrictFloat = 1_000_000.0
    allow_negative: StrictBool = True

    @model_validator(mode="after")
    def _min_not_above_max(self) -> "AmountConfig":
        if self.min > self.max:
            raise ValueError(f"min ({self.min}) exceeds max ({self.max})")
        return self


class DateConfig(_Section):
    date_patterns: tuple[StrictStr, ...] = DEFAULT_DATE_PATTERNS
    allow_future: StrictBool = False

    @field_validator("date_patterns")
    @classmethod
    def _patterns_compile(cls, v: tuple) -> tuple:
        return tuple(_compiles(p) for p in v)


class DescriptionConfig(_Section):
    required: StrictBool = True


class CategoryConfig(_Section):
    required: StrictBool = False
    valid_categories: tuple[StrictStr, ...] = DEFAULT_CATEGORIES


class EmailConfig(_Section):
    required: StrictBool = False
    format: StrictStr = DEFAULT_EMAIL_FORMAT

    @field_validator("format")
    @classmethod
    def _format_compiles(cls, v: str) -> str:
        return _compiles(v)


class OutlierConfig(_Section):
    check: StrictBool = True
    method: Literal["zscore", "iqr", "none"] = "zscore"
    threshold: StrictFloat = 3.0
    iqr_factor: StrictFloat = 1.5


class DuplicateConfig(_Section):
    check: StrictBool = True
    unique_columns: tuple[StrictStr, ...] = ("date", "amount", "description")


class Configuration(_Section):
    mandatory_fields: frozenset[StrictStr] = frozenset({"date", "amount"})
    amount: AmountConfig = Field(default_factory=AmountConfig)
    date: DateConfig = Field(default_factory=DateConfig)
    description: DescriptionConfig = Field(default_factory=DescriptionConfig)
    category: CategoryConfig = Field(default_factory=CategoryConfig)
    email: EmailConfig = Field(default_factory=EmailConfig)
    outliers: OutlierConfig = Field(default_factory=OutlierConfig)
    duplicates: DuplicateConfig = Field(default_factory=DuplicateConfig)
    detection_algorithm: Literal["standard", "ai", "hybrid"] = "standard"
    round_number_threshold: StrictFloat = Field(100.0, gt=0)
    check_weekends: StrictBool = True


def resolve_config(overrides: dict = None) -> Configuration:
    """Defaults merged with user overrides, validated."""
    try:
        return Configuration.model_validate(overrides or {})
    except ValidationError as e:
        raise ConfigError(str(e)) from e


def load_config(path: str) -> Configuration:
    try:
        with open(path, "r", encoding="utf-8") as f:
            overrides = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Could not read configuration {path}: {e}") from e
    return resolve_config(overrides)
