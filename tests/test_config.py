"""
Configuration defaults, override resolution and validation.
"""

import json

import pytest
from pydantic import ValidationError

from txgate.config import ConfigError, Configuration, load_config, resolve_config


class TestDefaults:
    def test_defaults(self):
        cfg = resolve_config()
        assert cfg == Configuration()
        assert cfg.outliers.method == "zscore"
        assert cfg.round_number_threshold == 100
        assert cfg.detection_algorithm == "standard"
        assert cfg.mandatory_fields == frozenset({"date", "amount"})


class TestOverrides:
    def test_nested_camel_case(self):
        cfg = resolve_config({
            "amount": {"min": 0, "allowNegative": False},
            "outliers": {"method": "iqr", "iqrFactor": 3},
            "duplicates": {"uniqueColumns": ["invoice_id"]},
            "detectionAlgorithm": "hybrid",
            "roundNumberThreshold": 50,
        })
        assert cfg.amount.min == 0.0
        assert cfg.amount.max == 1_000_000.0
        assert cfg.amount.allow_negative is False
        assert cfg.outliers.method == "iqr"
        assert cfg.outliers.iqr_factor == 3.0
        assert cfg.outliers.threshold == 3.0
        assert cfg.duplicates.unique_columns == ("invoice_id",)
        assert cfg.detection_algorithm == "hybrid"
        assert cfg.round_number_threshold == 50.0

    def test_mandatory_fields_set(self):
        cfg = resolve_config({"mandatoryFields": ["amount", "amount", "vendor"]})
        assert cfg.mandatory_fields == frozenset({"amount", "vendor"})

    def test_frozen(self):
        cfg = resolve_config()
        with pytest.raises(ValidationError):
            cfg.detection_algorithm = "ai"


class TestValidation:
    @pytest.mark.parametrize("overrides", [
        {"outliers": {"method": "median"}},
        {"detectionAlgorithm": "magic"},
        {"amount": {"min": 10, "max": 5}},
        {"roundNumberThreshold": 0},
        {"date": {"datePatterns": ["("]}},
        {"email": {"format": "[a-"}},
        {"unknownKey": 1},
        {"amount": {"min": "low"}},
        {"amount": {"allowNegative": "yes"}},
        {"amount": 5},
        {"mandatoryFields": "amount"},
        {"roundNumberThreshold": True},
        {"duplicates": {"uniqueColumns": ["date", 5]}},
        {"outliers": {"threshold": "3"}},
    ])
    def test_rejected(self, overrides):
        with pytest.raises(ConfigError):
            resolve_config(overrides)

    def test_config_error_is_value_error(self):
        assert issubclass(ConfigError, ValueError)


class TestLoadConfig:
    def test_json_file(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"category": {"required": True}}), encoding="utf-8")
        assert load_config(str(path)).category.required is True

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_config(str(tmp_path / "nope.json"))

    def test_broken_json(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigError):
            load_config(str(path))
