"""Tests for configuration validation module."""
import pytest
import yaml

from pose_trainer.config_validator import (
    CONFIG_SCHEMA,
    DEFAULT_CONFIG_PATH,
    get_config_with_defaults,
    load_config,
    validate_config,
    validate_config_file,
)
from pose_trainer.errors import InvalidConfiguration


class TestValidateConfig:
    """Tests for validate_config function."""

    def test_valid_config(self):
        cfg = {"k": 1, "eval_k": 3, "train_fraction": 0.8, "step_labels": ["a", "b"]}
        result = validate_config(cfg)
        assert result.valid
        assert result.errors == []

    def test_k_zero(self):
        result = validate_config({"k": 0})
        assert not result.valid
        assert any("k" in err for err in result.errors)

    def test_bool_is_not_int(self):
        result = validate_config({"k": True})
        assert not result.valid

    def test_even_k_warns(self):
        result = validate_config({"k": 2})
        assert result.valid
        assert any("even" in w for w in result.warnings)

    def test_joint_out_of_range(self):
        result = validate_config({"joint_indices": [23, 40]})
        assert not result.valid
        assert any("joint_indices[1]" in err for err in result.errors)

    def test_duplicate_labels_warn(self):
        result = validate_config({"step_labels": ["a", "a"]})
        assert result.valid
        assert any("duplicate" in w for w in result.warnings)

    def test_empty_list(self):
        result = validate_config({"step_labels": []})
        assert not result.valid

    def test_nullable(self):
        assert validate_config({"split_seed": None, "log_file": None}).valid
        assert not validate_config({"k": None}).valid

    def test_allowed_values(self):
        assert not validate_config({"log_level": "LOUD"}).valid

    def test_int_accepted_as_float(self):
        assert validate_config({"recording_capture_s": 5}).valid

    def test_short_schedule_warns(self):
        result = validate_config({"practice_repeats": 3, "practice_hold_schedule": [1.0]})
        assert result.valid
        assert any("reused" in w for w in result.warnings)

    def test_extreme_train_fraction_warns(self):
        result = validate_config({"train_fraction": 1.0})
        assert any("empty test set" in w for w in result.warnings)

    def test_missing_dataset_warns(self, tmp_path):
        result = validate_config({"dataset_path": str(tmp_path / "none.json")})
        assert result.valid
        assert any("does not exist" in w for w in result.warnings)

    def test_auto_fix(self):
        result = validate_config({"k": -3}, auto_fix=True)
        assert result.fixed_values["k"] == CONFIG_SCHEMA["k"]["default"]


class TestValidateConfigFile:
    def test_packaged_config_is_valid(self):
        result = validate_config_file(DEFAULT_CONFIG_PATH)
        assert result.valid, result.errors

    def test_missing_file(self, tmp_path):
        result = validate_config_file(tmp_path / "nope.yaml")
        assert not result.valid

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "c.yaml"
        path.write_text("- 1\n- 2\n")
        assert not validate_config_file(path).valid

    def test_bad_yaml(self, tmp_path):
        path = tmp_path / "c.yaml"
        path.write_text("k: [1, 2\n")
        assert not validate_config_file(path).valid

    def test_write_fixes(self, tmp_path):
        path = tmp_path / "c.yaml"
        path.write_text("k: 0\n")
        validate_config_file(path, auto_fix=True, write_fixes=True)
        assert yaml.safe_load(path.read_text())["k"] == 1


class TestLoadConfig:
    def test_defaults_filled(self, tmp_path):
        path = tmp_path / "c.yaml"
        path.write_text("k: 3\nrecording_capture_s: 2\n")
        cfg = load_config(path)
        assert cfg["k"] == 3
        assert cfg["recording_capture_s"] == 2.0
        assert isinstance(cfg["recording_capture_s"], float)
        assert cfg["step_labels"] == ["step_1", "step_2", "step_3", "step_4"]

    def test_invalid_raises(self, tmp_path):
        path = tmp_path / "c.yaml"
        path.write_text("k: -1\n")
        with pytest.raises(InvalidConfiguration):
            load_config(path)

    def test_defaults_are_copies(self):
        a = get_config_with_defaults({})
        a["step_labels"].append("extra")
        assert get_config_with_defaults({})["step_labels"] == [
            "step_1", "step_2", "step_3", "step_4"
        ]
