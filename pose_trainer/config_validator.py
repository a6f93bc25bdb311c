"""Configuration validation for pose-step-trainer.

Checks trainer settings against CONFIG_SCHEMA, fills in defaults and loads
the YAML file the CLI runs with. Suspicious but usable values (even k, a
missing dataset file) are reported as warnings, never as errors.
"""

from __future__ import annotations
import logging
import sys
from pathlib import Path
from typing import Dict, Any, List, Optional
from dataclasses import dataclass
import yaml

from .errors import InvalidConfiguration

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent / "config.yaml"


@dataclass
class ValidationResult:
    """Errors, warnings and suggested fixes for one config."""
    valid: bool
    warnings: List[str]
    errors: List[str]
    fixed_values: Dict[str, Any]


# Type, range and default of every trainer setting
CONFIG_SCHEMA = {
    # Classifier
    "k": {
        "type": int,
        "min": 1,
        "max": 99,
        "default": 1,
    },
    "eval_k": {
        "type": int,
        "min": 1,
        "max": 99,
        "default": 3,
    },
    "joint_indices": {
        "type": list,
        "item_type": int,
        "item_min": 0,
        "item_max": 32,  # MediaPipe pose has 33 landmarks
        "min_len": 1,
        "default": [23, 24, 25, 26, 27, 28, 29, 30, 31, 32],
    },
    # Dataset / evaluation
    "dataset_path": {
        "type": str,
        "default": "data/pose_data.json",
    },
    "train_fraction": {
        "type": float,
        "min": 0.0,
        "max": 1.0,
        "default": 0.8,
    },
    "split_seed": {
        "type": int,
        "nullable": True,
        "min": 0,
        "default": None,
    },
    # Choreography
    "step_labels": {
        "type": list,
        "item_type": str,
        "min_len": 1,
        "default": ["step_1", "step_2", "step_3", "step_4"],
    },
    "practice_repeats": {
        "type": int,
        "min": 1,
        "max": 100,
        "default": 11,
    },
    "practice_hold_schedule": {
        "type": list,
        "item_type": float,
        "item_min": 0.01,
        "item_max": 60.0,
        "min_len": 1,
        "default": [1.5, 1.5, 1.5, 1.0, 1.0, 1.0, 0.5, 0.5, 0.2, 0.2, 0.2],
        "unit": "seconds",
    },
    "performance_hold_s": {
        "type": float,
        "min": 0.01,
        "max": 60.0,
        "default": 0.2,
        "unit": "seconds",
    },
    "performance_countdown_s": {
        "type": int,
        "min": 0,
        "max": 600,
        "default": 10,
        "unit": "seconds",
    },
    "performance_duration_s": {
        "type": float,
        "nullable": True,
        "min": 1.0,
        "max": 3600.0,
        "default": None,
        "unit": "seconds",
    },
    # Recording
    "recording_countdown_s": {
        "type": int,
        "min": 0,
        "max": 600,
        "default": 5,
        "unit": "seconds",
    },
    "recording_capture_s": {
        "type": float,
        "min": 0.1,
        "max": 600.0,
        "default": 5.0,
        "unit": "seconds",
    },
    "export_dir": {
        "type": str,
        "default": "data/recordings",
    },
    "export_prefix": {
        "type": str,
        "default": "pose_data_",
    },
    # Frame loop
    "frame_rate_hz": {
        "type": float,
        "min": 1.0,
        "max": 240.0,
        "default": 30.0,
        "unit": "Hz",
    },
    # Logging
    "log_level": {
        "type": str,
        "allowed": ["DEBUG", "INFO", "WARNING", "ERROR"],
        "default": "INFO",
    },
    "log_file": {
        "type": str,
        "nullable": True,
        "default": None,
    },
}


def _coerce(value: Any, expected_type: type) -> Any:
    if expected_type == float and isinstance(value, int) and not isinstance(value, bool):
        return float(value)  # Allow int -> float
    if expected_type == int and isinstance(value, float) and value == int(value):
        return int(value)  # Allow float -> int if whole number
    return value


def _type_ok(value: Any, expected_type: type) -> bool:
    # bool is an int subclass; a YAML "yes" must not pass as a count
    if isinstance(value, bool) and expected_type is not bool:
        return False
    return isinstance(value, expected_type)


def _check_range(key: str, value: Any, lo: Any, hi: Any) -> Optional[str]:
    if lo is not None and value < lo:
        return f"{key}: {value} below minimum {lo}"
    if hi is not None and value > hi:
        return f"{key}: {value} above maximum {hi}"
    return None


def validate_config(cfg: Dict[str, Any], auto_fix: bool = False) -> ValidationResult:
    """Check ``cfg`` against CONFIG_SCHEMA.

    Keys absent from ``cfg`` are fine (defaults apply). With ``auto_fix``,
    every rejected key gets its schema default in ``fixed_values``.
    """
    warnings: List[str] = []
    errors: List[str] = []
    fixed: Dict[str, Any] = {}

    for key, schema in CONFIG_SCHEMA.items():
        if key not in cfg:
            continue

        value = cfg[key]
        expected_type = schema["type"]

        if value is None:
            if not schema.get("nullable", False):
                errors.append(f"{key}: must not be empty")
                if auto_fix:
                    fixed[key] = schema["default"]
            continue

        value = _coerce(value, expected_type)
        if not _type_ok(value, expected_type):
            errors.append(
                f"{key}: expected {expected_type.__name__}, got {type(value).__name__}"
            )
            if auto_fix:
                fixed[key] = schema["default"]
            continue

        allowed = schema.get("allowed")
        if allowed is not None and value not in allowed:
            errors.append(f"{key}: {value} not in allowed values {allowed}")
            if auto_fix:
                fixed[key] = schema["default"]
            continue

        if expected_type in (int, float):
            problem = _check_range(key, value, schema.get("min"), schema.get("max"))
            if problem:
                errors.append(problem)
                if auto_fix:
                    fixed[key] = schema["default"]
                continue

        if expected_type is list:
            item_type = schema.get("item_type")
            min_len = schema.get("min_len", 0)
            if len(value) < min_len:
                errors.append(f"{key}: needs at least {min_len} item(s)")
                if auto_fix:
                    fixed[key] = schema["default"]
                continue
            bad = False
            for i, item in enumerate(value):
                item = _coerce(item, item_type)
                if not _type_ok(item, item_type):
                    errors.append(
                        f"{key}[{i}]: expected {item_type.__name__}, got {type(item).__name__}"
                    )
                    bad = True
                    break
                if item_type in (int, float):
                    problem = _check_range(
                        f"{key}[{i}]", item, schema.get("item_min"), schema.get("item_max")
                    )
                    if problem:
                        errors.append(problem)
                        bad = True
                        break
            if bad:
                if auto_fix:
                    fixed[key] = schema["default"]
                continue

        if key in ("k", "eval_k") and value % 2 == 0:
            warnings.append(
                f"{key}: {value} is even; votes between two labels can tie "
                f"and fall back to the nearest-sample rule."
            )
        if key == "joint_indices" and len(set(value)) != len(value):
            warnings.append(f"{key}: contains duplicate joints {value}")
        if key == "step_labels" and len(set(value)) != len(value):
            warnings.append(f"{key}: contains duplicate labels {value}")
        if key == "train_fraction" and value in (0.0, 1.0):
            warnings.append(
                f"{key}: {value} leaves an empty "
                f"{'training' if value == 0.0 else 'test'} set"
            )

    schedule = cfg.get("practice_hold_schedule")
    repeats = cfg.get("practice_repeats")
    if isinstance(schedule, list) and isinstance(repeats, int) and 0 < len(schedule) < repeats:
        warnings.append(
            f"practice_hold_schedule: {len(schedule)} entries for {repeats} repeats; "
            f"the last hold is reused for later phases"
        )

    dataset_path = cfg.get("dataset_path", "")
    if isinstance(dataset_path, str) and dataset_path and not Path(dataset_path).exists():
        warnings.append(f"dataset_path: '{dataset_path}' does not exist")

    valid = len(errors) == 0
    return ValidationResult(
        valid=valid,
        warnings=warnings,
        errors=errors,
        fixed_values=fixed,
    )


def validate_config_file(
    path: str | Path,
    auto_fix: bool = False,
    write_fixes: bool = False,
) -> ValidationResult:
    """Read and check a YAML config file.

    A missing file, broken YAML or a non-mapping document is reported as an
    error in the result rather than raised. ``write_fixes`` rewrites the file
    with the auto-fixed values.
    """
    path = Path(path)
    if not path.exists():
        return ValidationResult(
            valid=False,
            warnings=[],
            errors=[f"Config file not found: {path}"],
            fixed_values={},
        )

    try:
        with open(path) as f:
            cfg = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        return ValidationResult(
            valid=False,
            warnings=[],
            errors=[f"Config file is not valid YAML: {e}"],
            fixed_values={},
        )
    if not isinstance(cfg, dict):
        return ValidationResult(
            valid=False,
            warnings=[],
            errors=[f"Config file must contain a mapping, got {type(cfg).__name__}"],
            fixed_values={},
        )

    result = validate_config(cfg, auto_fix=auto_fix)

    if write_fixes and result.fixed_values:
        cfg.update(result.fixed_values)
        with open(path, "w") as f:
            yaml.safe_dump(cfg, f, sort_keys=False)

    return result


def print_validation_report(result: ValidationResult, verbose: bool = True) -> None:
    """Print errors, warnings and (if ``verbose``) suggested fixes."""
    print(f"Configuration: {'VALID' if result.valid else 'INVALID'}")

    if result.errors:
        print(f"\n{len(result.errors)} error(s):")
        for err in result.errors:
            print(f"  [ERROR] {err}")

    if result.warnings:
        print(f"\n{len(result.warnings)} warning(s):")
        for warn in result.warnings:
            print(f"  [WARN] {warn}")

    if result.fixed_values and verbose:
        print("\nSuggested fixes:")
        for key, val in result.fixed_values.items():
            print(f"  {key}: {val}")

    if not result.errors and not result.warnings:
        print("No issues found.")


def get_config_with_defaults(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of ``cfg`` with every missing schema key set to its default."""
    result = {}
    for key, schema in CONFIG_SCHEMA.items():
        if key in cfg:
            result[key] = cfg[key]
        else:
            default = schema["default"]
            result[key] = list(default) if isinstance(default, list) else default
    for key in cfg:
        if key not in result:
            result[key] = cfg[key]
    return result


def load_config(path: str | Path | None = None) -> Dict[str, Any]:
    """Load, validate and default-fill a configuration file.

    ``None`` loads the packaged ``config.yaml``.

    Raises:
        InvalidConfiguration: if the file is missing or fails validation
    """
    path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    result = validate_config_file(path)
    for warn in result.warnings:
        logger.warning(warn)
    if not result.valid:
        raise InvalidConfiguration("; ".join(result.errors))
    with open(path) as f:
        cfg = yaml.safe_load(f) or {}
    cfg = get_config_with_defaults(cfg)
    # Normalise numeric types the validator accepted loosely
    for key, schema in CONFIG_SCHEMA.items():
        value = cfg[key]
        if value is None:
            continue
        if schema["type"] is list:
            cfg[key] = [_coerce(v, schema["item_type"]) for v in value]
        else:
            cfg[key] = _coerce(value, schema["type"])
    return cfg


def main() -> None:
    """Validate a trainer config from the command line."""
    import argparse

    parser = argparse.ArgumentParser(description="Validate pose-step-trainer config")
    parser.add_argument(
        "config",
        nargs="?",
        default=str(DEFAULT_CONFIG_PATH),
        help="config file (default: packaged config.yaml)",
    )
    parser.add_argument(
        "--fix",
        action="store_true",
        help="replace invalid values with defaults",
    )
    parser.add_argument(
        "--write",
        action="store_true",
        help="save the fixed values into the file (with --fix)",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="print nothing when the config is clean",
    )
    args = parser.parse_args()

    result = validate_config_file(
        args.config,
        auto_fix=args.fix,
        write_fixes=args.write and args.fix,
    )

    if not args.quiet or not result.valid or result.warnings:
        print_validation_report(result, verbose=args.fix)

    sys.exit(0 if result.valid else 1)


if __name__ == "__main__":
    main()
