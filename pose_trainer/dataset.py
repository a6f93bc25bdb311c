"""Labelled pose datasets: loading, saving and merging.

A dataset file is a JSON array of records::

    [{"label": "step_1", "data": [0.41, 0.52, ...]}, ...]

Recording exports use the same format so they can be fed back in as
training data.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Sequence

import numpy as np

from . import utils
from .errors import DatasetLoadError

logger = logging.getLogger(__name__)


@dataclass
class LabeledSample:
    """One feature vector with its pose label."""
    label: str
    features: np.ndarray

    def __post_init__(self) -> None:
        self.label = str(self.label)
        self.features = np.asarray(self.features, dtype=np.float64).reshape(-1)

    def to_record(self) -> dict:
        return {"label": self.label, "data": [float(v) for v in self.features]}


def parse_records(records: object, source: str = "<memory>") -> List[LabeledSample]:
    """Validate decoded JSON records and convert them to samples.

    Raises:
        DatasetLoadError: on a non-list payload, a bad record or mixed lengths
    """
    if not isinstance(records, list):
        raise DatasetLoadError(f"{source}: expected a JSON array of records")
    samples: List[LabeledSample] = []
    length = None
    for i, rec in enumerate(records):
        if not isinstance(rec, dict) or "label" not in rec or "data" not in rec:
            raise DatasetLoadError(f"{source}: record {i} needs 'label' and 'data'")
        data = rec["data"]
        if not isinstance(data, list) or not data:
            raise DatasetLoadError(f"{source}: record {i} 'data' must be a non-empty list")
        try:
            sample = LabeledSample(rec["label"], np.array(data, dtype=np.float64))
        except (TypeError, ValueError) as e:
            raise DatasetLoadError(f"{source}: record {i} has non-numeric data") from e
        if length is None:
            length = sample.features.shape[0]
        elif sample.features.shape[0] != length:
            raise DatasetLoadError(
                f"{source}: record {i} has {sample.features.shape[0]} values, expected {length}"
            )
        samples.append(sample)
    return samples


def load_dataset(path: str | Path) -> List[LabeledSample]:
    """Load a dataset file.

    Raises:
        DatasetLoadError: if the file is missing, unreadable or malformed
    """
    path = Path(path)
    try:
        with open(path) as f:
            records = json.load(f)
    except FileNotFoundError as e:
        raise DatasetLoadError(f"Dataset file not found: {path}") from e
    except (OSError, json.JSONDecodeError) as e:
        raise DatasetLoadError(f"Failed to load dataset {path}: {e}") from e
    samples = parse_records(records, str(path))
    logger.info(f"Loaded {len(samples)} samples from {path}")
    return samples


def save_dataset(samples: Iterable[LabeledSample], path: str | Path) -> Path:
    """Write samples as a JSON array of ``{label, data}`` records."""
    records = [s.to_record() for s in samples]
    out = utils.atomic_write_json(path, records)
    logger.info(f"Saved {len(records)} samples to {out}")
    return out


def recording_filename(label: str, prefix: str = "pose_data_") -> str:
    """File name for a recording export of ``label``."""
    safe = "".join(c if c.isalnum() or c in "-_." else "_" for c in str(label).strip())
    return f"{prefix}{safe or 'unlabelled'}.json"


def merge_datasets(input_paths: Sequence[Path], output_path: Path) -> List[LabeledSample]:
    """Merge multiple dataset files into one.

    Missing inputs are skipped with a warning; mixed feature lengths are an error.

    Raises:
        DatasetLoadError: if nothing could be loaded or lengths disagree
    """
    merged: List[LabeledSample] = []
    for path in input_paths:
        path = Path(path)
        if not path.exists():
            logger.warning(f"File not found: {path}")
            continue
        samples = load_dataset(path)
        if merged and samples and samples[0].features.shape != merged[0].features.shape:
            raise DatasetLoadError(
                f"{path}: feature length {samples[0].features.shape[0]} does not match "
                f"{merged[0].features.shape[0]}"
            )
        merged.extend(samples)

    if not merged:
        raise DatasetLoadError("No data to merge")

    save_dataset(merged, output_path)
    return merged


def label_counts(samples: Iterable[LabeledSample]) -> dict:
    counts: dict = {}
    for s in samples:
        counts[s.label] = counts.get(s.label, 0) + 1
    return dict(sorted(counts.items()))
