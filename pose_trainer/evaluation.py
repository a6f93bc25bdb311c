"""Train/test evaluation of the k-NN pose classifier.

Usage:
    # Evaluate the configured dataset (k=3, 80/20 split)
    python -m pose_trainer.evaluation --dataset data/pose_data.json

    # Reproducible run
    python -m pose_trainer.evaluation --dataset data/pose_data.json --seed 7
"""

from __future__ import annotations

import argparse
import logging
import math
import sys
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
from sklearn.metrics import confusion_matrix as sk_confusion_matrix

from .dataset import LabeledSample, load_dataset
from .errors import DatasetLoadError
from .pose_classifier import PoseClassifier

logger = logging.getLogger(__name__)


@dataclass
class EvaluationResult:
    """Outcome of one train/test evaluation."""
    train_set: List[LabeledSample]
    test_set: List[LabeledSample]
    labels: List[str]
    confusion_matrix: Dict[str, Dict[str, int]]
    accuracy: float
    n_correct: int = 0
    k: int = 3
    predictions: List[str] = field(default_factory=list)

    @property
    def n_test(self) -> int:
        return len(self.test_set)

    def matrix_array(self) -> np.ndarray:
        """Confusion matrix as an array, rows = actual, columns = predicted."""
        return np.array(
            [[self.confusion_matrix[a][p] for p in self.labels] for a in self.labels],
            dtype=int,
        ).reshape(len(self.labels), len(self.labels))

    def to_dict(self) -> dict:
        return {
            "k": self.k,
            "accuracy": self.accuracy,
            "n_correct": self.n_correct,
            "n_test": self.n_test,
            "n_train": len(self.train_set),
            "labels": list(self.labels),
            "confusion_matrix": self.confusion_matrix,
        }

    def format_report(self) -> str:
        if math.isnan(self.accuracy):
            lines = ["Accuracy: n/a (empty test set)"]
        else:
            lines = [
                f"Accuracy: {self.accuracy * 100:.2f}% "
                f"({self.n_correct} / {self.n_test} correct)"
            ]
        lines.append("Confusion matrix (rows = actual, columns = predicted):")
        width = max([len(l) for l in self.labels] + [6])
        lines.append(" " * width + " " + " ".join(f"{l:>{width}}" for l in self.labels))
        for actual in self.labels:
            row = " ".join(
                f"{self.confusion_matrix[actual][p]:>{width}}" for p in self.labels
            )
            lines.append(f"{actual:>{width}} {row}")
        return "\n".join(lines)


def split(
    dataset: Sequence[LabeledSample],
    train_fraction: float = 0.8,
    seed: Optional[int] = None,
) -> Tuple[List[LabeledSample], List[LabeledSample]]:
    """Shuffle ``dataset`` and cut it at ``floor(n * train_fraction)``.

    ``seed=None`` shuffles from fresh entropy, so two calls give different
    splits; pass a seed to reproduce a run.
    """
    if not 0.0 <= train_fraction <= 1.0:
        raise ValueError(f"train_fraction must be within [0, 1], got {train_fraction}")
    if seed is None:
        logger.warning("Unseeded train/test split; accuracy will not be reproducible")
    rng = np.random.default_rng(seed)
    items = list(dataset)
    order = rng.permutation(len(items))
    shuffled = [items[i] for i in order]
    cut = int(math.floor(len(shuffled) * train_fraction))
    return shuffled[:cut], shuffled[cut:]


def evaluate(
    train_set: Sequence[LabeledSample],
    test_set: Sequence[LabeledSample],
    k: int = 3,
    labels: Optional[Sequence[str]] = None,
) -> EvaluationResult:
    """Train a fresh classifier on ``train_set`` and score it on ``test_set``.

    ``labels`` fixes the label universe of the confusion matrix; by default it
    is every label seen in either set. All pairs start at zero.

    Raises:
        NoTrainingData: if ``train_set`` is empty and ``test_set`` is not
    """
    train_set = list(train_set)
    test_set = list(test_set)
    if labels is None:
        labels = {s.label for s in train_set} | {s.label for s in test_set}
    labels = sorted(set(labels))

    clf = PoseClassifier.from_dataset(train_set, k=k)
    matrix = {actual: {pred: 0 for pred in labels} for actual in labels}

    if not test_set:
        logger.warning("Empty test set; accuracy is undefined")
        return EvaluationResult(
            train_set, test_set, labels, matrix, float("nan"), 0, k, []
        )

    X = np.vstack([s.features for s in test_set])
    y_true = [s.label for s in test_set]
    y_pred = clf.classify_batch(X)

    unknown = (set(y_true) | set(y_pred)) - set(labels)
    if unknown:
        raise ValueError(f"labels outside the label universe: {sorted(unknown)}")

    counts = sk_confusion_matrix(y_true, y_pred, labels=labels)
    for i, actual in enumerate(labels):
        for j, pred in enumerate(labels):
            matrix[actual][pred] = int(counts[i, j])

    n_correct = sum(1 for t, p in zip(y_true, y_pred) if t == p)
    accuracy = n_correct / len(test_set)
    logger.info(
        f"Evaluated k={k}: {n_correct}/{len(test_set)} correct ({accuracy:.2%})"
    )
    return EvaluationResult(
        train_set, test_set, labels, matrix, accuracy, n_correct, k, list(y_pred)
    )


def evaluate_dataset(
    dataset: Sequence[LabeledSample],
    train_fraction: float = 0.8,
    k: int = 3,
    seed: Optional[int] = None,
) -> EvaluationResult:
    """Split ``dataset`` and evaluate, using the full dataset's label universe."""
    labels = sorted({s.label for s in dataset})
    train_set, test_set = split(dataset, train_fraction, seed)
    return evaluate(train_set, test_set, k=k, labels=labels)


def main() -> None:
    """CLI entry point for evaluation."""
    parser = argparse.ArgumentParser(
        description="Evaluate the k-NN pose classifier",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--dataset", required=True, help="dataset (.json)")
    parser.add_argument("--k", type=int, default=3, help="neighbours")
    parser.add_argument("--train-fraction", type=float, default=0.8)
    parser.add_argument("--seed", type=int, default=None, help="shuffle seed")
    args = parser.parse_args()

    try:
        dataset = load_dataset(args.dataset)
    except DatasetLoadError as e:
        print(f"Evaluation failed: {e}", file=sys.stderr)
        sys.exit(1)
    result = evaluate_dataset(dataset, args.train_fraction, args.k, args.seed)
    print(result.format_report())


if __name__ == "__main__":
    main()
