from __future__ import annotations
"""Brute-force k-nearest-neighbour pose classifier.

Every query is compared against every stored sample; there is no index to
rebuild, so ``learn`` is a plain append. Results are deterministic: votes are
counted over the ``k`` closest samples, and a tie between labels goes to the
label whose closest representative is nearer, then to the earlier learned
sample when distances are identical.
"""

import argparse
import logging
from typing import Iterable, List, Optional, Sequence

import numpy as np
from scipy.spatial.distance import cdist

from .errors import InvalidConfiguration, NoTrainingData

logger = logging.getLogger(__name__)


def matches(predicted: Optional[str], target: Optional[str]) -> bool:
    """Label equality as used for progression (surrounding whitespace ignored)."""
    if predicted is None or target is None:
        return False
    return str(predicted).strip() == str(target).strip()


class PoseClassifier:
    """k-NN classifier over labelled feature vectors.

    The feature length is fixed by ``n_features`` or, if omitted, by the first
    learned vector. Vectors of any other length are rejected.
    """

    def __init__(self, k: int = 1, n_features: Optional[int] = None):
        if isinstance(k, bool) or not isinstance(k, (int, np.integer)) or k < 1:
            raise InvalidConfiguration(f"k must be a positive integer, got {k!r}")
        if k % 2 == 0:
            logger.warning(f"k={k} is even; label ties fall back to nearest sample")
        if n_features is not None and n_features < 1:
            raise InvalidConfiguration(f"n_features must be positive, got {n_features}")
        self.k = int(k)
        self._n_features = n_features
        self._vectors: List[np.ndarray] = []
        self._labels: List[str] = []
        self._matrix: Optional[np.ndarray] = None

    @classmethod
    def from_dataset(cls, samples: Iterable, k: int = 1) -> "PoseClassifier":
        """Build a classifier from ``LabeledSample``-like objects."""
        clf = cls(k=k)
        clf.learn_many(samples)
        return clf

    def __len__(self) -> int:
        return len(self._labels)

    @property
    def n_features(self) -> Optional[int]:
        return self._n_features

    @property
    def labels(self) -> List[str]:
        """Distinct learned labels, sorted."""
        return sorted(set(self._labels))

    def _as_vector(self, features: Sequence[float]) -> np.ndarray:
        vec = np.asarray(features, dtype=np.float64).reshape(-1)
        if self._n_features is not None and vec.shape[0] != self._n_features:
            raise ValueError(
                f"feature vector has length {vec.shape[0]}, expected {self._n_features}"
            )
        return vec

    def learn(self, features: Sequence[float], label: str) -> None:
        """Append one labelled sample."""
        vec = self._as_vector(features)
        if self._n_features is None:
            self._n_features = vec.shape[0]
        self._vectors.append(vec)
        self._labels.append(str(label))
        self._matrix = None

    def learn_many(self, samples: Iterable) -> int:
        """Learn every sample of a dataset; returns the number learned."""
        count = 0
        for sample in samples:
            self.learn(sample.features, sample.label)
            count += 1
        logger.debug(f"Learned {count} samples ({len(self)} total)")
        return count

    def _training_matrix(self) -> np.ndarray:
        if not self._labels:
            raise NoTrainingData("classifier has no training samples")
        if self._matrix is None:
            self._matrix = np.vstack(self._vectors)
        return self._matrix

    def _vote(self, distances: np.ndarray) -> str:
        # Stable sort keeps insertion order among equal distances
        order = np.argsort(distances, kind="stable")[: self.k]
        counts: dict[str, int] = {}
        first_rank: dict[str, int] = {}
        for rank, idx in enumerate(order):
            label = self._labels[idx]
            counts[label] = counts.get(label, 0) + 1
            first_rank.setdefault(label, rank)
        best = max(counts.values())
        tied = [label for label, c in counts.items() if c == best]
        return min(tied, key=first_rank.__getitem__)

    def classify(self, features: Sequence[float]) -> str:
        """Return the predicted label for one feature vector.

        Raises:
            NoTrainingData: if nothing has been learned yet
        """
        matrix = self._training_matrix()
        vec = self._as_vector(features)
        distances = cdist(vec.reshape(1, -1), matrix)[0]
        return self._vote(distances)

    def classify_batch(self, X: np.ndarray) -> List[str]:
        """Classify each row of ``X``; identical to calling ``classify`` per row."""
        matrix = self._training_matrix()
        X = np.asarray(X, dtype=np.float64)
        if X.ndim == 1:
            X = X.reshape(1, -1)
        if X.shape[0] == 0:
            return []
        if X.shape[1] != self._n_features:
            raise ValueError(
                f"feature vectors have length {X.shape[1]}, expected {self._n_features}"
            )
        distances = cdist(X, matrix)
        return [self._vote(row) for row in distances]


def main() -> None:
    from .dataset import load_dataset

    parser = argparse.ArgumentParser(description="Pose classifier utility")
    parser.add_argument("--dataset", required=True, help="training dataset (.json)")
    parser.add_argument("--k", type=int, default=1, help="neighbours")
    parser.add_argument("features", nargs="+", type=float, help="feature vector")
    args = parser.parse_args()
    clf = PoseClassifier.from_dataset(load_dataset(args.dataset), k=args.k)
    print(clf.classify(args.features))


if __name__ == "__main__":
    main()
