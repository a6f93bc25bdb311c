"""Tests for pose_trainer.evaluation."""
import math

import numpy as np
import pytest

from pose_trainer.dataset import LabeledSample
from pose_trainer.errors import NoTrainingData
from pose_trainer.evaluation import evaluate, evaluate_dataset, split
from pose_trainer.simulator import PoseSimulator

LABELS = ["step_1", "step_2", "step_3", "step_4"]


@pytest.fixture
def dataset():
    return PoseSimulator(LABELS, seed=3).make_dataset(samples_per_label=25)


class TestSplit:
    def test_sizes(self, dataset):
        train, test = split(dataset, 0.8, seed=1)
        assert len(train) == 80
        assert len(test) == 20

    def test_floor(self):
        data = [LabeledSample("a", [float(i)]) for i in range(7)]
        train, test = split(data, 0.5, seed=0)
        assert (len(train), len(test)) == (3, 4)

    def test_seeded_is_reproducible(self, dataset):
        a = split(dataset, 0.8, seed=42)
        b = split(dataset, 0.8, seed=42)
        assert [id(s) for s in a[0]] == [id(s) for s in b[0]]

    def test_partition(self, dataset):
        train, test = split(dataset, 0.8, seed=5)
        ids = sorted(id(s) for s in train + test)
        assert ids == sorted(id(s) for s in dataset)

    def test_unseeded_warns(self, dataset, caplog):
        split(dataset, 0.8)
        assert "Unseeded" in caplog.text

    def test_bad_fraction(self, dataset):
        with pytest.raises(ValueError):
            split(dataset, 1.5)


class TestEvaluate:
    def test_separable_data_is_perfect(self, dataset):
        result = evaluate_dataset(dataset, 0.8, k=3, seed=0)
        assert result.accuracy == pytest.approx(1.0)
        assert result.n_correct == 20
        assert result.labels == LABELS

    def test_matrix_consistency(self, dataset):
        result = evaluate_dataset(dataset, 0.7, k=3, seed=9)
        m = result.matrix_array()
        assert m.sum() == result.n_test
        assert np.trace(m) == result.n_correct
        assert result.accuracy == pytest.approx(np.trace(m) / m.sum())
        for i, label in enumerate(result.labels):
            assert m[i].sum() == sum(1 for s in result.test_set if s.label == label)

    def test_all_pairs_initialised(self):
        train = [LabeledSample("a", [0.0]), LabeledSample("b", [1.0])]
        test = [LabeledSample("a", [0.1])]
        result = evaluate(train, test, k=1, labels=["a", "b", "c"])
        assert result.confusion_matrix == {
            "a": {"a": 1, "b": 0, "c": 0},
            "b": {"a": 0, "b": 0, "c": 0},
            "c": {"a": 0, "b": 0, "c": 0},
        }

    def test_confusion_counts_misclassification(self):
        train = [LabeledSample("a", [0.0]), LabeledSample("b", [1.0])]
        test = [LabeledSample("a", [0.9]), LabeledSample("b", [1.1])]
        result = evaluate(train, test, k=1)
        assert result.confusion_matrix["a"]["b"] == 1
        assert result.confusion_matrix["b"]["b"] == 1
        assert result.accuracy == pytest.approx(0.5)
        assert result.predictions == ["b", "b"]

    def test_empty_test_set(self):
        train = [LabeledSample("a", [0.0])]
        result = evaluate(train, [], k=1)
        assert math.isnan(result.accuracy)
        assert result.matrix_array().sum() == 0
        assert "n/a" in result.format_report()

    def test_empty_training_set(self):
        with pytest.raises(NoTrainingData):
            evaluate([], [LabeledSample("a", [0.0])], k=1)

    def test_report_and_dict(self, dataset):
        result = evaluate_dataset(dataset, 0.8, k=3, seed=0)
        report = result.format_report()
        assert report.startswith("Accuracy: 100.00% (20 / 20 correct)")
        for label in LABELS:
            assert label in report
        d = result.to_dict()
        assert d["n_test"] == 20
        assert d["n_train"] == 80
        assert d["k"] == 3
