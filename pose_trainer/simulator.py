"""Synthetic pose landmark generator for demos and testing.

Generates MediaPipe-style landmark sets that mimic a dancer holding each
step of the choreography:
- A shared standing skeleton (33 landmarks, image-normalised)
- Per-label leg offsets so each step has its own prototype
- Frame-to-frame jitter (detector noise)
- Dropped frames where the detector finds no pose

Usage:
    from pose_trainer.simulator import PoseSimulator, SimScenario
    sim = PoseSimulator(["step_1", "step_2"], seed=0)
    dataset = sim.make_dataset(samples_per_label=40)
    for frame in sim.stream([SimScenario("step_1", 2.0)]):
        process(frame)  # same shape as detector frames
"""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Iterator, List, Optional, Sequence

import numpy as np

from .dataset import LabeledSample
from .features import LEG_INDICES, FeatureExtractor
from .replay import Frame

N_LANDMARKS = 33


@dataclass
class SimScenario:
    """A segment of simulated activity; ``label=None`` means nobody in view."""
    label: Optional[str]
    duration_s: float
    dropout: Optional[float] = None  # overrides the simulator default


# Rough standing skeleton (x, y), image-normalised, facing the camera
_STANDING = np.array([
    [0.50, 0.12],                                              # nose
    [0.49, 0.10], [0.48, 0.10], [0.47, 0.10],                  # left eye
    [0.51, 0.10], [0.52, 0.10], [0.53, 0.10],                  # right eye
    [0.45, 0.11], [0.55, 0.11],                                # ears
    [0.49, 0.14], [0.51, 0.14],                                # mouth
    [0.42, 0.22], [0.58, 0.22],                                # shoulders
    [0.39, 0.33], [0.61, 0.33],                                # elbows
    [0.38, 0.43], [0.62, 0.43],                                # wrists
    [0.37, 0.45], [0.63, 0.45],                                # pinky
    [0.37, 0.46], [0.63, 0.46],                                # index
    [0.38, 0.45], [0.62, 0.45],                                # thumb
    [0.45, 0.48], [0.55, 0.48],                                # hips
    [0.45, 0.65], [0.55, 0.65],                                # knees
    [0.45, 0.82], [0.55, 0.82],                                # ankles
    [0.45, 0.84], [0.55, 0.84],                                # heels
    [0.46, 0.87], [0.54, 0.87],                                # foot index
])


class PoseSimulator:
    """Generate landmark sets and frame streams for a set of pose labels."""

    def __init__(
        self,
        labels: Sequence[str],
        sample_rate_hz: float = 30.0,
        noise: float = 0.008,
        dropout: float = 0.0,
        step_spread: float = 0.08,
        seed: Optional[int] = None,
    ):
        if not labels:
            raise ValueError("simulator needs at least one label")
        if sample_rate_hz <= 0:
            raise ValueError("sample_rate_hz must be positive")
        self.labels = list(labels)
        self.sample_rate = sample_rate_hz
        self.noise = noise
        self.dropout = dropout
        self._rng = np.random.default_rng(seed)

        # Prototypes depend only on label order so every simulator agrees
        proto_rng = np.random.default_rng(1234)
        self._prototypes = {}
        for label in self.labels:
            pose = _STANDING.copy()
            offsets = proto_rng.uniform(-step_spread, step_spread, (len(LEG_INDICES), 2))
            pose[LEG_INDICES] += offsets
            self._prototypes[label] = np.clip(pose, 0.0, 1.0)

    def prototype(self, label: str) -> np.ndarray:
        """Noise-free ``(33, 2)`` landmark array for ``label``."""
        return self._prototypes[label].copy()

    def sample(self, label: str) -> List[List[float]]:
        """One jittered landmark set: ``[[x, y, visibility], ...]``."""
        pose = self._prototypes[label] + self._rng.normal(0.0, self.noise, (N_LANDMARKS, 2))
        pose = np.clip(pose, 0.0, 1.0)
        vis = self._rng.uniform(0.8, 1.0, N_LANDMARKS)
        return [[float(x), float(y), float(v)] for (x, y), v in zip(pose, vis)]

    def make_dataset(
        self,
        samples_per_label: int = 50,
        extractor: Optional[FeatureExtractor] = None,
    ) -> List[LabeledSample]:
        """Labelled samples, grouped by label in ``labels`` order."""
        extractor = extractor or FeatureExtractor()
        out = []
        for label in self.labels:
            for _ in range(samples_per_label):
                out.append(LabeledSample(label, extractor.extract(self.sample(label))))
        return out

    def stream(
        self,
        scenarios: Sequence[SimScenario],
        start_ts: float = 0.0,
        realtime: bool = False,
    ) -> Iterator[Frame]:
        """Yield frames for each scenario in turn at ``sample_rate_hz``."""
        dt = 1.0 / self.sample_rate
        ts = start_ts
        for sc in scenarios:
            n = int(round(sc.duration_s * self.sample_rate))
            dropout = self.dropout if sc.dropout is None else sc.dropout
            for _ in range(n):
                if sc.label is None or (dropout > 0 and self._rng.random() < dropout):
                    yield Frame(ts, None)
                else:
                    yield Frame(ts, self.sample(sc.label))
                if realtime:
                    time.sleep(dt)
                ts += dt


def choreography_scenarios(
    labels: Sequence[str],
    holds: Sequence[float],
    margin_s: float = 0.5,
) -> List[SimScenario]:
    """One scenario per step: hold the step's pose a little longer than needed."""
    return [SimScenario(label, hold + margin_s) for label, hold in zip(labels, holds)]
