"""Landmark -> feature vector conversion.

A feature vector is the flattened ``(x, y)`` pairs of a fixed list of pose
landmarks, in the order the joints were configured. Coordinates are used as
the detector reports them (normalised to the image, no re-centering or
scaling). Missing data never raises: an absent pose, an index past the end of
the landmark list, a ``None`` entry or an entry without usable coordinates
all contribute ``(0.0, 0.0)``.
"""
from __future__ import annotations

from typing import Any, List, Optional, Sequence, Tuple

import numpy as np

from .errors import InvalidConfiguration

# MediaPipe BlazePose landmark order
POSE_LANDMARK_NAMES = [
    "nose",
    "left_eye_inner", "left_eye", "left_eye_outer",
    "right_eye_inner", "right_eye", "right_eye_outer",
    "left_ear", "right_ear",
    "mouth_left", "mouth_right",
    "left_shoulder", "right_shoulder",
    "left_elbow", "right_elbow",
    "left_wrist", "right_wrist",
    "left_pinky", "right_pinky",
    "left_index", "right_index",
    "left_thumb", "right_thumb",
    "left_hip", "right_hip",
    "left_knee", "right_knee",
    "left_ankle", "right_ankle",
    "left_heel", "right_heel",
    "left_foot_index", "right_foot_index",
]

LEG_INDICES = [23, 24, 25, 26, 27, 28, 29, 30, 31, 32]


def _coordinate(landmark: Any) -> Tuple[float, float]:
    """Return ``(x, y)`` of one landmark, or zeros if it is unusable."""
    if landmark is None:
        return 0.0, 0.0
    if isinstance(landmark, dict):
        x, y = landmark.get("x"), landmark.get("y")
    elif hasattr(landmark, "x") and hasattr(landmark, "y"):
        x, y = landmark.x, landmark.y
    else:
        try:
            x, y = landmark[0], landmark[1]
        except (TypeError, IndexError, KeyError):
            return 0.0, 0.0
    try:
        return (
            float(x) if x is not None else 0.0,
            float(y) if y is not None else 0.0,
        )
    except (TypeError, ValueError):
        return 0.0, 0.0


class FeatureExtractor:
    """Flatten selected pose landmarks into a fixed-length vector."""

    def __init__(self, joint_indices: Optional[Sequence[int]] = None):
        indices = list(LEG_INDICES if joint_indices is None else joint_indices)
        if not indices:
            raise InvalidConfiguration("joint_indices must name at least one joint")
        if any(isinstance(i, bool) or not isinstance(i, (int, np.integer)) or i < 0
               for i in indices):
            raise InvalidConfiguration(
                f"joint_indices must be non-negative integers, got {indices}"
            )
        self.joint_indices: List[int] = [int(i) for i in indices]

    @property
    def n_features(self) -> int:
        return 2 * len(self.joint_indices)

    def extract(self, landmarks: Optional[Sequence[Any]]) -> np.ndarray:
        """Return the ``(2*J,)`` feature vector for one landmark set."""
        out = np.zeros(self.n_features, dtype=np.float64)
        if landmarks is None or len(landmarks) == 0:
            return out
        n = len(landmarks)
        for slot, idx in enumerate(self.joint_indices):
            if idx < n:
                out[2 * slot], out[2 * slot + 1] = _coordinate(landmarks[idx])
        return out

    __call__ = extract

    def feature_names(self) -> List[str]:
        names = []
        for idx in self.joint_indices:
            joint = POSE_LANDMARK_NAMES[idx] if idx < len(POSE_LANDMARK_NAMES) else f"joint_{idx}"
            names.extend([f"{joint}_x", f"{joint}_y"])
        return names
