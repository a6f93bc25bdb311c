"""Landmark sources feeding the frame loop.

All detectors share one interface:

- ``detect()`` returns the next ``Frame`` (``landmarks`` is None when no pose
  was found) or ``None`` once the source is exhausted
- ``close()`` releases the underlying resource; detectors are context managers

The camera detector wraps MediaPipe Pose. It is an optional dependency
(``pip install .[camera]``); when the library or the camera is missing it
raises ``DetectorUnavailable`` so callers can show a "not ready" state.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Iterator, Optional, Sequence

from .errors import DetectorUnavailable
from .replay import Frame, replay
from .simulator import PoseSimulator, SimScenario

logger = logging.getLogger(__name__)


class _IteratorDetector:
    """Detector backed by a frame iterator."""

    def __init__(self, frames: Iterator[Frame]):
        self._frames = frames
        self._closed = False

    def detect(self) -> Optional[Frame]:
        if self._closed:
            return None
        return next(self._frames, None)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            close = getattr(self._frames, "close", None)
            if close is not None:
                close()

    def __enter__(self):
        return self

    def __exit__(self, *exc) -> None:
        self.close()


class ReplayDetector(_IteratorDetector):
    """Frames from a JSON-lines landmark log (see ``replay.py``)."""

    def __init__(self, path: str | Path, speed: float = 0.0):
        path = Path(path)
        if not path.exists():
            raise DetectorUnavailable(f"Replay file not found: {path}")
        self.path = path
        super().__init__(replay(path, speed))


class SimulatedDetector(_IteratorDetector):
    """Frames from ``PoseSimulator`` (no hardware needed)."""

    def __init__(
        self,
        simulator: PoseSimulator,
        scenarios: Sequence[SimScenario],
        realtime: bool = False,
        start_ts: float = 0.0,
    ):
        self.simulator = simulator
        super().__init__(simulator.stream(scenarios, start_ts=start_ts, realtime=realtime))


class MediaPipeDetector:
    """Webcam + MediaPipe Pose, one person per frame.

    Raises:
        DetectorUnavailable: if mediapipe/OpenCV are missing or the camera
            cannot be opened
    """

    def __init__(
        self,
        camera_index: int = 0,
        model_complexity: int = 1,
        min_detection_confidence: float = 0.5,
        min_tracking_confidence: float = 0.5,
        clock=time.monotonic,
    ):
        try:
            import cv2
            import mediapipe as mp
            pose_solution = mp.solutions.pose
        except (ImportError, AttributeError) as e:
            raise DetectorUnavailable(
                f"MediaPipe pose detection unavailable ({e}); install the 'camera' extra"
            ) from e

        self._cv2 = cv2
        self._clock = clock
        self._cap = cv2.VideoCapture(camera_index)
        if not self._cap.isOpened():
            self._cap.release()
            raise DetectorUnavailable(f"Could not open camera {camera_index}")
        try:
            self._pose = pose_solution.Pose(
                static_image_mode=False,
                model_complexity=model_complexity,
                min_detection_confidence=min_detection_confidence,
                min_tracking_confidence=min_tracking_confidence,
            )
        except Exception as e:
            self._cap.release()
            raise DetectorUnavailable(f"MediaPipe Pose failed to initialise: {e}") from e
        self._closed = False
        logger.info(f"Camera {camera_index} opened for pose detection")

    def detect(self) -> Optional[Frame]:
        if self._closed:
            return None
        ok, image = self._cap.read()
        if not ok:
            logger.warning("Camera returned no frame; stopping")
            return None
        ts = self._clock()
        rgb = self._cv2.cvtColor(image, self._cv2.COLOR_BGR2RGB)
        results = self._pose.process(rgb)
        if not results.pose_landmarks:
            return Frame(ts, None)
        landmarks = [
            [lm.x, lm.y, lm.visibility] for lm in results.pose_landmarks.landmark
        ]
        return Frame(ts, landmarks)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._pose.close()
            self._cap.release()

    def __enter__(self):
        return self

    def __exit__(self, *exc) -> None:
        self.close()
