"""Timed capture of labelled training samples.

A recording counts down (one tick per second) so the dancer can get into
position, then captures every detected pose for a fixed window, labelling
each frame with the pose being recorded. The result is exported as a dataset
file named after the label; it is never merged into a running classifier.

Usage:
    timers = TimerGroup()
    recorder = RecordingController(FeatureExtractor(), timers)
    recorder.start("step_1")
    # frame loop: timers.poll(now); recorder.on_frame(landmarks)
    recorder.export("data/recordings")
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, List, Optional, Sequence

from .dataset import LabeledSample, recording_filename, save_dataset
from .errors import InvalidConfiguration, SessionBusy
from .features import FeatureExtractor
from .scheduling import Timer, TimerGroup

logger = logging.getLogger(__name__)


class RecordingPhase(str, Enum):
    IDLE = "idle"
    COUNTDOWN = "countdown"
    CAPTURING = "capturing"
    DONE = "done"


@dataclass
class RecordingSession:
    """State of one recording."""
    target_label: str = ""
    phase: RecordingPhase = RecordingPhase.IDLE
    countdown_remaining: int = 0
    captured_samples: List[LabeledSample] = field(default_factory=list)

    @property
    def active(self) -> bool:
        return self.phase in (RecordingPhase.COUNTDOWN, RecordingPhase.CAPTURING)


class RecordingController:
    """Idle -> Countdown(n) -> Capturing(duration) -> Done."""

    def __init__(
        self,
        extractor: FeatureExtractor,
        timers: TimerGroup,
        countdown_seconds: int = 5,
        capture_seconds: float = 5.0,
    ):
        if countdown_seconds < 0:
            raise InvalidConfiguration(
                f"countdown_seconds must be non-negative, got {countdown_seconds}"
            )
        if capture_seconds <= 0:
            raise InvalidConfiguration(
                f"capture_seconds must be positive, got {capture_seconds}"
            )
        self.extractor = extractor
        self.timers = timers
        self.countdown_seconds = int(countdown_seconds)
        self.capture_seconds = float(capture_seconds)
        self.session = RecordingSession()
        self._tick: Optional[Timer] = None
        self._window: Optional[Timer] = None

    @property
    def phase(self) -> RecordingPhase:
        return self.session.phase

    @property
    def captured_samples(self) -> List[LabeledSample]:
        return list(self.session.captured_samples)

    def start(self, label: str, now: Optional[float] = None) -> RecordingSession:
        """Begin a new recording of ``label``.

        ``now`` anchors the countdown; by default the timers' current time.

        Raises:
            SessionBusy: if a recording is counting down or capturing
        """
        if self.session.active:
            raise SessionBusy(
                f"already recording '{self.session.target_label}' "
                f"({self.session.phase.value})"
            )
        label = str(label).strip()
        if not label:
            raise ValueError("recording label must not be empty")
        self.session = RecordingSession(
            target_label=label,
            phase=RecordingPhase.COUNTDOWN,
            countdown_remaining=self.countdown_seconds,
        )
        logger.info(f"Recording {label} in {self.countdown_seconds}s")
        if self.countdown_seconds == 0:
            self._begin_capture(now)
        else:
            self._tick = self.timers.call_every(1.0, self._on_tick, now=now)
        return self.session

    def _on_tick(self) -> None:
        self.session.countdown_remaining -= 1
        logger.debug(f"Recording countdown: {self.session.countdown_remaining}")
        if self.session.countdown_remaining <= 0:
            self._release(self._tick)
            self._tick = None
            self._begin_capture()

    def _begin_capture(self, now: Optional[float] = None) -> None:
        self.session.countdown_remaining = 0
        self.session.phase = RecordingPhase.CAPTURING
        self._window = self.timers.call_later(self.capture_seconds, self._finish, now=now)
        logger.info(f"Capturing {self.session.target_label} for {self.capture_seconds}s")

    def _finish(self) -> None:
        self._window = None
        self.session.phase = RecordingPhase.DONE
        logger.info(
            f"Recorded {len(self.session.captured_samples)} samples "
            f"of {self.session.target_label}"
        )

    def on_frame(self, landmarks: Optional[Sequence[Any]]) -> bool:
        """Capture one sample if a pose is visible while capturing.

        Returns True if a sample was appended.
        """
        if self.session.phase is not RecordingPhase.CAPTURING:
            return False
        if landmarks is None or len(landmarks) == 0:
            return False
        features = self.extractor.extract(landmarks)
        self.session.captured_samples.append(
            LabeledSample(self.session.target_label, features)
        )
        return True

    @staticmethod
    def _release(timer: Optional[Timer]) -> None:
        if timer is not None:
            timer.cancel()

    def cancel(self) -> None:
        """Abort an active recording and release its timers."""
        self._release(self._tick)
        self._release(self._window)
        self._tick = self._window = None
        if self.session.active:
            logger.info(f"Recording of {self.session.target_label} cancelled")
            self.session = RecordingSession()

    def export(self, directory: str | Path, prefix: str = "pose_data_") -> Optional[Path]:
        """Write the finished recording to ``directory``.

        Returns the file path, or None if nothing was captured.

        Raises:
            SessionBusy: if the recording has not finished
        """
        if self.session.active:
            raise SessionBusy("recording still in progress")
        if self.session.phase is not RecordingPhase.DONE or not self.session.captured_samples:
            logger.warning("Nothing recorded; export skipped")
            return None
        path = Path(directory) / recording_filename(self.session.target_label, prefix)
        return save_dataset(self.session.captured_samples, path)
