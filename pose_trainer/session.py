"""One end-to-end practice, performance or recording run.

A ``TrainerSession`` owns everything that changes while the dancer moves: its
snapshot of the classifier, the step progression, an optional recorder and
the timers that drive countdowns. Nothing is shared between sessions, and
``teardown`` is the single place where timers are released.

Per frame:
    landmarks -> FeatureExtractor -> PoseClassifier.classify
              -> matched? -> SequenceController.advance(matched, dt)
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from threading import Event
from typing import Callable, List, Optional

from .errors import InvalidConfiguration, NoTrainingData, SessionBusy
from .features import FeatureExtractor
from .pose_classifier import PoseClassifier, matches
from .recording import RecordingController, RecordingPhase
from .replay import Frame
from .scheduling import Timer, TimerGroup, run_frame_loop
from .sequence import SequenceController, SequenceState, StepProgress

logger = logging.getLogger(__name__)


@dataclass
class FrameReport:
    """What happened on one frame, for display layers."""
    timestamp: float
    pose_found: bool
    predicted: Optional[str]
    target: Optional[str]
    matched: bool
    state: Optional[SequenceState]
    progress: Optional[StepProgress]
    trained: bool = True
    countdown_remaining: int = 0
    recording_phase: Optional[RecordingPhase] = None


@dataclass
class SessionSummary:
    frames: int = 0
    pose_frames: int = 0
    matched_frames: int = 0
    steps_completed: int = 0
    cycles: int = 0
    completed: bool = False
    time_up: bool = False
    final_progress: Optional[StepProgress] = None

    def to_dict(self) -> dict:
        out = dict(self.__dict__)
        if self.final_progress is not None:
            p = self.final_progress
            out["final_progress"] = {
                "current_index": p.current_index,
                "accumulated_hold": p.accumulated_hold,
                "state": p.state.value,
                "cycles": p.cycles,
            }
        return out


class TrainerSession:
    """Session owning classifier snapshot, progress, recorder and timers.

    Args:
        classifier: trained classifier (None for recording-only sessions)
        extractor: feature extractor matching the classifier's training data
        sequence: step progression (None for recording-only sessions)
        timers: timer group; defaults to the recorder's, else a private one
        recorder: optional recorder fed with every frame
        countdown_seconds: frames are ignored until this countdown ends
        duration_seconds: session ends this long after the countdown starts
    """

    def __init__(
        self,
        classifier: Optional[PoseClassifier],
        extractor: FeatureExtractor,
        sequence: Optional[SequenceController],
        timers: Optional[TimerGroup] = None,
        recorder: Optional[RecordingController] = None,
        countdown_seconds: int = 0,
        duration_seconds: Optional[float] = None,
    ):
        if sequence is not None and classifier is None:
            raise ValueError("a sequence needs a classifier to match against")
        self.classifier = classifier
        self.extractor = extractor
        self.sequence = sequence
        if recorder is not None:
            if timers is None:
                timers = recorder.timers
            elif timers is not recorder.timers:
                raise InvalidConfiguration(
                    "recorder must run on the session's timer group"
                )
        self.timers = timers if timers is not None else TimerGroup()
        self.recorder = recorder
        self.countdown_seconds = int(countdown_seconds)
        self.duration_seconds = duration_seconds

        self.summary = SessionSummary()
        self._countdown_remaining = self.countdown_seconds
        self._own_timers: List[Timer] = []
        self._started = False
        self._time_up = False
        self._torn_down = False
        self._last_ts: Optional[float] = None
        self._pending_recording: Optional[str] = None
        self._warned_untrained = False

    def __enter__(self) -> "TrainerSession":
        return self

    def __exit__(self, *exc) -> None:
        self.teardown()

    @property
    def countdown_remaining(self) -> int:
        return self._countdown_remaining

    @property
    def counting_down(self) -> bool:
        return self._countdown_remaining > 0

    @property
    def torn_down(self) -> bool:
        return self._torn_down

    @property
    def finished(self) -> bool:
        """True once the sequence completed, time ran out or a recording-only run is done."""
        if self._time_up:
            return True
        if self.sequence is not None:
            return self.sequence.is_complete
        if self.recorder is not None:
            return self.recorder.phase is RecordingPhase.DONE
        return False

    # ── timers ─────────────────────────────────────────────────────

    def start(self, now: Optional[float] = None) -> None:
        """Arm the countdown and duration timers, anchored at ``now``."""
        if self._torn_down:
            raise RuntimeError("session has been torn down")
        if self._started:
            return
        self._started = True
        if self._countdown_remaining > 0:
            logger.info(f"Starting in {self._countdown_remaining}s")
            self._own_timers.append(
                self.timers.call_every(1.0, self._on_countdown_tick, now=now)
            )
        if self.duration_seconds is not None:
            self._own_timers.append(
                self.timers.call_later(self.duration_seconds, self._on_time_up, now=now)
            )

    def _on_countdown_tick(self) -> None:
        self._countdown_remaining -= 1
        if self._countdown_remaining <= 0:
            self._countdown_remaining = 0
            for t in self._own_timers:
                if t.interval is not None:
                    t.cancel()
            logger.info("Go!")

    def _on_time_up(self) -> None:
        self._time_up = True
        self.summary.time_up = True
        logger.info("Session time is up")

    def _cancel_own_timers(self) -> None:
        for t in self._own_timers:
            t.cancel()
        self._own_timers = []

    # ── recording ──────────────────────────────────────────────────

    def start_recording(self, label: str) -> None:
        """Start recording ``label``, or on the first frame if none was seen yet.

        Raises:
            SessionBusy: if a recording is already waiting for the first frame,
                counting down or capturing
        """
        if self.recorder is None:
            raise ValueError("session has no recorder")
        if self._pending_recording is not None:
            raise SessionBusy(
                f"recording of '{self._pending_recording}' is waiting for the first frame"
            )
        if self._last_ts is None:
            if self.recorder.session.active:
                self.recorder.start(label)  # raises SessionBusy
            self._pending_recording = label
        else:
            self.recorder.start(label, now=self._last_ts)

    # ── frames ─────────────────────────────────────────────────────

    def process_frame(self, frame: Frame) -> FrameReport:
        """Run one classify-and-decide cycle for a detector frame."""
        if self._torn_down:
            raise RuntimeError("session has been torn down")
        now = frame.timestamp if frame.timestamp is not None else self.timers.clock()
        if not self._started:
            self.start(now)
        self.timers.poll(now)
        if self._pending_recording is not None:
            label, self._pending_recording = self._pending_recording, None
            self.recorder.start(label, now=now)
        dt = 0.0 if self._last_ts is None else now - self._last_ts
        self._last_ts = now

        landmarks = frame.landmarks
        pose_found = landmarks is not None and len(landmarks) > 0
        self.summary.frames += 1
        if pose_found:
            self.summary.pose_frames += 1

        if self.recorder is not None:
            self.recorder.on_frame(landmarks)

        report = FrameReport(
            timestamp=now,
            pose_found=pose_found,
            predicted=None,
            target=None,
            matched=False,
            state=None,
            progress=None,
            countdown_remaining=self._countdown_remaining,
            recording_phase=self.recorder.phase if self.recorder is not None else None,
        )
        if self.sequence is None:
            return report

        report.target = self.sequence.current_step.target_label
        if self.counting_down or self.finished:
            report.state = self.sequence.state
            report.progress = self.sequence.progress
            return report

        if pose_found:
            features = self.extractor.extract(landmarks)
            try:
                report.predicted = self.classifier.classify(features)
            except NoTrainingData:
                report.trained = False
                if not self._warned_untrained:
                    logger.warning("Classifier not trained; poses cannot match")
                    self._warned_untrained = True
            report.matched = matches(report.predicted, report.target)

        state = self.sequence.advance(report.matched, dt)
        if report.matched:
            self.summary.matched_frames += 1
        if state in (SequenceState.ADVANCING, SequenceState.COMPLETE):
            self.summary.steps_completed += 1
            self.summary.cycles = self.sequence.cycles
            self.summary.completed = state is SequenceState.COMPLETE
        report.state = state
        report.progress = self.sequence.progress
        return report

    def try_again(self) -> None:
        """Back to the first step with a fresh countdown."""
        if self._torn_down:
            raise RuntimeError("session has been torn down")
        self._cancel_own_timers()
        if self.recorder is not None:
            self.recorder.cancel()
        if self.sequence is not None:
            self.sequence.reset(0)
        self.summary = SessionSummary()
        self._countdown_remaining = self.countdown_seconds
        self._time_up = False
        self._started = False
        self._last_ts = None
        self._pending_recording = None
        logger.info("Trying again from the first step")

    def teardown(self) -> None:
        """Release every timer; the session cannot process frames afterwards."""
        if self._torn_down:
            return
        self._torn_down = True
        self._own_timers = []
        if self.recorder is not None and self.recorder.session.active:
            self.recorder.cancel()
        self.timers.cancel_all()
        if self.sequence is not None:
            self.summary.final_progress = self.sequence.progress

    def run(
        self,
        detector,
        stop: Optional[Event] = None,
        max_frames: Optional[int] = None,
        on_report: Optional[Callable[[FrameReport], None]] = None,
    ) -> SessionSummary:
        """Drive the session from ``detector`` until it finishes or is stopped.

        The session is torn down when the loop exits.
        """
        stop = stop if stop is not None else Event()

        def handle(frame: Frame) -> bool:
            report = self.process_frame(frame)
            if on_report is not None:
                on_report(report)
            return not self.finished

        try:
            run_frame_loop(detector, handle, self.timers, stop, max_frames)
        finally:
            self.teardown()
        return self.summary
