"""Cancellable timers and the serialized frame loop.

Everything time-driven in a session (recording countdowns, capture windows,
performance countdowns, track length) is a ``Timer`` owned by one
``TimerGroup``. Timers fire only from ``TimerGroup.poll``, which the frame
loop calls between detector frames, so callbacks never race with frame
processing. Tearing a session down is one ``cancel_all`` call.
"""
from __future__ import annotations

import heapq
import itertools
import logging
import time
from threading import Event
from typing import Any, Callable, List, Optional

logger = logging.getLogger(__name__)


class Timer:
    """Handle for a scheduled callback."""

    def __init__(self, group: "TimerGroup", deadline: float,
                 callback: Callable[[], Any], interval: Optional[float] = None):
        self._group = group
        self.deadline = deadline
        self.callback = callback
        self.interval = interval
        self.cancelled = False
        self.fired = 0

    @property
    def active(self) -> bool:
        return not self.cancelled

    def cancel(self) -> None:
        if not self.cancelled:
            self.cancelled = True
            self._group._discard(self)


class TimerGroup:
    """A set of one-shot and interval timers on a monotonic clock."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self._heap: List[tuple] = []
        self._seq = itertools.count()
        self._timers: set[Timer] = set()
        self._firing_at: Optional[float] = None
        self._last_poll: Optional[float] = None

    def __enter__(self) -> "TimerGroup":
        return self

    def __exit__(self, *exc) -> None:
        self.cancel_all()

    def __len__(self) -> int:
        return len(self._timers)

    def _now(self) -> float:
        # Timers created from inside a callback are anchored to the firing
        # deadline, not to however late the poll happened. Otherwise timers
        # follow the timeline of the frames driving poll().
        if self._firing_at is not None:
            return self._firing_at
        if self._last_poll is not None:
            return self._last_poll
        return self.clock()

    def _push(self, timer: Timer) -> None:
        heapq.heappush(self._heap, (timer.deadline, next(self._seq), timer))

    def _discard(self, timer: Timer) -> None:
        self._timers.discard(timer)

    def call_later(self, delay: float, callback: Callable[[], Any],
                   now: Optional[float] = None) -> Timer:
        """Run ``callback`` once, ``delay`` seconds after ``now``."""
        if delay < 0:
            raise ValueError(f"delay must be non-negative, got {delay}")
        start = self._now() if now is None else now
        timer = Timer(self, start + delay, callback)
        self._timers.add(timer)
        self._push(timer)
        return timer

    def call_every(self, interval: float, callback: Callable[[], Any],
                   now: Optional[float] = None) -> Timer:
        """Run ``callback`` every ``interval`` seconds after ``now`` until cancelled."""
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        start = self._now() if now is None else now
        timer = Timer(self, start + interval, callback, interval)
        self._timers.add(timer)
        self._push(timer)
        return timer

    def poll(self, now: Optional[float] = None) -> int:
        """Fire every timer due at ``now``; returns how many callbacks ran.

        An interval timer that fell behind fires once per missed period.
        """
        if now is None:
            now = self.clock()
        self._last_poll = now
        fired = 0
        while self._heap and self._heap[0][0] <= now:
            deadline, _, timer = heapq.heappop(self._heap)
            if timer.cancelled:
                continue
            if timer.interval is None:
                self._timers.discard(timer)
                timer.cancelled = True
            else:
                timer.deadline = deadline + timer.interval
                self._push(timer)
            self._firing_at = deadline
            try:
                timer.fired += 1
                timer.callback()
            finally:
                self._firing_at = None
            fired += 1
        return fired

    def cancel_all(self) -> None:
        """Cancel every pending timer."""
        for timer in list(self._timers):
            timer.cancelled = True
        self._timers.clear()
        self._heap.clear()

    @property
    def pending(self) -> int:
        return len(self._timers)


def run_frame_loop(
    detector,
    on_frame: Callable[[Any], Optional[bool]],
    timers: TimerGroup,
    stop: Event,
    max_frames: Optional[int] = None,
) -> int:
    """Pull frames from ``detector`` one at a time until told to stop.

    The next frame is requested only after ``on_frame`` has returned for the
    previous one. Timers are polled with each frame's timestamp before the
    frame is handled. The loop ends when ``stop`` is set, the detector returns
    ``None``, ``on_frame`` returns ``False`` or ``max_frames`` frames have been
    handled; in every case all timers in ``timers`` are cancelled.

    Returns:
        Number of frames handed to ``on_frame``
    """
    frames = 0
    try:
        while not stop.is_set():
            if max_frames is not None and frames >= max_frames:
                break
            frame = detector.detect()
            if frame is None:
                logger.debug("Detector exhausted after %d frames", frames)
                break
            now = frame.timestamp if frame.timestamp is not None else timers.clock()
            timers.poll(now)
            if stop.is_set():
                break
            frames += 1
            if on_frame(frame) is False:
                break
    finally:
        timers.cancel_all()
    return frames
