from __future__ import annotations
"""Offline replay of landmark logs yielding frames like the live detector."""

import json
import logging
import time
from pathlib import Path
from typing import Iterable, Iterator, List, NamedTuple, Optional

logger = logging.getLogger(__name__)


class Frame(NamedTuple):
    """One detector result: ``landmarks`` is None when no pose was found."""
    timestamp: Optional[float]
    landmarks: Optional[List[List[float]]]


def parse_frame_line(line: str) -> Optional[Frame]:
    """Parse a single JSON-lines landmark record.

    Expected format::

        {"ts": 12.03, "landmarks": [[0.41, 0.52, 0.98], [0.44, 0.55], ...]}

    ``landmarks`` may be ``null`` for frames without a pose. Each landmark is
    ``[x, y]`` optionally followed by more values (z, visibility) which are
    kept but ignored downstream. ``None`` is returned if parsing fails.
    """
    line = line.strip()
    if not line:
        return None
    try:
        rec = json.loads(line)
    except json.JSONDecodeError:
        return None
    if not isinstance(rec, dict):
        return None

    try:
        ts = float(rec["ts"]) if rec.get("ts") is not None else None
        raw = rec.get("landmarks")
        if raw is None:
            return Frame(ts, None)
        if not isinstance(raw, list):
            return None
        landmarks = []
        for lm in raw:
            if lm is None:
                landmarks.append(None)
            elif isinstance(lm, dict):
                landmarks.append([float(lm.get("x", 0.0)), float(lm.get("y", 0.0))])
            else:
                landmarks.append([float(v) for v in lm])
    except (TypeError, ValueError, KeyError):
        return None

    return Frame(ts, landmarks)


def frame_to_line(frame: Frame) -> str:
    landmarks = None
    if frame.landmarks is not None:
        landmarks = [None if lm is None else [float(v) for v in lm] for lm in frame.landmarks]
    return json.dumps({"ts": frame.timestamp, "landmarks": landmarks})


def write_frames(frames: Iterable[Frame], path: str | Path) -> int:
    """Write frames as JSON lines; returns the number written."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    count = 0
    with open(path, "w") as f:
        for frame in frames:
            f.write(frame_to_line(frame) + "\n")
            count += 1
    return count


def replay(path: str | Path, speed: float = 1.0) -> Iterator[Frame]:
    """Yield frames from ``path``, paced by their timestamps at ``speed``.

    ``speed <= 0`` yields as fast as the consumer pulls.
    """
    p = Path(path)
    with open(p, "r") as f:
        prev_ts = None
        skipped = 0
        for line in f:
            frame = parse_frame_line(line)
            if frame is None:
                if line.strip():
                    skipped += 1
                continue
            if prev_ts is not None and frame.timestamp is not None and speed > 0:
                delay = (frame.timestamp - prev_ts) / speed
                if delay > 0:
                    time.sleep(delay)
            if frame.timestamp is not None:
                prev_ts = frame.timestamp
            yield frame
    if skipped:
        logger.warning(f"Skipped {skipped} malformed lines in {p}")


def main() -> None:
    import argparse

    parser = argparse.ArgumentParser(description="Replay a landmark log file")
    parser.add_argument("--file", required=True, help="log file (.jsonl)")
    parser.add_argument("--speed", type=float, default=1.0, help="speed factor")
    args = parser.parse_args()
    n = sum(1 for _ in replay(args.file, args.speed))
    print(f"{n} frames")


if __name__ == "__main__":
    main()
