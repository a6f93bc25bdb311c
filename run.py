#!/usr/bin/env python3
"""Pose Step Trainer - Entry Point

Usage:
    # Validate configuration
    python run.py --validate

    # Try it without a camera
    python run.py --demo

    # Record, merge, evaluate, practise, perform
    python run.py --record step_1
    python run.py --merge data/recordings/*.json --out data/pose_data.json
    python run.py --evaluate --seed 7
    python run.py --practice
    python run.py --perform

See ``python run.py --help`` for all options.
"""

import os
import sys

# Fix Windows console encoding
if sys.platform == "win32":
    try:
        sys.stdout.reconfigure(encoding="utf-8", errors="replace")
        sys.stderr.reconfigure(encoding="utf-8", errors="replace")
    except Exception:
        os.environ.setdefault("PYTHONIOENCODING", "utf-8")

from pose_trainer.cli import main


if __name__ == "__main__":
    sys.exit(main())
