"""Allow running as: python -m pose_trainer [--practice|--perform|--demo|...]"""
import sys

from pose_trainer.cli import main

sys.exit(main())
