"""Pose Step Trainer - command line

Usage:
    # Validate configuration
    python run.py --validate

    # Accuracy and confusion matrix of the reference dataset
    python run.py --evaluate --dataset data/pose_data.json --seed 7

    # Record 5s of step_2 from the webcam after a 5s countdown
    python run.py --record step_2

    # Practice drill / final performance with the webcam
    python run.py --practice
    python run.py --perform

    # Same, replaying a landmark log instead of the camera
    python run.py --practice --replay data/session.jsonl

    # Demo: simulated dancer and synthetic dataset, no hardware needed
    python run.py --demo

    # Merge recordings into one dataset
    python run.py --merge data/recordings/*.json --out data/pose_data.json
"""

from __future__ import annotations

import argparse
import json
import logging
import signal
import sys
from pathlib import Path
from threading import Event
from typing import List, Optional

from . import choreography
from . import config_validator
from . import utils
from .dataset import load_dataset, label_counts, merge_datasets
from .detector import MediaPipeDetector, ReplayDetector, SimulatedDetector
from .errors import DatasetLoadError, DetectorUnavailable, InvalidConfiguration, SessionBusy
from .evaluation import evaluate_dataset
from .features import FeatureExtractor
from .pose_classifier import PoseClassifier
from .recording import RecordingController, RecordingPhase
from .scheduling import TimerGroup
from .sequence import SequenceController, SequenceState
from .session import FrameReport, TrainerSession
from .simulator import PoseSimulator, SimScenario, choreography_scenarios

logger = logging.getLogger(__name__)

DETECTOR_EXIT_CODE = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pose-trainer",
        description="Pose Step Trainer",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    mode_group = parser.add_mutually_exclusive_group(required=True)
    mode_group.add_argument("--validate", "-V", action="store_true",
                            help="Validate configuration and exit")
    mode_group.add_argument("--evaluate", action="store_true",
                            help="Train/test split, accuracy and confusion matrix")
    mode_group.add_argument("--record", metavar="LABEL", default=None,
                            help="Record samples of LABEL and export them")
    mode_group.add_argument("--practice", action="store_true",
                            help="Run the practice drill")
    mode_group.add_argument("--perform", action="store_true",
                            help="Run the looping final performance")
    mode_group.add_argument("--demo", action="store_true",
                            help="Practice drill with a simulated dancer and synthetic dataset")
    mode_group.add_argument("--merge", nargs="+", metavar="FILE", default=None,
                            help="Merge dataset files into --out (required)")

    parser.add_argument("--config", "-c", type=str, default=None, help="Config file path")
    parser.add_argument("--dataset", type=str, default=None, help="Override dataset path")
    parser.add_argument("--replay", type=str, default=None, help="Replay landmark log (.jsonl)")
    parser.add_argument("--simulate", action="store_true", help="Use a simulated dancer")
    parser.add_argument("--camera", type=int, default=0, help="Camera index")
    parser.add_argument("--seed", type=int, default=None, help="Shuffle / simulator seed")
    parser.add_argument("--k", type=int, default=None, help="Override k")
    parser.add_argument("--out", type=str, default=None, help="Output file or directory")
    parser.add_argument("--speed", type=float, default=0.0,
                        help="Replay speed factor (0 = as fast as possible)")
    parser.add_argument("--max-frames", type=int, default=None, help="Stop after N frames")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    return parser


def _install_signal_handlers(stop: Event) -> dict:
    def handler(signum, frame):
        sig_name = signal.Signals(signum).name
        logger.info(f"Received signal {sig_name}, stopping...")
        stop.set()

    previous = {}
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            previous[sig] = signal.signal(sig, handler)
        except ValueError:
            # Not in the main thread (embedded use); rely on the caller's stop event
            pass
    return previous


def _restore_signal_handlers(previous: dict) -> None:
    for sig, handler in previous.items():
        signal.signal(sig, handler)


def _make_detector(args, cfg: dict, scenarios: List[SimScenario], labels: List[str]):
    if args.replay:
        return ReplayDetector(args.replay, speed=args.speed)
    if args.simulate or args.demo:
        sim = PoseSimulator(labels, sample_rate_hz=cfg["frame_rate_hz"], seed=args.seed)
        return SimulatedDetector(sim, scenarios)
    return MediaPipeDetector(camera_index=args.camera)


def _load_classifier(cfg: dict, k: int, extractor: FeatureExtractor,
                     labels: List[str], synthetic: bool, seed: Optional[int]) -> PoseClassifier:
    if synthetic:
        sim = PoseSimulator(labels, seed=seed)
        samples = sim.make_dataset(samples_per_label=40, extractor=extractor)
        logger.info(f"Using synthetic dataset ({len(samples)} samples)")
    else:
        samples = load_dataset(cfg["dataset_path"])
    if samples and samples[0].features.shape[0] != extractor.n_features:
        raise DatasetLoadError(
            f"dataset vectors have {samples[0].features.shape[0]} values but "
            f"{len(extractor.joint_indices)} joints give {extractor.n_features}"
        )
    return PoseClassifier.from_dataset(samples, k=k)


def cmd_validate(args) -> int:
    path = args.config or str(config_validator.DEFAULT_CONFIG_PATH)
    result = config_validator.validate_config_file(path)
    config_validator.print_validation_report(result, verbose=False)
    return 0 if result.valid else 1


def cmd_evaluate(args, cfg: dict) -> int:
    dataset = load_dataset(cfg["dataset_path"])
    k = args.k if args.k is not None else cfg["eval_k"]
    seed = args.seed if args.seed is not None else cfg["split_seed"]
    logger.info(f"Label counts: {label_counts(dataset)}")
    result = evaluate_dataset(dataset, cfg["train_fraction"], k=k, seed=seed)
    print(result.format_report())
    if args.out:
        out = utils.atomic_write_json(args.out, result.to_dict())
        logger.info(f"Wrote evaluation to {out}")
    return 0


def cmd_merge(args, cfg: dict) -> int:
    out = Path(args.out)
    merged = merge_datasets([Path(p) for p in args.merge], out)
    print(f"Merged {len(merged)} samples into {out}: {label_counts(merged)}")
    return 0


def cmd_record(args, cfg: dict) -> int:
    label = args.record
    extractor = FeatureExtractor(cfg["joint_indices"])
    timers = TimerGroup()
    recorder = RecordingController(
        extractor, timers,
        countdown_seconds=cfg["recording_countdown_s"],
        capture_seconds=cfg["recording_capture_s"],
    )
    total = cfg["recording_countdown_s"] + cfg["recording_capture_s"] + 1.0
    detector = _make_detector(args, cfg, [SimScenario(label, total)], [label])
    stop = Event()
    previous = _install_signal_handlers(stop)

    last_phase = [RecordingPhase.IDLE]

    def on_report(report: FrameReport) -> None:
        if report.recording_phase is not last_phase[0]:
            last_phase[0] = report.recording_phase
            print(f"  {label}: {report.recording_phase.value}")

    try:
        with detector:
            session = TrainerSession(None, extractor, None, timers=timers, recorder=recorder)
            session.start_recording(label)
            session.run(detector, stop, args.max_frames, on_report)
    finally:
        _restore_signal_handlers(previous)

    if recorder.phase is not RecordingPhase.DONE:
        logger.error(f"Recording of {label} did not finish")
        return 1
    path = recorder.export(args.out or cfg["export_dir"], cfg["export_prefix"])
    if path is None:
        print(f"No pose detected while recording {label}; nothing saved")
        return 1
    print(f"Saved {len(recorder.captured_samples)} samples to {path}")
    return 0


def cmd_session(args, cfg: dict, mode: str) -> int:
    extractor = FeatureExtractor(cfg["joint_indices"])
    labels = list(cfg["step_labels"])
    k = args.k if args.k is not None else cfg["k"]
    classifier = _load_classifier(cfg, k, extractor, labels, args.demo, args.seed)

    steps = choreography.from_config(cfg, mode)
    sequence = SequenceController(steps)
    if mode == "perform":
        countdown = cfg["performance_countdown_s"]
        duration = cfg["performance_duration_s"]
    else:
        countdown, duration = 0, None

    scenarios = []
    if countdown:
        scenarios.append(SimScenario(None, float(countdown)))
    scenarios.extend(choreography_scenarios(
        [s.target_label for s in steps], [s.hold_duration for s in steps]
    ))
    if mode == "perform":
        scenarios = scenarios + scenarios[1 if countdown else 0:] * 2

    detector = _make_detector(args, cfg, scenarios, labels)
    stop = Event()
    previous = _install_signal_handlers(stop)
    phase = [-1]

    def on_report(report: FrameReport) -> None:
        if report.progress is None:
            return
        step = steps[report.progress.current_index]
        if mode == "practice" and step.phase_group != phase[0]:
            phase[0] = step.phase_group
            print(f"\n  {choreography.instruction_for(step.phase_group)}")
        if report.state is SequenceState.ADVANCING:
            print(f"  -> {step.target_label} ({report.progress.current_index + 1}/{len(steps)})")
        elif report.state is SequenceState.COMPLETE:
            print("  Sequence complete!")

    try:
        with detector:
            with TrainerSession(
                classifier, extractor, sequence,
                countdown_seconds=countdown, duration_seconds=duration,
            ) as session:
                summary = session.run(detector, stop, args.max_frames, on_report)
    finally:
        _restore_signal_handlers(previous)

    print(json.dumps(summary.to_dict(), indent=2))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.merge and not args.out:
        parser.error("--merge requires --out")

    if args.validate:
        return cmd_validate(args)

    try:
        cfg = config_validator.load_config(args.config)
    except InvalidConfiguration as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 1
    if args.dataset:
        cfg["dataset_path"] = args.dataset
    utils.setup_logging("DEBUG" if args.verbose else cfg["log_level"], cfg["log_file"])

    try:
        if args.evaluate:
            return cmd_evaluate(args, cfg)
        if args.merge:
            return cmd_merge(args, cfg)
        if args.record:
            return cmd_record(args, cfg)
        if args.perform:
            return cmd_session(args, cfg, "perform")
        return cmd_session(args, cfg, "practice")
    except DatasetLoadError as e:
        logger.error(f"Dataset error: {e}")
        return 1
    except DetectorUnavailable as e:
        logger.error(f"Detector not ready: {e}")
        return DETECTOR_EXIT_CODE
    except (InvalidConfiguration, SessionBusy) as e:
        logger.error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
