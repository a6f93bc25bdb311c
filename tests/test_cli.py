"""Tests for the pose_trainer command line."""
import json

import pytest
import yaml

from pose_trainer import cli
from pose_trainer.dataset import load_dataset, save_dataset
from pose_trainer.replay import write_frames
from pose_trainer.simulator import PoseSimulator, SimScenario

LABELS = ["step_1", "step_2", "step_3", "step_4"]


@pytest.fixture
def dataset_file(tmp_path):
    path = tmp_path / "pose_data.json"
    save_dataset(PoseSimulator(LABELS, seed=5).make_dataset(10), path)
    return path


@pytest.fixture
def config_file(tmp_path, dataset_file):
    cfg = {
        "dataset_path": str(dataset_file),
        "practice_repeats": 1,
        "practice_hold_schedule": [0.3],
        "performance_countdown_s": 1,
        "performance_duration_s": 4.0,
        "recording_countdown_s": 1,
        "recording_capture_s": 1.0,
        "export_dir": str(tmp_path / "recordings"),
        "split_seed": 3,
    }
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(cfg))
    return path


class TestParser:
    def test_mode_required(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args([])

    def test_modes_exclusive(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["--practice", "--perform"])


class TestModes:
    def test_validate(self, config_file, capsys):
        assert cli.main(["--validate", "--config", str(config_file)]) == 0
        assert "VALID" in capsys.readouterr().out

    def test_validate_invalid(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("k: 0\n")
        assert cli.main(["--validate", "--config", str(path)]) == 1

    def test_invalid_config_exits_1(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("k: 0\n")
        assert cli.main(["--evaluate", "--config", str(path)]) == 1

    def test_evaluate(self, config_file, tmp_path, capsys):
        out = tmp_path / "eval.json"
        assert cli.main(["--evaluate", "--config", str(config_file), "--out", str(out)]) == 0
        assert "Accuracy: 100.00%" in capsys.readouterr().out
        result = json.loads(out.read_text())
        assert result["n_test"] == 8
        assert result["labels"] == LABELS

    def test_missing_dataset(self, config_file, tmp_path):
        code = cli.main(["--evaluate", "--config", str(config_file),
                         "--dataset", str(tmp_path / "none.json")])
        assert code == 1

    def test_merge(self, config_file, dataset_file, tmp_path, capsys):
        out = tmp_path / "merged.json"
        code = cli.main(["--merge", str(dataset_file), str(dataset_file),
                         "--out", str(out), "--config", str(config_file)])
        assert code == 0
        assert len(load_dataset(out)) == 80

    def test_merge_requires_out(self, config_file, dataset_file):
        before = dataset_file.read_text()
        with pytest.raises(SystemExit):
            cli.main(["--merge", str(dataset_file), "--config", str(config_file)])
        assert dataset_file.read_text() == before

    def test_demo(self, config_file, capsys):
        assert cli.main(["--demo", "--config", str(config_file), "--seed", "1"]) == 0
        out = capsys.readouterr().out
        assert "Sequence complete!" in out
        assert '"completed": true' in out

    def test_practice_simulated(self, config_file, capsys):
        assert cli.main(["--practice", "--simulate", "--config", str(config_file)]) == 0
        assert '"steps_completed": 4' in capsys.readouterr().out

    def test_perform_simulated_stops_when_time_is_up(self, config_file, capsys):
        assert cli.main(["--perform", "--simulate", "--config", str(config_file)]) == 0
        out = capsys.readouterr().out
        summary = json.loads(out[out.index("{\n"):])
        assert summary["time_up"]
        assert not summary["completed"]
        assert summary["cycles"] >= 1

    def test_record_simulated(self, config_file, tmp_path, capsys):
        assert cli.main(["--record", "step_2", "--simulate", "--config", str(config_file)]) == 0
        path = tmp_path / "recordings" / "pose_data_step_2.json"
        samples = load_dataset(path)
        assert samples
        assert {s.label for s in samples} == {"step_2"}

    def test_record_from_replay_without_pose(self, config_file, tmp_path):
        log = tmp_path / "empty.jsonl"
        write_frames(PoseSimulator(["x"], seed=0).stream([SimScenario(None, 3.0)]), log)
        code = cli.main(["--record", "step_1", "--replay", str(log),
                         "--config", str(config_file)])
        assert code == 1

    def test_missing_replay_is_detector_error(self, config_file, tmp_path):
        code = cli.main(["--practice", "--replay", str(tmp_path / "none.jsonl"),
                         "--config", str(config_file)])
        assert code == cli.DETECTOR_EXIT_CODE


class TestSignals:
    def test_handler_sets_stop_event(self):
        import signal
        from threading import Event

        stop = Event()
        previous = cli._install_signal_handlers(stop)
        try:
            signal.getsignal(signal.SIGTERM)(signal.SIGTERM, None)
            assert stop.is_set()
        finally:
            cli._restore_signal_handlers(previous)
        assert signal.getsignal(signal.SIGTERM) is previous[signal.SIGTERM]
