"""Tests for pose_trainer.utils."""
import json
import logging
import logging.handlers

from pose_trainer import utils


class TestSetupLogging:
    def test_console_handler(self):
        logger = utils.setup_logging("debug")
        assert logger.name == "pose_trainer"
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1

    def test_repeated_calls_do_not_stack(self, tmp_path):
        utils.setup_logging(logging.INFO, str(tmp_path / "logs" / "trainer.log"))
        logger = utils.setup_logging(logging.INFO, str(tmp_path / "logs" / "trainer.log"))
        assert len(logger.handlers) == 2
        assert any(isinstance(h, logging.handlers.RotatingFileHandler) for h in logger.handlers)
        assert (tmp_path / "logs").is_dir()

    def test_unknown_level_falls_back(self):
        assert utils.setup_logging("CHATTY").level == logging.INFO


class TestAtomicWriteJson:
    def test_writes_and_replaces(self, tmp_path):
        path = tmp_path / "nested" / "out.json"
        utils.atomic_write_json(path, {"a": 1})
        utils.atomic_write_json(path, [1, 2])
        assert json.loads(path.read_text()) == [1, 2]
        assert [p.name for p in path.parent.iterdir()] == ["out.json"]
