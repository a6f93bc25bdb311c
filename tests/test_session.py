"""Tests for pose_trainer.session."""
import pytest

from pose_trainer.choreography import performance_steps, practice_steps
from pose_trainer.detector import SimulatedDetector
from pose_trainer.errors import InvalidConfiguration, SessionBusy
from pose_trainer.features import FeatureExtractor
from pose_trainer.pose_classifier import PoseClassifier
from pose_trainer.recording import RecordingController, RecordingPhase
from pose_trainer.replay import Frame
from pose_trainer.scheduling import TimerGroup
from pose_trainer.sequence import SequenceController, SequenceState
from pose_trainer.session import TrainerSession
from pose_trainer.simulator import PoseSimulator, SimScenario, choreography_scenarios

LABELS = ["step_1", "step_2"]


@pytest.fixture
def sim():
    return PoseSimulator(LABELS, sample_rate_hz=30, seed=11)


@pytest.fixture
def extractor():
    return FeatureExtractor()


@pytest.fixture
def classifier(sim, extractor):
    return PoseClassifier.from_dataset(sim.make_dataset(20, extractor), k=1)


def _session(classifier, extractor, steps, **kwargs):
    return TrainerSession(
        classifier, extractor, SequenceController(steps),
        timers=TimerGroup(lambda: 0.0), **kwargs,
    )


class TestPracticeRun:
    def test_simulated_dancer_completes_drill(self, sim, extractor, classifier):
        steps = practice_steps(LABELS, repeats=2, hold_schedule=[0.5, 0.3])
        scenarios = choreography_scenarios(
            [s.target_label for s in steps], [s.hold_duration for s in steps]
        )
        session = _session(classifier, extractor, steps)
        reports = []
        summary = session.run(SimulatedDetector(sim, scenarios), on_report=reports.append)

        assert summary.completed
        assert summary.steps_completed == 4
        assert summary.final_progress.state is SequenceState.COMPLETE
        assert reports[-1].state is SequenceState.COMPLETE
        assert session.torn_down
        assert session.timers.pending == 0

    def test_wrong_pose_never_advances(self, sim, extractor, classifier):
        steps = practice_steps(LABELS, repeats=1, hold_schedule=[0.5])
        session = _session(classifier, extractor, steps)
        summary = session.run(SimulatedDetector(sim, [SimScenario("step_2", 3.0)]))
        assert summary.steps_completed == 0
        assert summary.matched_frames == 0
        assert summary.final_progress.current_index == 0

    def test_no_pose_frames(self, sim, extractor, classifier):
        steps = practice_steps(LABELS, repeats=1, hold_schedule=[0.5])
        session = _session(classifier, extractor, steps)
        summary = session.run(SimulatedDetector(sim, [SimScenario(None, 1.0)]))
        assert summary.frames == 30
        assert summary.pose_frames == 0
        assert summary.final_progress.accumulated_hold == 0.0


class TestProcessFrame:
    def test_countdown_gates_progress(self, sim, extractor, classifier):
        session = _session(classifier, extractor, performance_steps(LABELS, 0.2),
                           countdown_seconds=2)
        pose = sim.sample("step_1")
        report = session.process_frame(Frame(0.0, pose))
        assert report.countdown_remaining == 2
        session.process_frame(Frame(1.0, pose))
        assert session.countdown_remaining == 1
        report = session.process_frame(Frame(1.5, pose))
        assert report.predicted is None
        assert session.sequence.accumulated_hold == 0.0

        report = session.process_frame(Frame(2.0, pose))
        assert not session.counting_down
        assert report.matched
        assert report.state is SequenceState.ADVANCING
        assert session.sequence.current_index == 1

    def test_time_up_ends_session(self, sim, extractor, classifier):
        session = _session(classifier, extractor, performance_steps(LABELS, 5.0),
                           duration_seconds=1.0)
        pose = sim.sample("step_1")
        session.process_frame(Frame(0.0, pose))
        session.process_frame(Frame(0.5, pose))
        assert not session.finished
        report = session.process_frame(Frame(1.0, pose))
        assert session.finished
        assert session.summary.time_up
        assert report.predicted is None
        assert session.sequence.accumulated_hold == pytest.approx(0.5)

    def test_untrained_classifier(self, sim, extractor, caplog):
        session = _session(PoseClassifier(), extractor, performance_steps(LABELS))
        pose = sim.sample("step_1")
        for ts in (0.0, 0.1, 0.2):
            report = session.process_frame(Frame(ts, pose))
        assert not report.trained
        assert not report.matched
        assert caplog.text.count("not trained") == 1

    def test_try_again(self, sim, extractor, classifier):
        session = _session(classifier, extractor, performance_steps(LABELS, 0.2),
                           countdown_seconds=1)
        pose = sim.sample("step_1")
        for ts in (0.0, 1.0, 1.3):
            session.process_frame(Frame(ts, pose))
        assert session.sequence.current_index == 1
        session.try_again()
        assert session.sequence.current_index == 0
        assert session.countdown_remaining == 1
        assert session.summary.frames == 0
        report = session.process_frame(Frame(10.0, pose))
        assert report.countdown_remaining == 1

    def test_teardown(self, sim, extractor, classifier):
        session = _session(classifier, extractor, performance_steps(LABELS),
                           countdown_seconds=3, duration_seconds=30.0)
        session.process_frame(Frame(0.0, None))
        assert session.timers.pending == 2
        session.teardown()
        session.teardown()
        assert session.timers.pending == 0
        with pytest.raises(RuntimeError):
            session.process_frame(Frame(1.0, None))

    def test_sequence_needs_classifier(self, extractor):
        with pytest.raises(ValueError):
            TrainerSession(None, extractor, SequenceController(performance_steps(LABELS)))


class TestRecordingSession:
    def test_recording_only_run(self, extractor):
        sim = PoseSimulator(["step_1"], sample_rate_hz=10, seed=0)
        timers = TimerGroup(lambda: 0.0)
        recorder = RecordingController(extractor, timers, countdown_seconds=1,
                                       capture_seconds=1.0)
        session = TrainerSession(None, extractor, None, timers=timers, recorder=recorder)
        session.start_recording("step_1")
        summary = session.run(SimulatedDetector(sim, [SimScenario("step_1", 5.0)]))

        assert recorder.phase is RecordingPhase.DONE
        assert 9 <= len(recorder.captured_samples) <= 11
        assert summary.frames < 50

    def test_start_recording_without_recorder(self, classifier, extractor):
        session = _session(classifier, extractor, performance_steps(LABELS))
        with pytest.raises(ValueError):
            session.start_recording("step_1")

    def test_second_request_before_first_frame_is_rejected(self, extractor):
        recorder = RecordingController(extractor, TimerGroup(lambda: 0.0), countdown_seconds=1)
        session = TrainerSession(None, extractor, None, recorder=recorder)
        session.start_recording("step_1")
        with pytest.raises(SessionBusy):
            session.start_recording("step_2")
        session.process_frame(Frame(0.0, None))
        assert recorder.session.target_label == "step_1"
        assert recorder.phase is RecordingPhase.COUNTDOWN

    def test_session_adopts_recorder_timers(self, sim, extractor):
        recorder = RecordingController(extractor, TimerGroup(lambda: 0.0),
                                       countdown_seconds=1, capture_seconds=1.0)
        session = TrainerSession(None, extractor, None, recorder=recorder)
        assert session.timers is recorder.timers
        session.start_recording("step_1")
        pose = sim.sample("step_1")
        for i in range(40):
            session.process_frame(Frame(i * 0.1, pose))
        assert recorder.phase is RecordingPhase.DONE
        assert recorder.captured_samples
        assert session.finished

    def test_recorder_on_other_timers(self, extractor):
        recorder = RecordingController(extractor, TimerGroup(lambda: 0.0))
        with pytest.raises(InvalidConfiguration):
            TrainerSession(None, extractor, None, timers=TimerGroup(), recorder=recorder)

    def test_recording_does_not_change_live_classifier(self, sim, extractor, classifier):
        timers = TimerGroup(lambda: 0.0)
        recorder = RecordingController(extractor, timers, countdown_seconds=1,
                                       capture_seconds=1.0)
        session = TrainerSession(
            classifier, extractor, SequenceController(performance_steps(LABELS, 5.0)),
            timers=timers, recorder=recorder,
        )
        queries = [extractor.extract(sim.sample(label)) for label in LABELS]
        size_before = len(classifier)
        labels_before = [classifier.classify(q) for q in queries]

        session.start_recording("step_2")
        for frame in sim.stream([SimScenario("step_2", 3.0)]):
            session.process_frame(frame)

        assert recorder.phase is RecordingPhase.DONE
        assert len(recorder.captured_samples) > 0
        assert session.classifier is classifier
        assert len(session.classifier) == size_before
        assert [session.classifier.classify(q) for q in queries] == labels_before
