from unittest.mock import Mock

import pytest
from google.auth.exceptions import RefreshError

from mockprep.interview.orchestrator import (
    EventKind, OrchestratorEvent, RecorderState, speech_timeout
)
from mockprep.interview.testing import DeferredExecutor, create_mock_interview_setup

S = RecorderState


def reach_capture(setup):
    """Run the countdown of the current question."""
    setup["scheduler"].advance(3.0)
    assert setup["orchestrator"].state == S.CAPTURING


def answer(setup, text):
    orchestrator = setup["orchestrator"]
    orchestrator.set_answer_text(text)
    orchestrator.submit_answer()


def test_speech_timeout_bounds():
    assert speech_timeout("short") == 5.0
    assert speech_timeout("x" * 100) == pytest.approx(10.0)


def test_full_interview_with_follow_ups():
    setup = create_mock_interview_setup(question_count=5)
    orchestrator, gateway = setup["orchestrator"], setup["gateway"]
    orchestrator.start()
    assert orchestrator.state == S.COUNTING_DOWN

    for i in range(5):
        reach_capture(setup)
        assert orchestrator.question_index == i
        assert not orchestrator.is_follow_up
        setup["microphone"].track.push(f"clip-{i}".encode())
        answer(setup, f"Root answer {i + 1}")

        assert orchestrator.is_follow_up
        assert orchestrator.question_index == i
        reach_capture(setup)
        answer(setup, f"Follow-up answer {i + 1}")

    assert orchestrator.state == S.FINISHED
    answers = gateway.list_answers(orchestrator.interview.mock_id)
    roots = [a for a in answers if a.parent_answer_id is None]
    follow_ups = [a for a in answers if a.parent_answer_id is not None]
    assert [a.user_answer for a in roots] == [f"Root answer {i}" for i in range(1, 6)]
    assert [a.parent_answer_id for a in follow_ups] == [a.id for a in roots]
    assert orchestrator.recorded_answer_ids == [a.id for a in roots]
    # one follow-up per root question, never one for a follow-up answer
    assert len(setup["follow_ups"].calls) == 5

    metrics = setup["metrics"].get_metrics()
    assert metrics["interviews_started"] == 1
    assert metrics["interviews_completed"] == 1
    assert metrics["answers_scored"] == 10
    assert metrics["follow_ups_generated"] == 5
    assert metrics["questions_presented"] == 10
    assert metrics["clips_uploaded"] == 10
    assert setup["microphone"].track is not None and setup["microphone"].track.ended


def test_follow_up_scored_against_root_model_answer():
    setup = create_mock_interview_setup(question_count=3)
    setup["orchestrator"].start()
    reach_capture(setup)
    answer(setup, "Root answer")
    reach_capture(setup)
    answer(setup, "Follow-up answer")

    root_call, follow_up_call = setup["scorer"].calls
    assert follow_up_call[0].startswith("Follow-up 1")
    assert follow_up_call[1] == root_call[1] == "Model answer 1."
    assert follow_up_call[2] == "Follow-up answer"


def test_scoring_failure_blocks_until_retry():
    setup = create_mock_interview_setup(question_count=5, follow_ups=False, fail_scoring_on=[3])
    orchestrator = setup["orchestrator"]
    orchestrator.start()
    for i in range(2):
        reach_capture(setup)
        answer(setup, f"Answer {i + 1}")

    reach_capture(setup)
    setup["microphone"].track.push(b"third clip")
    answer(setup, "Answer 3")
    assert orchestrator.state == S.IDLE
    assert orchestrator.question_index == 2
    assert orchestrator.error
    assert orchestrator.answer_text == "Answer 3"
    assert len(orchestrator.recorded_answer_ids) == 2
    assert setup["metrics"].errors_occurred == 1

    orchestrator.submit_answer()
    assert orchestrator.error is None
    assert orchestrator.question_index == 3
    third_id = orchestrator.recorded_answer_ids[2]
    path = f"{orchestrator.interview.mock_id}/{third_id}.webm"
    assert setup["storage"].uploads[path].data == b"third clip"

    for i in range(3, 5):
        reach_capture(setup)
        answer(setup, f"Answer {i + 1}")
    assert orchestrator.state == S.FINISHED
    assert len(setup["gateway"].list_answers(orchestrator.interview.mock_id)) == 5


def test_upload_failure_does_not_interrupt():
    setup = create_mock_interview_setup(question_count=3, follow_ups=False, fail_uploads_on=[2])
    orchestrator = setup["orchestrator"]
    orchestrator.start()
    for i in range(3):
        reach_capture(setup)
        answer(setup, f"Answer {i + 1}")

    assert orchestrator.state == S.FINISHED
    answers = setup["gateway"].list_answers(orchestrator.interview.mock_id)
    assert answers[0].video_url is not None
    assert answers[1].video_url is None
    assert answers[2].video_url is not None
    assert setup["metrics"].upload_failures == 1
    assert setup["metrics"].clips_uploaded == 2


def test_follow_up_failure_advances():
    setup = create_mock_interview_setup(question_count=3, follow_up_fails=True)
    orchestrator = setup["orchestrator"]
    orchestrator.start()
    reach_capture(setup)
    answer(setup, "Answer 1")

    assert orchestrator.question_index == 1
    assert not orchestrator.is_follow_up
    assert orchestrator.state == S.COUNTING_DOWN
    assert setup["metrics"].follow_ups_failed == 1


def test_skip_follow_up():
    setup = create_mock_interview_setup(question_count=3)
    orchestrator = setup["orchestrator"]
    orchestrator.start()
    reach_capture(setup)
    answer(setup, "Answer 1")
    assert orchestrator.is_follow_up

    orchestrator.skip_follow_up()
    assert orchestrator.question_index == 1
    assert not orchestrator.is_follow_up
    assert orchestrator.state == S.COUNTING_DOWN
    assert setup["scheduler"].pending_timers == 1


def test_skip_ignored_on_root_question():
    setup = create_mock_interview_setup(question_count=3)
    orchestrator = setup["orchestrator"]
    orchestrator.start()
    reach_capture(setup)
    orchestrator.skip_follow_up()
    assert orchestrator.question_index == 0
    assert orchestrator.state == S.CAPTURING


def test_blank_submit_is_ignored():
    setup = create_mock_interview_setup(question_count=3)
    orchestrator = setup["orchestrator"]
    orchestrator.start()
    reach_capture(setup)
    answer(setup, "   ")
    assert orchestrator.state == S.CAPTURING
    assert setup["scorer"].calls == []


def test_blank_submit_during_countdown_stops_it():
    setup = create_mock_interview_setup(question_count=3)
    orchestrator, scheduler = setup["orchestrator"], setup["scheduler"]
    orchestrator.start()
    assert orchestrator.state == S.COUNTING_DOWN
    orchestrator.submit_answer()
    assert orchestrator.state == S.IDLE
    assert scheduler.pending_timers == 0
    scheduler.advance(5.0)
    assert orchestrator.state == S.IDLE
    assert setup["scorer"].calls == []

    orchestrator.toggle_capture()
    assert orchestrator.state == S.CAPTURING


def test_spoken_answer_fills_text():
    setup = create_mock_interview_setup(question_count=3, follow_ups=False)
    orchestrator, recognizer = setup["orchestrator"], setup["recognizer"]
    orchestrator.start()
    reach_capture(setup)
    assert orchestrator.is_listening
    assert recognizer.starts == ["en-US"]

    recognizer.emit_result(["I designed", "the billing API"])
    assert orchestrator.answer_text == "I designed the billing API"
    orchestrator.submit_answer()

    assert not recognizer.active
    stored = setup["gateway"].list_answers(orchestrator.interview.mock_id)
    assert stored[0].user_answer == "I designed the billing API"


def test_capture_stop_keeps_capturing_state():
    setup = create_mock_interview_setup(question_count=3)
    orchestrator, recognizer = setup["orchestrator"], setup["recognizer"]
    orchestrator.start()
    reach_capture(setup)
    recognizer.emit_result(["partial"])
    recognizer.emit_error("not-allowed")

    assert orchestrator.state == S.CAPTURING
    assert not orchestrator.is_listening
    assert orchestrator.answer_text == "partial"
    assert setup["metrics"].capture_stops == 1
    answer(setup, "partial, finished by typing")
    assert orchestrator.is_follow_up


def test_without_recognizer_answers_are_typed():
    setup = create_mock_interview_setup(question_count=3, recognition_available=False,
                                        microphone_fails=True, follow_ups=False)
    orchestrator = setup["orchestrator"]
    orchestrator.start()
    reach_capture(setup)
    assert not orchestrator.is_listening
    answer(setup, "Typed answer")
    assert orchestrator.question_index == 1
    assert setup["storage"].uploads == {}


def test_speech_then_countdown():
    setup = create_mock_interview_setup(question_count=3, speech_available=True)
    orchestrator, synthesizer = setup["orchestrator"], setup["synthesizer"]
    orchestrator.start()
    assert orchestrator.state == S.SPEAKING
    text, voice = synthesizer.spoken[0]
    assert text == orchestrator.current_question
    assert voice.name == "Samantha"

    synthesizer.finish()
    assert orchestrator.state == S.COUNTING_DOWN
    assert orchestrator.countdown == 3
    setup["scheduler"].advance(1.0)
    assert orchestrator.countdown == 2
    setup["scheduler"].advance(2.0)
    assert orchestrator.state == S.CAPTURING


def test_speech_timeout_moves_on():
    setup = create_mock_interview_setup(question_count=3, speech_available=True)
    orchestrator = setup["orchestrator"]
    orchestrator.start()
    setup["scheduler"].advance(speech_timeout(orchestrator.current_question) - 0.5)
    assert orchestrator.state == S.SPEAKING
    setup["scheduler"].advance(0.5)
    assert orchestrator.state == S.COUNTING_DOWN
    assert setup["synthesizer"].cancels >= 1


def test_synthesis_error_still_counts_down():
    setup = create_mock_interview_setup(question_count=3, speech_available=True)
    setup["orchestrator"].start()
    setup["synthesizer"].finish("synthesis-failed")
    assert setup["orchestrator"].state == S.COUNTING_DOWN


def test_toggle_during_speech_cancels_sequence():
    setup = create_mock_interview_setup(question_count=3, speech_available=True)
    orchestrator, scheduler = setup["orchestrator"], setup["scheduler"]
    orchestrator.start()
    stale_done = OrchestratorEvent(EventKind.SPEECH_DONE, cycle=1)

    orchestrator.toggle_capture()
    assert orchestrator.state == S.CAPTURING
    assert scheduler.pending_timers == 0

    orchestrator.dispatch(stale_done)
    scheduler.advance(30)
    assert orchestrator.state == S.CAPTURING
    assert orchestrator.countdown == 0


def test_toggle_during_countdown_leaves_no_ticks():
    setup = create_mock_interview_setup(question_count=3)
    orchestrator, scheduler = setup["orchestrator"], setup["scheduler"]
    orchestrator.start()
    scheduler.advance(1.0)
    orchestrator.toggle_capture()
    assert orchestrator.state == S.CAPTURING
    assert orchestrator.countdown == 0
    assert scheduler.pending_timers == 0


def test_toggle_stops_and_restarts_capture():
    setup = create_mock_interview_setup(question_count=3)
    orchestrator = setup["orchestrator"]
    orchestrator.start()
    reach_capture(setup)

    orchestrator.toggle_capture()
    assert orchestrator.state == S.IDLE
    assert not orchestrator.is_listening
    assert not setup["media"].recording

    orchestrator.toggle_capture()
    assert orchestrator.state == S.CAPTURING
    assert orchestrator.is_listening
    assert setup["media"].recording


def test_submit_from_idle_after_toggle():
    setup = create_mock_interview_setup(question_count=3, follow_ups=False)
    orchestrator = setup["orchestrator"]
    orchestrator.start()
    reach_capture(setup)
    orchestrator.toggle_capture()
    answer(setup, "Typed while idle")
    assert orchestrator.question_index == 1


def test_events_before_start_are_ignored():
    setup = create_mock_interview_setup(question_count=3)
    orchestrator = setup["orchestrator"]
    orchestrator.toggle_capture()
    answer(setup, "too early")
    assert orchestrator.state == S.IDLE
    assert setup["recognizer"].starts == []
    assert setup["scorer"].calls == []


def test_empty_interview_finishes_immediately():
    setup = create_mock_interview_setup(question_count=0)
    setup["orchestrator"].start()
    assert setup["orchestrator"].state == S.FINISHED
    assert setup["metrics"].interviews_completed == 1


def test_teardown_releases_everything():
    setup = create_mock_interview_setup(question_count=3)
    orchestrator, scheduler = setup["orchestrator"], setup["scheduler"]
    orchestrator.start()
    reach_capture(setup)
    orchestrator.teardown()

    assert not orchestrator.is_listening
    assert setup["microphone"].track.ended
    assert not setup["media"].recording

    answer(setup, "after teardown")
    orchestrator.toggle_capture()
    scheduler.advance(10)
    assert setup["scorer"].calls == []
    assert orchestrator.state == S.CAPTURING


def test_teardown_cancels_pending_timers():
    setup = create_mock_interview_setup(question_count=3)
    orchestrator, scheduler = setup["orchestrator"], setup["scheduler"]
    orchestrator.start()
    orchestrator.teardown()
    assert scheduler.pending_timers == 0
    scheduler.advance(10)
    assert orchestrator.state == S.COUNTING_DOWN


def test_background_jobs_deliver_through_scheduler():
    executor = DeferredExecutor()
    setup = create_mock_interview_setup(question_count=3, follow_ups=False, executor=executor)
    orchestrator, scheduler = setup["orchestrator"], setup["scheduler"]
    orchestrator.start()
    reach_capture(setup)
    answer(setup, "Answer 1")
    assert orchestrator.state == S.SUBMITTING

    orchestrator.toggle_capture()
    answer(setup, "Answer again")
    assert orchestrator.state == S.SUBMITTING
    assert len(executor.jobs) == 1

    executor.run_all()
    assert orchestrator.state == S.SUBMITTING
    scheduler.run_ready()
    assert orchestrator.question_index == 1
    assert orchestrator.state == S.COUNTING_DOWN


def test_stale_job_result_is_dropped():
    executor = DeferredExecutor()
    setup = create_mock_interview_setup(question_count=3, executor=executor)
    orchestrator, scheduler = setup["orchestrator"], setup["scheduler"]
    orchestrator.start()
    reach_capture(setup)
    answer(setup, "Answer 1")
    executor.run_all()
    scheduler.run_ready()
    assert orchestrator.state == S.FOLLOW_UP_PENDING

    orchestrator.skip_follow_up()
    assert orchestrator.question_index == 1
    executor.run_all()
    scheduler.run_ready()
    assert not orchestrator.is_follow_up
    assert orchestrator.question_index == 1
    assert setup["metrics"].follow_ups_generated == 0


def test_crashing_scorer_job_returns_to_idle(monkeypatch):
    executor = DeferredExecutor()
    setup = create_mock_interview_setup(question_count=3, follow_ups=False, executor=executor)
    orchestrator, scheduler = setup["orchestrator"], setup["scheduler"]
    orchestrator.start()
    reach_capture(setup)
    monkeypatch.setattr(setup["scorer"], "score", Mock(side_effect=RefreshError("token expired")))
    answer(setup, "Answer 1")
    executor.run_all()
    scheduler.run_ready()

    assert orchestrator.state == S.IDLE
    assert "token expired" in orchestrator.error
    assert orchestrator.answer_text == "Answer 1"
    assert setup["metrics"].errors_occurred == 1

    monkeypatch.undo()
    orchestrator.submit_answer()
    executor.run_all()
    scheduler.run_ready()
    assert orchestrator.question_index == 1
    assert orchestrator.error is None


def test_crashing_scorer_inline_returns_to_idle(monkeypatch):
    setup = create_mock_interview_setup(question_count=3)
    orchestrator = setup["orchestrator"]
    orchestrator.start()
    reach_capture(setup)
    monkeypatch.setattr(setup["scorer"], "score", Mock(side_effect=RuntimeError("boom")))
    answer(setup, "Answer 1")
    assert orchestrator.state == S.IDLE
    assert orchestrator.error == "boom"


def test_crashing_follow_up_job_advances(monkeypatch):
    executor = DeferredExecutor()
    setup = create_mock_interview_setup(question_count=3, executor=executor)
    orchestrator, scheduler = setup["orchestrator"], setup["scheduler"]
    orchestrator.start()
    reach_capture(setup)
    monkeypatch.setattr(setup["follow_ups"], "generate", Mock(side_effect=RefreshError("token expired")))
    answer(setup, "Answer 1")
    executor.run_all()
    scheduler.run_ready()
    assert orchestrator.state == S.FOLLOW_UP_PENDING

    executor.run_all()
    scheduler.run_ready()
    assert orchestrator.question_index == 1
    assert not orchestrator.is_follow_up
    assert orchestrator.state == S.COUNTING_DOWN
    assert setup["metrics"].follow_ups_failed == 1
