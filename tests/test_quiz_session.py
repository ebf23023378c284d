"""Tests for QuizSessionController — lifecycle, answers, navigation, timer expiry, submit retries, autosave."""

import threading
import time
from datetime import datetime, timedelta, timezone

import pytest

from conftest import RecordingChannel
from lms_quiz.models.errors import (
    AlreadySubmittingError,
    AttemptLimitError,
    InvalidAnswerShapeError,
    InvalidStateError,
    SubmitError,
    UnknownQuestionError,
)
from lms_quiz.models.session_state import AttemptStatus, DraftSnapshot
from lms_quiz.services.timer import TimerLevel



class _SlowSaveChannel(RecordingChannel):
    """Blocks inside save_draft until the test releases it."""

    def __init__(self):
        super().__init__()
        self.entered = threading.Event()
        self.release = threading.Event()

    def save_draft(self, *args, **kwargs):
        self.entered.set()
        self.release.wait(5)
        super().save_draft(*args, **kwargs)


def _wait_for(condition, timeout=3.0):
    deadline = time.monotonic() + timeout
    while not condition() and time.monotonic() < deadline:
        time.sleep(0.01)
    return condition()


class TestStart:
    def test_start_strips_correct_answers(self, make_controller, scenario_questions):
        controller = make_controller(RecordingChannel())
        attempt = controller.start(scenario_questions, 60)
        assert attempt.status is AttemptStatus.IN_PROGRESS
        assert attempt.current_question_index == 0
        assert attempt.answers == {}
        assert attempt.visited_questions == {"q1"}
        assert all(q.correct_answer is None for q in controller.questions)
        assert controller.remaining_seconds == 60

    def test_empty_quiz_rejected(self, make_controller):
        controller = make_controller(RecordingChannel())
        with pytest.raises(ValueError):
            controller.start([])
        assert not controller.is_started

    def test_non_positive_limit_rejected(self, make_controller, scenario_questions):
        controller = make_controller(RecordingChannel())
        with pytest.raises(ValueError):
            controller.start(scenario_questions, 0)

    def test_duplicate_ids_rejected(self, make_controller, scenario_questions):
        controller = make_controller(RecordingChannel())
        with pytest.raises(ValueError):
            controller.start(scenario_questions + [scenario_questions[0]])
        assert not controller.is_started

    def test_second_start_rejected(self, make_controller, scenario_questions):
        controller = make_controller(RecordingChannel())
        controller.start(scenario_questions)
        with pytest.raises(InvalidStateError):
            controller.start(scenario_questions)

    def test_untimed_quiz_has_no_timer(self, make_controller, scenario_questions):
        controller = make_controller(RecordingChannel())
        controller.start(scenario_questions)
        controller.tick(10_000)
        assert controller.status is AttemptStatus.IN_PROGRESS
        assert controller.remaining_seconds is None
        assert controller.timer_level is None

    def test_load_and_start_uses_channel(self, make_controller, scenario_questions):
        controller = make_controller(RecordingChannel(questions=scenario_questions))
        controller.load_and_start(30)
        assert controller.question_count == 3


class TestAnswers:
    """Test set_answer validation and progress counting."""

    def test_example_scenario(self, make_controller, scenario_questions):
        channel = RecordingChannel()
        controller = make_controller(channel)
        controller.start(scenario_questions, 60)

        controller.set_answer("q1", 1)
        assert controller.answered_count == 1
        assert controller.progress_display == 33

        controller.set_answer("q2", "")
        assert controller.answered_count == 1

        controller.set_answer("q3", {0, 2})
        assert controller.answered_count == 2
        assert controller.progress_display == 67

        for _ in range(60):
            controller.tick()

        assert len(channel.submits) == 1
        assert channel.submits[0]["answers"] == {"q1": 1, "q3": [0, 2]}
        assert controller.status is AttemptStatus.SUBMITTED

    def test_repeated_edit_keeps_answered_count(self, make_controller, scenario_questions):
        controller = make_controller(RecordingChannel())
        controller.start(scenario_questions)
        controller.set_answer("q2", "first")
        before = controller.answered_count
        controller.set_answer("q2", "second")
        assert controller.answered_count == before == 1
        assert controller.get_answer("q2") == "second"

    @pytest.mark.parametrize(
        "question_id,raw",
        [
            ("single", "a"),
            ("single", [0]),
            ("multi", 1),
            ("multi", "ab"),
            ("tf", {0: 1}),
            ("fill", 3),
            ("essay", [0, 1]),
            ("match", [0, 1]),
            ("order", "first"),
            ("order", {0: 1, 1: 1}),
        ],
    )
    def test_wrong_shape_rejected(self, make_controller, all_type_questions, question_id, raw):
        controller = make_controller(RecordingChannel())
        controller.start(all_type_questions)
        with pytest.raises(InvalidAnswerShapeError) as exc_info:
            controller.set_answer(question_id, raw)
        assert exc_info.value.question_id == question_id
        assert controller.answers == {}
        assert not controller.sync_state.has_unsaved_changes

    def test_unknown_question(self, make_controller, scenario_questions):
        controller = make_controller(RecordingChannel())
        controller.start(scenario_questions)
        with pytest.raises(UnknownQuestionError):
            controller.set_answer("nope", 1)

    def test_set_answer_before_start(self, make_controller):
        controller = make_controller(RecordingChannel())
        with pytest.raises(InvalidStateError):
            controller.set_answer("q1", 1)

    def test_none_and_empty_values_clear(self, make_controller, scenario_questions):
        controller = make_controller(RecordingChannel())
        controller.start(scenario_questions)
        controller.set_answer("q1", 0)
        controller.set_answer("q3", [1])
        controller.set_answer("q1", None)
        controller.set_answer("q3", [])
        assert controller.answers == {}
        assert controller.answered_count == 0

    def test_clear_answer(self, make_controller, scenario_questions):
        controller = make_controller(RecordingChannel())
        controller.start(scenario_questions)
        controller.set_answer("q2", "x")
        controller.clear_answer("q2")
        assert not controller.is_answered("q2")

    def test_answers_property_is_a_copy(self, make_controller, scenario_questions):
        controller = make_controller(RecordingChannel())
        controller.start(scenario_questions)
        controller.answers["q1"] = 2
        controller.attempt.answers["q1"] = 2
        assert controller.get_answer("q1") is None


class TestNavigation:
    def test_next_previous_and_clamp(self, make_controller, scenario_questions):
        controller = make_controller(RecordingChannel())
        controller.start(scenario_questions)
        assert controller.navigate("previous") == 0
        assert controller.navigate("next") == 1
        assert controller.navigate(99) == 2
        assert controller.navigate("next") == 2
        assert controller.navigate(-5) == 0
        assert controller.attempt.visited_questions == {"q1", "q2", "q3"}

    def test_invalid_direction(self, make_controller, scenario_questions):
        controller = make_controller(RecordingChannel())
        controller.start(scenario_questions)
        with pytest.raises(ValueError):
            controller.navigate("sideways")
        with pytest.raises(ValueError):
            controller.navigate(True)

    def test_navigation_ignored_after_submit(self, make_controller, scenario_questions):
        controller = make_controller(RecordingChannel())
        controller.start(scenario_questions)
        controller.submit()
        assert controller.navigate("next") == 0

    def test_time_spent_recorded_per_question(self, make_controller, scenario_questions):
        now = [100.0]
        controller = make_controller(RecordingChannel(), clock=lambda: now[0])
        controller.start(scenario_questions)
        now[0] = 105.0
        controller.navigate("next")
        now[0] = 107.5
        controller.navigate("previous")
        spent = controller.attempt.time_spent
        assert spent == {"q1": 5.0, "q2": 2.5}

    def test_toggle_flag(self, make_controller, scenario_questions):
        controller = make_controller(RecordingChannel())
        controller.start(scenario_questions)
        assert controller.toggle_flag("q2") is True
        assert controller.attempt.flagged_questions == {"q2"}
        assert controller.toggle_flag("q2") is False
        with pytest.raises(UnknownQuestionError):
            controller.toggle_flag("nope")

    def test_flag_only_change_is_saved(self, make_controller, scenario_questions):
        channel = RecordingChannel()
        controller = make_controller(channel)
        controller.start(scenario_questions)
        controller.toggle_flag("q2")
        assert controller.sync_state.has_unsaved_changes

        controller.save_now()
        assert len(channel.saves) == 1
        assert channel.saves[0]["flagged"] == ["q2"]
        assert channel.saves[0]["answers"] == {}
        assert not controller.sync_state.has_unsaved_changes


class TestTimer:
    def test_warning_levels(self, make_controller, scenario_questions):
        controller = make_controller(RecordingChannel())
        controller.start(scenario_questions, 100)
        assert controller.timer_level is TimerLevel.NORMAL
        controller.tick(80)
        assert controller.timer_level is TimerLevel.WARNING
        controller.tick(15)
        assert controller.timer_level is TimerLevel.CRITICAL

    def test_expiry_submits_exactly_once(self, make_controller, scenario_questions):
        channel = RecordingChannel(submit_failures=10)
        controller = make_controller(channel, max_submit_retries=1)
        controller.start(scenario_questions, 5)
        controller.set_answer("q1", 2)

        for _ in range(20):
            controller.tick()

        assert len(channel.submits) == 1
        assert controller.status is AttemptStatus.EXPIRED
        assert controller.remaining_seconds == 0
        assert controller.get_answer("q1") == 2

    def test_expired_attempt_is_read_only_but_submittable(self, make_controller, scenario_questions):
        channel = RecordingChannel(submit_failures=1)
        controller = make_controller(channel, max_submit_retries=1)
        controller.start(scenario_questions, 1)
        controller.set_answer("q1", 0)
        controller.tick()
        assert controller.status is AttemptStatus.EXPIRED

        with pytest.raises(InvalidStateError):
            controller.set_answer("q1", 1)

        summary = controller.submit()
        assert summary.attempt_id == controller.attempt_id
        assert controller.status is AttemptStatus.SUBMITTED
        assert channel.submits[-1]["answers"] == {"q1": 0}

    def test_timing_uses_timer_elapsed(self, make_controller, scenario_questions):
        channel = RecordingChannel()
        controller = make_controller(channel)
        controller.start(scenario_questions, 60)
        controller.tick(12)
        controller.submit()
        assert channel.submits[0]["timing"].elapsed_seconds == 12


class TestSubmit:
    """Test submit state transitions and retry behaviour."""

    def test_submitted_attempt_is_immutable(self, make_controller, scenario_questions):
        controller = make_controller(RecordingChannel())
        controller.start(scenario_questions)
        controller.set_answer("q1", 1)
        controller.submit()
        before = controller.answers

        with pytest.raises(InvalidStateError):
            controller.set_answer("q1", 2)
        with pytest.raises(InvalidStateError):
            controller.submit()
        assert controller.answers == before
        assert controller.attempt.submitted_at is not None

    def test_failure_preserves_answers_and_status(self, make_controller, scenario_questions):
        channel = RecordingChannel(submit_failures=3)
        sleeps = []
        controller = make_controller(channel, max_submit_retries=3, backoff_base=1.0, sleep=sleeps.append)
        controller.start(scenario_questions)
        controller.set_answer("q1", 1)
        controller.set_answer("q3", [2, 0])
        before = controller.answers

        with pytest.raises(SubmitError) as exc_info:
            controller.submit()

        assert exc_info.value.attempts == 3
        assert len(channel.submits) == 3
        assert sleeps == [1.0, 2.0]
        assert controller.status is AttemptStatus.IN_PROGRESS
        assert controller.answers == before
        assert controller.last_submit_error is exc_info.value
        assert controller.sync_state.last_error

    def test_retry_then_success(self, make_controller, scenario_questions):
        channel = RecordingChannel(submit_failures=2)
        controller = make_controller(channel, max_submit_retries=3)
        controller.start(scenario_questions)
        summary = controller.submit()
        assert len(channel.submits) == 3
        assert controller.summary == summary
        assert controller.last_submit_error is None
        assert len({s["attempt_id"] for s in channel.submits}) == 1

    def test_attempt_limit_is_not_retried(self, make_controller, scenario_questions):
        channel = RecordingChannel(submit_failures=5)
        channel.submit_error = AttemptLimitError("limit reached")
        controller = make_controller(channel, max_submit_retries=3)
        controller.start(scenario_questions)
        with pytest.raises(AttemptLimitError):
            controller.submit()
        assert len(channel.submits) == 1
        assert controller.status is AttemptStatus.IN_PROGRESS

    def test_concurrent_submit_rejected(self, make_controller, scenario_questions):
        channel = RecordingChannel()
        controller = make_controller(channel)
        seen = []

        def reenter():
            assert controller.status is AttemptStatus.SUBMITTING
            with pytest.raises(AlreadySubmittingError):
                controller.submit()
            seen.append(True)

        channel.on_submit = reenter
        controller.start(scenario_questions)
        controller.submit()
        assert seen == [True]
        assert len(channel.submits) == 1

    def test_unexpected_channel_error_becomes_submit_error(self, make_controller, scenario_questions):
        channel = RecordingChannel(submit_failures=1)
        channel.submit_error = RuntimeError("boom")
        controller = make_controller(channel, max_submit_retries=3)
        controller.start(scenario_questions)
        with pytest.raises(SubmitError) as exc_info:
            controller.submit()
        assert not isinstance(exc_info.value, AttemptLimitError)
        assert len(channel.submits) == 1

    def test_review_only_after_submit(self, make_controller, scenario_questions):
        controller = make_controller(RecordingChannel())
        controller.start(scenario_questions)
        with pytest.raises(InvalidStateError):
            controller.load_review()
        controller.submit()
        assert controller.load_review().attempt_id == controller.attempt_id


class TestAutosave:
    """Test debounced draft saving."""

    def test_rapid_edits_coalesce_into_one_save(self, make_controller, scenario_questions):
        channel = RecordingChannel()
        controller = make_controller(channel, debounce_seconds=0.1)
        controller.start(scenario_questions)

        for n in range(10):
            controller.set_answer("q2", f"draft {n}")
        controller.navigate("next")

        assert channel.saved.wait(3)
        deadline = time.monotonic() + 3
        while controller.sync_state.has_unsaved_changes and time.monotonic() < deadline:
            time.sleep(0.01)
        controller.close()
        assert len(channel.saves) == 1
        assert channel.saves[0]["answers"] == {"q2": "draft 9"}
        assert channel.saves[0]["index"] == 1
        assert not controller.sync_state.has_unsaved_changes
        assert controller.sync_state.last_saved_at is not None

    def test_save_now_skips_when_clean(self, make_controller, scenario_questions):
        channel = RecordingChannel()
        controller = make_controller(channel)
        controller.start(scenario_questions)
        controller.save_now()
        assert channel.saves == []
        controller.set_answer("q1", 0)
        controller.toggle_flag("q1")
        controller.save_now()
        controller.save_now()
        assert len(channel.saves) == 1
        assert channel.saves[0]["flagged"] == ["q1"]

    def test_save_errors_surface_after_threshold(self, make_controller, scenario_questions):
        channel = RecordingChannel(save_failures=3)
        controller = make_controller(channel, save_error_threshold=3)
        controller.start(scenario_questions)
        controller.set_answer("q1", 0)

        controller.save_now()
        controller.save_now()
        assert controller.sync_state.last_error is None
        assert controller.sync_state.has_unsaved_changes

        controller.save_now()
        assert "3" in controller.sync_state.last_error
        assert controller.get_answer("q1") == 0

        controller.save_now()
        assert controller.sync_state.last_error is None
        assert channel.saves[0]["answers"] == {"q1": 0}

    def test_unexpected_save_error_is_wrapped(self, make_controller, scenario_questions):
        channel = RecordingChannel(save_failures=1)
        channel.save_error = RuntimeError("boom")
        controller = make_controller(channel, save_error_threshold=1)
        controller.start(scenario_questions)
        controller.set_answer("q1", 0)

        controller.save_now()
        state = controller.sync_state
        assert "boom" in state.last_error
        assert state.has_unsaved_changes
        assert not state.is_saving

        controller.save_now()
        assert controller.sync_state.last_error is None
        assert channel.saves[0]["answers"] == {"q1": 0}

    def test_edit_during_in_flight_save_gets_follow_up_save(self, make_controller, scenario_questions):
        channel = _SlowSaveChannel()
        controller = make_controller(channel, debounce_seconds=0.05)
        controller.start(scenario_questions)

        controller.set_answer("q2", "one")
        assert channel.entered.wait(3)
        controller.set_answer("q2", "two")
        time.sleep(0.15)
        channel.release.set()

        assert _wait_for(lambda: len(channel.saves) == 2)
        assert _wait_for(lambda: not controller.sync_state.has_unsaved_changes)
        time.sleep(0.15)
        assert [s["answers"] for s in channel.saves] == [{"q2": "one"}, {"q2": "two"}]

    def test_expiry_cancels_pending_save(self, make_controller, scenario_questions):
        channel = RecordingChannel()
        controller = make_controller(channel, debounce_seconds=0.2)
        controller.start(scenario_questions, 1)
        controller.set_answer("q1", 0)

        controller.tick()
        time.sleep(0.4)

        assert channel.saves == []
        assert len(channel.submits) == 1
        assert controller.status is AttemptStatus.SUBMITTED

    def test_save_carries_start_time_and_remaining(self, make_controller, scenario_questions):
        channel = RecordingChannel()
        controller = make_controller(channel)
        controller.start(scenario_questions, 60)
        controller.set_answer("q1", 0)
        controller.tick(45)
        controller.save_now()
        assert channel.saves[0]["remaining_seconds"] == 15
        assert channel.saves[0]["started_at"] == controller.attempt.started_at

    def test_no_autosave_after_submit(self, make_controller, scenario_questions):
        channel = RecordingChannel()
        controller = make_controller(channel)
        controller.start(scenario_questions)
        controller.set_answer("q1", 0)
        controller.submit()
        controller.save_now()
        assert channel.saves == []
        assert not controller.sync_state.has_unsaved_changes


class TestResume:
    def test_resume_restores_valid_answers(self, make_controller, scenario_questions):
        controller = make_controller(RecordingChannel())
        controller.start(scenario_questions, attempt_id="att-1")
        draft = DraftSnapshot(
            attempt_id="att-1",
            answers={"q1": 2, "q2": "", "q3": [0, 9], "gone": 1},
            current_question_index=2,
            flagged_questions=["q2", "gone"],
        )
        assert controller.resume(draft) == 1
        assert controller.answers == {"q1": 2}
        assert controller.current_index == 2
        assert controller.attempt.flagged_questions == {"q2"}

    def test_restore_saved_draft_from_channel(self, make_controller, scenario_questions, tmp_path):
        from lms_quiz.services.sync_channel import LocalDraftChannel

        channel = LocalDraftChannel(RecordingChannel(), draft_dir=str(tmp_path))
        channel.save_draft("att-7", {"q3": [1]}, 1)

        controller = make_controller(channel)
        controller.start(scenario_questions, attempt_id="att-7")
        assert controller.restore_saved_draft() == 1
        assert controller.get_answer("q3") == frozenset({1})
        assert controller.current_index == 1

    def test_resume_keeps_start_time_and_remaining_time(self, make_controller, scenario_questions):
        original_start = datetime.now(timezone.utc) - timedelta(minutes=5)
        draft = DraftSnapshot(
            attempt_id="att-r",
            answers={"q1": 1},
            started_at=original_start,
            remaining_seconds=20,
            saved_at=datetime.now(timezone.utc),
        )
        controller = make_controller(RecordingChannel())
        controller.start(scenario_questions, 60, attempt_id="att-r")
        controller.resume(draft)

        assert controller.attempt.started_at == original_start
        assert 18 <= controller.remaining_seconds <= 20
        assert controller.status is AttemptStatus.IN_PROGRESS

    def test_resume_subtracts_time_away(self, make_controller, scenario_questions):
        draft = DraftSnapshot(
            attempt_id="att-r",
            remaining_seconds=40,
            saved_at=datetime.now(timezone.utc) - timedelta(seconds=15),
        )
        controller = make_controller(RecordingChannel())
        controller.start(scenario_questions, 60, attempt_id="att-r")
        controller.resume(draft)
        assert 23 <= controller.remaining_seconds <= 25

    def test_resume_after_deadline_expires_and_submits_once(self, make_controller, scenario_questions):
        channel = RecordingChannel()
        draft = DraftSnapshot(
            attempt_id="att-r",
            answers={"q1": 2},
            remaining_seconds=5,
            saved_at=datetime.now(timezone.utc) - timedelta(seconds=10),
        )
        controller = make_controller(channel)
        controller.start(scenario_questions, 60, attempt_id="att-r")
        assert controller.resume(draft) == 1

        assert controller.remaining_seconds == 0
        assert controller.status is AttemptStatus.SUBMITTED
        assert len(channel.submits) == 1
        assert channel.submits[0]["answers"] == {"q1": 2}
        controller.tick()
        assert len(channel.submits) == 1

    def test_resume_without_remaining_uses_original_start(self, make_controller, scenario_questions):
        draft = DraftSnapshot(
            attempt_id="att-r",
            started_at=datetime.now(timezone.utc) - timedelta(seconds=50),
        )
        controller = make_controller(RecordingChannel())
        controller.start(scenario_questions, 60, attempt_id="att-r")
        controller.resume(draft)
        assert 8 <= controller.remaining_seconds <= 10
