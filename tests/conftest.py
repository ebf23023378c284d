"""Shared fixtures — question sets, a recording SyncChannel and a controller factory."""

import threading

import pytest

from lms_quiz.controllers.quiz_session import QuizSessionController
from lms_quiz.models.errors import LoadError, SaveError, SubmitError
from lms_quiz.models.question_model import Question
from lms_quiz.models.session_state import QuizReview, ScoreSummary
from lms_quiz.services.sync_channel import SyncChannel


class RecordingChannel(SyncChannel):
    """In-memory SyncChannel that records every call and fails on demand."""

    def __init__(self, questions=None, submit_failures=0, save_failures=0):
        self.questions = list(questions or [])
        self.submit_failures = submit_failures
        self.save_failures = save_failures
        self.saves = []
        self.submits = []
        self.saved = threading.Event()
        self.on_submit = None
        self.submit_error = SubmitError("server unavailable")
        self.save_error = SaveError("network down")
        self._summary = None

    def save_draft(
        self,
        attempt_id,
        answers,
        current_question_index,
        quiz_id="",
        flagged_questions=(),
        started_at=None,
        remaining_seconds=None,
    ):
        if self.save_failures > 0:
            self.save_failures -= 1
            raise self.save_error
        self.saves.append(
            {
                "attempt_id": attempt_id,
                "answers": dict(answers),
                "index": current_question_index,
                "flagged": list(flagged_questions),
                "started_at": started_at,
                "remaining_seconds": remaining_seconds,
            }
        )
        self.saved.set()

    def submit_attempt(self, attempt_id, answers, timing, quiz_id=""):
        self.submits.append({"attempt_id": attempt_id, "answers": dict(answers), "timing": timing})
        if self.on_submit is not None:
            self.on_submit()
        if self.submit_failures > 0:
            self.submit_failures -= 1
            raise self.submit_error
        self._summary = ScoreSummary(
            attempt_id=attempt_id,
            earned_points=len(answers),
            possible_points=len(self.questions) or len(answers),
            percentage=0.0,
            passed=False,
        )
        return self._summary

    def load_quiz(self, quiz_id):
        return [q.public_copy() for q in self.questions]

    def load_review(self, attempt_id):
        if self._summary is None:
            raise LoadError("no submission")
        return QuizReview(attempt_id=attempt_id, quiz_id="quiz-1", summary=self._summary)


@pytest.fixture
def scenario_questions():
    """Three questions: single choice, fill blank, multi choice."""
    return [
        Question(id="q1", type="single_choice", prompt="Pick one", options=["A", "B", "C"], correct_answer=1),
        Question(id="q2", type="fill_blank", prompt="Fill it", correct_answer="answer"),
        Question(id="q3", type="multi_choice", prompt="Pick many", options=["X", "Y", "Z"], correct_answer=[0, 2]),
    ]


@pytest.fixture
def all_type_questions():
    """One question for each supported type."""
    return [
        Question(id="single", type="single_choice", prompt="One", options=["a", "b", "c"], correct_answer=0),
        Question(id="multi", type="multi_choice", prompt="Many", options=["a", "b", "c"], correct_answer=[0, 1]),
        Question(id="tf", type="true_false", prompt="True?", correct_answer=1),
        Question(id="fill", type="fill_blank", prompt="Blank", correct_answer="word"),
        Question(id="essay", type="essay", prompt="Discuss", points=3),
        Question(
            id="match", type="matching", prompt="Pair",
            options=[("1", "one"), ("2", "two")], correct_answer={0: 0, 1: 1},
        ),
        Question(
            id="order", type="ordering", prompt="Sort",
            options=["first", "second", "third"], correct_answer={0: 1, 1: 2, 2: 3},
        ),
    ]


@pytest.fixture
def make_controller():
    """Controller factory with a long debounce and a no-op sleep; closes every controller on teardown."""
    created = []

    def factory(channel, **kwargs):
        kwargs.setdefault("debounce_seconds", 60)
        kwargs.setdefault("sleep", lambda seconds: None)
        controller = QuizSessionController(channel, quiz_id="quiz-1", user_id="user-1", **kwargs)
        created.append(controller)
        return controller

    yield factory

    for controller in created:
        controller.close()
