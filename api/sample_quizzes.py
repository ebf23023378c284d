"""
api/sample_quizzes.py — 데모용 샘플 퀴즈
"""

from lms_quiz.models.question_model import Question, Quiz

SAMPLE_QUIZZES: list[Quiz] = [
    Quiz(
        id="python-basics",
        title="Python Basics",
        description="모든 문제 유형을 한 번씩 다루는 입문 퀴즈",
        time_limit_seconds=600,
        passing_score=70,
        questions=[
            Question(
                id="py-1", type="single_choice",
                prompt="Which keyword defines a function in Python?",
                options=["func", "def", "lambda", "fn"],
                correct_answer=1,
                explanation="함수 정의는 def 키워드를 사용합니다. lambda는 익명 함수 표현식입니다.",
            ),
            Question(
                id="py-2", type="multi_choice",
                prompt="Which of the following types are immutable?",
                options=["tuple", "list", "frozenset", "dict"],
                correct_answer=[0, 2],
                points=2,
                explanation="tuple과 frozenset은 불변, list와 dict는 가변 타입입니다.",
            ),
            Question(
                id="py-3", type="true_false",
                prompt="A Python list can contain elements of different types.",
                correct_answer=0,
                explanation="리스트는 서로 다른 타입의 객체를 함께 담을 수 있습니다.",
            ),
            Question(
                id="py-4", type="fill_blank",
                prompt="The built-in function that returns the length of a sequence is ____.",
                correct_answer="len",
                explanation="len()은 시퀀스/컬렉션의 길이를 반환합니다.",
            ),
            Question(
                id="py-5", type="matching",
                prompt="Match each literal with its type.",
                options=[("[]", "list"), ("{}", "dict"), ("()", "tuple")],
                correct_answer={0: 0, 1: 1, 2: 2},
                points=3,
                explanation="빈 중괄호 {}는 set이 아니라 dict 리터럴입니다.",
            ),
            Question(
                id="py-6", type="ordering",
                prompt="Order the stages of running a script.",
                options=["Parse source", "Compile to bytecode", "Execute bytecode"],
                correct_answer={0: 1, 1: 2, 2: 3},
                points=2,
            ),
            Question(
                id="py-7", type="essay",
                prompt="Explain the difference between a list and a generator.",
                points=5,
            ),
        ],
    ),
    Quiz(
        id="http-warmup",
        title="HTTP Warm-up",
        description="시간 제한 없는 짧은 퀴즈",
        passing_score=60,
        max_attempts=3,
        questions=[
            Question(
                id="http-1", type="single_choice",
                prompt="Which status code means 'Not Found'?",
                options=["200", "301", "404", "500"],
                correct_answer=2,
            ),
            Question(
                id="http-2", type="fill_blank",
                prompt="The HTTP method used to fully replace a resource is ____.",
                correct_answer="PUT",
            ),
            Question(
                id="http-3", type="multi_choice",
                prompt="Which methods are idempotent?",
                options=["GET", "POST", "PUT", "DELETE"],
                correct_answer=[0, 2, 3],
            ),
        ],
    ),
]
