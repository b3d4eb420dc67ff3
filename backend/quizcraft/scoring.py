"""Quiz submission scoring.

`score` grades a submission against a quiz's question set. It is a pure
function: no database access, no clock, no randomness, so scoring the
same questions and answers twice yields equal reports.

Questions are passed as `QuestionKey` values (id, points and the flags of
the four options) so the engine does not depend on ORM objects; use
`QuestionKey.from_question` to build them from stored questions.
"""

from dataclasses import dataclass
from typing import Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from .errors import InvalidInput, InvalidQuizState

UNANSWERED = -1

SubmittedAnswers = Union[Mapping[int, Optional[int]], Iterable[Tuple[int, Optional[int]]]]


def round_half_up(numerator: int, denominator: int) -> int:
    """Round the non-negative fraction `numerator / denominator` half up.

    Integer arithmetic keeps `x.5` cases exact (Python's `round` would
    round 0.5 and 2.5 to the even neighbour).
    """
    if denominator <= 0:
        raise ValueError("denominator must be positive")
    return (2 * numerator + denominator) // (2 * denominator)


@dataclass(frozen=True)
class QuestionKey:
    """The parts of a question needed for grading."""
    question_id: int
    points: int
    correct_flags: Tuple[bool, ...]

    @property
    def option_count(self) -> int:
        return len(self.correct_flags)

    @classmethod
    def from_question(cls, question) -> "QuestionKey":
        """Build a key from a stored `Question` with its options loaded."""
        options = sorted(question.options, key=lambda o: o.position)
        return cls(
            question_id=question.id,
            points=question.points if question.points is not None else 1,
            correct_flags=tuple(bool(o.is_correct) for o in options),
        )


@dataclass(frozen=True)
class AnswerOutcome:
    """Outcome for a single quiz question."""
    question_id: int
    selected_option: int
    is_correct: bool
    points_earned: int


@dataclass(frozen=True)
class ScoreReport:
    score: int
    total_points: int
    percentage: int
    correct_answers: int
    incorrect_answers: int
    unanswered: int
    elapsed_seconds: int
    breakdown: Tuple[AnswerOutcome, ...]

    @property
    def total_questions(self) -> int:
        return len(self.breakdown)


def _normalize_answers(submitted: Optional[SubmittedAnswers]) -> dict:
    """Collapse the submission into `{question_id: option}`.

    Pairs are applied in order, so a question answered twice keeps the
    last answer.
    """
    if submitted is None:
        return {}
    pairs = submitted.items() if isinstance(submitted, Mapping) else submitted
    out = {}
    for pair in pairs:
        try:
            question_id, option = pair
        except (TypeError, ValueError):
            raise InvalidInput("each answer must be a (question_id, selected_option) pair")
        if option is not None and (isinstance(option, bool) or not isinstance(option, int)):
            raise InvalidInput(f"selected option for question {question_id} must be an integer")
        out[question_id] = option
    return out


def score(questions: Sequence[QuestionKey], submitted: Optional[SubmittedAnswers], elapsed_seconds: int = 0) -> ScoreReport:
    """Grade `submitted` against `questions` and return a `ScoreReport`.

    Missing answers, the `UNANSWERED` sentinel and indices outside the
    question's options count as unanswered. Answers for ids that are not
    part of the quiz are ignored. The breakdown follows the order of
    `questions`, not the submission order.
    """
    if not questions:
        raise InvalidQuizState("quiz has no questions")
    if isinstance(elapsed_seconds, bool) or not isinstance(elapsed_seconds, int) or elapsed_seconds < 0:
        raise InvalidInput("elapsed time must be a non-negative integer")

    answers = _normalize_answers(submitted)
    earned = 0
    total_points = 0
    correct = incorrect = unanswered = 0
    breakdown: List[AnswerOutcome] = []

    for q in questions:
        total_points += q.points
        selected = answers.get(q.question_id)
        if selected is None or not 0 <= selected < q.option_count:
            unanswered += 1
            breakdown.append(AnswerOutcome(q.question_id, UNANSWERED, False, 0))
            continue
        if q.correct_flags[selected]:
            correct += 1
            earned += q.points
            breakdown.append(AnswerOutcome(q.question_id, selected, True, q.points))
        else:
            incorrect += 1
            breakdown.append(AnswerOutcome(q.question_id, selected, False, 0))

    percentage = round_half_up(100 * earned, total_points) if total_points > 0 else 0
    return ScoreReport(
        score=earned,
        total_points=total_points,
        percentage=percentage,
        correct_answers=correct,
        incorrect_answers=incorrect,
        unanswered=unanswered,
        elapsed_seconds=elapsed_seconds,
        breakdown=tuple(breakdown),
    )
