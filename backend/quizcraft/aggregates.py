"""Running quiz statistics.

Two ways to maintain a quiz's attempt count and average score:

- `update_aggregates` folds one new percentage into the stored running
  average. It works on the already rounded stored average, so after many
  attempts it can drift by a point or so from the exact mean.
- `recompute_from_all` derives every statistic from the full result
  history and is always exact.

The submission flow uses the incremental form; the stats endpoints and
`QuizService.recompute_stats` use the full form.
"""

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from .scoring import round_half_up

DEFAULT_PASS_PERCENTAGE = 60


@dataclass(frozen=True)
class QuizStats:
    attempt_count: int
    average: int
    highest: int
    lowest: int
    pass_rate: int
    average_time: int = 0


def update_aggregates(prior_attempt_count: int, prior_average: int, new_percentage: int) -> Tuple[int, int]:
    """Return `(attempt_count, average)` after one more attempt."""
    prior_attempt_count = max(0, prior_attempt_count or 0)
    prior_average = prior_average or 0
    new_count = prior_attempt_count + 1
    new_average = round_half_up(prior_average * prior_attempt_count + new_percentage, new_count)
    return new_count, new_average


def recompute_from_all(
    percentages: Sequence[int],
    pass_percentage: Optional[int] = None,
    times: Optional[Sequence[int]] = None,
) -> QuizStats:
    """Compute statistics over every recorded attempt.

    `pass_percentage` defaults to 60 when the quiz does not set one.
    """
    if not percentages:
        return QuizStats(0, 0, 0, 0, 0, 0)
    threshold = DEFAULT_PASS_PERCENTAGE if pass_percentage is None else pass_percentage
    count = len(percentages)
    passed = sum(1 for p in percentages if p >= threshold)
    average_time = round_half_up(sum(times), len(times)) if times else 0
    return QuizStats(
        attempt_count=count,
        average=round_half_up(sum(percentages), count),
        highest=max(percentages),
        lowest=min(percentages),
        pass_rate=round_half_up(100 * passed, count),
        average_time=average_time,
    )


def letter_grade(percentage: int) -> str:
    if percentage >= 90:
        return 'A+'
    if percentage >= 80:
        return 'A'
    if percentage >= 70:
        return 'B'
    if percentage >= 60:
        return 'C'
    if percentage >= 50:
        return 'D'
    return 'F'


def format_duration(seconds: int) -> str:
    """Format seconds as `"<m>m <s>s"`."""
    seconds = max(0, int(seconds or 0))
    return f"{seconds // 60}m {seconds % 60}s"
