"""
Interview status definitions and transition logic.
Also holds the per-difficulty timing and point tables.
"""
from typing import Dict, FrozenSet

from models.schemas import InterviewStatus, QuestionDifficulty
from utils.config import config


# Valid status transitions. Resetting an interview bypasses this table.
ALLOWED_TRANSITIONS: Dict[InterviewStatus, FrozenSet[InterviewStatus]] = {
    InterviewStatus.COLLECTING: frozenset({InterviewStatus.AWAITING_START}),
    InterviewStatus.AWAITING_START: frozenset({InterviewStatus.IN_PROGRESS}),
    InterviewStatus.IN_PROGRESS: frozenset({InterviewStatus.PAUSED, InterviewStatus.COMPLETED}),
    InterviewStatus.PAUSED: frozenset({InterviewStatus.IN_PROGRESS}),
    InterviewStatus.COMPLETED: frozenset(),
}


class InterviewPhases:
    """
    Status machine queries and difficulty tables.
    """

    @classmethod
    def can_transition(cls, current: InterviewStatus, target: InterviewStatus) -> bool:
        """
        Check whether a status change is legal.

        Re-entering the current status is allowed (a no-op touch), except
        for `completed`, which is terminal.

        Args:
            current: The current status
            target: The requested status

        Returns:
            True if the transition is valid
        """
        if current == target:
            return current != InterviewStatus.COMPLETED
        return target in ALLOWED_TRANSITIONS.get(current, frozenset())

    @staticmethod
    def question_duration_ms(difficulty: QuestionDifficulty) -> int:
        """Allotted answer time for a question of this difficulty."""
        return config.interview.question_timings_ms[QuestionDifficulty(difficulty).value]

    @staticmethod
    def base_points(difficulty: QuestionDifficulty) -> int:
        """Maximum points for a question of this difficulty."""
        return config.interview.base_points[QuestionDifficulty(difficulty).value]

    @classmethod
    def has_standard_mix(cls, difficulties) -> bool:
        """True if the difficulties form exactly `questions_per_tier` of each tier."""
        per_tier = config.interview.questions_per_tier
        difficulties = [QuestionDifficulty(d) for d in difficulties]
        if len(difficulties) != config.interview.total_questions:
            return False
        return all(
            difficulties.count(tier) == per_tier
            for tier in QuestionDifficulty.get_order()
        )
