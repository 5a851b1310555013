"""
Final interview summary: overall score, strengths, areas to improve and a closing remark.
"""
from typing import Dict, List

from models.schemas import (
    AnswerRecord,
    CandidateRecord,
    CandidateSummary,
    InterviewQuestion,
    QuestionDifficulty,
)
from interview.phases import InterviewPhases
from utils.cleaning import ResponseCleaner


FALLBACK_STRENGTH = "Communicated clearly during the interview."
FALLBACK_IMPROVEMENT = "Consider expanding answers with more concrete technical examples."
UNKNOWN_STRENGTH = "Strong domain knowledge"
UNKNOWN_IMPROVEMENT = "Clarify reasoning in future answers."

REMARK_STRONG = "Great performance with strong full-stack understanding."
REMARK_DECENT = "Decent interview; focus on deepening architectural discussions."
REMARK_WEAK = "Needs improvement on core full-stack concepts and communication."


class SummaryBuilder:
    """
    Aggregates a session's answers into a CandidateSummary.
    """

    MAX_ITEMS = 3
    STRENGTH_SNIPPET_CHARS = 60
    IMPROVEMENT_SNIPPET_CHARS = 50

    # Fractions of tier base points
    STRENGTH_THRESHOLD = 0.7
    IMPROVEMENT_THRESHOLD = 0.4

    @classmethod
    def overall_score(cls, questions: List[InterviewQuestion], answers: List[AnswerRecord]) -> int:
        """Achieved points as a percentage of the points available."""
        possible = sum(InterviewPhases.base_points(q.difficulty) for q in questions)
        if possible <= 0:
            return 0
        achieved = sum(a.score for a in answers)
        percent = int(100 * achieved / possible + 0.5)
        return max(0, min(percent, 100))

    @classmethod
    def get_final_remark(cls, overall_score: int) -> str:
        if overall_score >= 75:
            return REMARK_STRONG
        elif overall_score >= 55:
            return REMARK_DECENT
        else:
            return REMARK_WEAK

    @classmethod
    def build(cls, record: CandidateRecord) -> CandidateSummary:
        """
        Build the summary for a finished session.

        Args:
            record: The candidate record

        Returns:
            CandidateSummary
        """
        questions = record.interview.questions
        answers = record.interview.answers
        by_id: Dict[str, InterviewQuestion] = {q.id: q for q in questions}

        overall = cls.overall_score(questions, answers)
        ranked = sorted(answers, key=lambda a: a.score, reverse=True)

        strength_cutoff = InterviewPhases.base_points(QuestionDifficulty.HARD) * cls.STRENGTH_THRESHOLD
        strengths = []
        for answer in ranked:
            if answer.score < strength_cutoff:
                continue
            question = by_id.get(answer.question_id)
            if question is None:
                strengths.append(UNKNOWN_STRENGTH)
            else:
                strengths.append(ResponseCleaner.truncate(question.prompt, cls.STRENGTH_SNIPPET_CHARS))
            if len(strengths) == cls.MAX_ITEMS:
                break

        improvement_cutoff = InterviewPhases.base_points(QuestionDifficulty.EASY) * cls.IMPROVEMENT_THRESHOLD
        improvements = []
        for answer in ranked:
            if answer.score > improvement_cutoff:
                continue
            question = by_id.get(answer.question_id)
            if question is None:
                improvements.append(UNKNOWN_IMPROVEMENT)
            else:
                snippet = ResponseCleaner.truncate(question.prompt, cls.IMPROVEMENT_SNIPPET_CHARS)
                improvements.append(f"Revisit: {snippet}")
            if len(improvements) == cls.MAX_ITEMS:
                break

        return CandidateSummary(
            overall_score=overall,
            strengths=strengths or [FALLBACK_STRENGTH],
            areas_to_improve=improvements or [FALLBACK_IMPROVEMENT],
            final_remark=cls.get_final_remark(overall),
        )
