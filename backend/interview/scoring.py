"""
Answer scoring and evaluation system.
Scores each answer from keyword coverage, time used and answer length.
"""
from dataclasses import dataclass, field
from typing import List

from models.schemas import InterviewQuestion
from interview.phases import InterviewPhases
from utils.cleaning import ResponseCleaner


EMPTY_ANSWER_REASONING = "The answer was empty or auto-submitted when the timer expired."


@dataclass
class ScoreResult:
    """Detailed score breakdown for an answer."""
    score: int
    reasoning: str
    keyword_matches: List[str] = field(default_factory=list)
    coverage_ratio: float = 0.0
    duration_ratio: float = 0.0
    length_quality: str = "short"
    length_factor: float = 0.7


class AnswerScorer:
    """
    Scores candidate answers against a question's expected keywords.
    """

    # Word-count buckets
    SHORT_ANSWER_WORDS = 30
    LONG_ANSWER_WORDS = 180

    LENGTH_FACTORS = {
        "short": 0.7,
        "ideal": 1.0,
        "long": 0.85,
    }

    # Coverage when a question defines no keywords
    NEUTRAL_COVERAGE = 0.5

    @classmethod
    def get_length_quality(cls, word_count: int) -> str:
        if word_count < cls.SHORT_ANSWER_WORDS:
            return "short"
        if word_count > cls.LONG_ANSWER_WORDS:
            return "long"
        return "ideal"

    @classmethod
    def match_keywords(cls, question: InterviewQuestion, response: str) -> List[str]:
        """
        Expected keywords (original spelling) found in the normalised response.

        Keywords keep the spaces punctuation turns into, so "C#" matches
        as "c " and only at the end of a word.
        """
        normalized = ResponseCleaner.normalize_for_matching(response)
        matches = []
        for keyword in question.expected_keywords:
            cleaned = ResponseCleaner.normalize_for_matching(keyword)
            if cleaned.strip() and cleaned in normalized:
                matches.append(keyword)
        return matches

    @classmethod
    def evaluate(
        cls,
        question: InterviewQuestion,
        response: str,
        elapsed_ms: int,
        auto_submitted: bool,
    ) -> ScoreResult:
        """
        Score one answer.

        Args:
            question: The question that was answered
            response: The candidate's answer text
            elapsed_ms: Time taken before submission
            auto_submitted: True if the timer submitted the answer

        Returns:
            ScoreResult with score and rationale
        """
        if auto_submitted or not (response or "").strip():
            return ScoreResult(score=0, reasoning=EMPTY_ANSWER_REASONING)

        base = InterviewPhases.base_points(question.difficulty)
        allotted = InterviewPhases.question_duration_ms(question.difficulty) or 1

        keywords = question.expected_keywords
        matches = cls.match_keywords(question, response)
        coverage = len(matches) / len(keywords) if keywords else cls.NEUTRAL_COVERAGE
        duration_ratio = min(max(elapsed_ms, 0) / allotted, 1.0)

        length_quality = cls.get_length_quality(ResponseCleaner.word_count(response))
        length_factor = cls.LENGTH_FACTORS[length_quality]

        raw = base * (0.5 + 0.4 * coverage + 0.1 * duration_ratio) * length_factor
        score = cls._round_half_up(raw)

        return ScoreResult(
            score=score,
            reasoning=cls.build_reasoning(matches, bool(keywords), length_quality),
            keyword_matches=matches,
            coverage_ratio=coverage,
            duration_ratio=duration_ratio,
            length_quality=length_quality,
            length_factor=length_factor,
        )

    @classmethod
    def build_reasoning(cls, matches: List[str], has_keywords: bool, length_quality: str) -> str:
        parts = []
        if matches:
            parts.append(f"Covered keywords: {', '.join(matches)}")
        elif has_keywords:
            parts.append("Missed most of the expected keywords.")

        if length_quality == "short":
            parts.append("Answer felt brief; add more depth next time.")
        elif length_quality == "long":
            parts.append("Answer was quite long; try to focus on the most relevant points.")

        if not parts:
            parts.append("Solid response overall.")
        return " ".join(parts)

    @staticmethod
    def _round_half_up(value: float) -> int:
        # round() would send 12.5 to 12
        return int(value + 0.5 + 1e-9)
