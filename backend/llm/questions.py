"""
Interview question generation.
Asks the model server for six questions and samples the local bank when it cannot.
"""
import random
import logging
from typing import Any, Dict, List, Optional

from models.schemas import CandidateProfile, InterviewQuestion, QuestionDifficulty
from llm.client import LLMClient, llm_client
from llm.prompts import Prompts, FALLBACK_QUESTIONS
from utils.config import config
from utils.errors import GenerationFailure

logger = logging.getLogger(__name__)


def normalize_difficulty(value: Any) -> QuestionDifficulty:
    lowered = str(value or "").lower()
    if "hard" in lowered:
        return QuestionDifficulty.HARD
    if "medium" in lowered:
        return QuestionDifficulty.MEDIUM
    return QuestionDifficulty.EASY


def parse_questions(payload: Dict[str, Any]) -> List[InterviewQuestion]:
    """
    Convert a `{"questions": [...]}` payload into InterviewQuestions.

    Raises:
        GenerationFailure: If fewer than the required number of usable items exist
    """
    required = config.interview.total_questions
    items = payload.get("questions") if isinstance(payload, dict) else None
    if not isinstance(items, list):
        raise GenerationFailure("Response has no 'questions' array.")
    if len(items) < required:
        raise GenerationFailure(f"Model returned {len(items)} questions, expected {required}.")

    questions = []
    for item in items[:required]:
        if not isinstance(item, dict) or not str(item.get("prompt") or "").strip():
            raise GenerationFailure("Question item is missing a prompt.")
        keywords = item.get("expectedKeywords") or item.get("expected_keywords") or []
        if not isinstance(keywords, list):
            keywords = []
        questions.append(InterviewQuestion(
            prompt=str(item["prompt"]).strip(),
            difficulty=normalize_difficulty(item.get("difficulty")),
            expected_keywords=[str(k) for k in keywords if str(k).strip()][:config.interview.max_keywords],
        ))
    return questions


def fallback_questions(rng: Optional[random.Random] = None) -> List[InterviewQuestion]:
    """
    Sample the local bank: `questions_per_tier` distinct questions per tier,
    in easy, medium, hard order, each with a fresh id.
    """
    rng = rng or random.Random(config.interview.fallback_seed)
    per_tier = config.interview.questions_per_tier

    questions = []
    for tier in QuestionDifficulty.get_order():
        for item in rng.sample(FALLBACK_QUESTIONS[tier.value], per_tier):
            questions.append(InterviewQuestion(
                prompt=item["prompt"],
                difficulty=tier,
                expected_keywords=list(item["expected_keywords"]),
            ))
    return questions


class QuestionGenerator:
    """
    Generates the interview question set from the candidate's profile and resume.
    """

    def __init__(self, llm: Optional[LLMClient] = None):
        self.llm = llm or llm_client

    def generate(self, profile: CandidateProfile, resume_text: Optional[str] = None) -> List[InterviewQuestion]:
        """
        Generate six questions via the model server.

        Args:
            profile: Candidate profile
            resume_text: Raw resume text, truncated in the prompt

        Returns:
            Six InterviewQuestions

        Raises:
            GenerationFailure: On transport, parse or shape errors
        """
        logger.info(f"Generating questions for candidate {profile.id}")
        prompt = Prompts.generate_questions(profile, resume_text, config.llm.resume_snippet_chars)

        payload, error = self.llm.generate_json(prompt)
        if payload is None:
            raise GenerationFailure(f"Question generation failed: {error}")

        questions = parse_questions(payload)
        logger.info(f"LLM generated {len(questions)} questions")
        return questions


# Global generator instance
question_generator = QuestionGenerator()
