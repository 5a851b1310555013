# LLM module
from .client import LLMClient, llm_client
from .questions import QuestionGenerator, question_generator, fallback_questions
