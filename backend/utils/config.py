"""
Configuration settings for the interview assistant.
All settings can be overridden via environment variables.
"""
import os
from typing import Dict, Optional
from dataclasses import dataclass, field


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str) -> Optional[int]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return int(value)


@dataclass
class LLMConfig:
    """Question generation model server configuration."""
    base_url: str = field(default_factory=lambda: os.getenv("LLM_URL", "http://localhost:9000"))
    completion_endpoint: str = "/completion"
    timeout: int = 60
    max_retries: int = 2
    enabled: bool = field(default_factory=lambda: _env_bool("LLM_ENABLED", True))

    # Default generation parameters
    default_temperature: float = 0.6
    default_top_p: float = 0.9
    default_repeat_penalty: float = 1.1

    # Resume text sent along with the question request
    resume_snippet_chars: int = 2000


@dataclass
class InterviewConfig:
    """Interview flow configuration."""
    # Allotted time per question, by difficulty
    question_timings_ms: Dict[str, int] = field(default_factory=lambda: {
        "easy": 20_000,
        "medium": 60_000,
        "hard": 120_000,
    })

    # Points available per question, by difficulty
    base_points: Dict[str, int] = field(default_factory=lambda: {
        "easy": 10,
        "medium": 20,
        "hard": 30,
    })

    questions_per_tier: int = 2
    max_keywords: int = 6
    timer_poll_interval_ms: int = 500
    fallback_seed: Optional[int] = field(default_factory=lambda: _env_int("FALLBACK_SEED"))

    @property
    def total_questions(self) -> int:
        return self.questions_per_tier * len(self.question_timings_ms)


@dataclass
class StorageConfig:
    """Session snapshot persistence configuration."""
    snapshot_path: str = field(default_factory=lambda: os.getenv("SNAPSHOT_PATH", "./data/sessions.json"))
    schema_version: int = 1
    autosave: bool = field(default_factory=lambda: _env_bool("AUTOSAVE", True))


@dataclass
class ServerConfig:
    """HTTP server configuration."""
    host: str = field(default_factory=lambda: os.getenv("HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: int(os.getenv("PORT", "8000")))
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))


class Config:
    """Main configuration class combining all config sections."""

    def __init__(self):
        self.llm = LLMConfig()
        self.interview = InterviewConfig()
        self.storage = StorageConfig()
        self.server = ServerConfig()


# Global config instance
config = Config()
