"""
Pydantic schemas for the interview assistant.
Candidate sessions, transcript messages, questions, answers and API payloads.
"""
import uuid
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


def new_id() -> str:
    """Short random identifier for sessions, messages and questions."""
    return uuid.uuid4().hex[:12]


class MessageSender(str, Enum):
    ASSISTANT = "assistant"
    CANDIDATE = "candidate"
    SYSTEM = "system"


class MessageKind(str, Enum):
    INFO = "info"
    QUESTION = "question"
    ANSWER = "answer"
    SUMMARY = "summary"
    SYSTEM = "system"


class QuestionDifficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"

    @classmethod
    def get_order(cls) -> List["QuestionDifficulty"]:
        """Tiers in the order questions are asked."""
        return [cls.EASY, cls.MEDIUM, cls.HARD]


class InterviewStatus(str, Enum):
    COLLECTING = "collecting"
    AWAITING_START = "awaiting-start"
    IN_PROGRESS = "in-progress"
    PAUSED = "paused"
    COMPLETED = "completed"


class ProfileField(str, Enum):
    NAME = "name"
    EMAIL = "email"
    PHONE = "phone"

    @classmethod
    def get_order(cls) -> List["ProfileField"]:
        """Order in which missing fields are requested."""
        return [cls.NAME, cls.EMAIL, cls.PHONE]


# ================================================================
# Session entities
# ================================================================

class CandidateProfile(BaseModel):
    id: str
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    resume_text: Optional[str] = None
    resume_file_name: Optional[str] = None
    resume_file_type: Optional[str] = None


class ChatMessage(BaseModel):
    id: str = Field(default_factory=new_id)
    sender: MessageSender
    timestamp: datetime = Field(default_factory=datetime.now)
    content: str
    kind: MessageKind = MessageKind.INFO


class InterviewQuestion(BaseModel):
    id: str = Field(default_factory=new_id)
    prompt: str
    difficulty: QuestionDifficulty
    expected_keywords: List[str] = Field(default_factory=list, max_length=6)


class AnswerRecord(BaseModel):
    question_id: str
    response: str
    duration_ms: int
    auto_submitted: bool
    submitted_at: datetime
    score: int
    reasoning: str


class ActiveTimerState(BaseModel):
    question_id: str
    started_at: Optional[datetime] = None
    duration_ms: int
    remaining_ms_on_pause: Optional[int] = None
    paused: bool = False


class CandidateInterview(BaseModel):
    status: InterviewStatus = InterviewStatus.COLLECTING
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    current_question_index: int = 0
    questions: List[InterviewQuestion] = Field(default_factory=list)
    answers: List[AnswerRecord] = Field(default_factory=list)
    active_timer: Optional[ActiveTimerState] = None


class CandidateSummary(BaseModel):
    overall_score: int = Field(ge=0, le=100)
    strengths: List[str] = Field(default_factory=list, max_length=3)
    areas_to_improve: List[str] = Field(default_factory=list, max_length=3)
    final_remark: str


class CandidateRecord(BaseModel):
    id: str
    created_at: datetime
    updated_at: datetime
    profile: CandidateProfile
    interview: CandidateInterview = Field(default_factory=CandidateInterview)
    chat: List[ChatMessage] = Field(default_factory=list)
    summary: Optional[CandidateSummary] = None


class RepositoryState(BaseModel):
    """Whole-repository snapshot, persisted verbatim."""
    entities: Dict[str, CandidateRecord] = Field(default_factory=dict)
    order: List[str] = Field(default_factory=list)
    active_candidate_id: Optional[str] = None
    welcome_back_candidate_id: Optional[str] = None


# ================================================================
# API payloads
# ================================================================

class ProfileFieldRequest(BaseModel):
    field: ProfileField
    value: str


class SubmitAnswerRequest(BaseModel):
    response: str = ""
    question_index: int = Field(ge=0)
    auto_submitted: bool = False


class DraftRequest(BaseModel):
    response: str = ""
    question_index: int = Field(ge=0)


class SelectActiveRequest(BaseModel):
    session_id: Optional[str] = None


class DashboardRow(BaseModel):
    id: str
    name: str
    email: str
    score: int
    status: InterviewStatus
    updated_at: datetime


class TimerStatus(BaseModel):
    question_id: Optional[str] = None
    remaining_ms: int = 0
    duration_ms: int = 0
    paused: bool = False
    expired: bool = False
