"""
Session repository holding every candidate record.
Tracks display order and which record is active; every mutation is atomic
and refreshes the record's `updated_at`.
"""
import logging
from datetime import datetime
from typing import Callable, List, Optional

from models.schemas import (
    ActiveTimerState,
    AnswerRecord,
    CandidateInterview,
    CandidateProfile,
    CandidateRecord,
    CandidateSummary,
    ChatMessage,
    InterviewQuestion,
    InterviewStatus,
    ProfileField,
    RepositoryState,
    new_id,
)
from interview.phases import InterviewPhases
from utils.errors import InvalidTransitionError, NotFoundError

logger = logging.getLogger(__name__)


class SessionRepository:
    """
    In-memory store of candidate sessions.

    Reads return deep copies, so a caller can never change a record
    except through the operations below.
    """

    def __init__(
        self,
        state: Optional[RepositoryState] = None,
        now: Callable[[], datetime] = datetime.now,
    ):
        self._state = state.model_copy(deep=True) if state else RepositoryState()
        self._now = now

    # ========================================
    # Queries
    # ========================================

    def get(self, session_id: str) -> CandidateRecord:
        return self._ensure(session_id).model_copy(deep=True)

    def exists(self, session_id: str) -> bool:
        return session_id in self._state.entities

    @property
    def active_id(self) -> Optional[str]:
        return self._state.active_candidate_id

    @property
    def welcome_back_id(self) -> Optional[str]:
        return self._state.welcome_back_candidate_id

    def get_active(self) -> Optional[CandidateRecord]:
        """Get the active record, or None when no session is active."""
        if self._state.active_candidate_id is None:
            return None
        return self.get(self._state.active_candidate_id)

    def list_records(self) -> List[CandidateRecord]:
        """All records in display order (most recently created first)."""
        return [
            self._state.entities[sid].model_copy(deep=True)
            for sid in self._state.order
            if sid in self._state.entities
        ]

    def snapshot(self) -> RepositoryState:
        return self._state.model_copy(deep=True)

    # ========================================
    # Mutations
    # ========================================

    def create_session(self, **profile_fields) -> CandidateRecord:
        """
        Create a candidate session and make it active.

        Args:
            **profile_fields: Any CandidateProfile fields; `id` is optional

        Returns:
            The created record
        """
        session_id = profile_fields.pop("id", None) or new_id()
        timestamp = self._now()
        record = CandidateRecord(
            id=session_id,
            created_at=timestamp,
            updated_at=timestamp,
            profile=CandidateProfile(id=session_id, **profile_fields),
            interview=CandidateInterview(),
        )
        self._state.entities[session_id] = record
        self._state.order = [session_id] + [sid for sid in self._state.order if sid != session_id]
        self._state.active_candidate_id = session_id
        logger.info(f"Created candidate session {session_id}")
        return record.model_copy(deep=True)

    def set_active(self, session_id: Optional[str]) -> None:
        if session_id is not None:
            self._ensure(session_id)
        self._state.active_candidate_id = session_id

    def set_welcome_back(self, session_id: Optional[str]) -> None:
        if session_id is not None:
            self._ensure(session_id)
        self._state.welcome_back_candidate_id = session_id

    def append_message(self, session_id: str, message: ChatMessage) -> None:
        record = self._ensure(session_id)
        record.chat.append(message.model_copy(deep=True))
        self._touch(record)

    def update_profile_field(self, session_id: str, field: ProfileField, value: Optional[str]) -> None:
        record = self._ensure(session_id)
        setattr(record.profile, ProfileField(field).value, value)
        self._touch(record)

    def set_questions(self, session_id: str, questions: List[InterviewQuestion]) -> None:
        """Install the question list, resetting the index and answers."""
        record = self._ensure(session_id)
        record.interview.questions = [q.model_copy(deep=True) for q in questions]
        record.interview.current_question_index = 0
        record.interview.answers = []
        self._touch(record)

    def set_status(self, session_id: str, status: InterviewStatus) -> None:
        """
        Move the interview to a new status.

        Raises:
            InvalidTransitionError: If the state machine forbids the move
        """
        record = self._ensure(session_id)
        current = record.interview.status
        status = InterviewStatus(status)
        if not InterviewPhases.can_transition(current, status):
            raise InvalidTransitionError(current.value, status.value)

        record.interview.status = status
        if status == InterviewStatus.IN_PROGRESS and record.interview.started_at is None:
            record.interview.started_at = self._now()
        if status == InterviewStatus.COMPLETED:
            record.interview.completed_at = self._now()
        self._touch(record)

    def set_timer(self, session_id: str, timer: Optional[ActiveTimerState]) -> None:
        record = self._ensure(session_id)
        record.interview.active_timer = timer.model_copy(deep=True) if timer else None
        self._touch(record)

    def advance_question(self, session_id: str) -> None:
        record = self._ensure(session_id)
        record.interview.current_question_index += 1
        record.interview.active_timer = None
        self._touch(record)

    def record_answer(self, session_id: str, answer: AnswerRecord) -> None:
        record = self._ensure(session_id)
        record.interview.answers.append(answer.model_copy(deep=True))
        self._touch(record)

    def set_summary(self, session_id: str, summary: Optional[CandidateSummary]) -> None:
        record = self._ensure(session_id)
        record.summary = summary.model_copy(deep=True) if summary else None
        self._touch(record)

    def reset_interview(self, session_id: str) -> None:
        """Clear transcript, interview and summary; keep id and profile."""
        record = self._ensure(session_id)
        record.interview = CandidateInterview()
        record.chat = []
        record.summary = None
        self._touch(record)
        logger.info(f"Reset interview for {session_id}")

    # ========================================
    # Helpers
    # ========================================

    def _ensure(self, session_id: str) -> CandidateRecord:
        record = self._state.entities.get(session_id)
        if record is None:
            raise NotFoundError(session_id)
        return record

    def _touch(self, record: CandidateRecord) -> None:
        record.updated_at = self._now()
