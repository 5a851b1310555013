"""
Interview session orchestrator.

Every command the candidate or an observer can issue goes through here:
intake, profile collection, the timed question loop, pause/resume and reset.
Workflows run one at a time behind a single lock and change state only
through the session repository.
"""
import random
import threading
import logging
import time
from datetime import datetime
from typing import Callable, Dict, List, Optional, Set, Tuple

from models.schemas import (
    ActiveTimerState,
    AnswerRecord,
    CandidateProfile,
    CandidateRecord,
    ChatMessage,
    InterviewQuestion,
    InterviewStatus,
    MessageKind,
    MessageSender,
    ProfileField,
    TimerStatus,
)
from documents.parser import DocumentParser, document_parser
from llm.questions import QuestionGenerator, fallback_questions, question_generator
from interview.phases import InterviewPhases
from interview.scoring import AnswerScorer
from interview.selectors import current_question, missing_profile_fields
from interview.summary import SummaryBuilder
from interview.timer import Scheduler, TimerController
from interview.validation import validate_profile_field
from storage.persistence import SnapshotStore
from storage.repository import SessionRepository
from utils.config import config
from utils.errors import GenerationFailure, InterviewError, InvalidStateError, ValidationError

logger = logging.getLogger(__name__)


READY_AFTER_UPLOAD = "Great! We're ready to begin. Type 'start' or press the Start Interview button when you're ready."
READY_AFTER_PROFILE = "Awesome, we have everything we need. Type 'start' or hit the Start Interview button whenever you're ready!"
STARTING = "Starting your timed interview now. You'll get six questions (2 easy, 2 medium, 2 hard). Take a deep breath and let's begin!"
TIME_UP = "⏰ Time's up! Let's move to the next question."
PAUSED = "Interview paused. Resume when you are ready."
WELCOME_BACK = "Welcome back! Resuming the interview."


def _format_fields(fields: List[ProfileField]) -> str:
    return ", ".join(field.value.capitalize() for field in fields)


def format_question(index: int, question: InterviewQuestion) -> str:
    seconds = InterviewPhases.question_duration_ms(question.difficulty) / 1000
    return f"Question {index + 1} ({question.difficulty.value.upper()} · {seconds:g}s): {question.prompt}"


class SessionOrchestrator:
    """
    Drives candidate sessions through intake, timed Q&A and summary.
    """

    def __init__(
        self,
        repository: Optional[SessionRepository] = None,
        parser: Optional[DocumentParser] = None,
        generator: Optional[QuestionGenerator] = None,
        store: Optional[SnapshotStore] = None,
        scheduler: Optional[Scheduler] = None,
        clock: Callable[[], datetime] = datetime.now,
        monotonic: Callable[[], float] = time.monotonic,
        autosave: Optional[bool] = None,
    ):
        """
        Args:
            repository: Session store; loaded from `store` when omitted
            parser: Resume parsing collaborator
            generator: Question generation collaborator
            store: Durable snapshot store, or None to keep sessions in memory only
            scheduler: Timer poll scheduler (thread based by default)
            clock: Wall clock for timestamps
            monotonic: Monotonic clock for countdowns
            autosave: Save a snapshot after each workflow (config default)
        """
        self._now = clock
        if repository is None:
            state = store.load() if store else None
            repository = SessionRepository(state=state, now=clock)
        self.repository = repository
        self.parser = parser or document_parser
        self.generator = generator or question_generator
        self.store = store
        self.autosave = config.storage.autosave if autosave is None else autosave

        self._lock = threading.RLock()
        # Question index being answered (or answered) per session
        self._claims: Dict[str, int] = {}
        # Unsent answer text per session, keyed to its question index
        self._drafts: Dict[str, Tuple[int, str]] = {}
        # Sessions whose questions are being generated
        self._starting: Set[str] = set()

        self.timer = TimerController(
            on_expired=self._on_timer_expired,
            scheduler=scheduler,
            clock=monotonic,
        )
        self._timer_session_id: Optional[str] = None

        self._restore_timer()

    # ========================================
    # Workflows
    # ========================================

    def ingest_document(self, filename: str, content_type: Optional[str], data: bytes) -> CandidateRecord:
        """
        Create a session from an uploaded resume.

        Raises:
            UnsupportedFormatError: Unrecognised or unreadable file; no session is created
        """
        parsed = self.parser.parse(filename, content_type, data)

        with self._lock:
            self._release_active()
            record = self.repository.create_session(
                name=parsed.name,
                email=parsed.email,
                phone=parsed.phone,
                resume_text=parsed.text,
                resume_file_name=filename,
                resume_file_type=content_type,
            )
            sid = record.id

            detected = [
                "Resume uploaded successfully.",
                f"Name detected: {parsed.name}" if parsed.name else "Name missing in resume.",
                f"Email detected: {parsed.email}" if parsed.email else "Email missing in resume.",
                f"Phone detected: {parsed.phone}" if parsed.phone else "Phone missing in resume.",
            ]
            self._post(sid, MessageSender.ASSISTANT, " ".join(detected), MessageKind.SYSTEM)
            self._prompt_for_profile_or_ready(sid, READY_AFTER_UPLOAD)

            self._save()
            return self.repository.get(sid)

    def submit_profile_field(self, field: ProfileField, value: str) -> CandidateRecord:
        """
        Record a candidate's answer to a missing-field prompt.

        Invalid values produce an assistant message and change nothing else.
        """
        with self._lock:
            record = self._require_active()
            sid = record.id
            if record.interview.status != InterviewStatus.COLLECTING:
                raise InvalidStateError(
                    f"Profile details can only be collected before the interview starts "
                    f"(status is {record.interview.status.value})."
                )

            field = ProfileField(field)
            self._post(sid, MessageSender.CANDIDATE, value, MessageKind.ANSWER)

            try:
                cleaned = validate_profile_field(field, value)
            except ValidationError as e:
                logger.info(f"Rejected {e.field} for {sid}: {e.reason}")
                self._post(sid, MessageSender.ASSISTANT, e.reason, MessageKind.SYSTEM)
                self._save()
                return self.repository.get(sid)

            self.repository.update_profile_field(sid, field, cleaned)

            missing = missing_profile_fields(self.repository.get(sid))
            if missing:
                self._post(
                    sid,
                    MessageSender.ASSISTANT,
                    f"Thanks! Could you also share your {missing[0].value}?",
                    MessageKind.SYSTEM,
                )
            else:
                self.repository.set_status(sid, InterviewStatus.AWAITING_START)
                self._post(sid, MessageSender.ASSISTANT, READY_AFTER_PROFILE, MessageKind.SYSTEM)

            self._save()
            return self.repository.get(sid)

    def start_interview(self) -> CandidateRecord:
        """
        Generate the questions and ask the first one.

        Generation may wait on the model server, so it runs without holding
        the workflow lock; the session is re-checked before questions are stored.

        Raises:
            InvalidStateError: No active session, missing profile fields, already
                started or starting, or the active session changed meanwhile
        """
        with self._lock:
            record = self._require_startable()
            sid = record.id
            self._starting.add(sid)

        try:
            questions = self._request_questions(record.profile)

            with self._lock:
                current = self.repository.get_active()
                if current is None or current.id != sid:
                    raise InvalidStateError("Active candidate changed while questions were being generated.")
                if current.interview.status != InterviewStatus.AWAITING_START:
                    raise InvalidStateError(
                        f"Interview cannot be started while it is {current.interview.status.value}."
                    )

                self._post(sid, MessageSender.ASSISTANT, STARTING, MessageKind.SYSTEM)
                self.repository.set_status(sid, InterviewStatus.IN_PROGRESS)
                self.repository.set_questions(sid, questions)
                self._claims.pop(sid, None)
                self._drafts.pop(sid, None)
                logger.info(f"Interview started for {sid}")

                self._ask_question(sid, 0, questions[0])

                self._save()
                return self.repository.get(sid)
        finally:
            with self._lock:
                self._starting.discard(sid)

    def submit_answer(
        self,
        response: str,
        question_index: int,
        auto_submitted: bool = False,
    ) -> CandidateRecord:
        """
        Score the answer to the current question and move on.

        A call for a question that is already answered, already being
        answered, or no longer current is a no-op.

        Args:
            response: The candidate's answer text
            question_index: Index of the question the caller is answering
            auto_submitted: True when the client's timer ran out
        """
        with self._lock:
            record = self._require_active()
            updated = self._submit_answer(record.id, response, auto_submitted, question_index=question_index)
            self._save()
            return updated

    def save_draft(self, response: str, question_index: int) -> None:
        """
        Remember the unsent answer to the current question.
        If the timer runs out first, the draft is what gets auto-submitted.
        """
        with self._lock:
            record = self._require_active()
            interview = record.interview
            if question_index != interview.current_question_index:
                logger.debug(f"Ignoring draft for question {question_index} of {record.id}")
                return
            if interview.status not in (InterviewStatus.IN_PROGRESS, InterviewStatus.PAUSED):
                raise InvalidStateError(
                    f"Drafts can only be saved during the interview (status is {interview.status.value})."
                )
            self._drafts[record.id] = (question_index, response or "")

    def pause_interview(self) -> CandidateRecord:
        with self._lock:
            record = self._require_active()
            if record.interview.status != InterviewStatus.IN_PROGRESS:
                raise InvalidStateError(
                    f"Only an interview in progress can be paused (status is {record.interview.status.value})."
                )
            self._pause(record)
            self._save()
            return self.repository.get(record.id)

    def resume_interview(self) -> CandidateRecord:
        """Restart the paused countdown with exactly the time that was left."""
        with self._lock:
            record = self._require_active()
            sid = record.id
            if record.interview.status != InterviewStatus.PAUSED:
                raise InvalidStateError(
                    f"Only a paused interview can be resumed (status is {record.interview.status.value})."
                )

            timer = record.interview.active_timer
            if timer is not None and timer.paused and timer.remaining_ms_on_pause is not None:
                self._arm_timer(sid, timer.question_id, timer.remaining_ms_on_pause)

            self.repository.set_status(sid, InterviewStatus.IN_PROGRESS)
            if self.repository.welcome_back_id == sid:
                self.repository.set_welcome_back(None)
            self._post(sid, MessageSender.ASSISTANT, WELCOME_BACK, MessageKind.SYSTEM)
            logger.info(f"Interview resumed for {sid}")

            self._save()
            return self.repository.get(sid)

    def suspend(self) -> None:
        """External suspend signal: pause the active interview if one is running."""
        with self._lock:
            record = self.repository.get_active()
            if record is None or record.interview.status != InterviewStatus.IN_PROGRESS:
                return
            try:
                self._pause(record)
            except InterviewError as e:
                logger.warning(f"Could not pause {record.id} on suspend: {e.reason}")
                return
            self._save()

    def select_active(self, session_id: Optional[str]) -> Optional[CandidateRecord]:
        """
        Make another session (or none) active.
        An interview left running in the previously active session is paused.
        """
        with self._lock:
            if session_id is not None:
                self.repository.get(session_id)
            if session_id != self.repository.active_id:
                self._release_active()
            self.repository.set_active(session_id)
            self._save()
            return self.repository.get(session_id) if session_id else None

    def reset_interview(self, session_id: str) -> CandidateRecord:
        """Discard transcript and interview progress, keeping the profile."""
        with self._lock:
            self.repository.get(session_id)
            if self._timer_session_id == session_id:
                self._clear_timer()
            self._claims.pop(session_id, None)
            self._drafts.pop(session_id, None)

            self.repository.reset_interview(session_id)
            if self.repository.welcome_back_id == session_id:
                self.repository.set_welcome_back(None)
            self._prompt_for_profile_or_ready(session_id, READY_AFTER_PROFILE)

            self._save()
            return self.repository.get(session_id)

    def dismiss_welcome_back(self) -> None:
        with self._lock:
            self.repository.set_welcome_back(None)
            self._save()

    # ========================================
    # Observation
    # ========================================

    def get_session(self, session_id: str) -> CandidateRecord:
        with self._lock:
            return self.repository.get(session_id)

    def get_active(self) -> Optional[CandidateRecord]:
        with self._lock:
            return self.repository.get_active()

    def list_sessions(self) -> List[CandidateRecord]:
        with self._lock:
            return self.repository.list_records()

    def timer_status(self) -> TimerStatus:
        """Remaining time on the active question; observing also polls for expiry."""
        # Polling may fire expiry, which takes the workflow lock itself
        live = self.timer.snapshot()

        with self._lock:
            record = self.repository.get_active()
            if record is None or record.interview.active_timer is None:
                return TimerStatus()

            timer = record.interview.active_timer
            if timer.paused:
                remaining = timer.remaining_ms_on_pause or 0
                return TimerStatus(
                    question_id=timer.question_id,
                    remaining_ms=remaining,
                    duration_ms=timer.duration_ms,
                    paused=True,
                )
            if self._timer_session_id == record.id and live.question_id == timer.question_id:
                return TimerStatus(
                    question_id=timer.question_id,
                    remaining_ms=live.remaining_ms,
                    duration_ms=live.duration_ms,
                    expired=live.expired,
                )
            remaining = max(timer.duration_ms - self._wall_elapsed_ms(timer), 0)
            return TimerStatus(
                question_id=timer.question_id,
                remaining_ms=remaining,
                duration_ms=timer.duration_ms,
                expired=remaining == 0,
            )

    # ========================================
    # Internals
    # ========================================

    def _submit_answer(
        self,
        sid: str,
        response: str,
        auto_submitted: bool,
        question_index: Optional[int] = None,
        question_id: Optional[str] = None,
    ) -> CandidateRecord:
        record = self.repository.get(sid)
        interview = record.interview
        index = interview.current_question_index
        question = current_question(record)

        if question_index is not None and question_index != index:
            logger.info(f"Ignoring answer for question {question_index} of {sid}; current is {index}")
            return record
        if question_id is not None and (question is None or question.id != question_id):
            logger.info(f"Ignoring answer for stale question {question_id} of {sid}")
            return record
        if interview.status not in (InterviewStatus.IN_PROGRESS, InterviewStatus.COMPLETED):
            raise InvalidStateError(
                f"Answers can only be submitted while the interview is in progress "
                f"(status is {interview.status.value})."
            )
        if question is None or len(interview.answers) > index or self._claims.get(sid) == index:
            logger.info(f"Question {index} of {sid} already answered or unavailable")
            return record

        self._claims[sid] = index
        self._drafts.pop(sid, None)
        response = response or ""

        if not auto_submitted or response.strip():
            self._post(sid, MessageSender.CANDIDATE, response, MessageKind.ANSWER)
        else:
            self._post(sid, MessageSender.ASSISTANT, TIME_UP, MessageKind.SYSTEM)

        elapsed = self._elapsed_ms(sid, question, interview.active_timer)
        result = AnswerScorer.evaluate(question, response, elapsed, auto_submitted)

        self.repository.record_answer(sid, AnswerRecord(
            question_id=question.id,
            response=response,
            duration_ms=elapsed,
            auto_submitted=auto_submitted,
            submitted_at=self._now(),
            score=result.score,
            reasoning=result.reasoning,
        ))
        logger.info(
            f"Recorded answer {index + 1} for {sid}: score={result.score} "
            f"(coverage={result.coverage_ratio:.2f}, auto={auto_submitted})"
        )
        self._post(sid, MessageSender.ASSISTANT, result.reasoning, MessageKind.SYSTEM)

        self.repository.advance_question(sid)
        if self._timer_session_id == sid:
            self._clear_timer()

        updated = self.repository.get(sid)
        next_index = updated.interview.current_question_index
        next_question = current_question(updated)

        if next_question is not None:
            self._ask_question(sid, next_index, next_question)
        else:
            self._complete(sid)

        return self.repository.get(sid)

    def _complete(self, sid: str) -> None:
        self.repository.set_timer(sid, None)
        summary = SummaryBuilder.build(self.repository.get(sid))
        self.repository.set_summary(sid, summary)
        self.repository.set_status(sid, InterviewStatus.COMPLETED)
        self._post(
            sid,
            MessageSender.ASSISTANT,
            f"Interview complete! Final score: {summary.overall_score}. {summary.final_remark}",
            MessageKind.SUMMARY,
        )
        logger.info(f"Interview completed for {sid}: overall={summary.overall_score}")

    def _ask_question(self, sid: str, index: int, question: InterviewQuestion) -> None:
        self._post(sid, MessageSender.ASSISTANT, format_question(index, question), MessageKind.QUESTION)
        self._arm_timer(sid, question.id, InterviewPhases.question_duration_ms(question.difficulty))

    def _arm_timer(self, sid: str, question_id: str, duration_ms: int, elapsed_ms: int = 0) -> None:
        if elapsed_ms == 0:
            self.repository.set_timer(sid, ActiveTimerState(
                question_id=question_id,
                started_at=self._now(),
                duration_ms=duration_ms,
                paused=False,
            ))
        self._timer_session_id = sid
        self.timer.start(question_id, duration_ms, elapsed_ms=elapsed_ms)

    def _clear_timer(self) -> None:
        self.timer.clear()
        self._timer_session_id = None

    def _pause(self, record: CandidateRecord) -> None:
        sid = record.id
        timer = record.interview.active_timer
        if timer is not None and timer.started_at is not None and not timer.paused:
            if self._timer_session_id == sid and self.timer.question_id == timer.question_id:
                remaining = self.timer.pause()
            else:
                remaining = max(timer.duration_ms - self._wall_elapsed_ms(timer), 0)
            self.repository.set_timer(sid, ActiveTimerState(
                question_id=timer.question_id,
                duration_ms=remaining,
                remaining_ms_on_pause=remaining,
                paused=True,
            ))
        if self._timer_session_id == sid:
            self._clear_timer()

        self.repository.set_status(sid, InterviewStatus.PAUSED)
        self.repository.set_welcome_back(sid)
        self._post(sid, MessageSender.ASSISTANT, PAUSED, MessageKind.SYSTEM)
        logger.info(f"Interview paused for {sid}")

    def _release_active(self) -> None:
        """Pause the active session's interview before another session takes over."""
        record = self.repository.get_active()
        if record is not None and record.interview.status == InterviewStatus.IN_PROGRESS:
            self._pause(record)

    def _prompt_for_profile_or_ready(self, sid: str, ready_message: str) -> None:
        missing = missing_profile_fields(self.repository.get(sid))
        if missing:
            self._post(
                sid,
                MessageSender.ASSISTANT,
                f"Before we begin, I need {_format_fields(missing)}. "
                f"Let's do it step by step - please provide your {missing[0].value}.",
                MessageKind.SYSTEM,
            )
            self.repository.set_status(sid, InterviewStatus.COLLECTING)
        else:
            self.repository.set_status(sid, InterviewStatus.AWAITING_START)
            self._post(sid, MessageSender.ASSISTANT, ready_message, MessageKind.SYSTEM)

    def _request_questions(self, profile: CandidateProfile) -> List[InterviewQuestion]:
        """Generated questions, or the local bank when generation fails in any way."""
        try:
            questions = self.generator.generate(profile, profile.resume_text)
            if not InterviewPhases.has_standard_mix([q.difficulty for q in questions]):
                raise GenerationFailure("Generated questions do not have two of each difficulty.")
            return questions
        except Exception as e:
            logger.warning(f"Falling back to local question bank for {profile.id}: {e}")

        seed = config.interview.fallback_seed
        rng = random.Random(seed if seed is not None else profile.id)
        return fallback_questions(rng)

    def _elapsed_ms(self, sid: str, question: InterviewQuestion, timer: Optional[ActiveTimerState]) -> int:
        if self._timer_session_id == sid:
            live = self.timer.elapsed_ms(question.id)
            if live is not None:
                return live
        if timer is not None and timer.started_at is not None and timer.question_id == question.id:
            return self._wall_elapsed_ms(timer)
        return InterviewPhases.question_duration_ms(question.difficulty)

    def _wall_elapsed_ms(self, timer: ActiveTimerState) -> int:
        if timer.started_at is None:
            return 0
        return max(int((self._now() - timer.started_at).total_seconds() * 1000), 0)

    def _on_timer_expired(self, question_id: str) -> None:
        with self._lock:
            sid = self._timer_session_id
            if sid is None or not self.repository.exists(sid):
                return
            record = self.repository.get(sid)
            question = current_question(record)
            if (
                record.interview.status != InterviewStatus.IN_PROGRESS
                or question is None
                or question.id != question_id
            ):
                logger.debug(f"Ignoring stale expiry for question {question_id}")
                return
            draft_index, draft = self._drafts.get(sid, (None, ""))
            response = draft if draft_index == record.interview.current_question_index else ""
            try:
                self._submit_answer(sid, response, auto_submitted=True, question_id=question_id)
            except InterviewError as e:
                logger.warning(f"Auto-submit failed for {sid}: {e.reason}")
                return
            self._save()

    def _restore_timer(self) -> None:
        """Re-arm the countdown of an interview that was running when the snapshot was saved."""
        record = self.repository.get_active()
        if record is None or record.interview.status != InterviewStatus.IN_PROGRESS:
            return
        timer = record.interview.active_timer
        if timer is None or timer.paused or timer.started_at is None:
            return
        elapsed = min(self._wall_elapsed_ms(timer), timer.duration_ms)
        logger.info(f"Restoring timer for {record.id}: {timer.duration_ms - elapsed}ms left")
        self._arm_timer(record.id, timer.question_id, timer.duration_ms, elapsed_ms=elapsed)

    def _require_active(self) -> CandidateRecord:
        record = self.repository.get_active()
        if record is None:
            raise InvalidStateError("No active candidate session.")
        return record

    def _require_startable(self) -> CandidateRecord:
        record = self.repository.get_active()
        if record is None:
            raise InvalidStateError("No active candidate to start interview.")
        if missing_profile_fields(record):
            raise InvalidStateError("Profile still missing required fields.")
        if record.id in self._starting:
            raise InvalidStateError("Interview is already starting.")
        if record.interview.status != InterviewStatus.AWAITING_START:
            raise InvalidStateError(
                f"Interview cannot be started while it is {record.interview.status.value}."
            )
        return record

    def _post(self, sid: str, sender: MessageSender, content: str, kind: MessageKind) -> None:
        self.repository.append_message(sid, ChatMessage(
            sender=sender,
            content=content,
            kind=kind,
            timestamp=self._now(),
        ))

    def _save(self) -> None:
        if self.store is None or not self.autosave:
            return
        try:
            self.store.save(self.repository.snapshot())
        except OSError as e:
            logger.error(f"Failed to save session snapshot: {e}")
