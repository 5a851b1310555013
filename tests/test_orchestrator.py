import threading

import pytest

from models.schemas import InterviewStatus, MessageKind, MessageSender, ProfileField
from documents.parser import ParsedDocument
from interview.orchestrator import (
    PAUSED,
    READY_AFTER_PROFILE,
    READY_AFTER_UPLOAD,
    STARTING,
    TIME_UP,
    WELCOME_BACK,
)
from interview.phases import InterviewPhases
from llm.prompts import FALLBACK_QUESTIONS
from utils.errors import GenerationFailure, InvalidStateError, NotFoundError, UnsupportedFormatError

from conftest import StubGenerator, StubParser, make_questions


def _difficulties(record):
    return [q.difficulty for q in record.interview.questions]


# ---- Intake ----

def test_ingest_with_complete_profile_awaits_start(orchestrator):
    record = orchestrator.ingest_document("resume.pdf", "application/pdf", b"%PDF")

    assert record.interview.status == InterviewStatus.AWAITING_START
    assert orchestrator.repository.active_id == record.id
    assert record.profile.name == "Ada Lovelace"
    assert record.chat[0].content.startswith("Resume uploaded successfully. Name detected: Ada Lovelace")
    assert record.chat[-1].content == READY_AFTER_UPLOAD


def test_ingest_with_missing_fields_prompts_for_first_missing(make_orchestrator):
    parsed = ParsedDocument(text="some text", phone="+15551234567")
    orchestrator = make_orchestrator(parser=StubParser(parsed))

    record = orchestrator.ingest_document("cv.docx", None, b"PK")

    assert record.interview.status == InterviewStatus.COLLECTING
    assert "Name missing in resume." in record.chat[0].content
    assert "Email missing in resume." in record.chat[0].content
    assert record.chat[-1].content == (
        "Before we begin, I need Name, Email. Let's do it step by step - please provide your name."
    )


def test_ingest_unsupported_file_creates_no_session(orchestrator):
    with pytest.raises(UnsupportedFormatError):
        orchestrator.ingest_document("notes.txt", "text/plain", b"hello")

    assert orchestrator.list_sessions() == []
    assert orchestrator.get_active() is None


def test_profile_collection_asks_for_each_missing_field(make_orchestrator):
    orchestrator = make_orchestrator(parser=StubParser(ParsedDocument(text="", phone="+15551234567")))
    orchestrator.ingest_document("cv.pdf", "application/pdf", b"%PDF")

    record = orchestrator.submit_profile_field(ProfileField.NAME, "  Grace Hopper ")
    assert record.profile.name == "Grace Hopper"
    assert record.chat[-2].sender == MessageSender.CANDIDATE
    assert record.chat[-1].content == "Thanks! Could you also share your email?"
    assert record.interview.status == InterviewStatus.COLLECTING

    record = orchestrator.submit_profile_field(ProfileField.EMAIL, "grace@navy.mil")
    assert record.interview.status == InterviewStatus.AWAITING_START
    assert record.chat[-1].content == READY_AFTER_PROFILE


def test_invalid_email_leaves_field_unset(make_orchestrator):
    orchestrator = make_orchestrator(parser=StubParser(ParsedDocument(text="", name="Ada Lovelace")))
    orchestrator.ingest_document("cv.pdf", "application/pdf", b"%PDF")

    record = orchestrator.submit_profile_field(ProfileField.EMAIL, "not-an-email")

    assert record.profile.email is None
    assert record.interview.status == InterviewStatus.COLLECTING
    assert record.chat[-2].content == "not-an-email"
    assert record.chat[-1].sender == MessageSender.ASSISTANT
    assert record.chat[-1].content == "The email you entered isn't valid. Please check and enter it again."


def test_profile_field_rejected_after_intake(orchestrator):
    orchestrator.ingest_document("resume.pdf", "application/pdf", b"%PDF")

    with pytest.raises(InvalidStateError):
        orchestrator.submit_profile_field(ProfileField.NAME, "Someone Else")


# ---- Start ----

def test_start_without_active_session(orchestrator):
    with pytest.raises(InvalidStateError, match="No active candidate to start interview."):
        orchestrator.start_interview()


def test_start_with_missing_fields(make_orchestrator):
    orchestrator = make_orchestrator(parser=StubParser(ParsedDocument(text="")))
    orchestrator.ingest_document("cv.pdf", "application/pdf", b"%PDF")

    with pytest.raises(InvalidStateError, match="Profile still missing required fields."):
        orchestrator.start_interview()
    assert orchestrator.get_active().interview.status == InterviewStatus.COLLECTING


def test_start_asks_first_question_and_arms_timer(started, clock):
    record = started.get_active()

    assert record.interview.status == InterviewStatus.IN_PROGRESS
    assert record.interview.started_at == clock.now()
    assert len(record.interview.questions) == 6
    assert any(m.content == STARTING for m in record.chat)
    assert record.chat[-1].kind == MessageKind.QUESTION
    assert record.chat[-1].content == "Question 1 (EASY · 20s): What is a closure in JavaScript?"

    timer = record.interview.active_timer
    assert timer.question_id == record.interview.questions[0].id
    assert timer.duration_ms == 20_000
    assert timer.started_at == clock.now()
    assert not timer.paused
    assert started.timer_status().remaining_ms == 20_000


def test_start_twice_is_rejected(started):
    with pytest.raises(InvalidStateError):
        started.start_interview()


def test_generator_failure_falls_back_to_bank(make_orchestrator):
    orchestrator = make_orchestrator(generator=StubGenerator(error=GenerationFailure("server down")))
    orchestrator.ingest_document("resume.pdf", "application/pdf", b"%PDF")

    record = orchestrator.start_interview()

    bank = {item["prompt"] for items in FALLBACK_QUESTIONS.values() for item in items}
    assert len(record.interview.questions) == 6
    assert InterviewPhases.has_standard_mix(_difficulties(record))
    assert all(q.prompt in bank for q in record.interview.questions)
    assert len({q.id for q in record.interview.questions}) == 6


def test_unexpected_generator_error_falls_back(make_orchestrator):
    orchestrator = make_orchestrator(generator=StubGenerator(error=ConnectionError("refused")))
    orchestrator.ingest_document("resume.pdf", "application/pdf", b"%PDF")

    record = orchestrator.start_interview()

    assert InterviewPhases.has_standard_mix(_difficulties(record))


@pytest.mark.parametrize("questions", [
    make_questions()[:3],
    make_questions()[:2] + make_questions()[:2] + make_questions()[:2],
])
def test_short_or_unbalanced_generation_falls_back(make_orchestrator, questions):
    orchestrator = make_orchestrator(generator=StubGenerator(questions=questions))
    orchestrator.ingest_document("resume.pdf", "application/pdf", b"%PDF")

    record = orchestrator.start_interview()

    assert len(record.interview.questions) == 6
    assert InterviewPhases.has_standard_mix(_difficulties(record))


class HookedGenerator(StubGenerator):
    """Runs `during(orchestrator)` while the questions are being generated."""

    def __init__(self, during):
        super().__init__()
        self.during = during
        self.orchestrator = None

    def generate(self, profile, resume_text=None):
        self.during(self.orchestrator)
        return super().generate(profile, resume_text)


def test_generation_does_not_block_other_workflows(make_orchestrator):
    observed = []
    blocked = []

    def observe_from_another_thread(orchestrator):
        worker = threading.Thread(target=lambda: observed.append(orchestrator.list_sessions()))
        worker.start()
        worker.join(timeout=2)
        blocked.append(worker.is_alive())

    generator = HookedGenerator(observe_from_another_thread)
    orchestrator = make_orchestrator(generator=generator)
    generator.orchestrator = orchestrator
    orchestrator.ingest_document("resume.pdf", "application/pdf", b"%PDF")

    record = orchestrator.start_interview()

    assert blocked == [False]
    assert len(observed) == 1
    assert record.interview.status == InterviewStatus.IN_PROGRESS


def test_second_start_during_generation_is_rejected(make_orchestrator):
    errors = []

    def start_again(orchestrator):
        with pytest.raises(InvalidStateError, match="already starting") as info:
            orchestrator.start_interview()
        errors.append(info.value)

    generator = HookedGenerator(start_again)
    orchestrator = make_orchestrator(generator=generator)
    generator.orchestrator = orchestrator
    orchestrator.ingest_document("resume.pdf", "application/pdf", b"%PDF")

    record = orchestrator.start_interview()

    assert len(errors) == 1
    assert generator.calls == 1
    assert record.interview.current_question_index == 0


def test_start_fails_when_active_session_changes_during_generation(make_orchestrator, scheduler):
    generator = HookedGenerator(lambda o: o.ingest_document("other.pdf", "application/pdf", b"%PDF"))
    orchestrator = make_orchestrator(generator=generator)
    generator.orchestrator = orchestrator
    first = orchestrator.ingest_document("resume.pdf", "application/pdf", b"%PDF")

    with pytest.raises(InvalidStateError, match="changed"):
        orchestrator.start_interview()

    assert orchestrator.get_session(first.id).interview.status == InterviewStatus.AWAITING_START
    assert orchestrator.get_session(first.id).interview.questions == []
    assert scheduler.pending == []

    # The guard is released, so the first session can still be started later
    orchestrator.select_active(first.id)
    generator.during = lambda o: None
    assert orchestrator.start_interview().interview.status == InterviewStatus.IN_PROGRESS


# ---- Answers ----

def test_answer_count_tracks_question_index(started, scheduler):
    for index in range(6):
        record = started.submit_answer(f"answer number {index}", question_index=index)
        assert len(record.interview.answers) == record.interview.current_question_index == index + 1

    assert record.interview.status == InterviewStatus.COMPLETED
    assert record.interview.active_timer is None
    assert record.summary is not None
    assert record.chat[-1].kind == MessageKind.SUMMARY
    assert record.chat[-1].content.startswith(f"Interview complete! Final score: {record.summary.overall_score}.")
    assert scheduler.pending == []


def test_answer_records_score_and_rationale(started, scheduler):
    scheduler.advance(10)
    record = started.submit_answer("A closure keeps its lexical scope alive.", question_index=0)

    answer = record.interview.answers[0]
    assert answer.duration_ms == 10_000
    assert not answer.auto_submitted
    # 10 * (0.5 + 0.4 + 0.05) * 0.7
    assert answer.score == 7
    assert answer.reasoning.startswith("Covered keywords: closure, scope")
    assert record.chat[-2].content == answer.reasoning
    assert record.chat[-1].content == "Question 2 (EASY · 20s): What does useState return?"


def test_duplicate_submission_records_once(started):
    started.submit_answer("first try", question_index=0)
    record = started.submit_answer("double click", question_index=0)

    assert len(record.interview.answers) == 1
    assert record.interview.answers[0].response == "first try"
    assert record.interview.current_question_index == 1


def test_submit_when_completed_is_ignored(started):
    for index in range(6):
        started.submit_answer("done", question_index=index)

    record = started.submit_answer("one more", question_index=5)

    assert len(record.interview.answers) == 6


# ---- Timer ----

def test_expiry_auto_submits_empty_answer(started, scheduler):
    scheduler.advance(20)
    record = started.get_active()

    assert len(record.interview.answers) == 1
    answer = record.interview.answers[0]
    assert answer.auto_submitted
    assert answer.response == ""
    assert answer.score == 0
    assert any(m.content == TIME_UP for m in record.chat)
    assert record.interview.current_question_index == 1
    assert record.interview.active_timer.question_id == record.interview.questions[1].id


def test_expiry_after_manual_submit_does_not_double_record(started, scheduler, clock):
    clock.advance(20)
    started.submit_answer("just in time", question_index=0)
    scheduler.run_due()

    record = started.get_active()
    assert len(record.interview.answers) == 1
    assert not record.interview.answers[0].auto_submitted


def test_manual_submit_after_expiry_is_ignored(started, scheduler):
    scheduler.advance(20)
    record = started.submit_answer("too late", question_index=0)

    assert len(record.interview.answers) == 1
    assert record.interview.answers[0].auto_submitted
    assert record.interview.current_question_index == 1


def test_late_answer_is_not_recorded_against_next_question(started, scheduler):
    scheduler.advance(20.5)
    record = started.submit_answer("A closure captures variables from its enclosing scope", question_index=0)

    assert [(a.auto_submitted, a.response) for a in record.interview.answers] == [(True, "")]
    assert record.interview.current_question_index == 1
    assert record.interview.active_timer.question_id == record.interview.questions[1].id


def test_expiry_submits_saved_draft(started, scheduler):
    started.save_draft("my half written draft", question_index=0)
    scheduler.advance(20)

    record = started.get_active()
    answer = record.interview.answers[0]
    assert answer.auto_submitted
    assert answer.response == "my half written draft"
    assert answer.score == 0
    assert any(
        m.sender == MessageSender.CANDIDATE and m.content == "my half written draft" for m in record.chat
    )
    assert not any(m.content == TIME_UP for m in record.chat)


def test_draft_for_previous_question_is_not_submitted(started, scheduler):
    started.save_draft("old draft", question_index=0)
    started.submit_answer("real answer", question_index=0)
    started.save_draft("stale", question_index=0)

    scheduler.advance(20)

    answers = started.get_active().interview.answers
    assert [a.response for a in answers] == ["real answer", ""]


def test_draft_survives_pause(started, scheduler):
    started.save_draft("thinking about closures", question_index=0)
    started.pause_interview()
    started.resume_interview()

    scheduler.advance(20)

    assert started.get_active().interview.answers[0].response == "thinking about closures"


def test_draft_before_start_is_rejected(orchestrator):
    orchestrator.ingest_document("resume.pdf", "application/pdf", b"%PDF")

    with pytest.raises(InvalidStateError):
        orchestrator.save_draft("early", question_index=0)


def test_stale_expiry_is_ignored(started):
    first_id = started.get_active().interview.questions[0].id
    started.submit_answer("answer", question_index=0)

    started._on_timer_expired(first_id)

    assert len(started.get_active().interview.answers) == 1


def test_observing_timer_fires_overdue_expiry(started, clock):
    clock.advance(25)
    status = started.timer_status()

    record = started.get_active()
    assert len(record.interview.answers) == 1
    assert status.question_id == record.interview.questions[1].id
    assert status.remaining_ms == 60_000


# ---- Pause / resume ----

def test_pause_then_resume_restores_remaining(started, scheduler, clock):
    scheduler.advance(5)
    record = started.pause_interview()

    timer = record.interview.active_timer
    assert record.interview.status == InterviewStatus.PAUSED
    assert timer.paused
    assert timer.started_at is None
    assert timer.remaining_ms_on_pause == 15_000
    assert started.repository.welcome_back_id == record.id
    assert record.chat[-1].content == PAUSED

    record = started.resume_interview()

    timer = record.interview.active_timer
    assert record.interview.status == InterviewStatus.IN_PROGRESS
    assert timer.duration_ms == 15_000
    assert timer.duration_ms <= 20_000
    assert timer.started_at == clock.now()
    assert not timer.paused
    assert started.repository.welcome_back_id is None
    assert record.chat[-1].content == WELCOME_BACK


def test_paused_interview_does_not_expire(started, scheduler):
    started.pause_interview()
    scheduler.advance(120)

    record = started.get_active()
    assert record.interview.answers == []
    assert started.timer_status().remaining_ms == 20_000
    assert started.timer_status().paused


def test_resume_with_nothing_left_expires_immediately(started, scheduler, clock):
    clock.advance(30)
    record = started.pause_interview()
    assert record.interview.active_timer.remaining_ms_on_pause == 0

    started.resume_interview()
    scheduler.run_due()

    record = started.get_active()
    assert len(record.interview.answers) == 1
    assert record.interview.answers[0].auto_submitted


def test_submit_while_paused_is_rejected(started):
    started.pause_interview()

    with pytest.raises(InvalidStateError):
        started.submit_answer("sneaky", question_index=0)


def test_pause_and_resume_require_matching_status(started):
    with pytest.raises(InvalidStateError):
        started.resume_interview()
    started.pause_interview()
    with pytest.raises(InvalidStateError):
        started.pause_interview()


def test_suspend_pauses_running_interview(started):
    started.suspend()

    assert started.get_active().interview.status == InterviewStatus.PAUSED


def test_suspend_outside_interview_does_nothing(orchestrator):
    orchestrator.suspend()
    record = orchestrator.ingest_document("resume.pdf", "application/pdf", b"%PDF")
    orchestrator.suspend()

    assert orchestrator.get_session(record.id).interview.status == InterviewStatus.AWAITING_START


def test_dismiss_welcome_back(started):
    started.pause_interview()
    started.dismiss_welcome_back()

    assert started.repository.welcome_back_id is None
    assert started.get_active().interview.status == InterviewStatus.PAUSED


# ---- Switching and reset ----

def test_new_upload_pauses_running_interview(started, scheduler):
    first = started.get_active()
    second = started.ingest_document("other.pdf", "application/pdf", b"%PDF")

    assert started.repository.active_id == second.id
    assert started.get_session(first.id).interview.status == InterviewStatus.PAUSED

    scheduler.advance(60)
    assert started.get_session(first.id).interview.answers == []


def test_select_active(started):
    first = started.get_active()
    second = started.ingest_document("other.pdf", "application/pdf", b"%PDF")

    record = started.select_active(first.id)
    assert record.id == first.id
    assert started.repository.active_id == first.id
    assert started.get_session(second.id).interview.status == InterviewStatus.AWAITING_START

    assert started.select_active(None) is None
    assert started.get_active() is None


def test_select_unknown_session(orchestrator):
    with pytest.raises(NotFoundError):
        orchestrator.select_active("missing")


def test_reset_keeps_profile_and_clears_progress(started, scheduler):
    sid = started.get_active().id
    started.submit_answer("something", question_index=0)

    record = started.reset_interview(sid)

    assert record.profile.name == "Ada Lovelace"
    assert record.interview.status == InterviewStatus.AWAITING_START
    assert record.interview.questions == []
    assert record.interview.answers == []
    assert record.interview.active_timer is None
    assert record.summary is None
    assert [m.content for m in record.chat] == [READY_AFTER_PROFILE]

    scheduler.advance(120)
    assert started.get_session(sid).interview.answers == []

    record = started.start_interview()
    assert record.interview.current_question_index == 0


def test_reset_completed_interview(started):
    for index in range(6):
        started.submit_answer("done", question_index=index)
    sid = started.get_active().id

    record = started.reset_interview(sid)

    assert record.interview.status == InterviewStatus.AWAITING_START
    assert record.interview.completed_at is None


def test_reset_unknown_session(orchestrator):
    with pytest.raises(NotFoundError):
        orchestrator.reset_interview("missing")


def test_submit_before_start_is_rejected(orchestrator):
    orchestrator.ingest_document("resume.pdf", "application/pdf", b"%PDF")

    with pytest.raises(InvalidStateError):
        orchestrator.submit_answer("eager", question_index=0)
