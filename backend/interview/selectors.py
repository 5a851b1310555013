"""
Derived views over candidate records.
Computed on every read; nothing here is cached or mutated.
"""
from typing import Dict, Iterable, List, Optional

from models.schemas import (
    CandidateRecord,
    DashboardRow,
    InterviewQuestion,
    ProfileField,
)

SORT_OPTIONS = ("score-desc", "score-asc", "recent")


def missing_profile_fields(record: Optional[CandidateRecord]) -> List[ProfileField]:
    """Unset identity fields, in the order they are requested."""
    if record is None:
        return []
    return [
        field for field in ProfileField.get_order()
        if not getattr(record.profile, field.value)
    ]


def current_question(record: Optional[CandidateRecord]) -> Optional[InterviewQuestion]:
    if record is None:
        return None
    questions = record.interview.questions
    index = record.interview.current_question_index
    return questions[index] if 0 <= index < len(questions) else None


def interview_progress(record: Optional[CandidateRecord]) -> Dict[str, int]:
    if record is None:
        return {"answered": 0, "total": 0}
    return {
        "answered": len(record.interview.answers),
        "total": len(record.interview.questions),
    }


def _summary_score(record: CandidateRecord) -> int:
    return record.summary.overall_score if record.summary else 0


def _matches(record: CandidateRecord, term: str) -> bool:
    haystack = " ".join(
        part for part in (
            record.profile.name,
            record.profile.email,
            record.profile.phone,
            record.summary.final_remark if record.summary else None,
        )
        if part
    ).lower()
    return term in haystack


def list_candidates(
    records: Iterable[CandidateRecord],
    search_term: str = "",
    sort_by: str = "score-desc",
) -> List[CandidateRecord]:
    """
    Observer dashboard listing.

    Args:
        records: Candidate records in repository order
        search_term: Case-insensitive filter over name, email, phone and remark
        sort_by: One of `score-desc`, `score-asc`, `recent`

    Returns:
        Filtered and sorted records
    """
    if sort_by not in SORT_OPTIONS:
        raise ValueError(f"Unknown sort option: {sort_by}")

    term = (search_term or "").strip().lower()
    rows = [r for r in records if _matches(r, term)] if term else list(records)

    if sort_by == "recent":
        rows.sort(key=lambda r: r.updated_at, reverse=True)
    else:
        rows.sort(key=_summary_score, reverse=(sort_by == "score-desc"))
    return rows


def dashboard_row(record: CandidateRecord) -> DashboardRow:
    return DashboardRow(
        id=record.id,
        name=record.profile.name or "Unknown candidate",
        email=record.profile.email or "—",
        score=_summary_score(record),
        status=record.interview.status,
        updated_at=record.updated_at,
    )
