# Interview module
from .phases import InterviewPhases, ALLOWED_TRANSITIONS
from .scoring import AnswerScorer, ScoreResult
from .summary import SummaryBuilder
from .timer import TimerController, ThreadingScheduler
from .validation import validate_profile_field
