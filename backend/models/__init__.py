# Models module
from .schemas import (
    MessageSender,
    MessageKind,
    QuestionDifficulty,
    InterviewStatus,
    ProfileField,
    CandidateProfile,
    ChatMessage,
    InterviewQuestion,
    AnswerRecord,
    ActiveTimerState,
    CandidateInterview,
    CandidateSummary,
    CandidateRecord,
)
