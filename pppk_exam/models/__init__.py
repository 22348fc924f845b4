from pppk_exam.models.question import Question, QuestionOption  # noqa
from pppk_exam.models.exam import (  # noqa
    ExamQuestion,
    ExamResult,
    ExamSession,
    ExamStatus,
    ExamSummary,
    UserAnswer,
)
