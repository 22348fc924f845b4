# pppk_exam/services/errors.py
"""
Failures raised by the exam service.

Each carries the HTTP status the API layer answers with.
"""


class ExamError(Exception):
    status_code = 400


class SessionNotFound(ExamError):
    status_code = 404


class InsufficientQuestions(ExamError):
    status_code = 409

    def __init__(self, category: str, required: int, available: int):
        self.category = category
        self.required = required
        self.available = available
        super().__init__(
            f"not enough questions in category {category}: "
            f"need {required}, got {available}"
        )


class ExamAlreadyCompleted(ExamError):
    status_code = 409


class ExamExpired(ExamError):
    status_code = 409


class ExamNotStarted(ExamError):
    status_code = 409


class OptionNotFound(ExamError):
    status_code = 404


class QuestionNotInSession(ExamError):
    status_code = 404


class ResultsNotFound(ExamError):
    status_code = 404
