"""
Domain errors raised by the follow-up pipeline
"""


class DiagnosisGenerationError(Exception):
    """The language model call failed; the cause is not classified here"""

    def __init__(self, message: str = "Failed to generate follow-up diagnosis"):
        super().__init__(message)


class SubmissionNotFoundError(LookupError):
    """Original submission could not be located for this user"""


class SubmissionLockedError(ValueError):
    """Answers cannot change once a submission has been submitted"""


class WorksheetNotFoundError(LookupError):
    """Unknown worksheet id"""


class InvalidAnswersError(ValueError):
    """Answers do not match the worksheet's questions"""


class AssessmentNotFoundError(LookupError):
    """Follow-up assessment could not be located for this user"""


class DiagnosisNotAvailableError(LookupError):
    """The submission has no diagnosis yet"""
