"""Exceptions surfaced by the workflow controller and the API client."""

from __future__ import annotations


class ApiError(Exception):
    """Raised when a remote operation fails or returns a malformed body."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class WorkflowError(Exception):
    """Base class for failures reported to the presentation layer."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotAuthenticatedError(WorkflowError):
    """The caller has not signed in."""


class InvalidRepoUrlError(WorkflowError):
    """The repository URL is not of the form https://github.com/<owner>/<repo>."""


class SubmissionFailedError(WorkflowError):
    """Verification or question generation failed; the stage is unchanged."""


class VerificationFailedError(SubmissionFailedError):
    pass


class GenerationFailedError(SubmissionFailedError):
    pass


class IncompleteAnswersError(WorkflowError):
    """One or more answers are empty after trimming."""

    def __init__(self, message: str, question_ids: list[str]) -> None:
        super().__init__(message)
        self.question_ids = question_ids


class AnswerSubmissionFailedError(WorkflowError):
    """The answer batch was not accepted; drafts are kept."""


class WorkflowBusyError(WorkflowError):
    """Another attempt of the same operation is still in flight."""


class InvalidStageError(WorkflowError):
    """The event is not accepted in the current stage."""


class UnknownQuestionError(WorkflowError):
    """The event references a question id outside the active submission."""
