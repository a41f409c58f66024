"""Async HTTP client for the CodeQuestionBot backend."""

from __future__ import annotations

import logging
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from cqbot.constants.network_constants import (
    ANSWERS_PATH,
    AUTH_GITHUB_PATH,
    AUTH_LOGOUT_PATH,
    AUTH_ME_PATH,
    CSV_EXPORT_PATH,
    DEFAULT_API_BASE_URL,
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
    GRADES_PATH_TEMPLATE,
    REPO_VERIFY_PATH,
    SUBMISSIONS_PATH,
)
from cqbot.core.errors import ApiError
from cqbot.core.models import AnswerReceipt, AnswerRecord, Grade, Identity, Question, Submission

logger = logging.getLogger(__name__)

_ModelT = TypeVar("_ModelT", bound=BaseModel)


class AuthMePayload(BaseModel):
    authenticated: bool
    github_login: str | None = None
    is_instructor: bool | None = None


class RepoVerifyPayload(BaseModel):
    ok: bool
    owner: str | None = None
    name: str | None = None
    error: str | None = None


class QuestionPayload(BaseModel):
    id: str
    text: str
    file_path: str
    line_start: int
    line_end: int
    excerpt: str


class SubmissionPayload(BaseModel):
    submission_id: str
    status: str
    questions: list[QuestionPayload]


class AnswerReceiptPayload(BaseModel):
    answer_id: str
    grade_id: str | None = None
    score: float | None = None


class AnswerBatchPayload(BaseModel):
    answers: list[AnswerReceiptPayload]


class GradePayload(BaseModel):
    answer_id: str
    score: float
    rationale: str
    confidence: float


class GradesPayload(BaseModel):
    grades: list[GradePayload]


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict) and isinstance(data.get("error"), str):
        return data["error"]
    return response.reason_phrase or "Request failed"


class CqbotApiClient:
    """Thin async wrapper over the remote operations the workflow consumes.

    Every failure, whether transport, HTTP status or body shape, is raised as
    ApiError so callers translate a single exception type.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_API_BASE_URL,
        timeout: float = DEFAULT_REQUEST_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(base_url=self._base_url, timeout=timeout, transport=transport)

    @property
    def base_url(self) -> str:
        return self._base_url

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> CqbotApiClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # --- Remote operations ---

    async def get_identity(self) -> Identity:
        payload = await self._request_model("GET", AUTH_ME_PATH, AuthMePayload)
        if not payload.authenticated:
            return Identity.anonymous()
        return Identity(
            authenticated=True,
            login=payload.github_login,
            is_instructor=bool(payload.is_instructor),
        )

    async def logout(self) -> None:
        await self._request("POST", AUTH_LOGOUT_PATH)

    async def verify_repo(self, repo_url: str) -> RepoVerifyPayload:
        payload = await self._request_model("POST", REPO_VERIFY_PATH, RepoVerifyPayload, json={"repo_url": repo_url})
        if not payload.ok:
            raise ApiError(payload.error or "Repository could not be verified.")
        return payload

    async def create_submission(self, repo_url: str) -> Submission:
        payload = await self._request_model("POST", SUBMISSIONS_PATH, SubmissionPayload, json={"repo_url": repo_url})
        questions = tuple(Question(**question.model_dump()) for question in payload.questions)
        ids = [question.id for question in questions]
        if len(set(ids)) != len(ids):
            raise ApiError("Submission contained duplicate question ids.")
        return Submission(submission_id=payload.submission_id, status=payload.status, questions=questions)

    async def submit_answers(self, records: list[AnswerRecord]) -> list[AnswerReceipt]:
        body = {
            "answers": [
                {
                    "submission_id": record.submission_id,
                    "question_id": record.question_id,
                    "answer_text": record.answer_text,
                    "time_spent_ms": record.time_spent_ms,
                    "paste_attempts": record.paste_attempts,
                    "focus_loss_count": record.focus_loss_count,
                    "typing_stats": record.typing_stats,
                }
                for record in records
            ]
        }
        payload = await self._request_model("POST", ANSWERS_PATH, AnswerBatchPayload, json=body)
        return [AnswerReceipt(**receipt.model_dump()) for receipt in payload.answers]

    async def get_grades(self, submission_id: str) -> list[Grade]:
        path = GRADES_PATH_TEMPLATE.format(submission_id=submission_id)
        payload = await self._request_model("GET", path, GradesPayload)
        return [Grade(**grade.model_dump()) for grade in payload.grades]

    # --- Static links ---

    def csv_export_url(self) -> str:
        return f"{self._base_url}{CSV_EXPORT_PATH}"

    def auth_url(self) -> str:
        return f"{self._base_url}{AUTH_GITHUB_PATH}"

    # --- Internals ---

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise ApiError(str(exc) or "Request failed") from exc
        if response.is_error:
            message = _error_message(response)
            logger.warning("%s %s returned %s: %s", method, path, response.status_code, message)
            raise ApiError(message, status_code=response.status_code)
        return response

    async def _request_model(self, method: str, path: str, model: type[_ModelT], **kwargs: Any) -> _ModelT:
        response = await self._request(method, path, **kwargs)
        try:
            return model.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise ApiError(f"Unexpected response from {path}.", status_code=response.status_code) from exc
