"""In-memory FastAPI backend speaking the CodeQuestionBot API, for development and tests."""

from __future__ import annotations

import argparse
from dataclasses import dataclass, field
from threading import Lock
from urllib.parse import urlsplit
from uuid import uuid4

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
import uvicorn

from cqbot.constants.network_constants import MOCK_SERVER_HOST, MOCK_SERVER_PORT
from cqbot.constants.workflow_constants import MAX_SCORE_PER_QUESTION

API_PREFIX = "/cqbot"

_SAMPLE_EXCERPT = "def example():\n    return 'hello'\n"


class MockBackendError(Exception):
    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


@dataclass(slots=True)
class StoredAnswer:
    answer_id: str
    question_id: str
    answer_text: str
    time_spent_ms: int
    paste_attempts: int
    focus_loss_count: int


@dataclass(slots=True)
class StoredSubmission:
    submission_id: str
    repo_url: str
    question_ids: list[str]
    answers: list[StoredAnswer] = field(default_factory=list)
    grade_queries: int = 0


class MockBackendState:
    """Server-side state behind the mock API.

    Grades for a submission become visible once it has been queried
    ``grading_delay_polls`` times, ``grades_per_poll`` at a time.
    """

    def __init__(
        self,
        *,
        login: str | None = "octocat",
        is_instructor: bool = False,
        question_count: int = 3,
        grading_delay_polls: int = 1,
        grades_per_poll: int | None = None,
    ) -> None:
        self._lock = Lock()
        self.login = login
        self.is_instructor = is_instructor
        self.question_count = question_count
        self.grading_delay_polls = grading_delay_polls
        self.grades_per_poll = grades_per_poll
        self.fail_next_answer_batch = False
        self.logout_calls = 0
        self._submissions: dict[str, StoredSubmission] = {}

    # --- Auth ---

    def identity(self) -> dict[str, object]:
        with self._lock:
            if self.login is None:
                return {"authenticated": False}
            return {"authenticated": True, "github_login": self.login, "is_instructor": self.is_instructor}

    def logout(self) -> None:
        with self._lock:
            self.logout_calls += 1
            self.login = None

    # --- Repositories and submissions ---

    def verify_repo(self, repo_url: str) -> dict[str, object]:
        owner, name = _split_repo_url(repo_url)
        if owner == "invalid":
            raise MockBackendError(403, f"Repository {owner}/{name} is not accessible.")
        return {"ok": True, "owner": owner, "name": name}

    def create_submission(self, repo_url: str) -> dict[str, object]:
        owner, name = _split_repo_url(repo_url)
        submission_id = uuid4().hex
        questions = [
            {
                "id": f"{submission_id}-q{index + 1}",
                "text": f"Question {index + 1}: what does this function in {owner}/{name} do?",
                "file_path": "src/example.py",
                "line_start": 1 + index * 10,
                "line_end": 12 + index * 10,
                "excerpt": _SAMPLE_EXCERPT,
            }
            for index in range(self.question_count)
        ]
        with self._lock:
            self._submissions[submission_id] = StoredSubmission(
                submission_id=submission_id,
                repo_url=repo_url,
                question_ids=[question["id"] for question in questions],
            )
        return {"submission_id": submission_id, "status": "ready", "questions": questions}

    def record_answers(self, answers: list[AnswerSubmissionPayload]) -> list[dict[str, object]]:
        """Store the whole batch or nothing."""
        with self._lock:
            if self.fail_next_answer_batch:
                self.fail_next_answer_batch = False
                raise MockBackendError(503, "Grading service unavailable.")
            if not answers:
                raise MockBackendError(400, "No answers provided.")
            for answer in answers:
                submission = self._submissions.get(answer.submission_id)
                if submission is None:
                    raise MockBackendError(404, f"Unknown submission {answer.submission_id}.")
                if answer.question_id not in submission.question_ids:
                    raise MockBackendError(400, f"Unknown question {answer.question_id}.")

            receipts = []
            for answer in answers:
                stored = StoredAnswer(
                    answer_id=uuid4().hex,
                    question_id=answer.question_id,
                    answer_text=answer.answer_text,
                    time_spent_ms=answer.time_spent_ms,
                    paste_attempts=answer.paste_attempts,
                    focus_loss_count=answer.focus_loss_count,
                )
                self._submissions[answer.submission_id].answers.append(stored)
                receipts.append({"answer_id": stored.answer_id, "grade_id": None, "score": None})
            return receipts

    def grades(self, submission_id: str) -> dict[str, object]:
        with self._lock:
            submission = self._submissions.get(submission_id)
            if submission is None:
                raise MockBackendError(404, f"Unknown submission {submission_id}.")
            submission.grade_queries += 1
            if submission.grade_queries < self.grading_delay_polls:
                return {"grades": []}
            released = submission.answers
            if self.grades_per_poll is not None:
                ready_polls = submission.grade_queries - self.grading_delay_polls + 1
                released = released[: ready_polls * self.grades_per_poll]
            return {"grades": [_grade_answer(answer) for answer in released]}

    def get_submission(self, submission_id: str) -> StoredSubmission | None:
        with self._lock:
            return self._submissions.get(submission_id)


def _split_repo_url(repo_url: str) -> tuple[str, str]:
    parts = [part for part in urlsplit(repo_url).path.split("/") if part]
    if len(parts) != 2:
        raise MockBackendError(400, "Enter a valid GitHub repo URL (https://github.com/user/repo).")
    return parts[0], parts[1]


def _grade_answer(answer: StoredAnswer) -> dict[str, object]:
    words = len(answer.answer_text.split())
    score = min(MAX_SCORE_PER_QUESTION, 1 + words // 5)
    return {
        "answer_id": answer.answer_id,
        "score": score,
        "rationale": f"Answer used {words} word(s).",
        "confidence": 0.8,
    }


class RepoPayload(BaseModel):
    """Payload schema for repository verification and submission creation."""

    repo_url: str


class AnswerSubmissionPayload(BaseModel):
    """Payload schema for one submitted answer."""

    submission_id: str
    question_id: str
    answer_text: str
    time_spent_ms: int
    paste_attempts: int
    focus_loss_count: int
    typing_stats: dict[str, object] | None = None


class AnswerBatchPayload(BaseModel):
    answers: list[AnswerSubmissionPayload]


def _get_state_dependency(state: MockBackendState):
    def dependency() -> MockBackendState:
        return state

    return dependency


def create_mock_app(state: MockBackendState | None = None) -> FastAPI:
    """Create a FastAPI application wired to the provided backend state."""
    state = state or MockBackendState()
    app = FastAPI(title="CodeQuestionBot mock API", version="0.1.0")
    app.state.backend = state
    state_dep = _get_state_dependency(state)

    @app.exception_handler(MockBackendError)
    async def handle_backend_error(request: Request, exc: MockBackendError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.get(f"{API_PREFIX}/auth/me")
    def get_identity(backend: MockBackendState = Depends(state_dep)) -> dict[str, object]:
        return backend.identity()

    @app.post(f"{API_PREFIX}/auth/logout")
    def logout(backend: MockBackendState = Depends(state_dep)) -> dict[str, object]:
        backend.logout()
        return {"ok": True}

    @app.post(f"{API_PREFIX}/repos/verify")
    def verify_repo(payload: RepoPayload, backend: MockBackendState = Depends(state_dep)) -> dict[str, object]:
        return backend.verify_repo(payload.repo_url)

    @app.post(f"{API_PREFIX}/submissions", status_code=201)
    def create_submission(payload: RepoPayload, backend: MockBackendState = Depends(state_dep)) -> dict[str, object]:
        return backend.create_submission(payload.repo_url)

    @app.post(f"{API_PREFIX}/answers", status_code=201)
    def submit_answers(payload: AnswerBatchPayload, backend: MockBackendState = Depends(state_dep)) -> dict[str, object]:
        return {"answers": backend.record_answers(payload.answers)}

    @app.get(f"{API_PREFIX}/submissions/{{submission_id}}/grades")
    def get_grades(submission_id: str, backend: MockBackendState = Depends(state_dep)) -> dict[str, object]:
        return backend.grades(submission_id)

    return app


def serve_mock_backend(
    state: MockBackendState | None = None,
    host: str = MOCK_SERVER_HOST,
    port: int = MOCK_SERVER_PORT,
) -> None:
    """Serve the mock backend with uvicorn until interrupted."""
    uvicorn.run(create_mock_app(state), host=host, port=port, log_level="info")


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Serve the CodeQuestionBot mock API.")
    parser.add_argument("--host", default=MOCK_SERVER_HOST)
    parser.add_argument("--port", type=int, default=MOCK_SERVER_PORT)
    parser.add_argument("--questions", type=int, default=3, help="questions generated per submission")
    parser.add_argument("--instructor", action="store_true", help="sign the caller in as an instructor")
    args = parser.parse_args(argv)
    state = MockBackendState(question_count=args.questions, is_instructor=args.instructor)
    serve_mock_backend(state, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
