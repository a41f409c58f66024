from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from cqbot.core.errors import ApiError
from cqbot.core.models import AnswerReceipt, AnswerRecord, Grade, Identity, Question, Submission
from cqbot.core.services.answer_draft_store import AnswerDraftStore
from cqbot.core.services.grade_poller import GradePoller
from cqbot.core.services.integrity_recorder import IntegrityRecorder
from cqbot.core.workflow_controller import WorkflowController

REPO_URL = "https://github.com/acme/widgets"


class FakeClock:
    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class RecordingSleep:
    """Async sleep replacement that records delays and yields once."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        await asyncio.sleep(0)


def make_submission(count: int = 3, submission_id: str = "sub-1") -> Submission:
    questions = tuple(
        Question(
            id=f"q{index + 1}",
            text=f"What does function {index + 1} do?",
            file_path="src/widgets.py",
            line_start=index * 10 + 1,
            line_end=index * 10 + 8,
            excerpt="def widget():\n    pass\n",
        )
        for index in range(count)
    )
    return Submission(submission_id=submission_id, status="ready", questions=questions)


def make_grades(count: int, score: float = 4, confidence: float = 0.9) -> list[Grade]:
    return [
        Grade(answer_id=f"a{index + 1}", score=score, rationale="Clear explanation.", confidence=confidence)
        for index in range(count)
    ]


class FakeApi:
    """Scriptable stand-in for CqbotApiClient that records every call."""

    def __init__(self) -> None:
        self.calls: list[str] = []
        self.identity = Identity(authenticated=True, login="octocat", is_instructor=False)
        self.identity_error: ApiError | None = None
        self.logout_error: ApiError | None = None
        self.verify_error: ApiError | None = None
        self.create_error: ApiError | None = None
        self.submit_error: ApiError | None = None
        self.submission = make_submission()
        self.submitted_batches: list[list[AnswerRecord]] = []
        # Each get_grades call pops the next entry; an ApiError entry is raised.
        self.grade_responses: list[list[Grade] | ApiError] = []

    async def get_identity(self) -> Identity:
        self.calls.append("get_identity")
        if self.identity_error:
            raise self.identity_error
        return self.identity

    async def logout(self) -> None:
        self.calls.append("logout")
        if self.logout_error:
            raise self.logout_error

    async def verify_repo(self, repo_url: str) -> dict[str, object]:
        self.calls.append("verify_repo")
        if self.verify_error:
            raise self.verify_error
        return {"ok": True}

    async def create_submission(self, repo_url: str) -> Submission:
        self.calls.append("create_submission")
        if self.create_error:
            raise self.create_error
        return self.submission

    async def submit_answers(self, records: list[AnswerRecord]) -> list[AnswerReceipt]:
        self.calls.append("submit_answers")
        if self.submit_error:
            raise self.submit_error
        self.submitted_batches.append(list(records))
        return [AnswerReceipt(answer_id=f"a{index + 1}") for index in range(len(records))]

    async def get_grades(self, submission_id: str) -> list[Grade]:
        self.calls.append("get_grades")
        if not self.grade_responses:
            return []
        response = self.grade_responses.pop(0)
        if isinstance(response, ApiError):
            raise response
        return response

    def csv_export_url(self) -> str:
        return "http://test/cqbot/exports/submissions.csv"

    def auth_url(self) -> str:
        return "http://test/cqbot/auth/github"

    def remote_calls(self) -> list[str]:
        return [call for call in self.calls if call != "get_identity"]


@pytest.fixture
def fake_api() -> FakeApi:
    return FakeApi()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def draft_store(tmp_path: Path) -> AnswerDraftStore:
    return AnswerDraftStore(tmp_path / "drafts")


@pytest.fixture
def controller(fake_api: FakeApi, draft_store: AnswerDraftStore, clock: FakeClock, sleep: RecordingSleep) -> WorkflowController:
    return WorkflowController(
        fake_api,
        draft_store,
        recorder=IntegrityRecorder(clock),
        poller=GradePoller(fake_api, sleep=sleep),
    )
