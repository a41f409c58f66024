"""State machine driving a repository from submission through grading."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
import logging
from typing import Protocol

from cqbot.constants.workflow_constants import (
    ANSWER_SUBMISSION_FAILED_MESSAGE,
    INCOMPLETE_ANSWERS_MESSAGE,
    INVALID_REPO_URL_MESSAGE,
    REPO_URL_PATTERN,
    SUBMISSION_FAILED_MESSAGE,
)
from cqbot.core.errors import (
    AnswerSubmissionFailedError,
    ApiError,
    GenerationFailedError,
    IncompleteAnswersError,
    InvalidRepoUrlError,
    InvalidStageError,
    NotAuthenticatedError,
    SubmissionFailedError,
    VerificationFailedError,
    WorkflowBusyError,
)
from cqbot.core.models import (
    AnswerReceipt,
    AnswerRecord,
    AuthStatus,
    DraftSnapshot,
    Grade,
    GradeSummary,
    GradingStatus,
    Identity,
    Question,
    Stage,
    Submission,
    SubmitPhase,
)
from cqbot.core.services.answer_draft_store import AnswerDraftStore, draft_key
from cqbot.core.services.grade_poller import GradePoller, GradePollResult
from cqbot.core.services.grade_summary import summarize_grades
from cqbot.core.services.identity_gate import IdentityGate
from cqbot.core.services.integrity_recorder import IntegrityRecorder, monotonic_ms

logger = logging.getLogger(__name__)


class WorkflowApi(Protocol):
    async def get_identity(self) -> Identity: ...

    async def logout(self) -> None: ...

    async def verify_repo(self, repo_url: str) -> object: ...

    async def create_submission(self, repo_url: str) -> Submission: ...

    async def submit_answers(self, records: list[AnswerRecord]) -> list[AnswerReceipt]: ...

    async def get_grades(self, submission_id: str) -> list[Grade]: ...

    def csv_export_url(self) -> str: ...

    def auth_url(self) -> str: ...


# (current stage, event) -> next stage. reset is accepted from every stage.
_TRANSITIONS: dict[tuple[Stage, str], Stage] = {
    (Stage.SUBMIT, "questions_ready"): Stage.QUESTIONS,
    (Stage.QUESTIONS, "answers_accepted"): Stage.SUBMITTED,
}


def is_valid_repo_url(value: str) -> bool:
    return REPO_URL_PATTERN.match(value) is not None


class WorkflowController:
    """Facade over identity, integrity, drafts and polling services.

    Remote failures are translated into WorkflowError subclasses and raised
    to the caller; none of them changes the stage.
    """

    def __init__(
        self,
        api: WorkflowApi,
        draft_store: AnswerDraftStore,
        *,
        identity_gate: IdentityGate | None = None,
        recorder: IntegrityRecorder | None = None,
        poller: GradePoller | None = None,
        clock: Callable[[], float] = monotonic_ms,
    ) -> None:
        self._api = api
        self._drafts = draft_store
        self._identity = identity_gate or IdentityGate(api)
        self._recorder = recorder or IntegrityRecorder(clock)
        self._poller = poller or GradePoller(api)

        self._stage = Stage.SUBMIT
        self._phase = SubmitPhase.IDLE
        self._submitting_answers = False
        self._repo_url: str | None = None
        self._submission: Submission | None = None
        self._grades: tuple[Grade, ...] = ()
        self._grading_status = GradingStatus.IDLE
        self._poll_task: asyncio.Task[GradePollResult] | None = None
        self._polling_submission_id: str | None = None
        # Bumped on every reset so in-flight attempts can tell they were abandoned.
        self._epoch = 0
        self.last_error: str | None = None

    # --- Identity ---

    @property
    def auth_status(self) -> AuthStatus:
        return self._identity.status

    @property
    def identity(self) -> Identity:
        return self._identity.identity

    async def resolve_identity(self) -> Identity:
        return await self._identity.resolve()

    async def logout(self) -> None:
        try:
            await self._identity.logout()
        finally:
            self.reset()

    def auth_url(self) -> str:
        return self._api.auth_url()

    def csv_export_url(self) -> str | None:
        """Export link for instructors; None for everyone else."""
        if not self._identity.is_instructor():
            return None
        return self._api.csv_export_url()

    # --- Read-only state ---

    @property
    def stage(self) -> Stage:
        return self._stage

    @property
    def submit_phase(self) -> SubmitPhase:
        return self._phase

    @property
    def is_submitting_answers(self) -> bool:
        return self._submitting_answers

    @property
    def repo_url(self) -> str | None:
        return self._repo_url

    @property
    def submission(self) -> Submission | None:
        return self._submission

    @property
    def questions(self) -> tuple[Question, ...]:
        return self._submission.questions if self._submission else ()

    @property
    def focus_loss_count(self) -> int:
        return self._recorder.focus_loss_count

    @property
    def grading_status(self) -> GradingStatus:
        return self._grading_status

    @property
    def grades(self) -> tuple[Grade, ...]:
        return self._grades

    def answers(self) -> dict[str, str]:
        return {state.question_id: state.draft for state in self._recorder.states()}

    def paste_counts(self) -> dict[str, int]:
        return {state.question_id: state.paste_attempts for state in self._recorder.states()}

    def time_spent(self) -> dict[str, int]:
        return self._recorder.time_spent()

    def running_timers(self) -> dict[str, float | None]:
        return {state.question_id: state.timer_started_at for state in self._recorder.states()}

    def invalid_question_ids(self) -> set[str]:
        return {state.question_id for state in self._recorder.states() if state.invalid}

    def focus_loss_warning(self) -> str | None:
        count = self._recorder.focus_loss_count
        if count == 0:
            return None
        return f"Keep this window active. Focus lost {count} {'time' if count == 1 else 'times'}."

    def summary(self) -> GradeSummary | None:
        if self._grading_status is not GradingStatus.COMPLETE or not self._grades:
            return None
        return summarize_grades(self._grades, self.questions, self.answers())

    # --- submit -> questions ---

    async def start_submission(self, repo_url: str) -> Submission | None:
        """Verify the repository and generate its questions.

        Returns None if the workflow was reset while the attempt was in flight.
        """
        self._require_stage(Stage.SUBMIT)
        if self._phase is not SubmitPhase.IDLE:
            raise WorkflowBusyError("A repository submission is already in progress.")
        if not self._identity.is_authenticated():
            raise NotAuthenticatedError("Sign in before submitting a repository.")

        repo_url = repo_url.strip()
        self.last_error = None
        if not is_valid_repo_url(repo_url):
            self.last_error = INVALID_REPO_URL_MESSAGE
            raise InvalidRepoUrlError(INVALID_REPO_URL_MESSAGE)

        self._cancel_polling()
        epoch = self._epoch
        try:
            self._phase = SubmitPhase.VERIFYING
            try:
                await self._api.verify_repo(repo_url)
            except ApiError as exc:
                if epoch != self._epoch:
                    return None
                raise self._fail_submission(VerificationFailedError, SubmitPhase.VERIFYING, exc) from exc
            if epoch != self._epoch:
                return None

            self._phase = SubmitPhase.GENERATING
            try:
                submission = await self._api.create_submission(repo_url)
            except ApiError as exc:
                if epoch != self._epoch:
                    return None
                raise self._fail_submission(GenerationFailedError, SubmitPhase.GENERATING, exc) from exc
            if epoch != self._epoch:
                return None

            self._begin_answering(repo_url, submission)
            return submission
        finally:
            if epoch == self._epoch:
                self._phase = SubmitPhase.IDLE

    def _fail_submission(
        self, error_type: type[SubmissionFailedError], phase: SubmitPhase, exc: ApiError
    ) -> SubmissionFailedError:
        message = exc.message or SUBMISSION_FAILED_MESSAGE
        self.last_error = message
        logger.warning("Repository submission failed during %s: %s", phase.value, message)
        return error_type(message)

    def _begin_answering(self, repo_url: str, submission: Submission) -> None:
        self._repo_url = repo_url
        self._submission = submission
        self._grades = ()
        self._grading_status = GradingStatus.IDLE
        self._recorder.start(submission.question_ids())
        self._restore_drafts()
        self._transition("questions_ready")
        logger.info("Submission %s ready with %d question(s)", submission.submission_id, len(submission.questions))

    def _restore_drafts(self) -> None:
        cached = self._drafts.load(draft_key(self._repo_url))
        if cached is None:
            return
        known_ids = set(self._submission.question_ids())
        for question_id, text in cached.answers.items():
            if question_id in known_ids:
                self._recorder.state(question_id).draft = text
        self._recorder.merge_time_spent(cached.time_spent)
        logger.info("Restored saved drafts for %s", self._repo_url)

    # --- questions stage events ---

    def edit_answer(self, question_id: str, text: str) -> None:
        self._require_stage(Stage.QUESTIONS)
        state = self._recorder.state(question_id)
        state.draft = text
        state.invalid = False
        self._persist_drafts()

    def record_paste(self, question_id: str) -> int:
        """Count a blocked paste; rejecting the paste itself is the UI's job."""
        self._require_stage(Stage.QUESTIONS)
        return self._recorder.record_paste(question_id)

    def question_focused(self, question_id: str) -> None:
        self._require_stage(Stage.QUESTIONS)
        self._recorder.question_focused(question_id)

    def question_blurred(self, question_id: str) -> None:
        self._require_stage(Stage.QUESTIONS)
        if self._recorder.question_blurred(question_id):
            self._persist_drafts()

    def window_blurred(self) -> None:
        self._count_focus_loss("window blur")

    def visibility_changed(self, hidden: bool) -> None:
        if hidden:
            self._count_focus_loss("document hidden")

    def _count_focus_loss(self, source: str) -> None:
        # The listeners are global; losses outside the questions stage are not tracked.
        if self._stage is not Stage.QUESTIONS:
            return
        count = self._recorder.record_focus_loss()
        logger.debug("Focus lost (%s), count=%d", source, count)

    # --- questions -> submitted ---

    def build_answer_records(self) -> list[AnswerRecord]:
        """Assemble the batch payload, folding running timers as of now."""
        self._require_stage(Stage.QUESTIONS)
        effective = self._recorder.effective_time_spent()
        focus_loss_count = self._recorder.focus_loss_count
        records = []
        for question in self._submission.questions:
            state = self._recorder.state(question.id)
            records.append(
                AnswerRecord(
                    submission_id=self._submission.submission_id,
                    question_id=question.id,
                    answer_text=state.draft,
                    time_spent_ms=effective[question.id],
                    paste_attempts=state.paste_attempts,
                    focus_loss_count=focus_loss_count,
                    typing_stats=None,
                )
            )
        return records

    async def submit_answers(self) -> list[AnswerReceipt] | None:
        """Send every answer as one batch and start polling for grades.

        Returns None if the workflow was reset while the batch was in flight.
        """
        self._require_stage(Stage.QUESTIONS)
        if self._submitting_answers:
            raise WorkflowBusyError("Answers are already being submitted.")
        self.last_error = None

        empty_ids = [
            question.id for question in self._submission.questions
            if not self._recorder.state(question.id).draft.strip()
        ]
        if empty_ids:
            for state in self._recorder.states():
                state.invalid = state.question_id in empty_ids
            self.last_error = INCOMPLETE_ANSWERS_MESSAGE
            raise IncompleteAnswersError(INCOMPLETE_ANSWERS_MESSAGE, empty_ids)

        records = self.build_answer_records()
        submission = self._submission
        epoch = self._epoch
        self._submitting_answers = True
        try:
            receipts = await self._api.submit_answers(records)
        except ApiError as exc:
            message = exc.message or ANSWER_SUBMISSION_FAILED_MESSAGE
            logger.warning("Answer submission for %s failed: %s", submission.submission_id, message)
            if epoch != self._epoch:
                return None
            self.last_error = message
            raise AnswerSubmissionFailedError(message) from exc
        finally:
            if epoch == self._epoch:
                self._submitting_answers = False

        if epoch != self._epoch:
            return None
        self._drafts.clear(draft_key(self._repo_url))
        self._transition("answers_accepted")
        self._start_polling(submission.submission_id, len(submission.questions))
        return receipts

    # --- grading ---

    def _start_polling(self, submission_id: str, expected_count: int) -> None:
        self._grading_status = GradingStatus.PENDING
        self._polling_submission_id = submission_id
        self._poll_task = asyncio.create_task(self._run_poll(submission_id, expected_count))

    async def _run_poll(self, submission_id: str, expected_count: int) -> GradePollResult:
        result = await self._poller.poll(submission_id, expected_count, self._is_polling_for)
        if not self._is_polling_for(submission_id):
            return GradePollResult(submission_id, GradingStatus.CANCELLED, attempts=result.attempts)
        self._grades = result.grades
        self._grading_status = result.status
        self._polling_submission_id = None
        return result

    def _is_polling_for(self, submission_id: str) -> bool:
        return self._polling_submission_id == submission_id

    async def wait_for_grades(self) -> GradePollResult | None:
        """Wait for the outstanding poll, if any, and return its outcome."""
        task = self._poll_task
        if task is None:
            return None
        await asyncio.wait({task})
        if task.cancelled():
            submission_id = self._submission.submission_id if self._submission else ""
            return GradePollResult(submission_id, GradingStatus.CANCELLED)
        return task.result()

    def _cancel_polling(self) -> None:
        if self._poll_task is not None and not self._poll_task.done():
            logger.info("Abandoning grade polling for %s", self._polling_submission_id)
            self._poll_task.cancel()
        self._polling_submission_id = None
        self._poll_task = None

    # --- reset ---

    def reset(self) -> None:
        """Return to the submit stage, discarding the submission and its drafts."""
        self._cancel_polling()
        if self._repo_url is not None:
            self._drafts.clear(draft_key(self._repo_url))
        self._epoch += 1
        self._recorder.clear()
        self._repo_url = None
        self._submission = None
        self._grades = ()
        self._grading_status = GradingStatus.IDLE
        self._phase = SubmitPhase.IDLE
        self._submitting_answers = False
        self.last_error = None
        if self._stage is not Stage.SUBMIT:
            logger.info("Workflow reset from %s", self._stage.value)
        self._stage = Stage.SUBMIT

    # --- internals ---

    def _transition(self, event: str) -> None:
        next_stage = _TRANSITIONS.get((self._stage, event))
        if next_stage is None:
            raise InvalidStageError(f"Event {event!r} is not allowed in stage {self._stage.value!r}.")
        logger.info("Stage %s -> %s", self._stage.value, next_stage.value)
        self._stage = next_stage

    def _require_stage(self, stage: Stage) -> None:
        if self._stage is not stage:
            raise InvalidStageError(f"Not allowed in stage {self._stage.value!r}; expected {stage.value!r}.")

    def _persist_drafts(self) -> None:
        if self._stage is not Stage.QUESTIONS or self._repo_url is None:
            return
        self._drafts.save(
            draft_key(self._repo_url),
            DraftSnapshot(answers=self.answers(), time_spent=self._recorder.time_spent()),
        )
