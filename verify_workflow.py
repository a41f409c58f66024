import asyncio
import tempfile

import httpx

from cqbot.core.api_client import CqbotApiClient
from cqbot.core.models import GradingStatus, Stage
from cqbot.core.services.answer_draft_store import AnswerDraftStore
from cqbot.core.services.grade_poller import GradePoller
from cqbot.core.workflow_controller import WorkflowController
from cqbot.server.mock_backend import MockBackendState, create_mock_app


async def no_wait(seconds):
    await asyncio.sleep(0)


async def verify_workflow(draft_dir):
    state = MockBackendState(question_count=3, grades_per_poll=2)
    transport = httpx.ASGITransport(app=create_mock_app(state))
    async with CqbotApiClient("http://mock/cqbot", transport=transport) as api:
        controller = WorkflowController(api, AnswerDraftStore(draft_dir), poller=GradePoller(api, sleep=no_wait))

        # 1. Identity
        print("Resolving identity...")
        identity = await controller.resolve_identity()
        assert identity.authenticated
        print(f"Signed in as {identity.login}.")

        # 2. Repository
        print("Submitting repository...")
        await controller.start_submission("https://github.com/acme/widgets")
        assert controller.stage is Stage.QUESTIONS
        assert len(controller.questions) == 3
        print("Questions generated.")

        # 3. Answers
        print("Answering...")
        for question in controller.questions:
            controller.question_focused(question.id)
            controller.edit_answer(question.id, "It builds a widget from the config and caches it by name.")
            controller.question_blurred(question.id)
        controller.record_paste(controller.questions[0].id)

        # 4. Submit and grade
        print("Submitting answers...")
        await controller.submit_answers()
        assert controller.stage is Stage.SUBMITTED
        result = await controller.wait_for_grades()
        assert result.status is GradingStatus.COMPLETE
        summary = controller.summary()
        print(f"Graded: {summary.total_score:g}/{summary.max_score} ({summary.level}) after {result.attempts} polls.")

    print("\nSUCCESS: Workflow verification passed!")


if __name__ == "__main__":
    with tempfile.TemporaryDirectory() as draft_dir:
        asyncio.run(verify_workflow(draft_dir))
