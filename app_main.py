"""Console entry point for the CodeQuestionBot client."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

import httpx

from cqbot.constants.about import APP_ABOUT_TEXT, APP_NAME
from cqbot.constants.workflow_constants import GRADING_IN_PROGRESS_MESSAGE
from cqbot.core.api_client import CqbotApiClient
from cqbot.core.config import ClientSettings, load_settings
from cqbot.core.errors import IncompleteAnswersError, WorkflowError
from cqbot.core.models import GradingStatus, Stage
from cqbot.core.services.answer_draft_store import AnswerDraftStore
from cqbot.core.workflow_controller import WorkflowController
from cqbot.server.mock_backend import create_mock_app
from cqbot.utils.logging_config import configure_logging

logger = logging.getLogger("cqbot.app")


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=APP_ABOUT_TEXT)
    parser.add_argument("repo_url", nargs="?", help="GitHub repository URL to be questioned about")
    parser.add_argument("--mock", action="store_true", help="run against the in-process mock backend")
    parser.add_argument("--env-file", default=None, help="path to a .env file with CQBOT_* settings")
    return parser.parse_args(argv)


async def _ask(prompt: str) -> str:
    return await asyncio.to_thread(input, prompt)


async def _answer_questions(controller: WorkflowController) -> None:
    for index, question in enumerate(controller.questions, start=1):
        print(f"\nQ{index}  {question.location}")
        print(question.text)
        print(question.excerpt)
        existing = controller.answers().get(question.id, "")
        if existing:
            print(f"(saved draft: {existing})")
        controller.question_focused(question.id)
        text = await _ask("Your answer (blank keeps the saved draft): ")
        controller.question_blurred(question.id)
        if text.strip():
            controller.edit_answer(question.id, text)


async def run_console(settings: ClientSettings, repo_url: str | None, use_mock: bool) -> int:
    transport = httpx.ASGITransport(app=create_mock_app()) if use_mock else None
    base_url = "http://mock/cqbot" if use_mock else settings.api_base_url
    async with CqbotApiClient(base_url, settings.request_timeout_seconds, transport=transport) as api:
        draft_store = AnswerDraftStore(settings.draft_dir)
        controller = WorkflowController(api, draft_store)
        logger.info("Answer drafts are kept under %s", draft_store.directory)

        identity = await controller.resolve_identity()
        if not identity.authenticated:
            print(f"Sign in first: {controller.auth_url()}")
            return 1
        print(f"Signed in as {identity.login}")
        export_url = controller.csv_export_url()
        if export_url:
            print(f"Submissions export: {export_url}")

        while controller.stage is Stage.SUBMIT:
            url = repo_url or await _ask("GitHub repository URL: ")
            repo_url = None
            try:
                await controller.start_submission(url)
            except WorkflowError as exc:
                print(exc.message)

        while controller.stage is Stage.QUESTIONS:
            await _answer_questions(controller)
            try:
                await controller.submit_answers()
            except IncompleteAnswersError as exc:
                print(f"{exc.message} Missing: {len(exc.question_ids)}")
            except WorkflowError as exc:
                print(exc.message)
                if (await _ask("Retry? [Y/n] ")).strip().lower() == "n":
                    return 1

        print("Answers submitted.")
        print(GRADING_IN_PROGRESS_MESSAGE)
        result = await controller.wait_for_grades()
        summary = controller.summary()
        if result is None or result.status is not GradingStatus.COMPLETE or summary is None:
            print("Grading is still in progress; check back later.")
            return 0

        print(f"\n{summary.level}: {summary.total_score:g} / {summary.max_score} points ({summary.percentage}%)")
        print(f"Average grading confidence: {summary.average_confidence}%")
        for index, item in enumerate(summary.items, start=1):
            if item.grade is None:
                continue
            print(f"Q{index} {item.grade.score:g}/5 - {item.grade.rationale}")
        return 0


def main(argv: list[str] | None = None) -> None:
    """Load settings, configure logging, and run the console workflow."""
    args = _parse_args(argv)
    settings = load_settings(args.env_file)
    configure_logging(settings.log_level)
    logger.info("Starting %s against %s", APP_NAME, "mock backend" if args.mock else settings.api_base_url)
    sys.exit(asyncio.run(run_console(settings, args.repo_url, args.mock)))


if __name__ == "__main__":
    main()
