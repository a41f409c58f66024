"""Workflow timings, thresholds and user-facing messages."""

import re

REPO_URL_PATTERN = re.compile(r"^https://github\.com/[^/]+/[^/]+/?$")

DRAFT_KEY_PREFIX: str = "cqbot:answers:"

POLL_INITIAL_DELAY_MS: int = 3000
POLL_RETRY_DELAY_MS: int = 2000
POLL_MAX_ATTEMPTS: int = 60

MAX_SCORE_PER_QUESTION: int = 5

# Lower bounds of each level bucket, checked in order.
LEVEL_THRESHOLDS: tuple[tuple[int, str], ...] = (
    (80, "Excellent"),
    (60, "Good"),
    (40, "Needs Improvement"),
)
LEVEL_FALLBACK: str = "Insufficient"

SCORE_BAND_HIGH: int = 4
SCORE_BAND_MID: int = 3

INVALID_REPO_URL_MESSAGE: str = "Enter a valid GitHub repo URL (https://github.com/user/repo)."
SUBMISSION_FAILED_MESSAGE: str = "Unable to submit repo."
INCOMPLETE_ANSWERS_MESSAGE: str = "Please answer all questions before submitting."
ANSWER_SUBMISSION_FAILED_MESSAGE: str = "Unable to submit answers."
GRADING_IN_PROGRESS_MESSAGE: str = (
    "Thanks for completing the question set. Your responses are now being graded."
)
