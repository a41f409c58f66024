"""Network configuration constants for the CodeQuestionBot client."""

DEFAULT_API_BASE_URL: str = "http://127.0.0.1:5000/cqbot"
DEFAULT_REQUEST_TIMEOUT_SECONDS: float = 30.0

AUTH_ME_PATH: str = "/auth/me"
AUTH_LOGOUT_PATH: str = "/auth/logout"
AUTH_GITHUB_PATH: str = "/auth/github"
REPO_VERIFY_PATH: str = "/repos/verify"
SUBMISSIONS_PATH: str = "/submissions"
GRADES_PATH_TEMPLATE: str = "/submissions/{submission_id}/grades"
ANSWERS_PATH: str = "/answers"
CSV_EXPORT_PATH: str = "/exports/submissions.csv"

MOCK_SERVER_HOST: str = "127.0.0.1"
MOCK_SERVER_PORT: int = 5000
