"""Static metadata describing the CodeQuestionBot client."""

APP_NAME = "CodeQuestionBot"
APP_VERSION = "0.1.0"
APP_ABOUT_TEXT = (
    "CodeQuestionBot asks you focused questions about a GitHub repository you submit. "
    "Answer each prompt in your own words; your answers are graded after submission."
)
