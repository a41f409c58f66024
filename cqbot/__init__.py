"""CodeQuestionBot client: repository comprehension questions with integrity monitoring."""

from cqbot.constants.about import APP_VERSION

__version__ = APP_VERSION
