"""Best-effort local cache of in-progress answers, keyed by repository URL."""

from __future__ import annotations

import hashlib
import json
import logging
import os
from pathlib import Path

from cqbot.constants.workflow_constants import DRAFT_KEY_PREFIX
from cqbot.core.models import DraftSnapshot

logger = logging.getLogger(__name__)


def draft_key(repo_url: str) -> str:
    # https://github.com/o/r and https://github.com/o/r/ share one entry
    return f"{DRAFT_KEY_PREFIX}{repo_url.rstrip('/')}"


class AnswerDraftStore:
    """Stores one JSON record per key under a directory.

    The cache is never a source of truth: anything unreadable or of the wrong
    shape is treated as absent and removed.
    """

    def __init__(self, directory: Path) -> None:
        self._directory = Path(directory)

    @property
    def directory(self) -> Path:
        return self._directory

    def save(self, key: str, snapshot: DraftSnapshot) -> None:
        payload = {
            "key": key,
            "answers": dict(snapshot.answers),
            "timeSpent": dict(snapshot.time_spent),
        }
        path = self._path_for(key)
        tmp_path = path.with_suffix(".tmp")
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(payload), encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as exc:
            logger.warning("Could not persist answer drafts to %s: %s", path, exc)

    def load(self, key: str) -> DraftSnapshot | None:
        path = self._path_for(key)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            logger.warning("Could not read answer drafts from %s: %s", path, exc)
            return None

        snapshot = self._parse(key, text)
        if snapshot is None:
            logger.warning("Discarding malformed answer drafts at %s", path)
            self.clear(key)
        return snapshot

    def clear(self, key: str) -> None:
        try:
            self._path_for(key).unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Could not remove answer drafts for %s: %s", key, exc)

    def _path_for(self, key: str) -> Path:
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return self._directory / f"{digest}.json"

    @staticmethod
    def _parse(key: str, text: str) -> DraftSnapshot | None:
        try:
            data = json.loads(text)
        except ValueError:
            return None
        if not isinstance(data, dict) or data.get("key") != key:
            return None

        answers = data.get("answers", {})
        time_spent = data.get("timeSpent", {})
        if not isinstance(answers, dict) or not isinstance(time_spent, dict):
            return None
        if not all(isinstance(value, str) for value in answers.values()):
            return None
        # bool is an int subclass; reject it explicitly
        if not all(
            isinstance(value, int) and not isinstance(value, bool) and value >= 0
            for value in time_spent.values()
        ):
            return None
        return DraftSnapshot(answers=dict(answers), time_spent=dict(time_spent))
