"""
JSON File Onboarding Storage

DESIGN DECISION: One small JSON document on local disk.
The data is a handful of booleans keyed by user id; a database would be
overkill and the document is trivially inspectable.

Older app versions persisted a single global flag in the shape
{"state": {"isOnboarded": true}, "version": 0}. That shape is read as
the legacy slot so the session store can migrate it on first login.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from finyvo_auth.audit import get_logger
from finyvo_auth.config import get_settings
from finyvo_auth.models.auth import OnboardingRecord
from finyvo_auth.services.storage.interface import (
    OnboardingStorageInterface,
    StorageError,
)


logger = get_logger(__name__)


def _from_document(document: dict) -> OnboardingRecord:
    if "by_user" in document or "legacy" in document:
        return OnboardingRecord.model_validate(document)

    state = document.get("state")
    if isinstance(state, dict) and "isOnboarded" in state:
        return OnboardingRecord(legacy=bool(state["isOnboarded"]))

    return OnboardingRecord()


class JsonFileOnboardingStorage(OnboardingStorageInterface):
    """Onboarding document stored as JSON at a configurable path."""

    def __init__(self, path: Optional[str] = None):
        self._path = Path(path or get_settings().storage.onboarding_store_path).expanduser()

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> OnboardingRecord:
        if not self._path.exists():
            return OnboardingRecord()

        try:
            document = json.loads(self._path.read_text(encoding="utf-8"))
            if not isinstance(document, dict):
                raise ValueError("onboarding document is not an object")
            return _from_document(document)
        except (OSError, ValueError, ValidationError) as e:
            # An unreadable document must not block boot
            logger.warning("onboarding_store_unreadable", path=str(self._path), error=str(e))
            return OnboardingRecord()

    def save(self, record: OnboardingRecord) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self._path.parent, suffix=".tmp")
        except OSError as e:
            raise StorageError(f"Failed to write onboarding document: {e}") from e

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(record.model_dump_json(indent=2))
            os.replace(tmp_path, self._path)
        except OSError as e:
            Path(tmp_path).unlink(missing_ok=True)
            raise StorageError(f"Failed to write onboarding document: {e}") from e
