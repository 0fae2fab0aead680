"""In-memory onboarding storage, for tests and ephemeral sessions."""

from typing import Optional

from finyvo_auth.models.auth import OnboardingRecord
from finyvo_auth.services.storage.interface import OnboardingStorageInterface


class InMemoryOnboardingStorage(OnboardingStorageInterface):

    def __init__(self, initial: Optional[OnboardingRecord] = None):
        self._record = initial or OnboardingRecord()
        self.save_count = 0

    def load(self) -> OnboardingRecord:
        return self._record.model_copy(deep=True)

    def save(self, record: OnboardingRecord) -> None:
        self._record = record.model_copy(deep=True)
        self.save_count += 1
