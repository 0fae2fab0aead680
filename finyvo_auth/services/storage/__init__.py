"""Onboarding storage package."""

from finyvo_auth.services.storage.interface import (
    OnboardingStorageInterface,
    StorageError,
)
from finyvo_auth.services.storage.json_file import JsonFileOnboardingStorage
from finyvo_auth.services.storage.memory import InMemoryOnboardingStorage

__all__ = [
    "InMemoryOnboardingStorage",
    "JsonFileOnboardingStorage",
    "OnboardingStorageInterface",
    "StorageError",
]
