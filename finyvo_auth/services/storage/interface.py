"""
Abstract Onboarding Storage Interface

DESIGN DECISION: Only the onboarding map is persisted by this layer.
The session itself is persisted and restored by the identity backend's
client, so the store never writes tokens anywhere.

The interface is intentionally tiny: load the whole document, save the
whole document.
"""

from abc import ABC, abstractmethod

from finyvo_auth.models.auth import OnboardingRecord


class OnboardingStorageInterface(ABC):
    """
    Abstract interface for the persisted onboarding document.

    Any storage implementation (JSON file, device key-value store...)
    must implement these methods.
    """

    @abstractmethod
    def load(self) -> OnboardingRecord:
        """
        Load the onboarding document.

        Returns:
            The stored record, or an empty one if nothing was stored yet
        """
        pass

    @abstractmethod
    def save(self, record: OnboardingRecord) -> None:
        """
        Replace the stored document.

        Raises:
            StorageError: If the write fails
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass
