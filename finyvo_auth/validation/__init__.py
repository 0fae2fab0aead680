"""Local credential validation."""

from finyvo_auth.validation.validator import CredentialValidator

__all__ = ["CredentialValidator"]
