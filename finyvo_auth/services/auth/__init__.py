"""Auth service package."""

from finyvo_auth.services.auth.errors import (
    AuthError,
    AuthErrorCode,
    ErrorPattern,
    ErrorTable,
    error_text,
    is_duplicate_email_error,
    normalize_error,
)
from finyvo_auth.services.auth.service import AuthService, generate_nonce

__all__ = [
    "AuthError",
    "AuthErrorCode",
    "AuthService",
    "ErrorPattern",
    "ErrorTable",
    "error_text",
    "generate_nonce",
    "is_duplicate_email_error",
    "normalize_error",
]
