"""
Callback Parser

Turns one incoming deep-link URL into a normalized set of auth parameters.

DESIGN DECISION: Pure functions, no I/O, never raise.
Deep links come from outside the app (mail clients, browsers, the OS) and
can be arbitrarily malformed. A URL that cannot be parsed yields an empty
CallbackParams, which every caller already treats as "nothing to do".

Parameters may arrive as a query string (?code=...) or as a hash fragment
(#access_token=...). Both are read; the fragment is applied second, so it
wins for duplicate keys.
"""

import re
from typing import Optional, Union
from urllib.parse import parse_qs, urlsplit

from finyvo_auth.audit import get_logger
from finyvo_auth.models.auth import (
    CALLBACK_PARAM_KEYS,
    CallbackKind,
    CallbackParams,
    OtpType,
)


logger = get_logger(__name__)

# `/callback`, optionally `/auth/callback`, at the end of the path
_OAUTH_PATH = re.compile(r"(?:^|/)(?:auth/)?callback/?$", re.IGNORECASE)

VERIFY_TYPES = frozenset({OtpType.SIGNUP.value, OtpType.EMAIL_CHANGE.value})


def normalize_url(url: str) -> str:
    """Collapse the first `scheme:///` into `scheme://`."""
    return url.replace(":///", "://", 1)


def _known_params(query: str) -> dict[str, str]:
    values = {}
    for key, items in parse_qs(query).items():
        if key in CALLBACK_PARAM_KEYS and items and items[0]:
            values[key] = items[0]
    return values


def parse_callback(url: str) -> CallbackParams:
    """
    Extract auth parameters from a callback URL.

    Args:
        url: Raw URL as delivered by the OS

    Returns:
        CallbackParams with whatever recognized keys were present.
        Empty on any parsing failure.
    """
    try:
        parts = urlsplit(normalize_url(url))
        values = _known_params(parts.query)
        if parts.fragment:
            values.update(_known_params(parts.fragment))
        return CallbackParams(**values)
    except (ValueError, TypeError, AttributeError) as e:
        logger.warning("callback_parse_failed", error=str(e))
        return CallbackParams()


def is_oauth_callback(url: Optional[str]) -> bool:
    """True iff the URL's path is an auth-callback route, whatever it carries."""
    if not url:
        return False
    try:
        parts = urlsplit(normalize_url(url))
    except (ValueError, TypeError, AttributeError):
        return False
    # Custom schemes put the first path segment in the netloc.
    location = f"{parts.netloc}{parts.path}"
    return bool(_OAUTH_PATH.search(location))


def classify_callback(source: Union[str, CallbackParams]) -> CallbackKind:
    """
    Classify a URL (or already-parsed params) as oauth / recovery / verify.

    code or access_token means oauth. token_hash means an OTP link whose
    `type` decides between recovery and verify.
    """
    params = source if isinstance(source, CallbackParams) else parse_callback(source)

    if params.code or params.access_token:
        return CallbackKind.OAUTH
    if params.token_hash and params.type == OtpType.RECOVERY.value:
        return CallbackKind.RECOVERY
    if params.token_hash and params.type in VERIFY_TYPES:
        return CallbackKind.VERIFY
    return CallbackKind.UNKNOWN


def build_redirect(path: str, scheme: str = "finyvo") -> str:
    """Deep link back into the app for the given route path."""
    clean = path if path.startswith("/") else f"/{path}"
    return f"{scheme}://{clean.lstrip('/')}"


def build_callback_url(scheme: str = "finyvo") -> str:
    """Return URL handed to browser-based OAuth providers."""
    return f"{scheme}://callback"
