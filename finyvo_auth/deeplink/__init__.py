"""Deep-link callback parsing."""

from finyvo_auth.deeplink.parser import (
    build_callback_url,
    build_redirect,
    classify_callback,
    is_oauth_callback,
    normalize_url,
    parse_callback,
)

__all__ = [
    "build_callback_url",
    "build_redirect",
    "classify_callback",
    "is_oauth_callback",
    "normalize_url",
    "parse_callback",
]
