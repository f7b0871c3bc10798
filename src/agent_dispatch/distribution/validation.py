"""Input checks for agent and sub-agent contact fields."""

from __future__ import annotations

import re

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_MOBILE_RE = re.compile(r"^\+?[1-9]\d{0,15}$")
_MOBILE_SEPARATORS_RE = re.compile(r"[\s\-()]")
MIN_NAME_LENGTH = 2


def normalize_name(name: str) -> str:
    cleaned = name.strip()
    if len(cleaned) < MIN_NAME_LENGTH:
        raise ValueError(f"Name must be at least {MIN_NAME_LENGTH} characters long: {name!r}")
    return cleaned


def normalize_email(email: str) -> str:
    cleaned = email.strip().lower()
    if not _EMAIL_RE.match(cleaned):
        raise ValueError(f"Invalid email address: {email!r}")
    return cleaned


def normalize_mobile(mobile: str | None) -> str | None:
    """Blank means no number; anything else must look like an E.164 number."""

    if mobile is None:
        return None
    cleaned = mobile.strip()
    if cleaned and not _MOBILE_RE.match(_MOBILE_SEPARATORS_RE.sub("", cleaned)):
        raise ValueError(f"Invalid mobile number: {mobile!r}")
    return cleaned
