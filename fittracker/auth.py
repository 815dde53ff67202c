"""
Google sign-in bridge.

The browser obtains a Google ID token; the server verifies it here and decides
whether the account is a coach (admin allowlist) or a client.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable

from google.auth.transport import requests as google_requests
from google.oauth2 import id_token

from .config import get_config
from .constants import ROLE_ADMIN, ROLE_CLIENT

LOGGER = logging.getLogger(__name__)

FAILED_LOGINS: dict[str, list[datetime]] = defaultdict(list)
MAX_FAILED_ATTEMPTS = 5
FAILED_WINDOW_MINUTES = 10


class AuthError(RuntimeError):
    """Raised when a Google credential is missing, invalid or not allowed the requested role."""


@dataclass(frozen=True)
class GoogleIdentity:
    email: str
    name: str
    picture: str | None
    subject: str

    def to_dict(self) -> dict[str, Any]:
        return {"email": self.email, "name": self.name, "picture": self.picture, "id": self.subject}


def verify_google_token(token: str | None, client_id: str | None = None) -> GoogleIdentity:
    """Verify a Google ID token against our OAuth client id and return who signed in."""
    if not token:
        raise AuthError("Missing Google credential.")
    audience = client_id or get_config().google_client_id
    if not audience:
        raise AuthError("FITTRACKER_GOOGLE_CLIENT_ID is not configured.")
    try:
        claims = id_token.verify_oauth2_token(token, google_requests.Request(), audience)
    except ValueError as exc:
        raise AuthError(f"Invalid Google credential: {exc}") from exc

    email = str(claims.get("email") or "").strip().lower()
    if not email:
        raise AuthError("Google credential carries no email address.")
    if not claims.get("email_verified", False):
        raise AuthError(f"Google has not verified {email}.")
    return GoogleIdentity(
        email=email,
        name=str(claims.get("name") or email.split("@")[0]),
        picture=claims.get("picture"),
        subject=str(claims.get("sub") or ""),
    )


def is_admin(email: str, admin_emails: Iterable[str] | None = None) -> bool:
    allowlist = admin_emails if admin_emails is not None else get_config().admin_emails
    return (email or "").strip().lower() in {entry.lower() for entry in allowlist}


def resolve_role(
    email: str,
    requested: str | None = None,
    admin_emails: Iterable[str] | None = None,
) -> str:
    """
    Admins on the allowlist get the admin role unless they explicitly ask to be a
    client; everyone else is a client and asking for admin is refused.
    """
    admin = is_admin(email, admin_emails)
    if requested not in (None, "", ROLE_ADMIN, ROLE_CLIENT):
        raise AuthError(f"Unknown role {requested!r}.")
    if requested == ROLE_ADMIN and not admin:
        LOGGER.warning("Refused admin login for %s", email)
        raise AuthError(f"{email} is not an admin account.")
    if requested == ROLE_CLIENT:
        return ROLE_CLIENT
    return ROLE_ADMIN if admin else ROLE_CLIENT


# ---------------------------------------------------------------------------
# Failed-login throttling
# ---------------------------------------------------------------------------


def _now() -> datetime:
    return datetime.now(timezone.utc)


def record_failed_login(ip: str) -> None:
    now = _now()
    FAILED_LOGINS[ip].append(now)
    cutoff = now - timedelta(minutes=FAILED_WINDOW_MINUTES)
    FAILED_LOGINS[ip] = [ts for ts in FAILED_LOGINS[ip] if ts >= cutoff]


def clear_failed_login(ip: str) -> None:
    FAILED_LOGINS.pop(ip, None)


def is_rate_limited(ip: str) -> bool:
    cutoff = _now() - timedelta(minutes=FAILED_WINDOW_MINUTES)
    recent = [ts for ts in FAILED_LOGINS.get(ip, []) if ts >= cutoff]
    FAILED_LOGINS[ip] = recent
    return len(recent) >= MAX_FAILED_ATTEMPTS
