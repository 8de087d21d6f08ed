# Overview: Bearer session tokens for storefront customers, guests and admins.

"""
Session Service

A storefront session is issued at login, at sign-up and to the guest account
created during an anonymous checkout. It lives as long as the cached-user
cookie the client keeps next to it (SESSION_ABSOLUTE_TIMEOUT_DAYS) and ends
early on logout, on a role change, or when the account is deactivated.

Only the SHA-256 digest of a token is stored. The plaintext goes to the
client once and is never written anywhere server-side.
"""

import hashlib
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, User
from storefront.time_utils import utcnow


DEFAULT_SESSION_DAYS = 7

# Dead sessions are kept this long for support lookups before cleanup deletes them
DEAD_SESSION_RETENTION_DAYS = 30


@dataclass
class SessionContext:
    user: User
    session: SessionToken


def generate_token() -> str:
    """64 hex chars (32 random bytes)."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _expiry_from(now: datetime) -> datetime:
    days = current_app.config.get("SESSION_ABSOLUTE_TIMEOUT_DAYS", DEFAULT_SESSION_DAYS)
    return now + timedelta(days=days)


def _live_session(token: str) -> SessionToken | None:
    return (
        db.session.query(SessionToken)
        .filter(SessionToken.token_hash == hash_token(token), SessionToken.is_revoked.is_(False))
        .first()
    )


def _mark_revoked(session: SessionToken, reason: str, when: datetime) -> None:
    session.is_revoked = True
    session.revoked_at = when
    session.revoked_reason = reason


def create_session(
    user_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[SessionToken, str]:
    """
    Open a session for an active user.

    Returns (session_row, plaintext_token). Raises ValueError for a missing
    or deactivated account.
    """
    user = db.session.get(User, user_id)
    if user is None:
        raise ValueError("User not found")
    if not user.is_active:
        raise ValueError("User account is not active")

    token = generate_token()
    now = utcnow()
    session = SessionToken(
        user_id=user.id,
        token_hash=hash_token(token),
        created_at=now,
        last_used_at=now,
        expires_at=_expiry_from(now),
        user_agent=(user_agent or "")[:255] or None,
        ip_address=ip_address,
    )
    db.session.add(session)
    db.session.commit()

    current_app.logger.debug("Session %s opened for user %s", session.id, user.id)
    return session, token


def validate_session(token: str) -> SessionContext | None:
    """
    Resolve a Bearer token to its user.

    None for unknown, expired or revoked tokens. A session whose account
    was deactivated is revoked on the spot.
    """
    if not token:
        return None

    session = _live_session(token)
    now = utcnow()
    if session is None or session.expires_at < now:
        return None

    user = session.user
    if user is None or not user.is_active:
        _mark_revoked(session, "User account deactivated", now)
        db.session.commit()
        return None

    session.last_used_at = now
    db.session.commit()
    return SessionContext(user=user, session=session)


def revoke_session(token: str, reason: str = "User logout") -> bool:
    session = _live_session(token)
    if session is None:
        return False
    _mark_revoked(session, reason, utcnow())
    db.session.commit()
    return True


def revoke_all_user_sessions(user_id: int, reason: str = "Revoke all sessions") -> int:
    """Used when an account's role changes so cached permissions cannot linger."""
    now = utcnow()
    sessions = (
        db.session.query(SessionToken)
        .filter(SessionToken.user_id == user_id, SessionToken.is_revoked.is_(False))
        .all()
    )
    for session in sessions:
        _mark_revoked(session, reason, now)
    db.session.commit()
    return len(sessions)


def cleanup_expired_sessions() -> int:
    """Delete sessions that are expired or revoked and older than the retention window."""
    now = utcnow()
    dead = db.or_(SessionToken.expires_at < now, SessionToken.is_revoked.is_(True))
    deleted = (
        db.session.query(SessionToken)
        .filter(dead, SessionToken.created_at < now - timedelta(days=DEAD_SESSION_RETENTION_DAYS))
        .delete(synchronize_session=False)
    )
    db.session.commit()
    return deleted
