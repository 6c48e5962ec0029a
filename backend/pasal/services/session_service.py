# Overview: Service-layer operations for session; encapsulates business logic and database work.

"""
Session Token Management Service

Tokens are cryptographically secure, hashed in database, and time-limited.

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage (fast, one-way)
- 12-hour absolute timeout (SESSION_ABSOLUTE_TIMEOUT)
- Revocable on logout
"""

import secrets
import hashlib
from dataclasses import dataclass
from datetime import timedelta

from ..config import StaffAccount
from ..extensions import db
from ..models import SessionToken
from pasal.time_utils import utcnow


SESSION_ABSOLUTE_TIMEOUT = timedelta(hours=12)


@dataclass
class SessionContext:
    """Authenticated caller, as resolved from a bearer token."""
    account: StaffAccount
    session: SessionToken


def generate_token() -> str:
    """Returns 64-character hex string (32 bytes of entropy)."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(account: StaffAccount) -> tuple[SessionToken, str]:
    """
    Issue a token for a staff account.

    Returns (session_record, plaintext_token). The client receives the
    plaintext token; the database stores only its hash.
    """
    plaintext_token = generate_token()
    now = utcnow()

    session = SessionToken(
        username=account.username,
        role=account.role,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        expires_at=now + SESSION_ABSOLUTE_TIMEOUT,
        is_revoked=False,
    )
    db.session.add(session)
    db.session.commit()

    return session, plaintext_token


def validate_session(token: str, accounts: tuple[StaffAccount, ...]) -> SessionContext | None:
    """
    Return the SessionContext for a token, or None when the token is
    unknown, revoked, expired, or its account is no longer configured.
    """
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()
    if not session:
        return None

    if session.expires_at < utcnow():
        return None

    account = next((a for a in accounts if a.username == session.username), None)
    if account is None or account.role != session.role:
        return None

    return SessionContext(account=account, session=session)


def revoke_session(token: str) -> bool:
    session = db.session.query(SessionToken).filter_by(token_hash=hash_token(token)).first()
    if not session or session.is_revoked:
        return False
    session.is_revoked = True
    session.revoked_at = utcnow()
    db.session.commit()
    return True
