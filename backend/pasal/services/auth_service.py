# Overview: Service-layer operations for auth; checks credentials against configured accounts.

"""
Authentication Service

Staff accounts come from configuration (config.load_staff_accounts), loaded
once at startup with bcrypt-hashed passwords. There is no user table.
"""

import bcrypt
from flask import current_app

from ..config import StaffAccount


def configured_accounts() -> tuple[StaffAccount, ...]:
    return current_app.config.get("STAFF_ACCOUNTS", ())


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    Returns True if password matches hash, False otherwise.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def authenticate(username: str, password: str) -> StaffAccount | None:
    """Return the matching account, or None for unknown user or wrong password."""
    for account in configured_accounts():
        if account.username == username:
            return account if verify_password(password, account.password_hash) else None
    return None
