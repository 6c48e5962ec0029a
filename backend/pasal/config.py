# backend/pasal/config.py
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping

import bcrypt


ROLE_ADMIN = "admin"
ROLE_STAFF = "staff"


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/pasal.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///pasal.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Cost factor used when hashing configured staff passwords at startup
    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))

    # Products below this many base units are reported as low stock
    LOW_STOCK_THRESHOLD = int(os.environ.get("LOW_STOCK_THRESHOLD", "5"))

    # Defaults for the lazily created settings record
    DEFAULT_STORE_NAME = os.environ.get("DEFAULT_STORE_NAME", "My Local Grocery")
    DEFAULT_CURRENCY = os.environ.get("DEFAULT_CURRENCY", "USD")
    DEFAULT_TAX_RATE = os.environ.get("DEFAULT_TAX_RATE", "0.07")

    CORS_ALLOWED_ORIGINS = tuple(
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173",
        ).split(",")
        if origin.strip()
    )


@dataclass(frozen=True)
class StaffAccount:
    """A console login. Built once from the environment at app startup."""
    username: str
    password_hash: str
    role: str
    name: str

    def to_dict(self) -> dict:
        return {"username": self.username, "role": self.role, "name": self.name}


def _hash(password: str, rounds: int) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def load_staff_accounts(environ: Mapping[str, str], *, rounds: int = 12) -> tuple[StaffAccount, ...]:
    """
    Build the immutable staff account list.

    ADMIN_USERNAME/ADMIN_PASSWORD and STAFF_USERNAME/STAFF_PASSWORD each
    contribute one account when both halves are set.
    """
    accounts = []
    for prefix, role, default_name in (
        ("ADMIN", ROLE_ADMIN, "Administrator"),
        ("STAFF", ROLE_STAFF, "Staff"),
    ):
        username = environ.get(f"{prefix}_USERNAME")
        password = environ.get(f"{prefix}_PASSWORD")
        if not username or not password:
            continue
        accounts.append(
            StaffAccount(
                username=username,
                password_hash=_hash(password, rounds),
                role=role,
                name=environ.get(f"{prefix}_NAME") or default_name,
            )
        )
    return tuple(accounts)
