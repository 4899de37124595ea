"""
Registration, password login and login history.

Users live in the credential store; each row keeps its login history as a
JSON array that only ever grows.
"""

import json
import sqlite3

from werkzeug.security import check_password_hash, generate_password_hash

from penboard import storage
from penboard.errors import (
    DuplicateUserError,
    InvalidCredentialsError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from penboard.settings import SESSION_HISTORY

REGISTERED_MSG = "User registered successfully"


def _user_dict(row) -> dict:
    return {
        "id": row["id"],
        "user_name": row["user_name"],
        "email": row["email"],
        "login_history": json.loads(row["login_history"] or "[]"),
    }


def register(user_data: dict, *, db) -> str:
    """
    Create an account from a registration form.

    Expects ``user_name``, ``password``, ``password2`` and optionally
    ``email``. Nothing is written when validation fails.
    """
    user_name = (user_data.get("user_name") or "").strip()
    password = user_data.get("password") or ""
    if password != (user_data.get("password2") or ""):
        raise ValidationError("Passwords do not match")
    if not user_name or not password:
        raise ValidationError("User name and password are required")

    email = (user_data.get("email") or "").strip() or None
    try:
        db.execute(
            "INSERT INTO user (user_name, password, email, login_history)"
            " VALUES (?,?,?,'[]')",
            (user_name, generate_password_hash(password), email),
        )
        db.commit()
    except sqlite3.IntegrityError as exc:
        db.rollback()
        raise DuplicateUserError("User Name already taken") from exc
    except sqlite3.Error as exc:
        raise PersistenceError(f"There was an error creating the user: {exc}") from exc
    return REGISTERED_MSG


def authenticate(user_data: dict, *, db) -> dict:
    """
    Verify ``user_name``/``password`` and record the login.

    On success one ``{"date_time", "user_agent"}`` entry is appended to the
    stored history and the whole user record is returned.
    """
    user_name = user_data.get("user_name") or ""
    with storage.store_errors("unable to read user"):
        row = db.execute(
            "SELECT * FROM user WHERE user_name=?", (user_name,)
        ).fetchone()
    if row is None:
        raise NotFoundError(f"Unable to find user: {user_name}")

    if not check_password_hash(row["password"], user_data.get("password") or ""):
        raise InvalidCredentialsError(f"Incorrect Password for user: {user_name}")

    user = _user_dict(row)
    user["login_history"].append(
        {
            "date_time": storage.now_iso(),
            "user_agent": user_data.get("user_agent") or "",
        }
    )
    with storage.store_errors("unable to save login history"):
        db.execute(
            "UPDATE user SET login_history=? WHERE id=?",
            (json.dumps(user["login_history"]), user["id"]),
        )
        db.commit()
    return user


def get_user_count(*, db) -> int:
    with storage.store_errors("unable to count users"):
        return db.execute("SELECT COUNT(*) FROM user").fetchone()[0]


def get_user(user_id, *, db) -> dict:
    """The stored user record, full login history included."""
    with storage.store_errors("unable to read user"):
        row = db.execute("SELECT * FROM user WHERE id=?", (user_id,)).fetchone()
    if row is None:
        raise NotFoundError(f"Unable to find user: {user_id}")
    return _user_dict(row)


def session_user(user: dict) -> dict:
    """
    The subset of a user record that goes into the session cookie.

    Only the newest SESSION_HISTORY logins ride along; the store keeps
    the rest.
    """
    return {
        "id": str(user["id"]),
        "user_name": user["user_name"],
        "email": user["email"],
        "login_history": user["login_history"][-SESSION_HISTORY:],
    }
