"""
tests/conftest.py
"""
from __future__ import annotations

import datetime as _dt
import itertools
from pathlib import Path
from typing import Callable, Generator

import pytest
from flask.testing import FlaskClient
from pytest import MonkeyPatch

from penboard.blog import app
from penboard.storage import get_db, get_user_db, init_db

CSRF = "test-token"          # shared constant so the token matches the session

_ip_counter = itertools.count(1)


@pytest.fixture(autouse=True)
def _configure_app(tmp_path: Path) -> None:
    """
    Point both stores at fresh files for every test so counts and
    pagination start from zero.
    """
    app.config.update(
        TESTING=True,
        DATABASE=str(tmp_path / "blog.sqlite3"),
        USER_DATABASE=str(tmp_path / "users.sqlite3"),
        SESSION_COOKIE_SECURE=False,
    )
    with app.app_context():
        init_db()


@pytest.fixture
def client() -> Generator[FlaskClient, None, None]:
    """
    Test client with its own REMOTE_ADDR, so the login rate limit (keyed
    by IP) never bleeds between tests.
    """
    n = next(_ip_counter)
    with app.test_client() as client:
        client.environ_base["REMOTE_ADDR"] = f"10.0.{n // 250}.{n % 250 + 1}"
        with app.app_context():
            yield client


@pytest.fixture
def db(client):
    """Content store connection inside the client's app context."""
    return get_db()


@pytest.fixture
def user_db(client):
    """Credential store connection inside the client's app context."""
    return get_user_db()


@pytest.fixture
def login_as(client) -> Callable[..., None]:
    """Put a user straight into the session, skipping the password form."""

    def _login(user_id: str = "1", user_name: str = "alice") -> None:
        with client.session_transaction() as sess:
            sess["user"] = {
                "id": user_id,
                "user_name": user_name,
                "email": f"{user_name}@example.com",
                "login_history": [],
            }
            sess["csrf"] = CSRF

    return _login


@pytest.fixture(autouse=True, scope="session")
def _fast_clock():
    """
    Patch penboard.storage.utc_now for the whole test session so every call
    returns an ever-increasing timestamp. No need for time.sleep().
    """
    from penboard import storage  # import here to avoid early import

    counter = itertools.count()         # 0, 1, 2, …

    base = _dt.datetime(2099, 1, 1, tzinfo=_dt.timezone.utc)
    def _fake_now():
        return base + _dt.timedelta(seconds=next(counter))

    mp = MonkeyPatch()
    mp.setattr(storage, "utc_now", _fake_now)

    yield                               # tests run here

    mp.undo()                           # clean up at session end
