"""
Paths, constants and environment lookups shared by the app and services.
"""

import os
import secrets
from datetime import timedelta
from pathlib import Path

ROOT = Path(__file__).parent
ENV_FILE = ROOT / ".env"
SECRET_FILE = ROOT / ".secret_key"

SITE_NAME = "penboard"
BLOG_PAGE_SIZE = 6
SESSION_LIFETIME = timedelta(minutes=15)
SESSION_HISTORY = 10  # login entries copied into the session cookie
UPLOAD_MAX_BYTES = 8 * 1024 * 1024  # 8 MiB
IMAGE_MIMES = {
    "image/png",
    "image/jpeg",
    "image/webp",
    "image/gif",
}

R2_ENV_KEYS = (
    "R2_ACCOUNT_ID",
    "R2_ACCESS_KEY_ID",
    "R2_SECRET_ACCESS_KEY",
    "R2_BUCKET",
    "R2_ENDPOINT",
    "R2_PUBLIC_BASE",
)
R2_REQUIRED_KEYS = (
    "R2_ACCOUNT_ID",
    "R2_ACCESS_KEY_ID",
    "R2_SECRET_ACCESS_KEY",
    "R2_BUCKET",
)


def read_env_file(path: Path | None = None) -> dict[str, str]:
    """Parse a KEY=VALUE file; blank lines and #comments are skipped."""
    path = path or ENV_FILE
    env = {}
    if not path.exists():
        return env
    for ln in path.read_text(encoding="utf-8").splitlines():
        ln = ln.strip()
        if not ln or ln.startswith("#") or "=" not in ln:
            continue
        k, v = ln.split("=", 1)
        k = k.strip().removeprefix("export ").strip()
        env[k] = v.strip().strip('"').strip("'")
    return env


def env_value(key: str, default: str | None = None) -> str | None:
    """Process environment first, then the .env file, then *default*."""
    val = os.environ.get(key) or read_env_file().get(key)
    return val.strip() if val else default


def load_secret_key() -> str:
    """
    Use an explicit secret if one is configured, otherwise keep a random
    key in `.secret_key` so sessions survive restarts.
    """
    explicit = env_value("PENBOARD_SECRET_KEY") or env_value("SESSION_SECRET")
    if explicit:
        return explicit
    if SECRET_FILE.exists():
        return SECRET_FILE.read_text().strip()
    key = secrets.token_hex(32)
    try:
        SECRET_FILE.write_text(key)
    except OSError:
        pass  # read-only install: key lives for this process only
    return key


DB_FILE = Path(env_value("PENBOARD_DATABASE", str(ROOT / "blog.sqlite3")))
USER_DB_FILE = Path(env_value("PENBOARD_USER_DATABASE", str(ROOT / "users.sqlite3")))
