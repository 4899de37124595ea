"""
Feature-image uploads to an S3-compatible bucket (Cloudflare R2).
"""

import uuid
from pathlib import Path

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from werkzeug.utils import secure_filename

from penboard import storage
from penboard.errors import UploadError, ValidationError
from penboard.settings import IMAGE_MIMES, R2_ENV_KEYS, R2_REQUIRED_KEYS, env_value


def r2_config() -> dict[str, str]:
    """R2 settings that have a value, keyed by their env-var name."""
    cfg = {k: env_value(k, "") for k in R2_ENV_KEYS}
    return {k: v for k, v in cfg.items() if v}


def _bucket_host(cfg: dict[str, str]) -> str:
    return f"{cfg['R2_ACCOUNT_ID']}.r2.cloudflarestorage.com"


def _r2_client(cfg: dict[str, str]):
    return boto3.client(
        "s3",
        endpoint_url=cfg.get("R2_ENDPOINT") or f"https://{_bucket_host(cfg)}",
        region_name="auto",
        aws_access_key_id=cfg["R2_ACCESS_KEY_ID"],
        aws_secret_access_key=cfg["R2_SECRET_ACCESS_KEY"],
    )


def _object_key(filename: str) -> str:
    """``uploads/YYYY/MM/DD/<random hex><ext>``; the client name only lends its suffix."""
    ext = Path(secure_filename(filename or "")).suffix.lower()
    day = storage.utc_now().strftime("%Y/%m/%d")
    return f"uploads/{day}/{uuid.uuid4().hex}{ext}"


def upload_image(stream, *, filename: str, mimetype: str, cfg: dict | None = None) -> dict:
    """
    Store one image and return ``{"url": ..., "key": ...}``.

    The URL is built on ``R2_PUBLIC_BASE`` when set, else on the bucket's
    own R2 host. Raises ValidationError for non-images and UploadError when
    a required R2 setting is missing or the transfer fails. There is no retry.
    """
    cfg = cfg or r2_config()
    missing = [k for k in R2_REQUIRED_KEYS if not cfg.get(k)]
    if missing:
        raise UploadError(
            f"Image uploads are not configured (missing {', '.join(missing)})."
        )

    mime = (mimetype or "").lower()
    if mime not in IMAGE_MIMES:
        raise ValidationError("Only image uploads are allowed.")

    key = _object_key(filename)
    try:
        stream.seek(0)
        _r2_client(cfg).upload_fileobj(
            stream, cfg["R2_BUCKET"], key, ExtraArgs={"ContentType": mime}
        )
    except (BotoCoreError, ClientError) as exc:
        raise UploadError(f"Upload of {key} failed: {exc}") from exc

    base = cfg.get("R2_PUBLIC_BASE") or f"https://{cfg['R2_BUCKET']}.{_bucket_host(cfg)}"
    return {"url": f"{base.rstrip('/')}/{key}", "key": key}
