"""
Runtime configuration read from environment variables.

Expects env: SUPABASE_URL, SUPABASE_KEY; everything else has a default.
"""

import os

DEFAULT_UPLOADS_DIR = "uploads"
DEFAULT_BUCKET = "product-images"
DEFAULT_GRACE_PERIOD_SECONDS = 3600
DEFAULT_SAFETY_MARGIN_MS = 10_000
DEFAULT_AUDIT_MAX_ATTEMPTS = 3

BLOB_BACKENDS = ("local", "supabase")
DISPLAY_MODES = ("strict", "permissive")


def _env_int(key: str, default: int, minimum: int = 0) -> int:
    raw = os.environ.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ValueError(f"Variável de ambiente {key} deve ser inteira: {raw!r}") from e
    if value < minimum:
        raise ValueError(f"Variável de ambiente {key} deve ser >= {minimum}: {value}")
    return value


def get_blob_backend() -> str:
    backend = (os.environ.get("BLOB_STORE_BACKEND") or "local").strip().lower()
    if backend not in BLOB_BACKENDS:
        raise ValueError(f"BLOB_STORE_BACKEND inválido: {backend!r} (use {', '.join(BLOB_BACKENDS)})")
    return backend


def get_uploads_dir() -> str:
    return os.environ.get("UPLOADS_DIR") or DEFAULT_UPLOADS_DIR


def get_images_bucket() -> str:
    return os.environ.get("PRODUCT_IMAGES_BUCKET") or DEFAULT_BUCKET


def get_grace_period_seconds() -> int:
    """Blobs modified more recently than this are never eligible for deletion."""
    return _env_int("ORPHAN_GRACE_PERIOD_SECONDS", DEFAULT_GRACE_PERIOD_SECONDS)


def get_sweep_safety_margin_ms() -> int:
    return _env_int("SWEEP_SAFETY_MARGIN_MS", DEFAULT_SAFETY_MARGIN_MS)


def get_audit_max_attempts() -> int:
    return _env_int("AUDIT_APPEND_MAX_ATTEMPTS", DEFAULT_AUDIT_MAX_ATTEMPTS, minimum=1)


def get_display_mode() -> str:
    """
    PRODUCT_DISPLAY_MODE wins when set. Otherwise ENVIRONMENT=production
    selects 'strict' and anything else 'permissive'.
    """
    mode = (os.environ.get("PRODUCT_DISPLAY_MODE") or "").strip().lower()
    if mode:
        if mode not in DISPLAY_MODES:
            raise ValueError(f"PRODUCT_DISPLAY_MODE inválido: {mode!r}")
        return mode
    environment = (os.environ.get("ENVIRONMENT") or "").strip().lower()
    return "strict" if environment == "production" else "permissive"
