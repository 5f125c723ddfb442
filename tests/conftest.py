import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import pytest

# Garante que src esteja no path (handlers importam shared.*, products.*, triggers.*)
_root = Path(__file__).resolve().parents[1]
if str(_root / "src") not in sys.path:
    sys.path.insert(0, str(_root / "src"))

_CONFIG_VARS = (
    "BLOB_STORE_BACKEND",
    "UPLOADS_DIR",
    "PRODUCT_IMAGES_BUCKET",
    "ORPHAN_GRACE_PERIOD_SECONDS",
    "SWEEP_SAFETY_MARGIN_MS",
    "PRODUCT_DISPLAY_MODE",
    "ENVIRONMENT",
    "AUDIT_APPEND_MAX_ATTEMPTS",
)


@dataclass
class FakeLambdaContext:
    function_name: str = "test-function"
    memory_limit_in_mb: int = 128
    invoked_function_arn: str = "arn:aws:lambda:us-east-1:123456789012:function:test-function"
    aws_request_id: str = "00000000-0000-0000-0000-000000000000"
    remaining_ms: int = 300_000
    tenant_id: Optional[str] = None

    def get_remaining_time_in_millis(self) -> int:
        return self.remaining_ms


@pytest.fixture(autouse=True)
def clean_config_env(monkeypatch):
    """Nenhum teste depende das ENV VARS da máquina."""
    for name in _CONFIG_VARS:
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture
def lambda_context() -> FakeLambdaContext:
    return FakeLambdaContext()


@pytest.fixture
def uploads_dir(tmp_path: Path) -> Path:
    path = tmp_path / "uploads"
    path.mkdir()
    return path


@pytest.fixture
def make_blob(uploads_dir: Path):
    """Cria um arquivo no diretório de uploads com mtime antigo (fora do grace period)."""

    def _make(name: str, age_seconds: int = 86_400) -> Path:
        path = uploads_dir / name
        path.write_bytes(b"\xff\xd8\xff")
        ts = path.stat().st_mtime - age_seconds
        os.utime(path, (ts, ts))
        return path

    return _make
