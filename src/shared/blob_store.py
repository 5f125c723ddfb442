"""
Flat key-addressable image storage.

Two backends share the same three operations (``list``, ``exists``,
``delete``): a local directory (EFS mount or dev folder) and a Supabase
Storage bucket. Neither creates or rewrites blobs; uploads happen elsewhere.
"""

import os
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Optional, Protocol

from aws_lambda_powertools import Logger

from shared.config import get_blob_backend, get_images_bucket, get_uploads_dir
from shared.errors import IOFailure, NotFound, PermissionDenied

logger = Logger(service="blob-store")

PLACEHOLDER_NAMES = (".emptyFolderPlaceholder",)


@dataclass(frozen=True)
class BlobEntry:
    key: str
    last_modified: Optional[datetime] = None


class BlobStore(Protocol):
    def list(self) -> List[BlobEntry]: ...

    def exists(self, key: str) -> bool: ...

    def delete(self, key: str) -> None: ...


def _check_flat_key(key: str) -> str:
    if not key or key in (".", "..") or "/" in key or "\\" in key:
        raise ValueError(f"Chave de blob inválida: {key!r}")
    return key


class LocalBlobStore:
    """Arquivos de imagem num diretório plano (sem subpastas)."""

    def __init__(self, root: str) -> None:
        self.root = Path(root)

    def list(self) -> List[BlobEntry]:
        entries: List[BlobEntry] = []
        try:
            with os.scandir(self.root) as it:
                for item in it:
                    if not item.is_file(follow_symlinks=False):
                        continue
                    try:
                        mtime = item.stat(follow_symlinks=False).st_mtime
                    except FileNotFoundError:
                        continue
                    entries.append(
                        BlobEntry(key=item.name, last_modified=datetime.fromtimestamp(mtime, tz=timezone.utc))
                    )
        except FileNotFoundError:
            logger.warning("Diretório de uploads não existe", extra={"root": str(self.root)})
            return []
        except PermissionError as e:
            raise PermissionDenied(f"Sem permissão para listar {self.root}") from e
        except OSError as e:
            raise IOFailure(f"Falha ao listar {self.root}: {e}") from e
        return entries

    def exists(self, key: str) -> bool:
        try:
            return (self.root / _check_flat_key(key)).is_file()
        except ValueError:
            return False
        except OSError as e:
            raise IOFailure(f"Falha ao verificar {key}: {e}") from e

    def delete(self, key: str) -> None:
        path = self.root / _check_flat_key(key)
        try:
            path.unlink()
        except FileNotFoundError as e:
            raise NotFound(key) from e
        except PermissionError as e:
            raise PermissionDenied(f"Sem permissão para remover {key}") from e
        except OSError as e:
            raise IOFailure(f"Falha ao remover {key}: {e}") from e


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


class SupabaseBlobStore:
    """Bucket do Supabase Storage, apenas nível raiz."""

    PAGE_SIZE = 1000

    def __init__(self, client, bucket: str) -> None:
        self.db = client
        self.bucket = bucket

    def _storage(self):
        return self.db.storage.from_(self.bucket)

    def list(self) -> List[BlobEntry]:
        entries: List[BlobEntry] = []
        offset = 0
        while True:
            try:
                items = self._storage().list("", {"limit": self.PAGE_SIZE, "offset": offset}) or []
            except Exception as e:
                raise IOFailure(f"Falha ao listar bucket {self.bucket}: {e}") from e
            for item in items:
                name = item.get("name", "")
                # pastas voltam com id None
                if not name or name in PLACEHOLDER_NAMES or item.get("id") is None:
                    continue
                modified = _parse_timestamp(item.get("updated_at")) or _parse_timestamp(item.get("created_at"))
                entries.append(BlobEntry(key=name, last_modified=modified))
            if len(items) < self.PAGE_SIZE:
                return entries
            offset += self.PAGE_SIZE

    def exists(self, key: str) -> bool:
        try:
            _check_flat_key(key)
        except ValueError:
            return False
        try:
            items = self._storage().list("", {"search": key, "limit": 100}) or []
        except Exception as e:
            raise IOFailure(f"Falha ao verificar {key}: {e}") from e
        return any(item.get("name") == key and item.get("id") is not None for item in items)

    def delete(self, key: str) -> None:
        _check_flat_key(key)
        try:
            removed = self._storage().remove([key])
        except Exception as e:
            message = str(e).lower()
            if "not found" in message or "404" in message:
                raise NotFound(key) from e
            if "403" in message or "unauthorized" in message or "permission" in message:
                raise PermissionDenied(f"Sem permissão para remover {key}") from e
            raise IOFailure(f"Falha ao remover {key}: {e}") from e
        if not removed:
            raise NotFound(key)


def get_blob_store(client=None) -> BlobStore:
    """Escolhe o backend pelo BLOB_STORE_BACKEND (local por padrão)."""
    if get_blob_backend() == "supabase":
        if client is None:
            from shared.database import get_supabase_client

            client = get_supabase_client()
        return SupabaseBlobStore(client, get_images_bucket())
    return LocalBlobStore(get_uploads_dir())
