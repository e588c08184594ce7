"""
Private JSON documents on disk.

Session files and persisted state may carry personal data, so documents
are written owner-only and replaced atomically: a reader sees either the
previous document or the new one, never a partial write.
"""

import json
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any

import aiofiles
import aiofiles.os

from .exceptions import PersistenceIOError


async def read_document(path: Path) -> dict[str, Any] | None:
    """Load a JSON object from ``path``.

    Returns:
        The object, or None when the file is absent or blank

    Raises:
        PersistenceIOError: If the file cannot be read or holds no JSON object
    """
    try:
        async with aiofiles.open(path, encoding="utf-8") as f:
            text = await f.read()
    except FileNotFoundError:
        return None
    except OSError as e:
        raise PersistenceIOError("read", str(path), e) from e

    if not text.strip():
        return None
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise PersistenceIOError("parse", str(path), e) from e
    if not isinstance(data, dict):
        raise PersistenceIOError("parse", str(path), ValueError("expected a JSON object"))
    return data


async def write_private_document(path: Path, data: dict[str, Any]) -> None:
    """Replace ``path`` with ``data`` as owner-only (0600) JSON.

    The document is staged next to the target (mkstemp creates it 0600)
    and renamed over it once flushed to disk.

    Raises:
        PersistenceIOError: If the directory or file cannot be written
    """
    payload = json.dumps(data, indent=2, sort_keys=True, default=_encode)
    try:
        await aiofiles.os.makedirs(path.parent, exist_ok=True)
        fd, staging = tempfile.mkstemp(dir=path.parent, prefix=f".{path.stem}-", suffix=".tmp")
        os.close(fd)
    except OSError as e:
        raise PersistenceIOError("write", str(path), e) from e

    try:
        async with aiofiles.open(staging, "w", encoding="utf-8") as f:
            await f.write(payload)
            await f.flush()
            os.fsync(f.fileno())
        await aiofiles.os.replace(staging, path)
    except OSError as e:
        try:
            await aiofiles.os.remove(staging)
        except OSError:
            pass
        raise PersistenceIOError("write", str(path), e) from e


async def discard_document(path: Path) -> bool:
    """Delete ``path``.

    Returns:
        False when there was nothing to delete
    """
    try:
        await aiofiles.os.remove(path)
    except FileNotFoundError:
        return False
    except OSError as e:
        raise PersistenceIOError("remove", str(path), e) from e
    return True


def _encode(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"{type(value).__name__} is not JSON serializable")
