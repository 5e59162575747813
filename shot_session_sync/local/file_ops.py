"""
Async file helpers for snapshots and the queue file.

Every write goes to a hidden temp file in the target directory, is
fsynced, and then replaces the target, so readers only ever see the old
or the new content. OS errors surface as StorageIOError; JSON errors are
left to the caller, which decides whether bad data means "absent".
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any

import aiofiles
import aiofiles.os

from ..exceptions import StorageIOError

TEMP_PREFIX = ".tmp_"


async def ensure_directory(path: Path) -> None:
    try:
        await aiofiles.os.makedirs(path, exist_ok=True)
    except OSError as e:
        raise StorageIOError("create_directory", str(path), e) from e


async def _read_text(path: Path, operation: str) -> str | None:
    try:
        async with aiofiles.open(path, encoding="utf-8") as f:
            return await f.read()
    except FileNotFoundError:
        return None
    except OSError as e:
        raise StorageIOError(operation, str(path), e) from e


async def read_json(path: Path) -> dict[str, Any] | None:
    """Load one JSON document.

    Returns:
        The decoded object, or None for a missing or empty file

    Raises:
        json.JSONDecodeError: On malformed content
        StorageIOError: If the file exists but cannot be read
    """
    content = await _read_text(path, "read_json")
    if not content or not content.strip():
        return None
    return json.loads(content)


async def write_json_atomic(path: Path, data: dict[str, Any]) -> None:
    await _write_atomic(path, json.dumps(data, indent=2), ".json")


async def read_jsonl(path: Path) -> list[dict[str, Any]]:
    """Load a file holding one JSON object per line.

    Blank lines are ignored; a missing file reads as no rows.

    Raises:
        json.JSONDecodeError: If any line is malformed
        StorageIOError: If the file exists but cannot be read
    """
    content = await _read_text(path, "read_jsonl")
    if content is None:
        return []
    return [json.loads(line) for line in content.splitlines() if line.strip()]


async def write_jsonl_atomic(path: Path, rows: list[dict[str, Any]]) -> None:
    """Replace a JSONL file with ``rows``, one object per line."""
    await _write_atomic(path, "".join(f"{json.dumps(row)}\n" for row in rows), ".jsonl")


async def _write_atomic(path: Path, content: str, suffix: str) -> None:
    await ensure_directory(path.parent)

    try:
        fd, temp_name = tempfile.mkstemp(dir=path.parent, prefix=TEMP_PREFIX, suffix=suffix)
        os.close(fd)
    except OSError as e:
        raise StorageIOError("write", str(path), e) from e

    try:
        async with aiofiles.open(temp_name, "w", encoding="utf-8") as f:
            await f.write(content)
            await f.flush()
            os.fsync(f.fileno())
        await aiofiles.os.replace(temp_name, path)
    except OSError as e:
        try:
            await aiofiles.os.remove(temp_name)
        except OSError:
            pass
        raise StorageIOError("write", str(path), e) from e


async def remove_file(path: Path) -> bool:
    """Delete ``path``.

    Returns:
        False if there was nothing to delete
    """
    try:
        await aiofiles.os.remove(path)
    except FileNotFoundError:
        return False
    except OSError as e:
        raise StorageIOError("remove", str(path), e) from e
    return True


async def list_files(directory: Path, suffix: str) -> list[Path]:
    """Sorted files in ``directory`` ending in ``suffix``.

    Leftover temp files from interrupted writes are not listed.
    """
    try:
        names = await aiofiles.os.listdir(directory)
    except FileNotFoundError:
        return []
    except OSError as e:
        raise StorageIOError("list_files", str(directory), e) from e
    return sorted(
        directory / name
        for name in names
        if name.endswith(suffix) and not name.startswith(TEMP_PREFIX)
    )
