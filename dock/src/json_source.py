"""
Tolerant whole-file JSON loading for files rewritten by another process.

The producer rewrites its files in place without a temp-file rename, so a
reader regularly sees a truncated or half-written document. This module
reads the file as a single bounded buffer and parses it in one go; any
problem is reported as a typed exception that the caller treats as
"try again next cycle". There is no retry here.

Operations:
- load_json(path, max_size, min_size): Size-check, read, parse.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from dock.src.errors import FileEmpty, FileNotFound, FileTooLarge, JsonParseError


def load_json(path: str | Path, *, max_size: int, min_size: int = 1) -> Any:
    """Read and parse the JSON document at *path*.

    Args:
        path: File to read.
        max_size: Largest accepted size in bytes.
        min_size: Smallest accepted size in bytes. A file below this size is
            usually mid-truncate.

    Returns:
        The parsed JSON value.

    Raises:
        FileNotFound: The path does not exist or cannot be opened.
        FileEmpty: The file is smaller than *min_size*.
        FileTooLarge: The file is larger than *max_size*.
        JsonParseError: The buffer is not valid UTF-8 JSON.
    """
    name = str(path)
    try:
        size = os.stat(name).st_size
    except OSError as exc:
        raise FileNotFound(name, exc.strerror or "cannot stat") from exc

    if size < min_size:
        raise FileEmpty(name, f"{size} bytes (minimum {min_size})")
    if size > max_size:
        raise FileTooLarge(name, f"{size} bytes (maximum {max_size})")

    try:
        with open(name, "rb") as f:
            # The writer may be growing the file between stat() and read().
            buf = f.read(max_size + 1)
    except OSError as exc:
        raise FileNotFound(name, exc.strerror or "cannot open") from exc

    if len(buf) < min_size:
        raise FileEmpty(name, f"{len(buf)} bytes read (minimum {min_size})")
    if len(buf) > max_size:
        raise FileTooLarge(name, f"more than {max_size} bytes read")

    try:
        text = buf.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise JsonParseError(name, exc.start, "invalid UTF-8") from exc

    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise JsonParseError(name, exc.pos, exc.msg) from exc
