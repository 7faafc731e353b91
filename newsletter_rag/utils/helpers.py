"""Shared utility functions used across the pipeline."""
from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Any

import orjson


# --- Text Utilities -----------------------------------------------------------

def truncate_text(text: str, max_chars: int = 300) -> str:
    """Truncate text for display purposes."""
    if len(text) <= max_chars:
        return text
    return text[:max_chars].rstrip() + "..."


def dedupe_preserve_order(items: list[str]) -> list[str]:
    """Drop repeated items, keeping the first appearance of each."""
    return list(dict.fromkeys(items))


# --- File I/O -----------------------------------------------------------------

def save_json(data: Any, path: str | Path, indent: bool = True) -> None:
    """
    Serialise data to JSON using orjson.

    The payload goes to a temp file in the target directory first and is then
    renamed over the target, so readers never observe a half-written file.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    option = orjson.OPT_NON_STR_KEYS
    if indent:
        option |= orjson.OPT_INDENT_2

    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(orjson.dumps(data, option=option))
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def load_json(path: str | Path) -> Any:
    """Load JSON data from file."""
    with open(Path(path), "rb") as f:
        return orjson.loads(f.read())
