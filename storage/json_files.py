"""
Read and write helpers for the JSON documents that mirror each collection.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional


def read_collection(path: Path) -> Optional[List[Dict[str, Any]]]:
    """
    Load a collection document.

    Args:
        path: Path of the JSON document

    Returns:
        The decoded value, or None if the file does not exist
    """
    if not path.exists():
        return None
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def dump_collection(entities: List[Dict[str, Any]]) -> str:
    """Render a collection the way it is stored on disk (2-space indent)."""
    return json.dumps(entities, ensure_ascii=False, indent=2)


def write_document(path: Path, text: str) -> None:
    """Replace the document at ``path`` with ``text`` via a temporary sibling."""
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    try:
        with open(tmp_path, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp_path, path)
    except OSError:
        tmp_path.unlink(missing_ok=True)
        raise
