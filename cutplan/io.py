"""
cutplan.io - Document blob and payload files for the CLI.

The core never touches the filesystem; these helpers are how the CLI
stands in for the external persistence layer.
"""

from __future__ import annotations

import json
import tempfile
from pathlib import Path
from typing import Any

from cutplan.exceptions import DocumentError


def read_json_file(path: Path) -> Any:
    """Read a UTF-8 JSON file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        DocumentError: If the file is not valid JSON
    """
    with open(path, encoding="utf-8") as f:
        try:
            return json.load(f)
        except json.JSONDecodeError as e:
            raise DocumentError(f"{path} is not valid JSON: {e}") from e


def read_blob(path: Path) -> dict[str, Any]:
    """Read a document blob; a missing file is an empty document."""
    if not path.exists():
        return {}
    data = read_json_file(path)
    if not isinstance(data, dict):
        raise DocumentError(f"{path} must contain a JSON object")
    return data


def read_payload_list(path: Path, key: str) -> list[dict[str, Any]]:
    """Read a list of payloads, either a bare JSON array or ``{key: [...]}``."""
    data = read_json_file(path)
    if isinstance(data, dict):
        data = data.get(key)
    if not isinstance(data, list):
        raise DocumentError(f"{path} must contain a JSON array or an object with '{key}'")
    return data


def write_blob(path: Path, blob: dict[str, Any]) -> None:
    """Write a blob atomically: temp file in the same directory, then rename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        mode="w", encoding="utf-8", dir=path.parent, delete=False, suffix=".tmp"
    ) as tmp:
        tmp_path = Path(tmp.name)
        try:
            json.dump(blob, tmp, indent=2, ensure_ascii=False)
        except Exception:
            tmp_path.unlink(missing_ok=True)
            raise
    tmp_path.replace(path)
