from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any


class StateFileError(RuntimeError):
    pass


def read_json_object(path: Path) -> dict[str, Any] | None:
    """Read a JSON object from ``path``; ``None`` when the file does not exist."""
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except OSError as exc:
        raise StateFileError(f"Failed to read state file {path}: {exc}") from exc
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise StateFileError(f"Malformed JSON in {path}: {exc}") from None
    if not isinstance(data, dict):
        raise StateFileError(f"Invalid state file {path}; expected a JSON object.")
    return data


def atomic_write_json(path: Path, payload: Any) -> None:
    """Stage ``payload`` next to ``path`` and swap it in with one rename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    text = json.dumps(payload, indent=2, sort_keys=True, ensure_ascii=False)
    staging = path.parent / f".{path.name}.{os.getpid()}.partial"
    staging.write_text(text + "\n", encoding="utf-8")
    os.replace(staging, path)
