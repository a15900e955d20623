"""JSON envelopes and input loading for the planner CLI."""

import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from core.errors import ValidationError


def iso_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def structured_response(
    command: str,
    *,
    status: str = "OK",
    message: str = "",
    payload: Optional[Dict[str, Any]] = None,
    exit_code: int = 0,
) -> int:
    """Print one ``{command, status, message, timestamp, payload}`` document to stdout."""
    envelope = {
        "command": command,
        "status": status,
        "message": message,
        "timestamp": iso_timestamp(),
        "payload": payload or {},
    }
    # Graph entities may carry values json cannot encode natively
    print(json.dumps(envelope, ensure_ascii=False, indent=2, default=str))
    return exit_code


def structured_error(command: str, message: str, *, payload: Optional[Dict[str, Any]] = None) -> int:
    return structured_response(command, status="ERROR", message=message, payload=payload, exit_code=1)


def load_input_source(raw: str, label: str) -> str:
    """Load text payload from string, @file, or STDIN ("-")."""
    source = (raw or "").strip()
    if not source:
        return source
    if source == "-":
        data = sys.stdin.read()
        if not data.strip():
            raise ValidationError(f"STDIN is empty: provide {label}")
        return data
    if source.startswith("@"):
        path_str = source[1:].strip()
        if not path_str:
            raise ValidationError(f"Specify path to {label} after '@'")
        file_path = Path(path_str).expanduser()
        if not file_path.exists():
            raise ValidationError(f"File not found: {file_path}")
        return file_path.read_text(encoding="utf-8")
    return source


def load_json_source(raw: str, label: str, default: Any = None) -> Any:
    text = load_input_source(raw, label)
    if not text:
        return default
    try:
        return json.loads(text)
    except ValueError as exc:
        raise ValidationError(f"Invalid JSON in {label}: {exc}") from exc


__all__ = ["iso_timestamp", "structured_response", "structured_error", "load_input_source", "load_json_source"]
