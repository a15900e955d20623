"""Per-user settings (Graph access token) kept outside the project tree."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

USER_CONFIG_PATH = Path(os.environ.get("PLANNER_SYNC_USER_CONFIG") or Path.home() / ".planner_sync_config.yaml")
TOKEN_ENV_VARS = ("PLANNER_SYNC_TOKEN", "GRAPH_TOKEN")
TOKEN_KEY = "token"


def _read_user_settings() -> Dict[str, Any]:
    if not USER_CONFIG_PATH.exists():
        return {}
    try:
        data = yaml.safe_load(USER_CONFIG_PATH.read_text(encoding="utf-8"))
    except yaml.YAMLError:
        return {}
    return data if isinstance(data, dict) else {}


def _write_user_settings(data: Dict[str, Any]) -> None:
    if not data:
        USER_CONFIG_PATH.unlink(missing_ok=True)
        return
    USER_CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
    USER_CONFIG_PATH.write_text(yaml.safe_dump(data, allow_unicode=True), encoding="utf-8")


def get_user_setting(key: str) -> str:
    return str(_read_user_settings().get(key) or "").strip()


def set_user_setting(key: str, value: Optional[str]) -> None:
    """Store ``value`` under ``key``; a blank value removes the entry."""
    data = _read_user_settings()
    value = (value or "").strip()
    if value:
        data[key] = value
    else:
        data.pop(key, None)
    _write_user_settings(data)


def get_user_token() -> str:
    return get_user_setting(TOKEN_KEY)


def set_user_token(value: Optional[str]) -> None:
    set_user_setting(TOKEN_KEY, value)


def resolve_token() -> Optional[str]:
    """Environment token wins over the stored one."""
    for name in TOKEN_ENV_VARS:
        value = (os.getenv(name) or "").strip()
        if value:
            return value
    return get_user_token() or None
