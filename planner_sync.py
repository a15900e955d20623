import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

import requests
import yaml

from application.dispatch import BatchRunner
from application.planner_service import PlannerService
from config import resolve_token
from core.errors import ValidationError
from core.outcome import RecordOutcome
from infrastructure.graph_sync import GRAPH_BASE_URL, GraphClient, RateLimiter

PROJECT_ROOT = Path(os.environ.get("PLANNER_SYNC_PROJECT_ROOT") or Path.cwd()).resolve()
CONFIG_PATH = PROJECT_ROOT / ".planner_sync.yaml"
logger = logging.getLogger("planner_sync")
_PLANNER_SYNC: Optional["PlannerSync"] = None
_RATE_LIMITER = RateLimiter()


def _read_config_file(path: Optional[Path] = None) -> Dict[str, Any]:
    target = path or CONFIG_PATH
    if not target.exists():
        data = _default_config_data()
        _write_config_file(data, target)
        return data
    try:
        return yaml.safe_load(target.read_text()) or {}
    except yaml.YAMLError as exc:
        logger.warning("Unable to parse %s: %s", target, exc)
        return {}


def _write_config_file(data: Dict[str, Any], path: Optional[Path] = None) -> None:
    target = path or CONFIG_PATH
    if not data:
        if target.exists():
            target.unlink()
        return
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(yaml.safe_dump(data, allow_unicode=True), encoding="utf-8")


def _default_config_data() -> Dict[str, Any]:
    return {
        "graph": {
            "base_url": GRAPH_BASE_URL,
            "timeout": 30,
            "max_attempts": 3,
        },
        "execution": {
            "continue_on_fail": False,
        },
    }


def _as_int(value: Any, default: int) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, int) and value > 0:
        return value
    if isinstance(value, str) and value.strip().isdigit() and int(value) > 0:
        return int(value)
    return default


@dataclass
class SyncConfig:
    base_url: str = GRAPH_BASE_URL
    timeout: int = 30
    max_attempts: int = 3
    continue_on_fail: bool = False

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "SyncConfig":
        graph = data.get("graph") or {}
        execution = data.get("execution") or {}
        return cls(
            base_url=str(graph.get("base_url") or GRAPH_BASE_URL),
            timeout=_as_int(graph.get("timeout"), 30),
            max_attempts=_as_int(graph.get("max_attempts"), 3),
            continue_on_fail=bool(execution.get("continue_on_fail", False)),
        )


class PlannerSync:
    def __init__(self, config_path: Optional[Path] = None, session: Optional[requests.Session] = None) -> None:
        self.config_path = config_path or CONFIG_PATH
        self.config = SyncConfig.from_mapping(_read_config_file(self.config_path))
        self.token: Optional[str] = resolve_token()
        self.client = GraphClient(
            session,
            lambda: self.token,
            _RATE_LIMITER,
            base_url=self.config.base_url,
            timeout=self.config.timeout,
            max_attempts=self.config.max_attempts,
        )
        self.service = PlannerService(self.client)

    @property
    def enabled(self) -> bool:
        return bool(self.token)

    def runner(self, continue_on_fail: Optional[bool] = None) -> BatchRunner:
        tolerant = self.config.continue_on_fail if continue_on_fail is None else continue_on_fail
        return BatchRunner(self.service, continue_on_fail=tolerant)

    def run(self, records: Iterable[Mapping[str, Any]], continue_on_fail: Optional[bool] = None) -> List[RecordOutcome]:
        if not self.enabled:
            logger.warning("Planner sync has no access token; requests will be rejected")
        return self.runner(continue_on_fail).run(records)

    def lookup(self, kind: str, plan_id: Optional[str] = None, bucket_id: Optional[str] = None) -> List[Dict[str, str]]:
        """Name/value pairs for picking a bucket, task or group."""
        if kind == "buckets":
            return self.service.bucket_options(plan_id or "")
        if kind == "tasks":
            return self.service.task_options(plan_id, bucket_id)
        if kind == "groups":
            return self.service.group_options()
        raise ValidationError(f"Unknown lookup: {kind!r} (expected buckets, tasks or groups)")

    def rate_info(self) -> Dict[str, Any]:
        limiter = self.client.rate_limiter
        return {
            "retry_after": getattr(limiter, "last_retry_after", None),
            "status": getattr(limiter, "last_status", None),
            "wait": getattr(limiter, "last_wait", None),
        }


def get_planner_sync() -> PlannerSync:
    global _PLANNER_SYNC
    if _PLANNER_SYNC is None:
        _PLANNER_SYNC = PlannerSync()
    return _PLANNER_SYNC


def reload_planner_sync() -> PlannerSync:
    global _PLANNER_SYNC
    _PLANNER_SYNC = PlannerSync()
    return _PLANNER_SYNC


def _update_config_entry(section: str, **changes) -> None:
    data = _read_config_file()
    entry = data.get(section) or {}
    for key, value in changes.items():
        if value is None:
            entry.pop(key, None)
        else:
            entry[key] = value
    data[section] = entry
    _write_config_file(data)
    reload_planner_sync()


def update_continue_on_fail(enabled: bool) -> bool:
    _update_config_entry("execution", continue_on_fail=bool(enabled))
    return bool(enabled)


def update_graph_base_url(base_url: Optional[str]) -> None:
    _update_config_entry("graph", base_url=base_url.rstrip("/") if base_url else None)
