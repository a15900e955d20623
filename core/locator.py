from dataclasses import dataclass
from typing import Any, Mapping

from .errors import ValidationError


@dataclass(frozen=True)
class Locator:
    """Entity reference as supplied by a caller.

    Accepts either a raw id string or a ``{"mode": ..., "value": ...}`` pair
    (``mode`` is "id", "list", "url" and so on; only ``value`` is used).
    """

    value: str
    mode: str = "id"

    @classmethod
    def from_param(cls, raw: Any, name: str = "id") -> "Locator":
        if isinstance(raw, Locator):
            return raw
        if isinstance(raw, str):
            value = raw.strip()
            mode = "id"
        elif isinstance(raw, Mapping):
            value = str(raw.get("value") or "").strip()
            mode = str(raw.get("mode") or "id")
        else:
            raise ValidationError(f"{name} must be a string or a {{mode, value}} object")
        if not value:
            raise ValidationError(f"{name} is required")
        return cls(value=value, mode=mode)


def resolve_locator(raw: Any, name: str = "id") -> str:
    return Locator.from_param(raw, name).value
