from dataclasses import dataclass, field
from typing import Any, Dict, List, Union


@dataclass(frozen=True)
class Ok:
    value: Dict[str, Any]
    ok: bool = field(default=True, init=False)


@dataclass(frozen=True)
class Err:
    descriptor: Dict[str, Any]
    ok: bool = field(default=False, init=False)

    @property
    def message(self) -> str:
        return str(self.descriptor.get("error", ""))


RecordOutcome = Union[Ok, Err]


def flatten(outcomes: List[RecordOutcome]) -> List[Dict[str, Any]]:
    """Output records in input order: entity state for Ok, error descriptor for Err."""
    return [item.value if isinstance(item, Ok) else item.descriptor for item in outcomes]
