"""Pure helpers for the Planner wire format.

Version tags, reference keys, generated item keys, timestamps and the small
fixed-shape payloads (assignments, comment bodies) live here. Nothing in this
module touches the network.
"""

import random
import re
import uuid
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Union
from urllib.parse import quote, unquote

from .errors import ValidationError

ASSIGNMENT_ODATA_TYPE = "#microsoft.graph.plannerAssignment"
CHECKLIST_ODATA_TYPE = "#microsoft.graph.plannerChecklistItem"
REFERENCE_ODATA_TYPE = "#microsoft.graph.plannerExternalReference"
ASSIGNMENT_ORDER_HINT = " !"

DIRECTORY_ID_PATTERN = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)

# characters encodeURI leaves alone
_URI_SAFE = ";,/?:@&=+$-_.!~*'()#"
# open-type property keys must not carry these even after URI encoding
_REFERENCE_KEY_ESCAPES = (
    (".", "%2E"),
    (":", "%3A"),
    ("@", "%40"),
    ("#", "%23"),
)


def clean_etag(etag: Optional[str]) -> Optional[str]:
    """Strip the weak-validator marker so the tag can be sent back in If-Match."""
    if not etag:
        return None
    if etag.startswith('W/"') or etag.startswith("W/'"):
        return etag[2:]
    return etag


def is_directory_id(value: str) -> bool:
    return bool(DIRECTORY_ID_PATTERN.match(value or ""))


def encode_reference_key(url: str) -> str:
    encoded = quote(url, safe=_URI_SAFE)
    for raw, escaped in _REFERENCE_KEY_ESCAPES:
        encoded = encoded.replace(raw, escaped)
    return encoded


def decode_reference_key(key: str) -> str:
    return unquote(key)


def generate_guid(rng: Optional[random.Random] = None) -> str:
    """Random version-4 identifier; pass ``rng`` for a reproducible sequence."""
    if rng is None:
        return str(uuid.uuid4())
    return str(uuid.UUID(int=rng.getrandbits(128), version=4))


def format_date_time(value: Union[str, datetime, date, None]) -> Optional[str]:
    """Normalize a caller timestamp to ISO 8601 UTC with millisecond precision.

    Strings that already carry a time part and a UTC/positive offset are passed
    through untouched. Naive values are read as UTC. Returns ``None`` for empty
    or unparsable input.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        text = str(value).strip()
        if not text:
            return None
        if "T" in text and (text.endswith("Z") or "+" in text):
            return text
        parsed = _parse_timestamp(text)
        if parsed is None:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    parsed = parsed.astimezone(timezone.utc)
    return parsed.strftime("%Y-%m-%dT%H:%M:%S.") + f"{parsed.microsecond // 1000:03d}Z"


def _parse_timestamp(text: str) -> Optional[datetime]:
    candidate = text[:-1] + "+00:00" if text.endswith("Z") else text
    try:
        return datetime.fromisoformat(candidate)
    except ValueError:
        pass
    for fmt in ("%Y/%m/%d %H:%M:%S", "%Y/%m/%d %H:%M", "%Y/%m/%d", "%m/%d/%Y %H:%M", "%m/%d/%Y"):
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def parse_assignments(assignments: Union[str, Iterable[str], None]) -> List[str]:
    if assignments is None:
        return []
    if isinstance(assignments, str):
        return [part.strip() for part in assignments.split(",") if part.strip()]
    if not isinstance(assignments, (list, tuple, set)):
        raise ValidationError("assignments must be a comma-separated string or a list of emails/ids")
    return [str(entry).strip() for entry in assignments if str(entry).strip()]


def build_assignments(user_ids: Iterable[str]) -> Dict[str, Dict[str, str]]:
    return {
        user_id: {"@odata.type": ASSIGNMENT_ODATA_TYPE, "orderHint": ASSIGNMENT_ORDER_HINT}
        for user_id in user_ids
    }


def format_comment_content(content: str, content_type: str = "text") -> Dict[str, Any]:
    # plain text is wrapped in a paragraph, so the post is always sent as html
    formatted = content if content_type == "html" else f"<p>{content}</p>"
    return {"body": {"contentType": "html", "content": formatted}}


__all__ = [
    "ASSIGNMENT_ODATA_TYPE",
    "CHECKLIST_ODATA_TYPE",
    "REFERENCE_ODATA_TYPE",
    "build_assignments",
    "clean_etag",
    "decode_reference_key",
    "encode_reference_key",
    "format_comment_content",
    "format_date_time",
    "generate_guid",
    "is_directory_id",
    "parse_assignments",
]
