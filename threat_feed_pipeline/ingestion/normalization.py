"""
Shared normalization helpers for source adapters.

Adapters parse raw payloads with these helpers so every source applies the
same date, text, title, and list rules before a record reaches storage.
"""
import re
import time
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional

CVE_PATTERN = re.compile(r"CVE-\d{4}-\d{4,7}", re.IGNORECASE)

TITLE_SEPARATOR = " — "
PLACEHOLDER_TITLE = "CISA KEV Item"


def now_ms() -> int:
    return int(time.time() * 1000)


def parse_date_ms(value: Any) -> Optional[int]:
    """
    Parse an ISO-8601 date or datetime string into epoch milliseconds.

    Naive values are taken as UTC. Returns None when the value is missing,
    unparsable, or before the epoch.
    """
    if not value or not isinstance(value, str):
        return None

    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)

    ms = int(parsed.timestamp() * 1000)
    return ms if ms >= 0 else None


def published_at_or_now(value: Any) -> int:
    parsed = parse_date_ms(value)
    return parsed if parsed is not None else now_ms()


def pick_english(entries: Any) -> Optional[str]:
    """Return the value of the first entry tagged lang=en, else None."""
    if not isinstance(entries, list):
        return None
    for entry in entries:
        if isinstance(entry, dict) and entry.get("lang") == "en":
            value = entry.get("value")
            if isinstance(value, str) and value.strip():
                return value
    return None


def clean_text(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


def synthesize_title(
    vendor: Optional[str],
    product: Optional[str],
    name: Optional[str],
    cve_id: Optional[str],
) -> str:
    """
    Build a display title for a vulnerability item.

    Non-empty vendor, product, and vulnerability name are joined in that
    order. With none of them, the title is "CVE " + id, and with no id
    either, a generic placeholder.
    """
    parts = [part for part in (clean_text(vendor), clean_text(product), clean_text(name)) if part]
    if parts:
        return TITLE_SEPARATOR.join(parts)
    cve_id = clean_text(cve_id)
    if cve_id:
        return f"CVE {cve_id}"
    return PLACEHOLDER_TITLE


def extract_cve_ids(*texts: Optional[str]) -> List[str]:
    """Find CVE identifiers in free text, upper-cased, in order of appearance."""
    found = []
    for text in texts:
        if text:
            found.extend(match.upper() for match in CVE_PATTERN.findall(text))
    return unique(found)


def unique(values: Iterable[Optional[str]]) -> List[str]:
    """Drop empty values and duplicates, keeping first-seen order."""
    seen = set()
    result = []
    for value in values:
        if not value or value in seen:
            continue
        seen.add(value)
        result.append(value)
    return result
