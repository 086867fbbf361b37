"""
Text, number, and URL helpers shared by the page parsers.
"""

from __future__ import annotations

import re
from urllib.parse import urljoin

_WHITESPACE_RE = re.compile(r"\s+")
_NUMBER_RE = re.compile(r"\d+(?:[.,]\d+)?")


def clean_text(value: str | None) -> str:
    if not value:
        return ""
    return _WHITESPACE_RE.sub(" ", value).strip()


def is_template_placeholder(value: str) -> bool:
    return "{{" in value or "}}" in value


def first_line(value: str) -> str:
    for line in value.splitlines():
        stripped = line.strip()
        if stripped:
            return stripped
    return ""


def parse_price(value: str | None) -> float | None:
    """
    Parse the first number in `value`, accepting `,` or `.` as decimal mark.
    """

    if not value:
        return None
    compact = value.replace("\xa0", "").replace(" ", "")
    match = _NUMBER_RE.search(compact)
    if match is None:
        return None
    try:
        return float(match.group(0).replace(",", "."))
    except ValueError:
        return None


def price_with_currency_regex(currency: str) -> re.Pattern[str]:
    return re.compile(
        rf"(\d+(?:[.,]\d+)?)\s*{re.escape(currency)}",
        flags=re.IGNORECASE,
    )


def resolve_url(base_url: str, value: str | None) -> str | None:
    if not value:
        return None
    stripped = value.strip()
    if not stripped:
        return None
    if stripped.startswith(("http://", "https://")):
        return stripped
    if stripped.startswith("//"):
        return f"https:{stripped}"
    return urljoin(base_url.rstrip("/") + "/", stripped)


def class_string(node) -> str:
    classes = node.get("class") or []
    if isinstance(classes, str):
        return classes.lower()
    return " ".join(classes).lower()
