"""Text normalization helpers used by extraction, analysis and fingerprinting."""

from __future__ import annotations

import re
import unicodedata

_WHITESPACE_RE = re.compile(r"\s+")
_SLUG_RE = re.compile(r"[^a-z0-9]+")
# R$ 1.299,90 | $19.99 | 19,90 € | USD 10
_CURRENCY_RE = re.compile(
    r"(?:R\$|US\$|\$|€|£|USD|BRL|EUR)\s*\d[\d.,]*|\d[\d.,]*\s*(?:€|£|USD|BRL|EUR)\b",
    re.IGNORECASE,
)
_NUMBER_RE = re.compile(r"\d[\d.,]*")


def normalize_whitespace(text: str) -> str:
    """Collapse repeated whitespace and trim boundaries."""

    return _WHITESPACE_RE.sub(" ", text).strip()


def normalize_text(text: str) -> str:
    """Produce stable text for comparisons and hashing."""

    normalized = unicodedata.normalize("NFKC", text)
    return normalize_whitespace(normalized).casefold()


def slugify(value: str, *, fallback: str = "page") -> str:
    ascii_text = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    slug = _SLUG_RE.sub("-", ascii_text.lower()).strip("-")
    return slug or fallback


def find_currency_tokens(text: str) -> list[str]:
    return _CURRENCY_RE.findall(text)


def parse_price(raw: str) -> float | None:
    """Parse a price written in either ``1.299,90`` or ``1,299.90`` style."""

    match = _NUMBER_RE.search(raw)
    if not match:
        return None
    number = match.group(0).rstrip(".,")
    if "," in number and "." in number:
        # the right-most separator is the decimal one
        if number.rfind(",") > number.rfind("."):
            number = number.replace(".", "").replace(",", ".")
        else:
            number = number.replace(",", "")
    elif "," in number:
        head, _, tail = number.rpartition(",")
        number = f"{head.replace(',', '')}.{tail}" if len(tail) in (1, 2) else number.replace(",", "")
    elif number.count(".") > 1 or (number.count(".") == 1 and len(number.rpartition(".")[2]) == 3):
        number = number.replace(".", "")
    try:
        return float(number)
    except ValueError:
        return None
