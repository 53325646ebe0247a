"""BeautifulSoup helpers shared by the content extractors."""

from __future__ import annotations

import re

from bs4 import BeautifulSoup, Tag

from storeimport.text import find_currency_tokens, normalize_whitespace

_STRIP_TAGS = ["script", "style", "noscript", "template", "link", "meta"]
_CONSENT_RE = re.compile(r"cookie|lgpd|gdpr|consent", re.IGNORECASE)
_DIALOG_HINT_RE = re.compile(r"popup|modal", re.IGNORECASE)
_FIXED_RE = re.compile(r"position\s*:\s*fixed", re.IGNORECASE)
_DIALOG_ROLES = {"dialog", "alertdialog"}
_BACKGROUND_URL_RE = re.compile(r"background(?:-image)?\s*:[^;]*url\(\s*['\"]?([^'\")]+)", re.IGNORECASE)


def parse_html(markup: str) -> BeautifulSoup:
    return BeautifulSoup(markup, "lxml")


def hint_text(tag: Tag) -> str:
    """Class names and id of an element, lowercased, for pattern hints."""

    classes = tag.get("class") or []
    if isinstance(classes, str):
        classes = classes.split()
    parts = [*classes, str(tag.get("id") or ""), str(tag.get("data-section-type") or "")]
    return " ".join(part for part in parts if part).lower()


def looks_like_overlay(tag: Tag) -> bool:
    """A consent banner or dialog layer, never one that carries prices or page regions."""

    if tag.find(["main", "header", "footer"]) is not None or find_currency_tokens(text_of(tag)):
        return False
    hints = hint_text(tag)
    if _CONSENT_RE.search(hints):
        return True
    dialog = str(tag.get("role") or "").lower() in _DIALOG_ROLES or str(tag.get("aria-modal") or "").lower() == "true"
    return dialog or bool(_DIALOG_HINT_RE.search(hints) and _FIXED_RE.search(str(tag.get("style") or "")))


def clean_soup(soup: BeautifulSoup, removed: list[str] | None = None) -> BeautifulSoup:
    """Strip scripts, styles and cookie/consent overlays in place.

    A short description of every stripped overlay is appended to ``removed``.
    """

    for tag in soup.find_all(_STRIP_TAGS):
        tag.decompose()
    overlays = [tag for tag in soup.find_all(["div", "aside", "section", "dialog"]) if looks_like_overlay(tag)]
    for tag in overlays:
        if tag.decomposed:
            continue
        if removed is not None:
            label = hint_text(tag) or tag.name
            removed.append(f"<{tag.name}> {label}: {text_of(tag)[:60]}".rstrip(": "))
        tag.decompose()
    return soup


def index_elements(soup: BeautifulSoup) -> dict[int, int]:
    """Map ``id(tag)`` to its document-order position."""

    return {id(tag): position for position, tag in enumerate(soup.find_all(True))}


def span_of(tag: Tag, index: dict[int, int]) -> tuple[int, int]:
    start = index.get(id(tag), 0)
    return start, start + len(tag.find_all(True)) + 1


def text_of(tag: Tag) -> str:
    return normalize_whitespace(tag.get_text(" ", strip=True))


def first_text(tag: Tag, names: list[str] | str) -> str | None:
    found = tag.find(names)
    if found is None:
        return None
    value = text_of(found)
    return value or None


def first_heading(tag: Tag) -> str | None:
    return first_text(tag, ["h1", "h2", "h3", "h4", "h5", "h6"])


def image_url(tag: Tag) -> str | None:
    img = tag if tag.name == "img" else tag.find("img")
    if img is not None:
        for attr in ("src", "data-src", "data-original", "data-lazy-src", "srcset"):
            value = img.get(attr)
            if value:
                return str(value).split(",")[0].split()[0]
    for element in [tag, *tag.find_all(style=True)]:
        match = _BACKGROUND_URL_RE.search(str(element.get("style") or ""))
        if match:
            return match.group(1).strip()
    return None


def links_of(tag: Tag) -> list[dict[str, str]]:
    links: list[dict[str, str]] = []
    for anchor in tag.find_all("a", href=True):
        label = text_of(anchor) or str(anchor.get("aria-label") or anchor.get("title") or "")
        href = str(anchor["href"]).strip()
        if not href or href.startswith(("javascript:", "#")):
            continue
        links.append({"label": label, "url": href})
    return links


_MEDIA = ["img", "iframe", "video", "picture"]


def is_visible_content(tag: Tag) -> bool:
    return tag.name in _MEDIA or bool(text_of(tag)) or tag.find(_MEDIA) is not None


def element_children(tag: Tag) -> list[Tag]:
    return [child for child in tag.children if isinstance(child, Tag)]


def inner_html(tag: Tag) -> str:
    return normalize_whitespace(tag.decode_contents())
