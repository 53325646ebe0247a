"""Keyword and structure based block classifier using a JSON keyword file."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
import json
from pathlib import Path
import re
import unicodedata

from bs4 import Tag

from storeimport.extraction.dom import clean_soup, element_children, hint_text, parse_html, text_of
from storeimport.extraction.properties import repeated_children, youtube_id
from storeimport.models import BlockType
from storeimport.text import find_currency_tokens

_KEYWORDS_PATH = Path(__file__).parent / "block_keywords.json"
_BUTTON_RE = re.compile(r"btn|button|botao|cta", re.IGNORECASE)
_STAR_RE = re.compile(r"star|estrela|rating", re.IGNORECASE)

KEYWORD_WEIGHT = 0.4
MIN_SCORE = 0.2


@dataclass(slots=True)
class CategoryScore:
    block_type: BlockType
    score: float
    matched: tuple[str, ...] = ()


@dataclass(slots=True)
class Features:
    """Structural cues read once from a fragment."""

    text: str
    hints: str
    text_length: int
    images: int
    paragraphs: int
    headings: int
    links: int
    buttons: int
    prices: int
    repeated: int
    youtube: bool
    email_input: bool
    forms: int
    details: int
    questions: int
    quotes: int
    stars: int
    background_image: bool


@lru_cache(maxsize=1)
def _load_keywords() -> dict:
    return json.loads(_KEYWORDS_PATH.read_text(encoding="utf-8"))


def _fold(value: str) -> str:
    ascii_text = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    return " ".join(ascii_text.casefold().split())


@lru_cache(maxsize=256)
def _keyword_pattern(keyword: str) -> re.Pattern[str]:
    return re.compile(rf"(?<![a-z0-9]){re.escape(_fold(keyword))}(?![a-z0-9])")


def read_features(fragment: Tag) -> Features:
    text = text_of(fragment)
    hints = " ".join(hint_text(element) for element in [fragment, *fragment.find_all(True)])
    frames = [str(frame.get("src") or "") for frame in fragment.find_all("iframe")]
    links = [str(anchor.get("href") or "") for anchor in fragment.find_all("a")]
    buttons = fragment.find_all("button") + [
        anchor for anchor in fragment.find_all("a") if _BUTTON_RE.search(hint_text(anchor))
    ]
    styled = [fragment, *fragment.find_all(style=True)]
    return Features(
        text=_fold(text),
        hints=_fold(hints.replace("-", " ").replace("_", " ")) + " " + _fold(hints),
        text_length=len(text),
        images=len(fragment.find_all("img")) + (1 if fragment.name == "img" else 0),
        paragraphs=len(fragment.find_all("p")),
        headings=len(fragment.find_all(["h1", "h2", "h3", "h4", "h5", "h6"])),
        links=len(links),
        buttons=len(buttons),
        prices=len(find_currency_tokens(text)),
        repeated=len(_repeated(fragment)),
        youtube=any(youtube_id(src) for src in frames + links),
        email_input=fragment.find("input", attrs={"type": "email"}) is not None
        or fragment.find("input", attrs={"name": re.compile("mail", re.IGNORECASE)}) is not None,
        forms=len(fragment.find_all("form")),
        details=len(fragment.find_all(["details", "dt"])),
        questions=sum(
            1 for heading in fragment.find_all(["h3", "h4", "h5", "strong", "summary", "dt"]) if "?" in text_of(heading)
        ),
        quotes=len(fragment.find_all(["blockquote", "q", "cite"])),
        stars=len(fragment.find_all(class_=_STAR_RE)),
        background_image=any("url(" in str(element.get("style") or "") for element in styled),
    )


def _repeated(fragment: Tag) -> list[Tag]:
    container = fragment
    for _ in range(3):
        children = element_children(container)
        if len(children) != 1:
            break
        container = children[0]
    cards = repeated_children(container)
    return cards if len(cards) >= 2 else []


def _structure_score(block_type: BlockType, f: Features) -> float:
    short = f.text_length < 300
    if block_type is BlockType.BANNER:
        visual = f.images >= 1 or f.background_image
        if visual and f.headings >= 1 and short and f.prices == 0:
            return 0.6
        return 0.3 if visual and short and f.images <= 2 else 0.0
    if block_type is BlockType.RICH_TEXT:
        if f.images > 1 or f.forms or f.prices or f.youtube:
            return 0.0
        return 0.6 if f.paragraphs >= 1 and f.text_length >= 80 else 0.35 if f.text_length else 0.0
    if block_type is BlockType.PRODUCT_GRID:
        return 0.6 if f.prices >= 2 and f.repeated >= 2 else 0.2 if f.prices >= 2 else 0.0
    if block_type is BlockType.PRODUCT_CARD:
        return 0.6 if f.prices in (1, 2) and f.images >= 1 and f.repeated < 2 else 0.0
    if block_type is BlockType.CALL_TO_ACTION:
        return 0.45 if (f.buttons or f.links) and short and f.images == 0 else 0.0
    if block_type is BlockType.IMAGE:
        return 0.6 if f.images == 1 and f.text_length < 20 else 0.0
    if block_type is BlockType.IMAGE_GALLERY:
        return 0.6 if f.images >= 3 and f.text_length < 40 * f.images else 0.0
    if block_type is BlockType.YOUTUBE_VIDEO:
        return 0.6 if f.youtube else 0.0
    if block_type is BlockType.BUTTON:
        return 0.5 if f.links + f.buttons == 1 and f.text_length < 40 and f.images == 0 else 0.0
    if block_type is BlockType.TESTIMONIALS:
        return 0.6 if (f.quotes >= 1 or f.stars >= 1) and f.repeated >= 2 else 0.3 if f.quotes or f.stars else 0.0
    if block_type is BlockType.FAQ:
        return 0.6 if f.details >= 2 or f.questions >= 2 else 0.0
    if block_type is BlockType.NEWSLETTER:
        return 0.6 if f.email_input else 0.0
    if block_type is BlockType.FEATURE_LIST:
        return 0.5 if f.repeated >= 3 and f.prices == 0 and f.headings + f.paragraphs >= 3 else 0.0
    if block_type is BlockType.CATEGORY_LIST:
        return 0.5 if f.repeated >= 3 and f.links >= 3 and f.prices == 0 and f.paragraphs == 0 else 0.0
    return 0.0


def score_fragment(fragment: Tag) -> list[CategoryScore]:
    """Score every category for ``fragment``, best first."""

    features = read_features(fragment)
    haystack = f"{features.text} {features.hints}"
    scores: dict[BlockType, CategoryScore] = {}
    for category in _load_keywords()["categories"]:
        block_type = BlockType(category["block_type"])
        matched = tuple(kw for kw in category["keywords"] if _keyword_pattern(kw).search(haystack))
        score = KEYWORD_WEIGHT * min(len(matched), 3) / 3 + _structure_score(block_type, features)
        current = scores.get(block_type)
        if current is None or score > current.score:
            scores[block_type] = CategoryScore(block_type=block_type, score=min(score, 1.0), matched=matched)
    # stable order for equal scores: keyword file order
    return sorted(scores.values(), key=lambda item: -item.score)


def classify_markup(markup: str, *, min_score: float = MIN_SCORE) -> CategoryScore | None:
    """Return the best local category for a markup fragment, if any scores high enough."""

    if not markup or not markup.strip():
        return None
    soup = clean_soup(parse_html(markup))
    body = soup.body or soup
    children = element_children(body)
    fragment = children[0] if len(children) == 1 else body
    if not text_of(fragment) and fragment.find(["img", "iframe"]) is None and fragment.name not in {"img", "iframe"}:
        return None
    ranked = score_fragment(fragment)
    if not ranked or ranked[0].score < min_score:
        return None
    return ranked[0]
