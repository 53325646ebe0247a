"""Per-block-type property extraction from a markup fragment."""

from __future__ import annotations

import re
from typing import Any, Callable

from bs4 import Tag

from storeimport.extraction.dom import (
    element_children,
    first_heading,
    first_text,
    hint_text,
    image_url,
    inner_html,
    links_of,
    parse_html,
    text_of,
)
from storeimport.models import BlockType
from storeimport.text import find_currency_tokens, parse_price

_YOUTUBE_RE = re.compile(r"(?:youtube(?:-nocookie)?\.com/(?:embed/|watch\?v=)|youtu\.be/)([A-Za-z0-9_-]{11})")
_BUTTON_HINT_RE = re.compile(r"btn|button|cta|botao", re.IGNORECASE)
_CURRENCY_SYMBOLS = (("R$", "BRL"), ("US$", "USD"), ("€", "EUR"), ("£", "GBP"), ("$", "USD"))
_SOCIAL_RE = re.compile(r"facebook|instagram|twitter|x\.com|tiktok|youtube|whatsapp|pinterest|linkedin", re.IGNORECASE)
_COPYRIGHT_RE = re.compile(r"(©|\(c\)|copyright|todos os direitos)[^.|]*", re.IGNORECASE)


def _button(tag: Tag) -> tuple[str | None, str | None]:
    for candidate in tag.find_all(["a", "button"]):
        if candidate.name == "button" or _BUTTON_HINT_RE.search(hint_text(candidate)):
            label = text_of(candidate) or None
            href = candidate.get("href") if candidate.name == "a" else None
            return label, str(href) if href else None
    anchor = tag.find("a", href=True)
    if anchor is not None:
        return text_of(anchor) or None, str(anchor["href"])
    return None, None


def _currency(raw: str) -> str | None:
    for symbol, code in _CURRENCY_SYMBOLS:
        if symbol in raw:
            return code
    upper = raw.upper()
    for code in ("BRL", "USD", "EUR", "GBP"):
        if code in upper:
            return code
    return None


def _price(tag: Tag) -> tuple[float | None, str | None]:
    tokens = find_currency_tokens(text_of(tag))
    if not tokens:
        return None, None
    # the last price in a card is usually the current (sale) price
    token = tokens[-1]
    return parse_price(token), _currency(token)


def product_from(card: Tag) -> dict[str, Any]:
    price, currency = _price(card)
    name = first_heading(card) or first_text(card, ["a", "strong", "span", "p"]) or ""
    anchor = card.find("a", href=True)
    return {
        "name": name,
        "price": price,
        "currency": currency,
        "image_url": image_url(card),
        "url": str(anchor["href"]) if anchor is not None else None,
    }


def repeated_children(tag: Tag) -> list[Tag]:
    """Largest group of direct children sharing one structural signature."""

    groups: dict[str, list[Tag]] = {}
    for child in element_children(tag):
        classes = child.get("class") or []
        signature = f"{child.name}.{'.'.join(sorted(classes))}"
        groups.setdefault(signature, []).append(child)
    if not groups:
        return []
    return max(groups.values(), key=len)


def _cards(tag: Tag) -> list[Tag]:
    container = tag
    # descend through single-child wrappers like <div><ul><li>..</li></ul></div>
    for _ in range(3):
        children = element_children(container)
        if len(children) != 1:
            break
        container = children[0]
    cards = repeated_children(container)
    return cards if len(cards) >= 2 else element_children(container)


def _banner(tag: Tag) -> dict[str, Any]:
    button_text, button_url = _button(tag)
    return {
        "title": first_heading(tag) or "",
        "subtitle": first_text(tag, "p"),
        "image_url": image_url(tag),
        "button_text": button_text,
        "button_url": button_url,
    }


def _rich_text(tag: Tag) -> dict[str, Any]:
    return {"content": inner_html(tag)}


def _product_grid(tag: Tag) -> dict[str, Any]:
    cards = [card for card in _cards(tag) if find_currency_tokens(text_of(card))]
    title = first_heading(tag)
    if title is None:
        previous = tag.find_previous_sibling(["h1", "h2", "h3", "h4"])
        title = text_of(previous) if previous is not None else None
    products = [product_from(card) for card in cards]
    return {"title": title or "", "products": products, "columns": min(max(len(products), 1), 4)}


def _product_card(tag: Tag) -> dict[str, Any]:
    product = product_from(tag)
    description = first_text(tag, "p")
    return {**product, "description": description}


def _call_to_action(tag: Tag) -> dict[str, Any]:
    label, href = _button(tag)
    price, currency = _price(tag)
    return {"text": label or text_of(tag)[:80], "url": href, "price": price, "currency": currency}


def _image(tag: Tag) -> dict[str, Any]:
    img = tag if tag.name == "img" else tag.find("img")
    anchor = tag.find_parent("a") if tag.name == "img" else tag.find("a", href=True)
    return {
        "src": image_url(tag) or "",
        "alt": str(img.get("alt") or "") if img is not None else "",
        "link_url": str(anchor["href"]) if anchor is not None and anchor.get("href") else None,
    }


def _gallery(tag: Tag) -> dict[str, Any]:
    images = [
        {"src": str(img.get("src") or img.get("data-src") or ""), "alt": str(img.get("alt") or "")}
        for img in tag.find_all("img")
    ]
    return {"title": first_heading(tag), "images": [image for image in images if image["src"]]}


def _video(tag: Tag) -> dict[str, Any]:
    for element in tag.find_all(["iframe", "a"]):
        source = str(element.get("src") or element.get("href") or "")
        match = _YOUTUBE_RE.search(source)
        if match:
            return {"youtubeUrl": f"https://www.youtube.com/watch?v={match.group(1)}", "title": first_heading(tag)}
    match = _YOUTUBE_RE.search(str(tag))
    url = f"https://www.youtube.com/watch?v={match.group(1)}" if match else ""
    return {"youtubeUrl": url, "title": first_heading(tag)}


def _button_props(tag: Tag) -> dict[str, Any]:
    label, href = _button(tag)
    return {"text": label or text_of(tag), "url": href}


def _testimonials(tag: Tag) -> dict[str, Any]:
    items: list[dict[str, Any]] = []
    for card in _cards(tag):
        quote = first_text(card, ["blockquote", "p", "q"])
        if not quote:
            continue
        author = first_text(card, ["cite", "strong", "h3", "h4", "h5", "span"])
        stars = len(card.find_all(class_=re.compile(r"star", re.IGNORECASE)))
        items.append({"quote": quote, "author": author if author != quote else None, "rating": stars or None})
    return {"title": first_heading(tag), "items": items}


def _faq(tag: Tag) -> dict[str, Any]:
    items: list[dict[str, str]] = []
    for details in tag.find_all("details"):
        summary = details.find("summary")
        question = text_of(summary) if summary is not None else ""
        answer = text_of(details).replace(question, "", 1).strip()
        items.append({"question": question, "answer": answer})
    if not items:
        for term in tag.find_all("dt"):
            definition = term.find_next_sibling("dd")
            items.append({"question": text_of(term), "answer": text_of(definition) if definition else ""})
    if not items:
        for heading in tag.find_all(["h3", "h4", "h5", "strong"]):
            answer = heading.find_next_sibling(["p", "div"])
            if answer is not None and "?" in text_of(heading):
                items.append({"question": text_of(heading), "answer": text_of(answer)})
    return {"title": first_heading(tag), "items": [item for item in items if item["question"]]}


def _newsletter(tag: Tag) -> dict[str, Any]:
    field_tag = tag.find("input", attrs={"type": "email"}) or tag.find("input")
    label, _ = _button(tag)
    submit = tag.find("input", attrs={"type": "submit"})
    if label is None and submit is not None:
        label = str(submit.get("value") or "") or None
    return {
        "title": first_heading(tag) or first_text(tag, "p") or "",
        "placeholder": str(field_tag.get("placeholder") or "") if field_tag is not None else "",
        "button_text": label,
    }


def _feature_list(tag: Tag) -> dict[str, Any]:
    items = []
    for card in _cards(tag):
        title = first_heading(card) or first_text(card, ["strong", "b"]) or text_of(card)
        description = first_text(card, "p")
        if not title:
            continue
        items.append({"title": title, "description": description if description != title else None, "icon_url": image_url(card)})
    return {"title": first_heading(tag) if len(items) > 1 else None, "items": items}


def _category_list(tag: Tag) -> dict[str, Any]:
    categories = []
    for anchor in tag.find_all("a", href=True):
        name = text_of(anchor) or str(anchor.get("title") or "")
        if name:
            categories.append({"name": name, "url": str(anchor["href"]), "image_url": image_url(anchor)})
    return {"title": first_heading(tag), "categories": categories}


def _header(tag: Tag) -> dict[str, Any]:
    nav = tag.find("nav") or tag
    hints = " ".join(hint_text(element) for element in tag.find_all(True))
    logo = tag.find("img")
    return {
        "logo_url": image_url(logo) if logo is not None else None,
        "menu_items": links_of(nav),
        "show_search": tag.find("input", attrs={"type": "search"}) is not None or "search" in hints or "busca" in hints,
        "show_cart": bool(re.search(r"cart|carrinho|sacola|minicart|bag", hints)),
    }


def _footer(tag: Tag) -> dict[str, Any]:
    links = links_of(tag)
    social = [link for link in links if _SOCIAL_RE.search(link["url"])]
    match = _COPYRIGHT_RE.search(text_of(tag))
    return {
        "links": [link for link in links if link not in social],
        "social_links": social,
        "copyright": match.group(0).strip() if match else "",
    }


def _section(tag: Tag) -> dict[str, Any]:
    return {"title": first_heading(tag)}


def _raw_html(tag: Tag) -> dict[str, Any]:
    return {"html": str(tag)}


_EXTRACTORS: dict[BlockType, Callable[[Tag], dict[str, Any]]] = {
    BlockType.HEADER: _header,
    BlockType.FOOTER: _footer,
    BlockType.BANNER: _banner,
    BlockType.RICH_TEXT: _rich_text,
    BlockType.PRODUCT_GRID: _product_grid,
    BlockType.PRODUCT_CARD: _product_card,
    BlockType.CALL_TO_ACTION: _call_to_action,
    BlockType.IMAGE: _image,
    BlockType.IMAGE_GALLERY: _gallery,
    BlockType.YOUTUBE_VIDEO: _video,
    BlockType.BUTTON: _button_props,
    BlockType.TESTIMONIALS: _testimonials,
    BlockType.FAQ: _faq,
    BlockType.NEWSLETTER: _newsletter,
    BlockType.FEATURE_LIST: _feature_list,
    BlockType.CATEGORY_LIST: _category_list,
    BlockType.SECTION: _section,
    BlockType.RAW_HTML: _raw_html,
}


def extract_properties(block_type: BlockType, fragment: Tag | str) -> dict[str, Any]:
    """Read the properties ``block_type`` needs out of a fragment."""

    if isinstance(fragment, str):
        soup = parse_html(fragment)
        fragment = soup.body or soup
        children = element_children(fragment)
        if fragment.name == "body" and len(children) == 1:
            fragment = children[0]
    return _EXTRACTORS[block_type](fragment)


def youtube_id(value: str) -> str | None:
    match = _YOUTUBE_RE.search(value)
    return match.group(1) if match else None
