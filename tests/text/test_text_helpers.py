from __future__ import annotations

import pytest

from storeimport.fingerprint import block_id, fingerprint_blocks, page_id
from storeimport.models import Block, BlockType
from storeimport.text import find_currency_tokens, normalize_text, parse_price, slugify


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("R$ 1.299,90", 1299.9),
        ("$1,299.90", 1299.9),
        ("49,9", 49.9),
        ("1.000", 1000.0),
        ("19.99 USD", 19.99),
        ("sem preço", None),
    ],
)
def test_parse_price_reads_both_separator_styles(raw: str, expected: float | None) -> None:
    assert parse_price(raw) == expected


def test_slugify_folds_accents_and_falls_back() -> None:
    assert slugify("Política de Trocas") == "politica-de-trocas"
    assert slugify("!!!") == "page"


def test_currency_tokens_and_text_normalization() -> None:
    assert find_currency_tokens("De R$ 59,90 por R$ 49,90") == ["R$ 59,90", "R$ 49,90"]
    assert normalize_text("  Olá\n  MUNDO ") == "olá mundo"


def test_fingerprint_ignores_ids_but_not_structure() -> None:
    first = Block(id="a", type=BlockType.BUTTON, properties={"text": "Comprar", "url": "/c"})
    renamed = Block(id="b", type=BlockType.BUTTON, properties={"url": "/c", "text": "Comprar"})
    changed = Block(id="a", type=BlockType.BUTTON, properties={"text": "Ver", "url": "/c"})

    assert fingerprint_blocks([first]) == fingerprint_blocks([renamed])
    assert fingerprint_blocks([first]) != fingerprint_blocks([changed])
    assert fingerprint_blocks([first]) != fingerprint_blocks([first], header=changed)


def test_identifiers_are_prefixed_and_deterministic() -> None:
    assert block_id("index.html", "blocks[0]") == block_id("index.html", "blocks[0]")
    assert block_id("index.html", "blocks[0]").startswith("blk_")
    assert page_id("index.html").startswith("page_")
    assert page_id("index.html") != page_id("sobre.html")
