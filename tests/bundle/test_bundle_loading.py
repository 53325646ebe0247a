from __future__ import annotations

import json
from pathlib import Path
import zipfile

import pytest

from storeimport.bundle import bundle_from_listing, load_bundle
from storeimport.errors import BundleUnreadable


def test_directory_bundle_sorts_documents_and_collects_assets(tmp_path: Path) -> None:
    (tmp_path / "pages").mkdir()
    (tmp_path / "pages" / "b.html").write_text("<p>B</p>", encoding="utf-8")
    (tmp_path / "index.html").write_text("<p>Início</p>", encoding="utf-8")
    (tmp_path / "theme.css").write_text("body{}", encoding="utf-8")
    (tmp_path / "hero.jpg").write_bytes(b"\xff\xd8\xff")

    bundle = load_bundle(tmp_path, platform_hint="shopify")

    assert [doc.path for doc in bundle.documents] == ["index.html", "pages/b.html"]
    assert bundle.documents[0].content == "<p>Início</p>"
    assert bundle.asset_urls == ("hero.jpg",)
    assert bundle.platform_hint == "shopify"


def test_zip_bundle_reads_members_and_skips_macos_metadata(tmp_path: Path) -> None:
    archive = tmp_path / "store.zip"
    with zipfile.ZipFile(archive, "w") as handle:
        handle.writestr("templates/index.json", json.dumps({"sections": {}, "order": []}))
        handle.writestr("__MACOSX/._index.json", "junk")
        handle.writestr("layout/theme.liquid", "<html><body>{{ content_for_layout }}</body></html>")

    bundle = load_bundle(archive)

    assert bundle.bundle_id == "store"
    assert [doc.path for doc in bundle.documents] == ["layout/theme.liquid", "templates/index.json"]
    assert bundle.documents[1].media_type == "application/json"


def test_latin1_page_is_decoded(tmp_path: Path) -> None:
    page = tmp_path / "sobre.html"
    text = (
        "<html><body><p>Promoção de verão na nossa loja: camisetas, calçados e acessórios com preços "
        "especiais. Aproveite já, a coleção está disponível até o fim do mês e as condições são válidas "
        "para todo o Brasil.</p></body></html>"
    )
    page.write_bytes(text.encode("cp1252"))

    bundle = load_bundle(page)

    assert "Promoção" in bundle.documents[0].content


def test_json_listing_becomes_bundle(tmp_path: Path) -> None:
    listing = tmp_path / "listing.json"
    listing.write_text(
        json.dumps(
            {
                "platform": "nuvemshop",
                "pages": [
                    {"handle": "sobre", "title": "Sobre", "html": "<main><p>Sobre nós</p></main>"},
                    {"handle": "vazia", "html": "   "},
                ],
                "assets": ["https://d26lpennugtm8s.cloudfront.net/logo.png"],
            }
        ),
        encoding="utf-8",
    )

    bundle = load_bundle(listing)

    assert bundle.platform_hint == "nuvemshop"
    assert len(bundle.documents) == 1
    assert bundle.documents[0].slug == "sobre"
    assert bundle.documents[0].title == "Sobre"
    assert bundle.asset_urls == ("https://d26lpennugtm8s.cloudfront.net/logo.png",)


def test_listing_without_pages_is_unreadable() -> None:
    with pytest.raises(BundleUnreadable, match="no 'pages' list"):
        bundle_from_listing({"items": []})


def test_missing_or_empty_sources_raise_bundle_unreadable(tmp_path: Path) -> None:
    with pytest.raises(BundleUnreadable):
        load_bundle(tmp_path / "missing.zip")

    empty = tmp_path / "empty"
    empty.mkdir()
    (empty / "style.css").write_text("body{}", encoding="utf-8")
    with pytest.raises(BundleUnreadable, match="no readable documents"):
        load_bundle(empty)


def test_corrupt_zip_is_unreadable(tmp_path: Path) -> None:
    archive = tmp_path / "broken.zip"
    archive.write_bytes(b"PK\x03\x04not really a zip")

    with pytest.raises(BundleUnreadable, match="Corrupt zip"):
        load_bundle(archive)


def test_unreadable_file_in_directory_is_bundle_unreadable(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    store = tmp_path / "store"
    store.mkdir()
    (store / "index.html").write_text("<main><p>ok</p></main>", encoding="utf-8")
    (store / "locked.html").write_text("<main><p>secret</p></main>", encoding="utf-8")
    original = Path.read_bytes

    def _read_bytes(self: Path) -> bytes:
        if self.name == "locked.html":
            raise PermissionError(13, "Permission denied", str(self))
        return original(self)

    monkeypatch.setattr(Path, "read_bytes", _read_bytes)

    with pytest.raises(BundleUnreadable, match="Failed to read bundle directory"):
        load_bundle(store)
