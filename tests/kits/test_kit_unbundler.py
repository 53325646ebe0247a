from __future__ import annotations

import json

from storeimport.kits import KitUnbundler, SharedLayout, is_kit
from storeimport.models import SourceBundle, SourceDocument


def _manifest(**kit: object) -> SourceDocument:
    return SourceDocument(path="kit.json", content=json.dumps({"kit": kit}), media_type="application/json")


def test_kit_expands_into_pages_with_shared_references() -> None:
    bundle = SourceBundle(
        bundle_id="kit",
        documents=(
            _manifest(
                name="Summer Kit",
                shared={"header": "<header><nav>Menu</nav></header>", "footer": "parts/footer.html"},
                pages=[
                    {"slug": "home", "title": "Home", "html": "<main><p>Home</p></main>"},
                    {"title": "Sobre Nós", "source": "pages/sobre.html"},
                ],
            ),
            SourceDocument(path="parts/footer.html", content="<footer>&copy; Summer</footer>"),
            SourceDocument(path="pages/sobre.html", content="<main><p>Sobre</p></main>"),
            SourceDocument(path="extra.html", content="<main><p>Extra</p></main>"),
        ),
    )

    result = KitUnbundler().unbundle(bundle)

    assert result.kit_names == ["summer-kit"]
    assert [doc.path for doc in result.bundle.documents] == [
        "kit/summer-kit/home.html",
        "kit/summer-kit/sobre-nos.html",
        "extra.html",
    ]
    home = result.bundle.documents[0]
    assert home.header_ref == "kit:summer-kit:header"
    assert home.footer_ref == "kit:summer-kit:footer"
    assert "Menu" not in home.content
    assert result.layout.resolve("kit:summer-kit:footer") == "<footer>&copy; Summer</footer>"
    assert result.rejections == []


def test_pages_without_markup_are_rejected() -> None:
    bundle = SourceBundle(
        bundle_id="kit",
        documents=(_manifest(name="k", pages=[{"slug": "a", "source": "missing.html"}, "not-a-page"]),),
    )

    result = KitUnbundler().unbundle(bundle)

    assert result.bundle.documents == ()
    assert [rejection.source_id for rejection in result.rejections] == ["kit/k/a.html", "kit.json#2"]


def test_duplicate_slugs_get_a_suffix() -> None:
    bundle = SourceBundle(
        bundle_id="kit",
        documents=(_manifest(name="k", pages=[{"slug": "a", "html": "<p>1</p>"}, {"slug": "a", "html": "<p>2</p>"}]),),
    )

    result = KitUnbundler().unbundle(bundle)

    assert [doc.slug for doc in result.bundle.documents] == ["a", "a-2"]


def test_bundle_without_kits_is_returned_unchanged() -> None:
    bundle = SourceBundle(bundle_id="plain", documents=(SourceDocument(path="index.html", content="<p>x</p>"),))

    result = KitUnbundler().unbundle(bundle)

    assert result.bundle is bundle
    assert result.layout.regions == {}
    assert not is_kit(bundle.documents[0])


def test_shared_layout_resolves_none_and_unknown_refs() -> None:
    layout = SharedLayout()
    layout.register("kit:a:header", "<header/>")

    assert layout.resolve(None) is None
    assert layout.resolve("kit:a:footer") is None
    assert layout.resolve("kit:a:header") == "<header/>"


def test_rejections_remember_their_neighbouring_pages() -> None:
    bundle = SourceBundle(
        bundle_id="kit",
        documents=(
            _manifest(
                name="k",
                pages=[{"slug": "first"}, {"slug": "a", "html": "<p>a</p>"}, {"slug": "b"}, {"slug": "c", "html": "<p>c</p>"}],
            ),
        ),
    )

    result = KitUnbundler().unbundle(bundle)

    first, middle = result.rejections
    assert (first.after, first.before) == (None, "kit/k/a.html")
    assert (middle.after, middle.before) == ("kit/k/a.html", "kit/k/c.html")
