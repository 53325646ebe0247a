"""Build source bundles from directories, zip archives and API listings."""

from __future__ import annotations

from io import BytesIO
import json
import logging
from pathlib import Path, PurePosixPath
from typing import Any, Iterable, Mapping
from zipfile import BadZipFile, ZipFile

from charset_normalizer import from_bytes

from storeimport.errors import BundleUnreadable
from storeimport.models import SourceBundle, SourceDocument

logger = logging.getLogger(__name__)

_ZIP_MAGIC = b"PK\x03\x04"

_MEDIA_TYPES: dict[str, str] = {
    ".html": "text/html",
    ".htm": "text/html",
    ".liquid": "text/html",
    ".json": "application/json",
    ".xml": "application/xml",
    ".txt": "text/plain",
}
_ASSET_SUFFIXES = {".png", ".jpg", ".jpeg", ".gif", ".webp", ".svg", ".avif", ".mp4", ".webm"}
# Source-site scripts and styles are never executed or rendered.
_IGNORED_SUFFIXES = {".js", ".mjs", ".css", ".map", ".woff", ".woff2", ".ttf", ".eot", ".ico"}


def _decode(raw: bytes) -> str:
    best = from_bytes(raw).best()
    if best and best.encoding:
        return raw.decode(best.encoding, errors="replace")

    for fallback in ("utf-8", "cp1252"):
        try:
            return raw.decode(fallback)
        except UnicodeDecodeError:
            continue
    return raw.decode("utf-8", errors="replace")


def _classify(name: str) -> str | None:
    """Return the media type for a member name, ``"asset"`` or None to skip."""

    suffix = PurePosixPath(name).suffix.lower()
    if suffix in _IGNORED_SUFFIXES:
        return None
    if suffix in _ASSET_SUFFIXES:
        return "asset"
    return _MEDIA_TYPES.get(suffix)


def _build(
    bundle_id: str,
    members: Iterable[tuple[str, bytes]],
    platform_hint: str | None,
) -> SourceBundle:
    documents: list[SourceDocument] = []
    assets: list[str] = []

    for name, raw in sorted(members, key=lambda member: member[0]):
        media_type = _classify(name)
        if media_type is None:
            continue
        if media_type == "asset":
            assets.append(name)
            continue
        content = _decode(raw)
        if not content.strip():
            logger.warning("Skipping empty bundle member %s", name)
            continue
        documents.append(SourceDocument(path=name, content=content, media_type=media_type))

    if not documents:
        raise BundleUnreadable(bundle_id, "Bundle contains no readable documents")

    return SourceBundle(
        bundle_id=bundle_id,
        documents=tuple(documents),
        platform_hint=platform_hint,
        asset_urls=tuple(assets),
    )


def bundle_from_listing(payload: Mapping[str, Any], *, bundle_id: str = "listing") -> SourceBundle:
    """Build a bundle from an API-fetched page listing.

    Expected shape: ``{"platform": str?, "pages": [{"path"|"url", "html"}], "assets": [str]}``.
    """

    pages = payload.get("pages")
    if not isinstance(pages, list):
        raise BundleUnreadable(bundle_id, "Listing payload has no 'pages' list")

    documents: list[SourceDocument] = []
    for index, page in enumerate(pages, start=1):
        if not isinstance(page, Mapping):
            continue
        html = page.get("html") or page.get("body_html") or ""
        if not isinstance(html, str) or not html.strip():
            continue
        path = str(page.get("path") or page.get("url") or page.get("handle") or f"page-{index}.html")
        title = page.get("title")
        handle = page.get("handle")
        documents.append(
            SourceDocument(
                path=path,
                content=html,
                media_type="text/html",
                title=str(title) if title else None,
                slug=str(handle) if handle else None,
            )
        )

    if not documents:
        raise BundleUnreadable(bundle_id, "Listing payload holds no page markup")

    raw_assets = payload.get("assets", [])
    assets = tuple(str(url) for url in raw_assets if url) if isinstance(raw_assets, list) else ()
    hint = payload.get("platform")
    return SourceBundle(
        bundle_id=bundle_id,
        documents=tuple(documents),
        platform_hint=str(hint) if hint else None,
        asset_urls=assets,
    )


def _read_zip(raw: bytes, bundle_id: str) -> list[tuple[str, bytes]]:
    try:
        with ZipFile(BytesIO(raw), "r") as archive:
            return [
                (name, archive.read(name))
                for name in archive.namelist()
                if not name.endswith("/") and not name.startswith("__MACOSX/")
            ]
    except BadZipFile as exc:
        raise BundleUnreadable(bundle_id, f"Corrupt zip archive: {exc}") from exc


def load_bundle(path: str | Path, *, platform_hint: str | None = None) -> SourceBundle:
    """Load a directory, zip archive, JSON listing or single page as a bundle."""

    source = Path(path)
    bundle_id = source.stem or source.name

    if source.is_dir():
        try:
            members = [
                (item.relative_to(source).as_posix(), item.read_bytes())
                for item in source.rglob("*")
                if item.is_file()
            ]
        except OSError as exc:
            raise BundleUnreadable(str(source), f"Failed to read bundle directory: {exc}") from exc
        return _build(bundle_id, members, platform_hint)

    try:
        raw = source.read_bytes()
    except OSError as exc:
        raise BundleUnreadable(str(source), f"Failed to read bundle: {exc}") from exc

    if raw.startswith(_ZIP_MAGIC) or source.suffix.lower() == ".zip":
        return _build(bundle_id, _read_zip(raw, bundle_id), platform_hint)

    if source.suffix.lower() == ".json":
        try:
            payload = json.loads(_decode(raw))
        except json.JSONDecodeError as exc:
            raise BundleUnreadable(bundle_id, f"Malformed JSON bundle: {exc}") from exc
        if isinstance(payload, dict) and "pages" in payload and "kit" not in payload:
            bundle = bundle_from_listing(payload, bundle_id=bundle_id)
            if platform_hint:
                return SourceBundle(
                    bundle_id=bundle.bundle_id,
                    documents=bundle.documents,
                    platform_hint=platform_hint,
                    asset_urls=bundle.asset_urls,
                )
            return bundle

    return _build(bundle_id, [(source.name, raw)], platform_hint)
