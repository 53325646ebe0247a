"""Deterministic identifiers and structural fingerprints for emitted pages."""

from __future__ import annotations

import hashlib
import json
from typing import Any, Iterable

from storeimport.models import Block


def _digest(payload: str, *, size: int = 16) -> str:
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:size]


def block_id(source_id: str, path: str) -> str:
    """Id derived from where the block sits in its source, stable across runs."""

    return f"blk_{_digest(f'{source_id}|{path}')}"


def page_id(source_id: str) -> str:
    return f"page_{_digest(source_id)}"


def _structure(block: Block) -> dict[str, Any]:
    return {
        "type": block.type.value,
        "props": block.properties,
        "children": [_structure(child) for child in block.children],
    }


def fingerprint_blocks(
    blocks: Iterable[Block],
    *,
    header: Block | None = None,
    footer: Block | None = None,
) -> str:
    """Hash of a page's block structure; ids do not take part."""

    payload = {
        "header": _structure(header) if header is not None else None,
        "blocks": [_structure(block) for block in blocks],
        "footer": _structure(footer) if footer is not None else None,
    }
    canonical = json.dumps(payload, sort_keys=True, ensure_ascii=False, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
