"""Repair candidate blocks into schema-valid canonical blocks.

Every candidate comes out as a ``Block`` whose type is in the registry and
whose properties satisfy that type's contract. Repairs are never silent:
each default, coercion, drop or fallback is reported as an ``Issue``.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from storeimport.errors import SchemaViolation
from storeimport.fingerprint import block_id
from storeimport.models import Block, BlockType, CandidateBlock, Issue, PlatformId
from storeimport.normalize.platform_stages import PlatformStage, default_stages
from storeimport.normalize.registry import BLOCK_REGISTRY, PropSpec, is_known
from storeimport.text import normalize_whitespace, parse_price

logger = logging.getLogger(__name__)

STAGE = "normalizing"

_TRUE = {"true", "1", "yes", "y", "sim", "on"}
_FALSE = {"false", "0", "no", "n", "nao", "não", "off", ""}


def _coerce_scalar(spec: PropSpec, value: Any, owner: str) -> tuple[Any, bool]:
    """Return ``(value, shape_changed)``; raise SchemaViolation when impossible."""

    kind = spec.kind
    if kind in ("str", "html"):
        if isinstance(value, str):
            return value, False
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value), True
        if isinstance(value, list) and all(isinstance(item, str) for item in value):
            return " ".join(value), True
        raise SchemaViolation(owner, spec.name, f"Cannot read {type(value).__name__} as text")

    if kind == "int":
        if isinstance(value, bool):
            raise SchemaViolation(owner, spec.name, "Boolean is not an integer")
        if isinstance(value, int):
            return value, False
        if isinstance(value, float) and value.is_integer():
            return int(value), True
        if isinstance(value, str):
            try:
                return int(normalize_whitespace(value)), True
            except ValueError as exc:
                raise SchemaViolation(owner, spec.name, f"Cannot read {value!r} as integer") from exc
        raise SchemaViolation(owner, spec.name, f"Cannot read {value!r} as integer")

    if kind in ("float", "price"):
        if isinstance(value, bool):
            raise SchemaViolation(owner, spec.name, "Boolean is not a number")
        if isinstance(value, (int, float)):
            return float(value), False
        if isinstance(value, str):
            parsed = parse_price(value) if kind == "price" else _float_or_none(value)
            if parsed is not None:
                return parsed, True
        raise SchemaViolation(owner, spec.name, f"Cannot read {value!r} as number")

    if kind == "bool":
        if isinstance(value, bool):
            return value, False
        if isinstance(value, (int, float)) and value in (0, 1):
            return bool(value), True
        if isinstance(value, str):
            folded = value.strip().casefold()
            if folded in _TRUE:
                return True, True
            if folded in _FALSE:
                return False, True
        raise SchemaViolation(owner, spec.name, f"Cannot read {value!r} as boolean")

    raise SchemaViolation(owner, spec.name, f"Unsupported property kind {kind!r}")


def _float_or_none(raw: str) -> float | None:
    try:
        return float(raw.strip().replace(",", "."))
    except ValueError:
        return None


class BlockNormalizer:
    """Map candidates onto the block registry, repairing properties on the way."""

    def __init__(
        self,
        *,
        registry: Mapping[BlockType, tuple[PropSpec, ...]] | None = None,
        stages: Mapping[PlatformId, PlatformStage] | None = None,
    ) -> None:
        self._registry = dict(registry or BLOCK_REGISTRY)
        self._stages = dict(default_stages() if stages is None else stages)

    def normalize(
        self,
        candidates: list[CandidateBlock],
        *,
        source_id: str,
        platform: PlatformId = PlatformId.UNKNOWN,
        path: str = "blocks",
    ) -> tuple[list[Block], list[Issue]]:
        blocks: list[Block] = []
        issues: list[Issue] = []
        for position, candidate in enumerate(candidates):
            block, block_issues = self.normalize_one(
                candidate,
                source_id=source_id,
                platform=platform,
                path=f"{path}[{position}]",
            )
            blocks.append(block)
            issues.extend(block_issues)
        return blocks, issues

    def normalize_one(
        self,
        candidate: CandidateBlock,
        *,
        source_id: str,
        platform: PlatformId = PlatformId.UNKNOWN,
        path: str = "blocks[0]",
    ) -> tuple[Block, list[Issue]]:
        issues: list[Issue] = []
        stage = self._stages.get(platform)
        if stage is not None:
            candidate = stage.apply(candidate)

        children, child_issues = self.normalize(
            candidate.children,
            source_id=source_id,
            platform=platform,
            path=f"{path}.children",
        )
        issues.extend(child_issues)

        if not is_known(candidate.block_type, self._registry):
            logger.warning("Keeping unclassified fragment at %s of %s as raw HTML", path, source_id)
            issues.append(
                Issue(
                    code="raw_content_fallback",
                    stage=STAGE,
                    message="Unmapped fragment kept as raw HTML",
                    path=path,
                )
            )
            block = Block(
                id=block_id(source_id, path),
                type=BlockType.RAW_HTML,
                properties={"html": candidate.markup},
                children=tuple(children),
            )
            return block, issues

        block_type = candidate.block_type
        properties = self._fields(
            self._registry[block_type],
            candidate.properties,
            owner=block_type.value,
            path=f"{path}.props",
            issues=issues,
        )
        block = Block(id=block_id(source_id, path), type=block_type, properties=properties, children=tuple(children))
        return block, issues

    def _fields(
        self,
        specs: tuple[PropSpec, ...],
        raw: Mapping[str, Any],
        *,
        owner: str,
        path: str,
        issues: list[Issue],
    ) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for spec in specs:
            location = f"{path}.{spec.name}"
            value = raw.get(spec.name)
            if value is None:
                result[spec.name] = spec.default_value()
                if spec.required:
                    issues.append(
                        Issue(
                            code="schema_default",
                            stage=STAGE,
                            message=f"Missing required property {spec.name!r} filled with default",
                            path=location,
                        )
                    )
                continue
            try:
                result[spec.name] = self._coerce(spec, value, owner=owner, path=location, issues=issues)
            except SchemaViolation as exc:
                result[spec.name] = spec.default_value()
                issues.append(Issue(code="schema_violation", stage=STAGE, message=str(exc), path=location))

        known = {spec.name for spec in specs}
        for name in sorted(set(raw) - known, key=str):
            issues.append(
                Issue(
                    code="schema_dropped",
                    stage=STAGE,
                    message=f"Dropped property {name!r} outside the {owner} schema",
                    path=f"{path}.{name}",
                )
            )
        return result

    def _coerce(self, spec: PropSpec, value: Any, *, owner: str, path: str, issues: list[Issue]) -> Any:
        if spec.kind != "list":
            coerced, changed = _coerce_scalar(spec, value, owner)
            if changed:
                issues.append(
                    Issue(
                        code="schema_coerced",
                        stage=STAGE,
                        message=f"Coerced {spec.name!r} from {type(value).__name__} to {spec.kind}",
                        path=path,
                    )
                )
            return coerced

        if isinstance(value, tuple):
            value = list(value)
        if not isinstance(value, list):
            issues.append(
                Issue(
                    code="schema_coerced",
                    stage=STAGE,
                    message=f"Wrapped single {type(value).__name__} value of {spec.name!r} in a list",
                    path=path,
                )
            )
            value = [value]
        if not spec.fields:
            return value

        items: list[dict[str, Any]] = []
        for position, item in enumerate(value):
            location = f"{path}[{position}]"
            if isinstance(item, str) and spec.fields[0].required:
                issues.append(
                    Issue(
                        code="schema_coerced",
                        stage=STAGE,
                        message=f"Read text item as {spec.fields[0].name!r}",
                        path=location,
                    )
                )
                item = {spec.fields[0].name: item}
            if not isinstance(item, Mapping):
                issues.append(
                    Issue(
                        code="schema_dropped",
                        stage=STAGE,
                        message=f"Dropped {type(item).__name__} item of {spec.name!r}",
                        path=location,
                    )
                )
                continue
            items.append(self._fields(spec.fields, item, owner=owner, path=location, issues=issues))
        return items
