"""Domain errors raised across the import pipeline."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class BundleUnreadable(Exception):
    """Fatal job-level error: the bundle cannot be read or holds nothing."""

    source: str
    message: str

    def __str__(self) -> str:
        return f"{self.message} (source={self.source})"


@dataclass(slots=True)
class AdapterExtractionFailed(Exception):
    """A platform adapter could not translate one entity."""

    source_id: str
    platform: str
    message: str

    def __str__(self) -> str:
        return f"{self.message} (source_id={self.source_id}, platform={self.platform})"


@dataclass(slots=True)
class ClassificationUnavailable(RuntimeError):
    """The content-understanding service gave no usable answer."""

    model: str
    message: str

    def __str__(self) -> str:
        return f"{self.message} (model={self.model})"


@dataclass(slots=True)
class SchemaViolation(Exception):
    """A property value cannot be coerced into its declared shape."""

    block_type: str
    prop: str
    message: str

    def __str__(self) -> str:
        return f"{self.message} (block_type={self.block_type}, prop={self.prop})"


@dataclass(slots=True)
class EmptyPage(Exception):
    """A composed page would carry no content blocks."""

    source_id: str

    def __str__(self) -> str:
        return f"Page has no content blocks (source_id={self.source_id})"
