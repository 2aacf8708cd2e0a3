"""Severity enumeration with lookup tables for ranking and display."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from types import MappingProxyType
from typing import Final


class AnnotationLevel(StrEnum):
    """Three-level scale used by external annotation consumers."""

    ERROR = "error"
    WARNING = "warning"
    NOTICE = "notice"


class Severity(StrEnum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    MODERATE = "moderate"
    LOW = "low"
    ERROR = "error"
    UNKNOWN = "unknown"

    @property
    def priority(self) -> int:
        return _TRAITS[self].priority

    @property
    def label(self) -> str:
        return _TRAITS[self].label

    @property
    def color(self) -> str:
        return _TRAITS[self].color

    @property
    def annotation_level(self) -> AnnotationLevel:
        return _TRAITS[self].annotation_level

    def is_at_least(self, threshold: Severity) -> bool:
        """Inclusive priority comparison; ``moderate`` ranks equal to ``medium``."""
        return self.priority >= threshold.priority

    @classmethod
    def parse(cls, value: str | Severity | None) -> Severity:
        """Case-insensitive lookup that falls back to ``unknown``."""
        if isinstance(value, Severity):
            return value
        if not isinstance(value, str):
            return cls.UNKNOWN
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.UNKNOWN

    @classmethod
    def sorted_by_priority(cls) -> tuple[Severity, ...]:
        """All members, most severe first; ties keep declaration order."""
        return tuple(sorted(cls, key=lambda member: member.priority, reverse=True))


@dataclass(frozen=True, slots=True)
class _SeverityTraits:
    priority: int
    label: str
    color: str
    annotation_level: AnnotationLevel


_TRAITS: Final = MappingProxyType(
    {
        Severity.CRITICAL: _SeverityTraits(5, "Critical", "#FF0000", AnnotationLevel.ERROR),
        Severity.HIGH: _SeverityTraits(4, "High", "#FF6B6B", AnnotationLevel.ERROR),
        Severity.MEDIUM: _SeverityTraits(3, "Medium", "#FFA500", AnnotationLevel.WARNING),
        Severity.MODERATE: _SeverityTraits(3, "Moderate", "#FFA500", AnnotationLevel.WARNING),
        Severity.LOW: _SeverityTraits(2, "Low", "#FFD700", AnnotationLevel.NOTICE),
        Severity.ERROR: _SeverityTraits(1, "Error", "#DC143C", AnnotationLevel.NOTICE),
        Severity.UNKNOWN: _SeverityTraits(0, "Unknown", "#808080", AnnotationLevel.NOTICE),
    }
)


__all__ = ["AnnotationLevel", "Severity"]
