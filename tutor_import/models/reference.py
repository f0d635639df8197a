from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

"""Reference entities (provinces, cities, banks, subjects) and fuzzy match results."""

__all__ = [
    "ReferenceKind",
    "ReferenceEntity",
    "MatchType",
    "FieldMatch",
]


class ReferenceKind(Enum):
    """The four lookup sets free text is resolved against."""
    PROVINCE = "provinces"
    CITY = "cities"
    BANK = "banks"
    SUBJECT = "subjects"


@dataclass(frozen=True)
class ReferenceEntity:
    """Canonical lookup record, immutable for the duration of one import."""
    id: str
    name: str
    local_name: str | None = None
    parent_id: str | None = None  # a city's owning province
    alternate_name: str | None = None

    @property
    def names(self) -> tuple[str, ...]:
        """All non-empty names a query may be compared with (name first)."""
        out: list[str] = []
        for n in (self.name, self.local_name, self.alternate_name):
            if n and n not in out:
                out.append(n)
        return tuple(out)


class MatchType(Enum):
    EXACT = "exact"
    ALIAS = "alias"
    CORE = "core"  # equal after stripping administrative prefixes/suffixes
    FUZZY = "fuzzy"


@dataclass(frozen=True)
class FieldMatch:
    """One scored candidate for a free-text input."""
    reference_id: str
    matched_name: str
    similarity_score: int  # 0..100
    edit_distance: int  # normalized query vs matched name, used for tie-breaking
    match_type: MatchType = MatchType.FUZZY

    def to_dict(self) -> dict[str, object]:
        return {
            "referenceId": self.reference_id,
            "matchedName": self.matched_name,
            "similarityScore": self.similarity_score,
        }
