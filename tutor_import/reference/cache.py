from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from ..errors import ImportFatalError
from ..models.reference import ReferenceEntity, ReferenceKind

"""Per-session reference data cache.

One ReferenceCache is built per import and passed explicitly to the validator.
Each of the four collections loads independently: a failing loader leaves that
collection empty and unavailable (resolution against it yields "no match"),
while the others still load. Only when every loader fails is the batch aborted.
"""

__all__ = [
    "ReferenceDataUnavailable",
    "ReferenceCollection",
    "ReferenceCache",
    "Loader",
    "entity_from_row",
    "load_reference_cache",
]

logger = logging.getLogger(__name__)

Loader = Callable[[], Iterable[Mapping[str, Any]]]


class ReferenceDataUnavailable(ImportFatalError):
    """None of the reference collections could be loaded."""


@dataclass(frozen=True)
class ReferenceCollection:
    kind: ReferenceKind
    entities: tuple[ReferenceEntity, ...] = ()
    available: bool = True
    error: str | None = None
    _by_id: dict[str, ReferenceEntity] = field(default_factory=dict, repr=False, compare=False)
    _by_parent: dict[str, tuple[ReferenceEntity, ...]] = field(
        default_factory=dict, repr=False, compare=False
    )

    @classmethod
    def build(cls, kind: ReferenceKind, entities: Iterable[ReferenceEntity]) -> ReferenceCollection:
        items = tuple(entities)
        by_id = {e.id: e for e in items}
        grouped: dict[str, list[ReferenceEntity]] = {}
        for e in items:
            if e.parent_id is not None:
                grouped.setdefault(e.parent_id, []).append(e)
        by_parent = {k: tuple(v) for k, v in grouped.items()}
        return cls(kind=kind, entities=items, _by_id=by_id, _by_parent=by_parent)

    @classmethod
    def unavailable(cls, kind: ReferenceKind, error: str) -> ReferenceCollection:
        return cls(kind=kind, available=False, error=error)

    def get(self, entity_id: str | None) -> ReferenceEntity | None:
        if entity_id is None:
            return None
        return self._by_id.get(entity_id)

    def children_of(self, parent_id: str | None) -> tuple[ReferenceEntity, ...]:
        if parent_id is None:
            return ()
        return self._by_parent.get(parent_id, ())

    def __len__(self) -> int:
        return len(self.entities)


@dataclass(frozen=True)
class ReferenceCache:
    provinces: ReferenceCollection
    cities: ReferenceCollection
    banks: ReferenceCollection
    subjects: ReferenceCollection

    def collection(self, kind: ReferenceKind) -> ReferenceCollection:
        return {
            ReferenceKind.PROVINCE: self.provinces,
            ReferenceKind.CITY: self.cities,
            ReferenceKind.BANK: self.banks,
            ReferenceKind.SUBJECT: self.subjects,
        }[kind]

    @property
    def unavailable_kinds(self) -> list[ReferenceKind]:
        return [k for k in ReferenceKind if not self.collection(k).available]

    @classmethod
    def from_entities(
        cls,
        provinces: Iterable[ReferenceEntity] = (),
        cities: Iterable[ReferenceEntity] = (),
        banks: Iterable[ReferenceEntity] = (),
        subjects: Iterable[ReferenceEntity] = (),
    ) -> ReferenceCache:
        return cls(
            provinces=ReferenceCollection.build(ReferenceKind.PROVINCE, provinces),
            cities=ReferenceCollection.build(ReferenceKind.CITY, cities),
            banks=ReferenceCollection.build(ReferenceKind.BANK, banks),
            subjects=ReferenceCollection.build(ReferenceKind.SUBJECT, subjects),
        )


def _first(row: Mapping[str, Any], *keys: str) -> str | None:
    for k in keys:
        v = row.get(k)
        if v is None:
            continue
        text = str(v).strip()
        if text:
            return text
    return None


def entity_from_row(row: Mapping[str, Any]) -> ReferenceEntity | None:
    """Normalize one source row; rows without id or name yield None."""
    entity_id = _first(row, "id")
    name = _first(row, "name", "displayName", "display_name")
    if entity_id is None or name is None:
        return None
    return ReferenceEntity(
        id=entity_id,
        name=name,
        local_name=_first(row, "local_name", "localName"),
        parent_id=_first(row, "parent_id", "parentId"),
        alternate_name=_first(row, "alternate_name", "alternateName"),
    )


def _load_collection(kind: ReferenceKind, loader: Loader) -> ReferenceCollection:
    try:
        raw_rows = list(loader())
    except Exception as e:  # any backing-store failure degrades to "no match"
        logger.warning("reference: %s unavailable (%s)", kind.value, e)
        return ReferenceCollection.unavailable(kind, str(e))

    entities: list[ReferenceEntity] = []
    skipped = 0
    for raw in raw_rows:
        entity = entity_from_row(raw)
        if entity is None:
            skipped += 1
            continue
        entities.append(entity)
    if skipped:
        logger.warning("reference: %s skipped %d row(s) without id or name", kind.value, skipped)
    logger.debug("reference: %s loaded %d entities", kind.value, len(entities))
    return ReferenceCollection.build(kind, entities)


def load_reference_cache(loaders: Mapping[ReferenceKind, Loader]) -> ReferenceCache:
    """Load the four collections independently.

    A kind missing from ``loaders`` counts as a failed load.

    Raises
    ------
    ReferenceDataUnavailable
        when no collection could be loaded at all.
    """
    collections: dict[ReferenceKind, ReferenceCollection] = {}
    for kind in ReferenceKind:
        loader = loaders.get(kind)
        if loader is None:
            logger.warning("reference: no loader configured for %s", kind.value)
            collections[kind] = ReferenceCollection.unavailable(kind, "no loader configured")
            continue
        collections[kind] = _load_collection(kind, loader)

    if not any(c.available for c in collections.values()):
        details = "; ".join(f"{k.value}: {c.error}" for k, c in collections.items())
        raise ReferenceDataUnavailable(f"reference data unavailable ({details})")

    return ReferenceCache(
        provinces=collections[ReferenceKind.PROVINCE],
        cities=collections[ReferenceKind.CITY],
        banks=collections[ReferenceKind.BANK],
        subjects=collections[ReferenceKind.SUBJECT],
    )
