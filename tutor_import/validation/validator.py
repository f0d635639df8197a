from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Any

from ..config.loader import MatchingConfig
from ..fields.catalog import FIELD_CATALOG, FIELDS_BY_NAME, field_values, map_headers
from ..matching.resolver import Ranker, SimilarityRanker, resolve_many, top_match
from ..models.record import ParsedRecord
from ..models.reference import FieldMatch, ReferenceEntity, ReferenceKind
from ..models.upload import UploadedRow
from ..reference.cache import ReferenceCache
from .coerce import IssueSeverity, age_on, coerce_value

"""Record validator & mapper: UploadedRow -> ParsedRecord.

Steps, in order:
1. map upload headers onto catalog fields
2. coerce each value by field type
3. resolve province / city / bank / subject text against the reference cache
4. cross-field business rules
5. verdict: a record is valid iff it has no errors

Pure: no I/O, the reference cache is only read.
"""

__all__ = [
    "ValidationThresholds",
    "ValidationContext",
    "validate_row",
    "validate_rows",
]

_ERN_PATTERN = re.compile(r"^[A-Z0-9]{8,}$")


@dataclass(frozen=True)
class ValidationThresholds:
    reject_floor: int = 50
    location_confidence: int = 90
    bank_confidence: int = 90
    subject_confidence: int = 75
    min_age: int = 17
    max_age: int = 70

    @classmethod
    def from_config(cls, matching: MatchingConfig) -> ValidationThresholds:
        return cls(
            reject_floor=matching.reject_floor,
            location_confidence=matching.location_confidence,
            bank_confidence=matching.bank_confidence,
            subject_confidence=matching.subject_confidence,
        )


@dataclass(frozen=True)
class ValidationContext:
    """Everything a row is validated against, shared read-only by all rows of one import."""
    cache: ReferenceCache
    ranker: Ranker = field(default_factory=SimilarityRanker)
    thresholds: ValidationThresholds = field(default_factory=ValidationThresholds)
    today: date = field(default_factory=date.today)


class _Issues:
    def __init__(self) -> None:
        self.errors: list[str] = []
        self.warnings: list[str] = []

    def add(self, severity: IssueSeverity, message: str) -> None:
        (self.errors if severity is IssueSeverity.ERROR else self.warnings).append(message)


def _label(name: str) -> str:
    return FIELDS_BY_NAME[name].label


def _coerce_fields(raw: Mapping[str, str], issues: _Issues) -> dict[str, Any]:
    mapped: dict[str, Any] = {}
    for spec in FIELD_CATALOG:
        text = (raw.get(spec.name) or "").strip()
        if not text:
            if spec.required:
                issues.errors.append(f"{spec.label} is required")
            continue
        result = coerce_value(text, spec)
        if result.value is not None:
            mapped[spec.name] = result.value
        if result.problem:
            severity = result.severity or (
                IssueSeverity.ERROR if spec.required else IssueSeverity.WARNING
            )
            issues.add(severity, f"{spec.label}: {result.problem}")
    return mapped


class _Resolver:
    """Single-value reference resolution with the warning policy applied."""

    def __init__(self, context: ValidationContext, issues: _Issues, mapped: dict[str, Any],
                 names: dict[str, str]) -> None:
        self.ctx = context
        self.issues = issues
        self.mapped = mapped
        self.names = names

    def rank(self, kind: ReferenceKind, text: str,
             candidates: Sequence[ReferenceEntity]) -> tuple[FieldMatch | None, FieldMatch | None]:
        return top_match(self.ctx.ranker, text, candidates, kind, self.ctx.thresholds.reject_floor)

    def record(self, kind: ReferenceKind, field_name: str, id_field: str, text: str,
               match: FieldMatch | None, confidence: int, tie: FieldMatch | None = None) -> None:
        label = _label(field_name)
        if match is None:
            if not self.ctx.cache.collection(kind).available:
                self.issues.warnings.append(
                    f"{label}: {kind.value} reference data unavailable; '{text}' will be stored verbatim"
                )
            else:
                self.issues.warnings.append(
                    f"{label}: no match found for '{text}'; it will be stored verbatim"
                )
            return
        self.mapped[id_field] = match.reference_id
        self.names[field_name] = match.matched_name
        if tie is not None:
            self.issues.warnings.append(
                f"{label}: '{text}' is ambiguous: '{match.matched_name}' and '{tie.matched_name}' "
                f"both scored {match.similarity_score}%; '{match.matched_name}' was used"
            )
        elif match.similarity_score < confidence:
            self.issues.warnings.append(
                f"{label}: '{text}' matched '{match.matched_name}' with low confidence "
                f"({match.similarity_score}%)"
            )

    def resolve(self, kind: ReferenceKind, field_name: str, id_field: str,
                confidence: int) -> FieldMatch | None:
        text = self.mapped.get(field_name)
        if not text:
            return None
        match, tie = self.rank(kind, text, self.ctx.cache.collection(kind).entities)
        self.record(kind, field_name, id_field, text, match, confidence, tie)
        return match

    def resolve_city(self, field_name: str, id_field: str,
                     province: FieldMatch | None) -> FieldMatch | None:
        text = self.mapped.get(field_name)
        if not text:
            return None
        cities = self.ctx.cache.cities
        match = tie = None
        if province is not None:
            scoped = cities.children_of(province.reference_id)
            if scoped:
                match, tie = self.rank(ReferenceKind.CITY, text, scoped)
        if match is None:
            match, tie = self.rank(ReferenceKind.CITY, text, cities.entities)
        self.record(ReferenceKind.CITY, field_name, id_field, text, match,
                    self.ctx.thresholds.location_confidence, tie)
        if match is not None and province is not None:
            city = cities.get(match.reference_id)
            if city is not None and city.parent_id and city.parent_id != province.reference_id:
                self.issues.warnings.append(
                    f"{_label(field_name)}: '{match.matched_name}' does not belong to province "
                    f"'{province.matched_name}'"
                )
        return match


def _resolve_programs(context: ValidationContext, issues: _Issues, mapped: dict[str, Any],
                      names: dict[str, str]) -> None:
    tokens = mapped.get("selectedPrograms") or []
    if not tokens:
        return
    label = _label("selectedPrograms")
    result = resolve_many(
        context.ranker,
        tokens,
        context.cache.subjects.entities,
        ReferenceKind.SUBJECT,
        context.thresholds.reject_floor,
    )
    mapped["selectedProgramIds"] = result.reference_ids
    mapped["unmatchedPrograms"] = list(result.unmatched)
    if result.matched:
        names["selectedPrograms"] = ", ".join(
            dict.fromkeys(m.matched_name for _, m in result.matched)
        )
    for token, m in result.matched:
        if m.similarity_score < context.thresholds.subject_confidence:
            issues.warnings.append(
                f"{label}: '{token}' matched '{m.matched_name}' with low confidence "
                f"({m.similarity_score}%)"
            )
    for token in result.unmatched:
        issues.warnings.append(
            f"{label}: '{token}' did not match any known subject; "
            f"it will be stored as an additional subject"
        )


def _cross_field_rules(context: ValidationContext, issues: _Issues, mapped: dict[str, Any]) -> None:
    birth = mapped.get("tanggalLahir")
    if birth:
        age = age_on(date.fromisoformat(birth), context.today)
        lo, hi = context.thresholds.min_age, context.thresholds.max_age
        if not lo <= age <= hi:
            issues.warnings.append(
                f"{_label('tanggalLahir')}: age {age} is outside the expected range {lo} to {hi}"
            )

    if mapped.get("alamatSamaDenganKTP") is False:
        missing = [_label(n) for n in ("provinsiKTP", "alamatLengkapKTP") if not mapped.get(n)]
        if missing:
            issues.warnings.append(
                f"KTP address differs from domicile but {' and '.join(missing)} "
                f"{'is' if len(missing) == 1 else 'are'} empty"
            )

    entry, grad = mapped.get("tahunMasuk"), mapped.get("tahunLulus")
    if entry is not None and grad is not None and grad < entry:
        issues.warnings.append(
            f"{_label('tahunLulus')} {grad} is earlier than {_label('tahunMasuk')} {entry}"
        )

    new_max, total_max = mapped.get("maksimalSiswaBaru"), mapped.get("maksimalTotalSiswa")
    if new_max is not None and total_max is not None and new_max > total_max:
        issues.warnings.append(
            f"{_label('maksimalSiswaBaru')} ({new_max}) exceeds "
            f"{_label('maksimalTotalSiswa')} ({total_max})"
        )

    has_account, has_bank = bool(mapped.get("nomorRekening")), bool(mapped.get("namaBank"))
    if has_account and not has_bank:
        issues.warnings.append(f"{_label('nomorRekening')} given without {_label('namaBank')}")
    elif has_bank and not has_account:
        issues.warnings.append(f"{_label('namaBank')} given without {_label('nomorRekening')}")

    ern = mapped.get("trn")
    if ern and not _ERN_PATTERN.match(ern):
        issues.errors.append(
            f"{_label('trn')}: '{ern}' must be at least 8 uppercase letters or digits"
        )


def validate_row(
    row: UploadedRow,
    context: ValidationContext,
    header_map: Mapping[str, str] | None = None,
) -> ParsedRecord:
    """Validate and map one uploaded row.

    ``header_map`` (field -> header) may be passed in when validating many rows
    of the same file so header lookup runs once.
    """
    if header_map is None:
        header_map = map_headers(row.values.keys())
    raw = field_values(row.values, header_map)
    issues = _Issues()
    names: dict[str, str] = {}

    mapped = _coerce_fields(raw, issues)

    resolver = _Resolver(context, issues, mapped, names)
    loc = context.thresholds.location_confidence
    province = resolver.resolve(ReferenceKind.PROVINCE, "provinsiDomisili", "provinsiDomisiliId", loc)
    resolver.resolve_city("kotaKabupatenDomisili", "kotaKabupatenDomisiliId", province)
    ktp_province = resolver.resolve(ReferenceKind.PROVINCE, "provinsiKTP", "provinsiKTPId", loc)
    resolver.resolve_city("kotaKabupatenKTP", "kotaKabupatenKTPId", ktp_province)
    resolver.resolve(ReferenceKind.BANK, "namaBank", "namaBankId", context.thresholds.bank_confidence)
    _resolve_programs(context, issues, mapped, names)

    _cross_field_rules(context, issues, mapped)

    return ParsedRecord(
        row_number=row.row_number,
        original_fields=dict(row.values),
        mapped_fields=mapped,
        errors=tuple(issues.errors),
        warnings=tuple(issues.warnings),
        resolved_names=names,
    )


def validate_rows(rows: Iterable[UploadedRow], context: ValidationContext) -> list[ParsedRecord]:
    """Validate all rows in file order, adding the in-file duplicate email rule."""
    records: list[ParsedRecord] = []
    header_map: Mapping[str, str] | None = None
    seen_emails: dict[str, int] = {}
    for row in rows:
        if header_map is None:
            header_map = map_headers(row.values.keys())
        record = validate_row(row, context, header_map)
        email = record.mapped_fields.get("email")
        if email:
            first = seen_emails.setdefault(email, record.row_number)
            if first != record.row_number:
                record = replace(
                    record,
                    errors=record.errors
                    + (f"{_label('email')}: '{email}' already used in row {first}",),
                )
        records.append(record)
    return records
