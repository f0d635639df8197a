from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from ..config.loader import PersistenceConfig
from ..db.store import StoreError, StoreUnavailableError, TutorStore
from ..logging.error_log import ErrorLogBuffer
from ..models.outcome import BatchResult, BatchStatus, OutcomeKind, RecordOutcome
from ..models.record import ParsedRecord
from .progress import RecordProgress

"""Bulk persistence orchestrator.

Valid records are written one at a time, in file order, each in its own
transaction:

1. duplicate-email check and user code assignment
2. identity insert; failure rolls the row back and nothing else is written
3. dependent parts, each behind a savepoint; a failing part is recorded in
   failed_parts and the remaining parts still run
4. tutor role assignment
5. commit; the outcome is SUCCESS, or PARTIAL when any part failed

Partial graphs are committed on purpose ("best-effort graph construction") and
reported as PARTIAL. A lost connection aborts the batch (ABORTED_FATAL); the
wall-clock budget is checked before each record (ABORTED_TIMEOUT).
"""

__all__ = [
    "USER_CODE_PREFIX",
    "PersistenceSettings",
    "generate_user_code",
    "build_identity",
    "build_parts",
    "persist_records",
]

logger = logging.getLogger(__name__)

USER_CODE_PREFIX = "TUT"


@dataclass(frozen=True)
class PersistenceSettings:
    batch_timeout_seconds: float | None = 600.0
    max_code_attempts: int = 5
    tutor_role_name: str = "tutor"
    default_status: str = "registration"
    source_name: str = "<upload>"  # file name recorded in the error log

    @classmethod
    def from_config(cls, cfg: PersistenceConfig, source_name: str = "<upload>") -> PersistenceSettings:
        return cls(
            batch_timeout_seconds=cfg.batch_timeout_seconds,
            max_code_attempts=cfg.max_code_attempts,
            tutor_role_name=cfg.tutor_role_name,
            default_status=cfg.default_status,
            source_name=source_name,
        )


class _RowFailure(Exception):
    """The current row cannot be written; carries the error-log classification."""

    def __init__(self, error_type: str, message: str) -> None:
        super().__init__(message)
        self.error_type = error_type
        self.message = message


def generate_user_code() -> str:
    return USER_CODE_PREFIX + uuid.uuid4().hex[:8].upper()


def _compact(values: Mapping[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in values.items() if v is not None and v != "" and v != []}


def _has_any(fields: Mapping[str, Any], names: Iterable[str]) -> bool:
    return any(fields.get(n) not in (None, "", []) for n in names)


def _joined(value: Any) -> Any:
    if isinstance(value, list):
        return ", ".join(str(v) for v in value) or None
    return value


def _int(value: Any) -> int | None:
    return int(value) if value is not None else None


# ---------------------------------------------------------------------------
# Record builders: mapped fields -> column dicts per logical table
# ---------------------------------------------------------------------------

def build_identity(fields: Mapping[str, Any], user_code: str) -> dict[str, Any]:
    return _compact({
        "user_code": user_code,
        "email": fields["email"],
        "phone": fields.get("noHp1"),
        "user_status": fields.get("userStatus") or "active",
        "account_type": "tutor",
        "phone_verified": False,
        "email_verified": False,
        "two_factor_enabled": False,
        "marketing_consent": False,
    })


def _profile(fields: Mapping[str, Any], settings: PersistenceSettings) -> list[dict[str, Any]]:
    return [{
        "full_name": fields.get("namaLengkap"),
        "nick_name": fields.get("namaPanggilan"),
        "date_of_birth": fields.get("tanggalLahir"),
        "gender": fields.get("jenisKelamin"),
        "mobile_phone_2": fields.get("noHp2"),
        "whatsapp_number": fields.get("whatsappNumber"),
        "languages_mastered": fields.get("languagesMastered"),
        "preferred_language": fields.get("preferredLanguage"),
        "headline": fields.get("headline"),
        "bio": fields.get("deskripsiDiri"),
        "motivation_as_tutor": fields.get("motivasiMenjadiTutor"),
        "social_media_1": fields.get("socialMedia1"),
        "social_media_2": fields.get("socialMedia2"),
        "emergency_contact_name": fields.get("emergencyContactName"),
        "emergency_contact_phone": fields.get("emergencyContactPhone"),
        "emergency_contact_relationship": fields.get("emergencyContactRelationship"),
        "education_level": fields.get("statusAkademik"),
        "university": fields.get("namaUniversitasS1") or fields.get("namaUniversitas"),
        "major": fields.get("jurusanS1") or fields.get("fakultas"),
        "gpa": fields.get("ipk"),
        "graduation_year": _int(fields.get("tahunLulus")),
    }]


def _demographics(fields: Mapping[str, Any], settings: PersistenceSettings) -> list[dict[str, Any]]:
    if not fields.get("agama"):
        return []
    return [{"religion": fields["agama"]}]


_DOMICILE_FIELDS = (
    "provinsiDomisili", "kotaKabupatenDomisili", "kecamatanDomisili",
    "kelurahanDomisili", "alamatLengkapDomisili", "kodePosDomisili",
)
_KTP_FIELDS = (
    "provinsiKTP", "kotaKabupatenKTP", "kecamatanKTP",
    "kelurahanKTP", "alamatLengkapKTP", "kodePosKTP",
)


def _address(fields: Mapping[str, Any], suffix: str) -> dict[str, Any]:
    province_id = fields.get(f"provinsi{suffix}Id")
    city_id = fields.get(f"kotaKabupaten{suffix}Id")
    return {
        "province_id": province_id,
        "city_id": city_id,
        # unresolved references are kept as typed
        "province_name": None if province_id else fields.get(f"provinsi{suffix}"),
        "city_name": None if city_id else fields.get(f"kotaKabupaten{suffix}"),
        "district_name": fields.get(f"kecamatan{suffix}"),
        "village_name": fields.get(f"kelurahan{suffix}"),
        "street_address": fields.get(f"alamatLengkap{suffix}"),
        "postal_code": fields.get(f"kodePos{suffix}"),
    }


def _domicile_address(fields: Mapping[str, Any], settings: PersistenceSettings) -> list[dict[str, Any]]:
    if not _has_any(fields, _DOMICILE_FIELDS):
        return []
    row = _address(fields, "Domisili")
    row.update(
        address_type="domicile",
        address_label="Alamat Domisili",
        is_primary=True,
        is_same_as_domicile=bool(fields.get("alamatSamaDenganKTP")),
    )
    return [row]


def _ktp_address(fields: Mapping[str, Any], settings: PersistenceSettings) -> list[dict[str, Any]]:
    if fields.get("alamatSamaDenganKTP") or not _has_any(fields, _KTP_FIELDS):
        return []
    row = _address(fields, "KTP")
    row.update(address_type="legal", address_label="Alamat KTP", is_primary=False)
    return [row]


def _banking(fields: Mapping[str, Any], settings: PersistenceSettings) -> list[dict[str, Any]]:
    if not _has_any(fields, ("namaNasabah", "nomorRekening", "namaBank")):
        return []
    return [{
        "account_holder_name": fields.get("namaNasabah"),
        "account_number": fields.get("nomorRekening"),
        "bank_id": fields.get("namaBankId"),
        "bank_name": fields.get("namaBank"),
        "is_verified": False,
    }]


def _educator_details(fields: Mapping[str, Any], settings: PersistenceSettings) -> list[dict[str, Any]]:
    return [{
        "onboarding_status": "pending_profile",
        "background_check_status": "not_started",
        "tutor_registration_number": fields.get("trn"),
        "teaching_experience": fields.get("pengalamanMengajar"),
        "faculty": fields.get("fakultasS1"),
        "high_school": fields.get("namaSMA"),
        "high_school_major": fields.get("jurusanSMA"),
        "vocational_school_detail": fields.get("jurusanSMKDetail"),
        "high_school_graduation_year": _int(fields.get("tahunLulusSMA")),
        "entry_year": _int(fields.get("tahunMasuk")),
        "alternative_institution_name": fields.get("namaInstitusi"),
        "expertise_field": fields.get("bidangKeahlian"),
        "learning_experience": fields.get("pengalamanBelajar"),
        "special_skills": fields.get("keahlianSpesialisasi"),
        "other_skills": fields.get("keahlianLainnya"),
        "other_relevant_experience": fields.get("pengalamanLainRelevan"),
        "academic_achievements": fields.get("prestasiAkademik"),
        "non_academic_achievements": fields.get("prestasiNonAkademik"),
        "certifications_training": fields.get("sertifikasiPelatihan"),
    }]


def _management(fields: Mapping[str, Any], settings: PersistenceSettings) -> list[dict[str, Any]]:
    return [{
        "status_tutor": fields.get("statusTutor") or settings.default_status,
        "staff_notes": fields.get("staffNotes"),
        "additional_screening": fields.get("additionalScreening"),
        "identity_verification_status": fields.get("statusVerifikasiIdentitas") or "pending",
        "education_verification_status": fields.get("statusVerifikasiPendidikan") or "pending",
    }]


_AVAILABILITY_FIELDS = (
    "statusMenerimaSiswa", "maksimalSiswaBaru", "maksimalTotalSiswa", "usiaTargetSiswa",
    "catatanAvailability", "availableSchedule", "teachingMethods", "hourlyRate",
    "teachingRadiusKm", "transportasiTutor", "locationNotes", "titikLokasiLat",
    "titikLokasiLng", "alamatTitikLokasi",
)


def _availability(fields: Mapping[str, Any], settings: PersistenceSettings) -> list[dict[str, Any]]:
    if not _has_any(fields, _AVAILABILITY_FIELDS):
        return []
    return [{
        "availability_status": fields.get("statusMenerimaSiswa") or "available",
        "max_new_students_per_week": _int(fields.get("maksimalSiswaBaru")),
        "max_total_students": _int(fields.get("maksimalTotalSiswa")),
        "target_student_ages": fields.get("usiaTargetSiswa"),
        "availability_notes": fields.get("catatanAvailability"),
        "available_schedule": fields.get("availableSchedule"),
        "teaching_methods": fields.get("teachingMethods"),
        "hourly_rate": fields.get("hourlyRate"),
        "teaching_radius_km": fields.get("teachingRadiusKm"),
        "transportation_method": fields.get("transportasiTutor"),
        "location_notes": fields.get("locationNotes"),
        "teaching_center_lat": fields.get("titikLokasiLat"),
        "teaching_center_lng": fields.get("titikLokasiLng"),
        "teaching_center_location": fields.get("alamatTitikLokasi"),
    }]


_PREFERENCE_FIELDS = (
    "studentLevelPreferences", "specialNeedsCapable", "groupClassWilling",
    "onlineTeachingCapable", "techSavviness", "gmeetExperience", "presensiUpdateCapability",
)


def _teaching_preferences(fields: Mapping[str, Any], settings: PersistenceSettings) -> list[dict[str, Any]]:
    if not _has_any(fields, _PREFERENCE_FIELDS):
        return []
    return [{
        "teaching_styles": fields.get("teachingMethods"),
        "student_level_preferences": fields.get("studentLevelPreferences"),
        "special_needs_capability": fields.get("specialNeedsCapable") or "tidak",
        "group_class_willingness": fields.get("groupClassWilling") or "tidak",
        "online_teaching_capability": fields.get("onlineTeachingCapable") or "tidak_bisa",
        "tech_savviness_level": fields.get("techSavviness") or "medium",
        "gmeet_experience_level": fields.get("gmeetExperience") or "pemula",
        "attendance_update_capability": fields.get("presensiUpdateCapability") or "tidak_bisa",
    }]


_PERSONALITY_FIELDS = (
    "tutorPersonalityType", "communicationStyle", "teachingPatienceLevel",
    "studentMotivationAbility", "scheduleFlexibilityLevel",
)


def _personality_traits(fields: Mapping[str, Any], settings: PersistenceSettings) -> list[dict[str, Any]]:
    if not _has_any(fields, _PERSONALITY_FIELDS):
        return []
    return [{
        "personality_type": _joined(fields.get("tutorPersonalityType")),
        "communication_style": _joined(fields.get("communicationStyle")),
        "teaching_patience_level": _int(fields.get("teachingPatienceLevel")),
        "student_motivation_ability": _int(fields.get("studentMotivationAbility")),
        "schedule_flexibility_level": _int(fields.get("scheduleFlexibilityLevel")) or 5,
    }]


def _program_mappings(fields: Mapping[str, Any], settings: PersistenceSettings) -> list[dict[str, Any]]:
    return [
        {
            "program_id": program_id,
            "competency_level": "intermediate",
            "is_primary_subject": False,
            "confidence_score": 0.5,
        }
        for program_id in fields.get("selectedProgramIds") or []
    ]


def _additional_subjects(fields: Mapping[str, Any], settings: PersistenceSettings) -> list[dict[str, Any]]:
    names = list(fields.get("unmatchedPrograms") or [])
    other = fields.get("mataPelajaranLainnya")
    if other:
        names.append(other)
    return [
        {"subject_name": name, "target_level": "all", "approval_status": "pending"}
        for name in dict.fromkeys(names)
    ]


PartBuilder = Callable[[Mapping[str, Any], PersistenceSettings], list[dict[str, Any]]]

# (part name, logical table, builder) in write order
PARTS: tuple[tuple[str, str, PartBuilder], ...] = (
    ("profile", "profile", _profile),
    ("demographics", "demographics", _demographics),
    ("domicile_address", "address", _domicile_address),
    ("ktp_address", "address", _ktp_address),
    ("banking", "banking", _banking),
    ("educator_details", "educator_details", _educator_details),
    ("management", "management", _management),
    ("teaching_preferences", "teaching_preferences", _teaching_preferences),
    ("personality_traits", "personality_traits", _personality_traits),
    ("availability", "availability", _availability),
    ("program_mappings", "program_mappings", _program_mappings),
    ("additional_subjects", "additional_subjects", _additional_subjects),
)


def build_parts(fields: Mapping[str, Any], user_id: str,
                settings: PersistenceSettings) -> list[tuple[str, str, list[dict[str, Any]]]]:
    """Dependent records for one tutor: ``[(part, table_key, rows)]``, empty parts left out."""
    parts = []
    for name, table_key, builder in PARTS:
        rows = [{"user_id": user_id, **_compact(r)} for r in builder(fields, settings)]
        if rows:
            parts.append((name, table_key, rows))
    return parts


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------

def _safe_rollback(store: TutorStore, row_number: int) -> None:
    try:
        store.rollback_record()
    except StoreError as e:
        logger.warning("row=%d rollback failed: %s", row_number, e)


def _assign_user_code(fields: Mapping[str, Any], store: TutorStore,
                      settings: PersistenceSettings, warnings: list[str]) -> str:
    supplied = fields.get("userCode") or fields.get("trn")
    if supplied:
        code = str(supplied).strip()
        if not store.user_code_exists(code):
            return code
        warnings.append(f"user code '{code}' already exists; a new code was generated")
    for _ in range(settings.max_code_attempts):
        code = generate_user_code()
        if not store.user_code_exists(code):
            return code
    raise _RowFailure(
        "USER_CODE_ERROR",
        f"could not generate a unique user code after {settings.max_code_attempts} attempts",
    )


def _create_identity(record: ParsedRecord, store: TutorStore, settings: PersistenceSettings,
                     warnings: list[str]) -> tuple[str, str]:
    fields = record.mapped_fields
    email = fields["email"]
    try:
        if store.email_exists(email):
            raise _RowFailure("DUPLICATE_EMAIL", f"email '{email}' is already registered")
        user_code = _assign_user_code(fields, store, settings, warnings)
        user_id = store.create_identity(build_identity(fields, user_code))
    except StoreError as e:
        raise _RowFailure("IDENTITY_CREATE_ERROR", f"failed to create user: {e}") from e
    return user_id, user_code


def _assign_role(store: TutorStore, user_id: str, settings: PersistenceSettings,
                 warnings: list[str], failed: list[str]) -> None:
    try:
        with store.sub_record("role"):
            role_id = store.find_role_id(settings.tutor_role_name)
            if role_id is None:
                warnings.append(f"role '{settings.tutor_role_name}' not found; user has no role")
                return
            store.assign_role(user_id, role_id)
    except StoreError as e:
        failed.append("role")
        warnings.append(f"role not assigned: {e}")


def _persist_one(record: ParsedRecord, store: TutorStore,
                 settings: PersistenceSettings) -> tuple[RecordOutcome, str | None]:
    """Write one tutor graph. Returns the outcome and its error-log type (None for SUCCESS)."""
    row = record.row_number
    warnings: list[str] = []
    store.begin_record(row)
    try:
        user_id, user_code = _create_identity(record, store, settings, warnings)
    except _RowFailure as failure:
        _safe_rollback(store, row)
        return RecordOutcome(row, OutcomeKind.ERROR, message=failure.message,
                             warnings=tuple(warnings)), failure.error_type

    failed: list[str] = []
    for part, table_key, rows in build_parts(record.mapped_fields, user_id, settings):
        try:
            with store.sub_record(part):
                store.insert_rows(table_key, rows)
        except StoreError as e:
            failed.append(part)
            warnings.append(f"{part} not saved: {e}")
            logger.debug("row=%d part=%s failed: %s", row, part, e)
    _assign_role(store, user_id, settings, warnings, failed)

    try:
        store.commit_record()
    except StoreError as e:
        _safe_rollback(store, row)
        return RecordOutcome(row, OutcomeKind.ERROR, message=f"commit failed: {e}",
                             warnings=tuple(warnings)), "COMMIT_ERROR"

    if failed:
        return RecordOutcome(
            row, OutcomeKind.PARTIAL, user_id=user_id, user_code=user_code,
            message=f"saved without: {', '.join(failed)}",
            warnings=tuple(warnings), failed_parts=tuple(failed),
        ), "PARTIAL_GRAPH"
    return RecordOutcome(row, OutcomeKind.SUCCESS, user_id=user_id, user_code=user_code,
                         warnings=tuple(warnings)), None


def persist_records(
    records: Sequence[ParsedRecord],
    store: TutorStore,
    settings: PersistenceSettings | None = None,
    progress: RecordProgress | None = None,
    error_log: ErrorLogBuffer | None = None,
    clock: Callable[[], float] = time.monotonic,
) -> BatchResult:
    """Persist every valid record, in order; invalid records are never attempted.

    Args:
        records: validated rows (invalid ones are skipped, not counted as attempted)
        store: PostgresTutorStore or DryRunStore
        settings: batch budget, code attempts, role name
        progress: optional progress bar, advanced once per attempted record
        error_log: receives one record per ERROR / PARTIAL row and per batch abort
        clock: monotonic seconds source (injectable for timeout tests)

    Returns:
        BatchResult with outcomes in file order.
    """
    settings = settings or PersistenceSettings()
    valid = [r for r in records if r.is_valid]
    outcomes: list[RecordOutcome] = []
    status = BatchStatus.COMPLETED
    fatal_message: str | None = None
    not_attempted: list[int] = []

    start_time = datetime.now(UTC)
    started = clock()

    def log_error(row: int, error_type: str, message: str) -> None:
        if error_log is not None:
            error_log.add(settings.source_name, row, error_type, message)

    for index, record in enumerate(valid):
        budget = settings.batch_timeout_seconds
        if budget is not None and clock() - started >= budget:
            status = BatchStatus.ABORTED_TIMEOUT
            not_attempted = [r.row_number for r in valid[index:]]
            fatal_message = f"batch time budget of {budget:g}s exhausted; {len(not_attempted)} rows not attempted"
            logger.error(fatal_message)
            log_error(-1, "BATCH_TIMEOUT", fatal_message)
            break

        try:
            outcome, error_type = _persist_one(record, store, settings)
        except StoreUnavailableError as e:
            fatal_message = str(e)
            status = BatchStatus.ABORTED_FATAL
            outcome = RecordOutcome(record.row_number, OutcomeKind.ERROR, message=fatal_message)
            outcomes.append(outcome)
            not_attempted = [r.row_number for r in valid[index + 1:]]
            logger.error("row=%d %s; batch aborted, %d rows not attempted",
                         record.row_number, fatal_message, len(not_attempted))
            log_error(record.row_number, "STORE_UNAVAILABLE", fatal_message)
            if progress is not None:
                progress.update(outcome)
            break

        outcomes.append(outcome)
        if outcome.kind is OutcomeKind.ERROR:
            logger.error("row=%d %s", outcome.row_number, outcome.message)
        elif outcome.kind is OutcomeKind.PARTIAL:
            logger.warning("row=%d user=%s %s", outcome.row_number, outcome.user_code, outcome.message)
        else:
            logger.debug("row=%d user=%s saved", outcome.row_number, outcome.user_code)
        if error_type is not None:
            log_error(outcome.row_number, error_type, outcome.message or "")
        if progress is not None:
            progress.update(outcome)

    return BatchResult(
        outcomes=outcomes,
        status=status,
        attempted=len(outcomes),
        not_attempted_rows=not_attempted,
        start_time=start_time,
        end_time=datetime.now(UTC),
        fatal_message=fatal_message,
    )
