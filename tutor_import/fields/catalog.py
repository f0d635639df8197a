from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

"""Declarative field catalog.

FIELD_CATALOG is the single list of importable fields. The header alias table,
the validator and the downloadable template are all derived from it, so they
cannot drift apart.

Header matching goes through header_key(): lower case, alphanumerics only, so
"No. HP Utama (+62)", "no_hp_utama", "No HP Utama" and "noHp1" (via the field
name) all land on the same field. When two fields claim the same key, the one
declared first wins.
"""

__all__ = [
    "FieldType",
    "Option",
    "FieldSpec",
    "FIELD_CATALOG",
    "FIELDS_BY_NAME",
    "REQUIRED_FIELDS",
    "header_key",
    "lookup_field",
    "map_headers",
    "unmapped_headers",
    "field_values",
]


class FieldType:
    TEXT = "text"
    TEXTAREA = "textarea"
    EMAIL = "email"
    TEL = "tel"
    NUMBER = "number"
    DATE = "date"
    SELECT = "select"
    CHECKBOX = "checkbox"  # delimited multi-value list
    SWITCH = "switch"  # boolean-like


@dataclass(frozen=True)
class Option:
    value: str
    label: str


@dataclass(frozen=True)
class FieldSpec:
    name: str  # canonical (mapped_fields) key
    label: str  # template header
    type: str = FieldType.TEXT
    required: bool = False
    section: str = ""
    aliases: tuple[str, ...] = ()
    options: tuple[Option, ...] = ()
    minimum: float | None = None
    maximum: float | None = None
    hard_range: bool = False  # out of range is an error instead of a warning
    decimal: bool = False  # number keeps a fractional part
    max_length: int | None = None
    example: str = ""


def _opts(*pairs: tuple[str, str]) -> tuple[Option, ...]:
    return tuple(Option(v, l) for v, l in pairs)


_YES_NO = _opts(("ya", "Ya"), ("tidak", "Tidak"))

_LEVEL_1_10 = dict(minimum=1, maximum=10)

FIELD_CATALOG: tuple[FieldSpec, ...] = (
    # identity / personal
    FieldSpec("email", "Email Aktif", FieldType.EMAIL, required=True, section="personal",
              aliases=("Email", "E-mail", "Alamat Email"), example="budi.santoso@example.com"),
    FieldSpec("namaLengkap", "Nama Lengkap", required=True, section="personal",
              aliases=("Nama", "Full Name"), max_length=150, example="Budi Santoso"),
    FieldSpec("noHp1", "No. HP Utama (+62)", FieldType.TEL, required=True, section="personal",
              aliases=("No HP", "Nomor HP", "No. HP", "Phone", "No. HP (WhatsApp)"),
              example="081234567890"),
    FieldSpec("userCode", "User Code", section="system", aliases=("Kode User",), max_length=32),
    FieldSpec("trn", "TRN (Tutor Registration Number)", section="system",
              aliases=("ERN", "TRN", "Educator Registration Number"), example=""),
    FieldSpec("userStatus", "User Status", FieldType.SELECT, section="system",
              options=_opts(("active", "Aktif"), ("inactive", "Tidak Aktif"),
                            ("suspended", "Ditangguhkan")),
              example="active"),
    FieldSpec("namaPanggilan", "Nama Panggilan", section="personal", max_length=50, example="Budi"),
    FieldSpec("tanggalLahir", "Tanggal Lahir", FieldType.DATE, section="personal",
              aliases=("Tgl Lahir", "Date of Birth"), example="15/03/1995"),
    FieldSpec("jenisKelamin", "Jenis Kelamin", FieldType.SELECT, section="personal",
              aliases=("Gender",),
              options=_opts(("laki_laki", "Laki-laki"), ("perempuan", "Perempuan"),
                            ("laki_laki", "L"), ("perempuan", "P"),
                            ("laki_laki", "Pria"), ("perempuan", "Wanita")),
              example="Laki-laki"),
    FieldSpec("noHp2", "No. HP Alternatif", FieldType.TEL, section="personal"),
    FieldSpec("whatsappNumber", "Nomor WhatsApp", FieldType.TEL, section="personal",
              aliases=("WhatsApp", "No WA")),
    FieldSpec("agama", "Agama", FieldType.SELECT, section="personal", aliases=("Religion",),
              options=_opts(("islam", "Islam"), ("kristen", "Kristen"), ("katolik", "Katolik"),
                            ("hindu", "Hindu"), ("buddha", "Buddha"), ("konghucu", "Konghucu"),
                            ("lainnya", "Lainnya")),
              example="Islam"),
    # profile
    FieldSpec("headline", "Headline/Tagline Tutor", section="profile", aliases=("Headline",),
              max_length=150, example="Tutor Matematika SMA berpengalaman"),
    FieldSpec("deskripsiDiri", "Deskripsi Diri/Bio Tutor", FieldType.TEXTAREA, section="profile",
              aliases=("Deskripsi Diri", "Bio")),
    FieldSpec("socialMedia1", "Link Media Sosial 1", section="profile"),
    FieldSpec("socialMedia2", "Link Media Sosial 2", section="profile"),
    FieldSpec("languagesMastered", "Bahasa yang Dikuasai", FieldType.CHECKBOX, section="profile",
              example="Indonesia, Inggris"),
    FieldSpec("preferredLanguage", "Bahasa Komunikasi Preferred", section="profile"),
    # domicile address
    FieldSpec("provinsiDomisili", "Provinsi Domisili", section="domicile",
              aliases=("Provinsi",), example="DKI Jakarta"),
    FieldSpec("kotaKabupatenDomisili", "Kota/Kabupaten Domisili", section="domicile",
              aliases=("Kota", "Kota/Kabupaten"), example="Jakarta Selatan"),
    FieldSpec("kecamatanDomisili", "Kecamatan Domisili", section="domicile",
              aliases=("Kecamatan",), example="Tebet"),
    FieldSpec("kelurahanDomisili", "Kelurahan/Desa Domisili", section="domicile",
              aliases=("Kelurahan",), example="Manggarai"),
    FieldSpec("alamatLengkapDomisili", "Alamat Lengkap Domisili", FieldType.TEXTAREA,
              section="domicile", aliases=("Alamat", "Alamat Lengkap"),
              example="Jl. Contoh No. 1"),
    FieldSpec("kodePosDomisili", "Kode Pos Domisili", section="domicile", aliases=("Kode Pos",),
              max_length=10, example="12860"),
    # identity-card (KTP) address
    FieldSpec("alamatSamaDenganKTP", "Alamat Sama dengan KTP", FieldType.SWITCH, section="ktp",
              example="Ya"),
    FieldSpec("provinsiKTP", "Provinsi KTP", section="ktp"),
    FieldSpec("kotaKabupatenKTP", "Kota/Kabupaten KTP", section="ktp"),
    FieldSpec("kecamatanKTP", "Kecamatan KTP", section="ktp"),
    FieldSpec("kelurahanKTP", "Kelurahan/Desa KTP", section="ktp"),
    FieldSpec("alamatLengkapKTP", "Alamat Lengkap KTP", FieldType.TEXTAREA, section="ktp"),
    FieldSpec("kodePosKTP", "Kode Pos KTP", section="ktp", max_length=10),
    # banking
    FieldSpec("namaNasabah", "Nama Pemilik Rekening", section="banking",
              aliases=("Nama Nasabah",), example="Budi Santoso"),
    FieldSpec("nomorRekening", "Nomor Rekening Bank", section="banking",
              aliases=("Nomor Rekening", "No Rekening"), example="1234567890"),
    FieldSpec("namaBank", "Nama Bank", section="banking", aliases=("Bank",), example="BCA"),
    # education
    FieldSpec("statusAkademik", "Status Akademik", FieldType.SELECT, section="education",
              options=_opts(("mahasiswa_s1", "Mahasiswa Aktif S1/D4"),
                            ("mahasiswa_s2", "Mahasiswa Aktif S2/S3"),
                            ("lulusan_s1", "Lulusan S1/D4"), ("lulusan_s2", "Lulusan S2/S3"),
                            ("lulusan_d3", "Lulusan D3"), ("lulusan_sma", "Lulusan SMA/Sederajat"),
                            ("lainnya", "Lainnya")),
              example="Lulusan S1/D4"),
    FieldSpec("namaUniversitas", "Nama Universitas", section="education",
              aliases=("Universitas",), example="Universitas Indonesia"),
    FieldSpec("fakultas", "Fakultas/Jurusan", section="education", aliases=("Fakultas",)),
    FieldSpec("ipk", "IPK/GPA", FieldType.NUMBER, section="education", aliases=("IPK", "GPA"),
              minimum=0, maximum=4, hard_range=True, decimal=True, example="3,65"),
    FieldSpec("tahunLulus", "Tahun Lulus", FieldType.NUMBER, section="education",
              minimum=1950, maximum=2100, example="2017"),
    FieldSpec("namaUniversitasS1", "Nama Universitas S1", section="education"),
    FieldSpec("fakultasS1", "Fakultas S1", section="education"),
    FieldSpec("jurusanS1", "Jurusan S1", section="education"),
    FieldSpec("tahunMasuk", "Tahun Masuk Kuliah", FieldType.NUMBER, section="education",
              aliases=("Tahun Masuk",), minimum=1950, maximum=2100, example="2013"),
    FieldSpec("namaSMA", "Nama SMA/SMK", section="education"),
    FieldSpec("jurusanSMA", "Jurusan SMA", section="education"),
    FieldSpec("jurusanSMKDetail", "Detail Jurusan SMK", section="education"),
    FieldSpec("tahunLulusSMA", "Tahun Lulus SMA/SMK", FieldType.NUMBER, section="education",
              minimum=1950, maximum=2100),
    # alternative learning
    FieldSpec("namaInstitusi", "Nama Institusi Alternatif", section="alternative_learning"),
    FieldSpec("bidangKeahlian", "Bidang Keahlian", section="alternative_learning"),
    FieldSpec("pengalamanBelajar", "Pengalaman Belajar", FieldType.TEXTAREA,
              section="alternative_learning"),
    # professional
    FieldSpec("motivasiMenjadiTutor", "Motivasi Menjadi Tutor", FieldType.TEXTAREA,
              section="professional"),
    FieldSpec("keahlianSpesialisasi", "Keahlian Spesialisasi", FieldType.TEXTAREA,
              section="professional"),
    FieldSpec("keahlianLainnya", "Keahlian Lainnya", FieldType.TEXTAREA, section="professional"),
    FieldSpec("pengalamanMengajar", "Pengalaman Mengajar", FieldType.TEXTAREA,
              section="professional", example="3 tahun mengajar les privat"),
    FieldSpec("pengalamanLainRelevan", "Pengalaman Lain Relevan", FieldType.TEXTAREA,
              section="professional"),
    FieldSpec("prestasiAkademik", "Prestasi Akademik", FieldType.TEXTAREA, section="achievements"),
    FieldSpec("prestasiNonAkademik", "Prestasi Non-Akademik", FieldType.TEXTAREA,
              section="achievements"),
    FieldSpec("sertifikasiPelatihan", "Sertifikasi dan Pelatihan", FieldType.TEXTAREA,
              section="achievements"),
    # management
    FieldSpec("statusTutor", "Status Tutor", FieldType.SELECT, section="management",
              aliases=("status_tutor",),
              options=_opts(("registration", "Registrasi"), ("learning_materials", "Belajar Materi"),
                            ("examination", "Ujian Tutor"),
                            ("exam_verification", "Verifikasi Hasil Ujian"),
                            ("data_completion", "Melengkapi Data"),
                            ("waiting_students", "Menunggu Siswa Pertama"), ("active", "Aktif"),
                            ("inactive", "Tidak Aktif"), ("suspended", "Ditangguhkan"),
                            ("blacklisted", "Blacklist"), ("on_trial", "Masa Percobaan")),
              example="Registrasi"),
    FieldSpec("staffNotes", "Catatan Staff", FieldType.TEXTAREA, section="management",
              aliases=("staff_notes",)),
    FieldSpec("additionalScreening", "Screening Tambahan", FieldType.CHECKBOX, section="management"),
    FieldSpec("statusVerifikasiIdentitas", "Status Verifikasi Identitas", FieldType.SELECT,
              section="management", aliases=("status_verifikasi_identitas",),
              options=_opts(("pending", "Menunggu Verifikasi"), ("verified", "Terverifikasi"),
                            ("rejected", "Ditolak"), ("incomplete", "Tidak Lengkap"))),
    FieldSpec("statusVerifikasiPendidikan", "Status Verifikasi Pendidikan", FieldType.SELECT,
              section="management", aliases=("status_verifikasi_pendidikan",),
              options=_opts(("pending", "Menunggu Verifikasi"), ("verified", "Terverifikasi"),
                            ("rejected", "Ditolak"), ("incomplete", "Tidak Lengkap"))),
    # availability
    FieldSpec("statusMenerimaSiswa", "Status Menerima Siswa", FieldType.SELECT,
              section="availability", aliases=("Status Availability",),
              options=_opts(("aktif", "Aktif"), ("terbatas", "Terbatas"),
                            ("tidak_aktif", "Tidak Aktif")),
              example="Aktif"),
    FieldSpec("maksimalSiswaBaru", "Maksimal Siswa Baru per Minggu", FieldType.NUMBER,
              section="availability", minimum=0, maximum=50, example="2"),
    FieldSpec("maksimalTotalSiswa", "Maksimal Total Siswa", FieldType.NUMBER,
              section="availability", minimum=0, maximum=200, example="10"),
    FieldSpec("usiaTargetSiswa", "Usia Target Siswa", FieldType.CHECKBOX, section="availability",
              options=_opts(("2-5", "2-5"), ("6-12", "6-12"), ("13-15", "13-15"),
                            ("16-18", "16-18"), ("19-25", "19-25"), ("26-40", "26-40"),
                            ("40+", "40+")),
              example="13-15, 16-18"),
    FieldSpec("catatanAvailability", "Catatan Ketersediaan", FieldType.TEXTAREA,
              section="availability"),
    FieldSpec("availableSchedule", "Jadwal Ketersediaan", FieldType.CHECKBOX,
              section="availability", aliases=("available_schedule", "Jadwal Mingguan Tersedia"),
              example="Senin, Rabu, Sabtu"),
    FieldSpec("teachingMethods", "Metode Mengajar", FieldType.CHECKBOX, section="availability",
              aliases=("teaching_methods", "Metode Pengajaran"),
              options=_opts(("offline_datang_ke_siswa", "Offline - Datang ke rumah siswa"),
                            ("offline_di_tempat_tutor", "Offline - Di tempat tutor"),
                            ("online_zoom_gmeet", "Online - Zoom/Google Meet"),
                            ("hybrid", "Hybrid"), ("offline_datang_ke_siswa", "Offline"),
                            ("online_zoom_gmeet", "Online")),
              example="Online, Offline"),
    FieldSpec("hourlyRate", "Tarif per Jam", FieldType.NUMBER, section="availability",
              aliases=("hourly_rate", "Ekspektasi Fee Minimal Per Jam", "Tarif"),
              minimum=25000, maximum=1000000, example="100000"),
    # teaching location
    FieldSpec("teachingRadiusKm", "Radius Mengajar (km)", FieldType.NUMBER, section="location",
              aliases=("teaching_radius_km",), minimum=0, maximum=100, decimal=True, example="10"),
    FieldSpec("transportasiTutor", "Metode Transportasi", FieldType.CHECKBOX, section="location"),
    FieldSpec("locationNotes", "Catatan Lokasi", FieldType.TEXTAREA, section="location",
              aliases=("location_notes",)),
    FieldSpec("titikLokasiLat", "Latitude Titik Pusat", FieldType.NUMBER, section="location",
              aliases=("Latitude",), minimum=-90, maximum=90, decimal=True),
    FieldSpec("titikLokasiLng", "Longitude Titik Pusat", FieldType.NUMBER, section="location",
              aliases=("Longitude",), minimum=-180, maximum=180, decimal=True),
    FieldSpec("alamatTitikLokasi", "Alamat Titik Pusat Mengajar", section="location"),
    # teaching preferences
    FieldSpec("studentLevelPreferences", "Level Siswa yang Disukai", FieldType.CHECKBOX,
              section="teaching_preferences",
              options=_opts(("beginner", "Pemula"), ("intermediate", "Menengah"),
                            ("advanced", "Mahir"), ("remedial", "Remedial"))),
    FieldSpec("specialNeedsCapable", "Kemampuan Mengajar Siswa Berkebutuhan Khusus",
              FieldType.SELECT, section="teaching_preferences",
              options=_opts(("tidak", "Tidak Mampu"), ("basic", "Mampu Level Dasar"),
                            ("experienced", "Berpengalaman"), ("certified", "Bersertifikasi"),
                            ("tidak", "Tidak"))),
    FieldSpec("groupClassWilling", "Kesediaan Mengajar Kelas Grup", FieldType.SELECT,
              section="teaching_preferences",
              options=_opts(("tidak", "Tidak Bersedia"), ("ya_small", "Grup Kecil"),
                            ("ya_medium", "Grup Menengah"), ("ya_large", "Grup Besar"),
                            ("tidak", "Tidak"), ("ya_small", "Ya"))),
    FieldSpec("onlineTeachingCapable", "Kemampuan Mengajar Online", FieldType.SELECT,
              section="teaching_preferences",
              options=_opts(("tidak_bisa", "Tidak Bisa"), ("basic", "Dasar"),
                            ("intermediate", "Mahir"), ("advanced", "Expert"))),
    FieldSpec("techSavviness", "Level Kemampuan Teknologi", FieldType.SELECT,
              section="teaching_preferences",
              options=_opts(("low", "Rendah"), ("medium", "Menengah"), ("high", "Tinggi"),
                            ("expert", "Expert"))),
    FieldSpec("gmeetExperience", "Level Pengalaman Google Meet", FieldType.SELECT,
              section="teaching_preferences",
              options=_opts(("belum_pernah", "Belum Pernah"), ("pemula", "Pemula"),
                            ("menengah", "Menengah"), ("mahir", "Mahir"))),
    FieldSpec("presensiUpdateCapability", "Kemampuan Update Presensi", FieldType.SELECT,
              section="teaching_preferences",
              options=_opts(("tidak_bisa", "Tidak Bisa"), ("bisa_dilatih", "Bisa Dilatih"),
                            ("bisa", "Bisa"), ("mahir", "Mahir"))),
    # personality
    FieldSpec("tutorPersonalityType", "Tipe Kepribadian Tutor", FieldType.CHECKBOX,
              section="personality"),
    FieldSpec("communicationStyle", "Gaya Komunikasi", FieldType.CHECKBOX, section="personality"),
    FieldSpec("teachingPatienceLevel", "Level Kesabaran Mengajar", FieldType.NUMBER,
              section="personality", **_LEVEL_1_10),
    FieldSpec("studentMotivationAbility", "Kemampuan Memotivasi Siswa", FieldType.NUMBER,
              section="personality", **_LEVEL_1_10),
    FieldSpec("scheduleFlexibilityLevel", "Level Fleksibilitas Jadwal", FieldType.NUMBER,
              section="personality", **_LEVEL_1_10),
    # emergency contact
    FieldSpec("emergencyContactName", "Nama Kontak Darurat", section="emergency_contact"),
    FieldSpec("emergencyContactRelationship", "Hubungan dengan Kontak Darurat",
              section="emergency_contact"),
    FieldSpec("emergencyContactPhone", "Nomor Telepon Kontak Darurat", FieldType.TEL,
              section="emergency_contact"),
    # programs
    FieldSpec("selectedPrograms", "Program yang Dipilih", FieldType.CHECKBOX, section="programs",
              aliases=("Mata Pelajaran", "Program", "Subjects"), example="Matematika, Fisika"),
    FieldSpec("mataPelajaranLainnya", "Mata Pelajaran Lainnya", FieldType.TEXTAREA,
              section="programs"),
)

FIELDS_BY_NAME: dict[str, FieldSpec] = {f.name: f for f in FIELD_CATALOG}

REQUIRED_FIELDS: tuple[FieldSpec, ...] = tuple(f for f in FIELD_CATALOG if f.required)

_PARENS = re.compile(r"\([^)]*\)")
_NON_ALNUM = re.compile(r"[^0-9a-z]+")


def header_key(header: str, *, keep_parens: bool = True) -> str:
    text = str(header).strip().lower()
    if not keep_parens:
        text = _PARENS.sub(" ", text)
    return _NON_ALNUM.sub("", text)


def _build_alias_table(catalog: Iterable[FieldSpec]) -> dict[str, str]:
    table: dict[str, str] = {}
    for spec in catalog:
        for candidate in (spec.label, spec.name, *spec.aliases):
            for key in (header_key(candidate), header_key(candidate, keep_parens=False)):
                if key:
                    table.setdefault(key, spec.name)
    return table


_ALIAS_TABLE: dict[str, str] = _build_alias_table(FIELD_CATALOG)


def lookup_field(header: str) -> FieldSpec | None:
    """Catalog field an upload header refers to, if any."""
    for key in (header_key(header), header_key(header, keep_parens=False)):
        name = _ALIAS_TABLE.get(key)
        if name is not None:
            return FIELDS_BY_NAME[name]
    return None


def map_headers(headers: Iterable[str]) -> dict[str, str]:
    """field name -> the upload header supplying it (first header in file order wins)."""
    mapping: dict[str, str] = {}
    for header in headers:
        spec = lookup_field(header)
        if spec is not None and spec.name not in mapping:
            mapping[spec.name] = header
    return mapping


def unmapped_headers(headers: Iterable[str]) -> list[str]:
    return [h for h in headers if lookup_field(h) is None]


def field_values(values: Mapping[str, str], header_map: Mapping[str, str]) -> dict[str, str]:
    """Raw string value per catalog field for one row."""
    return {name: values.get(header, "") for name, header in header_map.items()}
