from __future__ import annotations

import re
import unicodedata

from ..models.reference import ReferenceKind

"""Text normalization shared by the resolver and header lookup.

normalize_text() is the canonical comparison form: accents stripped, lower
case, punctuation folded to spaces, whitespace collapsed, and common Indonesian
abbreviations expanded ("Kab." -> "kabupaten", "B. Inggris" -> "bahasa inggris").

core_text() goes one step further and removes administrative / corporate
prefixes and suffixes so that "Kota Bandung" and "Bandung", or "Bank Mandiri
(Persero) Tbk" and "Mandiri", compare equal.
"""

__all__ = [
    "ALIASES",
    "normalize_text",
    "core_text",
    "expand_alias",
    "contains_phrase",
    "alnum_chars",
]

_NON_WORD = re.compile(r"[^\w\s]|_")

_WORD_EXPANSIONS = {
    "kab": "kabupaten",
    "kec": "kecamatan",
    "kel": "kelurahan",
    "prov": "provinsi",
}

_DROPPED_WORDS = {"pt", "tbk"}

_CORE_PREFIXES: tuple[tuple[str, ...], ...] = (
    ("daerah", "khusus", "ibukota"),
    ("daerah", "istimewa"),
    ("provinsi",),
    ("kabupaten",),
    ("kota",),
    ("kecamatan",),
    ("kelurahan",),
    ("desa",),
    ("dki",),
    ("bank",),
)

_CORE_SUFFIXES: tuple[tuple[str, ...], ...] = (
    ("persero",),
    ("tbk",),
)

# abbreviation -> expanded (already normalized) name, per reference kind
ALIASES: dict[ReferenceKind, dict[str, str]] = {
    ReferenceKind.PROVINCE: {
        "diy": "daerah istimewa yogyakarta",
        "jogja": "daerah istimewa yogyakarta",
        "dki": "dki jakarta",
        "jakarta": "dki jakarta",
        "jabar": "jawa barat",
        "jateng": "jawa tengah",
        "jatim": "jawa timur",
        "sumut": "sumatera utara",
        "sumbar": "sumatera barat",
        "sumsel": "sumatera selatan",
        "kalbar": "kalimantan barat",
        "kaltim": "kalimantan timur",
        "kalsel": "kalimantan selatan",
        "kalteng": "kalimantan tengah",
        "sulteng": "sulawesi tengah",
        "sulsel": "sulawesi selatan",
        "sulut": "sulawesi utara",
        "sultra": "sulawesi tenggara",
        "ntb": "nusa tenggara barat",
        "ntt": "nusa tenggara timur",
        "babel": "kepulauan bangka belitung",
        "kepri": "kepulauan riau",
    },
    ReferenceKind.CITY: {
        "jogja": "yogyakarta",
        "yogya": "yogyakarta",
        "bdg": "bandung",
        "sby": "surabaya",
        "jkt": "jakarta",
        "smg": "semarang",
        "mdn": "medan",
        "mks": "makassar",
        "solo": "surakarta",
        "jaksel": "jakarta selatan",
        "jakbar": "jakarta barat",
        "jaktim": "jakarta timur",
        "jakut": "jakarta utara",
        "jakpus": "jakarta pusat",
    },
    ReferenceKind.SUBJECT: {
        "mtk": "matematika",
        "math": "matematika",
        "mat": "matematika",
        "fis": "fisika",
        "kim": "kimia",
        "bio": "biologi",
        "bind": "bahasa indonesia",
        "bing": "bahasa inggris",
        "english": "bahasa inggris",
        "eko": "ekonomi",
        "geo": "geografi",
        "pkn": "pendidikan kewarganegaraan",
        "ppkn": "pendidikan kewarganegaraan",
        "sbk": "seni budaya",
        "pjok": "pendidikan jasmani",
        "penjas": "pendidikan jasmani",
        "ipa": "ilmu pengetahuan alam",
        "ips": "ilmu pengetahuan sosial",
        "tik": "teknologi informasi dan komunikasi",
        "komputer": "teknologi informasi dan komunikasi",
    },
    ReferenceKind.BANK: {
        "bca": "bank central asia",
        "bri": "bank rakyat indonesia",
        "bni": "bank negara indonesia",
        "mandiri": "bank mandiri",
        "btn": "bank tabungan negara",
        "bsi": "bank syariah indonesia",
        "danamon": "bank danamon",
        "cimb": "cimb niaga",
        "permata": "bank permata",
        "ocbc": "ocbc nisp",
        "uob": "united overseas bank",
        "hsbc": "hongkong and shanghai banking corporation",
        "maybank": "maybank indonesia",
        "panin": "panin bank",
        "mega": "bank mega",
        "bukopin": "bank bukopin",
        "bjb": "bank jabar banten",
        "jateng": "bank jawa tengah",
        "jatim": "bank jawa timur",
        "sumut": "bank sumatera utara",
        "kalbar": "bank kalimantan barat",
        "kaltim": "bank kalimantan timur",
        "sulselbar": "bank sulselbar",
    },
}


def normalize_text(text: str | None) -> str:
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFKD", str(text))
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    words = _NON_WORD.sub(" ", stripped.lower()).split()
    out: list[str] = []
    for i, word in enumerate(words):
        if word in _DROPPED_WORDS:
            continue
        if word == "b" and i + 1 < len(words):
            out.append("bahasa")
            continue
        out.append(_WORD_EXPANSIONS.get(word, word))
    return " ".join(out)


def core_text(normalized: str, kind: ReferenceKind | None = None) -> str:
    """Strip administrative / corporate affixes from an already normalized name.

    At least one word is always kept, so "Bank Indonesia" never collapses to "".
    """
    words = normalized.split()
    suffixes = _CORE_SUFFIXES + ((("indonesia",),) if kind is ReferenceKind.BANK else ())
    changed = True
    while changed:
        changed = False
        for prefix in _CORE_PREFIXES:
            n = len(prefix)
            if len(words) > n and tuple(words[:n]) == prefix:
                words = words[n:]
                changed = True
        for suffix in suffixes:
            n = len(suffix)
            if len(words) > n and tuple(words[-n:]) == suffix:
                words = words[:-n]
                changed = True
    return " ".join(words)


def expand_alias(normalized: str, kind: ReferenceKind | None) -> str | None:
    if kind is None:
        return None
    return ALIASES.get(kind, {}).get(normalized)


def contains_phrase(haystack: str, needle: str) -> bool:
    """Whole-word containment: "bank mandiri" contains "mandiri" but "brilian" does not contain "bri"."""
    if not needle or not haystack:
        return False
    return f" {needle} " in f" {haystack} "


def alnum_chars(text: str) -> set[str]:
    return {ch for ch in text if ch.isalnum()}
