from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Any

import pandas as pd

from ..fields.catalog import FieldSpec, FieldType, Option
from ..matching.normalize import normalize_text

"""Per-type coercion of raw cell text.

Every coercer returns Coerced(value, problem, severity). When severity is None
the caller decides: an error for required fields, a warning otherwise. Range
checks set severity explicitly (hard ranges are errors, soft ranges warnings).
"""

__all__ = [
    "IssueSeverity",
    "Coerced",
    "EMAIL_PATTERN",
    "TRUTHY_TOKENS",
    "normalize_phone",
    "parse_number",
    "parse_date",
    "age_on",
    "split_tokens",
    "match_option",
    "coerce_value",
]


class IssueSeverity(Enum):
    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class Coerced:
    value: Any
    problem: str | None = None
    severity: IssueSeverity | None = None


EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

TRUTHY_TOKENS = frozenset(
    {"true", "yes", "y", "1", "ya", "iya", "benar", "on", "aktif", "x", "✓", "sama"}
)

PHONE_MIN_DIGITS = 10
PHONE_MAX_DIGITS = 15

_TOKEN_SPLIT = re.compile(r"[,;|]")
_NUMBER_CHARS = re.compile(r"[^0-9.,]")
_TRAILING_CENTS = re.compile(r"[.,]\d{1,2}$")

_MONTHS = {
    "januari": 1, "january": 1, "jan": 1,
    "februari": 2, "february": 2, "feb": 2, "pebruari": 2,
    "maret": 3, "march": 3, "mar": 3,
    "april": 4, "apr": 4,
    "mei": 5, "may": 5,
    "juni": 6, "june": 6, "jun": 6,
    "juli": 7, "july": 7, "jul": 7,
    "agustus": 8, "august": 8, "agu": 8, "agt": 8, "aug": 8,
    "september": 9, "sep": 9, "sept": 9,
    "oktober": 10, "october": 10, "okt": 10, "oct": 10,
    "november": 11, "nopember": 11, "nov": 11,
    "desember": 12, "december": 12, "des": 12, "dec": 12,
}
_ISO_DATE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})(?:[ t].*)?$")
_DMY_DATE = re.compile(r"^(\d{1,2})[/.\-](\d{1,2})[/.\-](\d{4}|\d{2})$")
_NAMED_DATE = re.compile(r"^(\d{1,2})[\s\-]+([a-z]+)\.?[\s\-]+(\d{4})$")
_EXCEL_SERIAL = re.compile(r"^\d{4,5}(?:\.\d+)?$")
_BARE_YEAR = re.compile(r"^(?:19|20)\d{2}$")  # a year alone is not a date, nor a serial
_EXCEL_EPOCH = date(1899, 12, 30)
_TWO_DIGIT_YEAR_PIVOT = 30


def normalize_phone(text: str) -> str | None:
    """Digits only, rewritten to the 62-prefixed form; None when the length is implausible."""
    digits = re.sub(r"\D", "", text)
    if not digits:
        return None
    if digits.startswith("0"):
        digits = "62" + digits[1:]
    elif digits.startswith("8"):
        digits = "62" + digits
    elif not digits.startswith("62"):
        digits = "62" + digits
    if not PHONE_MIN_DIGITS <= len(digits) <= PHONE_MAX_DIGITS:
        return None
    return digits


def parse_number(text: str, decimal: bool = False) -> int | float | None:
    """Locale-agnostic number parsing.

    decimal=False: "." and "," are grouping separators ("Rp 150.000" -> 150000);
    a trailing 1-2 digit fraction ("150.000,00") is discarded.
    decimal=True: the last separator is the decimal point ("3,75" -> 3.75).
    """
    raw = text.strip()
    negative = raw.startswith("-")
    cleaned = _NUMBER_CHARS.sub("", raw)
    if not any(ch.isdigit() for ch in cleaned):
        return None
    sign = -1 if negative else 1
    if decimal:
        last = max(cleaned.rfind(","), cleaned.rfind("."))
        if last == -1:
            return sign * float(cleaned)
        whole = re.sub(r"[.,]", "", cleaned[:last]) or "0"
        frac = re.sub(r"[.,]", "", cleaned[last + 1:]) or "0"
        return sign * float(f"{whole}.{frac}")
    # a 1-2 digit tail cannot be a thousands group, so it is a fraction
    cleaned = _TRAILING_CENTS.sub("", cleaned)
    digits = re.sub(r"[.,]", "", cleaned)
    if not digits:
        return None
    return sign * int(digits)


def _safe_date(year: int, month: int, day: int) -> date | None:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_date(text: str) -> date | None:
    t = text.strip().lower()
    if not t:
        return None
    m = _ISO_DATE.match(t)
    if m:
        return _safe_date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
    m = _DMY_DATE.match(t)
    if m:
        year = int(m.group(3))
        if len(m.group(3)) == 2:
            year += 2000 if year < _TWO_DIGIT_YEAR_PIVOT else 1900
        return _safe_date(year, int(m.group(2)), int(m.group(1)))
    m = _NAMED_DATE.match(t)
    if m:
        month = _MONTHS.get(m.group(2))
        if month is None:
            return None
        return _safe_date(int(m.group(3)), month, int(m.group(1)))
    if _BARE_YEAR.match(t):
        return None
    if _EXCEL_SERIAL.match(t):
        serial = int(float(t))
        if 1 <= serial <= 80000:
            return _EXCEL_EPOCH + timedelta(days=serial)
        return None
    try:
        parsed = pd.to_datetime(text, dayfirst=True, errors="coerce")
    except (ValueError, OverflowError, TypeError):
        return None
    if pd.isna(parsed):
        return None
    return parsed.date()


def age_on(birth: date, today: date) -> int:
    return today.year - birth.year - ((today.month, today.day) < (birth.month, birth.day))


def split_tokens(text: str) -> list[str]:
    return [t.strip() for t in _TOKEN_SPLIT.split(text) if t.strip()]


def match_option(text: str, options: tuple[Option, ...]) -> str | None:
    """Canonical option value for free text, matched on value or label (case/punctuation-insensitive)."""
    key = normalize_text(text)
    if not key:
        return None
    for opt in options:
        if key in (normalize_text(opt.value), normalize_text(opt.label)):
            return opt.value
    return None


def _coerce_email(text: str, spec: FieldSpec) -> Coerced:
    email = text.strip().lower()
    if not EMAIL_PATTERN.match(email):
        return Coerced(None, f"invalid email format '{text}'")
    return Coerced(email)


def _coerce_tel(text: str, spec: FieldSpec) -> Coerced:
    phone = normalize_phone(text)
    if phone is None:
        return Coerced(
            None,
            f"invalid phone number '{text}' (expected {PHONE_MIN_DIGITS}-{PHONE_MAX_DIGITS} digits)",
        )
    return Coerced(phone)


def _fmt(num: float | None) -> str:
    if num is None:
        return ""
    return str(int(num)) if float(num).is_integer() else str(num)


def _coerce_number(text: str, spec: FieldSpec) -> Coerced:
    num = parse_number(text, spec.decimal)
    if num is None:
        return Coerced(None, f"'{text}' is not a number")
    below = spec.minimum is not None and num < spec.minimum
    above = spec.maximum is not None and num > spec.maximum
    if below or above:
        severity = IssueSeverity.ERROR if spec.hard_range else IssueSeverity.WARNING
        return Coerced(
            num,
            f"{_fmt(num)} is outside the expected range {_fmt(spec.minimum)} to {_fmt(spec.maximum)}",
            severity,
        )
    return Coerced(num)


def _coerce_date(text: str, spec: FieldSpec) -> Coerced:
    parsed = parse_date(text)
    if parsed is None:
        return Coerced(None, f"unrecognized date '{text}' (use DD/MM/YYYY)")
    return Coerced(parsed.isoformat())


def _coerce_checkbox(text: str, spec: FieldSpec) -> Coerced:
    tokens = split_tokens(text)
    if not spec.options:
        return Coerced(tokens)
    values: list[str] = []
    unknown: list[str] = []
    for token in tokens:
        canonical = match_option(token, spec.options)
        if canonical is None:
            unknown.append(token)
            canonical = token
        if canonical not in values:
            values.append(canonical)
    if unknown:
        return Coerced(
            values, f"unknown option(s) {', '.join(repr(u) for u in unknown)} kept as entered",
            IssueSeverity.WARNING,
        )
    return Coerced(values)


def _coerce_switch(text: str, spec: FieldSpec) -> Coerced:
    return Coerced(text.strip().lower() in TRUTHY_TOKENS)


def _coerce_select(text: str, spec: FieldSpec) -> Coerced:
    value = text.strip()
    if not spec.options:
        return Coerced(value)
    canonical = match_option(value, spec.options)
    if canonical is None:
        allowed = ", ".join(dict.fromkeys(o.label for o in spec.options))
        return Coerced(None, f"unknown option '{value}' (allowed: {allowed})")
    return Coerced(canonical)


def _coerce_text(text: str, spec: FieldSpec) -> Coerced:
    value = text.strip()
    if spec.max_length is not None and len(value) > spec.max_length:
        return Coerced(
            value, f"longer than {spec.max_length} characters ({len(value)})", IssueSeverity.WARNING
        )
    return Coerced(value)


_COERCERS = {
    FieldType.EMAIL: _coerce_email,
    FieldType.TEL: _coerce_tel,
    FieldType.NUMBER: _coerce_number,
    FieldType.DATE: _coerce_date,
    FieldType.CHECKBOX: _coerce_checkbox,
    FieldType.SWITCH: _coerce_switch,
    FieldType.SELECT: _coerce_select,
    FieldType.TEXT: _coerce_text,
    FieldType.TEXTAREA: _coerce_text,
}


def coerce_value(text: str, spec: FieldSpec) -> Coerced:
    """Coerce non-empty raw text according to ``spec.type``."""
    return _COERCERS.get(spec.type, _coerce_text)(text, spec)
