"""
Validation and formatting helpers for Brazilian customer data.

CPF/CNPJ check digits, phone numbers, postal codes (CEP), medical
registration numbers (CRM) and prescription dates.
"""

import re
from datetime import UTC, date, datetime

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_CRM_RE = re.compile(r"^\d{6}-[A-Z]{2}$")
_CEP_RE = re.compile(r"^(\d{5})-?(\d{3})$")
_REPEATED_RE = re.compile(r"^(\d)\1+$")

BRAZILIAN_STATES = (
    "AC", "AL", "AP", "AM", "BA", "CE", "DF", "ES", "GO", "MA",
    "MT", "MS", "MG", "PA", "PB", "PR", "PE", "PI", "RJ", "RN",
    "RS", "RO", "RR", "SC", "SP", "SE", "TO",
)


def clean_numeric(value: str) -> str:
    """Strip every non-digit character."""
    return re.sub(r"\D", "", value or "")


def _cpf_digit(digits: str, start_weight: int) -> int:
    total = sum(int(d) * (start_weight - i) for i, d in enumerate(digits))
    digit = 11 - (total % 11)
    return 0 if digit >= 10 else digit


def validate_cpf(cpf: str) -> bool:
    """Validate a CPF (with or without punctuation) by its check digits."""
    cleaned = clean_numeric(cpf)
    if len(cleaned) != 11 or _REPEATED_RE.match(cleaned):
        return False

    if _cpf_digit(cleaned[:9], 10) != int(cleaned[9]):
        return False
    return _cpf_digit(cleaned[:10], 11) == int(cleaned[10])


def _cnpj_digit(digits: str, start_weight: int) -> int:
    total = 0
    weight = start_weight
    for d in digits:
        total += int(d) * weight
        weight = 9 if weight == 2 else weight - 1
    remainder = total % 11
    return 0 if remainder < 2 else 11 - remainder


def validate_cnpj(cnpj: str) -> bool:
    """Validate a CNPJ (with or without punctuation) by its check digits."""
    cleaned = clean_numeric(cnpj)
    if len(cleaned) != 14 or _REPEATED_RE.match(cleaned):
        return False

    if _cnpj_digit(cleaned[:12], 5) != int(cleaned[12]):
        return False
    return _cnpj_digit(cleaned[:13], 6) == int(cleaned[13])


def validate_cpf_or_cnpj(document: str) -> bool:
    cleaned = clean_numeric(document)
    if len(cleaned) == 11:
        return validate_cpf(cleaned)
    if len(cleaned) == 14:
        return validate_cnpj(cleaned)
    return False


def validate_phone(phone: str) -> bool:
    """
    Validate a Brazilian landline (10 digits) or mobile (11 digits) number.

    The area code (DDD) must be between 11 and 99 and mobile numbers must
    start with 9 after the DDD.
    """
    cleaned = clean_numeric(phone)
    if len(cleaned) not in (10, 11):
        return False

    if not 11 <= int(cleaned[:2]) <= 99:
        return False

    if len(cleaned) == 11 and cleaned[2] != "9":
        return False

    return not _REPEATED_RE.match(cleaned)


def validate_email(email: str) -> bool:
    return bool(_EMAIL_RE.match(email or ""))


def validate_crm(crm: str) -> bool:
    """CRM in the ``XXXXXX-UF`` format."""
    return bool(_CRM_RE.match(crm or ""))


def validate_prescription_date(prescription_date: date | datetime | str) -> bool:
    """Contact lens prescriptions are valid for one year and cannot be future-dated."""
    if isinstance(prescription_date, str):
        prescription_date = datetime.fromisoformat(prescription_date)
    if isinstance(prescription_date, datetime):
        prescription_date = prescription_date.date()

    today = datetime.now(UTC).date()
    try:
        one_year_ago = today.replace(year=today.year - 1)
    except ValueError:
        # 29 February
        one_year_ago = today.replace(year=today.year - 1, day=28)
    return one_year_ago <= prescription_date <= today


def format_cpf(cpf: str) -> str:
    cleaned = clean_numeric(cpf)
    if len(cleaned) != 11:
        return cpf
    return f"{cleaned[:3]}.{cleaned[3:6]}.{cleaned[6:9]}-{cleaned[9:]}"


def format_cnpj(cnpj: str) -> str:
    cleaned = clean_numeric(cnpj)
    if len(cleaned) != 14:
        return cnpj
    return f"{cleaned[:2]}.{cleaned[2:5]}.{cleaned[5:8]}/{cleaned[8:12]}-{cleaned[12:]}"


def format_phone(phone: str) -> str:
    cleaned = clean_numeric(phone)
    if len(cleaned) == 11:
        return f"({cleaned[:2]}) {cleaned[2:7]}-{cleaned[7:]}"
    if len(cleaned) == 10:
        return f"({cleaned[:2]}) {cleaned[2:6]}-{cleaned[6:]}"
    return phone


def validate_cep_format(cep: str) -> bool:
    return bool(_CEP_RE.match((cep or "").strip()))


def format_cep(cep: str) -> str:
    """Normalise a CEP to ``XXXXX-XXX``.

    Raises:
        ValueError: If the CEP is not 8 digits.
    """
    match = _CEP_RE.match((cep or "").strip())
    if not match:
        raise ValueError(f"Invalid CEP: {cep}")
    return f"{match.group(1)}-{match.group(2)}"


def is_valid_state(uf: str) -> bool:
    return (uf or "").upper() in BRAZILIAN_STATES
