import re
from datetime import date
from typing import Iterable, List, Optional

from ..models.schemas import GuestRecord, Severity, ValidationIssue, ValidationResult
from . import catalog


DATE_PATTERN = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
NATIONAL_ID_PATTERN = re.compile(r"^\d{8}[A-Z]$", re.IGNORECASE)
FOREIGN_RESIDENT_PATTERN = re.compile(r"^[XYZ]\d{7}[A-Z]$", re.IGNORECASE)
ALPHA3_PATTERN = re.compile(r"^[A-Z]{3}$")
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_PATTERN = re.compile(r"^[+\d\s()-]{6,20}$")


def is_valid_date(value: Optional[str]) -> bool:
    """True for a real calendar date in YYYY-MM-DD."""
    if not value:
        return False
    match = DATE_PATTERN.match(value)
    if not match:
        return False
    year, month, day = (int(part) for part in match.groups())
    try:
        rebuilt = date(year, month, day)
    except ValueError:
        return False
    return rebuilt.isoformat() == value


def is_valid_document_number(document_type: str, number: str) -> bool:
    value = (number or "").strip()
    if not document_type or not value:
        return False
    if document_type == catalog.NATIONAL_ID:
        return bool(NATIONAL_ID_PATTERN.match(value))
    if document_type == catalog.FOREIGN_RESIDENT_ID:
        return bool(FOREIGN_RESIDENT_PATTERN.match(value))
    if document_type == catalog.PASSPORT:
        return 5 <= len(value) <= 20
    return len(value) >= 3


def _blank(value: Optional[str]) -> bool:
    return value is None or value.strip() == ""


def _issue(guest: GuestRecord, field: str, message: str, severity: Severity = Severity.ERROR) -> ValidationIssue:
    return ValidationIssue(row=guest.rowNumber, field=field, message=message, severity=severity)


def check_guest(guest: GuestRecord) -> List[ValidationIssue]:
    """Run every rule against one guest, in a fixed order."""
    issues: List[ValidationIssue] = []

    if _blank(guest.givenName):
        issues.append(_issue(guest, "givenName", "El nombre es obligatorio"))
    if _blank(guest.firstSurname):
        issues.append(_issue(guest, "firstSurname", "El primer apellido es obligatorio"))

    document_type = "" if _blank(guest.documentType) else catalog.normalize_document_type(guest.documentType)

    if document_type == catalog.NATIONAL_ID and _blank(guest.secondSurname):
        issues.append(_issue(guest, "secondSurname", "El segundo apellido es obligatorio para documentos tipo DNI"))

    if not document_type:
        issues.append(_issue(guest, "documentType", "El tipo de documento es obligatorio"))
    elif document_type not in catalog.DOCUMENT_TYPES:
        issues.append(_issue(
            guest,
            "documentType",
            f'Tipo de documento "{guest.documentType}" no reconocido. Valores válidos: {", ".join(catalog.DOCUMENT_TYPES)}',
            Severity.WARNING,
        ))

    if _blank(guest.documentNumber):
        issues.append(_issue(guest, "documentNumber", "El número de documento es obligatorio"))
    elif document_type and not is_valid_document_number(document_type, guest.documentNumber):
        issues.append(_issue(
            guest,
            "documentNumber",
            f'Formato del documento "{guest.documentNumber}" puede no ser válido para tipo "{guest.documentType}"',
            Severity.WARNING,
        ))

    if _blank(guest.birthDate):
        issues.append(_issue(guest, "birthDate", "La fecha de nacimiento es obligatoria"))
    elif not is_valid_date(guest.birthDate):
        issues.append(_issue(
            guest,
            "birthDate",
            f'Fecha de nacimiento inválida: "{guest.birthDate}". Formato esperado: YYYY-MM-DD',
        ))

    if _blank(guest.nationality):
        issues.append(_issue(guest, "nationality", "La nacionalidad es obligatoria"))
    elif not catalog.is_known_country(guest.nationality) and not ALPHA3_PATTERN.match(guest.nationality):
        issues.append(_issue(
            guest,
            "nationality",
            f'Código de nacionalidad "{guest.nationality}" puede no ser un código ISO válido',
            Severity.WARNING,
        ))

    if _blank(guest.address):
        issues.append(_issue(guest, "address", "La dirección es obligatoria"))
    if _blank(guest.city):
        issues.append(_issue(guest, "city", "La ciudad es obligatoria"))
    if _blank(guest.country):
        issues.append(_issue(guest, "country", "El país es obligatorio"))

    if _blank(guest.entryDate):
        issues.append(_issue(guest, "entryDate", "La fecha de entrada es obligatoria"))
    elif not is_valid_date(guest.entryDate.strip()[:10]):
        issues.append(_issue(guest, "entryDate", f'Fecha de entrada inválida: "{guest.entryDate}"'))

    if _blank(guest.phone) and _blank(guest.email):
        issues.append(_issue(guest, "contact", "Se requiere al menos un dato de contacto (teléfono o email)"))

    if not _blank(guest.email) and not EMAIL_PATTERN.match(guest.email.strip()):
        issues.append(_issue(
            guest, "email", f'Formato de email posiblemente inválido: "{guest.email}"', Severity.WARNING
        ))

    if not _blank(guest.phone) and not PHONE_PATTERN.match(guest.phone.strip()):
        issues.append(_issue(
            guest, "phone", f'Formato de teléfono posiblemente inválido: "{guest.phone}"', Severity.WARNING
        ))

    return issues


def validate_guests(guests: Iterable[GuestRecord]) -> ValidationResult:
    """Partition guests into valid and invalid; warnings never exclude a guest."""
    guests = list(guests)
    errors: List[ValidationIssue] = []
    warnings: List[ValidationIssue] = []
    valid_guests: List[GuestRecord] = []

    for guest in guests:
        issues = check_guest(guest)
        guest_errors = [issue for issue in issues if issue.severity is Severity.ERROR]
        errors.extend(guest_errors)
        warnings.extend(issue for issue in issues if issue.severity is Severity.WARNING)
        if not guest_errors:
            valid_guests.append(guest)

    return ValidationResult(
        isValid=not errors,
        errors=errors,
        warnings=warnings,
        validGuests=valid_guests,
        totalRows=len(guests),
        validCount=len(valid_guests),
        errorCount=len(guests) - len(valid_guests),
        warningCount=len(warnings),
    )
