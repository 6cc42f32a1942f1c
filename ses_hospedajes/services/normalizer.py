"""Map spreadsheet rows (column label -> text) to GuestRecord."""
import re
from typing import Dict, Iterable, List, Optional, Tuple

from ..models.schemas import GuestRecord, GuestRole
from . import catalog

# Column labels of the guest registration form export
COL_GIVEN_NAME = "Nombre Completo (Nombre)"
COL_SURNAMES = "Nombre Completo (Apellidos)"
COL_SEX = "Sexo"
COL_BIRTH_DATE = "Fecha de Nacimiento"
COL_NATIONALITY = "Nacionalidad (País)"
COL_DOCUMENT_TYPE = "Tipo de Documento"
COL_DOCUMENT_NUMBER = "Número del documento"
COL_SUPPORT_NUMBER = "Número de soporte del documento"
COL_ADDRESS = "Dirección (Dirección)"
COL_ADDRESS2 = "Dirección (Dirección 2)"
COL_CITY = "Dirección (Ciudad)"
COL_PROVINCE = "Dirección (Estado/Provincia)"
COL_POSTAL_CODE = "Codigo Postal"
COL_ADDRESS_POSTAL_CODE = "Dirección (ZIP / Código Postal)"
COL_COUNTRY = "Dirección (País)"
COL_PHONE = "Teléfono"
COL_PHONE_OR_EMAIL = "Teléfono o e-mail"
COL_EMAIL = "e-mail"
COL_ENTRY_DATE = "Fecha entrada"
COL_EXIT_DATE = "Fecha salida"
COL_KINSHIP = "Parentesco"

SURNAME_PARTICLES = {"de", "del", "la", "las", "los", "y", "san", "santa"}

# First data row is spreadsheet row 2 (row 1 holds the headers)
FIRST_DATA_ROW = 2

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_ISO_DATETIME = re.compile(r"^(\d{4}-\d{2}-\d{2})[T ](\d{1,2}):(\d{2})(?::\d{2})?")
_DAY_FIRST = re.compile(r"^(\d{1,2})[/-](\d{1,2})[/-](\d{4})(?:\s+(\d{1,2}):(\d{2})(?::\d{2})?)?$")


def normalize_date(raw: Optional[str]) -> str:
    """Normalize to ``YYYY-MM-DD`` or ``YYYY-MM-DDTHH:MM``.

    Unrecognized input is returned trimmed so validation can report it.
    """
    if not raw:
        return ""
    value = raw.strip()
    if _ISO_DATE.match(value):
        return value

    match = _DAY_FIRST.match(value)
    if match:
        day, month, year, hour, minute = match.groups()
        date_part = f"{year}-{month.zfill(2)}-{day.zfill(2)}"
        if hour is None:
            return date_part
        return f"{date_part}T{hour.zfill(2)}:{minute}"

    match = _ISO_DATETIME.match(value)
    if match:
        date_part, hour, minute = match.groups()
        return f"{date_part}T{hour.zfill(2)}:{minute}"

    return value


def split_surnames(surnames: Optional[str]) -> Tuple[str, str]:
    """Split a full surname into first and second family names.

    Linking particles stay attached to the surname they introduce, so
    "García de la Torre" splits into ("García", "de la Torre").
    """
    if not surnames:
        return "", ""
    parts = surnames.split()
    if not parts:
        return "", ""
    if len(parts) == 1:
        return parts[0], ""
    if len(parts) == 2:
        return parts[0], parts[1]

    groups: List[str] = []
    current: List[str] = []
    for part in parts:
        current.append(part)
        if part.lower() not in SURNAME_PARTICLES:
            groups.append(" ".join(current))
            current = []

    # Trailing particles belong to the previous surname
    if current:
        if groups:
            groups[-1] = f"{groups[-1]} {' '.join(current)}"
        else:
            groups.append(" ".join(current))

    if len(groups) == 1:
        return groups[0], ""
    return groups[0], " ".join(groups[1:])


def _required(row: Dict[str, str], *labels: str) -> str:
    for label in labels:
        value = (row.get(label) or "").strip()
        if value:
            return value
    return ""


def _optional(row: Dict[str, str], *labels: str) -> Optional[str]:
    return _required(row, *labels) or None


def normalize_row(row: Dict[str, str], row_index: int) -> GuestRecord:
    """Build a GuestRecord from one row; ``row_index`` is 0-based."""
    first_surname, second_surname = split_surnames(row.get(COL_SURNAMES))

    phone = _optional(row, COL_PHONE)
    email = _optional(row, COL_EMAIL)
    contact = _optional(row, COL_PHONE_OR_EMAIL)
    if contact:
        if "@" in contact:
            email = email or contact
        else:
            phone = phone or contact

    country = catalog.normalize_country(_required(row, COL_COUNTRY))
    nationality = catalog.normalize_country(_required(row, COL_NATIONALITY, COL_COUNTRY))
    city = _required(row, COL_CITY)
    province = _optional(row, COL_PROVINCE)
    postal_code = _required(row, COL_POSTAL_CODE, COL_ADDRESS_POSTAL_CODE)
    document_type = _required(row, COL_DOCUMENT_TYPE)
    exit_date = _optional(row, COL_EXIT_DATE)

    return GuestRecord(
        rowNumber=row_index + FIRST_DATA_ROW,
        givenName=_required(row, COL_GIVEN_NAME),
        firstSurname=first_surname,
        secondSurname=second_surname or None,
        sex=_optional(row, COL_SEX),
        birthDate=normalize_date(_required(row, COL_BIRTH_DATE)),
        nationality=nationality,
        documentType=catalog.normalize_document_type(document_type) if document_type else "",
        documentNumber=_required(row, COL_DOCUMENT_NUMBER),
        supportNumber=_optional(row, COL_SUPPORT_NUMBER),
        address=_required(row, COL_ADDRESS),
        address2=_optional(row, COL_ADDRESS2),
        city=city,
        province=province,
        municipalityCode=catalog.municipality_code(city, province, postal_code) if country == "ESP" else None,
        postalCode=postal_code,
        country=country,
        phone=phone,
        email=email,
        entryDate=normalize_date(_required(row, COL_ENTRY_DATE)),
        exitDate=normalize_date(exit_date) if exit_date else None,
        kinship=_optional(row, COL_KINSHIP),
        role=GuestRole.TRAVELER,
    )


def normalize_rows(rows: Iterable[Dict[str, str]]) -> List[GuestRecord]:
    return [normalize_row(row, index) for index, row in enumerate(rows)]
