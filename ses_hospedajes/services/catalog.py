"""Shared reference tables and normalizers for SES.Hospedajes codes.

Ingestion and XML encoding both go through these functions so a guest keeps
the same country, document and municipality codes end to end.
"""
import json
import logging
import re
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger(__name__)

CACHE_DIR = Path(__file__).resolve().parents[2] / "data/catalog_cache"

NATIONAL_ID = "1"
PASSPORT = "2"
DRIVING_LICENSE = "3"
FOREIGN_RESIDENT_ID = "4"
IDENTITY_CARD = "5"

DOCUMENT_TYPES: Dict[str, str] = {
    NATIONAL_ID: "DNI",
    PASSPORT: "Pasaporte",
    DRIVING_LICENSE: "Permiso de conducir",
    FOREIGN_RESIDENT_ID: "Permiso de residencia / TIE / NIE",
    IDENTITY_CARD: "Carta de identidad",
}

# Single-letter codes used by older exports
LEGACY_DOCUMENT_LETTERS: Dict[str, str] = {
    "D": NATIONAL_ID,
    "P": PASSPORT,
    "C": DRIVING_LICENSE,
    "N": FOREIGN_RESIDENT_ID,
    "X": FOREIGN_RESIDENT_ID,
    "I": IDENTITY_CARD,
}

DOCUMENT_TYPE_LABELS: Dict[str, str] = {
    "dni": NATIONAL_ID,
    "d.n.i.": NATIONAL_ID,
    "d.n.i": NATIONAL_ID,
    "nif": NATIONAL_ID,
    "documento nacional de identidad": NATIONAL_ID,
    "pasaporte": PASSPORT,
    "passport": PASSPORT,
    "permiso de conducir": DRIVING_LICENSE,
    "conducir": DRIVING_LICENSE,
    "carnet de conducir": DRIVING_LICENSE,
    "driving license": DRIVING_LICENSE,
    "nie": FOREIGN_RESIDENT_ID,
    "n.i.e.": FOREIGN_RESIDENT_ID,
    "n.i.e": FOREIGN_RESIDENT_ID,
    "tie": FOREIGN_RESIDENT_ID,
    "permiso de residencia": FOREIGN_RESIDENT_ID,
    "residency permit": FOREIGN_RESIDENT_ID,
    "carta de identidad": IDENTITY_CARD,
    "identity card": IDENTITY_CARD,
    "id card": IDENTITY_CARD,
    "identidad": IDENTITY_CARD,
}

COUNTRIES: Dict[str, str] = {
    "ESP": "España",
    "FRA": "Francia",
    "DEU": "Alemania",
    "GBR": "Reino Unido",
    "ITA": "Italia",
    "PRT": "Portugal",
    "NLD": "Países Bajos",
    "BEL": "Bélgica",
    "USA": "Estados Unidos",
    "ARG": "Argentina",
    "MEX": "México",
    "COL": "Colombia",
    "BRA": "Brasil",
    "CHN": "China",
    "JPN": "Japón",
    "MAR": "Marruecos",
    "ROU": "Rumanía",
    "POL": "Polonia",
    "CHE": "Suiza",
    "AUT": "Austria",
    "SWE": "Suecia",
    "NOR": "Noruega",
    "DNK": "Dinamarca",
    "FIN": "Finlandia",
    "IRL": "Irlanda",
    "CZE": "República Checa",
    "HUN": "Hungría",
    "GRC": "Grecia",
    "HRV": "Croacia",
    "BGR": "Bulgaria",
    "UKR": "Ucrania",
    "RUS": "Rusia",
    "TUR": "Turquía",
    "CAN": "Canadá",
    "AUS": "Australia",
    "CHL": "Chile",
    "PER": "Perú",
    "VEN": "Venezuela",
    "ECU": "Ecuador",
    "BOL": "Bolivia",
    "URY": "Uruguay",
    "PRY": "Paraguay",
    "CUB": "Cuba",
    "DOM": "República Dominicana",
    "GTM": "Guatemala",
    "HND": "Honduras",
    "SLV": "El Salvador",
    "NIC": "Nicaragua",
    "CRI": "Costa Rica",
    "PAN": "Panamá",
    "AND": "Andorra",
}

COUNTRY_NAMES: Dict[str, str] = {
    "españa": "ESP", "spain": "ESP", "espagne": "ESP",
    "francia": "FRA", "france": "FRA",
    "alemania": "DEU", "germany": "DEU", "deutschland": "DEU",
    "reino unido": "GBR", "united kingdom": "GBR", "uk": "GBR",
    "italia": "ITA", "italy": "ITA",
    "portugal": "PRT",
    "países bajos": "NLD", "paises bajos": "NLD", "holanda": "NLD", "netherlands": "NLD",
    "bélgica": "BEL", "belgica": "BEL", "belgium": "BEL",
    "estados unidos": "USA", "united states": "USA", "usa": "USA",
    "argentina": "ARG",
    "méxico": "MEX", "mexico": "MEX",
    "colombia": "COL",
    "brasil": "BRA", "brazil": "BRA",
    "china": "CHN",
    "japón": "JPN", "japon": "JPN", "japan": "JPN",
    "marruecos": "MAR", "morocco": "MAR",
    "rumanía": "ROU", "rumania": "ROU", "romania": "ROU",
    "polonia": "POL", "poland": "POL",
    "suiza": "CHE", "switzerland": "CHE",
    "austria": "AUT",
    "suecia": "SWE", "sweden": "SWE",
    "noruega": "NOR", "norway": "NOR",
    "dinamarca": "DNK", "denmark": "DNK",
    "finlandia": "FIN", "finland": "FIN",
    "irlanda": "IRL", "ireland": "IRL",
    "república checa": "CZE", "czech republic": "CZE", "chequia": "CZE",
    "hungría": "HUN", "hungary": "HUN",
    "grecia": "GRC", "greece": "GRC",
    "croacia": "HRV", "croatia": "HRV",
    "bulgaria": "BGR",
    "ucrania": "UKR", "ukraine": "UKR",
    "rusia": "RUS", "russia": "RUS",
    "turquía": "TUR", "turquia": "TUR", "turkey": "TUR",
    "canadá": "CAN", "canada": "CAN",
    "australia": "AUS",
    "chile": "CHL",
    "perú": "PER", "peru": "PER",
    "venezuela": "VEN",
    "ecuador": "ECU",
    "bolivia": "BOL",
    "uruguay": "URY",
    "paraguay": "PRY",
    "cuba": "CUB",
    "república dominicana": "DOM",
    "guatemala": "GTM",
    "honduras": "HND",
    "el salvador": "SLV",
    "nicaragua": "NIC",
    "costa rica": "CRI",
    "panamá": "PAN", "panama": "PAN",
    "andorra": "AND",
}

ALPHA2_TO_ALPHA3: Dict[str, str] = {
    "ES": "ESP", "FR": "FRA", "DE": "DEU", "GB": "GBR", "IT": "ITA",
    "PT": "PRT", "NL": "NLD", "BE": "BEL", "US": "USA", "AR": "ARG",
    "MX": "MEX", "CO": "COL", "BR": "BRA", "CN": "CHN", "JP": "JPN",
    "MA": "MAR", "RO": "ROU", "PL": "POL", "CH": "CHE", "AT": "AUT",
    "SE": "SWE", "NO": "NOR", "DK": "DNK", "FI": "FIN", "IE": "IRL",
    "CZ": "CZE", "HU": "HUN", "GR": "GRC", "HR": "HRV", "BG": "BGR",
    "UA": "UKR", "RU": "RUS", "TR": "TUR", "CA": "CAN", "AU": "AUS",
    "CL": "CHL", "PE": "PER", "VE": "VEN", "EC": "ECU", "UY": "URY",
    "AD": "AND",
}

# INE province prefixes (first two digits of the 5-digit municipality code)
PROVINCE_PREFIXES: Dict[str, str] = {
    "álava": "01", "alava": "01", "araba": "01",
    "albacete": "02",
    "alicante": "03", "alacant": "03",
    "almería": "04", "almeria": "04",
    "ávila": "05", "avila": "05",
    "badajoz": "06",
    "baleares": "07", "illes balears": "07", "islas baleares": "07", "palma": "07",
    "barcelona": "08",
    "burgos": "09",
    "cáceres": "10", "caceres": "10",
    "cádiz": "11", "cadiz": "11",
    "castellón": "12", "castellon": "12", "castello": "12",
    "ciudad real": "13",
    "córdoba": "14", "cordoba": "14",
    "la coruña": "15", "a coruña": "15", "coruña": "15",
    "cuenca": "16",
    "gerona": "17", "girona": "17",
    "granada": "18",
    "guadalajara": "19",
    "guipúzcoa": "20", "guipuzcoa": "20", "gipuzkoa": "20",
    "huelva": "21",
    "huesca": "22",
    "jaén": "23", "jaen": "23",
    "león": "24", "leon": "24",
    "lérida": "25", "lerida": "25", "lleida": "25",
    "la rioja": "26", "rioja": "26",
    "lugo": "27",
    "madrid": "28",
    "málaga": "29", "malaga": "29",
    "murcia": "30",
    "navarra": "31",
    "orense": "32", "ourense": "32",
    "asturias": "33",
    "palencia": "34",
    "las palmas": "35",
    "pontevedra": "36",
    "salamanca": "37",
    "santa cruz de tenerife": "38", "tenerife": "38",
    "cantabria": "39",
    "segovia": "40",
    "sevilla": "41",
    "soria": "42",
    "tarragona": "43",
    "teruel": "44",
    "toledo": "45",
    "valencia": "46",
    "valladolid": "47",
    "vizcaya": "48", "bizkaia": "48",
    "zamora": "49",
    "zaragoza": "50",
    "ceuta": "51",
    "melilla": "52",
}

# Province capital / generic municipality; SES fills province and city from the prefix
GENERIC_MUNICIPALITY_SUFFIX = "000"

PAYMENT_METHODS: Dict[str, str] = {
    "1": "Efectivo",
    "2": "Tarjeta",
    "3": "Transferencia",
    "4": "Plataforma de pago",
    "5": "Otros medios de pago",
}

DEFAULT_PAYMENT_CODE = "5"

# Checked in this order; the first label contained in the input wins
PAYMENT_KEYWORDS = [
    ("efectivo", "1"),
    ("tarjeta", "2"),
    ("transferencia", "3"),
    ("plataforma", "4"),
    ("otros", "5"),
]

PAYMENT_SHORT_CODES: Dict[str, str] = {"ef": "1", "ta": "2", "tr": "3", "pp": "4", "ot": "5"}

_DIGIT = re.compile(r"^\d$")
_LETTER = re.compile(r"^[A-Za-z]$")
_ALPHA3 = re.compile(r"^[A-Za-z]{3}$")
_ALPHA2 = re.compile(r"^[A-Za-z]{2}$")
_POSTAL_CODE = re.compile(r"^\d{5}$")


def normalize_country(raw: Optional[str]) -> str:
    """Return the ISO 3166-1 alpha-3 code for a country code or name.

    Unknown values come back trimmed but otherwise untouched.
    """
    if not raw:
        return ""
    value = raw.strip()
    if _ALPHA3.match(value):
        return value.upper()
    if _ALPHA2.match(value):
        return ALPHA2_TO_ALPHA3.get(value.upper()) or COUNTRY_NAMES.get(value.lower(), value)
    return COUNTRY_NAMES.get(value.lower(), value)


def normalize_document_type(raw: Optional[str]) -> str:
    """Return the numeric RD 933/2021 document type code."""
    value = (raw or "").strip()
    if _DIGIT.match(value):
        return value
    if _LETTER.match(value):
        return LEGACY_DOCUMENT_LETTERS.get(value.upper(), value.upper())
    return DOCUMENT_TYPE_LABELS.get(value.lower(), NATIONAL_ID)


def province_prefix(province: Optional[str]) -> Optional[str]:
    if not province:
        return None
    return PROVINCE_PREFIXES.get(province.strip().lower())


def municipality_code(city: Optional[str], province: Optional[str], postal_code: Optional[str]) -> Optional[str]:
    """Best-effort 5-digit INE municipality code.

    The postal code prefix wins over the province name. City is accepted for
    call-site symmetry but municipality-level resolution is not attempted.
    """
    prefix = None
    code = (postal_code or "").strip()
    if _POSTAL_CODE.match(code):
        prefix = code[:2]
    else:
        prefix = province_prefix(province)
    if not prefix:
        return None
    return prefix + GENERIC_MUNICIPALITY_SUFFIX


def payment_code(label: Optional[str]) -> str:
    """Map a free-text payment label to the numeric SES payment code."""
    value = (label or "").strip().lower()
    if not value:
        return DEFAULT_PAYMENT_CODE
    for keyword, code in PAYMENT_KEYWORDS:
        if keyword in value:
            return code
    if value in PAYMENT_SHORT_CODES:
        return PAYMENT_SHORT_CODES[value]
    if _DIGIT.match(value):
        return value
    return DEFAULT_PAYMENT_CODE


def is_known_country(code: str) -> bool:
    return code in COUNTRIES


def codelists() -> Dict[str, list]:
    """Catalog tables in code/label form, as served to API and MCP clients."""
    return {
        "DOCUMENT_TYPES": [{"code": k, "label": v} for k, v in DOCUMENT_TYPES.items()],
        "COUNTRIES": [{"code": k, "label": v} for k, v in COUNTRIES.items()],
        "PROVINCES": [{"code": v, "label": k} for k, v in PROVINCE_PREFIXES.items()],
        "PAYMENT_METHODS": [{"code": k, "label": v} for k, v in PAYMENT_METHODS.items()],
    }


def _read_cache(path: Path) -> Optional[list]:
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.warning("Ignoring unreadable catalog cache %s: %s", path, exc)
        return None
    if not isinstance(data, list):
        logger.warning("Ignoring catalog cache %s: expected a list of entries", path)
        return None
    return data


def load_caches(base: Path = CACHE_DIR) -> None:
    """Extend the embedded tables with entries from the JSON catalog cache.

    Each cache file is a list of ``{"code": ..., "label": ...}`` objects, as
    written by ``scripts/build_catalog_cache.py``. Embedded entries are never
    removed, so a partial cache cannot drop a known code.
    """
    countries = _read_cache(base / "countries.json") or []
    for entry in countries:
        code = str(entry.get("code") or "").strip().upper()
        label = str(entry.get("label") or "").strip()
        if len(code) != 3:
            continue
        COUNTRIES.setdefault(code, label)
        if label:
            COUNTRY_NAMES.setdefault(label.lower(), code)
        alpha2 = str(entry.get("alpha2") or "").strip().upper()
        if len(alpha2) == 2:
            ALPHA2_TO_ALPHA3.setdefault(alpha2, code)

    provinces = _read_cache(base / "provinces.json") or []
    for entry in provinces:
        code = str(entry.get("code") or "").strip()
        label = str(entry.get("label") or "").strip().lower()
        if len(code) == 2 and code.isdigit() and label:
            PROVINCE_PREFIXES.setdefault(label, code)

    document_types = _read_cache(base / "document_types.json") or []
    for entry in document_types:
        code = str(entry.get("code") or "").strip()
        label = str(entry.get("label") or "").strip().lower()
        if code in DOCUMENT_TYPES and label:
            DOCUMENT_TYPE_LABELS.setdefault(label, code)


load_caches()
