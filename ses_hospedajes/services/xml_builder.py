"""XML documents exchanged with the SES.Hospedajes communication service.

Two payload variants share one builder: reservations (RH) carry the
establishment inside the communication block, traveler reports (PV) carry it
once per request and may include supporting-document and kinship data.
The payload is zipped, base64 encoded and wrapped in a WS-Security SOAP
envelope.
"""
import base64
import hashlib
import io
import time
import zipfile
from datetime import date
from typing import List, Optional, Tuple

from lxml import etree

from ..models.schemas import CommunicationBatchRequest, CommunicationType, GuestRecord, GuestRole
from . import catalog
from .normalizer import normalize_date

RESERVATION_NS = "http://www.neg.hospedajes.mir.es/altaReservaHospedaje"
TRAVELER_REPORT_NS = "http://www.neg.hospedajes.mir.es/altaParteHospedaje"
GENERAL_TYPES_NS = "http://www.neg.hospedajes.mir.es/tiposGenerales"

SOAPENV_NS = "http://schemas.xmlsoap.org/soap/envelope/"
COMMUNICATION_NS = "http://www.soap.servicios.hospedajes.mir.es/comunicacion"
WSSE_NS = "http://docs.oasis-open.org/wss/2004/01/oasis-200401-wss-wssecurity-secext-1.0.xsd"
WSU_NS = "http://docs.oasis-open.org/wss/2004/01/oasis-200401-wss-wssecurity-utility-1.0.xsd"
PASSWORD_TEXT = "http://docs.oasis-open.org/wss/2004/01/oasis-200401-wss-username-token-profile-1.0#PasswordText"

PAYLOAD_FILENAME = "comunicacion.xml"
OPERATION_CREATE = "A"
SPAIN = "ESP"
DEFAULT_TIME = "12:00:00"


def _text(parent: etree._Element, tag: str, value: Optional[str]) -> etree._Element:
    node = etree.SubElement(parent, tag)
    node.text = value if value is not None else ""
    return node


def _optional_text(parent: etree._Element, tag: str, value: Optional[str]) -> None:
    if value:
        _text(parent, tag, value)


def _serialize(root: etree._Element) -> bytes:
    return etree.tostring(root, xml_declaration=True, encoding="UTF-8", pretty_print=True)


def format_datetime(value: Optional[str]) -> str:
    """Expand a stay date to the xsd:dateTime form YYYY-MM-DDTHH:MM:SS."""
    if not value:
        return ""
    normalized = normalize_date(value)
    if len(normalized) == 10:
        return f"{normalized}T{DEFAULT_TIME}"
    if len(normalized) == 16:
        return f"{normalized}:00"
    return normalized


def encoded_roles(guests: List[GuestRecord]) -> List[GuestRole]:
    """Roles as sent on the wire.

    SES needs exactly one holder to fill in the contract holder tab; when the
    batch has none, the first guest is sent as holder. Records are not changed.
    """
    roles = [guest.role for guest in guests]
    if roles and GuestRole.HOLDER not in roles:
        roles[0] = GuestRole.HOLDER
    return roles


def _contract(communication: etree._Element, request: CommunicationBatchRequest, today: date) -> None:
    contract = request.contract
    guests = request.guests
    first = guests[0] if guests else None

    node = etree.SubElement(communication, "contrato")
    _text(node, "referencia", contract.reference or f"REF-{int(time.time() * 1000)}")
    _text(node, "fechaContrato", contract.signatureDate or today.isoformat())

    entry = contract.entryDate or (first.entryDate if first else "")
    departure = contract.exitDate or (first.exitDate if first else None)
    _text(node, "fechaEntrada", format_datetime(entry))
    if departure:
        _text(node, "fechaSalida", format_datetime(departure))

    _text(node, "numPersonas", str(contract.occupantCount or len(guests)))

    payment = etree.SubElement(node, "pago")
    _text(payment, "tipoPago", catalog.payment_code(contract.paymentMethod))
    _optional_text(payment, "fechaPago", contract.paymentDate)


def _persona(communication: etree._Element, guest: GuestRecord, role: GuestRole, traveler_report: bool) -> None:
    node = etree.SubElement(communication, "persona")
    _text(node, "rol", role.value)
    _text(node, "nombre", guest.givenName)
    _text(node, "apellido1", guest.firstSurname)
    _optional_text(node, "apellido2", guest.secondSurname)

    country = catalog.normalize_country(guest.country or SPAIN)

    _text(node, "tipoDocumento", catalog.normalize_document_type(guest.documentType or catalog.NATIONAL_ID))
    _optional_text(node, "numeroDocumento", guest.documentNumber)
    if traveler_report:
        _optional_text(node, "soporteDocumento", guest.supportNumber)
    _optional_text(node, "fechaNacimiento", guest.birthDate)
    if guest.nationality:
        _text(node, "nacionalidad", catalog.normalize_country(guest.nationality))
    _optional_text(node, "sexo", guest.sex)

    address = etree.SubElement(node, "direccion")
    _text(address, "direccion", guest.address)
    _optional_text(address, "direccionComplementaria", guest.address2)
    municipality = guest.municipalityCode or catalog.municipality_code(guest.city, guest.province, guest.postalCode)
    if municipality and country == SPAIN:
        _text(address, "codigoMunicipio", municipality)
    # nombreMunicipio carries the province as "City (Province)"
    city = f"{guest.city} ({guest.province})" if guest.province else guest.city
    _text(address, "nombreMunicipio", city)
    _text(address, "codigoPostal", guest.postalCode)
    _text(address, "pais", country)

    _optional_text(node, "telefono", guest.phone)
    _optional_text(node, "correo", guest.email)
    if traveler_report:
        _optional_text(node, "parentesco", guest.kinship)


def build_communication_xml(request: CommunicationBatchRequest, today: Optional[date] = None) -> bytes:
    """Encode a batch as the UTF-8 ``peticion`` document for its communication type."""
    today = today or date.today()
    traveler_report = request.communicationType is CommunicationType.TRAVELER_REPORT
    namespace = TRAVELER_REPORT_NS if traveler_report else RESERVATION_NS

    root = etree.Element(f"{{{namespace}}}peticion", nsmap={"alt": namespace, "hospe": GENERAL_TYPES_NS})
    request_node = etree.SubElement(root, "solicitud")
    if traveler_report:
        _text(request_node, "codigoEstablecimiento", request.establishmentCode)

    communication = etree.SubElement(request_node, "comunicacion")
    if not traveler_report:
        establishment = etree.SubElement(communication, "establecimiento")
        _text(establishment, "codigo", request.establishmentCode)

    _contract(communication, request, today)

    for guest, role in zip(request.guests, encoded_roles(request.guests)):
        _persona(communication, guest, role, traveler_report)

    return _serialize(root)


def compress_and_encode(xml: bytes) -> str:
    """Zip the payload as a single entry and base64 encode the archive."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        # Fixed timestamp keeps identical payloads byte-identical
        info = zipfile.ZipInfo(PAYLOAD_FILENAME, date_time=(1980, 1, 1, 0, 0, 0))
        info.compress_type = zipfile.ZIP_DEFLATED
        archive.writestr(info, xml)
    return base64.b64encode(buffer.getvalue()).decode("ascii")


def xml_hash(xml: bytes) -> str:
    return hashlib.sha256(xml).hexdigest()


def _envelope(username: str, password: str) -> Tuple[etree._Element, etree._Element]:
    envelope = etree.Element(
        f"{{{SOAPENV_NS}}}Envelope",
        nsmap={"soapenv": SOAPENV_NS, "com": COMMUNICATION_NS},
    )
    header = etree.SubElement(envelope, f"{{{SOAPENV_NS}}}Header")
    security = etree.SubElement(header, f"{{{WSSE_NS}}}Security", nsmap={"wsse": WSSE_NS, "wsu": WSU_NS})
    token = etree.SubElement(security, f"{{{WSSE_NS}}}UsernameToken")
    _text(token, f"{{{WSSE_NS}}}Username", username)
    password_node = _text(token, f"{{{WSSE_NS}}}Password", password)
    password_node.set("Type", PASSWORD_TEXT)
    body = etree.SubElement(envelope, f"{{{SOAPENV_NS}}}Body")
    return envelope, body


def build_soap_envelope(
    payload_b64: str,
    username: str,
    password: str,
    lessor_code: str,
    communication_type: CommunicationType = CommunicationType.TRAVELER_REPORT,
    application: str = "SES-HOSPEDAJES-APP",
) -> bytes:
    """Envelope for ``comunicacionRequest`` carrying the zipped payload."""
    envelope, body = _envelope(username, password)
    request = etree.SubElement(body, f"{{{COMMUNICATION_NS}}}comunicacionRequest")
    petition = etree.SubElement(request, "peticion")

    header = etree.SubElement(petition, "cabecera")
    _text(header, "codigoArrendador", lessor_code)
    _text(header, "aplicacion", application)
    _text(header, "tipoOperacion", OPERATION_CREATE)
    _text(header, "tipoComunicacion", communication_type.tag)

    _text(petition, "solicitud", payload_b64)
    return _serialize(envelope)


def build_status_query_envelope(batch_id: str, username: str, password: str) -> bytes:
    """Envelope for ``consultaLoteRequest`` on a single batch."""
    envelope, body = _envelope(username, password)
    query = etree.SubElement(body, f"{{{COMMUNICATION_NS}}}consultaLoteRequest")
    codes = etree.SubElement(query, "codigosLote")
    _text(codes, "lote", batch_id)
    return _serialize(envelope)
