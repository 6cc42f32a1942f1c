"""Wire client for the SES.Hospedajes SOAP endpoint.

The remote service has no single success flag: a reply is classified by
scanning for a SOAP fault, then itemized ``<error>`` blocks, then a non-zero
``respuesta/codigo``, in that order. Anything else is an accepted batch.
"""
from __future__ import annotations

import logging
import re
import ssl
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Union

import httpx

from ..config import Settings
from ..errors import ConfigurationError, StatusQueryError, TransportError
from ..models.schemas import CommunicationBatchRequest, RemoteError
from .xml_builder import (
    build_communication_xml,
    build_soap_envelope,
    build_status_query_envelope,
    compress_and_encode,
)

logger = logging.getLogger(__name__)

CONTENT_TYPE = "text/xml; charset=utf-8"
# HTTP 500 carries SOAP faults and business errors, so it is parsed like a 200
BUSINESS_ERROR_STATUS = 500
SUCCESS_CODE = "0"


def _tag(name: str) -> re.Pattern:
    """Match ``<name>...</name>`` with or without a namespace prefix."""
    return re.compile(
        rf"<(?:[\w.-]+:)?{name}(?:\s[^>]*)?>(.*?)</(?:[\w.-]+:)?{name}\s*>",
        re.DOTALL,
    )


FAULT_TAG = _tag("faultstring")
ERROR_TAG = _tag("error")
CODE_TAG = _tag("codigo")
DESCRIPTION_TAG = _tag("descripcion")
MESSAGE_TAG = _tag("mensaje")
RESPONSE_TAG = _tag("respuesta")
BATCH_TAG = _tag("lote")
STATUS_TAG = _tag("estado")
ANY_TAG = re.compile(r"<[^>]+>")


def _first(pattern: re.Pattern, text: str) -> Optional[str]:
    match = pattern.search(text)
    if not match:
        return None
    return match.group(1).strip()


def parse_error_blocks(text: str) -> List[RemoteError]:
    """One RemoteError per ``<error>`` block; code falls back to ERR_<n>."""
    errors: List[RemoteError] = []
    for index, match in enumerate(ERROR_TAG.finditer(text)):
        content = match.group(1)
        code = _first(CODE_TAG, content) or f"ERR_{index}"
        message = (
            _first(DESCRIPTION_TAG, content)
            or _first(MESSAGE_TAG, content)
            or ANY_TAG.sub("", content).strip()
        )
        errors.append(RemoteError(code=code, message=message))
    return errors


class ResponseKind(str, Enum):
    FAULT = "fault"
    ITEM_ERRORS = "item_errors"
    GLOBAL_ERROR = "global_error"
    SUCCESS = "success"


@dataclass(frozen=True)
class ResponseClassification:
    kind: ResponseKind
    batch_id: Optional[str] = None
    errors: List[RemoteError] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.kind is ResponseKind.SUCCESS


def classify_response(text: str) -> ResponseClassification:
    """Classify a communication reply: fault, itemized errors, global error or success."""
    batch_id = _first(BATCH_TAG, text) or None

    fault = _first(FAULT_TAG, text)
    if fault is not None:
        return ResponseClassification(
            ResponseKind.FAULT, batch_id, [RemoteError(code="SOAP_FAULT", message=fault)]
        )

    errors = parse_error_blocks(text)
    if errors:
        return ResponseClassification(ResponseKind.ITEM_ERRORS, batch_id, errors)

    response = _first(RESPONSE_TAG, text)
    if response is not None:
        code = _first(CODE_TAG, response)
        if code and code != SUCCESS_CODE:
            message = _first(DESCRIPTION_TAG, response) or _first(MESSAGE_TAG, response) or ""
            return ResponseClassification(
                ResponseKind.GLOBAL_ERROR, batch_id, [RemoteError(code=code, message=message)]
            )

    return ResponseClassification(ResponseKind.SUCCESS, batch_id)


@dataclass(frozen=True)
class BatchStatusReport:
    batch_id: str
    status: str
    errors: List[RemoteError] = field(default_factory=list)


def parse_status_response(text: str, batch_id: str) -> BatchStatusReport:
    """Read the batch status and per-guest errors from a ``consultaLote`` reply.

    Raises:
        StatusQueryError: the reply is a fault or a non-zero global code
            without per-guest detail.
    """
    fault = _first(FAULT_TAG, text)
    if fault is not None:
        raise StatusQueryError(f"Status query for batch {batch_id} returned a SOAP fault: {fault}", batch_id=batch_id)

    errors = parse_error_blocks(text)
    if not errors:
        response = _first(RESPONSE_TAG, text)
        code = _first(CODE_TAG, response) if response is not None else None
        if code and code != SUCCESS_CODE:
            description = _first(DESCRIPTION_TAG, response) or ""
            raise StatusQueryError(
                f"Status query for batch {batch_id} failed with code {code}: {description}",
                batch_id=batch_id,
            )

    status = (_first(STATUS_TAG, text) or "unknown").lower()
    return BatchStatusReport(batch_id=batch_id, status=status, errors=errors)


@dataclass
class TransportConfig:
    """Connection settings for one client; never shared through process state.

    Attributes:
        endpoint: HTTPS URL of the communication service
        username: web service user, used for HTTP Basic and WS-Security
        password: web service password
        verify: False disables certificate checks for this client only
        ca_bundle: optional CA file for the government certificate chain
        timeout: seconds; requests never wait indefinitely
        transport: optional httpx transport (tests use httpx.MockTransport)
    """

    endpoint: str
    username: str
    password: str
    verify: bool = True
    ca_bundle: Optional[str] = None
    timeout: float = 30.0
    transport: Optional[httpx.BaseTransport] = field(default=None, repr=False)

    @classmethod
    def from_settings(cls, settings: Settings, transport: Optional[httpx.BaseTransport] = None) -> "TransportConfig":
        missing = settings.missing()
        if missing:
            raise ConfigurationError(
                "Credenciales o endpoint del servicio web no configurados",
                setting_name=", ".join(missing),
            )
        config = cls(
            endpoint=settings.endpoint,
            username=settings.ws_user,
            password=settings.ws_password,
            verify=settings.verify_tls,
            ca_bundle=settings.ca_bundle,
            timeout=settings.timeout,
            transport=transport,
        )
        config.ssl_verify()
        return config

    def ssl_verify(self) -> Union[bool, ssl.SSLContext]:
        """
        Raises:
            ConfigurationError: the CA bundle cannot be loaded
        """
        if not self.verify:
            return False
        if self.ca_bundle:
            try:
                return ssl.create_default_context(cafile=self.ca_bundle)
            except (OSError, ssl.SSLError) as exc:
                raise ConfigurationError(
                    f"No se puede cargar el certificado CA {self.ca_bundle}",
                    cause=exc,
                    setting_name="SES_CA_BUNDLE",
                )
        return True


class SesClient:
    def __init__(self, config: TransportConfig, lessor_code: str, application: str):
        self.config = config
        self.lessor_code = lessor_code
        self.application = application

    def post(self, envelope: bytes) -> str:
        """POST one SOAP envelope and return the reply body.

        The service requires an exact Content-Length and rejects keep-alive
        connections, so each call opens and closes its own connection.

        Raises:
            TransportError: timeout, connection/TLS failure, or HTTP status
                >= 400 other than 500.
        """
        headers = {
            "Content-Type": CONTENT_TYPE,
            "SOAPAction": "",
            "Content-Length": str(len(envelope)),
            "Connection": "close",
        }
        logger.info("POST %s (%d bytes)", self.config.endpoint, len(envelope))
        try:
            with httpx.Client(
                verify=self.config.ssl_verify(),
                timeout=self.config.timeout,
                transport=self.config.transport,
            ) as client:
                response = client.post(
                    self.config.endpoint,
                    content=envelope,
                    headers=headers,
                    auth=(self.config.username, self.config.password),
                )
        except httpx.HTTPError as exc:
            raise TransportError("Error de red al contactar con el servicio web", cause=exc)

        logger.info("SES responded with HTTP %d", response.status_code)
        if response.status_code >= 400 and response.status_code != BUSINESS_ERROR_STATUS:
            raise TransportError(
                f"HTTP_{response.status_code}: {response.reason_phrase}",
                code=f"HTTP_{response.status_code}",
                status_code=response.status_code,
            )
        return response.text

    def build_envelope(self, request: CommunicationBatchRequest, xml: Optional[bytes] = None) -> bytes:
        xml = xml if xml is not None else build_communication_xml(request)
        return build_soap_envelope(
            compress_and_encode(xml),
            self.config.username,
            self.config.password,
            self.lessor_code,
            request.communicationType,
            application=self.application,
        )

    def query_batch(self, batch_id: str) -> BatchStatusReport:
        envelope = build_status_query_envelope(batch_id, self.config.username, self.config.password)
        return parse_status_response(self.post(envelope), batch_id)
