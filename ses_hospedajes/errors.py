"""Typed errors for the SES.Hospedajes submission pipeline.

Guest data problems are never raised: they are reported as
ValidationIssue values. These exceptions cover configuration, transport
and storage failures, and are converted to result values by the
orchestrator before reaching callers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class SesHospedajesError(Exception):
    """Base error for the pipeline.

    Attributes:
        message: Human-readable error description
        cause: Optional underlying exception that caused this error
    """

    message: str
    cause: Optional[Exception] = field(default=None, repr=False)

    def __str__(self) -> str:
        if self.cause:
            return f"{self.message}: {self.cause}"
        return self.message

    def __post_init__(self) -> None:
        super().__init__(self.message)


@dataclass
class ConfigurationError(SesHospedajesError):
    """Missing credentials or endpoint.

    Attributes:
        setting_name: Environment variable(s) that must be set
    """

    setting_name: str = ""


@dataclass
class TransportError(SesHospedajesError):
    """The request never produced a usable response.

    Covers timeouts, TLS and connection failures, and HTTP statuses the
    remote service does not use for business replies.

    Attributes:
        code: NETWORK_ERROR or HTTP_<status>
        status_code: HTTP status when a response was received
    """

    code: str = "NETWORK_ERROR"
    status_code: Optional[int] = None


@dataclass
class StatusQueryError(SesHospedajesError):
    """A batch status query returned nothing conclusive."""

    batch_id: str = ""


@dataclass
class RecordNotFoundError(SesHospedajesError):
    """No job or batch record with this id."""

    record_id: str = ""


@dataclass
class EmptyBatchError(SesHospedajesError):
    """The selected jobs contain no guest that can be sent."""
