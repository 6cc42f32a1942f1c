from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


class GuestRole(str, Enum):
    TRAVELER = "VI"
    HOLDER = "TI"


class CommunicationType(str, Enum):
    RESERVATION = "reserva"
    TRAVELER_REPORT = "parte_viajeros"

    @property
    def tag(self) -> str:
        """Two-letter code sent as ``tipoComunicacion``."""
        return "RH" if self is CommunicationType.RESERVATION else "PV"


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class SubmissionState(str, Enum):
    BUILT = "built"
    SENDING = "sending"
    ACCEPTED = "accepted"
    RECONCILING = "reconciling"
    PARTIALLY_REJECTED = "partially_rejected"
    FAILED = "failed"


class ReconciliationState(str, Enum):
    CONFIRMED_ACCEPTED = "confirmed_accepted"
    CONFIRMED_PARTIAL = "confirmed_partial"
    ACCEPTED_UNCONFIRMED = "accepted_unconfirmed"


class BatchStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    ACCEPTED = "accepted"
    PARTIALLY_REJECTED = "partially_rejected"
    ERROR = "error"


class ImportJobStatus(str, Enum):
    UPLOADED = "uploaded"
    VALIDATED = "validated"
    SENDING = "sending"
    SENT = "sent"
    PARTIAL_ERROR = "partial_error"
    ERROR = "error"


class GuestRecord(BaseModel):
    rowNumber: int
    givenName: str = ""
    firstSurname: str = ""
    secondSurname: Optional[str] = None
    sex: Optional[str] = None
    birthDate: str = ""
    nationality: str = ""
    documentType: str = ""
    documentNumber: str = ""
    supportNumber: Optional[str] = Field(None, description="Supporting document number (número de soporte)")
    address: str = ""
    address2: Optional[str] = None
    city: str = ""
    province: Optional[str] = None
    municipalityCode: Optional[str] = Field(None, description="5-digit INE code")
    postalCode: str = ""
    country: str = ""
    phone: Optional[str] = None
    email: Optional[str] = None
    entryDate: str = Field("", description="YYYY-MM-DD or YYYY-MM-DDTHH:MM")
    exitDate: Optional[str] = None
    kinship: Optional[str] = Field(None, description="Relationship code, minors only")
    role: GuestRole = GuestRole.TRAVELER


class ValidationIssue(BaseModel):
    model_config = ConfigDict(frozen=True)

    row: int
    field: str
    message: str
    severity: Severity


class ValidationResult(BaseModel):
    isValid: bool
    errors: List[ValidationIssue]
    warnings: List[ValidationIssue]
    validGuests: List[GuestRecord]
    totalRows: int
    validCount: int
    errorCount: int
    warningCount: int


class ContractMetadata(BaseModel):
    reference: Optional[str] = None
    signatureDate: Optional[str] = Field(None, description="YYYY-MM-DD")
    entryDate: Optional[str] = Field(None, description="Overrides every guest's entry date")
    exitDate: Optional[str] = None
    occupantCount: Optional[int] = None
    paymentMethod: Optional[str] = Field(None, description="Free text, e.g. 'Otros medios de pago'")
    paymentDate: Optional[str] = None


class CommunicationBatchRequest(BaseModel):
    establishmentCode: str
    communicationType: CommunicationType = CommunicationType.TRAVELER_REPORT
    guests: List[GuestRecord]
    contract: ContractMetadata = Field(default_factory=ContractMetadata)


class RemoteError(BaseModel):
    code: str
    message: str


class SubmissionOutcome(BaseModel):
    success: bool
    state: SubmissionState
    batchId: Optional[str] = None
    errors: List[RemoteError] = []
    rawResponse: Optional[str] = None
    guestCount: int = 0
    acceptedCount: int = 0
    rejectedCount: int = 0
    guestErrors: List[RemoteError] = []
    reconciliation: Optional[ReconciliationState] = None


class ReconciliationResult(BaseModel):
    state: ReconciliationState
    acceptedCount: int
    rejectedCount: int
    remoteStatus: Optional[str] = None
    guestErrors: List[RemoteError] = []
    diagnostic: Optional[str] = None


class ImportJob(BaseModel):
    id: str
    filename: str
    rowCount: int
    validCount: int
    errorCount: int
    status: ImportJobStatus
    communicationType: CommunicationType
    contract: ContractMetadata = Field(default_factory=ContractMetadata)
    guests: List[GuestRecord] = []
    validationResult: Optional[ValidationResult] = None
    createdAt: str = Field(default_factory=utcnow)
    updatedAt: str = Field(default_factory=utcnow)


class CommunicationBatch(BaseModel):
    id: str
    importJobId: str
    sourceJobIds: List[str] = []
    type: CommunicationType
    status: BatchStatus = BatchStatus.PENDING
    sesBatchId: Optional[str] = None
    xmlHash: Optional[str] = None
    itemCount: int = 0
    acceptedCount: int = 0
    rejectedCount: int = 0
    reconciliation: Optional[ReconciliationState] = None
    apiResponse: Dict[str, Any] = {}
    createdAt: str = Field(default_factory=utcnow)
    updatedAt: str = Field(default_factory=utcnow)


# ---- API payloads ----

class IngestRequest(BaseModel):
    filename: str = "upload.csv"
    communicationType: CommunicationType = CommunicationType.TRAVELER_REPORT
    rows: List[Dict[str, str]] = Field(..., description="Spreadsheet rows keyed by column label")
    contract: ContractMetadata = Field(default_factory=ContractMetadata)


class SendRequest(BaseModel):
    jobIds: List[str] = []
    jobId: Optional[str] = None
    guestIndices: Optional[List[int]] = None


class SendResponse(BaseModel):
    success: bool
    batch: CommunicationBatch
    outcome: SubmissionOutcome
    xml: str


class PreviewRequest(BaseModel):
    establishmentCode: Optional[str] = None
    communicationType: CommunicationType = CommunicationType.TRAVELER_REPORT
    guests: List[GuestRecord]
    contract: ContractMetadata = Field(default_factory=ContractMetadata)
