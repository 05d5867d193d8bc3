"""
Pydantic v2 models for BankID RP API requests and responses.

Field names follow the wire format (camelCase) so models serialize
directly into request payloads.
"""

from __future__ import annotations

import base64
import ipaddress
from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator

from bankid_mcp.errors import ValidationError
from bankid_mcp.utils.validation import (
    MAX_USER_NON_VISIBLE_DATA,
    MAX_USER_VISIBLE_DATA,
    PersonalNumber,
    check_encoded_length,
    encode_user_visible_data,
    parse_end_user_ip,
)


class ErrorCode(str, Enum):
    """Known errorCode values of the RP API."""

    ALREADY_IN_PROGRESS = "alreadyInProgress"
    INVALID_PARAMETERS = "invalidParameters"
    CANCELED = "canceled"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "notFound"
    REQUEST_TIMEOUT = "requestTimeout"
    UNSUPPORTED_MEDIA_TYPE = "unsupportedMediaType"
    UNRETRYABLE_ERROR = "unretryableError"
    INTERNAL_ERROR = "internalError"
    MAINTENANCE = "maintenance"


class CollectStatus(str, Enum):
    PENDING = "pending"
    FAILED = "failed"
    COMPLETE = "complete"


class HintCode(str, Enum):
    """Known hintCode values accompanying pending and failed orders."""

    OUTSTANDING_TRANSACTION = "outstandingTransaction"
    NO_CLIENT = "noClient"
    STARTED = "started"
    USER_MRTD = "userMrtd"
    USER_CALL_CONFIRM = "userCallConfirm"
    USER_SIGN = "userSign"
    EXPIRED_TRANSACTION = "expiredTransaction"
    CERTIFICATE_ERR = "certificateErr"
    USER_CANCEL = "userCancel"
    CANCELLED = "cancelled"
    START_FAILED = "startFailed"
    USER_DECLINED_CALL = "userDeclinedCall"


class CardReader(str, Enum):
    CLASS1 = "class1"
    CLASS2 = "class2"


class CertificatePolicy(str, Enum):
    """Certificate policy OIDs accepted in a requirement."""

    BANKID_ON_FILE = "1.2.752.78.1.1"
    BANKID_ON_SMART_CARD = "1.2.752.78.1.2"
    MOBILE_BANKID = "1.2.752.78.1.5"
    TEST_BANKID = "1.2.3.4.5"
    TEST_BANKID_ON_SMART_CARD = "1.2.3.4.10"


# ═══════════════════════════════════════════════════
# Requests
# ═══════════════════════════════════════════════════


class Requirement(BaseModel):
    """Constraints on how the end user may complete the order.

    Every field is optional; anything left unset falls back to the
    service's default policy.
    """

    cardReader: CardReader | None = None
    certificatePolicies: list[CertificatePolicy] | None = None
    allowFingerprint: bool | None = None
    autoStartTokenRequired: bool | None = None
    pinCode: bool | None = None
    mrtd: bool | None = None
    personalNumber: str | None = None

    def check_fields(self) -> None:
        if self.personalNumber is not None:
            PersonalNumber.parse(self.personalNumber)


class _OrderRequest(BaseModel):
    endUserIp: str = Field(description="IP address of the end user's device")
    personalNumber: str | None = Field(
        default=None,
        description="12-digit personal number; omit to let the user identify in the app",
    )
    requirement: Requirement | None = None

    @field_validator("endUserIp", mode="before")
    @classmethod
    def _ip_to_str(cls, value):
        if isinstance(value, (ipaddress.IPv4Address, ipaddress.IPv6Address)):
            return str(value)
        return value

    def check_fields(self) -> None:
        """Run local validation; raises ValidationError."""
        parse_end_user_ip(self.endUserIp)
        if self.personalNumber is not None:
            PersonalNumber.parse(self.personalNumber)
        if self.requirement is not None:
            self.requirement.check_fields()

    def payload(self) -> dict:
        """Serialize to the JSON request body, omitting unset fields."""
        data = self.model_dump(mode="json", exclude_none=True)
        if not data.get("requirement"):
            data.pop("requirement", None)
        return data


class AuthRequest(_OrderRequest):
    """Request to start an authentication order."""


class SignRequest(_OrderRequest):
    """Request to start a signing order.

    userVisibleData and userNonVisibleData are base64 encoded; use
    from_text() to build one from plain text.
    """

    userVisibleData: str
    userNonVisibleData: str | None = None
    userVisibleDataFormat: str | None = Field(
        default=None, description='"simpleMarkdownV1" or unset for plain text'
    )

    @classmethod
    def from_text(
        cls,
        end_user_ip: str,
        text: str,
        personal_number: str | None = None,
        non_visible_data: bytes | None = None,
        requirement: Requirement | None = None,
        markdown: bool = False,
        max_length: int = MAX_USER_VISIBLE_DATA,
    ) -> SignRequest:
        return cls(
            endUserIp=end_user_ip,
            personalNumber=personal_number,
            userVisibleData=encode_user_visible_data(text, max_length),
            userNonVisibleData=(
                base64.b64encode(non_visible_data).decode("ascii")
                if non_visible_data is not None
                else None
            ),
            userVisibleDataFormat="simpleMarkdownV1" if markdown else None,
            requirement=requirement,
        )

    def check_fields(
        self,
        max_visible: int = MAX_USER_VISIBLE_DATA,
        max_non_visible: int = MAX_USER_NON_VISIBLE_DATA,
    ) -> None:
        super().check_fields()
        if not self.userVisibleData:
            raise ValidationError("userVisibleData must not be empty")
        check_encoded_length("userVisibleData", self.userVisibleData, max_visible)
        if self.userNonVisibleData is not None:
            check_encoded_length(
                "userNonVisibleData", self.userNonVisibleData, max_non_visible
            )


class _OrderRefRequest(BaseModel):
    orderRef: str

    def check_fields(self) -> None:
        if not self.orderRef or not self.orderRef.strip():
            raise ValidationError("orderRef must not be empty")

    def payload(self) -> dict:
        return self.model_dump(mode="json")


class CollectRequest(_OrderRefRequest):
    """Request for the current status of an order."""


class CancelRequest(_OrderRefRequest):
    """Request to cancel an outstanding order."""


# ═══════════════════════════════════════════════════
# Responses
# ═══════════════════════════════════════════════════


class OrderResponse(BaseModel):
    """Response from /auth and /sign."""

    orderRef: str
    autoStartToken: str = Field(description="Token for launching the app on the same device")
    qrStartToken: str | None = None
    qrStartSecret: str | None = None


class User(BaseModel):
    personalNumber: str
    name: str = ""
    givenName: str = ""
    surname: str = ""


class Device(BaseModel):
    ipAddress: str = ""


class Cert(BaseModel):
    notBefore: str = Field(default="", description="Unix time in ms, as a string")
    notAfter: str = ""


class CompletionData(BaseModel):
    """Identity attestation returned with a complete order."""

    user: User
    device: Device = Field(default_factory=Device)
    cert: Cert = Field(default_factory=Cert)
    signature: str = Field(description="Base64-encoded XML signature")
    ocspResponse: str = Field(description="Base64-encoded OCSP response")


class CollectResponse(BaseModel):
    """Response from /collect: one snapshot of the order's state."""

    orderRef: str | None = Field(
        default=None, description="Absent on some failed snapshots"
    )
    status: CollectStatus
    hintCode: str | None = None
    completionData: CompletionData | None = None

    @model_validator(mode="after")
    def _completion_matches_status(self) -> CollectResponse:
        if self.status is CollectStatus.COMPLETE and self.completionData is None:
            raise ValueError("complete status without completionData")
        if self.status is not CollectStatus.COMPLETE and self.completionData is not None:
            raise ValueError(f"completionData present on {self.status.value} status")
        return self


class ErrorBody(BaseModel):
    """Error body returned with 4xx/5xx responses."""

    errorCode: str
    details: str = ""
