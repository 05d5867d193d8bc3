"""Tests for BankID request and response models."""

import pytest
import sys
import os
import base64
import ipaddress

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

pydantic = pytest.importorskip("pydantic", reason="pydantic not installed")

from bankid_mcp.api.models import (
    AuthRequest,
    CancelRequest,
    CardReader,
    CertificatePolicy,
    CollectRequest,
    CollectResponse,
    CollectStatus,
    ErrorBody,
    OrderResponse,
    Requirement,
    SignRequest,
)
from bankid_mcp.errors import ValidationError

COMPLETION_DATA = {
    "user": {
        "personalNumber": "198710105080",
        "name": "Karl Karlsson",
        "givenName": "Karl",
        "surname": "Karlsson",
    },
    "device": {"ipAddress": "127.0.0.1"},
    "cert": {"notBefore": "1502983274000", "notAfter": "1563549674000"},
    "signature": "PD94bWwgdmVyc2lvbj0iMS4wIj8+",
    "ocspResponse": "MIIHfgoBAKCCB3cw",
}


class TestAuthRequest:
    def test_payload_without_personal_number(self):
        req = AuthRequest(endUserIp="127.0.0.1")
        assert req.payload() == {"endUserIp": "127.0.0.1"}

    def test_payload_with_personal_number(self):
        req = AuthRequest(endUserIp="127.0.0.1", personalNumber="198710105080")
        assert req.payload() == {
            "endUserIp": "127.0.0.1",
            "personalNumber": "198710105080",
        }

    def test_accepts_ip_address_objects(self):
        req = AuthRequest(endUserIp=ipaddress.ip_address("::1"))
        assert req.payload()["endUserIp"] == "::1"

    def test_requirement_serialization(self):
        req = AuthRequest(
            endUserIp="127.0.0.1",
            requirement=Requirement(
                cardReader=CardReader.CLASS2,
                certificatePolicies=[CertificatePolicy.MOBILE_BANKID],
                allowFingerprint=False,
            ),
        )
        assert req.payload()["requirement"] == {
            "cardReader": "class2",
            "certificatePolicies": ["1.2.752.78.1.5"],
            "allowFingerprint": False,
        }

    def test_empty_requirement_omitted(self):
        req = AuthRequest(endUserIp="127.0.0.1", requirement=Requirement())
        assert "requirement" not in req.payload()

    def test_requirement_domain_enforced(self):
        with pytest.raises(pydantic.ValidationError):
            Requirement(cardReader="class3")

    def test_check_fields(self):
        AuthRequest(endUserIp="10.0.0.1", personalNumber="198710105080").check_fields()
        with pytest.raises(ValidationError):
            AuthRequest(endUserIp="not-an-ip").check_fields()
        with pytest.raises(ValidationError):
            AuthRequest(endUserIp="10.0.0.1", personalNumber="").check_fields()
        with pytest.raises(ValidationError):
            AuthRequest(
                endUserIp="10.0.0.1",
                requirement=Requirement(personalNumber="1987"),
            ).check_fields()


class TestSignRequest:
    def test_from_text(self):
        req = SignRequest.from_text(
            "127.0.0.1",
            "Jag godkänner",
            non_visible_data=b"\x00\x01",
            markdown=True,
        )
        payload = req.payload()
        assert base64.b64decode(payload["userVisibleData"]).decode("utf-8") == "Jag godkänner"
        assert payload["userNonVisibleData"] == "AAE="
        assert payload["userVisibleDataFormat"] == "simpleMarkdownV1"
        assert "personalNumber" not in payload

    def test_from_text_max_length(self):
        with pytest.raises(ValidationError, match="max 40000"):
            SignRequest.from_text("127.0.0.1", "x" * 45_000)
        req = SignRequest.from_text("127.0.0.1", "x" * 45_000, max_length=100_000)
        assert len(req.userVisibleData) == 60_000

    def test_check_fields_limits(self):
        req = SignRequest.from_text("127.0.0.1", "x" * 300)
        req.check_fields()
        with pytest.raises(ValidationError):
            req.check_fields(max_visible=100)

    def test_rejects_non_base64(self):
        req = SignRequest(endUserIp="127.0.0.1", userVisibleData="not base64!")
        with pytest.raises(ValidationError, match="base64"):
            req.check_fields()


class TestOrderRefRequests:
    def test_payload(self):
        assert CollectRequest(orderRef="abc123").payload() == {"orderRef": "abc123"}
        assert CancelRequest(orderRef="abc123").payload() == {"orderRef": "abc123"}

    @pytest.mark.parametrize("ref", ["", "   "])
    def test_empty_reference(self, ref):
        with pytest.raises(ValidationError):
            CollectRequest(orderRef=ref).check_fields()
        with pytest.raises(ValidationError):
            CancelRequest(orderRef=ref).check_fields()


class TestResponses:
    def test_order_response(self):
        resp = OrderResponse.model_validate(
            {
                "orderRef": "131daac9-16c6-4618-beb0-365768f37288",
                "autoStartToken": "7c40b5c9-fa74-49cf-b98c-bfe651f9a7c6",
                "qrStartToken": "67df3917-fa0d-44e5-b327-edcc928297f8",
                "qrStartSecret": "d28db9a7-4cde-429e-a983-359be676944c",
            }
        )
        assert resp.orderRef == "131daac9-16c6-4618-beb0-365768f37288"
        assert resp.qrStartSecret == "d28db9a7-4cde-429e-a983-359be676944c"

    def test_collect_pending(self):
        resp = CollectResponse.model_validate(
            {"orderRef": "abc123", "status": "pending", "hintCode": "outstandingTransaction"}
        )
        assert resp.status is CollectStatus.PENDING
        assert resp.completionData is None

    def test_collect_unknown_hint_passes_through(self):
        resp = CollectResponse.model_validate(
            {"orderRef": "abc123", "status": "pending", "hintCode": "someNewHint"}
        )
        assert resp.hintCode == "someNewHint"

    def test_collect_complete(self):
        resp = CollectResponse.model_validate(
            {"orderRef": "abc123", "status": "complete", "completionData": COMPLETION_DATA}
        )
        assert resp.completionData.user.givenName == "Karl"
        assert resp.completionData.device.ipAddress == "127.0.0.1"

    def test_complete_requires_completion_data(self):
        with pytest.raises(pydantic.ValidationError):
            CollectResponse.model_validate({"orderRef": "abc123", "status": "complete"})

    def test_completion_data_only_on_complete(self):
        with pytest.raises(pydantic.ValidationError):
            CollectResponse.model_validate(
                {
                    "orderRef": "abc123",
                    "status": "pending",
                    "hintCode": "userSign",
                    "completionData": COMPLETION_DATA,
                }
            )

    def test_unknown_status_rejected(self):
        with pytest.raises(pydantic.ValidationError):
            CollectResponse.model_validate({"orderRef": "abc123", "status": "done"})

    def test_error_body(self):
        body = ErrorBody.model_validate({"errorCode": "alreadyInProgress"})
        assert body.errorCode == "alreadyInProgress"
        assert body.details == ""
