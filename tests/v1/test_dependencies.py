# tests/v1/test_dependencies.py
"""Tests for API authorization dependencies."""

from unittest.mock import MagicMock

import pytest

from mycelix_auth.api.v1.dependencies import authorize_signed, build_signed_request
from mycelix_auth.core.errors import AuthRejected, Rejection, RejectionReason
from mycelix_auth.schemas.songs import SignatureEnvelope
from mycelix_auth.services.canonical import OperationKind, SigningMethod
from mycelix_auth.services.capability import AdminCapability
from mycelix_auth.services.guard import Admission

SIGNER = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
FIELDS = {"songId": "song-1"}


class TestBuildSignedRequest:
    """Test assembling a signed request from a parsed body."""

    def test_complete_envelope(self):
        envelope = SignatureEnvelope(
            signer=SIGNER, signature="0xabc", timestamp=1, method="eip712", nonce="n"
        )

        request = build_signed_request(OperationKind.CLAIM, envelope, FIELDS)

        assert request.method is SigningMethod.EIP712
        assert request.nonce == "n"
        assert request.fields == FIELDS

    def test_missing_fields_are_listed(self):
        envelope = SignatureEnvelope(signer=SIGNER)

        with pytest.raises(AuthRejected) as exc_info:
            build_signed_request(OperationKind.CLAIM, envelope, FIELDS)

        rejection = exc_info.value.rejection
        assert rejection.reason is RejectionReason.INVALID_REQUEST
        assert rejection.context["detail"] == "Missing signature fields: signature, timestamp"

    def test_zero_timestamp_is_present(self):
        envelope = SignatureEnvelope(signer=SIGNER, signature="0xabc", timestamp=0)

        assert build_signed_request(OperationKind.CLAIM, envelope, FIELDS).timestamp == 0

    def test_unknown_method(self):
        envelope = SignatureEnvelope(signer=SIGNER, signature="0xabc", timestamp=1, method="x")

        with pytest.raises(AuthRejected):
            build_signed_request(OperationKind.CLAIM, envelope, FIELDS)


class TestAuthorizeSigned:
    """Test the admin-key-or-signature rule."""

    def test_admin_key_skips_guard(self):
        guard = MagicMock()

        caller = authorize_signed(
            OperationKind.CLAIM,
            SignatureEnvelope(),
            FIELDS,
            api_key="k",
            capability=AdminCapability("k"),
            guard=guard,
        )

        assert caller.via == "admin_key"
        assert caller.signer is None
        guard.admit.assert_not_called()

    def test_signature_admission(self):
        guard = MagicMock()
        guard.admit.return_value = Admission(SIGNER, "f" * 64, SigningMethod.LEGACY)
        envelope = SignatureEnvelope(signer=SIGNER, signature="0xabc", timestamp=1)

        caller = authorize_signed(
            OperationKind.CLAIM,
            envelope,
            FIELDS,
            api_key=None,
            capability=AdminCapability("k"),
            guard=guard,
        )

        assert caller.via == "signature"
        assert caller.signer == SIGNER

    def test_guard_rejection_is_raised(self):
        guard = MagicMock()
        guard.admit.return_value = Rejection(RejectionReason.REPLAYED)
        envelope = SignatureEnvelope(signer=SIGNER, signature="0xabc", timestamp=1)

        with pytest.raises(AuthRejected) as exc_info:
            authorize_signed(
                OperationKind.CLAIM,
                envelope,
                FIELDS,
                api_key="wrong",
                capability=AdminCapability("k"),
                guard=guard,
            )

        assert exc_info.value.rejection.reason is RejectionReason.REPLAYED
