"""
Tests for JWT helpers and the exception hierarchy.
"""

from datetime import timedelta

import pytest
from jose import jwt

from carhaus.core.config import settings
from carhaus.core.exceptions import (
    ConflictException,
    ErrorCode,
    FeaturedLimitExceededException,
    InquiryArchivedException,
    NotFoundException,
    PlanLimitExceededException,
    TokenExpiredException,
    WebhookRejectedException,
    get_error_message,
)
from carhaus.core.security import create_access_token, decode_token


class TestTokens:
    def test_round_trip(self):
        token = create_access_token(subject="user-1", additional_claims={"role": "DEALER"})

        payload = decode_token(token)

        assert payload["sub"] == "user-1"
        assert payload["role"] == "DEALER"
        assert payload["type"] == "access"

    def test_expired_token_raises(self):
        token = create_access_token(subject="user-1", expires_delta=timedelta(minutes=-5))

        with pytest.raises(TokenExpiredException) as exc_info:
            decode_token(token)

        assert exc_info.value.status_code == 401
        assert exc_info.value.code == ErrorCode.TOKEN_EXPIRED

    def test_wrong_signature(self):
        token = create_access_token(subject="user-1")

        assert decode_token(token + "x") is None

    def test_non_access_token(self):
        token = jwt.encode(
            {"sub": "user-1", "type": "refresh"},
            settings.JWT_SECRET_KEY,
            algorithm=settings.JWT_ALGORITHM,
        )

        assert decode_token(token) is None


class TestExceptions:
    def test_to_dict(self):
        exc = NotFoundException("Listing not found", resource_type="listing", resource_id="abc")

        assert exc.to_dict() == {
            "error": {
                "code": "ERR_1002",
                "message": "Listing not found",
                "details": {"resource_type": "listing", "resource_id": "abc"},
            }
        }

    @pytest.mark.parametrize(
        "exc,status_code,code",
        [
            (FeaturedLimitExceededException("global", 9), 400, ErrorCode.FEATURED_LIMIT_REACHED),
            (
                PlanLimitExceededException("Photo limit", 5, code=ErrorCode.PHOTO_LIMIT_REACHED),
                400,
                ErrorCode.PHOTO_LIMIT_REACHED,
            ),
            (InquiryArchivedException("inq-1"), 400, ErrorCode.INQUIRY_ARCHIVED),
            (ConflictException("exists", code=ErrorCode.SUBSCRIPTION_ACTIVE), 409, ErrorCode.SUBSCRIPTION_ACTIVE),
            (WebhookRejectedException(), 403, ErrorCode.WEBHOOK_REJECTED),
        ],
    )
    def test_status_and_code(self, exc, status_code, code):
        assert exc.status_code == status_code
        assert exc.code == code

    def test_dealer_scope_message(self):
        exc = FeaturedLimitExceededException("dealer", 2, current=2)

        assert "limit of 2" in exc.message
        assert exc.details["current"] == 2
        assert exc.scope == "dealer"

    def test_every_code_has_a_message(self):
        for code in ErrorCode:
            assert get_error_message(code) != "An unknown error occurred."
