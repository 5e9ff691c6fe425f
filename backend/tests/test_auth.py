# backend/tests/test_auth.py
"""
Test token handling and identifier parsing.
"""

from datetime import timedelta

import jwt
import pytest

from sparfinder.api.dependencies.ids import parse_id
from sparfinder.auth import create_access_token, decode_access_token, extract_token
from sparfinder.core.config import settings
from sparfinder.core.exceptions import InvalidIdException, UnauthorizedException


class TestTokens:
    def test_round_trip(self):
        token = create_access_token(42)

        assert decode_access_token(token) == 42

    def test_expired_token(self):
        token = create_access_token(42, expires_delta=timedelta(seconds=-5))

        with pytest.raises(UnauthorizedException) as exc_info:
            decode_access_token(token)

        assert exc_info.value.code == "INVALID_TOKEN"

    def test_wrong_secret(self):
        token = jwt.encode({"sub": "42"}, "some-other-secret", algorithm=settings.algorithm)

        with pytest.raises(UnauthorizedException):
            decode_access_token(token)

    def test_non_numeric_subject(self):
        token = jwt.encode(
            {"sub": "alice"}, settings.secret_key.get_secret_value(), algorithm=settings.algorithm
        )

        with pytest.raises(UnauthorizedException):
            decode_access_token(token)


class TestExtractToken:
    def test_query_parameter_wins(self):
        token = extract_token(
            {"authorization": "Bearer header-token"},
            {"accessToken": "cookie-token"},
            {"token": "query-token"},
        )

        assert token == "query-token"

    def test_header_before_cookie(self):
        token = extract_token({"authorization": "Bearer header-token"}, {"accessToken": "cookie-token"})

        assert token == "header-token"

    def test_cookie_fallback(self):
        assert extract_token({}, {"accessToken": "cookie-token"}, {}) == "cookie-token"

    def test_non_bearer_header_is_ignored(self):
        assert extract_token({"authorization": "Basic abc"}, {}) is None


class TestParseId:
    @pytest.mark.parametrize("raw", ["abc", "", "0", "-3", "1.5", "\u00b2", "\u0663"])
    def test_rejects(self, raw):
        with pytest.raises(InvalidIdException):
            parse_id(raw)

    def test_accepts_positive_integer(self):
        assert parse_id("17") == 17
