"""Tests for admin HTTP Basic authentication."""

import base64

from hommemade.admin.auth import credentials_match, decode_basic_auth, is_authorized
from hommemade.config import settings


def _basic(user: str, password: str) -> str:
    return "Basic " + base64.b64encode(f"{user}:{password}".encode()).decode()


class TestDecodeBasicAuth:
    """Test header parsing."""

    def test_decodes_credentials(self):
        assert decode_basic_auth(_basic("admin", "s3cret")) == ("admin", "s3cret")

    def test_password_may_contain_colon(self):
        assert decode_basic_auth(_basic("admin", "a:b:c")) == ("admin", "a:b:c")

    def test_rejects_malformed(self):
        assert decode_basic_auth(None) is None
        assert decode_basic_auth("Bearer token") is None
        assert decode_basic_auth("Basic !!!notbase64") is None
        assert decode_basic_auth("Basic " + base64.b64encode(b"nocolon").decode()) is None


class TestCredentials:
    """Test credential comparison against settings."""

    def test_credentials_match(self):
        assert credentials_match("admin", "pw", "admin", "pw")
        assert not credentials_match("admin", "pw", "admin", "other")
        assert not credentials_match("root", "pw", "admin", "pw")

    def test_is_authorized(self, monkeypatch):
        monkeypatch.setattr(settings, "admin_username", "admin")
        monkeypatch.setattr(settings, "admin_password", "p:w")

        assert is_authorized(_basic("admin", "p:w"))
        assert not is_authorized(_basic("admin", "p"))
        assert not is_authorized(None)
