"""
Unit tests for user identity decoding.

Tests verify:
- The Fleet API vault shape and the flat OAuth shape both decode.
- The JWT email claim is used when the body is unrecognised.
- A placeholder identity is returned when nothing decodes.
"""

from __future__ import annotations

import base64
import json

from tesla_oauth.identity import PLACEHOLDER_SUB, resolve_identity, split_full_name
from tesla_oauth.jwt_utils import decode_jwt, extract_email


def make_jwt(claims: dict) -> str:
    def seg(obj) -> str:
        return base64.urlsafe_b64encode(json.dumps(obj).encode()).decode().rstrip("=")

    return f"{seg({'alg': 'none'})}.{seg(claims)}.sig"


class TestResolveIdentity:
    """Decoder order and fallbacks."""

    def test_vault_shape(self) -> None:
        payload = {"response": {"email": "a@b.c", "full_name": "Ada Love Lace", "vault_uuid": "v-1"}}

        identity = resolve_identity(payload, "")

        assert identity.sub == "v-1"
        assert identity.email == "a@b.c"
        assert identity.given_name == "Ada"
        assert identity.family_name == "Love Lace"

    def test_oauth_shape(self) -> None:
        identity = resolve_identity({"sub": "u-9", "email": "x@y.z", "given_name": "X"}, "")
        assert identity.sub == "u-9"
        assert identity.display_name == "X"

    def test_jwt_email_fallback(self) -> None:
        identity = resolve_identity({"unexpected": True}, make_jwt({"email": "jwt@tesla.com"}))
        assert identity.email == "jwt@tesla.com"
        assert identity.sub == PLACEHOLDER_SUB

    def test_placeholder_when_nothing_decodes(self) -> None:
        identity = resolve_identity(None, "opaque-token")
        assert identity.sub == PLACEHOLDER_SUB
        assert identity.email == "user@tesla.com"


class TestJwtHelpers:
    def test_decode_jwt_payload(self) -> None:
        assert decode_jwt(make_jwt({"sub": "s"})) == {"sub": "s"}

    def test_non_jwt_is_none(self) -> None:
        assert decode_jwt("not-a-jwt") is None
        assert extract_email("a.!!!.c") is None

    def test_split_full_name(self) -> None:
        assert split_full_name("Cher") == ("Cher", None)
        assert split_full_name("   ") == (None, None)
