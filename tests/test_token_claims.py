"""Tests for bearer token scope introspection."""

import base64

import pytest

from outlook_scheduler.token_claims import decode_claims, parse_token_scopes


class TestParseTokenScopes:

    def test_delegated_scp_claim(self, make_jwt):
        token = make_jwt({"scp": "Calendars.ReadWrite People.Read"})
        assert parse_token_scopes(token) == ["Calendars.ReadWrite", "People.Read"]

    def test_scp_ignores_repeated_spaces(self, make_jwt):
        token = make_jwt({"scp": "User.Read  Calendars.ReadWrite "})
        assert parse_token_scopes(token) == ["User.Read", "Calendars.ReadWrite"]

    def test_app_only_roles_claim(self, make_jwt):
        token = make_jwt({"roles": ["Calendars.ReadWrite", "User.Read.All"]})
        assert parse_token_scopes(token) == ["Calendars.ReadWrite", "User.Read.All"]

    def test_scp_preferred_over_roles(self, make_jwt):
        token = make_jwt({"scp": "User.Read", "roles": ["Mail.Send"]})
        assert parse_token_scopes(token) == ["User.Read"]

    def test_no_scope_claims(self, make_jwt):
        assert parse_token_scopes(make_jwt({"aud": "https://graph.microsoft.com"})) == []

    @pytest.mark.parametrize(
        "token",
        [
            "",
            "not-a-jwt",
            "header.!!!not-base64!!!.sig",
            "header.bm90IGpzb24.sig",  # "not json"
            "header.WzEsMiwzXQ.sig",  # [1,2,3]
        ],
    )
    def test_malformed_tokens_yield_empty_list(self, token):
        assert parse_token_scopes(token) == []

    def test_non_string_input_never_raises(self):
        assert parse_token_scopes(None) == []


class TestDecodeClaims:

    def test_unpadded_payload(self, make_jwt):
        claims = decode_claims(make_jwt({"upn": "ab"}))
        assert claims == {"upn": "ab"}

    def test_single_segment_is_not_a_jwt(self):
        assert decode_claims("opaque-token") is None

    def test_deeply_nested_payload_is_not_a_jwt(self):
        nested = ("[" * 100000 + "]" * 100000).encode()
        token = "e30." + base64.urlsafe_b64encode(nested).decode().rstrip("=") + ".sig"

        assert decode_claims(token) is None
        assert parse_token_scopes(token) == []
