"""Tests for the token model and its wire encoding."""

import json
from datetime import datetime, timedelta, timezone

import pytest

from tokenkeep.service.errors import MalformedToken, ValidationError
from tokenkeep.service.tokens import (
    MAX_IDENTITY,
    UserToken,
    decode_token,
    encode_token,
    generate_token,
    store_key,
    token_age_days,
    validate_identity,
)


class TestGenerateToken:
    def test_binds_identity_and_length(self):
        token = generate_token(42)

        assert token.identity == 42
        assert len(token.value) == 64

    def test_issued_at_is_utc_whole_seconds(self):
        token = generate_token(1)

        assert token.issued_at.tzinfo is not None
        assert token.issued_at.utcoffset() == timedelta(0)
        assert token.issued_at.microsecond == 0

    def test_new_is_alias(self):
        token = UserToken.new(5, length=10)
        assert token.identity == 5
        assert len(token.value) == 10

    def test_new_uses_injected_clock(self):
        issued = datetime(2024, 3, 1, 12, 0, 0, 500, tzinfo=timezone.utc)

        token = UserToken.new(5, now=issued)

        assert token.issued_at == issued.replace(microsecond=0)
        assert json.loads(token.encode())["birth"] == int(issued.timestamp())

    def test_token_is_immutable(self):
        token = generate_token(1)
        with pytest.raises(AttributeError):
            token.issued_at = datetime.now(timezone.utc)  # type: ignore[misc]


class TestEncoding:
    def test_round_trip_preserves_every_field(self):
        token = generate_token(MAX_IDENTITY)
        assert decode_token(encode_token(token)) == token

    def test_wire_form_is_compact_and_ordered(self):
        issued = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        token = UserToken(identity=42, value="Ab3$", issued_at=issued)

        assert encode_token(token) == (
            '{"user_id":42,"token_str":"Ab3$","birth":%d}' % int(issued.timestamp())
        )

    def test_encode_is_stable(self):
        token = generate_token(9)
        assert token.encode() == encode_token(token) == encode_token(token)

    def test_backslash_in_value_survives(self):
        token = UserToken(identity=1, value="a\\b", issued_at=generate_token(1).issued_at)
        assert UserToken.decode(token.encode()) == token

    @pytest.mark.parametrize(
        "wire",
        [
            "",
            "not json",
            "[]",
            "42",
            '{"user_id":1,"token_str":"x"}',
            '{"token_str":"x","birth":1}',
            '{"user_id":"1","token_str":"x","birth":1}',
            '{"user_id":true,"token_str":"x","birth":1}',
            '{"user_id":-1,"token_str":"x","birth":1}',
            '{"user_id":18446744073709551616,"token_str":"x","birth":1}',
            '{"user_id":1,"token_str":"","birth":1}',
            '{"user_id":1,"token_str":7,"birth":1}',
            '{"user_id":1,"token_str":"x","birth":"yesterday"}',
            '{"user_id":1,"token_str":"x","birth":1.5}',
            '{"user_id":1,"token_str":"x","birth":99999999999999999999}',
        ],
    )
    def test_malformed_inputs_raise(self, wire):
        with pytest.raises(MalformedToken):
            decode_token(wire)

    def test_non_string_input_raises(self):
        with pytest.raises(MalformedToken):
            decode_token(None)
        with pytest.raises(MalformedToken):
            decode_token(b'{"user_id":1}')

    def test_extra_fields_are_ignored(self):
        wire = json.dumps({"user_id": 3, "token_str": "abc", "birth": 0, "extra": 1})
        assert decode_token(wire).identity == 3


class TestStoreKey:
    def test_format(self):
        assert store_key(42) == "user_tokens:id42"
        assert store_key(42, "sessions") == "sessions:id42"

    def test_distinct_identities_get_distinct_keys(self):
        keys = {store_key(i) for i in (0, 1, 10, 11, 101, MAX_IDENTITY)}
        assert len(keys) == 6


class TestValidateIdentity:
    @pytest.mark.parametrize("value", [0, 1, MAX_IDENTITY])
    def test_accepts_u64(self, value):
        assert validate_identity(value) == value

    @pytest.mark.parametrize("value", [-1, MAX_IDENTITY + 1, True, "42", 4.2, None])
    def test_rejects_everything_else(self, value):
        with pytest.raises(ValidationError):
            validate_identity(value)


class TestAge:
    def test_whole_days(self):
        issued = datetime(2024, 1, 1, tzinfo=timezone.utc)
        token = UserToken(identity=1, value="v", issued_at=issued)

        assert token_age_days(token, issued + timedelta(days=27, hours=23)) == 27
        assert token_age_days(token, issued + timedelta(days=28)) == 28

    def test_future_issue_time_counts_as_fresh(self):
        issued = datetime(2024, 1, 10, tzinfo=timezone.utc)
        token = UserToken(identity=1, value="v", issued_at=issued)

        assert token.age_days(issued - timedelta(days=3)) == 0
