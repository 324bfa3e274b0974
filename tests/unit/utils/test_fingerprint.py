"""Tests for identifier normalization and fingerprinting."""

import pytest

from gravatar_client.models.config import ClientConfig
from gravatar_client.utils.exceptions import ErrorCode, InvalidIdentifierError
from gravatar_client.utils.hash import (
    calculate_config_hash,
    extract_fingerprint,
    fingerprint,
    fingerprint_many,
    is_valid_email,
    is_valid_fingerprint,
    normalize_email,
)

TEST_EMAIL_HASH = "973dfe463ec85785f5f95af5ba3906eedb2d931c24e69824a89ea65dba4e813b"
USER_EMAIL_HASH = "b4c9a289323b21a01c3e940f150eb9b8c542587f1abfd8f0e1cc1ffc5e475514"


class TestNormalizeEmail:
    """Tests for normalize_email."""

    def test_trims_and_lowercases(self):
        assert normalize_email("  Test@EXAMPLE.com ") == "test@example.com"

    @pytest.mark.parametrize("value", ["", "   ", "\t\n"])
    def test_empty_rejected(self, value):
        with pytest.raises(InvalidIdentifierError, match="cannot be empty"):
            normalize_email(value)

    @pytest.mark.parametrize("value", ["not-an-email", "a@b", "@example.com", "a b@c.com"])
    def test_malformed_rejected(self, value):
        with pytest.raises(InvalidIdentifierError) as exc_info:
            normalize_email(value)
        assert exc_info.value.code is ErrorCode.INVALID_EMAIL

    @pytest.mark.parametrize("value", [None, 42, ["a@b.com"]])
    def test_non_string_rejected(self, value):
        with pytest.raises(InvalidIdentifierError, match="must be a string"):
            normalize_email(value)

    def test_permissive_for_unusual_addresses(self):
        """Plus tags and subdomains are accepted as-is."""
        assert normalize_email("First.Last+tag@mail.Example.co.uk") == (
            "first.last+tag@mail.example.co.uk"
        )

    def test_is_valid_email(self):
        assert is_valid_email(" user@example.com ")
        assert not is_valid_email("user@example")
        assert not is_valid_email(None)


class TestFingerprint:
    """Tests for fingerprint computation."""

    def test_known_digest(self):
        assert fingerprint("test@example.com") == TEST_EMAIL_HASH

    def test_case_and_whitespace_variants_match(self):
        assert fingerprint("Test@EXAMPLE.com ") == fingerprint("test@example.com")

    def test_lowercase_hex_of_length_64(self):
        result = fingerprint("someone@example.org")
        assert len(result) == 64
        assert result == result.lower()
        assert is_valid_fingerprint(result)

    def test_invalid_email_propagates_invalid_identifier(self):
        with pytest.raises(InvalidIdentifierError):
            fingerprint("nope")


class TestFingerprintMany:
    """Tests for batch fingerprinting."""

    def test_returns_in_order(self):
        assert fingerprint_many(["test@example.com", "user@example.com"]) == [
            TEST_EMAIL_HASH,
            USER_EMAIL_HASH,
        ]

    def test_one_invalid_fails_whole_batch(self):
        with pytest.raises(InvalidIdentifierError):
            fingerprint_many(["test@example.com", "invalid"])

    def test_non_list_rejected(self):
        with pytest.raises(InvalidIdentifierError, match="list"):
            fingerprint_many("test@example.com")  # type: ignore[arg-type]

    def test_empty_list(self):
        assert fingerprint_many([]) == []


class TestExtractFingerprint:
    """Tests for polymorphic fingerprint extraction."""

    def test_bare_hash_is_lowercased(self):
        assert extract_fingerprint(TEST_EMAIL_HASH.upper()) == TEST_EMAIL_HASH

    def test_profile_url(self):
        url = f"https://gravatar.com/{TEST_EMAIL_HASH.upper()}"
        assert extract_fingerprint(url) == TEST_EMAIL_HASH

    def test_avatar_url_with_query(self):
        url = f"https://0.gravatar.com/avatar/{TEST_EMAIL_HASH}?s=200"
        assert extract_fingerprint(url) == TEST_EMAIL_HASH

    def test_email_is_hashed(self):
        assert extract_fingerprint("Test@Example.com") == TEST_EMAIL_HASH

    def test_url_without_hash_rejected(self):
        with pytest.raises(InvalidIdentifierError, match="No Gravatar hash"):
            extract_fingerprint("https://gravatar.com/someuser")

    @pytest.mark.parametrize("value", ["", None, 123])
    def test_empty_or_non_string_rejected(self, value):
        with pytest.raises(InvalidIdentifierError, match="non-empty string"):
            extract_fingerprint(value)


class TestCalculateConfigHash:
    """Tests for config hashing used in response cache keys."""

    def test_same_config_same_hash(self):
        assert calculate_config_hash(ClientConfig()) == calculate_config_hash(
            ClientConfig()
        )

    def test_length_is_16(self):
        assert len(calculate_config_hash(ClientConfig())) == 16

    def test_api_key_changes_hash(self):
        a = calculate_config_hash(ClientConfig(api_key="key-a"))
        b = calculate_config_hash(ClientConfig(api_key="key-b"))
        anonymous = calculate_config_hash(ClientConfig())
        assert len({a, b, anonymous}) == 3

    def test_base_url_changes_hash(self):
        assert calculate_config_hash(
            ClientConfig(base_url="https://example.test/v3")
        ) != calculate_config_hash(ClientConfig())

    def test_retry_settings_do_not_change_hash(self):
        tuned = ClientConfig().merged({"retry": {"max_attempts": 5}})
        assert calculate_config_hash(tuned) == calculate_config_hash(ClientConfig())
