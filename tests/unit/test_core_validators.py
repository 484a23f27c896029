import pytest

from scim_sync.core import validators


class TestValidateUsername:
    def test_trims(self):
        assert validators.validate_username("  alice.smith@corp  ") == "alice.smith@corp"

    @pytest.mark.parametrize(
        "raw, message",
        [
            ("", "userName is required"),
            ("a" * 101, "must not exceed"),
            ("alice smith", "invalid characters"),
        ],
    )
    def test_invalid_cases(self, raw, message):
        with pytest.raises(ValueError, match=message):
            validators.validate_username(raw)


class TestValidateEmail:
    def test_returns_lowercased_email(self):
        assert validators.validate_email("  USER@Example.COM ") == "user@example.com"

    @pytest.mark.parametrize(
        "email",
        ["", "no-at-symbol", "user@", "@domain.com", "user@example", "a" * 256 + "@example.com"],
    )
    def test_invalid_email_formats(self, email):
        with pytest.raises(ValueError):
            validators.validate_email(email)


class TestValidateName:
    def test_valid_name_passes(self):
        assert validators.validate_name(" O'Brien ", "name.familyName") == "O'Brien"

    @pytest.mark.parametrize(
        "name, message",
        [
            ("", "name.givenName is required"),
            ("a" * 101, "name.givenName exceeds maximum length"),
            ("Alice<script>", "name.givenName contains invalid characters"),
        ],
    )
    def test_invalid_names(self, name, message):
        with pytest.raises(ValueError, match=message):
            validators.validate_name(name, "name.givenName")


class TestValidatePhone:
    @pytest.mark.parametrize("phone", [None, "", "   "])
    def test_empty_becomes_none(self, phone):
        assert validators.validate_phone(phone) is None

    def test_valid_phone(self):
        assert validators.validate_phone(" +1 (555) 010-0100 ") == "+1 (555) 010-0100"

    @pytest.mark.parametrize("phone", ["call me", "1" * 21])
    def test_invalid_phone(self, phone):
        with pytest.raises(ValueError):
            validators.validate_phone(phone)
