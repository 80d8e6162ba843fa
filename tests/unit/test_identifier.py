"""Unit tests for login identifier normalization."""

import pytest

from homi.kernel.identity.identifier import candidate_phone_formats, is_email


class TestIsEmail:
    def test_email(self):
        assert is_email("tenant@example.com")

    def test_phone(self):
        assert not is_email("+201555512345")


class TestCandidatePhoneFormats:
    """The lookup table for each accepted phone spelling."""

    @pytest.mark.parametrize(
        "identifier, expected_exact, expected_suffix",
        [
            # International with separators: raw, compact, then "0" + national part
            # for every country-code length leaving at least 9 digits
            (
                "+201555 12345",
                ["+201555 12345", "+20155512345", "00155512345", "0155512345"],
                None,
            ),
            # Too short after stripping a 2+ digit code: only cc length 1 fits
            ("+1234567890", ["+1234567890", "0234567890"], None),
            ("+12345678", ["+12345678"], None),
            # Local format also matches stored international numbers by suffix
            ("0155512345", ["0155512345"], "155512345"),
            ("015-551 (23) 45", ["015-551 (23) 45", "0155512345"], "155512345"),
            # Neither form: exact only
            ("155512345", ["155512345"], None),
            ("+20abc", ["+20abc"], None),
            ("0", ["0"], None),
        ],
    )
    def test_candidates(self, identifier, expected_exact, expected_suffix):
        lookup = candidate_phone_formats(identifier)

        assert lookup.exact == expected_exact
        assert lookup.international_suffix == expected_suffix

    def test_surrounding_whitespace_is_ignored(self):
        assert candidate_phone_formats("  0155512345 ").exact == ["0155512345"]
