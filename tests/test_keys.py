"""
Tests for case identifier parsing and padding-tolerant key sets.
"""
import pytest

from favsync.services.pjn.keys import (
    CanonicalKey,
    KeySet,
    normalize,
    pad_number,
    parse_expediente,
    same_identity,
    strip_number,
)


class TestParseExpediente:

    def test_parses_padded_identifier(self):
        key = parse_expediente("CIV 068809/2017")
        assert key.jurisdiccion == "CIV"
        assert key.numero == "068809"
        assert key.anio == 2017
        assert key.raw_numero == "068809"

    def test_bare_number_is_padded(self):
        key = parse_expediente("CIV 68809/2017")
        assert key.numero == "068809"
        assert key.bare_numero == "68809"
        assert key.raw_numero == "68809"

    def test_tolerates_whitespace_and_trailing_text(self):
        key = parse_expediente("  COM 1234/2020 - INCIDENTE")
        assert key.padded == ("COM", "001234", 2020)

    def test_long_numbers_are_not_truncated(self):
        assert parse_expediente("CIV 1234567/2019").numero == "1234567"

    @pytest.mark.parametrize("text", [
        None,
        "",
        "68809/2017",
        "CIV 68809",
        "CIV 68809/17",
        "civ 68809/2017",
        "CIV-68809/2017",
        "CIV 68809/20171",
    ])
    def test_unparseable_returns_none(self, text):
        assert parse_expediente(text) is None

    def test_str_renders_padded_form(self):
        assert str(parse_expediente("CIV 5/2021")) == "CIV 000005/2021"


class TestNumberForms:

    def test_pad_and_strip(self):
        assert pad_number("68809") == "068809"
        assert pad_number("0068809") == "068809"
        assert strip_number("068809") == "68809"

    def test_all_zero_number(self):
        assert strip_number("000") == "0"
        assert pad_number("0") == "000000"

    def test_padded_and_bare_keys_are_equal(self):
        assert normalize("CIV", "068809", 2017) == normalize("CIV", "68809", 2017)
        assert hash(normalize("CIV", "068809", 2017)) == hash(normalize("CIV", "68809", "2017"))

    def test_forms_include_raw_when_over_padded(self):
        key = CanonicalKey.from_parts("CIV", "0068809", 2017)
        assert ("CIV", "0068809", 2017) in key.forms()
        assert ("CIV", "068809", 2017) in key.forms()
        assert ("CIV", "68809", 2017) in key.forms()


class TestSameIdentity:

    def test_equal_after_stripping_zeros(self):
        assert same_identity(parse_expediente("CIV 068809/2017"), parse_expediente("CIV 68809/2017"))

    def test_different_year(self):
        assert not same_identity(parse_expediente("CIV 68809/2017"), parse_expediente("CIV 68809/2018"))

    def test_different_jurisdiction(self):
        assert not same_identity(parse_expediente("CIV 68809/2017"), parse_expediente("COM 68809/2017"))


class TestKeySet:

    def test_membership_for_either_form(self):
        keys = KeySet([parse_expediente("CIV 068809/2017")])
        assert ("CIV", "068809", 2017) in keys
        assert ("CIV", "68809", 2017) in keys
        assert parse_expediente("CIV 68809/2017") in keys
        assert ("CIV", "68810", 2017) not in keys

    def test_len_counts_identities_not_forms(self):
        keys = KeySet()
        keys.add(parse_expediente("CIV 068809/2017"))
        keys.add(parse_expediente("CIV 68809/2017"))
        keys.add(parse_expediente("COM 1/2020"))
        assert len(keys) == 2

    def test_empty_set_is_falsy(self):
        assert not KeySet()
        assert KeySet([parse_expediente("CIV 1/2020")])
