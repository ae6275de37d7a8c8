"""Unit tests for Brazilian document, phone and CEP validation."""

from datetime import UTC, datetime, timedelta

import pytest

from core.validators import (
    clean_numeric,
    format_cep,
    format_cnpj,
    format_cpf,
    format_phone,
    is_valid_state,
    validate_cep_format,
    validate_cnpj,
    validate_cpf,
    validate_cpf_or_cnpj,
    validate_crm,
    validate_email,
    validate_phone,
    validate_prescription_date,
)


class TestDocuments:
    def test_valid_cpf_with_and_without_punctuation(self):
        assert validate_cpf("529.982.247-25")
        assert validate_cpf("52998224725")

    def test_cpf_wrong_check_digit(self):
        assert not validate_cpf("529.982.247-26")

    def test_cpf_repeated_digits_rejected(self):
        assert not validate_cpf("111.111.111-11")

    def test_cpf_wrong_length(self):
        assert not validate_cpf("5299822472")

    def test_valid_cnpj(self):
        assert validate_cnpj("11.222.333/0001-81")

    def test_cnpj_wrong_check_digit(self):
        assert not validate_cnpj("11.222.333/0001-82")

    def test_cpf_or_cnpj_dispatches_on_length(self):
        assert validate_cpf_or_cnpj("52998224725")
        assert validate_cpf_or_cnpj("11222333000181")
        assert not validate_cpf_or_cnpj("123")

    def test_formatting(self):
        assert format_cpf("52998224725") == "529.982.247-25"
        assert format_cnpj("11222333000181") == "11.222.333/0001-81"
        assert format_cpf("123") == "123"


class TestPhone:
    @pytest.mark.parametrize("phone", ["(11) 98765-4321", "11987654321", "1133334444"])
    def test_valid_numbers(self, phone):
        assert validate_phone(phone)

    @pytest.mark.parametrize(
        "phone",
        [
            "987654321",  # missing area code
            "10987654321",  # area code below 11
            "11887654321",  # mobile without leading 9
            "99999999999",  # repeated digits
        ],
    )
    def test_invalid_numbers(self, phone):
        assert not validate_phone(phone)

    def test_format_phone(self):
        assert format_phone("11987654321") == "(11) 98765-4321"
        assert format_phone("1133334444") == "(11) 3333-4444"


class TestCep:
    def test_format_cep(self):
        assert format_cep("01310100") == "01310-100"
        assert format_cep(" 01310-100 ") == "01310-100"

    def test_format_cep_invalid(self):
        with pytest.raises(ValueError):
            format_cep("0131010")

    def test_validate_cep_format(self):
        assert validate_cep_format("01310-100")
        assert not validate_cep_format("abc")


class TestMisc:
    def test_clean_numeric(self):
        assert clean_numeric("(11) 9.87-65") == "1198765"
        assert clean_numeric(None) == ""

    def test_email(self):
        assert validate_email("maria@example.com")
        assert not validate_email("maria@example")

    def test_crm(self):
        assert validate_crm("123456-SP")
        assert not validate_crm("12345-SP")

    def test_state(self):
        assert is_valid_state("sp")
        assert not is_valid_state("XX")

    def test_prescription_date_window(self):
        today = datetime.now(UTC).date()
        assert validate_prescription_date(today)
        assert validate_prescription_date((today - timedelta(days=200)).isoformat())
        assert not validate_prescription_date(today + timedelta(days=1))
        assert not validate_prescription_date(today - timedelta(days=400))
