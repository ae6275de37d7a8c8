"""
Tests for log redaction and JSON formatting.
"""

import json
import logging

import pytest

from infrastructure.logging_config import JSONFormatter, SensitiveDataFilter


def _record(msg, *args, **extra):
    record = logging.LogRecord("test", logging.INFO, __file__, 1, msg, args or None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.fixture
def redact():
    data_filter = SensitiveDataFilter()

    def _apply(msg, *args):
        record = _record(msg, *args)
        data_filter.filter(record)
        return record.getMessage()

    return _apply


class TestCardRedaction:
    @pytest.mark.parametrize(
        "card",
        ["4111111111111111", "4111 1111 1111 1111", "5555-5555-5555-4444", "378282246310005"],
    )
    def test_valid_card_numbers_are_masked(self, redact, card):
        assert redact("Card %s declined", card) == "Card [REDACTED_CARD] declined"

    def test_phone_with_country_code_is_kept(self, redact):
        assert redact("WhatsApp sent to %s", "5511987654321") == "WhatsApp sent to 5511987654321"

    def test_numbers_failing_checksum_are_kept(self, redact):
        assert redact("Asaas installment 1234567812345678") == "Asaas installment 1234567812345678"

    def test_short_numbers_are_kept(self, redact):
        assert redact("Order 123456789012") == "Order 123456789012"


class TestOtherRedaction:
    def test_cpf_is_masked(self, redact):
        assert redact("Customer 529.982.247-25") == "Customer [REDACTED_CPF]"

    def test_bearer_token_is_masked(self, redact):
        assert redact("Authorization: Bearer abc.def") == "Authorization: Bearer [REDACTED]"

    def test_dict_args(self, redact):
        assert redact("%(who)s password=hunter2", {"who": "ana"}) == "ana password=[REDACTED]"


class TestJSONFormatter:
    def test_extras_are_included(self):
        record = _record("Notification sent", notification_id="n-1", channel="EMAIL")
        payload = json.loads(JSONFormatter().format(record))

        assert payload["message"] == "Notification sent"
        assert payload["notification_id"] == "n-1"
        assert payload["channel"] == "EMAIL"
