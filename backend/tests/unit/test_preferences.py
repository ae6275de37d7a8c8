"""Unit tests for notification preference merging."""

from core.preferences import DEFAULT_NOTIFICATION_PREFERENCES, merge_preferences


def test_defaults_when_nothing_stored():
    merged = merge_preferences(None)
    assert merged == DEFAULT_NOTIFICATION_PREFERENCES
    assert merged is not DEFAULT_NOTIFICATION_PREFERENCES


def test_nested_override_keeps_siblings():
    merged = merge_preferences({"channels": {"sms": {"enabled": True}}})

    assert merged["channels"]["sms"]["enabled"] is True
    assert merged["channels"]["sms"]["events"]["payment_overdue"] is True
    assert merged["channels"]["email"]["enabled"] is True


def test_layers_apply_in_order():
    merged = merge_preferences(
        {"frequency": {"max_per_day": 5}},
        {"frequency": {"max_per_day": 2}, "language": "en"},
    )
    assert merged["frequency"]["max_per_day"] == 2
    assert merged["frequency"]["max_per_week"] == 50
    assert merged["language"] == "en"


def test_defaults_not_mutated():
    merged = merge_preferences({"quiet_hours": {"enabled": False}})
    merged["channels"]["email"]["enabled"] = False

    assert DEFAULT_NOTIFICATION_PREFERENCES["quiet_hours"]["enabled"] is True
    assert DEFAULT_NOTIFICATION_PREFERENCES["channels"]["email"]["enabled"] is True


def test_marketing_is_opt_in():
    merged = merge_preferences()
    assert merged["channels"]["email"]["events"]["marketing"] is False
