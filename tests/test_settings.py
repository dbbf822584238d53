"""
Tests for the live settings store.
"""

import pytest

from vitals_monitor.config.settings import GENERIC_INTERVAL_KEY, SettingChange, Settings
from vitals_monitor.models.vital import MetricKind


def test_set_notifies_prefix_subscribers() -> None:
    settings = Settings()
    seen: list[SettingChange] = []
    settings.subscribe("show-", seen.append)

    assert settings.set("show-cpu", False) is True
    settings.set("cpu-update-interval", 1000)

    assert seen == [SettingChange("show-cpu", False, None)]


def test_set_same_value_does_not_notify() -> None:
    settings = Settings({"show-ram": True})
    seen: list[SettingChange] = []
    settings.subscribe("show-ram", seen.append)

    assert settings.set("show-ram", True) is False
    assert seen == []


def test_dispose_stops_notifications() -> None:
    settings = Settings()
    seen: list[SettingChange] = []
    subscription = settings.subscribe("", seen.append)

    subscription.dispose()
    subscription.dispose()
    settings.set("show-gpu", False)

    assert seen == []
    assert not subscription.active
    assert settings.subscription_count == 0


@pytest.mark.parametrize("value", [499, 300_001, "fast", True])
def test_interval_validation(value) -> None:
    settings = Settings()

    with pytest.raises(ValueError):
        settings.set("cpu-update-interval", value)


def test_visibility_must_be_boolean() -> None:
    with pytest.raises(ValueError):
        Settings({"show-cpu": "yes"})


def test_interval_range_is_configurable() -> None:
    settings = Settings(interval_range=(1, 100))

    settings.set(GENERIC_INTERVAL_KEY, 10)

    assert settings.interval_for(MetricKind.CPU) == 10


def test_interval_inheritance() -> None:
    settings = Settings({GENERIC_INTERVAL_KEY: 3000, "storage-update-interval": 5000, "cpu-update-interval": None})

    assert settings.interval_for(MetricKind.CPU) == 3000
    assert settings.interval_for(MetricKind.STORAGE) == 5000
    assert Settings().interval_for(MetricKind.RAM) == 2000


def test_is_visible_defaults_to_true() -> None:
    settings = Settings({"show-temp": False})

    assert settings.is_visible(MetricKind.TEMPERATURE) is False
    assert settings.is_visible(MetricKind.GPU) is True


def test_update_validates_before_applying() -> None:
    settings = Settings({"show-cpu": True})

    with pytest.raises(ValueError):
        settings.update({"show-cpu": False, "ram-update-interval": 1})

    assert settings.get("show-cpu") is True
    assert settings.get("ram-update-interval") is None


def test_update_reports_changed_keys_only() -> None:
    settings = Settings({"show-cpu": True, GENERIC_INTERVAL_KEY: 2000})
    seen: list[str] = []
    settings.subscribe("", lambda change: seen.append(change.key))

    changed = settings.update({"show-cpu": True, GENERIC_INTERVAL_KEY: 4000, "show-ram": False})

    assert changed == [GENERIC_INTERVAL_KEY, "show-ram"]
    assert seen == changed


def test_failing_handler_does_not_block_others() -> None:
    settings = Settings()
    seen: list[str] = []

    def broken(change: SettingChange) -> None:
        raise RuntimeError("boom")

    settings.subscribe("show-", broken)
    settings.subscribe("show-", lambda change: seen.append(change.key))

    settings.set("show-cpu", False)

    assert seen == ["show-cpu"]
