from __future__ import annotations

from cgm_tool.errors import DeviceConnectionError, InvalidSettingsError
from cgm_tool.model import DEVICE_NAMES, DeviceType, Settings, new_id


def test_default_settings_are_valid() -> None:
    settings = Settings()
    assert settings.validate() == []
    assert (settings.urgent_low_threshold, settings.low_threshold) == (55, 70)
    assert (settings.target_range_min, settings.target_range_max) == (70, 180)


def test_validate_reports_each_problem() -> None:
    settings = Settings(urgent_low_threshold=80, low_threshold=70, high_threshold=60)
    problems = settings.validate()
    assert len(problems) == 2
    assert "urgent_low_threshold (80)" in problems[0]
    assert "high_threshold (60)" in problems[1]


def test_equal_target_bounds_are_allowed() -> None:
    assert Settings(target_range_min=100, target_range_max=100).validate() == []


def test_every_device_type_has_a_name() -> None:
    assert set(DEVICE_NAMES) == set(DeviceType)
    assert DEVICE_NAMES[DeviceType.MEDTRONIC] == "Medtronic Guardian"


def test_new_id_is_prefixed_and_unique() -> None:
    ids = {new_id("cgm") for _ in range(100)}
    assert len(ids) == 100
    assert all(i.startswith("cgm_") for i in ids)


def test_error_messages() -> None:
    err = InvalidSettingsError(["a", "b"])
    assert str(err) == "Invalid settings (2 problems): a; b"
    assert isinstance(err, ValueError)
    conn = DeviceConnectionError(DeviceType.LIBRE, "timeout")
    assert str(conn) == "Could not connect libre monitor: timeout"
