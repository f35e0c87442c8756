"""Tests for plan to RADIUS attribute encoding."""

from app.models.catalog import NasType, Plan, SpeedUnit, ValidityUnit
from app.services import bandwidth_policy
from app.services.bandwidth_policy import (
    FRAMED_POOL,
    LOGIN_TIME,
    MIKROTIK_RATE_LIMIT,
    SESSION_TIMEOUT,
    SIMULTANEOUS_USE,
    WISPR_MAX_DOWN,
    WISPR_MAX_UP,
    PolicyAttribute,
    build_fup_rate_limit,
    build_mikrotik_rate_limit,
    plan_to_radius_attributes,
    resolve_vendor,
)


def _plan(**overrides) -> Plan:
    values = {
        "name": "Home 20",
        "download_speed": 20,
        "upload_speed": 10,
        "speed_unit": SpeedUnit.mbps,
        "priority": 8,
        "simultaneous_devices": None,
        "validity_amount": 30,
        "validity_unit": ValidityUnit.days,
    }
    values.update(overrides)
    return Plan(**values)


class TestMikrotikRateLimit:
    def test_basic_rate_is_download_first(self):
        assert build_mikrotik_rate_limit(_plan()) == "20M/10M"

    def test_kbps_plans_use_k_suffix(self):
        plan = _plan(download_speed=512, upload_speed=256, speed_unit=SpeedUnit.kbps)
        assert build_mikrotik_rate_limit(plan) == "512k/256k"

    def test_burst_uses_extended_form(self):
        plan = _plan(
            burst_download_speed=40,
            burst_upload_speed=20,
            burst_threshold=15000,
            burst_time=10,
        )
        assert build_mikrotik_rate_limit(plan) == "20M/10M 40M/20M 15000k/15000k 10s/10s 8"

    def test_incomplete_burst_is_ignored(self):
        plan = _plan(burst_download_speed=40, burst_upload_speed=None, burst_time=10)
        assert build_mikrotik_rate_limit(plan) == "20M/10M"

    def test_non_default_priority_forces_extended_form(self):
        assert build_mikrotik_rate_limit(_plan(priority=3)) == "20M/10M 0/0 0/0 0/0 3"

    def test_missing_priority_defaults_to_eight(self):
        assert build_mikrotik_rate_limit(_plan(priority=None)) == "20M/10M"

    def test_fup_rate_appended_as_limit_at(self):
        plan = _plan(fup_download_speed=5, fup_upload_speed=2, fup_speed_unit=SpeedUnit.mbps)
        assert build_mikrotik_rate_limit(plan) == "20M/10M 0/0 0/0 0/0 8 5M/2M"

    def test_fup_falls_back_to_plan_unit(self):
        plan = _plan(fup_download_speed=5, fup_upload_speed=2)
        assert build_fup_rate_limit(plan) == "5M/2M"

    def test_no_fup_without_both_speeds(self):
        assert build_fup_rate_limit(_plan(fup_download_speed=5)) is None


class TestResolveVendor:
    def test_default_is_configured_vendor(self):
        assert resolve_vendor(None) == NasType.mikrotik

    def test_string_is_case_insensitive(self):
        assert resolve_vendor(" Cisco ") == NasType.cisco

    def test_unknown_vendor_maps_to_other(self):
        assert resolve_vendor("juniper") == NasType.other


class TestPlanToRadiusAttributes:
    def test_minimal_plan_has_only_rate_limit(self):
        attributes = plan_to_radius_attributes(_plan(), NasType.mikrotik)
        assert attributes == [PolicyAttribute(MIKROTIK_RATE_LIMIT, "20M/10M", 1)]

    def test_full_plan_attribute_order(self):
        plan = _plan(
            pool_name="pool-home",
            validity_amount=24,
            validity_unit=ValidityUnit.hours,
            simultaneous_devices=2,
            time_slot_start="08:00",
            time_slot_end="18:00",
        )
        attributes = plan_to_radius_attributes(plan, NasType.mikrotik)
        assert [item.attribute for item in attributes] == [
            MIKROTIK_RATE_LIMIT,
            FRAMED_POOL,
            SESSION_TIMEOUT,
            SIMULTANEOUS_USE,
            LOGIN_TIME,
        ]
        by_name = {item.attribute: item for item in attributes}
        assert by_name[SESSION_TIMEOUT].value == "86400"
        assert by_name[SIMULTANEOUS_USE].value == "2"
        assert by_name[SIMULTANEOUS_USE].is_check is True
        assert by_name[LOGIN_TIME].value == "Al0800-1800"
        assert by_name[LOGIN_TIME].is_check is True
        assert by_name[FRAMED_POOL].is_check is False

    def test_day_plans_have_no_session_timeout(self):
        attributes = plan_to_radius_attributes(_plan(), NasType.mikrotik)
        assert SESSION_TIMEOUT not in [item.attribute for item in attributes]

    def test_partial_time_slot_is_ignored(self):
        attributes = plan_to_radius_attributes(_plan(time_slot_start="08:00"), NasType.mikrotik)
        assert LOGIN_TIME not in [item.attribute for item in attributes]

    def test_cisco_gets_wispr_bits_per_second(self):
        attributes = plan_to_radius_attributes(_plan(), "cisco")
        values = {item.attribute: item.value for item in attributes}
        assert values[WISPR_MAX_DOWN] == "20000000"
        assert values[WISPR_MAX_UP] == "10000000"
        assert MIKROTIK_RATE_LIMIT not in values

    def test_registered_encoder_is_used(self, monkeypatch):
        monkeypatch.setattr(
            bandwidth_policy, "_RATE_LIMIT_ENCODERS", dict(bandwidth_policy._RATE_LIMIT_ENCODERS)
        )
        bandwidth_policy.register_rate_limit_encoder(
            NasType.ubiquiti, lambda plan: [PolicyAttribute("Custom-Rate", "x", 1)]
        )
        attributes = plan_to_radius_attributes(_plan(), NasType.ubiquiti)
        assert attributes[0].attribute == "Custom-Rate"
