"""
Tests for crisis classification in `bp_tracker/blood_pressure.py`.

Covers:
- Inclusive thresholds (a reading on the threshold is a crisis)
- Either value alone is enough (OR, not AND)
- Bad input returns False instead of raising
- Threshold parsing and fallback to the defaults
- classify() status precedence
- to_number() and measurement validation
"""

from __future__ import annotations

import math

import pytest

from bp_tracker.blood_pressure import (
    DEFAULT_THRESHOLDS,
    CrisisThresholds,
    MeasurementBounds,
    classify,
    is_hypertensive_crisis,
    is_hypotensive_crisis,
    parse_threshold,
    to_number,
    validate_measurement,
)
from bp_tracker.errors import ValidationError

BAD_INPUTS = [None, "180", "", float("nan"), math.inf, True, [], {}, object()]


# ============================================================
# HYPERTENSIVE CRISIS
# ============================================================

@pytest.mark.parametrize("systolic, diastolic", [(180, 70), (190, 80), (200, 90), (180, 80)])
def test_hypertensive_on_systolic(systolic, diastolic) -> None:
    assert is_hypertensive_crisis(systolic, diastolic) is True


@pytest.mark.parametrize("systolic, diastolic", [(140, 120), (130, 125), (150, 130), (100, 120)])
def test_hypertensive_on_diastolic_alone(systolic, diastolic) -> None:
    assert is_hypertensive_crisis(systolic, diastolic) is True


@pytest.mark.parametrize("systolic, diastolic", [
    (120, 80), (110, 70), (130, 85), (179, 90), (160, 119), (179, 119),
])
def test_not_hypertensive_below_thresholds(systolic, diastolic) -> None:
    assert is_hypertensive_crisis(systolic, diastolic) is False


def test_hypertensive_with_floats_at_boundary() -> None:
    assert is_hypertensive_crisis(180.0, 60.5) is True
    assert is_hypertensive_crisis(179.9, 119.9) is False


# ============================================================
# HYPOTENSIVE CRISIS
# ============================================================

@pytest.mark.parametrize("systolic, diastolic", [(90, 80), (85, 75), (70, 90), (90, 70)])
def test_hypotensive_on_systolic(systolic, diastolic) -> None:
    assert is_hypotensive_crisis(systolic, diastolic) is True


@pytest.mark.parametrize("systolic, diastolic", [(100, 60), (110, 55), (95, 50), (150, 60)])
def test_hypotensive_on_diastolic_alone(systolic, diastolic) -> None:
    assert is_hypotensive_crisis(systolic, diastolic) is True


@pytest.mark.parametrize("systolic, diastolic", [
    (120, 80), (91, 61), (140, 90), (180, 110),
])
def test_not_hypotensive_above_thresholds(systolic, diastolic) -> None:
    assert is_hypotensive_crisis(systolic, diastolic) is False


# ============================================================
# BAD INPUT (fails open to "no crisis")
# ============================================================

@pytest.mark.parametrize("bad", BAD_INPUTS)
@pytest.mark.parametrize("check", [is_hypertensive_crisis, is_hypotensive_crisis])
def test_bad_input_returns_false(check, bad) -> None:
    # Known trade-off: an unreadable value is reported the same as a normal one
    assert check(bad, 80) is False
    assert check(200, bad) is False
    assert check(bad, bad) is False


def test_missing_reading_looks_normal() -> None:
    assert classify(None, None).status == "normal"
    assert is_hypertensive_crisis(0, 0) is False


# ============================================================
# THRESHOLDS
# ============================================================

@pytest.mark.parametrize("raw, expected", [
    (None, 180),
    ("", 180),
    ("   ", 180),
    ("abc", 180),
    ("0", 180),
    ("nan", 180),
    ("inf", 180),
    ("170", 170),
    (" 160 ", 160),
    ("175.5", 175.5),
    (150, 150),
])
def test_parse_threshold(raw, expected) -> None:
    assert parse_threshold(raw, 180) == expected


def test_thresholds_default_values() -> None:
    assert CrisisThresholds.from_settings({}) == CrisisThresholds(180, 120, 90, 60)
    assert DEFAULT_THRESHOLDS == CrisisThresholds(180, 120, 90, 60)


def test_thresholds_from_settings_mixed() -> None:
    thresholds = CrisisThresholds.from_settings({
        "PSYS_HIGH": "170",
        "PDYS_HIGH": "junk",
        "PSYS_LOW": "",
        "PDYS_LOW": "55",
    })
    assert thresholds == CrisisThresholds(170, 120, 90, 55)


def test_injected_thresholds_change_result() -> None:
    strict = CrisisThresholds(systolic_high=160, diastolic_high=100,
                              systolic_low=95, diastolic_low=65)
    assert is_hypertensive_crisis(165, 80) is False
    assert is_hypertensive_crisis(165, 80, strict) is True
    assert is_hypotensive_crisis(94, 70, strict) is True
    assert is_hypotensive_crisis(100, 65, strict) is True


# ============================================================
# CLASSIFY
# ============================================================

@pytest.mark.parametrize("systolic, diastolic, status", [
    (120, 80, "normal"),
    (185, 90, "high"),
    (85, 70, "low"),
    # Both checks fire: high wins
    (200, 50, "high"),
])
def test_classify_status(systolic, diastolic, status) -> None:
    assert classify(systolic, diastolic).status == status


def test_classify_reports_both_flags() -> None:
    assessment = classify(200, 50)
    assert assessment.hypertensive and assessment.hypotensive
    assert assessment.is_crisis
    assert assessment.to_dict() == {
        "hypertensive_crisis": True,
        "hypotensive_crisis": True,
        "status": "high",
    }


# ============================================================
# INPUT HANDLING
# ============================================================

@pytest.mark.parametrize("raw, expected", [
    ("120", 120.0),
    (" 80 ", 80.0),
    (72, 72.0),
    (72.5, 72.5),
    ("", None),
    ("abc", None),
    (None, None),
    (False, None),
    ("nan", None),
    ([120], None),
])
def test_to_number(raw, expected) -> None:
    assert to_number(raw) == expected


def test_validate_measurement_accepts_strings() -> None:
    assert validate_measurement("128", "82", "70") == (128, 82, 70)


@pytest.mark.parametrize("systolic, diastolic, heart_rate, message", [
    (None, 80, 70, "Systolic pressure is required"),
    (120, "", 70, "Diastolic pressure is required"),
    (120, 80, None, "Heart rate is required"),
    ("abc", 80, 70, "Systolic pressure must be a number"),
    (120, [80], 70, "Diastolic pressure must be a number"),
    (120.5, 80, 70, "Systolic pressure must be a whole number"),
    (301, 80, 70, "Systolic pressure must be between"),
    (120, 29, 70, "Diastolic pressure must be between"),
    (120, 80, 400, "Heart rate must be between"),
])
def test_validate_measurement_rejects(systolic, diastolic, heart_rate, message) -> None:
    with pytest.raises(ValidationError, match=message):
        validate_measurement(systolic, diastolic, heart_rate)


def test_measurement_bounds_from_settings() -> None:
    bounds = MeasurementBounds.from_settings({"PSYS_MAX": "250", "PULSE_MIN": "x"})
    assert bounds.systolic_max == 250
    assert bounds.pulse_min == 25
    with pytest.raises(ValidationError):
        validate_measurement(260, 80, 70, bounds)
