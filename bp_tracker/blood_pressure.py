"""
Blood pressure classification for BP Tracker.

This module decides whether a reading is a crisis:
- Hypertensive crisis: systolic OR diastolic at/above its high threshold
- Hypotensive crisis: systolic OR diastolic at/below its low threshold
- Anything else is normal/elevated and gets no special alert

Thresholds are inclusive: a reading exactly on the threshold is a crisis.

The crisis checks never raise. A missing or non-numeric value makes them
return False, which means a bad reading looks the same as a normal one. That
is the long-standing behaviour callers rely on (they use these checks inline
while rendering), so it is kept as is and covered by tests. Callers that need
to know a value was missing must check it themselves, see to_number().

Thresholds are always passed in. Nothing here reads the environment; use
config.get_crisis_thresholds() to build them from settings.
"""

import math
import numbers
from dataclasses import dataclass
from typing import Mapping, Optional

from .errors import ValidationError


# ============================================================
# THRESHOLDS
# ============================================================

def parse_threshold(raw, default):
    """
    Parse a configured threshold.

    Falls back to the default when the value is missing, empty, not a number,
    not finite, or zero. Zero is never a usable threshold.

    Examples:
        parse_threshold("170", 180)  -> 170
        parse_threshold("", 180)     -> 180
        parse_threshold("abc", 180)  -> 180
        parse_threshold("0", 180)    -> 180
    """
    if raw is None:
        return default
    try:
        value = float(str(raw).strip())
    except ValueError:
        return default
    if not math.isfinite(value) or value == 0:
        return default
    return int(value) if value.is_integer() else value


@dataclass(frozen=True)
class CrisisThresholds:
    """The four crisis thresholds, in mmHg."""

    systolic_high: float = 180
    diastolic_high: float = 120
    systolic_low: float = 90
    diastolic_low: float = 60

    @classmethod
    def from_settings(cls, settings: Mapping) -> "CrisisThresholds":
        """
        Build thresholds from PSYS_HIGH, PDYS_HIGH, PSYS_LOW and PDYS_LOW.

        Each setting is optional; see parse_threshold() for the fallback rule.
        """
        return cls(
            systolic_high=parse_threshold(settings.get("PSYS_HIGH"), cls.systolic_high),
            diastolic_high=parse_threshold(settings.get("PDYS_HIGH"), cls.diastolic_high),
            systolic_low=parse_threshold(settings.get("PSYS_LOW"), cls.systolic_low),
            diastolic_low=parse_threshold(settings.get("PDYS_LOW"), cls.diastolic_low),
        )

    def to_dict(self) -> dict:
        return {
            'systolic_high': self.systolic_high,
            'diastolic_high': self.diastolic_high,
            'systolic_low': self.systolic_low,
            'diastolic_low': self.diastolic_low,
        }


DEFAULT_THRESHOLDS = CrisisThresholds()


# ============================================================
# CRISIS CHECKS
# ============================================================

def _is_number(value) -> bool:
    # bool is an int subclass but True/False is never a reading
    return (
        isinstance(value, numbers.Real)
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def is_hypertensive_crisis(systolic, diastolic,
                           thresholds: CrisisThresholds = DEFAULT_THRESHOLDS) -> bool:
    """
    Check for a hypertensive crisis.

    Args:
        systolic: Systolic pressure in mmHg
        diastolic: Diastolic pressure in mmHg
        thresholds: Crisis thresholds (defaults 180/120)

    Returns:
        True if systolic >= systolic_high or diastolic >= diastolic_high.
        False for any missing or non-numeric input.
    """
    if not (_is_number(systolic) and _is_number(diastolic)):
        return False
    return systolic >= thresholds.systolic_high or diastolic >= thresholds.diastolic_high


def is_hypotensive_crisis(systolic, diastolic,
                          thresholds: CrisisThresholds = DEFAULT_THRESHOLDS) -> bool:
    """
    Check for a hypotensive crisis.

    Args:
        systolic: Systolic pressure in mmHg
        diastolic: Diastolic pressure in mmHg
        thresholds: Crisis thresholds (defaults 90/60)

    Returns:
        True if systolic <= systolic_low or diastolic <= diastolic_low.
        False for any missing or non-numeric input.
    """
    if not (_is_number(systolic) and _is_number(diastolic)):
        return False
    return systolic <= thresholds.systolic_low or diastolic <= thresholds.diastolic_low


@dataclass(frozen=True)
class CrisisAssessment:
    """Result of classify()."""

    hypertensive: bool
    hypotensive: bool

    @property
    def is_crisis(self) -> bool:
        return self.hypertensive or self.hypotensive

    @property
    def status(self) -> str:
        """'high', 'low' or 'normal'. High wins when both checks fire."""
        if self.hypertensive:
            return 'high'
        if self.hypotensive:
            return 'low'
        return 'normal'

    def to_dict(self) -> dict:
        return {
            'hypertensive_crisis': self.hypertensive,
            'hypotensive_crisis': self.hypotensive,
            'status': self.status,
        }


def classify(systolic, diastolic,
             thresholds: CrisisThresholds = DEFAULT_THRESHOLDS) -> CrisisAssessment:
    """Run both crisis checks on one reading."""
    return CrisisAssessment(
        hypertensive=is_hypertensive_crisis(systolic, diastolic, thresholds),
        hypotensive=is_hypotensive_crisis(systolic, diastolic, thresholds),
    )


# ============================================================
# INPUT HANDLING
# ============================================================

def to_number(value) -> Optional[float]:
    """
    Convert raw form/JSON input to a number.

    Accepts ints, floats and numeric strings. Returns None for anything else
    (None, blank strings, booleans, NaN, infinity, other objects).

    Example:
        to_number("120")  -> 120.0
        to_number(" ")    -> None
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, numbers.Real):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


@dataclass(frozen=True)
class MeasurementBounds:
    """Accepted ranges for a new measurement (inclusive)."""

    systolic_min: float = 40
    systolic_max: float = 300
    diastolic_min: float = 30
    diastolic_max: float = 200
    pulse_min: float = 25
    pulse_max: float = 300

    @classmethod
    def from_settings(cls, settings: Mapping) -> "MeasurementBounds":
        return cls(
            systolic_min=parse_threshold(settings.get("PSYS_MIN"), cls.systolic_min),
            systolic_max=parse_threshold(settings.get("PSYS_MAX"), cls.systolic_max),
            diastolic_min=parse_threshold(settings.get("PDYS_MIN"), cls.diastolic_min),
            diastolic_max=parse_threshold(settings.get("PDYS_MAX"), cls.diastolic_max),
            pulse_min=parse_threshold(settings.get("PULSE_MIN"), cls.pulse_min),
            pulse_max=parse_threshold(settings.get("PULSE_MAX"), cls.pulse_max),
        )


def _require_whole_number(raw, label: str, low, high) -> int:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        raise ValidationError(f"{label} is required")
    number = to_number(raw)
    if number is None:
        raise ValidationError(f"{label} must be a number")
    if not number.is_integer():
        raise ValidationError(f"{label} must be a whole number")
    if not low <= number <= high:
        raise ValidationError(f"{label} must be between {low} and {high}")
    return int(number)


def validate_measurement(systolic, diastolic, heart_rate,
                         bounds: MeasurementBounds = MeasurementBounds()) -> tuple:
    """
    Validate the three values of a new measurement.

    Returns:
        (systolic, diastolic, heart_rate) as ints

    Raises:
        ValidationError: a value is missing, not a whole number, or out of range
    """
    return (
        _require_whole_number(systolic, "Systolic pressure",
                              bounds.systolic_min, bounds.systolic_max),
        _require_whole_number(diastolic, "Diastolic pressure",
                              bounds.diastolic_min, bounds.diastolic_max),
        _require_whole_number(heart_rate, "Heart rate",
                              bounds.pulse_min, bounds.pulse_max),
    )
