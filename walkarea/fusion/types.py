"""Data types for GPS gating and position fusion.

This module defines the location-fix packets that flow from the host's
location provider through the GPS gate into the fusion filter, and the
reasons the gate gives for dropping a fix.
"""

from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class RawFix:
    """Location fix as delivered by the platform location provider.

    Attributes:
        lat: Latitude in degrees.
        lon: Longitude in degrees.
        accuracy_m: Horizontal accuracy radius in metres.
        speed_mps: Ground speed in m/s.
        bearing_deg: Course over ground in degrees (0 = North, clockwise).
        timestamp_ms: Fix time in integer milliseconds.
        altitude: Altitude in metres (informational only).
        satellites: Number of satellites used in the fix.

    Example:
        >>> fix = RawFix(lat=22.3, lon=114.18, accuracy_m=5.0, speed_mps=1.2,
        ...              bearing_deg=90.0, timestamp_ms=1000)
        >>> fix.satellites
        0
    """

    lat: float
    lon: float
    accuracy_m: float
    speed_mps: float = 0.0
    bearing_deg: float = 0.0
    timestamp_ms: int = 0
    altitude: float = 0.0
    satellites: int = 0

    def __post_init__(self) -> None:
        if not -90.0 <= self.lat <= 90.0:
            raise ValueError(f"Latitude must be in [-90, 90] degrees, got {self.lat}")
        if not -180.0 <= self.lon <= 180.0:
            raise ValueError(f"Longitude must be in [-180, 180] degrees, got {self.lon}")


@dataclass(frozen=True)
class GatedFix:
    """Fix accepted by the GPS gate, smoothed and placed in the local frame.

    Attributes:
        lat: Smoothed latitude in degrees.
        lon: Smoothed longitude in degrees.
        x: East offset from the session origin fix (m).
        y: North offset from the session origin fix (m).
        accuracy_m: Horizontal accuracy of the raw fix (m).
        speed_mps: Ground speed of the raw fix (m/s).
        bearing_deg: Course over ground of the raw fix (degrees).
        timestamp_ms: Fix time in integer milliseconds.
        altitude: Altitude of the raw fix (m).
        satellites: Satellites used in the raw fix.
    """

    lat: float
    lon: float
    x: float
    y: float
    accuracy_m: float
    speed_mps: float
    bearing_deg: float
    timestamp_ms: int
    altitude: float = 0.0
    satellites: int = 0


class GateDecision(Enum):
    """Outcome of the most recent GPS gate check."""

    ACCEPTED = "accepted"
    LOW_ACCURACY = "low_accuracy"
    EXCESSIVE_SPEED = "excessive_speed"
    POSITION_JUMP = "position_jump"
    IMPLAUSIBLE_MOTION = "implausible_motion"
