"""GPS gating and PDR/GPS position fusion.

This package provides:
- Location fix types (RawFix, GatedFix) and gate outcomes (GateDecision)
- GPS validity gating, coordinate smoothing and local projection (GpsGate)
- Five-state PDR/GPS fusion filter (LocationFusionFilter)
"""

from walkarea.fusion.types import GatedFix, GateDecision, RawFix
from walkarea.fusion.gating import GateConfig, GpsGate
from walkarea.fusion.location_fusion import (
    FusionConfig,
    FusionState,
    LocationFusionFilter,
)

__all__ = [
    # Types
    "RawFix",
    "GatedFix",
    "GateDecision",
    # Gating
    "GateConfig",
    "GpsGate",
    # Fusion
    "FusionConfig",
    "FusionState",
    "LocationFusionFilter",
]
