"""
Synthetic sensor streams for exercising the engine with a known answer.

Modules:
    walk: Polygonal walks (accel/gyro/mag samples, ground truth, GPS fixes)
"""

from walkarea.sim.walk import (
    SimulatedWalk,
    generate_gps_fixes,
    generate_polygon_walk,
    magnetometer_for_heading,
    rectangle_waypoints,
)

__all__ = [
    "SimulatedWalk",
    "generate_polygon_walk",
    "generate_gps_fixes",
    "magnetometer_for_heading",
    "rectangle_waypoints",
]
