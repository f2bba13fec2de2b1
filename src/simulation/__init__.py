"""
Simulated calendar for services that schedule pickups and deliveries.
"""
from .calendar import SimulationCalendar, SIM_EPOCH

__all__ = [
    "SimulationCalendar",
    "SIM_EPOCH",
]
