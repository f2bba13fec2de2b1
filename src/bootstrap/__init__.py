"""
Simulation environment bootstrap.

Resets persistence, seeds reference data and brings the business
(bank account, truck fleet) into a working state.
"""
from .orchestrator import BootstrapOrchestrator
from .report import BootstrapReport
from .fleet import FleetProcurement, plan_purchase
from .resilience import Outcome, retry_with_backoff
from .seed import seed_core

__all__ = [
    "BootstrapOrchestrator",
    "BootstrapReport",
    "FleetProcurement",
    "plan_purchase",
    "Outcome",
    "retry_with_backoff",
    "seed_core",
]
