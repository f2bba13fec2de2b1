"""
Fixed reference data written on every bootstrap, inside one transaction.
"""
from ..core.logger import get_logger
from ..persistence.gateway import PersistenceGateway

logger = get_logger("CoreSeed")

PICKUP_STATUSES = (
    "Order Received",
    "Paid To Logistics Co",
    "Ready for Collection",
    "Collected",
    "Delivered",
    "Cancelled",
    "Failed",
)

SERVICE_TYPES = (
    (1, "COLLECTION"),
    (2, "DELIVERY"),
)

DEFAULT_TRUCK_TYPE = "Small Truck"

def seed_core(persistence: PersistenceGateway):
    """
    All-or-nothing. On any failure the transaction is rolled back and the
    original exception is re-raised; the transaction is always released.
    """
    txn = persistence.begin()
    try:
        txn.insert("pickup_status", [{"status_name": name} for name in PICKUP_STATUSES])
        logger.info("seeded_pickup_statuses", count=len(PICKUP_STATUSES))

        txn.insert("service_type", [
            {"service_type_id": type_id, "service_type_name": name} for type_id, name in SERVICE_TYPES
        ])
        logger.info("seeded_service_types", count=len(SERVICE_TYPES))

        txn.insert("truck_type", [{"truck_type_name": DEFAULT_TRUCK_TYPE}])
        logger.info("seeded_default_truck_type", truck_type=DEFAULT_TRUCK_TYPE)

        txn.commit()
        logger.info("core_seed_committed")
    except Exception as e:
        txn.rollback()
        logger.error("core_seed_failed_rolled_back", error=str(e))
        raise
    finally:
        txn.release()
