from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
from ..core.types import TruckRecord

SCHEMA_VERSION = "1"

# Tables created by migrate(). Anything else is rejected on insert.
SCHEMA_TABLES = (
    "pickup_status",
    "service_type",
    "truck_type",
    "truck",
    "bank_account",
)

class Transaction(ABC):
    """
    Unit of work opened by PersistenceGateway.begin().
    Writes become visible only on commit(). release() must always be called.
    """

    @abstractmethod
    def insert(self, table: str, rows: List[Dict[str, Any]]):
        pass

    @abstractmethod
    def commit(self):
        pass

    @abstractmethod
    def rollback(self):
        pass

    @abstractmethod
    def release(self):
        pass

class PersistenceGateway(ABC):
    """
    Storage collaborator of the bootstrap orchestrator.
    Implementations raise PersistenceError on failure.
    """

    @abstractmethod
    def is_connected(self) -> bool:
        pass

    @abstractmethod
    def connect(self):
        pass

    @abstractmethod
    def drop_schema(self):
        pass

    @abstractmethod
    def migrate(self):
        pass

    @abstractmethod
    def begin(self) -> Transaction:
        pass

    @abstractmethod
    def count_trucks(self) -> int:
        pass

    @abstractmethod
    def insert_truck(self, record: TruckRecord):
        pass

    @abstractmethod
    def save_bank_account(self, account_number: str):
        pass

    @abstractmethod
    def get_bank_account(self) -> Optional[str]:
        pass

    @abstractmethod
    def get_rows(self, table: str) -> List[Dict[str, Any]]:
        pass
