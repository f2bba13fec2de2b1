"""
In-memory persistence for tests and dry runs.
Mirrors RedisPersistenceGateway so the orchestrator code path is identical.
"""
import copy
from typing import Any, Dict, List, Optional
from .gateway import PersistenceGateway, Transaction, SCHEMA_TABLES
from ..core.errors import PersistenceError
from ..core.types import TruckRecord

class InMemoryTransaction(Transaction):
    def __init__(self, gateway: "InMemoryPersistenceGateway"):
        self.gateway = gateway
        self.staged: List[tuple] = []
        self.released = False

    def insert(self, table: str, rows: List[Dict[str, Any]]):
        if table not in self.gateway.tables:
            raise PersistenceError(f"relation '{table}' does not exist")
        self.staged.append((table, copy.deepcopy(rows)))

    def commit(self):
        for table, rows in self.staged:
            self.gateway.tables[table].extend(rows)
        self.staged = []

    def rollback(self):
        self.staged = []

    def release(self):
        self.staged = []
        self.released = True

class InMemoryPersistenceGateway(PersistenceGateway):
    def __init__(self):
        self.connected = False
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.connect_calls = 0

    def is_connected(self) -> bool:
        return self.connected

    def connect(self):
        self.connect_calls += 1
        self.connected = True

    def drop_schema(self):
        self.tables = {}

    def migrate(self):
        for table in SCHEMA_TABLES:
            self.tables.setdefault(table, [])

    def begin(self) -> Transaction:
        return InMemoryTransaction(self)

    def count_trucks(self) -> int:
        return len(self.tables.get("truck", []))

    def insert_truck(self, record: TruckRecord):
        self._require_table("truck")
        self.tables["truck"].append(record.model_dump())

    def save_bank_account(self, account_number: str):
        self._require_table("bank_account")
        self.tables["bank_account"] = [{"account_number": account_number}]

    def get_bank_account(self) -> Optional[str]:
        rows = self.tables.get("bank_account") or []
        return rows[0]["account_number"] if rows else None

    def get_rows(self, table: str) -> List[Dict[str, Any]]:
        return copy.deepcopy(self.tables.get(table, []))

    def _require_table(self, table: str):
        if table not in self.tables:
            raise PersistenceError(f"relation '{table}' does not exist")
