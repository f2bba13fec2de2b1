"""
Redis-backed persistence.

Layout (all keys under one prefix, default "logistics"):
    <prefix>:schema_version   migrated schema version
    <prefix>:tables           set of migrated table names
    <prefix>:table:<name>     list of JSON rows
"""
import json
from contextlib import contextmanager
from typing import Any, Dict, List, Optional
import redis
from .gateway import PersistenceGateway, Transaction, SCHEMA_TABLES, SCHEMA_VERSION
from ..core.errors import PersistenceError
from ..core.logger import get_logger
from ..core.types import TruckRecord

logger = get_logger("RedisPersistence")

@contextmanager
def _redis_errors(operation: str):
    try:
        yield
    except redis.RedisError as e:
        raise PersistenceError(f"{operation} failed: {e}") from e

class RedisTransaction(Transaction):
    """
    Queues writes on a MULTI/EXEC pipeline; EXEC applies them atomically.
    """
    def __init__(self, gateway: "RedisPersistenceGateway"):
        self.gateway = gateway
        self.tables = gateway.migrated_tables()
        self.pipe = gateway.redis.pipeline(transaction=True)
        self._released = False

    def insert(self, table: str, rows: List[Dict[str, Any]]):
        if table not in self.tables:
            raise PersistenceError(f"relation '{table}' does not exist")
        if not rows:
            return
        self.pipe.rpush(self.gateway.table_key(table), *[json.dumps(row, sort_keys=True) for row in rows])

    def commit(self):
        with _redis_errors("commit"):
            self.pipe.execute()

    def rollback(self):
        self.pipe.reset()

    def release(self):
        if not self._released:
            self.pipe.reset()
            self._released = True

class RedisPersistenceGateway(PersistenceGateway):
    def __init__(self, redis_url: str = "redis://localhost:6379/0", prefix: str = "logistics",
                 client: Optional[redis.Redis] = None):
        self.redis_url = redis_url
        self.prefix = prefix
        self.redis = client
        self._connected = False

    def key(self, suffix: str) -> str:
        return f"{self.prefix}:{suffix}"

    def table_key(self, table: str) -> str:
        return self.key(f"table:{table}")

    def is_connected(self) -> bool:
        return self._connected

    def connect(self):
        if self.redis is None:
            self.redis = redis.from_url(self.redis_url, decode_responses=True)
        with _redis_errors("connect"):
            self.redis.ping()
        self._connected = True
        logger.info("redis_connected", prefix=self.prefix)

    def drop_schema(self):
        with _redis_errors("drop_schema"):
            keys = list(self.redis.scan_iter(match=self.key("*")))
            if keys:
                self.redis.delete(*keys)
        logger.info("schema_dropped", keys_deleted=len(keys))

    def migrate(self):
        with _redis_errors("migrate"):
            pipe = self.redis.pipeline(transaction=True)
            pipe.delete(self.key("tables"))
            pipe.sadd(self.key("tables"), *SCHEMA_TABLES)
            pipe.set(self.key("schema_version"), SCHEMA_VERSION)
            pipe.execute()
        logger.info("schema_migrated", version=SCHEMA_VERSION)

    def migrated_tables(self) -> set:
        with _redis_errors("read schema"):
            return set(self.redis.smembers(self.key("tables")))

    def begin(self) -> Transaction:
        return RedisTransaction(self)

    def count_trucks(self) -> int:
        with _redis_errors("count_trucks"):
            return int(self.redis.llen(self.table_key("truck")))

    def insert_truck(self, record: TruckRecord):
        self._require_table("truck")
        with _redis_errors("insert_truck"):
            self.redis.rpush(self.table_key("truck"), record.model_dump_json())

    def save_bank_account(self, account_number: str):
        self._require_table("bank_account")
        with _redis_errors("save_bank_account"):
            pipe = self.redis.pipeline(transaction=True)
            pipe.delete(self.table_key("bank_account"))
            pipe.rpush(self.table_key("bank_account"), json.dumps({"account_number": account_number}))
            pipe.execute()

    def get_bank_account(self) -> Optional[str]:
        with _redis_errors("get_bank_account"):
            raw = self.redis.lindex(self.table_key("bank_account"), 0)
        return json.loads(raw)["account_number"] if raw else None

    def get_rows(self, table: str) -> List[Dict[str, Any]]:
        with _redis_errors("get_rows"):
            return [json.loads(raw) for raw in self.redis.lrange(self.table_key(table), 0, -1)]

    def _require_table(self, table: str):
        if table not in self.migrated_tables():
            raise PersistenceError(f"relation '{table}' does not exist")
