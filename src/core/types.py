import re
from datetime import datetime
from enum import Enum
from typing import List, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator

ISO_8601_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}([T ]|$)")

# --- Clock Types ---

class SyncStatus(BaseModel):
    """
    Snapshot of the clock's auto-sync bookkeeping.
    """
    enabled: bool
    endpoint: Optional[str] = None
    failed_attempts: int
    max_failures: int

class SimTimeResponse(BaseModel):
    """
    Payload served by the simulation time authority.
    """
    currentSimTime: datetime

    @field_validator("currentSimTime", mode="before")
    @classmethod
    def require_iso_8601(cls, value):
        # Only ISO 8601 strings; numbers and bare digit strings are not dates here
        if not isinstance(value, str) or not ISO_8601_DATE.match(value):
            raise ValueError(f"not an ISO 8601 date: {value!r}")
        return value

# --- Bootstrap Types ---

class BootstrapPhase(str, Enum):
    IDLE = "IDLE"
    CONNECTING_DB = "CONNECTING_DB"
    DROPPING_SCHEMA = "DROPPING_SCHEMA"
    MIGRATING = "MIGRATING"
    SEEDING_CORE = "SEEDING_CORE"
    CLOCK_RESET = "CLOCK_RESET"
    INITIALIZING_BANK_ACCOUNT = "INITIALIZING_BANK_ACCOUNT"
    INITIALIZING_FLEET = "INITIALIZING_FLEET"
    DONE = "DONE"
    FAILED = "FAILED"

class TruckOffer(BaseModel):
    """
    A truck variant listed by the market. Field aliases follow the market's wire format.
    """
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(alias="truckName")
    unit_price: float = Field(alias="price")
    daily_operating_cost: float = Field(alias="operatingCost")
    max_load: float = Field(default=0, alias="maximumLoad")
    quantity_available: int = Field(default=0, alias="quantity")

class TruckPurchasePlan(BaseModel):
    name: str
    unit_price: float
    daily_operating_cost: float
    max_load: float
    quantity_to_buy: int

class PurchasePlan(BaseModel):
    lines: List[TruckPurchasePlan]
    loan_amount: float

class LoanAttempt(BaseModel):
    requested_amount: float
    attempted_amount: float
    approved: bool
    loan_number: Optional[str] = None

# --- Collaborator Payloads ---

class BankAccount(BaseModel):
    account_number: str

class LoanResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    approved: bool = Field(alias="success")
    loan_number: Optional[str] = None

class MarketOrder(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    order_id: Union[int, str] = Field(alias="orderId")
    bank_account: str = Field(alias="bankAccount")
    price: float = Field(alias="totalPrice")
    quantity: int

class TruckRecord(BaseModel):
    """
    A truck row as persisted after a successful purchase.
    """
    truck_type_name: str
    daily_operating_cost: float
    max_capacity: float
    max_pickups: int = 250
    max_dropoffs: int = 500
    is_available: bool = True
