"""
Truck fleet procurement: offers -> plan -> loan -> purchase, with fallbacks.

Every step except purchase_fleet() absorbs its own failures. purchase_fleet()
skips plan lines that fail at the bank or market but lets anything else
escape, which sends initialize_fleet() to the minimal 2-truck setup.
"""
import math
import time
from dataclasses import dataclass
from typing import Callable, List, Optional
from .resilience import retry_with_backoff
from ..core.errors import RecoverableIntegrationError
from ..core.logger import get_logger
from ..core.types import LoanAttempt, PurchasePlan, TruckOffer, TruckPurchasePlan, TruckRecord
from ..integrations.bank import BankClient
from ..integrations.market import MarketClient
from ..persistence.gateway import PersistenceGateway

logger = get_logger("FleetProcurement")

SMALL_TRUCK_KEYWORD = "small"
SMALL_TRUCK_QUANTITY = 3
OPERATING_DAYS_COVERED = 14

FALLBACK_PLAN_LINE = TruckPurchasePlan(
    name="Small Truck", unit_price=10_000, daily_operating_cost=500, max_load=2_000, quantity_to_buy=3,
)
# Fixed amount, not derived from FALLBACK_PLAN_LINE
FALLBACK_LOAN_AMOUNT = 51_000

MINIMAL_FLEET_LINE = TruckPurchasePlan(
    name="Small Truck", unit_price=8_000, daily_operating_cost=400, max_load=1_500, quantity_to_buy=2,
)

LOAN_SHRINK_FACTOR = 0.8
MIN_LOAN_AMOUNT = 1_000

def select_trucks(offers: List[TruckOffer]) -> List[TruckPurchasePlan]:
    """First offer whose name mentions 'small', three of them."""
    for offer in offers:
        if SMALL_TRUCK_KEYWORD in offer.name.lower():
            return [TruckPurchasePlan(
                name=offer.name,
                unit_price=offer.unit_price,
                daily_operating_cost=offer.daily_operating_cost,
                max_load=offer.max_load,
                quantity_to_buy=SMALL_TRUCK_QUANTITY,
            )]
    return []

def plan_purchase(offers: List[TruckOffer]) -> PurchasePlan:
    lines = select_trucks(offers)
    if not lines:
        logger.info("using_fallback_truck_plan", offers=len(offers), loan_amount=FALLBACK_LOAN_AMOUNT)
        return PurchasePlan(lines=[FALLBACK_PLAN_LINE.model_copy()], loan_amount=FALLBACK_LOAN_AMOUNT)

    total_purchase = sum(line.unit_price * line.quantity_to_buy for line in lines)
    total_daily_operating = sum(line.daily_operating_cost * line.quantity_to_buy for line in lines)
    loan_amount = total_purchase + total_daily_operating * OPERATING_DAYS_COVERED
    logger.info("truck_plan_calculated", trucks=sum(l.quantity_to_buy for l in lines), loan_amount=loan_amount)
    return PurchasePlan(lines=lines, loan_amount=loan_amount)

def reduced_loan_amount(amount: float, shrink_factor: float = LOAN_SHRINK_FACTOR,
                        min_amount: float = MIN_LOAN_AMOUNT) -> float:
    return max(math.floor(amount * shrink_factor), min_amount)

@dataclass
class FleetOutcome:
    loan: Optional[LoanAttempt]
    trucks_created: int
    used_minimal_fleet: bool

class FleetProcurement:
    def __init__(
        self,
        persistence: PersistenceGateway,
        bank: BankClient,
        market: MarketClient,
        sleep: Callable[[float], None] = time.sleep,
        max_attempts: int = 3,
        base_delay_s: float = 1.0,
        shrink_factor: float = LOAN_SHRINK_FACTOR,
        min_loan_amount: float = MIN_LOAN_AMOUNT,
    ):
        self.persistence = persistence
        self.bank = bank
        self.market = market
        self.sleep = sleep
        self.max_attempts = max_attempts
        self.base_delay_s = base_delay_s
        self.shrink_factor = shrink_factor
        self.min_loan_amount = min_loan_amount

    def initialize_fleet(self) -> FleetOutcome:
        """
        Never raises. Worst case the simulation proceeds with zero trucks.
        """
        loan: Optional[LoanAttempt] = None
        try:
            offers = self.fetch_offers()
            plan = plan_purchase(offers)
            loan = self.apply_loan(plan.loan_amount)
            created = self.purchase_fleet(plan.lines)
            return FleetOutcome(loan=loan, trucks_created=created, used_minimal_fleet=False)
        except Exception as e:
            logger.error("fleet_initialization_failed", error=str(e), exc_info=True)
            logger.warning("falling_back_to_minimal_fleet")
        created = self.minimal_fleet_setup()
        return FleetOutcome(loan=loan, trucks_created=created, used_minimal_fleet=True)

    def fetch_offers(self) -> List[TruckOffer]:
        """
        Retries on errors and on empty listings. Returns [] rather than raising.
        """
        outcome = retry_with_backoff(
            "fetch_truck_offers",
            self.market.list_offers,
            attempts=self.max_attempts,
            sleep=self.sleep,
            base_delay_s=self.base_delay_s,
            accept=lambda offers: bool(offers),
        )
        if not outcome.ok:
            logger.warning("no_truck_offers_available", attempts=outcome.attempts)
            return []
        logger.info("truck_offers_retrieved", count=len(outcome.value))
        return list(outcome.value)

    def apply_loan(self, amount: float) -> LoanAttempt:
        """
        One attempt at `amount`, then at most one retry at a reduced amount.
        The result is logged, never raised.
        """
        logger.info("loan_application", amount=amount)
        try:
            response = self.bank.apply_for_loan(amount)
        except Exception as e:
            logger.warning("loan_application_error", amount=amount, error=str(e))
            return LoanAttempt(requested_amount=amount, attempted_amount=amount, approved=False)

        attempt = LoanAttempt(requested_amount=amount, attempted_amount=amount,
                              approved=response.approved, loan_number=response.loan_number)
        if not response.approved:
            reduced = reduced_loan_amount(amount, self.shrink_factor, self.min_loan_amount)
            if reduced < amount:
                logger.info("loan_retry_reduced_amount", requested=amount, reduced=reduced)
                try:
                    response = self.bank.apply_for_loan(reduced)
                    attempt = LoanAttempt(requested_amount=amount, attempted_amount=reduced,
                                          approved=response.approved, loan_number=response.loan_number)
                except Exception as e:
                    logger.warning("loan_application_error", amount=reduced, error=str(e))
                    attempt = LoanAttempt(requested_amount=amount, attempted_amount=reduced, approved=False)

        if attempt.approved:
            logger.info("loan_approved", requested=amount, approved_amount=attempt.attempted_amount,
                        loan_number=attempt.loan_number)
        else:
            logger.warning("loan_not_approved_proceeding_without", requested=amount,
                           attempted=attempt.attempted_amount)
        return attempt

    def purchase_fleet(self, lines: List[TruckPurchasePlan]) -> int:
        """
        Orders, pays for and registers each plan line. Returns trucks created.
        No-op if any truck already exists.
        """
        existing = self.persistence.count_trucks()
        if existing > 0:
            logger.info("trucks_already_exist_skipping_purchase", existing=existing)
            return 0

        created = 0
        for line in lines:
            try:
                order = self.market.place_order(line.name, line.quantity_to_buy)
            except RecoverableIntegrationError as e:
                logger.warning("truck_order_failed_skipping", truck=line.name, quantity=line.quantity_to_buy,
                               error=str(e))
                continue

            description = f"Purchase of {line.quantity_to_buy} x {line.name} (order {order.order_id})"
            try:
                paid = self.bank.post_transaction(order.bank_account, order.price, description)
            except RecoverableIntegrationError as e:
                logger.warning("truck_payment_failed_skipping", order_id=order.order_id, amount=order.price,
                               error=str(e))
                continue
            if not paid:
                logger.warning("truck_payment_rejected_skipping", order_id=order.order_id, amount=order.price)
                continue

            for _ in range(line.quantity_to_buy):
                self.persistence.insert_truck(TruckRecord(
                    truck_type_name=line.name,
                    daily_operating_cost=line.daily_operating_cost,
                    max_capacity=line.max_load,
                ))
            created += line.quantity_to_buy
            logger.info("trucks_registered", truck=line.name, quantity=line.quantity_to_buy,
                        order_id=order.order_id)
        return created

    def minimal_fleet_setup(self) -> int:
        try:
            created = self.purchase_fleet([MINIMAL_FLEET_LINE.model_copy()])
        except Exception as e:
            logger.error("minimal_fleet_setup_failed", error=str(e))
            logger.warning("simulation_proceeding_without_trucks")
            return 0
        logger.info("minimal_fleet_created", trucks=created)
        return created
