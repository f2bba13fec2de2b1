import threading
import time
from typing import Callable, Optional
from .fleet import FleetProcurement
from .report import BootstrapReport
from .resilience import retry_with_backoff
from .seed import seed_core
from ..core.clock import SimClock
from ..core.errors import BootstrapInProgressError
from ..core.logger import get_logger
from ..core.types import BootstrapPhase
from ..integrations.bank import BankClient
from ..integrations.market import MarketClient
from ..persistence.gateway import PersistenceGateway

logger = get_logger("BootstrapOrchestrator")

class BootstrapOrchestrator:
    """
    Resets the simulation environment and brings the business up.

    Fatal (error re-raised unchanged, run aborted):
        connect -> drop schema -> migrate -> seed core (one transaction)
    Then the clock is reset, and the soft-fail phase runs:
        bank account (retries) -> truck fleet (fallback chain)
    """
    def __init__(
        self,
        persistence: PersistenceGateway,
        bank: BankClient,
        market: MarketClient,
        clock: SimClock,
        sleep: Callable[[float], None] = time.sleep,
        max_attempts: int = 3,
        base_delay_s: float = 1.0,
    ):
        self.persistence = persistence
        self.bank = bank
        self.market = market
        self.clock = clock
        self.sleep = sleep
        self.max_attempts = max_attempts
        self.base_delay_s = base_delay_s
        self.fleet = FleetProcurement(persistence, bank, market, sleep=sleep,
                                      max_attempts=max_attempts, base_delay_s=base_delay_s)
        self.phase = BootstrapPhase.IDLE
        self._run_lock = threading.Lock()

    def run(self) -> BootstrapReport:
        """
        Single-flight: a call made while another run is executing raises
        BootstrapInProgressError instead of racing on the schema.
        """
        if not self._run_lock.acquire(blocking=False):
            logger.warning("bootstrap_rejected_already_running", phase=self.phase.value)
            raise BootstrapInProgressError("A bootstrap run is already in progress")
        try:
            return self._run()
        finally:
            self._run_lock.release()

    def _run(self) -> BootstrapReport:
        logger.info("bootstrap_started")
        try:
            self.reset_persistence()
        except Exception as e:
            self._transition(BootstrapPhase.FAILED, reason=str(e))
            raise

        # Only reached once the core seed has committed
        self._transition(BootstrapPhase.CLOCK_RESET)
        self.clock.reset()

        report = self.initialize_business_services()
        self._transition(BootstrapPhase.DONE)
        report.phase = self.phase
        logger.info("bootstrap_completed", **report.to_dict())
        return report

    def reset_persistence(self):
        self._transition(BootstrapPhase.CONNECTING_DB)
        if not self.persistence.is_connected():
            logger.info("initializing_db_connection")
            self.persistence.connect()
        else:
            logger.info("db_connection_already_initialized")

        self._transition(BootstrapPhase.DROPPING_SCHEMA)
        logger.warning("dropping_all_tables")
        self.persistence.drop_schema()

        self._transition(BootstrapPhase.MIGRATING)
        self.persistence.migrate()

        self._transition(BootstrapPhase.SEEDING_CORE)
        seed_core(self.persistence)

    def initialize_business_services(self) -> BootstrapReport:
        """
        Never raises; every failure in here degrades the report instead.
        """
        self._transition(BootstrapPhase.INITIALIZING_BANK_ACCOUNT)
        account_number = self.create_bank_account()

        self._transition(BootstrapPhase.INITIALIZING_FLEET)
        fleet = self.fleet.initialize_fleet()

        return BootstrapReport(
            phase=self.phase,
            bank_account=account_number,
            loan=fleet.loan,
            trucks_created=fleet.trucks_created,
            used_minimal_fleet=fleet.used_minimal_fleet,
        )

    def create_bank_account(self) -> Optional[str]:
        def _create_and_store() -> str:
            account = self.bank.create_account()
            self.persistence.save_bank_account(account.account_number)
            return account.account_number

        outcome = retry_with_backoff(
            "create_bank_account",
            _create_and_store,
            attempts=self.max_attempts,
            sleep=self.sleep,
            base_delay_s=self.base_delay_s,
        )
        if not outcome.ok:
            logger.error("bank_account_unavailable_proceeding_without", attempts=outcome.attempts)
            return None
        logger.info("bank_account_ready", account_number=outcome.value, attempts=outcome.attempts)
        return outcome.value

    def _transition(self, phase: BootstrapPhase, **context):
        previous = self.phase
        self.phase = phase
        logger.info("bootstrap_phase", previous=previous.value, phase=phase.value, **context)
