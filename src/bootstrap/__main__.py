"""
Bootstrap CLI.

Resets the simulation environment against the configured Redis, bank and
market, then optionally starts the simulation clock.
"""
import argparse
import json
import sys
import time
from datetime import datetime
from .orchestrator import BootstrapOrchestrator
from ..core.clock import SimClock
from ..core.config import Settings
from ..core.logger import configure_logging, get_logger
from ..integrations.bank import HttpBankClient
from ..integrations.market import HttpMarketClient
from ..persistence.redis_gateway import RedisPersistenceGateway

def build_orchestrator(settings: Settings, clock: SimClock) -> BootstrapOrchestrator:
    return BootstrapOrchestrator(
        persistence=RedisPersistenceGateway(settings.redis_url),
        bank=HttpBankClient(settings.bank_api_url, timeout=settings.http_timeout_s,
                            notification_url=settings.notification_url),
        market=HttpMarketClient(settings.market_api_url, timeout=settings.http_timeout_s),
        clock=clock,
    )

def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Reset and bootstrap the logistics simulation environment"
    )
    parser.add_argument(
        "--start-clock",
        action="store_true",
        help="Start the simulation clock after a successful bootstrap"
    )
    parser.add_argument(
        "--start-time",
        type=datetime.fromisoformat,
        help="Simulated start time (ISO 8601); defaults to now"
    )
    parser.add_argument(
        "--sync-endpoint",
        help="Time authority to reconcile against (overrides SIM_TIME_ENDPOINT)"
    )
    parser.add_argument(
        "--run-for",
        type=float,
        default=0.0,
        help="Keep the clock running for this many real seconds, then stop"
    )
    parser.add_argument(
        "--console-logs",
        action="store_true",
        help="Human-readable logs instead of JSON"
    )

    args = parser.parse_args(argv)

    settings = Settings.from_env()
    configure_logging(settings.log_level, json_output=not args.console_logs)
    logger = get_logger("BootstrapCLI")

    clock = SimClock(real_minutes_per_sim_day=settings.real_minutes_per_sim_day)
    orchestrator = build_orchestrator(settings, clock)

    try:
        report = orchestrator.run()
    except Exception as e:
        logger.critical("bootstrap_failed", error=str(e))
        print(json.dumps({"success": False, "error": str(e)}))
        return 1

    print(json.dumps({"success": True, "report": report.to_dict()}, indent=2))

    if args.start_clock:
        endpoint = args.sync_endpoint or settings.sim_time_endpoint
        clock.start(args.start_time, endpoint, settings.sync_interval_ms)
        try:
            if args.run_for > 0:
                time.sleep(args.run_for)
                logger.info("clock_status", sim_time=clock.now().isoformat(),
                            **clock.sync_status().model_dump())
        finally:
            clock.stop()
    return 0

if __name__ == "__main__":
    sys.exit(main())
