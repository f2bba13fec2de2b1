import unittest
from unittest.mock import MagicMock, patch
from src.bootstrap.__main__ import main, build_orchestrator
from src.bootstrap.report import BootstrapReport
from src.core.clock import SimClock
from src.core.config import Settings
from src.core.errors import PersistenceError
from src.core.types import BootstrapPhase
from src.integrations.bank import HttpBankClient
from src.integrations.market import HttpMarketClient
from src.persistence.redis_gateway import RedisPersistenceGateway

class TestBootstrapCli(unittest.TestCase):
    def test_build_orchestrator_wires_collaborators(self):
        settings = Settings(bank_api_url="http://bank", market_api_url="http://market")
        orchestrator = build_orchestrator(settings, SimClock())
        self.assertIsInstance(orchestrator.persistence, RedisPersistenceGateway)
        self.assertIsInstance(orchestrator.bank, HttpBankClient)
        self.assertIsInstance(orchestrator.market, HttpMarketClient)
        self.assertEqual(orchestrator.bank.http.base_url, "http://bank")

    @patch("src.bootstrap.__main__.build_orchestrator")
    def test_success_exit_code(self, build):
        build.return_value.run.return_value = BootstrapReport(phase=BootstrapPhase.DONE, trucks_created=3)
        self.assertEqual(main([]), 0)

    @patch("src.bootstrap.__main__.build_orchestrator")
    def test_fatal_error_exit_code(self, build):
        build.return_value.run.side_effect = PersistenceError("redis unreachable")
        self.assertEqual(main([]), 1)

    @patch("src.bootstrap.__main__.SimClock")
    @patch("src.bootstrap.__main__.build_orchestrator")
    def test_start_clock_flag(self, build, clock_cls):
        build.return_value.run.return_value = BootstrapReport(phase=BootstrapPhase.DONE)
        clock = clock_cls.return_value
        self.assertEqual(main(["--start-clock", "--sync-endpoint", "http://authority/time"]), 0)
        args = clock.start.call_args.args
        self.assertEqual(args[1], "http://authority/time")
        clock.stop.assert_called_once()

if __name__ == '__main__':
    unittest.main()
