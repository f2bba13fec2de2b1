import os
import tempfile
import unittest
from unittest.mock import patch
from src.core.config import Settings

class TestSettings(unittest.TestCase):
    def test_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings.from_env(env_file=None)
        self.assertEqual(settings.redis_url, "redis://localhost:6379/0")
        self.assertIsNone(settings.sim_time_endpoint)
        self.assertEqual(settings.sync_interval_ms, 30_000)
        self.assertEqual(settings.real_minutes_per_sim_day, 2.0)

    def test_env_overrides(self):
        env = {
            "REDIS_URL": "redis://cache:6379/2",
            "SIM_TIME_ENDPOINT": "http://authority/time",
            "SYNC_INTERVAL_MS": "5000",
            "REAL_MINUTES_PER_SIM_DAY": "1.5",
        }
        with patch.dict(os.environ, env, clear=True):
            settings = Settings.from_env(env_file=None)
        self.assertEqual(settings.redis_url, "redis://cache:6379/2")
        self.assertEqual(settings.sim_time_endpoint, "http://authority/time")
        self.assertEqual(settings.sync_interval_ms, 5000)
        self.assertEqual(settings.real_minutes_per_sim_day, 1.5)

    def test_empty_env_var_keeps_default(self):
        with patch.dict(os.environ, {"REDIS_URL": "", "HTTP_TIMEOUT_S": ""}, clear=True):
            settings = Settings.from_env(env_file=None)
        self.assertEqual(settings.redis_url, "redis://localhost:6379/0")
        self.assertEqual(settings.http_timeout_s, 10.0)

    def test_env_file_is_read_and_env_wins(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, ".env")
            with open(path, "w") as f:
                f.write("BANK_API_URL=http://bank.internal\nLOG_LEVEL=DEBUG\n")
            with patch.dict(os.environ, {"LOG_LEVEL": "WARNING"}, clear=True):
                settings = Settings.from_env(env_file=path)
        self.assertEqual(settings.bank_api_url, "http://bank.internal")
        self.assertEqual(settings.log_level, "WARNING")

if __name__ == '__main__':
    unittest.main()
