from datetime import datetime, timedelta, timezone
from typing import Final, Optional
from ..core.clock import MS_PER_SIM_DAY, as_utc, utc_now
from ..core.logger import get_logger

logger = get_logger("SimulationCalendar")

SIM_EPOCH: Final[datetime] = datetime(2050, 1, 1, tzinfo=timezone.utc)

class SimulationCalendar:
    """
    Fixed-scale mapping between real instants and simulated dates.

    Real time elapsed since `app_start` maps onto simulated time elapsed since
    `sim_epoch`, at `real_minutes_per_sim_day` real minutes per simulated day.
    Used to schedule real-world pickups and deliveries for simulated days.
    """
    def __init__(self, real_minutes_per_sim_day: float = 2.0,
                 sim_epoch: datetime = SIM_EPOCH,
                 app_start: Optional[datetime] = None):
        if real_minutes_per_sim_day <= 0:
            raise ValueError("real_minutes_per_sim_day must be positive")
        self.real_ms_per_sim_day = real_minutes_per_sim_day * 60 * 1000
        self.sim_epoch = as_utc(sim_epoch)
        self.app_start = as_utc(app_start) if app_start is not None else utc_now()
        logger.info("calendar_initialized",
                    sim_epoch=self.sim_epoch.isoformat(),
                    app_start=self.app_start.isoformat(),
                    real_minutes_per_sim_day=real_minutes_per_sim_day)

    def sim_date_at(self, real: Optional[datetime] = None) -> datetime:
        real = as_utc(real) if real is not None else utc_now()
        real_ms = (real - self.app_start) / timedelta(milliseconds=1)
        sim_ms = real_ms / self.real_ms_per_sim_day * MS_PER_SIM_DAY
        return self.sim_epoch + timedelta(milliseconds=sim_ms)

    def real_timestamp_for(self, sim_date: datetime) -> datetime:
        sim_ms = (as_utc(sim_date) - self.sim_epoch) / timedelta(milliseconds=1)
        real_ms = sim_ms * self.real_ms_per_sim_day / MS_PER_SIM_DAY
        return self.app_start + timedelta(milliseconds=real_ms)

    def pickup_timestamp(self, sim_date: datetime) -> datetime:
        """Real instant at which the simulated day of `sim_date` begins."""
        day = as_utc(sim_date)
        midnight = datetime(day.year, day.month, day.day, tzinfo=timezone.utc)
        return self.real_timestamp_for(midnight)

    def delivery_timestamp(self, sim_date: datetime) -> datetime:
        """Real instant of the last millisecond of the simulated day of `sim_date`."""
        day = as_utc(sim_date)
        end_of_day = datetime(day.year, day.month, day.day, 23, 59, 59, 999_000, tzinfo=timezone.utc)
        return self.real_timestamp_for(end_of_day)
