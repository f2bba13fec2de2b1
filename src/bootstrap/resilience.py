"""
Result-returning retry primitive used by the soft-fail bootstrap steps.
"""
import time
from dataclasses import dataclass
from typing import Callable, Generic, Optional, Tuple, Type, TypeVar
from ..core.logger import get_logger

logger = get_logger("Resilience")

T = TypeVar("T")

@dataclass
class Outcome(Generic[T]):
    """
    Result of a resilient step. `ok` tells the caller which branch to take;
    nothing is raised.
    """
    ok: bool
    value: Optional[T] = None
    error: Optional[BaseException] = None
    attempts: int = 0

def backoff_delay(attempt: int, base_delay_s: float = 1.0) -> float:
    """2^attempt seconds: 2s after the first failure, 4s after the second."""
    return (2 ** attempt) * base_delay_s

def retry_with_backoff(
    step: str,
    action: Callable[[], T],
    attempts: int = 3,
    sleep: Callable[[float], None] = time.sleep,
    base_delay_s: float = 1.0,
    accept: Optional[Callable[[T], bool]] = None,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
) -> Outcome[T]:
    """
    Runs `action` up to `attempts` times, sleeping backoff_delay(attempt)
    between attempts. A result rejected by `accept` counts as a failed attempt.
    Exceptions outside `retry_on` propagate.
    """
    last_error: Optional[BaseException] = None
    last_value: Optional[T] = None
    for attempt in range(1, attempts + 1):
        logger.info("step_attempt", step=step, attempt=attempt, max_attempts=attempts)
        try:
            last_value = action()
        except retry_on as e:
            last_error = e
            logger.warning("step_attempt_failed", step=step, attempt=attempt,
                           max_attempts=attempts, error=str(e))
        else:
            if accept is None or accept(last_value):
                return Outcome(ok=True, value=last_value, attempts=attempt)
            last_error = None
            logger.warning("step_result_rejected", step=step, attempt=attempt, max_attempts=attempts)

        if attempt < attempts:
            delay = backoff_delay(attempt, base_delay_s)
            logger.info("step_backoff", step=step, delay_s=delay)
            sleep(delay)

    logger.error("step_exhausted", step=step, attempts=attempts,
                 error=str(last_error) if last_error else None)
    return Outcome(ok=False, value=last_value, error=last_error, attempts=attempts)
