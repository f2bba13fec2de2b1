from dataclasses import dataclass
from typing import Any, Dict, Optional
from ..core.types import BootstrapPhase, LoanAttempt

@dataclass
class BootstrapReport:
    """
    Outcome of a successful bootstrap run.
    Degraded business state (no account, no trucks) is still a success.
    """
    phase: BootstrapPhase
    bank_account: Optional[str] = None
    loan: Optional[LoanAttempt] = None
    trucks_created: int = 0
    used_minimal_fleet: bool = False

    def is_degraded(self) -> bool:
        return self.bank_account is None or self.trucks_created == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phase": self.phase.value,
            "bank_account": self.bank_account,
            "loan": self.loan.model_dump() if self.loan else None,
            "trucks_created": self.trucks_created,
            "used_minimal_fleet": self.used_minimal_fleet,
            "degraded": self.is_degraded(),
        }

    def summary(self) -> str:
        account = self.bank_account or "none"
        return f"{self.phase.value}: bank account {account}, {self.trucks_created} trucks" + (
            " (minimal fleet)" if self.used_minimal_fleet else ""
        )
