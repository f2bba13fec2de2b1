from abc import ABC, abstractmethod
from typing import Optional
import requests
from pydantic import ValidationError as PayloadError
from .http_client import JsonHttpClient
from ..core.errors import RecoverableIntegrationError
from ..core.logger import get_logger
from ..core.types import BankAccount, LoanResponse

logger = get_logger("BankClient")

class BankClient(ABC):
    """
    Commercial bank collaborator.
    Implementations raise RecoverableIntegrationError on any failure.
    """

    @abstractmethod
    def create_account(self) -> BankAccount:
        pass

    @abstractmethod
    def apply_for_loan(self, amount: float) -> LoanResponse:
        pass

    @abstractmethod
    def post_transaction(self, to_account: str, amount: float, description: str) -> bool:
        """
        Pays `amount` into `to_account`. Returns True when the bank accepted it.
        """
        pass

class HttpBankClient(BankClient):
    def __init__(self, base_url: str, timeout: float = 10.0,
                 notification_url: Optional[str] = None,
                 session: Optional[requests.Session] = None):
        self.http = JsonHttpClient("bank", base_url, timeout=timeout, session=session,
                                   headers={"Client-Id": "consumer-logistics"})
        self.notification_url = notification_url

    def create_account(self) -> BankAccount:
        body = {"notificationUrl": self.notification_url} if self.notification_url else {}
        data = self.http.request("POST", "/account", body)
        try:
            account = BankAccount.model_validate(data)
        except PayloadError as e:
            raise RecoverableIntegrationError("bank", f"malformed account response: {data!r}") from e
        logger.info("bank_account_created", account_number=account.account_number)
        return account

    def apply_for_loan(self, amount: float) -> LoanResponse:
        data = self.http.request("POST", "/loan", {"amount": amount})
        try:
            return LoanResponse.model_validate(data)
        except PayloadError as e:
            raise RecoverableIntegrationError("bank", f"malformed loan response: {data!r}") from e

    def post_transaction(self, to_account: str, amount: float, description: str) -> bool:
        data = self.http.request("POST", "/transaction", {
            "to_account_number": to_account,
            "amount": amount,
            "description": description,
        })
        if isinstance(data, dict) and "success" in data:
            return bool(data["success"])
        return True
