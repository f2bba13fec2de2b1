from abc import ABC, abstractmethod
from typing import List, Optional
import requests
from pydantic import ValidationError as PayloadError
from .http_client import JsonHttpClient
from ..core.errors import RecoverableIntegrationError
from ..core.logger import get_logger
from ..core.types import MarketOrder, TruckOffer

logger = get_logger("MarketClient")

class MarketClient(ABC):
    """
    Truck market collaborator.
    Implementations raise RecoverableIntegrationError on any failure.
    """

    @abstractmethod
    def list_offers(self) -> List[TruckOffer]:
        pass

    @abstractmethod
    def place_order(self, name: str, quantity: int) -> MarketOrder:
        pass

class HttpMarketClient(MarketClient):
    def __init__(self, base_url: str, timeout: float = 10.0,
                 session: Optional[requests.Session] = None):
        self.http = JsonHttpClient("market", base_url, timeout=timeout, session=session)

    def list_offers(self) -> List[TruckOffer]:
        data = self.http.request("GET", "/trucks")
        if data is None:
            return []
        if not isinstance(data, list):
            raise RecoverableIntegrationError("market", f"expected a list of trucks, got {type(data).__name__}")
        offers = []
        for item in data:
            try:
                offers.append(TruckOffer.model_validate(item))
            except PayloadError:
                # One malformed listing should not hide the rest
                logger.warning("malformed_truck_offer_skipped", item=item)
        return offers

    def place_order(self, name: str, quantity: int) -> MarketOrder:
        data = self.http.request("POST", "/trucks", {"truckName": name, "quantity": quantity})
        try:
            order = MarketOrder.model_validate(data)
        except PayloadError as e:
            raise RecoverableIntegrationError("market", f"malformed order response: {data!r}") from e
        logger.info("truck_order_placed", order_id=order.order_id, truck=name, quantity=quantity)
        return order
