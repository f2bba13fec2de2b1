import unittest
from unittest.mock import MagicMock, call
from src.bootstrap.fleet import (
    FleetProcurement,
    plan_purchase,
    reduced_loan_amount,
    FALLBACK_PLAN_LINE,
    MINIMAL_FLEET_LINE,
)
from src.core.errors import PersistenceError, RecoverableIntegrationError
from src.core.types import LoanResponse, MarketOrder, TruckOffer, TruckPurchasePlan
from src.integrations.bank import BankClient
from src.integrations.market import MarketClient
from src.persistence.memory_gateway import InMemoryPersistenceGateway

def offer(name, price=1000, op_cost=50, load=1200, qty=5):
    return TruckOffer(name=name, unit_price=price, daily_operating_cost=op_cost, max_load=load, quantity_available=qty)

def order(order_id=1, price=3000, qty=3):
    return MarketOrder(order_id=order_id, bank_account="TREASURY", price=price, quantity=qty)

class TestPlanPurchase(unittest.TestCase):
    def test_no_offers_uses_fallback_plan(self):
        plan = plan_purchase([])
        self.assertEqual(len(plan.lines), 1)
        line = plan.lines[0]
        self.assertEqual(line.name, "Small Truck")
        self.assertEqual(line.quantity_to_buy, 3)
        self.assertEqual(line.unit_price, 10000)
        self.assertEqual(line.daily_operating_cost, 500)
        self.assertEqual(line.max_load, 2000)
        self.assertEqual(plan.loan_amount, 51000)

    def test_small_offer_selected(self):
        plan = plan_purchase([offer("Large Truck", 9000), offer("SMALL_truck", 1000, 50, 1200)])
        self.assertEqual([l.name for l in plan.lines], ["SMALL_truck"])
        self.assertEqual(plan.lines[0].quantity_to_buy, 3)
        # 1000*3 + 50*3*14
        self.assertEqual(plan.loan_amount, 5100)

    def test_offers_without_small_fall_back(self):
        plan = plan_purchase([offer("medium_truck"), offer("large_truck")])
        self.assertEqual(plan.lines, [FALLBACK_PLAN_LINE])
        self.assertEqual(plan.loan_amount, 51000)

    def test_reduced_loan_amount(self):
        self.assertEqual(reduced_loan_amount(51000), 40800)
        self.assertEqual(reduced_loan_amount(1001), 1000)
        self.assertEqual(reduced_loan_amount(900), 1000)

class FleetTestCase(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryPersistenceGateway()
        self.db.migrate()
        self.bank = MagicMock(spec=BankClient)
        self.market = MagicMock(spec=MarketClient)
        self.sleep = MagicMock()
        self.fleet = FleetProcurement(self.db, self.bank, self.market, sleep=self.sleep)

class TestFetchOffers(FleetTestCase):
    def test_returns_offers_on_first_success(self):
        self.market.list_offers.return_value = [offer("small")]
        self.assertEqual(len(self.fleet.fetch_offers()), 1)
        self.sleep.assert_not_called()

    def test_retries_with_exponential_backoff(self):
        self.market.list_offers.side_effect = [
            RecoverableIntegrationError("market", "502 Bad Gateway"),
            [],
            [offer("small")],
        ]
        self.assertEqual(len(self.fleet.fetch_offers()), 1)
        self.assertEqual(self.sleep.call_args_list, [call(2), call(4)])

    def test_exhausted_returns_empty_list(self):
        self.market.list_offers.side_effect = RecoverableIntegrationError("market", "down")
        self.assertEqual(self.fleet.fetch_offers(), [])
        self.assertEqual(self.market.list_offers.call_count, 3)
        self.assertEqual(self.sleep.call_count, 2)

class TestApplyLoan(FleetTestCase):
    def test_approved_first_time(self):
        self.bank.apply_for_loan.return_value = LoanResponse(approved=True, loan_number="L1")
        attempt = self.fleet.apply_loan(51000)
        self.assertTrue(attempt.approved)
        self.assertEqual(attempt.attempted_amount, 51000)
        self.assertEqual(attempt.loan_number, "L1")
        self.bank.apply_for_loan.assert_called_once_with(51000)

    def test_single_reduced_retry(self):
        self.bank.apply_for_loan.side_effect = [
            LoanResponse(approved=False),
            LoanResponse(approved=True, loan_number="L2"),
        ]
        attempt = self.fleet.apply_loan(51000)
        self.assertTrue(attempt.approved)
        self.assertEqual(attempt.requested_amount, 51000)
        self.assertEqual(attempt.attempted_amount, 40800)
        self.assertEqual(self.bank.apply_for_loan.call_args_list, [call(51000), call(40800)])

    def test_rejected_twice_is_not_an_error(self):
        self.bank.apply_for_loan.return_value = LoanResponse(approved=False)
        attempt = self.fleet.apply_loan(51000)
        self.assertFalse(attempt.approved)
        self.assertEqual(self.bank.apply_for_loan.call_count, 2)

    def test_no_retry_when_reduction_does_not_shrink(self):
        self.bank.apply_for_loan.return_value = LoanResponse(approved=False)
        attempt = self.fleet.apply_loan(1000)
        self.assertFalse(attempt.approved)
        self.bank.apply_for_loan.assert_called_once_with(1000)

    def test_bank_error_is_absorbed(self):
        self.bank.apply_for_loan.side_effect = RecoverableIntegrationError("bank", "down")
        attempt = self.fleet.apply_loan(51000)
        self.assertFalse(attempt.approved)

class TestPurchaseFleet(FleetTestCase):
    def setUp(self):
        super().setUp()
        self.line = TruckPurchasePlan(name="small_truck", unit_price=1000, daily_operating_cost=50,
                                      max_load=1200, quantity_to_buy=2)

    def test_orders_pays_and_registers(self):
        self.market.place_order.return_value = order(order_id=123, price=2000, qty=2)
        self.bank.post_transaction.return_value = True
        created = self.fleet.purchase_fleet([self.line])
        self.assertEqual(created, 2)
        self.assertEqual(self.db.count_trucks(), 2)
        self.market.place_order.assert_called_once_with("small_truck", 2)
        to_account, amount, _ = self.bank.post_transaction.call_args.args
        self.assertEqual((to_account, amount), ("TREASURY", 2000))
        truck = self.db.get_rows("truck")[0]
        self.assertEqual(truck["daily_operating_cost"], 50)
        self.assertEqual(truck["max_capacity"], 1200)

    def test_skips_when_trucks_exist(self):
        self.market.place_order.return_value = order()
        self.bank.post_transaction.return_value = True
        self.fleet.purchase_fleet([self.line])
        self.assertEqual(self.fleet.purchase_fleet([self.line]), 0)
        self.assertEqual(self.market.place_order.call_count, 1)
        self.assertEqual(self.db.count_trucks(), 2)

    def test_failed_order_skips_line_and_continues(self):
        other = self.line.model_copy(update={"name": "small_van", "quantity_to_buy": 1})
        self.market.place_order.side_effect = [RecoverableIntegrationError("market", "500"), order(qty=1)]
        self.bank.post_transaction.return_value = True
        created = self.fleet.purchase_fleet([self.line, other])
        self.assertEqual(created, 1)
        self.assertEqual(self.bank.post_transaction.call_count, 1)
        self.assertEqual(self.db.get_rows("truck")[0]["truck_type_name"], "small_van")

    def test_failed_payment_registers_nothing(self):
        self.market.place_order.return_value = order()
        self.bank.post_transaction.side_effect = RecoverableIntegrationError("bank", "insufficient funds")
        self.assertEqual(self.fleet.purchase_fleet([self.line]), 0)
        self.assertEqual(self.db.count_trucks(), 0)

    def test_declined_payment_registers_nothing(self):
        self.market.place_order.return_value = order()
        self.bank.post_transaction.return_value = False
        self.assertEqual(self.fleet.purchase_fleet([self.line]), 0)
        self.assertEqual(self.db.count_trucks(), 0)

    def test_unexpected_error_escapes(self):
        self.market.place_order.side_effect = KeyError("orderId")
        with self.assertRaises(KeyError):
            self.fleet.purchase_fleet([self.line])

class TestInitializeFleet(FleetTestCase):
    def test_happy_path(self):
        self.market.list_offers.return_value = [offer("small_truck", 1000, 50, 1200)]
        self.bank.apply_for_loan.return_value = LoanResponse(approved=True)
        self.market.place_order.return_value = order()
        self.bank.post_transaction.return_value = True
        outcome = self.fleet.initialize_fleet()
        self.assertEqual(outcome.trucks_created, 3)
        self.assertFalse(outcome.used_minimal_fleet)
        self.assertEqual(outcome.loan.attempted_amount, 5100)

    def test_purchase_fleet_failure_falls_back_to_minimal_fleet_once(self):
        self.market.list_offers.return_value = []
        self.bank.apply_for_loan.return_value = LoanResponse(approved=True)
        self.fleet.purchase_fleet = MagicMock(side_effect=[RuntimeError("boom"), 2])
        outcome = self.fleet.initialize_fleet()
        self.assertTrue(outcome.used_minimal_fleet)
        self.assertEqual(outcome.trucks_created, 2)
        self.assertEqual(self.fleet.purchase_fleet.call_args_list, [
            call([FALLBACK_PLAN_LINE]),
            call([MINIMAL_FLEET_LINE]),
        ])

    def test_minimal_fleet_buys_two_trucks(self):
        self.market.place_order.return_value = order(qty=2)
        self.bank.post_transaction.return_value = True
        self.assertEqual(self.fleet.minimal_fleet_setup(), 2)
        self.market.place_order.assert_called_once_with("Small Truck", 2)
        self.assertEqual(self.db.get_rows("truck")[0]["daily_operating_cost"], 400)

    def test_minimal_fleet_failure_leaves_zero_trucks(self):
        self.market.list_offers.return_value = []
        self.bank.apply_for_loan.return_value = LoanResponse(approved=False)
        self.market.place_order.return_value = order()
        self.bank.post_transaction.return_value = True
        self.db.insert_truck = MagicMock(side_effect=PersistenceError("disk full"))
        outcome = self.fleet.initialize_fleet()
        self.assertTrue(outcome.used_minimal_fleet)
        self.assertEqual(outcome.trucks_created, 0)
        self.assertEqual(self.market.place_order.call_count, 2)

if __name__ == '__main__':
    unittest.main()
