import unittest

from shared.types import UserRole
from tripmarket.auth import AuthUser
from tripmarket.db import InMemoryDbClient
from tripmarket.errors import NotFoundError, PermissionDeniedError, ValidationError
from tripmarket.payments import process_payment

BUYER = AuthUser(id="buyer", email=None, role=UserRole.USER)


class PaymentTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.order = self.db.insert(
            "orders",
            {
                "user_id": BUYER.id,
                "package_id": "p1",
                "contact_name": "Li",
                "contact_phone": "13800138000",
                "id_card": "11010519491231002X",
                "travel_date": "2030-01-01",
                "order_number": "TM20300101000000ABC123",
            },
        )

    def test_marks_order_paid_and_updates_session(self):
        self.db.insert("session_tokens", {"session_id": "s1", "user_id": BUYER.id})
        result = process_payment(
            self.db, BUYER, order_id=self.order["id"], trade_no="T100", session_id="s1"
        )
        self.assertTrue(result.success)
        self.assertTrue(result.session_updated)
        self.assertEqual(result.order["payment_status"], "paid")
        self.assertEqual(result.order["order_number"], "TM20300101000000ABC123")
        session = self.db.select("session_tokens")[0]
        self.assertEqual(session["trade_status"], "SUCCESS")
        self.assertEqual(session["out_trade_no"], "TM20300101000000ABC123")
        self.assertEqual(session["trade_no"], "T100")
        self.assertIsNotNone(session["inserted_at"])
        self.assertGreater(session["expires_at"], session["inserted_at"])

    def test_missing_session_does_not_fail_payment(self):
        result = process_payment(self.db, BUYER, order_id=self.order["id"], session_id="gone")
        self.assertTrue(result.success)
        self.assertFalse(result.session_updated)

    def test_second_payment_is_a_no_op(self):
        process_payment(self.db, BUYER, order_id=self.order["id"], trade_no="T1")
        again = process_payment(self.db, BUYER, order_id=self.order["id"], trade_no="T2")
        self.assertEqual(again.message, "Order already paid")
        self.assertEqual(again.order["trade_no"], "T1")

    def test_rejections(self):
        with self.assertRaises(NotFoundError):
            process_payment(self.db, BUYER, order_id="missing")
        stranger = AuthUser(id="someone", email=None, role=UserRole.USER)
        with self.assertRaises(PermissionDeniedError):
            process_payment(self.db, stranger, order_id=self.order["id"])
        with self.assertRaises(ValidationError):
            process_payment(self.db, BUYER, order_id=self.order["id"], trade_status="WAIT_BUYER_PAY")


if __name__ == "__main__":
    unittest.main()
