import os
import unittest
from unittest.mock import patch

from fastapi.testclient import TestClient

from planner.base import OfflinePlanGenerator
from shared import constants
from shared.validation import new_id
from tripmarket.app import create_app
from tripmarket.config import get_settings
from tripmarket.db import InMemoryDbClient
from tripmarket.dependencies import (
    get_auth_client,
    get_circuit_breaker,
    get_db_client,
    get_queue_client,
    reset_clients,
)
from tripmarket.worker import process_next

PHONE = "13800138000"
ID_CARD = "11010519491231002X"


class MarketplaceApiTests(unittest.TestCase):
    def setUp(self):
        env = patch.dict(os.environ, {"TRIPMARKET_USE_IN_MEMORY_BACKENDS": "true"})
        env.start()
        self.addCleanup(env.stop)
        get_settings.cache_clear()
        self.addCleanup(get_settings.cache_clear)
        reset_clients()
        self.addCleanup(reset_clients)

        self.client = TestClient(create_app())
        self.db = get_db_client()
        self.assertIsInstance(self.db, InMemoryDbClient)

    def _user(self, role="user"):
        user_id = new_id()
        self.db.insert(
            "profiles",
            {"id": user_id, "email": f"{user_id[:8]}@example.com", "user_role": role},
        )
        token = get_auth_client().issue_token(user_id)
        return user_id, {"Authorization": f"Bearer {token}"}

    def _approved_package(self, agent_headers, admin_headers, **overrides):
        payload = {
            "title": "Hangzhou weekend",
            "destination": "Hangzhou",
            "departure": "Shanghai",
            "duration": 3,
            "original_price": 1000,
        }
        payload.update(overrides)
        created = self.client.post("/api/packages", json=payload, headers=agent_headers)
        self.assertEqual(created.status_code, 201, created.text)
        package_id = created.json()["id"]
        moderated = self.client.post(
            f"/api/admin/packages/{package_id}/moderate",
            json={"status": "approved"},
            headers=admin_headers,
        )
        self.assertEqual(moderated.status_code, 200, moderated.text)
        return package_id

    def _order(self, package_id, user_headers):
        response = self.client.post(
            "/api/orders",
            json={
                "package_id": package_id,
                "contact_name": "Li Lei",
                "contact_phone": PHONE,
                "id_card": ID_CARD,
                "travel_date": "2030-05-01",
            },
            headers=user_headers,
        )
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()

    def test_health(self):
        response = self.client.get("/api/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "ok")

    def test_missing_token_is_rejected(self):
        response = self.client.get("/api/me")
        self.assertEqual(response.status_code, 401)
        self.assertIn("detail", response.json())

    def test_first_request_creates_profile_and_credits(self):
        token = get_auth_client().issue_token("new-user", "new@example.com")
        response = self.client.get("/api/me", headers={"Authorization": f"Bearer {token}"})
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["user_role"], "user")
        self.assertEqual(body["credits"], constants.INITIAL_CREDITS)

    def test_profile_update_validates_phone(self):
        _, headers = self._user()
        bad = self.client.patch("/api/me", json={"phone": "12345"}, headers=headers)
        self.assertEqual(bad.status_code, 400)
        good = self.client.patch(
            "/api/me", json={"full_name": "Han Meimei", "phone": "+86 138 0013 8000"}, headers=headers
        )
        self.assertEqual(good.status_code, 200)
        self.assertEqual(good.json()["phone"], PHONE)

    def test_admin_routes_require_admin(self):
        _, headers = self._user()
        self.assertEqual(self.client.get("/api/admin/users", headers=headers).status_code, 403)
        _, agent_headers = self._user("agent")
        self.assertEqual(
            self.client.get("/api/admin/dashboard", headers=agent_headers).status_code, 403
        )

    def test_publish_moderate_and_browse_package(self):
        _, agent_headers = self._user("agent")
        _, admin_headers = self._user("admin")
        created = self.client.post(
            "/api/packages",
            json={
                "title": "Sanya beach",
                "destination": "Sanya",
                "duration": 5,
                "original_price": 3000,
                "is_discounted": True,
                "discount_price": 2500,
                "discount_expires_at": "2999-01-01T00:00:00+00:00",
            },
            headers=agent_headers,
        )
        self.assertEqual(created.status_code, 201, created.text)
        package = created.json()
        self.assertEqual(package["status"], "pending")
        self.assertEqual(package["price"], 2500)

        self.assertEqual(self.client.get("/api/packages").json(), [])

        moderated = self.client.post(
            f"/api/admin/packages/{package['id']}/moderate",
            json={"status": "approved"},
            headers=admin_headers,
        )
        self.assertEqual(moderated.json()["status"], "approved")

        listed = self.client.get("/api/packages", params={"destination": "sanya"}).json()
        self.assertEqual(len(listed), 1)
        self.assertIsNotNone(listed[0]["agent"])
        self.assertEqual(len(self.client.get("/api/packages/discounts").json()), 1)

        detail = self.client.get(f"/api/packages/{package['id']}").json()
        self.assertEqual(detail["views"], 1)

    def test_regular_user_cannot_publish(self):
        _, headers = self._user()
        response = self.client.post(
            "/api/packages",
            json={"title": "x", "destination": "y", "duration": 1, "original_price": 10},
            headers=headers,
        )
        self.assertEqual(response.status_code, 403)

    def test_rejecting_package_requires_note(self):
        _, agent_headers = self._user("agent")
        _, admin_headers = self._user("admin")
        package_id = self.client.post(
            "/api/packages",
            json={"title": "x", "destination": "y", "duration": 1, "original_price": 10},
            headers=agent_headers,
        ).json()["id"]
        response = self.client.post(
            f"/api/admin/packages/{package_id}/moderate",
            json={"status": "rejected"},
            headers=admin_headers,
        )
        self.assertEqual(response.status_code, 400)

    def test_agent_package_limit_and_publish_charge(self):
        agent_id, agent_headers = self._user("agent")
        _, admin_headers = self._user("admin")
        settings = self.client.patch(
            "/api/admin/settings",
            json={
                "max_travel_packages_per_agent": 1,
                "is_publish_package_charged": True,
                "package_publish_cost": 30,
            },
            headers=admin_headers,
        )
        self.assertEqual(settings.status_code, 200, settings.text)

        payload = {"title": "One", "destination": "Xi'an", "duration": 2, "original_price": 500}
        first = self.client.post("/api/packages", json=payload, headers=agent_headers)
        self.assertEqual(first.status_code, 201)
        balance = self.client.get("/api/credits", headers=agent_headers).json()
        self.assertEqual(balance["total"], constants.INITIAL_CREDITS - 30)

        second = self.client.post("/api/packages", json=payload, headers=agent_headers)
        self.assertEqual(second.status_code, 409)

    def test_settings_reject_explicit_nulls(self):
        _, admin_headers = self._user("admin")
        for field in ("commission_rate", "is_publish_package_charged", "maintenance_mode"):
            response = self.client.patch(
                "/api/admin/settings", json={field: None}, headers=admin_headers
            )
            self.assertEqual(response.status_code, 400, field)
        current = self.client.get("/api/settings").json()
        self.assertIsNotNone(current["commission_rate"])
        self.assertIsNotNone(current["maintenance_mode"])

    def test_edit_sends_package_back_to_review(self):
        _, agent_headers = self._user("agent")
        _, admin_headers = self._user("admin")
        package_id = self._approved_package(agent_headers, admin_headers)
        edited = self.client.patch(
            f"/api/packages/{package_id}", json={"title": "New title"}, headers=agent_headers
        )
        self.assertEqual(edited.status_code, 200)
        self.assertEqual(edited.json()["status"], "pending")

    def test_favorites_and_reviews(self):
        _, agent_headers = self._user("agent")
        _, admin_headers = self._user("admin")
        _, user_headers = self._user()
        package_id = self._approved_package(agent_headers, admin_headers)

        toggled = self.client.post(f"/api/packages/{package_id}/favorite", headers=user_headers)
        self.assertTrue(toggled.json()["favorited"])
        self.assertEqual(len(self.client.get("/api/me/favorites", headers=user_headers).json()), 1)
        toggled = self.client.post(f"/api/packages/{package_id}/favorite", headers=user_headers)
        self.assertFalse(toggled.json()["favorited"])

        self.client.post(
            f"/api/packages/{package_id}/reviews", json={"rating": 4}, headers=user_headers
        )
        self.client.post(
            f"/api/packages/{package_id}/reviews",
            json={"rating": 2, "comment": "changed my mind"},
            headers=user_headers,
        )
        reviews = self.client.get(f"/api/packages/{package_id}/reviews").json()
        self.assertEqual(len(reviews), 1)
        self.assertEqual(reviews[0]["rating"], 2)
        package = self.db.select("travel_packages", filters={"id": f"eq.{package_id}"})[0]
        self.assertEqual(package["average_rating"], 2)
        self.assertEqual(package["favorites"], 0)

    def test_order_contract_flow(self):
        user_id, user_headers = self._user()
        _, agent_headers = self._user("agent")
        _, admin_headers = self._user("admin")
        package_id = self._approved_package(agent_headers, admin_headers)
        order = self._order(package_id, user_headers)
        self.assertTrue(order["order_number"].startswith("TM"))
        self.assertEqual(order["status"], "pending")

        self.assertEqual(len(self.client.get("/api/agent/orders", headers=agent_headers).json()), 1)

        early = self.client.post(f"/api/orders/{order['id']}/contract", headers=user_headers)
        self.assertEqual(early.status_code, 409)

        contacted = self.client.post(
            f"/api/orders/{order['id']}/status", json={"status": "contacted"}, headers=agent_headers
        )
        self.assertEqual(contacted.json()["status"], "contacted")
        terminal = self.client.post(
            f"/api/orders/{order['id']}/status",
            json={"status": "rejected", "reason": "full"},
            headers=agent_headers,
        )
        self.assertEqual(terminal.status_code, 409)

        claimed = self.client.post(f"/api/orders/{order['id']}/contract", headers=user_headers)
        self.assertEqual(claimed.json()["contract_status"], "pending")

        confirmed = self.client.post(
            f"/api/admin/orders/{order['id']}/contract",
            json={"approve": True},
            headers=admin_headers,
        )
        self.assertEqual(confirmed.json()["contract_status"], "confirmed")
        balance = self.client.get("/api/credits", headers=user_headers).json()
        self.assertEqual(
            balance["total"], constants.INITIAL_CREDITS + constants.CONTRACT_SIGNING_REWARD
        )
        again = self.client.post(
            f"/api/admin/orders/{order['id']}/contract",
            json={"approve": True},
            headers=admin_headers,
        )
        self.assertEqual(again.status_code, 409)

        log = self.client.get(f"/api/orders/{order['id']}/messages", headers=user_headers).json()
        self.assertEqual([m["from_role"] for m in log], ["admin"])
        self.assertEqual(user_id, self.db.select("orders")[0]["user_id"])

    def test_contract_rejection_needs_reason(self):
        _, user_headers = self._user()
        _, agent_headers = self._user("agent")
        _, admin_headers = self._user("admin")
        order = self._order(self._approved_package(agent_headers, admin_headers), user_headers)
        self.client.post(
            f"/api/orders/{order['id']}/status", json={"status": "contacted"}, headers=agent_headers
        )
        self.client.post(f"/api/orders/{order['id']}/contract", headers=user_headers)
        response = self.client.post(
            f"/api/admin/orders/{order['id']}/contract",
            json={"approve": False},
            headers=admin_headers,
        )
        self.assertEqual(response.status_code, 400)

    def test_order_is_private_to_its_parties(self):
        _, user_headers = self._user()
        _, agent_headers = self._user("agent")
        _, admin_headers = self._user("admin")
        _, stranger_headers = self._user()
        order = self._order(self._approved_package(agent_headers, admin_headers), user_headers)
        self.assertEqual(
            self.client.get(f"/api/orders/{order['id']}", headers=stranger_headers).status_code, 403
        )
        self.assertEqual(
            self.client.get(f"/api/orders/{order['id']}", headers=agent_headers).status_code, 200
        )

    def test_order_messages_and_info_fee(self):
        _, user_headers = self._user()
        _, agent_headers = self._user("agent")
        _, admin_headers = self._user("admin")
        order = self._order(
            self._approved_package(agent_headers, admin_headers, original_price=800), user_headers
        )
        self.client.post(
            f"/api/orders/{order['id']}/messages", json={"message": "Hello"}, headers=user_headers
        )
        read = self.client.post(f"/api/orders/{order['id']}/messages/read", headers=agent_headers)
        self.assertEqual(read.json()["count"], 1)

        early = self.client.post(f"/api/orders/{order['id']}/info-fee", json={}, headers=agent_headers)
        self.assertEqual(early.status_code, 409)
        self.client.post(
            f"/api/orders/{order['id']}/status", json={"status": "contacted"}, headers=agent_headers
        )
        paid = self.client.post(f"/api/orders/{order['id']}/info-fee", json={}, headers=agent_headers)
        self.assertEqual(paid.status_code, 201, paid.text)
        self.assertAlmostEqual(paid.json()["amount"], 800 * constants.DEFAULT_COMMISSION_RATE)
        twice = self.client.post(f"/api/orders/{order['id']}/info-fee", json={}, headers=agent_headers)
        self.assertEqual(twice.status_code, 409)

    def test_enterprise_request_flow(self):
        _, user_headers = self._user()
        _, agent_headers = self._user("agent")
        _, admin_headers = self._user("admin")
        created = self.client.post(
            "/api/enterprise-orders",
            json={
                "contact_name": "Acme HR",
                "contact_phone": PHONE,
                "departure_location": "Beijing",
                "destination_location": "Chengdu",
                "travel_date": "2030-06-01",
                "people_count": 40,
            },
            headers=user_headers,
        )
        self.assertEqual(created.status_code, 201, created.text)
        order_id = created.json()["id"]
        self.assertEqual(self.client.get("/api/enterprise-orders", headers=agent_headers).json(), [])

        self.client.post(
            f"/api/admin/enterprise-orders/{order_id}/review",
            json={"status": "approved"},
            headers=admin_headers,
        )
        listed = self.client.get("/api/enterprise-orders", headers=agent_headers).json()
        self.assertEqual(listed[0]["contact_phone"], "138****8000")
        self.assertFalse(listed[0]["contact_visible"])

        unapproved = self.client.post(
            f"/api/enterprise-orders/{order_id}/info-fee", json={"amount": 99}, headers=agent_headers
        )
        self.assertEqual(unapproved.status_code, 403)

        application = self.client.post(
            f"/api/enterprise-orders/{order_id}/applications",
            json={"license_image": "lic.png", "qualification_image": "q.png"},
            headers=agent_headers,
        )
        self.assertEqual(application.status_code, 201, application.text)
        reviewed = self.client.post(
            f"/api/admin/enterprise-applications/{application.json()['id']}/review",
            json={"approve": True},
            headers=admin_headers,
        )
        self.assertEqual(reviewed.json()["status"], "approved")

        paid = self.client.post(
            f"/api/enterprise-orders/{order_id}/info-fee", json={"amount": 99}, headers=agent_headers
        )
        self.assertEqual(paid.status_code, 200, paid.text)
        repeat = self.client.post(
            f"/api/enterprise-orders/{order_id}/info-fee", json={"amount": 99}, headers=agent_headers
        )
        self.assertEqual(repeat.json()["id"], paid.json()["id"])

        detail = self.client.get(f"/api/enterprise-orders/{order_id}", headers=agent_headers).json()
        self.assertEqual(detail["contact_phone"], PHONE)

    def test_messages_and_unread_count(self):
        _, user_headers = self._user()
        agent_id, agent_headers = self._user("agent")
        _, admin_headers = self._user("admin")

        self.client.post(
            "/api/admin/messages/broadcast", json={"content": "Maintenance tonight"}, headers=admin_headers
        )
        sent = self.client.post(
            "/api/messages", json={"receiver_id": agent_id, "content": "Hi"}, headers=user_headers
        )
        self.assertEqual(sent.status_code, 201)

        count = self.client.get("/api/messages/unread-count", headers=agent_headers).json()
        self.assertEqual(count["count"], 2)
        user_count = self.client.get("/api/messages/unread-count", headers=user_headers).json()
        self.assertEqual(user_count["count"], 0)

        marked = self.client.post("/api/messages/read-all", headers=agent_headers).json()
        self.assertEqual(marked["count"], 1)
        count = self.client.get("/api/messages/unread-count", headers=agent_headers).json()
        self.assertEqual(count["count"], 1)

    def test_plan_is_queued_generated_and_charged(self):
        _, headers = self._user()
        _, other_headers = self._user()
        response = self.client.post(
            "/api/plans",
            json={
                "from": "Shanghai",
                "to": "Hangzhou",
                "date": "2030-05-01",
                "days": 2,
                "preferences": ["food"],
            },
            headers=headers,
        )
        self.assertEqual(response.status_code, 202, response.text)
        plan = response.json()
        self.assertEqual(plan["status"], "queued")
        self.assertEqual(plan["plan_text"], constants.PLAN_PLACEHOLDER_TEXT)

        processed = process_next(
            db=self.db,
            queue=get_queue_client(),
            generator=OfflinePlanGenerator(),
            breaker=get_circuit_breaker(),
            block=False,
            settings=get_settings(),
            sleep=lambda _: None,
        )
        self.assertTrue(processed)

        done = self.client.get(f"/api/plans/{plan['id']}", headers=headers).json()
        self.assertEqual(done["status"], "completed")
        self.assertTrue(done["credits_charged"])
        self.assertIn("Hangzhou", done["plan_text"])
        balance = self.client.get("/api/credits", headers=headers).json()
        self.assertEqual(balance["total"], constants.INITIAL_CREDITS - constants.PLAN_GENERATION_COST)

        self.assertEqual(
            self.client.get(f"/api/plans/{plan['id']}", headers=other_headers).status_code, 403
        )
        shared = self.client.get(f"/api/share/plans/{plan['id']}")
        self.assertEqual(shared.status_code, 200)
        self.assertNotIn("user_id", shared.json())

    def test_plan_requires_credits_and_closed_breaker(self):
        user_id, headers = self._user()
        payload = {"from": "A", "to": "B", "date": "2030-05-01", "days": 1}
        self.db.insert("user_credits", {"user_id": user_id, "total": 10})
        self.assertEqual(self.client.post("/api/plans", json=payload, headers=headers).status_code, 402)

        self.db.update("user_credits", {"user_id": f"eq.{user_id}"}, {"total": 500})
        breaker = get_circuit_breaker()
        for _ in range(breaker.threshold):
            breaker.record_failure()
        self.assertEqual(self.client.post("/api/plans", json=payload, headers=headers).status_code, 503)

    def test_plan_days_are_validated(self):
        _, headers = self._user()
        response = self.client.post(
            "/api/plans",
            json={"from": "A", "to": "B", "date": "2030-05-01", "days": 0},
            headers=headers,
        )
        self.assertEqual(response.status_code, 400)

    def test_agent_application_approval(self):
        user_id, headers = self._user()
        _, admin_headers = self._user("admin")
        submitted = self.client.post(
            "/api/agent-applications",
            json={
                "company_name": "Blue Sky Travel",
                "contact_person": "Wang",
                "contact_phone": PHONE,
                "license_image": f"{user_id}/license.png",
            },
            headers=headers,
        )
        self.assertEqual(submitted.status_code, 201, submitted.text)
        duplicate = self.client.post(
            "/api/agent-applications",
            json={
                "company_name": "Blue Sky Travel",
                "contact_person": "Wang",
                "contact_phone": PHONE,
                "license_image": f"{user_id}/license.png",
            },
            headers=headers,
        )
        self.assertEqual(duplicate.status_code, 409)

        approved = self.client.post(
            f"/api/admin/agent-applications/{submitted.json()['id']}/approve",
            json={},
            headers=admin_headers,
        )
        self.assertEqual(approved.status_code, 200, approved.text)
        self.assertEqual(approved.json()["agency_id"], "TA000001")
        me = self.client.get("/api/me", headers=headers).json()
        self.assertEqual(me["user_role"], "agent")

    def test_admin_managed_home_content(self):
        _, user_headers = self._user()
        _, admin_headers = self._user("admin")
        banner = {"title": "Summer", "image_url": "https://cdn.test/summer.jpg"}
        denied = self.client.post("/api/admin/banners", json=banner, headers=user_headers)
        self.assertEqual(denied.status_code, 403)

        first = self.client.post("/api/admin/banners", json=banner, headers=admin_headers)
        self.assertEqual(first.status_code, 201, first.text)
        group = self.client.post(
            "/api/admin/banners",
            json={**banner, "title": "Team trips", "banner_type": "enterprise"},
            headers=admin_headers,
        ).json()
        sanya = self.client.post(
            "/api/admin/destinations",
            json={"name": "Sanya", "image_url": "https://cdn.test/sanya.jpg"},
            headers=admin_headers,
        ).json()
        harbin = self.client.post(
            "/api/admin/destinations",
            json={"name": "Harbin", "image_url": "https://cdn.test/harbin.jpg"},
            headers=admin_headers,
        ).json()

        moved = self.client.post(
            f"/api/admin/destinations/{harbin['id']}/move",
            json={"direction": "up"},
            headers=admin_headers,
        )
        self.assertEqual([d["name"] for d in moved.json()], ["Harbin", "Sanya"])
        hidden = self.client.patch(
            f"/api/admin/destinations/{sanya['id']}",
            json={"is_active": False},
            headers=admin_headers,
        )
        self.assertFalse(hidden.json()["is_active"])

        content = self.client.get("/api/home").json()
        self.assertEqual([b["title"] for b in content["banners"]], ["Summer"])
        self.assertEqual([b["id"] for b in content["enterprise_banners"]], [group["id"]])
        self.assertEqual([d["name"] for d in content["destinations"]], ["Harbin"])
        enterprise_only = self.client.get("/api/home/banners", params={"banner_type": "enterprise"})
        self.assertEqual(len(enterprise_only.json()), 1)

        removed = self.client.delete(f"/api/admin/banners/{group['id']}", headers=admin_headers)
        self.assertEqual(removed.status_code, 200)
        self.assertEqual(len(self.client.get("/api/admin/banners", headers=admin_headers).json()), 1)
        bad_move = self.client.post(
            f"/api/admin/banners/{group['id']}/move", json={"direction": "up"}, headers=admin_headers
        )
        self.assertEqual(bad_move.status_code, 404)

    def test_upload_and_signed_urls(self):
        user_id, headers = self._user()
        _, other_headers = self._user()
        uploaded = self.client.post(
            "/api/uploads/avatar",
            files={"file": ("me.png", b"\x89PNG data", "image/png")},
            headers=headers,
        )
        self.assertEqual(uploaded.status_code, 201, uploaded.text)
        body = uploaded.json()
        self.assertTrue(body["path"].startswith(f"{user_id}/"))

        params = {"bucket": body["bucket"], "path": body["path"]}
        signed = self.client.get("/api/storage/sign", params=params, headers=headers)
        self.assertEqual(signed.status_code, 200)
        self.assertIn(body["path"], signed.json()["url"])
        denied = self.client.get("/api/storage/sign", params=params, headers=other_headers)
        self.assertEqual(denied.status_code, 403)

        _, admin_headers = self._user("admin")
        traversal = {"bucket": body["bucket"], "path": f"{user_id}/../other/1.png"}
        for caller in (headers, admin_headers):
            escaped = self.client.get("/api/storage/sign", params=traversal, headers=caller)
            self.assertEqual(escaped.status_code, 400)
            removed = self.client.delete("/api/storage", params=traversal, headers=caller)
            self.assertEqual(removed.status_code, 400)

        bad_order = self.client.post(
            "/api/uploads/id_card",
            files={"file": ("front.jpg", b"jpg", "image/jpeg")},
            data={"order_id": "../victim"},
            headers=headers,
        )
        self.assertEqual(bad_order.status_code, 400)

        wrong_type = self.client.post(
            "/api/uploads/avatar",
            files={"file": ("me.gif", b"GIF89a", "image/gif")},
            headers=headers,
        )
        self.assertEqual(wrong_type.status_code, 400)

    def test_process_alipay_payment(self):
        _, user_headers = self._user()
        _, agent_headers = self._user("agent")
        _, admin_headers = self._user("admin")
        order = self._order(self._approved_package(agent_headers, admin_headers), user_headers)

        paid = self.client.post(
            "/api/process-alipay-payment",
            json={"orderId": order["id"], "alipayTradeNo": "2030050122001"},
            headers=user_headers,
        )
        self.assertEqual(paid.status_code, 200, paid.text)
        self.assertEqual(paid.json()["message"], "Payment processed")
        self.assertEqual(paid.json()["order"]["payment_status"], "paid")

        again = self.client.post(
            "/api/process-alipay-payment", json={"orderId": order["id"]}, headers=user_headers
        )
        self.assertEqual(again.json()["message"], "Order already paid")


if __name__ == "__main__":
    unittest.main()
