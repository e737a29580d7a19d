import unittest

from models.user import UserRole
from support import ApiTestCase


class RatingTestCase(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.customer = self.make_user(UserRole.CUSTOMER)
        self.deliverer = self.make_user(UserRole.DELIVERER)

    def completed_order(self, customer=None):
        order = self.assigned_order(customer or self.customer, self.deliverer)
        self.update_status(self.deliverer, order["id"], "ON_DELIVERY")
        self.update_status(self.deliverer, order["id"], "COMPLETED")
        return order

    def rate(self, user, order_id, score, comment=None):
        return self.client.post(
            f"/api/ratings/order/{order_id}",
            json={"score": score, "comment": comment},
            headers=self.headers(user)
        )

    def test_customer_rates_a_completed_order_once(self):
        order = self.completed_order()

        response = self.rate(self.customer, order["id"], 5, "Cepat dan ramah")

        self.assertEqual(response.status_code, 201, response.text)
        self.assertEqual(response.json()["data"]["deliverer_id"], self.deliverer.id)
        self.assertErrorCode(self.rate(self.customer, order["id"], 4), 409, "ConflictError")

        check = self.client.get(f"/api/ratings/order/{order['id']}/check", headers=self.headers(self.deliverer))
        self.assertTrue(check.json()["data"]["is_rated"])
        self.assertEqual(check.json()["data"]["rating"]["score"], 5)

    def test_unfinished_orders_cannot_be_rated(self):
        order = self.assigned_order(self.customer, self.deliverer)
        self.assertErrorCode(self.rate(self.customer, order["id"], 5), 409, "InvalidStateError")

        check = self.client.get(f"/api/ratings/order/{order['id']}/check", headers=self.headers(self.customer))
        self.assertFalse(check.json()["data"]["is_rated"])

    def test_only_the_requester_rates(self):
        order = self.completed_order()
        self.assertErrorCode(self.rate(self.deliverer, order["id"], 1), 403, "AuthorizationError")

    def test_score_must_be_between_one_and_five(self):
        order = self.completed_order()
        for score in (0, 6):
            self.assertErrorCode(self.rate(self.customer, order["id"], score), 400, "VALIDATION_ERROR")

    def test_deliverer_summary_and_offer_rating(self):
        self.rate(self.customer, self.completed_order()["id"], 5)
        self.rate(self.customer, self.completed_order()["id"], 4)
        self.rate(self.customer, self.completed_order()["id"], 4)

        response = self.client.get(f"/api/ratings/deliverer/{self.deliverer.id}", params={"page_size": 2})

        body = response.json()
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(len(body["data"]), 2)
        self.assertEqual(body["data"][0]["customer_name"], self.customer.full_name)
        self.assertEqual(body["meta"]["total_items"], 3)
        self.assertTrue(body["meta"]["has_next"])
        summary = body["meta"]["summary"]
        self.assertEqual(summary["average_rating"], 4.3)
        self.assertEqual(summary["total_ratings"], 3)
        self.assertEqual(summary["distribution"]["4"], 2)

        order = self.create_order(self.customer)
        self.submit_offer(self.deliverer, order["id"], 9000)
        offers = self.client.get(f"/api/orders/{order['id']}/offers", headers=self.headers(self.customer))
        self.assertEqual(offers.json()["data"][0]["deliverer_rating"], 4.3)

    def test_my_ratings_for_both_sides(self):
        self.rate(self.customer, self.completed_order()["id"], 3)

        given = self.client.get("/api/ratings/my", headers=self.headers(self.customer)).json()["data"]
        received = self.client.get("/api/ratings/my", headers=self.headers(self.deliverer)).json()["data"]

        self.assertEqual([r["score"] for r in given], [3])
        self.assertEqual([r["score"] for r in received], [3])

    def test_unknown_deliverer(self):
        response = self.client.get(f"/api/ratings/deliverer/{self.customer.id}")
        self.assertErrorCode(response, 404, "ResourceNotFoundError")


if __name__ == "__main__":
    unittest.main()
