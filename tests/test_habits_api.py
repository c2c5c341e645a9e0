import json
import os
import tempfile
import unittest

from web_app import create_app


class HabitsApiTestCase(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.habits_file = os.path.join(self.tmp.name, "habits.json")
        self.app = create_app({
            "TESTING": True,
            "SECRET_KEY": "test-secret",
            "SESSION_COOKIE_SECURE": False,
            "DATABASE_URL": f"sqlite:///{os.path.join(self.tmp.name, 'test.db')}",
            "HABITS_FILE": self.habits_file,
        })
        self.client = self.app.test_client()

    def tearDown(self):
        self.app.extensions["habits_engine"].dispose()
        self.tmp.cleanup()

    def _sign_up(self, client=None, email="test@example.com"):
        client = client or self.client
        resp = client.post("/api/auth", json={"email": email, "password": "password123"})
        self.assertEqual(resp.status_code, 201)
        return resp

    def _habits(self, client=None):
        resp = (client or self.client).get("/api/habits")
        self.assertEqual(resp.status_code, 200)
        return resp.get_json()["habits"]

    # ---------- auth ---------- #
    def test_signup_starts_a_session(self):
        self.assertFalse(self.client.get("/api/auth/check").get_json()["authenticated"])
        self._sign_up()
        self.assertTrue(self.client.get("/api/auth/check").get_json()["authenticated"])

        self.client.post("/api/auth/logout")
        self.assertFalse(self.client.get("/api/auth/check").get_json()["authenticated"])

    def test_signup_rejects_bad_input_and_duplicates(self):
        resp = self.client.post("/api/auth", json={"email": "nope", "password": "1"})
        self.assertEqual(resp.status_code, 400)
        self.assertFalse(resp.get_json()["success"])

        self._sign_up()
        resp = self.app.test_client().post(
            "/api/auth", json={"email": "test@example.com", "password": "password123"}
        )
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(resp.get_json()["error"], "Email already exists")

    def test_login(self):
        self._sign_up()
        self.client.post("/api/auth/logout")

        resp = self.client.post("/api/auth/login",
                                json={"email": "test@example.com", "password": "wrong-pass"})
        self.assertEqual(resp.status_code, 401)

        resp = self.client.post("/api/auth/login",
                                json={"email": "test@example.com", "password": "password123"})
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(self.client.get("/api/auth/check").get_json()["authenticated"])

    # ---------- signed-in path ---------- #
    def test_signed_in_read_scenario(self):
        self._sign_up()
        resp = self.client.post("/api/habits", json={"name": "Read", "color": "green"})
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.get_json()["habit"]["color"], "green")

        resp = self.client.patch("/api/habits", json={"habitName": "Read", "date": "2024-01-05"})
        self.assertEqual(resp.get_json(), {"success": True, "completed": True})
        self.assertEqual(self._habits()[0]["completedDates"], ["2024-01-05"])

        resp = self.client.patch("/api/habits", json={"habitName": "Read", "date": "2024-01-05"})
        self.assertEqual(resp.get_json(), {"success": True, "completed": False})

        habits = self._habits()
        self.assertEqual(len(habits), 1)
        self.assertEqual(habits[0]["name"], "Read")
        self.assertEqual(habits[0]["completedDates"], [])
        # signed-in habits never reach the anonymous document
        self.assertFalse(os.path.exists(self.habits_file))

    def test_users_see_only_their_own_habits(self):
        self._sign_up()
        self.client.post("/api/habits", json={"name": "Read"})

        other = self.app.test_client()
        self._sign_up(other, email="other@example.com")
        self.assertEqual(self._habits(other), [])
        resp = other.delete("/api/habits", json={"habitName": "Read"})
        self.assertEqual(resp.status_code, 404)

    def test_duplicate_habit_name_conflicts(self):
        self._sign_up()
        self.client.post("/api/habits", json={"name": "Read"})
        resp = self.client.post("/api/habits", json={"name": "Read"})
        self.assertEqual(resp.status_code, 409)

    def test_delete_habit(self):
        self._sign_up()
        self.client.post("/api/habits", json={"name": "Read"})
        self.client.patch("/api/habits", json={"habitName": "Read", "date": "2024-01-05"})

        resp = self.client.delete("/api/habits", json={"habitName": "Read"})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(self._habits(), [])

        resp = self.client.delete("/api/habits", json={"habitName": "Read"})
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.get_json()["error"], "Habit not found")

    # ---------- anonymous path ---------- #
    def test_anonymous_meditate_scenario(self):
        resp = self.client.post("/api/habits", json={"name": "Meditate", "color": "purple"})
        self.assertEqual(resp.status_code, 201)

        for day in ("2024-03-01", "2024-03-02", "2024-03-03"):
            self.client.patch("/api/habits", json={"habitName": "Meditate", "date": day})
        resp = self.client.patch("/api/habits",
                                 json={"habitName": "Meditate", "date": "2024-03-02"})
        self.assertFalse(resp.get_json()["completed"])

        with open(self.habits_file, encoding="utf-8") as f:
            doc = json.load(f)
        self.assertEqual(doc["habits"][0]["completedDates"], ["2024-03-01", "2024-03-03"])
        self.assertEqual(self._habits()[0]["completedDates"], ["2024-03-01", "2024-03-03"])

    def test_anonymous_toggle_unknown_habit(self):
        resp = self.client.patch("/api/habits", json={"habitName": "Ghost", "date": "2024-01-01"})
        self.assertEqual(resp.status_code, 404)
        self.assertFalse(os.path.exists(self.habits_file))

    def test_corrupt_document_is_reported_opaquely(self):
        with open(self.habits_file, "w", encoding="utf-8") as f:
            f.write("{broken")
        resp = self.client.get("/api/habits")
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.get_json(), {"success": False, "error": "Storage unavailable"})

    # ---------- request validation ---------- #
    def test_missing_fields_are_rejected(self):
        self.assertEqual(self.client.post("/api/habits", json={}).status_code, 400)
        self.assertEqual(self.client.post("/api/habits", json={"name": "  "}).status_code, 400)
        self.assertEqual(self.client.patch("/api/habits", json={"habitName": "Read"}).status_code, 400)
        self.assertEqual(self.client.delete("/api/habits", json={}).status_code, 400)
        self.assertEqual(self.client.post("/api/habits", data="not json").status_code, 400)

    def test_invalid_date_is_rejected(self):
        self.client.post("/api/habits", json={"name": "Read"})
        resp = self.client.patch("/api/habits", json={"habitName": "Read", "date": "2024-13-45"})
        self.assertEqual(resp.status_code, 400)


if __name__ == "__main__":
    unittest.main()
