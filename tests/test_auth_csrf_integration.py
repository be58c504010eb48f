import importlib
import sys
import tempfile
import unittest

from fastapi.testclient import TestClient


class AuthCsrfIntegrationTests(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.db_path = f"{self.tmp.name}/test.db"

        import config
        import db

        self._config = config
        self._db = db
        self._old_config_db_path = config.DB_PATH
        self._old_db_db_path = db.DB_PATH

        config.DB_PATH = self.db_path
        db.DB_PATH = self.db_path

        sys.modules.pop("main", None)
        main = importlib.import_module("main")
        self.client = TestClient(main.app)

    def tearDown(self):
        self.client.close()
        self._config.DB_PATH = self._old_config_db_path
        self._db.DB_PATH = self._old_db_db_path
        sys.modules.pop("main", None)
        self.tmp.cleanup()

    def _signup(self, email="alice@example.com"):
        resp = self.client.post(
            "/signup",
            headers={"origin": "http://testserver"},
            data={
                "email": email,
                "new_password": "password123",
                "confirm_password": "password123",
            },
            follow_redirects=False,
        )
        self.assertEqual(resp.status_code, 303)
        self.assertEqual(resp.headers["location"], "/")

    def _api_headers(self):
        csrf = self.client.cookies.get("csrf_token")
        self.assertTrue(csrf)
        return {"origin": "http://testserver", "x-csrf-token": csrf}

    def _create_medication(self, name, week="2024-03-15"):
        resp = self.client.post(
            "/api/medications",
            headers=self._api_headers(),
            json={"name": name, "week": week},
        )
        self.assertEqual(resp.status_code, 200)
        payload = resp.json()
        self.assertTrue(payload["ok"])
        return next(m["id"] for m in payload["week"]["medications"] if m["name"] == name)

    def test_first_visit_redirects_to_signup(self):
        resp = self.client.get("/tracker", follow_redirects=False)
        self.assertEqual(resp.status_code, 303)
        self.assertEqual(resp.headers["location"], "/signup")

    def test_api_requires_auth(self):
        self._signup()
        self.client.cookies.clear()
        resp = self.client.get("/api/week")
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp.json(), {"error": "unauthorized"})

    def test_session_reports_signed_in_user(self):
        self._signup()
        resp = self.client.get("/api/session")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["user"]["email"], "alice@example.com")

    def test_login_and_logout(self):
        self._signup()
        logout = self.client.post(
            "/logout", headers={"origin": "http://testserver"}, follow_redirects=False
        )
        self.assertEqual(logout.status_code, 303)
        self.client.cookies.delete("tracker_session")
        self.assertEqual(self.client.get("/api/week").status_code, 401)

        bad = self.client.post(
            "/login",
            headers={"origin": "http://testserver"},
            data={"email": "alice@example.com", "password": "wrong-password"},
            follow_redirects=False,
        )
        self.assertIn("error=", bad.headers["location"])

        good = self.client.post(
            "/login",
            headers={"origin": "http://testserver"},
            data={"email": "Alice@Example.com", "password": "password123"},
            follow_redirects=False,
        )
        self.assertEqual(good.headers["location"], "/")
        self.assertEqual(self.client.get("/api/week").status_code, 200)

    def test_api_post_requires_csrf_header(self):
        self._signup()

        without_csrf = self.client.post(
            "/api/medications",
            headers={"origin": "http://testserver"},
            json={"name": "Ibuprofen"},
        )
        self.assertEqual(without_csrf.status_code, 403)
        self.assertEqual(without_csrf.json(), {"error": "forbidden"})

        cross_origin = self.client.post(
            "/api/medications",
            headers={"origin": "http://evil.example", "x-csrf-token": self.client.cookies.get("csrf_token")},
            json={"name": "Ibuprofen"},
        )
        self.assertEqual(cross_origin.status_code, 403)

        with_csrf = self.client.post(
            "/api/medications",
            headers=self._api_headers(),
            json={"name": "Ibuprofen"},
        )
        self.assertEqual(with_csrf.status_code, 200)
        self.assertEqual(with_csrf.json()["week"]["medications"][0]["name"], "Ibuprofen")

    def test_week_window_from_any_anchor(self):
        self._signup()
        resp = self.client.get("/api/week", params={"start": "2024-03-15"})
        self.assertEqual(resp.status_code, 200)
        week = resp.json()["week"]
        self.assertEqual(week["week_start"], "2024-03-10")
        self.assertEqual([d["date"] for d in week["days"]],
                         [f"2024-03-{d}" for d in range(10, 17)])

    def test_toggle_round_trip(self):
        self._signup()
        med_id = self._create_medication("Metformin")

        first = self.client.post(
            "/api/logs/toggle",
            headers=self._api_headers(),
            json={"medication_id": med_id, "date": "2024-03-15"},
        )
        self.assertEqual(first.status_code, 200)
        week = first.json()["week"]
        self.assertEqual(week["week_start"], "2024-03-10")
        self.assertEqual(week["medications"][0]["checked"], [False] * 5 + [True, False])

        second = self.client.post(
            "/api/logs/toggle",
            headers=self._api_headers(),
            json={"medication_id": med_id, "date": "2024-03-15"},
        )
        week = second.json()["week"]
        self.assertEqual(week["medications"][0]["checked"], [False] * 7)
        self.assertEqual(len(week["logs"]), 1)
        self.assertIs(week["logs"][0]["taken"], False)

    def test_toggle_unknown_medication_is_not_applied(self):
        self._signup()
        resp = self.client.post(
            "/api/logs/toggle",
            headers=self._api_headers(),
            json={"medication_id": "nope", "date": "2024-03-15"},
        )
        self.assertEqual(resp.status_code, 409)
        self.assertFalse(resp.json()["ok"])

    def test_blank_names_rejected(self):
        self._signup()
        med_id = self._create_medication("Metformin")

        created = self.client.post(
            "/api/medications", headers=self._api_headers(), json={"name": "   "}
        )
        self.assertEqual(created.status_code, 400)
        self.assertEqual(created.json()["error"], "Medication name is required")

        renamed = self.client.post(
            f"/api/medications/{med_id}", headers=self._api_headers(), json={"name": ""}
        )
        self.assertEqual(renamed.status_code, 400)
        week = self.client.get("/api/week").json()["week"]
        self.assertEqual([m["name"] for m in week["medications"]], ["Metformin"])

    def test_delete_requires_confirmation(self):
        self._signup()
        med_id = self._create_medication("Metformin")

        declined = self.client.post(
            f"/api/medications/{med_id}/delete", headers=self._api_headers(), json={"confirm": False}
        )
        self.assertEqual(declined.status_code, 200)
        self.assertFalse(declined.json()["ok"])
        self.assertEqual(len(declined.json()["week"]["medications"]), 1)

        confirmed = self.client.post(
            f"/api/medications/{med_id}/delete", headers=self._api_headers(), json={"confirm": True}
        )
        self.assertEqual(confirmed.status_code, 200)
        self.assertEqual(confirmed.json()["week"]["medications"], [])

    def test_users_do_not_see_each_other(self):
        self._signup("alice@example.com")
        self._create_medication("Alice's pill")
        self.client.cookies.clear()

        self._signup("bob@example.com")
        week = self.client.get("/api/week").json()["week"]
        self.assertEqual(week["medications"], [])

    def test_html_grid_and_forms(self):
        self._signup()
        page = self.client.get("/tracker", params={"week": "2024-03-15"})
        self.assertEqual(page.status_code, 200)
        self.assertIn("Mar 10 - Mar 16, 2024", page.text)
        self.assertIn("No medications added yet", page.text)

        added = self.client.post(
            "/tracker/medications",
            headers={"origin": "http://testserver"},
            data={"name": "Lisinopril", "week": "2024-03-10"},
            follow_redirects=False,
        )
        self.assertEqual(added.status_code, 303)
        self.assertEqual(added.headers["location"], "/tracker?week=2024-03-10")

        blank = self.client.post(
            "/tracker/medications",
            headers={"origin": "http://testserver"},
            data={"name": " ", "week": "2024-03-10"},
            follow_redirects=False,
        )
        self.assertIn("error=", blank.headers["location"])

        week = self.client.get("/api/week", params={"start": "2024-03-10"}).json()["week"]
        med_id = week["medications"][0]["id"]
        toggled = self.client.post(
            "/tracker/toggle",
            headers={"origin": "http://testserver"},
            data={"medication_id": med_id, "date": "2024-03-12"},
            follow_redirects=False,
        )
        self.assertEqual(toggled.headers["location"], "/tracker?week=2024-03-10")
        page = self.client.get("/tracker", params={"week": "2024-03-10"})
        self.assertIn("Lisinopril", page.text)
        self.assertIn('aria-pressed="true"', page.text)

    def test_html_rename_and_delete(self):
        self._signup()
        med_id = self._create_medication("Lisinopril", week="2024-03-10")

        edit_page = self.client.get(f"/tracker/medications/{med_id}/edit", params={"week": "2024-03-10"})
        self.assertEqual(edit_page.status_code, 200)
        self.assertIn('value="Lisinopril"', edit_page.text)

        blank = self.client.post(
            f"/tracker/medications/{med_id}/edit",
            headers={"origin": "http://testserver"},
            data={"name": "  ", "week": "2024-03-10"},
            follow_redirects=False,
        )
        self.assertTrue(blank.headers["location"].startswith(f"/tracker/medications/{med_id}/edit"))

        renamed = self.client.post(
            f"/tracker/medications/{med_id}/edit",
            headers={"origin": "http://testserver"},
            data={"name": "Lisinopril 20mg", "week": "2024-03-10"},
            follow_redirects=False,
        )
        self.assertEqual(renamed.headers["location"], "/tracker?week=2024-03-10")

        unconfirmed = self.client.post(
            f"/tracker/medications/{med_id}/delete",
            headers={"origin": "http://testserver"},
            data={"week": "2024-03-10"},
            follow_redirects=False,
        )
        self.assertEqual(unconfirmed.status_code, 303)
        names = [m["name"] for m in self.client.get("/api/week").json()["week"]["medications"]]
        self.assertEqual(names, ["Lisinopril 20mg"])

        self.client.post(
            f"/tracker/medications/{med_id}/delete",
            headers={"origin": "http://testserver"},
            data={"confirm": "1", "week": "2024-03-10"},
            follow_redirects=False,
        )
        self.assertEqual(self.client.get("/api/week").json()["week"]["medications"], [])


if __name__ == "__main__":
    unittest.main()
