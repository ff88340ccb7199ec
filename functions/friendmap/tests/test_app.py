import unittest

from fastapi.testclient import TestClient

from friendmap.app import create_app
from friendmap.config import Settings
from friendmap.db import InMemoryDbClient, StorageError


def _settings(**overrides) -> Settings:
    values = {"use_in_memory_backends": True, "admin_token": None}
    values.update(overrides)
    return Settings(_env_file=None, **values)


ANA = {"name": "Ana", "location": "Rome", "coords": {"lat": 41.9, "lng": 12.5}}

BEA = {
    "name": "Bea",
    "location": "Lisbon",
    "notes": "Met at the hostel",
    "otherCities": "Porto, Sintra",
    "displayName": "B.",
    "coords": {"lat": 38.72, "lng": -9.14},
}


class FailingDbClient(InMemoryDbClient):
    def list_friends(self):
        raise StorageError("disk I/O error")

    def clear_friends(self):
        raise RuntimeError("boom")


class FriendApiTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.client = TestClient(create_app(_settings(), db=self.db))

    def test_create_friend_example(self):
        response = self.client.post("/api/friends", json=ANA)
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertIsInstance(payload["id"], int)
        self.assertEqual(payload["name"], "Ana")
        self.assertEqual(payload["coords"], {"lat": 41.9, "lng": 12.5})
        self.assertIsNone(payload["notes"])
        self.assertIsNone(payload["otherCities"])
        self.assertEqual(payload["message"], "Friend added successfully")

    def test_created_friend_appears_in_admin_list(self):
        created = self.client.post("/api/friends", json=BEA).json()

        response = self.client.get("/api/friends")
        self.assertEqual(response.status_code, 200)
        friends = response.json()
        self.assertEqual(len(friends), 1)
        friend = friends[0]
        self.assertEqual(friend["id"], created["id"])
        self.assertEqual(friend["name"], "Bea")
        self.assertEqual(friend["location"], "Lisbon")
        self.assertEqual(friend["notes"], "Met at the hostel")
        self.assertEqual(friend["otherCities"], "Porto, Sintra")
        self.assertEqual(friend["displayName"], "B.")
        self.assertEqual(friend["coords"], {"lat": 38.72, "lng": -9.14})
        self.assertIn("createdAt", friend)

    def test_public_list_hides_private_fields(self):
        self.client.post("/api/friends", json=BEA)
        self.client.post("/api/friends", json=ANA)

        response = self.client.get("/api/friends/public")
        self.assertEqual(response.status_code, 200)
        friends = response.json()
        self.assertEqual(len(friends), 2)
        for friend in friends:
            self.assertNotIn("notes", friend)
            self.assertNotIn("otherCities", friend)
            self.assertEqual(
                set(friend),
                {"id", "name", "location", "coords", "displayName", "createdAt"},
            )

    def test_lists_are_newest_first(self):
        first = self.client.post("/api/friends", json=ANA).json()
        second = self.client.post("/api/friends", json=BEA).json()

        ids = [f["id"] for f in self.client.get("/api/friends").json()]
        self.assertEqual(ids, [second["id"], first["id"]])
        public_ids = [f["id"] for f in self.client.get("/api/friends/public").json()]
        self.assertEqual(public_ids, ids)

    def test_missing_required_fields_rejected(self):
        for field in ("name", "location", "coords"):
            body = {k: v for k, v in ANA.items() if k != field}
            response = self.client.post("/api/friends", json=body)
            self.assertEqual(response.status_code, 400, field)
            self.assertEqual(
                response.json()["error"],
                "Name, location, and coordinates are required",
            )
        self.assertEqual(self.db.friends, {})

    def test_blank_name_and_missing_longitude_rejected(self):
        response = self.client.post("/api/friends", json={**ANA, "name": "  "})
        self.assertEqual(response.status_code, 400)
        response = self.client.post(
            "/api/friends", json={**ANA, "coords": {"lat": 41.9}}
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.db.friends, {})

    def test_zero_coordinates_accepted(self):
        body = {"name": "Null Island", "location": "Gulf of Guinea", "coords": {"lat": 0, "lng": 0}}
        response = self.client.post("/api/friends", json=body)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["coords"], {"lat": 0.0, "lng": 0.0})

    def test_non_numeric_coordinates_rejected(self):
        body = {**ANA, "coords": {"lat": "north", "lng": 12.5}}
        response = self.client.post("/api/friends", json=body)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "Invalid request")
        self.assertEqual(self.db.friends, {})

    def test_empty_optional_fields_stored_as_null(self):
        response = self.client.post(
            "/api/friends", json={**ANA, "notes": "", "otherCities": ""}
        )
        self.assertEqual(response.status_code, 200)
        stats = self.client.get("/api/stats").json()
        self.assertEqual(stats["friendsWithNotes"], 0)
        self.assertEqual(stats["friendsWithRecommendations"], 0)

    def test_delete_friend(self):
        ana = self.client.post("/api/friends", json=ANA).json()
        bea = self.client.post("/api/friends", json=BEA).json()

        response = self.client.delete(f"/api/friends/{ana['id']}")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["message"], "Friend deleted successfully")
        remaining = [f["id"] for f in self.client.get("/api/friends").json()]
        self.assertEqual(remaining, [bea["id"]])

    def test_delete_missing_friend_returns_404(self):
        self.client.post("/api/friends", json=ANA)

        response = self.client.delete("/api/friends/999")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["error"], "Friend not found")
        self.assertEqual(len(self.db.friends), 1)

    def test_clear_friends(self):
        self.client.post("/api/friends", json=ANA)
        self.client.post("/api/friends", json=BEA)

        response = self.client.delete("/api/friends")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["message"], "Deleted 2 friends")
        self.assertEqual(response.json()["deleted"], 2)
        self.assertEqual(self.client.get("/api/friends").json(), [])

    def test_stats(self):
        self.client.post("/api/friends", json=BEA)
        self.client.post("/api/friends", json=ANA)

        response = self.client.get("/api/stats")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            response.json(),
            {"totalFriends": 2, "friendsWithNotes": 1, "friendsWithRecommendations": 1},
        )

    def test_unknown_route_returns_404(self):
        response = self.client.get("/api/unknown")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {"error": "Route not found"})

    def test_unknown_route_with_other_methods_returns_404(self):
        for method, path in (
            ("POST", "/api/unknown"),
            ("PUT", "/api/friends"),
            ("DELETE", "/api/nope"),
            ("PATCH", "/api/friends/1"),
        ):
            response = self.client.request(method, path)
            self.assertEqual(response.status_code, 404, f"{method} {path}")
            self.assertEqual(response.json(), {"error": "Route not found"})

    def test_delete_with_non_integer_id_returns_404(self):
        self.client.post("/api/friends", json=ANA)
        for friend_id in ("abc", "1.5", "99999999999999999999999"):
            response = self.client.delete(f"/api/friends/{friend_id}")
            self.assertEqual(response.status_code, 404, friend_id)
            self.assertEqual(response.json()["error"], "Friend not found")
        self.assertEqual(len(self.db.friends), 1)

    def test_non_finite_coordinates_rejected(self):
        for value in ("NaN", "Infinity", "-Infinity"):
            body = (
                '{"name": "Ana", "location": "Rome", '
                f'"coords": {{"lat": {value}, "lng": 12.5}}}}'
            )
            response = self.client.post(
                "/api/friends",
                content=body,
                headers={"Content-Type": "application/json"},
            )
            self.assertEqual(response.status_code, 400, value)
            self.assertEqual(response.json()["error"], "Invalid request")
        self.assertEqual(self.db.friends, {})

    def test_pages_are_served(self):
        for path in ("/", "/admin"):
            response = self.client.get(path)
            self.assertEqual(response.status_code, 200, path)
            self.assertIn("text/html", response.headers["content-type"])
        response = self.client.get("/style.css")
        self.assertEqual(response.status_code, 200)


class FriendApiErrorTests(unittest.TestCase):
    def setUp(self):
        app = create_app(_settings(), db=FailingDbClient())
        self.client = TestClient(app, raise_server_exceptions=False)

    def test_storage_failure_returns_generic_500(self):
        with self.assertLogs("friendmap.routes", level="ERROR"):
            response = self.client.get("/api/friends")
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {"error": "Failed to fetch friends"})

    def test_unhandled_error_returns_generic_500(self):
        with self.assertLogs("friendmap.app", level="ERROR"):
            response = self.client.delete("/api/friends")
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {"error": "Something went wrong!"})

    def test_process_keeps_serving_after_failure(self):
        with self.assertLogs("friendmap.routes", level="ERROR"):
            self.client.get("/api/friends/public")
        response = self.client.post("/api/friends", json=ANA)
        self.assertEqual(response.status_code, 200)


class AdminTokenTests(unittest.TestCase):
    def setUp(self):
        self.client = TestClient(
            create_app(_settings(admin_token="s3cret"), db=InMemoryDbClient())
        )

    def test_privileged_routes_require_token(self):
        for method, path in (
            ("GET", "/api/friends"),
            ("GET", "/api/stats"),
            ("DELETE", "/api/friends"),
            ("DELETE", "/api/friends/1"),
        ):
            response = self.client.request(method, path)
            self.assertEqual(response.status_code, 401, path)
            self.assertEqual(response.json()["error"], "Admin token required")

        response = self.client.get(
            "/api/friends", headers={"X-Admin-Token": "wrong"}
        )
        self.assertEqual(response.status_code, 401)

    def test_token_grants_access(self):
        self.client.post("/api/friends", json=ANA)
        response = self.client.get("/api/friends", headers={"X-Admin-Token": "s3cret"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.json()), 1)

    def test_public_routes_stay_open(self):
        self.assertEqual(self.client.post("/api/friends", json=ANA).status_code, 200)
        self.assertEqual(self.client.get("/api/friends/public").status_code, 200)


class LifespanTests(unittest.TestCase):
    def test_storage_client_built_from_settings(self):
        app = create_app(_settings())
        with TestClient(app) as client:
            self.assertIsInstance(app.state.db, InMemoryDbClient)
            response = client.post("/api/friends", json=ANA)
            self.assertEqual(response.status_code, 200)
            self.assertEqual(len(client.get("/api/friends").json()), 1)


if __name__ == "__main__":
    unittest.main()
