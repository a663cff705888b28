import json
import logging
import re
import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import MagicMock

from fastapi.testclient import TestClient

from registration_backend import app as app_module
from registration_backend.app import create_app
from registration_backend.config import Settings, get_settings
from registration_backend.db import InMemoryDbClient
from registration_backend.dependencies import get_db_client, get_storage_client
from registration_backend.errors import StorageFailure
from registration_backend.storage import LocalDiskStorageClient

TEAM_DETAILS_JSON = (
    '{"teamName":"A","members":[{"name":"X","mobile":"1","regNo":"R1","gender":"M"}]}'
)
DISPLAY_DATE = re.compile(r"^\d{1,2}/\d{1,2}/\d{4}, \d{1,2}:\d{2}:\d{2} (AM|PM)$")


def solo_payload(**overrides) -> dict:
    payload = {
        "name": "Asha",
        "email": "asha@example.com",
        "mobile": "9876543210",
        "gender": "F",
        "isLpu": "yes",
        "regNo": "12100001",
        "participationType": "solo",
        "needAccommodation": "no",
    }
    payload.update(overrides)
    return payload


class BackendApiTests(unittest.TestCase):
    def setUp(self):
        self._tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmpdir.cleanup)
        self.upload_dir = Path(self._tmpdir.name)

        self.settings = Settings(upload_dir=str(self.upload_dir))
        self.db = InMemoryDbClient()
        self.storage = LocalDiskStorageClient(str(self.upload_dir))

        self.app = create_app(self.settings)
        self.app.dependency_overrides[get_settings] = lambda: self.settings
        self.app.dependency_overrides[get_db_client] = lambda: self.db
        self.app.dependency_overrides[get_storage_client] = lambda: self.storage
        self.client = TestClient(self.app)

    def register(self, payload: dict) -> str:
        response = self.client.post("/api/register", json=payload)
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()["registrationId"]

    def upload(self, registration_id, filename="avatar.png", content=b"", content_type="image/png"):
        data = {"registrationId": registration_id} if registration_id else {}
        return self.client.post(
            "/api/upload-photo",
            data=data,
            files={"photo": (filename, content, content_type)},
        )

    def test_health(self):
        response = self.client.get("/api/health")
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["status"], "ok")
        self.assertTrue(payload["timestamp"].endswith("Z"))

    def test_register_returns_id_and_stores_defaults(self):
        response = self.client.post("/api/register", json=solo_payload())
        self.assertEqual(response.status_code, 201)
        payload = response.json()
        self.assertTrue(payload["success"])

        record = self.db.get_registration(payload["registrationId"])
        self.assertIsNotNone(record)
        self.assertEqual(record.name, "Asha")
        self.assertTrue(record.is_lpu)
        self.assertEqual(record.payment_status, "pending")
        self.assertIsNone(record.team_details)
        self.assertIsNone(record.photo_url)

    def test_identical_payloads_get_distinct_ids(self):
        first = self.register(solo_payload())
        second = self.register(solo_payload())
        self.assertNotEqual(first, second)
        self.assertEqual(len(self.db.registrations), 2)

    def test_is_lpu_normalization(self):
        cases = [
            (True, True),
            ("true", True),
            ("yes", True),
            (False, False),
            ("no", False),
            (None, False),
        ]
        for raw, expected in cases:
            with self.subTest(raw=raw):
                registration_id = self.register(solo_payload(isLpu=raw))
                self.assertIs(self.db.get_registration(registration_id).is_lpu, expected)

        payload = solo_payload()
        del payload["isLpu"]
        registration_id = self.register(payload)
        self.assertIs(self.db.get_registration(registration_id).is_lpu, False)

    def test_team_details_string_is_parsed(self):
        registration_id = self.register(
            solo_payload(participationType="team", teamDetails=TEAM_DETAILS_JSON)
        )
        record = self.db.get_registration(registration_id)
        self.assertEqual(record.team_details, json.loads(TEAM_DETAILS_JSON))

        listing = self.client.get("/api/registrations").json()
        self.assertEqual(len(listing), 1)
        self.assertEqual(listing[0]["teamSize"], 2)
        self.assertEqual(listing[0]["teamDetails"]["teamName"], "A")

    def test_team_details_object_is_accepted(self):
        registration_id = self.register(
            solo_payload(teamDetails={"teamName": "B", "members": []})
        )
        record = self.db.get_registration(registration_id)
        self.assertEqual(record.team_details, {"teamName": "B", "members": []})

    def test_malformed_team_details_fails_without_writing(self):
        response = self.client.post(
            "/api/register", json=solo_payload(teamDetails="{not json")
        )
        self.assertEqual(response.status_code, 500)
        payload = response.json()
        self.assertFalse(payload["success"])
        self.assertIn("teamDetails", payload["error"])
        self.assertEqual(self.db.registrations, {})

    def test_non_object_payload_is_rejected(self):
        response = self.client.post("/api/register", json=["not", "an", "object"])
        self.assertEqual(response.status_code, 500)
        self.assertFalse(response.json()["success"])
        self.assertEqual(self.db.registrations, {})

    def test_register_accepts_form_body(self):
        response = self.client.post(
            "/api/register",
            data={
                "name": "Ravi",
                "isLpu": "true",
                "participationType": "team",
                "teamDetails": TEAM_DETAILS_JSON,
            },
        )
        self.assertEqual(response.status_code, 201, response.text)
        record = self.db.get_registration(response.json()["registrationId"])
        self.assertTrue(record.is_lpu)
        self.assertEqual(record.team_details["members"][0]["regNo"], "R1")

    def test_server_owned_fields_are_ignored(self):
        registration_id = self.register(
            solo_payload(paymentStatus="paid", photoUrl="/uploads/fake.png", mobile=98765)
        )
        record = self.db.get_registration(registration_id)
        self.assertEqual(record.payment_status, "pending")
        self.assertIsNone(record.photo_url)
        self.assertEqual(record.mobile, "98765")

    def test_upload_photo_sets_photo_url(self):
        registration_id = self.register(solo_payload())
        content = b"\x89PNG\r\n\x1a\n" + b"\x00" * (100 * 1024)

        response = self.upload(registration_id, content=content)
        self.assertEqual(response.status_code, 200, response.text)
        payload = response.json()
        self.assertTrue(payload["success"])
        self.assertRegex(payload["photoUrl"], r"^/uploads/\d+-avatar\.png$")

        stored_name = payload["photoUrl"].rsplit("/", 1)[1]
        self.assertEqual((self.upload_dir / stored_name).read_bytes(), content)

        listing = self.client.get("/api/registrations").json()
        self.assertEqual(listing[0]["photoUrl"], payload["photoUrl"])

        served = self.client.get(payload["photoUrl"])
        self.assertEqual(served.status_code, 200)
        self.assertEqual(served.content, content)

    def test_upload_too_large_leaves_record_untouched(self):
        registration_id = self.register(solo_payload())
        response = self.upload(
            registration_id,
            filename="big.jpg",
            content=b"\xff" * (3 * 1024 * 1024),
            content_type="image/jpeg",
        )
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {"success": False, "error": "File too large"})
        self.assertIsNone(self.db.get_registration(registration_id).photo_url)
        self.assertEqual(list(self.upload_dir.iterdir()), [])

    def test_upload_rejects_unsupported_type(self):
        registration_id = self.register(solo_payload())
        response = self.upload(
            registration_id, filename="anim.gif", content=b"GIF89a", content_type="image/gif"
        )
        self.assertEqual(response.status_code, 500)
        self.assertEqual(
            response.json()["error"],
            "Invalid file type. Only JPEG, JPG and PNG allowed.",
        )
        self.assertEqual(list(self.upload_dir.iterdir()), [])

    def test_upload_without_file(self):
        registration_id = self.register(solo_payload())
        response = self.client.post(
            "/api/upload-photo", data={"registrationId": registration_id}
        )
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["error"], "No file uploaded")

    def test_upload_without_registration_id(self):
        response = self.upload(None, content=b"\x89PNG")
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["error"], "No registration ID provided")
        self.assertEqual(list(self.upload_dir.iterdir()), [])

    def test_bad_file_type_reported_before_missing_id(self):
        response = self.upload(
            None, filename="anim.gif", content=b"GIF89a", content_type="image/gif"
        )
        self.assertEqual(response.status_code, 500)
        self.assertEqual(
            response.json()["error"],
            "Invalid file type. Only JPEG, JPG and PNG allowed.",
        )

    def test_oversized_file_reported_before_missing_id(self):
        response = self.upload(
            None,
            filename="big.jpg",
            content=b"\xff" * (3 * 1024 * 1024),
            content_type="image/jpeg",
        )
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["error"], "File too large")
        self.assertEqual(list(self.upload_dir.iterdir()), [])

    def test_upload_for_unknown_registration_leaves_file(self):
        response = self.upload("does-not-exist", content=b"\x89PNG")
        self.assertEqual(response.status_code, 500)
        self.assertEqual(
            response.json(), {"success": False, "error": "Registration not found"}
        )
        # The file is written before the lookup and is not cleaned up.
        self.assertEqual(len(list(self.upload_dir.iterdir())), 1)

    def test_listing_empty(self):
        response = self.client.get("/api/registrations")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), [])

    def test_listing_orders_newest_first(self):
        base = datetime(2026, 3, 5, 14, 7, 9, tzinfo=timezone.utc)
        for offset, name in enumerate(["oldest", "middle", "newest"]):
            self.db.create_registration(
                {"name": name}, registration_date=base + timedelta(minutes=offset)
            )

        listing = self.client.get("/api/registrations").json()
        self.assertEqual([item["name"] for item in listing], ["newest", "middle", "oldest"])
        for item in listing:
            self.assertRegex(item["registrationDate"], DISPLAY_DATE)
            self.assertEqual(item["teamSize"], 1)
            self.assertEqual(item["paymentStatus"], "pending")
            self.assertIn("_id", item)

    def test_listing_storage_failure(self):
        failing_db = MagicMock()
        failing_db.list_registrations.side_effect = StorageFailure("connection refused")
        self.app.dependency_overrides[get_db_client] = lambda: failing_db

        response = self.client.get("/api/registrations")
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {"error": "connection refused"})

    def test_missing_upload_is_404(self):
        response = self.client.get("/uploads/missing.png")
        self.assertEqual(response.status_code, 404)

    def test_cors_allows_any_origin(self):
        response = self.client.get(
            "/api/health", headers={"Origin": "http://admin.example.com"}
        )
        self.assertIn("access-control-allow-origin", response.headers)


class AppFactoryTests(unittest.TestCase):
    def setUp(self):
        self._tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmpdir.cleanup)
        self.upload_dir = Path(self._tmpdir.name) / "photos"
        self.settings = Settings(
            upload_dir=str(self.upload_dir),
            database_url=None,
            use_in_memory_backends=False,
        )

    def test_uploads_written_where_they_are_served(self):
        client = TestClient(create_app(self.settings))
        registration = client.post("/api/register", json=solo_payload())
        registration_id = registration.json()["registrationId"]

        response = client.post(
            "/api/upload-photo",
            data={"registrationId": registration_id},
            files={"photo": ("me.png", b"\x89PNG-bytes", "image/png")},
        )
        self.assertEqual(response.status_code, 200, response.text)
        photo_url = response.json()["photoUrl"]

        stored_name = photo_url.rsplit("/", 1)[1]
        self.assertTrue((self.upload_dir / stored_name).is_file())
        served = client.get(photo_url)
        self.assertEqual(served.status_code, 200)
        self.assertEqual(served.content, b"\x89PNG-bytes")

    def test_create_app_leaves_logging_alone(self):
        root = logging.getLogger()
        handlers = list(root.handlers)
        create_app(self.settings)
        self.assertEqual(root.handlers, handlers)

    def test_importing_app_module_builds_no_app(self):
        self.assertFalse(hasattr(app_module, "app"))


if __name__ == "__main__":
    unittest.main()
