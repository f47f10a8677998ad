# ========================
# tests/test_api.py
# ========================

import io
import os
import sys
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from fastapi.testclient import TestClient

# Add the project root to Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import api_server
from src.notify import LoggingMailSender, MailDispatcher
from src.store import InMemoryListStore

REPORT_HEADER = "Added Users Count,Not Added Users Count,Total Users"


class TestContactListAPI(unittest.TestCase):
    """
    Endpoint tests run in-process against an in-memory store.
    """

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.upload_dir = Path(self.temp_dir.name)
        self._saved_upload_dir = api_server.UPLOAD_DIR
        api_server.UPLOAD_DIR = self.upload_dir

        self.sender = LoggingMailSender()
        api_server.app.state.store = InMemoryListStore()
        api_server.app.state.mailer = MailDispatcher(self.sender, "Hi $name")

        self.client = TestClient(api_server.app)
        self.client.__enter__()

    def tearDown(self):
        self.client.__exit__(None, None, None)
        api_server.UPLOAD_DIR = self._saved_upload_dir
        api_server.app.state.store = None
        api_server.app.state.mailer = None
        self.temp_dir.cleanup()

    def create_list(self, title="Newsletter", defaults=None) -> str:
        response = self.client.post("/lists", json={"title": title, "defaults": defaults or {}})
        self.assertEqual(response.status_code, 201)
        return response.json()["data"]["list"]["id"]

    def upload(self, list_id, content: bytes, filename="users.csv"):
        return self.client.post(
            f"/lists/{list_id}/users",
            files={"file": (filename, io.BytesIO(content), "text/csv")},
        )

    def test_root_and_health(self):
        self.assertIn("endpoints", self.client.get("/").json())
        self.assertEqual(self.client.get("/health").json()["status"], "healthy")

    def test_create_list(self):
        response = self.client.post("/lists", json={"title": "Newsletter", "defaults": {"city": "Paris"}})

        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertEqual(body["status"], "success")
        self.assertEqual(body["data"]["list"]["title"], "Newsletter")
        self.assertEqual(body["data"]["list"]["defaults"], {"city": "Paris"})

    def test_create_list_requires_title(self):
        response = self.client.post("/lists", json={"title": "   "})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["detail"], "Missing required field: 'title'")

    def test_get_lists(self):
        for title in ("One", "Two", "Three"):
            self.create_list(title)

        response = self.client.get("/lists", params={"limit": 2, "page": 2})

        self.assertEqual(response.status_code, 200)
        data = response.json()["data"]
        self.assertEqual(data["length"], 1)
        self.assertEqual(data["lists"][0]["title"], "Three")

    def test_get_list_with_bad_id(self):
        self.assertEqual(self.client.get("/lists/not-an-id").status_code, 400)
        self.assertEqual(self.client.get(f"/lists/{'a' * 32}").status_code, 400)

    def test_import_returns_csv_report(self):
        list_id = self.create_list(defaults={"city": "Paris"})
        content = (
            b"name,email,city\n"
            b"Ada,ada@example.com,\n"
            b"Alan,alan@example.com,Leeds\n"
            b",nobody@example.com,Rome\n"
            b"Grace,grace@nowhere,\n"
        )

        response = self.upload(list_id, content)

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.headers["content-type"].startswith("text/csv"))
        self.assertIn('filename="data.csv"', response.headers["content-disposition"])
        lines = response.text.split("\n")
        self.assertEqual(lines[0], REPORT_HEADER)
        self.assertEqual(lines[1], "2,2,2")
        self.assertEqual(lines[2], "")
        self.assertEqual(lines[3], "NAME,EMAIL,CITY,ERROR")
        self.assertCountEqual(lines[4:6], [",nobody@example.com,Rome,missing-name",
                                           "Grace,grace@nowhere,,invalid-email"])

        # Uploads are removed once processed
        self.assertEqual(list(self.upload_dir.iterdir()), [])

        listed = self.client.get(f"/lists/{list_id}").json()["data"]["list"]
        self.assertEqual(listed["usersCount"], 2)
        cities = {user["email"]: user["city"] for user in listed["users"]}
        self.assertEqual(cities, {"ada@example.com": "Paris", "alan@example.com": "Leeds"})

    def test_import_twice_reports_duplicates(self):
        list_id = self.create_list()
        content = b"name,email\nAda,ada@example.com\nAlan,alan@example.com\n"
        self.upload(list_id, content)

        response = self.upload(list_id, content)

        lines = response.text.split("\n")
        self.assertEqual(lines[1], "0,2,2")
        self.assertIn("Ada,ada@example.com,duplicate", lines)

    def test_import_without_file(self):
        list_id = self.create_list()
        response = self.client.post(f"/lists/{list_id}/users")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["detail"], api_server.MISSING_FILE_MSG)

    def test_import_into_unknown_list(self):
        for list_id in ("not-an-id", "b" * 32):
            response = self.upload(list_id, b"name,email\nAda,ada@example.com\n")
            self.assertEqual(response.status_code, 400)
            self.assertEqual(response.json()["detail"], api_server.LIST_NOT_FOUND_MSG)

    def test_malformed_upload_is_server_error(self):
        list_id = self.create_list()

        response = self.upload(list_id, b"name,email\nAda,ada@example.com,extra\n")

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["detail"], api_server.SERVER_ERROR_MSG)
        self.assertEqual(list(self.upload_dir.iterdir()), [])

    def test_repeated_header_is_server_error(self):
        list_id = self.create_list()

        response = self.upload(list_id, b"name,email,email\nAda,ada@example.com,\n")

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["detail"], api_server.SERVER_ERROR_MSG)
        self.assertEqual(list(self.upload_dir.iterdir()), [])

    def test_partially_saved_upload_is_removed(self):
        list_id = self.create_list()

        async def save_then_fail(file, file_path):
            file_path.write_bytes(b"name,em")
            raise OSError("No space left on device")

        with mock.patch.object(api_server, "_save_upload", side_effect=save_then_fail):
            response = self.upload(list_id, b"name,email\nAda,ada@example.com\n")

        self.assertEqual(response.status_code, 500)
        self.assertEqual(list(self.upload_dir.iterdir()), [])

    def test_send_mail(self):
        list_id = self.create_list()
        self.upload(list_id, b"name,email\nAda,ada@example.com\nAlan,alan@example.com\n")

        response = self.client.post(f"/lists/{list_id}/send-mail", content=b"Hello $name, welcome!")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["sent"], 2)
        self.assertIn(("ada@example.com", "Hi Ada", "Hello Ada, welcome!"), self.sender.outbox)

    def test_send_mail_requires_template(self):
        list_id = self.create_list()
        response = self.client.post(f"/lists/{list_id}/send-mail", content=b"  ")
        self.assertEqual(response.status_code, 400)


if __name__ == '__main__':
    unittest.main()
