# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================
# Standard library imports
import os
import unittest
from unittest.mock import patch

# Third-party library imports
from functions_framework import create_app

# Local application imports
from backend.db import InMemoryDbClient
from backend.push import InMemoryPushGateway
from main_testing_utils import create_mock_group, create_test_registry
from shared.constants import CONFIRMED_KNOCK_TYPE, KNOCK_ATTEMPT_TYPE

MAIN_SOURCE = os.path.join(os.path.dirname(os.path.abspath(__file__)), "main.py")
HOME = {"X-Forwarded-For": "1.2.3.4"}


def _client_for(function_name: str):
    with patch("firebase_admin.initialize_app"):
        return create_app(function_name, MAIN_SOURCE).test_client()


class MainTestBase(unittest.TestCase):
    function_name = ""

    def setUp(self):
        self.client = _client_for(self.function_name)
        self.db = InMemoryDbClient()
        self.push = InMemoryPushGateway()
        self.registry, self.scheduler, self.clock = create_test_registry(
            db=self.db, push=self.push
        )
        self.group = create_mock_group(
            self.db, {"A": "tok-a", "B": "tok-b", "C": "tok-c"}
        )

    def tearDown(self):
        self.registry.shutdown()

    def call(self, payload: dict, headers: dict | None = None):
        return self.client.post("/", json={"data": payload}, headers=headers or HOME)

    def assertError(self, response, status_code: int, status: str):
        self.assertEqual(
            response.status_code,
            status_code,
            f"Body: {response.get_data(as_text=True)}",
        )
        self.assertEqual(response.get_json()["error"]["status"], status)


class TestMainCreateGroup(MainTestBase):
    function_name = "create_group"

    @patch("main.get_db_client")
    def test_create_group(self, mock_get_db):
        mock_get_db.return_value = self.db

        response = self.call(
            {"identity": "D", "groupName": "Cabin", "pushToken": "tok-d"}
        )

        self.assertEqual(response.status_code, 200, response.get_data(as_text=True))
        result = response.get_json()["result"]
        self.assertEqual(result["groupName"], "Cabin")
        group = self.db.get_group(result["groupCode"])
        self.assertEqual(list(group.members), ["D"])
        self.assertEqual(group.members["D"].last_address, "1.2.3.4")
        self.assertEqual(self.db.get_push_token("D"), "tok-d")

    def test_create_group_requires_name(self):
        response = self.call({"identity": "D"})

        self.assertError(response, 400, "INVALID_ARGUMENT")
        self.assertIn("group_name", response.get_json()["error"]["message"])


class TestMainJoinGroup(MainTestBase):
    function_name = "join_group"

    @patch("main.get_db_client")
    def test_join_group(self, mock_get_db):
        mock_get_db.return_value = self.db

        response = self.call(
            {"identity": "D", "groupCode": self.group.lower(), "pushToken": "tok-d"}
        )

        self.assertEqual(response.status_code, 200, response.get_data(as_text=True))
        self.assertEqual(response.get_json()["result"]["groupCode"], self.group)
        self.assertIn("D", self.db.get_group(self.group).members)

    @patch("main.get_db_client")
    def test_join_missing_group(self, mock_get_db):
        mock_get_db.return_value = self.db

        response = self.call({"identity": "D", "groupCode": "NOPE00"})

        self.assertError(response, 404, "NOT_FOUND")


class TestMainRegisterDevice(MainTestBase):
    function_name = "register_device"

    @patch("main.get_db_client")
    def test_register_device(self, mock_get_db):
        mock_get_db.return_value = self.db

        response = self.call({"identity": "A", "pushToken": "tok-new"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["result"], {"status": "success"})
        self.assertEqual(self.db.get_push_token("A"), "tok-new")

    def test_identity_with_slash(self):
        response = self.call({"identity": "a/b", "pushToken": "tok"})
        self.assertError(response, 400, "INVALID_ARGUMENT")


class TestMainSendKnock(MainTestBase):
    function_name = "send_knock"

    @patch("main.get_knock_registry")
    def test_send_knock(self, mock_get_registry):
        mock_get_registry.return_value = self.registry

        response = self.call({"identity": "A", "groupCode": self.group})

        self.assertEqual(response.status_code, 200, response.get_data(as_text=True))
        result = response.get_json()["result"]
        self.assertEqual(result["notified"], 2)
        self.assertEqual(result["delivered"], 2)
        self.assertEqual(result["failed"], 0)
        knock = self.registry.sessions.get(result["knockId"])
        self.assertEqual(knock.sender_address, "1.2.3.4")
        self.assertEqual(len(self.push.sent_of_type(KNOCK_ATTEMPT_TYPE)), 2)

    @patch("main.get_knock_registry")
    def test_send_knock_not_member(self, mock_get_registry):
        mock_get_registry.return_value = self.registry

        response = self.call({"identity": "Z", "groupCode": self.group})

        self.assertError(response, 403, "PERMISSION_DENIED")

    @patch("main.get_knock_registry")
    def test_send_knock_no_recipients(self, mock_get_registry):
        mock_get_registry.return_value = self.registry
        solo = create_mock_group(self.db, {"S": "tok-s"}, name="Solo")

        response = self.call({"identity": "S", "groupCode": solo})

        self.assertError(response, 400, "FAILED_PRECONDITION")
        self.assertEqual(self.registry.open_knocks(), 0)

    @patch("main.get_knock_registry")
    def test_send_knock_group_code_with_slash(self, mock_get_registry):
        mock_get_registry.return_value = self.registry

        response = self.call({"identity": "A", "groupCode": "AB/CD"})

        self.assertError(response, 400, "INVALID_ARGUMENT")
        self.assertEqual(self.registry.open_knocks(), 0)


class TestMainReportKnockAddress(MainTestBase):
    function_name = "report_knock_address"

    @patch("main.get_knock_registry")
    def test_report_match_and_mismatch(self, mock_get_registry):
        mock_get_registry.return_value = self.registry
        knock_id = self.registry.initiate_knock("A", self.group, "1.2.3.4").knock_id

        response = self.call({"identity": "B", "knockId": knock_id})
        self.assertEqual(response.status_code, 200, response.get_data(as_text=True))
        self.assertEqual(
            response.get_json()["result"], {"knockId": knock_id, "match": True}
        )

        response = self.call(
            {"identity": "C", "knockId": knock_id},
            headers={"X-Forwarded-For": "9.9.9.9"},
        )
        self.assertFalse(response.get_json()["result"]["match"])

        self.clock.advance(2)
        self.scheduler.run_due(2)
        self.assertEqual(
            [p.push_token for p in self.push.sent_of_type(CONFIRMED_KNOCK_TYPE)],
            ["tok-b"],
        )

    @patch("main.get_knock_registry")
    def test_report_unknown_knock(self, mock_get_registry):
        mock_get_registry.return_value = self.registry

        response = self.call({"identity": "B", "knockId": "missing"})

        self.assertError(response, 404, "NOT_FOUND")

    def test_report_requires_knock_id(self):
        response = self.call({"identity": "B"})
        self.assertError(response, 400, "INVALID_ARGUMENT")


if __name__ == "__main__":
    unittest.main()
