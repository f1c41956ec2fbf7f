import unittest
from unittest.mock import patch

from firebase_admin import exceptions

from backend.push import FcmPushGateway, InMemoryPushGateway, build_message
from shared.api import confirmed_knock_payload, knock_attempt_payload


class BuildMessageTests(unittest.TestCase):
    def test_attempt_is_data_only(self):
        message = build_message("tok", knock_attempt_payload("k1", "ABC123"))

        self.assertEqual(message.token, "tok")
        self.assertIsNone(message.notification)
        self.assertEqual(
            message.data,
            {"type": "knock-attempt", "knockId": "k1", "groupCode": "ABC123"},
        )
        self.assertEqual(message.android.priority, "high")
        self.assertTrue(message.apns.payload.aps.content_available)

    def test_confirmed_is_visible(self):
        message = build_message("tok", confirmed_knock_payload("ABC123"))

        self.assertIsNotNone(message.notification)
        self.assertEqual(message.notification.body, "Someone is at the door!")
        self.assertEqual(message.data["type"], "confirmed-knock")
        self.assertIn("timestamp", message.data)


class FcmPushGatewayTests(unittest.TestCase):
    @patch("backend.push.messaging.send")
    def test_send_success(self, mock_send):
        mock_send.return_value = "projects/p/messages/1"

        result = FcmPushGateway().send("tok", knock_attempt_payload("k1", "ABC123"))

        self.assertTrue(result.success)
        self.assertEqual(result.message_id, "projects/p/messages/1")
        message = mock_send.call_args.args[0]
        self.assertEqual(message.token, "tok")
        self.assertIsNone(mock_send.call_args.kwargs["app"])

    @patch("backend.push.messaging.send")
    def test_send_failure_is_returned(self, mock_send):
        mock_send.side_effect = exceptions.NotFoundError("Requested entity was not found.")

        with self.assertLogs("backend.push", level="WARNING"):
            result = FcmPushGateway().send("tok", confirmed_knock_payload("ABC123"))

        self.assertFalse(result.success)
        self.assertIn("not found", result.error)


class InMemoryPushGatewayTests(unittest.TestCase):
    def test_records_and_fails(self):
        gateway = InMemoryPushGateway(failing_tokens={"bad"})

        self.assertTrue(gateway.send("good", knock_attempt_payload("k1", "G")).success)
        self.assertFalse(gateway.send("bad", knock_attempt_payload("k1", "G")).success)

        self.assertEqual([p.push_token for p in gateway.sent], ["good"])
        self.assertEqual(len(gateway.sent_of_type("knock-attempt")), 1)

        gateway.reset()
        self.assertEqual(gateway.sent, [])
        self.assertEqual(gateway.failing_tokens, set())


if __name__ == "__main__":
    unittest.main()
