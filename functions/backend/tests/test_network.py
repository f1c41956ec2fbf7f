import unittest

from backend.network import get_public_address, normalize_address


class PublicAddressTests(unittest.TestCase):
    def test_first_forwarded_hop_wins(self):
        self.assertEqual(
            get_public_address("203.0.113.7, 10.0.0.1, 10.0.0.2", "10.0.0.3"),
            "203.0.113.7",
        )

    def test_ipv4_mapped_prefix_is_stripped(self):
        self.assertEqual(get_public_address(None, "::ffff:192.0.2.4"), "192.0.2.4")
        self.assertEqual(normalize_address(" ::FFFF:192.0.2.4 "), "192.0.2.4")

    def test_falls_back_to_peer(self):
        self.assertEqual(get_public_address("", "198.51.100.2"), "198.51.100.2")
        self.assertEqual(get_public_address(" , ", "198.51.100.2"), "198.51.100.2")

    def test_untrusted_header_is_ignored(self):
        self.assertEqual(
            get_public_address(
                "203.0.113.7", "198.51.100.2", trust_forwarded_for=False
            ),
            "198.51.100.2",
        )

    def test_unknown(self):
        self.assertEqual(get_public_address(None, None), "unknown")

    def test_ipv6_is_kept_verbatim(self):
        self.assertEqual(get_public_address("2001:db8::1", None), "2001:db8::1")


if __name__ == "__main__":
    unittest.main()
