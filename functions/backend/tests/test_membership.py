import unittest

from backend.db import InMemoryDbClient
from backend.errors import GroupNotFoundError
from backend.membership import GroupMembershipResolver
from main_testing_utils import create_mock_group


class GroupMembershipResolverTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.resolver = GroupMembershipResolver(self.db)
        self.group = create_mock_group(self.db, {"A": None, "B": None, "C": None})

    def test_is_member(self):
        self.assertTrue(self.resolver.is_member(self.group, "A"))
        self.assertFalse(self.resolver.is_member(self.group, "Z"))

    def test_other_members_excludes_identity(self):
        self.assertEqual(self.resolver.other_members(self.group, "A"), {"B", "C"})

    def test_other_members_of_non_member_is_everyone(self):
        self.assertEqual(
            self.resolver.other_members(self.group, "Z"), {"A", "B", "C"}
        )

    def test_other_members_may_be_empty(self):
        solo = create_mock_group(self.db, {"A": None}, name="Solo")
        self.assertEqual(self.resolver.other_members(solo, "A"), set())

    def test_missing_group_raises(self):
        with self.assertRaises(GroupNotFoundError):
            self.resolver.is_member("MISSING", "A")
        with self.assertRaises(GroupNotFoundError):
            self.resolver.other_members("MISSING", "A")

    def test_reads_latest_membership(self):
        self.assertTrue(self.resolver.is_member(self.group, "B"))
        self.db.remove_member(self.group, "B")
        self.assertFalse(self.resolver.is_member(self.group, "B"))

        self.db.add_member(self.group, "D", "5.6.7.8")
        self.assertEqual(self.resolver.other_members(self.group, "A"), {"C", "D"})


if __name__ == "__main__":
    unittest.main()
