"""
Unit tests for SearchPath membership edits.
"""

import sys
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from course_setup.core.search_path import SearchPath

SHIM = "/course/utils/hack-hopper"


class TestSearchPath(unittest.TestCase):

    def test_parse_drops_empty_entries(self):
        self.assertEqual(SearchPath.parse("a::b:").entries, ["a", "b"])
        self.assertEqual(len(SearchPath.parse("")), 0)
        self.assertEqual(len(SearchPath.parse(None)), 0)

    def test_remove_in_every_position(self):
        cases = {
            SHIM: "",
            f"{SHIM}:/x": "/x",
            f"/x:{SHIM}": "/x",
            f"/x:{SHIM}:/y": "/x:/y",
            f"{SHIM}:/x:{SHIM}": "/x",
        }
        for value, expected in cases.items():
            with self.subTest(value=value):
                self.assertEqual(SearchPath.parse(value).remove(SHIM).render(), expected)

    def test_remove_matches_whole_entries_only(self):
        value = f"{SHIM}-old:/x/{SHIM}"
        self.assertEqual(SearchPath.parse(value).remove(SHIM).render(), value)

    def test_prepend_is_idempotent(self):
        path = SearchPath.parse("/x").prepend(SHIM)
        self.assertEqual(path.prepend(SHIM).render(), f"{SHIM}:/x")

    def test_prepend_to_empty(self):
        self.assertEqual(SearchPath().prepend(SHIM).render(), SHIM)

    def test_append_is_idempotent(self):
        path = SearchPath.parse("/x").append("/y").append("/y")
        self.assertEqual(path.entries, ["/x", "/y"])

    def test_edits_return_new_objects(self):
        original = SearchPath.parse("/x")
        original.prepend(SHIM)
        self.assertNotIn(SHIM, original)


if __name__ == '__main__':
    unittest.main()
