import unittest

from ziparc import EntryIndex, EntryStat
from ziparc import is_folder_path, is_file_path, to_folder_path, join_path


class FakeCodec:
    """Only what EntryIndex.rebuild needs."""

    def __init__(self, paths: list[str]):
        self.paths = paths

    @property
    def count(self) -> int:
        return len(self.paths)

    def stat(self, index: int) -> EntryStat:
        return EntryStat(self.paths[index], index)


class TestPathTools(unittest.TestCase):

    def test_classification(self) -> None:
        for path in ('a', 'a/', 'a/b', 'a/b/', '/', 'a.txt', '.hidden', 'x/.y/'):
            self.assertNotEqual(is_folder_path(path), is_file_path(path))
            self.assertEqual(path.endswith('/'), is_folder_path(path))

        self.assertFalse(is_folder_path(''))
        self.assertFalse(is_file_path(''))

    def test_to_folder_path(self) -> None:
        self.assertEqual('a/', to_folder_path('a'))
        self.assertEqual('a/', to_folder_path('a/'))
        self.assertEqual('a/b/', to_folder_path('a/b'))

    def test_join_path(self) -> None:
        self.assertEqual('a/b', join_path('a', 'b'))
        self.assertEqual('a/b', join_path('a/', 'b'))
        self.assertEqual('a/b', join_path('a', '/b'))
        self.assertEqual('a/b', join_path('a/', '/b'))
        self.assertEqual('C:\\out\\b', join_path('C:\\out\\', 'b'))
        self.assertEqual('a/../b', join_path('a/..', 'b'))
        self.assertEqual('root/sub/', join_path('root/', 'sub/'))
        self.assertEqual('b', join_path('', 'b'))
        self.assertEqual('a', join_path('a', ''))


class TestEntryIndex(unittest.TestCase):

    def setUp(self) -> None:
        self.index = EntryIndex()
        for path in ('a/', 'a/x.txt', 'b/', 'b/x.txt', 'x/', 'c.txt'):
            self.assertTrue(self.index.insert(path))

    def test_insert(self) -> None:
        self.assertEqual(6, len(self.index))
        self.assertEqual(
            {'a/': 0, 'a/x.txt': 1, 'b/': 2, 'b/x.txt': 3, 'x/': 4, 'c.txt': 5},
            self.index.as_dict()
        )
        self.assertFalse(self.index.insert('b/x.txt'))
        self.assertEqual(6, len(self.index))
        self.assertTrue(self.index.insert('d.txt'))
        self.assertEqual(6, self.index.index_of('d.txt'))

    def test_find_exact(self) -> None:
        self.assertEqual(3, self.index.find('b/x.txt'))
        self.assertEqual(4, self.index.find('x/'))
        self.assertEqual(5, self.index.find('c.txt'))

    def test_find_bare_name_first_match(self) -> None:
        # Two files share the name, the first one in index order wins
        self.assertEqual(1, self.index.find('x.txt'))

    def test_find_missing(self) -> None:
        self.assertEqual(-1, self.index.find('missing.txt'))
        # Folders are never matched by bare name
        self.assertEqual(-1, self.index.find('x'))
        self.assertEqual(-1, self.index.find('a'))
        # No fallback when the name has a '/'
        self.assertEqual(-1, self.index.find('c/x.txt'))
        self.assertEqual(-1, self.index.find(''))

    def test_rebuild(self) -> None:
        self.index.rebuild(FakeCodec(['one/', 'one/two.txt', 'three.txt']))
        self.assertEqual(['one/', 'one/two.txt', 'three.txt'], list(self.index))
        self.assertEqual(2, self.index.find('three.txt'))

    def test_rebuild_stops_at_empty_name(self) -> None:
        self.index.rebuild(FakeCodec(['one.txt', '', 'three.txt']))
        self.assertEqual(['one.txt'], list(self.index))

    def test_rebuild_keeps_first_duplicate(self) -> None:
        self.index.rebuild(FakeCodec(['a.txt', 'b.txt', 'a.txt']))
        self.assertEqual({'a.txt': 0, 'b.txt': 1}, self.index.as_dict())

    def test_clear(self) -> None:
        self.index.clear()
        self.assertEqual(0, len(self.index))
        self.assertTrue(self.index.insert('a.txt'))
        self.assertEqual(0, self.index.index_of('a.txt'))


if __name__ == '__main__':
    unittest.main()
