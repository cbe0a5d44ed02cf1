import logging
from typing import Iterator

from ._base_classes import Codec
from ._pathtools import SEP, is_file_path, base_name

logger = logging.getLogger(__name__)

NOT_FOUND: int = -1


class EntryIndex:
    """Mapping of entry paths to their indexes inside the open archive.

    Index values must always match the indexes assigned by the codec, so paths are
    only inserted right after the codec has added them, in increasing order.
    """

    def __init__(self):
        self._paths: dict[str, int] = {}
        self._next: int = 0

    def __len__(self) -> int:
        return len(self._paths)

    def __contains__(self, path: object) -> bool:
        return path in self._paths

    def __iter__(self) -> Iterator[str]:
        return iter(self._paths)

    def __repr__(self) -> str:
        return f'{type(self).__name__}({self._paths!r})'

    def items(self):
        return self._paths.items()

    def as_dict(self) -> dict[str, int]:
        return dict(self._paths)

    def clear(self) -> None:
        self._paths.clear()
        self._next = 0

    def rebuild(self, codec: Codec) -> None:
        """Fill index with entries of ``codec``. Stops at the first entry without a name."""

        self.clear()
        for i in range(codec.count):
            path = codec.stat(i).path
            if path == '':
                logger.debug('Entry %d has no name, stop indexing.', i)
                break
            if path in self._paths:
                # First occurrence wins, later duplicates are unreachable by name
                logger.debug("Duplicate entry '%s' at index %d.", path, i)
            else:
                self._paths[path] = i
            self._next = i + 1

    def insert(self, path: str) -> bool:
        """Append ``path`` with the next index. Returns False if ``path`` is already present."""

        if path in self._paths:
            return False
        self._paths[path] = self._next
        self._next += 1
        return True

    def index_of(self, path: str) -> int:
        """Exact lookup. Returns -1 if ``path`` is not present."""
        return self._paths.get(path, NOT_FOUND)

    def find(self, name: str) -> int:
        """Find index of entry ``name``.

        If there's no exact match and ``name`` contains no '/', the first file entry
        with the same file name is returned. Folders are never matched this way.
        Returns -1 if nothing is found.
        """

        index = self._paths.get(name)
        if index is not None:
            return index

        if SEP not in name:
            for path, index in self._paths.items():
                if is_file_path(path) and base_name(path) == name:
                    return index

        return NOT_FOUND
