from abc import abstractmethod, ABCMeta
from datetime import datetime
from os import PathLike
from types import TracebackType
from typing import Optional, Literal, Self

from ._dataclasses import EntryStat


class Codec(metaclass=ABCMeta):
    """Handle of a single open archive. Methods that should be implemented in any archive codec.

    Codec raises ``ziparc.exceptions`` on failure, the session decides what to do with them.
    """

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        exc_traceback: TracebackType | None,
    ) -> None:
        if self.mode == 'w' and exc_type is None:
            self.finalize()
        self.close()

    @property
    @abstractmethod
    def mode(self) -> Optional[Literal['r', 'w']]:
        """'r' for reading, 'w' for writing, None if handle is closed."""

    @property
    @abstractmethod
    def count(self) -> int:
        """Number of entries in the archive."""

    @abstractmethod
    def stat(self, index: int, /) -> EntryStat:
        """Get information about entry ``index``.

        Never raises. Returns empty ``EntryStat`` (path is an empty string) if index is invalid.
        """

    @abstractmethod
    def add_file(self, entry_path: str, source: str | PathLike[str], /) -> None:
        """Add file ``source`` from disk as ``entry_path``. Modification time is taken from the file."""

    @abstractmethod
    def add_bytes(self, entry_path: str, data: bytes, /, last_mod_time: Optional[datetime] = None) -> None:
        """Add ``data`` as ``entry_path``. If ``last_mod_time`` is None, current time is used.

        Folder entries (path ends with '/') must have empty data.
        """

    @abstractmethod
    def extract_to_bytes(self, index: int, /) -> bytes:
        """Decompress entry ``index`` and return its data."""

    @abstractmethod
    def extract_to_file(self, index: int, path: str | PathLike[str], /) -> None:
        """Decompress entry ``index`` into file ``path``. Parent folder must exist."""

    @abstractmethod
    def finalize(self) -> None:
        """Write central directory. Required before ``close`` in writing mode."""

    @abstractmethod
    def close(self) -> None:
        """Release all resources. Calling it on a closed handle does nothing."""
