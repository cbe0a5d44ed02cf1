from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ._pathtools import is_folder_path, is_file_path
from .constants import COMPRESSION_FROM_INT


@dataclass
class EntryStat:
    """Information about a single entry of the archive.

    **Attributes**:
        * path (`str`): Path of the entry inside the archive. Folders end with '/'.
        Empty if the entry doesn't exist.
        * index (`int`): Position of the entry in the archive. -1 if the entry doesn't exist.
        * compressed_size (`int`): Compressed size of the entry.
        * uncompressed_size (`int`): Uncompressed size of the entry.
        * last_mod_time (`datetime`, optional): Datetime of last modification of the entry.
        None if time is unknown.
        * compression_method (`int`): Zip compression method id.
        * crc (`int`): CRC of the uncompressed data.
    """

    path: str = ''
    index: int = -1
    compressed_size: int = 0
    uncompressed_size: int = 0
    last_mod_time: Optional[datetime] = None
    compression_method: int = 0
    crc: int = 0

    @property
    def is_valid(self) -> bool:
        return self.path != ''

    @property
    def is_dir(self) -> bool:
        return is_folder_path(self.path)

    @property
    def compression(self) -> str:
        """Name of the compression method, 'Unknown' if it can't be unpacked."""
        return COMPRESSION_FROM_INT.get(self.compression_method, 'Unknown')


@dataclass
class BufferedFile:
    """Memory resident entry.

    **Attributes**:
        * name (`str`): Path of the entry inside the archive.
        * data (`bytes`, optional): Content of the file. None for folders.
        * last_mod_time (`datetime`, optional): Datetime of last modification.
        None means current time when added, unknown when extracted.

    A folder is represented by a name ending with '/' and no data, which is
    different from an empty file (``data == b''``).
    """

    name: str
    data: Optional[bytes] = None
    last_mod_time: Optional[datetime] = None

    @property
    def is_folder(self) -> bool:
        return is_folder_path(self.name)

    @property
    def is_file(self) -> bool:
        return is_file_path(self.name)
