"""Constants shared by the archive session and the codec."""
from typing import Literal, TypeAlias

# Session modes
UNSET: str = 'Unset'
READING: str = 'Reading'
WRITING: str = 'Writing'

# Mode hints accepted by ZipArchive.set_archive
AUTO: str = 'Auto'
READ: str = 'Read'
WRITE: str = 'Write'

SessionModes: TypeAlias = Literal['Unset', 'Reading', 'Writing']
ModeHints: TypeAlias = Literal['Auto', 'Read', 'Write']

# Names of compression methods that can be unpacked. Only STORED and DEFLATE are used for writing.
STORED: str = 'Stored'
DEFLATE: str = 'Deflate'
BZIP: str = 'BZIP2'
ZSTANDART: str = 'Zstandart'

COMPRESSION_FROM_STR: dict[str, int] = {
    STORED: 0,
    DEFLATE: 8,
    BZIP: 12,
    ZSTANDART: 93
}
COMPRESSION_FROM_INT: dict[int, str] = {v: k for k, v in COMPRESSION_FROM_STR.items()}

ZIP_SUFFIX: str = '.zip'
# Archive name used when the items sit directly in the filesystem root
DEFAULT_ARCHIVE_NAME: str = 'archive'
SIGNATURE: bytes = b'PK'

# Payloads of this size or smaller are stored as is
STORE_THRESHOLD: int = 40
DEFLATE_LEVEL: int = 6

INT32_MAX: int = 4_294_967_295
