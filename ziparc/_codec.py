import io
import logging
import os
from datetime import datetime
from os import PathLike
from platform import system
from typing import BinaryIO, Optional, Literal
from zlib import crc32

from ._base_classes import Codec
from ._dataclasses import EntryStat
from ._pathtools import is_folder_path
from ._zip_algorythms import compress, decompress, compression_for
from ._zipfile import (
    LocalHeader, CDHeader, CDEnd, LOCAL_HEADER_SIGNATURE, CD_HEADER_SIGNATURE, CD_END_SIGNATURE,
    EFS_BIT, datetime_to_dos, dos_to_datetime
)
from .constants import INT32_MAX, SIGNATURE
from .exceptions import *

logger = logging.getLogger(__name__)

# End of central directory record may be followed by a comment of up to 65535 bytes.
MAX_TAIL_SIZE: int = len(CD_END_SIGNATURE) + CDEnd.SIZE + 65_535

# Directory and archive flags of MS-DOS attributes
DOS_DIRECTORY: int = 0x10
DOS_ARCHIVE: int = 0x20

DEFAULT_FILE_MODE: int = 0o100644
DEFAULT_DIR_MODE: int = 0o040755


def is_archive(data: bytes) -> bool:
    """Check whether ``data`` starts with zip signature. Damaged archive with a valid header still passes."""
    return bytes(data[:2]) == SIGNATURE


def is_zip_file(path: str | PathLike[str]) -> bool:
    """Check whether file ``path`` starts with zip signature."""
    try:
        with open(path, 'rb') as f:
            return is_archive(f.read(2))
    except OSError:
        return False


def _platform() -> int:
    # Only these values are relevant.
    #  0 - MS-DOS and OS/2 (FAT / VFAT / FAT32 file systems)
    #  3 - UNIX
    # 19 - OS X (Darwin)
    pl = system()
    if pl == 'Windows':
        return 0
    elif pl == 'Darwin':
        return 19
    return 3


class ZipCodec(Codec):
    """Zip archive handle. Use ``open`` or ``open_memory`` to initialise it.

    In writing mode entries are written to the stream as soon as they are added,
    central directory is kept in memory until ``finalize``.
    """

    def __init__(
            self,
            stream: BinaryIO,
            mode: Literal['r', 'w'],
            encoding: str = 'utf-8'
    ):
        self._stream: Optional[BinaryIO] = stream
        self._mode: Optional[Literal['r', 'w']] = mode
        self._encoding: str = encoding
        self._headers: list[CDHeader] = []
        self._offset: int = 0  # Where the next local header will be written
        self._finalized: bool = False
        self._broken: bool = False
        self._platform: int = _platform()

    @classmethod
    def open(
            cls,
            path: str | PathLike[str],
            mode: Literal['r', 'w'] = 'r',
            encoding: str = 'utf-8'
    ) -> 'ZipCodec':
        """Open zip file ``path`` for reading ('r') or create a new one for writing ('w').

        Writing always truncates an existing file.

        Raises WrongPath if ``path`` is not an existing zip file in reading mode,
        BadFile if its central directory is damaged and IoFailure if the file couldn't be opened.
        """

        if mode == 'r':
            if not is_zip_file(path):
                raise WrongPath(f'{os.fspath(path)!r} is not a zip file.')
            try:
                stream: BinaryIO = open(path, 'rb')
            except OSError as e:
                raise IoFailure(f'Could not open {os.fspath(path)!r}: {e}') from e

            codec = cls(stream, 'r', encoding)
            try:
                codec._read_central_directory()
            except BaseException:
                codec.close()
                raise
            return codec
        elif mode == 'w':
            try:
                stream = open(path, 'wb')
            except OSError as e:
                raise IoFailure(f'Could not create {os.fspath(path)!r}: {e}') from e
            return cls(stream, 'w', encoding)

        raise ValueError(f"Expected mode to be 'r' or 'w', got {mode!r} instead.")

    @classmethod
    def open_memory(cls, data: bytes, encoding: str = 'utf-8') -> 'ZipCodec':
        """Open in-memory archive for reading. Raises NotAnArchive if ``data`` has no zip signature."""

        if not is_archive(data):
            raise NotAnArchive('Buffer should be in .ZIP format.')
        codec = cls(io.BytesIO(bytes(data)), 'r', encoding)
        try:
            codec._read_central_directory()
        except BaseException:
            codec.close()
            raise
        return codec

    @property
    def mode(self) -> Optional[Literal['r', 'w']]:
        return self._mode

    @property
    def count(self) -> int:
        return len(self._headers)

    @property
    def finalized(self) -> bool:
        return self._finalized

    @property
    def closed(self) -> bool:
        return self._mode is None

    def _read_central_directory(self) -> None:
        stream = self._stream
        try:
            size = stream.seek(0, io.SEEK_END)
            tail_start = max(0, size - MAX_TAIL_SIZE)
            stream.seek(tail_start)
            tail = stream.read()
        except OSError as e:
            raise IoFailure(f'Could not read archive: {e}') from e

        pos = tail.rfind(CD_END_SIGNATURE)
        if pos == -1 or len(tail) - pos < len(CD_END_SIGNATURE) + CDEnd.SIZE:
            raise BadFile('End of central directory not found.')

        end = CDEnd.__init_raw__(io.BytesIO(tail[pos + len(CD_END_SIGNATURE):]), self._encoding)
        if end.disk_num != 0 or end.disk_num_CD != 0:
            raise UnsupportedMethod('Multi-volume archives are not supported.')
        if end.offset == INT32_MAX or end.sizeof_CD == INT32_MAX:
            raise UnsupportedMethod('ZIP64 archives are not supported.')

        # Data prepended to the archive (self-extracting stubs) shifts all offsets
        end_position = tail_start + pos
        shift = end_position - end.sizeof_CD - end.offset
        if shift < 0:
            raise BadFile('Central directory is out of archive bounds.')

        try:
            stream.seek(end.offset + shift)
            cd = stream.read(end.sizeof_CD)
        except OSError as e:
            raise IoFailure(f'Could not read archive: {e}') from e
        if len(cd) != end.sizeof_CD:
            raise BadFile('Central directory is truncated.')

        cd_stream = io.BytesIO(cd)
        while cd_stream.read(4) == CD_HEADER_SIGNATURE:
            header = CDHeader.__init_raw__(cd_stream, self._encoding)
            header.local_header_relative_offset += shift
            self._headers.append(header)

        if len(self._headers) != end.total_CD_entries and end.total_CD_entries != 0xFFFF:
            logger.debug('Central directory declares %d entries, %d found.', end.total_CD_entries, len(self._headers))

    def _check_mode(self, mode: Literal['r', 'w']) -> None:
        if self._mode is None:
            raise WrongMode('Archive is closed.')
        if self._mode != mode:
            if mode == 'r':
                raise WrongMode('Archive is opened for writing.')
            raise WrongMode('Archive is opened for reading.')

    def _check_writable(self) -> None:
        self._check_mode('w')
        if self._finalized:
            raise WrongMode('Archive is already finalized.')
        if self._broken:
            raise IoFailure('Archive is damaged by a previous write error.')

    def _header(self, index: int) -> CDHeader:
        if not 0 <= index < len(self._headers):
            raise NotFound(f'Entry index {index} is out of range.')
        return self._headers[index]

    def stat(self, index: int, /) -> EntryStat:
        if not 0 <= index < len(self._headers):
            return EntryStat()

        header = self._headers[index]
        return EntryStat(
            header.filename,
            index,
            header.compressed_size,
            header.uncompressed_size,
            dos_to_datetime(
                int.from_bytes(header.last_mod_time, 'little'),
                int.from_bytes(header.last_mod_date, 'little')
            ),
            header.compression_method,
            header.crc
        )

    def add_file(self, entry_path: str, source: str | PathLike[str], /) -> None:
        self._check_writable()
        if is_folder_path(entry_path):
            raise WrongPath(f"Folder entry '{entry_path}' can't hold data of '{os.fspath(source)}'.")
        try:
            with open(source, 'rb') as f:
                data = f.read()
            _stat = os.stat(source)
        except OSError as e:
            raise IoFailure(f'Could not read {os.fspath(source)!r}: {e}') from e

        self._write_entry(entry_path, data, datetime.fromtimestamp(_stat.st_mtime), _stat.st_mode)

    def add_bytes(self, entry_path: str, data: bytes, /, last_mod_time: Optional[datetime] = None) -> None:
        self._check_writable()
        if is_folder_path(entry_path) and data:
            raise WrongPath(f"Folder entry '{entry_path}' can't hold data.")

        self._write_entry(entry_path, bytes(data), last_mod_time or datetime.now(), None)

    def _write_entry(self, entry_path: str, data: bytes, last_mod_time: datetime, st_mode: Optional[int]) -> None:
        if entry_path == '':
            raise WrongPath('Entry path is empty.')

        is_dir = is_folder_path(entry_path)
        method = 0 if is_dir else compression_for(len(data))
        crc = crc32(data)
        contents = compress(method, data)

        if len(data) >= INT32_MAX or len(contents) >= INT32_MAX or self._offset >= INT32_MAX:
            raise IoFailure('ZIP64 archives are not supported, entry is too large.')

        v: int = 20 if method == 8 or is_dir else 10

        bit_flag: list[str] = list('0000000000000000')
        if not entry_path.isascii() and self._encoding.lower().replace('-', '').replace('_', '') == 'utf8':
            bit_flag[EFS_BIT] = '1'

        mod_time, mod_date = datetime_to_dos(last_mod_time)

        external_attrs = DOS_DIRECTORY if is_dir else DOS_ARCHIVE
        if self._platform != 0:
            if st_mode is None:
                st_mode = DEFAULT_DIR_MODE if is_dir else DEFAULT_FILE_MODE
            external_attrs |= (st_mode & 0xFFFF) << 16

        local = LocalHeader(
            version_needed_to_exctract=v,
            bit_flag="".join(bit_flag),
            compression_method=method,
            last_mod_time=mod_time,
            last_mod_date=mod_date,
            crc=crc,
            compressed_size=len(contents),
            uncompressed_size=len(data),
            filename=entry_path,
            extra_field=b''
        )
        cd_header = CDHeader(
            version_made_by=63,
            platform=self._platform,
            version_needed_to_exctract=v,
            bit_flag="".join(bit_flag),
            compression_method=method,
            last_mod_time=mod_time,
            last_mod_date=mod_date,
            crc=crc,
            compressed_size=len(contents),
            uncompressed_size=len(data),
            disk_number_start=0,
            internal_file_attrs=b'\x00\x00',
            external_file_attrs=external_attrs.to_bytes(4, 'little'),
            local_header_relative_offset=self._offset,
            filename=entry_path,
            extra_field=b'',
            comment=''
        )

        try:
            raw = local.encode(self._encoding)
        except UnicodeEncodeError as e:
            raise WrongPath(f"Entry path '{entry_path}' can't be encoded with {self._encoding}.") from e

        try:
            self._stream.write(raw)
            self._stream.write(contents)
        except OSError as e:
            self._broken = True
            raise IoFailure(f"Could not write entry '{entry_path}': {e}") from e

        self._headers.append(cd_header)
        self._offset += len(raw) + len(contents)

    def extract_to_bytes(self, index: int, /) -> bytes:
        self._check_mode('r')
        header = self._header(index)
        if header.bit_flag[0] == '1':
            raise UnsupportedMethod(f"Entry '{header.filename}' is encrypted, encryption is not supported.")

        try:
            self._stream.seek(header.local_header_relative_offset)
            if self._stream.read(4) != LOCAL_HEADER_SIGNATURE:
                raise BadFile(f"Local header of entry '{header.filename}' not found.")
            # Sizes may be zero in local header when data descriptor is used, central directory is trusted instead
            LocalHeader.__init_raw__(self._stream, self._encoding)
            contents = self._stream.read(header.compressed_size)
        except OSError as e:
            raise IoFailure(f"Could not read entry '{header.filename}': {e}") from e

        if len(contents) != header.compressed_size:
            raise BadFile(f"Entry '{header.filename}' is truncated.")

        data = decompress(header.compression_method, header.uncompressed_size, contents)
        if crc32(data) != header.crc:
            raise BadFile(f"Entry '{header.filename}' is corrupted or damaged.")
        return data

    def extract_to_file(self, index: int, path: str | PathLike[str], /) -> None:
        data = self.extract_to_bytes(index)
        try:
            with open(path, 'wb') as f:
                f.write(data)
            last_mod_time = self.stat(index).last_mod_time
            if last_mod_time is not None:
                timestamp = last_mod_time.timestamp()
                os.utime(path, (timestamp, timestamp))
        except OSError as e:
            raise IoFailure(f'Could not write {os.fspath(path)!r}: {e}') from e

    def finalize(self) -> None:
        if self._finalized:
            return
        self._check_writable()

        if len(self._headers) > 0xFFFF:
            raise IoFailure('ZIP64 archives are not supported, too many entries.')

        cd = b''.join(header.encode(self._encoding) for header in self._headers)
        endof_cd = CDEnd(
            disk_num=0,
            disk_num_CD=0,
            total_entries=len(self._headers),
            total_CD_entries=len(self._headers),
            sizeof_CD=len(cd),
            offset=self._offset,
            comment=''
        )
        try:
            self._stream.write(cd)
            self._stream.write(endof_cd.encode(self._encoding))
            self._stream.flush()
        except OSError as e:
            self._broken = True
            raise IoFailure(f'Could not write central directory: {e}') from e
        self._finalized = True

    def close(self) -> None:
        if self._stream is None:
            return
        try:
            self._stream.close()
        except OSError as e:
            raise IoFailure(f'Could not close archive: {e}') from e
        finally:
            self._stream = None
            self._mode = None
