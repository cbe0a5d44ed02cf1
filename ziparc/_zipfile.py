"""Raw zip records.
See https://pkware.cachefly.net/webdocs/casestudies/APPNOTE.TXT for full documentation.
"""
from dataclasses import dataclass
from datetime import date, time, datetime
from typing import BinaryIO, Optional

from .constants import INT32_MAX
from .exceptions import BadFile

LOCAL_HEADER_SIGNATURE: bytes = b'PK\x03\x04'
CD_HEADER_SIGNATURE: bytes = b'PK\x01\x02'
CD_END_SIGNATURE: bytes = b'PK\x05\x06'

EFS_BIT: int = 11  # Language encoding flag
ZIP64_EXTRA_ID: int = 0x0001


def _read(file: BinaryIO, size: int) -> bytes:
    data = file.read(size)
    if len(data) != size:
        raise BadFile('Unexpected end of archive.')
    return data


def decode_bit_flag(raw: bytes) -> str:
    # Bit N of the flag is character N of the string
    return "".join("".join(format(bit, '0>8b')[::-1]) for bit in raw)


def encode_bit_flag(bit_flag: str) -> bytes:
    return int(bit_flag[::-1], 2).to_bytes(2, 'little')


def decode_filename(raw: bytes, bit_flag: str, encoding: str) -> str:
    try:
        return raw.decode('utf-8' if bit_flag[EFS_BIT] == '1' else encoding)
    except UnicodeDecodeError as e:
        raise BadFile(f'Could not decode entry name {raw!r}.') from e


def dos_to_datetime(last_mod_time: int, last_mod_date: int) -> Optional[datetime]:
    """Convert MS-DOS time and date to datetime. Returns None if the value is unset or invalid."""

    if last_mod_date == 0:
        return None
    # This conversion is based on java8 source code.
    try:
        decoded_time = time((last_mod_time >> 11) & 0x1F, (last_mod_time >> 5) & 0x3F,
                            (last_mod_time << 1) & 0x3E)
        decoded_date = date((last_mod_date >> 9) + 1980, (last_mod_date >> 5) & 0xF,
                            last_mod_date & 0x1F)
    except ValueError:
        return None
    return datetime.combine(decoded_date, decoded_time)


def datetime_to_dos(value: datetime) -> tuple[bytes, bytes]:
    """Convert datetime to MS-DOS (time, date) pair. Years outside 1980..2107 are clamped."""

    if value.year < 1980:
        value = datetime(1980, 1, 1)
    elif value.year > 2107:
        value = datetime(2107, 12, 31, 23, 59, 58)
    dos: int = ((value.year - 1980) << 25 | value.month << 21 | value.day << 16 |
                value.hour << 11 | value.minute << 5 | value.second >> 1)
    raw = dos.to_bytes(4, 'little')
    return raw[:2], raw[2:]


@dataclass
class LocalHeader:
    """Local file header. Entry data follows it directly in the archive."""

    version_needed_to_exctract: int
    bit_flag: str
    compression_method: int
    last_mod_time: bytes
    last_mod_date: bytes
    crc: int
    compressed_size: int
    uncompressed_size: int
    filename: str
    extra_field: bytes

    @classmethod
    def __init_raw__(cls, file: BinaryIO, encoding: str):
        """Parse the header. Signature must be already consumed."""

        version_needed_to_exctract = int.from_bytes(_read(file, 2), 'little')
        bit_flag = decode_bit_flag(_read(file, 2))
        compression_method = int.from_bytes(_read(file, 2), 'little')
        last_mod_time = _read(file, 2)
        last_mod_date = _read(file, 2)
        crc = int.from_bytes(_read(file, 4), 'little')
        compressed_size = int.from_bytes(_read(file, 4), 'little')
        uncompressed_size = int.from_bytes(_read(file, 4), 'little')
        filename_length = int.from_bytes(_read(file, 2), 'little')
        extra_field_length = int.from_bytes(_read(file, 2), 'little')
        filename = decode_filename(_read(file, filename_length), bit_flag, encoding)
        extra_field = _read(file, extra_field_length)

        return cls(
            version_needed_to_exctract,
            bit_flag,
            compression_method,
            last_mod_time,
            last_mod_date,
            crc,
            compressed_size,
            uncompressed_size,
            filename,
            extra_field
        )

    def encode(self, encoding: str) -> bytes:
        filename = self.filename.encode('utf-8' if self.bit_flag[EFS_BIT] == '1' else encoding)
        byte_str: bytes = LOCAL_HEADER_SIGNATURE
        byte_str += self.version_needed_to_exctract.to_bytes(2, 'little')
        byte_str += encode_bit_flag(self.bit_flag)
        byte_str += self.compression_method.to_bytes(2, 'little')
        byte_str += self.last_mod_time
        byte_str += self.last_mod_date
        byte_str += self.crc.to_bytes(4, 'little')
        byte_str += self.compressed_size.to_bytes(4, 'little')
        byte_str += self.uncompressed_size.to_bytes(4, 'little')
        byte_str += len(filename).to_bytes(2, 'little')
        byte_str += len(self.extra_field).to_bytes(2, 'little')
        byte_str += filename
        byte_str += self.extra_field
        return byte_str


@dataclass
class CDHeader:
    """Contents of Central Directory Header."""

    version_made_by: int
    platform: int
    version_needed_to_exctract: int
    bit_flag: str
    compression_method: int
    last_mod_time: bytes
    last_mod_date: bytes
    crc: int
    compressed_size: int
    uncompressed_size: int
    disk_number_start: int
    internal_file_attrs: bytes
    external_file_attrs: bytes
    local_header_relative_offset: int
    filename: str
    extra_field: bytes
    comment: str

    @classmethod
    def __init_raw__(cls, file: BinaryIO, encoding: str):
        """Parse the header. Signature must be already consumed."""

        version_made_by = int.from_bytes(_read(file, 1), 'little')
        platform = int.from_bytes(_read(file, 1), 'little')
        version_needed_to_exctract = int.from_bytes(_read(file, 2), 'little')
        bit_flag = decode_bit_flag(_read(file, 2))
        compression_method = int.from_bytes(_read(file, 2), 'little')
        last_mod_time = _read(file, 2)
        last_mod_date = _read(file, 2)
        crc = int.from_bytes(_read(file, 4), 'little')
        compressed_size = int.from_bytes(_read(file, 4), 'little')
        uncompressed_size = int.from_bytes(_read(file, 4), 'little')
        file_name_length = int.from_bytes(_read(file, 2), 'little')
        extra_field_length = int.from_bytes(_read(file, 2), 'little')
        file_comment_length = int.from_bytes(_read(file, 2), 'little')
        disk_number_start = int.from_bytes(_read(file, 2), 'little')
        internal_file_attrs = _read(file, 2)
        external_file_attrs = _read(file, 4)
        local_header_relative_offset = int.from_bytes(_read(file, 4), 'little')
        filename = decode_filename(_read(file, file_name_length), bit_flag, encoding)
        extra_field = _read(file, extra_field_length)
        file_comment = _read(file, file_comment_length).decode(encoding, errors='replace')

        header = cls(
            version_made_by,
            platform,
            version_needed_to_exctract,
            bit_flag,
            compression_method,
            last_mod_time,
            last_mod_date,
            crc,
            compressed_size,
            uncompressed_size,
            disk_number_start,
            internal_file_attrs,
            external_file_attrs,
            local_header_relative_offset,
            filename,
            extra_field,
            file_comment
        )
        header._apply_zip64()
        return header

    def _apply_zip64(self) -> None:
        # Zip64 extra field only holds the values that overflowed, in this order.
        pos = 0
        while pos + 4 <= len(self.extra_field):
            header_id = int.from_bytes(self.extra_field[pos:pos + 2], 'little')
            size = int.from_bytes(self.extra_field[pos + 2:pos + 4], 'little')
            data = self.extra_field[pos + 4:pos + 4 + size]
            pos += 4 + size
            if header_id != ZIP64_EXTRA_ID:
                continue

            fields = [
                int.from_bytes(data[i:i + 8], 'little') for i in range(0, len(data) - len(data) % 8, 8)
            ]
            if self.uncompressed_size == INT32_MAX and fields:
                self.uncompressed_size = fields.pop(0)
            if self.compressed_size == INT32_MAX and fields:
                self.compressed_size = fields.pop(0)
            if self.local_header_relative_offset == INT32_MAX and fields:
                self.local_header_relative_offset = fields.pop(0)
            return

    def encode(self, encoding: str) -> bytes:
        name_encoding = 'utf-8' if self.bit_flag[EFS_BIT] == '1' else encoding
        filename = self.filename.encode(name_encoding)
        comment = self.comment.encode(name_encoding)
        byte_str: bytes = CD_HEADER_SIGNATURE
        byte_str += self.version_made_by.to_bytes(1, 'little')
        byte_str += self.platform.to_bytes(1, 'little')
        byte_str += self.version_needed_to_exctract.to_bytes(2, 'little')
        byte_str += encode_bit_flag(self.bit_flag)
        byte_str += self.compression_method.to_bytes(2, 'little')
        byte_str += self.last_mod_time
        byte_str += self.last_mod_date
        byte_str += self.crc.to_bytes(4, 'little')
        byte_str += self.compressed_size.to_bytes(4, 'little')
        byte_str += self.uncompressed_size.to_bytes(4, 'little')
        byte_str += len(filename).to_bytes(2, 'little')
        byte_str += len(self.extra_field).to_bytes(2, 'little')
        byte_str += len(comment).to_bytes(2, 'little')
        byte_str += self.disk_number_start.to_bytes(2, 'little')
        byte_str += self.internal_file_attrs
        byte_str += self.external_file_attrs
        byte_str += self.local_header_relative_offset.to_bytes(4, 'little')
        byte_str += filename
        byte_str += self.extra_field
        byte_str += comment
        return byte_str


@dataclass
class CDEnd:
    """Contents of End of Central Directory."""

    disk_num: int
    disk_num_CD: int
    total_entries: int
    total_CD_entries: int
    sizeof_CD: int
    offset: int
    comment: str

    # Fixed part of the record without signature
    SIZE = 18

    @classmethod
    def __init_raw__(cls, file: BinaryIO, encoding: str):
        """Parse the record. Signature must be already consumed."""

        disk_num = int.from_bytes(_read(file, 2), 'little')
        disk_num_CD = int.from_bytes(_read(file, 2), 'little')
        total_entries = int.from_bytes(_read(file, 2), 'little')
        total_CD_entries = int.from_bytes(_read(file, 2), 'little')
        sizeof_CD = int.from_bytes(_read(file, 4), 'little')
        offset = int.from_bytes(_read(file, 4), 'little')
        comment_length = int.from_bytes(_read(file, 2), 'little')
        # Some writers miscount the comment, don't fail on it
        comment = file.read(comment_length).decode(encoding, errors='replace')

        return cls(
            disk_num,
            disk_num_CD,
            total_entries,
            total_CD_entries,
            sizeof_CD,
            offset,
            comment
        )

    def encode(self, encoding: str) -> bytes:
        comment = self.comment.encode(encoding)
        byte_str: bytes = CD_END_SIGNATURE
        byte_str += self.disk_num.to_bytes(2, 'little')
        byte_str += self.disk_num_CD.to_bytes(2, 'little')
        byte_str += self.total_entries.to_bytes(2, 'little')
        byte_str += self.total_CD_entries.to_bytes(2, 'little')
        byte_str += self.sizeof_CD.to_bytes(4, 'little')
        byte_str += self.offset.to_bytes(4, 'little')
        byte_str += len(comment).to_bytes(2, 'little')
        byte_str += comment
        return byte_str
