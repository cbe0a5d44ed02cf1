import os
import tempfile
import unittest
import zipfile
from datetime import datetime

from ziparc import ZipCodec, is_archive, is_zip_file
from ziparc.exceptions import *

LOREM: bytes = (
    b'Lorem ipsum dolor sit amet. Id eveniet omnis vel magnam molestiae eum maxime dolor ad ipsam '
    b'veritatis a voluptas expedita et galisum expedita est suscipit soluta. '
) * 20


class TestCodecWrite(unittest.TestCase):

    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp: str = self._tmp.name
        self.zip_path: str = os.path.join(self.tmp, 'new.zip')

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_write_readable_by_zipfile(self) -> None:
        codec = ZipCodec.open(self.zip_path, 'w')
        codec.add_bytes('docs/', b'')
        codec.add_bytes('docs/lorem.txt', LOREM)
        codec.add_bytes('small.txt', b'tiny')
        codec.add_bytes('empty.txt', b'')
        codec.finalize()
        codec.close()

        self.assertTrue(is_zip_file(self.zip_path))
        with zipfile.ZipFile(self.zip_path) as z:
            self.assertIsNone(z.testzip())
            self.assertEqual(['docs/', 'docs/lorem.txt', 'small.txt', 'empty.txt'], z.namelist())
            self.assertTrue(z.getinfo('docs/').is_dir())
            self.assertEqual(LOREM, z.read('docs/lorem.txt'))
            self.assertEqual(b'tiny', z.read('small.txt'))
            self.assertEqual(b'', z.read('empty.txt'))
            self.assertEqual(zipfile.ZIP_DEFLATED, z.getinfo('docs/lorem.txt').compress_type)
            self.assertEqual(zipfile.ZIP_STORED, z.getinfo('small.txt').compress_type)
            self.assertEqual(zipfile.ZIP_STORED, z.getinfo('docs/').compress_type)

    def test_store_threshold(self) -> None:
        with ZipCodec.open(self.zip_path, 'w') as codec:
            codec.add_bytes('forty.bin', b'a' * 40)
            codec.add_bytes('forty_one.bin', b'a' * 41)
            self.assertEqual(0, codec.stat(0).compression_method)
            self.assertEqual(8, codec.stat(1).compression_method)

        with ZipCodec.open(self.zip_path, 'r') as codec:
            self.assertEqual(b'a' * 40, codec.extract_to_bytes(0))
            self.assertEqual(b'a' * 41, codec.extract_to_bytes(1))

    def test_add_file(self) -> None:
        source = os.path.join(self.tmp, 'source.txt')
        with open(source, 'wb') as f:
            f.write(LOREM)
        mtime = datetime(2021, 3, 4, 5, 6, 8).timestamp()
        os.utime(source, (mtime, mtime))

        with ZipCodec.open(self.zip_path, 'w') as codec:
            codec.add_file('source.txt', source)

        with ZipCodec.open(self.zip_path, 'r') as codec:
            stat = codec.stat(0)
            self.assertEqual('source.txt', stat.path)
            self.assertEqual(len(LOREM), stat.uncompressed_size)
            self.assertLess(stat.compressed_size, stat.uncompressed_size)
            self.assertEqual(datetime(2021, 3, 4, 5, 6, 8), stat.last_mod_time)
            self.assertEqual('Deflate', stat.compression)
            self.assertEqual(LOREM, codec.extract_to_bytes(0))

    def test_add_missing_file(self) -> None:
        with ZipCodec.open(self.zip_path, 'w') as codec:
            self.assertRaises(IoFailure, lambda: codec.add_file('x.txt', os.path.join(self.tmp, 'missing.txt')))
            self.assertEqual(0, codec.count)

    def test_modification_time(self) -> None:
        with ZipCodec.open(self.zip_path, 'w') as codec:
            codec.add_bytes('dated.txt', b'data', datetime(2020, 5, 17, 10, 30, 42))
            codec.add_bytes('old.txt', b'data', datetime(1970, 1, 1))

        with ZipCodec.open(self.zip_path, 'r') as codec:
            self.assertEqual(datetime(2020, 5, 17, 10, 30, 42), codec.stat(0).last_mod_time)
            # Zip can't store dates before 1980
            self.assertEqual(datetime(1980, 1, 1), codec.stat(1).last_mod_time)

    def test_non_ascii_names(self) -> None:
        with ZipCodec.open(self.zip_path, 'w') as codec:
            codec.add_bytes('папка/', b'')
            codec.add_bytes('папка/файл.txt', b'data')

        with zipfile.ZipFile(self.zip_path) as z:
            self.assertEqual(['папка/', 'папка/файл.txt'], z.namelist())

        with ZipCodec.open(self.zip_path, 'r') as codec:
            self.assertEqual('папка/файл.txt', codec.stat(1).path)

    def test_folder_with_data(self) -> None:
        with ZipCodec.open(self.zip_path, 'w') as codec:
            self.assertRaises(WrongPath, lambda: codec.add_bytes('folder/', b'data'))
            self.assertRaises(WrongPath, lambda: codec.add_bytes('', b'data'))

            source = os.path.join(self.tmp, 'source.txt')
            with open(source, 'wb') as f:
                f.write(b'payload')
            self.assertRaises(WrongPath, lambda: codec.add_file('folder/', source))
            self.assertEqual(0, codec.count)

    def test_wrong_mode(self) -> None:
        codec = ZipCodec.open(self.zip_path, 'w')
        codec.add_bytes('a.txt', b'a')
        self.assertRaises(WrongMode, lambda: codec.extract_to_bytes(0))
        self.assertFalse(codec.finalized)
        codec.finalize()
        self.assertTrue(codec.finalized)
        self.assertRaises(WrongMode, lambda: codec.add_bytes('b.txt', b'b'))
        codec.finalize()  # Second call does nothing
        codec.close()
        codec.close()
        self.assertIsNone(codec.mode)
        self.assertTrue(codec.closed)
        self.assertRaises(WrongMode, lambda: codec.add_bytes('c.txt', b'c'))

        codec = ZipCodec.open(self.zip_path, 'r')
        self.assertRaises(WrongMode, lambda: codec.add_bytes('b.txt', b'b'))
        self.assertRaises(WrongMode, codec.finalize)
        codec.close()

    def test_empty_archive(self) -> None:
        with ZipCodec.open(self.zip_path, 'w'):
            pass

        with zipfile.ZipFile(self.zip_path) as z:
            self.assertEqual([], z.namelist())
        with ZipCodec.open(self.zip_path, 'r') as codec:
            self.assertEqual(0, codec.count)


class TestCodecRead(unittest.TestCase):

    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp: str = self._tmp.name
        self.zip_path: str = os.path.join(self.tmp, 'foreign.zip')

        with zipfile.ZipFile(self.zip_path, 'w') as z:
            z.writestr('stored.txt', LOREM, compress_type=zipfile.ZIP_STORED)
            z.writestr('deflate.txt', LOREM, compress_type=zipfile.ZIP_DEFLATED)
            z.writestr('BZip2.txt', LOREM, compress_type=zipfile.ZIP_BZIP2)
            z.writestr('folder/', b'')
            z.writestr('folder/empty.txt', b'', compress_type=zipfile.ZIP_DEFLATED)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_decompression(self) -> None:
        with ZipCodec.open(self.zip_path, 'r') as codec:
            self.assertEqual(5, codec.count)
            for i in range(3):
                self.assertEqual(LOREM, codec.extract_to_bytes(i))
            self.assertEqual(b'', codec.extract_to_bytes(3))
            self.assertEqual(b'', codec.extract_to_bytes(4))
            self.assertEqual('BZIP2', codec.stat(2).compression)

    def test_stat(self) -> None:
        with ZipCodec.open(self.zip_path, 'r') as codec:
            stat = codec.stat(1)
            self.assertEqual('deflate.txt', stat.path)
            self.assertEqual(1, stat.index)
            self.assertEqual(len(LOREM), stat.uncompressed_size)
            self.assertTrue(codec.stat(3).is_dir)

            for index in (-1, 5, 100):
                stat = codec.stat(index)
                self.assertFalse(stat.is_valid)
                self.assertEqual('', stat.path)
                self.assertEqual(0, stat.uncompressed_size)
                self.assertRaises(NotFound, lambda: codec.extract_to_bytes(index))

    def test_open_memory(self) -> None:
        with open(self.zip_path, 'rb') as f:
            data = f.read()

        self.assertTrue(is_archive(data))
        with ZipCodec.open_memory(data) as codec:
            self.assertEqual(LOREM, codec.extract_to_bytes(1))

        self.assertFalse(is_archive(b'not a zip'))
        self.assertRaises(NotAnArchive, lambda: ZipCodec.open_memory(b'not a zip'))

    def test_wrong_path(self) -> None:
        text_file = os.path.join(self.tmp, 'text.txt')
        with open(text_file, 'w') as f:
            f.write('text')

        self.assertFalse(is_zip_file(text_file))
        self.assertFalse(is_zip_file(os.path.join(self.tmp, 'missing.zip')))
        self.assertRaises(WrongPath, lambda: ZipCodec.open(text_file, 'r'))
        self.assertRaises(WrongPath, lambda: ZipCodec.open(os.path.join(self.tmp, 'missing.zip'), 'r'))

    def test_truncated(self) -> None:
        with open(self.zip_path, 'rb') as f:
            data = f.read()
        # Signature is fine but the central directory is gone
        self.assertRaises(BadFile, lambda: ZipCodec.open_memory(data[:len(data) // 2]))

    def test_corrupted_entry(self) -> None:
        path = os.path.join(self.tmp, 'corrupted.zip')
        with ZipCodec.open(path, 'w') as codec:
            codec.add_bytes('good.txt', b'good data')
            codec.add_bytes('bad.txt', b'CORRUPTME')

        with open(path, 'rb') as f:
            data = bytearray(f.read())
        pos = data.find(b'CORRUPTME')
        data[pos:pos + 9] = b'CORRUPTED'

        with ZipCodec.open_memory(bytes(data)) as codec:
            self.assertEqual(b'good data', codec.extract_to_bytes(0))
            self.assertRaises(BadFile, lambda: codec.extract_to_bytes(1))

    def test_extract_to_file(self) -> None:
        out = os.path.join(self.tmp, 'out.txt')
        with ZipCodec.open(self.zip_path, 'r') as codec:
            codec.extract_to_file(1, out)
        with open(out, 'rb') as f:
            self.assertEqual(LOREM, f.read())


if __name__ == '__main__':
    unittest.main()
