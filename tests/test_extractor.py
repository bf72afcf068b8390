"""
Tests for the archive extractor and the binary lookup.
"""
import subprocess
from unittest.mock import Mock, patch

import pytest

from byte_sql_backup.binaries import find_binary
from byte_sql_backup.errors import ExtractionError, FileAccessError, MissingDependencyError
from byte_sql_backup.extractor import ArchiveExtractor, parse_listing

GUNZIP_LISTING = '''         compressed        uncompressed  ratio uncompressed_name
               2048               10240  80.2% /tmp/dump.sql
'''


def completed(stdout='', stderr='', returncode=0):
    return Mock(stdout=stdout, stderr=stderr, returncode=returncode)


@pytest.fixture
def archive(tmp_path):
    path = tmp_path / 'dump_20240101.tar.gz'
    path.write_bytes(b'\x1f\x8b')
    return str(path)


class TestParseListing:

    def test_header_is_skipped_and_last_token_kept(self):
        assert parse_listing('Length Date Time Name\n  10240 2024-01-01 00:00 dump.sql\n') == ['dump.sql']

    def test_gunzip_listing(self):
        assert parse_listing(GUNZIP_LISTING) == ['/tmp/dump.sql']

    def test_blank_lines_and_empty_output(self):
        assert parse_listing('Length Date Time Name\n\n') == []
        assert parse_listing('') == []


class TestArchiveExtractor:

    @patch('byte_sql_backup.extractor.subprocess.run')
    @patch('byte_sql_backup.extractor.find_binary', return_value='/bin/gunzip')
    def test_list_files(self, find, run, archive):
        run.return_value = completed(GUNZIP_LISTING)

        assert ArchiveExtractor().list_files(archive) == ['/tmp/dump.sql']
        assert run.call_args[0][0] == ['/bin/gunzip', '-l', archive]
        find.assert_called_with('gunzip')

    @patch('byte_sql_backup.extractor.subprocess.run')
    @patch('byte_sql_backup.extractor.find_binary', return_value='/bin/gunzip')
    def test_extract_keeps_archive(self, find, run, archive):
        run.return_value = completed()

        ArchiveExtractor().extract(archive)

        assert run.call_args[0][0] == ['/bin/gunzip', '-fk', archive]

    @patch('byte_sql_backup.extractor.subprocess.run')
    @patch('byte_sql_backup.extractor.find_binary', return_value='/bin/gunzip')
    def test_failing_tool(self, find, run, archive):
        run.return_value = completed(stderr='gunzip: unexpected end of file', returncode=1)

        with pytest.raises(ExtractionError, match='unexpected end of file'):
            ArchiveExtractor().extract(archive)

    @patch('byte_sql_backup.extractor.subprocess.run')
    def test_missing_archive(self, run, tmp_path):
        with pytest.raises(FileAccessError):
            ArchiveExtractor().list_files(str(tmp_path / 'missing.tar.gz'))
        run.assert_not_called()

    @patch('byte_sql_backup.extractor.subprocess.run')
    def test_directory_is_not_an_archive(self, run, tmp_path):
        with pytest.raises(FileAccessError):
            ArchiveExtractor().extract(str(tmp_path))
        run.assert_not_called()

    @patch('byte_sql_backup.binaries.shutil.which', return_value=None)
    def test_missing_binary(self, which, archive):
        with pytest.raises(MissingDependencyError, match='no-such-gunzip'):
            ArchiveExtractor('no-such-gunzip').list_files(archive)


class TestFindBinary:

    @patch('byte_sql_backup.binaries.shutil.which', return_value='/usr/bin/gunzip')
    def test_lookup_is_cached(self, which):
        assert find_binary('gunzip') == '/usr/bin/gunzip'
        assert find_binary('gunzip') == '/usr/bin/gunzip'
        which.assert_called_once_with('gunzip')

    @patch('byte_sql_backup.binaries.shutil.which', return_value=None)
    def test_missing_binary(self, which):
        with pytest.raises(MissingDependencyError):
            find_binary('gunzip')


def test_subprocess_is_invoked_without_shell(archive):
    with patch('byte_sql_backup.extractor.find_binary', return_value='/bin/gunzip'), \
            patch('byte_sql_backup.extractor.subprocess.run', return_value=completed()) as run:
        ArchiveExtractor().extract(archive)
    assert run.call_args[1]['stdout'] == subprocess.PIPE
    assert 'shell' not in run.call_args[1]
