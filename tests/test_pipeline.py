"""
End to end tests of the backup pipeline: resolve, fetch, extract, sanitize
and import, with the panel and the external tools replaced by fakes.
"""
import datetime
import gzip
import json
import os
import shutil
from unittest.mock import MagicMock, Mock, patch

import pytest

from byte_sql_backup.credentials import DatabaseCredentials
from byte_sql_backup.errors import DownloadIntegrityError, ExtractionError
from byte_sql_backup.extractor import ArchiveExtractor
from byte_sql_backup.models import Account, Backup
from byte_sql_backup.pipeline import run_pipeline
from byte_sql_backup.resolver import Resolver

from conftest import make_response

OVERVIEW = '''<html><body><table><tr><td>
<a href="#" onclick="toggleRegistrant('1'); return false;"><img src="r.png">&nbsp;Acme</a>
</td></tr></table></body></html>'''

DOMAINS = '<table><tr><td><a href="/d/acme.example/">acme.example</a></td></tr></table>'

BACKUPS = [{
    'database': 'acme_db',
    'filename': 'dump_20240101.tar.gz',
    'size_bytes': 2048,
    'creation_utc_datetime': '2024-01-01T00:00:00Z',
}]

DUMP = (b'CREATE TABLE `log_visitor` (`id` int);\n'
        b'INSERT INTO `log_visitor` VALUES (1),(2);\n'
        b'INSERT INTO `cms_page` VALUES (1,\'home\');\n'
        b'/*!50017 DEFINER=`acme_prod`@`%`*/ TRIGGER t;\n')

DB = DatabaseCredentials(database='acme_dev', password='pw', user='dev')


def panel(method, url, **kwargs):
    path = url.replace('https://service.example/', '')
    if path == 'protected/overzicht/':
        return make_response(text=OVERVIEW)
    if path == 'protected/overzicht/domains.cgi':
        return make_response(text=DOMAINS)
    if path == 'dbbackups/acme.example/json/':
        return make_response(text=json.dumps([{'database': 'acme_db'}]))
    if path == 'dbbackups/acme.example/acme_db/json/':
        return make_response(text=json.dumps(BACKUPS))
    if path == 'dbbackups/acme.example/acme_db/dump_20240101.tar.gz':
        return make_response(chunks=[b'\x1f' * 1024, b'\x8b' * 1024])
    return make_response(404)


@pytest.fixture
def extractor(tmp_path):
    extractor = Mock()
    extractor.list_files.return_value = ['dump.sql']
    extractor.extract.side_effect = lambda archive: (tmp_path / 'dump.sql').write_bytes(DUMP)
    return extractor


@pytest.fixture
def grep():
    with patch('byte_sql_backup.sanitizer.find_binary', return_value='/bin/grep'), \
            patch('byte_sql_backup.sanitizer.subprocess.run', return_value=Mock(returncode=0)):
        yield


class TestEndToEnd:

    def test_resolve_fetch_extract_sanitize_import(self, session, http, extractor, grep, tmp_path):
        http.request.side_effect = panel
        resolver = Resolver()
        importer = Mock()

        accounts = resolver.list_accounts(session)
        assert accounts == [Account(1, 'Acme')]
        domains = resolver.list_domains(session, accounts[0])
        assert domains == ['acme.example']
        databases = resolver.list_databases(session, domains[0])
        assert databases == ['acme_db']
        backups = resolver.latest_backups(session, domains[0], databases[0])
        assert backups == [Backup('acme.example', 'acme_db', 'dump_20240101.tar.gz', 2048,
                                  datetime.datetime(2024, 1, 1, tzinfo=datetime.timezone.utc))]

        dumps = run_pipeline(session, backups[0], DB, extractor=extractor, importer=importer,
                             staging_dir=str(tmp_path))

        dump = str(tmp_path / 'dump.sql')
        assert dumps == [dump]
        assert (tmp_path / 'dump_20240101.tar.gz').stat().st_size == 2048
        extractor.list_files.assert_called_once_with(str(tmp_path / 'dump_20240101.tar.gz'))
        extractor.extract.assert_called_once_with(str(tmp_path / 'dump_20240101.tar.gz'))
        importer.import_file.assert_called_once_with(DB, dump)
        importer.create_database_if_absent.assert_not_called()
        assert (tmp_path / 'dump.sql').read_bytes() == (
            b'CREATE TABLE `log_visitor` (`id` int);\n'
            b'INSERT INTO `cms_page` VALUES (1,\'home\');\n'
            b'/*!50017 DEFINER=`dev`@`%`*/ TRIGGER t;\n')


class TestRunPipeline:

    @pytest.fixture
    def backup(self):
        return Backup('acme.example', 'acme_db', 'dump_20240101.tar.gz', 2048,
                      datetime.datetime(2024, 1, 1, tzinfo=datetime.timezone.utc))

    def test_existing_download_is_reused(self, session, http, backup, extractor, grep, tmp_path):
        (tmp_path / backup.file_name).write_bytes(b'x' * 2048)

        run_pipeline(session, backup, DB, extractor=extractor, importer=Mock(), staging_dir=str(tmp_path))

        http.request.assert_not_called()

    def test_incomplete_download_aborts(self, session, http, backup, extractor, tmp_path):
        http.request.return_value = make_response(chunks=[b'x' * 2047])
        importer = Mock()

        with pytest.raises(DownloadIntegrityError):
            run_pipeline(session, backup, DB, extractor=extractor, importer=importer, staging_dir=str(tmp_path))
        extractor.extract.assert_not_called()
        importer.import_file.assert_not_called()

    def test_empty_archive_aborts(self, session, backup, extractor, tmp_path):
        (tmp_path / backup.file_name).write_bytes(b'x' * 2048)
        extractor.list_files.return_value = []

        with pytest.raises(ExtractionError):
            run_pipeline(session, backup, DB, extractor=extractor, importer=Mock(), staging_dir=str(tmp_path))

    def test_import_user_and_table_stripping_options(self, session, backup, extractor, grep, tmp_path):
        (tmp_path / backup.file_name).write_bytes(b'x' * 2048)

        run_pipeline(session, backup, DB, extractor=extractor, importer=Mock(), staging_dir=str(tmp_path),
                     import_user='importer', strip_tables=False)

        content = (tmp_path / 'dump.sql').read_bytes()
        assert b'INSERT INTO `log_visitor`' in content
        assert b'DEFINER=`importer`@' in content

    def test_skip_import_needs_no_database(self, session, backup, extractor, grep, tmp_path):
        (tmp_path / backup.file_name).write_bytes(b'x' * 2048)
        importer = Mock()

        dumps = run_pipeline(session, backup, None, extractor=extractor, importer=importer,
                             staging_dir=str(tmp_path), import_user='dev', skip_import=True)

        assert dumps == [str(tmp_path / 'dump.sql')]
        assert not importer.method_calls

    def test_create_and_remove(self, session, backup, extractor, grep, tmp_path):
        (tmp_path / backup.file_name).write_bytes(b'x' * 2048)
        importer = MagicMock()

        run_pipeline(session, backup, DB, extractor=extractor, importer=importer, staging_dir=str(tmp_path),
                     create_database=True, remove_imported=True)

        importer.create_database_if_absent.assert_called_once_with(DB)
        assert not (tmp_path / 'dump.sql').exists()
        assert (tmp_path / backup.file_name).exists()

    def test_listing_with_directory_prefix(self, session, backup, extractor, grep, tmp_path):
        (tmp_path / backup.file_name).write_bytes(b'x' * 2048)
        extractor.list_files.return_value = [str(tmp_path / 'dump.sql')]

        dumps = run_pipeline(session, backup, DB, extractor=extractor, importer=Mock(), staging_dir=str(tmp_path),
                             skip_import=True)

        assert dumps == [str(tmp_path / 'dump.sql')]


@pytest.mark.skipif(shutil.which('gunzip') is None, reason='gunzip is not installed')
class TestRelativeStagingDirectory:

    def test_gunzip_in_relative_directory(self, session, http, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / 'stage').mkdir()
        archive = gzip.compress(DUMP)
        (tmp_path / 'stage' / 'dump_20240101.sql.gz').write_bytes(archive)
        backup = Backup('acme.example', 'acme_db', 'dump_20240101.sql.gz', len(archive),
                        datetime.datetime(2024, 1, 1, tzinfo=datetime.timezone.utc))

        with patch('byte_sql_backup.sanitizer.contains_definers', return_value=True):
            dumps = run_pipeline(session, backup, DB, extractor=ArchiveExtractor(), importer=Mock(),
                                 staging_dir='stage', skip_import=True)

        assert dumps == [os.path.join('stage', 'dump_20240101.sql')]
        http.request.assert_not_called()
        content = (tmp_path / 'stage' / 'dump_20240101.sql').read_bytes()
        assert b'INSERT INTO `log_visitor`' not in content
        assert b'DEFINER=`dev`@' in content
