"""
Shared fixtures: fake HTTP responses and panel sessions that never touch the
network.
"""
import datetime
from unittest.mock import MagicMock

import pytest

from byte_sql_backup.binaries import find_binary
from byte_sql_backup.models import Backup
from byte_sql_backup.session import PanelSession


def make_response(status_code=200, text='', content=None, headers=None, chunks=None):
    """Build a stand-in for requests.Response."""
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    response.content = content if content is not None else text.encode('utf-8')
    response.headers = headers or {}
    response.iter_content.return_value = iter(chunks or [])
    response.__enter__.return_value = response
    response.__exit__.return_value = False
    return response


@pytest.fixture
def http():
    return MagicMock()


@pytest.fixture
def session(http):
    session = PanelSession(base_url='https://service.example/', timeout=5, http=http)
    session.authenticated = True
    session.user = '1'
    return session


@pytest.fixture
def backup():
    return Backup(
        domain='acme.example',
        database='acme_db',
        file_name='dump_20240101.tar.gz',
        size_bytes=1000,
        created_at=datetime.datetime(2024, 1, 1, tzinfo=datetime.timezone.utc),
    )


@pytest.fixture(autouse=True)
def clear_binary_cache():
    find_binary.cache_clear()
    yield
    find_binary.cache_clear()
